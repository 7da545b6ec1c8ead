"""Collections the view service serves out of the box."""

from typing import List

from competency_kernel.models.client import ResourceSpec
from competency_kernel.models.view import SortDirection, ViewConfig

PRIORITY_RANKS = {"HIGH": 3, "MEDIUM": 2, "LOW": 1}

DEFAULT_RESOURCES: List[ResourceSpec] = [
    ResourceSpec(
        name="questions",
        path="/questions",
        envelope="questions",
        params={"page": "1", "limit": "1000"},
        view=ViewConfig(
            searchable_fields=["text", "explanation", "competency_name", "level_name"],
            filterable_fields=["competency_id", "competency_level_id", "type"],
        ),
        stats_fields=["competency_name", "level_name", "type"],
        active_field="isActive",
        total_fields={"points": ["points"]},
    ),
    ResourceSpec(
        name="competencies",
        path="/competencies",
        envelope="competencies",
        params={"page": "1", "limit": "1000"},
        view=ViewConfig(
            searchable_fields=["name", "description"],
            filterable_fields=["type", "family"],
            sort_key="name",
        ),
        stats_fields=["type"],
    ),
    ResourceSpec(
        name="new-assessments",
        path="/assessments",
        envelope="assessments",
        params={"page": "1", "limit": "1000"},
        view=ViewConfig(
            searchable_fields=["title", "description", "competency_name"],
            filterable_fields=["competency_id"],
        ),
        active_field="is_active",
        total_fields={"questions": ["questionCount", "question_count"]},
    ),
    ResourceSpec(
        name="assessor-management",
        path="/assessor-management",
        envelope="assessors",
        view=ViewConfig(
            searchable_fields=["first_name", "last_name", "competency_name"],
            filterable_fields=["competency_id", "competency_level"],
        ),
        stats_fields=["competency_name"],
        active_field="is_active",
    ),
    ResourceSpec(
        name="development-paths",
        path="/development-paths",
        envelope="paths",
        view=ViewConfig(
            searchable_fields=["name", "description"],
            sort_key="start_date",
            sort_type="date",
        ),
        total_fields={"employee_assignments": ["employee_assignments"]},
    ),
    ResourceSpec(
        name="employees",
        path="/employees",
        envelope="employees",
        params={"page": "1", "limit": "10000"},
        view=ViewConfig(
            searchable_fields=["first_name", "last_name", "sid", "email"],
            filterable_fields=["department", "job_code", "employment_status"],
        ),
        stats_fields=["department"],
    ),
    ResourceSpec(
        name="idps",
        path="/idp/{scope}",
        envelope="idps",
        view=ViewConfig(
            searchable_fields=["competency_name", "intervention_title", "custom_intervention_name"],
            filterable_fields=["status", "priority"],
            sort_key="created_at",
            sort_direction=SortDirection.DESC,
            rank_orders={"priority": PRIORITY_RANKS},
        ),
        stats_fields=["status", "priority"],
    ),
]

"""
Development Path Planner — scheduling interventions inside a path.

Behavioral Contract:
- Never submits an interval-bearing change that fails the scheduling
  validator; a rejected draft produces no request at all
- Seeds a missing end date as start + 1 day, without clamping
- Re-checks every existing intervention when a path's own dates change
- Batches of pending interventions are validated and submitted item by
  item, and every item's outcome is reported
- Successful changes invalidate the path's detail and the path list
"""

import logging
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel

from competency_kernel.client.api import CompetencyAPIClient
from competency_kernel.models.collection import CacheKey, CollectionSnapshot, MutationResult
from competency_kernel.models.development import DevelopmentPath, Intervention
from competency_kernel.models.scheduling import Interval, ValidationResult, normalize_day
from competency_kernel.scheduling.validator import (
    seed_child_interval,
    validate_interval,
    validate_range,
    validate_schedule,
)
from competency_kernel.store.collection_store import RemoteCollectionStore

logger = logging.getLogger("competency_kernel.paths")

DEVELOPMENT_PATHS_KEY: CacheKey = ("development-paths",)


def path_key(path_id: str) -> CacheKey:
    """Cache key of a path's intervention list."""
    return ("path-detail", path_id)


class SubmissionOutcome(BaseModel):
    """What happened to one submitted draft."""

    validation: ValidationResult
    mutation: Optional[MutationResult] = None

    @property
    def accepted(self) -> bool:
        return self.validation.ok and self.mutation is not None and self.mutation.success


class PathUpdateOutcome(BaseModel):
    """Result of changing a path's dates."""

    validation: ValidationResult
    conflicts: Dict[str, ValidationResult] = {}     # intervention id -> violation
    mutation: Optional[MutationResult] = None

    @property
    def accepted(self) -> bool:
        return self.mutation is not None and self.mutation.success


def _day(value: Optional[str]) -> Optional[str]:
    day = normalize_day(value)
    return day.isoformat() if day else None


def intervention_payload(draft: Intervention) -> dict:
    """Request body for creating an intervention."""
    return {
        "intervention_type_id": draft.intervention_type_id,
        "title": draft.title,
        "description": draft.description or None,
        "start_date": _day(draft.start_date),
        "end_date": _day(draft.end_date),
        "duration_hours": draft.duration_hours,
    }


def intervention_update_payload(intervention: Intervention) -> dict:
    """
    Request body for updating an intervention. The update endpoint takes the
    stored column names, and null leaves a column unchanged.
    """
    return {
        "intervention_type": intervention.intervention_type_id,
        "intervention_name": intervention.title,
        "description": intervention.description or None,
        "start_date": _day(intervention.start_date),
        "end_date": _day(intervention.end_date),
        "duration_hours": intervention.duration_hours,
    }


class DevelopmentPathPlanner:
    """Validates and submits intervention schedules for development paths."""

    def __init__(self, store: RemoteCollectionStore, client: CompetencyAPIClient):
        self.store = store
        self.client = client
        self._pending: Dict[str, List[Intervention]] = {}

    # --- Reading ---

    def watch_path(self, path_id: str, listener=None) -> CollectionSnapshot:
        """Subscribe to a path's interventions."""
        fetcher = self.client.fetcher(
            f"/development-paths/{path_id}", envelope="interventions"
        )
        return self.store.subscribe(path_key(path_id), fetcher, listener)

    async def load_path(self, path_id: str) -> DevelopmentPath:
        body = await self.client.get(f"/development-paths/{path_id}")
        return DevelopmentPath.model_validate(body["path"])

    # --- Validation ---

    def validate_intervention(
        self, path: DevelopmentPath, draft: Intervention
    ) -> ValidationResult:
        return validate_interval(path.interval, draft.interval)

    def seed_end_date(self, draft: Intervention) -> Intervention:
        """Fill a missing end date with the day after the start date."""
        if not draft.start_date or draft.end_date:
            return draft
        seeded = seed_child_interval(draft.start_date)
        return draft.model_copy(update={"end_date": seeded.end.isoformat()})

    # --- Interventions ---

    async def create_intervention(
        self, path: DevelopmentPath, draft: Intervention
    ) -> SubmissionOutcome:
        result = self.validate_intervention(path, draft)
        if not result.ok:
            logger.info(
                "Rejected intervention %r for path %s: %s",
                draft.title, path.id, result.violation.value,
            )
            return SubmissionOutcome(validation=result)

        mutation = await self.store.mutate(
            path_key(path.id),
            self.client.creator(
                f"/development-paths/{path.id}/interventions",
                intervention_payload(draft),
            ),
            invalidates=[path_key(path.id), DEVELOPMENT_PATHS_KEY],
        )
        return SubmissionOutcome(validation=result, mutation=mutation)

    async def update_intervention(
        self, path: DevelopmentPath, intervention: Intervention
    ) -> SubmissionOutcome:
        result = self.validate_intervention(path, intervention)
        if not result.ok:
            return SubmissionOutcome(validation=result)

        mutation = await self.store.mutate(
            path_key(path.id),
            self.client.updater(
                f"/development-paths/interventions/{intervention.id}",
                intervention_update_payload(intervention),
            ),
            invalidates=[path_key(path.id)],
        )
        return SubmissionOutcome(validation=result, mutation=mutation)

    async def delete_intervention(
        self, path: DevelopmentPath, intervention_id: str
    ) -> MutationResult:
        return await self.store.mutate(
            path_key(path.id),
            self.client.deleter(f"/development-paths/interventions/{intervention_id}"),
            invalidates=[path_key(path.id)],
        )

    # --- Path dates ---

    async def update_path_dates(
        self,
        path: DevelopmentPath,
        start_date: Optional[str],
        end_date: Optional[str],
        interventions: Sequence[Intervention] = (),
    ) -> PathUpdateOutcome:
        """
        Change a path's dates. Blocked when the range is inverted or when an
        existing intervention would fall outside the new range.
        """
        new_range = Interval(start=start_date or None, end=end_date or None)
        own = validate_range(new_range)
        if not own.ok:
            return PathUpdateOutcome(validation=own)

        conflicts = validate_schedule(
            new_range, [i.model_dump() for i in interventions]
        )
        if conflicts:
            logger.info(
                "Path %s date change leaves %d intervention(s) outside the range",
                path.id, len(conflicts),
            )
            return PathUpdateOutcome(
                validation=own,
                conflicts={str(k): v for k, v in conflicts.items()},
            )

        payload = {
            "name": path.name,
            "description": path.description,
            "start_date": _day(start_date),
            "end_date": _day(end_date),
        }
        mutation = await self.store.mutate(
            path_key(path.id),
            self.client.updater(f"/development-paths/{path.id}", payload),
            invalidates=[path_key(path.id), DEVELOPMENT_PATHS_KEY],
        )
        return PathUpdateOutcome(validation=own, mutation=mutation)

    # --- Pending batches ---

    def stage(self, path: DevelopmentPath, draft: Intervention) -> ValidationResult:
        """Queue a draft for batch submission if it passes validation."""
        result = self.validate_intervention(path, draft)
        if result.ok:
            self._pending.setdefault(path.id, []).append(draft)
        return result

    def pending(self, path_id: str) -> List[Intervention]:
        return list(self._pending.get(path_id, []))

    def discard_pending(self, path_id: str) -> None:
        self._pending.pop(path_id, None)

    async def submit_pending(self, path: DevelopmentPath) -> List[SubmissionOutcome]:
        """
        Submit every staged draft for a path. Drafts are re-validated (the
        path may have changed since staging); failed submissions stay
        staged so they can be retried.
        """
        outcomes = []
        remaining = []
        for draft in self._pending.pop(path.id, []):
            outcome = await self.create_intervention(path, draft)
            outcomes.append(outcome)
            if not outcome.accepted:
                remaining.append(draft)
        if remaining:
            self._pending[path.id] = remaining
        return outcomes

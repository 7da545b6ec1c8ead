"""
Competency Kernel API — FastAPI view service.

Serves the collection view engine to browser clients:
- Cached resource views with search, equality filters and sorting
- Dashboard statistics per resource
- Manual refresh and cache inspection
- Scheduling and question-draft validation
- Validated intervention scheduling inside development paths
"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, ValidationError

from competency_kernel.api.resources import DEFAULT_RESOURCES
from competency_kernel.client.api import APIError, CompetencyAPIClient
from competency_kernel.models.client import ClientConfig, ResourceSpec
from competency_kernel.models.collection import CacheKey, CollectionSnapshot, StoreConfig
from competency_kernel.models.development import Intervention
from competency_kernel.models.view import FilterPredicateSet, SortDirection
from competency_kernel.paths.planner import DevelopmentPathPlanner
from competency_kernel.questions.drafts import (
    parse_question,
    question_payload,
    validate_question,
)
from competency_kernel.scheduling.validator import seed_child_interval, validate_interval
from competency_kernel.store.collection_store import RemoteCollectionStore
from competency_kernel.views.deriver import derive_view
from competency_kernel.views.stats import collection_stats

load_dotenv()

logger = logging.getLogger("competency_kernel.api")

# Query parameters of the view endpoint that are not equality filters
RESERVED_PARAMS = {"search", "sort_key", "sort_direction", "scope"}


# --- Request/Response Models ---

class IntervalCheckRequest(BaseModel):
    parent: dict = {}
    child: dict


class SeedRequest(BaseModel):
    start: str


class InterventionCreateRequest(BaseModel):
    title: str
    intervention_type_id: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    duration_hours: Optional[float] = None
    description: Optional[str] = None
    seed_end_date: bool = True


def _snapshot_summary(snapshot: CollectionSnapshot, subscribers: int) -> dict:
    return {
        "key": list(snapshot.key),
        "item_count": len(snapshot.items),
        "is_stale": snapshot.is_stale,
        "is_loading": snapshot.is_loading,
        "fetched_at": snapshot.fetched_at.isoformat() if snapshot.fetched_at else None,
        "error": snapshot.error.model_dump(mode="json") if snapshot.error else None,
        "subscribers": subscribers,
    }


# --- Application Factory ---

def create_app(
    client: Optional[CompetencyAPIClient] = None,
    store: Optional[RemoteCollectionStore] = None,
    resources: Optional[List[ResourceSpec]] = None,
    client_config: Optional[ClientConfig] = None,
    store_config: Optional[StoreConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    api_client = client or CompetencyAPIClient(client_config or ClientConfig.from_env())
    collections = store or RemoteCollectionStore(store_config)
    registry = {r.name: r for r in (resources if resources is not None else DEFAULT_RESOURCES)}
    planner = DevelopmentPathPlanner(collections, api_client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if client is None:
            await api_client.aclose()

    app = FastAPI(
        title="Competency Kernel API",
        description="Cached collection views and scheduling checks for the competency platform",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store components on app state for access in endpoints and tests
    app.state.client = api_client
    app.state.store = collections
    app.state.planner = planner
    app.state.resources = registry

    def _lookup(name: str) -> ResourceSpec:
        resource = registry.get(name)
        if resource is None:
            raise HTTPException(404, "Resource not found")
        return resource

    def _watch(resource: ResourceSpec, scope: Optional[str]) -> CacheKey:
        """Keep one long-lived subscription per resource (and scope)."""
        if resource.is_scoped and not scope:
            raise HTTPException(400, f"Resource '{resource.name}' requires a scope")
        key = (resource.name, scope) if resource.is_scoped else (resource.name,)
        if collections.subscriber_count(key) == 0:
            path = resource.path.format(scope=scope) if resource.is_scoped else resource.path
            collections.subscribe(key, api_client.fetcher(path, resource.envelope, resource.params))
        else:
            collections.revalidate(key)
        return key

    async def _settled(resource: ResourceSpec, scope: Optional[str]) -> CollectionSnapshot:
        snapshot = await collections.settle(_watch(resource, scope))
        if not snapshot.has_data and snapshot.error is not None:
            logger.warning("No data for %s: %s", snapshot.key, snapshot.error.message)
            raise HTTPException(502, snapshot.error.message)
        return snapshot

    # === RESOURCES ===

    @app.get("/resources")
    def list_resources():
        """All registered resources and their view configuration."""
        return [
            {
                "name": resource.name,
                "scoped": resource.is_scoped,
                "view": resource.view.model_dump(mode="json"),
            }
            for resource in registry.values()
        ]

    @app.get("/resources/{name}/view")
    async def resource_view(
        name: str,
        request: Request,
        search: str = "",
        sort_key: Optional[str] = None,
        sort_direction: Optional[SortDirection] = None,
        scope: Optional[str] = None,
    ):
        """Visible rows of a cached resource; other query params filter by equality."""
        resource = _lookup(name)
        snapshot = await _settled(resource, scope)

        filters = {
            k: v for k, v in request.query_params.items() if k not in RESERVED_PARAMS
        }
        config = resource.view
        if sort_key is not None or sort_direction is not None:
            config = config.model_copy(update={
                "sort_key": sort_key or config.sort_key,
                "sort_direction": sort_direction or config.sort_direction,
            })

        rows = derive_view(
            snapshot.items,
            FilterPredicateSet(search_text=search, equality_filters=filters),
            config,
        )
        return {
            "resource": name,
            "items": rows,
            "total": len(snapshot.items),
            "visible": len(rows),
            "is_stale": snapshot.is_stale,
            "fetched_at": snapshot.fetched_at.isoformat() if snapshot.fetched_at else None,
            "error": snapshot.error.model_dump(mode="json") if snapshot.error else None,
        }

    @app.get("/resources/{name}/stats")
    async def resource_stats(name: str, scope: Optional[str] = None):
        """Totals and per-field counts for a resource's stats cards."""
        resource = _lookup(name)
        snapshot = await _settled(resource, scope)
        stats = collection_stats(
            snapshot.items, resource.stats_fields, resource.active_field, resource.total_fields
        )
        return stats.model_dump()

    @app.post("/resources/{name}/refresh")
    async def refresh_resource(name: str, scope: Optional[str] = None):
        """Force a refetch and wait for it."""
        key = _watch(_lookup(name), scope)
        if collections.is_fetching(key):
            snapshot = await collections.settle(key)
        else:
            snapshot = await collections.refresh(key)
        return _snapshot_summary(snapshot, collections.subscriber_count(snapshot.key))

    @app.get("/collections")
    def list_collections():
        """Metadata for every cached snapshot."""
        summaries = []
        for key in collections.keys():
            snapshot = collections.get(key)
            summaries.append(_snapshot_summary(snapshot, collections.subscriber_count(key)))
        return summaries

    # === SCHEDULING ===

    @app.post("/scheduling/validate")
    def check_interval(req: IntervalCheckRequest):
        """Check a child interval against its parent."""
        try:
            result = validate_interval(req.parent, req.child)
        except (TypeError, ValueError) as exc:
            raise HTTPException(422, f"Invalid date: {exc}")
        return result.model_dump(mode="json")

    @app.post("/scheduling/seed")
    def seed_interval(req: SeedRequest):
        """Default end date (start + 1 day) for a new intervention."""
        try:
            interval = seed_child_interval(req.start)
        except (TypeError, ValueError) as exc:
            raise HTTPException(422, f"Invalid date: {exc}")
        return interval.model_dump(mode="json")

    # === QUESTIONS ===

    @app.post("/questions/validate")
    def check_question(payload: dict):
        """Validate a question draft of any kind."""
        try:
            question = parse_question(payload)
        except ValidationError as exc:
            raise HTTPException(422, exc.errors(include_url=False, include_context=False))
        errors = validate_question(question)
        return {
            "valid": not errors,
            "errors": errors,
            "payload": question_payload(question) if not errors else None,
        }

    # === DEVELOPMENT PATHS ===

    @app.post("/paths/{path_id}/interventions", status_code=201)
    async def create_intervention(path_id: str, req: InterventionCreateRequest):
        """Schedule an intervention; rejected before submission if out of range."""
        try:
            path = await planner.load_path(path_id)
        except APIError as exc:
            raise HTTPException(404 if exc.status_code == 404 else 502, exc.message)
        except (KeyError, ValidationError) as exc:
            logger.warning("Unreadable development path %s: %s", path_id, exc)
            raise HTTPException(502, "Unexpected development path response")

        draft = Intervention(
            path_id=path_id,
            title=req.title,
            intervention_type_id=req.intervention_type_id,
            start_date=req.start_date,
            end_date=req.end_date,
            duration_hours=req.duration_hours,
            description=req.description,
        )
        if req.seed_end_date:
            draft = planner.seed_end_date(draft)

        outcome = await planner.create_intervention(path, draft)
        if not outcome.validation.ok:
            raise HTTPException(422, {
                "violation": outcome.validation.violation.value,
                "message": outcome.validation.message,
            })
        if not outcome.mutation.success:
            raise HTTPException(502, outcome.mutation.error.message)
        return outcome.mutation.data

    return app


# Default application instance
app = create_app()

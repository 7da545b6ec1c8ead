"""Tests for the development path planner."""

import json
from datetime import date

import httpx
import pytest

from competency_kernel.client.api import CompetencyAPIClient
from competency_kernel.models.client import ClientConfig
from competency_kernel.models.development import DevelopmentPath, Intervention
from competency_kernel.models.scheduling import IntervalViolation
from competency_kernel.paths.planner import (
    DEVELOPMENT_PATHS_KEY,
    DevelopmentPathPlanner,
    intervention_payload,
    intervention_update_payload,
    path_key,
)
from competency_kernel.store.collection_store import RemoteCollectionStore


def _stored_day(value):
    """Dates come back from the `::date` columns as UTC-midnight timestamps."""
    return f"{value}T00:00:00.000Z" if value else None


class FakePathsBackend:
    """In-memory stand-in for the development paths endpoints."""

    def __init__(self):
        self.path = {
            "id": "p1",
            "name": "Leadership Track",
            "description": None,
            "start_date": "2024-01-01T00:00:00.000Z",
            "end_date": "2024-01-31T00:00:00.000Z",
        }
        self.interventions = [
            {
                "id": "i1",
                "path_id": "p1",
                "intervention_type": "t1",
                "intervention_name": "Kickoff",
                "description": None,
                "start_date": "2024-01-02T00:00:00.000Z",
                "end_date": "2024-01-03T00:00:00.000Z",
                "duration_hours": 1,
                "managed_by": None,
            },
        ]
        self.requests = []
        self.bodies = []
        self.fail_writes = False

    def __call__(self, request):
        self.requests.append((request.method, request.url.path))
        path = request.url.path

        if request.method == "GET" and path == "/api/development-paths":
            return httpx.Response(200, json={"paths": [self.path]})
        if request.method == "GET" and path == "/api/development-paths/p1":
            return httpx.Response(200, json={
                "path": self.path,
                "interventions": self.interventions,
                "summary": {"direct_emp": 0, "groups": 0},
            })
        if request.method == "GET":
            return httpx.Response(404, json={"message": "Development path not found"})

        if self.fail_writes:
            return httpx.Response(500, json={"message": "Database unavailable"})

        body = json.loads(request.content) if request.content else {}
        self.bodies.append(body)
        if request.method == "POST" and path == "/api/development-paths/p1/interventions":
            row = {
                "id": f"i{len(self.interventions) + 1}",
                "path_id": "p1",
                "intervention_type": body.get("intervention_type_id"),
                "intervention_name": body.get("title"),
                "description": body.get("description"),
                "start_date": _stored_day(body.get("start_date")),
                "end_date": _stored_day(body.get("end_date")),
                "duration_hours": body.get("duration_hours"),
                "managed_by": body.get("managed_by"),
            }
            self.interventions.append(row)
            return httpx.Response(201, json={"message": "Intervention added", "intervention": row})
        if request.method == "PUT" and path == "/api/development-paths/p1":
            for field in ("name", "description"):
                if body.get(field) is not None:
                    self.path[field] = body[field]
            for field in ("start_date", "end_date"):
                if body.get(field) is not None:
                    self.path[field] = _stored_day(body[field])
            return httpx.Response(200, json={"message": "Development path updated", "path": self.path})
        if request.method == "PUT" and path.startswith("/api/development-paths/interventions/"):
            iid = path.rsplit("/", 1)[-1]
            row = next((i for i in self.interventions if i["id"] == iid), None)
            if row is None:
                return httpx.Response(404, json={"message": "Intervention not found"})
            for field in ("intervention_type", "intervention_name", "description", "duration_hours"):
                if body.get(field) is not None:
                    row[field] = body[field]
            for field in ("start_date", "end_date"):
                if body.get(field) is not None:
                    row[field] = _stored_day(body[field])
            return httpx.Response(200, json={"message": "Intervention updated", "intervention": row})
        if request.method == "DELETE":
            iid = path.rsplit("/", 1)[-1]
            self.interventions = [i for i in self.interventions if i["id"] != iid]
            return httpx.Response(200, json={"message": "Intervention deleted"})
        return httpx.Response(405)

    def writes(self):
        return [r for r in self.requests if r[0] != "GET"]


@pytest.fixture
def backend():
    return FakePathsBackend()


@pytest.fixture
def planner(backend):
    client = CompetencyAPIClient(
        ClientConfig(base_url="http://api.test/api"),
        transport=httpx.MockTransport(backend),
    )
    return DevelopmentPathPlanner(RemoteCollectionStore(), client)


def _make_path(**overrides):
    defaults = dict(id="p1", name="Leadership Track", start_date="2024-01-01", end_date="2024-01-31")
    defaults.update(overrides)
    return DevelopmentPath(**defaults)


def _make_draft(**overrides):
    defaults = dict(
        title="Coaching session",
        intervention_type_id="t1",
        start_date="2024-01-10",
        end_date="2024-01-11",
        duration_hours=2,
    )
    defaults.update(overrides)
    return Intervention(**defaults)


class TestLoading:
    @pytest.mark.asyncio
    async def test_load_path(self, planner):
        path = await planner.load_path("p1")
        assert path.name == "Leadership Track"
        assert path.interval.is_well_formed

    @pytest.mark.asyncio
    async def test_null_description_and_timestamp_dates(self, planner):
        path = await planner.load_path("p1")
        assert path.description is None
        assert path.interval.start == date(2024, 1, 1)
        assert path.interval.end == date(2024, 1, 31)

    @pytest.mark.asyncio
    async def test_watch_path_lists_interventions(self, planner):
        planner.watch_path("p1")
        snapshot = await planner.store.settle(path_key("p1"))
        assert [i["id"] for i in snapshot.items] == ["i1"]

    @pytest.mark.asyncio
    async def test_stored_rows_parse_as_interventions(self, planner):
        planner.watch_path("p1")
        snapshot = await planner.store.settle(path_key("p1"))
        intervention = Intervention.model_validate(snapshot.items[0])
        assert intervention.title == "Kickoff"
        assert intervention.intervention_type_id == "t1"
        assert intervention.path_id == "p1"
        assert intervention.interval.end == date(2024, 1, 3)


class TestCreateIntervention:
    @pytest.mark.asyncio
    async def test_valid_draft_is_submitted(self, planner, backend):
        outcome = await planner.create_intervention(_make_path(), _make_draft())

        assert outcome.accepted
        assert outcome.mutation.data["intervention"]["id"] == "i2"
        assert backend.writes() == [("POST", "/api/development-paths/p1/interventions")]

    @pytest.mark.asyncio
    async def test_violation_sends_no_request(self, planner, backend):
        draft = _make_draft(start_date="2023-12-20", end_date="2024-01-05")
        outcome = await planner.create_intervention(_make_path(), draft)

        assert not outcome.accepted
        assert outcome.validation.violation == IntervalViolation.CHILD_STARTS_BEFORE_PARENT
        assert outcome.mutation is None
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_inverted_draft_rejected(self, planner, backend):
        draft = _make_draft(start_date="2024-01-20", end_date="2024-01-10")
        outcome = await planner.create_intervention(_make_path(), draft)
        assert outcome.validation.violation == IntervalViolation.INVERTED_RANGE
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_success_refreshes_watched_path(self, planner):
        planner.watch_path("p1")
        await planner.store.settle(path_key("p1"))

        outcome = await planner.create_intervention(_make_path(), _make_draft())

        assert path_key("p1") in outcome.mutation.invalidated
        snapshot = planner.store.get(path_key("p1"))
        assert [i["id"] for i in snapshot.items] == ["i1", "i2"]
        assert snapshot.is_stale is False

    @pytest.mark.asyncio
    async def test_server_failure_reported(self, planner, backend):
        backend.fail_writes = True
        outcome = await planner.create_intervention(_make_path(), _make_draft())

        assert outcome.validation.ok
        assert not outcome.accepted
        assert outcome.mutation.error.message == "Database unavailable"
        assert outcome.mutation.error.status_code == 500

    def test_payload_blanks_become_null(self):
        payload = intervention_payload(_make_draft(end_date="", description=""))
        assert payload["end_date"] is None
        assert payload["description"] is None
        assert payload["start_date"] == "2024-01-10"

    @pytest.mark.asyncio
    async def test_create_body_uses_request_field_names(self, planner, backend):
        await planner.create_intervention(_make_path(), _make_draft(description="Weekly"))

        assert backend.bodies == [{
            "intervention_type_id": "t1",
            "title": "Coaching session",
            "description": "Weekly",
            "start_date": "2024-01-10",
            "end_date": "2024-01-11",
            "duration_hours": 2,
        }]
        assert backend.interventions[-1]["intervention_name"] == "Coaching session"

    @pytest.mark.asyncio
    async def test_last_day_of_loaded_path_accepted(self, planner, backend, new_york_time):
        path = await planner.load_path("p1")
        draft = _make_draft(start_date="2024-01-30", end_date="2024-01-31")

        outcome = await planner.create_intervention(path, draft)

        assert outcome.validation.ok
        assert outcome.accepted

    @pytest.mark.asyncio
    async def test_first_day_of_loaded_path_accepted(self, planner, new_york_time):
        path = await planner.load_path("p1")
        result = planner.validate_intervention(path, _make_draft(start_date="2024-01-01", end_date="2024-01-02"))
        assert result.ok


class TestSeeding:
    def test_missing_end_is_seeded(self, planner):
        draft = planner.seed_end_date(_make_draft(start_date="2024-01-15", end_date=None))
        assert draft.end_date == "2024-01-16"

    def test_existing_end_is_kept(self, planner):
        draft = planner.seed_end_date(_make_draft(end_date="2024-01-20"))
        assert draft.end_date == "2024-01-20"

    @pytest.mark.asyncio
    async def test_seed_on_last_day_is_rejected_not_clamped(self, planner, backend):
        draft = planner.seed_end_date(_make_draft(start_date="2024-01-31", end_date=None))
        assert draft.end_date == "2024-02-01"

        outcome = await planner.create_intervention(_make_path(), draft)
        assert outcome.validation.violation == IntervalViolation.CHILD_ENDS_AFTER_PARENT
        assert backend.requests == []


class TestUpdateAndDelete:
    @pytest.mark.asyncio
    async def test_update_validated_first(self, planner, backend):
        moved = _make_draft(id="i1", start_date="2024-02-05", end_date="2024-02-06")
        outcome = await planner.update_intervention(_make_path(), moved)

        assert outcome.validation.violation == IntervalViolation.CHILD_ENDS_AFTER_PARENT
        assert backend.writes() == []

    @pytest.mark.asyncio
    async def test_update_submitted(self, planner, backend):
        outcome = await planner.update_intervention(_make_path(), _make_draft(id="i1"))
        assert outcome.accepted
        assert backend.writes() == [("PUT", "/api/development-paths/interventions/i1")]

    @pytest.mark.asyncio
    async def test_update_uses_stored_column_names(self, planner, backend):
        renamed = _make_draft(id="i1", title="Kickoff workshop", start_date="2024-01-02", end_date="2024-01-04")
        await planner.update_intervention(_make_path(), renamed)

        body = backend.bodies[0]
        assert body["intervention_name"] == "Kickoff workshop"
        assert body["intervention_type"] == "t1"
        assert "title" not in body
        assert backend.interventions[0]["intervention_name"] == "Kickoff workshop"
        assert backend.interventions[0]["end_date"] == "2024-01-04T00:00:00.000Z"

    @pytest.mark.asyncio
    async def test_stored_row_edited_and_resubmitted(self, planner, backend):
        path = await planner.load_path("p1")
        stored = Intervention.model_validate(backend.interventions[0])
        moved = stored.model_copy(update={"end_date": "2024-01-31"})

        outcome = await planner.update_intervention(path, moved)

        assert outcome.accepted
        assert backend.bodies[0]["start_date"] == "2024-01-02"
        assert backend.bodies[0]["end_date"] == "2024-01-31"

    def test_update_payload_shape(self):
        payload = intervention_update_payload(_make_draft(id="i1"))
        assert set(payload) == {
            "intervention_type", "intervention_name", "description",
            "start_date", "end_date", "duration_hours",
        }

    @pytest.mark.asyncio
    async def test_delete(self, planner, backend):
        result = await planner.delete_intervention(_make_path(), "i1")
        assert result.success
        assert backend.interventions == []


class TestPathDates:
    @pytest.mark.asyncio
    async def test_inverted_path_range_blocked(self, planner, backend):
        outcome = await planner.update_path_dates(_make_path(), "2024-02-01", "2024-01-01")
        assert outcome.validation.violation == IntervalViolation.INVERTED_RANGE
        assert not outcome.accepted
        assert backend.writes() == []

    @pytest.mark.asyncio
    async def test_shrinking_past_an_intervention_blocked(self, planner, backend):
        existing = [Intervention(id="i1", title="Kickoff", intervention_type_id="t1",
                                 start_date="2024-01-02", end_date="2024-01-03")]
        outcome = await planner.update_path_dates(_make_path(), "2024-01-05", "2024-01-31", existing)

        assert outcome.validation.ok
        assert set(outcome.conflicts) == {"i1"}
        assert outcome.conflicts["i1"].violation == IntervalViolation.CHILD_STARTS_BEFORE_PARENT
        assert not outcome.accepted
        assert backend.writes() == []

    @pytest.mark.asyncio
    async def test_compatible_change_submitted(self, planner, backend):
        planner.store.subscribe(
            DEVELOPMENT_PATHS_KEY,
            planner.client.fetcher("/development-paths", "paths"),
        )
        await planner.store.settle(DEVELOPMENT_PATHS_KEY)

        outcome = await planner.update_path_dates(_make_path(), "2024-01-01", "2024-02-29")

        assert outcome.accepted
        assert backend.bodies[0]["end_date"] == "2024-02-29"
        assert backend.path["end_date"] == "2024-02-29T00:00:00.000Z"
        paths = planner.store.get(DEVELOPMENT_PATHS_KEY)
        assert paths.items[0]["end_date"] == "2024-02-29T00:00:00.000Z"


class TestPendingBatches:
    def test_stage_only_valid_drafts(self, planner):
        path = _make_path()
        assert planner.stage(path, _make_draft()).ok
        assert not planner.stage(path, _make_draft(start_date="2023-01-01")).ok
        assert len(planner.pending("p1")) == 1

    def test_discard_pending(self, planner):
        planner.stage(_make_path(), _make_draft())
        planner.discard_pending("p1")
        assert planner.pending("p1") == []

    @pytest.mark.asyncio
    async def test_submit_reports_each_item(self, planner, backend):
        path = _make_path()
        planner.stage(path, _make_draft(title="First"))
        planner.stage(path, _make_draft(title="Second"))

        outcomes = await planner.submit_pending(path)

        assert [o.accepted for o in outcomes] == [True, True]
        assert planner.pending("p1") == []
        assert len(backend.writes()) == 2

    @pytest.mark.asyncio
    async def test_revalidated_against_current_path(self, planner, backend):
        planner.stage(_make_path(), _make_draft(start_date="2024-01-25", end_date="2024-01-26"))

        shrunk = _make_path(end_date="2024-01-20")
        outcomes = await planner.submit_pending(shrunk)

        assert outcomes[0].validation.violation == IntervalViolation.CHILD_ENDS_AFTER_PARENT
        assert len(planner.pending("p1")) == 1
        assert backend.writes() == []

    @pytest.mark.asyncio
    async def test_failed_submissions_stay_staged(self, planner, backend):
        path = _make_path()
        planner.stage(path, _make_draft())
        backend.fail_writes = True

        outcomes = await planner.submit_pending(path)

        assert not outcomes[0].accepted
        assert len(planner.pending("p1")) == 1

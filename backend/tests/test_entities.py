"""Tests for the typed entity layer."""
import pytest
from pydantic import ValidationError

from incident_desk.db.backends import MemoryBackend
from incident_desk.entities import Entities, to_fields
from incident_desk.exceptions import NotFoundError
from incident_desk.models import Incident, ReportIncidentRequest
from incident_desk.store import RecordStore


@pytest.fixture
async def entities():
    return Entities(await RecordStore.open(MemoryBackend()))


@pytest.mark.asyncio
async def test_create_returns_model(entities: Entities):
    inc = await entities.incidents.create({"title": "Checkout errors", "severity": "high"})
    assert isinstance(inc, Incident)
    assert inc.title == "Checkout errors"
    assert inc.affected_systems == []


@pytest.mark.asyncio
async def test_extra_fields_round_trip(entities: Entities):
    inc = await entities.incidents.create({"title": "a", "runbook_url": "https://example.com"})
    fetched = await entities.incidents.get(inc.id)
    assert fetched.model_dump()["runbook_url"] == "https://example.com"


@pytest.mark.asyncio
async def test_get_missing_returns_none(entities: Entities):
    assert await entities.incidents.get("nope") is None
    assert await entities.incidents.get("") is None


@pytest.mark.asyncio
async def test_update_and_delete(entities: Entities):
    inc = await entities.incidents.create({"title": "a"})
    updated = await entities.incidents.update(inc.id, {"status": "resolved"})
    assert updated.status == "resolved"
    assert await entities.incidents.delete(inc.id) is True
    assert await entities.incidents.delete(inc.id) is False
    with pytest.raises(NotFoundError):
        await entities.incidents.update(inc.id, {"status": "new"})


@pytest.mark.asyncio
async def test_filter_by_severity(entities: Entities):
    await entities.incidents.create({"title": "a", "severity": "critical"})
    await entities.incidents.create({"title": "b", "severity": "low"})
    rows = await entities.incidents.filter({"severity": "critical"})
    assert [r.title for r in rows] == ["a"]


def test_to_fields_from_model_keeps_only_set_fields():
    req = ReportIncidentRequest(title="x")
    assert to_fields(req) == {"title": "x"}


def test_by_table_lookup(entities: Entities):
    assert entities.by_table("Incident") is entities.incidents
    assert entities.by_table("Unknown") is None
    assert "KnowledgeBaseArticle" in entities.table_names


@pytest.mark.asyncio
async def test_audit_details_accept_any_structured_payload(entities: Entities):
    inc = await entities.incidents.create({"title": "a"})
    log = await entities.audit_logs.create({"incident_id": inc.id, "action_type": "note", "details": ["a", "b"]})
    assert log.details == ["a", "b"]
    assert [row.details for row in await entities.audit_logs.list()] == [["a", "b"]]


@pytest.mark.asyncio
async def test_loose_references_and_null_titles_are_stored(entities: Entities):
    decision = await entities.decisions.create({"decision": "approved"})
    assert decision.incident_id is None
    inc = await entities.incidents.create({"title": None})
    assert inc.title is None
    review = await entities.post_incident_reviews.create({"action_items": [{"item": "Add alert"}]})
    assert review.action_items[0].item == "Add alert"
    assert review.action_items[0].owner is None


@pytest.mark.asyncio
async def test_rejected_create_is_not_persisted(entities: Entities):
    with pytest.raises(ValidationError):
        await entities.incidents.create({"title": "a", "affected_systems": "not-a-list"})
    assert await entities.store.list("Incident") == []
    assert await entities.incidents.list() == []


@pytest.mark.asyncio
async def test_rejected_update_leaves_record_untouched(entities: Entities):
    inc = await entities.incidents.create({"title": "a"})
    with pytest.raises(ValidationError):
        await entities.incidents.update(inc.id, {"ai_analysis": "not an object"})
    fetched = await entities.incidents.get(inc.id)
    assert fetched.ai_analysis is None
    assert fetched.updated_date == inc.updated_date


@pytest.mark.asyncio
async def test_update_ignores_store_owned_fields_when_checking(entities: Entities):
    inc = await entities.incidents.create({"title": "a"})
    updated = await entities.incidents.update(inc.id, {"id": 5, "status": "new"})
    assert updated.id == inc.id

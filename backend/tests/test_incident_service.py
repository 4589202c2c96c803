"""Tests for incident workflows and export."""
import json

import pytest

from incident_desk import incident_service
from incident_desk.client import Client, create_client
from incident_desk.db.backends import MemoryBackend
from incident_desk.exceptions import NotFoundError
from incident_desk.models import ReportIncidentRequest


@pytest.fixture
async def client():
    c = await create_client(MemoryBackend(), seed=False)
    yield c
    await c.close()


@pytest.fixture
async def seeded_client():
    c = await create_client(MemoryBackend(), seed=True)
    yield c
    await c.close()


async def _report(client: Client):
    return await incident_service.report_incident(client, ReportIncidentRequest(
        title="DB outage",
        description="Postgres connection timeouts across checkout",
        severity="critical",
        source="Datadog",
        affected_systems=["OrdersDB", "Checkout API"],
    ))


@pytest.mark.asyncio
async def test_report_incident_analyzes_and_automates(client: Client):
    incident = await _report(client)
    assert incident.status == "awaiting_approval"
    assert incident.ai_analysis.confidence_score == pytest.approx(0.78)
    assert len(incident.ai_analysis.recommendations) == 3

    logs = await client.entities.audit_logs.filter({"incident_id": incident.id}, sort="created_date")
    assert [log.action_type for log in logs] == [
        "incident_created",
        "ai_analysis_generated",
        "automation_generated",
    ]
    assert logs[0].actor == "demo.user@example.com"
    assert logs[0].details == {"severity": "critical", "source": "Datadog"}

    automations = await client.entities.incident_automations.filter({"incident_id": incident.id})
    assert automations[0].assigned_team == "Database Reliability"


@pytest.mark.asyncio
async def test_report_incident_from_mapping(client: Client):
    incident = await incident_service.report_incident(client, {"title": "Login failures"})
    assert incident.ai_analysis.summary.startswith("Login failures: Preliminary assessment")


@pytest.mark.asyncio
async def test_decisions_move_incident_in_progress_when_complete(client: Client):
    incident = await _report(client)
    actions = [r.action for r in incident.ai_analysis.recommendations]

    first = await incident_service.record_decision(client, incident.id, actions[0], "approved", "Looks right")
    assert first.decided_by == "demo.user@example.com"
    assert first.decided_at
    assert (await client.entities.incidents.get(incident.id)).status == "awaiting_approval"

    await incident_service.record_decision(client, incident.id, actions[1], "rejected")
    await incident_service.record_decision(client, incident.id, actions[2], "modified", "Canary only")
    assert (await client.entities.incidents.get(incident.id)).status == "in_progress"

    decisions = await client.entities.audit_logs.filter({"incident_id": incident.id, "action_type": "decision_made"})
    assert len(decisions) == 3


@pytest.mark.asyncio
async def test_decision_rejects_unknown_outcome(client: Client):
    incident = await _report(client)
    with pytest.raises(ValueError):
        await incident_service.record_decision(client, incident.id, "x", "maybe")


@pytest.mark.asyncio
async def test_change_status_and_resolve(client: Client):
    incident = await _report(client)
    updated = await incident_service.change_status(client, incident.id, "in_progress")
    assert updated.status == "in_progress"

    resolved = await incident_service.resolve_incident(client, incident.id, "Raised pool size")
    assert resolved.status == "resolved"
    assert resolved.resolved_at
    assert resolved.resolution_notes == "Raised pool size"

    logs = await client.entities.audit_logs.filter({"incident_id": incident.id}, sort="created_date")
    assert logs[-2].details == {"previous": "awaiting_approval", "new": "in_progress"}
    assert logs[-1].action_type == "resolution_recorded"


@pytest.mark.asyncio
async def test_workflows_on_missing_incident(client: Client):
    with pytest.raises(NotFoundError):
        await incident_service.change_status(client, "missing", "resolved")
    with pytest.raises(NotFoundError):
        await incident_service.resolve_incident(client, "missing")
    with pytest.raises(NotFoundError):
        await incident_service.record_decision(client, "missing", "x", "approved")
    with pytest.raises(NotFoundError):
        await incident_service.export_incident(client, "missing", "json")


@pytest.mark.asyncio
async def test_export_markdown(client: Client):
    incident = await _report(client)
    await incident_service.record_decision(client, incident.id, "Roll back", "approved", "Correlated deploy")
    await incident_service.resolve_incident(client, incident.id, "Rolled back release")

    content, media_type = await incident_service.export_incident(client, incident.id, "markdown")
    assert media_type == "text/markdown"
    assert content.startswith("# Incident: DB outage\n")
    assert "- **Severity**: critical" in content
    assert "- **Affected systems**: OrdersDB, Checkout API" in content
    assert "## Likely root causes" in content
    assert "## Decisions" in content
    assert "Roll back" in content
    assert "## Resolution\n\nRolled back release" in content


@pytest.mark.asyncio
async def test_export_json(client: Client):
    incident = await _report(client)
    content, media_type = await incident_service.export_incident(client, incident.id, "json")
    assert media_type == "application/json"
    payload = json.loads(content)
    assert payload["incident"]["id"] == incident.id
    assert payload["analysis"]["confidence_score"] == pytest.approx(0.78)
    assert [t["action"] for t in payload["timeline"]][0] == "incident_created"
    assert payload["decisions"] == []


@pytest.mark.asyncio
async def test_article_counters(seeded_client: Client):
    viewed = await incident_service.record_article_view(seeded_client, "kb_001")
    viewed = await incident_service.record_article_view(seeded_client, "kb_001")
    assert viewed.views == 2
    helpful = await incident_service.mark_article_helpful(seeded_client, "kb_001")
    assert helpful.helpful_count == 1
    assert helpful.views == 2
    with pytest.raises(NotFoundError):
        await incident_service.record_article_view(seeded_client, "missing")


@pytest.mark.asyncio
async def test_update_alert_status(seeded_client: Client):
    alert = await incident_service.update_alert_status(seeded_client, "pa_001", "dismissed", dismissed_reason="Capacity added")
    assert alert.status == "dismissed"
    assert alert.dismissed_reason == "Capacity added"

    alert = await incident_service.update_alert_status(seeded_client, "pa_002", "prevented")
    assert alert.dismissed_reason is None

    with pytest.raises(ValueError):
        await incident_service.update_alert_status(seeded_client, "pa_003", "forgotten")
    with pytest.raises(NotFoundError):
        await incident_service.update_alert_status(seeded_client, "missing", "occurred")


@pytest.mark.asyncio
async def test_report_keeps_description_verbatim_for_analysis(client: Client):
    incident = await incident_service.report_incident(client, {
        "title": "DB outage",
        "description": "Postgres connection timeouts at checkout\r\n",
        "severity": "critical",
    })
    assert incident.ai_analysis.confidence_score == pytest.approx(0.78)


@pytest.mark.asyncio
async def test_export_markdown_is_ascii_punctuated(client: Client):
    incident = await _report(client)
    await incident_service.record_decision(client, incident.id, "Roll back", "approved", "Correlated deploy")
    content, _ = await incident_service.export_incident(client, incident.id, "markdown")
    assert "\u2014" not in content
    assert "(demo.user@example.com) - Correlated deploy" in content
    assert " - incident_created by demo.user@example.com" in content

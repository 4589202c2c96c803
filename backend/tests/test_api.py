"""Tests for the HTTP API."""
import asyncio

import pytest
from fastapi.testclient import TestClient

from incident_desk.client import create_client
from incident_desk.db.backends import MemoryBackend
from incident_desk.main import create_app


@pytest.fixture
def api():
    """TestClient over a seeded in-memory client."""
    client = asyncio.run(create_client(MemoryBackend(), seed=True))
    with TestClient(create_app(client)) as test_client:
        yield test_client


def test_health(api: TestClient):
    r = api.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "storage_backend": "memory", "durable": False, "llm_provider": "local"}


def test_auth_me_and_logout(api: TestClient):
    assert api.get("/api/auth/me").json()["email"] == "demo.user@example.com"
    assert api.post("/api/auth/logout").json() == {"ok": True}


def test_list_and_filter_entities(api: TestClient):
    rows = api.get("/api/entities/Incident", params={"limit": 2}).json()
    assert [r["id"] for r in rows] == ["inc_003", "inc_002"]

    r = api.post("/api/entities/Incident/filter", json={"where": {"severity": "critical"}})
    assert [row["id"] for row in r.json()] == ["inc_001"]


def test_unknown_entity_is_404(api: TestClient):
    assert api.get("/api/entities/Spaceship").status_code == 404


def test_entity_crud(api: TestClient):
    r = api.post("/api/entities/KnowledgeBaseArticle", json={"title": "Cache warmup", "tags": ["cache"]})
    assert r.status_code == 201
    article = r.json()

    r = api.patch(f"/api/entities/KnowledgeBaseArticle/{article['id']}", json={"status": "published"})
    assert r.json()["status"] == "published"

    assert api.delete(f"/api/entities/KnowledgeBaseArticle/{article['id']}").json() == {"ok": True, "deleted": True}
    assert api.delete(f"/api/entities/KnowledgeBaseArticle/{article['id']}").json() == {"ok": True, "deleted": False}
    assert api.patch(f"/api/entities/KnowledgeBaseArticle/{article['id']}", json={}).status_code == 404


def test_function_dispatch(api: TestClient):
    r = api.post("/api/functions/automateIncidentResponse", json={"incident_id": "inc_003"})
    assert r.status_code == 200
    assert r.json()["data"]["automation"]["assigned_team"] == "Identity & Access"

    assert api.post("/api/functions/doesNotExist", json={}).status_code == 404
    assert api.post("/api/functions/generatePostIncidentReview", json={"incident_id": "nope"}).status_code == 404


def test_incident_workflow(api: TestClient):
    r = api.post("/api/incidents", json={
        "title": "Checkout API latency",
        "description": "Gateway p99 above 2s for checkout requests since deploy",
        "severity": "high",
        "affected_systems": ["Checkout API"],
    })
    assert r.status_code == 201
    incident = r.json()
    assert incident["status"] == "awaiting_approval"

    action = incident["ai_analysis"]["recommendations"][0]["action"]
    r = api.post(f"/api/incidents/{incident['id']}/decisions", json={"recommendation_action": action, "decision": "approved"})
    assert r.status_code == 201

    r = api.post(f"/api/incidents/{incident['id']}/resolve", json={"resolution_notes": "Scaled gateway"})
    assert r.json()["status"] == "resolved"

    r = api.get(f"/api/incidents/{incident['id']}/export", params={"format": "json"})
    assert r.headers["content-type"].startswith("application/json")
    assert r.json()["incident"]["resolution_notes"] == "Scaled gateway"

    r = api.get(f"/api/incidents/{incident['id']}/export")
    assert r.text.startswith("# Incident: Checkout API latency")
    assert api.get(f"/api/incidents/{incident['id']}/export", params={"format": "pdf"}).status_code == 400


def test_incident_validation(api: TestClient):
    assert api.post("/api/incidents", json={"title": ""}).status_code == 422
    assert api.post("/api/incidents/inc_001/status", json={"status": "sleeping"}).status_code == 422
    assert api.post("/api/incidents/missing/status", json={"status": "resolved"}).status_code == 404


def test_article_and_alert_actions(api: TestClient):
    assert api.post("/api/articles/kb_002/view").json()["views"] == 1
    assert api.post("/api/articles/kb_002/helpful").json()["helpful_count"] == 1
    r = api.post("/api/alerts/pa_004/status", json={"status": "dismissed", "dismissed_reason": "False positive"})
    assert r.json()["status"] == "dismissed"
    assert api.post("/api/alerts/missing/status", json={"status": "occurred"}).status_code == 404


def test_store_dump_and_restore(api: TestClient):
    dump = api.get("/api/store/dump").json()
    assert "Incident" in dump["tables"]

    api.delete("/api/entities/Incident/inc_001")
    assert api.post("/api/store/restore", json=dump).json() == {"ok": True}
    ids = {r["id"] for r in api.get("/api/entities/Incident").json()}
    assert "inc_001" in ids

    assert api.post("/api/store/restore", json={"tables": []}).status_code == 422


def test_invalid_entity_payload_is_422_and_not_stored(api: TestClient):
    before = len(api.get("/api/entities/Incident").json())
    r = api.post("/api/entities/Incident", json={"title": "x", "affected_systems": 7})
    assert r.status_code == 422
    assert len(api.get("/api/entities/Incident").json()) == before

    r = api.patch("/api/entities/Incident/inc_001", json={"affected_systems": "nope"})
    assert r.status_code == 422


def test_analytics_report(api: TestClient):
    r = api.get("/api/analytics")
    assert r.status_code == 200
    body = r.json()
    assert body["total_incidents"] == 4
    assert body["resolution_rate"] == 25.0
    assert len(body["systems"]) == 11

    critical = api.get("/api/analytics", params={"severity": "critical"}).json()
    assert [i["id"] for i in critical["incidents"]] == ["inc_001"]


def test_analytics_unknown_date_range_is_400(api: TestClient):
    assert api.get("/api/analytics", params={"date_range": "1y"}).status_code == 400
    assert api.get("/api/analytics/export", params={"date_range": "1y"}).status_code == 400


def test_analytics_export_download(api: TestClient):
    r = api.get("/api/analytics/export", params={"status": "resolved"})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("application/json")
    assert r.headers["content-disposition"].startswith('attachment; filename="incident-report-')
    body = r.json()
    assert body["filters"]["status"] == "resolved"
    assert [i["id"] for i in body["incidents"]] == ["inc_004"]


def test_governance_metrics(api: TestClient):
    body = api.get("/api/governance").json()
    assert (body["total_decisions"], body["approved"], body["approval_rate"]) == (2, 2, 100)
    assert body["avg_confidence"] == 74


def test_system_health(api: TestClient):
    body = api.get("/api/system-health").json()
    assert body["active_incidents"] == 3
    assert body["healthy_systems"] == 2
    assert body["systems_at_risk"] == 9
    assert body["overall_health"] == 18
    assert body["active_predictions"] == 4
    assert body["anomalies"] == []

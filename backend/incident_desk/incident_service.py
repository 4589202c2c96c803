"""Incident workflows, knowledge-base and alert actions, and export.

Each workflow issues several store operations in sequence without a
transaction; a failure partway leaves the earlier steps applied.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Mapping

from pydantic import BaseModel

from incident_desk.analyzer import analysis_to_markdown, run_analysis
from incident_desk.client import Client
from incident_desk.entities import to_fields
from incident_desk.exceptions import NotFoundError
from incident_desk.generators import SYSTEM_ACTOR
from incident_desk.models import (
    AlertStatus,
    Decision,
    DecisionOutcome,
    Incident,
    IncidentStatus,
    KnowledgeBaseArticle,
    PredictiveAlert,
)

logger = logging.getLogger(__name__)


async def _incident(client: Client, incident_id: str) -> Incident:
    incident = await client.entities.incidents.get(incident_id)
    if incident is None:
        raise NotFoundError("Incident", incident_id)
    return incident


async def _audit(client: Client, incident_id: str, action_type: str, actor: str | None, details: dict[str, Any]) -> None:
    await client.entities.audit_logs.create({
        "incident_id": incident_id,
        "action_type": action_type,
        "actor": actor,
        "details": details,
    })


async def report_incident(client: Client, data: Mapping[str, Any] | BaseModel) -> Incident:
    """Create an incident, analyze it, and generate its automation plan."""
    if isinstance(data, BaseModel):
        fields = data.model_dump(mode="json", exclude_none=True)
    else:
        fields = to_fields(data)
    incident = await client.entities.incidents.create({**fields, "status": IncidentStatus.analyzing.value})
    user = await client.auth.me()
    await _audit(client, incident.id, "incident_created", user.email, {
        "severity": fields.get("severity"),
        "source": fields.get("source"),
    })

    analysis = await run_analysis(incident.model_dump(), client.llm)
    incident = await client.entities.incidents.update(incident.id, {
        "ai_analysis": analysis.model_dump(mode="json"),
        "status": IncidentStatus.awaiting_approval.value,
    })
    await _audit(client, incident.id, "ai_analysis_generated", SYSTEM_ACTOR, {
        "confidence_score": analysis.confidence_score,
    })

    await client.functions.invoke("automateIncidentResponse", {"incident_id": incident.id})
    logger.info("Reported incident %s (%s)", incident.id, incident.severity)
    return incident


async def record_decision(
    client: Client,
    incident_id: str,
    recommendation_action: str,
    decision: DecisionOutcome | str,
    decision_reason: str | None = None,
) -> Decision:
    """Record a human decision; the incident moves to in_progress once every recommendation has one."""
    incident = await _incident(client, incident_id)
    outcome = DecisionOutcome(decision).value
    user = await client.auth.me()
    record = await client.entities.decisions.create({
        "incident_id": incident_id,
        "recommendation_action": recommendation_action,
        "decision": outcome,
        "decision_reason": decision_reason,
        "decided_by": user.email,
        "decided_at": client.store.now(),
    })
    await _audit(client, incident_id, "decision_made", user.email, {
        "action": recommendation_action,
        "decision": outcome,
        "reason": decision_reason,
    })

    all_decisions = await client.entities.decisions.filter({"incident_id": incident_id})
    total_recs = len(incident.ai_analysis.recommendations) if incident.ai_analysis else 0
    if len(all_decisions) >= total_recs:
        await client.entities.incidents.update(incident_id, {"status": IncidentStatus.in_progress.value})
    return record


async def change_status(client: Client, incident_id: str, status: IncidentStatus | str) -> Incident:
    incident = await _incident(client, incident_id)
    new_status = IncidentStatus(status).value
    updated = await client.entities.incidents.update(incident_id, {"status": new_status})
    user = await client.auth.me()
    await _audit(client, incident_id, "status_changed", user.email, {"previous": incident.status, "new": new_status})
    return updated


async def resolve_incident(client: Client, incident_id: str, resolution_notes: str = "") -> Incident:
    await _incident(client, incident_id)
    updated = await client.entities.incidents.update(incident_id, {
        "status": IncidentStatus.resolved.value,
        "resolved_at": client.store.now(),
        "resolution_notes": resolution_notes,
    })
    user = await client.auth.me()
    await _audit(client, incident_id, "resolution_recorded", user.email, {"notes": resolution_notes})
    return updated


async def _article(client: Client, article_id: str) -> KnowledgeBaseArticle:
    article = await client.entities.knowledge_articles.get(article_id)
    if article is None:
        raise NotFoundError("KnowledgeBaseArticle", article_id)
    return article


async def record_article_view(client: Client, article_id: str) -> KnowledgeBaseArticle:
    article = await _article(client, article_id)
    return await client.entities.knowledge_articles.update(article_id, {"views": article.views + 1})


async def mark_article_helpful(client: Client, article_id: str) -> KnowledgeBaseArticle:
    article = await _article(client, article_id)
    return await client.entities.knowledge_articles.update(article_id, {"helpful_count": article.helpful_count + 1})


async def update_alert_status(
    client: Client,
    alert_id: str,
    status: AlertStatus | str,
    dismissed_reason: str | None = None,
) -> PredictiveAlert:
    alert = await client.entities.predictive_alerts.get(alert_id)
    if alert is None:
        raise NotFoundError("PredictiveAlert", alert_id)
    patch: dict[str, Any] = {"status": AlertStatus(status).value}
    if dismissed_reason is not None:
        patch["dismissed_reason"] = dismissed_reason
    return await client.entities.predictive_alerts.update(alert_id, patch)


async def export_incident(client: Client, incident_id: str, fmt: str) -> tuple[str, str]:
    """
    Export incident as markdown or JSON. Deterministic and reproducible.
    Returns (content, media_type).
    """
    inc = await _incident(client, incident_id)
    logs = await client.entities.audit_logs.filter({"incident_id": incident_id}, sort="created_date")
    decisions = await client.entities.decisions.filter({"incident_id": incident_id}, sort="created_date")
    timeline = [
        {"at": log.created_date, "action": log.action_type, "actor": log.actor, "details": log.details}
        for log in logs
    ]

    if fmt == "json":
        payload = {
            "incident": {
                "id": inc.id,
                "created_date": inc.created_date,
                "title": inc.title,
                "description": inc.description,
                "severity": inc.severity,
                "status": inc.status,
                "source": inc.source,
                "affected_systems": inc.affected_systems,
                "resolved_at": inc.resolved_at,
                "resolution_notes": inc.resolution_notes,
            },
            "analysis": inc.ai_analysis.model_dump(mode="json") if inc.ai_analysis else None,
            "timeline": timeline,
            "decisions": [
                {"action": d.recommendation_action, "decision": d.decision, "by": d.decided_by, "reason": d.decision_reason}
                for d in decisions
            ],
        }
        return json.dumps(payload, indent=2, default=str), "application/json"

    # markdown
    lines = [
        f"# Incident: {inc.title or 'Untitled'}",
        "",
        f"- **ID**: {inc.id}",
        f"- **Created**: {inc.created_date}",
        f"- **Status**: {inc.status or 'new'}",
    ]
    if inc.severity:
        lines.append(f"- **Severity**: {inc.severity}")
    if inc.source:
        lines.append(f"- **Source**: {inc.source}")
    if inc.affected_systems:
        lines.append(f"- **Affected systems**: {', '.join(inc.affected_systems)}")
    if inc.description:
        lines.extend(["", "## Description", "", inc.description])
    if inc.ai_analysis:
        lines.extend(["", "# Analysis", "", analysis_to_markdown(inc.ai_analysis)])
    if decisions:
        lines.extend(["", "## Decisions", ""])
        for d in decisions:
            reason = f" - {d.decision_reason}" if d.decision_reason else ""
            lines.append(f"- **{d.decision}** {d.recommendation_action} ({d.decided_by or 'unknown'}){reason}")
    lines.extend(["", "## Timeline", ""])
    for entry in timeline:
        lines.append(f"- **{entry['at']}** - {entry['action']} by {entry['actor'] or 'unknown'}")
    if inc.resolution_notes:
        lines.extend(["", "## Resolution", "", inc.resolution_notes])
    return "\n".join(lines) + "\n", "text/markdown"

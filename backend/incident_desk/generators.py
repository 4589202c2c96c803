"""Deterministic generators: predictions, automation, reviews and knowledge articles.

Each generator reads the current store content through the entity layer,
computes a templated result and writes it back. Dispatch by name goes
through invoke().
"""
from __future__ import annotations

import logging
import math
import re
from collections import Counter
from datetime import timedelta
from typing import Any, Awaitable, Callable

from incident_desk.automation import build_automation
from incident_desk.config import settings
from incident_desk.entities import Entities
from incident_desk.exceptions import NotFoundError, UnknownOperationError
from incident_desk.heuristics import analyze_incident, clamp01
from incident_desk.models import (
    Analysis,
    ArticleSuggestion,
    Incident,
    KnowledgeBaseArticle,
)
from incident_desk.store import format_timestamp

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "SYSTEM"

# --- predictions ---

PREDICTION_TEMPLATES: list[dict[str, Any]] = [
    {
        "severity": "critical",
        "likelihood": 0.72,
        "predicted_timeframe": "within 48-72 hours",
        "predicted_issue": "PostgreSQL Connection Pool Exhaustion During Peak Hours",
        "description": "Pattern suggests repeat saturation during peak periods; mitigate before next traffic surge.",
        "affected_systems": ["PostgreSQL Primary", "Checkout API", "Payment Service", "Order Service"],
        "confidence_score": 0.72,
    },
    {
        "severity": "high",
        "likelihood": 0.66,
        "predicted_timeframe": "within 12-24 hours",
        "predicted_issue": "API Gateway Latency Regression",
        "description": "Early indicators show p99 rising and error-rate drift in gateway tier; validate retries and capacity.",
        "affected_systems": ["API Gateway", "Lambda Functions", "DynamoDB"],
        "confidence_score": 0.66,
    },
    {
        "severity": "high",
        "likelihood": 0.58,
        "predicted_timeframe": "within 24 hours",
        "predicted_issue": "Authentication Service Memory Leak Continuation",
        "description": "Memory usage trend could hit OOM threshold if not addressed; consider profiling and patch rollout.",
        "affected_systems": ["Auth Service", "Kubernetes Cluster"],
        "confidence_score": 0.58,
    },
]
TEMPLATE_FACTORS = ["Recent incident patterns", "Traffic variability", "Resource pressure"]
TEMPLATE_ACTIONS = ["Validate dashboards", "Review recent changes", "Prepare rollback"]

FALLBACK_SYSTEMS = ["Customer Portal", "Notifications", "Data Pipeline", "Search", "Billing"]
SYSTEM_ALERT_OFFSET_HOURS = 5

# --- post-incident review ---

# Keyed by the stored severity as-is; other spellings read as low impact
CUSTOMER_IMPACT = {"critical": "High", "high": "Moderate"}
DEFAULT_CUSTOMER_IMPACT = "Low"
WHAT_WENT_WELL = ["Rapid triage and clear ownership", "Audit trail captured key actions"]
WHAT_WENT_WRONG = ["Limited early signals / missing data", "Dependency coupling increased blast radius"]
REVIEW_ACTION_ITEMS = [
    {"owner": "SRE", "item": "Add alerting for leading indicators (latency/queue depth)", "due": "2 weeks"},
    {"owner": "App Team", "item": "Document rollback steps and add runbook", "due": "1 week"},
]

# --- article suggestions ---

TOKEN_SPLIT = re.compile(r"\W+", re.ASCII)
MAX_TOKENS = 25
MIN_TOKEN_LENGTH = 4
SCORE_SCALE = 10
MIN_RELEVANCE = 0.25
STRONG_MATCH = 0.7
PARTIAL_MATCH = 0.4


async def _require_incident(entities: Entities, payload: dict[str, Any]) -> Incident:
    incident_id = payload.get("incident_id")
    incident = await entities.incidents.get(incident_id) if incident_id else None
    if incident is None:
        raise NotFoundError("Incident", str(incident_id))
    return incident


def _analysis_for(incident: Incident) -> Analysis:
    """Stored analysis if any, otherwise a freshly computed one."""
    return incident.ai_analysis or analyze_incident(incident.model_dump())


def most_common_system(incidents: list[Incident]) -> str | None:
    """Most frequent affected system; ties go to the first one seen."""
    counts = Counter(s for inc in incidents for s in inc.affected_systems if s)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


async def generate_predictions(entities: Entities, payload: dict[str, Any]) -> dict[str, Any]:
    incidents = await entities.incidents.list(limit=settings.prediction_incident_window)
    now = entities.store.current_time()

    created = []
    for i, template in enumerate(PREDICTION_TEMPLATES):
        stamp = format_timestamp(now - timedelta(hours=i))
        created.append(await entities.predictive_alerts.create({
            **template,
            "contributing_factors": list(TEMPLATE_FACTORS),
            "preventative_actions": list(TEMPLATE_ACTIONS),
            "status": "active",
            "created_date": stamp,
            "updated_date": stamp,
        }))

    system = most_common_system(incidents) or FALLBACK_SYSTEMS[0]
    stamp = format_timestamp(now - timedelta(hours=SYSTEM_ALERT_OFFSET_HOURS))
    created.append(await entities.predictive_alerts.create({
        "severity": "high",
        "likelihood": 0.6,
        "predicted_timeframe": "within 3-5 days",
        "predicted_issue": f"Elevated risk detected: {system}",
        "description": "Recurring signals suggest elevated risk; monitor closely and validate mitigations.",
        "affected_systems": [system],
        "confidence_score": 0.6,
        "contributing_factors": ["Recurring alerts", "Recent change activity"],
        "preventative_actions": ["Increase monitoring", "Validate thresholds", "Plan rollback"],
        "status": "active",
        "created_date": stamp,
        "updated_date": stamp,
    }))
    logger.info("Generated %d predictive alerts (system focus: %s)", len(created), system)
    return {"created": created}


async def automate_incident_response(entities: Entities, payload: dict[str, Any]) -> dict[str, Any]:
    incident = await _require_incident(entities, payload)
    plan = build_automation(incident.model_dump(), _analysis_for(incident))

    # One automation record per incident
    existing = await entities.incident_automations.filter({"incident_id": incident.id}, limit=1)
    if existing:
        record = await entities.incident_automations.update(existing[0].id, plan.model_dump(mode="json"))
    else:
        record = await entities.incident_automations.create({"incident_id": incident.id, **plan.model_dump(mode="json")})

    await entities.audit_logs.create({
        "incident_id": incident.id,
        "action_type": "automation_generated",
        "actor": SYSTEM_ACTOR,
        "details": {"assigned_team": record.assigned_team, "confidence": record.automation_confidence},
    })
    logger.info("Automation for incident %s assigned to %s", incident.id, record.assigned_team)
    return {"automation": record}


async def generate_post_incident_review(entities: Entities, payload: dict[str, Any]) -> dict[str, Any]:
    incident = await _require_incident(entities, payload)
    logs = await entities.audit_logs.filter({"incident_id": incident.id}, sort="created_date")
    decisions = await entities.decisions.filter({"incident_id": incident.id})

    if incident.ai_analysis and incident.ai_analysis.summary:
        summary = incident.ai_analysis.summary
    else:
        summary = analyze_incident(incident.model_dump()).summary

    review = {
        "incident_id": incident.id,
        "executive_summary": summary,
        "customer_impact": CUSTOMER_IMPACT.get(incident.severity, DEFAULT_CUSTOMER_IMPACT),
        "timeline": [{"at": log.created_date, "action": log.action_type, "details": log.details} for log in logs],
        "decisions": [
            {"action": d.recommendation_action, "decision": d.decision, "reason": d.decision_reason}
            for d in decisions
        ],
        "what_went_well": list(WHAT_WENT_WELL),
        "what_went_wrong": list(WHAT_WENT_WRONG),
        "action_items": [dict(item) for item in REVIEW_ACTION_ITEMS],
    }

    existing = await entities.post_incident_reviews.filter({"incident_id": incident.id}, limit=1)
    if existing:
        record = await entities.post_incident_reviews.update(existing[0].id, review)
    else:
        record = await entities.post_incident_reviews.create(review)

    await entities.audit_logs.create({
        "incident_id": incident.id,
        "action_type": "post_incident_review_generated",
        "actor": SYSTEM_ACTOR,
        "details": {"review_id": record.id},
    })
    return {"review": record}


def tokenize(text: str) -> list[str]:
    """Lowercased word tokens, first MAX_TOKENS only."""
    return [t for t in TOKEN_SPLIT.split(text.lower()) if t][:MAX_TOKENS]


def relevance_reason(relevance: float) -> str:
    if relevance > STRONG_MATCH:
        return "Strong tag/title overlap"
    if relevance > PARTIAL_MATCH:
        return "Partial keyword match"
    return "Weak match"


def score_article(tokens: list[str], article: KnowledgeBaseArticle) -> float:
    haystack = f"{article.title or ''} {article.summary} {' '.join(article.tags)}".lower()
    score = sum(1 for t in tokens if len(t) >= MIN_TOKEN_LENGTH and t in haystack)
    return clamp01(score / SCORE_SCALE)


async def suggest_knowledge_articles(entities: Entities, payload: dict[str, Any]) -> dict[str, Any]:
    incident_id = payload.get("incident_id")
    incident = await entities.incidents.get(incident_id) if incident_id else None
    articles = await entities.knowledge_articles.list(limit=settings.article_scan_limit)
    if incident is None:
        return {"suggestions": []}

    tokens = tokenize(
        f"{incident.title or ''} {incident.description or ''} {' '.join(incident.affected_systems)}"
    )
    scored: list[ArticleSuggestion] = []
    for article in articles:
        relevance = score_article(tokens, article)
        if relevance >= MIN_RELEVANCE:
            scored.append(ArticleSuggestion(article=article, relevance_score=relevance, reason=relevance_reason(relevance)))
    scored.sort(key=lambda s: s.relevance_score, reverse=True)
    return {"suggestions": scored[:settings.suggestion_limit]}


def _percent(probability: float) -> int:
    # half-up rounding
    return int(math.floor(probability * 100 + 0.5))


def render_article_markdown(analysis: Analysis) -> str:
    causes = "\n".join(f"- **{r.cause}** (p={_percent(r.probability)}%)" for r in analysis.root_causes)
    actions = "\n".join(f"- **{r.priority.upper()}**: {r.action}" for r in analysis.recommendations)
    return (
        f"## Summary\n{analysis.summary}\n\n"
        f"## Likely root causes\n{causes}\n\n"
        f"## Recommended actions\n{actions}\n\n"
        "## Verification\n- Monitor error rate and latency\n- Confirm recovery in customer workflows\n"
    )


async def generate_article_from_incident(entities: Entities, payload: dict[str, Any]) -> dict[str, Any]:
    incident = await _require_incident(entities, payload)
    analysis = _analysis_for(incident)
    tags = [t for t in [incident.severity, *incident.affected_systems[:3]] if t]
    article = await entities.knowledge_articles.create({
        "title": f"Runbook: {incident.title or 'Incident'}",
        "summary": analysis.summary,
        "content": render_article_markdown(analysis),
        "tags": tags,
        "category": "runbook",
        "status": "draft",
    })
    logger.info("Drafted article %s from incident %s", article.id, incident.id)
    return {"article": article}


Generator = Callable[[Entities, dict[str, Any]], Awaitable[dict[str, Any]]]

GENERATORS: dict[str, Generator] = {
    "generatePredictions": generate_predictions,
    "automateIncidentResponse": automate_incident_response,
    "generatePostIncidentReview": generate_post_incident_review,
    "suggestKnowledgeArticles": suggest_knowledge_articles,
    "generateArticleFromIncident": generate_article_from_incident,
}


async def invoke(entities: Entities, name: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
    """Run the generator registered under name."""
    generator = GENERATORS.get(name)
    if generator is None:
        raise UnknownOperationError(name)
    logger.debug("Invoking generator %s", name)
    return await generator(entities, dict(payload or {}))

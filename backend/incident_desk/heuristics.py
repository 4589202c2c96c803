"""Deterministic heuristic analysis of an incident report.

Stands in for an AI analyzer: keyword signals over the title and
description pick between fixed root-cause and recommendation templates,
and a severity table sets the base confidence. Identical input always
produces identical output.
"""
from __future__ import annotations

from typing import Any, Mapping

from incident_desk.models import Analysis, Recommendation, RootCause

AUTH_KEYWORDS = ("auth", "login", "token", "sso")
DB_KEYWORDS = ("db", "database", "postgres", "mysql", "query", "timeout")
API_KEYWORDS = ("api", "5xx", "gateway", "latency", "timeout")

BASE_CONFIDENCE: dict[str, float] = {
    "critical": 0.78,
    "high": 0.72,
    "medium": 0.66,
    "low": 0.60,
}
DEFAULT_BASE_CONFIDENCE = 0.66
DEFAULT_SEVERITY = "medium"

# Descriptions at or below this length count as thin context
DATA_QUALITY_MIN_CHARS = 40
DATA_QUALITY_PENALTY = 0.08

DB_CAUSE_DELTA = 0.15
AUTH_CAUSE_DELTA = 0.20
API_CAUSE_DELTA = 0.15

RECOVERY_TIME: dict[str, str] = {
    "critical": "30–90 minutes",
    "high": "1–3 hours",
}
DEFAULT_RECOVERY_TIME = "Same day"

LIMITATIONS = [
    "Local analysis is heuristic and may not reflect production telemetry.",
    "Assumes common incident patterns; verify against metrics and logs.",
]


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def keyword_score(text: str, keywords: tuple[str, ...]) -> int:
    """Number of keywords that occur (as substrings) in text, case-insensitive."""
    t = (text or "").lower()
    return sum(1 for k in keywords if k in t)


def normalize_severity(severity: Any) -> str:
    if not isinstance(severity, str) or not severity.strip():
        return DEFAULT_SEVERITY
    return severity.strip().lower()


def extract_signals(incident: Mapping[str, Any]) -> dict[str, bool]:
    """Boolean keyword signals over title + description (or logs)."""
    text = f"{incident.get('title') or 'Incident'} {_description(incident)}"
    return {
        "is_auth": keyword_score(text, AUTH_KEYWORDS) > 0,
        "is_db": keyword_score(text, DB_KEYWORDS) > 0,
        "is_api": keyword_score(text, API_KEYWORDS) > 0,
    }


def data_quality_penalty(description: str) -> float:
    return 0.0 if len(description) > DATA_QUALITY_MIN_CHARS else DATA_QUALITY_PENALTY


def _description(incident: Mapping[str, Any]) -> str:
    return incident.get("description") or incident.get("logs") or ""


def _root_causes(signals: dict[str, bool], systems: list[str]) -> list[RootCause]:
    return [
        RootCause(
            cause=(
                "Database resource saturation (connections / slow queries)"
                if signals["is_db"]
                else "Upstream dependency degradation (timeouts / elevated error rates)"
            ),
            probability=clamp01(0.45 + (DB_CAUSE_DELTA if signals["is_db"] else 0.0)),
            evidence=[
                "Symptoms consistent with latency spikes and partial availability",
                f"Impacted systems: {', '.join(systems[:3])}" if systems else "Systems not specified",
            ],
        ),
        RootCause(
            cause=(
                "Identity / token validation issue (SSO, cert, or token expiry)"
                if signals["is_auth"]
                else "Recent deployment or configuration change introduced regression"
            ),
            probability=clamp01(0.30 + (AUTH_CAUSE_DELTA if signals["is_auth"] else 0.0)),
            evidence=[
                "Common failure mode for sudden onset incidents",
                "Validate with change logs and auth/error traces",
            ],
        ),
        RootCause(
            cause=(
                "API gateway/routing misconfiguration or rate limiting"
                if signals["is_api"]
                else "Infrastructure/network instability"
            ),
            probability=clamp01(0.25 + (API_CAUSE_DELTA if signals["is_api"] else 0.0)),
            evidence=[
                "Could present as widespread 5xx/4xx bursts",
                "Validate with edge metrics, load balancer health, and dependency graph",
            ],
        ),
    ]


def _recommendations(severity: str, penalty: float) -> list[Recommendation]:
    return [
        Recommendation(
            action="Check dashboards for error rates, latency, and saturation (CPU/memory/DB connections).",
            priority="critical" if severity in ("critical", "high") else "high",
            confidence=clamp01(0.85 - penalty),
            rationale="Quickly confirms whether the incident is systemic or isolated and identifies bottlenecks.",
            risks="Low risk; read-only investigation.",
            verification_steps=[
                "Confirm error rate and p95/p99 latency against baseline",
                "Identify the top failing endpoint/service",
            ],
        ),
        Recommendation(
            action="Validate recent changes (deployments/config) and consider rollback if correlated.",
            priority="critical" if severity == "critical" else "high",
            confidence=clamp01(0.72 - penalty),
            rationale="Change correlation is frequently the fastest path to recovery.",
            risks="Rollback may revert unrelated fixes; coordinate with release owner.",
            verification_steps=[
                "Compare start time vs deployment timeline",
                "If rollback, monitor key KPIs for recovery within 5–10 minutes",
            ],
        ),
        Recommendation(
            action="Run targeted diagnostics: dependency health checks, DB query sampling, and auth/token validation.",
            priority="medium" if severity == "low" else "high",
            confidence=clamp01(0.70 - penalty),
            rationale="Narrows root cause and supports durable fix.",
            risks="Some diagnostics may increase load if run broadly.",
            verification_steps=[
                "Run on a single canary instance first",
                "Confirm no additional load/regression",
            ],
        ),
    ]


def analyze_incident(incident: Mapping[str, Any]) -> Analysis:
    """Produce the templated analysis for an incident-shaped mapping.

    Reads title, description (or logs), severity and affected_systems.
    Missing values fall back to defaults rather than raising.
    """
    title = incident.get("title") or "Incident"
    description = _description(incident)
    severity = normalize_severity(incident.get("severity"))
    systems = [s for s in (incident.get("affected_systems") or []) if isinstance(s, str)]

    signals = extract_signals(incident)
    penalty = data_quality_penalty(description)
    base = BASE_CONFIDENCE.get(severity, DEFAULT_BASE_CONFIDENCE)

    if penalty:
        notes = (
            "Limited context provided. Add exact error messages, graphs (latency/error rate), "
            "and recent change details for a higher-confidence assessment."
        )
    else:
        notes = (
            "Sufficient context provided for a first-pass assessment. Add exact timestamps, "
            "impacted endpoints, and key logs for higher confidence."
        )

    return Analysis(
        summary=(
            f"{title}: Preliminary assessment indicates {severity.upper()} impact with likely dependency "
            "or capacity-related degradation. Prioritize stabilization and change correlation, then "
            "validate the most probable root cause with targeted diagnostics."
        ),
        root_causes=_root_causes(signals, systems),
        recommendations=_recommendations(severity, penalty),
        estimated_recovery_time=RECOVERY_TIME.get(severity, DEFAULT_RECOVERY_TIME),
        confidence_score=clamp01(base - penalty),
        data_quality_notes=notes,
        limitations=list(LIMITATIONS),
    )

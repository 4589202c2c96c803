"""Simulated remediation and communication plan for an analyzed incident."""
from __future__ import annotations

from typing import Any, Mapping

from incident_desk.heuristics import clamp01, normalize_severity
from incident_desk.models import Analysis, AutomationPlan, DiagnosticScript, StakeholderCommunication

NETWORK_TEAM = "Network Operations"
DATABASE_TEAM = "Database Reliability"
IDENTITY_TEAM = "Identity & Access"
DEFAULT_TEAM = "Site Reliability Engineering"

CONFIDENCE_BOOST = 0.10
FALLBACK_ANALYSIS_CONFIDENCE = 0.7

DIAGNOSTIC_SCRIPTS = [
    DiagnosticScript(
        script_name="Service health snapshot",
        description="Collect a quick snapshot of key KPIs and dependency health.",
        status="completed",
        command="curl -s https://status.your-service.local/health | jq .",
        output='{\n  "status": "degraded",\n  "dependencies": [{"name":"db","status":"warn"}]\n}',
    ),
    DiagnosticScript(
        script_name="Error-rate sampling",
        description="Sample recent errors to identify dominant failure mode.",
        status="completed",
        command='tail -n 200 /var/log/app/error.log | grep -E "5..|timeout|auth" | head',
        output="timeout contacting upstream dependency\nrequest_id=...\n",
    ),
]


def assign_team(source: str | None, systems: list[str]) -> str:
    """First matching rule wins: network source, db system, auth/iam system, default."""
    if "network" in (source or "").lower():
        return NETWORK_TEAM
    lowered = [s.lower() for s in systems]
    if any("db" in s for s in lowered):
        return DATABASE_TEAM
    if any("auth" in s or "iam" in s for s in lowered):
        return IDENTITY_TEAM
    return DEFAULT_TEAM


def _communication(severity: str, team: str) -> StakeholderCommunication:
    if severity == "critical":
        executive = (
            "We are currently mitigating a high-impact service incident. Teams are engaged, and initial "
            "triage suggests a dependency/capacity issue. Next update in 30 minutes."
        )
    else:
        executive = (
            "We are investigating a service degradation with limited scope. Initial triage is underway "
            "and we will provide updates as more information becomes available."
        )
    return StakeholderCommunication(
        executive_summary=executive,
        technical_details=(
            "Observed elevated error rates and latency for a subset of requests. Next steps: validate change "
            "correlation, inspect dependency health, and apply mitigation/rollback as needed."
        ),
        customer_facing=(
            "Some users may experience intermittent issues. Our team is actively working to restore full "
            "service and will provide updates as we confirm stability."
        ),
        internal_update=(
            f"Triage in progress. Assigned team: {team}. Focus areas: metrics review, dependency checks, "
            "and mitigation actions."
        ),
    )


def build_automation(incident: Mapping[str, Any], analysis: Analysis | None) -> AutomationPlan:
    severity = normalize_severity(incident.get("severity"))
    systems = [s for s in (incident.get("affected_systems") or []) if isinstance(s, str)]
    team = assign_team(incident.get("source"), systems)

    base = FALLBACK_ANALYSIS_CONFIDENCE
    if analysis is not None and analysis.confidence_score is not None:
        base = analysis.confidence_score

    if systems:
        rationale = f"Assignment based on affected systems: {', '.join(systems[:3])}."
    else:
        rationale = "Assignment based on incident signals and standard ownership patterns."

    return AutomationPlan(
        assigned_team=team,
        assignment_rationale=rationale,
        automation_confidence=clamp01(base + CONFIDENCE_BOOST),
        diagnostic_scripts=[s.model_copy() for s in DIAGNOSTIC_SCRIPTS],
        stakeholder_communication=_communication(severity, team),
    )

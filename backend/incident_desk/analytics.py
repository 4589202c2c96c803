"""Read-only reporting over the store: incident analytics, governance and system health.

Every figure is computed from the latest records on each call; nothing is
persisted. "Now" is the store clock so reports line up with stored
timestamps.
"""
from __future__ import annotations

import json
import logging
import math
from collections import Counter
from datetime import datetime, timedelta
from typing import Any

from incident_desk.client import Client
from incident_desk.models import (
    AlertStatus,
    AnalyticsFilters,
    AnalyticsReport,
    Anomaly,
    CountEntry,
    Decision,
    DecisionOutcome,
    GovernanceMetrics,
    Incident,
    RangeCount,
    SystemHealthReport,
    SystemStatus,
    WeeklyTrend,
)
from incident_desk.store import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

RESOLVED_STATUSES = ("resolved", "closed")
SEVERITY_ORDER = ("critical", "high", "medium", "low")
STATUS_ORDER = ("new", "analyzing", "awaiting_approval", "in_progress", "resolved", "closed")
ALL = "all"
DATE_RANGES = {"7d": 7, "30d": 30, "90d": 90}

# (label, min, max) inclusive; values between buckets are not counted
CONFIDENCE_BUCKETS = (
    ("90-100%", 0.9, 1.0),
    ("70-89%", 0.7, 0.89),
    ("50-69%", 0.5, 0.69),
    ("0-49%", 0.0, 0.49),
)
# (label, min minutes inclusive, max minutes exclusive); None is unbounded
RESOLUTION_BUCKETS = (
    ("< 1hr", None, 60),
    ("1-4hrs", 60, 240),
    ("4-24hrs", 240, 1440),
    ("> 24hrs", 1440, None),
)
TOP_SOURCES = 6
TREND_WEEKS = 4
SPIKE_WINDOW = timedelta(hours=24)
SPIKE_THRESHOLD = 3
CRITICAL_CLUSTER_THRESHOLD = 2

ANALYTICS_INCIDENT_LIMIT = 200
GOVERNANCE_LIMIT = 100
HEALTH_INCIDENT_LIMIT = 100


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def is_resolved(incident: Incident) -> bool:
    return incident.status in RESOLVED_STATUSES


def _created(incident: Incident) -> datetime | None:
    return parse_timestamp(incident.created_date)


def _is_after(incident: Incident, since: datetime) -> bool:
    created = _created(incident)
    return created is not None and created > since


def _confidence(incident: Incident) -> float | None:
    if incident.ai_analysis is None:
        return None
    return incident.ai_analysis.confidence_score


def format_duration(minutes: float) -> str:
    """45 -> '45m', 125 -> '2h 5m', 180 -> '3h'."""
    if minutes < 60:
        return f"{round_half_up(minutes)}m"
    hours = int(minutes // 60)
    mins = round_half_up(minutes % 60)
    return f"{hours}h {mins}m" if mins > 0 else f"{hours}h"


def _counts(incidents: list[Incident], field: str, order: tuple[str, ...]) -> list[CountEntry]:
    counter = Counter(getattr(i, field) for i in incidents)
    return [CountEntry(name=name, value=counter[name]) for name in order if counter[name] > 0]


def filter_incidents(incidents: list[Incident], filters: AnalyticsFilters, now: datetime) -> list[Incident]:
    if filters.date_range != ALL and filters.date_range not in DATE_RANGES:
        raise ValueError(f"Unknown date range: {filters.date_range}")
    since = None
    if filters.date_range in DATE_RANGES:
        since = now - timedelta(days=DATE_RANGES[filters.date_range])

    def keep(incident: Incident) -> bool:
        if filters.status != ALL and incident.status != filters.status:
            return False
        if filters.severity != ALL and incident.severity != filters.severity:
            return False
        if filters.system != ALL and filters.system not in incident.affected_systems:
            return False
        if since is not None:
            created = _created(incident)
            return created is not None and created >= since
        return True

    return [i for i in incidents if keep(i)]


def confidence_distribution(incidents: list[Incident]) -> list[RangeCount]:
    counts = {label: 0 for label, _, _ in CONFIDENCE_BUCKETS}
    for incident in incidents:
        conf = _confidence(incident)
        if conf is None:
            continue
        for label, low, high in CONFIDENCE_BUCKETS:
            if low <= conf <= high:
                counts[label] += 1
                break
    return [RangeCount(range=label, count=count) for label, count in counts.items()]


def resolution_minutes(incidents: list[Incident]) -> list[int]:
    """Whole minutes from creation to resolution for resolved incidents."""
    minutes = []
    for incident in incidents:
        if not is_resolved(incident):
            continue
        created = _created(incident)
        resolved = parse_timestamp(incident.resolved_at)
        if created is None or resolved is None:
            continue
        minutes.append(int((resolved - created).total_seconds() / 60))
    return minutes


def resolution_distribution(minutes: list[int]) -> list[RangeCount]:
    out = []
    for label, low, high in RESOLUTION_BUCKETS:
        count = sum(1 for m in minutes if (low is None or m >= low) and (high is None or m < high))
        out.append(RangeCount(range=label, count=count))
    return out


def weekly_trend(incidents: list[Incident], now: datetime) -> list[WeeklyTrend]:
    weeks = []
    for i in range(TREND_WEEKS - 1, -1, -1):
        start = now - timedelta(days=i * 7 + 7)
        end = now - timedelta(days=i * 7)
        in_week = []
        for incident in incidents:
            created = _created(incident)
            if created is not None and start <= created < end:
                in_week.append(incident)
        weeks.append(WeeklyTrend(
            week=f"Week {TREND_WEEKS - i}",
            total=len(in_week),
            critical=sum(1 for x in in_week if x.severity == "critical"),
            resolved=sum(1 for x in in_week if is_resolved(x)),
        ))
    return weeks


def build_analytics(all_incidents: list[Incident], filters: AnalyticsFilters, now: datetime) -> AnalyticsReport:
    systems = sorted({s for i in all_incidents for s in i.affected_systems})
    incidents = filter_incidents(all_incidents, filters, now)

    confidences = [c for c in (_confidence(i) for i in incidents) if c]
    avg_confidence = sum(confidences) / len(confidences) * 100 if confidences else 0.0
    resolved = [i for i in incidents if is_resolved(i)]
    minutes = resolution_minutes(incidents)
    avg_minutes = sum(minutes) / len(minutes) if minutes else 0.0

    sources = Counter(i.source for i in incidents if i.source)
    top_sources = sorted(sources.items(), key=lambda kv: kv[1], reverse=True)[:TOP_SOURCES]

    return AnalyticsReport(
        generated_at=format_timestamp(now),
        filters=filters,
        systems=systems,
        total_incidents=len(incidents),
        resolved_incidents=len(resolved),
        resolution_rate=len(resolved) / len(incidents) * 100 if incidents else 0.0,
        avg_ai_confidence=avg_confidence,
        avg_resolution_time_minutes=avg_minutes,
        avg_resolution_time=format_duration(avg_minutes),
        severity_distribution=_counts(incidents, "severity", SEVERITY_ORDER),
        status_distribution=_counts(incidents, "status", STATUS_ORDER),
        source_distribution=[CountEntry(name=name, value=value) for name, value in top_sources],
        confidence_distribution=confidence_distribution(incidents),
        resolution_time_distribution=resolution_distribution(minutes),
        weekly_trend=weekly_trend(incidents, now),
        incidents=incidents,
    )


def report_to_export(report: AnalyticsReport) -> dict[str, Any]:
    """Downloadable summary: headline metrics, distributions and the matching incidents."""
    return {
        "generated_at": report.generated_at,
        "filters": report.filters.model_dump(),
        "metrics": {
            "total_incidents": report.total_incidents,
            "resolution_rate": round(report.resolution_rate, 2),
            "avg_ai_confidence": round(report.avg_ai_confidence, 2),
            "avg_resolution_time_minutes": round(report.avg_resolution_time_minutes, 2),
        },
        "severity_distribution": [e.model_dump() for e in report.severity_distribution],
        "status_distribution": [e.model_dump() for e in report.status_distribution],
        "incidents": [
            {
                "id": i.id,
                "title": i.title,
                "severity": i.severity,
                "status": i.status,
                "created_date": i.created_date,
                "resolved_at": i.resolved_at,
                "affected_systems": i.affected_systems,
            }
            for i in report.incidents
        ],
    }


def build_governance(decisions: list[Decision], incidents: list[Incident]) -> GovernanceMetrics:
    outcomes = Counter(d.decision for d in decisions)
    approved = outcomes[DecisionOutcome.approved.value]
    total = len(decisions)
    confidences = [c for c in (_confidence(i) for i in incidents) if c]
    return GovernanceMetrics(
        total_decisions=total,
        approved=approved,
        rejected=outcomes[DecisionOutcome.rejected.value],
        modified=outcomes[DecisionOutcome.modified.value],
        approval_rate=round_half_up(approved / total * 100) if total else 0,
        avg_confidence=round_half_up(sum(confidences) / len(confidences) * 100) if confidences else 0,
        recent_decisions=decisions,
    )


def build_system_health(incidents: list[Incident], active_predictions: int, now: datetime) -> SystemHealthReport:
    """Per-system load and anomalies over incidents given newest first."""
    by_system: dict[str, list[Incident]] = {}
    for incident in incidents:
        for system in incident.affected_systems:
            by_system.setdefault(system, []).append(incident)

    systems: list[SystemStatus] = []
    anomalies: list[Anomaly] = []
    since = now - SPIKE_WINDOW
    for name, members in by_system.items():
        active = [i for i in members if not is_resolved(i)]
        critical = [i for i in active if i.severity == "critical"]
        latest = members[0]
        for candidate in members[1:]:
            newer, current = _created(candidate), _created(latest)
            if newer is not None and (current is None or newer > current):
                latest = candidate
        systems.append(SystemStatus(
            name=name,
            incident_count=len(members),
            active_incidents=len(active),
            critical_count=len(critical),
            last_incident_id=latest.id,
            last_incident_date=latest.created_date,
        ))

        recent = [i for i in members if _is_after(i, since)]
        if len(recent) >= SPIKE_THRESHOLD:
            anomalies.append(Anomaly(
                system=name,
                type="spike",
                severity="high",
                message=f"{len(recent)} incidents in last 24h",
                incident_ids=[i.id for i in recent],
            ))
        if len(critical) >= CRITICAL_CLUSTER_THRESHOLD:
            anomalies.append(Anomaly(
                system=name,
                type="critical_cluster",
                severity="critical",
                message=f"{len(critical)} critical incidents active",
                incident_ids=[i.id for i in critical],
            ))

    healthy = sum(1 for s in systems if s.active_incidents == 0)
    return SystemHealthReport(
        overall_health=round_half_up(healthy / len(systems) * 100) if systems else 100,
        active_incidents=sum(1 for i in incidents if not is_resolved(i)),
        healthy_systems=healthy,
        systems_at_risk=len(systems) - healthy,
        active_predictions=active_predictions,
        systems=systems,
        anomalies=anomalies,
    )


async def incident_analytics(client: Client, filters: AnalyticsFilters | None = None) -> AnalyticsReport:
    filters = filters or AnalyticsFilters()
    incidents = await client.entities.incidents.list("-created_date", ANALYTICS_INCIDENT_LIMIT)
    report = build_analytics(incidents, filters, client.store.current_time())
    logger.info("Analytics report built", extra={
        "total_incidents": report.total_incidents,
        "date_range": filters.date_range,
    })
    return report


async def export_analytics(client: Client, filters: AnalyticsFilters | None = None) -> tuple[str, str]:
    """Return (json content, filename) for the analytics download."""
    report = await incident_analytics(client, filters)
    stamp = parse_timestamp(report.generated_at)
    filename = f"incident-report-{stamp:%Y-%m-%d-%H%M}.json"
    return json.dumps(report_to_export(report), indent=2), filename


async def governance_metrics(client: Client) -> GovernanceMetrics:
    decisions = await client.entities.decisions.list("-created_date", GOVERNANCE_LIMIT)
    incidents = await client.entities.incidents.list("-created_date", GOVERNANCE_LIMIT)
    return build_governance(decisions, incidents)


async def system_health(client: Client) -> SystemHealthReport:
    incidents = await client.entities.incidents.list("-created_date", HEALTH_INCIDENT_LIMIT)
    alerts = await client.entities.predictive_alerts.filter(where={"status": AlertStatus.active.value})
    report = build_system_health(incidents, len(alerts), client.store.current_time())
    logger.info("System health computed", extra={
        "systems": len(report.systems),
        "anomalies": len(report.anomalies),
    })
    return report

"""Demo data loaded into an empty store so the dashboard has something to show."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from incident_desk.store import RecordStore, format_timestamp

logger = logging.getLogger(__name__)

SEEDED_KEY = "seeded"


def _ago(now: datetime, hours: float) -> str:
    return format_timestamp(now - timedelta(hours=hours))


def _stamped(now: datetime, hours: float, record: dict[str, Any]) -> dict[str, Any]:
    created = _ago(now, hours)
    return {"created_date": created, "updated_date": created, **record}


def demo_tables(now: datetime) -> dict[str, list[dict[str, Any]]]:
    """Seed tables with timestamps relative to now."""
    incidents = [
        _stamped(now, 26, {
            "id": "inc_001",
            "title": "Database Connection Pool Exhaustion - Production",
            "description": (
                "Multiple microservices reporting connection timeouts to PostgreSQL cluster. Error rate "
                "spiking to 23% on checkout API. Customer-facing impact detected."
            ),
            "severity": "critical",
            "status": "awaiting_approval",
            "source": "Datadog",
            "affected_systems": ["PostgreSQL Primary", "Checkout API", "Payment Service", "Order Service"],
            "assigned_to": "SRE On-Call",
            "ai_analysis": {
                "confidence_score": 0.76,
                "summary": (
                    "Critical impact detected. Symptoms strongly indicate database connection pool saturation "
                    "causing upstream request failures across checkout/payment workloads."
                ),
            },
        }),
        _stamped(now, 24, {
            "id": "inc_002",
            "title": "AWS us-east-1 API Gateway Latency Degradation",
            "description": (
                "P99 latency increased from 120ms to 2.3s on primary API gateway. Regional failover "
                "consideration required."
            ),
            "severity": "high",
            "status": "new",
            "source": "CloudWatch",
            "affected_systems": ["API Gateway", "Lambda Functions", "DynamoDB"],
            "assigned_to": "Cloud Platform",
            "ai_analysis": {
                "confidence_score": 0.71,
                "summary": (
                    "Elevated gateway latency suggests upstream dependency or regional capacity degradation. "
                    "Prioritize mitigation and confirm whether retries are amplifying load."
                ),
            },
        }),
        _stamped(now, 22, {
            "id": "inc_003",
            "title": "Memory Leak in Authentication Service",
            "description": "Gradual memory increase over 72 hours leading to OOM kills. Pod restarts every 4-6 hours.",
            "severity": "medium",
            "status": "in_progress",
            "source": "Prometheus",
            "affected_systems": ["Auth Service", "Kubernetes Cluster"],
            "assigned_to": "Identity & Access",
            "ai_analysis": {
                "confidence_score": 0.75,
                "summary": (
                    "Consistent memory growth pattern points to a leak. Mitigate with resource limits and "
                    "restart strategy while investigating recent code paths and allocations."
                ),
            },
        }),
        _stamped(now, 48, {
            "id": "inc_004",
            "title": "SSL Certificate Expiration Warning - Edge",
            "description": (
                "TLS certificate approaching expiration on edge endpoints. No customer impact yet; renew "
                "before expiry to avoid outages."
            ),
            "severity": "low",
            "status": "resolved",
            "source": "Security Scanner",
            "affected_systems": ["Load Balancer", "CDN"],
            "resolved_at": _ago(now, 40),
            "resolution_notes": "Renewed certificate and validated chain across edge points-of-presence.",
            "assigned_to": "Security Ops",
            "ai_analysis": {
                "confidence_score": 0.74,
                "summary": (
                    "Preventative action taken. Certificate renewal completed; monitoring confirms stable "
                    "edge handshake success rates."
                ),
            },
        }),
    ]

    articles = [
        _stamped(now, 120, {
            "id": "kb_001",
            "title": "Runbook: Troubleshoot SSO callback failures",
            "summary": "Steps to diagnose auth callback 5xx, token validation errors, and certificate/clock skew issues.",
            "content": (
                "## Checklist\n- Verify IdP status\n- Check token validation logs\n- Confirm certificate chain "
                "and time sync\n\n## Rollback\n- Revert recent auth config\n"
            ),
            "tags": ["auth", "sso", "identity"],
            "category": "runbook",
            "status": "published",
        }),
        _stamped(now, 200, {
            "id": "kb_002",
            "title": "Runbook: Payments API latency and DB saturation",
            "summary": "DB connection pool, slow queries, and cache strategies for checkout stability.",
            "content": (
                "## Signals\n- Connection pool saturation\n- Query timeouts\n\n## Mitigations\n"
                "- Increase pool cautiously\n- Enable read replica\n"
            ),
            "tags": ["payments", "database", "latency"],
            "category": "runbook",
            "status": "published",
        }),
    ]

    audit_logs = [
        _stamped(now, hours, {
            "id": log_id,
            "incident_id": incident_id,
            "action_type": "incident_created",
            "actor": "demo.user@example.com",
            "details": {"severity": severity, "source": source},
        })
        for log_id, hours, incident_id, severity, source in (
            ("log_001", 26, "inc_001", "critical", "Datadog"),
            ("log_002", 24, "inc_002", "high", "CloudWatch"),
            ("log_003", 22, "inc_003", "medium", "Prometheus"),
        )
    ]

    decisions = [
        _stamped(now, 18, {
            "id": "dec_001",
            "incident_id": "inc_001",
            "recommendation_action": "Implement LRU eviction policy for cache layer",
            "decision": "approved",
            "decided_by": "sre@company.com",
            "decided_at": _ago(now, 18),
            "decision_reason": "Agreed with AI analysis. Cache growth contributes to pressure during peak traffic.",
        }),
        _stamped(now, 12, {
            "id": "dec_002",
            "incident_id": "inc_004",
            "recommendation_action": "Manually renew SSL certificate",
            "decision": "approved",
            "decided_by": "devops@company.com",
            "decided_at": _ago(now, 12),
            "decision_reason": "Certificate expiration is a P1 risk. Proceeding with renewal and validation.",
        }),
    ]

    alerts = [
        _stamped(now, 3, {
            "id": "pa_001",
            "severity": "critical",
            "likelihood": 0.82,
            "predicted_timeframe": "within 48-72 hours",
            "predicted_issue": "PostgreSQL Connection Pool Exhaustion During Peak Hours",
            "description": (
                "Historical pattern shows database connection pool saturation occurring every 2-3 weeks during "
                "high-traffic periods. Risk of a critical outage is elevated ahead of the next traffic peak."
            ),
            "affected_systems": ["PostgreSQL Primary", "Checkout API", "Payment Service", "Order Service"],
            "confidence_score": 0.82,
            "contributing_factors": ["Traffic surges", "Connection pool near limit", "Slow queries under load"],
            "preventative_actions": ["Increase pool cautiously", "Enable query sampling", "Prepare rollback/runbook"],
            "status": "active",
        }),
        _stamped(now, 3, {
            "id": "pa_002",
            "severity": "high",
            "likelihood": 0.76,
            "predicted_timeframe": "within 3-5 days",
            "predicted_issue": "Authentication Service Memory Leak Leading to OOM Crash",
            "description": (
                "Auth Service shows consistent memory growth pattern over 72-hour periods. Based on current "
                "trajectory, next OOM crash predicted during business hours affecting user logins."
            ),
            "affected_systems": ["Auth Service", "Kubernetes Cluster", "User Session Management"],
            "confidence_score": 0.76,
            "contributing_factors": ["Increasing heap usage", "Frequent pod restarts", "Peak login hours"],
            "preventative_actions": ["Enable heap profiling", "Tighten resource limits", "Roll forward fix"],
            "status": "active",
        }),
        _stamped(now, 2, {
            "id": "pa_003",
            "severity": "high",
            "likelihood": 0.68,
            "predicted_timeframe": "within 12-24 hours",
            "predicted_issue": "Lambda Cold Start Cascade During Regional AWS Outage",
            "description": (
                "AWS us-east-1 showing elevated error rates. If degradation continues, cold start amplification "
                "could cause 5-10 minute API unavailability affecting all services."
            ),
            "affected_systems": ["API Gateway", "Lambda Functions", "DynamoDB", "CloudFront"],
            "confidence_score": 0.68,
            "contributing_factors": ["Regional error rates", "Concurrency spikes", "Retry storms"],
            "preventative_actions": ["Pre-warm critical functions", "Set reserved concurrency", "Enable multi-region failover"],
            "status": "active",
        }),
        _stamped(now, 1, {
            "id": "pa_004",
            "severity": "high",
            "likelihood": 0.50,
            "predicted_timeframe": "within 7 days",
            "predicted_issue": "Potential Memory Leak in Payment Services",
            "description": (
                "Given prior incident involving memory leaks in Auth Service, similar issues may arise in "
                "Payment Services, especially with high transaction volumes expected."
            ),
            "affected_systems": ["Payment Service", "PostgreSQL Primary", "Checkout API"],
            "confidence_score": 0.68,
            "contributing_factors": ["High volumes", "Gradual memory increase", "Shared libraries"],
            "preventative_actions": ["Track RSS trends", "Add leak detection", "Canary release"],
            "status": "active",
        }),
    ]

    return {
        "Incident": incidents,
        "KnowledgeBaseArticle": articles,
        "AuditLog": audit_logs,
        "Decision": decisions,
        "PredictiveAlert": alerts,
        "PostIncidentReview": [],
        "IncidentAutomation": [],
    }


async def ensure_seeded(store: RecordStore) -> bool:
    """Load demo tables once per store. Returns True if seeding happened."""
    if await store.get_meta(SEEDED_KEY):
        return False
    tables = demo_tables(store.current_time())
    for table, records in tables.items():
        await store.replace_table(table, records)
    await store.set_meta(SEEDED_KEY, True)
    logger.info("Seeded demo data: %s", {t: len(r) for t, r in tables.items()})
    return True

"""Pydantic models for stored entities, generator results and API requests."""
from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    critical = "critical"
    high = "high"
    medium = "medium"
    low = "low"


class IncidentStatus(str, Enum):
    new = "new"
    analyzing = "analyzing"
    awaiting_approval = "awaiting_approval"
    in_progress = "in_progress"
    resolved = "resolved"
    closed = "closed"


class DecisionOutcome(str, Enum):
    approved = "approved"
    rejected = "rejected"
    modified = "modified"


class AlertStatus(str, Enum):
    active = "active"
    prevented = "prevented"
    dismissed = "dismissed"
    occurred = "occurred"


class ArticleStatus(str, Enum):
    draft = "draft"
    published = "published"
    archived = "archived"


class ArticleCategory(str, Enum):
    general = "general"
    troubleshooting = "troubleshooting"
    runbook = "runbook"
    postmortem = "postmortem"
    best_practices = "best_practices"
    architecture = "architecture"


# --- Analysis ---


class RootCause(BaseModel):
    cause: str = ""
    probability: float = 0.0
    evidence: list[str] = Field(default_factory=list)


class Recommendation(BaseModel):
    action: str = ""
    priority: str = "medium"  # critical | high | medium | low
    confidence: float = 0.0
    rationale: str = ""
    risks: str = ""
    verification_steps: list[str] = Field(default_factory=list)


class Analysis(BaseModel):
    # Seeded incidents carry partial analyses (summary + confidence only)
    model_config = ConfigDict(extra="allow")

    summary: str = ""
    root_causes: list[RootCause] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)
    estimated_recovery_time: str | None = None
    confidence_score: float | None = None
    data_quality_notes: str | None = None
    limitations: list[str] = Field(default_factory=list)


# --- Automation ---


class DiagnosticScript(BaseModel):
    script_name: str
    description: str
    status: str = "completed"
    command: str
    output: str = ""


class StakeholderCommunication(BaseModel):
    executive_summary: str
    technical_details: str
    customer_facing: str
    internal_update: str


class AutomationPlan(BaseModel):
    assigned_team: str
    assignment_rationale: str
    automation_confidence: float
    diagnostic_scripts: list[DiagnosticScript] = Field(default_factory=list)
    stakeholder_communication: StakeholderCommunication


# --- Stored records ---


class StoredRecord(BaseModel):
    """Fields every record carries; extra fields round-trip untouched."""

    model_config = ConfigDict(extra="allow")

    id: str
    created_date: str
    updated_date: str


class Incident(StoredRecord):
    title: str | None = ""
    description: str | None = None
    severity: str | None = None  # critical | high | medium | low
    status: str | None = None  # see IncidentStatus
    source: str | None = None
    affected_systems: list[str] = Field(default_factory=list)
    assigned_to: str | None = None
    ai_analysis: Analysis | None = None
    resolved_at: str | None = None
    resolution_notes: str | None = None


class Decision(StoredRecord):
    incident_id: str | None = None
    recommendation_action: str = ""
    decision: str = ""  # approved | rejected | modified
    decided_by: str | None = None
    decided_at: str | None = None
    decision_reason: str | None = None


class AuditLog(StoredRecord):
    incident_id: str | None = None
    action_type: str = ""
    actor: str | None = None
    details: Any = Field(default_factory=dict)  # arbitrary structured payload


class PredictiveAlert(StoredRecord):
    severity: str = "medium"
    likelihood: float = 0.0
    predicted_timeframe: str = ""
    predicted_issue: str = ""
    description: str = ""
    affected_systems: list[str] = Field(default_factory=list)
    confidence_score: float = 0.0
    contributing_factors: list[str] = Field(default_factory=list)
    preventative_actions: list[str] = Field(default_factory=list)
    status: str = "active"  # see AlertStatus
    dismissed_reason: str | None = None


class TimelineEntry(BaseModel):
    at: str | None = None
    action: str = ""
    details: Any = None


class ActionItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    owner: str | None = None
    item: str | None = None
    due: str | None = None


class PostIncidentReview(StoredRecord):
    incident_id: str | None = None
    executive_summary: str = ""
    customer_impact: str = ""
    timeline: list[TimelineEntry] = Field(default_factory=list)
    decisions: list[dict[str, Any]] = Field(default_factory=list)
    what_went_well: list[str] = Field(default_factory=list)
    what_went_wrong: list[str] = Field(default_factory=list)
    action_items: list[ActionItem] = Field(default_factory=list)


class IncidentAutomation(StoredRecord):
    incident_id: str | None = None
    assigned_team: str = ""
    assignment_rationale: str = ""
    automation_confidence: float = 0.0
    diagnostic_scripts: list[DiagnosticScript] = Field(default_factory=list)
    stakeholder_communication: StakeholderCommunication | None = None


class KnowledgeBaseArticle(StoredRecord):
    title: str | None = ""
    summary: str = ""
    content: str = ""  # markdown
    category: str = "general"  # see ArticleCategory
    tags: list[str] = Field(default_factory=list)
    related_systems: list[str] = Field(default_factory=list)
    status: str = "draft"  # see ArticleStatus
    author: str | None = None
    views: int = 0
    helpful_count: int = 0


class ArticleSuggestion(BaseModel):
    article: KnowledgeBaseArticle
    relevance_score: float
    reason: str


class User(BaseModel):
    id: str
    email: str
    full_name: str


# --- API requests / responses ---


class ReportIncidentRequest(BaseModel):
    title: str = Field(..., min_length=1)
    description: str | None = None
    severity: Severity = Severity.medium
    source: str | None = None
    affected_systems: list[str] = Field(default_factory=list)
    assigned_to: str | None = None
    logs: str | None = None


class DecisionRequest(BaseModel):
    recommendation_action: str = Field(..., min_length=1)
    decision: DecisionOutcome
    decision_reason: str | None = None


class StatusChangeRequest(BaseModel):
    status: IncidentStatus


class ResolveRequest(BaseModel):
    resolution_notes: str = ""


class AlertStatusRequest(BaseModel):
    status: AlertStatus
    dismissed_reason: str | None = None


class FilterRequest(BaseModel):
    where: dict[str, Any] = Field(default_factory=dict)
    sort: str | None = "-created_date"
    limit: int = Field(default=1000, ge=0)


class HealthResponse(BaseModel):
    status: str = "ok"
    storage_backend: str = ""
    durable: bool = False
    llm_provider: str = ""


# --- Reporting ---


class CountEntry(BaseModel):
    name: str
    value: int


class RangeCount(BaseModel):
    range: str
    count: int


class WeeklyTrend(BaseModel):
    week: str
    total: int
    critical: int
    resolved: int


class AnalyticsFilters(BaseModel):
    status: str = "all"
    severity: str = "all"
    system: str = "all"
    date_range: str = "all"  # all | 7d | 30d | 90d


class AnalyticsReport(BaseModel):
    generated_at: str
    filters: AnalyticsFilters
    systems: list[str] = Field(default_factory=list)
    total_incidents: int = 0
    resolved_incidents: int = 0
    resolution_rate: float = 0.0  # percent
    avg_ai_confidence: float = 0.0  # percent
    avg_resolution_time_minutes: float = 0.0
    avg_resolution_time: str = "0m"
    severity_distribution: list[CountEntry] = Field(default_factory=list)
    status_distribution: list[CountEntry] = Field(default_factory=list)
    source_distribution: list[CountEntry] = Field(default_factory=list)
    confidence_distribution: list[RangeCount] = Field(default_factory=list)
    resolution_time_distribution: list[RangeCount] = Field(default_factory=list)
    weekly_trend: list[WeeklyTrend] = Field(default_factory=list)
    incidents: list[Incident] = Field(default_factory=list)


class GovernanceMetrics(BaseModel):
    total_decisions: int = 0
    approved: int = 0
    rejected: int = 0
    modified: int = 0
    approval_rate: int = 0  # percent
    avg_confidence: int = 0  # percent
    recent_decisions: list[Decision] = Field(default_factory=list)


class SystemStatus(BaseModel):
    name: str
    incident_count: int = 0
    active_incidents: int = 0
    critical_count: int = 0
    last_incident_id: str | None = None
    last_incident_date: str | None = None


class Anomaly(BaseModel):
    system: str
    type: str  # spike | critical_cluster
    severity: str
    message: str
    incident_ids: list[str] = Field(default_factory=list)


class SystemHealthReport(BaseModel):
    overall_health: int = 100  # percent of systems with no active incident
    active_incidents: int = 0
    healthy_systems: int = 0
    systems_at_risk: int = 0
    active_predictions: int = 0
    systems: list[SystemStatus] = Field(default_factory=list)
    anomalies: list[Anomaly] = Field(default_factory=list)

"""Tests for the deterministic incident analyzer."""
import pytest

from incident_desk.heuristics import (
    DATA_QUALITY_PENALTY,
    LIMITATIONS,
    analyze_incident,
    clamp01,
    extract_signals,
    keyword_score,
)

DB_OUTAGE = {
    "title": "DB outage",
    "description": "Postgres connection timeouts across checkout",
    "severity": "critical",
}


def test_db_outage_signals_and_confidence():
    signals = extract_signals(DB_OUTAGE)
    assert signals["is_db"] is True
    assert signals["is_auth"] is False

    analysis = analyze_incident(DB_OUTAGE)
    assert analysis.confidence_score == pytest.approx(0.78)
    assert analysis.root_causes[0].probability == pytest.approx(0.60)
    assert analysis.root_causes[0].cause.startswith("Database resource saturation")
    assert analysis.estimated_recovery_time == "30–90 minutes"


def test_analysis_is_deterministic():
    first = analyze_incident(DB_OUTAGE)
    second = analyze_incident(dict(DB_OUTAGE))
    assert first.model_dump_json() == second.model_dump_json()


def test_short_description_applies_penalty():
    analysis = analyze_incident({"title": "Login broken", "description": "SSO fails", "severity": "high"})
    assert analysis.confidence_score == pytest.approx(0.72 - DATA_QUALITY_PENALTY)
    assert analysis.recommendations[0].confidence == pytest.approx(0.85 - DATA_QUALITY_PENALTY)
    assert analysis.data_quality_notes.startswith("Limited context provided")
    assert analysis.root_causes[1].probability == pytest.approx(0.50)


def test_missing_fields_fall_back_to_defaults():
    analysis = analyze_incident({})
    assert analysis.summary.startswith("Incident: Preliminary assessment indicates MEDIUM impact")
    assert analysis.confidence_score == pytest.approx(0.66 - DATA_QUALITY_PENALTY)
    assert analysis.root_causes[0].evidence[1] == "Systems not specified"
    assert analysis.estimated_recovery_time == "Same day"
    assert analysis.limitations == LIMITATIONS


def test_unknown_severity_uses_default_base():
    analysis = analyze_incident({"title": "x", "description": "y" * 50, "severity": "sev0"})
    assert analysis.confidence_score == pytest.approx(0.66)


def test_recommendation_priorities_by_severity():
    low = analyze_incident({"title": "x", "severity": "low"})
    assert [r.priority for r in low.recommendations] == ["high", "high", "medium"]
    critical = analyze_incident({"title": "x", "severity": "critical"})
    assert [r.priority for r in critical.recommendations] == ["critical", "critical", "high"]


def test_logs_stand_in_for_missing_description():
    analysis = analyze_incident({"title": "x", "logs": "ERROR: database query exceeded deadline on replica"})
    assert analysis.root_causes[0].probability == pytest.approx(0.60)
    assert analysis.data_quality_notes.startswith("Sufficient context")


def test_affected_systems_listed_in_evidence():
    analysis = analyze_incident({"title": "x", "affected_systems": ["A", "B", "C", "D"]})
    assert analysis.root_causes[0].evidence[1] == "Impacted systems: A, B, C"


def test_keyword_score_and_clamp():
    assert keyword_score("API gateway 5xx", ("api", "gateway", "db")) == 2
    assert keyword_score("", ("api",)) == 0
    assert clamp01(1.4) == 1.0
    assert clamp01(-0.2) == 0.0

"""Tests for team assignment and the automation plan."""
import pytest

from incident_desk.automation import (
    DATABASE_TEAM,
    DEFAULT_TEAM,
    IDENTITY_TEAM,
    NETWORK_TEAM,
    assign_team,
    build_automation,
)
from incident_desk.heuristics import analyze_incident
from incident_desk.models import Analysis


def test_auth_service_goes_to_identity_team():
    assert assign_team("Prometheus", ["Auth Service"]) == IDENTITY_TEAM
    assert IDENTITY_TEAM == "Identity & Access"


def test_assignment_rule_order():
    assert assign_team("Network Monitor", ["Auth Service", "OrdersDB"]) == NETWORK_TEAM
    assert assign_team(None, ["Auth Service", "OrdersDB"]) == DATABASE_TEAM
    assert assign_team(None, ["IAM Gateway"]) == IDENTITY_TEAM
    assert assign_team(None, []) == DEFAULT_TEAM


def test_automation_confidence_adds_boost():
    incident = {"title": "x", "severity": "critical", "affected_systems": ["Checkout"]}
    plan = build_automation(incident, Analysis(confidence_score=0.76))
    assert plan.automation_confidence == pytest.approx(0.86)
    assert plan.assignment_rationale == "Assignment based on affected systems: Checkout."
    assert plan.stakeholder_communication.executive_summary.startswith("We are currently mitigating")


def test_automation_confidence_without_analysis_score():
    plan = build_automation({"title": "x"}, None)
    assert plan.automation_confidence == pytest.approx(0.8)
    assert plan.assignment_rationale.startswith("Assignment based on incident signals")
    assert plan.stakeholder_communication.executive_summary.startswith("We are investigating")


def test_automation_confidence_is_clamped():
    plan = build_automation({"title": "x"}, Analysis(confidence_score=0.97))
    assert plan.automation_confidence == 1.0


def test_plan_has_diagnostics_and_team_in_internal_update():
    incident = {"title": "Login failures", "affected_systems": ["Auth Service"]}
    plan = build_automation(incident, analyze_incident(incident))
    assert len(plan.diagnostic_scripts) == 2
    assert "Identity & Access" in plan.stakeholder_communication.internal_update

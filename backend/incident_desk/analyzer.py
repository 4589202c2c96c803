"""Orchestrates prompt building, the LLM call, and parsing into an Analysis."""
import json
import logging
import re
from typing import Any, Mapping

from pydantic import ValidationError

from incident_desk.config import settings
from incident_desk.heuristics import analyze_incident
from incident_desk.llm import LLMProvider, get_llm_provider
from incident_desk.models import Analysis
from incident_desk.prompt import build_analysis_prompt

logger = logging.getLogger(__name__)


def _parse_llm_json(raw: str) -> dict[str, Any]:
    """Extract JSON from LLM response (may be wrapped in markdown)."""
    raw = raw.strip()
    if raw.startswith("```"):
        raw = re.sub(r"^```(?:json)?\s*", "", raw)
        raw = re.sub(r"\s*```\s*$", "", raw)
    return json.loads(raw)


def analysis_to_markdown(analysis: Analysis) -> str:
    parts = [
        "## Summary",
        analysis.summary,
        "",
        "## Likely root causes",
    ]
    for rc in analysis.root_causes:
        parts.append(f"- **{rc.cause}** (probability: {rc.probability:.2f})")
        for ev in rc.evidence:
            parts.append(f"  - {ev}")
    parts.extend(["", "## Recommended actions"])
    for i, rec in enumerate(analysis.recommendations, 1):
        parts.append(f"{i}. [{rec.priority}] {rec.action} (confidence: {rec.confidence:.2f})")
    if analysis.estimated_recovery_time:
        parts.extend(["", f"**Estimated recovery:** {analysis.estimated_recovery_time}"])
    if analysis.limitations:
        parts.extend(["", "## Limitations"])
        for item in analysis.limitations:
            parts.append(f"- {item}")
    return "\n".join(parts)


async def run_analysis(incident: Mapping[str, Any], provider: LLMProvider | None = None) -> Analysis:
    """Ask the configured provider for an analysis of incident.

    A response that is not valid analysis JSON falls back to the local
    heuristic analysis of the same incident.
    """
    provider = provider or get_llm_provider()
    prompt = build_analysis_prompt(incident)
    llm_response = await provider.complete(prompt, timeout=settings.request_timeout)
    try:
        return Analysis.model_validate(_parse_llm_json(llm_response.content))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("LLM response was not valid analysis JSON: %s", e)
        return analyze_incident(incident)

"""Offline provider that answers analysis prompts with the heuristic analyzer."""
import json
import logging
import re
from typing import Any

from incident_desk.heuristics import analyze_incident
from incident_desk.llm.base import LLMProvider, LLMResponse
from incident_desk.prompt import PROMPT_FIELDS

logger = logging.getLogger(__name__)

_FIELD = r"^- {label}: (.*)$"


def _field(prompt: str, label: str) -> Any:
    m = re.search(_FIELD.format(label=re.escape(label)), prompt, re.MULTILINE)
    if not m:
        return None
    raw = m.group(1)
    try:
        return json.loads(raw)
    except ValueError:
        # hand-written prompt line, not a JSON value
        return raw.strip()


def parse_incident_prompt(prompt: str) -> dict[str, Any]:
    """Recover the incident fields written by prompt.build_analysis_prompt."""
    incident = {field: _field(prompt, label) for label, field in PROMPT_FIELDS}
    systems = incident["affected_systems"]
    if isinstance(systems, str):
        incident["affected_systems"] = [s.strip() for s in systems.split(",") if s.strip()]
    return incident


class LocalHeuristicProvider(LLMProvider):
    name = "local"

    @property
    def is_configured(self) -> bool:
        return True

    async def complete(self, prompt: str, timeout: int) -> LLMResponse:
        incident = parse_incident_prompt(prompt or "")
        analysis = analyze_incident(incident)
        logger.debug("Local analysis for %r (confidence %.2f)", incident["title"], analysis.confidence_score)
        return LLMResponse(content=analysis.model_dump_json())

"""Prompt construction for incident analysis.

Incident fields go one per line as JSON values, so a provider can read
them back exactly as they were stored.
"""
import json
from typing import Any, Mapping

# (prompt label, incident field)
PROMPT_FIELDS = (
    ("Title", "title"),
    ("Description", "description"),
    ("Severity", "severity"),
    ("Source", "source"),
    ("Affected Systems", "affected_systems"),
    ("Logs/Errors", "logs"),
)

SYSTEM_ROLE = """You are an expert Site Reliability Engineer analyzing an incident.
Rules:
- Base your analysis ONLY on the incident details provided. Do not invent facts.
- Be concise but actionable.
- If important context is missing, say so in data_quality_notes."""

OUTPUT_SCHEMA = """
Provide a comprehensive analysis as a single JSON object with:
1. summary: a concise executive summary (2-3 sentences)
2. root_causes: top 3 most likely root causes, each { cause, probability (0-1), evidence: string[] }
3. recommendations: 3-5 actions, each { action, priority (critical|high|medium|low), confidence (0-1),
   rationale, risks, verification_steps: string[] }
4. estimated_recovery_time (string)
5. confidence_score (0-1) based on data quality
6. data_quality_notes: what information is missing or unclear
7. limitations: what could be wrong with this analysis
"""


def encode_value(value: Any) -> str:
    """One-line JSON for a field value; null when missing."""
    return json.dumps(value, default=str)


def build_analysis_prompt(incident: Mapping[str, Any]) -> str:
    """Render an incident into the analysis prompt."""
    details = "\n".join(
        f"- {label}: {encode_value(incident.get(field))}" for label, field in PROMPT_FIELDS
    )
    return f"""{SYSTEM_ROLE}

Incident Details (JSON values, null when not provided):
{details}
{OUTPUT_SCHEMA}
Return only the JSON object."""

"""Factory for LLM provider based on config."""
import logging

from incident_desk.config import settings
from incident_desk.llm.base import LLMProvider
from incident_desk.llm.local_provider import LocalHeuristicProvider

logger = logging.getLogger(__name__)


def get_llm_provider() -> LLMProvider:
    p = (settings.llm_provider or "local").strip().lower()
    if p != "local":
        logger.warning("Unknown llm_provider %r; using local heuristic provider", p)
    return LocalHeuristicProvider()

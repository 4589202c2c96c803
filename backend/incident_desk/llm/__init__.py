"""LLM provider interface and implementations."""
from incident_desk.llm.base import LLMProvider, LLMResponse
from incident_desk.llm.factory import get_llm_provider

__all__ = ["LLMProvider", "LLMResponse", "get_llm_provider"]

"""Incident tracking backend: record store, heuristic analysis and automation generators."""

__version__ = "0.1.0"

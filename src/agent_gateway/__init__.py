"""Resilient multi-backend LLM gateway, diagnostics runner and generation pipeline."""

__version__ = "0.1.0"

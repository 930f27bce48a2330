"""Batch memory-optimization pipeline driven by an OpenAI-compatible LLM."""

__version__ = "0.1.0"

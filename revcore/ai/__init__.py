"""Reasoning oracle adapter (remote OpenRouter backend + offline heuristics)."""

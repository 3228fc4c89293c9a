"""Prompt Workshop package: multi-model prompt rounds, checkpoints and synthesis."""

from __future__ import annotations

__all__ = [
    "config",
    "catalog",
    "pricing",
    "colors",
    "models",
    "llm_client",
    "prompts",
    "round_executor",
    "winner",
    "checkpoint",
    "engine",
    "synthesis",
    "validators",
    "persistence",
    "export",
    "feedback",
    "diffs",
    "history_view",
]

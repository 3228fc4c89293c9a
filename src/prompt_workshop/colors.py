"""Stable per-model colors for cross-round visual lineage."""

from __future__ import annotations

from typing import Mapping

MODEL_COLORS: dict[str, str] = {
    "blue": "#3B82F6",
    "yellow": "#FBBF24",
    "cyan": "#06B6D4",
    "emerald": "#10B981",
    "purple": "#8B5CF6",
    "orange": "#F97316",
}
COLOR_KEYS: tuple[str, ...] = tuple(MODEL_COLORS)


def assign_model_color(model_id: str, existing: Mapping[str, str]) -> str:
    """Reuse the model's color, else take the first palette slot not in use."""
    current = existing.get(model_id)
    if current:
        return current
    used = set(existing.values())
    for color in COLOR_KEYS:
        if color not in used:
            return color
    return COLOR_KEYS[0]


def color_hex(color: str | None) -> str:
    return MODEL_COLORS.get(str(color or ""), "#000000")

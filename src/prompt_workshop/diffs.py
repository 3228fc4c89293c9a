"""Utilities for rendering human-readable text diffs between responses."""

from __future__ import annotations

import difflib

from prompt_workshop.models import Response


def unified_text_diff(
    previous_text: str,
    current_text: str,
    *,
    previous_label: str = "previous",
    current_label: str = "selected",
) -> str:
    """Return a unified diff string between two response texts."""
    previous_lines = str(previous_text).splitlines()
    current_lines = str(current_text).splitlines()
    diff_lines = difflib.unified_diff(
        previous_lines,
        current_lines,
        fromfile=previous_label,
        tofile=current_label,
        lineterm="",
    )
    return "\n".join(diff_lines)


def response_diff(previous: Response, current: Response) -> str:
    """Diff two responses, labelled by model, e.g. a model across two rounds."""
    return unified_text_diff(
        previous.text,
        current.text,
        previous_label=f"{previous.model} ({previous.model_id})",
        current_label=f"{current.model} ({current.model_id})",
    )

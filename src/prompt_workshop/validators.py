"""Structural validators for machine-checkable model output."""

from __future__ import annotations

from dataclasses import dataclass
import json


@dataclass(frozen=True)
class ValidationResult:
    """Normalized validator response for output-structure checks."""

    ok: bool
    message: str
    format_name: str


def validate_json(text: str) -> ValidationResult:
    """Validate that text is syntactically valid JSON."""
    candidate = str(text or "")
    try:
        json.loads(candidate)
    except json.JSONDecodeError as exc:
        return ValidationResult(
            ok=False,
            message=f"Invalid JSON: {exc.msg} at line {exc.lineno}, column {exc.colno}.",
            format_name="JSON",
        )
    return ValidationResult(ok=True, message="Valid JSON.", format_name="JSON")


def validate_synthesis_payload(payload: object) -> ValidationResult:
    """Check the `{insights: [{title, desc}], finalPrompt}` report shape."""
    if not isinstance(payload, dict):
        return ValidationResult(ok=False, message="Synthesis result must be a JSON object.", format_name="SYNTHESIS")

    insights = payload.get("insights")
    if not isinstance(insights, list):
        return ValidationResult(ok=False, message="Field 'insights' must be a list.", format_name="SYNTHESIS")
    for index, insight in enumerate(insights):
        if not isinstance(insight, dict):
            return ValidationResult(
                ok=False, message=f"Insight {index} must be an object.", format_name="SYNTHESIS"
            )
        for key in ("title", "desc"):
            if not isinstance(insight.get(key), str):
                return ValidationResult(
                    ok=False,
                    message=f"Insight {index} field '{key}' must be a string.",
                    format_name="SYNTHESIS",
                )

    if not isinstance(payload.get("finalPrompt"), str):
        return ValidationResult(ok=False, message="Field 'finalPrompt' must be a string.", format_name="SYNTHESIS")
    return ValidationResult(ok=True, message="Valid synthesis report.", format_name="SYNTHESIS")

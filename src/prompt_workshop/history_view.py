"""Helpers for rendering round and response headers in the UI."""

from __future__ import annotations

from prompt_workshop.models import Iteration, Response, Round


def _display_or_dash(value: str | None) -> str:
    text = str(value or "").strip()
    return text if text else "-"


def format_round_header(iteration: Iteration, round_: Round) -> str:
    """Build a compact header for collapsed round rows."""
    winner = round_.winner()
    return (
        f"iteration={iteration.number} | round={round_.number} | type={round_.type} | "
        f"ts={_display_or_dash(round_.timestamp)} | pivot={_display_or_dash(round_.pivot)} | "
        f"winner={winner.model if winner is not None else '-'}"
    )


def format_response_header(response: Response) -> str:
    metrics = response.metrics
    header = f"{response.model} | status={response.status}"
    if response.is_winner:
        header = f"{header} | WINNER"
    if response.status == "error":
        return f"{header} | error={_display_or_dash(response.error)}"
    return f"{header} | {metrics.time:.2f}s | ${metrics.cost:.4f} | {metrics.tokens} tok"

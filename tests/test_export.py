"""Markdown export tests."""

from __future__ import annotations

from prompt_workshop.export import export_markdown, total_cost
from prompt_workshop.models import (
    Iteration,
    PromptData,
    Response,
    ResponseMetrics,
    Round,
    Session,
)


def _session() -> Session:
    winner = Response(
        model_id="openai/gpt-4o",
        model="GPT-4o",
        status="success",
        text="Use bullets.",
        metrics=ResponseMetrics(time=1.5, cost=0.0125, tokens=900),
        is_winner=True,
        color="blue",
    )
    failed = Response(
        model_id="anthropic/claude-sonnet-4",
        model="Claude Sonnet 4",
        status="error",
        error="Missing anthropic API key.",
        metrics=ResponseMetrics(cost=5.0),
        color="yellow",
    )
    return Session(
        prompt_data=PromptData(system="", user="X"),
        selected_models=["openai/gpt-4o", "anthropic/claude-sonnet-4"],
        model_colors={"openai/gpt-4o": "blue", "anthropic/claude-sonnet-4": "yellow"},
        iterations=[
            Iteration(
                number=1,
                status="completed",
                rounds=[
                    Round(number=1, responses=[winner, failed]),
                    Round(number=2, type="discussion", pivot="be terser", responses=[]),
                ],
                locked_model_id="openai/gpt-4o",
            ),
        ],
    )


def test_export_markdown_sections() -> None:
    report = export_markdown(_session())

    assert report.startswith("# Prompt Workshop Report\n")
    assert "## Session Information" in report
    assert "- **Models Tested:** 2" in report
    assert "- gpt-4o: blue (#3B82F6)" in report
    assert "### System Prompt\n```\n(none)\n```" in report
    assert "### User Prompt\n```\nX\n```" in report
    assert "## Iteration 1\nStatus: completed\nLocked to: gpt-4o" in report
    assert '### Round 2 (discussion)\n**Human Pivot:** "be terser"' in report


def test_export_markdown_responses_and_summary() -> None:
    report = export_markdown(_session())

    assert "#### GPT-4o ⭐ WINNER\n- Color: blue (#3B82F6)\n- Time: 1.50s\n- Cost: $0.0125\n- Tokens: 900" in report
    assert "**Response:**\n```\nUse bullets.\n```" in report
    assert "#### Claude Sonnet 4\n" in report
    assert "**Error:** Missing anthropic API key." in report
    assert "- **Total Cost:** $0.0125" in report
    assert "- **Total Rounds:** 2" in report
    assert "### Winners by Round\n- Iteration 1, Round 1: GPT-4o" in report


def test_total_cost_counts_successful_responses_only() -> None:
    assert total_cost(_session()) == 0.0125


def test_export_markdown_is_pure() -> None:
    session = _session()

    assert export_markdown(session) == export_markdown(session)
    assert session.iterations[0].rounds[0].responses[0].is_winner is True

"""Prompt builder tests for system messages and discussion rounds."""

from __future__ import annotations

from prompt_workshop.models import ProjectContext, Response, ResponseFeedback, Round
from prompt_workshop.prompts import (
    OPEN_CLOSING,
    WINNER_CLOSING,
    build_discussion_prompt,
    build_system_message,
)


def test_build_system_message_without_context_is_unchanged() -> None:
    assert build_system_message("Be helpful.") == "Be helpful."


def test_build_system_message_appends_context_and_file_tree() -> None:
    context = ProjectContext(project_name="Shop", framework="Django", language="Python", file_tree="app/\n  views.py\n")

    text = build_system_message("Be helpful.", context)

    assert text == (
        "Be helpful.\n\n"
        "Project Context:\n"
        "You are working on: Shop\n"
        "Framework: Django\n"
        "Language: Python\n\n"
        "File Structure:\n"
        "app/\n  views.py"
    )


def test_build_system_message_with_empty_system_prompt_is_context_only() -> None:
    text = build_system_message("", ProjectContext(project_name="Shop"))

    assert text.startswith("Project Context:")


def test_discussion_prompt_lists_winner_first_then_others() -> None:
    previous = Round(
        number=1,
        responses=[
            Response(model_id="a/alpha", model="Alpha", status="success", text="alpha text"),
            Response(model_id="b/beta", model="Beta", status="success", text="beta text", is_winner=True),
            Response(model_id="c/gamma", model="Gamma", status="error", error="down"),
        ],
    )

    prompt = build_discussion_prompt("X", previous, "be terser")

    assert prompt.startswith("X\n\n--- Round 1 Results ---\nWinner: [Beta]\nbeta text\n\nOther Model: [Alpha]\nalpha text")
    assert "[Beta] was selected as the winner for Round 1." in prompt
    assert "Gamma" not in prompt
    assert 'Human Direction: "be terser"' in prompt
    assert prompt.endswith(WINNER_CLOSING)


def test_discussion_prompt_without_winner_uses_open_closing() -> None:
    previous = Round(
        number=2,
        responses=[Response(model_id="a/alpha", model="Alpha", status="success", text="alpha text")],
    )

    prompt = build_discussion_prompt("X", previous)

    assert "Model: [Alpha]" in prompt
    assert "Winner:" not in prompt
    assert "Human Direction" not in prompt
    assert prompt.endswith(OPEN_CLOSING)


def test_discussion_prompt_includes_feedback_labels() -> None:
    previous = Round(
        number=1,
        responses=[
            Response(
                model_id="a/alpha",
                model="Alpha",
                status="success",
                text="alpha",
                is_winner=True,
                feedback=ResponseFeedback(relevance=1, tone=0),
            ),
            Response(
                model_id="b/beta",
                model="Beta",
                status="success",
                text="beta",
                feedback=ResponseFeedback(relevance=-1, tone=1),
            ),
        ],
    )

    prompt = build_discussion_prompt("X", previous)

    assert "Winner Feedback ([Alpha]):\n- Technical Relevance: Positive\n- Tone & Delivery: Neutral" in prompt
    assert "Other Model Feedback ([Beta]):\n- Technical Relevance: Negative\n- Tone & Delivery: Positive" in prompt


def test_discussion_prompt_without_previous_round_keeps_pivot() -> None:
    prompt = build_discussion_prompt("X", None, "  start over  ")

    assert prompt == f'X\n\nHuman Direction: "start over"\n\n{OPEN_CLOSING}'

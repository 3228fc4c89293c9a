"""Synthesis pass tests: transcript, templates and report parsing."""

from __future__ import annotations

import asyncio
import json

import pytest

from prompt_workshop.llm_client import LLMError, ProviderCompletion
from prompt_workshop.models import (
    Iteration,
    ProjectContext,
    PromptData,
    Response,
    Round,
    Session,
)
from prompt_workshop.persistence import session_to_text
from prompt_workshop.synthesis import (
    SYNTHESIS_SYSTEM_MESSAGE,
    SYNTHESIS_TEMPLATES,
    SynthesisEngine,
    SynthesisError,
    build_transcript,
    parse_synthesis_response,
)

REPORT = {"insights": [{"title": "Brevity", "desc": "Shorter answers won."}], "finalPrompt": "Answer in 3 bullets."}


def _session() -> Session:
    round_one = Round(
        number=1,
        type="initial",
        responses=[
            Response(model_id="openai/gpt-4o", model="GPT-4o", status="success", text="a" * 600, is_winner=True),
            Response(model_id="anthropic/claude-sonnet-4", model="Claude Sonnet 4", status="error", error="boom"),
        ],
    )
    round_two = Round(
        number=2,
        type="discussion",
        pivot="be terser",
        responses=[Response(model_id="openai/gpt-4o", model="GPT-4o", status="success", text="short")],
    )
    return Session(
        prompt_data=PromptData(system="Be helpful.", user="X"),
        selected_models=["openai/gpt-4o", "anthropic/claude-sonnet-4"],
        iterations=[
            Iteration(number=1, status="completed", rounds=[round_one, round_two], locked_model_id="openai/gpt-4o"),
            Iteration(number=2),
        ],
        current_iteration_index=1,
        project_context=ProjectContext(project_name="Shop", framework="Django", language="Python"),
    )


class FakeAdapter:
    def __init__(self, text: str = "", error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.calls: list[dict[str, object]] = []

    async def send_prompt(self, *, system_text, user_text, model, api_key, json_mode=False):
        self.calls.append({"system": system_text, "user": user_text, "model": model, "json_mode": json_mode})
        if self.error is not None:
            raise self.error
        return ProviderCompletion(text=self.text)


def _engine(adapter: FakeAdapter, keys=None) -> SynthesisEngine:
    resolver = (keys if keys is not None else {"anthropic": "k", "openrouter": "k"}).get
    return SynthesisEngine(adapters={"anthropic": adapter, "openrouter": adapter}, api_key_for=resolver)


def test_build_transcript_covers_history_and_truncates() -> None:
    transcript = build_transcript(_session(), max_response_chars=500)

    assert transcript.startswith("=== Original Prompt ===\nSystem: Be helpful.\nUser: X")
    assert "=== Project Context ===\nProject: Shop\nFramework: Django" in transcript
    assert "=== Iteration 1 (Completed) ===\nLocked to: openai/gpt-4o" in transcript
    assert "=== Iteration 2 (Active) ===" in transcript
    assert "--- Round 2 (discussion) ---\nHuman Pivot: \"be terser\"" in transcript
    assert "[GPT-4o] (WINNER):\n" + "a" * 500 + "..." in transcript
    assert "a" * 501 not in transcript
    assert "[GPT-4o]:\nshort" in transcript
    assert "short..." not in transcript
    assert "Claude Sonnet 4" not in transcript


def test_templates_change_only_framing() -> None:
    assert set(SYNTHESIS_TEMPLATES) == {"consensus", "contrast", "debate", "merge", "rapid"}
    adapter = FakeAdapter(text=json.dumps(REPORT))
    engine = _engine(adapter)

    for template_id in SYNTHESIS_TEMPLATES:
        asyncio.run(engine.synthesize(_session(), template_id, "anthropic/claude-sonnet-4"))

    histories = {call["user"].split("Session History:\n", 1)[1] for call in adapter.calls}
    framings = {call["user"].split("Session History:\n", 1)[0] for call in adapter.calls}
    assert len(histories) == 1
    assert len(framings) == 5


def test_synthesize_returns_report_and_does_not_mutate_session() -> None:
    adapter = FakeAdapter(text="```json\n" + json.dumps(REPORT) + "\n```")
    session = _session()
    before = session_to_text(session)

    result = asyncio.run(_engine(adapter).synthesize(session, "consensus", "anthropic/claude-sonnet-4"))

    assert result.final_prompt == "Answer in 3 bullets."
    assert result.insights[0].title == "Brevity"
    assert result.insights[0].desc == "Shorter answers won."
    assert adapter.calls[0]["system"] == SYNTHESIS_SYSTEM_MESSAGE
    assert adapter.calls[0]["json_mode"] is True
    assert session_to_text(session) == before


def test_synthesize_error_cases() -> None:
    session = _session()

    with pytest.raises(SynthesisError, match="Unknown synthesis template"):
        asyncio.run(_engine(FakeAdapter()).synthesize(session, "poetry", "anthropic/claude-sonnet-4"))
    with pytest.raises(SynthesisError, match="Missing anthropic API key"):
        asyncio.run(_engine(FakeAdapter(), keys={}).synthesize(session, "rapid", "anthropic/claude-sonnet-4"))
    with pytest.raises(SynthesisError, match="Rate limit"):
        asyncio.run(
            _engine(FakeAdapter(error=LLMError("Rate limit reached.", "rate_limit"))).synthesize(
                session, "rapid", "anthropic/claude-sonnet-4"
            )
        )
    with pytest.raises(SynthesisError, match="wrong shape"):
        asyncio.run(
            _engine(FakeAdapter(text='{"insights": "none"}')).synthesize(
                session, "rapid", "anthropic/claude-sonnet-4"
            )
        )


def test_parse_synthesis_response_falls_back_to_outer_object() -> None:
    text = "Here is the report:\n" + json.dumps(REPORT) + "\nHope that helps."

    result = parse_synthesis_response(text)

    assert result.final_prompt == "Answer in 3 bullets."


def test_parse_synthesis_response_rejects_non_json() -> None:
    with pytest.raises(SynthesisError, match="did not return a JSON object"):
        parse_synthesis_response("I could not do that.")
    with pytest.raises(SynthesisError, match="malformed JSON"):
        parse_synthesis_response("prefix {not json} suffix")

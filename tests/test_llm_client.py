"""Provider client tests with a fake AsyncOpenAI transport."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import httpx
from openai import APIConnectionError, AuthenticationError, BadRequestError, RateLimitError
import pytest

from prompt_workshop.config import AppConfig
from prompt_workshop.llm_client import LLMClient, LLMError, build_adapters
import prompt_workshop.llm_client as llm_client_module

_REQUEST = httpx.Request("POST", "https://example.invalid/v1/chat/completions")


def _status_error(error_cls, status_code: int, message: str):
    return error_cls(message, response=httpx.Response(status_code, request=_REQUEST), body=None)


def _completion(text: str = "hi") -> SimpleNamespace:
    return SimpleNamespace(
        id="req-1",
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=7),
    )


def _install_fake_openai(monkeypatch, outcomes: list[object]) -> dict[str, list]:
    recorded: dict[str, list] = {"clients": [], "requests": [], "sleeps": []}
    pending = list(outcomes)

    async def create(**request):
        recorded["requests"].append(request)
        outcome = pending.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    class FakeAsyncOpenAI:
        def __init__(self, **kwargs) -> None:
            recorded["clients"].append(kwargs)
            self.chat = SimpleNamespace(completions=SimpleNamespace(create=create))

        async def __aenter__(self):
            return self

        async def __aexit__(self, *exc_info) -> None:
            return None

    async def fake_sleep(seconds: float) -> None:
        recorded["sleeps"].append(seconds)

    monkeypatch.setattr(llm_client_module, "AsyncOpenAI", FakeAsyncOpenAI)
    monkeypatch.setattr(llm_client_module.asyncio, "sleep", fake_sleep)
    return recorded


def _send(client: LLMClient, model: str, **kwargs):
    return asyncio.run(
        client.send_prompt(system_text="sys", user_text="hello", model=model, api_key="key", **kwargs)
    )


def test_send_prompt_returns_normalized_completion(monkeypatch) -> None:
    recorded = _install_fake_openai(monkeypatch, [_completion("answer")])
    client = LLMClient("anthropic", max_output_tokens=256)

    completion = _send(client, "anthropic/claude-sonnet-4")

    assert completion.text == "answer"
    assert completion.input_tokens == 12
    assert completion.output_tokens == 7
    assert completion.request_id == "req-1"
    assert recorded["clients"][0]["base_url"] == "https://api.anthropic.com/v1/"
    assert recorded["clients"][0]["max_retries"] == 0
    request = recorded["requests"][0]
    assert request["model"] == "claude-sonnet-4"
    assert request["max_tokens"] == 256
    assert request["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "hello"},
    ]
    assert "response_format" not in request


def test_openrouter_keeps_full_model_id_and_sends_headers(monkeypatch) -> None:
    recorded = _install_fake_openai(monkeypatch, [_completion()])

    _send(LLMClient("openrouter"), "deepseek/deepseek-chat", json_mode=True)

    assert recorded["requests"][0]["model"] == "deepseek/deepseek-chat"
    assert recorded["requests"][0]["response_format"] == {"type": "json_object"}
    assert recorded["clients"][0]["base_url"] == "https://openrouter.ai/api/v1"
    assert "X-Title" in recorded["clients"][0]["default_headers"]


def test_openai_uses_default_endpoint(monkeypatch) -> None:
    recorded = _install_fake_openai(monkeypatch, [_completion()])

    _send(LLMClient("openai"), "openai/gpt-4o")

    assert "base_url" not in recorded["clients"][0]
    assert recorded["requests"][0]["model"] == "gpt-4o"


def test_missing_key_fails_without_client(monkeypatch) -> None:
    recorded = _install_fake_openai(monkeypatch, [])

    with pytest.raises(LLMError) as exc_info:
        asyncio.run(
            LLMClient("google").send_prompt(system_text="", user_text="x", model="google/gemini-pro-1.5", api_key="")
        )

    assert exc_info.value.category == "missing_key"
    assert recorded["clients"] == []


def test_network_errors_are_retried_with_backoff(monkeypatch) -> None:
    recorded = _install_fake_openai(
        monkeypatch,
        [APIConnectionError(request=_REQUEST), _completion("recovered")],
    )

    completion = _send(LLMClient("openai", max_retries=2), "openai/gpt-4o")

    assert completion.text == "recovered"
    assert len(recorded["requests"]) == 2
    assert recorded["sleeps"] == [pytest.approx(0.4)]


def test_rate_limit_exhausts_retries(monkeypatch) -> None:
    limit = _status_error(RateLimitError, 429, "Too many requests")
    recorded = _install_fake_openai(monkeypatch, [limit, limit, limit])

    with pytest.raises(LLMError) as exc_info:
        _send(LLMClient("openai", max_retries=2), "openai/gpt-4o")

    assert exc_info.value.category == "rate_limit"
    assert len(recorded["requests"]) == 3


def test_authentication_error_is_not_retried(monkeypatch) -> None:
    recorded = _install_fake_openai(monkeypatch, [_status_error(AuthenticationError, 401, "bad key")])

    with pytest.raises(LLMError) as exc_info:
        _send(LLMClient("anthropic"), "anthropic/claude-opus-4")

    assert exc_info.value.category == "auth"
    assert "anthropic" in exc_info.value.message
    assert len(recorded["requests"]) == 1


def test_bad_request_switches_to_max_completion_tokens(monkeypatch) -> None:
    rejected = _status_error(
        BadRequestError, 400, "Unsupported parameter: 'max_tokens'. Use 'max_completion_tokens' instead."
    )
    recorded = _install_fake_openai(monkeypatch, [rejected, _completion()])

    _send(LLMClient("openai", max_output_tokens=99), "openai/o1")

    retry = recorded["requests"][1]
    assert "max_tokens" not in retry
    assert retry["max_completion_tokens"] == 99


def test_build_adapters_applies_config() -> None:
    adapters = build_adapters(AppConfig(llm_timeout_seconds=5.0, llm_max_retries=1, llm_max_output_tokens=100))

    assert set(adapters) == {"anthropic", "openai", "google", "openrouter"}
    google = adapters["google"]
    assert isinstance(google, LLMClient)
    assert google.timeout_seconds == 5.0
    assert google.max_retries == 1
    assert google.max_output_tokens == 100

"""Provider adapter contract, OpenAI-compatible client, and normalized API errors."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Literal, Protocol

from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    BadRequestError,
    RateLimitError,
)

from prompt_workshop.catalog import PROVIDERS, ProviderTag
from prompt_workshop.config import AppConfig

ErrorCategory = Literal[
    "auth", "rate_limit", "network", "invalid_request", "server", "missing_key", "unknown"
]

PROVIDER_BASE_URLS: dict[str, str | None] = {
    "openai": None,
    "anthropic": "https://api.anthropic.com/v1/",
    "google": "https://generativelanguage.googleapis.com/v1beta/openai/",
    "openrouter": "https://openrouter.ai/api/v1",
}
OPENROUTER_HEADERS = {"X-Title": "Prompt Workshop"}

LOGGER = logging.getLogger("prompt_workshop.llm_client")
if not LOGGER.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    LOGGER.addHandler(handler)
LOGGER.setLevel(logging.INFO)
LOGGER.propagate = False


@dataclass(frozen=True)
class ProviderCompletion:
    """Normalized completion contract returned by provider adapters."""

    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    request_id: str | None = None


class LLMError(Exception):
    """Normalized error carrying a user-readable message and category."""

    def __init__(self, message: str, category: ErrorCategory) -> None:
        super().__init__(message)
        self.message = message
        self.category = category


class ProviderAdapter(Protocol):
    """Per-provider completion capability consumed by the workshop core."""

    async def send_prompt(
        self,
        *,
        system_text: str,
        user_text: str,
        model: str,
        api_key: str,
        json_mode: bool = False,
    ) -> ProviderCompletion: ...


class LLMClient:
    """OpenAI-compatible chat client bound to one provider endpoint.

    Transport retries for rate limits, network failures and 5xx responses
    happen here; callers only ever see a completion or an `LLMError`.
    """

    def __init__(
        self,
        provider: ProviderTag,
        *,
        timeout_seconds: float = 60.0,
        max_retries: int = 2,
        max_output_tokens: int = 4096,
        verbose_logging: bool = False,
        verbose_log_max_chars: int = 4000,
    ) -> None:
        if provider not in PROVIDERS:
            raise ValueError(f"Unsupported provider: {provider}")
        self.provider = provider
        self.timeout_seconds = timeout_seconds
        self.max_retries = max(0, max_retries)
        self.max_output_tokens = max_output_tokens
        self.verbose_logging = verbose_logging
        self.verbose_log_max_chars = verbose_log_max_chars

    def resolve_model(self, model: str) -> str:
        """Map a catalog id to the id the provider endpoint expects."""
        if self.provider == "openrouter":
            return model
        prefix = f"{self.provider}/"
        if model.startswith(prefix):
            return model[len(prefix):]
        return model

    def _client(self, api_key: str) -> AsyncOpenAI:
        kwargs: dict[str, object] = {
            "api_key": api_key,
            "timeout": self.timeout_seconds,
            # Retries are handled by the loop in send_prompt.
            "max_retries": 0,
        }
        base_url = PROVIDER_BASE_URLS.get(self.provider)
        if base_url:
            kwargs["base_url"] = base_url
        if self.provider == "openrouter":
            kwargs["default_headers"] = OPENROUTER_HEADERS
        return AsyncOpenAI(**kwargs)

    def _log_request(
        self,
        *,
        model: str,
        system_text: str,
        user_text: str,
        outcome: Literal["success", "error"],
        error_category: ErrorCategory | None,
        response_text: str = "",
    ) -> None:
        system_chars = len(system_text)
        user_chars = len(user_text)
        LOGGER.info(
            "llm_request provider=%s model=%s prompt_chars=%d system_chars=%d user_chars=%d outcome=%s error_category=%s",
            self.provider,
            model,
            system_chars + user_chars,
            system_chars,
            user_chars,
            outcome,
            error_category or "none",
        )
        if self.verbose_logging:
            limit = self.verbose_log_max_chars
            LOGGER.info("llm_request_body model=%s user=%r", model, user_text[:limit])
            if response_text:
                LOGGER.info("llm_response_body model=%s text=%r", model, response_text[:limit])

    @staticmethod
    def _extract_token_count(usage: object, primary_key: str, fallback_key: str) -> int:
        if usage is None:
            return 0
        value = getattr(usage, primary_key, None)
        if value is None:
            value = getattr(usage, fallback_key, None)
        return value if isinstance(value, int) else 0

    @staticmethod
    def _compact_error_message(error: BaseException, *, max_chars: int = 320) -> str:
        compact = " ".join(str(error).split())
        if len(compact) <= max_chars:
            return compact
        return f"{compact[: max_chars - 3]}..."

    async def _create_completion(
        self,
        client: AsyncOpenAI,
        *,
        model: str,
        messages: list[dict[str, str]],
        json_mode: bool,
    ):
        token_field = "max_tokens"
        include_response_format = json_mode
        for _ in range(3):
            request: dict[str, object] = {"model": model, "messages": messages}
            request[token_field] = self.max_output_tokens
            if include_response_format:
                request["response_format"] = {"type": "json_object"}
            try:
                return await client.chat.completions.create(**request)
            except BadRequestError as retry_exc:
                message = str(retry_exc)
                changed = False
                if token_field == "max_tokens" and "max_completion_tokens" in message:
                    token_field = "max_completion_tokens"
                    changed = True
                if include_response_format and "response_format" in message:
                    include_response_format = False
                    changed = True
                if not changed:
                    raise
        raise LLMError("Unable to prepare a compatible chat completion request.", "invalid_request")

    async def send_prompt(
        self,
        *,
        system_text: str,
        user_text: str,
        model: str,
        api_key: str,
        json_mode: bool = False,
    ) -> ProviderCompletion:
        """Send one chat completion and return normalized text and token usage."""
        resolved_model = self.resolve_model(model)
        if not api_key:
            raise LLMError(f"Missing {self.provider} API key.", "missing_key")

        messages: list[dict[str, str]] = []
        if system_text.strip():
            messages.append({"role": "system", "content": system_text})
        messages.append({"role": "user", "content": user_text})

        def fail(category: ErrorCategory) -> None:
            self._log_request(
                model=resolved_model,
                system_text=system_text,
                user_text=user_text,
                outcome="error",
                error_category=category,
            )

        async with self._client(api_key) as client:
            for attempt in range(self.max_retries + 1):
                try:
                    completion = await self._create_completion(
                        client,
                        model=resolved_model,
                        messages=messages,
                        json_mode=json_mode,
                    )
                    choices = getattr(completion, "choices", None) or []
                    if not choices:
                        raise LLMError(f"{self.provider} returned no completion choices.", "server")
                    text = choices[0].message.content or ""
                    request_id_raw = getattr(completion, "id", None)
                    usage = getattr(completion, "usage", None)
                    self._log_request(
                        model=resolved_model,
                        system_text=system_text,
                        user_text=user_text,
                        outcome="success",
                        error_category=None,
                        response_text=text,
                    )
                    return ProviderCompletion(
                        text=text,
                        input_tokens=self._extract_token_count(usage, "prompt_tokens", "input_tokens"),
                        output_tokens=self._extract_token_count(usage, "completion_tokens", "output_tokens"),
                        request_id=str(request_id_raw) if request_id_raw is not None else None,
                    )
                except AuthenticationError as exc:
                    fail("auth")
                    raise LLMError(
                        f"Authentication failed. Check the {self.provider} API key and model access.",
                        "auth",
                    ) from exc
                except BadRequestError as exc:
                    fail("invalid_request")
                    detail = self._compact_error_message(exc)
                    raise LLMError(
                        f"Invalid request sent to {self.provider}: {detail}",
                        "invalid_request",
                    ) from exc
                except RateLimitError as exc:
                    if attempt < self.max_retries:
                        await asyncio.sleep(0.4 * (attempt + 1))
                        continue
                    fail("rate_limit")
                    raise LLMError("Rate limit reached. Retry in a moment.", "rate_limit") from exc
                except (APIConnectionError, APITimeoutError) as exc:
                    if attempt < self.max_retries:
                        await asyncio.sleep(0.4 * (attempt + 1))
                        continue
                    fail("network")
                    raise LLMError(
                        f"Network or timeout error while contacting {self.provider}.", "network"
                    ) from exc
                except APIStatusError as exc:
                    status_code = getattr(exc, "status_code", None)
                    if status_code is not None and status_code >= 500:
                        if attempt < self.max_retries:
                            await asyncio.sleep(0.4 * (attempt + 1))
                            continue
                        fail("server")
                        raise LLMError(f"{self.provider} server error.", "server") from exc
                    detail = self._compact_error_message(exc)
                    if status_code is not None and 400 <= status_code < 500:
                        fail("invalid_request")
                        raise LLMError(
                            f"{self.provider} API error (status {status_code}): {detail}",
                            "invalid_request",
                        ) from exc
                    fail("unknown")
                    raise LLMError(f"Unexpected {self.provider} API error: {detail}", "unknown") from exc
                except LLMError as exc:
                    fail(exc.category)
                    raise
                except Exception as exc:
                    fail("unknown")
                    raise LLMError("Unexpected LLM request failure.", "unknown") from exc

        fail("unknown")
        raise LLMError("Unexpected LLM request failure.", "unknown")


def build_adapters(config: AppConfig) -> dict[str, ProviderAdapter]:
    """Create one client per provider tag from runtime configuration."""
    return {
        provider: LLMClient(
            provider,
            timeout_seconds=config.llm_timeout_seconds,
            max_retries=config.llm_max_retries,
            max_output_tokens=config.llm_max_output_tokens,
            verbose_logging=config.verbose_llm_logging,
            verbose_log_max_chars=config.verbose_llm_log_max_chars,
        )
        for provider in PROVIDERS
    }

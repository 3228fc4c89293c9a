"""Runtime configuration loading from environment and optional .env file."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os

PROVIDER_KEY_ENV_VARS: dict[str, str] = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "google": "GOOGLE_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}
DEFAULT_SYNTHESIS_MODEL = "anthropic/claude-sonnet-4"
DEFAULT_SESSION_FILE = "sessions/current_session.json"
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigError(Exception):
    """Configuration loading error with user-facing message text."""


@dataclass(frozen=True)
class AppConfig:
    """Application config contract for provider keys and dispatch settings."""

    anthropic_api_key: str | None = None
    openai_api_key: str | None = None
    google_api_key: str | None = None
    openrouter_api_key: str | None = None
    synthesis_model: str = DEFAULT_SYNTHESIS_MODEL
    dispatch_stagger_seconds: float = 0.0
    llm_timeout_seconds: float = 60.0
    llm_max_retries: int = 2
    llm_max_output_tokens: int = 4096
    session_file: str = DEFAULT_SESSION_FILE
    synthesis_max_response_chars: int = 500
    verbose_llm_logging: bool = False
    verbose_llm_log_max_chars: int = 4000

    def api_key_for(self, provider: str) -> str | None:
        """Resolve the API key for a provider tag, or None when unset."""
        value = getattr(self, f"{provider}_api_key", None)
        if not value:
            return None
        return str(value)

    def configured_providers(self) -> list[str]:
        return [provider for provider in PROVIDER_KEY_ENV_VARS if self.api_key_for(provider)]

    def __repr__(self) -> str:
        keys = ", ".join(
            f"{provider}_api_key={'***REDACTED***' if self.api_key_for(provider) else None!r}"
            for provider in PROVIDER_KEY_ENV_VARS
        )
        return (
            "AppConfig("
            f"{keys}, "
            f"synthesis_model={self.synthesis_model!r}, "
            f"dispatch_stagger_seconds={self.dispatch_stagger_seconds!r}, "
            f"llm_timeout_seconds={self.llm_timeout_seconds!r}, "
            f"llm_max_retries={self.llm_max_retries!r}, "
            f"llm_max_output_tokens={self.llm_max_output_tokens!r}, "
            f"session_file={self.session_file!r}, "
            f"synthesis_max_response_chars={self.synthesis_max_response_chars!r}, "
            f"verbose_llm_logging={self.verbose_llm_logging!r}, "
            f"verbose_llm_log_max_chars={self.verbose_llm_log_max_chars!r})"
        )


def _parse_env_line(line: str) -> tuple[str, str] | None:
    stripped = line.strip()
    if not stripped or stripped.startswith("#") or "=" not in stripped:
        return None

    key, raw_value = stripped.split("=", 1)
    key = key.strip()
    value = raw_value.strip()
    if not key:
        return None

    if value and value[0] == value[-1] and value[0] in {'"', "'"}:
        value = value[1:-1]
    return key, value


def _load_dotenv(dotenv_path: Path) -> None:
    if not dotenv_path.exists():
        return

    for line in dotenv_path.read_text(encoding="utf-8").splitlines():
        parsed = _parse_env_line(line)
        if parsed is None:
            continue
        key, value = parsed
        os.environ.setdefault(key, value)


def _optional_env(name: str) -> str | None:
    value = os.environ.get(name)
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


def _float_env(name: str, default: float, *, minimum: float | None = None) -> float:
    value = _optional_env(name)
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ConfigError(
            f"Configuration error: {name} must be a valid float, got {value!r}."
        ) from exc
    if minimum is not None and parsed < minimum:
        raise ConfigError(f"Configuration error: {name} must be >= {minimum}, got {value!r}.")
    return parsed


def _int_env(name: str, default: int, *, minimum: int | None = None) -> int:
    value = _optional_env(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ConfigError(
            f"Configuration error: {name} must be a valid integer, got {value!r}."
        ) from exc
    if minimum is not None and parsed < minimum:
        raise ConfigError(f"Configuration error: {name} must be >= {minimum}, got {value!r}.")
    return parsed


def _bool_env(name: str, default: bool) -> bool:
    value = _optional_env(name)
    if value is None:
        return default
    normalized = value.lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigError(f"Configuration error: {name} must be a boolean (true/false), got {value!r}.")


def get_config() -> AppConfig:
    """Load config from environment variables and `.env` in repo root.

    Provider keys are optional. A model whose provider has no key still
    takes part in a round and reports a configuration error in its slot.
    """
    _load_dotenv(Path(".env"))

    return AppConfig(
        anthropic_api_key=_optional_env(PROVIDER_KEY_ENV_VARS["anthropic"]),
        openai_api_key=_optional_env(PROVIDER_KEY_ENV_VARS["openai"]),
        google_api_key=_optional_env(PROVIDER_KEY_ENV_VARS["google"]),
        openrouter_api_key=_optional_env(PROVIDER_KEY_ENV_VARS["openrouter"]),
        synthesis_model=_optional_env("SYNTHESIS_MODEL") or DEFAULT_SYNTHESIS_MODEL,
        dispatch_stagger_seconds=_float_env("DISPATCH_STAGGER_SECONDS", 0.0, minimum=0.0),
        llm_timeout_seconds=_float_env("LLM_TIMEOUT_SECONDS", 60.0, minimum=1.0),
        llm_max_retries=_int_env("LLM_MAX_RETRIES", 2, minimum=0),
        llm_max_output_tokens=_int_env("LLM_MAX_OUTPUT_TOKENS", 4096, minimum=1),
        session_file=_optional_env("SESSION_FILE") or DEFAULT_SESSION_FILE,
        synthesis_max_response_chars=_int_env("SYNTHESIS_MAX_RESPONSE_CHARS", 500, minimum=1),
        verbose_llm_logging=_bool_env("VERBOSE_LLM_LOGGING", False),
        verbose_llm_log_max_chars=_int_env("VERBOSE_LLM_LOG_MAX_CHARS", 4000, minimum=100),
    )

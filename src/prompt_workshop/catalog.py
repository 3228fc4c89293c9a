"""Model catalog with a precomputed model-id to provider mapping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal

ProviderTag = Literal["anthropic", "openai", "google", "openrouter"]
PROVIDERS: tuple[ProviderTag, ...] = ("anthropic", "openai", "google", "openrouter")
GATEWAY_PROVIDER: ProviderTag = "openrouter"


@dataclass(frozen=True)
class ModelDefinition:
    """Catalog entry for a selectable model."""

    id: str
    name: str
    provider: ProviderTag
    context_length: int = 0
    description: str = ""


DEFAULT_MODELS: tuple[ModelDefinition, ...] = (
    ModelDefinition("anthropic/claude-opus-4", "Claude Opus 4", "anthropic", 200_000, "Best capability"),
    ModelDefinition("anthropic/claude-sonnet-4", "Claude Sonnet 4", "anthropic", 200_000, "Balanced performance and speed"),
    ModelDefinition("openai/gpt-4o", "GPT-4o", "openai", 128_000, "Omni model"),
    ModelDefinition("openai/gpt-4o-mini", "GPT-4o Mini", "openai", 128_000, "Fast and cheap"),
    ModelDefinition("openai/o1", "OpenAI o1", "openai", 200_000, "Reasoning model"),
    ModelDefinition("google/gemini-2.0-flash-exp", "Gemini 2.0 Flash", "google", 1_000_000, "Fast, large context"),
    ModelDefinition("google/gemini-pro-1.5", "Gemini 1.5 Pro", "google", 2_000_000, "Google flagship"),
    ModelDefinition("deepseek/deepseek-chat", "DeepSeek Chat", "openrouter", 128_000, "Cost effective"),
    ModelDefinition("deepseek/deepseek-reasoner", "DeepSeek Reasoner", "openrouter", 128_000, "Reasoning model"),
    ModelDefinition("meta-llama/llama-3.1-405b-instruct", "Llama 3.1 405B", "openrouter", 128_000, "Open weights"),
    ModelDefinition("mistralai/mistral-large-2411", "Mistral Large", "openrouter", 128_000, "Multilingual"),
    ModelDefinition("x-ai/grok-2-1212", "Grok 2", "openrouter", 131_072, "xAI flagship"),
)


class ModelCatalog:
    """Lookup table built once when the catalog loads.

    Provider resolution never parses model ids at call time; ids missing
    from the catalog route through the multi-vendor gateway.
    """

    def __init__(self, models: Iterable[ModelDefinition] = DEFAULT_MODELS) -> None:
        self._models: dict[str, ModelDefinition] = {}
        for model in models:
            if model.provider not in PROVIDERS:
                raise ValueError(f"Unsupported provider {model.provider!r} for model {model.id!r}")
            self._models[model.id] = model
        self._providers: dict[str, ProviderTag] = {
            model_id: model.provider for model_id, model in self._models.items()
        }

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._models

    def __len__(self) -> int:
        return len(self._models)

    def models(self) -> list[ModelDefinition]:
        return list(self._models.values())

    def get(self, model_id: str) -> ModelDefinition | None:
        return self._models.get(model_id)

    def provider_for(self, model_id: str) -> ProviderTag:
        return self._providers.get(model_id, GATEWAY_PROVIDER)

    def display_name(self, model_id: str) -> str:
        model = self._models.get(model_id)
        if model is not None:
            return model.name
        return model_id.rsplit("/", 1)[-1] or model_id

    def with_model(self, model: ModelDefinition) -> "ModelCatalog":
        """Return a new catalog including (or overriding) one model."""
        merged = dict(self._models)
        merged[model.id] = model
        return ModelCatalog(merged.values())

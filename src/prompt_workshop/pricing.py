"""Per-model token pricing used for response cost metrics."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

TOKENS_PER_RATE_UNIT = 1_000_000


@dataclass(frozen=True)
class ModelRates:
    """USD per million input/output tokens."""

    rate_per_mtok_in: float
    rate_per_mtok_out: float


DEFAULT_RATES: dict[str, ModelRates] = {
    "google/gemini-2.0-flash-exp": ModelRates(0.075, 0.30),
    "google/gemini-pro-1.5": ModelRates(0.075, 0.30),
    "openai/gpt-4o": ModelRates(2.50, 10.00),
    "openai/gpt-4o-mini": ModelRates(0.15, 0.60),
    "openai/o1": ModelRates(15.00, 60.00),
    "anthropic/claude-opus-4": ModelRates(15.00, 75.00),
    "anthropic/claude-sonnet-4": ModelRates(3.00, 15.00),
    "meta-llama/llama-3.1-405b-instruct": ModelRates(0.50, 0.50),
    "deepseek/deepseek-chat": ModelRates(0.14, 0.28),
    "deepseek/deepseek-reasoner": ModelRates(0.55, 2.19),
    "mistralai/mistral-large-2411": ModelRates(2.00, 6.00),
    "x-ai/grok-2-1212": ModelRates(2.00, 10.00),
}


class PricingTable:
    def __init__(self, rates: Mapping[str, ModelRates] | None = None) -> None:
        self._rates = dict(DEFAULT_RATES if rates is None else rates)

    def rates_for(self, model_id: str) -> ModelRates | None:
        return self._rates.get(model_id)

    def cost_for(self, model_id: str, input_tokens: int, output_tokens: int) -> float:
        """Compute call cost; models without a price entry cost nothing."""
        rates = self._rates.get(model_id)
        if rates is None:
            return 0.0
        return (
            max(0, input_tokens) * rates.rate_per_mtok_in
            + max(0, output_tokens) * rates.rate_per_mtok_out
        ) / TOKENS_PER_RATE_UNIT

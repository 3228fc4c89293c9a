"""Concurrent dispatch of one round's prompt to several models."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Literal, Mapping, Sequence

from prompt_workshop.catalog import ModelCatalog
from prompt_workshop.colors import assign_model_color
from prompt_workshop.llm_client import LLMError, ProviderAdapter
from prompt_workshop.models import (
    RESPONSE_ERROR,
    RESPONSE_SUCCESS,
    ROUND_INITIAL,
    Response,
    ResponseMetrics,
    Round,
    RoundType,
)
from prompt_workshop.pricing import PricingTable

ProgressState = Literal["pending", "loading", "complete", "error"]
ApiKeyResolver = Callable[[str], str | None]
ProgressCallback = Callable[[str, ProgressState], None]

LOGGER = logging.getLogger("prompt_workshop.round_executor")


class RoundExecutor:
    """Dispatch calls concurrently and assemble responses in requested order.

    Every dispatched call settles into its own response slot as either
    `success` or `error`; one failing model never cancels its siblings.
    """

    def __init__(
        self,
        *,
        adapters: Mapping[str, ProviderAdapter],
        api_key_for: ApiKeyResolver,
        catalog: ModelCatalog | None = None,
        pricing: PricingTable | None = None,
        stagger_seconds: float = 0.0,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.adapters = dict(adapters)
        self.api_key_for = api_key_for
        self.catalog = catalog or ModelCatalog()
        self.pricing = pricing or PricingTable()
        self.stagger_seconds = max(0.0, stagger_seconds)
        self.on_progress = on_progress

    def _report(self, model_id: str, state: ProgressState) -> None:
        if self.on_progress is None:
            return
        try:
            self.on_progress(model_id, state)
        except Exception:
            LOGGER.exception("Progress callback failed for model=%s state=%s", model_id, state)

    async def execute_round(
        self,
        model_ids: Sequence[str],
        prompt_text: str,
        *,
        system_text: str = "",
        round_number: int = 1,
        round_type: RoundType = ROUND_INITIAL,
        pivot: str | None = None,
        model_colors: Mapping[str, str] | None = None,
    ) -> Round:
        """Run one round and return it once every call has settled."""
        requested = list(model_ids)
        if not requested:
            raise ValueError("A round needs at least one model id.")
        if len(set(requested)) != len(requested):
            raise ValueError(f"Duplicate model ids in round dispatch: {requested}")

        colors = dict(model_colors or {})
        for model_id in requested:
            colors[model_id] = assign_model_color(model_id, colors)
            self._report(model_id, "pending")

        responses = await asyncio.gather(
            *(
                self._dispatch(
                    model_id,
                    prompt_text,
                    system_text=system_text,
                    color=colors[model_id],
                    delay_seconds=self.stagger_seconds * index,
                )
                for index, model_id in enumerate(requested)
            )
        )
        LOGGER.info(
            "round_dispatched round=%d type=%s models=%d errors=%d",
            round_number,
            round_type,
            len(responses),
            sum(1 for response in responses if response.status == RESPONSE_ERROR),
        )
        return Round(
            number=round_number,
            type=round_type,
            responses=list(responses),
            pivot=pivot,
            prompt=prompt_text,
        )

    async def execute_single(
        self,
        model_id: str,
        prompt_text: str,
        *,
        system_text: str = "",
        color: str | None = None,
    ) -> Response:
        """Issue exactly one call, used when a response slot is replaced."""
        self._report(model_id, "pending")
        return await self._dispatch(model_id, prompt_text, system_text=system_text, color=color)

    async def _dispatch(
        self,
        model_id: str,
        prompt_text: str,
        *,
        system_text: str,
        color: str | None,
        delay_seconds: float = 0.0,
    ) -> Response:
        if delay_seconds > 0:
            await asyncio.sleep(delay_seconds)

        provider = self.catalog.provider_for(model_id)
        response = Response(
            model_id=model_id,
            model=self.catalog.display_name(model_id),
            color=color,
        )

        api_key = self.api_key_for(provider)
        if not api_key:
            response.status = RESPONSE_ERROR
            response.error = f"Missing {provider} API key."
            self._report(model_id, "error")
            return response

        adapter = self.adapters.get(provider)
        if adapter is None:
            response.status = RESPONSE_ERROR
            response.error = f"No provider adapter configured for {provider}."
            self._report(model_id, "error")
            return response

        self._report(model_id, "loading")
        started = time.perf_counter()
        try:
            completion = await adapter.send_prompt(
                system_text=system_text,
                user_text=prompt_text,
                model=model_id,
                api_key=api_key,
            )
        except LLMError as exc:
            response.status = RESPONSE_ERROR
            response.error = exc.message
            response.metrics = ResponseMetrics(time=time.perf_counter() - started)
            self._report(model_id, "error")
            return response
        except Exception as exc:
            LOGGER.exception("Unexpected dispatch failure for model=%s", model_id)
            response.status = RESPONSE_ERROR
            response.error = f"API call failed: {exc}"
            response.metrics = ResponseMetrics(time=time.perf_counter() - started)
            self._report(model_id, "error")
            return response

        elapsed = time.perf_counter() - started
        input_tokens = int(completion.input_tokens or 0)
        output_tokens = int(completion.output_tokens or 0)
        response.text = completion.text
        response.status = RESPONSE_SUCCESS
        response.metrics = ResponseMetrics(
            time=elapsed,
            cost=self.pricing.cost_for(model_id, input_tokens, output_tokens),
            tokens=input_tokens + output_tokens,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        self._report(model_id, "complete")
        return response

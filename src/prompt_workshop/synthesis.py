"""Out-of-band synthesis pass over a full workshop session."""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import re
from typing import Callable, Mapping

from prompt_workshop.catalog import ModelCatalog
from prompt_workshop.llm_client import LLMError, ProviderAdapter
from prompt_workshop.models import ITERATION_COMPLETED, Session
from prompt_workshop.validators import validate_json, validate_synthesis_payload

SYNTHESIS_SYSTEM_MESSAGE = (
    "You are a prompt synthesis assistant. Output ONLY valid JSON with this structure: "
    '{ "insights": [{ "title": "string", "desc": "string" }], "finalPrompt": "string" }'
)
DEFAULT_MAX_RESPONSE_CHARS = 500

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")

LOGGER = logging.getLogger("prompt_workshop.synthesis")


class SynthesisError(Exception):
    """Raised when a synthesis pass cannot produce a valid report."""


@dataclass(frozen=True)
class SynthesisTemplate:
    id: str
    name: str
    description: str
    instructions: str


@dataclass(frozen=True)
class Insight:
    title: str
    desc: str


@dataclass(frozen=True)
class SynthesisResult:
    """Structured report: titled insights plus one consolidated prompt."""

    insights: tuple[Insight, ...]
    final_prompt: str


SYNTHESIS_TEMPLATES: dict[str, SynthesisTemplate] = {
    template.id: template
    for template in (
        SynthesisTemplate(
            id="consensus",
            name="Consensus",
            description="Find common ground and areas of agreement across all perspectives.",
            instructions=(
                "You are synthesizing multiple AI perspectives into a consensus view.\n"
                "1. Identify points where all/most perspectives agree\n"
                "2. Highlight the strongest shared recommendations\n"
                "3. Note any unanimous concerns or cautions\n"
                "4. Downplay minor disagreements unless critical\n"
                "5. Present a unified path forward in the final prompt"
            ),
        ),
        SynthesisTemplate(
            id="contrast",
            name="Contrast & Compare",
            description="Highlight differences between perspectives to aid decision-making.",
            instructions=(
                "You are synthesizing multiple AI perspectives by contrasting their viewpoints.\n"
                "1. Identify key differences in approach or recommendation\n"
                "2. Present trade-offs clearly (pros/cons of each view)\n"
                "3. Explain why perspectives differ (different priorities/assumptions)\n"
                "4. Explain which view fits which scenario\n"
                "5. Preserve nuance instead of forcing agreement"
            ),
        ),
        SynthesisTemplate(
            id="debate",
            name="Debate",
            description="Stage the responses as arguments and pick the most compelling case.",
            instructions=(
                "You are moderating a debate between multiple AI perspectives.\n"
                "1. State the strongest argument each perspective makes\n"
                "2. Identify the main points of contention\n"
                "3. Give the rebuttals each side has against the others\n"
                "4. Decide which position is most compelling and why\n"
                "5. Build the final prompt around the winning position"
            ),
        ),
        SynthesisTemplate(
            id="merge",
            name="Merge",
            description="Combine the unique value of every perspective into one whole.",
            instructions=(
                "You are merging multiple AI perspectives into one comprehensive answer.\n"
                "1. Extract the unique value each perspective contributes\n"
                "2. Remove duplication between responses\n"
                "3. Organize the combined material by topic\n"
                "4. Resolve small conflicts by keeping the more specific guidance\n"
                "5. Produce a holistic final prompt that keeps every useful idea"
            ),
        ),
        SynthesisTemplate(
            id="rapid",
            name="Rapid",
            description="Fast, decisive summary for time-sensitive decisions.",
            instructions=(
                "You are producing a rapid synthesis of multiple AI perspectives.\n"
                "1. Lead with the answer\n"
                "2. Keep every insight brief\n"
                "3. Name the next action to take\n"
                "4. Flag only critical risks\n"
                "5. Keep the final prompt short and direct"
            ),
        ),
    )
}


def _clip(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars]}..."


def build_transcript(session: Session, max_response_chars: int = DEFAULT_MAX_RESPONSE_CHARS) -> str:
    """Render the full session history as plain text for the synthesis model."""
    lines = ["=== Original Prompt ==="]
    if session.prompt_data.system:
        lines.append(f"System: {session.prompt_data.system}")
    lines.append(f"User: {session.prompt_data.user}")

    context = session.project_context
    if context is not None:
        lines.extend(
            [
                "",
                "=== Project Context ===",
                f"Project: {context.project_name}",
                f"Framework: {context.framework}",
                f"Language: {context.language}",
            ]
        )

    for iteration in session.iterations:
        state = "(Completed)" if iteration.status == ITERATION_COMPLETED else "(Active)"
        lines.extend(["", f"=== Iteration {iteration.number} {state} ==="])
        if iteration.locked_model_id:
            lines.append(f"Locked to: {iteration.locked_model_id}")
        for round_ in iteration.rounds:
            lines.extend(["", f"--- Round {round_.number} ({round_.type}) ---"])
            if round_.pivot:
                lines.append(f'Human Pivot: "{round_.pivot}"')
            for response in round_.responses:
                if not response.succeeded:
                    continue
                marker = " (WINNER)" if response.is_winner else ""
                lines.extend(["", f"[{response.model}]{marker}:", _clip(response.text, max_response_chars)])
    return "\n".join(lines)


def build_synthesis_prompt(session: Session, template_id: str, max_response_chars: int) -> str:
    template = SYNTHESIS_TEMPLATES.get(template_id)
    if template is None:
        known = ", ".join(SYNTHESIS_TEMPLATES)
        raise SynthesisError(f"Unknown synthesis template: {template_id}. Known templates: {known}")
    history = build_transcript(session, max_response_chars)
    return f"{template.instructions}\n\nSession History:\n{history}"


def _load_json_object(text: str) -> object:
    candidate = text.strip()
    fenced = _FENCE_PATTERN.search(candidate)
    if fenced:
        candidate = fenced.group(1).strip()
    if validate_json(candidate).ok:
        return json.loads(candidate)
    match = _OBJECT_PATTERN.search(candidate)
    if match is None:
        raise SynthesisError("Synthesis model did not return a JSON object.")
    validation = validate_json(match.group(0))
    if not validation.ok:
        raise SynthesisError(f"Synthesis model returned malformed JSON. {validation.message}")
    return json.loads(match.group(0))


def parse_synthesis_response(text: str) -> SynthesisResult:
    """Parse model output into a SynthesisResult, tolerating code fences."""
    payload = _load_json_object(str(text or ""))
    validation = validate_synthesis_payload(payload)
    if not validation.ok:
        raise SynthesisError(f"Synthesis result has the wrong shape. {validation.message}")
    return SynthesisResult(
        insights=tuple(Insight(title=item["title"], desc=item["desc"]) for item in payload["insights"]),
        final_prompt=payload["finalPrompt"],
    )


class SynthesisEngine:
    """One completion call over the whole session; never mutates it."""

    def __init__(
        self,
        *,
        adapters: Mapping[str, ProviderAdapter],
        api_key_for: Callable[[str], str | None],
        catalog: ModelCatalog | None = None,
        max_response_chars: int = DEFAULT_MAX_RESPONSE_CHARS,
    ) -> None:
        self.adapters = dict(adapters)
        self.api_key_for = api_key_for
        self.catalog = catalog or ModelCatalog()
        self.max_response_chars = max_response_chars

    async def synthesize(self, session: Session, template_id: str, model_id: str) -> SynthesisResult:
        prompt_text = build_synthesis_prompt(session, template_id, self.max_response_chars)
        provider = self.catalog.provider_for(model_id)
        api_key = self.api_key_for(provider)
        if not api_key:
            raise SynthesisError(f"Missing {provider} API key for synthesis model {model_id}.")
        adapter = self.adapters.get(provider)
        if adapter is None:
            raise SynthesisError(f"No provider adapter configured for {provider}.")

        try:
            completion = await adapter.send_prompt(
                system_text=SYNTHESIS_SYSTEM_MESSAGE,
                user_text=prompt_text,
                model=model_id,
                api_key=api_key,
                json_mode=True,
            )
        except LLMError as exc:
            raise SynthesisError(f"Synthesis call failed: {exc.message}") from exc

        result = parse_synthesis_response(completion.text)
        LOGGER.info(
            "synthesis session=%s template=%s model=%s insights=%d",
            session.id,
            template_id,
            model_id,
            len(result.insights),
        )
        return result

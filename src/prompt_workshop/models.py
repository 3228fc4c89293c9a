"""Canonical workshop session, iteration, round and response models."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal
import uuid

IterationStatus = Literal["active", "completed"]
RoundType = Literal["initial", "discussion"]
ResponseStatus = Literal["loading", "success", "error"]

ITERATION_ACTIVE: IterationStatus = "active"
ITERATION_COMPLETED: IterationStatus = "completed"
ROUND_INITIAL: RoundType = "initial"
ROUND_DISCUSSION: RoundType = "discussion"
RESPONSE_LOADING: ResponseStatus = "loading"
RESPONSE_SUCCESS: ResponseStatus = "success"
RESPONSE_ERROR: ResponseStatus = "error"
FEEDBACK_VALUES = (-1, 0, 1)


class WorkshopError(Exception):
    """Raised when a command would violate a session invariant."""


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


def display_name_for(model_id: str) -> str:
    """Short display name: the last path segment of a vendor/model id."""
    return model_id.rsplit("/", 1)[-1] or model_id


@dataclass
class PromptData:
    system: str = ""
    user: str = ""


@dataclass
class ProjectContext:
    """External project context folded into system prompts and transcripts."""

    project_name: str = ""
    framework: str = ""
    language: str = ""
    file_tree: str = ""


@dataclass
class ResponseMetrics:
    time: float = 0.0
    cost: float = 0.0
    tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class ResponseFeedback:
    """Qualitative thumbs feedback: -1 negative, 0 neutral, 1 positive."""

    relevance: int = 0
    tone: int = 0
    timestamp: str = field(default_factory=_utc_now_iso)

    def __post_init__(self) -> None:
        for name in ("relevance", "tone"):
            value = getattr(self, name)
            if value not in FEEDBACK_VALUES:
                raise ValueError(f"Feedback {name} must be one of -1, 0, 1; got {value!r}.")


@dataclass
class Response:
    """One model's answer within a round."""

    model_id: str
    model: str = ""
    id: str = field(default_factory=new_id)
    text: str = ""
    metrics: ResponseMetrics = field(default_factory=ResponseMetrics)
    status: ResponseStatus = RESPONSE_LOADING
    error: str | None = None
    is_winner: bool | None = None
    feedback: ResponseFeedback | None = None
    color: str | None = None

    def __post_init__(self) -> None:
        if not self.model:
            self.model = display_name_for(self.model_id)

    @property
    def succeeded(self) -> bool:
        return self.status == RESPONSE_SUCCESS


@dataclass
class Round:
    """One parallel dispatch of a prompt to one or more models."""

    number: int
    type: RoundType = ROUND_INITIAL
    responses: list[Response] = field(default_factory=list)
    pivot: str | None = None
    prompt: str = ""
    timestamp: str = field(default_factory=_utc_now_iso)

    def winner(self) -> Response | None:
        for response in self.responses:
            if response.is_winner:
                return response
        return None

    def model_ids(self) -> list[str]:
        return [response.model_id for response in self.responses]


@dataclass
class Iteration:
    """One fresh-context episode of the workshop, closed by a checkpoint."""

    number: int
    status: IterationStatus = ITERATION_ACTIVE
    rounds: list[Round] = field(default_factory=list)
    locked_model_id: str | None = None
    lock_in_round: int | None = None

    @property
    def latest_round(self) -> Round | None:
        return self.rounds[-1] if self.rounds else None

    @property
    def is_locked(self) -> bool:
        return self.locked_model_id is not None


@dataclass
class Session:
    """Workshop aggregate; mutated only through engine commands."""

    prompt_data: PromptData = field(default_factory=PromptData)
    selected_models: list[str] = field(default_factory=list)
    model_colors: dict[str, str] = field(default_factory=dict)
    iterations: list[Iteration] = field(default_factory=list)
    current_iteration_index: int = 0
    project_context: ProjectContext | None = None
    id: str = field(default_factory=new_id)
    created_at: str = field(default_factory=_utc_now_iso)
    schema_version: int = 1

    @property
    def current_iteration(self) -> Iteration | None:
        if not self.iterations:
            return None
        if not 0 <= self.current_iteration_index < len(self.iterations):
            return None
        return self.iterations[self.current_iteration_index]

    def iter_responses(self):
        """Yield (iteration, round, response) triples in history order."""
        for iteration in self.iterations:
            for round_ in iteration.rounds:
                for response in round_.responses:
                    yield iteration, round_, response


def copy_session(session: Session) -> Session:
    """Return a fully detached copy so commands can commit atomically."""
    return copy.deepcopy(session)

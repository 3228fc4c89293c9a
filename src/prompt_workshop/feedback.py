"""Per-model aggregates over the feedback recorded in a session."""

from __future__ import annotations

from dataclasses import dataclass, field

from prompt_workshop.models import Session


@dataclass
class FeedbackCounts:
    up: int = 0
    down: int = 0
    neutral: int = 0

    def add(self, value: int) -> None:
        if value == 1:
            self.up += 1
        elif value == -1:
            self.down += 1
        else:
            self.neutral += 1

    @property
    def score(self) -> int:
        return self.up - self.down


@dataclass
class ModelFeedbackStats:
    """Counts and averages over the responses a model received feedback on."""

    model_id: str
    total_responses: int = 0
    avg_time: float = 0.0
    avg_cost: float = 0.0
    relevance: FeedbackCounts = field(default_factory=FeedbackCounts)
    tone: FeedbackCounts = field(default_factory=FeedbackCounts)


def model_feedback_stats(session: Session, model_id: str) -> ModelFeedbackStats:
    stats = ModelFeedbackStats(model_id=model_id)
    total_time = 0.0
    total_cost = 0.0
    for _, _, response in session.iter_responses():
        if response.model_id != model_id or response.feedback is None:
            continue
        stats.total_responses += 1
        total_time += response.metrics.time
        total_cost += response.metrics.cost
        stats.relevance.add(response.feedback.relevance)
        stats.tone.add(response.feedback.tone)
    if stats.total_responses:
        stats.avg_time = total_time / stats.total_responses
        stats.avg_cost = total_cost / stats.total_responses
    return stats


def session_feedback_stats(session: Session) -> dict[str, ModelFeedbackStats]:
    """Stats for every model that appears anywhere in the session history."""
    model_ids: list[str] = []
    for _, _, response in session.iter_responses():
        if response.model_id not in model_ids:
            model_ids.append(response.model_id)
    return {model_id: model_feedback_stats(session, model_id) for model_id in model_ids}

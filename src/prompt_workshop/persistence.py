"""JSON persistence helpers for workshop sessions."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

from prompt_workshop.models import (
    FEEDBACK_VALUES,
    ITERATION_ACTIVE,
    Iteration,
    ProjectContext,
    PromptData,
    Response,
    ResponseFeedback,
    ResponseMetrics,
    Round,
    Session,
    copy_session,
)

SUPPORTED_SCHEMA_VERSIONS = {1}
_ITERATION_STATUSES = {"active", "completed"}
_ROUND_TYPES = {"initial", "discussion"}
_RESPONSE_STATUSES = {"loading", "success", "error"}


class SessionStore(Protocol):
    """Save/load boundary for the current workshop session."""

    def save(self, session: Session) -> None: ...

    def load(self) -> Session | None: ...

    def clear(self) -> None: ...


def _serialize_response(response: Response) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": response.id,
        "modelId": response.model_id,
        "model": response.model,
        "text": response.text,
        "metrics": {
            "time": response.metrics.time,
            "cost": response.metrics.cost,
            "tokens": response.metrics.tokens,
            "inputTokens": response.metrics.input_tokens,
            "outputTokens": response.metrics.output_tokens,
        },
        "status": response.status,
        "error": response.error,
        "isWinner": response.is_winner,
        "color": response.color,
        "feedback": None,
    }
    if response.feedback is not None:
        payload["feedback"] = {
            "relevance": response.feedback.relevance,
            "tone": response.feedback.tone,
            "timestamp": response.feedback.timestamp,
        }
    return payload


def _serialize_session(session: Session) -> dict[str, object]:
    project_context = None
    if session.project_context is not None:
        project_context = {
            "projectName": session.project_context.project_name,
            "framework": session.project_context.framework,
            "language": session.project_context.language,
            "fileTree": session.project_context.file_tree,
        }
    return {
        "schema_version": session.schema_version,
        "id": session.id,
        "createdAt": session.created_at,
        "promptData": {"system": session.prompt_data.system, "user": session.prompt_data.user},
        "projectContext": project_context,
        "selectedModels": list(session.selected_models),
        "modelColors": dict(session.model_colors),
        "currentIterationIndex": session.current_iteration_index,
        "iterations": [
            {
                "number": iteration.number,
                "status": iteration.status,
                "lockedModelId": iteration.locked_model_id,
                "lockInRound": iteration.lock_in_round,
                "rounds": [
                    {
                        "number": round_.number,
                        "type": round_.type,
                        "timestamp": round_.timestamp,
                        "pivot": round_.pivot,
                        "prompt": round_.prompt,
                        "responses": [_serialize_response(response) for response in round_.responses],
                    }
                    for round_ in iteration.rounds
                ],
            }
            for iteration in session.iterations
        ],
    }


def _require_dict(value: object, label: str) -> dict[str, object]:
    if not isinstance(value, dict):
        raise ValueError(f"Session file field '{label}' must be an object")
    return value


def _require_list(value: object, label: str) -> list[object]:
    if not isinstance(value, list):
        raise ValueError(f"Session file field '{label}' must be a list")
    return value


def _optional_str(value: object) -> str | None:
    return None if value is None else str(value)


def _optional_int(value: object) -> int | None:
    return None if value is None else int(value)


def _deserialize_response(item: object) -> Response:
    payload = _require_dict(item, "responses[]")
    if "modelId" not in payload:
        raise ValueError("Each response must carry a modelId")
    status = str(payload.get("status", "loading"))
    if status not in _RESPONSE_STATUSES:
        raise ValueError(f"Unsupported response status: {status}")

    metrics_raw = _require_dict(payload.get("metrics") or {}, "metrics")
    feedback = None
    feedback_raw = payload.get("feedback")
    if feedback_raw is not None:
        feedback_payload = _require_dict(feedback_raw, "feedback")
        relevance = int(feedback_payload.get("relevance", 0))
        tone = int(feedback_payload.get("tone", 0))
        if relevance not in FEEDBACK_VALUES or tone not in FEEDBACK_VALUES:
            raise ValueError("Feedback values must be -1, 0 or 1")
        feedback = ResponseFeedback(relevance=relevance, tone=tone)
        if feedback_payload.get("timestamp"):
            feedback.timestamp = str(feedback_payload["timestamp"])

    is_winner_raw = payload.get("isWinner")
    response = Response(
        model_id=str(payload["modelId"]),
        model=str(payload.get("model", "")),
        text=str(payload.get("text", "")),
        metrics=ResponseMetrics(
            time=float(metrics_raw.get("time", 0.0)),
            cost=float(metrics_raw.get("cost", 0.0)),
            tokens=int(metrics_raw.get("tokens", 0)),
            input_tokens=int(metrics_raw.get("inputTokens", 0)),
            output_tokens=int(metrics_raw.get("outputTokens", 0)),
        ),
        status=status,
        error=_optional_str(payload.get("error")),
        is_winner=None if is_winner_raw is None else bool(is_winner_raw),
        feedback=feedback,
        color=_optional_str(payload.get("color")),
    )
    if payload.get("id"):
        response.id = str(payload["id"])
    return response


def _deserialize_round(item: object) -> Round:
    payload = _require_dict(item, "rounds[]")
    round_type = str(payload.get("type", "initial"))
    if round_type not in _ROUND_TYPES:
        raise ValueError(f"Unsupported round type: {round_type}")
    round_ = Round(
        number=int(payload.get("number", 0)),
        type=round_type,
        responses=[
            _deserialize_response(entry)
            for entry in _require_list(payload.get("responses", []), "responses")
        ],
        pivot=_optional_str(payload.get("pivot")),
        prompt=str(payload.get("prompt", "")),
    )
    if payload.get("timestamp"):
        round_.timestamp = str(payload["timestamp"])
    return round_


def _deserialize_iteration(item: object) -> Iteration:
    payload = _require_dict(item, "iterations[]")
    status = str(payload.get("status", "active"))
    if status not in _ITERATION_STATUSES:
        raise ValueError(f"Unsupported iteration status: {status}")
    return Iteration(
        number=int(payload.get("number", 0)),
        status=status,
        rounds=[_deserialize_round(entry) for entry in _require_list(payload.get("rounds", []), "rounds")],
        locked_model_id=_optional_str(payload.get("lockedModelId")),
        lock_in_round=_optional_int(payload.get("lockInRound")),
    )


def _deserialize_session(payload: dict[str, object]) -> Session:
    if "schema_version" not in payload:
        raise ValueError("Session file is missing required field: schema_version")

    schema_version = int(payload["schema_version"])
    if schema_version not in SUPPORTED_SCHEMA_VERSIONS:
        supported = ", ".join(str(v) for v in sorted(SUPPORTED_SCHEMA_VERSIONS))
        raise ValueError(f"Unsupported schema_version={schema_version}; supported versions: {supported}")

    prompt_raw = _require_dict(payload.get("promptData") or {}, "promptData")
    context_raw = payload.get("projectContext")
    project_context = None
    if context_raw is not None:
        context_payload = _require_dict(context_raw, "projectContext")
        project_context = ProjectContext(
            project_name=str(context_payload.get("projectName", "")),
            framework=str(context_payload.get("framework", "")),
            language=str(context_payload.get("language", "")),
            file_tree=str(context_payload.get("fileTree", "")),
        )

    colors_raw = _require_dict(payload.get("modelColors") or {}, "modelColors")
    iterations = [
        _deserialize_iteration(entry)
        for entry in _require_list(payload.get("iterations", []), "iterations")
    ]
    current_index = int(payload.get("currentIterationIndex", max(0, len(iterations) - 1)))
    if iterations and not 0 <= current_index < len(iterations):
        raise ValueError(f"currentIterationIndex={current_index} is out of range")
    if iterations and current_index != len(iterations) - 1:
        raise ValueError(f"currentIterationIndex={current_index} must point at the last iteration")
    for iteration in iterations[:-1]:
        if iteration.status == ITERATION_ACTIVE:
            raise ValueError(f"Only the last iteration may be active; iteration {iteration.number} is active")
    if iterations and iterations[-1].status != ITERATION_ACTIVE:
        raise ValueError("The last iteration must be active")

    session = Session(
        prompt_data=PromptData(
            system=str(prompt_raw.get("system", "")),
            user=str(prompt_raw.get("user", "")),
        ),
        selected_models=[
            str(model_id) for model_id in _require_list(payload.get("selectedModels", []), "selectedModels")
        ],
        model_colors={str(key): str(value) for key, value in colors_raw.items()},
        iterations=iterations,
        current_iteration_index=current_index,
        project_context=project_context,
        schema_version=schema_version,
    )
    if payload.get("id"):
        session.id = str(payload["id"])
    if payload.get("createdAt"):
        session.created_at = str(payload["createdAt"])
    return session


def session_to_text(session: Session) -> str:
    return json.dumps(_serialize_session(session), indent=2, ensure_ascii=True) + "\n"


def save_session(session: Session, path: str | Path) -> None:
    """Serialize a Session to a JSON file."""
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(session_to_text(session), encoding="utf-8")


def load_session(path: str | Path) -> Session:
    """Load a Session from a JSON file with schema validation."""
    target = Path(path).expanduser()
    return load_session_from_text(target.read_text(encoding="utf-8"))


def load_session_from_text(text: str) -> Session:
    """Load a Session from a JSON text payload with schema validation."""
    payload = json.loads(text)
    if not isinstance(payload, dict):
        raise ValueError("Session file root must be an object")
    return _deserialize_session(payload)


class JsonSessionStore:
    """Single-slot store keeping the current session in one JSON file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def save(self, session: Session) -> None:
        save_session(session, self.path)

    def load(self) -> Session | None:
        if not self.path.exists():
            return None
        return load_session(self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class InMemorySessionStore:
    """Store used by tests and ephemeral runs; keeps detached copies."""

    def __init__(self) -> None:
        self._session: Session | None = None
        self.save_count = 0

    def save(self, session: Session) -> None:
        self._session = copy_session(session)
        self.save_count += 1

    def load(self) -> Session | None:
        return None if self._session is None else copy_session(self._session)

    def clear(self) -> None:
        self._session = None

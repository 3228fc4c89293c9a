"""Workshop command engine: the session state machine behind the UI."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence

from prompt_workshop.checkpoint import close_active_iteration, seed_round
from prompt_workshop.colors import assign_model_color
from prompt_workshop.models import (
    ITERATION_ACTIVE,
    ROUND_DISCUSSION,
    ROUND_INITIAL,
    Iteration,
    ProjectContext,
    PromptData,
    ResponseFeedback,
    Round,
    Session,
    WorkshopError,
    copy_session,
)
from prompt_workshop.persistence import InMemorySessionStore, SessionStore
from prompt_workshop.prompts import build_discussion_prompt, build_system_message
from prompt_workshop.round_executor import RoundExecutor
from prompt_workshop.winner import (
    active_iteration,
    apply_patch,
    find_response,
)
from prompt_workshop import winner as winner_rules

MIN_WORKSHOP_MODELS = 2

LOGGER = logging.getLogger("prompt_workshop.engine")


class WorkshopBusyError(WorkshopError):
    """Raised when a command is issued while another one is still running."""


def _normalize_pivot(pivot: str | None) -> str | None:
    text = str(pivot or "").strip()
    return text or None


def _merge_round(session: Session, iteration: Iteration, round_: Round) -> None:
    iteration.rounds.append(round_)
    for response in round_.responses:
        if response.color:
            session.model_colors[response.model_id] = response.color


class WorkshopEngine:
    """Owns the current Session and applies commands to it atomically.

    Each command works on a detached copy and only replaces the held session
    (and persists it) once the whole transition succeeded. Provider failures
    never fail a command; they show up as `error` responses.
    """

    def __init__(self, executor: RoundExecutor, store: SessionStore | None = None) -> None:
        self.executor = executor
        self.store: SessionStore = store if store is not None else InMemorySessionStore()
        self._session: Session | None = None
        self._lock = asyncio.Lock()

    @property
    def session(self) -> Session | None:
        """Detached snapshot of the current session for rendering."""
        return None if self._session is None else copy_session(self._session)

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def _require_session(self) -> Session:
        if self._session is None:
            raise WorkshopError("No workshop in progress. Start a workshop first.")
        return self._session

    def _commit(self, command: str, session: Session) -> Session:
        self.store.save(session)
        self._session = session
        iteration = session.current_iteration
        LOGGER.info(
            "command=%s session=%s iteration=%s round=%s",
            command,
            session.id,
            iteration.number if iteration is not None else "-",
            len(iteration.rounds) if iteration is not None else "-",
        )
        return copy_session(session)

    def _ensure_idle(self, command: str) -> None:
        if self._lock.locked():
            raise WorkshopBusyError(f"Cannot run {command} while another command is in progress.")

    async def _run(self, command: str, operation: Callable[[], Awaitable[Session]]) -> Session:
        self._ensure_idle(command)
        async with self._lock:
            updated = await operation()
            return self._commit(command, updated)

    def _system_text(self, session: Session) -> str:
        return build_system_message(session.prompt_data.system, session.project_context)

    async def _dispatch_discussion_round(self, session: Session, pivot: str | None) -> Session:
        updated = copy_session(session)
        iteration = active_iteration(updated)
        if iteration.locked_model_id is not None:
            model_ids = [iteration.locked_model_id]
        else:
            model_ids = list(updated.selected_models)

        normalized_pivot = _normalize_pivot(pivot)
        prompt_text = build_discussion_prompt(
            updated.prompt_data.user,
            seed_round(updated),
            normalized_pivot,
        )
        round_ = await self.executor.execute_round(
            model_ids,
            prompt_text,
            system_text=self._system_text(updated),
            round_number=len(iteration.rounds) + 1,
            round_type=ROUND_DISCUSSION,
            pivot=normalized_pivot,
            model_colors=updated.model_colors,
        )
        _merge_round(updated, iteration, round_)
        return updated

    async def start_workshop(
        self,
        model_ids: Sequence[str],
        system_prompt: str,
        user_prompt: str,
        project_context: ProjectContext | None = None,
    ) -> Session:
        """Create a new session and run round 1 of iteration 1 on every model."""
        selected = [str(model_id).strip() for model_id in model_ids if str(model_id).strip()]
        if len(set(selected)) != len(selected):
            raise WorkshopError("Each model can only be selected once.")
        if len(selected) < MIN_WORKSHOP_MODELS:
            raise WorkshopError(f"Select at least {MIN_WORKSHOP_MODELS} models to start a workshop.")
        if not str(user_prompt or "").strip():
            raise WorkshopError("User prompt is empty.")

        async def operation() -> Session:
            session = Session(
                prompt_data=PromptData(system=str(system_prompt or ""), user=str(user_prompt)),
                selected_models=selected,
                iterations=[Iteration(number=1, status=ITERATION_ACTIVE)],
                current_iteration_index=0,
                project_context=project_context,
            )
            round_ = await self.executor.execute_round(
                selected,
                session.prompt_data.user,
                system_text=self._system_text(session),
                round_number=1,
                round_type=ROUND_INITIAL,
                model_colors=session.model_colors,
            )
            _merge_round(session, session.iterations[0], round_)
            return session

        return await self._run("start_workshop", operation)

    async def execute_round(self, pivot: str | None = None) -> Session:
        """Append a discussion round built from the previous round and the pivot."""

        async def operation() -> Session:
            return await self._dispatch_discussion_round(self._require_session(), pivot)

        return await self._run("execute_round", operation)

    async def select_winner(self, response_id: str) -> Session:
        async def operation() -> Session:
            return winner_rules.select_winner(self._require_session(), response_id)

        return await self._run("select_winner", operation)

    async def lock_in(self, model_id: str) -> Session:
        async def operation() -> Session:
            return winner_rules.lock_in(self._require_session(), model_id)

        return await self._run("lock_in", operation)

    async def apply_winner_action(
        self,
        action: str,
        winner_response_id: str,
        loser_response_id: str | None = None,
        replacement_model_id: str | None = None,
    ) -> Session:
        """Resolve the keep-both / lock-winner / replace-loser decision."""
        replacement = str(replacement_model_id or "").strip()

        async def operation() -> Session:
            current = self._require_session()
            patch = winner_rules.apply_winner_action(
                current, action, winner_response_id, loser_response_id
            )
            if patch.replace_response_id is None:
                return apply_patch(current, patch)
            if not replacement:
                raise WorkshopError("replace-loser needs a replacement model id.")
            return await self._replace(current, patch.replace_response_id, replacement)

        return await self._run(f"apply_winner_action:{action}", operation)

    async def mark_checkpoint(self, pivot: str | None = None) -> Session:
        """Close the active iteration and run round 1 of the new one.

        Both steps work on one copy that is committed once, so a dispatch that
        blows up leaves the previous session untouched.
        """

        async def operation() -> Session:
            closed = close_active_iteration(self._require_session())
            return await self._dispatch_discussion_round(closed, pivot)

        return await self._run("mark_checkpoint", operation)

    async def _replace(self, session: Session, response_id: str, new_model_id: str) -> Session:
        updated = copy_session(session)
        iteration = active_iteration(updated)
        round_, index = find_response(iteration, response_id)
        old = round_.responses[index]
        if new_model_id in round_.model_ids():
            raise WorkshopError(f"Model {new_model_id} already has a response in round {round_.number}.")
        if new_model_id in updated.selected_models:
            raise WorkshopError(f"Model {new_model_id} is already part of this workshop.")
        if iteration.locked_model_id == old.model_id:
            raise WorkshopError(
                f"Model {old.model_id} is locked in iteration {iteration.number} and cannot be replaced."
            )

        color = assign_model_color(new_model_id, updated.model_colors)
        prompt_text = round_.prompt
        if not prompt_text:
            if round_.type == ROUND_INITIAL:
                prompt_text = updated.prompt_data.user
            else:
                previous = next((r for r in iteration.rounds if r.number == round_.number - 1), None)
                prompt_text = build_discussion_prompt(updated.prompt_data.user, previous, round_.pivot)

        replacement = await self.executor.execute_single(
            new_model_id,
            prompt_text,
            system_text=self._system_text(updated),
            color=color,
        )
        round_.responses[index] = replacement
        updated.model_colors[new_model_id] = color
        updated.selected_models = [
            new_model_id if model_id == old.model_id else model_id for model_id in updated.selected_models
        ]
        return updated

    async def replace_model(self, response_id: str, new_model_id: str) -> Session:
        """Re-run one response slot with a different model, keeping its position."""
        model_id = str(new_model_id or "").strip()
        if not model_id:
            raise WorkshopError("Replacement model id is empty.")

        async def operation() -> Session:
            return await self._replace(self._require_session(), response_id, model_id)

        return await self._run("replace_model", operation)

    async def record_feedback(self, response_id: str, relevance: int, tone: int) -> Session:
        try:
            feedback = ResponseFeedback(relevance=relevance, tone=tone)
        except ValueError as exc:
            raise WorkshopError(str(exc)) from exc

        async def operation() -> Session:
            updated = copy_session(self._require_session())
            round_, index = find_response(active_iteration(updated), response_id)
            round_.responses[index].feedback = feedback
            return updated

        return await self._run("record_feedback", operation)

    def reset(self) -> None:
        """Destroy the current session and clear the store."""
        self._ensure_idle("reset")
        self.store.clear()
        self._session = None
        LOGGER.info("command=reset")

    def load(self) -> Session | None:
        """Restore the last persisted session, if any."""
        self._ensure_idle("load")
        restored = self.store.load()
        self._session = restored
        if restored is not None:
            LOGGER.info("command=load session=%s iterations=%d", restored.id, len(restored.iterations))
        return self.session

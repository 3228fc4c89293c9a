"""Winner selection and model lock transitions on the active iteration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from prompt_workshop.models import (
    ITERATION_ACTIVE,
    Iteration,
    Response,
    Round,
    Session,
    WorkshopError,
    copy_session,
)

WinnerAction = Literal["keep-both", "lock-winner", "replace-loser"]
WINNER_ACTIONS: tuple[WinnerAction, ...] = ("keep-both", "lock-winner", "replace-loser")


@dataclass(frozen=True)
class WinnerActionPatch:
    """Decision taken after a winner pick, applied separately from the choice."""

    action: WinnerAction
    locked_model_id: str | None = None
    lock_in_round: int | None = None
    replace_response_id: str | None = None


def active_iteration(session: Session) -> Iteration:
    """Return the session's active iteration or raise WorkshopError."""
    iteration = session.current_iteration
    if iteration is None:
        raise WorkshopError("Session has no iterations.")
    if iteration.status != ITERATION_ACTIVE:
        raise WorkshopError(f"Iteration {iteration.number} is not active.")
    return iteration


def find_response(iteration: Iteration, response_id: str) -> tuple[Round, int]:
    """Locate a response by id anywhere in the iteration; returns (round, slot index)."""
    for round_ in iteration.rounds:
        for index, response in enumerate(round_.responses):
            if response.id == response_id:
                return round_, index
    raise WorkshopError(f"Response {response_id} not found in iteration {iteration.number}.")


def select_winner(session: Session, response_id: str) -> Session:
    """Flag one successful response in the latest round as the winner."""
    updated = copy_session(session)
    iteration = active_iteration(updated)
    latest = iteration.latest_round
    if latest is None:
        raise WorkshopError(f"Iteration {iteration.number} has no rounds yet.")

    target: Response | None = next(
        (response for response in latest.responses if response.id == response_id), None
    )
    if target is None:
        raise WorkshopError(
            f"Response {response_id} is not part of round {latest.number} in iteration {iteration.number}."
        )
    if not target.succeeded:
        raise WorkshopError(f"Response from {target.model} did not succeed and cannot win.")

    for response in latest.responses:
        if response is target:
            response.is_winner = True
        elif response.is_winner:
            response.is_winner = False
    return updated


def _check_lockable(iteration: Iteration, model_id: str) -> None:
    if iteration.is_locked:
        raise WorkshopError(
            f"Iteration {iteration.number} is already locked to {iteration.locked_model_id}."
        )
    if not any(model_id in round_.model_ids() for round_ in iteration.rounds):
        raise WorkshopError(f"Model {model_id} has no response in iteration {iteration.number}.")


def lock_in(session: Session, model_id: str) -> Session:
    """Restrict every later round of the active iteration to one model."""
    updated = copy_session(session)
    iteration = active_iteration(updated)
    _check_lockable(iteration, model_id)
    iteration.locked_model_id = model_id
    iteration.lock_in_round = len(iteration.rounds)
    return updated


def apply_winner_action(
    session: Session,
    action: str,
    winner_response_id: str,
    loser_response_id: str | None = None,
) -> WinnerActionPatch:
    """Resolve a post-winner decision into a patch without touching the session."""
    if action not in WINNER_ACTIONS:
        raise WorkshopError(f"Unknown winner action: {action}")
    iteration = active_iteration(session)
    winner_round, winner_index = find_response(iteration, winner_response_id)
    winner = winner_round.responses[winner_index]

    if action == "keep-both":
        return WinnerActionPatch(action="keep-both")
    if action == "lock-winner":
        _check_lockable(iteration, winner.model_id)
        return WinnerActionPatch(
            action="lock-winner",
            locked_model_id=winner.model_id,
            lock_in_round=len(iteration.rounds),
        )

    if not loser_response_id:
        raise WorkshopError("replace-loser needs the losing response id.")
    if loser_response_id == winner_response_id:
        raise WorkshopError("The winning response cannot be replaced as the loser.")
    find_response(iteration, loser_response_id)
    return WinnerActionPatch(action="replace-loser", replace_response_id=loser_response_id)


def apply_patch(session: Session, patch: WinnerActionPatch) -> Session:
    """Apply the lock part of a patch; replacements need a dispatch and stay with the engine."""
    updated = copy_session(session)
    if patch.locked_model_id is None:
        return updated
    iteration = active_iteration(updated)
    _check_lockable(iteration, patch.locked_model_id)
    iteration.locked_model_id = patch.locked_model_id
    iteration.lock_in_round = (
        patch.lock_in_round if patch.lock_in_round is not None else len(iteration.rounds)
    )
    return updated

"""Checkpoint transition: close the active iteration and open a fresh one."""

from __future__ import annotations

from prompt_workshop.models import (
    ITERATION_ACTIVE,
    ITERATION_COMPLETED,
    Iteration,
    Round,
    Session,
    copy_session,
)
from prompt_workshop.winner import active_iteration


def close_active_iteration(session: Session) -> Session:
    """Complete the active iteration and append a new, empty, unlocked one.

    Locks are iteration-scoped, so the new iteration always starts unlocked and
    the next round goes back to every selected model.
    """
    updated = copy_session(session)
    closing = active_iteration(updated)
    closing.status = ITERATION_COMPLETED
    updated.iterations.append(Iteration(number=closing.number + 1, status=ITERATION_ACTIVE))
    updated.current_iteration_index = len(updated.iterations) - 1
    return updated


def seed_round(session: Session) -> Round | None:
    """Round whose results feed the next discussion prompt.

    Inside an iteration this is its latest round; a freshly opened iteration
    is seeded from the last round of the iteration before it.
    """
    iteration = session.current_iteration
    if iteration is not None and iteration.rounds:
        return iteration.rounds[-1]
    for previous in reversed(session.iterations[: session.current_iteration_index]):
        if previous.rounds:
            return previous.rounds[-1]
    return None

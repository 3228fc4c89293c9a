"""Pure winner/lock and checkpoint transition tests."""

from __future__ import annotations

import pytest

from prompt_workshop.checkpoint import close_active_iteration, seed_round
from prompt_workshop.models import Iteration, Response, Round, Session, WorkshopError
from prompt_workshop.winner import (
    WinnerActionPatch,
    apply_patch,
    apply_winner_action,
    lock_in,
    select_winner,
)


def _session() -> Session:
    round_one = Round(
        number=1,
        responses=[
            Response(model_id="a/x", id="r1-a", status="success", text="a"),
            Response(model_id="b/y", id="r1-b", status="success", text="b"),
        ],
    )
    return Session(
        selected_models=["a/x", "b/y"],
        iterations=[Iteration(number=1, rounds=[round_one])],
    )


def test_select_winner_returns_new_session() -> None:
    session = _session()

    updated = select_winner(session, "r1-a")

    assert updated.iterations[0].rounds[0].responses[0].is_winner is True
    assert session.iterations[0].rounds[0].responses[0].is_winner is None


def test_select_winner_rejects_unknown_id() -> None:
    with pytest.raises(WorkshopError, match="not part of round 1"):
        select_winner(_session(), "nope")


def test_lock_in_sets_round_count() -> None:
    updated = lock_in(_session(), "b/y")

    assert updated.iterations[0].locked_model_id == "b/y"
    assert updated.iterations[0].lock_in_round == 1


def test_apply_winner_action_builds_patches() -> None:
    session = _session()

    assert apply_winner_action(session, "keep-both", "r1-a", "r1-b") == WinnerActionPatch(action="keep-both")
    lock_patch = apply_winner_action(session, "lock-winner", "r1-a", "r1-b")
    assert lock_patch == WinnerActionPatch(action="lock-winner", locked_model_id="a/x", lock_in_round=1)
    replace_patch = apply_winner_action(session, "replace-loser", "r1-a", "r1-b")
    assert replace_patch.replace_response_id == "r1-b"

    with pytest.raises(WorkshopError, match="cannot be replaced"):
        apply_winner_action(session, "replace-loser", "r1-a", "r1-a")
    with pytest.raises(WorkshopError, match="losing response id"):
        apply_winner_action(session, "replace-loser", "r1-a")


def test_apply_patch_only_applies_lock() -> None:
    session = _session()

    locked = apply_patch(session, WinnerActionPatch(action="lock-winner", locked_model_id="a/x", lock_in_round=1))
    untouched = apply_patch(session, WinnerActionPatch(action="replace-loser", replace_response_id="r1-b"))

    assert locked.iterations[0].locked_model_id == "a/x"
    assert untouched.iterations[0].locked_model_id is None
    assert session.iterations[0].locked_model_id is None


def test_close_active_iteration_appends_unlocked_iteration() -> None:
    session = lock_in(_session(), "a/x")

    closed = close_active_iteration(session)

    assert [iteration.status for iteration in closed.iterations] == ["completed", "active"]
    assert closed.iterations[1].number == 2
    assert closed.iterations[1].locked_model_id is None
    assert closed.iterations[1].rounds == []
    assert closed.current_iteration_index == 1
    assert len(session.iterations) == 1


def test_completed_iteration_rejects_further_transitions() -> None:
    session = close_active_iteration(_session())
    session.current_iteration_index = 0

    with pytest.raises(WorkshopError, match="not active"):
        close_active_iteration(session)
    with pytest.raises(WorkshopError, match="not active"):
        select_winner(session, "r1-a")


def test_seed_round_uses_previous_iteration_when_current_is_empty() -> None:
    session = _session()
    closed = close_active_iteration(session)

    assert seed_round(session).number == 1
    seeded = seed_round(closed)
    assert seeded is not None
    assert [response.id for response in seeded.responses] == ["r1-a", "r1-b"]
    assert seed_round(Session(iterations=[Iteration(number=1)])) is None

import asyncio
import logging

import pytest

from scoreboard.exceptions import (
    ConcurrencyConflict,
    LockReleaseError,
    MatchFinishedError,
    PersistenceError,
    StateError,
)
from scoreboard.match_session import ScoringSession
from scoreboard.models import Score
from scoreboard.rotation import opening_serve
from scoreboard.store import InMemoryMatchStore

run = asyncio.run


# ---------------------------------------------------------
# Helpers
# ---------------------------------------------------------

class FlakyStore(InMemoryMatchStore):

    def __init__(self):
        super().__init__()
        self.fail_save = False
        self.fail_release = False
        self.fail_acquire = False

    async def acquire_lock(self, match_id, device_id):
        if self.fail_acquire:
            raise PersistenceError("network down")
        await super().acquire_lock(match_id, device_id)

    async def release_lock(self, match_id):
        if self.fail_release:
            raise PersistenceError("network down")
        await super().release_lock(match_id)

    async def save_result(self, match_id, winner, final_score):
        if self.fail_save:
            raise PersistenceError("network down")
        await super().save_result(match_id, winner, final_score)


class TickClock:
    """Monotonic clock advancing one second per reading."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        self.now += 1.0
        return self.now


def create_session(store=None, device_id="D1", points_per_set=21, cap_point=30, clock=None):
    store = store or FlakyStore()
    match_id = run(store.create("Final", "double", ["X", "Z"], ["Y", "W"], points_per_set, cap_point))
    match = run(store.get(match_id))
    session = ScoringSession(
        match,
        device_id,
        store,
        opening_serve("A", "X", "Y"),
        clock=clock or TickClock(),
    )
    return session, store


def open_session(**kwargs):
    session, store = create_session(**kwargs)
    run(session.open())
    return session, store


# ---------------------------------------------------------
# Context validation
# ---------------------------------------------------------

def test_missing_match_is_state_error():
    with pytest.raises(StateError):
        ScoringSession(None, "D1", InMemoryMatchStore(), opening_serve("A", "X", "Y"))


def test_missing_initial_serve_is_state_error():
    session, store = create_session()

    with pytest.raises(StateError):
        ScoringSession(session.match, "D1", store, None)


def test_missing_device_is_state_error():
    session, store = create_session()

    with pytest.raises(StateError):
        ScoringSession(session.match, "", store, opening_serve("A", "X", "Y"))


def test_serve_from_wrong_team_is_state_error():
    session, store = create_session()

    with pytest.raises(StateError):
        ScoringSession(session.match, "D1", store, opening_serve("A", "Y", "X"))


def test_rally_before_open_is_refused():
    session, _ = create_session()

    with pytest.raises(StateError):
        session.record_rally("A")


# ---------------------------------------------------------
# Lock
# ---------------------------------------------------------

def test_open_acquires_lock_and_starts_play():
    session, store = open_session()

    match = run(store.get(session.match.id))
    assert match.status == "playing"
    assert match.lock.owner_device_id == "D1"


def test_second_device_is_refused():
    session, store = open_session()
    match = run(store.get(session.match.id))

    other = ScoringSession(match, "D2", store, opening_serve("A", "X", "Y"))

    with pytest.raises(ConcurrencyConflict):
        run(other.open())

    assert other.is_open is False


def test_open_failure_leaves_session_closed():
    store = FlakyStore()
    store.fail_acquire = True
    session, _ = create_session(store=store)

    with pytest.raises(PersistenceError):
        run(session.open())

    assert session.is_open is False


def test_close_releases_lock():
    session, store = open_session()
    session.record_rally("A")

    assert run(session.close()) is None

    match = run(store.get(session.match.id))
    assert match.lock.owner_device_id is None
    assert session.rallies_played == 0


def test_close_failure_is_logged_not_raised(caplog):
    session, store = open_session()
    store.fail_release = True

    with caplog.at_level(logging.WARNING, logger="scoreboard.match_session"):
        error = run(session.close())

    assert isinstance(error, LockReleaseError)
    assert "Failed to release lock" in caplog.text
    assert session.is_open is False


def test_close_without_open_does_nothing():
    session, store = create_session()
    store.fail_release = True

    assert run(session.close()) is None


# ---------------------------------------------------------
# Scoring
# ---------------------------------------------------------

def test_rallies_update_score_and_serve():
    session, _ = open_session()

    session.record_rally("A")
    outcome = session.record_rally("B")

    assert outcome.score == Score(1, 1)
    assert outcome.serving.serving_team == "B"
    assert outcome.serving.server == "W"
    assert session.rallies_played == 2


def test_double_tap_is_suppressed():
    clock_values = iter([10.0, 10.05, 10.5])
    session, _ = open_session(clock=lambda: next(clock_values))

    assert session.record_rally("A") is not None
    assert session.record_rally("A") is None
    assert session.record_rally("B") is not None
    assert session.score == Score(1, 1)


def test_undo_resets_debounce_guard():
    clock_values = iter([10.0, 10.05])
    session, _ = open_session(clock=lambda: next(clock_values))

    session.record_rally("A")
    assert session.undo() is True

    assert session.record_rally("B") is not None
    assert session.score == Score(0, 1)


def test_undo_on_fresh_session_is_noop():
    session, _ = open_session()

    assert session.undo() is False
    assert session.score == Score()


# ---------------------------------------------------------
# Result
# ---------------------------------------------------------

def win_short_set(session):
    for _ in range(3):
        outcome = session.record_rally("A")
    return outcome


def test_win_becomes_pending_and_blocks_rallies():
    session, _ = open_session(points_per_set=3, cap_point=5)

    outcome = win_short_set(session)

    assert outcome.winner == "A"
    assert session.pending_winner == "A"

    with pytest.raises(StateError):
        session.record_rally("B")


def test_undo_cancels_pending_result():
    session, _ = open_session(points_per_set=3, cap_point=5)
    win_short_set(session)

    session.undo()

    assert session.pending_winner is None
    assert session.score == Score(2, 0)
    assert session.record_rally("B").score == Score(2, 1)


def test_confirm_saves_result():
    session, store = open_session(points_per_set=3, cap_point=5)
    win_short_set(session)

    result = run(session.confirm_result())

    assert result.status == "finished"
    stored = run(store.get(session.match.id))
    assert stored.status == "finished"
    assert stored.winner == "A"
    assert stored.final_score == Score(3, 0)
    assert stored.lock.owner_device_id is None


def test_confirm_without_winner_is_state_error():
    session, _ = open_session()
    session.record_rally("A")

    with pytest.raises(StateError):
        run(session.confirm_result())


def test_failed_save_keeps_engine_state():
    session, store = open_session(points_per_set=3, cap_point=5)
    win_short_set(session)
    store.fail_save = True

    with pytest.raises(PersistenceError):
        run(session.confirm_result())

    assert session.score == Score(3, 0)
    assert session.pending_winner == "A"
    assert session.can_undo
    assert run(store.get(session.match.id)).status == "playing"

    # retry succeeds
    store.fail_save = False
    run(session.confirm_result())
    assert run(store.get(session.match.id)).winner == "A"


def test_finished_session_is_terminal():
    session, store = open_session(points_per_set=3, cap_point=5)
    win_short_set(session)
    run(session.confirm_result())

    with pytest.raises(MatchFinishedError):
        session.record_rally("B")

    with pytest.raises(MatchFinishedError):
        run(session.confirm_result())

    assert session.undo() is False

    store.fail_release = True
    assert run(session.close()) is None


def test_finished_match_cannot_be_reopened():
    session, store = open_session(points_per_set=3, cap_point=5)
    win_short_set(session)
    run(session.confirm_result())

    match = run(store.get(session.match.id))
    again = ScoringSession(match, "D1", store, opening_serve("A", "X", "Y"))

    with pytest.raises(MatchFinishedError):
        run(again.open())


def test_closed_session_cannot_confirm():
    session, store = open_session(points_per_set=3, cap_point=5)
    win_short_set(session)
    run(session.close())
    run(store.acquire_lock(session.match.id, "D2"))

    with pytest.raises(StateError):
        run(session.confirm_result())

    stored = run(store.get(session.match.id))
    assert stored.status == "playing"
    assert stored.winner is None
    assert stored.lock.owner_device_id == "D2"


def test_open_checks_lock_held_in_store():
    session, store = create_session()
    run(store.acquire_lock(session.match.id, "D2"))

    with pytest.raises(ConcurrencyConflict):
        run(session.open())

    assert session.is_open is False
    assert run(store.get(session.match.id)).lock.owner_device_id == "D2"

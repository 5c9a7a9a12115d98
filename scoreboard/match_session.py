import logging
import time
from copy import deepcopy
from typing import Callable, Optional

from scoreboard.config import RALLY_DEBOUNCE_MS
from scoreboard.engine import ScoreEngine
from scoreboard.exceptions import (
    LockReleaseError,
    MatchFinishedError,
    PersistenceError,
    StateError,
)
from scoreboard.models import Match, RallyOutcome, ServingState
from scoreboard.session_lock import SessionLock
from scoreboard.store import MatchStore

logger = logging.getLogger(__name__)


class ScoringSession:
    """
    Live scoring of one match from one device.

    Responsibilities:
    - Own the session lock while scoring (open / close)
    - Suppress double taps within the debounce window
    - Keep score, serve and undo history in memory
    - Hand a confirmed result to the match store
    """

    def __init__(
        self,
        match: Match,
        device_id: str,
        store: MatchStore,
        initial_serving: ServingState,
        *,
        lock: Optional[SessionLock] = None,
        debounce_ms: int = RALLY_DEBOUNCE_MS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if match is None:
            raise StateError("Scoring session requires a match")
        if not device_id:
            raise StateError("Scoring session requires a device id")
        if initial_serving is None:
            raise StateError("Scoring session requires an initial serve")

        self.match = deepcopy(match)
        self.device_id = device_id
        self._store = store
        self._lock = lock or SessionLock()
        self._debounce_sec = debounce_ms / 1000.0
        self._clock = clock
        self._last_rally_at: Optional[float] = None

        self._engine = ScoreEngine.for_match(self.match, initial_serving)
        self.is_open = False
        self.is_finished = self.match.is_finished

    # ---------------------------------------------------------
    # State
    # ---------------------------------------------------------

    @property
    def score(self):
        return self._engine.score

    @property
    def serving(self) -> ServingState:
        return self._engine.serving

    @property
    def pending_winner(self) -> Optional[str]:
        if self.is_finished:
            return None
        return self._engine.winner

    @property
    def can_undo(self) -> bool:
        return bool(self._engine.history) and not self.is_finished

    @property
    def rallies_played(self) -> int:
        return self._engine.rallies_played

    # ---------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------

    async def open(self):
        current = await self._store.get(self.match.id)
        await self._lock.acquire(self._store, current, self.device_id)
        self.match.status = current.status
        self.is_open = True

    async def close(self) -> Optional[LockReleaseError]:
        """
        Leave the session. Lock release is best effort: a failure is logged
        and returned, never raised.
        """
        was_open = self.is_open
        self.is_open = False
        self._engine.history.clear()

        if not was_open or self.is_finished:
            return None

        try:
            await self._lock.release(self._store, self.match.id)
        except PersistenceError as e:
            error = LockReleaseError(f"Failed to release lock on match {self.match.id}: {e}")
            error.__cause__ = e
            logger.warning("%s", error)
            return error

        return None

    # ---------------------------------------------------------
    # Scoring
    # ---------------------------------------------------------

    def record_rally(self, team: str) -> Optional[RallyOutcome]:
        """
        Record that `team` won a rally. Returns None when the event is
        swallowed by the double-tap guard.
        """
        self._ensure_scoring()

        now = self._clock()
        if self._last_rally_at is not None and now - self._last_rally_at < self._debounce_sec:
            logger.debug("Ignoring rally for %s inside debounce window", team)
            return None

        outcome = self._engine.add_point(team)
        self._last_rally_at = now

        if outcome.winner is not None:
            # Result dialog takes over; next tap must not be debounced
            self._last_rally_at = None
            logger.info(
                "Match %s: team %s reaches %d-%d",
                self.match.id, outcome.winner, outcome.score.A, outcome.score.B,
            )

        return outcome

    def undo(self) -> bool:
        if self.is_finished:
            return False

        self._last_rally_at = None
        return self._engine.undo()

    async def confirm_result(self) -> Match:
        if self.is_finished:
            raise MatchFinishedError(f"Match {self.match.id} is already finished")

        if not self.is_open:
            raise StateError("Scoring session is not open")

        winner = self._engine.winner
        if winner is None:
            raise StateError("No winner to confirm")

        final_score = self._engine.score
        try:
            await self._store.save_result(self.match.id, winner, final_score)
        except PersistenceError:
            logger.warning("Saving result for match %s failed; state kept", self.match.id)
            raise

        self.is_finished = True
        self.is_open = False
        self.match.status = "finished"
        self.match.winner = winner
        self.match.final_score = final_score
        self.match.lock.owner_device_id = None
        self.match.lock.locked_at = None

        return deepcopy(self.match)

    def _ensure_scoring(self):
        if self.is_finished:
            raise MatchFinishedError(f"Match {self.match.id} is already finished")
        if not self.is_open:
            raise StateError("Scoring session is not open")

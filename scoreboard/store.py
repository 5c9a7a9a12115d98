"""
Match Store collaborator.

`MatchStore` is the contract the scoring core consumes. Two reference
implementations live here: an in-memory store and a store that writes every
record to a single JSON file. Neither is a realtime sync service; change
notification is local to the process.
"""

import json
import logging
import uuid
from abc import ABC, abstractmethod
from copy import deepcopy
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from scoreboard.config import MATCHES_DIR, SCHEMA_VERSION
from scoreboard.exceptions import (
    MatchFinishedError,
    MatchNotFoundError,
    PersistenceError,
    StateError,
)
from scoreboard.models import Match, Score, Team, now_ms
from scoreboard.validation import ensure_valid_match, required_players

logger = logging.getLogger(__name__)

MatchListener = Callable[[List[Match]], None]


class Subscription:
    """Handle returned by `MatchStore.subscribe`. Unsubscribing twice is harmless."""

    def __init__(self, store: "MatchStore", listener: MatchListener):
        self._store = store
        self._listener = listener
        self.active = True

    def unsubscribe(self):
        if not self.active:
            return
        self.active = False
        self._store._remove_listener(self._listener)

    __call__ = unsubscribe


class MatchStore(ABC):

    def __init__(self):
        self._listeners: List[MatchListener] = []

    # ---------------------------------------------------------
    # Contract
    # ---------------------------------------------------------

    @abstractmethod
    async def create(
        self,
        name: str,
        match_type: str,
        team_a: Sequence[str],
        team_b: Sequence[str],
        points_per_set: int,
        cap_point: int,
    ) -> str:
        ...

    @abstractmethod
    async def get(self, match_id: str) -> Match:
        ...

    @abstractmethod
    async def delete(self, match_id: str):
        ...

    @abstractmethod
    async def acquire_lock(self, match_id: str, device_id: str):
        ...

    @abstractmethod
    async def release_lock(self, match_id: str):
        ...

    @abstractmethod
    async def save_result(self, match_id: str, winner: str, final_score: Score):
        ...

    @abstractmethod
    def list_matches(self) -> List[Match]:
        ...

    # ---------------------------------------------------------
    # Change stream
    # ---------------------------------------------------------

    def subscribe(self, on_change: MatchListener) -> Subscription:
        on_change(self.list_matches())
        self._listeners.append(on_change)
        return Subscription(self, on_change)

    def _remove_listener(self, listener: MatchListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self):
        matches = self.list_matches()
        for listener in list(self._listeners):
            try:
                listener(deepcopy(matches))
            except Exception:
                logger.exception("Match listener failed")


class InMemoryMatchStore(MatchStore):

    def __init__(self, clock: Callable[[], int] = now_ms):
        super().__init__()
        self._clock = clock
        self._matches: Dict[str, Match] = {}

    # ---------------------------------------------------------
    # Persistence hook
    # ---------------------------------------------------------

    def _commit(self):
        """Called after every mutation, before listeners are notified."""

    def _write(self):
        self._commit()
        self._notify()

    # ---------------------------------------------------------
    # Contract
    # ---------------------------------------------------------

    def list_matches(self) -> List[Match]:
        return deepcopy(
            sorted(self._matches.values(), key=lambda m: (m.created_at or 0, m.id))
        )

    async def create(
        self,
        name: str,
        match_type: str,
        team_a: Sequence[str],
        team_b: Sequence[str],
        points_per_set: int,
        cap_point: int,
    ) -> str:
        ensure_valid_match(name, match_type, team_a, team_b, points_per_set, cap_point)
        count = required_players(match_type)

        match = Match(
            id=uuid.uuid4().hex,
            name=name.strip(),
            type=match_type,
            team_a=Team(players=tuple(p.strip() for p in list(team_a)[:count] if p and p.strip())),
            team_b=Team(players=tuple(p.strip() for p in list(team_b)[:count] if p and p.strip())),
            points_per_set=points_per_set,
            cap_point=cap_point,
            created_at=self._clock(),
        )
        self._matches[match.id] = match
        self._write()

        logger.info("Created match %s (%s)", match.id, match.name)
        return match.id

    async def get(self, match_id: str) -> Match:
        return deepcopy(self._require(match_id))

    async def delete(self, match_id: str):
        match = self._require(match_id)
        if match.status != "created":
            raise StateError(f"Match {match_id} can only be deleted before play starts")

        del self._matches[match_id]
        self._write()

    async def acquire_lock(self, match_id: str, device_id: str):
        match = self._require(match_id)
        if match.is_finished:
            raise MatchFinishedError(f"Match {match_id} is already finished")

        match.lock.owner_device_id = device_id
        match.lock.locked_at = self._clock()
        if match.status == "created":
            match.status = "playing"
        self._write()

    async def release_lock(self, match_id: str):
        match = self._require(match_id)
        if match.is_finished:
            logger.debug("Match %s finished, lock already cleared", match_id)
            return

        match.lock.owner_device_id = None
        match.lock.locked_at = None
        self._write()

    async def save_result(self, match_id: str, winner: str, final_score: Score):
        match = self._require(match_id)
        if match.is_finished:
            raise MatchFinishedError(f"Match {match_id} is already finished")

        match.status = "finished"
        match.winner = winner
        match.final_score = final_score
        match.completed_at = self._clock()
        match.lock.owner_device_id = None
        match.lock.locked_at = None
        self._write()

        logger.info(
            "Saved result for match %s: %s wins %d-%d",
            match_id, winner, final_score.A, final_score.B,
        )

    def _require(self, match_id: str) -> Match:
        match = self._matches.get(match_id)
        if match is None:
            raise MatchNotFoundError(match_id)
        return match


class JsonFileMatchStore(InMemoryMatchStore):
    """
    Keeps every match record in one JSON document on disk.

    Every mutation rewrites the file. A write failure rolls the in-memory
    records back and surfaces as PersistenceError.
    """

    FILENAME = "matches.json"

    def __init__(self, directory: Optional[Path] = None, clock: Callable[[], int] = now_ms):
        super().__init__(clock=clock)
        self.path = Path(directory or MATCHES_DIR) / self.FILENAME
        self._matches = self._load()
        self._saved: Dict[str, Match] = deepcopy(self._matches)

    def _load(self) -> Dict[str, Match]:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            matches = [Match.from_record(r) for r in data["matches"]]
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise PersistenceError(f"Cannot read {self.path}: {e}") from e

        return {m.id: m for m in matches}

    def _commit(self):
        records = [m.to_record() for m in self._matches.values()]
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(
                    {"schema_version": SCHEMA_VERSION, "matches": records},
                    f,
                    indent=4,
                )
        except OSError as e:
            self._matches = deepcopy(self._saved)
            logger.warning("Failed to write %s: %s", self.path, e)
            raise PersistenceError(f"Cannot write {self.path}: {e}") from e

        self._saved = deepcopy(self._matches)

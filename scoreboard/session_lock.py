"""
Advisory, time-bounded ownership of a match by one device.

The check and the acquire are two separate calls against the store, so two
devices opening the same match within the same instant can both believe
they own it. A lock older than the stale timeout is taken over silently;
the previous owner is not notified.
"""

import logging
from typing import Callable, Optional

from scoreboard.config import LOCK_STALE_TIMEOUT_MS
from scoreboard.exceptions import ConcurrencyConflict, MatchFinishedError
from scoreboard.models import Match, MatchLock, now_ms

logger = logging.getLogger(__name__)


class SessionLock:

    def __init__(
        self,
        stale_timeout_ms: int = LOCK_STALE_TIMEOUT_MS,
        clock: Callable[[], int] = now_ms,
    ):
        self.stale_timeout_ms = stale_timeout_ms
        self._clock = clock

    def is_stale(self, lock: MatchLock, now: Optional[int] = None) -> bool:
        if now is None:
            now = self._clock()
        return now - (lock.locked_at or 0) >= self.stale_timeout_ms

    def is_available(self, match: Match, device_id: str, now: Optional[int] = None) -> bool:
        if match.is_finished:
            return False

        lock = match.lock
        if not lock.is_locked or lock.owner_device_id == device_id:
            return True

        return self.is_stale(lock, now)

    def ensure_available(self, match: Match, device_id: str, now: Optional[int] = None):
        if match.is_finished:
            raise MatchFinishedError(f"Match {match.id} is already finished")

        if self.is_available(match, device_id, now):
            if match.lock.is_locked and match.lock.owner_device_id != device_id:
                logger.info(
                    "Superseding stale lock on match %s held by %s",
                    match.id,
                    match.lock.owner_device_id,
                )
            return

        raise ConcurrencyConflict(
            match.id, match.lock.owner_device_id, match.lock.locked_at
        )

    async def acquire(self, store, match: Match, device_id: str):
        self.ensure_available(match, device_id)
        await store.acquire_lock(match.id, device_id)
        logger.info("Device %s acquired lock on match %s", device_id, match.id)

    async def release(self, store, match_id: str):
        await store.release_lock(match_id)
        logger.info("Released lock on match %s", match_id)

from typing import List, Optional

from scoreboard.models import HistoryEntry


class HistoryStack:
    """
    In-memory undo stack of {score, serving} snapshots.

    One entry is pushed before every rally, so the depth equals the number of
    rallies played in the session. Popping an empty stack is a no-op.
    """

    def __init__(self):
        self._entries: List[HistoryEntry] = []

    def push(self, entry: HistoryEntry):
        self._entries.append(entry)

    def pop(self) -> Optional[HistoryEntry]:
        if not self._entries:
            return None
        return self._entries.pop()

    undo = pop

    def peek(self) -> Optional[HistoryEntry]:
        if not self._entries:
            return None
        return self._entries[-1]

    def clear(self):
        self._entries = []

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

from typing import Dict, Optional


class ScoreboardError(Exception):
    pass


class ValidationError(ScoreboardError):
    """
    Malformed match setup.

    `errors` maps a form field name (name, type, pointsPerSet, capPoint,
    teamA, teamB) to a human readable message.
    """

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        fields = ", ".join(sorted(self.errors))
        super().__init__(f"Invalid match setup: {fields}")


class ConcurrencyConflict(ScoreboardError):
    def __init__(self, match_id: str, owner_device_id: str, locked_at: Optional[int]):
        self.match_id = match_id
        self.owner_device_id = owner_device_id
        self.locked_at = locked_at
        super().__init__(
            f"Match {match_id} is being scored on another device ({owner_device_id})"
        )


class PersistenceError(ScoreboardError):
    pass


class LockReleaseError(PersistenceError):
    pass


class StateError(ScoreboardError):
    pass


class MatchFinishedError(StateError):
    pass


class MatchNotFoundError(StateError, KeyError):
    def __init__(self, match_id: str):
        self.match_id = match_id
        super().__init__(f"Match not found: {match_id}")

    def __str__(self):
        return self.args[0]

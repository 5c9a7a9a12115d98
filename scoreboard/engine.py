from typing import Optional, Sequence, Tuple

from scoreboard.exceptions import StateError
from scoreboard.history import HistoryStack
from scoreboard.models import HistoryEntry, Match, RallyOutcome, Score, ServingState
from scoreboard.rotation import apply_point, validate_rally
from scoreboard.win_detector import detect_winner


class ScoreEngine:
    """
    Scoring engine for one set.

    Responsibilities:
    - Snapshot state before every rally (undo)
    - Delegate serve rotation to the pure rotation function
    - Report candidate set winner after every rally
    - Refuse rallies once a winner is on the board
    """

    def __init__(
        self,
        team_a_players: Sequence[str],
        team_b_players: Sequence[str],
        serving: ServingState,
        points_per_set: int,
        cap_point: int,
        score: Optional[Score] = None,
    ):
        self.team_a_players: Tuple[str, ...] = tuple(team_a_players)
        self.team_b_players: Tuple[str, ...] = tuple(team_b_players)
        self.points_per_set = points_per_set
        self.cap_point = cap_point
        self.score = score if score is not None else Score()
        self.serving = serving
        self.history = HistoryStack()
        self._validate_initial_state()

    @classmethod
    def for_match(cls, match: Match, serving: ServingState) -> "ScoreEngine":
        return cls(
            team_a_players=match.team_a.players,
            team_b_players=match.team_b.players,
            serving=serving,
            points_per_set=match.points_per_set,
            cap_point=match.cap_point,
        )

    # =========================================================
    # PUBLIC API
    # =========================================================

    @property
    def winner(self) -> Optional[str]:
        return detect_winner(self.score, self.points_per_set, self.cap_point)

    @property
    def rallies_played(self) -> int:
        return len(self.history)

    def add_point(self, team: str) -> RallyOutcome:
        if self.winner is not None:
            raise StateError(
                f"Set already won by team {self.winner}; undo or confirm the result"
            )

        new_score, new_serving = apply_point(
            team,
            self.score,
            self.serving,
            self.team_a_players,
            self.team_b_players,
        )

        self.history.push(HistoryEntry(score=self.score, serving=self.serving))
        self.score = new_score
        self.serving = new_serving

        return self.snapshot()

    def undo(self) -> bool:
        entry = self.history.pop()
        if entry is None:
            return False

        self.score = entry.score
        self.serving = entry.serving
        return True

    def snapshot(self) -> RallyOutcome:
        return RallyOutcome(score=self.score, serving=self.serving, winner=self.winner)

    # =========================================================
    # VALIDATION
    # =========================================================

    def _validate_initial_state(self):
        if self.points_per_set < 1:
            raise StateError("points_per_set must be positive")

        if self.cap_point < self.points_per_set:
            raise StateError("cap_point must be >= points_per_set")

        if self.serving is None:
            raise StateError("Initial serving state is required")

        try:
            validate_rally(
                self.serving.serving_team,
                self.serving,
                {"A": self.team_a_players, "B": self.team_b_players},
            )
        except ValueError as e:
            raise StateError(f"Invalid serving context: {e}") from e

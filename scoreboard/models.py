import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Literal, Optional, Tuple, Union

TeamKey = Literal["A", "B"]
MatchType = Literal["single", "double"]
MatchStatus = Literal["created", "playing", "finished"]

TEAM_KEYS: Tuple[str, str] = ("A", "B")


def other_team(team: str) -> str:
    return "B" if team == "A" else "A"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Team:
    players: Tuple[str, ...]

    @property
    def is_double(self) -> bool:
        return len(self.players) > 1

    def partner_of(self, name: str) -> str:
        for p in self.players:
            if p != name:
                return p
        raise ValueError(f"{name} has no partner")

    def to_dict(self) -> Dict[str, Any]:
        return {"players": [{"name": p} for p in self.players]}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Team":
        return Team(players=tuple(str(p["name"]) for p in d.get("players", [])))


@dataclass(frozen=True)
class Score:
    A: int = 0
    B: int = 0

    def of(self, team: str) -> int:
        return self.A if team == "A" else self.B

    def incremented(self, team: str) -> "Score":
        if team == "A":
            return replace(self, A=self.A + 1)
        return replace(self, B=self.B + 1)

    @property
    def total(self) -> int:
        return self.A + self.B

    def to_dict(self) -> Dict[str, int]:
        return {"A": self.A, "B": self.B}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Score":
        return Score(A=int(d["A"]), B=int(d["B"]))


# --- COURT ASSIGNMENT ---

@dataclass(frozen=True)
class Uninitialized:
    """Doubles court positions not derived yet (always the case in singles)."""


@dataclass(frozen=True)
class Assigned:
    """Right service court occupant of each team."""
    team_a_right: str
    team_b_right: str

    def right_of(self, team: str) -> str:
        return self.team_a_right if team == "A" else self.team_b_right

    def with_right(self, team: str, name: str) -> "Assigned":
        if team == "A":
            return replace(self, team_a_right=name)
        return replace(self, team_b_right=name)


CourtAssignment = Union[Uninitialized, Assigned]

UNINITIALIZED = Uninitialized()


@dataclass(frozen=True)
class ServingState:
    serving_team: str
    server: str
    receiving_team: str
    receiver: str
    courts: CourtAssignment = UNINITIALIZED

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "servingTeam": self.serving_team,
            "server": self.server,
            "receivingTeam": self.receiving_team,
            "receiver": self.receiver,
        }
        if isinstance(self.courts, Assigned):
            d["teamARight"] = self.courts.team_a_right
            d["teamBRight"] = self.courts.team_b_right
        return d


@dataclass(frozen=True)
class HistoryEntry:
    score: Score
    serving: ServingState


@dataclass(frozen=True)
class RallyOutcome:
    """State after one rally. `winner` is a candidate set winner, if any."""
    score: Score
    serving: ServingState
    winner: Optional[str] = None


# --- MATCH RECORD ---

@dataclass
class MatchLock:
    owner_device_id: Optional[str] = None
    locked_at: Optional[int] = None

    @property
    def is_locked(self) -> bool:
        return bool(self.owner_device_id)


@dataclass
class Match:
    id: str
    name: str
    type: str
    team_a: Team
    team_b: Team
    points_per_set: int
    cap_point: int
    current_set: int = 1
    status: str = "created"
    created_at: Optional[int] = None
    completed_at: Optional[int] = None
    winner: Optional[str] = None
    final_score: Optional[Score] = None
    lock: MatchLock = field(default_factory=MatchLock)

    @property
    def is_finished(self) -> bool:
        return self.status == "finished"

    def players_of(self, team: str) -> Tuple[str, ...]:
        return self.team_a.players if team == "A" else self.team_b.players

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "teamA": self.team_a.to_dict(),
            "teamB": self.team_b.to_dict(),
            "pointsPerSet": self.points_per_set,
            "capPoint": self.cap_point,
            "currentSet": self.current_set,
            "status": self.status,
            "createdAt": self.created_at,
            "completedAt": self.completed_at,
            "winner": self.winner,
            "finalScore": self.final_score.to_dict() if self.final_score else None,
            "activeDeviceId": self.lock.owner_device_id,
            "lockedAt": self.lock.locked_at,
        }

    @staticmethod
    def from_record(d: Dict[str, Any]) -> "Match":
        final_score = d.get("finalScore")
        return Match(
            id=str(d["id"]),
            name=str(d["name"]),
            type=str(d["type"]),
            team_a=Team.from_dict(d["teamA"]),
            team_b=Team.from_dict(d["teamB"]),
            points_per_set=int(d["pointsPerSet"]),
            cap_point=int(d["capPoint"]),
            current_set=int(d.get("currentSet", 1)),
            status=str(d.get("status", "created")),
            created_at=d.get("createdAt"),
            completed_at=d.get("completedAt"),
            winner=d.get("winner"),
            final_score=Score.from_dict(final_score) if final_score else None,
            lock=MatchLock(
                owner_device_id=d.get("activeDeviceId"),
                locked_at=d.get("lockedAt"),
            ),
        )

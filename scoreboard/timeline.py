from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from scoreboard.engine import ScoreEngine
from scoreboard.models import ServingState


@dataclass(frozen=True)
class RallySnapshot:
    rally_index: int
    score_a: int
    score_b: int
    serving_team: str
    server: str
    receiver: str
    winner: Optional[str]


def build_rally_timeline(
    team_a_players: Sequence[str],
    team_b_players: Sequence[str],
    initial_serving: ServingState,
    winner_sequence: Iterable[str],
    points_per_set: int,
    cap_point: int,
) -> List[RallySnapshot]:
    """
    Replays a set from scratch using winner_sequence.
    Returns one snapshot per rally, stopping at the first set winner.
    Does NOT mutate external state.
    """

    engine = ScoreEngine(
        team_a_players,
        team_b_players,
        initial_serving,
        points_per_set=points_per_set,
        cap_point=cap_point,
    )

    timeline: List[RallySnapshot] = []

    for index, team in enumerate(winner_sequence):

        outcome = engine.add_point(team)

        timeline.append(RallySnapshot(
            rally_index=index + 1,
            score_a=outcome.score.A,
            score_b=outcome.score.B,
            serving_team=outcome.serving.serving_team,
            server=outcome.serving.server,
            receiver=outcome.serving.receiver,
            winner=outcome.winner,
        ))

        if outcome.winner is not None:
            break

    return timeline

"""
Serve rotation for badminton singles and doubles.

`apply_point` is a pure transition: given the team that won a rally it
returns the next score and the next serving/receiving assignment. It never
mutates its inputs and keeps no state between calls.

Doubles court positions are tracked as the right service court occupant of
each team. They are derived once, lazily, from the score and serve in effect
on the first rally of the session (even score -> server on the right) and
afterwards only move when the serving team wins a rally.
"""

from dataclasses import replace
from typing import Dict, Sequence, Tuple

from scoreboard.models import (
    TEAM_KEYS,
    Assigned,
    Score,
    ServingState,
    Uninitialized,
    other_team,
)


def opening_serve(serving_team: str, server: str, receiver: str) -> ServingState:
    """Serving state chosen by the operator before the first rally."""
    return ServingState(
        serving_team=serving_team,
        server=server,
        receiving_team=other_team(serving_team),
        receiver=receiver,
    )


def apply_point(
    scoring_team: str,
    score: Score,
    serving: ServingState,
    team_a_players: Sequence[str],
    team_b_players: Sequence[str],
) -> Tuple[Score, ServingState]:
    rosters = {"A": tuple(team_a_players), "B": tuple(team_b_players)}
    validate_rally(scoring_team, serving, rosters)

    new_score = score.incremented(scoring_team)
    is_double = len(rosters["A"]) > 1 and len(rosters["B"]) > 1

    courts = serving.courts
    if is_double and isinstance(courts, Uninitialized):
        courts = derive_courts(score, serving, rosters)

    # Serve retention
    if scoring_team == serving.serving_team:
        if not is_double:
            return new_score, serving
        return new_score, _retain_serve(serving, courts, rosters)

    # Side-out
    if not is_double:
        return new_score, ServingState(
            serving_team=scoring_team,
            server=serving.receiver,
            receiving_team=serving.serving_team,
            receiver=serving.server,
            courts=serving.courts,
        )
    return new_score, _side_out(serving, courts, rosters)


# =========================================================
# VALIDATION
# =========================================================

def validate_rally(
    scoring_team: str,
    serving: ServingState,
    rosters: Dict[str, Tuple[str, ...]],
):
    if scoring_team not in TEAM_KEYS:
        raise ValueError(f"Invalid scoring team: {scoring_team}")

    for team in TEAM_KEYS:
        if not rosters[team]:
            raise ValueError(f"Team {team} has no players")

    if serving.serving_team not in TEAM_KEYS:
        raise ValueError(f"Invalid serving team: {serving.serving_team}")

    if serving.receiving_team != other_team(serving.serving_team):
        raise ValueError("Receiving team must be the other team")

    if serving.server not in rosters[serving.serving_team]:
        raise ValueError(
            f"Server {serving.server} is not on team {serving.serving_team}"
        )

    if serving.receiver not in rosters[serving.receiving_team]:
        raise ValueError(
            f"Receiver {serving.receiver} is not on team {serving.receiving_team}"
        )


# =========================================================
# COURT ASSIGNMENT
# =========================================================

def _partner(players: Tuple[str, ...], name: str) -> str:
    for p in players:
        if p != name:
            return p
    raise ValueError(f"{name} has no partner")


def _right_occupant(
    team: str,
    score: Score,
    serving: ServingState,
    players: Tuple[str, ...],
) -> str:
    if team == serving.serving_team:
        if score.of(team) % 2 == 0:
            return serving.server
        return _partner(players, serving.server)

    # Receiving team: the receiver stands diagonally opposite the server
    if score.of(serving.serving_team) % 2 == 0:
        return _partner(players, serving.receiver)
    return serving.receiver


def derive_courts(
    score: Score,
    serving: ServingState,
    rosters: Dict[str, Tuple[str, ...]],
) -> Assigned:
    """
    Reconstruct court positions from the pre-rally score and current serve.
    """
    return Assigned(
        team_a_right=_right_occupant("A", score, serving, rosters["A"]),
        team_b_right=_right_occupant("B", score, serving, rosters["B"]),
    )


def _diagonal_receiver(
    server_on_right: bool,
    team: str,
    courts: Assigned,
    players: Tuple[str, ...],
) -> str:
    right = courts.right_of(team)
    if server_on_right:
        return _partner(players, right)
    return right


# =========================================================
# DOUBLES TRANSITIONS
# =========================================================

def _retain_serve(
    serving: ServingState,
    courts: Assigned,
    rosters: Dict[str, Tuple[str, ...]],
) -> ServingState:
    team = serving.serving_team
    players = rosters[team]

    # Only the serving pair switches sides
    courts = courts.with_right(team, _partner(players, courts.right_of(team)))

    server_on_right = serving.server == courts.right_of(team)
    receiver = _diagonal_receiver(
        server_on_right,
        serving.receiving_team,
        courts,
        rosters[serving.receiving_team],
    )

    return replace(serving, receiver=receiver, courts=courts)


def _side_out(
    serving: ServingState,
    courts: Assigned,
    rosters: Dict[str, Tuple[str, ...]],
) -> ServingState:
    new_serving_team = serving.receiving_team
    new_receiving_team = serving.serving_team
    new_server = serving.receiver

    # Nobody moves; the court map is reused as-is
    server_on_right = new_server == courts.right_of(new_serving_team)
    new_receiver = _diagonal_receiver(
        server_on_right,
        new_receiving_team,
        courts,
        rosters[new_receiving_team],
    )

    return ServingState(
        serving_team=new_serving_team,
        server=new_server,
        receiving_team=new_receiving_team,
        receiver=new_receiver,
        courts=courts,
    )

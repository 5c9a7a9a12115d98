from typing import Dict, Sequence

from scoreboard.exceptions import ValidationError

MATCH_TYPES = ("single", "double")


def required_players(match_type: str) -> int:
    return 2 if match_type == "double" else 1


def _team_error(players: Sequence[str], count: int, label: str):
    names = [(p or "").strip() for p in list(players)[:count]]

    if len(names) < count or not all(names):
        return f"Enter {count} player name(s) for team {label}"

    if len(set(names)) != len(names):
        return f"Player names in team {label} must be unique"

    return None


def validate_match_form(
    name: str,
    match_type: str,
    team_a: Sequence[str],
    team_b: Sequence[str],
    points_per_set: int,
    cap_point: int,
) -> Dict[str, str]:
    """
    Field-level validation of a new match. Returns {} when the setup is valid.
    """
    errors: Dict[str, str] = {}

    if not (name or "").strip():
        errors["name"] = "Match name is required"

    if match_type not in MATCH_TYPES:
        errors["type"] = "Match type must be single or double"

    if not points_per_set or points_per_set < 1:
        errors["pointsPerSet"] = "Points per set must be at least 1"

    if not cap_point or (points_per_set and cap_point < points_per_set):
        errors["capPoint"] = "Cap point must be >= points per set"

    count = required_players(match_type)

    team_a_error = _team_error(team_a, count, "A")
    if team_a_error:
        errors["teamA"] = team_a_error

    team_b_error = _team_error(team_b, count, "B")
    if team_b_error:
        errors["teamB"] = team_b_error

    return errors


def ensure_valid_match(
    name: str,
    match_type: str,
    team_a: Sequence[str],
    team_b: Sequence[str],
    points_per_set: int,
    cap_point: int,
):
    errors = validate_match_form(
        name, match_type, team_a, team_b, points_per_set, cap_point
    )
    if errors:
        raise ValidationError(errors)

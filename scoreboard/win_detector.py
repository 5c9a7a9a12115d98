from typing import Optional

from scoreboard.models import Score


def detect_winner(score: Score, points_per_set: int, cap_point: int) -> Optional[str]:
    """
    Candidate set winner for the given score, or None while play continues.

    The cap ends the set regardless of margin; below it a team needs
    `points_per_set` points and a lead of at least 2.
    """
    if score.A >= cap_point:
        return "A"
    if score.B >= cap_point:
        return "B"

    if (score.A >= points_per_set or score.B >= points_per_set) and abs(score.A - score.B) >= 2:
        return "A" if score.A > score.B else "B"

    return None

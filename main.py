import asyncio
import logging

from scoreboard.config import DEFAULT_POINTS_PER_SET, DEFAULT_CAP_POINT
from scoreboard.match_session import ScoringSession
from scoreboard.rotation import opening_serve
from scoreboard.store import InMemoryMatchStore


async def demo():
    store = InMemoryMatchStore()

    match_id = await store.create(
        "Club night final",
        "double",
        ["Lan", "Minh"],
        ["Hoa", "Tuan"],
        DEFAULT_POINTS_PER_SET,
        DEFAULT_CAP_POINT,
    )
    match = await store.get(match_id)

    session = ScoringSession(
        match,
        device_id="demo-device",
        store=store,
        initial_serving=opening_serve("A", "Lan", "Hoa"),
        debounce_ms=0,
    )
    await session.open()

    # Long deuce: 29-29, then the cap decides
    for _ in range(29):
        session.record_rally("A")
        session.record_rally("B")

    outcome = session.record_rally("B")
    print(f"{outcome.score.A}-{outcome.score.B}, candidate winner: {outcome.winner}")
    print(f"Serving: {outcome.serving.server} -> {outcome.serving.receiver}")

    print("\nOperator hits undo...")
    session.undo()
    print(f"Back to {session.score.A}-{session.score.B}")

    outcome = session.record_rally("A")
    result = await session.confirm_result()
    print(f"\nFinal: team {result.winner} wins {outcome.score.A}-{outcome.score.B}")

    await session.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    asyncio.run(demo())

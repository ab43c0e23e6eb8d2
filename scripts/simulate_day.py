"""Play one workday headlessly with a greedy drinking policy.

Useful for balancing the difficulty table: prints the outcome, final stats, and
score breakdown for each difficulty (or just the one passed in).

Usage:
    python scripts/simulate_day.py
    python scripts/simulate_day.py --difficulty senior --seed 7
"""

from __future__ import annotations

import argparse
import logging

from caffeinated.core.constants import OPTIMAL_ZONE_CENTER, Difficulty
from caffeinated.models import GameConfig, GamePhase
from caffeinated.powerups import PowerUpType
from caffeinated.scoring import format_score, score_rank
from caffeinated.session import GameSession

logger = logging.getLogger("simulate_day")

DECISION_INTERVAL_MS = 500.0
HEALTH_TOP_UP_BELOW = 60.0


def _decide(session: GameSession) -> None:
    stats = session.get_stats()
    low, high = session.manager.zone_bounds()

    # Aim a little above center; depletion pulls it back down.
    target = OPTIMAL_ZONE_CENTER + (high - low) / 4
    if stats.caffeine < OPTIMAL_ZONE_CENTER:
        drink = session.drinks.recommend_drink(stats.caffeine, target, session.now)
        if drink is not None:
            session.consume_drink(drink)

    if stats.health < HEALTH_TOP_UP_BELOW:
        session.activate_power_up(PowerUpType.vitamins)
    if not stats.is_in_optimal_zone:
        session.activate_power_up(PowerUpType.shield)
    session.activate_power_up(PowerUpType.double_points)


def simulate(difficulty: Difficulty, seed: int | None) -> GameSession:
    session = GameSession(GameConfig(difficulty=difficulty), seed=seed)
    session.start_game()
    while session.phase == GamePhase.playing:
        session.advance(DECISION_INTERVAL_MS)
        if session.phase == GamePhase.playing:
            _decide(session)
    return session


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--difficulty", choices=[d.value for d in Difficulty], default=None)
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING)

    difficulties = [Difficulty(args.difficulty)] if args.difficulty else list(Difficulty)
    for d in difficulties:
        session = simulate(d, args.seed)
        result = session.result
        if result is None:
            logger.warning("%s: game did not finish", d.value)
            continue
        rank = score_rank(result.breakdown.total_score)
        s = result.final_stats
        print(
            f"{d.value:8} {result.outcome.value:9} "
            f"score={format_score(result.breakdown.total_score):>7} rank={rank.rank:2} "
            f"health={s.health:5.1f} caffeine={s.caffeine:5.1f} drinks={s.drinks_consumed:3d} "
            f"max_streak={result.max_streak:6.1f}s"
        )


if __name__ == "__main__":
    main()

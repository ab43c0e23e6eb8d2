from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable

from caffeinated.models import GameOutcome, GameResult, PlayerStatistics

logger = logging.getLogger(__name__)


class AchievementRarity(StrEnum):
    common = "common"
    uncommon = "uncommon"
    rare = "rare"
    epic = "epic"
    legendary = "legendary"


AchievementCheck = Callable[[GameResult, PlayerStatistics], bool]


@dataclass(frozen=True, slots=True)
class Achievement:
    id: str
    name: str
    description: str
    category: str
    rarity: AchievementRarity
    points: int
    check: AchievementCheck
    max_progress: float | None = None


def _drinks_this_game(result: GameResult, _: PlayerStatistics) -> bool:
    return result.final_stats.drinks_consumed >= 1


def _lifetime_drinks(_: GameResult, lifetime: PlayerStatistics) -> bool:
    return lifetime.total_drinks_consumed >= 50


def _cumulative_play_time(_: GameResult, lifetime: PlayerStatistics) -> bool:
    return lifetime.total_play_time >= 600


def _high_score(result: GameResult, _: PlayerStatistics) -> bool:
    return result.breakdown.total_score >= 10_000


def _streak_at_least(seconds: float) -> AchievementCheck:
    def check(result: GameResult, _: PlayerStatistics) -> bool:
        return result.max_streak >= seconds

    return check


def _perfect_day(result: GameResult, _: PlayerStatistics) -> bool:
    return result.outcome == GameOutcome.victory and result.final_stats.health >= 90


ACHIEVEMENTS: dict[str, Achievement] = {
    a.id: a
    for a in (
        Achievement("firstSip", "First Sip", "Consume your first drink", "drinks", AchievementRarity.common, 10, _drinks_this_game),
        Achievement(
            "caffeineAddict",
            "Caffeine Addict",
            "Consume 50 drinks in total",
            "drinks",
            AchievementRarity.uncommon,
            25,
            _lifetime_drinks,
            max_progress=50,
        ),
        Achievement(
            "survivor",
            "Survivor",
            "Spend 10 minutes on the job across all your workdays",
            "endurance",
            AchievementRarity.rare,
            50,
            _cumulative_play_time,
            max_progress=600,
        ),
        Achievement("highAchiever", "High Achiever", "Score 10,000 points in a single game", "gameplay", AchievementRarity.epic, 75, _high_score),
        Achievement(
            "perfectBalance",
            "Perfect Balance",
            "Stay in the optimal caffeine zone for 5 minutes straight",
            "mastery",
            AchievementRarity.legendary,
            100,
            _streak_at_least(300),
        ),
        Achievement("inTheZone", "In The Zone", "Hold the optimal zone for a full minute", "mastery", AchievementRarity.uncommon, 25, _streak_at_least(60)),
        Achievement("perfectDay", "Perfect Day", "Finish a workday with at least 90 health", "special", AchievementRarity.epic, 75, _perfect_day),
    )
}


def achievement_progress(achievement_id: str, lifetime: PlayerStatistics) -> float | None:
    """Progress toward a cumulative achievement, or None if it has no progress bar."""

    achievement = ACHIEVEMENTS.get(achievement_id)
    if achievement is None:
        raise LookupError(f"No achievement definition for {achievement_id!r}")
    if achievement.max_progress is None:
        return None
    value = {
        "caffeineAddict": lifetime.total_drinks_consumed,
        "survivor": lifetime.total_play_time,
    }.get(achievement_id, 0.0)
    return min(float(value), achievement.max_progress)


class AchievementTracker:
    def __init__(self, catalog: dict[str, Achievement] | None = None) -> None:
        self.catalog = catalog or ACHIEVEMENTS

    def evaluate(
        self,
        result: GameResult,
        lifetime: PlayerStatistics,
        already_unlocked: set[str] | frozenset[str] = frozenset(),
    ) -> list[Achievement]:
        """Achievements newly earned by `result`; `lifetime` must already include this game."""

        unlocked = [a for a in self.catalog.values() if a.id not in already_unlocked and a.check(result, lifetime)]
        for a in unlocked:
            logger.info("achievement unlocked: %s", a.id)
        return unlocked

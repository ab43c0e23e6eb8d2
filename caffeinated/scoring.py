from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import StrEnum

from caffeinated.core.constants import (
    SCORE_MILESTONES,
    SCORE_OPTIMAL_MULTIPLIER,
    SCORE_PER_SECOND,
    Difficulty,
    difficulty_config,
)
from caffeinated.models import GameStats, ScoreBreakdown

logger = logging.getLogger(__name__)

VICTORY_BONUS = 5_000.0
STREAK_BONUS_PER_SECOND = 10.0
HEALTH_BONUS_PER_POINT = 10.0

# Seconds of unbroken zone time a winning run needs before its streak pays out.
PERFECT_STREAK_THRESHOLD = 60.0

# Every Nth power-up activation in one game queues a chain bonus.
POWER_UP_CHAIN_LENGTH = 3


class ScoreEventType(StrEnum):
    perfect_timing = "perfectTiming"
    close_call = "closeCall"
    event_complete = "eventComplete"
    power_up_chain = "powerUpChain"
    comeback = "comeback"
    streak_milestone = "streakMilestone"
    efficiency_bonus = "efficiencyBonus"


BONUS_POINTS: dict[ScoreEventType, float] = {
    ScoreEventType.perfect_timing: 250,
    ScoreEventType.close_call: 500,
    ScoreEventType.event_complete: 1_000,
    ScoreEventType.power_up_chain: 300,
    ScoreEventType.comeback: 750,
    ScoreEventType.streak_milestone: 1_000,
    ScoreEventType.efficiency_bonus: 600,
}


@dataclass(slots=True)
class ScoreMetrics:
    events_completed: int = 0
    power_ups_used: int = 0
    bonuses_earned: float = 0.0


@dataclass(frozen=True, slots=True)
class ScoreRank:
    rank: str
    min_score: float
    color: str
    title: str


# Highest first; score_rank returns the first tier the score reaches.
SCORE_RANKS: tuple[ScoreRank, ...] = (
    ScoreRank("S+", 100_000, "#FFD700", "Legendary"),
    ScoreRank("S", 75_000, "#FFA500", "Master"),
    ScoreRank("A+", 50_000, "#FF69B4", "Expert"),
    ScoreRank("A", 35_000, "#9370DB", "Advanced"),
    ScoreRank("B+", 25_000, "#00CED1", "Skilled"),
    ScoreRank("B", 15_000, "#32CD32", "Proficient"),
    ScoreRank("C+", 10_000, "#90EE90", "Competent"),
    ScoreRank("C", 5_000, "#87CEEB", "Capable"),
    ScoreRank("D", 2_500, "#B0C4DE", "Beginner"),
    ScoreRank("F", 0, "#D3D3D3", "Intern"),
)


def score_rank(score: float) -> ScoreRank:
    for tier in SCORE_RANKS:
        if score >= tier.min_score:
            return tier
    return SCORE_RANKS[-1]


def format_score(score: float) -> str:
    if score >= 1_000_000:
        return f"{score / 1_000_000:.2f}M"
    if score >= 1_000:
        return f"{score / 1_000:.1f}K"
    return f"{int(score):,}"


class ScoringEngine:
    """Per-tick score rate, milestone checks, one-off bonuses, and the end-of-day breakdown.

    Bonuses are queued by `add_bonus` and its trackers and land in the score on
    the next tick that drains them.
    """

    def __init__(self, milestones: tuple[int, ...] = SCORE_MILESTONES) -> None:
        self.milestones = tuple(sorted(milestones))
        self.metrics = ScoreMetrics()
        self._bonus_queue: list[float] = []

    def add_bonus(self, event: ScoreEventType | str, context_value: float | None = None) -> float:
        """Queue the points for `event`; `context_value` scales them by that many percent."""

        kind = ScoreEventType(event)
        bonus = BONUS_POINTS[kind]
        if context_value:
            bonus = float(math.floor(bonus * (1 + context_value / 100)))
        self._bonus_queue.append(bonus)
        self.metrics.bonuses_earned += bonus
        logger.debug("bonus queued: %s +%.0f", kind.value, bonus)
        return bonus

    def track_event_complete(self) -> float:
        self.metrics.events_completed += 1
        return self.add_bonus(ScoreEventType.event_complete)

    def track_power_up_used(self) -> float:
        self.metrics.power_ups_used += 1
        if self.metrics.power_ups_used % POWER_UP_CHAIN_LENGTH == 0:
            return self.add_bonus(ScoreEventType.power_up_chain)
        return 0.0

    @property
    def pending_bonus(self) -> float:
        return sum(self._bonus_queue)

    def drain_bonuses(self) -> float:
        total = sum(self._bonus_queue)
        self._bonus_queue.clear()
        return total

    def reset(self) -> None:
        self.metrics = ScoreMetrics()
        self._bonus_queue.clear()

    def tick_score(
        self,
        delta_ms: float,
        *,
        in_optimal_zone: bool,
        streak_seconds: float,
        difficulty: Difficulty,
        external_multiplier: float = 1.0,
    ) -> float:
        """Points earned over `delta_ms`; never negative."""

        if delta_ms <= 0:
            return 0.0
        zone = SCORE_OPTIMAL_MULTIPLIER if in_optimal_zone else 1.0
        streak_bonus = 1 + max(0.0, streak_seconds) / 60
        points = (
            SCORE_PER_SECOND
            * (delta_ms / 1000)
            * zone
            * difficulty_config(difficulty).score_multiplier
            * streak_bonus
            * max(0.0, external_multiplier)
        )
        return max(0.0, points)

    def check_milestones(self, previous_score: float, new_score: float, reached: list[int] | None = None) -> list[int]:
        """Thresholds crossed going from previous_score to new_score, skipping any already in `reached`."""

        seen = set(reached or ())
        return [m for m in self.milestones if previous_score < m <= new_score and m not in seen]

    def calculate_final_score(
        self,
        stats: GameStats,
        difficulty: Difficulty,
        *,
        victory: bool,
        max_streak: float,
    ) -> ScoreBreakdown:
        multiplier = difficulty_config(difficulty).score_multiplier
        victory_bonus = 0.0
        streak_bonus = 0.0
        health_bonus = 0.0
        # Losing runs keep only their accumulated score.
        if victory:
            victory_bonus = VICTORY_BONUS
            if max_streak >= PERFECT_STREAK_THRESHOLD:
                streak_bonus = math.floor(max_streak) * STREAK_BONUS_PER_SECOND
            health_bonus = float(math.floor(stats.health * HEALTH_BONUS_PER_POINT))
        base = stats.score
        total = (base + victory_bonus + streak_bonus + health_bonus) * multiplier
        return ScoreBreakdown(
            base_score=base,
            victory_bonus=victory_bonus,
            streak_bonus=streak_bonus,
            health_bonus=health_bonus,
            difficulty_multiplier=multiplier,
            total_score=total,
        )

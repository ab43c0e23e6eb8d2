from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from caffeinated.core.constants import (
    CAFFEINE_START,
    DIFFICULTY_TABLE_VERSION,
    HEALTH_MAX,
    Difficulty,
)


class GamePhase(StrEnum):
    menu = "menu"
    playing = "playing"
    paused = "paused"
    game_over = "gameOver"
    victory = "victory"


class GameOutcome(StrEnum):
    victory = "victory"
    pass_out = "passOut"
    explosion = "explosion"


def parse_game_outcome(value: GameOutcome | str) -> GameOutcome | None:
    try:
        return GameOutcome(value)
    except ValueError:
        return None


class GameConfig(BaseModel):
    # Unknown keys are a programmer error, not something to drop on the floor.
    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    difficulty: Difficulty = Difficulty.junior
    sound_enabled: bool = True
    particles_enabled: bool = True
    screen_shake_enabled: bool = True

    # Feature toggles consumed by GameSession when wiring subsystems.
    events_enabled: bool = True
    power_ups_enabled: bool = True
    # Tolerance and drink-combination synergy scale each new drink.
    drink_interactions_enabled: bool = False


class GameStats(BaseModel):
    caffeine: float = Field(default=CAFFEINE_START, ge=0, le=100)
    health: float = Field(default=HEALTH_MAX, ge=0, le=100)
    score: float = Field(default=0.0, ge=0)

    # Seconds of continuous time in the optimal zone; zero whenever outside it.
    streak: float = 0.0

    drinks_consumed: int = 0

    # Real seconds since start_game (not the scaled in-game clock).
    time_elapsed: float = 0.0

    is_in_optimal_zone: bool = True


class GameStateData(BaseModel):
    """Aggregate root for one session. Listeners only ever see deep copies."""

    state: GamePhase = GamePhase.menu
    stats: GameStats = Field(default_factory=GameStats)
    config: GameConfig = Field(default_factory=GameConfig)

    # Clock bookkeeping, all in simulation milliseconds except game_time.
    start_time: float = 0.0
    last_update_time: float = 0.0
    real_time_elapsed: float = 0.0

    # In-game seconds into the workday.
    game_time: float = 0.0

    max_streak: float = 0.0
    time_in_optimal_zone: float = 0.0  # seconds
    outcome: GameOutcome | None = None
    milestones_reached: list[int] = Field(default_factory=list)


@dataclass(frozen=True, slots=True)
class TickModifiers:
    """Everything the engines contribute to one GameStateManager.update call.

    Neutral defaults mean "no drinks digesting, no event, no power-ups".
    """

    caffeine_delta: float = 0.0
    caffeine_multiplier: float = 1.0
    health_multiplier: float = 1.0
    optimal_zone_shift: float = 0.0
    caffeine_depletion_reduction: float = 0.0
    score_multiplier: float = 1.0
    damage_immunity: bool = False


class ActionResult(BaseModel):
    success: bool
    message: str
    caffeine_boost: float = 0.0
    health_boost: float = 0.0


class ScoreBreakdown(BaseModel):
    base_score: float
    victory_bonus: float = 0.0
    streak_bonus: float = 0.0
    health_bonus: float = 0.0
    difficulty_multiplier: float = 1.0
    total_score: float = 0.0


class HighScoreEntry(BaseModel):
    score: float
    difficulty: Difficulty
    date: datetime
    duration: float  # real seconds played
    drinks_consumed: int
    outcome: GameOutcome
    table_version: int = DIFFICULTY_TABLE_VERSION


class PlayerStatistics(BaseModel):
    games_played: int = 0
    games_won: int = 0
    total_play_time: float = 0.0
    high_score: float = 0.0
    average_score: float = 0.0
    total_drinks_consumed: int = 0
    drink_breakdown: dict[str, int] = Field(default_factory=dict)
    time_in_optimal_zone: float = 0.0
    longest_streak: float = 0.0
    perfect_days: int = 0
    crash_count: int = 0
    explosion_count: int = 0


class AchievementRecord(BaseModel):
    id: str
    unlocked_at: datetime


class GameResult(BaseModel):
    """Everything the persistence boundary needs once a game ends."""

    outcome: GameOutcome
    difficulty: Difficulty
    final_stats: GameStats
    breakdown: ScoreBreakdown
    max_streak: float
    time_in_optimal_zone: float
    drink_breakdown: dict[str, int] = Field(default_factory=dict)
    ended_at: datetime

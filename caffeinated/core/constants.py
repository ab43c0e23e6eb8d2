from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

# Bump when any value in DIFFICULTY_TABLE changes; persisted high scores carry it.
DIFFICULTY_TABLE_VERSION = 1

# Timing
FRAME_RATE = 60
TICK_INTERVAL = 1000 / FRAME_RATE
WORKDAY_REAL_TIME = 3 * 60 * 1000  # a full workday lasts 3 real minutes
MAX_FRAME_DELTA = 250

# Caffeine
CAFFEINE_MIN = 0.0
CAFFEINE_MAX = 100.0
CAFFEINE_START = 50.0
OPTIMAL_ZONE_CENTER = 50.0
CAFFEINE_DANGER_LOW = 20.0
CAFFEINE_DANGER_HIGH = 80.0
CAFFEINE_CRITICAL_LOW = 10.0
CAFFEINE_CRITICAL_HIGH = 90.0

# Health
HEALTH_MIN = 0.0
HEALTH_MAX = 100.0
HEALTH_DEPLETION_RATE = 0.5  # per second outside the optimal zone
HEALTH_LOW = 30.0
HEALTH_CRITICAL = 10.0

# Score
SCORE_PER_SECOND = 10.0
SCORE_OPTIMAL_MULTIPLIER = 2.0
SCORE_MILESTONES: tuple[int, ...] = (1_000, 5_000, 10_000, 25_000, 50_000, 100_000)


class Difficulty(StrEnum):
    intern = "intern"
    junior = "junior"
    senior = "senior"
    founder = "founder"


@dataclass(frozen=True, slots=True)
class DifficultyConfig:
    name: str
    workday_length: int  # in-game minutes
    optimal_zone_size: float  # width of the band around OPTIMAL_ZONE_CENTER
    caffeine_depletion_rate: float  # per real second
    score_multiplier: float
    description: str

    @property
    def workday_seconds(self) -> float:
        """Length of the workday in in-game seconds (the victory threshold for `game_time`)."""

        return self.workday_length * 60

    @property
    def game_time_scale(self) -> float:
        """In-game seconds that pass per real second."""

        return (self.workday_length * 60 * 1000) / WORKDAY_REAL_TIME


DIFFICULTY_TABLE: dict[Difficulty, DifficultyConfig] = {
    Difficulty.intern: DifficultyConfig(
        name="Intern",
        workday_length=6 * 60,
        optimal_zone_size=50,
        caffeine_depletion_rate=0.5,
        score_multiplier=1.0,
        description="Easy mode - shorter day, larger optimal zone",
    ),
    Difficulty.junior: DifficultyConfig(
        name="Junior Dev",
        workday_length=8 * 60,
        optimal_zone_size=40,
        caffeine_depletion_rate=0.75,
        score_multiplier=1.5,
        description="Normal mode - standard workday",
    ),
    Difficulty.senior: DifficultyConfig(
        name="Senior Dev",
        workday_length=10 * 60,
        optimal_zone_size=30,
        caffeine_depletion_rate=1.0,
        score_multiplier=2.0,
        description="Hard mode - longer day, smaller optimal zone",
    ),
    Difficulty.founder: DifficultyConfig(
        name="Startup Founder",
        workday_length=14 * 60,
        optimal_zone_size=20,
        caffeine_depletion_rate=1.5,
        score_multiplier=3.0,
        description="Extreme mode - very long day, tiny optimal zone",
    ),
}


def parse_difficulty(value: Difficulty | str) -> Difficulty:
    try:
        return Difficulty(value)
    except ValueError as e:
        allowed = ",".join(d.value for d in Difficulty)
        raise ValueError(f"Unknown difficulty '{value}' (allowed: {allowed})") from e


def difficulty_config(difficulty: Difficulty | str) -> DifficultyConfig:
    return DIFFICULTY_TABLE[parse_difficulty(difficulty)]


def optimal_zone_bounds(zone_size: float) -> tuple[float, float]:
    half = max(0.0, zone_size) / 2
    return OPTIMAL_ZONE_CENTER - half, OPTIMAL_ZONE_CENTER + half


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

import redis

from caffeinated.achievements import AchievementTracker
from caffeinated.core.constants import Difficulty
from caffeinated.models import (
    AchievementRecord,
    GameOutcome,
    GameResult,
    HighScoreEntry,
    PlayerStatistics,
)

logger = logging.getLogger(__name__)

MAX_HIGH_SCORES = 10

PROFILE_KEY_PREFIX = "caffeinated:profile:"  # + {profile_id}:{suffix}


class ProfileStoreError(RuntimeError):
    """The backing store could not be read or written."""


class ProfileStore(Protocol):
    def get_high_scores(self, difficulty: Difficulty | None = None) -> list[HighScoreEntry]: ...

    def add_high_score(self, entry: HighScoreEntry) -> int | None: ...

    def get_achievements(self) -> list[AchievementRecord]: ...

    def unlock_achievement(self, achievement_id: str, unlocked_at: datetime | None = None) -> bool: ...

    def get_statistics(self) -> PlayerStatistics: ...

    def update_statistics(self, **updates: Any) -> PlayerStatistics: ...


def _now() -> datetime:
    return datetime.now(tz=UTC)


class NullProfileStore:
    """Accepts every write and remembers nothing."""

    def get_high_scores(self, difficulty: Difficulty | None = None) -> list[HighScoreEntry]:
        return []

    def add_high_score(self, entry: HighScoreEntry) -> int | None:
        return None

    def get_achievements(self) -> list[AchievementRecord]:
        return []

    def unlock_achievement(self, achievement_id: str, unlocked_at: datetime | None = None) -> bool:
        return False

    def get_statistics(self) -> PlayerStatistics:
        return PlayerStatistics()

    def update_statistics(self, **updates: Any) -> PlayerStatistics:
        return PlayerStatistics.model_validate({**PlayerStatistics().model_dump(), **updates})


@contextmanager
def _redis_errors(action: str) -> Iterator[None]:
    try:
        yield
    except redis.RedisError as e:
        raise ProfileStoreError(f"Failed to {action}: {e}") from e


class RedisProfileStore:
    def __init__(self, r: redis.Redis, profile_id: str = "default") -> None:
        self._r = r
        self.profile_id = profile_id

    def _key(self, suffix: str) -> str:
        return f"{PROFILE_KEY_PREFIX}{self.profile_id}:{suffix}"

    def _high_scores_key(self, difficulty: Difficulty) -> str:
        return self._key(f"highscores:{difficulty.value}")

    def get_high_scores(self, difficulty: Difficulty | None = None) -> list[HighScoreEntry]:
        difficulties = [difficulty] if difficulty is not None else list(Difficulty)
        entries: list[HighScoreEntry] = []
        with _redis_errors("read high scores"):
            for d in difficulties:
                raw = self._r.zrevrange(self._high_scores_key(d), 0, MAX_HIGH_SCORES - 1)
                entries.extend(HighScoreEntry.model_validate_json(item) for item in raw)
        entries.sort(key=lambda e: e.score, reverse=True)
        return entries

    def add_high_score(self, entry: HighScoreEntry) -> int | None:
        """Store `entry`; returns its 1-based rank if it made the top list, else None."""

        key = self._high_scores_key(entry.difficulty)
        member = entry.model_dump_json()
        with _redis_errors("add high score"):
            self._r.zadd(key, {member: entry.score})
            # Keep only the best MAX_HIGH_SCORES.
            self._r.zremrangebyrank(key, 0, -(MAX_HIGH_SCORES + 1))
            rank = self._r.zrevrank(key, member)
        return None if rank is None else int(rank) + 1

    def get_achievements(self) -> list[AchievementRecord]:
        with _redis_errors("read achievements"):
            raw = self._r.hgetall(self._key("achievements"))
        records = [AchievementRecord.model_validate_json(v) for v in raw.values()]
        records.sort(key=lambda a: a.unlocked_at)
        return records

    def unlock_achievement(self, achievement_id: str, unlocked_at: datetime | None = None) -> bool:
        record = AchievementRecord(id=achievement_id, unlocked_at=unlocked_at or _now())
        with _redis_errors("unlock achievement"):
            created = self._r.hsetnx(self._key("achievements"), achievement_id, record.model_dump_json())
        return bool(created)

    def get_statistics(self) -> PlayerStatistics:
        with _redis_errors("read statistics"):
            raw = self._r.get(self._key("statistics"))
        if not raw:
            return PlayerStatistics()
        return PlayerStatistics.model_validate_json(raw)

    def update_statistics(self, **updates: Any) -> PlayerStatistics:
        merged = PlayerStatistics.model_validate({**self.get_statistics().model_dump(), **updates})
        with _redis_errors("write statistics"):
            self._r.set(self._key("statistics"), merged.model_dump_json())
        return merged


@dataclass(frozen=True, slots=True)
class RecordedGame:
    high_score_rank: int | None
    statistics: PlayerStatistics
    new_achievements: list[str] = field(default_factory=list)


def _is_perfect_day(result: GameResult) -> bool:
    return result.outcome == GameOutcome.victory and result.final_stats.health >= 90


def fold_statistics(previous: PlayerStatistics, result: GameResult) -> dict[str, Any]:
    """Lifetime statistic fields after adding `result`."""

    games = previous.games_played + 1
    total = result.breakdown.total_score
    breakdown = dict(previous.drink_breakdown)
    for drink, count in result.drink_breakdown.items():
        breakdown[drink] = breakdown.get(drink, 0) + count

    return {
        "games_played": games,
        "games_won": previous.games_won + (1 if result.outcome == GameOutcome.victory else 0),
        "total_play_time": previous.total_play_time + result.final_stats.time_elapsed,
        "high_score": max(previous.high_score, total),
        "average_score": (previous.average_score * previous.games_played + total) / games,
        "total_drinks_consumed": previous.total_drinks_consumed + result.final_stats.drinks_consumed,
        "drink_breakdown": breakdown,
        "time_in_optimal_zone": previous.time_in_optimal_zone + result.time_in_optimal_zone,
        "longest_streak": max(previous.longest_streak, result.max_streak),
        "perfect_days": previous.perfect_days + (1 if _is_perfect_day(result) else 0),
        "crash_count": previous.crash_count + (1 if result.outcome == GameOutcome.pass_out else 0),
        "explosion_count": previous.explosion_count + (1 if result.outcome == GameOutcome.explosion else 0),
    }


def record_game_result(
    store: ProfileStore,
    result: GameResult,
    *,
    tracker: AchievementTracker | None = None,
) -> RecordedGame:
    """Write everything a finished game contributes to the profile.

    Raises ProfileStoreError if the store fails part way.
    """

    entry = HighScoreEntry(
        score=result.breakdown.total_score,
        difficulty=result.difficulty,
        date=result.ended_at,
        duration=result.final_stats.time_elapsed,
        drinks_consumed=result.final_stats.drinks_consumed,
        outcome=result.outcome,
    )
    rank = store.add_high_score(entry)

    stats = store.update_statistics(**fold_statistics(store.get_statistics(), result))

    unlocked = {a.id for a in store.get_achievements()}
    earned = (tracker or AchievementTracker()).evaluate(result, stats, unlocked)
    new_ids = [a.id for a in earned if store.unlock_achievement(a.id, result.ended_at)]

    logger.info(
        "recorded game: outcome=%s score=%.0f rank=%s achievements=%s",
        result.outcome.value,
        entry.score,
        rank,
        ",".join(new_ids) or "-",
    )
    return RecordedGame(high_score_rank=rank, statistics=stats, new_achievements=new_ids)

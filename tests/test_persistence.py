from __future__ import annotations

from datetime import UTC, datetime, timedelta

import fakeredis
import pytest
import redis

from caffeinated.core.constants import DIFFICULTY_TABLE_VERSION, Difficulty
from caffeinated.models import GameOutcome, GameResult, GameStats, HighScoreEntry, PlayerStatistics, ScoreBreakdown
from caffeinated.persistence import (
    MAX_HIGH_SCORES,
    NullProfileStore,
    ProfileStoreError,
    RedisProfileStore,
    fold_statistics,
    record_game_result,
)

T0 = datetime(2024, 3, 4, 9, 0, tzinfo=UTC)


def _entry(score: float, difficulty: Difficulty = Difficulty.junior, minutes: int = 0) -> HighScoreEntry:
    return HighScoreEntry(
        score=score,
        difficulty=difficulty,
        date=T0 + timedelta(minutes=minutes),
        duration=180,
        drinks_consumed=3,
        outcome=GameOutcome.victory,
    )


def _result(
    outcome: GameOutcome = GameOutcome.victory,
    *,
    total: float = 12_000,
    health: float = 95,
    drinks: int = 2,
    max_streak: float = 75,
    played: float = 180,
) -> GameResult:
    return GameResult(
        outcome=outcome,
        difficulty=Difficulty.junior,
        final_stats=GameStats(health=health, drinks_consumed=drinks, time_elapsed=played, score=total / 2),
        breakdown=ScoreBreakdown(base_score=total / 2, total_score=total, difficulty_multiplier=1.5),
        max_streak=max_streak,
        time_in_optimal_zone=120,
        drink_breakdown={"coffee": drinks},
        ended_at=T0,
    )


def test_high_scores_keep_top_ten_best_first(store: RedisProfileStore) -> None:
    for i in range(MAX_HIGH_SCORES + 2):
        store.add_high_score(_entry(score=(i + 1) * 100, minutes=i))

    scores = store.get_high_scores(Difficulty.junior)
    assert len(scores) == MAX_HIGH_SCORES
    assert [s.score for s in scores] == [float(x * 100) for x in range(12, 2, -1)]
    assert all(s.table_version == DIFFICULTY_TABLE_VERSION for s in scores)


def test_add_high_score_reports_rank(store: RedisProfileStore) -> None:
    assert store.add_high_score(_entry(500)) == 1
    assert store.add_high_score(_entry(900, minutes=1)) == 1
    assert store.add_high_score(_entry(700, minutes=2)) == 2

    for i in range(MAX_HIGH_SCORES):
        store.add_high_score(_entry(10_000 + i, minutes=10 + i))
    assert store.add_high_score(_entry(1, minutes=99)) is None


def test_high_scores_are_split_by_difficulty(store: RedisProfileStore) -> None:
    store.add_high_score(_entry(300, Difficulty.intern))
    store.add_high_score(_entry(800, Difficulty.founder))

    assert [s.difficulty for s in store.get_high_scores(Difficulty.intern)] == [Difficulty.intern]
    assert [s.score for s in store.get_high_scores()] == [800, 300]


def test_profiles_are_isolated(fake_redis: fakeredis.FakeRedis) -> None:
    a = RedisProfileStore(fake_redis, "a")
    b = RedisProfileStore(fake_redis, "b")
    a.add_high_score(_entry(100))
    assert b.get_high_scores() == []


def test_unlock_achievement_is_idempotent(store: RedisProfileStore) -> None:
    assert store.unlock_achievement("firstSip", T0) is True
    assert store.unlock_achievement("firstSip", T0 + timedelta(days=1)) is False

    records = store.get_achievements()
    assert [r.id for r in records] == ["firstSip"]
    assert records[0].unlocked_at == T0


def test_statistics_round_trip(store: RedisProfileStore) -> None:
    assert store.get_statistics().games_played == 0
    updated = store.update_statistics(games_played=3, high_score=4_200)
    assert updated.games_played == 3
    assert store.get_statistics().high_score == 4_200


def test_fold_statistics() -> None:
    first = fold_statistics(NullProfileStore().get_statistics(), _result(total=10_000))
    assert first["games_played"] == 1
    assert first["games_won"] == 1
    assert first["average_score"] == 10_000
    assert first["perfect_days"] == 1
    assert first["drink_breakdown"] == {"coffee": 2}

    second = fold_statistics(PlayerStatistics(**first), _result(GameOutcome.explosion, total=2_000, health=0))
    assert second["games_played"] == 2
    assert second["games_won"] == 1
    assert second["average_score"] == pytest.approx(6_000)
    assert second["high_score"] == 10_000
    assert second["explosion_count"] == 1
    assert second["drink_breakdown"] == {"coffee": 4}
    assert second["total_play_time"] == 360


def test_record_game_result_writes_everything(store: RedisProfileStore) -> None:
    recorded = record_game_result(store, _result())

    assert recorded.high_score_rank == 1
    assert recorded.statistics.games_played == 1
    assert set(recorded.new_achievements) == {"firstSip", "highAchiever", "inTheZone", "perfectDay"}
    assert {a.id for a in store.get_achievements()} == set(recorded.new_achievements)

    again = record_game_result(store, _result())
    assert again.new_achievements == []
    assert store.get_statistics().games_played == 2


def test_null_store_accepts_results() -> None:
    recorded = record_game_result(NullProfileStore(), _result())
    assert recorded.high_score_rank is None
    assert recorded.statistics.games_played == 1
    assert recorded.new_achievements == []


def test_redis_errors_are_wrapped(store: RedisProfileStore, monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(*args: object, **kwargs: object) -> None:
        raise redis.ConnectionError("connection refused")

    monkeypatch.setattr(store._r, "zadd", _boom)
    monkeypatch.setattr(store._r, "get", _boom)

    with pytest.raises(ProfileStoreError, match="add high score"):
        store.add_high_score(_entry(1))
    with pytest.raises(ProfileStoreError, match="read statistics"):
        store.get_statistics()

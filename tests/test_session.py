from __future__ import annotations

from datetime import datetime
from typing import Any

import pytest

from caffeinated.core.constants import Difficulty
from caffeinated.drinks import DrinkType
from caffeinated.events import EventType
from caffeinated.models import (
    AchievementRecord,
    GameConfig,
    GameOutcome,
    GamePhase,
    HighScoreEntry,
    PlayerStatistics,
)
from caffeinated.persistence import ProfileStoreError, RedisProfileStore
from caffeinated.powerups import PowerUpType
from caffeinated.session import GameSession


class BrokenStore:
    def get_high_scores(self, difficulty: Difficulty | None = None) -> list[HighScoreEntry]:
        raise ProfileStoreError("down")

    def add_high_score(self, entry: HighScoreEntry) -> int | None:
        raise ProfileStoreError("down")

    def get_achievements(self) -> list[AchievementRecord]:
        raise ProfileStoreError("down")

    def unlock_achievement(self, achievement_id: str, unlocked_at: datetime | None = None) -> bool:
        raise ProfileStoreError("down")

    def get_statistics(self) -> PlayerStatistics:
        raise ProfileStoreError("down")

    def update_statistics(self, **updates: Any) -> PlayerStatistics:
        raise ProfileStoreError("down")


def test_actions_outside_playing_fail_softly() -> None:
    session = GameSession()
    assert not session.consume_drink(DrinkType.coffee).success
    assert not session.activate_power_up(PowerUpType.shield).success
    assert not session.force_event(EventType.bug_fix).success
    assert session.get_stats().drinks_consumed == 0


def test_instant_drink_is_applied_once(quiet_session: GameSession) -> None:
    s = quiet_session
    s.start_game()
    s.manager.update_caffeine_level(-30)  # 20

    result = s.consume_drink(DrinkType.energy_drink)
    assert result.success
    assert s.get_stats().caffeine == pytest.approx(70)
    assert s.get_stats().drinks_consumed == 1

    s.advance(100)
    assert 69 < s.get_stats().caffeine <= 70


def test_slow_drink_arrives_over_time(quiet_session: GameSession) -> None:
    s = quiet_session
    s.start_game()
    s.manager.update_caffeine_level(-20)  # 30

    assert s.consume_drink(DrinkType.tea).success
    assert s.get_stats().caffeine == pytest.approx(30)

    s.advance(1_500)
    # ~7.5 released, ~1.1 depleted
    assert s.get_stats().caffeine == pytest.approx(30 + 7.5 - 0.75 * 1.5, abs=0.5)


def test_morning_meeting_blocks_drinks() -> None:
    s = GameSession(seed=2)
    s.start_game()
    assert s.force_event(EventType.morning_meeting).success

    result = s.consume_drink(DrinkType.coffee)
    assert not result.success
    assert "Morning Meeting" in result.message
    assert s.get_stats().drinks_consumed == 0


def test_unknown_ids_fail_with_message(quiet_session: GameSession) -> None:
    s = quiet_session
    s.start_game()
    assert "Unknown drink" in s.consume_drink("mate").message
    assert "Unknown power-up" in s.activate_power_up("jetpack").message
    assert "Unknown event" in s.force_event("fireDrill").message


def test_power_nap_boosts_and_blocks_drinks_for_its_cost(quiet_session: GameSession) -> None:
    s = quiet_session
    s.start_game()
    s.manager.update_caffeine_level(-30)  # 20
    s.manager.update_health_level(-50)  # 50

    result = s.activate_power_up(PowerUpType.power_nap)
    assert result.success
    assert result.caffeine_boost == 30
    stats = s.get_stats()
    assert stats.caffeine == pytest.approx(50)
    assert stats.health == pytest.approx(65)

    napping = s.consume_drink(DrinkType.tea)
    assert not napping.success
    assert "napping" in napping.message

    s.advance(5_100)
    assert s.consume_drink(DrinkType.tea).success


def test_vitamins_restore_health_and_multiply_score(quiet_session: GameSession) -> None:
    s = quiet_session
    s.start_game()
    s.manager.update_health_level(-40)
    assert s.activate_power_up(PowerUpType.vitamins).health_boost == 25
    assert s.get_stats().health == pytest.approx(85)
    assert s.power_ups.get_combined_effect().productivity_multiplier == 1.5


def test_full_quiet_day_ends_in_victory_and_records_result(store: RedisProfileStore) -> None:
    s = GameSession(GameConfig(difficulty=Difficulty.intern, events_enabled=False), store=store, seed=4)
    s.start_game()
    s.consume_drink(DrinkType.coffee)
    s.advance(181_000)

    assert s.phase == GamePhase.victory
    assert s.result is not None
    assert s.result.outcome == GameOutcome.victory
    assert s.result.drink_breakdown == {"coffee": 1}
    assert s.recorded is not None
    assert s.recorded.high_score_rank == 1
    assert "firstSip" in s.recorded.new_achievements

    scores = store.get_high_scores(Difficulty.intern)
    assert len(scores) == 1
    assert scores[0].score == pytest.approx(s.result.breakdown.total_score)
    assert store.get_statistics().games_won == 1


def test_result_recorded_once_per_game(store: RedisProfileStore) -> None:
    s = GameSession(store=store)
    s.start_game()
    s.end_game(GameOutcome.pass_out)
    s.end_game(GameOutcome.pass_out)
    s.return_to_menu()
    assert store.get_statistics().games_played == 1
    assert store.get_statistics().crash_count == 1


def test_broken_store_never_breaks_the_game() -> None:
    s = GameSession(store=BrokenStore())
    s.start_game()
    assert s.end_game(GameOutcome.explosion)
    assert s.phase == GamePhase.game_over
    assert s.result is not None
    assert s.recorded is None


def test_restart_resets_subsystems(quiet_session: GameSession) -> None:
    s = quiet_session
    s.start_game()
    s.consume_drink(DrinkType.coffee)
    s.activate_power_up(PowerUpType.shield)
    s.advance(2_000)
    s.end_game(GameOutcome.victory)

    assert s.start_game()
    assert s.now == 0
    assert s.power_ups.active_power_ups() == []
    assert s.drinks.consumption_stats().total_drinks_consumed == 0
    assert s.consume_drink(DrinkType.coffee).success
    assert s.result is None


def test_return_to_menu_stops_the_loop(quiet_session: GameSession) -> None:
    s = quiet_session
    s.start_game()
    s.advance(1_000)
    assert s.return_to_menu()
    assert s.phase == GamePhase.menu
    assert s.advance(1_000) == 0
    assert s.get_stats().score == 0


def test_snapshot_is_json_ready(quiet_session: GameSession) -> None:
    s = quiet_session
    s.start_game()
    s.consume_drink(DrinkType.coffee)
    s.advance(500)

    snap = s.snapshot()
    assert snap["state"]["state"] == "playing"
    assert snap["optimal_zone"] == {"low": 30.0, "high": 70.0}
    coffee = next(d for d in snap["drinks"] if d["id"] == "coffee")
    assert coffee["available"] is False
    assert coffee["releasing"] is True
    assert snap["result"] is None


def test_notices_reach_session_observers(quiet_session: GameSession) -> None:
    s = quiet_session
    seen = []
    s.on_notice(seen.append)
    s.start_game()
    s.manager.update_caffeine_level(-45)
    s.advance(100)
    assert any(n.type == "critical" for n in seen)


def test_end_game_with_unknown_outcome_is_refused(quiet_session: GameSession) -> None:
    s = quiet_session
    s.start_game()
    assert s.end_game("bogus") is False
    assert s.phase == GamePhase.playing
    assert s.result is None


def test_completed_event_adds_a_bonus_to_the_score() -> None:
    s = GameSession(seed=2)
    bonuses: list[float] = []
    s.loop.on_update(lambda _step, result: bonuses.append(result.bonus))
    s.start_game()
    assert s.force_event(EventType.code_review).success

    s.advance(21_000)
    assert s.events.get_active_event() is None
    assert sum(bonuses) == 1_000
    assert s.scoring.metrics.events_completed == 1


def test_every_third_power_up_queues_a_chain_bonus(quiet_session: GameSession) -> None:
    s = quiet_session
    s.start_game()
    assert s.activate_power_up(PowerUpType.shield).success
    assert s.activate_power_up(PowerUpType.protein_bar).success
    assert s.scoring.pending_bonus == 0

    s.advance(15_100)  # shield expires
    assert s.activate_power_up(PowerUpType.double_points).success
    assert s.scoring.pending_bonus == 300
    assert s.snapshot()["pending_bonus"] == 300

    s.advance(100)
    assert s.scoring.pending_bonus == 0


def test_drink_interactions_follow_config() -> None:
    plain = GameSession(GameConfig(events_enabled=False))
    assert plain.drinks.interactions_enabled is False

    s = GameSession(GameConfig(events_enabled=False, drink_interactions_enabled=True))
    s.start_game()
    s.manager.update_caffeine_level(-40)  # 10
    assert s.consume_drink(DrinkType.espresso).caffeine_boost == 40
    assert s.consume_drink(DrinkType.energy_drink).caffeine_boost == pytest.approx(38)
    assert s.get_stats().caffeine == pytest.approx(88)
    assert s.snapshot()["tolerance"] == pytest.approx(0.9)

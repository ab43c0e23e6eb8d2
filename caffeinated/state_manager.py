from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from caffeinated.core.constants import (
    CAFFEINE_CRITICAL_HIGH,
    CAFFEINE_MAX,
    CAFFEINE_MIN,
    HEALTH_DEPLETION_RATE,
    HEALTH_MAX,
    HEALTH_MIN,
    Difficulty,
    DifficultyConfig,
    clamp,
    difficulty_config,
    optimal_zone_bounds,
    parse_difficulty,
)
from caffeinated.core.fsm import GameFSM
from caffeinated.models import (
    GameConfig,
    GameOutcome,
    GamePhase,
    GameStateData,
    GameStats,
    TickModifiers,
    parse_game_outcome,
)
from caffeinated.scoring import ScoringEngine

logger = logging.getLogger(__name__)

StateListener = Callable[[GameStateData], None]

NO_MODIFIERS = TickModifiers()


@dataclass(frozen=True, slots=True)
class TickResult:
    delta_ms: float = 0.0
    milestones: list[int] = field(default_factory=list)
    outcome: GameOutcome | None = None
    bonus: float = 0.0


class GameStateManager:
    """Single writer for GameStateData.

    Every mutating call ends with exactly one listener notification carrying a
    deep copy, so subscribers can never reach the live aggregate.
    """

    def __init__(self, config: GameConfig | None = None, *, scoring: ScoringEngine | None = None) -> None:
        self._data = GameStateData(config=config or GameConfig())
        self._fsm = GameFSM(self._data)
        self._scoring = scoring or ScoringEngine()
        self._listeners: list[StateListener] = []
        self._has_baseline = False
        # Zone shift from the last tick's modifiers; applied to out-of-tick caffeine changes too.
        self._zone_shift = 0.0

    # --- read side ---

    def get_state(self) -> GameStateData:
        return self._data.model_copy(deep=True)

    def get_stats(self) -> GameStats:
        return self._data.stats.model_copy(deep=True)

    def get_config(self) -> GameConfig:
        return self._data.config.model_copy(deep=True)

    @property
    def phase(self) -> GamePhase:
        return self._data.state

    @property
    def difficulty(self) -> DifficultyConfig:
        return difficulty_config(self._data.config.difficulty)

    def zone_bounds(self, zone_shift: float = 0.0) -> tuple[float, float]:
        return optimal_zone_bounds(self.difficulty.optimal_zone_size + zone_shift)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.get_state()
        for listener in list(self._listeners):
            listener(snapshot)

    # --- transitions ---

    def start_game(self, current_time: float | None = None) -> bool:
        """Begin a fresh run. Without `current_time` the first `update` sets the baseline."""

        previous = self._data.state
        if not self._fsm.fire("start_game"):
            return False

        d = self._data
        d.stats = GameStats()
        d.game_time = 0.0
        d.real_time_elapsed = 0.0
        d.max_streak = 0.0
        d.time_in_optimal_zone = 0.0
        d.outcome = None
        d.milestones_reached = []
        self._zone_shift = 0.0
        self._scoring.reset()
        if current_time is None:
            self._has_baseline = False
            d.start_time = 0.0
            d.last_update_time = 0.0
        else:
            self._has_baseline = True
            d.start_time = current_time
            d.last_update_time = current_time

        logger.info("game started: difficulty=%s from=%s", d.config.difficulty.value, previous.value)
        self._notify()
        return True

    def pause_game(self) -> bool:
        if not self._fsm.fire("pause_game"):
            return False
        logger.info("game paused")
        self._notify()
        return True

    def resume_game(self, current_time: float | None = None) -> bool:
        if not self._fsm.fire("resume_game"):
            return False
        if current_time is not None:
            # Time spent paused never counts.
            self._data.last_update_time = current_time
        logger.info("game resumed")
        self._notify()
        return True

    def end_game(self, outcome: GameOutcome | str) -> bool:
        if self._data.state != GamePhase.playing:
            return False
        parsed = parse_game_outcome(outcome)
        if parsed is None:
            logger.debug("end_game ignored unknown outcome %r", outcome)
            return False
        self._finish(parsed)
        self._notify()
        return True

    def _finish(self, outcome: GameOutcome) -> None:
        event = "win" if outcome == GameOutcome.victory else "lose"
        self._fsm.fire(event)
        self._data.outcome = outcome
        logger.info(
            "game ended: outcome=%s score=%.0f game_time=%.0fs",
            outcome.value,
            self._data.stats.score,
            self._data.game_time,
        )

    def return_to_menu(self) -> bool:
        if not self._fsm.fire("return_to_menu"):
            return False
        config = self._data.config.model_copy(deep=True)
        self._data = GameStateData(config=config)
        self._fsm = GameFSM(self._data)
        self._has_baseline = False
        self._zone_shift = 0.0
        self._scoring.reset()
        logger.info("returned to menu")
        self._notify()
        return True

    # --- direct stat mutation ---

    def update_caffeine_level(self, delta: float) -> None:
        s = self._data.stats
        s.caffeine = clamp(s.caffeine + delta, CAFFEINE_MIN, CAFFEINE_MAX)
        self._refresh_zone()
        self._notify()

    def update_health_level(self, delta: float) -> None:
        s = self._data.stats
        s.health = clamp(s.health + delta, HEALTH_MIN, HEALTH_MAX)
        self._notify()

    def consume_drink(self, amount: float) -> bool:
        """Count a drink and apply its immediate boost; ignored outside `playing`."""

        if self._data.state != GamePhase.playing:
            return False
        s = self._data.stats
        s.caffeine = clamp(s.caffeine + amount, CAFFEINE_MIN, CAFFEINE_MAX)
        s.drinks_consumed += 1
        self._refresh_zone()
        self._notify()
        return True

    def set_difficulty(self, difficulty: Difficulty | str) -> None:
        self.set_config(difficulty=parse_difficulty(difficulty))

    def set_config(self, **updates: Any) -> None:
        merged = {**self._data.config.model_dump(), **updates}
        self._data.config = GameConfig.model_validate(merged)
        self._notify()

    def _refresh_zone(self) -> bool:
        s = self._data.stats
        low, high = self.zone_bounds(self._zone_shift)
        s.is_in_optimal_zone = low <= s.caffeine <= high
        if not s.is_in_optimal_zone:
            s.streak = 0.0
        return s.is_in_optimal_zone

    # --- tick ---

    def update(self, current_time: float, modifiers: TickModifiers | None = None) -> TickResult:
        d = self._data
        if d.state != GamePhase.playing:
            return TickResult()

        if not self._has_baseline:
            self._has_baseline = True
            d.start_time = current_time
            d.last_update_time = current_time

        m = modifiers or NO_MODIFIERS
        delta_ms = max(0.0, current_time - d.last_update_time)
        d.last_update_time = max(d.last_update_time, current_time)
        dt = delta_ms / 1000
        diff = self.difficulty
        s = d.stats

        d.real_time_elapsed += delta_ms
        d.game_time += dt * diff.game_time_scale
        s.time_elapsed = d.real_time_elapsed / 1000

        depletion = diff.caffeine_depletion_rate * m.caffeine_multiplier * (1 - m.caffeine_depletion_reduction) * dt
        s.caffeine = clamp(s.caffeine - depletion + m.caffeine_delta, CAFFEINE_MIN, CAFFEINE_MAX)

        self._zone_shift = m.optimal_zone_shift
        in_zone = self._refresh_zone()

        if not in_zone and not m.damage_immunity:
            s.health = clamp(s.health - HEALTH_DEPLETION_RATE * m.health_multiplier * dt, HEALTH_MIN, HEALTH_MAX)

        if in_zone:
            s.streak += dt
            d.time_in_optimal_zone += dt
            d.max_streak = max(d.max_streak, s.streak)

        previous_score = s.score
        bonus = self._scoring.drain_bonuses()
        s.score += bonus + self._scoring.tick_score(
            delta_ms,
            in_optimal_zone=in_zone,
            streak_seconds=s.streak,
            difficulty=d.config.difficulty,
            external_multiplier=m.score_multiplier,
        )
        milestones = self._scoring.check_milestones(previous_score, s.score, d.milestones_reached)
        d.milestones_reached.extend(milestones)

        outcome: GameOutcome | None = None
        if d.game_time >= diff.workday_seconds:
            outcome = GameOutcome.victory
        elif s.health <= HEALTH_MIN:
            outcome = GameOutcome.explosion if s.caffeine >= CAFFEINE_CRITICAL_HIGH else GameOutcome.pass_out
        if outcome is not None:
            self._finish(outcome)

        self._notify()
        return TickResult(delta_ms=delta_ms, milestones=milestones, outcome=outcome, bonus=bonus)

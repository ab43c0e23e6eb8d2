from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, Callable

from caffeinated.achievements import AchievementTracker
from caffeinated.core.clock import SimulationClock
from caffeinated.core.constants import Difficulty
from caffeinated.core.notices import GameNotice
from caffeinated.drinks import DrinkEngine, DrinkType
from caffeinated.events import EventCallbacks, EventScheduler, EventSchedulerConfig, EventType, GameEvent
from caffeinated.game_loop import GameLoop, GameLoopConfig
from caffeinated.models import (
    ActionResult,
    GameConfig,
    GameOutcome,
    GamePhase,
    GameResult,
    GameStateData,
    GameStats,
)
from caffeinated.persistence import (
    NullProfileStore,
    ProfileStore,
    ProfileStoreError,
    RecordedGame,
    record_game_result,
)
from caffeinated.powerups import (
    PowerUpKind,
    PowerUpSystem,
    PowerUpSystemConfig,
    PowerUpType,
    get_power_up,
    parse_power_up_type,
)
from caffeinated.scoring import ScoringEngine
from caffeinated.state_manager import GameStateManager

logger = logging.getLogger(__name__)

ENDED_PHASES = {GamePhase.victory, GamePhase.game_over}


class GameSession:
    """Owns one player's simulation: clock, subsystems, loop, and the action API.

    Nothing here is process-wide; a host creates as many sessions as it needs.
    """

    def __init__(
        self,
        config: GameConfig | None = None,
        *,
        store: ProfileStore | None = None,
        seed: int | None = None,
        loop_config: GameLoopConfig | None = None,
        tracker: AchievementTracker | None = None,
    ) -> None:
        config = config or GameConfig()
        self.store: ProfileStore = store or NullProfileStore()
        self.tracker = tracker or AchievementTracker()
        self.clock = SimulationClock()
        self.scoring = ScoringEngine()
        self.manager = GameStateManager(config, scoring=self.scoring)
        self.drinks = DrinkEngine(interactions_enabled=config.drink_interactions_enabled)
        self.events = EventScheduler(
            config=EventSchedulerConfig.for_difficulty(config.difficulty, enabled=config.events_enabled),
            callbacks=EventCallbacks(on_event_end=self._on_event_end),
            seed=seed,
        )
        self.power_ups = PowerUpSystem(config=PowerUpSystemConfig(enabled=config.power_ups_enabled))
        self.loop = GameLoop(
            self.manager,
            clock=self.clock,
            drinks=self.drinks,
            events=self.events,
            power_ups=self.power_ups,
            config=loop_config,
        )

        self._host_time = 0.0
        self._nap_until = 0.0
        self._result: GameResult | None = None
        self._recorded: RecordedGame | None = None
        self.manager.subscribe(self._on_state)

    # --- read side ---

    @property
    def phase(self) -> GamePhase:
        return self.manager.phase

    @property
    def now(self) -> float:
        return self.clock.now()

    @property
    def result(self) -> GameResult | None:
        return self._result

    @property
    def recorded(self) -> RecordedGame | None:
        return self._recorded

    def get_state(self) -> GameStateData:
        return self.manager.get_state()

    def get_stats(self) -> GameStats:
        return self.manager.get_stats()

    def get_config(self) -> GameConfig:
        return self.manager.get_config()

    def subscribe(self, listener: Callable[[GameStateData], None]) -> Callable[[], None]:
        return self.manager.subscribe(listener)

    def on_notice(self, callback: Callable[[GameNotice], None]) -> Callable[[], None]:
        return self.loop.on_notice(callback)

    def is_napping(self) -> bool:
        return self.now < self._nap_until

    def snapshot(self) -> dict[str, Any]:
        """JSON-ready view for renderers."""

        now = self.now
        active_event = self.events.get_active_event()
        pending_event = self.events.get_pending_event()
        state = self.manager.get_state()
        low, high = self.manager.zone_bounds(active_event.event.effect.optimal_zone_shift if active_event else 0.0)
        return {
            "state": state.model_dump(mode="json"),
            "optimal_zone": {"low": low, "high": high},
            "active_event": active_event.event.id.value if active_event else None,
            "pending_event": pending_event.event.id.value if pending_event else None,
            "drinks_restricted": self.events.are_drinks_restricted(),
            "napping": self.is_napping(),
            "drink_synergy": self.drinks.synergy(now),
            "tolerance": self.drinks.tolerance(now),
            "pending_bonus": self.scoring.pending_bonus,
            "drinks": [
                {
                    "id": s.drink.id.value,
                    "available": s.available,
                    "cooldown_remaining": s.cooldown_remaining,
                    "releasing": s.is_releasing,
                    "crashing": s.is_crashing,
                }
                for s in self.drinks.drink_statuses(now)
            ],
            "power_ups": [
                {"id": a.power_up.id.value, "remaining": a.remaining(now)} for a in self.power_ups.active_power_ups()
            ],
            "interpolation": self.loop.interpolation,
            "result": self._result.model_dump(mode="json") if self._result else None,
        }

    # --- lifecycle ---

    def _reset_subsystems(self) -> None:
        config = self.manager.get_config()
        self.clock.reset()
        self.drinks.reset()
        self.drinks.interactions_enabled = config.drink_interactions_enabled
        self.events.reset()
        self.events.set_config(EventSchedulerConfig.for_difficulty(config.difficulty, enabled=config.events_enabled))
        self.power_ups.reset()
        self.power_ups.set_config(PowerUpSystemConfig(enabled=config.power_ups_enabled))
        self._nap_until = 0.0
        self._result = None
        self._recorded = None

    def start_game(self) -> bool:
        if self.phase not in (GamePhase.menu, *ENDED_PHASES):
            return False
        self._reset_subsystems()
        self.manager.start_game(self.clock.now())
        self.loop.start(self._host_time)
        return True

    def pause_game(self) -> bool:
        return self.loop.pause()

    def resume_game(self) -> bool:
        if not self.loop.resume():
            return False
        self.loop.frame(self._host_time)
        return True

    def end_game(self, outcome: GameOutcome | str) -> bool:
        return self.manager.end_game(outcome)

    def return_to_menu(self) -> bool:
        if not self.manager.return_to_menu():
            return False
        self.loop.stop()
        self._reset_subsystems()
        return True

    def set_difficulty(self, difficulty: Difficulty | str) -> None:
        self.manager.set_difficulty(difficulty)

    def set_config(self, **updates: Any) -> None:
        self.manager.set_config(**updates)

    # --- time ---

    def frame(self, timestamp: float) -> int:
        self._host_time = timestamp
        return self.loop.frame(timestamp)

    def advance(self, elapsed_ms: float) -> int:
        """Feed `elapsed_ms` of host time as a series of frames no longer than the clamp."""

        steps = 0
        remaining = max(0.0, elapsed_ms)
        max_chunk = self.loop.config.max_delta_time
        while remaining > 0:
            chunk = min(remaining, max_chunk)
            remaining -= chunk
            steps += self.frame(self._host_time + chunk)
        return steps

    # --- actions ---

    def consume_drink(self, drink_type: DrinkType | str) -> ActionResult:
        if self.phase != GamePhase.playing:
            return ActionResult(success=False, message="Game is not running")

        active_event = self.events.get_active_event()
        if active_event is not None and active_event.event.effect.drink_restriction:
            return ActionResult(success=False, message=f"No drinks allowed during {active_event.event.name}")
        if self.is_napping():
            return ActionResult(success=False, message="You're napping")

        result = self.drinks.consume_drink(drink_type, self.now)
        if result.success:
            self.manager.consume_drink(result.caffeine_boost)
        return result

    def activate_power_up(self, power_up_type: PowerUpType | str) -> ActionResult:
        if self.phase != GamePhase.playing:
            return ActionResult(success=False, message="Game is not running")

        now = self.now
        reason = self.power_ups.activation_blocker(power_up_type, now)
        if reason is not None:
            return ActionResult(success=False, message=reason)

        pt = parse_power_up_type(power_up_type)
        if pt is None or not self.power_ups.activate_power_up(pt, now):
            return ActionResult(success=False, message=f"Could not activate {power_up_type}")

        power_up = get_power_up(pt)
        caffeine_boost = 0.0
        health_boost = 0.0
        if power_up.kind == PowerUpKind.instant:
            caffeine_boost = power_up.effect.caffeine_boost
            health_boost = power_up.effect.health_boost
            if caffeine_boost:
                self.manager.update_caffeine_level(caffeine_boost)
            if health_boost:
                self.manager.update_health_level(health_boost)
        if power_up.cost > 0:
            self._nap_until = now + power_up.cost
        self.scoring.track_power_up_used()

        return ActionResult(
            success=True,
            message=f"{power_up.name} activated! {power_up.description}",
            caffeine_boost=caffeine_boost,
            health_boost=health_boost,
        )

    def force_event(self, event_type: EventType | str) -> ActionResult:
        if self.phase != GamePhase.playing:
            return ActionResult(success=False, message="Game is not running")
        if not self.events.force_event(event_type, self.now):
            return ActionResult(success=False, message=f"Unknown event type: {event_type}")
        active = self.events.get_active_event()
        name = active.event.name if active else str(event_type)
        return ActionResult(success=True, message=f"{name} started")

    # --- game end ---

    def _on_event_end(self, event: GameEvent) -> None:
        if self.phase == GamePhase.playing:
            self.scoring.track_event_complete()

    def _on_state(self, snapshot: GameStateData) -> None:
        if snapshot.state not in ENDED_PHASES or self._result is not None or snapshot.outcome is None:
            return

        victory = snapshot.outcome == GameOutcome.victory
        self._result = GameResult(
            outcome=snapshot.outcome,
            difficulty=snapshot.config.difficulty,
            final_stats=snapshot.stats,
            breakdown=self.scoring.calculate_final_score(
                snapshot.stats,
                snapshot.config.difficulty,
                victory=victory,
                max_streak=snapshot.max_streak,
            ),
            max_streak=snapshot.max_streak,
            time_in_optimal_zone=snapshot.time_in_optimal_zone,
            drink_breakdown={k: v for k, v in self.drinks.consumption_stats().drink_breakdown.items() if v},
            ended_at=datetime.now(tz=UTC),
        )

        try:
            self._recorded = record_game_result(self.store, self._result, tracker=self.tracker)
        except ProfileStoreError as e:
            logger.warning("could not record game result: %s", e)

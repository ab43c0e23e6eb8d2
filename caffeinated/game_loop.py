from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from caffeinated.core.clock import SimulationClock
from caffeinated.core.constants import (
    CAFFEINE_CRITICAL_HIGH,
    CAFFEINE_CRITICAL_LOW,
    CAFFEINE_DANGER_HIGH,
    CAFFEINE_DANGER_LOW,
    FRAME_RATE,
    HEALTH_CRITICAL,
    HEALTH_LOW,
    MAX_FRAME_DELTA,
)
from caffeinated.core.notices import GameNotice
from caffeinated.drinks import DrinkEngine, EffectUpdate
from caffeinated.events import EventEffect, EventScheduler
from caffeinated.models import GameOutcome, GamePhase, GameStateData, TickModifiers
from caffeinated.powerups import PowerUpEffect, PowerUpSystem
from caffeinated.scoring import format_score
from caffeinated.state_manager import GameStateManager, TickResult

logger = logging.getLogger(__name__)

WORKDAY_MARKS: tuple[float, ...] = (0.25, 0.5, 0.75)

UpdateCallback = Callable[[float, TickResult], None]
NoticeCallback = Callable[[GameNotice], None]


@dataclass(frozen=True, slots=True)
class GameLoopConfig:
    target_fps: int = FRAME_RATE
    max_delta_time: float = MAX_FRAME_DELTA

    @property
    def fixed_time_step(self) -> float:
        return 1000 / self.target_fps


def compose_modifiers(
    drinks: EffectUpdate,
    event_effect: EventEffect | None,
    power_ups: PowerUpEffect,
) -> TickModifiers:
    event = event_effect or EventEffect()
    return TickModifiers(
        caffeine_delta=drinks.caffeine_change,
        caffeine_multiplier=event.caffeine_multiplier,
        health_multiplier=event.health_multiplier,
        optimal_zone_shift=event.optimal_zone_shift,
        caffeine_depletion_reduction=power_ups.caffeine_depletion_reduction,
        score_multiplier=power_ups.productivity_multiplier * power_ups.score_multiplier,
        damage_immunity=power_ups.damage_immunity,
    )


def _unsubscriber(callbacks: list, callback: Callable) -> Callable[[], None]:
    def unsubscribe() -> None:
        if callback in callbacks:
            callbacks.remove(callback)

    return unsubscribe


def _caffeine_band(caffeine: float) -> str:
    if caffeine <= CAFFEINE_CRITICAL_LOW:
        return "critical_low"
    if caffeine >= CAFFEINE_CRITICAL_HIGH:
        return "critical_high"
    if caffeine <= CAFFEINE_DANGER_LOW:
        return "low"
    if caffeine >= CAFFEINE_DANGER_HIGH:
        return "high"
    return "normal"


def _health_band(health: float) -> str:
    if health <= HEALTH_CRITICAL:
        return "critical"
    if health <= HEALTH_LOW:
        return "low"
    return "normal"


_CAFFEINE_NOTICES = {
    "critical_low": ("critical", "error", "Caffeine critically low! You're about to pass out."),
    "critical_high": ("critical", "error", "Caffeine critically high! You're about to explode."),
    "low": ("warning", "warning", "Caffeine running low."),
    "high": ("warning", "warning", "Caffeine running high."),
}

_HEALTH_NOTICES = {
    "critical": ("critical", "error", "Health critical!"),
    "low": ("warning", "warning", "Health is getting low."),
}


class GameLoop:
    """Fixed-timestep driver for one session.

    `frame` takes the host's raw timestamp, clamps the delta, and drains the
    accumulator in fixed steps; each step advances the shared clock and runs
    events -> power-ups -> drinks -> state manager in that order.
    """

    def __init__(
        self,
        manager: GameStateManager,
        *,
        clock: SimulationClock,
        drinks: DrinkEngine,
        events: EventScheduler,
        power_ups: PowerUpSystem,
        config: GameLoopConfig | None = None,
    ) -> None:
        self.manager = manager
        self.clock = clock
        self.drinks = drinks
        self.events = events
        self.power_ups = power_ups
        self.config = config or GameLoopConfig()

        self._running = False
        self._last_frame_time: float | None = None
        self._accumulator = 0.0
        self._interpolation = 0.0
        self._update_callbacks: list[UpdateCallback] = []
        self._notice_callbacks: list[NoticeCallback] = []

        self._caffeine_band = "normal"
        self._health_band = "normal"
        self._workday_marks: set[float] = set()

    @property
    def running(self) -> bool:
        return self._running

    @property
    def interpolation(self) -> float:
        return self._interpolation

    @property
    def accumulator(self) -> float:
        return self._accumulator

    def start(self, timestamp: float | None = None) -> None:
        self._running = True
        self._last_frame_time = timestamp
        self._accumulator = 0.0
        self._interpolation = 0.0
        self._caffeine_band = "normal"
        self._health_band = "normal"
        self._workday_marks.clear()

    def stop(self) -> None:
        self._running = False
        self._last_frame_time = None
        self._accumulator = 0.0
        self._interpolation = 0.0

    def pause(self) -> bool:
        if not self.manager.pause_game():
            return False
        self.clock.pause()
        self.events.pause()
        self.power_ups.pause()
        self._accumulator = 0.0
        self._interpolation = 0.0
        return True

    def resume(self) -> bool:
        if self.manager.phase != GamePhase.paused:
            return False
        self.clock.resume()
        self.manager.resume_game(self.clock.now())
        self.events.resume()
        self.power_ups.resume()
        # The gap while paused is not simulated.
        self._last_frame_time = None
        return True

    def on_update(self, callback: UpdateCallback) -> Callable[[], None]:
        self._update_callbacks.append(callback)
        return _unsubscriber(self._update_callbacks, callback)

    def on_notice(self, callback: NoticeCallback) -> Callable[[], None]:
        self._notice_callbacks.append(callback)
        return _unsubscriber(self._notice_callbacks, callback)

    def frame(self, timestamp: float) -> int:
        """Feed one host frame; returns how many fixed steps ran."""

        if not self._running:
            return 0
        if self._last_frame_time is None:
            self._last_frame_time = timestamp
            return 0

        raw_delta = timestamp - self._last_frame_time
        self._last_frame_time = timestamp
        delta = min(max(0.0, raw_delta), self.config.max_delta_time)
        if raw_delta > self.config.max_delta_time:
            logger.debug("frame delta %.0fms clamped to %.0fms", raw_delta, self.config.max_delta_time)

        if self.manager.phase != GamePhase.playing:
            self._accumulator = 0.0
            self._interpolation = 0.0
            return 0

        step = self.config.fixed_time_step
        self._accumulator += delta
        steps = 0
        while self._accumulator >= step:
            self.tick(step)
            self._accumulator -= step
            steps += 1
            if self.manager.phase != GamePhase.playing:
                self._accumulator = 0.0
                break

        self._interpolation = self._accumulator / step
        return steps

    def tick(self, step_ms: float) -> TickResult:
        now = self.clock.advance(step_ms)

        self.events.update(now)
        self.power_ups.update(now)
        power_up_effect = self.power_ups.get_combined_effect()
        drink_update = self.drinks.update_effects(now, power_up_effect.crash_reduction)
        modifiers = compose_modifiers(drink_update, self.events.get_current_effect(), power_up_effect)

        result = self.manager.update(now, modifiers)

        for callback in list(self._update_callbacks):
            callback(step_ms, result)
        for notice in self._collect_notices(now, result):
            for callback in list(self._notice_callbacks):
                callback(notice)
        return result

    def _collect_notices(self, now: float, result: TickResult) -> list[GameNotice]:
        state: GameStateData = self.manager.get_state()
        notices: list[GameNotice] = []

        band = _caffeine_band(state.stats.caffeine)
        if band != self._caffeine_band and band in _CAFFEINE_NOTICES:
            kind, severity, message = _CAFFEINE_NOTICES[band]
            notices.append(GameNotice.at(type=kind, message=message, severity=severity, timestamp=now, payload={"caffeine": state.stats.caffeine}))
        self._caffeine_band = band

        band = _health_band(state.stats.health)
        if band != self._health_band and band in _HEALTH_NOTICES:
            kind, severity, message = _HEALTH_NOTICES[band]
            notices.append(GameNotice.at(type=kind, message=message, severity=severity, timestamp=now, payload={"health": state.stats.health}))
        self._health_band = band

        workday = self.manager.difficulty.workday_seconds
        progress = state.game_time / workday if workday > 0 else 0.0
        for mark in WORKDAY_MARKS:
            if progress >= mark and mark not in self._workday_marks:
                self._workday_marks.add(mark)
                notices.append(
                    GameNotice.at(
                        type="milestone",
                        message=f"{int(mark * 100)}% of the workday done",
                        severity="info",
                        timestamp=now,
                        payload={"progress": mark},
                    )
                )

        for milestone in result.milestones:
            notices.append(
                GameNotice.at(
                    type="milestone",
                    message=f"Score milestone: {format_score(milestone)}",
                    severity="success",
                    timestamp=now,
                    payload={"score": milestone},
                )
            )

        if result.outcome is not None:
            won = result.outcome == GameOutcome.victory
            notices.append(
                GameNotice.at(
                    type="state_change",
                    message="You survived the workday!" if won else f"Game over: {result.outcome.value}",
                    severity="success" if won else "error",
                    timestamp=now,
                    payload={"outcome": result.outcome.value},
                )
            )
        return notices

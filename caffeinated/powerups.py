from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Callable

logger = logging.getLogger(__name__)


class PowerUpType(StrEnum):
    protein_bar = "proteinBar"
    vitamins = "vitamins"
    power_nap = "powerNap"
    double_points = "doublePoints"
    shield = "shield"


class PowerUpKind(StrEnum):
    instant = "instant"
    duration = "duration"


@dataclass(frozen=True, slots=True)
class PowerUpEffect:
    # One-shot boosts, applied by the caller at activation.
    caffeine_boost: float = 0.0
    health_boost: float = 0.0

    # Modifiers that hold while the power-up is active.
    crash_reduction: float = 0.0
    caffeine_depletion_reduction: float = 0.0
    productivity_multiplier: float = 1.0
    score_multiplier: float = 1.0
    damage_immunity: bool = False


@dataclass(frozen=True, slots=True)
class PowerUp:
    id: PowerUpType
    name: str
    description: str
    kind: PowerUpKind
    duration: float  # ms
    cooldown: float  # ms, counted from activation
    effect: PowerUpEffect
    cost: float = 0.0  # ms the player is busy (power nap)


POWER_UPS: dict[PowerUpType, PowerUp] = {
    PowerUpType.protein_bar: PowerUp(
        id=PowerUpType.protein_bar,
        name="Protein Bar",
        description="Halves caffeine crashes and slows depletion",
        kind=PowerUpKind.duration,
        duration=30_000,
        cooldown=45_000,
        effect=PowerUpEffect(crash_reduction=0.5, caffeine_depletion_reduction=0.2),
    ),
    PowerUpType.vitamins: PowerUp(
        id=PowerUpType.vitamins,
        name="Vitamins",
        description="Restores health and boosts productivity",
        kind=PowerUpKind.instant,
        duration=20_000,
        cooldown=60_000,
        effect=PowerUpEffect(health_boost=25, productivity_multiplier=1.5),
    ),
    PowerUpType.power_nap: PowerUp(
        id=PowerUpType.power_nap,
        name="Power Nap",
        description="A quick nap restores caffeine and health",
        kind=PowerUpKind.instant,
        duration=15_000,
        cooldown=90_000,
        cost=5_000,
        effect=PowerUpEffect(caffeine_boost=30, health_boost=15, crash_reduction=0.3),
    ),
    PowerUpType.double_points: PowerUp(
        id=PowerUpType.double_points,
        name="Double Points",
        description="Doubles score gain for a short time",
        kind=PowerUpKind.duration,
        duration=20_000,
        cooldown=60_000,
        effect=PowerUpEffect(score_multiplier=2.0),
    ),
    PowerUpType.shield: PowerUp(
        id=PowerUpType.shield,
        name="Focus Shield",
        description="Health cannot drop while the shield holds",
        kind=PowerUpKind.duration,
        duration=15_000,
        cooldown=75_000,
        effect=PowerUpEffect(damage_immunity=True),
    ),
}


def get_power_up(power_up_type: PowerUpType) -> PowerUp:
    power_up = POWER_UPS.get(power_up_type)
    if power_up is None:
        raise LookupError(f"No power-up definition for {power_up_type!r}")
    return power_up


def parse_power_up_type(value: PowerUpType | str) -> PowerUpType | None:
    try:
        return PowerUpType(value)
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class PowerUpSystemConfig:
    enabled: bool = True
    max_active_power_ups: int = 2
    global_cooldown_multiplier: float = 1.0


@dataclass
class PowerUpCallbacks:
    on_power_up_activated: Callable[[PowerUp], None] | None = None
    on_power_up_expired: Callable[[PowerUp], None] | None = None
    on_power_up_ready: Callable[[PowerUpType], None] | None = None


@dataclass(slots=True)
class ActivePowerUp:
    power_up: PowerUp
    start_time: float
    end_time: float

    def remaining(self, current_time: float) -> float:
        return max(0.0, self.end_time - current_time)


NEUTRAL_EFFECT = PowerUpEffect()


@dataclass
class PowerUpSystem:
    config: PowerUpSystemConfig = field(default_factory=PowerUpSystemConfig)
    callbacks: PowerUpCallbacks = field(default_factory=PowerUpCallbacks)

    _active: dict[PowerUpType, ActivePowerUp] = field(default_factory=dict, init=False)
    _ready_at: dict[PowerUpType, float] = field(default_factory=dict, init=False)
    _paused: bool = field(default=False, init=False)
    _last_time: float = field(default=0.0, init=False)

    @property
    def paused(self) -> bool:
        return self._paused

    def activation_blocker(self, power_up_type: PowerUpType | str, current_time: float | None = None) -> str | None:
        """Why `power_up_type` cannot be activated right now, or None if it can."""

        now = self._last_time if current_time is None else current_time
        pt = parse_power_up_type(power_up_type)
        if pt is None:
            return f"Unknown power-up: {power_up_type}"
        power_up = get_power_up(pt)
        if not self.config.enabled:
            return "Power-ups are disabled"
        if self._paused:
            return "Power-ups are paused"
        if pt in self._active:
            return f"{power_up.name} is already active"
        remaining = self.get_cooldown_remaining(pt, now)
        if remaining > 0:
            return f"{power_up.name} is on cooldown for {remaining / 1000:.0f}s"
        if len(self._active) >= self.config.max_active_power_ups:
            return f"Only {self.config.max_active_power_ups} power-ups can be active at once"
        return None

    def can_activate_power_up(self, power_up_type: PowerUpType | str, current_time: float | None = None) -> bool:
        return self.activation_blocker(power_up_type, current_time) is None

    def activate_power_up(self, power_up_type: PowerUpType | str, current_time: float) -> bool:
        reason = self.activation_blocker(power_up_type, current_time)
        if reason is not None:
            logger.debug("power-up %s rejected: %s", power_up_type, reason)
            return False

        power_up = get_power_up(PowerUpType(power_up_type))
        self._last_time = current_time
        self._active[power_up.id] = ActivePowerUp(
            power_up=power_up,
            start_time=current_time,
            end_time=current_time + power_up.duration,
        )
        self._ready_at[power_up.id] = current_time + power_up.cooldown * self.config.global_cooldown_multiplier
        logger.debug("power-up activated: %s", power_up.id.value)
        if self.callbacks.on_power_up_activated is not None:
            self.callbacks.on_power_up_activated(power_up)
        return True

    def update(self, current_time: float) -> None:
        if self._paused:
            return
        self._last_time = current_time

        for pt in [pt for pt, a in self._active.items() if current_time >= a.end_time]:
            expired = self._active.pop(pt)
            logger.debug("power-up expired: %s", pt.value)
            if self.callbacks.on_power_up_expired is not None:
                self.callbacks.on_power_up_expired(expired.power_up)

        for pt in [pt for pt, ready in self._ready_at.items() if current_time >= ready]:
            del self._ready_at[pt]
            if self.callbacks.on_power_up_ready is not None:
                self.callbacks.on_power_up_ready(pt)

    def get_combined_effect(self) -> PowerUpEffect:
        """Fold every active power-up into one effect.

        Reductions saturate (max), multipliers compound (product), immunity is
        any-of, one-shot boosts add up.
        """

        if not self._active:
            return NEUTRAL_EFFECT

        crash = 0.0
        depletion = 0.0
        productivity = 1.0
        score = 1.0
        immunity = False
        caffeine_boost = 0.0
        health_boost = 0.0
        for active in self._active.values():
            e = active.power_up.effect
            crash = max(crash, e.crash_reduction)
            depletion = max(depletion, e.caffeine_depletion_reduction)
            productivity *= e.productivity_multiplier
            score *= e.score_multiplier
            immunity = immunity or e.damage_immunity
            caffeine_boost += e.caffeine_boost
            health_boost += e.health_boost

        return PowerUpEffect(
            caffeine_boost=caffeine_boost,
            health_boost=health_boost,
            crash_reduction=crash,
            caffeine_depletion_reduction=depletion,
            productivity_multiplier=productivity,
            score_multiplier=score,
            damage_immunity=immunity,
        )

    def get_cooldown_remaining(self, power_up_type: PowerUpType, current_time: float) -> float:
        return max(0.0, self._ready_at.get(power_up_type, 0.0) - current_time)

    def is_power_up_active(self, power_up_type: PowerUpType) -> bool:
        return power_up_type in self._active

    def active_power_ups(self) -> list[ActivePowerUp]:
        return list(self._active.values())

    @property
    def active_count(self) -> int:
        return len(self._active)

    def set_config(self, config: PowerUpSystemConfig) -> None:
        self.config = config

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def reset(self) -> None:
        self._active.clear()
        self._ready_at.clear()
        self._paused = False
        self._last_time = 0.0

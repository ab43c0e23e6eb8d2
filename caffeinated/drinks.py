from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum

from caffeinated.models import ActionResult

logger = logging.getLogger(__name__)

# Instant drinks deliver their whole boost inside this window.
INSTANT_RELEASE_WINDOW = 100.0

# Each crash-severity point lasts this many milliseconds.
CRASH_MS_PER_SEVERITY = 100.0

# Drinks consumed this close together count as one combination.
SYNERGY_WINDOW = 5_000.0

TOLERANCE_WINDOW = 3_600_000.0
TOLERANCE_PER_DRINK = 0.05
MAX_TOLERANCE = 0.5


class DrinkType(StrEnum):
    tea = "tea"
    coffee = "coffee"
    energy_drink = "energyDrink"
    espresso = "espresso"
    water = "water"


class ReleaseProfile(StrEnum):
    instant = "instant"
    slow = "slow"
    moderate = "moderate"


@dataclass(frozen=True, slots=True)
class Drink:
    id: DrinkType
    name: str
    caffeine_boost: float
    release_profile: ReleaseProfile
    release_speed: float  # ms
    crash_severity: float  # 0-10
    cooldown: float  # ms
    description: str

    @property
    def crash_duration(self) -> float:
        return self.crash_severity * CRASH_MS_PER_SEVERITY

    @property
    def total_duration(self) -> float:
        return self.release_speed + self.crash_duration


DRINKS: dict[DrinkType, Drink] = {
    DrinkType.tea: Drink(
        id=DrinkType.tea,
        name="Tea",
        caffeine_boost=15,
        release_profile=ReleaseProfile.slow,
        release_speed=3000,
        crash_severity=2,
        cooldown=2000,
        description="Gentle caffeine boost with minimal crash",
    ),
    DrinkType.coffee: Drink(
        id=DrinkType.coffee,
        name="Coffee",
        caffeine_boost=30,
        release_profile=ReleaseProfile.moderate,
        release_speed=2000,
        crash_severity=5,
        cooldown=3000,
        description="Reliable caffeine boost with moderate crash",
    ),
    DrinkType.energy_drink: Drink(
        id=DrinkType.energy_drink,
        name="Energy Drink",
        caffeine_boost=50,
        release_profile=ReleaseProfile.instant,
        release_speed=500,
        crash_severity=8,
        cooldown=5000,
        description="Massive instant boost but harsh crash",
    ),
    DrinkType.espresso: Drink(
        id=DrinkType.espresso,
        name="Espresso",
        caffeine_boost=40,
        release_profile=ReleaseProfile.instant,
        release_speed=1000,
        crash_severity=6,
        cooldown=4000,
        description="Quick strong boost with notable crash",
    ),
    DrinkType.water: Drink(
        id=DrinkType.water,
        name="Water",
        caffeine_boost=0,
        release_profile=ReleaseProfile.instant,
        release_speed=0,
        crash_severity=0,
        cooldown=1000,
        description="No caffeine but helps stabilize levels",
    ),
}


def get_drink(drink_type: DrinkType) -> Drink:
    drink = DRINKS.get(drink_type)
    if drink is None:
        raise LookupError(f"No drink definition for {drink_type!r}")
    return drink


def parse_drink_type(value: DrinkType | str) -> DrinkType | None:
    try:
        return DrinkType(value)
    except ValueError:
        return None


def release_value(drink: Drink, elapsed: float) -> float:
    """Boost a drink is contributing `elapsed` ms into its release window."""

    if drink.release_profile == ReleaseProfile.instant:
        return drink.caffeine_boost if 0 <= elapsed < INSTANT_RELEASE_WINDOW else 0.0

    if drink.release_speed <= 0:
        return 0.0
    progress = min(1.0, max(0.0, elapsed) / drink.release_speed)

    if drink.release_profile == ReleaseProfile.slow:
        return drink.caffeine_boost * progress
    if drink.release_profile == ReleaseProfile.moderate:
        # Bell curve: rises, peaks at half the window, settles back toward zero.
        return drink.caffeine_boost * math.sin(math.pi * progress)
    return 0.0


def crash_value(drink: Drink, crash_elapsed: float, crash_reduction: float = 0.0) -> float:
    """Negative contribution during the crash tail, decaying linearly to zero."""

    duration = drink.crash_duration
    if duration <= 0 or crash_elapsed >= duration:
        return 0.0
    progress = max(0.0, crash_elapsed) / duration
    return -drink.crash_severity * (1 - progress) * (1 - crash_reduction)


def calculate_synergy(drink_types: Iterable[DrinkType]) -> float:
    """Fractional bonus (or penalty) for drinking these together; 0 for fewer than two."""

    kinds = set(drink_types)
    if len(kinds) <= 1:
        return 0.0

    synergy = 0.0
    if DrinkType.water in kinds:
        synergy += 0.15
    if {DrinkType.tea, DrinkType.coffee} <= kinds:
        synergy += 0.1
    if DrinkType.energy_drink in kinds and kinds & {DrinkType.espresso, DrinkType.coffee}:
        # Overstimulation.
        synergy -= 0.2
    if {DrinkType.espresso, DrinkType.coffee} <= kinds:
        synergy += 0.05
    return synergy


def calculate_tolerance(history: Iterable[ConsumptionRecord], current_time: float) -> float:
    """Effectiveness multiplier after recent drinking: 5% less per drink in the last hour, floored at 50%."""

    recent = sum(1 for r in history if r.timestamp > current_time - TOLERANCE_WINDOW)
    return 1 - min(MAX_TOLERANCE, recent * TOLERANCE_PER_DRINK)


@dataclass(slots=True)
class DrinkEffect:
    effect_id: int
    drink_id: DrinkType
    start_time: float
    peak_time: float
    end_time: float
    current_boost: float = 0.0
    is_active: bool = True
    # Scales the release curve; below 1 once tolerance builds up.
    strength: float = 1.0


@dataclass(frozen=True, slots=True)
class EffectUpdate:
    caffeine_change: float
    active_drinks: list[DrinkType]
    crashing_drinks: list[DrinkType]


@dataclass(frozen=True, slots=True)
class ConsumptionRecord:
    drink_type: DrinkType
    timestamp: float
    caffeine_amount: float


@dataclass(frozen=True, slots=True)
class ConsumptionStats:
    total_drinks_consumed: int
    drink_breakdown: dict[str, int]
    total_caffeine: float
    last_drink_time: float | None
    average_consumption_rate: float  # drinks per minute


@dataclass(frozen=True, slots=True)
class DrinkStatus:
    drink: Drink
    available: bool
    cooldown_remaining: float
    is_releasing: bool
    is_crashing: bool


@dataclass(slots=True)
class DrinkEngine:
    """Tracks every digesting drink and reports the per-tick caffeine delta.

    Instant drinks hand their whole boost back from `consume_drink` so the caller
    applies it once; the engine only carries their crash tail. Slow and moderate
    drinks are delivered entirely through `update_effects`.

    With `interactions_enabled`, each new drink is weakened by tolerance and
    scaled by its synergy with drinks taken in the last few seconds. The
    strength is fixed when the drink is consumed.
    """

    interactions_enabled: bool = False
    _effects: dict[int, DrinkEffect] = field(default_factory=dict)
    _cooldowns: dict[DrinkType, float] = field(default_factory=dict)
    _history: list[ConsumptionRecord] = field(default_factory=list)
    _next_effect_id: int = 0

    def consume_drink(self, drink_type: DrinkType | str, timestamp: float) -> ActionResult:
        dt = parse_drink_type(drink_type)
        if dt is None:
            return ActionResult(success=False, message=f"Unknown drink type: {drink_type}")
        drink = get_drink(dt)

        if not self.can_consume(dt, timestamp):
            remaining = self.remaining_cooldown(dt, timestamp)
            logger.debug("drink %s rejected, %.0fms cooldown left", dt.value, remaining)
            return ActionResult(
                success=False,
                message=f"{drink.name} is on cooldown for {math.ceil(remaining / 1000)}s",
            )

        strength = self.interaction_strength(dt, timestamp) if self.interactions_enabled else 1.0
        self._cooldowns[dt] = timestamp + drink.cooldown
        self._history.append(
            ConsumptionRecord(drink_type=dt, timestamp=timestamp, caffeine_amount=drink.caffeine_boost * strength)
        )

        effect_id = self._next_effect_id
        self._next_effect_id += 1
        self._effects[effect_id] = DrinkEffect(
            effect_id=effect_id,
            drink_id=dt,
            start_time=timestamp,
            peak_time=timestamp + drink.release_speed / 2,
            end_time=timestamp + drink.total_duration,
            strength=strength,
        )

        immediate = drink.caffeine_boost * strength if drink.release_profile == ReleaseProfile.instant else 0.0
        return ActionResult(
            success=True,
            caffeine_boost=immediate,
            message=f"Consumed {drink.name}! {drink.description}",
        )

    def recent_drinks(self, timestamp: float) -> set[DrinkType]:
        return {r.drink_type for r in self._history if timestamp - SYNERGY_WINDOW <= r.timestamp <= timestamp}

    def synergy(self, timestamp: float) -> float:
        return calculate_synergy(self.recent_drinks(timestamp))

    def tolerance(self, timestamp: float) -> float:
        return calculate_tolerance(self._history, timestamp)

    def interaction_strength(self, drink_type: DrinkType, timestamp: float) -> float:
        """Multiplier a `drink_type` consumed now would get from tolerance and synergy."""

        combo = self.recent_drinks(timestamp) | {drink_type}
        return max(0.0, self.tolerance(timestamp) * (1 + calculate_synergy(combo)))

    def can_consume(self, drink_type: DrinkType, timestamp: float) -> bool:
        return timestamp >= self._cooldowns.get(drink_type, 0.0)

    def remaining_cooldown(self, drink_type: DrinkType, timestamp: float) -> float:
        return max(0.0, self._cooldowns.get(drink_type, 0.0) - timestamp)

    def _current_value(self, effect: DrinkEffect, drink: Drink, timestamp: float, crash_reduction: float) -> tuple[float, bool, bool]:
        elapsed = timestamp - effect.start_time
        if elapsed < drink.release_speed:
            if drink.release_profile == ReleaseProfile.instant:
                # Already delivered by consume_drink.
                return 0.0, True, False
            return release_value(drink, elapsed) * effect.strength, True, False

        crash_elapsed = elapsed - drink.release_speed
        if crash_elapsed < drink.crash_duration:
            return crash_value(drink, crash_elapsed, crash_reduction), False, True
        return 0.0, False, False

    def update_effects(self, timestamp: float, crash_reduction: float = 0.0) -> EffectUpdate:
        """Advance every effect to `timestamp` and return the summed change since the last call."""

        change = 0.0
        releasing: list[DrinkType] = []
        crashing: list[DrinkType] = []

        for effect_id in list(self._effects):
            effect = self._effects[effect_id]
            drink = get_drink(effect.drink_id)

            if timestamp > effect.end_time:
                # Settle whatever this effect still contributes so the sum returns to zero.
                change -= effect.current_boost
                effect.is_active = False
                del self._effects[effect_id]
                continue

            value, is_releasing, is_crashing = self._current_value(effect, drink, timestamp, crash_reduction)
            change += value - effect.current_boost
            effect.current_boost = value

            if is_releasing and effect.drink_id not in releasing:
                releasing.append(effect.drink_id)
            if is_crashing and effect.drink_id not in crashing:
                crashing.append(effect.drink_id)

        return EffectUpdate(caffeine_change=change, active_drinks=releasing, crashing_drinks=crashing)

    def active_effects(self) -> list[DrinkEffect]:
        return list(self._effects.values())

    def drink_statuses(self, timestamp: float) -> list[DrinkStatus]:
        releasing: set[DrinkType] = set()
        crashing: set[DrinkType] = set()
        for effect in self._effects.values():
            drink = get_drink(effect.drink_id)
            elapsed = timestamp - effect.start_time
            if elapsed < drink.release_speed:
                releasing.add(effect.drink_id)
            elif elapsed < drink.total_duration:
                crashing.add(effect.drink_id)

        return [
            DrinkStatus(
                drink=drink,
                available=self.can_consume(drink.id, timestamp),
                cooldown_remaining=self.remaining_cooldown(drink.id, timestamp),
                is_releasing=drink.id in releasing,
                is_crashing=drink.id in crashing,
            )
            for drink in DRINKS.values()
        ]

    def consumption_stats(self) -> ConsumptionStats:
        breakdown = {d.value: 0 for d in DrinkType}
        for record in self._history:
            breakdown[record.drink_type.value] += 1

        first = self._history[0] if self._history else None
        last = self._history[-1] if self._history else None
        span = (last.timestamp - first.timestamp) if first and last else 0.0
        rate = len(self._history) / (span / 1000 / 60) if span > 0 else 0.0

        return ConsumptionStats(
            total_drinks_consumed=len(self._history),
            drink_breakdown=breakdown,
            total_caffeine=sum(r.caffeine_amount for r in self._history),
            last_drink_time=last.timestamp if last else None,
            average_consumption_rate=rate,
        )

    def recommend_drink(self, current_caffeine: float, target_caffeine: float, timestamp: float) -> DrinkType | None:
        """Pick the available drink whose boost best closes the gap to `target_caffeine`."""

        available = [d for d in DRINKS.values() if self.can_consume(d.id, timestamp)]
        if not available:
            return None

        deficit = target_caffeine - current_caffeine
        if deficit <= 0:
            return DrinkType.water if self.can_consume(DrinkType.water, timestamp) else None

        caffeinated = [d for d in available if d.id != DrinkType.water]
        if not caffeinated:
            return None
        best = min(caffeinated, key=lambda d: abs(deficit - d.caffeine_boost))
        return best.id

    def reset(self) -> None:
        self._effects.clear()
        self._cooldowns.clear()
        self._history.clear()
        self._next_effect_id = 0

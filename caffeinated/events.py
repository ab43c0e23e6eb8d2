from __future__ import annotations

import logging
import random
from collections import deque
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Callable

from caffeinated.core.constants import Difficulty, parse_difficulty

logger = logging.getLogger(__name__)

HISTORY_SIZE = 4
RECENT_EXCLUSIONS = 2


class EventType(StrEnum):
    morning_meeting = "morningMeeting"
    code_review = "codeReview"
    bug_fix = "bugFix"
    lunch_break = "lunchBreak"


@dataclass(frozen=True, slots=True)
class EventEffect:
    caffeine_multiplier: float = 1.0
    health_multiplier: float = 1.0
    optimal_zone_shift: float = 0.0
    drink_restriction: bool = False


@dataclass(frozen=True, slots=True)
class GameEvent:
    id: EventType
    name: str
    description: str
    duration: float  # ms
    warning_time: float  # ms before start
    effect: EventEffect


EVENTS: dict[EventType, GameEvent] = {
    EventType.morning_meeting: GameEvent(
        id=EventType.morning_meeting,
        name="Morning Meeting",
        description="Stuck in a meeting. No drinks allowed and caffeine burns twice as fast.",
        duration=15_000,
        warning_time=5_000,
        effect=EventEffect(caffeine_multiplier=2.0, drink_restriction=True),
    ),
    EventType.code_review: GameEvent(
        id=EventType.code_review,
        name="Code Review",
        description="Intense focus narrows your optimal zone.",
        duration=20_000,
        warning_time=7_000,
        effect=EventEffect(caffeine_multiplier=1.5, optimal_zone_shift=-10),
    ),
    EventType.bug_fix: GameEvent(
        id=EventType.bug_fix,
        name="Production Bug",
        description="Stress drains your health fast.",
        duration=12_000,
        warning_time=4_000,
        effect=EventEffect(caffeine_multiplier=1.3, health_multiplier=2.5),
    ),
    EventType.lunch_break: GameEvent(
        id=EventType.lunch_break,
        name="Lunch Break",
        description="Food slows caffeine burn and eases the strain.",
        duration=18_000,
        warning_time=6_000,
        effect=EventEffect(caffeine_multiplier=0.5, health_multiplier=0.8),
    ),
}


def get_event(event_type: EventType) -> GameEvent:
    event = EVENTS.get(event_type)
    if event is None:
        raise LookupError(f"No event definition for {event_type!r}")
    return event


@dataclass(frozen=True, slots=True)
class EventSchedulerConfig:
    min_time_between_events: float = 30_000
    max_time_between_events: float = 90_000
    difficulty_scaling: float = 1.0  # >1 spaces events out, <1 brings them closer
    enabled: bool = True

    @classmethod
    def for_difficulty(cls, difficulty: Difficulty | str, *, enabled: bool = True) -> "EventSchedulerConfig":
        d = parse_difficulty(difficulty)
        base = cls(enabled=enabled)
        overrides = {
            Difficulty.intern: {"difficulty_scaling": 1.2, "min_time_between_events": 45_000},
            Difficulty.junior: {"difficulty_scaling": 1.0, "min_time_between_events": 35_000},
            Difficulty.senior: {"difficulty_scaling": 0.8, "min_time_between_events": 25_000},
            Difficulty.founder: {"difficulty_scaling": 0.6, "min_time_between_events": 20_000},
        }
        return replace(base, **overrides[d])


@dataclass
class EventCallbacks:
    on_event_warning: Callable[[GameEvent], None] | None = None
    on_event_start: Callable[[GameEvent], None] | None = None
    on_event_end: Callable[[GameEvent], None] | None = None


@dataclass(slots=True)
class ActiveEvent:
    event: GameEvent
    start_time: float
    end_time: float
    is_active: bool = False
    warned: bool = False

    @property
    def warning_time(self) -> float:
        return self.start_time - self.event.warning_time


@dataclass
class EventScheduler:
    """Runs at most one pending-or-active event at a time.

    The first `update` only schedules; an event then walks through
    warning -> active -> cleared, and the next one is scheduled from the
    moment the previous one clears.
    """

    config: EventSchedulerConfig = field(default_factory=EventSchedulerConfig)
    callbacks: EventCallbacks = field(default_factory=EventCallbacks)
    seed: int | None = None

    events_completed: int = field(default=0, init=False)
    _rng: random.Random = field(init=False, repr=False)
    _current: ActiveEvent | None = field(default=None, init=False)
    _next_event_time: float | None = field(default=None, init=False)
    _history: deque[EventType] = field(init=False, repr=False)
    _paused: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        self._rng = random.Random(self.seed)
        self._history = deque(maxlen=HISTORY_SIZE)

    @property
    def history(self) -> list[EventType]:
        return list(self._history)

    @property
    def paused(self) -> bool:
        return self._paused

    def update(self, current_time: float) -> None:
        if not self.config.enabled or self._paused:
            return

        if self._current is None:
            if self._next_event_time is None:
                self._schedule_next(current_time)
                return
            if current_time < self._next_event_time:
                return
            self._queue_event(self._pick_event(), current_time)

        current = self._current
        if current is None:
            return

        if not current.warned and current_time >= current.warning_time:
            current.warned = True
            logger.debug("event warning: %s starts at %.0f", current.event.id.value, current.start_time)
            self._fire(self.callbacks.on_event_warning, current.event)

        if not current.is_active and current_time >= current.start_time:
            current.is_active = True
            logger.debug("event started: %s", current.event.id.value)
            self._fire(self.callbacks.on_event_start, current.event)

        if current.is_active and current_time >= current.end_time:
            self._finish_current()
            self._schedule_next(current_time)

    def _schedule_next(self, current_time: float) -> None:
        scale = self.config.difficulty_scaling
        low = self.config.min_time_between_events * scale
        high = max(low, self.config.max_time_between_events * scale)
        self._next_event_time = current_time + self._rng.uniform(low, high)
        logger.debug("next event scheduled at %.0f", self._next_event_time)

    def _pick_event(self) -> GameEvent:
        recent = list(self._history)[-RECENT_EXCLUSIONS:]
        candidates = [e for e in EVENTS if e not in recent]
        # Fall back to the full catalog so a small pool never starves.
        pool = candidates if len(candidates) >= 2 else list(EVENTS)
        return get_event(self._rng.choice(pool))

    def _queue_event(self, event: GameEvent, current_time: float) -> None:
        start = current_time + event.warning_time
        self._current = ActiveEvent(event=event, start_time=start, end_time=start + event.duration)
        self._history.append(event.id)
        self._next_event_time = None

    def _finish_current(self) -> None:
        current = self._current
        self._current = None
        if current is None:
            return
        if current.is_active:
            current.is_active = False
            self.events_completed += 1
            logger.debug("event ended: %s", current.event.id.value)
            self._fire(self.callbacks.on_event_end, current.event)

    @staticmethod
    def _fire(callback: Callable[[GameEvent], None] | None, event: GameEvent) -> None:
        if callback is not None:
            callback(event)

    def get_active_event(self) -> ActiveEvent | None:
        if self._current is not None and self._current.is_active:
            return self._current
        return None

    def get_pending_event(self) -> ActiveEvent | None:
        """The scheduled event while it is still in its warning phase."""

        if self._current is not None and not self._current.is_active:
            return self._current
        return None

    def get_current_effect(self) -> EventEffect | None:
        active = self.get_active_event()
        return active.event.effect if active is not None else None

    def are_drinks_restricted(self) -> bool:
        effect = self.get_current_effect()
        return bool(effect and effect.drink_restriction)

    def time_until_next_event(self, current_time: float) -> float | None:
        if self._current is not None:
            if self._current.is_active:
                return 0.0
            return max(0.0, self._current.start_time - current_time)
        if self._next_event_time is None:
            return None
        return max(0.0, self._next_event_time - current_time)

    def force_event(self, event_type: EventType | str, current_time: float) -> bool:
        """Start `event_type` immediately, ending whatever was pending or running."""

        try:
            et = EventType(event_type)
        except ValueError:
            logger.debug("force_event ignored unknown type %r", event_type)
            return False

        event = get_event(et)
        self._finish_current()
        self._current = ActiveEvent(
            event=event,
            start_time=current_time,
            end_time=current_time + event.duration,
            is_active=True,
            warned=True,
        )
        self._history.append(et)
        self._next_event_time = None
        logger.debug("event forced: %s", et.value)
        self._fire(self.callbacks.on_event_start, event)
        return True

    def set_config(self, config: EventSchedulerConfig) -> None:
        self.config = config
        if not config.enabled:
            self._finish_current()
            self._next_event_time = None

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def reset(self) -> None:
        self._rng = random.Random(self.seed)
        self._current = None
        self._next_event_time = None
        self._history.clear()
        self._paused = False
        self.events_completed = 0

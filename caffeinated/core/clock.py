from __future__ import annotations


class SimulationClock:
    """Millisecond clock shared by every subsystem of one session.

    Time only moves when the owner calls `advance`, so a paused game freezes
    drink cooldowns, event timers, and power-up cooldowns together.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._start = float(start)
        self._now = float(start)
        self._paused = False

    def now(self) -> float:
        return self._now

    @property
    def paused(self) -> bool:
        return self._paused

    def advance(self, ms: float) -> float:
        if ms > 0 and not self._paused:
            self._now += ms
        return self._now

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def reset(self) -> None:
        self._now = self._start
        self._paused = False

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

NoticeType = Literal[
    "milestone",
    "warning",
    "critical",
    "achievement",
    "state_change",
]

NoticeSeverity = Literal["info", "warning", "error", "success"]


@dataclass(frozen=True, slots=True)
class GameNotice:
    """Something a UI layer may want to toast; never feeds back into the simulation."""

    type: NoticeType
    message: str
    severity: NoticeSeverity
    timestamp: float
    payload: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def at(
        *,
        type: NoticeType,
        message: str,
        severity: NoticeSeverity,
        timestamp: float,
        payload: dict[str, Any] | None = None,
    ) -> "GameNotice":
        return GameNotice(type=type, message=message, severity=severity, timestamp=timestamp, payload=payload or {})

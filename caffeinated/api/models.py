from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from caffeinated.core.constants import Difficulty
from caffeinated.models import ActionResult, GameOutcome, HighScoreEntry


class SessionCreateRequest(BaseModel):
    difficulty: Difficulty = Difficulty.junior
    events_enabled: bool = True
    power_ups_enabled: bool = True
    drink_interactions_enabled: bool = False
    seed: int | None = None
    profile_id: str = Field(default="default", min_length=1, max_length=64)


class SessionView(BaseModel):
    session_id: UUID
    snapshot: dict[str, Any]


class SessionListResponse(BaseModel):
    sessions: list[UUID]


class FramesRequest(BaseModel):
    # Host milliseconds to simulate; fed to the loop in clamped frames.
    elapsed_ms: float = Field(..., ge=0, le=60_000)


class EndGameRequest(BaseModel):
    outcome: GameOutcome


class DifficultyRequest(BaseModel):
    difficulty: Difficulty


# Ids stay plain strings so an unknown one comes back as a failed ActionResult.
class DrinkRequest(BaseModel):
    drink: str


class PowerUpRequest(BaseModel):
    power_up: str


class ForceEventRequest(BaseModel):
    event: str


class ActionResponse(BaseModel):
    result: ActionResult
    snapshot: dict[str, Any]


class FramesResponse(BaseModel):
    steps: int
    snapshot: dict[str, Any]


class HighScoreListResponse(BaseModel):
    scores: list[HighScoreEntry]


class AchievementStatus(BaseModel):
    id: str
    name: str
    description: str
    rarity: str
    points: int
    unlocked: bool
    unlocked_at: datetime | None = None
    progress: float | None = None
    max_progress: float | None = None


class AchievementListResponse(BaseModel):
    achievements: list[AchievementStatus]

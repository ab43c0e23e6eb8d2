from __future__ import annotations

from uuid import UUID

import redis
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from caffeinated.achievements import ACHIEVEMENTS, achievement_progress
from caffeinated.api.deps import get_redis, get_sessions, get_shared_redis
from caffeinated.api.models import (
    AchievementListResponse,
    AchievementStatus,
    ActionResponse,
    DifficultyRequest,
    DrinkRequest,
    EndGameRequest,
    ForceEventRequest,
    FramesRequest,
    FramesResponse,
    HighScoreListResponse,
    PowerUpRequest,
    SessionCreateRequest,
    SessionListResponse,
    SessionView,
)
from caffeinated.api.registry import SessionRegistry
from caffeinated.core.constants import Difficulty
from caffeinated.models import ActionResult, GameConfig, GamePhase, PlayerStatistics
from caffeinated.persistence import ProfileStoreError, RedisProfileStore
from caffeinated.session import GameSession
from caffeinated.websocket_hub import hub

router = APIRouter()


def _require_session(sessions: SessionRegistry, session_id: UUID) -> GameSession:
    try:
        return sessions.require(session_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


async def _publish(session_id: UUID, session: GameSession) -> SessionView:
    view = SessionView(session_id=session_id, snapshot=session.snapshot())
    await hub.publish_snapshot(str(session_id), view.snapshot)
    return view


def _conflict(session: GameSession, action: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=f"Cannot {action} while {session.phase.value}",
    )


@router.websocket("/ws/session/{session_id}")
async def session_updates_ws(websocket: WebSocket, session_id: UUID) -> None:
    sessions: SessionRegistry = websocket.app.state.sessions
    session = sessions.get(session_id)
    if session is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    sid = str(session_id)
    await hub.connect(sid, websocket, snapshot=session.snapshot())

    try:
        # Renderers only listen; anything they send is ignored.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(sid, websocket)
    except Exception:
        await hub.disconnect(sid, websocket)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/session", response_model=SessionView, status_code=status.HTTP_201_CREATED)
async def create_session_route(
    payload: SessionCreateRequest,
    r: redis.Redis = Depends(get_shared_redis),
    sessions: SessionRegistry = Depends(get_sessions),
) -> SessionView:
    config = GameConfig(
        difficulty=payload.difficulty,
        events_enabled=payload.events_enabled,
        power_ups_enabled=payload.power_ups_enabled,
        drink_interactions_enabled=payload.drink_interactions_enabled,
    )
    session = GameSession(config, store=RedisProfileStore(r, payload.profile_id), seed=payload.seed)
    session_id = sessions.add(session)
    return await _publish(session_id, session)


@router.get("/session", response_model=SessionListResponse)
async def list_sessions_route(sessions: SessionRegistry = Depends(get_sessions)) -> SessionListResponse:
    return SessionListResponse(sessions=sessions.ids())


@router.get("/session/{session_id}", response_model=SessionView)
async def get_session_route(session_id: UUID, sessions: SessionRegistry = Depends(get_sessions)) -> SessionView:
    session = _require_session(sessions, session_id)
    return SessionView(session_id=session_id, snapshot=session.snapshot())


@router.delete("/session/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session_route(session_id: UUID, sessions: SessionRegistry = Depends(get_sessions)) -> None:
    if not sessions.remove(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    await hub.close_session(str(session_id))


@router.post("/session/{session_id}/start", response_model=SessionView)
async def start_route(session_id: UUID, sessions: SessionRegistry = Depends(get_sessions)) -> SessionView:
    session = _require_session(sessions, session_id)
    if not session.start_game():
        raise _conflict(session, "start")
    return await _publish(session_id, session)


@router.post("/session/{session_id}/pause", response_model=SessionView)
async def pause_route(session_id: UUID, sessions: SessionRegistry = Depends(get_sessions)) -> SessionView:
    session = _require_session(sessions, session_id)
    if not session.pause_game():
        raise _conflict(session, "pause")
    return await _publish(session_id, session)


@router.post("/session/{session_id}/resume", response_model=SessionView)
async def resume_route(session_id: UUID, sessions: SessionRegistry = Depends(get_sessions)) -> SessionView:
    session = _require_session(sessions, session_id)
    if not session.resume_game():
        raise _conflict(session, "resume")
    return await _publish(session_id, session)


@router.post("/session/{session_id}/end", response_model=SessionView)
async def end_route(
    session_id: UUID,
    payload: EndGameRequest,
    sessions: SessionRegistry = Depends(get_sessions),
) -> SessionView:
    session = _require_session(sessions, session_id)
    if not session.end_game(payload.outcome):
        raise _conflict(session, "end the game")
    return await _publish(session_id, session)


@router.post("/session/{session_id}/menu", response_model=SessionView)
async def menu_route(session_id: UUID, sessions: SessionRegistry = Depends(get_sessions)) -> SessionView:
    session = _require_session(sessions, session_id)
    if not session.return_to_menu():
        raise _conflict(session, "return to menu")
    return await _publish(session_id, session)


@router.post("/session/{session_id}/difficulty", response_model=SessionView)
async def difficulty_route(
    session_id: UUID,
    payload: DifficultyRequest,
    sessions: SessionRegistry = Depends(get_sessions),
) -> SessionView:
    session = _require_session(sessions, session_id)
    if session.phase in (GamePhase.playing, GamePhase.paused):
        raise _conflict(session, "change difficulty")
    session.set_difficulty(payload.difficulty)
    return await _publish(session_id, session)


@router.post("/session/{session_id}/frames", response_model=FramesResponse)
async def frames_route(
    session_id: UUID,
    payload: FramesRequest,
    sessions: SessionRegistry = Depends(get_sessions),
) -> FramesResponse:
    session = _require_session(sessions, session_id)
    steps = session.advance(payload.elapsed_ms)
    view = await _publish(session_id, session)
    return FramesResponse(steps=steps, snapshot=view.snapshot)


async def _action(session_id: UUID, session: GameSession, result: ActionResult) -> ActionResponse:
    view = await _publish(session_id, session) if result.success else SessionView(session_id=session_id, snapshot=session.snapshot())
    return ActionResponse(result=result, snapshot=view.snapshot)


@router.post("/session/{session_id}/drink", response_model=ActionResponse)
async def drink_route(
    session_id: UUID,
    payload: DrinkRequest,
    sessions: SessionRegistry = Depends(get_sessions),
) -> ActionResponse:
    session = _require_session(sessions, session_id)
    return await _action(session_id, session, session.consume_drink(payload.drink))


@router.post("/session/{session_id}/power-up", response_model=ActionResponse)
async def power_up_route(
    session_id: UUID,
    payload: PowerUpRequest,
    sessions: SessionRegistry = Depends(get_sessions),
) -> ActionResponse:
    session = _require_session(sessions, session_id)
    return await _action(session_id, session, session.activate_power_up(payload.power_up))


@router.post("/session/{session_id}/event", response_model=ActionResponse)
async def force_event_route(
    session_id: UUID,
    payload: ForceEventRequest,
    sessions: SessionRegistry = Depends(get_sessions),
) -> ActionResponse:
    session = _require_session(sessions, session_id)
    return await _action(session_id, session, session.force_event(payload.event))


@router.get("/profile/{profile_id}/highscores", response_model=HighScoreListResponse)
async def high_scores_route(
    profile_id: str,
    difficulty: Difficulty | None = None,
    r: redis.Redis = Depends(get_redis),
) -> HighScoreListResponse:
    try:
        scores = RedisProfileStore(r, profile_id).get_high_scores(difficulty)
    except ProfileStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
    return HighScoreListResponse(scores=scores)


@router.get("/profile/{profile_id}/achievements", response_model=AchievementListResponse)
async def achievements_route(profile_id: str, r: redis.Redis = Depends(get_redis)) -> AchievementListResponse:
    store = RedisProfileStore(r, profile_id)
    try:
        unlocked = {a.id: a.unlocked_at for a in store.get_achievements()}
        stats = store.get_statistics()
    except ProfileStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e

    return AchievementListResponse(
        achievements=[
            AchievementStatus(
                id=a.id,
                name=a.name,
                description=a.description,
                rarity=a.rarity.value,
                points=a.points,
                unlocked=a.id in unlocked,
                unlocked_at=unlocked.get(a.id),
                progress=achievement_progress(a.id, stats),
                max_progress=a.max_progress,
            )
            for a in ACHIEVEMENTS.values()
        ]
    )


@router.get("/profile/{profile_id}/statistics", response_model=PlayerStatistics)
async def statistics_route(profile_id: str, r: redis.Redis = Depends(get_redis)) -> PlayerStatistics:
    try:
        return RedisProfileStore(r, profile_id).get_statistics()
    except ProfileStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e

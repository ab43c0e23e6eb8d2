from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class SessionWebSocketHub:
    """Fans game-session snapshots out to the renderers watching each session.

    A renderer that connects is sent the session's current snapshot first
    (`session_snapshot`), then a `session_updated` message after every state
    change the API makes. Deleting a session sends its watchers one
    `session_closed` message and forgets them; the client closes its socket.

    State lives in this process only.
    """

    def __init__(self) -> None:
        self._by_session: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, session_id: str, websocket: WebSocket, snapshot: dict[str, Any] | None = None) -> None:
        await websocket.accept()
        if snapshot is not None:
            await websocket.send_json({"type": "session_snapshot", "session_id": session_id, "snapshot": snapshot})
        async with self._lock:
            self._by_session[session_id].add(websocket)
        logger.debug("renderer attached to session %s", session_id)

    async def disconnect(self, session_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            conns = self._by_session.get(session_id)
            if not conns:
                return
            conns.discard(websocket)
            if not conns:
                self._by_session.pop(session_id, None)

    async def watchers(self, session_id: str) -> int:
        async with self._lock:
            return len(self._by_session.get(session_id, ()))

    async def publish_snapshot(self, session_id: str, snapshot: dict[str, Any]) -> int:
        return await self.broadcast(
            session_id, {"type": "session_updated", "session_id": session_id, "snapshot": snapshot}
        )

    async def close_session(self, session_id: str) -> int:
        """Tell every watcher the session is gone and stop tracking them."""

        async with self._lock:
            conns = list(self._by_session.pop(session_id, set()))
        delivered = 0
        for ws in conns:
            try:
                await ws.send_json({"type": "session_closed", "session_id": session_id})
                delivered += 1
            except Exception as e:
                logger.debug("could not notify closed session %s: %s", session_id, e)
        return delivered

    async def broadcast(self, session_id: str, payload: dict[str, Any]) -> int:
        """Send `payload` to every watcher; returns how many received it."""

        async with self._lock:
            conns = list(self._by_session.get(session_id, set()))

        if not conns:
            return 0

        dead: list[WebSocket] = []
        for ws in conns:
            try:
                await ws.send_json(payload)
            except Exception as e:
                logger.debug("dropping websocket for session %s: %s", session_id, e)
                dead.append(ws)

        if dead:
            async with self._lock:
                for ws in dead:
                    self._by_session.get(session_id, set()).discard(ws)
        return len(conns) - len(dead)


hub = SessionWebSocketHub()

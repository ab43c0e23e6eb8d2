from __future__ import annotations

import threading
from uuid import UUID, uuid4

from caffeinated.session import GameSession


class SessionRegistry:
    """In-memory sessions for one API process, keyed by session id."""

    def __init__(self) -> None:
        self._sessions: dict[UUID, GameSession] = {}
        self._lock = threading.Lock()

    def add(self, session: GameSession) -> UUID:
        session_id = uuid4()
        with self._lock:
            self._sessions[session_id] = session
        return session_id

    def get(self, session_id: UUID) -> GameSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def require(self, session_id: UUID) -> GameSession:
        session = self.get(session_id)
        if session is None:
            raise LookupError("Session not found")
        return session

    def remove(self, session_id: UUID) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def ids(self) -> list[UUID]:
        with self._lock:
            return list(self._sessions)

from __future__ import annotations

from collections.abc import Generator

import fakeredis
import pytest
from fastapi.testclient import TestClient

from caffeinated.core.constants import Difficulty
from caffeinated.models import GameConfig
from caffeinated.persistence import RedisProfileStore
from caffeinated.session import GameSession
from caffeinated.state_manager import GameStateManager


@pytest.fixture()
def fake_redis() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def store(fake_redis: fakeredis.FakeRedis) -> RedisProfileStore:
    return RedisProfileStore(fake_redis, profile_id="tester")


@pytest.fixture()
def intern_manager() -> GameStateManager:
    return GameStateManager(GameConfig(difficulty=Difficulty.intern))


@pytest.fixture()
def quiet_session() -> GameSession:
    """A seeded junior session with random events switched off."""

    return GameSession(GameConfig(difficulty=Difficulty.junior, events_enabled=False), seed=1)


@pytest.fixture()
def client_and_redis() -> Generator[tuple[TestClient, fakeredis.FakeRedis], None, None]:
    """FastAPI TestClient whose redis dependency is a fakeredis instance."""

    from caffeinated.api.deps import get_redis, get_shared_redis
    from caffeinated.main import app

    r = fakeredis.FakeRedis(decode_responses=True)

    def _override() -> Generator[fakeredis.FakeRedis, None, None]:
        yield r

    app.dependency_overrides[get_redis] = _override
    app.dependency_overrides[get_shared_redis] = lambda: r
    with TestClient(app) as c:
        yield c, r
    app.dependency_overrides.clear()

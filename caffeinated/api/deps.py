from __future__ import annotations

from collections.abc import Generator

import redis
from fastapi import Request

from caffeinated.api.registry import SessionRegistry
from caffeinated.infra.redis_client import create_redis


def get_redis() -> Generator[redis.Redis, None, None]:
    client = create_redis()
    try:
        yield client
    finally:
        client.close()


def get_shared_redis(request: Request) -> redis.Redis:
    """App-lifetime client for stores that outlive the request, such as a session's profile store."""

    return request.app.state.redis


def get_sessions(request: Request) -> SessionRegistry:
    return request.app.state.sessions

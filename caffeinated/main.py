from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

from caffeinated.api.registry import SessionRegistry
from caffeinated.api.routes import router
from caffeinated.infra.redis_client import create_redis

logging.basicConfig(level=os.environ.get("CAFFEINATED_LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    app.state.sessions = SessionRegistry()
    # Sessions keep their profile store for their whole life, so they share this client.
    app.state.redis = create_redis()
    logger.info("session registry ready")
    try:
        yield
    finally:
        logger.info("shutting down with %d live sessions", len(app.state.sessions.ids()))
        app.state.redis.close()


app = FastAPI(title="stay-caffeinated", version="0.1.0", lifespan=_lifespan)
app.include_router(router)


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "stay-caffeinated", "version": "0.1.0"}

"""Application lifespan: wire the event emitter, tracing and SQL engine.

No business logic here. The engine itself is assembled per request in
procflow.api.v1.dependencies from app.state.emitter.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from procflow.application.interfaces.services import IEventEmitter
from procflow.core.config import Settings, get_settings
from procflow.infrastructure.persistence import database
from procflow.infrastructure.services import (
    FanOutEventEmitter,
    LoggingEventEmitter,
    SafeEventEmitter,
)
from procflow.shared.telemetry.telemetry import configure_telemetry, set_telemetry

logger = logging.getLogger(__name__)


async def _build_emitter(settings: Settings, app: FastAPI) -> IEventEmitter:
    """Log every workflow event; also publish to Redis when it is reachable.

    The fan-out is wrapped in SafeEventEmitter so a slow or failing
    transport never fails the status change that produced the event.
    """
    emitters: list[IEventEmitter] = [LoggingEventEmitter()]
    app.state.redis_emitter = None
    if settings.redis_enabled:
        from procflow.infrastructure.messaging.redis_pubsub import RedisEventEmitter

        redis_emitter = RedisEventEmitter()
        await redis_emitter.connect()
        if redis_emitter.is_available():
            emitters.append(redis_emitter)
            app.state.redis_emitter = redis_emitter
        else:
            logger.warning("Redis unavailable; workflow events are logged only")
    return SafeEventEmitter(
        FanOutEventEmitter(emitters), timeout_seconds=settings.emitter_timeout_seconds
    )


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup: tracing, then the event emitter. Shutdown runs in reverse
    and finally disposes the SQL engine pool."""
    settings = get_settings()
    telemetry = configure_telemetry(settings, app)
    app.state.emitter = await _build_emitter(settings, app)
    logger.info(
        "procflow %s started (redis=%s, tracing=%s)",
        settings.app_version,
        app.state.redis_emitter is not None,
        telemetry is not None,
    )

    yield

    if app.state.redis_emitter is not None:
        await app.state.redis_emitter.disconnect()
        app.state.redis_emitter = None
    if telemetry is not None:
        telemetry.shutdown()
        set_telemetry(None)
    if database.engine is not None:
        await database.dispose_engine()
        logger.info("Database engine disposed")

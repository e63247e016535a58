"""Redis Pub/Sub transport for workflow lifecycle events.

Events are published as JSON on one channel per entity type
({prefix}:{entity_type}); notification delivery services subscribe to the
channels they care about.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis.asyncio as redis

from procflow.application.dtos.event import WorkflowEvent
from procflow.core.config import get_settings
from procflow.domain.exceptions import EmitterTransportError
from procflow.shared.enums import EntityType, EventType

logger = logging.getLogger(__name__)


class _RedisPubSubBase:
    """Shared Redis connection and channel logic for workflow event pub/sub."""

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        channel_prefix: str | None = None,
    ) -> None:
        """Initialize. Pass redis_client for DI/testing."""
        self.redis = redis_client
        self.settings = get_settings()
        self.channel_prefix = channel_prefix or self.settings.event_channel_prefix
        self._connected = redis_client is not None

    async def connect(self) -> None:
        """Establish Redis connection. Call on app startup."""
        if self._connected:
            return
        if self.redis is None:
            try:
                self.redis = redis.Redis(
                    host=self.settings.redis_host,
                    port=self.settings.redis_port,
                    db=self.settings.redis_db,
                    password=(
                        self.settings.redis_password.get_secret_value()
                        if self.settings.redis_password
                        else None
                    ),
                    decode_responses=True,
                    socket_connect_timeout=5,
                )
                await self.redis.ping()
                self._connected = True
                logger.info("Redis event pub/sub connected")
            except (redis.ConnectionError, redis.TimeoutError) as e:
                logger.warning("Redis event pub/sub connection failed: %s", e)
                self._connected = False
                self.redis = None

    async def disconnect(self) -> None:
        """Close Redis connection. Call on app shutdown."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self._connected = False
            logger.info("Redis event pub/sub disconnected")

    def is_available(self) -> bool:
        """Return True if Redis is connected."""
        return self._connected and self.redis is not None

    def channel_for(self, entity_type: EntityType) -> str:
        """Channel name for an entity type."""
        return f"{self.channel_prefix}:{entity_type.value}"


class RedisEventEmitter(_RedisPubSubBase):
    """IEventEmitter that publishes each event to its entity-type channel."""

    async def emit(
        self,
        event_type: EventType,
        entity_type: EntityType,
        entity_id: str,
        payload: dict[str, Any],
        workflow_run_id: str | None = None,
    ) -> None:
        """Publish the event.

        Raises:
            EmitterTransportError: If Redis is unavailable or the publish fails.
        """
        if not self.is_available() or self.redis is None:
            raise EmitterTransportError(event_type.value, "redis not connected")
        event = WorkflowEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            payload=payload,
            workflow_run_id=workflow_run_id,
        )
        channel = self.channel_for(entity_type)
        try:
            message = json.dumps(event.to_dict(), default=str)
            receivers = await self.redis.publish(channel, message)
        except (redis.RedisError, TypeError, ValueError) as e:
            raise EmitterTransportError(event_type.value, str(e)) from e
        logger.debug(
            "Published %s for %s %s to %s (%d receivers)",
            event_type.value,
            entity_type.value,
            entity_id,
            channel,
            receivers,
        )


"""Messaging: Redis pub/sub transport for workflow events."""

from procflow.infrastructure.messaging.redis_pubsub import RedisEventEmitter

__all__ = ["RedisEventEmitter"]

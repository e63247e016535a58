"""Infrastructure services: event emitter adapters."""

from procflow.infrastructure.services.event_emitters import (
    FanOutEventEmitter,
    LoggingEventEmitter,
    SafeEventEmitter,
)

__all__ = ["FanOutEventEmitter", "LoggingEventEmitter", "SafeEventEmitter"]

"""Event emitter adapters: log-only sink, fan-out and the bounded safe wrapper."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from procflow.application.interfaces.services import IEventEmitter
from procflow.domain.exceptions import EmitterTransportError
from procflow.shared.enums import EntityType, EventType
from procflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class LoggingEventEmitter:
    """IEventEmitter implementation that logs instead of delivering.

    Use when no transport is configured. Production can swap in the Redis
    emitter or a queue-based implementation.
    """

    async def emit(
        self,
        event_type: EventType,
        entity_type: EntityType,
        entity_id: str,
        payload: dict[str, Any],
        workflow_run_id: str | None = None,
    ) -> None:
        logger.info(
            "Workflow event %s on %s %s (run=%s)",
            event_type.value,
            entity_type.value,
            entity_id,
            workflow_run_id,
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Workflow event payload: %s", payload)


class FanOutEventEmitter:
    """Emit to every wrapped emitter in order; the first transport error propagates."""

    def __init__(self, emitters: Sequence[IEventEmitter]) -> None:
        self.emitters = list(emitters)

    async def emit(
        self,
        event_type: EventType,
        entity_type: EntityType,
        entity_id: str,
        payload: dict[str, Any],
        workflow_run_id: str | None = None,
    ) -> None:
        for emitter in self.emitters:
            await emitter.emit(event_type, entity_type, entity_id, payload, workflow_run_id)


class SafeEventEmitter:
    """Bound each emit by a timeout; log and swallow transport failures.

    The transition that raised the event is already committed, so a slow or
    broken transport must never surface to the caller.
    """

    def __init__(self, inner: IEventEmitter, timeout_seconds: float = 5.0) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be greater than 0")
        self.inner = inner
        self.timeout_seconds = timeout_seconds

    async def emit(
        self,
        event_type: EventType,
        entity_type: EntityType,
        entity_id: str,
        payload: dict[str, Any],
        workflow_run_id: str | None = None,
    ) -> None:
        try:
            await asyncio.wait_for(
                self.inner.emit(event_type, entity_type, entity_id, payload, workflow_run_id),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            logger.error(
                "Emit %s for %s %s timed out after %.1fs",
                event_type.value,
                entity_type.value,
                entity_id,
                self.timeout_seconds,
            )
        except EmitterTransportError as e:
            logger.error(
                "Emit %s for %s %s failed: %s",
                event_type.value,
                entity_type.value,
                entity_id,
                e.message,
            )
        except Exception:
            logger.exception(
                "Unexpected emitter failure for %s on %s %s",
                event_type.value,
                entity_type.value,
                entity_id,
            )

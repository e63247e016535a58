"""Service interfaces (ports) for the application layer.

Protocols define contracts for the event sink and status-change subscribers (DIP).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from procflow.application.dtos.task import TaskStatusChange
    from procflow.shared.enums import EntityType, EventType


# Event emitter interface
class IEventEmitter(Protocol):
    """Protocol for the lifecycle event sink.

    The engine decides what to raise; delivery (email, in-app, chat) is an
    external collaborator behind this port.
    """

    async def emit(
        self,
        event_type: EventType,
        entity_type: EntityType,
        entity_id: str,
        payload: dict[str, Any],
        workflow_run_id: str | None = None,
    ) -> None:
        """Raise one event. Transport failures surface as EmitterTransportError."""


# Task status listener interface
class ITaskStatusListener(Protocol):
    """Protocol for standing subscribers to task status transitions."""

    async def on_task_status_changed(self, change: TaskStatusChange) -> None:
        """React to a committed transition (notify, reconcile)."""

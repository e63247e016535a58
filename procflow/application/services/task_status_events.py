"""In-process bus for committed task status transitions.

Every writer of task status (status service, validation gate) publishes
here after its conditional update succeeded. Standing subscribers are the
S3 status-change notifier and the completion reconciler. A subscriber
failure is logged and does not affect other subscribers or the write that
already happened; CompletionReconciler.reconcile_request repairs whatever a
failed completion check left open.
"""

from __future__ import annotations

from procflow.application.dtos.task import TaskStatusChange
from procflow.application.interfaces.services import ITaskStatusListener
from procflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class TaskStatusChangeBus:
    """Fan out TaskStatusChange to subscribers, in subscription order."""

    def __init__(self, listeners: list[ITaskStatusListener] | None = None) -> None:
        self._listeners: list[ITaskStatusListener] = list(listeners or [])

    def subscribe(self, listener: ITaskStatusListener) -> None:
        self._listeners.append(listener)

    async def publish(self, change: TaskStatusChange) -> None:
        for listener in self._listeners:
            try:
                await listener.on_task_status_changed(change)
            except Exception:
                logger.exception(
                    "Task status listener %s failed (task_id=%s, %s -> %s)",
                    type(listener).__name__,
                    change.task.id,
                    change.previous_status.value,
                    change.task.status.value,
                )

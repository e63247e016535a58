"""Plain task status transitions, assignment, bulk updates and request progress.

Statuses owned by the validation gate (pending_validation_*, validated,
refused) cannot be written here. Every successful write is published on
the task status bus.
"""

from __future__ import annotations

from collections.abc import Sequence

from procflow.application.dtos.task import (
    BulkChunkOutcome,
    BulkUpdateResult,
    RequestProgress,
    TaskResult,
    TaskStatusChange,
)
from procflow.application.interfaces.repositories import ITaskRepository
from procflow.application.interfaces.services import IEventEmitter
from procflow.application.services.task_status_events import TaskStatusChangeBus
from procflow.core.config import MAX_BULK_CHUNK_SIZE
from procflow.domain.enums import TaskStatus
from procflow.domain.exceptions import (
    ConflictError,
    IllegalTransitionError,
    PartialBatchFailure,
    ResourceNotFoundException,
    ValidationException,
)
from procflow.domain.task_lifecycle import (
    COMPLETED_STATUSES,
    GATE_OWNED_STATUSES,
    aggregate_status,
    allowed_sources,
    calculate_progress,
    check_transition,
)
from procflow.shared.enums import EntityType, EventType
from procflow.shared.telemetry.logging import get_logger
from procflow.shared.telemetry.tracing import traced

logger = get_logger(__name__)

_ASSIGNABLE_STATUSES = frozenset({TaskStatus.TO_ASSIGN, TaskStatus.TODO})


def chunked(items: Sequence[str], size: int) -> list[list[str]]:
    """Split items into consecutive chunks of at most size."""
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class TaskStatusService:
    """Task mutations outside the validation gate."""

    def __init__(
        self,
        task_repo: ITaskRepository,
        bus: TaskStatusChangeBus,
        emitter: IEventEmitter,
        *,
        chunk_size: int = MAX_BULK_CHUNK_SIZE,
    ) -> None:
        if not 1 <= chunk_size <= MAX_BULK_CHUNK_SIZE:
            raise ValueError(f"chunk_size must be between 1 and {MAX_BULK_CHUNK_SIZE}")
        self.task_repo = task_repo
        self.bus = bus
        self.emitter = emitter
        self.chunk_size = chunk_size

    async def _get_task(self, task_id: str) -> TaskResult:
        task = await self.task_repo.get_by_id(task_id)
        if task is None:
            raise ResourceNotFoundException("task", task_id)
        return task

    @traced("task_status_service.change_status")
    async def change_status(
        self, task_id: str, new_status: TaskStatus, actor_id: str | None
    ) -> TaskResult:
        """Apply one plain transition from the task's current status.

        Raises:
            IllegalTransitionError: If the move is not in the transition
                table, targets a gate-owned status, or the task is locked.
            ConflictError: If the task changed since it was read.
        """
        task = await self._get_task(task_id)
        if new_status in GATE_OWNED_STATUSES:
            raise IllegalTransitionError(
                task_id, task.status.value, new_status.value, "use the validation gate"
            )
        if task.is_locked_for_validation:
            raise IllegalTransitionError(
                task_id, task.status.value, new_status.value, "task is locked for validation"
            )
        check_transition(
            task_id,
            task.status,
            new_status,
            validation_level_1=task.validation_level_1,
            validation_level_2=task.validation_level_2,
        )
        updated = await self.task_repo.compare_and_set(
            task_id,
            {"status": task.status, "is_locked_for_validation": False},
            {"status": new_status},
        )
        if updated is None:
            raise ConflictError("task", task_id, task.status.value)
        await self.bus.publish(TaskStatusChange(updated, task.status, actor_id))
        return updated

    @traced("task_status_service.assign")
    async def assign(self, task_id: str, assignee_id: str, actor_id: str | None) -> TaskResult:
        """Assign a to_assign task (-> todo) or reassign a todo task.

        Raises:
            ValidationException: If assignee_id is empty.
            IllegalTransitionError: If the task is past todo.
            ConflictError: If the task changed since it was read.
        """
        if not assignee_id:
            raise ValidationException("assignee_id is required", field="assignee_id")
        task = await self._get_task(task_id)
        if task.status not in _ASSIGNABLE_STATUSES:
            raise IllegalTransitionError(
                task_id,
                task.status.value,
                TaskStatus.TODO.value,
                "task can no longer be assigned",
            )
        updated = await self.task_repo.compare_and_set(
            task_id,
            {"status": task.status},
            {"status": TaskStatus.TODO, "assignee_id": assignee_id},
        )
        if updated is None:
            raise ConflictError("task", task_id, task.status.value)
        if task.status != TaskStatus.TODO:
            await self.bus.publish(TaskStatusChange(updated, task.status, actor_id))
        await self.emitter.emit(
            EventType.TASK_ASSIGNED,
            EntityType.TASK,
            task_id,
            {
                "assignee_id": assignee_id,
                "assigned_by": actor_id,
                "task_title": updated.title,
                "request_id": updated.parent_request_id,
            },
            updated.workflow_run_id,
        )
        return updated

    @traced("task_status_service.bulk_update_status")
    async def bulk_update_status(
        self,
        task_ids: Sequence[str],
        new_status: TaskStatus,
        actor_id: str | None,
    ) -> BulkUpdateResult:
        """Move many tasks to new_status, chunk by chunk, best effort.

        Rows that are locked or not in a legal source status are skipped.
        A failing chunk is counted as failed and does not roll back earlier
        chunks; the result then carries a PartialBatchFailure warning.

        Args:
            task_ids: Task ids (duplicates are ignored).
            new_status: Target status (not gate-owned).
            actor_id: Caller, recorded on published status changes.

        Returns:
            BulkUpdateResult with per-chunk counts.
        """
        if new_status in GATE_OWNED_STATUSES:
            raise IllegalTransitionError(
                "bulk", "*", new_status.value, "use the validation gate"
            )
        ids = list(dict.fromkeys(task_ids))
        sources = allowed_sources(new_status)
        outcomes: list[BulkChunkOutcome] = []
        succeeded = skipped = failed = 0
        for index, chunk in enumerate(chunked(ids, self.chunk_size)):
            try:
                before = await self.task_repo.get_statuses(chunk)
                updated_ids = await self.task_repo.bulk_compare_and_set_status(
                    chunk, sources, new_status
                )
            except Exception as e:
                logger.exception("Bulk status chunk %d failed (%d ids)", index, len(chunk))
                failed += len(chunk)
                outcomes.append(
                    BulkChunkOutcome(index, len(chunk), 0, 0, len(chunk), error=str(e))
                )
                continue
            succeeded += len(updated_ids)
            skipped += len(chunk) - len(updated_ids)
            outcomes.append(
                BulkChunkOutcome(
                    index, len(chunk), len(updated_ids), len(chunk) - len(updated_ids), 0
                )
            )
            for task_id in updated_ids:
                task = await self.task_repo.get_by_id(task_id)
                if task is not None and task_id in before:
                    await self.bus.publish(TaskStatusChange(task, before[task_id], actor_id))

        warning = None
        failed_chunks = [o.index for o in outcomes if o.error is not None]
        if failed_chunks:
            warning = PartialBatchFailure(succeeded, failed, failed_chunks)
            logger.warning(warning.message)
        return BulkUpdateResult(
            requested=len(ids),
            succeeded=succeeded,
            skipped=skipped,
            failed=failed,
            chunks=tuple(outcomes),
            warning=warning,
        )

    async def request_progress(self, request_id: str) -> RequestProgress:
        """Return completion counts and the aggregated status of a request's tasks."""
        request = await self.task_repo.get_by_id(request_id)
        if request is None or not request.is_request:
            raise ResourceNotFoundException("request", request_id)
        statuses = [t.status for t in await self.task_repo.list_by_request(request_id)]
        return RequestProgress(
            request_id=request_id,
            total=len(statuses),
            completed=sum(1 for s in statuses if s in COMPLETED_STATUSES),
            percent=calculate_progress(statuses),
            status=aggregate_status(statuses),
        )

"""Task-level validation gate (0, 1 or 2 approval levels).

done -> pending_validation_1 -> [pending_validation_2] -> validated, with
refused reachable from either pending level. Each decision is a single
conditional update keyed on the pending status read by the caller; zero
affected rows means another decision won and is reported as ConflictError.
"""

from __future__ import annotations

from typing import Any

from procflow.application.dtos.task import TaskResult, TaskStatusChange
from procflow.application.interfaces.repositories import ITaskRepository
from procflow.application.interfaces.services import IEventEmitter
from procflow.application.services.assignee_resolver import AssigneeResolver
from procflow.application.services.task_status_events import TaskStatusChangeBus
from procflow.domain.enums import TaskStatus, ValidationLevelType, ValidationStatus
from procflow.domain.exceptions import (
    ConflictError,
    IllegalTransitionError,
    MissingCommentError,
    ResourceNotFoundException,
    UnauthorizedApproverError,
    ValidationException,
)
from procflow.domain.task_lifecycle import check_transition, pending_status_for_level
from procflow.shared.enums import EntityType, EventType
from procflow.shared.telemetry.logging import get_logger
from procflow.shared.telemetry.tracing import traced
from procflow.shared.utils.datetime import utc_now

logger = get_logger(__name__)


def _pending_status(level: int) -> TaskStatus:
    try:
        return pending_status_for_level(level)
    except ValueError as e:
        raise ValidationException(str(e), field="level") from e


class TaskValidationGate:
    """Submit, validate and refuse for tasks (never for requests; see RequestValidationGate)."""

    def __init__(
        self,
        task_repo: ITaskRepository,
        resolver: AssigneeResolver,
        emitter: IEventEmitter,
        bus: TaskStatusChangeBus,
    ) -> None:
        self.task_repo = task_repo
        self.resolver = resolver
        self.emitter = emitter
        self.bus = bus

    async def _get_task(self, task_id: str) -> TaskResult:
        task = await self.task_repo.get_by_id(task_id)
        if task is None or task.is_request:
            raise ResourceNotFoundException("task", task_id)
        return task

    @traced("validation_gate.submit")
    async def submit_for_validation(self, task_id: str, actor_id: str) -> TaskResult:
        """Move a done task into pending_validation_1 and lock it.

        Raises:
            UnauthorizedApproverError: If actor_id is not the assignee.
            IllegalTransitionError: If the task is not done, is already
                locked, or does not require validation.
            ConflictError: If the task changed since it was read.
        """
        task = await self._get_task(task_id)
        if actor_id != task.assignee_id:
            raise UnauthorizedApproverError(task_id, actor_id, rule="assignee")
        target = TaskStatus.PENDING_VALIDATION_1
        if task.is_locked_for_validation:
            raise IllegalTransitionError(
                task_id, task.status.value, target.value, "already submitted for validation"
            )
        if task.status != TaskStatus.DONE:
            raise IllegalTransitionError(
                task_id, task.status.value, target.value, "submission requires status done"
            )
        check_transition(
            task_id,
            task.status,
            target,
            validation_level_1=task.validation_level_1,
            validation_level_2=task.validation_level_2,
        )
        if task.validation_level_1 == ValidationLevelType.NONE:
            raise IllegalTransitionError(
                task_id, task.status.value, target.value, "level-1 validation is not configured"
            )

        updated = await self.task_repo.compare_and_set(
            task_id,
            {"status": TaskStatus.DONE, "is_locked_for_validation": False},
            {
                "status": target,
                "is_locked_for_validation": True,
                "original_assignee_id": task.assignee_id,
                "validation_1_status": ValidationStatus.PENDING,
            },
        )
        if updated is None:
            raise ConflictError("task", task_id, TaskStatus.DONE.value)

        await self.bus.publish(TaskStatusChange(updated, task.status, actor_id))
        await self._request_validation(updated, 1)
        return updated

    @traced("validation_gate.validate")
    async def validate(
        self,
        task_id: str,
        level: int,
        actor_id: str,
        comment: str | None = None,
    ) -> TaskResult:
        """Approve the task at level.

        Level 1 with a level-2 validator moves to pending_validation_2;
        otherwise the task becomes validated and is unlocked.

        Raises:
            IllegalTransitionError: If the task is not pending at level.
            UnauthorizedApproverError: If actor_id fails the level's approver rule.
            ConflictError: If another decision won the conditional update.
        """
        expected = _pending_status(level)
        task = await self._get_task(task_id)
        if task.status != expected:
            raise IllegalTransitionError(
                task_id,
                task.status.value,
                TaskStatus.VALIDATED.value,
                f"task is not pending level-{level} validation",
            )
        await self._authorize(task, level, actor_id)

        now = utc_now()
        values: dict[str, Any] = {
            f"validation_{level}_status": ValidationStatus.VALIDATED,
            f"validation_{level}_by": actor_id,
            f"validation_{level}_at": now,
            f"validation_{level}_comment": comment,
        }
        if level == 1 and task.validation_level_2 != ValidationLevelType.NONE:
            values["status"] = TaskStatus.PENDING_VALIDATION_2
            values["validation_2_status"] = ValidationStatus.PENDING
        else:
            values["status"] = TaskStatus.VALIDATED
            values["is_locked_for_validation"] = False
            values["validated_at"] = now
            values["validator_id"] = actor_id

        updated = await self.task_repo.compare_and_set(task_id, {"status": expected}, values)
        if updated is None:
            raise ConflictError("task", task_id, expected.value)

        logger.info(
            "Task %s validated at level %d by %s -> %s",
            task_id,
            level,
            actor_id,
            updated.status.value,
        )
        await self.bus.publish(TaskStatusChange(updated, expected, actor_id))
        await self._decided(updated, level, "validated", actor_id, comment)
        if updated.status == TaskStatus.PENDING_VALIDATION_2:
            await self._request_validation(updated, 2)
        return updated

    @traced("validation_gate.refuse")
    async def refuse(
        self,
        task_id: str,
        level: int,
        actor_id: str,
        comment: str | None,
    ) -> TaskResult:
        """Refuse the task at level. A non-empty comment is mandatory.

        Raises:
            MissingCommentError: If comment is empty or whitespace (nothing is read or written).
            IllegalTransitionError: If the task is not pending at level.
            UnauthorizedApproverError: If actor_id fails the level's approver rule.
            ConflictError: If another decision won the conditional update.
        """
        if comment is None or not comment.strip():
            raise MissingCommentError(task_id)
        expected = _pending_status(level)
        task = await self._get_task(task_id)
        if task.status != expected:
            raise IllegalTransitionError(
                task_id,
                task.status.value,
                TaskStatus.REFUSED.value,
                f"task is not pending level-{level} validation",
            )
        await self._authorize(task, level, actor_id)

        updated = await self.task_repo.compare_and_set(
            task_id,
            {"status": expected},
            {
                "status": TaskStatus.REFUSED,
                "is_locked_for_validation": False,
                f"validation_{level}_status": ValidationStatus.REFUSED,
                f"validation_{level}_by": actor_id,
                f"validation_{level}_at": utc_now(),
                f"validation_{level}_comment": comment.strip(),
            },
        )
        if updated is None:
            raise ConflictError("task", task_id, expected.value)

        logger.info("Task %s refused at level %d by %s", task_id, level, actor_id)
        await self.bus.publish(TaskStatusChange(updated, expected, actor_id))
        await self._decided(updated, level, "refused", actor_id, comment.strip())
        return updated

    async def _authorize(self, task: TaskResult, level: int, actor_id: str) -> None:
        """Apply the approver rule of the task's level type."""
        level_type = task.validation_level(level)
        match level_type:
            case ValidationLevelType.NONE:
                raise IllegalTransitionError(
                    task.id,
                    task.status.value,
                    TaskStatus.VALIDATED.value,
                    f"level-{level} validation is not configured",
                )
            case ValidationLevelType.MANAGER:
                subject = task.original_assignee_id or task.assignee_id
                allowed = (
                    subject is not None
                    and actor_id != subject
                    and (
                        actor_id == task.validator_for(level)
                        or await self.resolver.is_manager_of(actor_id, subject)
                    )
                )
            case ValidationLevelType.REQUESTER:
                allowed = task.requester_id is not None and actor_id == task.requester_id
            case ValidationLevelType.FREE:
                allowed = actor_id == task.validator_for(level)
        if not allowed:
            raise UnauthorizedApproverError(
                task.id, actor_id, level=level, rule=level_type.value
            )

    async def _request_validation(self, task: TaskResult, level: int) -> None:
        await self.emitter.emit(
            EventType.VALIDATION_REQUESTED,
            EntityType.TASK,
            task.id,
            {
                "level": level,
                "validator_type": task.validation_level(level).value,
                "validator_id": task.validator_for(level),
                "assignee_id": task.original_assignee_id or task.assignee_id,
                "requester_id": task.requester_id,
                "task_title": task.title,
            },
            task.workflow_run_id,
        )

    async def _decided(
        self,
        task: TaskResult,
        level: int,
        decision: str,
        actor_id: str,
        comment: str | None,
    ) -> None:
        await self.emitter.emit(
            EventType.VALIDATION_DECIDED,
            EntityType.TASK,
            task.id,
            {
                "level": level,
                "decision": decision,
                "actor_id": actor_id,
                "comment": comment,
                "status": task.status.value,
                "assignee_id": task.original_assignee_id or task.assignee_id,
            },
            task.workflow_run_id,
        )

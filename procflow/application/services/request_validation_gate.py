"""Request-level (pre-workflow) validation gate.

Separate from the task gate: it gates workflow start rather than task
completion, and its manager rule is the requester's direct manager. While
the request is pending, its sub-process runs wait in waiting_validation;
final approval releases them to pending and launches the workflow.
"""

from __future__ import annotations

from typing import Any

from procflow.application.dtos.execution import RequestDecisionResult
from procflow.application.dtos.task import TaskResult
from procflow.application.interfaces.repositories import (
    IDirectoryRepository,
    ISubProcessRunRepository,
    ITaskRepository,
)
from procflow.application.interfaces.services import IEventEmitter
from procflow.application.services.workflow_launcher import WorkflowLauncher
from procflow.domain.enums import (
    RefusalAction,
    RequestValidationStatus,
    SubProcessRunStatus,
    TaskStatus,
    ValidationLevelType,
    ValidationStatus,
)
from procflow.domain.exceptions import (
    ConflictError,
    IllegalTransitionError,
    MissingCommentError,
    ResourceNotFoundException,
    UnauthorizedApproverError,
)
from procflow.shared.enums import EntityType, EventType
from procflow.shared.telemetry.logging import get_logger
from procflow.shared.telemetry.tracing import traced
from procflow.shared.utils.datetime import utc_now

logger = get_logger(__name__)

_LEVEL_BY_STATUS = {
    RequestValidationStatus.PENDING_LEVEL_1: 1,
    RequestValidationStatus.PENDING_LEVEL_2: 2,
}


class RequestValidationGate:
    """Approve, refuse (cancel or return) and resubmit requests."""

    def __init__(
        self,
        task_repo: ITaskRepository,
        sub_process_run_repo: ISubProcessRunRepository,
        directory: IDirectoryRepository,
        emitter: IEventEmitter,
        launcher: WorkflowLauncher,
    ) -> None:
        self.task_repo = task_repo
        self.sub_process_run_repo = sub_process_run_repo
        self.directory = directory
        self.emitter = emitter
        self.launcher = launcher

    async def _get_pending(self, request_id: str, target: str) -> tuple[TaskResult, int]:
        request = await self.task_repo.get_by_id(request_id)
        if request is None or not request.is_request:
            raise ResourceNotFoundException("request", request_id)
        level = _LEVEL_BY_STATUS.get(request.request_validation_status)
        if level is None:
            raise IllegalTransitionError(
                request_id,
                request.request_validation_status.value,
                target,
                "request is not pending validation",
            )
        return request, level

    @traced("request_validation_gate.approve")
    async def approve(
        self, request_id: str, actor_id: str, comment: str | None = None
    ) -> RequestDecisionResult:
        """Approve the request at its current level.

        Level 1 with a level-2 validator moves to pending_level_2. Final
        approval sets approved, moves the request todo -> in-progress,
        releases waiting sub-process runs and launches the workflow.

        Raises:
            IllegalTransitionError: If the request is not pending validation.
            UnauthorizedApproverError: If actor_id fails the level's approver rule.
            ConflictError: If another decision won the conditional update.
        """
        request, level = await self._get_pending(
            request_id, RequestValidationStatus.APPROVED.value
        )
        await self._authorize(request, level, actor_id)
        current = request.request_validation_status
        values: dict[str, Any] = {
            f"validation_{level}_status": ValidationStatus.VALIDATED,
            f"validation_{level}_by": actor_id,
            f"validation_{level}_at": utc_now(),
            f"validation_{level}_comment": comment,
        }
        expected: dict[str, Any] = {"request_validation_status": current}

        if level == 1 and request.validation_level_2 != ValidationLevelType.NONE:
            values["request_validation_status"] = RequestValidationStatus.PENDING_LEVEL_2
            values["validation_2_status"] = ValidationStatus.PENDING
            updated = await self.task_repo.compare_and_set(request_id, expected, values)
            if updated is None:
                raise ConflictError("request", request_id, current.value)
            await self._decided(updated, level, "approved", actor_id, comment)
            await self._request_validation(updated, 2)
            return RequestDecisionResult(request=updated)

        values["request_validation_status"] = RequestValidationStatus.APPROVED
        values["status"] = TaskStatus.IN_PROGRESS
        expected["status"] = TaskStatus.TODO
        updated = await self.task_repo.compare_and_set(request_id, expected, values)
        if updated is None:
            raise ConflictError("request", request_id, current.value)

        released = await self.sub_process_run_repo.set_status_for_request(
            request_id,
            [SubProcessRunStatus.WAITING_VALIDATION],
            SubProcessRunStatus.PENDING,
        )
        logger.info(
            "Request %s approved by %s; %d sub-process run(s) released",
            request_id,
            actor_id,
            released,
        )
        await self._decided(updated, level, "approved", actor_id, comment)
        launch = await self.launcher.launch(updated, started_by=actor_id)
        return RequestDecisionResult(request=updated, launch=launch)

    @traced("request_validation_gate.refuse")
    async def refuse(
        self,
        request_id: str,
        actor_id: str,
        comment: str | None,
        action: RefusalAction = RefusalAction.CANCEL,
    ) -> RequestDecisionResult:
        """Refuse the request. cancel ends it; return hands it back to the requester.

        Raises:
            MissingCommentError: If comment is empty or whitespace.
            IllegalTransitionError: If the request is not pending validation.
            UnauthorizedApproverError: If actor_id fails the level's approver rule.
            ConflictError: If another decision won the conditional update.
        """
        if comment is None or not comment.strip():
            raise MissingCommentError(request_id)
        request, level = await self._get_pending(
            request_id, RequestValidationStatus.REFUSED.value
        )
        await self._authorize(request, level, actor_id)
        current = request.request_validation_status
        values: dict[str, Any] = {
            f"validation_{level}_status": ValidationStatus.REFUSED,
            f"validation_{level}_by": actor_id,
            f"validation_{level}_at": utc_now(),
            f"validation_{level}_comment": comment.strip(),
        }
        match action:
            case RefusalAction.CANCEL:
                values["request_validation_status"] = RequestValidationStatus.REFUSED
                values["status"] = TaskStatus.CANCELLED
            case RefusalAction.RETURN:
                values["request_validation_status"] = RequestValidationStatus.RETURNED

        updated = await self.task_repo.compare_and_set(
            request_id, {"request_validation_status": current}, values
        )
        if updated is None:
            raise ConflictError("request", request_id, current.value)

        if action == RefusalAction.CANCEL:
            await self.sub_process_run_repo.set_status_for_request(
                request_id,
                [SubProcessRunStatus.WAITING_VALIDATION, SubProcessRunStatus.PENDING],
                SubProcessRunStatus.CANCELLED,
            )
        logger.info(
            "Request %s refused at level %d by %s (%s)",
            request_id,
            level,
            actor_id,
            action.value,
        )
        await self._decided(
            updated, level, "refused", actor_id, comment.strip(), action=action.value
        )
        return RequestDecisionResult(request=updated)

    @traced("request_validation_gate.resubmit")
    async def resubmit(self, request_id: str, actor_id: str) -> RequestDecisionResult:
        """Send a returned request back to level-1 validation (requester only).

        Raises:
            UnauthorizedApproverError: If actor_id is not the requester.
            IllegalTransitionError: If the request was not returned.
            ConflictError: If the request changed since it was read.
        """
        request = await self.task_repo.get_by_id(request_id)
        if request is None or not request.is_request:
            raise ResourceNotFoundException("request", request_id)
        if actor_id != request.requester_id:
            raise UnauthorizedApproverError(request_id, actor_id, rule="requester")
        current = request.request_validation_status
        if current != RequestValidationStatus.RETURNED:
            raise IllegalTransitionError(
                request_id,
                current.value,
                RequestValidationStatus.PENDING_LEVEL_1.value,
                "only returned requests can be resubmitted",
            )
        updated = await self.task_repo.compare_and_set(
            request_id,
            {"request_validation_status": RequestValidationStatus.RETURNED},
            {
                "request_validation_status": RequestValidationStatus.PENDING_LEVEL_1,
                "validation_1_status": ValidationStatus.PENDING,
                "validation_2_status": None,
            },
        )
        if updated is None:
            raise ConflictError("request", request_id, current.value)
        await self._request_validation(updated, 1)
        return RequestDecisionResult(request=updated)

    async def _authorize(self, request: TaskResult, level: int, actor_id: str) -> None:
        level_type = request.validation_level(level)
        match level_type:
            case ValidationLevelType.NONE:
                raise IllegalTransitionError(
                    request.id,
                    request.request_validation_status.value,
                    RequestValidationStatus.APPROVED.value,
                    f"level-{level} validation is not configured",
                )
            case ValidationLevelType.MANAGER:
                manager_id = (
                    await self.directory.get_manager_id(request.requester_id)
                    if request.requester_id
                    else None
                )
                allowed = manager_id is not None and actor_id == manager_id
            case ValidationLevelType.REQUESTER:
                allowed = actor_id == request.requester_id
            case ValidationLevelType.FREE:
                allowed = actor_id == request.validator_for(level)
        if not allowed:
            raise UnauthorizedApproverError(
                request.id, actor_id, level=level, rule=level_type.value
            )

    async def _request_validation(self, request: TaskResult, level: int) -> None:
        await self.emitter.emit(
            EventType.VALIDATION_REQUESTED,
            EntityType.REQUEST,
            request.id,
            {
                "level": level,
                "validator_type": request.validation_level(level).value,
                "validator_id": request.validator_for(level),
                "requester_id": request.requester_id,
                "request_title": request.title,
            },
        )

    async def _decided(
        self,
        request: TaskResult,
        level: int,
        decision: str,
        actor_id: str,
        comment: str | None,
        **extra: Any,
    ) -> None:
        await self.emitter.emit(
            EventType.VALIDATION_DECIDED,
            EntityType.REQUEST,
            request.id,
            {
                "level": level,
                "decision": decision,
                "actor_id": actor_id,
                "comment": comment,
                "requester_id": request.requester_id,
                "request_validation_status": request.request_validation_status.value,
                **extra,
            },
        )

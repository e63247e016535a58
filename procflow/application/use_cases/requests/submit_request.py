"""Submit request use case: create the request, its sub-process runs, then launch or wait."""

from __future__ import annotations

from procflow.application.dtos.execution import SubmitRequestCommand, SubmitRequestResult
from procflow.application.dtos.sub_process_run import SubProcessRunCreate
from procflow.application.dtos.task import TaskCreate
from procflow.application.dtos.templates import (
    ProcessTemplateResult,
    SubProcessTemplateResult,
)
from procflow.application.interfaces.repositories import (
    ISubProcessRunRepository,
    ITaskRepository,
    ITemplateRepository,
)
from procflow.application.interfaces.services import IEventEmitter
from procflow.application.services.workflow_launcher import WorkflowLauncher
from procflow.domain.enums import (
    RequestValidationStatus,
    SubProcessRunStatus,
    TaskStatus,
    TaskType,
    ValidationLevelType,
    ValidationStatus,
)
from procflow.domain.exceptions import ResourceNotFoundException, ValidationException
from procflow.shared.enums import EntityType, EventType
from procflow.shared.telemetry.logging import get_logger
from procflow.shared.telemetry.tracing import traced

logger = get_logger(__name__)


class SubmitRequestUseCase:
    """Creates a request and either launches its workflow or parks it for validation."""

    def __init__(
        self,
        template_repo: ITemplateRepository,
        task_repo: ITaskRepository,
        sub_process_run_repo: ISubProcessRunRepository,
        launcher: WorkflowLauncher,
        emitter: IEventEmitter,
    ) -> None:
        self._template_repo = template_repo
        self._task_repo = task_repo
        self._sub_process_run_repo = sub_process_run_repo
        self._launcher = launcher
        self._emitter = emitter

    async def _select_sub_processes(
        self, process: ProcessTemplateResult, selected_ids: tuple[str, ...]
    ) -> list[SubProcessTemplateResult]:
        active = [
            t for t in await self._template_repo.list_sub_processes(process.id) if t.is_active
        ]
        if selected_ids:
            by_id = {t.id: t for t in active}
            unknown = [i for i in selected_ids if i not in by_id]
            if unknown:
                raise ValidationException(
                    f"Unknown sub-process ids for process {process.id}: {', '.join(unknown)}",
                    field="selected_sub_process_ids",
                )
            wanted = set(selected_ids)
            active = [t for t in active if t.id in wanted]
        if not active:
            raise ValidationException(
                f"Process {process.id} has no active sub-processes",
                field="selected_sub_process_ids",
            )
        return active

    @traced("submit_request.execute")
    async def execute(self, command: SubmitRequestCommand) -> SubmitRequestResult:
        """Submit a request.

        With request validation configured on the process, the request waits
        in pending_level_1 and its sub-process runs in waiting_validation;
        nothing is launched until final approval. Otherwise the workflow is
        launched immediately.

        Args:
            command: Submission input.

        Returns:
            SubmitRequestResult with the request, its runs and launch outcome.

        Raises:
            ResourceNotFoundException: If the process template does not exist.
            ValidationException: If selected sub-process ids are unknown or
                the process has no active sub-processes.
        """
        process = await self._template_repo.get_process(command.process_template_id)
        if process is None:
            raise ResourceNotFoundException("process_template", command.process_template_id)
        sub_processes = await self._select_sub_processes(
            process, command.selected_sub_process_ids
        )
        pending = process.requires_request_validation
        level_2 = (
            process.request_validator_2_type
            if pending and process.request_validation_levels >= 2
            else ValidationLevelType.NONE
        )

        request = await self._task_repo.create(
            TaskCreate(
                title=command.title,
                type=TaskType.REQUEST,
                status=TaskStatus.TODO if pending else TaskStatus.IN_PROGRESS,
                priority=command.priority,
                description=command.description,
                requester_id=command.requester_id,
                reporter_id=command.requester_id,
                department_id=command.department_id,
                source_process_template_id=process.id,
                validation_level_1=(
                    process.request_validator_1_type if pending else ValidationLevelType.NONE
                ),
                validation_level_2=level_2,
                validator_1_id=process.request_validator_1_id if pending else None,
                validator_2_id=(
                    process.request_validator_2_id
                    if level_2 != ValidationLevelType.NONE
                    else None
                ),
                validation_1_status=ValidationStatus.PENDING if pending else None,
                request_validation_status=(
                    RequestValidationStatus.PENDING_LEVEL_1
                    if pending
                    else RequestValidationStatus.NONE
                ),
                custom_data=command.custom_data,
            )
        )
        run_status = (
            SubProcessRunStatus.WAITING_VALIDATION if pending else SubProcessRunStatus.PENDING
        )
        runs = [
            await self._sub_process_run_repo.create(
                SubProcessRunCreate(
                    request_id=request.id,
                    sub_process_template_id=sp.id,
                    status=run_status,
                    order_index=sp.order_index,
                    notify_on_status_change=sp.notify_on_status_change,
                    notify_on_close=sp.notify_on_close,
                )
            )
            for sp in sub_processes
        ]
        logger.info(
            "Request %s submitted by %s: %d sub-process(es), validation %s",
            request.id,
            command.requester_id,
            len(runs),
            "pending" if pending else "not required",
        )

        if pending:
            await self._emitter.emit(
                EventType.VALIDATION_REQUESTED,
                EntityType.REQUEST,
                request.id,
                {
                    "level": 1,
                    "validator_type": request.validation_level_1.value,
                    "validator_id": request.validator_1_id,
                    "requester_id": request.requester_id,
                    "request_title": request.title,
                },
            )
            return SubmitRequestResult(request=request, sub_process_runs=tuple(runs))

        launch = await self._launcher.launch(
            request,
            started_by=command.requester_id,
            selected_sub_process_ids=[sp.id for sp in sub_processes],
        )
        runs = await self._sub_process_run_repo.list_by_request(request.id)
        return SubmitRequestResult(
            request=request,
            sub_process_runs=tuple(runs),
            workflow_run=launch.workflow_run,
            blocks=launch.blocks,
        )

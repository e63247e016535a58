"""Standard block execution: S1 (instantiate) and S2 (creation notice).

S3 is the status-change notifier subscribed to the task status bus and S4
is emitted by the completion reconciler; neither runs here. Each stage
checks for existing artifacts first, so re-running a block for the same
request reuses its sub-process run and only creates missing tasks.
"""

from __future__ import annotations

import dataclasses

from procflow.application.dtos.execution import BlockExecutionResult, RequestContext
from procflow.application.dtos.sub_process_run import (
    SubProcessRunCreate,
    SubProcessRunResult,
)
from procflow.application.dtos.task import TaskCreate, TaskResult
from procflow.application.dtos.templates import TaskTemplateResult
from procflow.application.interfaces.repositories import (
    ISubProcessRunRepository,
    ITaskRepository,
    ITemplateRepository,
)
from procflow.application.interfaces.services import IEventEmitter
from procflow.application.services.assignee_resolver import (
    AssigneeResolution,
    AssigneeResolver,
)
from procflow.domain.enums import (
    AssignmentMode,
    NodeType,
    SubProcessRunStatus,
    TaskStatus,
    TaskType,
    ValidationLevelType,
)
from procflow.domain.exceptions import NoTaskTemplatesWarning
from procflow.domain.graph import StandardBlockConfig
from procflow.shared.enums import EntityType, EventType
from procflow.shared.telemetry.logging import get_logger
from procflow.shared.telemetry.tracing import add_span_attributes, set_span_error, traced
from procflow.shared.utils.datetime import due_date_after, utc_now

logger = get_logger(__name__)

# Runs in these statuses are started (-> running) when their block executes.
_STARTABLE_RUN_STATUSES = frozenset(
    {SubProcessRunStatus.PENDING, SubProcessRunStatus.WAITING_VALIDATION}
)


def effective_block_config(
    node_type: NodeType, config: StandardBlockConfig
) -> StandardBlockConfig:
    """Derive assignment mode and validation level count from the block's node type.

    The node type is authoritative: only the direct variant assigns users
    directly, every other variant hands tasks to a manager for assignment.
    """
    match node_type:
        case NodeType.STANDARD_DIRECT:
            mode, levels = AssignmentMode.DIRECT, 0
        case NodeType.STANDARD_MANAGER:
            mode, levels = AssignmentMode.MANAGER, 0
        case NodeType.STANDARD_VALIDATION_1:
            mode, levels = AssignmentMode.MANAGER, 1
        case NodeType.STANDARD_VALIDATION_2:
            mode, levels = AssignmentMode.MANAGER, 2
        case _:
            raise ValueError(f"Not a standard block node type: {node_type.value}")
    return dataclasses.replace(config, assignment_type=mode, validation_levels=levels)


def initial_status_for(
    config: StandardBlockConfig, resolution: AssigneeResolution
) -> TaskStatus:
    """Return the status new tasks start in; a to_assign override is always honored."""
    if config.initial_status == TaskStatus.TO_ASSIGN:
        return TaskStatus.TO_ASSIGN
    return resolution.initial_status


def task_validation_fields(template: TaskTemplateResult) -> dict[str, object]:
    """Return the validation columns a task copies from its template.

    A template that configures only level 2 has it promoted to level 1, since
    submission always enters the gate at level 1.
    """
    if (
        template.validation_level_1 == ValidationLevelType.NONE
        and template.validation_level_2 != ValidationLevelType.NONE
    ):
        return {
            "validation_level_1": template.validation_level_2,
            "validation_level_2": ValidationLevelType.NONE,
            "validator_1_id": template.validator_2_id,
            "validator_2_id": None,
        }
    return {
        "validation_level_1": template.validation_level_1,
        "validation_level_2": template.validation_level_2,
        "validator_1_id": template.validator_1_id,
        "validator_2_id": template.validator_2_id,
    }


class StandardBlockExecutor:
    """Runs S1 and S2 for one standard block and one request."""

    def __init__(
        self,
        template_repo: ITemplateRepository,
        task_repo: ITaskRepository,
        sub_process_run_repo: ISubProcessRunRepository,
        resolver: AssigneeResolver,
        emitter: IEventEmitter,
    ) -> None:
        self.template_repo = template_repo
        self.task_repo = task_repo
        self.sub_process_run_repo = sub_process_run_repo
        self.resolver = resolver
        self.emitter = emitter

    @traced("block_executor.execute")
    async def execute(
        self,
        config: StandardBlockConfig,
        context: RequestContext,
        *,
        order_index: int = 0,
    ) -> BlockExecutionResult:
        """Execute the block. Never raises; failures come back as success=False.

        Args:
            config: Effective standard block configuration.
            context: Request the block runs for.
            order_index: Position of the sub-process within the request.

        Returns:
            BlockExecutionResult with the tasks created by this execution.
        """
        add_span_attributes(
            request_id=context.request_id,
            sub_process_template_id=config.sub_process_template_id,
        )
        try:
            return await self._execute(config, context, order_index)
        except Exception as e:
            set_span_error(e)
            logger.exception(
                "Standard block failed for request %s, sub-process %s",
                context.request_id,
                config.sub_process_template_id,
            )
            return BlockExecutionResult(
                success=False, task_count=0, sub_process_run_id=None, error=str(e)
            )

    async def _execute(
        self, config: StandardBlockConfig, context: RequestContext, order_index: int
    ) -> BlockExecutionResult:
        task_templates = await self.template_repo.list_task_templates(
            config.sub_process_template_id
        )
        if not task_templates:
            warning = NoTaskTemplatesWarning(config.sub_process_template_id)
            logger.warning("%s; no tasks created for request %s", warning, context.request_id)
            return BlockExecutionResult(
                success=True, task_count=0, sub_process_run_id=None, warnings=(warning,)
            )

        # S1
        resolution = await self.resolver.resolve(config, requester_id=context.requester_id)
        run = await self._ensure_run(config, context, order_index)
        if run.status == SubProcessRunStatus.CANCELLED:
            return BlockExecutionResult(
                success=False,
                task_count=0,
                sub_process_run_id=run.id,
                error="Sub-process run is cancelled",
            )
        created, failed = await self._create_missing_tasks(
            config, context, run, resolution, task_templates
        )
        logger.info(
            "Sub-process run %s: %d task(s) created, %d failed (request %s)",
            run.id,
            len(created),
            failed,
            context.request_id,
        )

        # S2
        if created and config.notify_on_create:
            try:
                await self._notify_creation(config, context, resolution, created)
            except Exception:
                logger.exception("Creation notice failed for run %s", run.id)

        if failed and not created:
            return BlockExecutionResult(
                success=False,
                task_count=0,
                sub_process_run_id=run.id,
                error=f"All {failed} task insert(s) failed",
            )
        return BlockExecutionResult(
            success=True,
            task_count=len(created),
            sub_process_run_id=run.id,
            created_task_ids=tuple(t.id for t in created),
        )

    async def _ensure_run(
        self, config: StandardBlockConfig, context: RequestContext, order_index: int
    ) -> SubProcessRunResult:
        existing = await self.sub_process_run_repo.get_by_request_and_template(
            context.request_id, config.sub_process_template_id
        )
        if existing is None:
            return await self.sub_process_run_repo.create(
                SubProcessRunCreate(
                    request_id=context.request_id,
                    sub_process_template_id=config.sub_process_template_id,
                    status=SubProcessRunStatus.RUNNING,
                    order_index=order_index,
                    workflow_run_id=context.workflow_run_id,
                    notify_on_status_change=config.notify_on_status_change,
                    notify_on_close=config.notify_on_close,
                    started_at=utc_now(),
                )
            )
        if existing.status not in _STARTABLE_RUN_STATUSES:
            return existing
        started = await self.sub_process_run_repo.compare_and_set(
            existing.id,
            {"status": existing.status},
            {
                "status": SubProcessRunStatus.RUNNING,
                "started_at": utc_now(),
                "workflow_run_id": context.workflow_run_id or existing.workflow_run_id,
                "notify_on_status_change": config.notify_on_status_change,
                "notify_on_close": config.notify_on_close,
            },
        )
        if started is not None:
            return started
        # Started concurrently; use whatever the winner wrote.
        current = await self.sub_process_run_repo.get_by_id(existing.id)
        return current or existing

    async def _create_missing_tasks(
        self,
        config: StandardBlockConfig,
        context: RequestContext,
        run: SubProcessRunResult,
        resolution: AssigneeResolution,
        task_templates: list[TaskTemplateResult],
    ) -> tuple[list[TaskResult], int]:
        existing = await self.task_repo.list_by_sub_process_run(run.id)
        materialized = {t.source_task_template_id for t in existing}
        status = initial_status_for(config, resolution)
        created: list[TaskResult] = []
        failed = 0
        for template in task_templates:
            if template.id in materialized:
                continue
            try:
                task = await self.task_repo.create(
                    TaskCreate(
                        title=template.title,
                        description=template.description,
                        priority=template.priority,
                        status=status,
                        type=TaskType.TASK,
                        due_date=due_date_after(template.default_duration_days),
                        assignee_id=resolution.assignee_id,
                        requester_id=context.requester_id,
                        department_id=context.department_id,
                        parent_request_id=context.request_id,
                        parent_sub_process_run_id=run.id,
                        source_process_template_id=context.process_template_id,
                        source_sub_process_template_id=config.sub_process_template_id,
                        source_task_template_id=template.id,
                        workflow_run_id=context.workflow_run_id,
                        checklist_items=template.checklist_items,
                        **task_validation_fields(template),
                    )
                )
            except Exception:
                failed += 1
                logger.exception(
                    "Failed to create task from template %s in run %s",
                    template.id,
                    run.id,
                )
                continue
            created.append(task)
        return created, failed

    async def _notify_creation(
        self,
        config: StandardBlockConfig,
        context: RequestContext,
        resolution: AssigneeResolution,
        created: list[TaskResult],
    ) -> None:
        count = len(created)
        await self.emitter.emit(
            EventType.REQUEST_CREATED,
            EntityType.REQUEST,
            context.request_id,
            {
                "requester_id": context.requester_id,
                "request_title": context.request_title,
                "sub_process_name": config.sub_process_name,
                "task_count": count,
            },
            context.workflow_run_id,
        )
        if resolution.assignee_id is None:
            return
        event_type = (
            EventType.TASK_ASSIGNED
            if config.assignment_type == AssignmentMode.DIRECT
            else EventType.TASK_TO_ASSIGN
        )
        await self.emitter.emit(
            event_type,
            EntityType.TASK,
            created[0].id,
            {
                "assignee_id": resolution.assignee_id,
                "task_title": f"{count} task(s) - {config.sub_process_name}",
                "request_id": context.request_id,
                "request_title": context.request_title,
                "task_count": count,
            },
            context.workflow_run_id,
        )

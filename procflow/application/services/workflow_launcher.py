"""Start a workflow run for a request and execute its standard blocks."""

from __future__ import annotations

from collections.abc import Collection
from typing import Any, assert_never

from procflow.application.dtos.execution import (
    BlockExecutionResult,
    LaunchResult,
    RequestContext,
)
from procflow.application.dtos.task import TaskResult
from procflow.application.dtos.workflow import (
    WorkflowOwner,
    WorkflowRunCreate,
    WorkflowTemplateResult,
    execution_log_entry,
)
from procflow.application.interfaces.repositories import (
    ISubProcessRunRepository,
    IWorkflowRunRepository,
    IWorkflowTemplateRepository,
)
from procflow.application.services.block_executor import (
    StandardBlockExecutor,
    effective_block_config,
)
from procflow.application.services.graph_generator import WorkflowGraphGenerator
from procflow.domain.enums import NodeType
from procflow.domain.exceptions import ResourceNotFoundException, ValidationException
from procflow.domain.graph import NotificationConfig, StandardBlockConfig
from procflow.shared.enums import ExecutionLogStatus, WorkflowRunStatus
from procflow.shared.telemetry.logging import get_logger
from procflow.shared.telemetry.tracing import add_span_attributes, traced
from procflow.shared.utils.datetime import utc_now

logger = get_logger(__name__)


class WorkflowLauncher:
    """Resolves the request's workflow, opens a run and walks its blocks in order."""

    def __init__(
        self,
        generator: WorkflowGraphGenerator,
        workflow_template_repo: IWorkflowTemplateRepository,
        workflow_run_repo: IWorkflowRunRepository,
        sub_process_run_repo: ISubProcessRunRepository,
        block_executor: StandardBlockExecutor,
    ) -> None:
        self.generator = generator
        self.workflow_template_repo = workflow_template_repo
        self.workflow_run_repo = workflow_run_repo
        self.sub_process_run_repo = sub_process_run_repo
        self.block_executor = block_executor

    async def resolve_template(self, process_template_id: str) -> WorkflowTemplateResult:
        """Return the process's default active workflow, generating it once when missing.

        Raises:
            GraphInvalidError: If auto-generation produced an invalid graph.
            ResourceNotFoundException: If no default workflow exists afterwards.
        """
        owner = WorkflowOwner.process(process_template_id)
        template = await self.workflow_template_repo.get_default_active(owner)
        if template is not None:
            return template
        logger.info("No default workflow for process %s; generating", process_template_id)
        result = await self.generator.generate(owner)
        if result.workflow_template_id:
            template = await self.workflow_template_repo.get_by_id(result.workflow_template_id)
        else:
            template = await self.workflow_template_repo.get_default_active(owner)
        if template is None:
            raise ResourceNotFoundException("workflow_template", process_template_id)
        return template

    @traced("workflow_launcher.launch")
    async def launch(
        self,
        request: TaskResult,
        *,
        started_by: str | None = None,
        selected_sub_process_ids: Collection[str] | None = None,
    ) -> LaunchResult:
        """Create a workflow run for request and execute every selected standard block.

        Args:
            request: The request row (type 'request').
            started_by: User who triggered the start (submitter or approver).
            selected_sub_process_ids: Sub-processes to run; defaults to the
                sub-process runs already created for the request, or every
                block when there are none.

        Returns:
            LaunchResult with the run (re-read after execution) and block outcomes.
        """
        process_template_id = request.source_process_template_id
        if not process_template_id:
            raise ValidationException(
                "Request has no source process template", field="source_process_template_id"
            )
        add_span_attributes(request_id=request.id, process_template_id=process_template_id)
        template = await self.resolve_template(process_template_id)

        existing_runs = await self.sub_process_run_repo.list_by_request(request.id)
        order = {r.sub_process_template_id: r.order_index for r in existing_runs}
        if selected_sub_process_ids is None:
            selected = set(order)
        else:
            selected = set(selected_sub_process_ids)

        workflow_run = await self.workflow_run_repo.create(
            WorkflowRunCreate(
                workflow_template_id=template.id,
                workflow_version=template.version,
                trigger_entity_id=request.id,
                started_by=started_by,
                context_data={
                    "requester_id": request.requester_id,
                    "department_id": request.department_id,
                    "selected_sub_process_ids": sorted(selected),
                    "custom_data": request.custom_data or {},
                },
                execution_log=[
                    execution_log_entry(
                        "workflow_started",
                        ExecutionLogStatus.SUCCESS,
                        workflow_template_id=template.id,
                        version=template.version,
                    )
                ],
                started_at=utc_now(),
            )
        )
        context = RequestContext(
            request_id=request.id,
            request_title=request.title,
            requester_id=request.requester_id,
            process_template_id=process_template_id,
            workflow_run_id=workflow_run.id,
            department_id=request.department_id,
        )

        log: list[dict[str, Any]] = []
        blocks: list[BlockExecutionResult] = []
        for node in template.graph.topological_order():
            match node.type:
                case NodeType.START | NodeType.END:
                    continue
                case (
                    NodeType.STANDARD_DIRECT
                    | NodeType.STANDARD_MANAGER
                    | NodeType.STANDARD_VALIDATION_1
                    | NodeType.STANDARD_VALIDATION_2
                ):
                    config = node.config
                    assert isinstance(config, StandardBlockConfig)
                    if selected and config.sub_process_template_id not in selected:
                        log.append(
                            execution_log_entry(
                                "execute_block",
                                ExecutionLogStatus.SKIPPED,
                                node_key=node.key,
                                sub_process_template_id=config.sub_process_template_id,
                                reason="not_selected",
                            )
                        )
                        continue
                    result = await self.block_executor.execute(
                        effective_block_config(node.type, config),
                        context,
                        order_index=order.get(config.sub_process_template_id, len(blocks)),
                    )
                    blocks.append(result)
                    log.append(_block_log_entry(node.key, config, result))
                case NodeType.NOTIFICATION:
                    config = node.config
                    assert isinstance(config, NotificationConfig)
                    log.append(
                        execution_log_entry(
                            "notification",
                            ExecutionLogStatus.DEFERRED,
                            node_key=node.key,
                            moment=config.moment.value,
                        )
                    )
                case NodeType.FORK:
                    log.append(
                        execution_log_entry(
                            "fork",
                            ExecutionLogStatus.SUCCESS,
                            node_key=node.key,
                            branches=len(template.graph.outgoing(node.key)),
                        )
                    )
                case NodeType.JOIN:
                    log.append(
                        execution_log_entry("join", ExecutionLogStatus.DEFERRED, node_key=node.key)
                    )
                case (
                    NodeType.TASK
                    | NodeType.VALIDATION
                    | NodeType.CONDITION
                    | NodeType.STATUS_CHANGE
                    | NodeType.ASSIGNMENT
                ):
                    log.append(
                        execution_log_entry(
                            node.type.value,
                            ExecutionLogStatus.SKIPPED,
                            node_key=node.key,
                            reason="not_executed_by_standard_walk",
                        )
                    )
                case _:
                    assert_never(node.type)

        await self.workflow_run_repo.append_log(workflow_run.id, log)
        if blocks and not any(b.success for b in blocks):
            errors = "; ".join(b.error for b in blocks if b.error)
            await self.workflow_run_repo.compare_and_set_status(
                workflow_run.id,
                WorkflowRunStatus.RUNNING,
                WorkflowRunStatus.FAILED,
                completed_at=utc_now(),
                error_message=errors or "Every standard block failed",
            )
            logger.error("Workflow run %s failed: every block failed", workflow_run.id)

        logger.info(
            "Workflow run %s started for request %s: %d block(s), %d task(s)",
            workflow_run.id,
            request.id,
            len(blocks),
            sum(b.task_count for b in blocks),
        )
        current = await self.workflow_run_repo.get_by_id(workflow_run.id)
        return LaunchResult(workflow_run=current or workflow_run, blocks=tuple(blocks))


def _block_log_entry(
    node_key: str, config: StandardBlockConfig, result: BlockExecutionResult
) -> dict[str, Any]:
    extra: dict[str, Any] = {
        "node_key": node_key,
        "sub_process_template_id": config.sub_process_template_id,
        "sub_process_run_id": result.sub_process_run_id,
        "task_count": result.task_count,
    }
    if result.error:
        extra["error"] = result.error
    if result.warnings:
        extra["warnings"] = [str(w) for w in result.warnings]
    status = ExecutionLogStatus.SUCCESS if result.success else ExecutionLogStatus.FAILED
    return execution_log_entry("execute_block", status, **extra)

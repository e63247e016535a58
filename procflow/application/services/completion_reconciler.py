"""Completion reconciliation for sub-process runs, joins and workflow runs.

Invoked reactively after every committed task status write (it is a
subscriber of the task status bus) and on demand through reconcile_request,
which repairs runs a failed bus delivery left behind. Every step re-evaluates a pure
predicate over current rows and writes through a conditional update, so
running it any number of times converges on the same state. Whoever wins
a conditional update emits the matching closure event; losers do nothing.
"""

from __future__ import annotations

import dataclasses

from procflow.application.dtos.execution import (
    ReconciliationResult,
    RequestReconciliationResult,
)
from procflow.application.dtos.sub_process_run import SubProcessRunResult
from procflow.application.dtos.task import TaskStatusChange
from procflow.application.dtos.workflow import WorkflowRunResult, execution_log_entry
from procflow.application.interfaces.repositories import (
    ISubProcessRunRepository,
    ITaskRepository,
    ITemplateRepository,
    IWorkflowRunRepository,
    IWorkflowTemplateRepository,
)
from procflow.application.interfaces.services import IEventEmitter
from procflow.domain.enums import SubProcessRunStatus, TaskStatus
from procflow.domain.exceptions import ResourceNotFoundException
from procflow.domain.graph import ForkConfig
from procflow.domain.task_lifecycle import awaits_validation, is_sub_process_complete
from procflow.shared.enums import (
    EntityType,
    EventType,
    ExecutionLogStatus,
    WorkflowRunStatus,
)
from procflow.shared.telemetry.logging import get_logger
from procflow.shared.telemetry.tracing import traced
from procflow.shared.utils.datetime import utc_now

logger = get_logger(__name__)


class CompletionReconciler:
    """Flips sub-process runs, joins and workflow runs to completed when their predicates hold."""

    def __init__(
        self,
        task_repo: ITaskRepository,
        sub_process_run_repo: ISubProcessRunRepository,
        workflow_run_repo: IWorkflowRunRepository,
        workflow_template_repo: IWorkflowTemplateRepository,
        template_repo: ITemplateRepository,
        emitter: IEventEmitter,
    ) -> None:
        self.task_repo = task_repo
        self.sub_process_run_repo = sub_process_run_repo
        self.workflow_run_repo = workflow_run_repo
        self.workflow_template_repo = workflow_template_repo
        self.template_repo = template_repo
        self.emitter = emitter

    async def on_task_status_changed(self, change: TaskStatusChange) -> None:
        run_id = change.task.parent_sub_process_run_id
        if run_id is None:
            return
        await self.reconcile_sub_process_run(run_id=run_id)

    @traced("completion_reconciler.reconcile_sub_process_run")
    async def reconcile_sub_process_run(self, run_id: str) -> ReconciliationResult:
        """Re-evaluate one sub-process run, then its workflow run when it is completed.

        Args:
            run_id: Sub-process run id.

        Returns:
            ReconciliationResult describing what this call changed.
        """
        run = await self.sub_process_run_repo.get_by_id(run_id)
        if run is None:
            logger.warning("Sub-process run %s not found; nothing to reconcile", run_id)
            return ReconciliationResult(sub_process_run_id=run_id)

        statuses = await self.task_repo.list_statuses_by_sub_process_run(run_id)
        complete = is_sub_process_complete(statuses)
        completed_now = False

        if complete and run.status == SubProcessRunStatus.RUNNING:
            updated = await self.sub_process_run_repo.compare_and_set(
                run_id,
                {"status": SubProcessRunStatus.RUNNING},
                {"status": SubProcessRunStatus.COMPLETED, "completed_at": utc_now()},
            )
            if updated is not None:
                completed_now = True
                run = updated
                logger.info("Sub-process run %s completed", run_id)
                await self._notify_closure(run)
        elif not complete and run.status == SubProcessRunStatus.COMPLETED:
            reopened = await self.sub_process_run_repo.compare_and_set(
                run_id,
                {"status": SubProcessRunStatus.COMPLETED},
                {"status": SubProcessRunStatus.RUNNING, "completed_at": None},
            )
            if reopened is not None:
                run = reopened
                logger.info("Sub-process run %s reopened", run_id)

        result = ReconciliationResult(
            sub_process_run_id=run_id, sub_process_completed=completed_now
        )
        if run.status == SubProcessRunStatus.COMPLETED and run.workflow_run_id:
            process = await self.reconcile_workflow_run(run.workflow_run_id)
            result = dataclasses.replace(
                result,
                joins_satisfied=process.joins_satisfied,
                process_completed=process.process_completed,
            )
        return result

    @traced("completion_reconciler.reconcile_request")
    async def reconcile_request(self, request_id: str) -> RequestReconciliationResult:
        """Re-evaluate every sub-process run of a request, then its workflow run.

        Raises:
            ResourceNotFoundException: If request_id is not a request.
        """
        request = await self.task_repo.get_by_id(request_id)
        if request is None or not request.is_request:
            raise ResourceNotFoundException("request", request_id)

        completed: list[str] = []
        joins: tuple[str, ...] = ()
        process_completed = False
        for run in await self.sub_process_run_repo.list_by_request(request_id):
            result = await self.reconcile_sub_process_run(run.id)
            if result.sub_process_completed:
                completed.append(run.id)
            joins = joins or result.joins_satisfied
            process_completed = process_completed or result.process_completed
        if request.workflow_run_id and not process_completed:
            process = await self.reconcile_workflow_run(request.workflow_run_id)
            joins = process.joins_satisfied or joins
            process_completed = process.process_completed

        logger.info(
            "Reconciled request %s: %d run(s) completed, process_completed=%s",
            request_id,
            len(completed),
            process_completed,
        )
        return RequestReconciliationResult(
            request_id=request_id,
            completed_sub_process_run_ids=tuple(completed),
            joins_satisfied=joins,
            process_completed=process_completed,
        )

    async def _notify_closure(self, run: SubProcessRunResult) -> None:
        """Emit S4 once per run, claimed through closure_notified_at."""
        if not run.notify_on_close or run.closure_notified_at is not None:
            return
        claimed = await self.sub_process_run_repo.compare_and_set(
            run.id, {"closure_notified_at": None}, {"closure_notified_at": utc_now()}
        )
        if claimed is None:
            return
        template = await self.template_repo.get_sub_process(run.sub_process_template_id)
        request = await self.task_repo.get_by_id(run.request_id)
        await self.emitter.emit(
            EventType.SUB_PROCESS_COMPLETED,
            EntityType.REQUEST,
            run.request_id,
            {
                "sub_process_run_id": run.id,
                "sub_process_template_id": run.sub_process_template_id,
                "sub_process_name": template.name if template else None,
                "requester_id": request.requester_id if request else None,
                "request_title": request.title if request else None,
            },
            run.workflow_run_id,
        )

    @traced("completion_reconciler.reconcile_workflow_run")
    async def reconcile_workflow_run(self, workflow_run_id: str) -> ReconciliationResult:
        """Evaluate joins and process completion for a running workflow run.

        A join is satisfied when every selected sub-process of its paired
        fork has a completed run. The process is complete when every
        sub-process run under the workflow run is completed and no done
        task is still waiting to be submitted for validation. A completed
        workflow run therefore never has a run that can reopen.
        """
        workflow_run = await self.workflow_run_repo.get_by_id(workflow_run_id)
        if workflow_run is None or workflow_run.status != WorkflowRunStatus.RUNNING:
            return ReconciliationResult(sub_process_run_id=None)

        runs = await self.sub_process_run_repo.list_by_workflow_run(workflow_run_id)
        joins = await self._satisfied_joins(workflow_run, runs)
        if joins:
            logged = {
                entry.get("node_key")
                for entry in workflow_run.execution_log
                if entry.get("action") == "join_satisfied"
            }
            new_entries = [
                execution_log_entry("join_satisfied", ExecutionLogStatus.SUCCESS, node_key=key)
                for key in joins
                if key not in logged
            ]
            if new_entries:
                await self.workflow_run_repo.append_log(workflow_run_id, new_entries)

        if not runs or any(r.status != SubProcessRunStatus.COMPLETED for r in runs):
            return ReconciliationResult(sub_process_run_id=None, joins_satisfied=joins)
        if await self._awaiting_validation(runs):
            logger.info(
                "Workflow run %s held open: done task(s) still awaiting validation",
                workflow_run_id,
            )
            return ReconciliationResult(sub_process_run_id=None, joins_satisfied=joins)

        won = await self.workflow_run_repo.compare_and_set_status(
            workflow_run_id,
            WorkflowRunStatus.RUNNING,
            WorkflowRunStatus.COMPLETED,
            completed_at=utc_now(),
        )
        if not won:
            return ReconciliationResult(sub_process_run_id=None, joins_satisfied=joins)

        request_id = workflow_run.trigger_entity_id
        request = await self.task_repo.compare_and_set(
            request_id,
            {"status": TaskStatus.IN_PROGRESS},
            {"status": TaskStatus.DONE},
        )
        if request is None:
            request = await self.task_repo.get_by_id(request_id)
        await self.workflow_run_repo.append_log(
            workflow_run_id,
            [
                execution_log_entry(
                    "process_completed", ExecutionLogStatus.SUCCESS, runs=len(runs)
                )
            ],
        )
        logger.info("Workflow run %s completed (request %s)", workflow_run_id, request_id)
        await self.emitter.emit(
            EventType.PROCESS_COMPLETED,
            EntityType.REQUEST,
            request_id,
            {
                "requester_id": request.requester_id if request else None,
                "request_title": request.title if request else None,
                "sub_process_count": len(runs),
            },
            workflow_run_id,
        )
        return ReconciliationResult(
            sub_process_run_id=None, joins_satisfied=joins, process_completed=True
        )

    async def _awaiting_validation(self, runs: list[SubProcessRunResult]) -> bool:
        for run in runs:
            for task in await self.task_repo.list_by_sub_process_run(run.id):
                if awaits_validation(
                    task.status, task.validation_level_1, task.validation_level_2
                ):
                    return True
        return False

    async def _satisfied_joins(
        self, workflow_run: WorkflowRunResult, runs: list[SubProcessRunResult]
    ) -> tuple[str, ...]:
        template = await self.workflow_template_repo.get_by_id(
            workflow_run.workflow_template_id
        )
        if template is None:
            return ()
        by_template = {r.sub_process_template_id: r for r in runs}
        selected = set(workflow_run.context_data.get("selected_sub_process_ids") or ())
        satisfied = []
        for fork, join in template.graph.fork_join_pairs():
            config = fork.config
            assert isinstance(config, ForkConfig)
            required = [
                sp_id for sp_id in config.sub_process_ids if not selected or sp_id in selected
            ]
            if required and all(
                sp_id in by_template
                and by_template[sp_id].status == SubProcessRunStatus.COMPLETED
                for sp_id in required
            ):
                satisfied.append(join.key)
        return tuple(satisfied)

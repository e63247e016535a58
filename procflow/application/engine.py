"""Engine assembly: wires services and use cases over one set of repositories.

The status bus is subscribed in a fixed order: the status-change notifier
first, then the completion reconciler, so a task's own status notice
always precedes any closure events it causes.
"""

from __future__ import annotations

from dataclasses import dataclass

from procflow.application.interfaces.repositories import (
    IDirectoryRepository,
    IGenerationMarkerRepository,
    ISubProcessRunRepository,
    ITaskRepository,
    ITemplateRepository,
    IWorkflowRunRepository,
    IWorkflowTemplateRepository,
)
from procflow.application.interfaces.services import IEventEmitter
from procflow.application.services import (
    AssigneeResolver,
    CompletionReconciler,
    RequestValidationGate,
    StandardBlockExecutor,
    StatusChangeNotifier,
    TaskStatusChangeBus,
    TaskStatusService,
    TaskValidationGate,
    WorkflowGraphGenerator,
    WorkflowLauncher,
)
from procflow.application.use_cases.requests import SubmitRequestUseCase
from procflow.application.use_cases.workflows import GenerateWorkflowsUseCase
from procflow.core.config import MAX_BULK_CHUNK_SIZE


@dataclass(frozen=True)
class ProcflowEngine:
    """Everything a caller (HTTP route, worker, test) needs, built from ports."""

    generator: WorkflowGraphGenerator
    launcher: WorkflowLauncher
    block_executor: StandardBlockExecutor
    reconciler: CompletionReconciler
    task_gate: TaskValidationGate
    request_gate: RequestValidationGate
    task_status: TaskStatusService
    submit_request: SubmitRequestUseCase
    generate_workflows: GenerateWorkflowsUseCase
    bus: TaskStatusChangeBus
    resolver: AssigneeResolver


def build_engine(
    *,
    template_repo: ITemplateRepository,
    workflow_template_repo: IWorkflowTemplateRepository,
    marker_repo: IGenerationMarkerRepository,
    workflow_run_repo: IWorkflowRunRepository,
    task_repo: ITaskRepository,
    sub_process_run_repo: ISubProcessRunRepository,
    directory: IDirectoryRepository,
    emitter: IEventEmitter,
    bulk_chunk_size: int = MAX_BULK_CHUNK_SIZE,
) -> ProcflowEngine:
    """Build a ProcflowEngine from repository and emitter implementations."""
    resolver = AssigneeResolver(directory)
    generator = WorkflowGraphGenerator(template_repo, workflow_template_repo, marker_repo)
    block_executor = StandardBlockExecutor(
        template_repo, task_repo, sub_process_run_repo, resolver, emitter
    )
    launcher = WorkflowLauncher(
        generator, workflow_template_repo, workflow_run_repo, sub_process_run_repo, block_executor
    )
    reconciler = CompletionReconciler(
        task_repo,
        sub_process_run_repo,
        workflow_run_repo,
        workflow_template_repo,
        template_repo,
        emitter,
    )
    bus = TaskStatusChangeBus([StatusChangeNotifier(sub_process_run_repo, emitter), reconciler])
    return ProcflowEngine(
        generator=generator,
        launcher=launcher,
        block_executor=block_executor,
        reconciler=reconciler,
        task_gate=TaskValidationGate(task_repo, resolver, emitter, bus),
        request_gate=RequestValidationGate(
            task_repo, sub_process_run_repo, directory, emitter, launcher
        ),
        task_status=TaskStatusService(task_repo, bus, emitter, chunk_size=bulk_chunk_size),
        submit_request=SubmitRequestUseCase(
            template_repo, task_repo, sub_process_run_repo, launcher, emitter
        ),
        generate_workflows=GenerateWorkflowsUseCase(generator, template_repo),
        bus=bus,
        resolver=resolver,
    )

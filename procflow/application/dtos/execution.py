"""DTOs for request submission, block execution and reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from procflow.application.dtos.sub_process_run import SubProcessRunResult
from procflow.application.dtos.task import TaskResult
from procflow.application.dtos.workflow import WorkflowRunResult
from procflow.domain.enums import TaskPriority
from procflow.domain.exceptions import NoTaskTemplatesWarning


@dataclass(frozen=True)
class RequestContext:
    """What a standard block needs to know about the request it runs for."""

    request_id: str
    request_title: str
    requester_id: str | None
    process_template_id: str | None
    workflow_run_id: str | None = None
    department_id: str | None = None


@dataclass(frozen=True)
class BlockExecutionResult:
    """Outcome of one standard block execution (S1 + S2). Never raised, always returned."""

    success: bool
    task_count: int
    sub_process_run_id: str | None
    created_task_ids: tuple[str, ...] = ()
    warnings: tuple[NoTaskTemplatesWarning, ...] = ()
    error: str | None = None


@dataclass(frozen=True)
class ReconciliationResult:
    sub_process_run_id: str | None
    sub_process_completed: bool = False
    joins_satisfied: tuple[str, ...] = ()
    process_completed: bool = False


@dataclass(frozen=True)
class RequestReconciliationResult:
    """Outcome of a full reconciliation sweep over one request."""

    request_id: str
    completed_sub_process_run_ids: tuple[str, ...] = ()
    joins_satisfied: tuple[str, ...] = ()
    process_completed: bool = False


@dataclass(frozen=True)
class LaunchResult:
    workflow_run: WorkflowRunResult | None
    blocks: tuple[BlockExecutionResult, ...] = ()


@dataclass(frozen=True)
class SubmitRequestCommand:
    process_template_id: str
    requester_id: str
    title: str
    description: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    department_id: str | None = None
    selected_sub_process_ids: tuple[str, ...] = ()
    custom_data: dict[str, Any] | None = None


@dataclass(frozen=True)
class SubmitRequestResult:
    request: TaskResult
    sub_process_runs: tuple[SubProcessRunResult, ...]
    workflow_run: WorkflowRunResult | None = None
    blocks: tuple[BlockExecutionResult, ...] = ()


@dataclass(frozen=True)
class RequestDecisionResult:
    """Outcome of a request-level validation decision; final approval also launches."""

    request: TaskResult
    launch: LaunchResult | None = None

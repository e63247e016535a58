"""Repository interfaces (ports) for the application layer.

Protocols define contracts that infrastructure implementations must fulfill (DIP).
All types reference application DTOs only; no infrastructure imports.

Task and sub-process-run rows are the only mutable shared state. They are
changed exclusively through compare_and_set: the update applies only when
every column in `expected` still holds, and the caller gets None back when
zero rows matched.
"""

from __future__ import annotations

from collections.abc import Collection
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from procflow.application.dtos.sub_process_run import (
        SubProcessRunCreate,
        SubProcessRunResult,
    )
    from procflow.application.dtos.task import TaskCreate, TaskResult
    from procflow.application.dtos.templates import (
        ProcessTemplateResult,
        SubProcessTemplateResult,
        TaskTemplateResult,
    )
    from procflow.application.dtos.workflow import (
        WorkflowOwner,
        WorkflowRunCreate,
        WorkflowRunResult,
        WorkflowTemplateCreate,
        WorkflowTemplateResult,
    )
    from procflow.domain.enums import SubProcessRunStatus, TaskStatus
    from procflow.shared.enums import WorkflowRunStatus


# Template repository interface (read-mostly configuration)
class ITemplateRepository(Protocol):
    """Protocol for process / sub-process / task template reads."""

    async def get_process(self, process_template_id: str) -> ProcessTemplateResult | None:
        """Return a process template by id, or None."""

    async def list_process_ids(self, *, active_only: bool = True) -> list[str]:
        """Return ids of process templates (for batch generation)."""

    async def list_sub_processes(
        self, process_template_id: str
    ) -> list[SubProcessTemplateResult]:
        """Return the process's sub-process templates ordered by order_index."""

    async def get_sub_process(
        self, sub_process_template_id: str
    ) -> SubProcessTemplateResult | None:
        """Return a sub-process template by id, or None."""

    async def list_sub_process_ids(self, *, active_only: bool = True) -> list[str]:
        """Return ids of sub-process templates (for batch generation)."""

    async def list_task_templates(
        self, sub_process_template_id: str
    ) -> list[TaskTemplateResult]:
        """Return task templates of a sub-process ordered by order_index."""


# Workflow template repository interface
class IWorkflowTemplateRepository(Protocol):
    """Protocol for versioned workflow templates (graph + default flag)."""

    async def get_by_id(self, workflow_template_id: str) -> WorkflowTemplateResult | None:
        """Return a template with its graph, or None."""

    async def get_default_active(self, owner: WorkflowOwner) -> WorkflowTemplateResult | None:
        """Return the owner's default active template (highest version), or None."""

    async def latest_version(self, owner: WorkflowOwner) -> int:
        """Return the highest version stored for owner (0 when none)."""

    async def create(self, data: WorkflowTemplateCreate) -> WorkflowTemplateResult:
        """Persist a template with its nodes and edges."""

    async def supersede(self, workflow_template_id: str) -> bool:
        """Retire an active template (status superseded, not default). False if it was not active."""


# Generation marker repository interface (durable idempotency key)
class IGenerationMarkerRepository(Protocol):
    """Protocol for 'generation attempted' markers keyed by (owner, version)."""

    async def has_attempt(self, owner: WorkflowOwner, version: int) -> bool:
        """Return whether generation of owner@version was already attempted."""

    async def record_attempt(self, owner: WorkflowOwner, version: int) -> bool:
        """Record an attempt; return False when the marker already existed."""


# Workflow run repository interface
class IWorkflowRunRepository(Protocol):
    """Protocol for workflow run bookkeeping."""

    async def create(self, data: WorkflowRunCreate) -> WorkflowRunResult:
        """Insert a run with status running."""

    async def get_by_id(self, workflow_run_id: str) -> WorkflowRunResult | None:
        """Return a run by id, or None."""

    async def get_latest_for_request(self, request_id: str) -> WorkflowRunResult | None:
        """Return the most recent run triggered by request_id, or None."""

    async def append_log(
        self, workflow_run_id: str, entries: list[dict[str, Any]]
    ) -> None:
        """Append entries to the run's execution_log."""

    async def compare_and_set_status(
        self,
        workflow_run_id: str,
        expected: WorkflowRunStatus,
        new_status: WorkflowRunStatus,
        *,
        completed_at: datetime | None = None,
        error_message: str | None = None,
    ) -> bool:
        """Conditionally move a run between statuses; False when zero rows matched."""


# Task repository interface (tasks and requests)
class ITaskRepository(Protocol):
    """Protocol for task and request rows."""

    async def create(self, data: TaskCreate) -> TaskResult:
        """Insert a task (and its checklist items); return the created row."""

    async def get_by_id(self, task_id: str) -> TaskResult | None:
        """Return a task or request by id, or None."""

    async def list_by_sub_process_run(self, sub_process_run_id: str) -> list[TaskResult]:
        """Return tasks linked to a sub-process run."""

    async def list_statuses_by_sub_process_run(
        self, sub_process_run_id: str
    ) -> list[TaskStatus]:
        """Return the status of every task linked to a sub-process run."""

    async def list_by_request(self, request_id: str) -> list[TaskResult]:
        """Return the child tasks of a request."""

    async def get_statuses(self, task_ids: Collection[str]) -> dict[str, TaskStatus]:
        """Return current statuses for the given ids (missing ids are omitted)."""

    async def compare_and_set(
        self,
        task_id: str,
        expected: dict[str, Any],
        values: dict[str, Any],
    ) -> TaskResult | None:
        """Apply values where id matches and every expected column holds; None on zero rows."""

    async def bulk_compare_and_set_status(
        self,
        task_ids: Collection[str],
        allowed_from: Collection[TaskStatus],
        new_status: TaskStatus,
    ) -> list[str]:
        """Set status on unlocked rows whose status is in allowed_from; return updated ids."""


# Sub-process run repository interface
class ISubProcessRunRepository(Protocol):
    """Protocol for request_sub_processes rows."""

    async def create(self, data: SubProcessRunCreate) -> SubProcessRunResult:
        """Insert a sub-process run."""

    async def get_by_id(self, sub_process_run_id: str) -> SubProcessRunResult | None:
        """Return a run by id, or None."""

    async def get_by_request_and_template(
        self, request_id: str, sub_process_template_id: str
    ) -> SubProcessRunResult | None:
        """Return the run of a sub-process template within a request, or None."""

    async def list_by_request(self, request_id: str) -> list[SubProcessRunResult]:
        """Return a request's runs ordered by order_index."""

    async def list_by_workflow_run(self, workflow_run_id: str) -> list[SubProcessRunResult]:
        """Return runs owned by a workflow run ordered by order_index."""

    async def compare_and_set(
        self,
        sub_process_run_id: str,
        expected: dict[str, Any],
        values: dict[str, Any],
    ) -> SubProcessRunResult | None:
        """Apply values where id matches and every expected column holds; None on zero rows."""

    async def set_status_for_request(
        self,
        request_id: str,
        from_statuses: Collection[SubProcessRunStatus],
        new_status: SubProcessRunStatus,
    ) -> int:
        """Move every run of request in from_statuses to new_status; return row count."""


# Directory repository interface (users, departments, groups; read-only)
class IDirectoryRepository(Protocol):
    """Protocol for reporting-line and group membership lookups."""

    async def get_manager_id(self, user_id: str) -> str | None:
        """Return the user's direct manager id, or None."""

    async def get_department_manager_id(self, department_id: str) -> str | None:
        """Return the department's manager id, or None."""

    async def list_group_member_ids(self, group_id: str) -> list[str]:
        """Return member user ids of a group in membership order."""

    async def list_direct_report_ids(self, user_id: str) -> list[str]:
        """Return ids of users whose manager is user_id."""

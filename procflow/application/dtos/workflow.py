"""DTOs for workflow templates, runs and generation outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from procflow.domain.enums import WorkflowTemplateStatus
from procflow.domain.graph import WorkflowGraph
from procflow.shared.enums import (
    ExecutionLogStatus,
    GenerationStatus,
    OwnerKind,
    WorkflowRunStatus,
)
from procflow.shared.utils.datetime import utc_now


@dataclass(frozen=True)
class WorkflowOwner:
    """A workflow template belongs to exactly one process or one sub-process."""

    kind: OwnerKind
    id: str

    @classmethod
    def process(cls, process_template_id: str) -> WorkflowOwner:
        return cls(OwnerKind.PROCESS, process_template_id)

    @classmethod
    def sub_process(cls, sub_process_template_id: str) -> WorkflowOwner:
        return cls(OwnerKind.SUB_PROCESS, sub_process_template_id)


@dataclass(frozen=True)
class WorkflowTemplateCreate:
    owner: WorkflowOwner
    name: str
    version: int
    graph: WorkflowGraph
    status: WorkflowTemplateStatus = WorkflowTemplateStatus.ACTIVE
    is_default: bool = True


@dataclass(frozen=True)
class WorkflowTemplateResult:
    id: str
    owner: WorkflowOwner
    name: str
    version: int
    status: WorkflowTemplateStatus
    is_default: bool
    graph: WorkflowGraph
    created_at: datetime | None = None


@dataclass(frozen=True)
class WorkflowRunCreate:
    workflow_template_id: str
    workflow_version: int
    trigger_entity_id: str
    started_by: str | None
    context_data: dict[str, Any]
    execution_log: list[dict[str, Any]]
    started_at: datetime


@dataclass(frozen=True)
class WorkflowRunResult:
    id: str
    workflow_template_id: str
    workflow_version: int
    trigger_entity_id: str
    status: WorkflowRunStatus
    execution_log: list[dict[str, Any]]
    context_data: dict[str, Any]
    started_by: str | None
    started_at: datetime | None
    completed_at: datetime | None
    error_message: str | None


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of generating the workflow of one owner."""

    owner: WorkflowOwner
    status: GenerationStatus
    message: str
    workflow_template_id: str | None = None
    version: int | None = None


@dataclass(frozen=True)
class GenerationSummary:
    """Batch generation outcome; per-owner errors never abort the batch."""

    results: tuple[GenerationResult, ...] = ()
    warnings: tuple[str, ...] = ()
    dry_run: bool = False
    counts: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_results(
        cls,
        results: list[GenerationResult],
        warnings: list[str],
        *,
        dry_run: bool = False,
    ) -> GenerationSummary:
        counts = {"total": len(results), "created": 0, "updated": 0, "skipped": 0, "errors": 0}
        for result in results:
            key = "errors" if result.status == GenerationStatus.ERROR else result.status.value
            counts[key] += 1
        return cls(
            results=tuple(results),
            warnings=tuple(warnings),
            dry_run=dry_run,
            counts=counts,
        )


def execution_log_entry(
    action: str, status: ExecutionLogStatus, **extra: Any
) -> dict[str, Any]:
    """Build one workflow run execution_log entry."""
    return {"action": action, "status": status.value, "at": utc_now().isoformat(), **extra}

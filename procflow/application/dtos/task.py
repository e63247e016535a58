"""DTOs for tasks and requests (a request is a task with type 'request')."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from procflow.domain.enums import (
    AggregatedStatus,
    RequestValidationStatus,
    TaskPriority,
    TaskStatus,
    TaskType,
    ValidationLevelType,
    ValidationStatus,
)
from procflow.domain.exceptions import PartialBatchFailure
from procflow.domain.task_lifecycle import requires_validation


@dataclass(frozen=True)
class TaskCreate:
    """Fields for inserting a task or request row (checklist items copied alongside)."""

    title: str
    type: TaskType = TaskType.TASK
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    description: str | None = None
    due_date: date | None = None
    assignee_id: str | None = None
    requester_id: str | None = None
    reporter_id: str | None = None
    department_id: str | None = None
    parent_request_id: str | None = None
    parent_sub_process_run_id: str | None = None
    source_process_template_id: str | None = None
    source_sub_process_template_id: str | None = None
    source_task_template_id: str | None = None
    workflow_run_id: str | None = None
    validation_level_1: ValidationLevelType = ValidationLevelType.NONE
    validation_level_2: ValidationLevelType = ValidationLevelType.NONE
    validator_1_id: str | None = None
    validator_2_id: str | None = None
    validation_1_status: ValidationStatus | None = None
    request_validation_status: RequestValidationStatus = RequestValidationStatus.NONE
    custom_data: dict[str, Any] | None = None
    checklist_items: tuple[str, ...] = ()


@dataclass(frozen=True)
class TaskResult:
    id: str
    type: TaskType
    title: str
    description: str | None
    status: TaskStatus
    priority: TaskPriority
    due_date: date | None
    assignee_id: str | None
    requester_id: str | None
    reporter_id: str | None
    original_assignee_id: str | None
    department_id: str | None
    parent_request_id: str | None
    parent_sub_process_run_id: str | None
    source_process_template_id: str | None
    source_sub_process_template_id: str | None
    source_task_template_id: str | None
    workflow_run_id: str | None
    validation_level_1: ValidationLevelType
    validation_level_2: ValidationLevelType
    validator_1_id: str | None
    validator_2_id: str | None
    validation_1_status: ValidationStatus | None
    validation_1_by: str | None
    validation_1_at: datetime | None
    validation_1_comment: str | None
    validation_2_status: ValidationStatus | None
    validation_2_by: str | None
    validation_2_at: datetime | None
    validation_2_comment: str | None
    is_locked_for_validation: bool
    validated_at: datetime | None
    validator_id: str | None
    request_validation_status: RequestValidationStatus
    custom_data: dict[str, Any] | None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_request(self) -> bool:
        return self.type == TaskType.REQUEST

    @property
    def requires_validation(self) -> bool:
        return requires_validation(self.validation_level_1, self.validation_level_2)

    def validation_level(self, level: int) -> ValidationLevelType:
        """Return the validator type configured for level 1 or 2."""
        return self.validation_level_1 if level == 1 else self.validation_level_2

    def validator_for(self, level: int) -> str | None:
        """Return the explicit validator id configured for level 1 or 2."""
        return self.validator_1_id if level == 1 else self.validator_2_id


@dataclass(frozen=True)
class TaskStatusChange:
    """Published on the status bus after a successful transition."""

    task: TaskResult
    previous_status: TaskStatus
    actor_id: str | None


@dataclass(frozen=True)
class BulkChunkOutcome:
    index: int
    requested: int
    succeeded: int
    skipped: int
    failed: int
    error: str | None = None


@dataclass(frozen=True)
class BulkUpdateResult:
    """Best-effort batch outcome; earlier chunks stay applied when a later one fails."""

    requested: int
    succeeded: int
    skipped: int
    failed: int
    chunks: tuple[BulkChunkOutcome, ...]
    warning: PartialBatchFailure | None = None


@dataclass(frozen=True)
class RequestProgress:
    request_id: str
    total: int
    completed: int
    percent: int
    status: AggregatedStatus

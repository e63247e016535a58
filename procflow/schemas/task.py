"""Task API schemas: status changes, assignment, validation and bulk updates."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from procflow.application.dtos.task import BulkUpdateResult
from procflow.core.config import MAX_BULK_CHUNK_SIZE
from procflow.domain.enums import (
    RequestValidationStatus,
    TaskPriority,
    TaskStatus,
    TaskType,
    ValidationLevelType,
    ValidationStatus,
)


class TaskResponse(BaseModel):
    """Task or request row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    type: TaskType
    title: str
    description: str | None
    status: TaskStatus
    priority: TaskPriority
    due_date: date | None
    assignee_id: str | None
    requester_id: str | None
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
    validation_1_status: ValidationStatus | None
    validation_1_by: str | None
    validation_1_comment: str | None
    validation_2_status: ValidationStatus | None
    validation_2_by: str | None
    validation_2_comment: str | None
    is_locked_for_validation: bool
    validated_at: datetime | None
    request_validation_status: RequestValidationStatus
    custom_data: dict[str, Any] | None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TaskStatusUpdateRequest(BaseModel):
    status: TaskStatus


class TaskAssignRequest(BaseModel):
    assignee_id: str = Field(..., min_length=1)


class TaskValidateRequest(BaseModel):
    level: int = Field(..., ge=1, le=2)
    comment: str | None = None


class TaskRefuseRequest(BaseModel):
    """Refusal requires a comment; blank comments are rejected by the gate with 400."""

    level: int = Field(..., ge=1, le=2)
    comment: str | None = None


class BulkStatusRequest(BaseModel):
    task_ids: list[str] = Field(..., min_length=1)
    status: TaskStatus


class BulkChunkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    index: int
    requested: int
    succeeded: int
    skipped: int
    failed: int
    error: str | None = None


class BulkUpdateResponse(BaseModel):
    """Best-effort bulk outcome; warning is set when at least one chunk failed."""

    requested: int
    succeeded: int
    skipped: int
    failed: int
    chunk_size: int = Field(default=MAX_BULK_CHUNK_SIZE)
    chunks: list[BulkChunkResponse]
    warning: str | None = None

    @classmethod
    def from_result(cls, result: BulkUpdateResult, chunk_size: int) -> "BulkUpdateResponse":
        return cls(
            requested=result.requested,
            succeeded=result.succeeded,
            skipped=result.skipped,
            failed=result.failed,
            chunk_size=chunk_size,
            chunks=[BulkChunkResponse.model_validate(c) for c in result.chunks],
            warning=result.warning.message if result.warning else None,
        )

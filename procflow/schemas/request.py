"""Request API schemas: submission, request-level validation and progress."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from procflow.application.dtos.execution import (
    BlockExecutionResult,
    RequestDecisionResult,
    SubmitRequestCommand,
    SubmitRequestResult,
)
from procflow.domain.enums import (
    AggregatedStatus,
    RefusalAction,
    SubProcessRunStatus,
    TaskPriority,
)
from procflow.schemas.task import TaskResponse
from procflow.schemas.workflow import WorkflowRunResponse


class SubmitRequestBody(BaseModel):
    """Request body for POST /requests. The requester is the calling user."""

    process_template_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    department_id: str | None = None
    selected_sub_process_ids: list[str] = Field(default_factory=list)
    custom_data: dict[str, Any] | None = None

    def to_command(self, requester_id: str) -> SubmitRequestCommand:
        return SubmitRequestCommand(
            process_template_id=self.process_template_id,
            requester_id=requester_id,
            title=self.title,
            description=self.description,
            priority=self.priority,
            department_id=self.department_id,
            selected_sub_process_ids=tuple(self.selected_sub_process_ids),
            custom_data=self.custom_data,
        )


class SubProcessRunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    request_id: str
    sub_process_template_id: str
    workflow_run_id: str | None
    status: SubProcessRunStatus
    order_index: int
    started_at: datetime | None
    completed_at: datetime | None


class BlockExecutionResponse(BaseModel):
    success: bool
    task_count: int
    sub_process_run_id: str | None
    created_task_ids: list[str]
    warnings: list[str]
    error: str | None = None

    @classmethod
    def from_result(cls, result: BlockExecutionResult) -> "BlockExecutionResponse":
        return cls(
            success=result.success,
            task_count=result.task_count,
            sub_process_run_id=result.sub_process_run_id,
            created_task_ids=list(result.created_task_ids),
            warnings=[str(w) for w in result.warnings],
            error=result.error,
        )


class SubmitRequestResponse(BaseModel):
    request: TaskResponse
    sub_process_runs: list[SubProcessRunResponse]
    workflow_run: WorkflowRunResponse | None = None
    blocks: list[BlockExecutionResponse] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: SubmitRequestResult) -> "SubmitRequestResponse":
        return cls(
            request=TaskResponse.model_validate(result.request),
            sub_process_runs=[
                SubProcessRunResponse.model_validate(r) for r in result.sub_process_runs
            ],
            workflow_run=(
                WorkflowRunResponse.from_result(result.workflow_run)
                if result.workflow_run
                else None
            ),
            blocks=[BlockExecutionResponse.from_result(b) for b in result.blocks],
        )


class RequestApproveBody(BaseModel):
    comment: str | None = None


class RequestRefuseBody(BaseModel):
    comment: str | None = None
    action: RefusalAction = RefusalAction.CANCEL


class RequestDecisionResponse(BaseModel):
    """Decision outcome; workflow_run is set when final approval launched the workflow."""

    request: TaskResponse
    workflow_run: WorkflowRunResponse | None = None
    blocks: list[BlockExecutionResponse] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: RequestDecisionResult) -> "RequestDecisionResponse":
        launch = result.launch
        return cls(
            request=TaskResponse.model_validate(result.request),
            workflow_run=(
                WorkflowRunResponse.from_result(launch.workflow_run)
                if launch and launch.workflow_run
                else None
            ),
            blocks=[BlockExecutionResponse.from_result(b) for b in launch.blocks] if launch else [],
        )


class RequestProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    request_id: str
    total: int
    completed: int
    percent: int
    status: AggregatedStatus


class RequestReconciliationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    request_id: str
    completed_sub_process_run_ids: list[str]
    joins_satisfied: list[str]
    process_completed: bool

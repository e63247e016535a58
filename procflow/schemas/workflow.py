"""Workflow generation and workflow template API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from procflow.application.dtos.workflow import (
    GenerationResult,
    GenerationSummary,
    WorkflowRunResult,
    WorkflowTemplateResult,
)
from procflow.domain.enums import WorkflowTemplateStatus
from procflow.shared.enums import GenerationStatus, OwnerKind, WorkflowRunStatus


class GenerateWorkflowsRequest(BaseModel):
    """Request body for POST /workflows/generate. Empty id lists mean every active owner."""

    process_ids: list[str] = Field(default_factory=list)
    sub_process_ids: list[str] = Field(default_factory=list)
    force: bool = False
    dry_run: bool = False


class GenerationResultResponse(BaseModel):
    owner_kind: OwnerKind
    owner_id: str
    status: GenerationStatus
    message: str
    workflow_template_id: str | None = None
    version: int | None = None

    @classmethod
    def from_result(cls, result: GenerationResult) -> "GenerationResultResponse":
        return cls(
            owner_kind=result.owner.kind,
            owner_id=result.owner.id,
            status=result.status,
            message=result.message,
            workflow_template_id=result.workflow_template_id,
            version=result.version,
        )


class GenerationSummaryResponse(BaseModel):
    """Batch generation outcome with per-status counts."""

    dry_run: bool
    counts: dict[str, int]
    warnings: list[str]
    results: list[GenerationResultResponse]

    @classmethod
    def from_summary(cls, summary: GenerationSummary) -> "GenerationSummaryResponse":
        return cls(
            dry_run=summary.dry_run,
            counts=dict(summary.counts),
            warnings=list(summary.warnings),
            results=[GenerationResultResponse.from_result(r) for r in summary.results],
        )


class WorkflowTemplateResponse(BaseModel):
    """Workflow template with its graph as node/edge lists."""

    id: str
    name: str
    version: int
    status: WorkflowTemplateStatus
    is_default: bool
    owner_kind: OwnerKind
    owner_id: str
    nodes: list[dict[str, Any]]
    edges: list[dict[str, Any]]
    created_at: datetime | None = None

    @classmethod
    def from_result(cls, template: WorkflowTemplateResult) -> "WorkflowTemplateResponse":
        graph = template.graph.to_dict()
        return cls(
            id=template.id,
            name=template.name,
            version=template.version,
            status=template.status,
            is_default=template.is_default,
            owner_kind=template.owner.kind,
            owner_id=template.owner.id,
            nodes=graph["nodes"],
            edges=graph["edges"],
            created_at=template.created_at,
        )


class WorkflowRunResponse(BaseModel):
    """Workflow run response."""

    model_config = ConfigDict(from_attributes=True)

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

    @classmethod
    def from_result(cls, run: WorkflowRunResult) -> "WorkflowRunResponse":
        return cls.model_validate(run)

"""Task API: status changes, assignment, validation and bulk updates."""

from typing import Annotated

from fastapi import APIRouter, Depends

from procflow.api.v1.dependencies import get_actor_id, get_engine, get_task_repo
from procflow.application.engine import ProcflowEngine
from procflow.domain.exceptions import ResourceNotFoundException
from procflow.infrastructure.persistence.repositories import TaskRepository
from procflow.schemas.task import (
    BulkStatusRequest,
    BulkUpdateResponse,
    TaskAssignRequest,
    TaskRefuseRequest,
    TaskResponse,
    TaskStatusUpdateRequest,
    TaskValidateRequest,
)

router = APIRouter()


@router.post("/bulk-status", response_model=BulkUpdateResponse)
async def bulk_update_status(
    body: BulkStatusRequest,
    actor_id: Annotated[str, Depends(get_actor_id)],
    engine: Annotated[ProcflowEngine, Depends(get_engine)],
):
    """Best-effort status update of many tasks; failed chunks are reported, not raised."""
    result = await engine.task_status.bulk_update_status(body.task_ids, body.status, actor_id)
    return BulkUpdateResponse.from_result(result, engine.task_status.chunk_size)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    task_repo: Annotated[TaskRepository, Depends(get_task_repo)],
):
    """Get a task or request by id."""
    task = await task_repo.get_by_id(task_id)
    if not task:
        raise ResourceNotFoundException("task", task_id)
    return TaskResponse.model_validate(task)


@router.post("/{task_id}/status", response_model=TaskResponse)
async def change_task_status(
    task_id: str,
    body: TaskStatusUpdateRequest,
    actor_id: Annotated[str, Depends(get_actor_id)],
    engine: Annotated[ProcflowEngine, Depends(get_engine)],
):
    """Apply a plain status transition (validation statuses go through /validation)."""
    task = await engine.task_status.change_status(task_id, body.status, actor_id)
    return TaskResponse.model_validate(task)


@router.post("/{task_id}/assign", response_model=TaskResponse)
async def assign_task(
    task_id: str,
    body: TaskAssignRequest,
    actor_id: Annotated[str, Depends(get_actor_id)],
    engine: Annotated[ProcflowEngine, Depends(get_engine)],
):
    """Assign or reassign a task that has not started."""
    task = await engine.task_status.assign(task_id, body.assignee_id, actor_id)
    return TaskResponse.model_validate(task)


@router.post("/{task_id}/validation/submit", response_model=TaskResponse)
async def submit_task_for_validation(
    task_id: str,
    actor_id: Annotated[str, Depends(get_actor_id)],
    engine: Annotated[ProcflowEngine, Depends(get_engine)],
):
    """Submit a done task for validation (assignee only)."""
    task = await engine.task_gate.submit_for_validation(task_id, actor_id)
    return TaskResponse.model_validate(task)


@router.post("/{task_id}/validation/validate", response_model=TaskResponse)
async def validate_task(
    task_id: str,
    body: TaskValidateRequest,
    actor_id: Annotated[str, Depends(get_actor_id)],
    engine: Annotated[ProcflowEngine, Depends(get_engine)],
):
    """Approve the task at the given level."""
    task = await engine.task_gate.validate(task_id, body.level, actor_id, body.comment)
    return TaskResponse.model_validate(task)


@router.post("/{task_id}/validation/refuse", response_model=TaskResponse)
async def refuse_task(
    task_id: str,
    body: TaskRefuseRequest,
    actor_id: Annotated[str, Depends(get_actor_id)],
    engine: Annotated[ProcflowEngine, Depends(get_engine)],
):
    """Refuse the task at the given level (comment required)."""
    task = await engine.task_gate.refuse(task_id, body.level, actor_id, body.comment)
    return TaskResponse.model_validate(task)

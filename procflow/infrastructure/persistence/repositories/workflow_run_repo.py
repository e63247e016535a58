"""Workflow run repository: run creation, execution log and status transitions."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from procflow.application.dtos.workflow import WorkflowRunCreate, WorkflowRunResult
from procflow.infrastructure.persistence.models.workflow import WorkflowRun
from procflow.shared.enums import WorkflowRunStatus


def _to_result(r: WorkflowRun) -> WorkflowRunResult:
    """Map WorkflowRun ORM to WorkflowRunResult DTO."""
    return WorkflowRunResult(
        id=r.id,
        workflow_template_id=r.workflow_template_id,
        workflow_version=r.workflow_version,
        trigger_entity_id=r.trigger_entity_id,
        status=WorkflowRunStatus(r.status),
        execution_log=list(r.execution_log or []),
        context_data=dict(r.context_data or {}),
        started_by=r.started_by,
        started_at=r.started_at,
        completed_at=r.completed_at,
        error_message=r.error_message,
    )


class WorkflowRunRepository:
    """Workflow run repository. Implements IWorkflowRunRepository."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, data: WorkflowRunCreate) -> WorkflowRunResult:
        run = WorkflowRun(
            workflow_template_id=data.workflow_template_id,
            workflow_version=data.workflow_version,
            trigger_entity_id=data.trigger_entity_id,
            status=WorkflowRunStatus.RUNNING.value,
            execution_log=list(data.execution_log),
            context_data=dict(data.context_data),
            started_by=data.started_by,
            started_at=data.started_at,
        )
        self.db.add(run)
        await self.db.flush()
        await self.db.refresh(run)
        return _to_result(run)

    async def get_by_id(self, workflow_run_id: str) -> WorkflowRunResult | None:
        run = await self.db.get(WorkflowRun, workflow_run_id, populate_existing=True)
        return _to_result(run) if run else None

    async def get_latest_for_request(self, request_id: str) -> WorkflowRunResult | None:
        result = await self.db.execute(
            select(WorkflowRun)
            .where(WorkflowRun.trigger_entity_id == request_id)
            .order_by(WorkflowRun.started_at.desc().nulls_last(), WorkflowRun.created_at.desc())
            .limit(1)
        )
        run = result.scalar_one_or_none()
        return _to_result(run) if run else None

    async def append_log(self, workflow_run_id: str, entries: list[dict[str, Any]]) -> None:
        """Append under a row lock so concurrent appends are not lost."""
        if not entries:
            return
        result = await self.db.execute(
            select(WorkflowRun)
            .where(WorkflowRun.id == workflow_run_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        run = result.scalar_one_or_none()
        if run is None:
            return
        # JSON columns are not mutation-tracked; assign a new list.
        run.execution_log = [*(run.execution_log or []), *entries]
        await self.db.flush()

    async def compare_and_set_status(
        self,
        workflow_run_id: str,
        expected: WorkflowRunStatus,
        new_status: WorkflowRunStatus,
        *,
        completed_at: datetime | None = None,
        error_message: str | None = None,
    ) -> bool:
        values: dict[str, Any] = {"status": new_status.value}
        if completed_at is not None:
            values["completed_at"] = completed_at
        if error_message is not None:
            values["error_message"] = error_message
        result = await self.db.execute(
            update(WorkflowRun)
            .where(WorkflowRun.id == workflow_run_id, WorkflowRun.status == expected.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

"""Sub-process run repository (request_sub_processes rows)."""

from __future__ import annotations

from collections.abc import Collection
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from procflow.application.dtos.sub_process_run import (
    SubProcessRunCreate,
    SubProcessRunResult,
)
from procflow.domain.enums import SubProcessRunStatus
from procflow.infrastructure.persistence.models.sub_process_run import SubProcessRun
from procflow.infrastructure.persistence.repositories.base import BaseRepository


def _to_result(r: SubProcessRun) -> SubProcessRunResult:
    """Map SubProcessRun ORM to SubProcessRunResult DTO."""
    return SubProcessRunResult(
        id=r.id,
        request_id=r.request_id,
        sub_process_template_id=r.sub_process_template_id,
        workflow_run_id=r.workflow_run_id,
        status=SubProcessRunStatus(r.status),
        order_index=r.order_index,
        notify_on_status_change=r.notify_on_status_change,
        notify_on_close=r.notify_on_close,
        started_at=r.started_at,
        completed_at=r.completed_at,
        closure_notified_at=r.closure_notified_at,
    )


class SubProcessRunRepository(BaseRepository[SubProcessRun]):
    """Sub-process run repository. Implements ISubProcessRunRepository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, SubProcessRun)

    async def create(self, data: SubProcessRunCreate) -> SubProcessRunResult:
        run = SubProcessRun(
            request_id=data.request_id,
            sub_process_template_id=data.sub_process_template_id,
            workflow_run_id=data.workflow_run_id,
            status=data.status.value,
            order_index=data.order_index,
            notify_on_status_change=data.notify_on_status_change,
            notify_on_close=data.notify_on_close,
            started_at=data.started_at,
        )
        self.db.add(run)
        await self.db.flush()
        await self.db.refresh(run)
        return _to_result(run)

    async def get_by_id(self, sub_process_run_id: str) -> SubProcessRunResult | None:
        run = await self.db.get(SubProcessRun, sub_process_run_id, populate_existing=True)
        return _to_result(run) if run else None

    async def get_by_request_and_template(
        self, request_id: str, sub_process_template_id: str
    ) -> SubProcessRunResult | None:
        result = await self.db.execute(
            select(SubProcessRun)
            .where(
                SubProcessRun.request_id == request_id,
                SubProcessRun.sub_process_template_id == sub_process_template_id,
            )
            .execution_options(populate_existing=True)
        )
        run = result.scalar_one_or_none()
        return _to_result(run) if run else None

    async def list_by_request(self, request_id: str) -> list[SubProcessRunResult]:
        result = await self.db.execute(
            select(SubProcessRun)
            .where(SubProcessRun.request_id == request_id)
            .order_by(SubProcessRun.order_index)
            .execution_options(populate_existing=True)
        )
        return [_to_result(r) for r in result.scalars().all()]

    async def list_by_workflow_run(self, workflow_run_id: str) -> list[SubProcessRunResult]:
        result = await self.db.execute(
            select(SubProcessRun)
            .where(SubProcessRun.workflow_run_id == workflow_run_id)
            .order_by(SubProcessRun.order_index)
            .execution_options(populate_existing=True)
        )
        return [_to_result(r) for r in result.scalars().all()]

    async def compare_and_set(
        self, sub_process_run_id: str, expected: dict[str, Any], values: dict[str, Any]
    ) -> SubProcessRunResult | None:
        run = await self._compare_and_set(sub_process_run_id, expected, values)
        return _to_result(run) if run else None

    async def set_status_for_request(
        self,
        request_id: str,
        from_statuses: Collection[SubProcessRunStatus],
        new_status: SubProcessRunStatus,
    ) -> int:
        if not from_statuses:
            return 0
        result = await self.db.execute(
            update(SubProcessRun)
            .where(
                SubProcessRun.request_id == request_id,
                SubProcessRun.status.in_([s.value for s in from_statuses]),
            )
            .values(status=new_status.value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

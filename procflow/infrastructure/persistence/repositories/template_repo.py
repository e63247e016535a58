"""Template repository: process, sub-process and task template reads."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from procflow.application.dtos.templates import (
    ProcessTemplateResult,
    SubProcessTemplateResult,
    TaskTemplateResult,
)
from procflow.domain.enums import (
    AssignmentMode,
    AssignmentTarget,
    ManagerSource,
    TaskPriority,
    ValidationLevelType,
)
from procflow.infrastructure.persistence.models.templates import (
    ProcessTemplate,
    SubProcessTemplate,
    TaskTemplate,
)


def _process_to_result(p: ProcessTemplate) -> ProcessTemplateResult:
    return ProcessTemplateResult(
        id=p.id,
        name=p.name,
        description=p.description,
        is_active=p.is_active,
        request_validation_levels=p.request_validation_levels,
        request_validator_1_type=ValidationLevelType(p.request_validator_1_type),
        request_validator_1_id=p.request_validator_1_id,
        request_validator_2_type=ValidationLevelType(p.request_validator_2_type),
        request_validator_2_id=p.request_validator_2_id,
    )


def _sub_process_to_result(s: SubProcessTemplate) -> SubProcessTemplateResult:
    return SubProcessTemplateResult(
        id=s.id,
        process_template_id=s.process_template_id,
        name=s.name,
        order_index=s.order_index,
        assignment_mode=AssignmentMode(s.assignment_mode),
        assignment_target=AssignmentTarget(s.assignment_target),
        target_assignee_id=s.target_assignee_id,
        target_group_id=s.target_group_id,
        target_department_id=s.target_department_id,
        target_manager_id=s.target_manager_id,
        manager_source=ManagerSource(s.manager_source) if s.manager_source else None,
        validation_levels=s.validation_levels,
        notify_on_create=s.notify_on_create,
        notify_on_status_change=s.notify_on_status_change,
        notify_on_close=s.notify_on_close,
        is_active=s.is_active,
    )


def _task_template_to_result(t: TaskTemplate) -> TaskTemplateResult:
    return TaskTemplateResult(
        id=t.id,
        sub_process_template_id=t.sub_process_template_id,
        title=t.title,
        description=t.description,
        priority=TaskPriority(t.priority),
        default_duration_days=t.default_duration_days,
        order_index=t.order_index,
        validation_level_1=ValidationLevelType(t.validation_level_1),
        validation_level_2=ValidationLevelType(t.validation_level_2),
        validator_1_id=t.validator_1_id,
        validator_2_id=t.validator_2_id,
        checklist_items=tuple(t.checklist_items or ()),
    )


class TemplateRepository:
    """Template repository. Implements ITemplateRepository."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_process(self, process_template_id: str) -> ProcessTemplateResult | None:
        row = await self.db.get(ProcessTemplate, process_template_id)
        return _process_to_result(row) if row else None

    async def list_process_ids(self, *, active_only: bool = True) -> list[str]:
        stmt = select(ProcessTemplate.id).order_by(ProcessTemplate.created_at)
        if active_only:
            stmt = stmt.where(ProcessTemplate.is_active.is_(True))
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_sub_processes(
        self, process_template_id: str
    ) -> list[SubProcessTemplateResult]:
        result = await self.db.execute(
            select(SubProcessTemplate)
            .where(
                SubProcessTemplate.process_template_id == process_template_id,
                SubProcessTemplate.is_active.is_(True),
            )
            .order_by(SubProcessTemplate.order_index)
        )
        return [_sub_process_to_result(s) for s in result.scalars().all()]

    async def get_sub_process(
        self, sub_process_template_id: str
    ) -> SubProcessTemplateResult | None:
        row = await self.db.get(SubProcessTemplate, sub_process_template_id)
        return _sub_process_to_result(row) if row else None

    async def list_sub_process_ids(self, *, active_only: bool = True) -> list[str]:
        stmt = select(SubProcessTemplate.id).order_by(
            SubProcessTemplate.process_template_id, SubProcessTemplate.order_index
        )
        if active_only:
            stmt = stmt.where(SubProcessTemplate.is_active.is_(True))
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_task_templates(
        self, sub_process_template_id: str
    ) -> list[TaskTemplateResult]:
        result = await self.db.execute(
            select(TaskTemplate)
            .where(TaskTemplate.sub_process_template_id == sub_process_template_id)
            .order_by(TaskTemplate.order_index)
        )
        return [_task_template_to_result(t) for t in result.scalars().all()]

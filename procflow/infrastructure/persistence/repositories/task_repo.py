"""Task repository: tasks and requests, checklist copies and conditional updates."""

from __future__ import annotations

from collections.abc import Collection
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from procflow.application.dtos.task import TaskCreate, TaskResult
from procflow.domain.enums import (
    RequestValidationStatus,
    TaskPriority,
    TaskStatus,
    TaskType,
    ValidationLevelType,
    ValidationStatus,
)
from procflow.infrastructure.persistence.models.task import Task, TaskChecklistItem
from procflow.infrastructure.persistence.repositories.base import BaseRepository


def _validation_status(value: str | None) -> ValidationStatus | None:
    return ValidationStatus(value) if value else None


def _to_result(t: Task) -> TaskResult:
    """Map Task ORM to TaskResult DTO."""
    return TaskResult(
        id=t.id,
        type=TaskType(t.type),
        title=t.title,
        description=t.description,
        status=TaskStatus(t.status),
        priority=TaskPriority(t.priority),
        due_date=t.due_date,
        assignee_id=t.assignee_id,
        requester_id=t.requester_id,
        reporter_id=t.reporter_id,
        original_assignee_id=t.original_assignee_id,
        department_id=t.department_id,
        parent_request_id=t.parent_request_id,
        parent_sub_process_run_id=t.parent_sub_process_run_id,
        source_process_template_id=t.source_process_template_id,
        source_sub_process_template_id=t.source_sub_process_template_id,
        source_task_template_id=t.source_task_template_id,
        workflow_run_id=t.workflow_run_id,
        validation_level_1=ValidationLevelType(t.validation_level_1),
        validation_level_2=ValidationLevelType(t.validation_level_2),
        validator_1_id=t.validator_1_id,
        validator_2_id=t.validator_2_id,
        validation_1_status=_validation_status(t.validation_1_status),
        validation_1_by=t.validation_1_by,
        validation_1_at=t.validation_1_at,
        validation_1_comment=t.validation_1_comment,
        validation_2_status=_validation_status(t.validation_2_status),
        validation_2_by=t.validation_2_by,
        validation_2_at=t.validation_2_at,
        validation_2_comment=t.validation_2_comment,
        is_locked_for_validation=t.is_locked_for_validation,
        validated_at=t.validated_at,
        validator_id=t.validator_id,
        request_validation_status=RequestValidationStatus(t.request_validation_status),
        custom_data=t.custom_data,
        created_at=t.created_at,
        updated_at=t.updated_at,
    )


class TaskRepository(BaseRepository[Task]):
    """Task repository. Implements ITaskRepository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, Task)

    async def create(self, data: TaskCreate) -> TaskResult:
        """Insert the task and its checklist items (in template order)."""
        task = Task(
            type=data.type.value,
            title=data.title,
            description=data.description,
            status=data.status.value,
            priority=data.priority.value,
            due_date=data.due_date,
            assignee_id=data.assignee_id,
            requester_id=data.requester_id,
            reporter_id=data.reporter_id,
            department_id=data.department_id,
            parent_request_id=data.parent_request_id,
            parent_sub_process_run_id=data.parent_sub_process_run_id,
            source_process_template_id=data.source_process_template_id,
            source_sub_process_template_id=data.source_sub_process_template_id,
            source_task_template_id=data.source_task_template_id,
            workflow_run_id=data.workflow_run_id,
            validation_level_1=data.validation_level_1.value,
            validation_level_2=data.validation_level_2.value,
            validator_1_id=data.validator_1_id,
            validator_2_id=data.validator_2_id,
            validation_1_status=(
                data.validation_1_status.value if data.validation_1_status else None
            ),
            request_validation_status=data.request_validation_status.value,
            custom_data=data.custom_data,
        )
        # Savepoint per task: a failed insert is rolled back alone and the
        # session stays usable for the remaining templates.
        async with self.db.begin_nested():
            self.db.add(task)
            await self.db.flush()
            for index, title in enumerate(data.checklist_items):
                self.db.add(
                    TaskChecklistItem(task_id=task.id, title=title, order_index=index)
                )
            if data.checklist_items:
                await self.db.flush()
        await self.db.refresh(task, attribute_names=["created_at", "updated_at"])
        return _to_result(task)

    async def get_by_id(self, task_id: str) -> TaskResult | None:
        task = await self.db.get(Task, task_id, populate_existing=True)
        return _to_result(task) if task else None

    async def list_by_sub_process_run(self, sub_process_run_id: str) -> list[TaskResult]:
        result = await self.db.execute(
            select(Task)
            .where(Task.parent_sub_process_run_id == sub_process_run_id)
            .order_by(Task.created_at)
        )
        return [_to_result(t) for t in result.scalars().all()]

    async def list_statuses_by_sub_process_run(
        self, sub_process_run_id: str
    ) -> list[TaskStatus]:
        result = await self.db.execute(
            select(Task.status).where(Task.parent_sub_process_run_id == sub_process_run_id)
        )
        return [TaskStatus(s) for s in result.scalars().all()]

    async def list_by_request(self, request_id: str) -> list[TaskResult]:
        result = await self.db.execute(
            select(Task)
            .where(Task.parent_request_id == request_id, Task.type == TaskType.TASK.value)
            .order_by(Task.created_at)
        )
        return [_to_result(t) for t in result.scalars().all()]

    async def get_statuses(self, task_ids: Collection[str]) -> dict[str, TaskStatus]:
        if not task_ids:
            return {}
        result = await self.db.execute(
            select(Task.id, Task.status).where(Task.id.in_(list(task_ids)))
        )
        return {row.id: TaskStatus(row.status) for row in result}

    async def compare_and_set(
        self, task_id: str, expected: dict[str, Any], values: dict[str, Any]
    ) -> TaskResult | None:
        task = await self._compare_and_set(task_id, expected, values)
        return _to_result(task) if task else None

    async def bulk_compare_and_set_status(
        self,
        task_ids: Collection[str],
        allowed_from: Collection[TaskStatus],
        new_status: TaskStatus,
    ) -> list[str]:
        if not task_ids or not allowed_from:
            return []
        # Savepoint per chunk: a failing chunk leaves earlier chunks applied.
        async with self.db.begin_nested():
            result = await self.db.execute(
                update(Task)
                .where(
                    Task.id.in_(list(task_ids)),
                    Task.status.in_([s.value for s in allowed_from]),
                    Task.is_locked_for_validation.is_(False),
                )
                .values(status=new_status.value)
                .returning(Task.id)
                .execution_options(synchronize_session=False)
            )
            ids = list(result.scalars().all())
        return ids

"""Task ORM model (tasks and requests) and its checklist items."""

from datetime import date, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procflow.domain.enums import (
    RequestValidationStatus,
    TaskPriority,
    TaskStatus,
    TaskType,
    ValidationLevelType,
    ValidationStatus,
)
from procflow.infrastructure.persistence.database import Base
from procflow.infrastructure.persistence.models.mixins import BaseModel, in_values_check


def _validation_status_check(column: str) -> sa.CheckConstraint:
    return sa.CheckConstraint(
        "{col} IS NULL OR {col} IN ({values})".format(
            col=column,
            values=", ".join("'{}'".format(v) for v in ValidationStatus.values()),
        ),
        name=f"tasks_{column}_check",
    )


class Task(BaseModel, Base):
    """Task or request (type='request'). Table: tasks."""

    __tablename__ = "tasks"

    type: Mapped[str] = mapped_column(
        String, nullable=False, default=TaskType.TASK.value, index=True
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=TaskStatus.TODO.value, index=True
    )
    priority: Mapped[str] = mapped_column(
        String, nullable=False, default=TaskPriority.MEDIUM.value
    )
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    assignee_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("app_user.id", ondelete="SET NULL"), nullable=True, index=True
    )
    requester_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("app_user.id", ondelete="SET NULL"), nullable=True, index=True
    )
    reporter_id: Mapped[str | None] = mapped_column(String, nullable=True)
    original_assignee_id: Mapped[str | None] = mapped_column(String, nullable=True)
    department_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
    )

    parent_request_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=True, index=True
    )
    parent_sub_process_run_id: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("request_sub_processes.id", ondelete="SET NULL", use_alter=True),
        nullable=True,
        index=True,
    )
    source_process_template_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("process_templates.id", ondelete="SET NULL"), nullable=True
    )
    source_sub_process_template_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("sub_process_templates.id", ondelete="SET NULL"), nullable=True
    )
    source_task_template_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("task_templates.id", ondelete="SET NULL"), nullable=True
    )
    workflow_run_id: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("workflow_runs.id", ondelete="SET NULL", use_alter=True),
        nullable=True,
        index=True,
    )

    validation_level_1: Mapped[str] = mapped_column(
        String, nullable=False, default=ValidationLevelType.NONE.value
    )
    validation_level_2: Mapped[str] = mapped_column(
        String, nullable=False, default=ValidationLevelType.NONE.value
    )
    validator_1_id: Mapped[str | None] = mapped_column(String, nullable=True)
    validator_2_id: Mapped[str | None] = mapped_column(String, nullable=True)
    validation_1_status: Mapped[str | None] = mapped_column(String, nullable=True)
    validation_1_by: Mapped[str | None] = mapped_column(String, nullable=True)
    validation_1_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    validation_1_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    validation_2_status: Mapped[str | None] = mapped_column(String, nullable=True)
    validation_2_by: Mapped[str | None] = mapped_column(String, nullable=True)
    validation_2_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    validation_2_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_locked_for_validation: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sa.text("false")
    )
    validated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    validator_id: Mapped[str | None] = mapped_column(String, nullable=True)
    request_validation_status: Mapped[str] = mapped_column(
        String, nullable=False, default=RequestValidationStatus.NONE.value
    )
    custom_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    checklist_items: Mapped[list["TaskChecklistItem"]] = relationship(
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="TaskChecklistItem.order_index",
    )

    __table_args__ = (
        Index("ix_tasks_request_status", "parent_request_id", "status"),
        Index("ix_tasks_run_template", "parent_sub_process_run_id", "source_task_template_id"),
        in_values_check("type", TaskType.values(), "tasks_type_check"),
        in_values_check("status", TaskStatus.values(), "tasks_status_check"),
        in_values_check("priority", TaskPriority.values(), "tasks_priority_check"),
        in_values_check(
            "validation_level_1", ValidationLevelType.values(), "tasks_validation_level_1_check"
        ),
        in_values_check(
            "validation_level_2", ValidationLevelType.values(), "tasks_validation_level_2_check"
        ),
        _validation_status_check("validation_1_status"),
        _validation_status_check("validation_2_status"),
        in_values_check(
            "request_validation_status",
            RequestValidationStatus.values(),
            "tasks_request_validation_status_check",
        ),
    )


class TaskChecklistItem(BaseModel, Base):
    """Checklist item copied from a task template. Table: task_checklist_items."""

    __tablename__ = "task_checklist_items"

    task_id: Mapped[str] = mapped_column(
        String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_completed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sa.text("false")
    )

    task: Mapped[Task] = relationship(back_populates="checklist_items")

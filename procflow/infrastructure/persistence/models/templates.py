"""Process, sub-process and task template ORM models (author-time configuration)."""

import sqlalchemy as sa
from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from procflow.domain.enums import (
    AssignmentMode,
    AssignmentTarget,
    ManagerSource,
    TaskPriority,
    ValidationLevelType,
)
from procflow.infrastructure.persistence.database import Base
from procflow.infrastructure.persistence.models.mixins import BaseModel, in_values_check


class ProcessTemplate(BaseModel, Base):
    """Process template. Table: process_templates."""

    __tablename__ = "process_templates"

    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.text("true")
    )
    request_validation_levels: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    request_validator_1_type: Mapped[str] = mapped_column(
        String, nullable=False, default=ValidationLevelType.NONE.value
    )
    request_validator_1_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("app_user.id", ondelete="SET NULL"), nullable=True
    )
    request_validator_2_type: Mapped[str] = mapped_column(
        String, nullable=False, default=ValidationLevelType.NONE.value
    )
    request_validator_2_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("app_user.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        sa.CheckConstraint(
            "request_validation_levels BETWEEN 0 AND 2",
            name="process_templates_request_validation_levels_check",
        ),
        in_values_check(
            "request_validator_1_type",
            ValidationLevelType.values(),
            "process_templates_request_validator_1_type_check",
        ),
        in_values_check(
            "request_validator_2_type",
            ValidationLevelType.values(),
            "process_templates_request_validator_2_type_check",
        ),
    )


class SubProcessTemplate(BaseModel, Base):
    """Sub-process template (one standard block). Table: sub_process_templates."""

    __tablename__ = "sub_process_templates"

    process_template_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("process_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    order_index: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.text("true")
    )
    assignment_mode: Mapped[str] = mapped_column(
        String, nullable=False, default=AssignmentMode.DIRECT.value
    )
    assignment_target: Mapped[str] = mapped_column(
        String, nullable=False, default=AssignmentTarget.USER.value
    )
    target_assignee_id: Mapped[str | None] = mapped_column(String, nullable=True)
    target_group_id: Mapped[str | None] = mapped_column(String, nullable=True)
    target_department_id: Mapped[str | None] = mapped_column(String, nullable=True)
    target_manager_id: Mapped[str | None] = mapped_column(String, nullable=True)
    manager_source: Mapped[str | None] = mapped_column(String, nullable=True)
    validation_levels: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    notify_on_create: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.text("true")
    )
    notify_on_status_change: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.text("true")
    )
    notify_on_close: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.text("true")
    )

    __table_args__ = (
        Index("ix_sub_process_templates_process_order", "process_template_id", "order_index"),
        sa.CheckConstraint(
            "validation_levels BETWEEN 0 AND 2",
            name="sub_process_templates_validation_levels_check",
        ),
        in_values_check(
            "assignment_mode",
            AssignmentMode.values(),
            "sub_process_templates_assignment_mode_check",
        ),
        in_values_check(
            "assignment_target",
            AssignmentTarget.values(),
            "sub_process_templates_assignment_target_check",
        ),
        sa.CheckConstraint(
            "manager_source IS NULL OR manager_source IN ({})".format(
                ", ".join("'{}'".format(v) for v in ManagerSource.values())
            ),
            name="sub_process_templates_manager_source_check",
        ),
    )


class TaskTemplate(BaseModel, Base):
    """Task template. Table: task_templates. checklist_items is an ordered list of titles."""

    __tablename__ = "task_templates"

    sub_process_template_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("sub_process_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[str] = mapped_column(
        String, nullable=False, default=TaskPriority.MEDIUM.value
    )
    default_duration_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    order_index: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    validation_level_1: Mapped[str] = mapped_column(
        String, nullable=False, default=ValidationLevelType.NONE.value
    )
    validation_level_2: Mapped[str] = mapped_column(
        String, nullable=False, default=ValidationLevelType.NONE.value
    )
    validator_1_id: Mapped[str | None] = mapped_column(String, nullable=True)
    validator_2_id: Mapped[str | None] = mapped_column(String, nullable=True)
    checklist_items: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        in_values_check("priority", TaskPriority.values(), "task_templates_priority_check"),
        in_values_check(
            "validation_level_1",
            ValidationLevelType.values(),
            "task_templates_validation_level_1_check",
        ),
        in_values_check(
            "validation_level_2",
            ValidationLevelType.values(),
            "task_templates_validation_level_2_check",
        ),
    )

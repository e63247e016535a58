"""DTOs for author-time configuration: process, sub-process and task templates."""

from __future__ import annotations

from dataclasses import dataclass

from procflow.domain.enums import (
    AssignmentMode,
    AssignmentTarget,
    ManagerSource,
    TaskPriority,
    ValidationLevelType,
)


@dataclass(frozen=True)
class ProcessTemplateResult:
    """Process template with its pre-workflow request validation settings."""

    id: str
    name: str
    description: str | None
    is_active: bool
    request_validation_levels: int
    request_validator_1_type: ValidationLevelType
    request_validator_1_id: str | None
    request_validator_2_type: ValidationLevelType
    request_validator_2_id: str | None

    @property
    def requires_request_validation(self) -> bool:
        return (
            self.request_validation_levels > 0
            and self.request_validator_1_type != ValidationLevelType.NONE
        )


@dataclass(frozen=True)
class SubProcessTemplateResult:
    id: str
    process_template_id: str
    name: str
    order_index: int
    assignment_mode: AssignmentMode
    assignment_target: AssignmentTarget
    target_assignee_id: str | None
    target_group_id: str | None
    target_department_id: str | None
    target_manager_id: str | None
    manager_source: ManagerSource | None
    validation_levels: int
    notify_on_create: bool
    notify_on_status_change: bool
    notify_on_close: bool
    is_active: bool = True


@dataclass(frozen=True)
class TaskTemplateResult:
    id: str
    sub_process_template_id: str
    title: str
    description: str | None
    priority: TaskPriority
    default_duration_days: int | None
    order_index: int
    validation_level_1: ValidationLevelType
    validation_level_2: ValidationLevelType
    validator_1_id: str | None
    validator_2_id: str | None
    checklist_items: tuple[str, ...] = ()


@dataclass(frozen=True)
class SubProcessDefinition:
    """A sub-process template together with its ordered task templates (generator input)."""

    template: SubProcessTemplateResult
    task_templates: tuple[TaskTemplateResult, ...]

"""Shared enumerations for procflow.

Cross-cutting enums used by application and infrastructure (event
taxonomy, workflow run bookkeeping, generation outcomes). Task and
template-level enums live in procflow.domain.enums.
"""

from enum import Enum


class _ValuesMixin:
    """Mixin that adds a values() classmethod to str Enums."""

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


class EventType(_ValuesMixin, str, Enum):
    """Lifecycle events raised by the engine for downstream notification delivery."""

    REQUEST_CREATED = "request_created"
    REQUEST_UPDATED = "request_updated"
    TASK_CREATED = "task_created"
    TASK_ASSIGNED = "task_assigned"
    TASK_TO_ASSIGN = "task_to_assign"
    TASK_STATUS_CHANGED = "task_status_changed"
    TASK_COMPLETED = "task_completed"
    VALIDATION_REQUESTED = "validation_requested"
    VALIDATION_DECIDED = "validation_decided"
    SUB_PROCESS_STARTED = "sub_process_started"
    SUB_PROCESS_COMPLETED = "sub_process_completed"
    PROCESS_COMPLETED = "process_completed"
    CHECKLIST_ITEM_COMPLETED = "checklist_item_completed"
    COMMENT_ADDED = "comment_added"
    REMINDER_TRIGGERED = "reminder_triggered"


class EntityType(_ValuesMixin, str, Enum):
    """Entity an emitted event is about."""

    TASK = "task"
    REQUEST = "request"
    WORKFLOW_RUN = "workflow_run"
    VALIDATION = "validation"


class WorkflowRunStatus(_ValuesMixin, str, Enum):
    """Workflow run lifecycle status."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class GenerationStatus(_ValuesMixin, str, Enum):
    """Outcome of generating a workflow template for one owner."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    ERROR = "error"


class OwnerKind(_ValuesMixin, str, Enum):
    """What a workflow template is bound to (mutually exclusive)."""

    PROCESS = "process"
    SUB_PROCESS = "sub_process"


class ExecutionLogStatus(_ValuesMixin, str, Enum):
    """Status of one workflow run execution_log entry."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    DEFERRED = "deferred"

"""Persistence models: ORM entities and mixins."""

from procflow.infrastructure.persistence.models.directory import (
    AppUser,
    Department,
    UserGroup,
    UserGroupMember,
)
from procflow.infrastructure.persistence.models.mixins import (
    BaseModel,
    CuidMixin,
    TimestampMixin,
)
from procflow.infrastructure.persistence.models.sub_process_run import SubProcessRun
from procflow.infrastructure.persistence.models.task import Task, TaskChecklistItem
from procflow.infrastructure.persistence.models.templates import (
    ProcessTemplate,
    SubProcessTemplate,
    TaskTemplate,
)
from procflow.infrastructure.persistence.models.workflow import (
    WorkflowEdge,
    WorkflowGenerationMarker,
    WorkflowNode,
    WorkflowRun,
    WorkflowTemplate,
)

__all__ = [
    "AppUser",
    "Department",
    "UserGroup",
    "UserGroupMember",
    "ProcessTemplate",
    "SubProcessTemplate",
    "TaskTemplate",
    "WorkflowTemplate",
    "WorkflowNode",
    "WorkflowEdge",
    "WorkflowGenerationMarker",
    "WorkflowRun",
    "SubProcessRun",
    "Task",
    "TaskChecklistItem",
    "CuidMixin",
    "TimestampMixin",
    "BaseModel",
]

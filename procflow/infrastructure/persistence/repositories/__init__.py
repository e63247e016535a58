"""SQLAlchemy repositories implementing the application-layer ports."""

from procflow.infrastructure.persistence.repositories.directory_repo import (
    DirectoryRepository,
)
from procflow.infrastructure.persistence.repositories.generation_marker_repo import (
    GenerationMarkerRepository,
)
from procflow.infrastructure.persistence.repositories.sub_process_run_repo import (
    SubProcessRunRepository,
)
from procflow.infrastructure.persistence.repositories.task_repo import TaskRepository
from procflow.infrastructure.persistence.repositories.template_repo import (
    TemplateRepository,
)
from procflow.infrastructure.persistence.repositories.workflow_run_repo import (
    WorkflowRunRepository,
)
from procflow.infrastructure.persistence.repositories.workflow_template_repo import (
    WorkflowTemplateRepository,
)

__all__ = [
    "DirectoryRepository",
    "GenerationMarkerRepository",
    "SubProcessRunRepository",
    "TaskRepository",
    "TemplateRepository",
    "WorkflowRunRepository",
    "WorkflowTemplateRepository",
]

"""FastAPI dependencies (composition root).

Routes never construct repositories or services themselves; they depend
on the providers exported here.
"""

from procflow.api.v1.dependencies.actor import get_actor_id
from procflow.api.v1.dependencies.engine import get_emitter, get_engine
from procflow.api.v1.dependencies.repositories import (
    get_task_repo,
    get_workflow_run_repo,
    get_workflow_template_repo,
)

__all__ = [
    "get_actor_id",
    "get_emitter",
    "get_engine",
    "get_task_repo",
    "get_workflow_run_repo",
    "get_workflow_template_repo",
]

"""Read-side repository dependencies (non-transactional session)."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from procflow.infrastructure.persistence.database import get_db
from procflow.infrastructure.persistence.repositories import (
    TaskRepository,
    WorkflowRunRepository,
    WorkflowTemplateRepository,
)


async def get_task_repo(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TaskRepository:
    """Task repository for read operations."""
    return TaskRepository(db)


async def get_workflow_template_repo(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> WorkflowTemplateRepository:
    """Workflow template repository for read operations."""
    return WorkflowTemplateRepository(db)


async def get_workflow_run_repo(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> WorkflowRunRepository:
    """Workflow run repository for read operations."""
    return WorkflowRunRepository(db)

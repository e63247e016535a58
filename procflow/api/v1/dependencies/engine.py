"""Engine dependencies: one ProcflowEngine per request over a transactional session."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from procflow.application.engine import ProcflowEngine, build_engine
from procflow.application.interfaces.services import IEventEmitter
from procflow.core.config import get_settings
from procflow.infrastructure.persistence.database import get_db_transactional
from procflow.infrastructure.persistence.repositories import (
    DirectoryRepository,
    GenerationMarkerRepository,
    SubProcessRunRepository,
    TaskRepository,
    TemplateRepository,
    WorkflowRunRepository,
    WorkflowTemplateRepository,
)
from procflow.infrastructure.services import LoggingEventEmitter, SafeEventEmitter


def get_emitter(request: Request) -> IEventEmitter:
    """Emitter built at startup; a logging-only safe emitter when the lifespan did not run."""
    emitter = getattr(request.app.state, "emitter", None)
    if emitter is None:
        emitter = SafeEventEmitter(
            LoggingEventEmitter(), timeout_seconds=get_settings().emitter_timeout_seconds
        )
        request.app.state.emitter = emitter
    return emitter


async def get_engine(
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
    emitter: Annotated[IEventEmitter, Depends(get_emitter)],
) -> ProcflowEngine:
    """Engine for write operations; commits when the route returns."""
    return build_engine(
        template_repo=TemplateRepository(db),
        workflow_template_repo=WorkflowTemplateRepository(db),
        marker_repo=GenerationMarkerRepository(db),
        workflow_run_repo=WorkflowRunRepository(db),
        task_repo=TaskRepository(db),
        sub_process_run_repo=SubProcessRunRepository(db),
        directory=DirectoryRepository(db),
        emitter=emitter,
        bulk_chunk_size=get_settings().bulk_chunk_size,
    )

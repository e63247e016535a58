"""Pytest configuration and fixtures for procflow.

Engine tests run against the in-memory ports in fakes.py. HTTP tests use
procflow.main:create_app with dependency overrides, so no database is
needed. DB-dependent fixtures skip when DATABASE_URL is not configured.
"""

import pytest
from fakes import World
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from procflow.api.v1.dependencies import (
    get_engine,
    get_task_repo,
    get_workflow_run_repo,
    get_workflow_template_repo,
)
from procflow.application.engine import ProcflowEngine
from procflow.infrastructure.persistence import database
from procflow.main import create_app


@pytest.fixture
def world() -> World:
    """Fresh in-memory repositories, directory and recording emitter."""
    return World()


@pytest.fixture
def engine(world: World) -> ProcflowEngine:
    return world.engine()


@pytest.fixture
def app():
    application = create_app()
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def api_world(app, world: World, engine: ProcflowEngine) -> World:
    """Route the API's engine and read repositories to the in-memory world."""
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_task_repo] = lambda: world.tasks
    app.dependency_overrides[get_workflow_template_repo] = lambda: world.workflows
    app.dependency_overrides[get_workflow_run_repo] = lambda: world.runs
    return world


@pytest.fixture
async def client(app) -> AsyncClient:
    """Async HTTP client against the FastAPI app (ASGI)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db_session() -> AsyncSession:
    """Database session for repository integration tests. Rolls back after the test.

    Requires DATABASE_URL and a migrated schema (alembic upgrade head).
    Skips when the database is not configured.
    """
    database._ensure_engine()
    if database.AsyncSessionLocal is None:
        pytest.skip(
            "Postgres not configured: set DATABASE_URL, then run: alembic upgrade head"
        )
    async with database.AsyncSessionLocal() as session:
        yield session
        await session.rollback()

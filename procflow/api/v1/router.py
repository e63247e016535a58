"""API v1 router aggregation.

Includes all endpoint modules with consistent prefix and tags. All routes
use dependencies from procflow.api.v1.dependencies (no manual repo/service
construction).
"""

from fastapi import APIRouter

from procflow.api.v1.endpoints import health, requests, tasks, workflows

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(workflows.router, prefix="/workflows", tags=["workflows"])
api_router.include_router(requests.router, prefix="/requests", tags=["requests"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["tasks"])

"""Liveness and readiness probe bodies."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """GET /health: the process is up."""

    status: Literal["ok"] = "ok"


class ReadinessResponse(BaseModel):
    """GET /health/ready when the task store answers."""

    status: Literal["ok"] = "ok"
    database: Literal["ok"] = "ok"


class ReadinessErrorResponse(BaseModel):
    """GET /health/ready with 503: the task store is missing or unreachable."""

    status: Literal["not_ready"] = "not_ready"
    message: str = Field(..., description="Why the store is unavailable")

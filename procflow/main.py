"""FastAPI entry point for the procflow HTTP surface.

create_app() only wires things together: logging, lifespan (event emitter,
tracing, SQL engine), error handlers, CORS and the /api/v1 routers. Tests
call it directly so each test gets a fresh app with its own overrides.
"""

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from procflow.api.v1 import api_router
from procflow.core.config import get_settings
from procflow.core.exception_handlers import register_exception_handlers
from procflow.core.lifespan import create_lifespan
from procflow.shared.telemetry.logging import setup_logging


def create_app() -> FastAPI:
    """Build the procflow application from current settings."""
    settings = get_settings()
    setup_logging()
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Workflow generation, execution and validation orchestration",
        debug=settings.debug,
        lifespan=create_lifespan,
    )
    register_exception_handlers(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.allowed_origins.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", settings.actor_header_name],
    )
    app.include_router(api_router, prefix="/api/v1")
    return app


app = create_app()


def run() -> None:
    """Console entry point: serve procflow.main:app with uvicorn."""
    uvicorn.run("procflow.main:app", host="0.0.0.0", port=8000)

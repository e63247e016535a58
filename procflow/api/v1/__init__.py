"""API v1: routers and composition-root dependencies."""

from procflow.api.v1.router import api_router

__all__ = ["api_router"]

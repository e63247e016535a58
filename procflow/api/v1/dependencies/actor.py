"""Caller identity. Authentication happens upstream; the gateway forwards the user id."""

from fastapi import HTTPException, Request

from procflow.core.config import get_settings


async def get_actor_id(request: Request) -> str:
    """Return the calling user's id from the configured actor header (401 when absent)."""
    header = get_settings().actor_header_name
    actor_id = (request.headers.get(header) or "").strip()
    if not actor_id:
        raise HTTPException(status_code=401, detail=f"Missing {header} header")
    return actor_id

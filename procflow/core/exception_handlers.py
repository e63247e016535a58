"""Exception handlers: engine errors and framework errors as JSON responses.

Every error body has the shape {"error", "message", "details"} so clients
can branch on the machine-readable code alone.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from procflow.core.config import get_settings
from procflow.domain.exceptions import (
    ConflictError,
    GraphInvalidError,
    IllegalTransitionError,
    MissingCommentError,
    ProcflowException,
    ResourceNotFoundException,
    SqlNotConfiguredException,
    UnauthorizedApproverError,
    ValidationException,
)

logger = logging.getLogger(__name__)

# Looked up along the exception's MRO; unmapped engine errors are 400.
_STATUS_BY_TYPE: dict[type[ProcflowException], int] = {
    ResourceNotFoundException: 404,
    ValidationException: 400,
    MissingCommentError: 400,
    UnauthorizedApproverError: 403,
    ConflictError: 409,
    IllegalTransitionError: 409,
    GraphInvalidError: 422,
    SqlNotConfiguredException: 503,
}


def status_for(exc: ProcflowException) -> int:
    """HTTP status for an engine exception."""
    for cls in type(exc).__mro__:
        if cls in _STATUS_BY_TYPE:
            return _STATUS_BY_TYPE[cls]
    return 400


def _error_body(error: str, message: object, details: object = None) -> dict:
    return {"error": error, "message": message, "details": details or {}}


def _procflow_exception_handler(request: Request, exc: ProcflowException) -> JSONResponse:
    status = status_for(exc)
    actor = request.headers.get(get_settings().actor_header_name)
    if status >= 500:
        logger.error(
            "%s on %s %s: %s", exc.error_code, request.method, request.url.path, exc.message
        )
    elif status == 409:
        logger.info(
            "%s for actor %s on %s: %s", exc.error_code, actor, request.url.path, exc.message
        )
    return JSONResponse(status_code=status, content=exc.to_dict())


def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=_error_body(
            "VALIDATION_ERROR",
            "Request validation failed",
            {"errors": jsonable_encoder(exc.errors())},
        ),
    )


def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body("HTTP_ERROR", exc.detail),
        headers=exc.headers,
    )


def _generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """500; the exception text is only exposed when debug is on."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    message = str(exc) if get_settings().debug else "Internal server error"
    return JSONResponse(status_code=500, content=_error_body("INTERNAL_ERROR", message))


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers on app (once, from create_app)."""
    app.add_exception_handler(ProcflowException, _procflow_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _generic_exception_handler)

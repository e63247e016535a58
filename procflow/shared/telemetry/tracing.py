"""Span helpers for engine operations.

@traced wraps a service method in a span named after the operation and
tags it with the identifiers it was called with (task, request, run,
level, actor). Payloads, titles and comments never reach span attributes.
"""

import inspect
from collections.abc import Callable
from functools import wraps
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from procflow.domain.exceptions import ConflictError

_ID_PARAMETERS = frozenset(
    {
        "task_id",
        "request_id",
        "run_id",
        "workflow_run_id",
        "sub_process_run_id",
        "process_template_id",
        "owner_id",
        "actor_id",
        "assignee_id",
        "level",
        "new_status",
        "action",
        "force",
        "dry_run",
    }
)

Scalar = str | int | float | bool


def _call_attributes(signature: inspect.Signature, args: tuple, kwargs: dict) -> dict[str, str]:
    """procflow.<name> attributes for the id-like parameters actually passed."""
    try:
        bound = signature.bind_partial(*args, **kwargs)
    except TypeError:
        return {}
    return {
        f"procflow.{name}": str(getattr(value, "value", value))
        for name, value in bound.arguments.items()
        if name in _ID_PARAMETERS and value is not None
    }


def _finish(span: trace.Span, error: Exception | None) -> None:
    if error is None:
        span.set_status(Status(StatusCode.OK))
    elif isinstance(error, ConflictError):
        # Lost compare-and-set: recorded as an event, span status left unset.
        span.add_event(
            "conflict",
            {"procflow.expected_status": str(error.details["expected_status"])},
        )
    else:
        span.set_status(Status(StatusCode.ERROR, str(error)))
        span.record_exception(error)


def traced(
    operation_name: str | None = None,
    attributes: dict[str, Scalar] | None = None,
) -> Callable:
    """Run the decorated function (sync or async) inside a span.

    Args:
        operation_name: Span name; defaults to module.qualname.
        attributes: Static attributes set on every span.
    """

    def decorator(func: Callable) -> Callable:
        tracer = trace.get_tracer(func.__module__)
        span_name = operation_name or f"{func.__module__}.{func.__qualname__}"
        signature = inspect.signature(func)

        def start(args: tuple, kwargs: dict) -> Any:
            span_attributes: dict[str, Any] = dict(attributes or {})
            span_attributes.update(_call_attributes(signature, args, kwargs))
            return tracer.start_as_current_span(
                span_name,
                attributes=span_attributes,
                record_exception=False,
                set_status_on_exception=False,
            )

        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                with start(args, kwargs) as span:
                    try:
                        result = await func(*args, **kwargs)
                    except Exception as e:
                        _finish(span, e)
                        raise
                    _finish(span, None)
                    return result

            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with start(args, kwargs) as span:
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    _finish(span, e)
                    raise
                _finish(span, None)
                return result

        return sync_wrapper

    return decorator


def add_span_attributes(**attributes: Scalar) -> None:
    """Set attributes on the current span, if one is recording."""
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attributes(attributes)


def set_span_error(exception: Exception) -> None:
    """Mark the current span failed with exception, if one is recording."""
    span = trace.get_current_span()
    if span.is_recording():
        span.set_status(Status(StatusCode.ERROR, str(exception)))
        span.record_exception(exception)

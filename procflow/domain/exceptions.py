"""Domain exceptions for procflow.

Defines domain-level exceptions that represent business rule violations
in workflow generation, task transitions and validation decisions. These
exceptions are independent of infrastructure concerns. The presentation
layer maps them to HTTP responses in exception handlers.
"""

from typing import Any


class ProcflowException(Exception):
    """Base exception for all procflow errors.

    All custom exceptions inherit from this class so callers can handle
    engine errors uniformly. Presentation layer maps these to HTTP
    responses using message, error_code, and details.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. task_id, expected_status).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an error response body."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(ProcflowException):
    """Raised when input validation fails (e.g. unknown sub-process id)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize with message and optional field name.

        Args:
            message: Description of the validation failure.
            field: Optional field or attribute that failed validation.
        """
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class ResourceNotFoundException(ProcflowException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        """Initialize with resource type and id.

        Args:
            resource_type: Type of resource (e.g. 'task', 'process_template').
            resource_id: The ID that was not found.
        """
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class GraphInvalidError(ProcflowException):
    """Raised when a workflow graph is malformed and must not be activated.

    Covers cycles, fork/join branch-count mismatch, missing start/end,
    disconnected nodes and sub-processes without task templates. Never
    silently repaired.
    """

    def __init__(
        self,
        message: str,
        reason: str,
        node_id: str | None = None,
        **extra: Any,
    ) -> None:
        """Initialize with a machine-readable reason and optional offending node.

        Args:
            message: Human-readable description.
            reason: Short reason code (e.g. 'cycle', 'fork_join_mismatch').
            node_id: Key of the offending node, when one can be named.
            **extra: Additional context copied into details.
        """
        details: dict[str, Any] = {"reason": reason, **extra}
        if node_id is not None:
            details["node_id"] = node_id
        super().__init__(message, "GRAPH_INVALID", details)
        self.reason = reason


class ConflictError(ProcflowException):
    """Raised when a conditional status update affected zero rows.

    The row changed since the caller read it (stale read or a concurrent
    transition won). The caller must re-read before deciding to retry.
    """

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        expected_status: str,
    ) -> None:
        super().__init__(
            f"{entity_type} {entity_id} is no longer in status '{expected_status}'",
            "CONFLICT",
            {
                "entity_type": entity_type,
                "entity_id": entity_id,
                "expected_status": expected_status,
            },
        )


class IllegalTransitionError(ProcflowException):
    """Raised when a status transition is not allowed from the current state."""

    def __init__(
        self,
        entity_id: str,
        current_status: str,
        target_status: str,
        reason: str | None = None,
    ) -> None:
        message = f"Cannot move {entity_id} from '{current_status}' to '{target_status}'"
        if reason:
            message = f"{message}: {reason}"
        details: dict[str, Any] = {
            "entity_id": entity_id,
            "current_status": current_status,
            "target_status": target_status,
        }
        if reason:
            details["reason"] = reason
        super().__init__(message, "ILLEGAL_TRANSITION", details)


class MissingCommentError(ProcflowException):
    """Raised when a refusal is attempted without a justification comment."""

    def __init__(self, entity_id: str) -> None:
        super().__init__(
            "A non-empty comment is required to refuse",
            "MISSING_COMMENT",
            {"entity_id": entity_id},
        )


class UnauthorizedApproverError(ProcflowException):
    """Raised when the caller does not satisfy the approver rule for the level."""

    def __init__(
        self,
        entity_id: str,
        actor_id: str,
        level: int | None = None,
        rule: str | None = None,
    ) -> None:
        details: dict[str, Any] = {"entity_id": entity_id, "actor_id": actor_id}
        if level is not None:
            details["level"] = level
        if rule is not None:
            details["rule"] = rule
        super().__init__(
            f"User {actor_id} may not perform this action on {entity_id}",
            "UNAUTHORIZED_APPROVER",
            details,
        )


class PartialBatchFailure(ProcflowException):
    """Reported (not raised across chunks) when a bulk update chunk failed.

    Prior chunks are not rolled back; counts describe what happened.
    """

    def __init__(self, succeeded: int, failed: int, failed_chunks: list[int]) -> None:
        super().__init__(
            f"Bulk update partially failed: {succeeded} succeeded, {failed} failed",
            "PARTIAL_BATCH_FAILURE",
            {
                "succeeded": succeeded,
                "failed": failed,
                "failed_chunks": failed_chunks,
            },
        )


class EmitterTransportError(ProcflowException):
    """Raised by an event emitter transport when dispatch fails.

    Logged by SafeEventEmitter; never unwinds the transition that raised the event.
    """

    def __init__(self, event_type: str, reason: str) -> None:
        super().__init__(
            f"Failed to dispatch {event_type}: {reason}",
            "EMITTER_TRANSPORT_ERROR",
            {"event_type": event_type, "reason": reason},
        )


class SqlNotConfiguredException(ProcflowException):
    """Raised when an operation requires the database but DATABASE_URL is not set."""

    def __init__(self) -> None:
        super().__init__(
            message="This operation requires a SQL database that is not configured.",
            error_code="SERVICE_UNAVAILABLE",
        )


class NoTaskTemplatesWarning(UserWarning):
    """A sub-process has zero task templates; block execution creates no tasks."""

    def __init__(self, sub_process_template_id: str) -> None:
        super().__init__(
            f"Sub-process {sub_process_template_id} has no task templates"
        )
        self.sub_process_template_id = sub_process_template_id

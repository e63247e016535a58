"""Tests for domain exceptions (error_code, message, details) and their HTTP mapping."""

import pytest

from procflow.core.exception_handlers import status_for
from procflow.domain.exceptions import (
    ConflictError,
    EmitterTransportError,
    GraphInvalidError,
    IllegalTransitionError,
    MissingCommentError,
    NoTaskTemplatesWarning,
    PartialBatchFailure,
    ProcflowException,
    ResourceNotFoundException,
    SqlNotConfiguredException,
    UnauthorizedApproverError,
    ValidationException,
)


def test_procflow_exception_default_error_code() -> None:
    """Base ProcflowException uses class name as error_code when not provided."""
    exc = ProcflowException("Something failed")
    assert exc.message == "Something failed"
    assert exc.error_code == "ProcflowException"
    assert exc.details == {}
    assert exc.to_dict() == {
        "error": "ProcflowException",
        "message": "Something failed",
        "details": {},
    }


def test_validation_exception() -> None:
    """ValidationException sets VALIDATION_ERROR and optional field in details."""
    exc = ValidationException("Unknown sub-process", field="selected_sub_process_ids")
    assert exc.error_code == "VALIDATION_ERROR"
    assert exc.details == {"field": "selected_sub_process_ids"}
    assert ValidationException("Invalid").details == {}


def test_resource_not_found_exception() -> None:
    exc = ResourceNotFoundException("task", "task-1")
    assert exc.message == "task not found: task-1"
    assert exc.details == {"resource_type": "task", "resource_id": "task-1"}


def test_graph_invalid_error_carries_reason_and_node() -> None:
    """GraphInvalidError exposes reason and puts node_id and extras in details."""
    exc = GraphInvalidError("Cycle", reason="cycle", node_id="block-1", path=["a", "b"])
    assert exc.reason == "cycle"
    assert exc.error_code == "GRAPH_INVALID"
    assert exc.details == {"reason": "cycle", "node_id": "block-1", "path": ["a", "b"]}


def test_conflict_error() -> None:
    exc = ConflictError("task", "task-1", "pending_validation_1")
    assert "no longer in status 'pending_validation_1'" in exc.message
    assert exc.details["expected_status"] == "pending_validation_1"


def test_illegal_transition_error_with_and_without_reason() -> None:
    plain = IllegalTransitionError("task-1", "todo", "done")
    assert plain.message == "Cannot move task-1 from 'todo' to 'done'"
    assert "reason" not in plain.details

    with_reason = IllegalTransitionError("task-1", "todo", "done", "locked")
    assert with_reason.message.endswith(": locked")
    assert with_reason.details["reason"] == "locked"


def test_unauthorized_approver_error_details() -> None:
    exc = UnauthorizedApproverError("task-1", "bob", level=2, rule="free")
    assert exc.details == {"entity_id": "task-1", "actor_id": "bob", "level": 2, "rule": "free"}
    assert UnauthorizedApproverError("task-1", "bob").details == {
        "entity_id": "task-1",
        "actor_id": "bob",
    }


def test_partial_batch_failure() -> None:
    exc = PartialBatchFailure(succeeded=50, failed=10, failed_chunks=[1])
    assert exc.message == "Bulk update partially failed: 50 succeeded, 10 failed"
    assert exc.details["failed_chunks"] == [1]


def test_no_task_templates_is_a_warning() -> None:
    warning = NoTaskTemplatesWarning("sp-1")
    assert isinstance(warning, UserWarning)
    assert not isinstance(warning, ProcflowException)
    assert warning.sub_process_template_id == "sp-1"


@pytest.mark.parametrize(
    ("exc", "status"),
    [
        (ResourceNotFoundException("task", "t"), 404),
        (ValidationException("bad"), 400),
        (MissingCommentError("t"), 400),
        (UnauthorizedApproverError("t", "u"), 403),
        (ConflictError("task", "t", "todo"), 409),
        (IllegalTransitionError("t", "todo", "done"), 409),
        (GraphInvalidError("bad", reason="cycle"), 422),
        (SqlNotConfiguredException(), 503),
        (EmitterTransportError("task_assigned", "down"), 400),
        (ProcflowException("x"), 400),
    ],
)
def test_status_for(exc: ProcflowException, status: int) -> None:
    assert status_for(exc) == status

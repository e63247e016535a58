"""Tests for request submission with validation and RequestValidationGate."""

import pytest
from fakes import World, process_template, seed_parallel_process

from procflow.application.dtos.execution import SubmitRequestCommand
from procflow.domain.enums import (
    RefusalAction,
    RequestValidationStatus,
    SubProcessRunStatus,
    TaskStatus,
    TaskType,
    ValidationLevelType,
)
from procflow.domain.exceptions import (
    IllegalTransitionError,
    MissingCommentError,
    UnauthorizedApproverError,
)
from procflow.shared.enums import EventType, WorkflowRunStatus


@pytest.fixture
def one_level(world: World) -> World:
    world.directory.managers["rita"] = "mona"
    seed_parallel_process(
        world, process_template(levels=1, validator_1=ValidationLevelType.MANAGER)
    )
    return world


@pytest.fixture
def two_levels(world: World) -> World:
    world.directory.managers["rita"] = "mona"
    seed_parallel_process(
        world,
        process_template(
            levels=2,
            validator_1=ValidationLevelType.MANAGER,
            validator_2=ValidationLevelType.FREE,
            validator_2_id="vera",
        ),
    )
    return world


async def _submit(world: World) -> str:
    result = await world.engine().submit_request.execute(
        SubmitRequestCommand(process_template_id="proc-1", requester_id="rita", title="Hire")
    )
    return result.request.id


def _task_rows(world: World):
    return [t for t in world.tasks.rows.values() if t.type == TaskType.TASK]


async def test_submission_waits_for_validation(one_level: World) -> None:
    result = await one_level.engine().submit_request.execute(
        SubmitRequestCommand(process_template_id="proc-1", requester_id="rita", title="Hire")
    )

    assert result.request.status == TaskStatus.TODO
    assert result.request.request_validation_status == RequestValidationStatus.PENDING_LEVEL_1
    assert result.workflow_run is None
    assert {r.status for r in result.sub_process_runs} == {
        SubProcessRunStatus.WAITING_VALIDATION
    }
    assert one_level.runs.rows == {}
    assert _task_rows(one_level) == []
    assert one_level.emitter.types == [EventType.VALIDATION_REQUESTED]


async def test_only_requesters_manager_may_approve(one_level: World) -> None:
    request_id = await _submit(one_level)
    with pytest.raises(UnauthorizedApproverError):
        await one_level.engine().request_gate.approve(request_id, "bob")
    with pytest.raises(UnauthorizedApproverError):
        await one_level.engine().request_gate.approve(request_id, "rita")
    assert one_level.runs.rows == {}


async def test_final_approval_releases_runs_and_launches(one_level: World) -> None:
    request_id = await _submit(one_level)

    decision = await one_level.engine().request_gate.approve(request_id, "mona", "ok")

    request = one_level.tasks.rows[request_id]
    assert request.request_validation_status == RequestValidationStatus.APPROVED
    assert request.status == TaskStatus.IN_PROGRESS
    assert request.validation_1_by == "mona"
    assert decision.launch is not None
    assert decision.launch.workflow_run.status == WorkflowRunStatus.RUNNING
    assert len(decision.launch.blocks) == 2
    runs = one_level.sub_process_runs.rows.values()
    assert {r.status for r in runs} == {SubProcessRunStatus.RUNNING}
    assert {t.assignee_id for t in _task_rows(one_level)} == {"alice", "bob"}


async def test_two_level_approval(two_levels: World) -> None:
    request_id = await _submit(two_levels)
    gate = two_levels.engine().request_gate

    first = await gate.approve(request_id, "mona")
    assert first.launch is None
    assert first.request.request_validation_status == RequestValidationStatus.PENDING_LEVEL_2
    assert first.request.status == TaskStatus.TODO
    assert two_levels.runs.rows == {}

    with pytest.raises(UnauthorizedApproverError):
        await gate.approve(request_id, "mona")

    final = await gate.approve(request_id, "vera")
    assert final.request.request_validation_status == RequestValidationStatus.APPROVED
    assert final.launch is not None
    assert len(_task_rows(two_levels)) == 2


async def test_refuse_cancel_cancels_request_and_runs(one_level: World) -> None:
    request_id = await _submit(one_level)
    gate = one_level.engine().request_gate

    with pytest.raises(MissingCommentError):
        await gate.refuse(request_id, "mona", " ")

    decision = await gate.refuse(request_id, "mona", "Budget frozen")

    assert decision.request.request_validation_status == RequestValidationStatus.REFUSED
    assert decision.request.status == TaskStatus.CANCELLED
    assert {r.status for r in one_level.sub_process_runs.rows.values()} == {
        SubProcessRunStatus.CANCELLED
    }
    with pytest.raises(IllegalTransitionError):
        await gate.approve(request_id, "mona")
    assert one_level.runs.rows == {}


async def test_return_then_resubmit(one_level: World) -> None:
    request_id = await _submit(one_level)
    gate = one_level.engine().request_gate

    returned = await gate.refuse(
        request_id, "mona", "Add a start date", action=RefusalAction.RETURN
    )
    assert returned.request.request_validation_status == RequestValidationStatus.RETURNED
    assert returned.request.status == TaskStatus.TODO
    assert {r.status for r in one_level.sub_process_runs.rows.values()} == {
        SubProcessRunStatus.WAITING_VALIDATION
    }

    with pytest.raises(UnauthorizedApproverError):
        await gate.resubmit(request_id, "mona")

    resubmitted = await gate.resubmit(request_id, "rita")
    assert resubmitted.request.request_validation_status == (
        RequestValidationStatus.PENDING_LEVEL_1
    )
    with pytest.raises(IllegalTransitionError):
        await gate.resubmit(request_id, "rita")

    approved = await gate.approve(request_id, "mona")
    assert approved.launch is not None


async def test_request_without_validation_launches_on_submit(world: World) -> None:
    seed_parallel_process(world)

    result = await world.engine().submit_request.execute(
        SubmitRequestCommand(process_template_id="proc-1", requester_id="rita", title="Hire")
    )

    assert result.request.status == TaskStatus.IN_PROGRESS
    assert result.workflow_run is not None
    assert len(result.blocks) == 2
    with pytest.raises(IllegalTransitionError):
        await world.engine().request_gate.approve(result.request.id, "mona")

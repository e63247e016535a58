"""Tests for TaskStatusService."""

import pytest
from fakes import World, seed_task

from procflow.application.services.task_status_events import TaskStatusChangeBus
from procflow.application.services.task_status_service import TaskStatusService, chunked
from procflow.domain.enums import AggregatedStatus, TaskStatus, TaskType
from procflow.domain.exceptions import (
    ConflictError,
    IllegalTransitionError,
    PartialBatchFailure,
    ResourceNotFoundException,
    ValidationException,
)
from procflow.shared.enums import EventType


async def test_change_status_applies_legal_move(world: World) -> None:
    task = seed_task(world)
    updated = await world.engine().task_status.change_status(
        task.id, TaskStatus.IN_PROGRESS, "alice"
    )
    assert updated.status == TaskStatus.IN_PROGRESS


async def test_change_status_rejects_illegal_move(world: World) -> None:
    task = seed_task(world, status=TaskStatus.TODO)
    with pytest.raises(IllegalTransitionError):
        await world.engine().task_status.change_status(task.id, TaskStatus.DONE, "alice")
    assert world.tasks.rows[task.id].status == TaskStatus.TODO


async def test_terminal_status_is_immutable(world: World) -> None:
    task = seed_task(world, status=TaskStatus.CANCELLED)
    with pytest.raises(IllegalTransitionError):
        await world.engine().task_status.change_status(task.id, TaskStatus.TODO, "alice")


async def test_change_status_unknown_task(world: World) -> None:
    with pytest.raises(ResourceNotFoundException):
        await world.engine().task_status.change_status("task-nope", TaskStatus.TODO, "alice")


async def test_stale_read_raises_conflict(world: World) -> None:
    task = seed_task(world)
    original = world.tasks.compare_and_set

    async def stale_compare_and_set(task_id, expected, values):
        await original(task_id, {}, {"status": TaskStatus.CANCELLED})
        return await original(task_id, expected, values)

    world.tasks.compare_and_set = stale_compare_and_set
    with pytest.raises(ConflictError):
        await world.engine().task_status.change_status(task.id, TaskStatus.IN_PROGRESS, "alice")


async def test_assign_to_assign_task(world: World) -> None:
    task = seed_task(world, status=TaskStatus.TO_ASSIGN, assignee_id="mona")

    updated = await world.engine().task_status.assign(task.id, "sam", "mona")

    assert updated.status == TaskStatus.TODO
    assert updated.assignee_id == "sam"
    assigned = world.emitter.of_type(EventType.TASK_ASSIGNED)
    assert assigned[0].payload["assignee_id"] == "sam"
    assert assigned[0].payload["assigned_by"] == "mona"


async def test_assign_rejects_started_task_and_empty_assignee(world: World) -> None:
    service = world.engine().task_status
    started = seed_task(world, status=TaskStatus.IN_PROGRESS)
    with pytest.raises(IllegalTransitionError):
        await service.assign(started.id, "sam", "mona")
    with pytest.raises(ValidationException):
        await service.assign(started.id, "", "mona")


async def test_bulk_update_skips_illegal_and_locked_rows(world: World) -> None:
    todo = seed_task(world, status=TaskStatus.TODO)
    done = seed_task(world, status=TaskStatus.DONE)
    locked = seed_task(world, status=TaskStatus.TODO, is_locked_for_validation=True)

    result = await world.engine().task_status.bulk_update_status(
        [todo.id, done.id, locked.id, todo.id], TaskStatus.IN_PROGRESS, "mona"
    )

    assert result.requested == 3
    assert result.succeeded == 1
    assert result.skipped == 2
    assert result.failed == 0
    assert result.warning is None
    assert world.tasks.rows[todo.id].status == TaskStatus.IN_PROGRESS
    assert world.tasks.rows[done.id].status == TaskStatus.DONE
    assert world.tasks.rows[locked.id].status == TaskStatus.TODO


async def test_bulk_update_reports_partial_failure_without_rollback(world: World) -> None:
    world.bulk_chunk_size = 2
    world.tasks.fail_bulk_calls.add(1)
    ids = [seed_task(world).id for _ in range(5)]

    result = await world.engine().task_status.bulk_update_status(
        ids, TaskStatus.IN_PROGRESS, "mona"
    )

    assert [c.requested for c in result.chunks] == [2, 2, 1]
    assert result.succeeded == 3
    assert result.failed == 2
    assert isinstance(result.warning, PartialBatchFailure)
    assert result.warning.details["failed_chunks"] == [1]
    statuses = [world.tasks.rows[i].status for i in ids]
    assert statuses == [
        TaskStatus.IN_PROGRESS,
        TaskStatus.IN_PROGRESS,
        TaskStatus.TODO,
        TaskStatus.TODO,
        TaskStatus.IN_PROGRESS,
    ]


async def test_bulk_update_refuses_gate_owned_target(world: World) -> None:
    task = seed_task(world, status=TaskStatus.DONE)
    with pytest.raises(IllegalTransitionError):
        await world.engine().task_status.bulk_update_status(
            [task.id], TaskStatus.VALIDATED, "mona"
        )


@pytest.mark.parametrize("chunk_size", [0, 51])
def test_chunk_size_is_bounded(world: World, chunk_size: int) -> None:
    with pytest.raises(ValueError):
        TaskStatusService(world.tasks, TaskStatusChangeBus(), world.emitter, chunk_size=chunk_size)


def test_chunked() -> None:
    assert chunked(["a", "b", "c"], 2) == [["a", "b"], ["c"]]
    assert chunked([], 2) == []


async def test_request_progress(world: World) -> None:
    request = seed_task(world, type=TaskType.REQUEST, status=TaskStatus.IN_PROGRESS)
    for status in (TaskStatus.DONE, TaskStatus.VALIDATED, TaskStatus.IN_PROGRESS):
        seed_task(world, status=status, parent_request_id=request.id)

    progress = await world.engine().task_status.request_progress(request.id)

    assert progress.total == 3
    assert progress.completed == 2
    assert progress.percent == 67
    assert progress.status == AggregatedStatus.IN_PROGRESS


async def test_request_progress_for_plain_task_is_not_found(world: World) -> None:
    task = seed_task(world)
    with pytest.raises(ResourceNotFoundException):
        await world.engine().task_status.request_progress(task.id)

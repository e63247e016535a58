"""Task repository integration tests. Require Postgres; session is rolled back after each test."""

import pytest
from sqlalchemy.exc import IntegrityError

from procflow.application.dtos.task import TaskCreate
from procflow.domain.enums import TaskStatus, TaskType
from procflow.infrastructure.persistence.repositories.task_repo import TaskRepository


@pytest.mark.requires_db
async def test_create_task_and_get_by_id(db_session) -> None:
    """Create a request row then read it back."""
    repo = TaskRepository(db_session)
    created = await repo.create(
        TaskCreate(title="Repo test request", type=TaskType.REQUEST, status=TaskStatus.TODO)
    )
    assert created.id
    assert created.is_request
    assert created.created_at is not None

    found = await repo.get_by_id(created.id)
    assert found is not None
    assert found.title == "Repo test request"
    assert found.status == TaskStatus.TODO


@pytest.mark.requires_db
async def test_compare_and_set_applies_only_when_expected_holds(db_session) -> None:
    """The second write with a stale expectation matches zero rows."""
    repo = TaskRepository(db_session)
    task = await repo.create(TaskCreate(title="CAS task"))

    first = await repo.compare_and_set(
        task.id, {"status": TaskStatus.TODO}, {"status": TaskStatus.IN_PROGRESS}
    )
    stale = await repo.compare_and_set(
        task.id, {"status": TaskStatus.TODO}, {"status": TaskStatus.CANCELLED}
    )

    assert first is not None
    assert first.status == TaskStatus.IN_PROGRESS
    assert stale is None
    current = await repo.get_by_id(task.id)
    assert current.status == TaskStatus.IN_PROGRESS


@pytest.mark.requires_db
async def test_bulk_compare_and_set_skips_ineligible_rows(db_session) -> None:
    repo = TaskRepository(db_session)
    request = await repo.create(TaskCreate(title="Parent", type=TaskType.REQUEST))
    todo = await repo.create(TaskCreate(title="Todo", parent_request_id=request.id))
    done = await repo.create(
        TaskCreate(title="Done", status=TaskStatus.DONE, parent_request_id=request.id)
    )

    updated = await repo.bulk_compare_and_set_status(
        [todo.id, done.id], [TaskStatus.TODO], TaskStatus.IN_PROGRESS
    )

    assert updated == [todo.id]
    statuses = await repo.get_statuses([todo.id, done.id])
    assert statuses == {todo.id: TaskStatus.IN_PROGRESS, done.id: TaskStatus.DONE}
    assert {t.title for t in await repo.list_by_request(request.id)} == {"Todo", "Done"}


@pytest.mark.requires_db
async def test_get_by_id_not_found_returns_none(db_session) -> None:
    repo = TaskRepository(db_session)
    assert await repo.get_by_id("nonexistent-id-xyz") is None


@pytest.mark.requires_db
async def test_failed_insert_leaves_session_usable(db_session) -> None:
    """A rejected row is rolled back to its savepoint; the next insert still lands."""
    repo = TaskRepository(db_session)
    request = await repo.create(TaskCreate(title="Parent", type=TaskType.REQUEST))

    with pytest.raises(IntegrityError):
        await repo.create(TaskCreate(title=None, parent_request_id=request.id))
    survivor = await repo.create(
        TaskCreate(
            title="Create accounts",
            parent_request_id=request.id,
            checklist_items=("Email", "VPN"),
        )
    )

    assert await repo.get_by_id(survivor.id) is not None
    assert [t.title for t in await repo.list_by_request(request.id)] == ["Create accounts"]

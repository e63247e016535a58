"""Tests for AssigneeResolver: block assignee resolution and reporting-line walks."""

import pytest
from fakes import FakeDirectory

from procflow.application.services.assignee_resolver import (
    AssigneeResolver,
    infer_manager_source,
)
from procflow.domain.enums import AssignmentMode, ManagerSource, TaskStatus
from procflow.domain.graph import StandardBlockConfig


def _config(**overrides) -> StandardBlockConfig:
    return StandardBlockConfig(sub_process_template_id="sp-1", sub_process_name="IT", **overrides)


@pytest.fixture
def directory() -> FakeDirectory:
    directory = FakeDirectory()
    directory.managers = {"rita": "mona", "mona": "carl", "sam": "mona"}
    directory.department_managers = {"dept-it": "ivan"}
    directory.groups = {"grp-helpdesk": ["hank", "hera"]}
    return directory


async def test_direct_user_starts_todo(directory: FakeDirectory) -> None:
    resolution = await AssigneeResolver(directory).resolve(
        _config(target_assignee_id="alice"), requester_id="rita"
    )
    assert resolution.assignee_id == "alice"
    assert resolution.initial_status == TaskStatus.TODO
    assert resolution.is_direct


async def test_direct_group_takes_first_member(directory: FakeDirectory) -> None:
    resolution = await AssigneeResolver(directory).resolve(
        _config(target_group_id="grp-helpdesk"), requester_id="rita"
    )
    assert resolution.assignee_id == "hank"
    assert resolution.initial_status == TaskStatus.TODO


async def test_direct_without_target_is_unassigned(directory: FakeDirectory) -> None:
    resolution = await AssigneeResolver(directory).resolve(_config(), requester_id="rita")
    assert resolution.assignee_id is None
    assert resolution.initial_status == TaskStatus.TO_ASSIGN
    assert not resolution.is_direct


@pytest.mark.parametrize(
    ("overrides", "expected"),
    [
        ({}, "mona"),
        ({"target_manager_id": "boss"}, "boss"),
        ({"target_department_id": "dept-it"}, "ivan"),
        (
            {"manager_source": ManagerSource.REQUESTER_MANAGER, "target_manager_id": "boss"},
            "mona",
        ),
    ],
)
async def test_manager_mode_resolves_manager_to_assign(
    directory: FakeDirectory, overrides: dict, expected: str
) -> None:
    resolution = await AssigneeResolver(directory).resolve(
        _config(assignment_type=AssignmentMode.MANAGER, **overrides), requester_id="rita"
    )
    assert resolution.assignee_id == expected
    assert resolution.initial_status == TaskStatus.TO_ASSIGN
    assert resolution.mode == AssignmentMode.MANAGER


def test_infer_manager_source() -> None:
    assert infer_manager_source(_config()) == ManagerSource.REQUESTER_MANAGER
    assert infer_manager_source(_config(target_manager_id="m")) == ManagerSource.SPECIFIC_USER
    assert (
        infer_manager_source(_config(target_department_id="d"))
        == ManagerSource.TARGET_DEPARTMENT_MANAGER
    )


async def test_manager_chain_nearest_first(directory: FakeDirectory) -> None:
    resolver = AssigneeResolver(directory)
    assert await resolver.manager_chain("rita") == ["mona", "carl"]
    assert await resolver.manager_chain("rita", max_depth=1) == ["mona"]


async def test_manager_chain_stops_at_cycle() -> None:
    directory = FakeDirectory()
    directory.managers = {"a": "b", "b": "c", "c": "a"}
    assert await AssigneeResolver(directory).manager_chain("a") == ["b", "c"]


async def test_subordinates_breadth_first_with_cycle_guard() -> None:
    directory = FakeDirectory()
    directory.managers = {"b": "a", "c": "a", "d": "b", "a": "d"}
    assert await AssigneeResolver(directory).subordinates("a") == ["b", "c", "d"]


async def test_is_manager_of(directory: FakeDirectory) -> None:
    resolver = AssigneeResolver(directory)
    assert await resolver.is_manager_of("mona", "rita")
    assert await resolver.is_manager_of("carl", "rita")
    assert not await resolver.is_manager_of("rita", "mona")
    assert not await resolver.is_manager_of("rita", "rita")

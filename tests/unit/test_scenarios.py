"""End-to-end engine scenarios over the in-memory repositories."""

from fakes import (
    World,
    process_template,
    sub_process_template,
    task_template,
)

from procflow.application.dtos.execution import SubmitRequestCommand
from procflow.domain.enums import (
    AssignmentMode,
    SubProcessRunStatus,
    TaskStatus,
    TaskType,
    ValidationLevelType,
)
from procflow.shared.enums import EventType, WorkflowRunStatus


def _task_for(world: World, sub_process_template_id: str):
    (task,) = [
        t
        for t in world.tasks.rows.values()
        if t.type == TaskType.TASK and t.source_sub_process_template_id == sub_process_template_id
    ]
    return task


async def test_single_direct_sub_process_without_validation(world: World) -> None:
    world.templates.add_process(process_template())
    world.templates.add_sub_process(
        sub_process_template("sp-it", assignee_id="alice"),
        [task_template("tt-1", "sp-it", "Order laptop")],
    )
    engine = world.engine()

    submitted = await engine.submit_request.execute(
        SubmitRequestCommand(process_template_id="proc-1", requester_id="rita", title="Laptop")
    )

    task = _task_for(world, "sp-it")
    assert task.status == TaskStatus.TODO
    assert task.assignee_id == "alice"
    assert world.emitter.types == [EventType.REQUEST_CREATED, EventType.TASK_ASSIGNED]
    created, assigned = world.emitter.events
    assert created.payload["requester_id"] == "rita"
    assert assigned.payload["assignee_id"] == "alice"
    world.emitter.events.clear()

    await engine.task_status.change_status(task.id, TaskStatus.IN_PROGRESS, "alice")
    await engine.task_status.change_status(task.id, TaskStatus.DONE, "alice")

    run = world.sub_process_runs.rows[task.parent_sub_process_run_id]
    assert run.status == SubProcessRunStatus.COMPLETED
    assert world.emitter.types == [
        EventType.TASK_STATUS_CHANGED,
        EventType.TASK_STATUS_CHANGED,
        EventType.SUB_PROCESS_COMPLETED,
        EventType.PROCESS_COMPLETED,
    ]
    assert world.runs.rows[submitted.workflow_run.id].status == WorkflowRunStatus.COMPLETED
    assert world.tasks.rows[submitted.request.id].status == TaskStatus.DONE


async def test_parallel_sub_processes_with_manager_validation(world: World) -> None:
    world.directory.managers.update({"rita": "mona", "sam": "mona"})
    world.templates.add_process(process_template())
    world.templates.add_sub_process(
        sub_process_template(
            "sp-a", order_index=0, mode=AssignmentMode.MANAGER, validation_levels=1
        ),
        [task_template("tt-a", "sp-a", "Check contract", level_1=ValidationLevelType.MANAGER)],
    )
    world.templates.add_sub_process(
        sub_process_template("sp-b", order_index=1, assignee_id="bob"),
        [task_template("tt-b", "sp-b", "Create accounts")],
    )
    engine = world.engine()

    submitted = await engine.submit_request.execute(
        SubmitRequestCommand(process_template_id="proc-1", requester_id="rita", title="Hire")
    )
    assert len(submitted.blocks) == 2

    task_a = _task_for(world, "sp-a")
    assert task_a.status == TaskStatus.TO_ASSIGN
    assert task_a.assignee_id == "mona"

    await engine.task_status.assign(task_a.id, "sam", "mona")
    await engine.task_status.change_status(task_a.id, TaskStatus.IN_PROGRESS, "sam")
    await engine.task_status.change_status(task_a.id, TaskStatus.DONE, "sam")
    await engine.task_gate.submit_for_validation(task_a.id, "sam")
    validated = await engine.task_gate.validate(task_a.id, 1, "mona")
    assert validated.status == TaskStatus.VALIDATED
    assert world.runs.rows[submitted.workflow_run.id].status == WorkflowRunStatus.RUNNING

    task_b = _task_for(world, "sp-b")
    await engine.task_status.change_status(task_b.id, TaskStatus.IN_PROGRESS, "bob")
    await engine.task_status.change_status(task_b.id, TaskStatus.DONE, "bob")

    assert len(world.emitter.of_type(EventType.SUB_PROCESS_COMPLETED)) == 2
    assert len(world.emitter.of_type(EventType.PROCESS_COMPLETED)) == 1
    assert {r.status for r in world.sub_process_runs.rows.values()} == {
        SubProcessRunStatus.COMPLETED
    }
    run = world.runs.rows[submitted.workflow_run.id]
    assert run.status == WorkflowRunStatus.COMPLETED
    assert [e["action"] for e in run.execution_log].count("join_satisfied") == 1


async def test_process_waits_for_submitted_validation(world: World) -> None:
    """A done task with a configured validator keeps the process open until validated."""
    world.directory.managers["alice"] = "mona"
    world.templates.add_process(process_template())
    world.templates.add_sub_process(
        sub_process_template("sp-it", assignee_id="alice"),
        [task_template("tt-1", "sp-it", "Order laptop", level_1=ValidationLevelType.MANAGER)],
    )
    engine = world.engine()
    submitted = await engine.submit_request.execute(
        SubmitRequestCommand(process_template_id="proc-1", requester_id="rita", title="Laptop")
    )
    workflow_run_id = submitted.workflow_run.id
    (task,) = [t for t in world.tasks.rows.values() if t.type == TaskType.TASK]

    await engine.task_status.change_status(task.id, TaskStatus.IN_PROGRESS, "alice")
    await engine.task_status.change_status(task.id, TaskStatus.DONE, "alice")

    (sub_process_run,) = world.sub_process_runs.rows.values()
    assert sub_process_run.status == SubProcessRunStatus.COMPLETED
    assert world.runs.rows[workflow_run_id].status == WorkflowRunStatus.RUNNING
    assert world.tasks.rows[submitted.request.id].status == TaskStatus.IN_PROGRESS
    assert world.emitter.of_type(EventType.PROCESS_COMPLETED) == []

    await engine.task_gate.submit_for_validation(task.id, "alice")
    assert world.sub_process_runs.rows[sub_process_run.id].status == SubProcessRunStatus.RUNNING
    assert world.runs.rows[workflow_run_id].status == WorkflowRunStatus.RUNNING

    await engine.task_gate.validate(task.id, 1, "mona")

    assert world.sub_process_runs.rows[sub_process_run.id].status == SubProcessRunStatus.COMPLETED
    assert world.runs.rows[workflow_run_id].status == WorkflowRunStatus.COMPLETED
    assert world.tasks.rows[submitted.request.id].status == TaskStatus.DONE
    assert len(world.emitter.of_type(EventType.SUB_PROCESS_COMPLETED)) == 1
    assert len(world.emitter.of_type(EventType.PROCESS_COMPLETED)) == 1

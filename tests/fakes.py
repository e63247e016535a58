"""In-memory implementations of the repository and emitter ports.

Reads yield to the event loop once before answering so that concurrent
callers interleave the way they would against a database. Conditional
updates check and write without yielding, which gives them the same
atomicity as a single UPDATE ... WHERE statement.
"""

from __future__ import annotations

import asyncio
import dataclasses
import itertools
from collections.abc import Collection
from datetime import datetime
from typing import Any

from procflow.application.dtos.event import WorkflowEvent
from procflow.application.dtos.sub_process_run import (
    SubProcessRunCreate,
    SubProcessRunResult,
)
from procflow.application.dtos.task import TaskCreate, TaskResult
from procflow.application.dtos.templates import (
    ProcessTemplateResult,
    SubProcessTemplateResult,
    TaskTemplateResult,
)
from procflow.application.dtos.workflow import (
    WorkflowOwner,
    WorkflowRunCreate,
    WorkflowRunResult,
    WorkflowTemplateCreate,
    WorkflowTemplateResult,
)
from procflow.application.engine import ProcflowEngine, build_engine
from procflow.core.config import MAX_BULK_CHUNK_SIZE
from procflow.domain.enums import (
    AssignmentMode,
    AssignmentTarget,
    ManagerSource,
    RequestValidationStatus,
    SubProcessRunStatus,
    TaskPriority,
    TaskStatus,
    TaskType,
    ValidationLevelType,
    WorkflowTemplateStatus,
)
from procflow.shared.enums import EntityType, EventType, WorkflowRunStatus
from procflow.shared.utils.datetime import utc_now

ACTOR_HEADERS = {"X-User-ID": "rita"}

_ids = itertools.count(1)


def next_id(prefix: str) -> str:
    return f"{prefix}-{next(_ids)}"


def _matches(row: Any, expected: dict[str, Any]) -> bool:
    return all(getattr(row, key) == value for key, value in expected.items())


class FakeTemplateRepository:
    def __init__(self) -> None:
        self.processes: dict[str, ProcessTemplateResult] = {}
        self.sub_processes: dict[str, SubProcessTemplateResult] = {}
        self.task_templates: dict[str, list[TaskTemplateResult]] = {}

    def add_process(self, process: ProcessTemplateResult) -> ProcessTemplateResult:
        self.processes[process.id] = process
        return process

    def add_sub_process(
        self, sub_process: SubProcessTemplateResult, task_templates: list[TaskTemplateResult]
    ) -> SubProcessTemplateResult:
        self.sub_processes[sub_process.id] = sub_process
        self.task_templates[sub_process.id] = list(task_templates)
        return sub_process

    async def get_process(self, process_template_id: str) -> ProcessTemplateResult | None:
        await asyncio.sleep(0)
        return self.processes.get(process_template_id)

    async def list_process_ids(self, *, active_only: bool = True) -> list[str]:
        return [p.id for p in self.processes.values() if p.is_active or not active_only]

    async def list_sub_processes(self, process_template_id: str) -> list[SubProcessTemplateResult]:
        await asyncio.sleep(0)
        found = [
            s
            for s in self.sub_processes.values()
            if s.process_template_id == process_template_id and s.is_active
        ]
        return sorted(found, key=lambda s: s.order_index)

    async def get_sub_process(self, sub_process_template_id: str) -> SubProcessTemplateResult | None:
        await asyncio.sleep(0)
        return self.sub_processes.get(sub_process_template_id)

    async def list_sub_process_ids(self, *, active_only: bool = True) -> list[str]:
        return [s.id for s in self.sub_processes.values() if s.is_active or not active_only]

    async def list_task_templates(self, sub_process_template_id: str) -> list[TaskTemplateResult]:
        await asyncio.sleep(0)
        templates = self.task_templates.get(sub_process_template_id, [])
        return sorted(templates, key=lambda t: t.order_index)


class FakeWorkflowTemplateRepository:
    def __init__(self) -> None:
        self.rows: dict[str, WorkflowTemplateResult] = {}

    def for_owner(self, owner: WorkflowOwner) -> list[WorkflowTemplateResult]:
        return sorted(
            (t for t in self.rows.values() if t.owner == owner), key=lambda t: t.version
        )

    async def get_by_id(self, workflow_template_id: str) -> WorkflowTemplateResult | None:
        await asyncio.sleep(0)
        return self.rows.get(workflow_template_id)

    async def get_default_active(self, owner: WorkflowOwner) -> WorkflowTemplateResult | None:
        await asyncio.sleep(0)
        active = [
            t
            for t in self.for_owner(owner)
            if t.is_default and t.status == WorkflowTemplateStatus.ACTIVE
        ]
        return active[-1] if active else None

    async def latest_version(self, owner: WorkflowOwner) -> int:
        await asyncio.sleep(0)
        return max((t.version for t in self.for_owner(owner)), default=0)

    async def create(self, data: WorkflowTemplateCreate) -> WorkflowTemplateResult:
        template = WorkflowTemplateResult(
            id=next_id("wt"),
            owner=data.owner,
            name=data.name,
            version=data.version,
            status=data.status,
            is_default=data.is_default,
            graph=data.graph,
            created_at=utc_now(),
        )
        self.rows[template.id] = template
        return template

    async def supersede(self, workflow_template_id: str) -> bool:
        row = self.rows.get(workflow_template_id)
        if row is None or row.status != WorkflowTemplateStatus.ACTIVE:
            return False
        self.rows[row.id] = dataclasses.replace(
            row, status=WorkflowTemplateStatus.SUPERSEDED, is_default=False
        )
        return True


class FakeGenerationMarkerRepository:
    def __init__(self) -> None:
        self.markers: set[tuple[str, str, int]] = set()

    async def has_attempt(self, owner: WorkflowOwner, version: int) -> bool:
        await asyncio.sleep(0)
        return (owner.kind.value, owner.id, version) in self.markers

    async def record_attempt(self, owner: WorkflowOwner, version: int) -> bool:
        key = (owner.kind.value, owner.id, version)
        if key in self.markers:
            return False
        self.markers.add(key)
        return True


class FakeWorkflowRunRepository:
    def __init__(self) -> None:
        self.rows: dict[str, WorkflowRunResult] = {}

    async def create(self, data: WorkflowRunCreate) -> WorkflowRunResult:
        run = WorkflowRunResult(
            id=next_id("run"),
            workflow_template_id=data.workflow_template_id,
            workflow_version=data.workflow_version,
            trigger_entity_id=data.trigger_entity_id,
            status=WorkflowRunStatus.RUNNING,
            execution_log=list(data.execution_log),
            context_data=dict(data.context_data),
            started_by=data.started_by,
            started_at=data.started_at,
            completed_at=None,
            error_message=None,
        )
        self.rows[run.id] = run
        return run

    async def get_by_id(self, workflow_run_id: str) -> WorkflowRunResult | None:
        await asyncio.sleep(0)
        return self.rows.get(workflow_run_id)

    async def get_latest_for_request(self, request_id: str) -> WorkflowRunResult | None:
        await asyncio.sleep(0)
        runs = [r for r in self.rows.values() if r.trigger_entity_id == request_id]
        return runs[-1] if runs else None

    async def append_log(self, workflow_run_id: str, entries: list[dict[str, Any]]) -> None:
        row = self.rows[workflow_run_id]
        self.rows[workflow_run_id] = dataclasses.replace(
            row, execution_log=[*row.execution_log, *entries]
        )

    async def compare_and_set_status(
        self,
        workflow_run_id: str,
        expected: WorkflowRunStatus,
        new_status: WorkflowRunStatus,
        *,
        completed_at: datetime | None = None,
        error_message: str | None = None,
    ) -> bool:
        row = self.rows.get(workflow_run_id)
        if row is None or row.status != expected:
            return False
        self.rows[workflow_run_id] = dataclasses.replace(
            row,
            status=new_status,
            completed_at=completed_at or row.completed_at,
            error_message=error_message or row.error_message,
        )
        return True


class FakeTaskRepository:
    def __init__(self) -> None:
        self.rows: dict[str, TaskResult] = {}
        self.checklists: dict[str, tuple[str, ...]] = {}
        self.fail_titles: set[str] = set()
        # Indexes (0-based) of bulk_compare_and_set_status calls that raise.
        self.fail_bulk_calls: set[int] = set()
        self.bulk_calls = 0
        self.compare_and_set_calls = 0

    async def create(self, data: TaskCreate) -> TaskResult:
        if data.title in self.fail_titles:
            raise RuntimeError(f"insert failed for {data.title}")
        values = {f.name: getattr(data, f.name) for f in dataclasses.fields(data)}
        values.pop("checklist_items")
        task = TaskResult(
            id=next_id("task" if data.type == TaskType.TASK else "req"),
            original_assignee_id=None,
            validation_1_by=None,
            validation_1_at=None,
            validation_1_comment=None,
            validation_2_status=None,
            validation_2_by=None,
            validation_2_at=None,
            validation_2_comment=None,
            is_locked_for_validation=False,
            validated_at=None,
            validator_id=None,
            created_at=utc_now(),
            updated_at=utc_now(),
            **values,
        )
        self.rows[task.id] = task
        self.checklists[task.id] = data.checklist_items
        return task

    async def get_by_id(self, task_id: str) -> TaskResult | None:
        await asyncio.sleep(0)
        return self.rows.get(task_id)

    async def list_by_sub_process_run(self, sub_process_run_id: str) -> list[TaskResult]:
        await asyncio.sleep(0)
        return [t for t in self.rows.values() if t.parent_sub_process_run_id == sub_process_run_id]

    async def list_statuses_by_sub_process_run(self, sub_process_run_id: str) -> list[TaskStatus]:
        return [t.status for t in await self.list_by_sub_process_run(sub_process_run_id)]

    async def list_by_request(self, request_id: str) -> list[TaskResult]:
        await asyncio.sleep(0)
        return [
            t
            for t in self.rows.values()
            if t.parent_request_id == request_id and t.type == TaskType.TASK
        ]

    async def get_statuses(self, task_ids: Collection[str]) -> dict[str, TaskStatus]:
        await asyncio.sleep(0)
        return {i: self.rows[i].status for i in task_ids if i in self.rows}

    async def compare_and_set(
        self, task_id: str, expected: dict[str, Any], values: dict[str, Any]
    ) -> TaskResult | None:
        self.compare_and_set_calls += 1
        row = self.rows.get(task_id)
        if row is None or not _matches(row, expected):
            return None
        updated = dataclasses.replace(row, updated_at=utc_now(), **values)
        self.rows[task_id] = updated
        return updated

    async def bulk_compare_and_set_status(
        self,
        task_ids: Collection[str],
        allowed_from: Collection[TaskStatus],
        new_status: TaskStatus,
    ) -> list[str]:
        call = self.bulk_calls
        self.bulk_calls += 1
        if call in self.fail_bulk_calls:
            raise RuntimeError(f"bulk chunk {call} failed")
        updated = []
        for task_id in task_ids:
            row = self.rows.get(task_id)
            if row is None or row.is_locked_for_validation or row.status not in allowed_from:
                continue
            self.rows[task_id] = dataclasses.replace(row, status=new_status)
            updated.append(task_id)
        return updated


class FakeSubProcessRunRepository:
    def __init__(self) -> None:
        self.rows: dict[str, SubProcessRunResult] = {}

    async def create(self, data: SubProcessRunCreate) -> SubProcessRunResult:
        for row in self.rows.values():
            if (row.request_id, row.sub_process_template_id) == (
                data.request_id,
                data.sub_process_template_id,
            ):
                raise RuntimeError("duplicate sub-process run")
        run = SubProcessRunResult(
            id=next_id("spr"),
            request_id=data.request_id,
            sub_process_template_id=data.sub_process_template_id,
            workflow_run_id=data.workflow_run_id,
            status=data.status,
            order_index=data.order_index,
            notify_on_status_change=data.notify_on_status_change,
            notify_on_close=data.notify_on_close,
            started_at=data.started_at,
            completed_at=None,
            closure_notified_at=None,
        )
        self.rows[run.id] = run
        return run

    async def get_by_id(self, sub_process_run_id: str) -> SubProcessRunResult | None:
        await asyncio.sleep(0)
        return self.rows.get(sub_process_run_id)

    async def get_by_request_and_template(
        self, request_id: str, sub_process_template_id: str
    ) -> SubProcessRunResult | None:
        await asyncio.sleep(0)
        for row in self.rows.values():
            if row.request_id == request_id and row.sub_process_template_id == sub_process_template_id:
                return row
        return None

    async def list_by_request(self, request_id: str) -> list[SubProcessRunResult]:
        await asyncio.sleep(0)
        rows = [r for r in self.rows.values() if r.request_id == request_id]
        return sorted(rows, key=lambda r: r.order_index)

    async def list_by_workflow_run(self, workflow_run_id: str) -> list[SubProcessRunResult]:
        await asyncio.sleep(0)
        rows = [r for r in self.rows.values() if r.workflow_run_id == workflow_run_id]
        return sorted(rows, key=lambda r: r.order_index)

    async def compare_and_set(
        self, sub_process_run_id: str, expected: dict[str, Any], values: dict[str, Any]
    ) -> SubProcessRunResult | None:
        row = self.rows.get(sub_process_run_id)
        if row is None or not _matches(row, expected):
            return None
        updated = dataclasses.replace(row, **values)
        self.rows[sub_process_run_id] = updated
        return updated

    async def set_status_for_request(
        self,
        request_id: str,
        from_statuses: Collection[SubProcessRunStatus],
        new_status: SubProcessRunStatus,
    ) -> int:
        count = 0
        for run_id, row in list(self.rows.items()):
            if row.request_id == request_id and row.status in from_statuses:
                self.rows[run_id] = dataclasses.replace(row, status=new_status)
                count += 1
        return count


class FakeDirectory:
    def __init__(self) -> None:
        self.managers: dict[str, str] = {}
        self.department_managers: dict[str, str] = {}
        self.groups: dict[str, list[str]] = {}

    async def get_manager_id(self, user_id: str) -> str | None:
        await asyncio.sleep(0)
        return self.managers.get(user_id)

    async def get_department_manager_id(self, department_id: str) -> str | None:
        await asyncio.sleep(0)
        return self.department_managers.get(department_id)

    async def list_group_member_ids(self, group_id: str) -> list[str]:
        await asyncio.sleep(0)
        return list(self.groups.get(group_id, []))

    async def list_direct_report_ids(self, user_id: str) -> list[str]:
        await asyncio.sleep(0)
        return sorted(u for u, m in self.managers.items() if m == user_id)


class RecordingEventEmitter:
    """Collects emitted events in order."""

    def __init__(self) -> None:
        self.events: list[WorkflowEvent] = []

    async def emit(
        self,
        event_type: EventType,
        entity_type: EntityType,
        entity_id: str,
        payload: dict[str, Any],
        workflow_run_id: str | None = None,
    ) -> None:
        self.events.append(
            WorkflowEvent(event_type, entity_type, entity_id, payload, workflow_run_id)
        )

    def of_type(self, event_type: EventType) -> list[WorkflowEvent]:
        return [e for e in self.events if e.event_type == event_type]

    @property
    def types(self) -> list[EventType]:
        return [e.event_type for e in self.events]


@dataclasses.dataclass
class World:
    """One set of in-memory repositories plus the engine built over them."""

    templates: FakeTemplateRepository = dataclasses.field(default_factory=FakeTemplateRepository)
    workflows: FakeWorkflowTemplateRepository = dataclasses.field(
        default_factory=FakeWorkflowTemplateRepository
    )
    markers: FakeGenerationMarkerRepository = dataclasses.field(
        default_factory=FakeGenerationMarkerRepository
    )
    runs: FakeWorkflowRunRepository = dataclasses.field(default_factory=FakeWorkflowRunRepository)
    tasks: FakeTaskRepository = dataclasses.field(default_factory=FakeTaskRepository)
    sub_process_runs: FakeSubProcessRunRepository = dataclasses.field(
        default_factory=FakeSubProcessRunRepository
    )
    directory: FakeDirectory = dataclasses.field(default_factory=FakeDirectory)
    emitter: RecordingEventEmitter = dataclasses.field(default_factory=RecordingEventEmitter)
    bulk_chunk_size: int = MAX_BULK_CHUNK_SIZE

    def engine(self) -> ProcflowEngine:
        return build_engine(
            template_repo=self.templates,
            workflow_template_repo=self.workflows,
            marker_repo=self.markers,
            workflow_run_repo=self.runs,
            task_repo=self.tasks,
            sub_process_run_repo=self.sub_process_runs,
            directory=self.directory,
            emitter=self.emitter,
            bulk_chunk_size=self.bulk_chunk_size,
        )


def process_template(
    id: str = "proc-1",
    name: str = "Onboarding",
    *,
    levels: int = 0,
    validator_1: ValidationLevelType = ValidationLevelType.NONE,
    validator_1_id: str | None = None,
    validator_2: ValidationLevelType = ValidationLevelType.NONE,
    validator_2_id: str | None = None,
) -> ProcessTemplateResult:
    return ProcessTemplateResult(
        id=id,
        name=name,
        description=None,
        is_active=True,
        request_validation_levels=levels,
        request_validator_1_type=validator_1,
        request_validator_1_id=validator_1_id,
        request_validator_2_type=validator_2,
        request_validator_2_id=validator_2_id,
    )


def sub_process_template(
    id: str,
    process_id: str = "proc-1",
    name: str | None = None,
    *,
    order_index: int = 0,
    mode: AssignmentMode = AssignmentMode.DIRECT,
    assignee_id: str | None = None,
    group_id: str | None = None,
    department_id: str | None = None,
    manager_id: str | None = None,
    manager_source: ManagerSource | None = None,
    validation_levels: int = 0,
    notify_on_create: bool = True,
    notify_on_status_change: bool = True,
    notify_on_close: bool = True,
    is_active: bool = True,
) -> SubProcessTemplateResult:
    target = AssignmentTarget.GROUP if group_id else AssignmentTarget.USER
    return SubProcessTemplateResult(
        id=id,
        process_template_id=process_id,
        name=name or id.replace("-", " ").title(),
        order_index=order_index,
        assignment_mode=mode,
        assignment_target=target,
        target_assignee_id=assignee_id,
        target_group_id=group_id,
        target_department_id=department_id,
        target_manager_id=manager_id,
        manager_source=manager_source,
        validation_levels=validation_levels,
        notify_on_create=notify_on_create,
        notify_on_status_change=notify_on_status_change,
        notify_on_close=notify_on_close,
        is_active=is_active,
    )


def task_template(
    id: str,
    sub_process_id: str,
    title: str | None = None,
    *,
    order_index: int = 0,
    level_1: ValidationLevelType = ValidationLevelType.NONE,
    level_2: ValidationLevelType = ValidationLevelType.NONE,
    validator_1_id: str | None = None,
    validator_2_id: str | None = None,
    duration_days: int | None = None,
    checklist: tuple[str, ...] = (),
) -> TaskTemplateResult:
    return TaskTemplateResult(
        id=id,
        sub_process_template_id=sub_process_id,
        title=title or id,
        description=None,
        priority=TaskPriority.MEDIUM,
        default_duration_days=duration_days,
        order_index=order_index,
        validation_level_1=level_1,
        validation_level_2=level_2,
        validator_1_id=validator_1_id,
        validator_2_id=validator_2_id,
        checklist_items=checklist,
    )


def seed_task(world: World, **overrides: Any) -> TaskResult:
    """Insert a task row directly (bypassing block execution)."""
    values: dict[str, Any] = {
        "id": next_id("task"),
        "type": TaskType.TASK,
        "title": "Task",
        "description": None,
        "status": TaskStatus.TODO,
        "priority": TaskPriority.MEDIUM,
        "due_date": None,
        "assignee_id": "alice",
        "requester_id": "rita",
        "reporter_id": "rita",
        "original_assignee_id": None,
        "department_id": None,
        "parent_request_id": None,
        "parent_sub_process_run_id": None,
        "source_process_template_id": None,
        "source_sub_process_template_id": None,
        "source_task_template_id": None,
        "workflow_run_id": None,
        "validation_level_1": ValidationLevelType.NONE,
        "validation_level_2": ValidationLevelType.NONE,
        "validator_1_id": None,
        "validator_2_id": None,
        "validation_1_status": None,
        "validation_1_by": None,
        "validation_1_at": None,
        "validation_1_comment": None,
        "validation_2_status": None,
        "validation_2_by": None,
        "validation_2_at": None,
        "validation_2_comment": None,
        "is_locked_for_validation": False,
        "validated_at": None,
        "validator_id": None,
        "request_validation_status": RequestValidationStatus.NONE,
        "custom_data": None,
    }
    values.update(overrides)
    task = TaskResult(**values)
    world.tasks.rows[task.id] = task
    return task


def seed_parallel_process(world: World, process: ProcessTemplateResult | None = None) -> None:
    """Two direct sub-processes (alice, then bob), one task template each."""
    world.templates.add_process(process or process_template())
    world.templates.add_sub_process(
        sub_process_template("sp-a", order_index=0, assignee_id="alice"),
        [task_template("tt-a", "sp-a", "Prepare desk")],
    )
    world.templates.add_sub_process(
        sub_process_template("sp-b", order_index=1, assignee_id="bob"),
        [task_template("tt-b", "sp-b", "Create accounts")],
    )

"""S3: status-change notice for tasks belonging to a sub-process run."""

from __future__ import annotations

from procflow.application.dtos.task import TaskStatusChange
from procflow.application.interfaces.repositories import ISubProcessRunRepository
from procflow.application.interfaces.services import IEventEmitter
from procflow.shared.enums import EntityType, EventType


class StatusChangeNotifier:
    """Emits task_status_changed when the task's run was created with notify_on_status_change."""

    def __init__(
        self,
        sub_process_run_repo: ISubProcessRunRepository,
        emitter: IEventEmitter,
    ) -> None:
        self.sub_process_run_repo = sub_process_run_repo
        self.emitter = emitter

    async def on_task_status_changed(self, change: TaskStatusChange) -> None:
        task = change.task
        if task.parent_sub_process_run_id is None:
            return
        run = await self.sub_process_run_repo.get_by_id(task.parent_sub_process_run_id)
        if run is None or not run.notify_on_status_change:
            return
        await self.emitter.emit(
            EventType.TASK_STATUS_CHANGED,
            EntityType.TASK,
            task.id,
            {
                "previous_status": change.previous_status.value,
                "status": task.status.value,
                "actor_id": change.actor_id,
                "assignee_id": task.assignee_id,
                "requester_id": task.requester_id,
                "request_id": task.parent_request_id,
                "task_title": task.title,
            },
            task.workflow_run_id,
        )

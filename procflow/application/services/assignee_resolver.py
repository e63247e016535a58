"""Assignee resolution and reporting-line traversal.

Reporting lines are data (app_user.manager_id) and are not guaranteed to
be acyclic, so every walk is an explicit breadth-first traversal with a
visited set. A cycle ends the walk and is logged.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

from procflow.application.interfaces.repositories import IDirectoryRepository
from procflow.domain.enums import AssignmentMode, ManagerSource, TaskStatus
from procflow.domain.graph import StandardBlockConfig
from procflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AssigneeResolution:
    """Who gets the block's tasks and which status they start in."""

    assignee_id: str | None
    initial_status: TaskStatus
    mode: AssignmentMode

    @property
    def is_direct(self) -> bool:
        """True when tasks went straight to a concrete user (S2 raises task_assigned)."""
        return self.mode == AssignmentMode.DIRECT and self.assignee_id is not None


def infer_manager_source(config: StandardBlockConfig) -> ManagerSource:
    """Return the configured manager source, or infer it from which target is set."""
    if config.manager_source is not None:
        return config.manager_source
    if config.target_manager_id:
        return ManagerSource.SPECIFIC_USER
    if config.target_department_id:
        return ManagerSource.TARGET_DEPARTMENT_MANAGER
    return ManagerSource.REQUESTER_MANAGER


class AssigneeResolver:
    """Resolves block assignees and walks the reporting-line graph."""

    def __init__(self, directory: IDirectoryRepository) -> None:
        self._directory = directory

    async def resolve(
        self, config: StandardBlockConfig, *, requester_id: str | None
    ) -> AssigneeResolution:
        """Resolve the assignee for a standard block's tasks.

        direct: explicit user, else first member of the target group, else
        unresolved. manager: the manager selected by manager_source. Only a
        direct block with a concrete user starts tasks in todo; everything
        else starts in to_assign.

        Args:
            config: Standard block configuration.
            requester_id: Requester of the request the block runs for.

        Returns:
            AssigneeResolution with assignee (possibly None) and initial status.
        """
        match config.assignment_type:
            case AssignmentMode.DIRECT:
                assignee_id = await self._resolve_direct(config)
                status = TaskStatus.TODO if assignee_id else TaskStatus.TO_ASSIGN
            case AssignmentMode.MANAGER:
                assignee_id = await self._resolve_manager(config, requester_id)
                status = TaskStatus.TO_ASSIGN
        if assignee_id is None:
            logger.info(
                "No assignee resolved for sub-process %s (mode=%s)",
                config.sub_process_template_id,
                config.assignment_type.value,
            )
        return AssigneeResolution(
            assignee_id=assignee_id,
            initial_status=status,
            mode=config.assignment_type,
        )

    async def _resolve_direct(self, config: StandardBlockConfig) -> str | None:
        if config.target_assignee_id:
            return config.target_assignee_id
        if config.target_group_id:
            members = await self._directory.list_group_member_ids(config.target_group_id)
            return members[0] if members else None
        return None

    async def _resolve_manager(
        self, config: StandardBlockConfig, requester_id: str | None
    ) -> str | None:
        match infer_manager_source(config):
            case ManagerSource.SPECIFIC_USER:
                return config.target_manager_id
            case ManagerSource.TARGET_DEPARTMENT_MANAGER:
                if not config.target_department_id:
                    return None
                return await self._directory.get_department_manager_id(
                    config.target_department_id
                )
            case ManagerSource.REQUESTER_MANAGER:
                if not requester_id:
                    return None
                return await self._directory.get_manager_id(requester_id)

    async def manager_chain(self, user_id: str, *, max_depth: int | None = None) -> list[str]:
        """Return user_id's managers, nearest first, stopping at a cycle or max_depth."""
        chain: list[str] = []
        visited = {user_id}
        current = user_id
        while max_depth is None or len(chain) < max_depth:
            manager_id = await self._directory.get_manager_id(current)
            if manager_id is None:
                break
            if manager_id in visited:
                logger.warning(
                    "Reporting-line cycle detected at %s while walking managers of %s",
                    manager_id,
                    user_id,
                )
                break
            visited.add(manager_id)
            chain.append(manager_id)
            current = manager_id
        return chain

    async def subordinates(self, user_id: str) -> list[str]:
        """Return every direct and indirect report of user_id in breadth-first order."""
        found: list[str] = []
        visited = {user_id}
        queue = deque([user_id])
        while queue:
            current = queue.popleft()
            for report_id in await self._directory.list_direct_report_ids(current):
                if report_id in visited:
                    continue
                visited.add(report_id)
                found.append(report_id)
                queue.append(report_id)
        return found

    async def is_manager_of(self, candidate_id: str, user_id: str) -> bool:
        """Return whether candidate_id appears in user_id's manager chain."""
        if candidate_id == user_id:
            return False
        return candidate_id in await self.manager_chain(user_id)

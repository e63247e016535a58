"""Directory repository: reporting lines, department managers and group members."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from procflow.infrastructure.persistence.models.directory import (
    AppUser,
    Department,
    UserGroupMember,
)


class DirectoryRepository:
    """Directory repository (read-only). Implements IDirectoryRepository."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_manager_id(self, user_id: str) -> str | None:
        result = await self.db.execute(select(AppUser.manager_id).where(AppUser.id == user_id))
        return result.scalar_one_or_none()

    async def get_department_manager_id(self, department_id: str) -> str | None:
        result = await self.db.execute(
            select(Department.manager_id).where(Department.id == department_id)
        )
        return result.scalar_one_or_none()

    async def list_group_member_ids(self, group_id: str) -> list[str]:
        result = await self.db.execute(
            select(UserGroupMember.user_id)
            .where(UserGroupMember.group_id == group_id)
            .order_by(UserGroupMember.position, UserGroupMember.created_at)
        )
        return list(result.scalars().all())

    async def list_direct_report_ids(self, user_id: str) -> list[str]:
        result = await self.db.execute(
            select(AppUser.id).where(AppUser.manager_id == user_id).order_by(AppUser.id)
        )
        return list(result.scalars().all())

"""Directory ORM models: users, departments and groups (read-only to the engine)."""

import sqlalchemy as sa
from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from procflow.infrastructure.persistence.database import Base
from procflow.infrastructure.persistence.models.mixins import BaseModel


class AppUser(BaseModel, Base):
    """Directory user. Table: app_user. manager_id is the reporting line."""

    __tablename__ = "app_user"

    display_name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)
    manager_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("app_user.id", ondelete="SET NULL"), nullable=True, index=True
    )
    department_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("departments.id", ondelete="SET NULL"), nullable=True, index=True
    )


class Department(BaseModel, Base):
    """Department. Table: departments."""

    __tablename__ = "departments"

    name: Mapped[str] = mapped_column(String, nullable=False)
    manager_id: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("app_user.id", ondelete="SET NULL", use_alter=True),
        nullable=True,
    )


class UserGroup(BaseModel, Base):
    """User group. Table: user_groups."""

    __tablename__ = "user_groups"

    name: Mapped[str] = mapped_column(String, nullable=False)


class UserGroupMember(BaseModel, Base):
    """Ordered group membership. Table: user_group_members."""

    __tablename__ = "user_group_members"

    group_id: Mapped[str] = mapped_column(
        String, ForeignKey("user_groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_user_group_members_group_user"),
    )

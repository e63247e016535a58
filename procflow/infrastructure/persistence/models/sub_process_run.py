"""Sub-process run ORM model (one standard block executed for one request)."""

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from procflow.domain.enums import SubProcessRunStatus
from procflow.infrastructure.persistence.database import Base
from procflow.infrastructure.persistence.models.mixins import BaseModel, in_values_check


class SubProcessRun(BaseModel, Base):
    """Table: request_sub_processes. Notification flags are snapshotted at block start."""

    __tablename__ = "request_sub_processes"

    request_id: Mapped[str] = mapped_column(
        String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sub_process_template_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("sub_process_templates.id", ondelete="RESTRICT"),
        nullable=False,
    )
    workflow_run_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("workflow_runs.id", ondelete="SET NULL"), nullable=True, index=True
    )
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=SubProcessRunStatus.PENDING.value, index=True
    )
    order_index: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    notify_on_status_change: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.text("true")
    )
    notify_on_close: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.text("true")
    )
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    closure_notified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint(
            "request_id",
            "sub_process_template_id",
            name="uq_request_sub_processes_request_template",
        ),
        in_values_check(
            "status", SubProcessRunStatus.values(), "request_sub_processes_status_check"
        ),
    )

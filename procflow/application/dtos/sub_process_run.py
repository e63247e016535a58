"""DTOs for sub-process runs (request_sub_processes rows)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from procflow.domain.enums import SubProcessRunStatus


@dataclass(frozen=True)
class SubProcessRunCreate:
    request_id: str
    sub_process_template_id: str
    status: SubProcessRunStatus
    order_index: int = 0
    workflow_run_id: str | None = None
    notify_on_status_change: bool = True
    notify_on_close: bool = True
    started_at: datetime | None = None


@dataclass(frozen=True)
class SubProcessRunResult:
    id: str
    request_id: str
    sub_process_template_id: str
    workflow_run_id: str | None
    status: SubProcessRunStatus
    order_index: int
    notify_on_status_change: bool
    notify_on_close: bool
    started_at: datetime | None
    completed_at: datetime | None
    closure_notified_at: datetime | None

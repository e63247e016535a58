"""Workflow event DTO: what the engine hands to an event emitter transport."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from procflow.shared.enums import EntityType, EventType
from procflow.shared.utils.datetime import utc_now


@dataclass(frozen=True)
class WorkflowEvent:
    event_type: EventType
    entity_type: EntityType
    entity_id: str
    payload: dict[str, Any]
    workflow_run_id: str | None = None
    occurred_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON publish."""
        data = asdict(self)
        data["event_type"] = self.event_type.value
        data["entity_type"] = self.entity_type.value
        data["occurred_at"] = self.occurred_at.isoformat()
        return data

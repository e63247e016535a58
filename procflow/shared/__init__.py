"""Shared utilities: enums, telemetry, and cross-cutting helpers.

Used by domain, application, and infrastructure. No business logic.
"""

from procflow.shared.enums import (
    EntityType,
    EventType,
    ExecutionLogStatus,
    GenerationStatus,
    OwnerKind,
    WorkflowRunStatus,
)
from procflow.shared.utils import generate_cuid, utc_now

__all__ = [
    "EntityType",
    "EventType",
    "ExecutionLogStatus",
    "GenerationStatus",
    "OwnerKind",
    "WorkflowRunStatus",
    "generate_cuid",
    "utc_now",
]

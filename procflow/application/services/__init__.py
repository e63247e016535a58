"""Application services: graph generation, block execution, validation gates, reconciliation."""

from procflow.application.services.assignee_resolver import (
    AssigneeResolution,
    AssigneeResolver,
)
from procflow.application.services.block_executor import StandardBlockExecutor
from procflow.application.services.completion_reconciler import CompletionReconciler
from procflow.application.services.graph_generator import WorkflowGraphGenerator
from procflow.application.services.request_validation_gate import RequestValidationGate
from procflow.application.services.status_change_notifier import StatusChangeNotifier
from procflow.application.services.task_status_events import TaskStatusChangeBus
from procflow.application.services.task_status_service import TaskStatusService
from procflow.application.services.validation_gate import TaskValidationGate
from procflow.application.services.workflow_launcher import WorkflowLauncher

__all__ = [
    "AssigneeResolution",
    "AssigneeResolver",
    "CompletionReconciler",
    "RequestValidationGate",
    "StandardBlockExecutor",
    "StatusChangeNotifier",
    "TaskStatusChangeBus",
    "TaskStatusService",
    "TaskValidationGate",
    "WorkflowGraphGenerator",
    "WorkflowLauncher",
]

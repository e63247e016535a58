"""Domain layer: enums, exceptions, the workflow graph model and the task state machine.

No dependencies on infrastructure or presentation. Used by application
and infrastructure layers.
"""

from procflow.domain.exceptions import (
    ConflictError,
    EmitterTransportError,
    GraphInvalidError,
    IllegalTransitionError,
    MissingCommentError,
    NoTaskTemplatesWarning,
    PartialBatchFailure,
    ProcflowException,
    ResourceNotFoundException,
    SqlNotConfiguredException,
    UnauthorizedApproverError,
    ValidationException,
)
from procflow.domain.graph import WorkflowEdge, WorkflowGraph, WorkflowNode

__all__ = [
    "ConflictError",
    "EmitterTransportError",
    "GraphInvalidError",
    "IllegalTransitionError",
    "MissingCommentError",
    "NoTaskTemplatesWarning",
    "PartialBatchFailure",
    "ProcflowException",
    "ResourceNotFoundException",
    "SqlNotConfiguredException",
    "UnauthorizedApproverError",
    "ValidationException",
    "WorkflowEdge",
    "WorkflowGraph",
    "WorkflowNode",
]

"""Workflow use cases: batch generation of workflow templates."""

from procflow.application.use_cases.workflows.generate_workflows import (
    GenerateWorkflowsUseCase,
)

__all__ = ["GenerateWorkflowsUseCase"]

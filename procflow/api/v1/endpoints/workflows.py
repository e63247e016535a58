"""Workflow API: generation, workflow templates and workflow runs."""

from typing import Annotated

from fastapi import APIRouter, Depends

from procflow.api.v1.dependencies import (
    get_engine,
    get_workflow_run_repo,
    get_workflow_template_repo,
)
from procflow.application.engine import ProcflowEngine
from procflow.domain.exceptions import ResourceNotFoundException
from procflow.infrastructure.persistence.repositories import (
    WorkflowRunRepository,
    WorkflowTemplateRepository,
)
from procflow.schemas.workflow import (
    GenerateWorkflowsRequest,
    GenerationSummaryResponse,
    WorkflowRunResponse,
    WorkflowTemplateResponse,
)

router = APIRouter()


@router.post("/generate", response_model=GenerationSummaryResponse)
async def generate_workflows(
    body: GenerateWorkflowsRequest,
    engine: Annotated[ProcflowEngine, Depends(get_engine)],
):
    """Generate default workflows for the given owners (every active owner when none given).

    Per-owner failures are reported in the results; the batch never fails as a whole.
    """
    summary = await engine.generate_workflows.execute(
        process_ids=body.process_ids,
        sub_process_ids=body.sub_process_ids,
        force=body.force,
        dry_run=body.dry_run,
    )
    return GenerationSummaryResponse.from_summary(summary)


@router.get("/runs/{workflow_run_id}", response_model=WorkflowRunResponse)
async def get_workflow_run(
    workflow_run_id: str,
    run_repo: Annotated[WorkflowRunRepository, Depends(get_workflow_run_repo)],
):
    """Get a workflow run with its execution log."""
    run = await run_repo.get_by_id(workflow_run_id)
    if not run:
        raise ResourceNotFoundException("workflow_run", workflow_run_id)
    return WorkflowRunResponse.from_result(run)


@router.get("/{workflow_template_id}", response_model=WorkflowTemplateResponse)
async def get_workflow_template(
    workflow_template_id: str,
    template_repo: Annotated[WorkflowTemplateRepository, Depends(get_workflow_template_repo)],
):
    """Get a workflow template and its graph."""
    template = await template_repo.get_by_id(workflow_template_id)
    if not template:
        raise ResourceNotFoundException("workflow_template", workflow_template_id)
    return WorkflowTemplateResponse.from_result(template)

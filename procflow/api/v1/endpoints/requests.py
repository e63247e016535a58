"""Request API: submission, progress and request-level validation."""

from typing import Annotated

from fastapi import APIRouter, Depends

from procflow.api.v1.dependencies import get_actor_id, get_engine
from procflow.application.engine import ProcflowEngine
from procflow.schemas.request import (
    RequestApproveBody,
    RequestDecisionResponse,
    RequestProgressResponse,
    RequestReconciliationResponse,
    RequestRefuseBody,
    SubmitRequestBody,
    SubmitRequestResponse,
)

router = APIRouter()


@router.post("", response_model=SubmitRequestResponse, status_code=201)
async def submit_request(
    body: SubmitRequestBody,
    actor_id: Annotated[str, Depends(get_actor_id)],
    engine: Annotated[ProcflowEngine, Depends(get_engine)],
):
    """Submit a request; launches its workflow unless request validation is configured."""
    result = await engine.submit_request.execute(body.to_command(actor_id))
    return SubmitRequestResponse.from_result(result)


@router.get("/{request_id}/progress", response_model=RequestProgressResponse)
async def get_request_progress(
    request_id: str,
    engine: Annotated[ProcflowEngine, Depends(get_engine)],
):
    """Completion counts and aggregated status of the request's tasks."""
    progress = await engine.task_status.request_progress(request_id)
    return RequestProgressResponse.model_validate(progress)


@router.post("/{request_id}/validation/approve", response_model=RequestDecisionResponse)
async def approve_request(
    request_id: str,
    body: RequestApproveBody,
    actor_id: Annotated[str, Depends(get_actor_id)],
    engine: Annotated[ProcflowEngine, Depends(get_engine)],
):
    """Approve the request at its pending level; final approval starts the workflow."""
    result = await engine.request_gate.approve(request_id, actor_id, body.comment)
    return RequestDecisionResponse.from_result(result)


@router.post("/{request_id}/validation/refuse", response_model=RequestDecisionResponse)
async def refuse_request(
    request_id: str,
    body: RequestRefuseBody,
    actor_id: Annotated[str, Depends(get_actor_id)],
    engine: Annotated[ProcflowEngine, Depends(get_engine)],
):
    """Refuse the request (comment required): cancel it or return it to the requester."""
    result = await engine.request_gate.refuse(request_id, actor_id, body.comment, body.action)
    return RequestDecisionResponse.from_result(result)


@router.post("/{request_id}/validation/resubmit", response_model=RequestDecisionResponse)
async def resubmit_request(
    request_id: str,
    actor_id: Annotated[str, Depends(get_actor_id)],
    engine: Annotated[ProcflowEngine, Depends(get_engine)],
):
    """Send a returned request back to level-1 validation."""
    result = await engine.request_gate.resubmit(request_id, actor_id)
    return RequestDecisionResponse.from_result(result)


@router.post("/{request_id}/reconcile", response_model=RequestReconciliationResponse)
async def reconcile_request(
    request_id: str,
    engine: Annotated[ProcflowEngine, Depends(get_engine)],
):
    """Re-run completion checks for every sub-process run of the request."""
    result = await engine.reconciler.reconcile_request(request_id)
    return RequestReconciliationResponse.model_validate(result)

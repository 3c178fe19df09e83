"""Run record, cancellation and SSE streaming endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from flowengine.logging_config import get_api_logger

from ..database import get_session
from ..event_bus import subscribe_events
from ..models.db import WorkflowRunModel
from ..models.schemas import CancelRunResponse, RunResponse, StepResponse
from ..repositories.run import WorkflowRunRepository
from ..run_manager import RunManager, get_run_manager

logger = get_api_logger()

router = APIRouter(prefix="/runs", tags=["runs"])


def run_to_response(
    run: WorkflowRunModel,
    include_trace: bool = True,
    active: bool = False,
) -> RunResponse:
    """Convert ORM WorkflowRunModel to API response.

    include_trace requires node_executions to be loaded already.
    """
    error = None
    if run.error_kind:
        error = {"kind": run.error_kind, "detail": run.error_detail}
        if run.error_node_id:
            error["nodeId"] = run.error_node_id

    trace = []
    if include_trace:
        trace = [
            StepResponse(
                step=s.step,
                node_id=s.node_id,
                node_type=s.node_type,
                output_label=s.output_label,
                input_snapshot=s.input_snapshot,
                output_data=s.output_data,
                warnings=s.warnings or [],
                error=s.error,
                duration_ms=s.duration_ms,
            )
            for s in run.node_executions
        ]

    return RunResponse(
        run_id=run.id,
        workflow_id=run.workflow_id,
        document_id=run.document_id,
        workflow_name=run.workflow_name,
        status=run.status,
        active=active,
        steps=run.steps,
        duration_ms=run.duration_ms,
        input_data=run.input_data,
        options=run.options,
        final_scope=run.final_scope,
        error=error,
        started_at=run.started_at,
        ended_at=run.ended_at,
        trace=trace,
    )


@router.get("/{run_id}", response_model=RunResponse)
async def get_run(
    run_id: str,
    session: AsyncSession = Depends(get_session),
    manager: RunManager = Depends(get_run_manager),
):
    """Persisted run record with its per-step trace."""
    run = await WorkflowRunRepository(session).get(run_id, load_steps=True)
    if not run:
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")
    return run_to_response(run, active=manager.is_active(run_id))


@router.post("/{run_id}/cancel", response_model=CancelRunResponse)
async def cancel_run(
    run_id: str,
    manager: RunManager = Depends(get_run_manager),
):
    """Request cancellation; the run stops at its next step boundary."""
    if not manager.cancel(run_id):
        raise HTTPException(status_code=404, detail=f"Run {run_id} is not active")
    logger.info(f"Cancellation requested for run {run_id}")
    return CancelRunResponse(run_id=run_id)


@router.get("/{run_id}/stream")
async def stream_run(run_id: str):
    """SSE stream of node_started / node_completed / run_finished events.

    Events emitted before the client connects are replayed first.
    """
    return StreamingResponse(
        subscribe_events(run_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )

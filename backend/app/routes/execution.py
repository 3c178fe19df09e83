"""Workflow execution endpoints.

Runs execute inside the request: the response is the full
ExecutionResponse (HTTP 200 whether the run completed, failed or was
aborted). Invalid documents are rejected with 422 before a run exists.
Pass ?run_id=... to pick the run id up front, e.g. to open
/runs/{run_id}/stream before the run starts.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from flowengine.engine import EngineOptions, WorkflowDocument, validate_workflow
from flowengine.logging_config import get_api_logger
from flowengine.store import DocumentStore

from ..database import get_session
from ..dependencies import get_document_store
from ..models.schemas import EngineOptionsRequest
from ..repositories.workflow import WorkflowRepository
from ..run_manager import RunAlreadyActive, RunAlreadyExists, RunManager, get_run_manager
from .workflows import raise_if_invalid

logger = get_api_logger()

router = APIRouter(tags=["execution"])


def _parse_options(raw: Any) -> EngineOptions:
    if raw is None:
        return EngineOptions()
    if not isinstance(raw, dict):
        raise HTTPException(status_code=422, detail="'options' must be an object")
    try:
        return EngineOptionsRequest.model_validate(raw).to_engine_options()
    except ValueError as e:
        raise HTTPException(status_code=422, detail=f"Invalid engine options: {e}")


async def _execute(
    manager: RunManager,
    workflow: WorkflowDocument,
    options: EngineOptions,
    store: DocumentStore,
    inputs: Optional[Dict[str, Any]] = None,
    run_id: Optional[str] = None,
    stored_workflow_id: Optional[str] = None,
) -> Dict[str, Any]:
    try:
        response = await manager.execute(
            workflow,
            options,
            store,
            inputs=inputs,
            run_id=run_id,
            stored_workflow_id=stored_workflow_id,
        )
    except RunAlreadyActive:
        raise HTTPException(status_code=409, detail=f"Run {run_id} is already in progress")
    except RunAlreadyExists:
        raise HTTPException(status_code=409, detail=f"Run {run_id} already exists")
    return response.to_dict()


@router.post("/execute-workflow")
async def execute_workflow(
    payload: Dict[str, Any] = Body(...),
    run_id: Optional[str] = Query(None, description="Client-chosen run id"),
    store: DocumentStore = Depends(get_document_store),
    manager: RunManager = Depends(get_run_manager),
):
    """Validate and run a workflow document.

    Body: the workflow document, optionally with an "options" object
    (maxSteps, timeBudgetMs, allowSelfLoopEdges, continueOnErrorNodeIds).
    """
    options = _parse_options(payload.get("options"))
    document = {k: v for k, v in payload.items() if k != "options"}

    result = validate_workflow(document, allow_self_loops=options.allow_self_loop_edges)
    raise_if_invalid(result)

    logger.info(f"=== Executing workflow: {result.workflow.name} ===")
    return await _execute(manager, result.workflow, options, store, run_id=run_id)


@router.post("/execute-workflow-by-id")
async def execute_workflow_by_id(
    workflow_id: str = Query(...),
    inputs: Optional[Dict[str, Any]] = Body(None),
    run_id: Optional[str] = Query(None, description="Client-chosen run id"),
    session: AsyncSession = Depends(get_session),
    store: DocumentStore = Depends(get_document_store),
    manager: RunManager = Depends(get_run_manager),
):
    """Run a stored workflow; the body is input data seeded into scope."""
    workflow = await WorkflowRepository(session).get(workflow_id)
    if not workflow:
        raise HTTPException(status_code=404, detail=f"Workflow with id {workflow_id} not found")
    document = dict(workflow.document)
    # The run writes its own records; end this read transaction first
    await session.commit()

    options = EngineOptions()
    result = validate_workflow(document, allow_self_loops=options.allow_self_loop_edges)
    raise_if_invalid(result, message="Stored workflow is no longer valid")

    logger.info(f"=== Executing stored workflow: {workflow_id} ===")
    return await _execute(
        manager,
        result.workflow,
        options,
        store,
        inputs=inputs or {},
        run_id=run_id,
        stored_workflow_id=workflow_id,
    )

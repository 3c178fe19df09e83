"""Workflow definition endpoints: create, list, get, delete."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from flowengine.engine import ValidationResult, validate_workflow
from flowengine.logging_config import get_api_logger

from ..database import get_session
from ..models.schemas import (
    CreateWorkflowResponse,
    PagedRunsResponse,
    PagedWorkflowsResponse,
    ValidationResponse,
    WorkflowResponse,
)
from ..repositories.run import WorkflowRunRepository
from ..repositories.workflow import WorkflowRepository
from .runs import run_to_response

logger = get_api_logger()

router = APIRouter(tags=["workflows"])


# --- Helper functions ---


def _workflow_to_response(wf) -> WorkflowResponse:
    """Convert ORM WorkflowModel to API response."""
    return WorkflowResponse(
        id=wf.id,
        name=wf.name,
        document=wf.document,
        created_at=wf.created_at.isoformat() if wf.created_at else "",
        updated_at=wf.updated_at.isoformat() if wf.updated_at else "",
    )


def raise_if_invalid(result: ValidationResult, message: str = "Invalid workflow definition") -> None:
    """Reject an invalid document with 422 and the structured issues."""
    if result.valid:
        return
    raise HTTPException(
        status_code=422,
        detail={"message": message, **ValidationResponse.from_result(result).model_dump()},
    )


# --- CRUD Endpoints ---


@router.post("/create-workflow", response_model=CreateWorkflowResponse)
async def create_workflow(
    document: Dict[str, Any] = Body(...),
    session: AsyncSession = Depends(get_session),
):
    """Validate and store a workflow document under a new id."""
    result = validate_workflow(document)
    raise_if_invalid(result)

    repo = WorkflowRepository(session)
    workflow = await repo.create(name=result.workflow.name, document=document)
    logger.info(f"Created workflow {workflow.id} ('{workflow.name}')")
    return CreateWorkflowResponse(workflow_id=workflow.id, workflow_name=workflow.name)


@router.get("/workflows", response_model=PagedWorkflowsResponse)
async def list_workflows(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    repo = WorkflowRepository(session)
    workflows, total = await repo.list(page=page, page_size=page_size)
    return PagedWorkflowsResponse(
        items=[_workflow_to_response(wf) for wf in workflows],
        page=page,
        page_size=page_size,
        total=total,
    )


@router.get("/workflows/{workflow_id}", response_model=WorkflowResponse)
async def get_workflow(
    workflow_id: str,
    session: AsyncSession = Depends(get_session),
):
    repo = WorkflowRepository(session)
    workflow = await repo.get(workflow_id)
    if not workflow:
        raise HTTPException(status_code=404, detail=f"Workflow with id {workflow_id} not found")
    return _workflow_to_response(workflow)


@router.delete("/workflows/{workflow_id}", status_code=204)
async def delete_workflow(
    workflow_id: str,
    session: AsyncSession = Depends(get_session),
):
    """Delete a workflow and its run records."""
    repo = WorkflowRepository(session)
    deleted = await repo.delete(workflow_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Workflow with id {workflow_id} not found")
    logger.info(f"Deleted workflow {workflow_id}")


@router.get("/workflows/{workflow_id}/runs", response_model=PagedRunsResponse)
async def list_workflow_runs(
    workflow_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    """Runs of a stored workflow, newest first (without per-step rows)."""
    if not await WorkflowRepository(session).get(workflow_id):
        raise HTTPException(status_code=404, detail=f"Workflow with id {workflow_id} not found")

    runs, total = await WorkflowRunRepository(session).list_for_workflow(
        workflow_id, page=page, page_size=page_size,
    )
    return PagedRunsResponse(
        items=[run_to_response(run, include_trace=False) for run in runs],
        page=page,
        page_size=page_size,
        total=total,
    )

"""Repository layer for run records and their per-step rows."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.db import NodeExecutionModel, WorkflowRunModel
from flowengine.engine import ExecutionResponse


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowRunRepository:
    """Data access layer for workflow runs."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        run_id: str,
        workflow_name: str,
        workflow_id: Optional[str] = None,
        document_id: Optional[str] = None,
        input_data: Optional[Dict[str, Any]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> WorkflowRunModel:
        run = WorkflowRunModel(
            id=run_id,
            workflow_id=workflow_id,
            document_id=document_id,
            workflow_name=workflow_name,
            status="running",
            input_data=input_data,
            options=options,
        )
        self.session.add(run)
        await self.session.flush()
        return run

    async def get(self, run_id: str, load_steps: bool = False) -> Optional[WorkflowRunModel]:
        query = select(WorkflowRunModel).where(WorkflowRunModel.id == run_id)
        if load_steps:
            query = query.options(selectinload(WorkflowRunModel.node_executions))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def finish(self, response: ExecutionResponse) -> Optional[WorkflowRunModel]:
        """Store the final response of a run: status, scope, error and one row per step."""
        run = await self.get(response.run_id)
        if not run:
            return None

        run.status = response.status
        run.final_scope = response.final_scope
        run.steps = response.steps
        run.duration_ms = response.duration_ms
        run.ended_at = _utcnow()
        if response.error is not None:
            run.error_kind = response.error.kind
            run.error_detail = response.error.detail
            run.error_node_id = response.error.node_id

        for entry in response.trace:
            entry_dict = entry.to_dict()
            self.session.add(NodeExecutionModel(
                run_id=run.id,
                step=entry.step,
                node_id=entry.node_id,
                node_type=entry.node_type,
                output_label=entry.output_label,
                input_snapshot=entry_dict["inputSnapshot"],
                output_data=entry_dict["outputData"],
                warnings=entry_dict["warnings"],
                error=entry_dict["error"],
                duration_ms=entry_dict["durationMs"],
            ))

        await self.session.flush()
        return run

    async def mark_failed(self, run_id: str, kind: str, detail: str) -> Optional[WorkflowRunModel]:
        """Close a run whose final response could not be stored."""
        run = await self.get(run_id)
        if not run:
            return None

        run.status = "failed"
        run.error_kind = kind
        run.error_detail = detail
        run.error_node_id = None
        run.ended_at = _utcnow()
        await self.session.flush()
        return run

    async def list_for_workflow(
        self,
        workflow_id: str,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[WorkflowRunModel], int]:
        """Runs of a stored workflow, newest first.

        Returns:
            Tuple of (runs, total_count)
        """
        query = (
            select(WorkflowRunModel)
            .where(WorkflowRunModel.workflow_id == workflow_id)
            .order_by(WorkflowRunModel.started_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        count_query = (
            select(func.count())
            .select_from(WorkflowRunModel)
            .where(WorkflowRunModel.workflow_id == workflow_id)
        )

        result = await self.session.execute(query)
        runs = list(result.scalars().all())

        count_result = await self.session.execute(count_query)
        total = count_result.scalar() or 0

        return runs, total

"""Repository layer for stored workflow documents."""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.db import WorkflowModel


class WorkflowRepository:
    """Data access layer for workflow documents."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        name: str,
        document: Dict[str, Any],
        workflow_id: Optional[str] = None,
    ) -> WorkflowModel:
        """Store a workflow document.

        The document's "id" is overwritten with the stored id so that
        runs of the stored copy report it.
        """
        workflow_id = workflow_id or str(uuid.uuid4())
        workflow = WorkflowModel(
            id=workflow_id,
            name=name,
            document={**document, "id": workflow_id, "name": name},
        )
        self.session.add(workflow)
        await self.session.flush()
        return workflow

    async def get(self, workflow_id: str) -> Optional[WorkflowModel]:
        result = await self.session.execute(
            select(WorkflowModel).where(WorkflowModel.id == workflow_id)
        )
        return result.scalar_one_or_none()

    async def list(
        self,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[WorkflowModel], int]:
        """List workflows, most recently updated first.

        Returns:
            Tuple of (workflows, total_count)
        """
        query = (
            select(WorkflowModel)
            .order_by(WorkflowModel.updated_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        count_query = select(func.count()).select_from(WorkflowModel)

        result = await self.session.execute(query)
        workflows = list(result.scalars().all())

        count_result = await self.session.execute(count_query)
        total = count_result.scalar() or 0

        return workflows, total

    async def delete(self, workflow_id: str) -> bool:
        workflow = await self.get(workflow_id)
        if not workflow:
            return False
        await self.session.delete(workflow)
        await self.session.flush()
        return True

"""Workflow validation and node type registry endpoints."""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Body

from flowengine.engine import validate_workflow
from flowengine.nodes import list_node_types

from ..models.schemas import NodeTypeResponse, ValidationResponse

router = APIRouter(tags=["validation"])


@router.get("/node-types", response_model=List[NodeTypeResponse])
def get_node_types():
    """List all registered node types for the editor palette."""
    return [
        NodeTypeResponse(
            node_type=d.node_type,
            display_name=d.display_name,
            description=d.description,
            category=d.category,
            config_schema=d.config_schema,
            output_labels=list(d.output_labels),
            icon=d.icon,
            color=d.color,
        )
        for d in list_node_types()
    ]


@router.post("/validate-workflow", response_model=ValidationResponse)
async def validate_workflow_inline(
    document: Dict[str, Any] = Body(...),
    allow_self_loops: bool = False,
):
    """Validate a workflow document without saving or running it (live editor feedback)."""
    return ValidationResponse.from_result(
        validate_workflow(document, allow_self_loops=allow_self_loops)
    )

"""Pydantic request/response models for the workflow API.

Workflow documents themselves travel as plain JSON objects; the engine's
validate_workflow owns their shape so that every problem is reported as
a structured validation issue instead of a generic 422 from FastAPI.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from flowengine.engine import EngineOptions, ValidationResult


class CamelModel(BaseModel):
    """Serializes with camelCase keys; accepts either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EngineOptionsRequest(CamelModel):
    """Per-run overrides; omitted fields keep the server defaults."""

    max_steps: Optional[int] = Field(None, ge=1)
    time_budget_ms: Optional[int] = Field(None, ge=1)
    allow_self_loop_edges: Optional[bool] = None
    continue_on_error_node_ids: Optional[List[str]] = None

    def to_engine_options(self) -> EngineOptions:
        return EngineOptions.from_dict(self.model_dump(by_alias=True, exclude_none=True))


class CreateWorkflowResponse(BaseModel):
    status: str = "success"
    message: str = "Workflow created successfully"
    workflow_id: str
    workflow_name: str


class WorkflowResponse(BaseModel):
    """Stored workflow in API response."""
    id: str
    name: str
    document: Dict[str, Any]
    created_at: str
    updated_at: str


class PagedWorkflowsResponse(BaseModel):
    items: List[WorkflowResponse]
    page: int
    page_size: int
    total: int


class ValidationIssueResponse(BaseModel):
    """Single validation error/warning."""
    kind: str
    detail: str
    node_ids: List[str]
    severity: str


class ValidationResponse(BaseModel):
    """Workflow validation result."""
    valid: bool
    errors: List[ValidationIssueResponse]
    warnings: List[ValidationIssueResponse]

    @classmethod
    def from_result(cls, result: ValidationResult) -> "ValidationResponse":
        return cls(
            valid=result.valid,
            errors=[ValidationIssueResponse(**e.to_dict()) for e in result.errors],
            warnings=[ValidationIssueResponse(**w.to_dict()) for w in result.warnings],
        )


class NodeTypeResponse(BaseModel):
    """Node type definition for the editor palette."""
    node_type: str
    display_name: str
    description: str
    category: str
    config_schema: dict
    output_labels: List[str]
    icon: Optional[str] = None
    color: Optional[str] = None


class StepResponse(CamelModel):
    step: int
    node_id: str
    node_type: str
    output_label: str
    input_snapshot: Optional[Dict[str, Any]] = None
    output_data: Any = None
    warnings: List[str] = Field(default_factory=list)
    error: Optional[Dict[str, Any]] = None
    duration_ms: float


class RunResponse(CamelModel):
    """Persisted run record."""
    run_id: str
    workflow_id: Optional[str] = None
    document_id: Optional[str] = None
    workflow_name: str
    status: str
    active: bool = False
    steps: int
    duration_ms: Optional[float] = None
    input_data: Optional[Dict[str, Any]] = None
    options: Optional[Dict[str, Any]] = None
    final_scope: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None
    started_at: datetime
    ended_at: Optional[datetime] = None
    trace: List[StepResponse] = Field(default_factory=list)


class PagedRunsResponse(CamelModel):
    items: List[RunResponse]
    page: int
    page_size: int
    total: int


class CancelRunResponse(CamelModel):
    run_id: str
    status: str = "cancelling"

"""Workflow engine: document validation, placeholder resolution, graph walking, reporting."""

from .document import (
    EdgeDefinition,
    InvalidWorkflowError,
    NodeConfig,
    ValidationError,
    ValidationResult,
    WorkflowDocument,
    validate_workflow,
)
from .options import EngineOptions
from .reporter import ExecutionResponse, report
from .resolver import resolve, resolve_value
from .trace import RunState, TraceEntry
from .walker import WorkflowRun, run_workflow

__all__ = [
    "EdgeDefinition",
    "EngineOptions",
    "ExecutionResponse",
    "InvalidWorkflowError",
    "NodeConfig",
    "RunState",
    "TraceEntry",
    "ValidationError",
    "ValidationResult",
    "WorkflowDocument",
    "WorkflowRun",
    "report",
    "resolve",
    "resolve_value",
    "run_workflow",
    "validate_workflow",
]

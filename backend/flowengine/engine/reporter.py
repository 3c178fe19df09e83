"""Result Reporter: turns a finished run into an ExecutionResponse."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import EngineError, ExecutionError
from .trace import RunState, TraceEntry

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResponse:
    """Final report of a run.

    status is one of "completed", "failed" or "aborted"; error is set for
    the last two.
    """

    run_id: str
    workflow_id: str
    status: str
    trace: List[TraceEntry] = field(default_factory=list)
    final_scope: Dict[str, Any] = field(default_factory=dict)
    error: Optional[EngineError] = None
    steps: int = 0
    duration_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status == RunState.COMPLETED.value

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "runId": self.run_id,
            "workflowId": self.workflow_id,
            "status": self.status,
            "trace": [entry.to_dict() for entry in self.trace],
            "finalScope": self.final_scope,
            "steps": self.steps,
            "durationMs": round(self.duration_ms, 3),
        }
        if self.error is not None:
            result["error"] = self.error.to_dict()
        return result


def report(
    trace: List[TraceEntry],
    final_scope: Dict[str, Any],
    state: RunState,
    error: Optional[EngineError] = None,
    *,
    run_id: str = "",
    workflow_id: str = "",
    duration_ms: float = 0.0,
) -> ExecutionResponse:
    """Assemble the response for a run that reached a terminal state.

    A non-terminal state here means the walker stopped early without a
    reason; that is reported as failed.
    """
    if not state.is_terminal:
        logger.error(f"Run {run_id} reported in non-terminal state {state.value}")
        error = error or ExecutionError(f"run stopped in non-terminal state '{state.value}'")
        state = RunState.FAILED
    elif state is not RunState.COMPLETED and error is None:
        error = ExecutionError(f"run {state.value} without a recorded error")

    return ExecutionResponse(
        run_id=run_id,
        workflow_id=workflow_id,
        status=state.value,
        trace=list(trace),
        final_scope=copy.deepcopy(final_scope),
        error=error if state is not RunState.COMPLETED else None,
        steps=len(trace),
        duration_ms=duration_ms,
    )

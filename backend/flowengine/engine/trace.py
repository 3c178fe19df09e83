"""Run states and trace entries shared by the walker and the reporter."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import EngineError


class RunState(str, Enum):
    """Lifecycle of a single run.

    ready -> running -> (branching -> running)* -> completed | failed | aborted
    """

    READY = "ready"
    RUNNING = "running"
    BRANCHING = "branching"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.COMPLETED, RunState.FAILED, RunState.ABORTED)


@dataclass
class TraceEntry:
    """Record of one executed step, appended in execution order."""

    step: int
    node_id: str
    node_type: str
    input_snapshot: Dict[str, Any]
    output_label: str = ""
    output_data: Any = None
    duration_ms: float = 0.0
    warnings: List[str] = field(default_factory=list)
    error: Optional[EngineError] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "nodeId": self.node_id,
            "nodeType": self.node_type,
            "inputSnapshot": self.input_snapshot,
            "outputLabel": self.output_label,
            "outputData": self.output_data,
            "durationMs": round(self.duration_ms, 3),
            "warnings": list(self.warnings),
            "error": self.error.to_dict() if self.error is not None else None,
        }

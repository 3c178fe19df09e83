"""Engine error taxonomy.

Validation problems are reported as ValidationError records (see
engine/document.py) before a run exists. Everything here describes a
failure inside a run: executors return these in NodeResult.error, the
walker records them on the trace entry and in the final response.
StoreError is also raised by store backends and converted by the nodes.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class EngineError(Exception):
    """Base class for structured in-run failures.

    Attributes:
        kind: Stable error identifier reported to callers
        detail: Human-readable description
        node_id: Node where the failure occurred (if any)
    """

    kind = "EngineError"

    def __init__(self, detail: str, node_id: Optional[str] = None):
        self.detail = detail
        self.node_id = node_id
        super().__init__(detail)

    def at(self, node_id: str) -> "EngineError":
        """Attach the failing node id (if not already set) and return self."""
        if self.node_id is None:
            self.node_id = node_id
        return self

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"kind": self.kind, "detail": self.detail}
        if self.node_id is not None:
            result["nodeId"] = self.node_id
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.detail!r}, node_id={self.node_id!r})"


class TypeMismatch(EngineError):
    """Condition comparison impossible (ordering operator on non-numbers)."""

    kind = "TypeMismatch"


class StoreError(EngineError):
    """External document store failure."""

    kind = "StoreError"

    def __init__(self, reason: str, node_id: Optional[str] = None):
        self.reason = reason
        super().__init__(reason, node_id=node_id)


class AmbiguousBranch(EngineError):
    """More than one outgoing edge matches the emitted label."""

    kind = "AmbiguousBranch"


class StepLimitExceeded(EngineError):
    """Run exceeded its maximum number of steps."""

    kind = "StepLimitExceeded"

    def __init__(self, max_steps: int, node_id: Optional[str] = None):
        self.max_steps = max_steps
        super().__init__(f"step limit of {max_steps} exceeded", node_id=node_id)


class TimeLimitExceeded(EngineError):
    """Run exceeded its wall-clock budget."""

    kind = "TimeLimitExceeded"

    def __init__(self, budget_ms: int, node_id: Optional[str] = None):
        self.budget_ms = budget_ms
        super().__init__(f"time budget of {budget_ms}ms exceeded", node_id=node_id)


class Cancelled(EngineError):
    """Run cancelled by an external request."""

    kind = "Cancelled"


class ExecutionError(EngineError):
    """Unexpected exception escaping a node executor."""

    kind = "ExecutionError"

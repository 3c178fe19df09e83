"""Per-run engine options with defaults from flowengine.settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Mapping, Optional

from ..settings import (
    ENGINE_ALLOW_SELF_LOOP_EDGES,
    ENGINE_MAX_STEPS,
    ENGINE_TIME_BUDGET_MS,
)


@dataclass(frozen=True)
class EngineOptions:
    """Guards and policies for a single run.

    Attributes:
        max_steps: Executed steps allowed before the run is aborted
        time_budget_ms: Wall-clock budget for the whole run
        allow_self_loop_edges: Accept edges whose source equals target
        continue_on_error_node_ids: Nodes whose failure follows the "default"
            edge instead of failing the run
    """

    max_steps: int = ENGINE_MAX_STEPS
    time_budget_ms: int = ENGINE_TIME_BUDGET_MS
    allow_self_loop_edges: bool = ENGINE_ALLOW_SELF_LOOP_EDGES
    continue_on_error_node_ids: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        if isinstance(self.max_steps, bool) or not isinstance(self.max_steps, int) or self.max_steps < 1:
            raise ValueError("max_steps must be a positive integer")
        if isinstance(self.time_budget_ms, bool) or not isinstance(self.time_budget_ms, int) or self.time_budget_ms < 1:
            raise ValueError("time_budget_ms must be a positive integer")
        # Accept any iterable of ids from callers
        object.__setattr__(self, "continue_on_error_node_ids", frozenset(self.continue_on_error_node_ids))

    @property
    def time_budget_secs(self) -> float:
        return self.time_budget_ms / 1000.0

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "EngineOptions":
        """Build options from a camelCase request payload; absent keys keep defaults."""
        if not data:
            return cls()
        kwargs: Dict[str, Any] = {}
        if data.get("maxSteps") is not None:
            kwargs["max_steps"] = data["maxSteps"]
        if data.get("timeBudgetMs") is not None:
            kwargs["time_budget_ms"] = data["timeBudgetMs"]
        if data.get("allowSelfLoopEdges") is not None:
            kwargs["allow_self_loop_edges"] = bool(data["allowSelfLoopEdges"])
        if data.get("continueOnErrorNodeIds") is not None:
            kwargs["continue_on_error_node_ids"] = frozenset(data["continueOnErrorNodeIds"])
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "maxSteps": self.max_steps,
            "timeBudgetMs": self.time_budget_ms,
            "allowSelfLoopEdges": self.allow_self_loop_edges,
            "continueOnErrorNodeIds": sorted(self.continue_on_error_node_ids),
        }

"""Graph Walker: drives a validated workflow from start to a terminal state.

One WorkflowRun owns its scope and trace; nothing is shared between runs
except the frozen node registry and the document store client.

Per step, in order:
1. cancellation requested        -> aborted (Cancelled)
2. step bound reached            -> aborted (StepLimitExceeded)
3. time budget spent             -> aborted (TimeLimitExceeded)
4. execute node under the remaining budget, record the trace entry
5. merge mutations, follow the single edge carrying the emitted label

Cycles are allowed; the step and time guards are what stop them.
"""

from __future__ import annotations

import asyncio
import copy
import time
import uuid
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from ..errors import (
    AmbiguousBranch,
    Cancelled,
    EngineError,
    ExecutionError,
    StepLimitExceeded,
    TimeLimitExceeded,
)
from ..logging_config import get_engine_logger
from ..nodes.registry import (
    DEFAULT_LABEL,
    NodeContext,
    NodeRegistry,
    NodeResult,
    default_registry,
)
from ..store.base import DocumentStore
from .document import InvalidWorkflowError, WorkflowDocument, validate_workflow
from .options import EngineOptions
from .reporter import ExecutionResponse, report
from .trace import RunState, TraceEntry

logger = get_engine_logger()

# on_event(event_type, data)
EventCallback = Callable[[str, Dict[str, Any]], None]


class WorkflowRun:
    """A single execution of a validated workflow.

    Usage:
        run = WorkflowRun(result.workflow, store=store)
        response = await run.run()

    cancel() may be called from another task; it takes effect at the next
    step boundary.
    """

    def __init__(
        self,
        workflow: WorkflowDocument,
        options: Optional[EngineOptions] = None,
        store: Optional[DocumentStore] = None,
        registry: Optional[NodeRegistry] = None,
        inputs: Optional[Mapping[str, Any]] = None,
        run_id: Optional[str] = None,
        on_event: Optional[EventCallback] = None,
    ):
        self.workflow = workflow
        self.options = options or EngineOptions()
        self.registry = registry or default_registry
        self.run_id = run_id or str(uuid.uuid4())
        self.state = RunState.READY
        self.scope: Dict[str, Any] = {}
        self.trace: List[TraceEntry] = []
        self.error: Optional[EngineError] = None
        self._context = NodeContext(
            store=store,
            run_id=self.run_id,
            inputs=copy.deepcopy(dict(inputs or {})),
        )
        self._on_event = on_event
        self._cancel_requested = False
        self._started_at: Optional[float] = None

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def cancel(self) -> None:
        """Request cooperative cancellation."""
        if not self.state.is_terminal:
            logger.info(f"[{self.run_id}] cancellation requested")
            self._cancel_requested = True

    def elapsed_ms(self) -> float:
        if self._started_at is None:
            return 0.0
        return (time.monotonic() - self._started_at) * 1000

    async def run(self) -> ExecutionResponse:
        """Walk the graph to a terminal state and report.

        In-run failures end up in the response; this never raises them.
        """
        if self.state is not RunState.READY:
            raise RuntimeError(f"run {self.run_id} already started")

        self._started_at = time.monotonic()
        self.state = RunState.RUNNING
        logger.info(f"[{self.run_id}] run started: workflow='{self.workflow.name}' id='{self.workflow.id}'")

        try:
            state, error = await self._walk()
        except Exception as e:
            logger.exception(f"[{self.run_id}] walker crashed")
            state, error = RunState.FAILED, ExecutionError(f"{type(e).__name__}: {e}")

        self.state = state
        self.error = error
        response = report(
            self.trace,
            self.scope,
            state,
            error,
            run_id=self.run_id,
            workflow_id=self.workflow.id,
            duration_ms=self.elapsed_ms(),
        )
        logger.info(
            f"[{self.run_id}] run {response.status} after {response.steps} step(s) "
            f"in {response.duration_ms:.1f}ms"
            + (f": {error.kind} {error.detail}" if error else "")
        )
        self._emit("run_finished", {
            "status": response.status,
            "steps": response.steps,
            "durationMs": round(response.duration_ms, 3),
            "error": error.to_dict() if error else None,
        })
        return response

    async def _walk(self) -> Tuple[RunState, Optional[EngineError]]:
        start = self.workflow.start_node
        if start is None:
            return RunState.FAILED, ExecutionError("workflow has no start node")

        node_id = start.id
        while True:
            # Step boundary: let other tasks (and cancel requests) run
            await asyncio.sleep(0)
            if self._cancel_requested:
                return RunState.ABORTED, Cancelled("run cancelled", node_id=node_id)
            if len(self.trace) >= self.options.max_steps:
                return RunState.ABORTED, StepLimitExceeded(self.options.max_steps, node_id=node_id)
            remaining_ms = self.options.time_budget_ms - self.elapsed_ms()
            if remaining_ms <= 0:
                return RunState.ABORTED, TimeLimitExceeded(self.options.time_budget_ms, node_id=node_id)

            self.state = RunState.RUNNING
            entry, result = await self._execute_step(node_id, remaining_ms)

            if isinstance(entry.error, TimeLimitExceeded):
                return RunState.ABORTED, entry.error

            if result.ok:
                self.scope.update(result.mutations)
                label = result.output_label
            elif node_id in self.options.continue_on_error_node_ids:
                logger.warning(
                    f"[{self.run_id}] {node_id} failed ({result.error.kind}), "
                    f"continuing on '{DEFAULT_LABEL}' edge"
                )
                label = DEFAULT_LABEL
            else:
                return RunState.FAILED, result.error

            self.state = RunState.BRANCHING
            candidates = self.workflow.outgoing(node_id, label)
            if not candidates:
                return RunState.COMPLETED, None
            if len(candidates) > 1:
                targets = ", ".join(edge.target for edge in candidates)
                return RunState.FAILED, AmbiguousBranch(
                    f"label '{label}' matches {len(candidates)} edges ({targets})",
                    node_id=node_id,
                )
            node_id = candidates[0].target

    async def _execute_step(self, node_id: str, remaining_ms: float) -> Tuple[TraceEntry, NodeResult]:
        spec = self.workflow.node(node_id)
        step = len(self.trace) + 1
        snapshot = copy.deepcopy(self.scope)
        self._emit("node_started", {"nodeId": node_id, "nodeType": spec.type, "step": step})

        started = time.monotonic()
        try:
            node = self.registry.create(spec.id, spec.type, spec.config)
            result = await asyncio.wait_for(
                node.execute(MappingProxyType(self.scope), self._context),
                timeout=remaining_ms / 1000.0,
            )
        except asyncio.TimeoutError:
            result = NodeResult.failure(TimeLimitExceeded(self.options.time_budget_ms, node_id=node_id))
        except Exception as e:
            logger.exception(f"[{self.run_id}] {node_id} raised unexpectedly")
            result = NodeResult.failure(ExecutionError(f"{type(e).__name__}: {e}", node_id=node_id))
        duration_ms = (time.monotonic() - started) * 1000

        if result.error is not None:
            result.error.at(node_id)

        entry = TraceEntry(
            step=step,
            node_id=node_id,
            node_type=spec.type,
            input_snapshot=snapshot,
            output_label=result.output_label if result.ok else "",
            output_data=copy.deepcopy(result.data),
            duration_ms=duration_ms,
            warnings=list(result.warnings),
            error=result.error,
        )
        self.trace.append(entry)

        logger.info(
            f"[{self.run_id}] step {step}: {node_id} ({spec.type}) -> "
            + (f"'{entry.output_label}'" if result.ok else f"{result.error.kind}")
            + f" in {duration_ms:.1f}ms"
        )
        for warning in result.warnings:
            logger.warning(f"[{self.run_id}] {node_id}: {warning}")

        self._emit("node_completed", entry.to_dict())
        return entry, result

    def _emit(self, event_type: str, data: Dict[str, Any]) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(event_type, {"runId": self.run_id, **data})
        except Exception:
            logger.exception(f"[{self.run_id}] event callback failed for {event_type}")


async def run_workflow(
    document: Any,
    options: Optional[EngineOptions] = None,
    store: Optional[DocumentStore] = None,
    registry: Optional[NodeRegistry] = None,
    inputs: Optional[Mapping[str, Any]] = None,
    run_id: Optional[str] = None,
    on_event: Optional[EventCallback] = None,
) -> ExecutionResponse:
    """Validate a raw document and run it.

    Raises:
        InvalidWorkflowError: The document failed validation; no run was created
    """
    options = options or EngineOptions()
    result = validate_workflow(
        document,
        allow_self_loops=options.allow_self_loop_edges,
        registry=registry,
    )
    if not result.valid:
        raise InvalidWorkflowError(result)

    run = WorkflowRun(
        result.workflow,
        options=options,
        store=store,
        registry=registry,
        inputs=inputs,
        run_id=run_id,
        on_event=on_event,
    )
    return await run.run()

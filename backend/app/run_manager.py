"""Run manager: executes runs for the API and keeps track of active ones.

Each run gets a record in workflow_runs before it starts and its final
response (plus one row per step) when it ends. Active runs are kept in
memory by run id so that /runs/{run_id}/cancel can reach them.

A record never stays "running" once its request is over: if the final
response cannot be stored the record is marked failed (PersistenceError),
and if the request task is cancelled mid-run it is closed as aborted.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from flowengine.engine import (
    EngineOptions,
    ExecutionResponse,
    RunState,
    WorkflowDocument,
    WorkflowRun,
    report,
)
from flowengine.errors import Cancelled
from flowengine.logging_config import get_api_logger
from flowengine.store import DocumentStore

from .database import get_session_ctx
from .event_bus import push_event
from .repositories.run import WorkflowRunRepository

logger = get_api_logger()

PERSISTENCE_ERROR_KIND = "PersistenceError"


class RunAlreadyActive(Exception):
    """A run with the requested id is still in progress."""


class RunAlreadyExists(Exception):
    """A finished run with the requested id is already on record."""


def _publish(event_type: str, data: Dict[str, Any]) -> None:
    push_event(data["runId"], event_type, data)


def _interrupted(run: WorkflowRun) -> ExecutionResponse:
    """Response for a run whose request task was cancelled under it."""
    return report(
        run.trace,
        run.scope,
        RunState.ABORTED,
        Cancelled("request cancelled before the run finished"),
        run_id=run.run_id,
        workflow_id=run.workflow.id,
        duration_ms=run.elapsed_ms(),
    )


class RunManager:
    """Registry of in-flight runs, one asyncio task (the request) per run."""

    def __init__(self):
        self._active: Dict[str, WorkflowRun] = {}

    def get_active(self, run_id: str) -> Optional[WorkflowRun]:
        return self._active.get(run_id)

    def is_active(self, run_id: str) -> bool:
        return run_id in self._active

    @property
    def active_count(self) -> int:
        return len(self._active)

    def cancel(self, run_id: str) -> bool:
        """Request cancellation; False if no such run is in progress."""
        run = self._active.get(run_id)
        if run is None:
            return False
        run.cancel()
        return True

    async def execute(
        self,
        workflow: WorkflowDocument,
        options: EngineOptions,
        store: Optional[DocumentStore],
        inputs: Optional[Mapping[str, Any]] = None,
        run_id: Optional[str] = None,
        stored_workflow_id: Optional[str] = None,
    ) -> ExecutionResponse:
        """Run a validated workflow to completion and persist the outcome.

        Raises:
            RunAlreadyActive: run_id names a run that has not finished yet
            RunAlreadyExists: run_id names a run that is already on record
        """
        if run_id and run_id in self._active:
            raise RunAlreadyActive(run_id)

        run = WorkflowRun(
            workflow,
            options=options,
            store=store,
            inputs=inputs,
            run_id=run_id,
            on_event=_publish,
        )

        # Claimed before the first await so a concurrent request with the same id gets 409
        self._active[run.run_id] = run
        try:
            await self._open_record(run, inputs, stored_workflow_id)
            logger.info(f"Run {run.run_id} started for workflow '{workflow.name}'")
            try:
                response = await run.run()
            except asyncio.CancelledError:
                logger.warning(f"Run {run.run_id} interrupted: request task cancelled")
                response = _interrupted(run)
                _publish("run_finished", {
                    "runId": run.run_id,
                    "status": response.status,
                    "steps": response.steps,
                    "durationMs": round(response.duration_ms, 3),
                    "error": response.error.to_dict(),
                })
                await asyncio.shield(self._store_result(response))
                raise
        finally:
            self._active.pop(run.run_id, None)

        await self._store_result(response)
        logger.info(f"Run {run.run_id} {response.status} ({response.steps} steps)")
        return response

    async def _open_record(
        self,
        run: WorkflowRun,
        inputs: Optional[Mapping[str, Any]],
        stored_workflow_id: Optional[str],
    ) -> None:
        try:
            async with get_session_ctx() as session:
                repo = WorkflowRunRepository(session)
                if await repo.get(run.run_id) is not None:
                    raise RunAlreadyExists(run.run_id)
                await repo.create(
                    run_id=run.run_id,
                    workflow_name=run.workflow.name,
                    workflow_id=stored_workflow_id,
                    document_id=run.workflow.id or None,
                    input_data=dict(inputs or {}),
                    options=run.options.to_dict(),
                )
        except IntegrityError as e:
            # Another process inserted the same id between the check and the insert
            raise RunAlreadyExists(run.run_id) from e

    async def _store_result(self, response: ExecutionResponse) -> None:
        """Persist the final response, or close the record as failed if that is impossible."""
        try:
            async with get_session_ctx() as session:
                await WorkflowRunRepository(session).finish(response)
            return
        except SQLAlchemyError as e:
            reason = getattr(e, "orig", None) or e
            logger.error(f"Run {response.run_id}: failed to store run result: {reason}")
            detail = f"failed to store run result: {reason}"

        try:
            async with get_session_ctx() as session:
                await WorkflowRunRepository(session).mark_failed(
                    response.run_id, PERSISTENCE_ERROR_KIND, detail,
                )
        except SQLAlchemyError as e:
            logger.error(f"Run {response.run_id}: failed to mark record failed: {e}")


_manager: Optional[RunManager] = None


def get_run_manager() -> RunManager:
    """FastAPI dependency / accessor for the process-wide RunManager."""
    global _manager
    if _manager is None:
        _manager = RunManager()
    return _manager

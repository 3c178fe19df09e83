"""SQLAlchemy ORM models for the workflow service.

Tables:
- workflows: Stored workflow documents (created via /create-workflow)
- workflow_runs: One record per run, with the final ExecutionResponse
- node_executions: One row per trace entry of a run
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _gen_uuid() -> str:
    return str(uuid.uuid4())


# ─── Workflow Definition ─────────────────────────────────────────────


class WorkflowModel(Base):
    """Persistent workflow document.

    The document is stored as submitted (nodes + edges JSON); it is
    validated again every time it is run.
    """

    __tablename__ = "workflows"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_gen_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    document: Mapped[Dict[str, Any]] = mapped_column(
        JSON, nullable=False, comment="Workflow document JSON: {id, name, nodes, edges}",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    runs: Mapped[List["WorkflowRunModel"]] = relationship(
        back_populates="workflow", cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_workflows_updated_at", "updated_at"),
    )


# ─── Workflow Run ────────────────────────────────────────────────────


class WorkflowRunModel(Base):
    """Record of a single run.

    workflow_id is set only for runs of stored workflows; ad-hoc runs of
    /execute-workflow keep the document's own id in document_id.
    """

    __tablename__ = "workflow_runs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_gen_uuid)
    workflow_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey("workflows.id", ondelete="CASCADE"), nullable=True,
    )
    document_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    workflow_name: Mapped[str] = mapped_column(String(255), nullable=False, default="untitled")
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="running",
        comment="running | completed | failed | aborted",
    )

    input_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON, nullable=True, comment="Run inputs seeded into scope",
    )
    options: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON, nullable=True, comment="EngineOptions used for the run",
    )
    final_scope: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    error_kind: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    error_detail: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_node_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    steps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duration_ms: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    ended_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    workflow: Mapped[Optional["WorkflowModel"]] = relationship(back_populates="runs")
    node_executions: Mapped[List["NodeExecutionModel"]] = relationship(
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="NodeExecutionModel.step",
    )

    __table_args__ = (
        Index("ix_runs_workflow_id", "workflow_id"),
        Index("ix_runs_status", "status"),
        Index("ix_runs_started_at", "started_at"),
    )


# ─── Node Execution ─────────────────────────────────────────────────


class NodeExecutionModel(Base):
    """One executed step of a run (a persisted trace entry)."""

    __tablename__ = "node_executions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_gen_uuid)
    run_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("workflow_runs.id", ondelete="CASCADE"), nullable=False,
    )
    step: Mapped[int] = mapped_column(Integer, nullable=False)
    node_id: Mapped[str] = mapped_column(String(128), nullable=False)
    node_type: Mapped[str] = mapped_column(String(64), nullable=False)
    output_label: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    input_snapshot: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    output_data: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    warnings: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    error: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    duration_ms: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    run: Mapped["WorkflowRunModel"] = relationship(back_populates="node_executions")

    __table_args__ = (
        Index("ix_node_exec_run_id", "run_id"),
        Index("ix_node_exec_node_id", "node_id"),
    )

"""Workflow template, node, edge, generation marker and run ORM models."""

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procflow.domain.enums import NodeType, WorkflowTemplateStatus
from procflow.infrastructure.persistence.database import Base
from procflow.infrastructure.persistence.models.mixins import BaseModel, in_values_check
from procflow.shared.enums import OwnerKind, WorkflowRunStatus

_DEFAULT_ACTIVE = sa.text("is_default AND status = 'active'")


class WorkflowTemplate(BaseModel, Base):
    """Versioned workflow graph owned by one process or one sub-process. Table: workflow_templates."""

    __tablename__ = "workflow_templates"

    name: Mapped[str] = mapped_column(String, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=WorkflowTemplateStatus.ACTIVE.value, index=True
    )
    is_default: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sa.text("false")
    )
    process_template_id: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("process_templates.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    sub_process_template_id: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("sub_process_templates.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    nodes: Mapped[list["WorkflowNode"]] = relationship(
        back_populates="workflow_template",
        cascade="all, delete-orphan",
        order_by="WorkflowNode.sort_order",
        lazy="selectin",
    )
    edges: Mapped[list["WorkflowEdge"]] = relationship(
        back_populates="workflow_template",
        cascade="all, delete-orphan",
        order_by="WorkflowEdge.sort_order",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(
            "(process_template_id IS NULL) <> (sub_process_template_id IS NULL)",
            name="workflow_templates_single_owner_check",
        ),
        in_values_check(
            "status", WorkflowTemplateStatus.values(), "workflow_templates_status_check"
        ),
        Index(
            "uq_workflow_templates_process_default",
            "process_template_id",
            unique=True,
            postgresql_where=_DEFAULT_ACTIVE,
            sqlite_where=_DEFAULT_ACTIVE,
        ),
        Index(
            "uq_workflow_templates_sub_process_default",
            "sub_process_template_id",
            unique=True,
            postgresql_where=_DEFAULT_ACTIVE,
            sqlite_where=_DEFAULT_ACTIVE,
        ),
    )


class WorkflowNode(BaseModel, Base):
    """Graph node. Table: workflow_nodes. node_key is unique per template."""

    __tablename__ = "workflow_nodes"

    workflow_template_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("workflow_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    node_key: Mapped[str] = mapped_column(String, nullable=False)
    node_type: Mapped[str] = mapped_column(String, nullable=False)
    position_x: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    position_y: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    config: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    workflow_template: Mapped[WorkflowTemplate] = relationship(back_populates="nodes")

    __table_args__ = (
        UniqueConstraint(
            "workflow_template_id", "node_key", name="uq_workflow_nodes_template_key"
        ),
        in_values_check("node_type", NodeType.values(), "workflow_nodes_node_type_check"),
    )


class WorkflowEdge(BaseModel, Base):
    """Directed edge between node keys. Table: workflow_edges."""

    __tablename__ = "workflow_edges"

    workflow_template_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("workflow_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    source_key: Mapped[str] = mapped_column(String, nullable=False)
    target_key: Mapped[str] = mapped_column(String, nullable=False)
    source_handle: Mapped[str | None] = mapped_column(String, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    workflow_template: Mapped[WorkflowTemplate] = relationship(back_populates="edges")


class WorkflowGenerationMarker(BaseModel, Base):
    """Durable 'generation attempted' key. Table: workflow_generation_markers."""

    __tablename__ = "workflow_generation_markers"

    owner_kind: Mapped[str] = mapped_column(String, nullable=False)
    owner_id: Mapped[str] = mapped_column(String, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "owner_kind",
            "owner_id",
            "version",
            name="uq_workflow_generation_markers_owner_version",
        ),
        in_values_check(
            "owner_kind", OwnerKind.values(), "workflow_generation_markers_owner_kind_check"
        ),
    )


class WorkflowRun(BaseModel, Base):
    """One execution of a workflow template for a request. Table: workflow_runs."""

    __tablename__ = "workflow_runs"

    workflow_template_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("workflow_templates.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    workflow_version: Mapped[int] = mapped_column(Integer, nullable=False)
    trigger_entity_id: Mapped[str] = mapped_column(
        String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=WorkflowRunStatus.RUNNING.value, index=True
    )
    execution_log: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    context_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    started_by: Mapped[str | None] = mapped_column(String, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        in_values_check("status", WorkflowRunStatus.values(), "workflow_runs_status_check"),
    )

"""Workflow template repository: versioned graphs, default lookup and supersession."""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from procflow.application.dtos.workflow import (
    WorkflowOwner,
    WorkflowTemplateCreate,
    WorkflowTemplateResult,
)
from procflow.domain.enums import NodeType, WorkflowTemplateStatus
from procflow.domain.graph import (
    WorkflowEdge,
    WorkflowGraph,
    WorkflowNode,
    config_to_dict,
    parse_node_config,
)
from procflow.infrastructure.persistence.models import workflow as models
from procflow.shared.enums import OwnerKind


def _owner_column(owner: WorkflowOwner) -> Any:
    match owner.kind:
        case OwnerKind.PROCESS:
            return models.WorkflowTemplate.process_template_id
        case OwnerKind.SUB_PROCESS:
            return models.WorkflowTemplate.sub_process_template_id


def _owner_of(t: models.WorkflowTemplate) -> WorkflowOwner:
    if t.process_template_id is not None:
        return WorkflowOwner.process(t.process_template_id)
    return WorkflowOwner.sub_process(t.sub_process_template_id or "")


def _graph_of(t: models.WorkflowTemplate) -> WorkflowGraph:
    nodes = []
    for n in t.nodes:
        node_type = NodeType(n.node_type)
        nodes.append(
            WorkflowNode(
                key=n.node_key,
                type=node_type,
                config=parse_node_config(node_type, n.config),
                position=(n.position_x, n.position_y),
            )
        )
    edges = [
        WorkflowEdge(source=e.source_key, target=e.target_key, source_handle=e.source_handle)
        for e in t.edges
    ]
    return WorkflowGraph(nodes=tuple(nodes), edges=tuple(edges))


def _to_result(t: models.WorkflowTemplate) -> WorkflowTemplateResult:
    """Map WorkflowTemplate ORM (with nodes and edges) to WorkflowTemplateResult DTO."""
    return WorkflowTemplateResult(
        id=t.id,
        owner=_owner_of(t),
        name=t.name,
        version=t.version,
        status=WorkflowTemplateStatus(t.status),
        is_default=t.is_default,
        graph=_graph_of(t),
        created_at=t.created_at,
    )


class WorkflowTemplateRepository:
    """Workflow template repository. Implements IWorkflowTemplateRepository."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_by_id(self, workflow_template_id: str) -> WorkflowTemplateResult | None:
        result = await self.db.execute(
            select(models.WorkflowTemplate).where(
                models.WorkflowTemplate.id == workflow_template_id
            )
        )
        row = result.scalar_one_or_none()
        return _to_result(row) if row else None

    async def get_default_active(self, owner: WorkflowOwner) -> WorkflowTemplateResult | None:
        result = await self.db.execute(
            select(models.WorkflowTemplate)
            .where(
                _owner_column(owner) == owner.id,
                models.WorkflowTemplate.is_default.is_(True),
                models.WorkflowTemplate.status == WorkflowTemplateStatus.ACTIVE.value,
            )
            .order_by(models.WorkflowTemplate.version.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return _to_result(row) if row else None

    async def latest_version(self, owner: WorkflowOwner) -> int:
        result = await self.db.execute(
            select(func.max(models.WorkflowTemplate.version)).where(
                _owner_column(owner) == owner.id
            )
        )
        return result.scalar_one_or_none() or 0

    async def create(self, data: WorkflowTemplateCreate) -> WorkflowTemplateResult:
        """Persist the template row, then its nodes and edges in graph order."""
        template = models.WorkflowTemplate(
            name=data.name,
            version=data.version,
            status=data.status.value,
            is_default=data.is_default,
            process_template_id=data.owner.id if data.owner.kind == OwnerKind.PROCESS else None,
            sub_process_template_id=(
                data.owner.id if data.owner.kind == OwnerKind.SUB_PROCESS else None
            ),
        )
        template.nodes = [
            models.WorkflowNode(
                node_key=node.key,
                node_type=node.type.value,
                position_x=node.position[0],
                position_y=node.position[1],
                config=config_to_dict(node.config),
                sort_order=i,
            )
            for i, node in enumerate(data.graph.nodes)
        ]
        template.edges = [
            models.WorkflowEdge(
                source_key=edge.source,
                target_key=edge.target,
                source_handle=edge.source_handle,
                sort_order=i,
            )
            for i, edge in enumerate(data.graph.edges)
        ]
        self.db.add(template)
        await self.db.flush()
        await self.db.refresh(template, attribute_names=["created_at"])
        return _to_result(template)

    async def supersede(self, workflow_template_id: str) -> bool:
        result = await self.db.execute(
            update(models.WorkflowTemplate)
            .where(
                models.WorkflowTemplate.id == workflow_template_id,
                models.WorkflowTemplate.status == WorkflowTemplateStatus.ACTIVE.value,
            )
            .values(status=WorkflowTemplateStatus.SUPERSEDED.value, is_default=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

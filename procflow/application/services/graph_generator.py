"""Workflow graph generation from sub-process configuration.

One sub-process compiles to ``start -> block -> end``. Several compile to
``start -> notify(creation) -> fork -> block_i -> join -> notify(closure) -> end``
with fork edges labeled branch-0..N-1 and a join requiring N inputs.

Regeneration is guarded twice: an existing default active template is left
alone unless forced, and a durable (owner, version) marker is recorded
before anything is written, so a retried or concurrent non-forced attempt
reports skipped instead of writing a second version.
"""

from __future__ import annotations

from collections.abc import Sequence

from procflow.application.dtos.templates import SubProcessDefinition
from procflow.application.dtos.workflow import (
    GenerationResult,
    WorkflowOwner,
    WorkflowTemplateCreate,
)
from procflow.application.interfaces.repositories import (
    IGenerationMarkerRepository,
    ITemplateRepository,
    IWorkflowTemplateRepository,
)
from procflow.domain.enums import AssignmentMode, NodeType, NotificationMoment
from procflow.domain.exceptions import (
    ConflictError,
    GraphInvalidError,
    ResourceNotFoundException,
)
from procflow.domain.graph import (
    EndConfig,
    ForkConfig,
    JoinConfig,
    NotificationConfig,
    StandardBlockConfig,
    StartConfig,
    WorkflowEdge,
    WorkflowGraph,
    WorkflowNode,
)
from procflow.shared.enums import EventType, GenerationStatus, OwnerKind
from procflow.shared.telemetry.logging import get_logger
from procflow.shared.telemetry.tracing import add_span_attributes, traced
from procflow.shared.utils.generators import block_node_key, branch_handle

logger = get_logger(__name__)

# Layout only; positions carry no semantics.
_X_CENTER = 250.0
_Y_STEP = 120.0
_BRANCH_SPACING = 220.0

START_KEY = "start"
END_KEY = "end"
FORK_KEY = "fork"
JOIN_KEY = "join"
NOTIFY_CREATION_KEY = "notify-creation"
NOTIFY_CLOSURE_KEY = "notify-closure"


def block_type_for(mode: AssignmentMode, validation_levels: int) -> NodeType:
    """Pick the standard block variant for a sub-process.

    Raises:
        GraphInvalidError: If validation_levels is not 0, 1 or 2.
    """
    match validation_levels:
        case 0:
            if mode == AssignmentMode.DIRECT:
                return NodeType.STANDARD_DIRECT
            return NodeType.STANDARD_MANAGER
        case 1:
            return NodeType.STANDARD_VALIDATION_1
        case 2:
            return NodeType.STANDARD_VALIDATION_2
        case _:
            raise GraphInvalidError(
                f"validation_levels must be 0, 1 or 2, got {validation_levels}",
                reason="invalid_validation_levels",
            )


def block_config_for(
    definition: SubProcessDefinition, branch_index: int | None = None
) -> StandardBlockConfig:
    template = definition.template
    return StandardBlockConfig(
        sub_process_template_id=template.id,
        sub_process_name=template.name,
        assignment_type=template.assignment_mode,
        validation_levels=template.validation_levels,
        target_manager_id=template.target_manager_id,
        target_assignee_id=template.target_assignee_id,
        target_department_id=template.target_department_id,
        target_group_id=template.target_group_id,
        manager_source=template.manager_source,
        notify_on_create=template.notify_on_create,
        notify_on_status_change=template.notify_on_status_change,
        notify_on_close=template.notify_on_close,
        branch_index=branch_index,
    )


def _block_node(
    definition: SubProcessDefinition,
    index: int,
    position: tuple[float, float],
    branch_index: int | None = None,
) -> WorkflowNode:
    template = definition.template
    return WorkflowNode(
        key=block_node_key(index),
        type=block_type_for(template.assignment_mode, template.validation_levels),
        config=block_config_for(definition, branch_index),
        position=position,
    )


def build_graph(definitions: Sequence[SubProcessDefinition]) -> WorkflowGraph:
    """Compile ordered sub-process definitions into a workflow graph (no validation)."""
    count = len(definitions)
    if count == 1:
        nodes = (
            WorkflowNode(START_KEY, NodeType.START, StartConfig(), (_X_CENTER, 0.0)),
            _block_node(definitions[0], 0, (_X_CENTER, _Y_STEP)),
            WorkflowNode(END_KEY, NodeType.END, EndConfig(), (_X_CENTER, 2 * _Y_STEP)),
        )
        edges = (
            WorkflowEdge(START_KEY, block_node_key(0)),
            WorkflowEdge(block_node_key(0), END_KEY),
        )
        return WorkflowGraph(nodes=nodes, edges=edges)

    left = _X_CENTER - (count - 1) * _BRANCH_SPACING / 2
    blocks = [
        _block_node(d, i, (left + i * _BRANCH_SPACING, 3 * _Y_STEP), branch_index=i)
        for i, d in enumerate(definitions)
    ]
    nodes = (
        WorkflowNode(START_KEY, NodeType.START, StartConfig(), (_X_CENTER, 0.0)),
        WorkflowNode(
            NOTIFY_CREATION_KEY,
            NodeType.NOTIFICATION,
            NotificationConfig(NotificationMoment.CREATION, EventType.REQUEST_CREATED),
            (_X_CENTER, _Y_STEP),
        ),
        WorkflowNode(
            FORK_KEY,
            NodeType.FORK,
            ForkConfig(
                branch_labels=tuple(d.template.name for d in definitions),
                sub_process_ids=tuple(d.template.id for d in definitions),
            ),
            (_X_CENTER, 2 * _Y_STEP),
        ),
        *blocks,
        WorkflowNode(
            JOIN_KEY,
            NodeType.JOIN,
            JoinConfig(required_count=count, input_count=count),
            (_X_CENTER, 4 * _Y_STEP),
        ),
        WorkflowNode(
            NOTIFY_CLOSURE_KEY,
            NodeType.NOTIFICATION,
            NotificationConfig(NotificationMoment.CLOSURE, EventType.PROCESS_COMPLETED),
            (_X_CENTER, 5 * _Y_STEP),
        ),
        WorkflowNode(END_KEY, NodeType.END, EndConfig(), (_X_CENTER, 6 * _Y_STEP)),
    )
    edges = [
        WorkflowEdge(START_KEY, NOTIFY_CREATION_KEY),
        WorkflowEdge(NOTIFY_CREATION_KEY, FORK_KEY),
    ]
    for i, block in enumerate(blocks):
        edges.append(WorkflowEdge(FORK_KEY, block.key, branch_handle(i)))
        edges.append(WorkflowEdge(block.key, JOIN_KEY))
    edges += [
        WorkflowEdge(JOIN_KEY, NOTIFY_CLOSURE_KEY),
        WorkflowEdge(NOTIFY_CLOSURE_KEY, END_KEY),
    ]
    return WorkflowGraph(nodes=nodes, edges=tuple(edges))


def check_definitions(definitions: Sequence[SubProcessDefinition]) -> None:
    """Reject empty input and sub-processes without task templates."""
    if not definitions:
        raise GraphInvalidError(
            "Cannot generate a workflow without sub-processes",
            reason="no_sub_processes",
        )
    for definition in definitions:
        if not definition.task_templates:
            raise GraphInvalidError(
                f"Sub-process '{definition.template.name}' has no task templates",
                reason="no_task_templates",
                sub_process_template_id=definition.template.id,
            )


class WorkflowGraphGenerator:
    """Generates, validates and activates workflow templates for one owner at a time."""

    def __init__(
        self,
        template_repo: ITemplateRepository,
        workflow_repo: IWorkflowTemplateRepository,
        marker_repo: IGenerationMarkerRepository,
    ) -> None:
        self.template_repo = template_repo
        self.workflow_repo = workflow_repo
        self.marker_repo = marker_repo

    async def load_definitions(self, owner: WorkflowOwner) -> list[SubProcessDefinition]:
        """Load the owner's active sub-processes with their task templates, in order.

        Raises:
            ResourceNotFoundException: If the owning template does not exist.
        """
        match owner.kind:
            case OwnerKind.PROCESS:
                if await self.template_repo.get_process(owner.id) is None:
                    raise ResourceNotFoundException("process_template", owner.id)
                templates = [
                    t
                    for t in await self.template_repo.list_sub_processes(owner.id)
                    if t.is_active
                ]
            case OwnerKind.SUB_PROCESS:
                template = await self.template_repo.get_sub_process(owner.id)
                if template is None:
                    raise ResourceNotFoundException("sub_process_template", owner.id)
                templates = [template]
        definitions = []
        for template in templates:
            task_templates = await self.template_repo.list_task_templates(template.id)
            definitions.append(SubProcessDefinition(template, tuple(task_templates)))
        return definitions

    async def _default_name(
        self, owner: WorkflowOwner, definitions: Sequence[SubProcessDefinition]
    ) -> str:
        if owner.kind == OwnerKind.PROCESS:
            process = await self.template_repo.get_process(owner.id)
            if process is not None:
                return f"{process.name} workflow"
        return f"{definitions[0].template.name} workflow"

    @traced("graph_generator.generate")
    async def generate(
        self,
        owner: WorkflowOwner,
        definitions: Sequence[SubProcessDefinition] | None = None,
        *,
        force: bool = False,
        dry_run: bool = False,
        name: str | None = None,
    ) -> GenerationResult:
        """Generate the owner's workflow template.

        Args:
            owner: Process or sub-process the template is bound to.
            definitions: Ordered sub-process definitions; loaded from the
                template repository when omitted.
            force: Supersede an existing default and write version + 1.
            dry_run: Validate and report the outcome without writing.
            name: Template name; derived from the owner when omitted.

        Returns:
            GenerationResult with status created, updated or skipped.

        Raises:
            GraphInvalidError: If a sub-process has no task templates or the
                generated graph fails structural validation.
            ConflictError: If the previous default was retired concurrently.
        """
        add_span_attributes(owner_kind=owner.kind.value, owner_id=owner.id)
        # An existing default is left untouched whatever the current definitions look like.
        existing = await self.workflow_repo.get_default_active(owner)
        if existing is not None and not force:
            return GenerationResult(
                owner=owner,
                status=GenerationStatus.SKIPPED,
                message="Default workflow already exists",
                workflow_template_id=existing.id,
                version=existing.version,
            )

        if definitions is None:
            definitions = await self.load_definitions(owner)
        check_definitions(definitions)
        graph = build_graph(definitions)
        graph.validate()

        version = await self.workflow_repo.latest_version(owner) + 1
        if not force and await self.marker_repo.has_attempt(owner, version):
            return self._already_attempted(owner, version)

        outcome = GenerationStatus.UPDATED if existing is not None else GenerationStatus.CREATED
        if dry_run:
            return GenerationResult(
                owner=owner,
                status=outcome,
                message=f"Dry run: would write version {version}",
                version=version,
            )

        recorded = await self.marker_repo.record_attempt(owner, version)
        if not recorded and not force:
            return self._already_attempted(owner, version)

        if existing is not None and not await self.workflow_repo.supersede(existing.id):
            raise ConflictError("workflow_template", existing.id, "active")

        created = await self.workflow_repo.create(
            WorkflowTemplateCreate(
                owner=owner,
                name=name or await self._default_name(owner, definitions),
                version=version,
                graph=graph,
            )
        )
        logger.info(
            "Workflow %s v%d %s for %s %s (%d sub-process(es))",
            created.id,
            version,
            outcome.value,
            owner.kind.value,
            owner.id,
            len(definitions),
        )
        return GenerationResult(
            owner=owner,
            status=outcome,
            message=f"Workflow version {version} {outcome.value}",
            workflow_template_id=created.id,
            version=version,
        )

    @staticmethod
    def _already_attempted(owner: WorkflowOwner, version: int) -> GenerationResult:
        logger.info(
            "Generation of %s %s v%d already attempted; skipping",
            owner.kind.value,
            owner.id,
            version,
        )
        return GenerationResult(
            owner=owner,
            status=GenerationStatus.SKIPPED,
            message="Generation already attempted",
            version=version,
        )

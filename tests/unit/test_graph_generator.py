"""Tests for workflow graph generation (fork/join symmetry, idempotent regeneration)."""

import pytest
from fakes import World, process_template, sub_process_template, task_template

from procflow.application.dtos.workflow import WorkflowOwner
from procflow.application.services.graph_generator import block_type_for, build_graph
from procflow.domain.enums import AssignmentMode, NodeType, WorkflowTemplateStatus
from procflow.domain.exceptions import GraphInvalidError, ResourceNotFoundException
from procflow.domain.graph import ForkConfig, JoinConfig
from procflow.shared.enums import GenerationStatus

OWNER = WorkflowOwner.process("proc-1")


def _seed(world: World, count: int) -> None:
    world.templates.add_process(process_template())
    for i in range(count):
        world.templates.add_sub_process(
            sub_process_template(f"sp-{i}", order_index=i, assignee_id="alice"),
            [task_template(f"tt-{i}", f"sp-{i}")],
        )


@pytest.mark.parametrize("count", [2, 3, 5])
async def test_many_sub_processes_yield_one_fork_and_one_join(world: World, count: int) -> None:
    """N > 1 sub-processes: one fork with N labeled edges, one join with required_count N."""
    _seed(world, count)
    definitions = await world.engine().generator.load_definitions(OWNER)
    graph = build_graph(definitions)
    graph.validate()

    forks = graph.nodes_of_type(NodeType.FORK)
    joins = graph.nodes_of_type(NodeType.JOIN)
    assert len(forks) == 1
    assert len(joins) == 1
    handles = sorted(e.source_handle for e in graph.outgoing(forks[0].key))
    assert handles == sorted(f"branch-{i}" for i in range(count))
    assert isinstance(joins[0].config, JoinConfig)
    assert joins[0].config.required_count == count
    assert isinstance(forks[0].config, ForkConfig)
    assert forks[0].config.sub_process_ids == tuple(f"sp-{i}" for i in range(count))
    assert len(graph.standard_blocks()) == count


async def test_single_sub_process_has_no_fork_or_join(world: World) -> None:
    _seed(world, 1)
    definitions = await world.engine().generator.load_definitions(OWNER)
    graph = build_graph(definitions)
    graph.validate()
    assert graph.nodes_of_type(NodeType.FORK, NodeType.JOIN) == []
    assert [n.type for n in graph.topological_order()] == [
        NodeType.START,
        NodeType.STANDARD_DIRECT,
        NodeType.END,
    ]


def test_block_type_for_variants() -> None:
    assert block_type_for(AssignmentMode.DIRECT, 0) == NodeType.STANDARD_DIRECT
    assert block_type_for(AssignmentMode.MANAGER, 0) == NodeType.STANDARD_MANAGER
    assert block_type_for(AssignmentMode.DIRECT, 1) == NodeType.STANDARD_VALIDATION_1
    assert block_type_for(AssignmentMode.MANAGER, 2) == NodeType.STANDARD_VALIDATION_2
    with pytest.raises(GraphInvalidError):
        block_type_for(AssignmentMode.DIRECT, 3)


async def test_generate_creates_default_active_version_one(world: World) -> None:
    _seed(world, 2)
    result = await world.engine().generator.generate(OWNER)
    assert result.status == GenerationStatus.CREATED
    assert result.version == 1
    template = await world.workflows.get_default_active(OWNER)
    assert template is not None
    assert template.id == result.workflow_template_id
    assert template.name == "Onboarding workflow"


async def test_regeneration_without_force_is_skipped_and_unchanged(world: World) -> None:
    """Two non-forced runs on an owner with a default both skip and leave the graph as is."""
    _seed(world, 2)
    generator = world.engine().generator
    await generator.generate(OWNER)
    before = (await world.workflows.get_default_active(OWNER)).graph.to_dict()

    first = await generator.generate(OWNER)
    second = await generator.generate(OWNER)

    assert first.status == GenerationStatus.SKIPPED
    assert second.status == GenerationStatus.SKIPPED
    assert len(world.workflows.for_owner(OWNER)) == 1
    assert (await world.workflows.get_default_active(OWNER)).graph.to_dict() == before


async def test_existing_default_is_skipped_even_when_definitions_became_invalid(
    world: World,
) -> None:
    _seed(world, 1)
    generator = world.engine().generator
    created = await generator.generate(OWNER)
    world.templates.add_sub_process(sub_process_template("sp-new", order_index=5), [])

    result = await generator.generate(OWNER)

    assert result.status == GenerationStatus.SKIPPED
    assert result.workflow_template_id == created.workflow_template_id
    assert len(world.workflows.for_owner(OWNER)) == 1

    with pytest.raises(GraphInvalidError) as exc_info:
        await generator.generate(OWNER, force=True)
    assert exc_info.value.reason == "no_task_templates"


async def test_force_supersedes_previous_default(world: World) -> None:
    _seed(world, 1)
    generator = world.engine().generator
    first = await generator.generate(OWNER)
    second = await generator.generate(OWNER, force=True)

    assert second.status == GenerationStatus.UPDATED
    assert second.version == 2
    old = await world.workflows.get_by_id(first.workflow_template_id)
    assert old.status == WorkflowTemplateStatus.SUPERSEDED
    assert not old.is_default
    assert (await world.workflows.get_default_active(OWNER)).version == 2


async def test_dry_run_writes_nothing(world: World) -> None:
    _seed(world, 2)
    result = await world.engine().generator.generate(OWNER, dry_run=True)
    assert result.status == GenerationStatus.CREATED
    assert result.workflow_template_id is None
    assert world.workflows.rows == {}
    assert world.markers.markers == set()


async def test_recorded_marker_skips_retry(world: World) -> None:
    """An attempt recorded before a crash is not repeated for the same version."""
    _seed(world, 1)
    await world.markers.record_attempt(OWNER, 1)
    result = await world.engine().generator.generate(OWNER)
    assert result.status == GenerationStatus.SKIPPED
    assert result.message == "Generation already attempted"
    assert world.workflows.rows == {}


async def test_sub_process_without_task_templates_is_rejected(world: World) -> None:
    world.templates.add_process(process_template())
    world.templates.add_sub_process(sub_process_template("sp-empty"), [])
    with pytest.raises(GraphInvalidError) as exc_info:
        await world.engine().generator.generate(OWNER)
    assert exc_info.value.reason == "no_task_templates"
    assert world.workflows.rows == {}


async def test_unknown_owner_raises_not_found(world: World) -> None:
    with pytest.raises(ResourceNotFoundException):
        await world.engine().generator.generate(WorkflowOwner.process("missing"))


async def test_sub_process_owner_gets_single_block(world: World) -> None:
    _seed(world, 2)
    owner = WorkflowOwner.sub_process("sp-1")
    result = await world.engine().generator.generate(owner)
    template = await world.workflows.get_by_id(result.workflow_template_id)
    assert [c.sub_process_template_id for _, c in template.graph.standard_blocks()] == ["sp-1"]
    assert template.name == "Sp 1 workflow"


async def test_inactive_sub_processes_are_left_out(world: World) -> None:
    _seed(world, 2)
    world.templates.add_sub_process(
        sub_process_template("sp-off", order_index=9, is_active=False),
        [task_template("tt-off", "sp-off")],
    )
    definitions = await world.engine().generator.load_definitions(OWNER)
    assert [d.template.id for d in definitions] == ["sp-0", "sp-1"]

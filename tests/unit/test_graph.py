"""Tests for the workflow graph model and its structural validation."""

import pytest

from procflow.domain.enums import AssignmentMode, NodeType, NotificationMoment
from procflow.domain.exceptions import GraphInvalidError
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
    config_type_for,
    parse_node_config,
)


def _block(key: str, sp_id: str) -> WorkflowNode:
    return WorkflowNode(
        key, NodeType.STANDARD_DIRECT, StandardBlockConfig(sp_id, sp_id.upper())
    )


def _linear() -> WorkflowGraph:
    return WorkflowGraph(
        nodes=(
            WorkflowNode("start", NodeType.START, StartConfig()),
            _block("b", "sp-1"),
            WorkflowNode("end", NodeType.END, EndConfig()),
        ),
        edges=(WorkflowEdge("start", "b"), WorkflowEdge("b", "end")),
    )


def _forked(handles: tuple[str, str] = ("branch-0", "branch-1"), required: int = 2) -> WorkflowGraph:
    return WorkflowGraph(
        nodes=(
            WorkflowNode("start", NodeType.START, StartConfig()),
            WorkflowNode("fork", NodeType.FORK, ForkConfig(("A", "B"), ("sp-a", "sp-b"))),
            _block("a", "sp-a"),
            _block("b", "sp-b"),
            WorkflowNode("join", NodeType.JOIN, JoinConfig(required, required)),
            WorkflowNode("end", NodeType.END, EndConfig()),
        ),
        edges=(
            WorkflowEdge("start", "fork"),
            WorkflowEdge("fork", "a", handles[0]),
            WorkflowEdge("fork", "b", handles[1]),
            WorkflowEdge("a", "join"),
            WorkflowEdge("b", "join"),
            WorkflowEdge("join", "end"),
        ),
    )


def test_every_node_type_has_a_config_type() -> None:
    for node_type in NodeType:
        assert config_type_for(node_type) is not None


def test_linear_graph_validates_and_orders() -> None:
    graph = _linear()
    graph.validate()
    assert [n.key for n in graph.topological_order()] == ["start", "b", "end"]
    assert [n.key for n, _ in graph.standard_blocks()] == ["b"]


def test_forked_graph_pairs_fork_with_join() -> None:
    graph = _forked()
    graph.validate()
    pairs = graph.fork_join_pairs()
    assert [(f.key, j.key) for f, j in pairs] == [("fork", "join")]


def test_cycle_is_rejected() -> None:
    graph = WorkflowGraph(
        nodes=(
            WorkflowNode("start", NodeType.START, StartConfig()),
            _block("a", "sp-a"),
            _block("b", "sp-b"),
            WorkflowNode("end", NodeType.END, EndConfig()),
        ),
        edges=(
            WorkflowEdge("start", "a"),
            WorkflowEdge("a", "b"),
            WorkflowEdge("b", "a"),
            WorkflowEdge("b", "end"),
        ),
    )
    with pytest.raises(GraphInvalidError) as exc_info:
        graph.validate()
    assert exc_info.value.reason == "cycle"
    assert exc_info.value.error_code == "GRAPH_INVALID"


def test_missing_start_is_rejected() -> None:
    graph = WorkflowGraph(nodes=(WorkflowNode("end", NodeType.END, EndConfig()),))
    with pytest.raises(GraphInvalidError) as exc_info:
        graph.validate()
    assert exc_info.value.reason == "missing_start"


def test_missing_end_is_rejected() -> None:
    graph = WorkflowGraph(nodes=(WorkflowNode("start", NodeType.START, StartConfig()),))
    with pytest.raises(GraphInvalidError) as exc_info:
        graph.validate()
    assert exc_info.value.reason == "missing_end"


def test_disconnected_node_is_rejected() -> None:
    graph = WorkflowGraph(
        nodes=(*_linear().nodes, _block("orphan", "sp-2")),
        edges=_linear().edges,
    )
    with pytest.raises(GraphInvalidError) as exc_info:
        graph.validate()
    assert exc_info.value.reason == "disconnected"
    assert exc_info.value.details["node_id"] == "orphan"


def test_duplicate_node_key_is_rejected() -> None:
    graph = WorkflowGraph(nodes=(*_linear().nodes, _block("b", "sp-2")), edges=_linear().edges)
    with pytest.raises(GraphInvalidError) as exc_info:
        graph.validate()
    assert exc_info.value.reason == "duplicate_node"


def test_config_mismatch_is_rejected() -> None:
    graph = WorkflowGraph(
        nodes=(
            WorkflowNode("start", NodeType.START, EndConfig()),
            WorkflowNode("end", NodeType.END, EndConfig()),
        ),
        edges=(WorkflowEdge("start", "end"),),
    )
    with pytest.raises(GraphInvalidError) as exc_info:
        graph.validate()
    assert exc_info.value.reason == "config_mismatch"


def test_fork_edges_must_be_labeled() -> None:
    with pytest.raises(GraphInvalidError) as exc_info:
        _forked(handles=("left", "right")).validate()
    assert exc_info.value.reason == "fork_unlabeled"


def test_join_required_count_must_match_branches() -> None:
    with pytest.raises(GraphInvalidError) as exc_info:
        _forked(required=3).validate()
    assert exc_info.value.reason == "fork_join_mismatch"
    assert exc_info.value.details["node_id"] == "join"


def test_parse_node_config_coerces_enums_and_ignores_unknown_keys() -> None:
    config = parse_node_config(
        "sub_process_standard_manager",
        {
            "sub_process_template_id": "sp-1",
            "sub_process_name": "IT",
            "assignment_type": "manager",
            "label": "ignored",
        },
    )
    assert isinstance(config, StandardBlockConfig)
    assert config.assignment_type == AssignmentMode.MANAGER

    notification = parse_node_config(NodeType.NOTIFICATION, {"moment": "closure"})
    assert isinstance(notification, NotificationConfig)
    assert notification.moment == NotificationMoment.CLOSURE


def test_parse_node_config_missing_required_key_raises() -> None:
    with pytest.raises(GraphInvalidError) as exc_info:
        parse_node_config(NodeType.STANDARD_DIRECT, {"sub_process_name": "IT"})
    assert exc_info.value.reason == "config_mismatch"


def test_graph_survives_serialization() -> None:
    graph = _forked()
    assert WorkflowGraph.from_dict(graph.to_dict()) == graph

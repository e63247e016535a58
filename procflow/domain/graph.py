"""Workflow graph model: tagged node variants, edges, and structural validation.

A node is a (key, NodeType, config) triple where the config dataclass is
fixed by the node type. Parsing and serializing configs dispatch with an
exhaustive match over NodeType, so adding a node type is a single change
that type checkers flag everywhere it is not handled.

Graphs are immutable values. validate() enforces the structural
invariants a template must satisfy before it can be activated: one start,
at least one end, no cycles, every non-start node reachable through an
incoming edge, fork edges labeled branch-0..N-1 and each fork paired with
one join whose required_count is N.
"""

from __future__ import annotations

import dataclasses
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeAlias, assert_never

from procflow.domain.enums import (
    AssignmentMode,
    ManagerSource,
    NodeType,
    NotificationMoment,
    TaskStatus,
    ValidationLevelType,
)
from procflow.domain.exceptions import GraphInvalidError
from procflow.shared.enums import EventType
from procflow.shared.utils.generators import branch_handle


@dataclass(frozen=True)
class StartConfig:
    trigger: str = "on_create"


@dataclass(frozen=True)
class EndConfig:
    final_status: str = "completed"


@dataclass(frozen=True)
class TaskNodeConfig:
    title: str = ""
    description: str | None = None
    assignee_id: str | None = None
    priority: str = "medium"


@dataclass(frozen=True)
class ValidationNodeConfig:
    validator_type: ValidationLevelType = ValidationLevelType.MANAGER
    validator_id: str | None = None


@dataclass(frozen=True)
class NotificationConfig:
    moment: NotificationMoment = NotificationMoment.CREATION
    event_type: EventType = EventType.REQUEST_CREATED


@dataclass(frozen=True)
class ConditionConfig:
    field: str = ""
    operator: str = "equals"
    value: Any = None


@dataclass(frozen=True)
class StandardBlockConfig:
    """Wire contract between the generator output and the block executor input."""

    sub_process_template_id: str
    sub_process_name: str
    assignment_type: AssignmentMode = AssignmentMode.DIRECT
    validation_levels: int = 0
    target_manager_id: str | None = None
    target_assignee_id: str | None = None
    target_department_id: str | None = None
    target_group_id: str | None = None
    manager_source: ManagerSource | None = None
    notify_on_create: bool = True
    notify_on_status_change: bool = True
    notify_on_close: bool = True
    branch_index: int | None = None
    initial_status: TaskStatus | None = None


@dataclass(frozen=True)
class ForkConfig:
    branch_labels: tuple[str, ...] = ()
    sub_process_ids: tuple[str, ...] = ()
    branch_mode: str = "dynamic"


@dataclass(frozen=True)
class JoinConfig:
    required_count: int = 0
    input_count: int = 0
    join_type: str = "dynamic"


@dataclass(frozen=True)
class StatusChangeConfig:
    new_status: TaskStatus = TaskStatus.IN_PROGRESS


@dataclass(frozen=True)
class AssignmentConfig:
    assignee_type: str = "user"
    assignee_id: str | None = None


NodeConfig: TypeAlias = (
    StartConfig
    | EndConfig
    | TaskNodeConfig
    | ValidationNodeConfig
    | NotificationConfig
    | ConditionConfig
    | StandardBlockConfig
    | ForkConfig
    | JoinConfig
    | StatusChangeConfig
    | AssignmentConfig
)


def config_type_for(node_type: NodeType) -> type:
    """Return the config dataclass a node of node_type must carry."""
    match node_type:
        case NodeType.START:
            return StartConfig
        case NodeType.END:
            return EndConfig
        case NodeType.TASK:
            return TaskNodeConfig
        case NodeType.VALIDATION:
            return ValidationNodeConfig
        case NodeType.NOTIFICATION:
            return NotificationConfig
        case NodeType.CONDITION:
            return ConditionConfig
        case (
            NodeType.STANDARD_DIRECT
            | NodeType.STANDARD_MANAGER
            | NodeType.STANDARD_VALIDATION_1
            | NodeType.STANDARD_VALIDATION_2
        ):
            return StandardBlockConfig
        case NodeType.FORK:
            return ForkConfig
        case NodeType.JOIN:
            return JoinConfig
        case NodeType.STATUS_CHANGE:
            return StatusChangeConfig
        case NodeType.ASSIGNMENT:
            return AssignmentConfig
        case _:
            assert_never(node_type)


# Enum-typed config fields are coerced from their stored string values.
_ENUM_FIELDS: dict[str, type[Enum]] = {
    "validator_type": ValidationLevelType,
    "moment": NotificationMoment,
    "event_type": EventType,
    "assignment_type": AssignmentMode,
    "manager_source": ManagerSource,
    "initial_status": TaskStatus,
    "new_status": TaskStatus,
}


def parse_node_config(node_type: NodeType | str, data: dict[str, Any] | None) -> NodeConfig:
    """Build the typed config for node_type from a stored JSON blob.

    Unknown keys (e.g. UI labels) are ignored; missing keys take defaults.

    Raises:
        GraphInvalidError: If required keys are missing or a value is not
            valid for its field.
    """
    node_type = NodeType(node_type)
    config_cls = config_type_for(node_type)
    known = {f.name for f in dataclasses.fields(config_cls)}
    kwargs: dict[str, Any] = {}
    for key, value in (data or {}).items():
        if key not in known:
            continue
        if key in _ENUM_FIELDS and value is not None:
            value = _ENUM_FIELDS[key](value)
        elif isinstance(value, list):
            value = tuple(value)
        kwargs[key] = value
    try:
        return config_cls(**kwargs)
    except (TypeError, ValueError) as e:
        raise GraphInvalidError(
            f"Invalid config for {node_type.value} node: {e}",
            reason="config_mismatch",
        ) from e


def config_to_dict(config: NodeConfig) -> dict[str, Any]:
    """Serialize a node config to a JSON-compatible dict."""
    out: dict[str, Any] = {}
    for f in dataclasses.fields(config):
        value = getattr(config, f.name)
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, tuple):
            value = list(value)
        out[f.name] = value
    return out


@dataclass(frozen=True)
class WorkflowNode:
    """A graph node. key is unique within its graph; position is layout only."""

    key: str
    type: NodeType
    config: NodeConfig
    position: tuple[float, float] = (0.0, 0.0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "type": self.type.value,
            "position": {"x": self.position[0], "y": self.position[1]},
            "config": config_to_dict(self.config),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowNode:
        node_type = NodeType(data["type"])
        position = data.get("position") or {}
        return cls(
            key=data["key"],
            type=node_type,
            config=parse_node_config(node_type, data.get("config")),
            position=(float(position.get("x", 0.0)), float(position.get("y", 0.0))),
        )


@dataclass(frozen=True)
class WorkflowEdge:
    source: str
    target: str
    source_handle: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "source_handle": self.source_handle,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowEdge:
        return cls(
            source=data["source"],
            target=data["target"],
            source_handle=data.get("source_handle"),
        )


@dataclass(frozen=True)
class WorkflowGraph:
    """Immutable node/edge set of one workflow template."""

    nodes: tuple[WorkflowNode, ...] = ()
    edges: tuple[WorkflowEdge, ...] = ()
    _index: dict[str, WorkflowNode] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        # Duplicate keys are reported by validate(); the index keeps the first.
        index: dict[str, WorkflowNode] = {}
        for node in self.nodes:
            index.setdefault(node.key, node)
        object.__setattr__(self, "_index", index)

    def node(self, key: str) -> WorkflowNode:
        try:
            return self._index[key]
        except KeyError:
            raise GraphInvalidError(
                f"Unknown node: {key}", reason="unknown_node", node_id=key
            ) from None

    def outgoing(self, key: str) -> list[WorkflowEdge]:
        return [e for e in self.edges if e.source == key]

    def incoming(self, key: str) -> list[WorkflowEdge]:
        return [e for e in self.edges if e.target == key]

    def nodes_of_type(self, *types: NodeType) -> list[WorkflowNode]:
        return [n for n in self.nodes if n.type in types]

    @property
    def start(self) -> WorkflowNode:
        starts = self.nodes_of_type(NodeType.START)
        if len(starts) != 1:
            raise GraphInvalidError(
                f"Graph must have exactly one start node, found {len(starts)}",
                reason="missing_start" if not starts else "multiple_start",
            )
        return starts[0]

    def topological_order(self) -> list[WorkflowNode]:
        """Return nodes in a deterministic topological order (Kahn, ties by declaration order).

        Raises:
            GraphInvalidError: If the graph has a cycle.
        """
        position = {node.key: i for i, node in enumerate(self.nodes)}
        in_degree = {node.key: 0 for node in self.nodes}
        for edge in self.edges:
            if edge.target in in_degree:
                in_degree[edge.target] += 1
        ready = deque(sorted((k for k, d in in_degree.items() if d == 0), key=position.get))
        ordered: list[WorkflowNode] = []
        while ready:
            key = ready.popleft()
            ordered.append(self._index[key])
            released = []
            for edge in self.outgoing(key):
                if edge.target not in in_degree:
                    continue
                in_degree[edge.target] -= 1
                if in_degree[edge.target] == 0:
                    released.append(edge.target)
            ready.extend(sorted(released, key=position.get))
        if len(ordered) != len(in_degree):
            stuck = next(k for k, d in in_degree.items() if d > 0)
            raise GraphInvalidError(
                "Workflow graph contains a cycle", reason="cycle", node_id=stuck
            )
        return ordered

    def standard_blocks(self) -> list[tuple[WorkflowNode, StandardBlockConfig]]:
        """Return standard block nodes with their configs, in execution order."""
        blocks = []
        for node in self.topological_order():
            if node.type.is_standard_block and isinstance(node.config, StandardBlockConfig):
                blocks.append((node, node.config))
        return blocks

    def fork_join_pairs(self) -> list[tuple[WorkflowNode, WorkflowNode]]:
        """Return (fork, join) pairs. Raises GraphInvalidError for unpaired forks."""
        return [(fork, self._paired_join(fork)) for fork in self.nodes_of_type(NodeType.FORK)]

    def _paired_join(self, fork: WorkflowNode) -> WorkflowNode:
        """Find the join every branch of fork converges on (nested fork/join aware)."""
        branches = self.outgoing(fork.key)
        if not branches:
            raise GraphInvalidError(
                "Fork has no outgoing branches", reason="fork_unpaired", node_id=fork.key
            )
        found: set[str] = set()
        for edge in branches:
            joins = self._first_joins_from(edge.target)
            if not joins:
                raise GraphInvalidError(
                    "Fork branch never reaches a join",
                    reason="fork_unpaired",
                    node_id=fork.key,
                    branch=edge.source_handle,
                )
            found |= joins
        if len(found) != 1:
            raise GraphInvalidError(
                "Fork branches converge on different joins",
                reason="fork_unpaired",
                node_id=fork.key,
                joins=sorted(found),
            )
        return self._index[found.pop()]

    def _first_joins_from(self, key: str) -> set[str]:
        # Iterative walk carrying nesting depth; a join at depth 0 closes this fork.
        joins: set[str] = set()
        visited: set[tuple[str, int]] = set()
        stack: list[tuple[str, int]] = [(key, 0)]
        while stack:
            current, depth = stack.pop()
            if (current, depth) in visited:
                continue
            visited.add((current, depth))
            node = self._index.get(current)
            if node is None:
                continue
            if node.type == NodeType.JOIN:
                if depth == 0:
                    joins.add(current)
                    continue
                depth -= 1
            elif node.type == NodeType.FORK:
                depth += 1
            for edge in self.outgoing(current):
                stack.append((edge.target, depth))
        return joins

    def validate(self) -> None:
        """Check structural invariants; raise GraphInvalidError on the first violation."""
        seen: set[str] = set()
        for node in self.nodes:
            if node.key in seen:
                raise GraphInvalidError(
                    f"Duplicate node key: {node.key}",
                    reason="duplicate_node",
                    node_id=node.key,
                )
            seen.add(node.key)
            expected = config_type_for(node.type)
            if not isinstance(node.config, expected):
                raise GraphInvalidError(
                    f"Node {node.key} of type {node.type.value} carries "
                    f"{type(node.config).__name__}, expected {expected.__name__}",
                    reason="config_mismatch",
                    node_id=node.key,
                )

        start = self.start
        if not self.nodes_of_type(NodeType.END):
            raise GraphInvalidError("Graph has no end node", reason="missing_end")

        for edge in self.edges:
            for key in (edge.source, edge.target):
                if key not in self._index:
                    raise GraphInvalidError(
                        f"Edge references unknown node: {key}",
                        reason="unknown_node",
                        node_id=key,
                    )

        if self.incoming(start.key):
            raise GraphInvalidError(
                "Start node must not have incoming edges",
                reason="start_has_incoming",
                node_id=start.key,
            )
        for node in self.nodes:
            if node.key != start.key and not self.incoming(node.key):
                raise GraphInvalidError(
                    f"Node {node.key} has no incoming edge",
                    reason="disconnected",
                    node_id=node.key,
                )

        self.topological_order()
        self._validate_fork_join()

    def _validate_fork_join(self) -> None:
        paired_joins: set[str] = set()
        for fork in self.nodes_of_type(NodeType.FORK):
            branches = self.outgoing(fork.key)
            count = len(branches)
            handles = sorted(e.source_handle or "" for e in branches)
            if handles != sorted(branch_handle(i) for i in range(count)):
                raise GraphInvalidError(
                    "Fork edges must be labeled branch-0..branch-N-1",
                    reason="fork_unlabeled",
                    node_id=fork.key,
                    handles=handles,
                )
            config = fork.config
            assert isinstance(config, ForkConfig)
            if config.sub_process_ids and len(config.sub_process_ids) != count:
                raise GraphInvalidError(
                    f"Fork lists {len(config.sub_process_ids)} sub-processes "
                    f"but has {count} branches",
                    reason="fork_join_mismatch",
                    node_id=fork.key,
                )
            join = self._paired_join(fork)
            join_config = join.config
            assert isinstance(join_config, JoinConfig)
            if join_config.required_count != count:
                raise GraphInvalidError(
                    f"Join required_count {join_config.required_count} does not match "
                    f"{count} fork branches",
                    reason="fork_join_mismatch",
                    node_id=join.key,
                )
            if join.key in paired_joins:
                raise GraphInvalidError(
                    "Join is paired with more than one fork",
                    reason="join_unpaired",
                    node_id=join.key,
                )
            paired_joins.add(join.key)
        for join in self.nodes_of_type(NodeType.JOIN):
            if join.key not in paired_joins:
                raise GraphInvalidError(
                    "Join has no paired fork", reason="join_unpaired", node_id=join.key
                )

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowGraph:
        return cls(
            nodes=tuple(WorkflowNode.from_dict(n) for n in data.get("nodes", [])),
            edges=tuple(WorkflowEdge.from_dict(e) for e in data.get("edges", [])),
        )

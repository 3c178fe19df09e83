"""Workflow Document Model and validation

Turns a submitted JSON workflow document into an immutable WorkflowDocument,
or reports why it cannot be run.

Key Components:
- NodeConfig / EdgeDefinition / WorkflowDocument: frozen, normalized model
- ValidationError / ValidationResult: structured issues (errors + warnings)
- validate_workflow: the single entry point used before every run

Checks performed:
- document shape (object with node and edge lists)
- unique node ids, registered node types, per-type config schema
- exactly one start node
- edge endpoints exist, no self-loops unless allowed
- edge labels are ones the source node can emit, one edge per label
- nodes unreachable from start (warning only)

A validated document serializes back with to_dict(); validating that output
again yields an equal result.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ..nodes.registry import DEFAULT_LABEL, NodeRegistry, default_registry

logger = logging.getLogger(__name__)

START_NODE_TYPE = "start"

# Error kinds
MALFORMED_DOCUMENT = "MalformedDocument"
MISSING_START = "MissingStart"
MULTIPLE_START = "MultipleStart"
DANGLING_EDGE = "DanglingEdge"
BAD_CONFIG = "BadConfig"
DUPLICATE_ID = "DuplicateId"
UNKNOWN_NODE_TYPE = "UnknownNodeType"
SELF_LOOP = "SelfLoop"
INVALID_EDGE_LABEL = "InvalidEdgeLabel"
AMBIGUOUS_BRANCH = "AmbiguousBranch"

# Warning kinds
UNREACHABLE_NODE = "UnreachableNode"


@dataclass(frozen=True)
class NodeConfig:
    """A single workflow node.

    Attributes:
        id: Unique node identifier
        type: Node type (must be registered in the node registry)
        config: Type-specific configuration, defaults filled in
    """

    id: str
    type: str
    config: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type, "config": self.config}


@dataclass(frozen=True)
class EdgeDefinition:
    """Directed edge, eligible when its source emits the output label.

    Attributes:
        source: Source node ID ("from" on the wire)
        target: Target node ID ("to" on the wire)
        output: Branch label; "default" unless the source branches
    """

    source: str
    target: str
    output: str = DEFAULT_LABEL

    def to_dict(self) -> Dict[str, Any]:
        return {"from": self.source, "to": self.target, "output": self.output}


@dataclass(frozen=True)
class WorkflowDocument:
    """Validated, immutable workflow document.

    Only validate_workflow() should build these for execution; the walker
    trusts the invariants checked there.
    """

    id: str
    name: str
    nodes: Tuple[NodeConfig, ...]
    edges: Tuple[EdgeDefinition, ...]

    @cached_property
    def _nodes_by_id(self) -> Dict[str, NodeConfig]:
        return {node.id: node for node in self.nodes}

    @cached_property
    def _edges_by_source(self) -> Dict[str, List[EdgeDefinition]]:
        edges: Dict[str, List[EdgeDefinition]] = {}
        for edge in self.edges:
            edges.setdefault(edge.source, []).append(edge)
        return edges

    @property
    def start_node(self) -> Optional[NodeConfig]:
        for node in self.nodes:
            if node.type == START_NODE_TYPE:
                return node
        return None

    def node(self, node_id: str) -> NodeConfig:
        return self._nodes_by_id[node_id]

    def outgoing(self, node_id: str, label: Optional[str] = None) -> List[EdgeDefinition]:
        """Edges leaving node_id, optionally only those carrying label (exact match)."""
        edges = self._edges_by_source.get(node_id, [])
        if label is None:
            return list(edges)
        return [edge for edge in edges if edge.output == label]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }


@dataclass(frozen=True)
class ValidationError:
    """Workflow validation issue.

    Attributes:
        kind: Issue kind (MissingStart, DanglingEdge, BadConfig, ...)
        detail: Human-readable description
        node_ids: Affected node IDs
        severity: "error" or "warning"
    """

    kind: str
    detail: str
    node_ids: Tuple[str, ...] = ()
    severity: str = "error"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "detail": self.detail,
            "node_ids": list(self.node_ids),
            "severity": self.severity,
        }


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validate_workflow.

    Attributes:
        workflow: The validated document, None when any error was found
        errors: Fatal issues
        warnings: Non-fatal issues
    """

    workflow: Optional[WorkflowDocument]
    errors: Tuple[ValidationError, ...] = ()
    warnings: Tuple[ValidationError, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


class InvalidWorkflowError(ValueError):
    """Raised when a document fails validation before a run is created."""

    def __init__(self, result: ValidationResult):
        self.result = result
        summary = "; ".join(f"{e.kind}: {e.detail}" for e in result.errors)
        super().__init__(f"Workflow validation failed: {summary}")


def validate_workflow(
    document: Union[Mapping[str, Any], WorkflowDocument],
    allow_self_loops: bool = False,
    registry: Optional[NodeRegistry] = None,
) -> ValidationResult:
    """Validate a workflow document.

    Args:
        document: Raw JSON document (or an already validated one)
        allow_self_loops: Permit edges whose source equals target
        registry: Node registry to check types/configs against (default: built-ins)

    Returns:
        ValidationResult; result.workflow is set only when there are no errors
    """
    registry = registry or default_registry
    if isinstance(document, WorkflowDocument):
        document = document.to_dict()

    errors: List[ValidationError] = []
    warnings: List[ValidationError] = []

    if not isinstance(document, Mapping):
        return _rejected([_error(MALFORMED_DOCUMENT, "workflow document must be a JSON object")])

    raw_nodes = document.get("nodes")
    raw_edges = document.get("edges", [])
    if raw_edges is None:
        raw_edges = []
    if not isinstance(raw_nodes, list):
        errors.append(_error(MALFORMED_DOCUMENT, "'nodes' must be a list"))
    if not isinstance(raw_edges, list):
        errors.append(_error(MALFORMED_DOCUMENT, "'edges' must be a list"))
    if errors:
        return _rejected(errors)

    workflow_id = document.get("id") or ""
    name = document.get("name") or "untitled"
    if not isinstance(workflow_id, str) or not isinstance(name, str):
        return _rejected([_error(MALFORMED_DOCUMENT, "'id' and 'name' must be strings")])

    nodes = _validate_nodes(raw_nodes, registry, errors)
    edges = _validate_edges(raw_edges, nodes, registry, allow_self_loops, errors)

    start_ids = [node.id for node in nodes.values() if node.type == START_NODE_TYPE]
    if not start_ids:
        errors.append(_error(MISSING_START, "workflow has no start node"))
    elif len(start_ids) > 1:
        errors.append(_error(
            MULTIPLE_START,
            f"workflow has {len(start_ids)} start nodes: {', '.join(start_ids)}",
            start_ids,
        ))
    else:
        for node_id in _unreachable_from(start_ids[0], nodes, edges):
            warnings.append(ValidationError(
                kind=UNREACHABLE_NODE,
                detail=f"node '{node_id}' is not reachable from start",
                node_ids=(node_id,),
                severity="warning",
            ))

    if errors:
        logger.info(f"Workflow '{name}' rejected with {len(errors)} error(s)")
        return _rejected(errors, warnings)

    workflow = WorkflowDocument(
        id=workflow_id,
        name=name,
        nodes=tuple(nodes.values()),
        edges=tuple(edges),
    )
    return ValidationResult(workflow=workflow, errors=(), warnings=tuple(warnings))


def _validate_nodes(
    raw_nodes: List[Any],
    registry: NodeRegistry,
    errors: List[ValidationError],
) -> Dict[str, NodeConfig]:
    """Parse nodes, recording shape/id/type/config errors. Returns valid-shaped nodes by id."""
    nodes: Dict[str, NodeConfig] = {}
    for index, raw in enumerate(raw_nodes):
        if not isinstance(raw, Mapping):
            errors.append(_error(MALFORMED_DOCUMENT, f"node #{index} must be an object"))
            continue
        node_id = raw.get("id")
        node_type = raw.get("type")
        if not isinstance(node_id, str) or not node_id:
            errors.append(_error(MALFORMED_DOCUMENT, f"node #{index} has no string 'id'"))
            continue
        if not isinstance(node_type, str) or not node_type:
            errors.append(_error(MALFORMED_DOCUMENT, f"node '{node_id}' has no string 'type'", [node_id]))
            continue
        if node_id in nodes:
            errors.append(_error(DUPLICATE_ID, f"duplicate node id '{node_id}'", [node_id]))
            continue

        config = raw.get("config")
        if config is None:
            config = {}

        if not registry.is_registered(node_type):
            errors.append(_error(
                UNKNOWN_NODE_TYPE,
                f"node '{node_id}' has unregistered type '{node_type}'",
                [node_id],
            ))
            nodes[node_id] = NodeConfig(id=node_id, type=node_type, config=config if isinstance(config, dict) else {})
            continue

        instance = registry.create(node_id, node_type, config)
        config_errors = instance.validate_config()
        if config_errors:
            problems = "; ".join(f"{e['field']}: {e['error']}" for e in config_errors)
            errors.append(_error(BAD_CONFIG, f"node '{node_id}' ({node_type}): {problems}", [node_id]))
            nodes[node_id] = NodeConfig(id=node_id, type=node_type, config=instance.config)
            continue

        nodes[node_id] = NodeConfig(id=node_id, type=node_type, config=instance.normalized_config())
    return nodes


def _validate_edges(
    raw_edges: List[Any],
    nodes: Dict[str, NodeConfig],
    registry: NodeRegistry,
    allow_self_loops: bool,
    errors: List[ValidationError],
) -> List[EdgeDefinition]:
    edges: List[EdgeDefinition] = []
    seen_labels: Dict[Tuple[str, str], EdgeDefinition] = {}

    for index, raw in enumerate(raw_edges):
        if not isinstance(raw, Mapping):
            errors.append(_error(MALFORMED_DOCUMENT, f"edge #{index} must be an object"))
            continue
        source = raw.get("from")
        target = raw.get("to")
        output = raw.get("output")
        if output is None or output == "":
            output = DEFAULT_LABEL
        if not isinstance(source, str) or not isinstance(target, str) or not isinstance(output, str):
            errors.append(_error(
                MALFORMED_DOCUMENT,
                f"edge #{index} needs string 'from', 'to' and 'output'",
            ))
            continue

        edge = EdgeDefinition(source=source, target=target, output=output)
        missing = [nid for nid in (source, target) if nid not in nodes]
        if missing:
            errors.append(_error(
                DANGLING_EDGE,
                f"edge {source} -> {target} references unknown node(s): {', '.join(dict.fromkeys(missing))}",
                [nid for nid in (source, target) if nid in nodes],
            ))
            continue

        if source == target and not allow_self_loops:
            errors.append(_error(SELF_LOOP, f"self-loop detected: {source} -> {target}", [source]))
            continue

        definition = registry.get_definition(nodes[source].type)
        if definition is not None:
            allowed = set(definition.output_labels) | {DEFAULT_LABEL}
            if output not in allowed:
                errors.append(_error(
                    INVALID_EDGE_LABEL,
                    f"edge {source} -> {target} has label '{output}'; "
                    f"{nodes[source].type} nodes emit {', '.join(sorted(allowed))}",
                    [source, target],
                ))
                continue

        previous = seen_labels.get((source, output))
        if previous is not None:
            errors.append(_error(
                AMBIGUOUS_BRANCH,
                f"node '{source}' has more than one '{output}' edge "
                f"({previous.target} and {target}); fan-out is not supported",
                [source],
            ))
            continue
        seen_labels[(source, output)] = edge
        edges.append(edge)

    return edges


def _unreachable_from(
    start_id: str,
    nodes: Dict[str, NodeConfig],
    edges: List[EdgeDefinition],
) -> List[str]:
    """Node ids (in document order) not reachable from start along any edge."""
    adjacency: Dict[str, List[str]] = {}
    for edge in edges:
        adjacency.setdefault(edge.source, []).append(edge.target)

    reached = {start_id}
    queue = deque([start_id])
    while queue:
        current = queue.popleft()
        for neighbor in adjacency.get(current, []):
            if neighbor not in reached:
                reached.add(neighbor)
                queue.append(neighbor)

    return [node_id for node_id in nodes if node_id not in reached]


def _error(kind: str, detail: str, node_ids: Optional[List[str]] = None) -> ValidationError:
    return ValidationError(kind=kind, detail=detail, node_ids=tuple(node_ids or ()))


def _rejected(
    errors: List[ValidationError],
    warnings: Optional[List[ValidationError]] = None,
) -> ValidationResult:
    return ValidationResult(workflow=None, errors=tuple(errors), warnings=tuple(warnings or ()))

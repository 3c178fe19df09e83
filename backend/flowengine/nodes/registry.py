"""Node Registry System for workflow executors

This module maps node type tags to executor classes so that the walker can
dispatch on a node's type without knowing the concrete implementations.

Key Components:
- NodeDefinition: Metadata for node types (config schema, output labels)
- BaseNode: Protocol/interface for all executors
- BaseNodeImpl: Common base with schema-driven config validation
- NodeRegistry: Type tag -> class mapping, frozen after initialization
- register_node_type: Decorator for registering node types
- create_node: Factory function for node instantiation

The default registry is populated when flowengine.nodes is imported and is
frozen right after; callers needing extra node types build their own
NodeRegistry and hand it to the walker.
"""

from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    Type,
    TypeVar,
)

from ..errors import EngineError
from ..store.base import DocumentStore

logger = logging.getLogger(__name__)

# Type variable for node classes
T = TypeVar("T", bound="BaseNodeImpl")

DEFAULT_LABEL = "default"

_JSON_TYPES: Dict[str, Tuple[type, ...]] = {
    "string": (str,),
    "object": (dict,),
    "array": (list,),
    "boolean": (bool,),
    "integer": (int,),
    "number": (int, float),
}


@dataclass
class NodeDefinition:
    """Metadata definition for a node type.

    Attributes:
        node_type: Unique identifier for the node type (e.g., "condition")
        display_name: Human-readable name for the editor palette
        description: Brief description of node functionality
        category: Category for grouping (e.g., "control", "database")
        config_schema: JSON-schema subset describing the node config
        output_labels: Branch labels this node type can emit
        icon: Optional icon identifier for UI rendering
        color: Optional color code for UI theming
    """

    node_type: str
    display_name: str
    description: str
    category: str
    config_schema: Dict[str, Any]
    output_labels: Tuple[str, ...] = (DEFAULT_LABEL,)
    icon: Optional[str] = None
    color: Optional[str] = None

    def __post_init__(self):
        """Validate node definition after initialization."""
        if not self.node_type:
            raise ValueError("node_type cannot be empty")
        if not self.display_name:
            raise ValueError("display_name cannot be empty")
        if not isinstance(self.config_schema, dict):
            raise ValueError("config_schema must be a dictionary")
        if not self.output_labels:
            raise ValueError("output_labels cannot be empty")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_type": self.node_type,
            "display_name": self.display_name,
            "description": self.description,
            "category": self.category,
            "config_schema": self.config_schema,
            "output_labels": list(self.output_labels),
            "icon": self.icon,
            "color": self.color,
        }


@dataclass
class NodeContext:
    """Capabilities available to executors during a run.

    Executors get read access to scope as an argument; everything else
    they may touch lives here.
    """

    store: Optional[DocumentStore] = None
    run_id: str = ""
    # Run input data supplied by the caller (execute-by-id); overrides start defaults
    inputs: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class NodeResult:
    """Outcome of a single executor invocation.

    Attributes:
        output_label: Branch label matched against outgoing edges
        data: Output recorded on the trace entry
        mutations: Scope delta the walker merges after the step
        warnings: Non-fatal notes (e.g. unresolved placeholders)
        error: Structured failure; None on success
    """

    output_label: str = DEFAULT_LABEL
    data: Any = None
    mutations: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    error: Optional[EngineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, error: EngineError, warnings: Optional[List[str]] = None) -> "NodeResult":
        return cls(output_label="", data=None, warnings=list(warnings or []), error=error)


class BaseNode(Protocol):
    """Protocol defining the interface for all workflow executors.

    Attributes:
        node_id: Unique identifier for this node instance
        node_type: Type identifier matching NodeDefinition
        config: Configuration dictionary for this node instance
    """

    node_id: str
    node_type: str
    config: Dict[str, Any]

    async def execute(self, scope: Mapping[str, Any], context: NodeContext) -> NodeResult:
        """Run the node against a read-only view of the scope.

        Expected business failures are returned in NodeResult.error, not raised.
        """
        ...

    def validate_config(self) -> List[Dict[str, str]]:
        """Validate node configuration against schema.

        Returns:
            List of validation errors, each containing:
                - field: Name of the invalid field
                - error: Description of the validation error
            Empty list if validation passes
        """
        ...


class BaseNodeImpl(ABC):
    """Abstract base class providing common node functionality.

    Config validation and default filling are driven by the registered
    NodeDefinition.config_schema; subclasses only add checks the schema
    cannot express.
    """

    definition: NodeDefinition

    def __init__(self, node_id: str, node_type: str, config: Dict[str, Any]):
        self.node_id = node_id
        self.node_type = node_type
        self.config = config if isinstance(config, dict) else {}
        self._raw_config = config

    @abstractmethod
    async def execute(self, scope: Mapping[str, Any], context: NodeContext) -> NodeResult:
        """Execute the node's logic. Must be implemented by subclasses."""
        pass

    def validate_config(self) -> List[Dict[str, str]]:
        """Check required fields, JSON types, enums and minimums from the schema."""
        if not isinstance(self._raw_config, dict):
            return [{"field": "config", "error": "config must be an object"}]

        errors = []
        schema = self.definition.config_schema
        properties = schema.get("properties", {})

        for field_name in schema.get("required", []):
            if field_name not in self.config:
                errors.append({
                    "field": field_name,
                    "error": f"Required field '{field_name}' is missing",
                })

        for field_name, rules in properties.items():
            if field_name not in self.config:
                continue
            value = self.config[field_name]

            expected = rules.get("type")
            if expected and not _is_json_type(value, expected):
                errors.append({
                    "field": field_name,
                    "error": f"'{field_name}' must be of type {expected}",
                })
                continue

            allowed = rules.get("enum")
            if allowed is not None and value not in allowed:
                errors.append({
                    "field": field_name,
                    "error": f"'{field_name}' must be one of {', '.join(map(str, allowed))}",
                })

            minimum = rules.get("minimum")
            if minimum is not None and value < minimum:
                errors.append({
                    "field": field_name,
                    "error": f"'{field_name}' must be >= {minimum}",
                })

            min_length = rules.get("minLength")
            if min_length is not None and len(value.strip()) < min_length:
                errors.append({
                    "field": field_name,
                    "error": f"'{field_name}' cannot be empty",
                })

        return errors

    def normalized_config(self) -> Dict[str, Any]:
        """Config with schema defaults filled in for absent optional fields."""
        result = copy.deepcopy(self.config)
        for field_name, rules in self.definition.config_schema.get("properties", {}).items():
            if field_name not in result and "default" in rules:
                result[field_name] = copy.deepcopy(rules["default"])
        return result


def _is_json_type(value: Any, expected: str) -> bool:
    types = _JSON_TYPES.get(expected)
    if types is None:
        return True
    # bool is an int subclass but never a valid integer/number in configs
    if expected in ("integer", "number") and isinstance(value, bool):
        return False
    if expected == "integer" and isinstance(value, float):
        return value.is_integer()
    return isinstance(value, types)


class NodeRegistry:
    """Mapping from node type tag to executor class and definition."""

    def __init__(self):
        self._definitions: Dict[str, NodeDefinition] = {}
        self._classes: Dict[str, Type[BaseNodeImpl]] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Disallow further registrations."""
        self._frozen = True

    def register(self, definition: NodeDefinition, cls: Type[T]) -> Type[T]:
        if self._frozen:
            raise RuntimeError(
                f"Cannot register node type '{definition.node_type}': registry is frozen"
            )
        if definition.node_type in self._classes:
            raise ValueError(f"Node type already registered: {definition.node_type}")

        cls.definition = definition
        self._definitions[definition.node_type] = definition
        self._classes[definition.node_type] = cls
        logger.info(f"Registered node type: {definition.node_type} ({definition.display_name})")
        return cls

    def copy(self) -> "NodeRegistry":
        """Unfrozen copy, for adding node types on top of the built-ins."""
        clone = NodeRegistry()
        clone._definitions = dict(self._definitions)
        clone._classes = dict(self._classes)
        return clone

    def create(self, node_id: str, node_type: str, config: Dict[str, Any]) -> BaseNodeImpl:
        """Instantiate the executor for a node.

        Raises:
            ValueError: If node_type is not registered
        """
        if node_type not in self._classes:
            available_types = list(self._classes.keys())
            raise ValueError(
                f"Unknown node type: {node_type}. "
                f"Available types: {available_types}"
            )

        node = self._classes[node_type](node_id=node_id, node_type=node_type, config=config)
        node.definition = self._definitions[node_type]
        logger.debug(f"Created node: {node_id} (type={node_type})")
        return node

    def is_registered(self, node_type: str) -> bool:
        return node_type in self._classes

    def get_definition(self, node_type: str) -> Optional[NodeDefinition]:
        return self._definitions.get(node_type)

    def definitions(self) -> Mapping[str, NodeDefinition]:
        return MappingProxyType(self._definitions)

    def list_by_category(self, category: str) -> List[NodeDefinition]:
        return [d for d in self._definitions.values() if d.category == category]


# Global registry for built-in node types
default_registry = NodeRegistry()


def register_node_type(
    node_type: str,
    display_name: str,
    description: str,
    category: str,
    config_schema: Dict[str, Any],
    output_labels: Tuple[str, ...] = (DEFAULT_LABEL,),
    icon: Optional[str] = None,
    color: Optional[str] = None,
    registry: Optional[NodeRegistry] = None,
) -> Callable[[Type[T]], Type[T]]:
    """Decorator to register a node type.

    Registers both the node definition metadata and the executor class,
    in the default registry unless another one is given.

    Example:
        @register_node_type(
            node_type="noop",
            display_name="No-op",
            description="Passes control to the default edge",
            category="control",
            config_schema={"type": "object", "properties": {}},
        )
        class NoopNode(BaseNodeImpl):
            async def execute(self, scope, context):
                return NodeResult()
    """

    def decorator(cls: Type[T]) -> Type[T]:
        definition = NodeDefinition(
            node_type=node_type,
            display_name=display_name,
            description=description,
            category=category,
            config_schema=config_schema,
            output_labels=tuple(output_labels),
            icon=icon,
            color=color,
        )
        return (registry or default_registry).register(definition, cls)

    return decorator


def create_node(node_id: str, node_type: str, config: Dict[str, Any]) -> BaseNodeImpl:
    """Factory function to create a node from the default registry."""
    return default_registry.create(node_id, node_type, config)


def get_node_definition(node_type: str) -> Optional[NodeDefinition]:
    return default_registry.get_definition(node_type)


def list_node_types() -> List[NodeDefinition]:
    """List all registered node types."""
    return list(default_registry.definitions().values())


def is_node_type_registered(node_type: str) -> bool:
    return default_registry.is_registered(node_type)

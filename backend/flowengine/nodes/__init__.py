"""Node System: registry, base types, and node executor implementations."""

# Import node modules to auto-register node types
from . import base  # noqa: F401 - registers start, condition
from . import mongodb  # noqa: F401 - registers mongodb_insert, mongodb_find

from .registry import (
    DEFAULT_LABEL,
    BaseNode,
    BaseNodeImpl,
    NodeContext,
    NodeDefinition,
    NodeRegistry,
    NodeResult,
    create_node,
    default_registry,
    get_node_definition,
    is_node_type_registered,
    list_node_types,
    register_node_type,
)

# Built-in registry is immutable once the built-in types are in
default_registry.freeze()

__all__ = [
    "DEFAULT_LABEL",
    "BaseNode",
    "BaseNodeImpl",
    "NodeContext",
    "NodeDefinition",
    "NodeRegistry",
    "NodeResult",
    "create_node",
    "default_registry",
    "get_node_definition",
    "is_node_type_registered",
    "list_node_types",
    "register_node_type",
]

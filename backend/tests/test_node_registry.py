"""Unit tests for the Node Registry System

Tests cover:
- NodeDefinition validation
- Built-in registrations and the frozen default registry
- Custom registries for extra node types
- Node instance creation
- Schema-driven configuration validation
- Registry queries
"""

import inspect

import pytest

from flowengine.nodes import (
    BaseNodeImpl,
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
from flowengine.nodes.base import ConditionNode, StartNode
from flowengine.nodes.mongodb import MongoFindNode, MongoInsertNode


def _definition(**overrides):
    fields = dict(
        node_type="test_node",
        display_name="Test Node",
        description="Test description",
        category="test",
        config_schema={"type": "object"},
    )
    fields.update(overrides)
    return NodeDefinition(**fields)


class TestNodeDefinition:
    """Test NodeDefinition dataclass validation."""

    def test_valid_node_definition(self):
        definition = _definition()
        assert definition.node_type == "test_node"
        assert definition.output_labels == ("default",)
        assert definition.icon is None

    def test_node_definition_empty_node_type(self):
        with pytest.raises(ValueError, match="node_type cannot be empty"):
            _definition(node_type="")

    def test_node_definition_empty_display_name(self):
        with pytest.raises(ValueError, match="display_name cannot be empty"):
            _definition(display_name="")

    def test_node_definition_invalid_config_schema(self):
        with pytest.raises(ValueError, match="config_schema must be a dictionary"):
            _definition(config_schema="invalid")

    def test_node_definition_requires_output_labels(self):
        with pytest.raises(ValueError, match="output_labels cannot be empty"):
            _definition(output_labels=())

    def test_to_dict(self):
        data = _definition(output_labels=("yes", "no"), color="#FF0000").to_dict()
        assert data["output_labels"] == ["yes", "no"]
        assert data["color"] == "#FF0000"


class TestNodeRegistration:
    """Test node type registration functionality."""

    def test_builtin_nodes_registered(self):
        expected = {
            "start": StartNode,
            "condition": ConditionNode,
            "mongodb_insert": MongoInsertNode,
            "mongodb_find": MongoFindNode,
        }
        for node_type, cls in expected.items():
            assert is_node_type_registered(node_type)
            assert isinstance(create_node("n", node_type, {}), cls)

    def test_condition_declares_true_false_labels(self):
        assert get_node_definition("condition").output_labels == ("true", "false")
        assert get_node_definition("mongodb_find").output_labels == ("default",)

    def test_default_registry_is_frozen(self):
        assert default_registry.frozen
        with pytest.raises(RuntimeError, match="registry is frozen"):

            @register_node_type(
                node_type="late_type",
                display_name="Late",
                description="Registered after startup",
                category="test",
                config_schema={"type": "object"},
            )
            class LateNode(BaseNodeImpl):
                async def execute(self, scope, context):
                    return NodeResult()

        assert not is_node_type_registered("late_type")

    def test_register_into_custom_registry(self):
        registry = default_registry.copy()

        @register_node_type(
            node_type="noop",
            display_name="No-op",
            description="Passes control to the default edge",
            category="control",
            config_schema={"type": "object", "properties": {}},
            registry=registry,
        )
        class NoopNode(BaseNodeImpl):
            async def execute(self, scope, context):
                return NodeResult(data="noop")

        assert registry.is_registered("noop")
        assert registry.is_registered("start")
        assert not default_registry.is_registered("noop")
        assert isinstance(registry.create("n", "noop", {}), NoopNode)

    def test_duplicate_registration_rejected(self):
        class DupNode(StartNode):
            pass

        registry = NodeRegistry()
        registry.register(_definition(node_type="dup"), DupNode)
        with pytest.raises(ValueError, match="already registered"):
            registry.register(_definition(node_type="dup"), DupNode)


class TestNodeCreation:
    """Test node instance creation."""

    def test_create_condition_node(self):
        node = create_node(
            node_id="node-4",
            node_type="condition",
            config={"lhs": "{{value}}", "operator": ">", "rhs": "100"},
        )
        assert node.node_id == "node-4"
        assert node.node_type == "condition"
        assert node.config["operator"] == ">"
        assert node.definition.node_type == "condition"

    def test_create_node_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown node type"):
            create_node(node_id="node-x", node_type="nonexistent_type", config={})


class TestNodeValidation:
    """Test schema-driven configuration validation."""

    def test_validate_valid_config(self):
        node = create_node("f", "mongodb_find", {"database": "d", "collection": "c", "filter": {}})
        assert node.validate_config() == []

    def test_validate_missing_required_field(self):
        errors = create_node("i", "mongodb_insert", {}).validate_config()
        fields = {e["field"] for e in errors}
        assert fields == {"database", "collection", "document"}

    def test_validate_enum(self):
        errors = create_node("c", "condition", {"lhs": "1", "operator": "<>", "rhs": "2"}).validate_config()
        assert [e["field"] for e in errors] == ["operator"]

    def test_integral_float_counts_as_integer(self):
        node = create_node("f", "mongodb_find", {"database": "d", "collection": "c", "filter": {}, "limit": 5.0})
        assert node.validate_config() == []

    def test_whitespace_only_string_is_empty(self):
        node = create_node("i", "mongodb_insert", {"database": "  ", "collection": "c", "document": {}})
        assert [e["field"] for e in node.validate_config()] == ["database"]

    def test_normalized_config_fills_defaults(self):
        node = create_node("f", "mongodb_find", {"database": "d", "collection": "c", "filter": {"a": 1}})
        assert node.normalized_config() == {
            "database": "d",
            "collection": "c",
            "filter": {"a": 1},
            "limit": 10,
            "outputKey": "results",
        }
        assert "limit" not in node.config


class TestRegistryQueries:
    """Test registry query functions."""

    def test_get_node_definition(self):
        definition = get_node_definition("mongodb_insert")
        assert definition is not None
        assert definition.display_name == "MongoDB Insert"
        assert definition.category == "database"

    def test_get_node_definition_nonexistent(self):
        assert get_node_definition("nonexistent") is None

    def test_list_node_types(self):
        node_types = list_node_types()
        assert {d.node_type for d in node_types} >= {"start", "condition", "mongodb_insert", "mongodb_find"}
        assert all(isinstance(d, NodeDefinition) for d in node_types)

    def test_list_by_category(self):
        control = default_registry.list_by_category("control")
        assert {d.node_type for d in control} == {"start", "condition"}

    def test_definitions_view_is_read_only(self):
        with pytest.raises(TypeError):
            default_registry.definitions()["x"] = _definition()


class TestProtocolConformance:
    """Test that nodes conform to the BaseNode protocol."""

    def test_execute_is_async(self):
        node = create_node("n", "start", {})
        assert inspect.iscoroutinefunction(node.execute)

    def test_validate_config_returns_list_of_dicts(self):
        errors = create_node("n", "condition", {}).validate_config()
        assert isinstance(errors, list)
        assert all("field" in e and "error" in e for e in errors)

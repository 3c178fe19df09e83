"""Unit tests for workflow document validation (flowengine/engine/document.py).

Tests cover:
- Accepting a well-formed document and normalizing it
- Every error kind (MissingStart, DanglingEdge, BadConfig, ...)
- UnreachableNode warnings
- Idempotence of validate(serialize(validate(doc)))
"""

import dataclasses

import pytest

from flowengine.engine.document import (
    EdgeDefinition,
    NodeConfig,
    WorkflowDocument,
    validate_workflow,
)
from tests.builders import edge, node, user_signup_doc, workflow_doc


def kinds(issues):
    return [issue.kind for issue in issues]


class TestValidDocuments:
    """Well-formed documents produce a frozen WorkflowDocument."""

    def test_user_signup_is_valid(self):
        result = validate_workflow(user_signup_doc())
        assert result.valid
        assert result.errors == ()
        assert result.warnings == ()
        assert isinstance(result.workflow, WorkflowDocument)
        assert result.workflow.name == "user signup"
        assert [n.id for n in result.workflow.nodes] == ["start", "check_age", "insert_user", "find_minors"]

    def test_missing_output_label_defaults(self):
        result = validate_workflow(user_signup_doc())
        first_edge = result.workflow.edges[0]
        assert first_edge == EdgeDefinition(source="start", target="check_age", output="default")

    def test_config_defaults_are_filled(self):
        result = validate_workflow(user_signup_doc())
        find = result.workflow.node("find_minors")
        assert find.config["limit"] == 10
        assert find.config["outputKey"] == "minors"

        doc = workflow_doc([node("start", "start")], [])
        start = validate_workflow(doc).workflow.node("start")
        assert start.config == {"initialData": {}}

    def test_missing_config_is_treated_as_empty(self):
        doc = workflow_doc([{"id": "start", "type": "start"}], [])
        assert validate_workflow(doc).valid

    def test_id_and_name_are_optional(self):
        result = validate_workflow({"nodes": [node("s", "start")], "edges": []})
        assert result.valid
        assert result.workflow.id == ""
        assert result.workflow.name == "untitled"

    def test_edges_may_be_omitted(self):
        assert validate_workflow({"nodes": [node("s", "start")]}).valid

    def test_extra_node_fields_are_ignored(self):
        doc = workflow_doc([{**node("start", "start"), "position": {"x": 1, "y": 2}}], [])
        assert validate_workflow(doc).valid

    def test_document_is_frozen(self):
        workflow = validate_workflow(user_signup_doc()).workflow
        with pytest.raises(dataclasses.FrozenInstanceError):
            workflow.name = "changed"

    def test_outgoing_filters_by_label(self):
        workflow = validate_workflow(user_signup_doc()).workflow
        assert [e.target for e in workflow.outgoing("check_age", "true")] == ["insert_user"]
        assert [e.target for e in workflow.outgoing("check_age", "false")] == ["find_minors"]
        assert workflow.outgoing("check_age", "default") == []
        assert len(workflow.outgoing("check_age")) == 2

    def test_start_node(self):
        workflow = validate_workflow(user_signup_doc()).workflow
        assert workflow.start_node == NodeConfig(
            id="start", type="start", config={"initialData": {"name": "Ada", "age": 25}},
        )


class TestIdempotence:

    @pytest.mark.parametrize("doc", [
        user_signup_doc(),
        workflow_doc(
            [node("start", "start"), node("island", "condition", lhs="1", operator="==", rhs="1")],
            [],
        ),
    ])
    def test_validate_serialize_validate(self, doc):
        first = validate_workflow(doc)
        second = validate_workflow(first.workflow.to_dict())
        assert second == first

    def test_accepts_validated_document(self):
        first = validate_workflow(user_signup_doc())
        assert validate_workflow(first.workflow) == first


class TestStructuralErrors:

    def test_missing_start(self):
        doc = workflow_doc([node("c", "condition", lhs="1", operator="==", rhs="1")], [])
        result = validate_workflow(doc)
        assert not result.valid
        assert result.workflow is None
        assert kinds(result.errors) == ["MissingStart"]

    def test_multiple_start(self):
        doc = workflow_doc([node("s1", "start"), node("s2", "start")], [])
        result = validate_workflow(doc)
        assert kinds(result.errors) == ["MultipleStart"]
        assert result.errors[0].node_ids == ("s1", "s2")

    def test_dangling_edge(self):
        doc = workflow_doc([node("start", "start")], [edge("start", "ghost")])
        result = validate_workflow(doc)
        assert kinds(result.errors) == ["DanglingEdge"]
        assert "ghost" in result.errors[0].detail

    def test_duplicate_id(self):
        doc = workflow_doc([node("start", "start"), node("start", "start")], [])
        assert "DuplicateId" in kinds(validate_workflow(doc).errors)

    def test_unknown_node_type(self):
        doc = workflow_doc([node("start", "start"), node("x", "http_request")], [edge("start", "x")])
        result = validate_workflow(doc)
        assert kinds(result.errors) == ["UnknownNodeType"]
        assert result.errors[0].node_ids == ("x",)

    def test_self_loop_rejected_by_default(self):
        doc = workflow_doc(
            [node("start", "start"), node("c", "condition", lhs="1", operator="==", rhs="1")],
            [edge("start", "c"), edge("c", "c", "true")],
        )
        assert kinds(validate_workflow(doc).errors) == ["SelfLoop"]
        assert validate_workflow(doc, allow_self_loops=True).valid

    def test_invalid_edge_label(self):
        doc = workflow_doc(
            [node("start", "start"), node("c", "condition", lhs="1", operator="==", rhs="1")],
            [edge("start", "c", "maybe")],
        )
        result = validate_workflow(doc)
        assert kinds(result.errors) == ["InvalidEdgeLabel"]

    def test_condition_may_use_default_label(self):
        doc = workflow_doc(
            [
                node("start", "start"),
                node("c", "condition", lhs="1", operator="==", rhs="1"),
                node("i", "mongodb_insert", database="d", collection="c", document={}),
            ],
            [edge("start", "c"), edge("c", "i")],
        )
        result = validate_workflow(doc)
        assert result.valid
        assert result.workflow.outgoing("c", "default")[0].target == "i"

    def test_ambiguous_branch(self):
        doc = workflow_doc(
            [
                node("start", "start"),
                node("c", "condition", lhs="1", operator="==", rhs="1"),
                node("a", "mongodb_insert", database="d", collection="c", document={}),
                node("b", "mongodb_insert", database="d", collection="c", document={}),
            ],
            [edge("start", "c"), edge("c", "a", "true"), edge("c", "b", "true")],
        )
        result = validate_workflow(doc)
        assert kinds(result.errors) == ["AmbiguousBranch"]
        assert result.errors[0].node_ids == ("c",)

    def test_errors_are_all_reported(self):
        doc = workflow_doc(
            [node("c", "condition", lhs="1", operator="~", rhs="1"), node("c", "start")],
            [edge("c", "nowhere")],
        )
        result = validate_workflow(doc)
        assert set(kinds(result.errors)) == {"BadConfig", "DuplicateId", "DanglingEdge", "MissingStart"}


class TestMalformedDocuments:

    @pytest.mark.parametrize("doc", [
        None,
        [],
        "workflow",
        {"nodes": "nope"},
        {"nodes": [], "edges": {}},
        {"nodes": [None]},
        {"nodes": [{"type": "start"}]},
        {"nodes": [{"id": "s"}]},
        {"nodes": [node("s", "start")], "edges": [{"from": "s"}]},
        {"nodes": [node("s", "start")], "edges": [{"from": "s", "to": "s", "output": 3}]},
        {"id": 5, "nodes": [node("s", "start")]},
    ])
    def test_malformed(self, doc):
        result = validate_workflow(doc)
        assert not result.valid
        assert "MalformedDocument" in kinds(result.errors)


class TestBadConfig:

    @pytest.mark.parametrize("config", [
        {},
        {"lhs": "1", "operator": "==="},
        {"lhs": "1", "operator": "==", "rhs": 5},
        {"lhs": "1", "operator": "contains", "rhs": "1"},
    ])
    def test_condition_config(self, config):
        doc = workflow_doc([node("start", "start"), {"id": "c", "type": "condition", "config": config}], [edge("start", "c")])
        result = validate_workflow(doc)
        assert kinds(result.errors) == ["BadConfig"]
        assert result.errors[0].node_ids == ("c",)

    @pytest.mark.parametrize("config", [
        {"database": "d", "collection": "c"},
        {"database": "", "collection": "c", "document": {}},
        {"database": "d", "collection": "c", "document": "not-an-object"},
    ])
    def test_insert_config(self, config):
        doc = workflow_doc([node("start", "start"), {"id": "i", "type": "mongodb_insert", "config": config}], [edge("start", "i")])
        assert kinds(validate_workflow(doc).errors) == ["BadConfig"]

    @pytest.mark.parametrize("extra", [
        {"limit": -1},
        {"limit": 2.5},
        {"limit": True},
        {"limit": "10"},
        {"outputKey": ""},
    ])
    def test_find_config(self, extra):
        config = {"database": "d", "collection": "c", "filter": {}, **extra}
        doc = workflow_doc([node("start", "start"), {"id": "f", "type": "mongodb_find", "config": config}], [edge("start", "f")])
        assert kinds(validate_workflow(doc).errors) == ["BadConfig"]

    def test_find_limit_zero_is_valid(self):
        config = {"database": "d", "collection": "c", "filter": {}, "limit": 0}
        doc = workflow_doc([node("start", "start"), {"id": "f", "type": "mongodb_find", "config": config}], [edge("start", "f")])
        assert validate_workflow(doc).valid

    def test_config_must_be_object(self):
        doc = workflow_doc([{"id": "start", "type": "start", "config": ["x"]}], [])
        result = validate_workflow(doc)
        assert kinds(result.errors) == ["BadConfig"]
        assert "config must be an object" in result.errors[0].detail

    def test_start_initial_data_must_be_object(self):
        doc = workflow_doc([node("start", "start", initialData=[1, 2])], [])
        assert kinds(validate_workflow(doc).errors) == ["BadConfig"]


class TestWarnings:

    def test_unreachable_node_is_a_warning(self):
        doc = workflow_doc(
            [node("start", "start"), node("island", "condition", lhs="1", operator="==", rhs="1")],
            [],
        )
        result = validate_workflow(doc)
        assert result.valid
        assert kinds(result.warnings) == ["UnreachableNode"]
        assert result.warnings[0].node_ids == ("island",)
        assert result.warnings[0].severity == "warning"

    def test_reachability_follows_cycles(self):
        doc = workflow_doc(
            [
                node("start", "start"),
                node("c", "condition", lhs="1", operator="==", rhs="1"),
                node("i", "mongodb_insert", database="d", collection="c", document={}),
            ],
            [edge("start", "c"), edge("c", "i", "true"), edge("i", "c")],
        )
        assert validate_workflow(doc).warnings == ()


class TestSerialization:

    def test_to_dict_shape(self):
        data = validate_workflow(user_signup_doc()).workflow.to_dict()
        assert set(data) == {"id", "name", "nodes", "edges"}
        assert data["edges"][1] == {"from": "check_age", "to": "insert_user", "output": "true"}
        assert data["nodes"][0]["config"] == {"initialData": {"name": "Ada", "age": 25}}

    def test_validation_result_to_dict(self):
        result = validate_workflow(workflow_doc([], []))
        data = result.to_dict()
        assert data["valid"] is False
        assert data["errors"][0]["kind"] == "MissingStart"
        assert data["warnings"] == []

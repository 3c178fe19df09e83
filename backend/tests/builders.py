"""Workflow document builders shared by the test modules."""

from __future__ import annotations

from typing import Any, Dict, List, Optional


def node(node_id: str, node_type: str, **config: Any) -> Dict[str, Any]:
    return {"id": node_id, "type": node_type, "config": config}


def edge(source: str, target: str, output: Optional[str] = None) -> Dict[str, Any]:
    result = {"from": source, "to": target}
    if output is not None:
        result["output"] = output
    return result


def workflow_doc(
    nodes: List[Dict[str, Any]],
    edges: List[Dict[str, Any]],
    name: str = "test workflow",
    workflow_id: str = "wf-test",
) -> Dict[str, Any]:
    return {"id": workflow_id, "name": name, "nodes": nodes, "edges": edges}


def user_signup_doc(age: int = 25) -> Dict[str, Any]:
    """start -> check_age -(true)-> insert_user, -(false)-> find_minors."""
    return workflow_doc(
        name="user signup",
        nodes=[
            node("start", "start", initialData={"name": "Ada", "age": age}),
            node("check_age", "condition", lhs="{{age}}", operator=">=", rhs="18"),
            node(
                "insert_user",
                "mongodb_insert",
                database="app",
                collection="users",
                document={"name": "{{name}}", "age": "{{age}}"},
            ),
            node(
                "find_minors",
                "mongodb_find",
                database="app",
                collection="minors",
                filter={"name": "{{name}}"},
                outputKey="minors",
            ),
        ],
        edges=[
            edge("start", "check_age"),
            edge("check_age", "insert_user", "true"),
            edge("check_age", "find_minors", "false"),
        ],
    )


def insert_loop_doc() -> Dict[str, Any]:
    """A cycle that never ends on its own: check -(true)-> insert -> check."""
    return workflow_doc(
        name="endless inserts",
        nodes=[
            node("start", "start", initialData={"go": "yes"}),
            node("check", "condition", lhs="{{go}}", operator="==", rhs="yes"),
            node("insert", "mongodb_insert", database="app", collection="ticks", document={"tick": "{{go}}"}),
        ],
        edges=[
            edge("start", "check"),
            edge("check", "insert", "true"),
            edge("insert", "check"),
        ],
    )


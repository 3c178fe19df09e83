"""Built-in control node implementations: start and condition."""

from __future__ import annotations

import copy
import logging
import operator
import re
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..engine.resolver import resolve
from ..errors import TypeMismatch
from .registry import BaseNodeImpl, NodeContext, NodeResult, register_node_type

logger = logging.getLogger(__name__)

TRUE_LABEL = "true"
FALSE_LABEL = "false"

# JSON number syntax; float() alone would also accept "nan", "inf" and "1_000"
_NUMBER_PATTERN = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")

_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}

_EQUALITY_OPERATORS = frozenset({"==", "!="})


@register_node_type(
    node_type="start",
    display_name="Start",
    description="Entry point of a workflow; seeds the scope with initial data",
    category="control",
    config_schema={
        "type": "object",
        "properties": {
            "initialData": {"type": "object", "default": {}},
        },
        "required": [],
    },
    icon="play",
    color="#4CAF50",
)
class StartNode(BaseNodeImpl):
    """Seeds the scope with initialData.

    Run inputs (from execute-by-id) take precedence over initialData keys.
    """

    async def execute(self, scope: Mapping[str, Any], context: NodeContext) -> NodeResult:
        initial_data = copy.deepcopy(self.config.get("initialData") or {})
        mutations = {**initial_data, **copy.deepcopy(dict(context.inputs))}
        logger.info(f"StartNode {self.node_id}: seeding scope with keys {list(mutations.keys())}")
        return NodeResult(data=initial_data, mutations=mutations)


@register_node_type(
    node_type="condition",
    display_name="Condition",
    description="Compares two resolved values and branches on true/false",
    category="control",
    config_schema={
        "type": "object",
        "properties": {
            "lhs": {"type": "string"},
            "operator": {"type": "string", "enum": list(_OPERATORS)},
            "rhs": {"type": "string"},
        },
        "required": ["lhs", "operator", "rhs"],
    },
    output_labels=(TRUE_LABEL, FALSE_LABEL),
    icon="git-branch",
    color="#9C27B0",
)
class ConditionNode(BaseNodeImpl):
    """Node that evaluates a comparison for branching.

    Both sides are resolved through the expression resolver. When both
    parse as numbers the comparison is numeric for every operator;
    otherwise == and != compare the strings and the ordering operators
    fail with TypeMismatch. Emits "true" or "false", never mutates scope.
    """

    async def execute(self, scope: Mapping[str, Any], context: NodeContext) -> NodeResult:
        warnings: List[str] = []
        lhs = resolve(self.config["lhs"], scope, warnings)
        rhs = resolve(self.config["rhs"], scope, warnings)
        op = self.config["operator"]

        try:
            result = compare_values(lhs, rhs, op)
        except TypeMismatch as e:
            logger.warning(f"ConditionNode {self.node_id}: {e.detail}")
            return NodeResult.failure(e.at(self.node_id), warnings)

        logger.info(f"ConditionNode {self.node_id}: '{lhs}' {op} '{rhs}' evaluated to {result}")
        return NodeResult(
            output_label=TRUE_LABEL if result else FALSE_LABEL,
            data={"lhs": lhs, "operator": op, "rhs": rhs, "result": result},
            warnings=warnings,
        )


def parse_number(text: str) -> Optional[float]:
    """Return the numeric value of text, or None if it is not a JSON number."""
    candidate = text.strip()
    if not _NUMBER_PATTERN.match(candidate):
        return None
    return float(candidate)


def compare_values(lhs: str, rhs: str, op: str) -> bool:
    """Numeric-aware comparison of two resolved strings.

    Raises:
        TypeMismatch: Ordering operator on a non-numeric side, or unknown operator
    """
    compare = _OPERATORS.get(op)
    if compare is None:
        raise TypeMismatch(f"unknown operator: {op}")

    lhs_num = parse_number(lhs)
    rhs_num = parse_number(rhs)
    if lhs_num is not None and rhs_num is not None:
        return compare(lhs_num, rhs_num)

    if op in _EQUALITY_OPERATORS:
        return compare(lhs, rhs)

    raise TypeMismatch(
        f"operator {op} requires numeric operands, got '{lhs}' and '{rhs}'"
    )

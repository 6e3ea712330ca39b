"""
Condition tree for contact segments.

A segment's conditions are stored as JSON. They are parsed once into an
explicit tagged structure (Rule leaves and ConditionGroup nodes) so the
evaluator can dispatch on node type instead of probing dictionary keys.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class GroupOperator(str, Enum):
    AND = "AND"
    OR = "OR"


@dataclass(frozen=True)
class Rule:
    """Leaf condition: compare one contact field against an operand."""

    field: str
    operator: str
    value: Any = None


@dataclass(frozen=True)
class ConditionGroup:
    """
    AND/OR combination of rules and nested groups.

    operator keeps the raw name when it is not AND/OR; such a group
    never matches.
    """

    operator: Union[GroupOperator, str] = GroupOperator.AND
    rules: Tuple["ConditionNode", ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return len(self.rules) == 0


ConditionNode = Union[Rule, ConditionGroup]


def _parse_group_operator(raw: Any) -> Union[GroupOperator, str]:
    if raw is None:
        return GroupOperator.AND
    name = str(raw).strip().upper()
    try:
        return GroupOperator(name)
    except ValueError:
        logger.warning(f"Unknown condition group operator {raw!r}; group will not match")
        return str(raw)


def parse_node(data: Any) -> ConditionNode:
    """
    Parse a JSON-shaped node.

    Anything carrying a "rules" key is a group. Malformed leaves become
    rules with an empty operator, which the operator table rejects.
    """
    if isinstance(data, (Rule, ConditionGroup)):
        return data

    if not isinstance(data, Mapping):
        logger.warning(f"Ignoring malformed condition node of type {type(data).__name__}")
        return Rule(field="", operator="")

    if "rules" in data:
        children = data.get("rules") or []
        if not isinstance(children, (list, tuple)):
            logger.warning("Condition group 'rules' is not a list; treating as malformed")
            children = [children]
        return ConditionGroup(
            operator=_parse_group_operator(data.get("operator")),
            rules=tuple(parse_node(child) for child in children),
        )

    return Rule(
        field=str(data.get("field") or ""),
        operator=str(data.get("operator") or ""),
        value=data.get("value"),
    )


def parse_conditions(data: Any) -> Optional[ConditionGroup]:
    """
    Parse a segment's root condition group.

    Returns None when no condition tree is configured at all. A bare rule
    at the root is wrapped in a single-rule AND group.
    """
    if data is None:
        return None
    if isinstance(data, Mapping) and not data:
        return None

    node = parse_node(data)
    if isinstance(node, Rule):
        return ConditionGroup(operator=GroupOperator.AND, rules=(node,))
    return node


def conditions_to_dict(node: ConditionNode) -> dict:
    """Serialize a parsed tree back to its stored JSON shape."""
    if isinstance(node, ConditionGroup):
        operator = node.operator.value if isinstance(node.operator, GroupOperator) else node.operator
        return {"operator": operator, "rules": [conditions_to_dict(child) for child in node.rules]}
    return {"field": node.field, "operator": node.operator, "value": node.value}

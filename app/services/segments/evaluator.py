"""
Condition tree evaluation against a single contact.

Evaluation is pure and exception-safe: a rule that fails to evaluate counts
as a non-match and is reported through the optional errors list.
"""

import logging
from typing import Any, List, Mapping, Optional

from app.services.segments.conditions import (
    ConditionGroup,
    ConditionNode,
    GroupOperator,
    Rule,
    parse_conditions,
)
from app.services.segments.field_resolver import resolve_field
from app.services.segments.operators import apply_operator

logger = logging.getLogger(__name__)


class RuleEvaluationError(Exception):
    """A rule raised while being evaluated against a contact."""

    def __init__(self, rule: Rule, contact_id: Any, cause: BaseException):
        self.rule = rule
        self.contact_id = contact_id
        self.cause = cause
        super().__init__(
            f"Rule {rule.field!r} {rule.operator!r} failed for contact {contact_id}: {cause}"
        )


def _contact_id(contact: Any) -> Any:
    if isinstance(contact, Mapping):
        return contact.get("id")
    return getattr(contact, "id", None)


def evaluate_rule(rule: Rule, contact: Any, errors: Optional[List[RuleEvaluationError]] = None) -> bool:
    try:
        resolved = resolve_field(contact, rule.field)
        return bool(apply_operator(rule.operator, resolved.value, rule.value))
    except Exception as e:
        error = RuleEvaluationError(rule, _contact_id(contact), e)
        logger.warning(str(error))
        if errors is not None:
            errors.append(error)
        return False


def evaluate_node(node: ConditionNode, contact: Any, errors: Optional[List[RuleEvaluationError]] = None) -> bool:
    """
    Evaluate a rule or nested group.

    Groups short-circuit. An empty AND group is true and an empty OR group
    is false; only the root of a segment treats "no rules" as match-all
    (see evaluate_segment).
    """
    if isinstance(node, Rule):
        return evaluate_rule(node, contact, errors)

    if node.operator == GroupOperator.AND:
        return all(evaluate_node(child, contact, errors) for child in node.rules)
    if node.operator == GroupOperator.OR:
        return any(evaluate_node(child, contact, errors) for child in node.rules)

    return False


def evaluate_segment(
    conditions: Any,
    contact: Any,
    errors: Optional[List[RuleEvaluationError]] = None,
) -> bool:
    """
    Evaluate a segment's root condition group against one contact.

    conditions may be the stored JSON or an already parsed ConditionGroup.
    A root with no rules matches every contact.
    """
    root = conditions if isinstance(conditions, ConditionGroup) else parse_conditions(conditions)
    if root is None or root.is_empty:
        return True
    return evaluate_node(root, contact, errors)

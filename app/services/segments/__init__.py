"""
Contact Segmentation

Rule evaluation for dynamic contact segments and materialization of the
segment membership table.
"""

from app.services.segments.conditions import ConditionGroup, GroupOperator, Rule, parse_conditions
from app.services.segments.evaluator import RuleEvaluationError, evaluate_segment
from app.services.segments.field_resolver import FieldType, resolve_field
from app.services.segments.materializer import (
    MembershipRefreshResult,
    SegmentMaterializer,
    SegmentPreviewResult,
)
from app.services.segments.operators import SegmentOperator, apply_operator
from app.services.segments.triggers import RefreshAction, SegmentEvent, decide_refresh

__all__ = [
    "ConditionGroup",
    "GroupOperator",
    "Rule",
    "parse_conditions",
    "RuleEvaluationError",
    "evaluate_segment",
    "FieldType",
    "resolve_field",
    "MembershipRefreshResult",
    "SegmentMaterializer",
    "SegmentPreviewResult",
    "SegmentOperator",
    "apply_operator",
    "RefreshAction",
    "SegmentEvent",
    "decide_refresh",
]

"""
Operator evaluation for segment rules.

The operator set is closed. Each operator is a plain function looked up in
OPERATOR_TABLE; unknown names never match.
"""

import logging
import math
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from app.services.segments.field_resolver import FieldType

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class SegmentOperator(str, Enum):
    # Equality
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    # String
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    # Numeric
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_EQUAL = "greater_equal"
    LESS_EQUAL = "less_equal"
    # Emptiness
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    # List
    IN_LIST = "in_list"
    NOT_IN_LIST = "not_in_list"
    # Temporal
    DATE_BEFORE = "date_before"
    DATE_AFTER = "date_after"
    # Tags
    TAG_CONTAINS = "tag_contains"


class InvalidOperandError(ValueError):
    """Rule operand has the wrong shape for its operator."""


# ----------------------------------------------------------------------------
# Coercion helpers
# ----------------------------------------------------------------------------


def to_text(value: Any) -> str:
    """String form used by the text operators."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple, set)):
        return ",".join(to_text(item) for item in value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def to_number(value: Any) -> Optional[float]:
    """Numeric form of value, or None when it has none."""
    if value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
        return None if math.isnan(number) else number
    if isinstance(value, datetime):
        return to_datetime(value).timestamp() * 1000
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return None
        return None if math.isnan(number) else number
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return None


def to_datetime(value: Any) -> datetime:
    """Timezone-aware datetime; missing or malformed input becomes the epoch."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return EPOCH
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return EPOCH
    else:
        return EPOCH

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def strict_equals(left: Any, right: Any) -> bool:
    """Equality without cross-type coercion ("80" != 80, True != 1)."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    left_numeric = isinstance(left, (int, float))
    right_numeric = isinstance(right, (int, float))
    if left_numeric or right_numeric:
        return left_numeric and right_numeric and left == right
    if isinstance(left, str) or isinstance(right, str):
        return isinstance(left, str) and isinstance(right, str) and left == right
    return left == right


def is_empty_value(value: Any) -> bool:
    if value is None or value is False or value == "":
        return True
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0 or math.isnan(value)
    if isinstance(value, (list, tuple, set)):
        return len(value) == 0
    return False


def _require_list(operand: Any) -> List[Any]:
    if not isinstance(operand, (list, tuple, set)):
        raise InvalidOperandError(f"Expected a list operand, got {type(operand).__name__}")
    return list(operand)


def _compare_numbers(value: Any, operand: Any, compare: Callable[[float, float], bool]) -> bool:
    left = to_number(value)
    if left is None:
        left = 0.0
    right = to_number(operand)
    if right is None:
        return False
    return compare(left, right)


# ----------------------------------------------------------------------------
# Operator implementations
# ----------------------------------------------------------------------------


def _equals(value, operand):
    return strict_equals(value, operand)


def _not_equals(value, operand):
    return not strict_equals(value, operand)


def _contains(value, operand):
    return to_text(operand).lower() in to_text(value).lower()


def _not_contains(value, operand):
    return not _contains(value, operand)


def _starts_with(value, operand):
    return to_text(value).lower().startswith(to_text(operand).lower())


def _ends_with(value, operand):
    return to_text(value).lower().endswith(to_text(operand).lower())


def _greater_than(value, operand):
    return _compare_numbers(value, operand, lambda a, b: a > b)


def _less_than(value, operand):
    return _compare_numbers(value, operand, lambda a, b: a < b)


def _greater_equal(value, operand):
    return _compare_numbers(value, operand, lambda a, b: a >= b)


def _less_equal(value, operand):
    return _compare_numbers(value, operand, lambda a, b: a <= b)


def _is_empty(value, operand):
    return is_empty_value(value)


def _is_not_empty(value, operand):
    return not is_empty_value(value)


def _in_list(value, operand):
    return any(strict_equals(value, item) for item in _require_list(operand))


def _not_in_list(value, operand):
    return not _in_list(value, operand)


def _date_before(value, operand):
    return to_datetime(value) < to_datetime(operand)


def _date_after(value, operand):
    return to_datetime(value) > to_datetime(operand)


def _tag_contains(value, operand):
    if not isinstance(value, (list, tuple, set)):
        return False
    needle = to_text(operand).lower()
    return any(needle in to_text(tag).lower() for tag in value)


OPERATOR_TABLE: Dict[SegmentOperator, Callable[[Any, Any], bool]] = {
    SegmentOperator.EQUALS: _equals,
    SegmentOperator.NOT_EQUALS: _not_equals,
    SegmentOperator.CONTAINS: _contains,
    SegmentOperator.NOT_CONTAINS: _not_contains,
    SegmentOperator.STARTS_WITH: _starts_with,
    SegmentOperator.ENDS_WITH: _ends_with,
    SegmentOperator.GREATER_THAN: _greater_than,
    SegmentOperator.LESS_THAN: _less_than,
    SegmentOperator.GREATER_EQUAL: _greater_equal,
    SegmentOperator.LESS_EQUAL: _less_equal,
    SegmentOperator.IS_EMPTY: _is_empty,
    SegmentOperator.IS_NOT_EMPTY: _is_not_empty,
    SegmentOperator.IN_LIST: _in_list,
    SegmentOperator.NOT_IN_LIST: _not_in_list,
    SegmentOperator.DATE_BEFORE: _date_before,
    SegmentOperator.DATE_AFTER: _date_after,
    SegmentOperator.TAG_CONTAINS: _tag_contains,
}


def apply_operator(operator: Any, value: Any, operand: Any = None) -> bool:
    """
    Apply a rule operator to a resolved field value.

    Unknown operator names return False. List operators raise
    InvalidOperandError for a non-list operand; callers treat that rule as
    a non-match.
    """
    try:
        op = SegmentOperator(operator)
    except ValueError:
        logger.debug(f"Unknown segment operator {operator!r}; rule does not match")
        return False
    return OPERATOR_TABLE[op](value, operand)


_OPERATORS_BY_TYPE: Dict[FieldType, List[SegmentOperator]] = {
    FieldType.TEXT: [
        SegmentOperator.EQUALS,
        SegmentOperator.NOT_EQUALS,
        SegmentOperator.CONTAINS,
        SegmentOperator.NOT_CONTAINS,
        SegmentOperator.STARTS_WITH,
        SegmentOperator.ENDS_WITH,
        SegmentOperator.IS_EMPTY,
        SegmentOperator.IS_NOT_EMPTY,
        SegmentOperator.IN_LIST,
        SegmentOperator.NOT_IN_LIST,
    ],
    FieldType.NUMBER: [
        SegmentOperator.EQUALS,
        SegmentOperator.NOT_EQUALS,
        SegmentOperator.GREATER_THAN,
        SegmentOperator.LESS_THAN,
        SegmentOperator.GREATER_EQUAL,
        SegmentOperator.LESS_EQUAL,
    ],
    FieldType.DATE: [
        SegmentOperator.DATE_BEFORE,
        SegmentOperator.DATE_AFTER,
        SegmentOperator.IS_EMPTY,
        SegmentOperator.IS_NOT_EMPTY,
    ],
    FieldType.TAGS: [
        SegmentOperator.TAG_CONTAINS,
        SegmentOperator.IS_EMPTY,
        SegmentOperator.IS_NOT_EMPTY,
    ],
    FieldType.BOOLEAN: [
        SegmentOperator.EQUALS,
        SegmentOperator.NOT_EQUALS,
    ],
}


def available_operators(field_type: Optional[FieldType] = None) -> List[str]:
    """Operator names offered for a field type (all operators for custom fields)."""
    if field_type is None or field_type not in _OPERATORS_BY_TYPE:
        return [op.value for op in SegmentOperator]
    return [op.value for op in _OPERATORS_BY_TYPE[field_type]]

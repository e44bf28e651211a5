"""Filter operator evaluation.

Operators form a closed grammar modelled by :class:`FilterOperator`. Each
member maps to exactly one evaluation function; tags outside the grammar are
rejected when they are parsed, before any document is looked at.

Semantics:
    - $eq / $ne: strict equality. Booleans never equal numbers, numbers
      compare numerically, lists and dicts compare structurally.
    - $gt / $gte / $lt / $lte: defined for number/number and string/string
      pairs only. Every other pairing is False; comparisons never raise.
    - $in / $nin: operand must be a list. $nin is also True when the
      operand is not a list.
    - $like: SQL pattern (% any run, _ any single character), matched
      case-insensitively against the whole value.
    - $exists: truthy operand selects present, non-null values.
"""

from __future__ import annotations

import math
import re
from enum import Enum
from functools import lru_cache
from typing import Any, Callable

from protodb.domain.errors import UnknownOperatorError


class FilterOperator(Enum):
    """Supported filter operators."""

    # Comparison
    EQ = "$eq"
    NE = "$ne"
    GT = "$gt"
    GTE = "$gte"
    LT = "$lt"
    LTE = "$lte"

    # Membership
    IN = "$in"
    NIN = "$nin"

    # Text
    LIKE = "$like"

    # Existence
    EXISTS = "$exists"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """Check if a string is a valid operator."""
        return value in _BY_TAG

    @classmethod
    def from_string(cls, value: str) -> FilterOperator:
        """Convert an operator tag to its enum member.

        Raises:
            UnknownOperatorError: If the tag is not part of the grammar.
        """
        try:
            return _BY_TAG[value]
        except KeyError:
            raise UnknownOperatorError(value) from None


_BY_TAG: dict[str, FilterOperator] = {op.value: op for op in FilterOperator}


def strict_equals(left: Any, right: Any) -> bool:
    """Equality without cross-type coercion between booleans and numbers."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if _is_number(left) or _is_number(right):
        return _is_number(left) and _is_number(right) and left == right
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return len(left) == len(right) and all(
            strict_equals(a, b) for a, b in zip(left, right)
        )
    if isinstance(left, dict) and isinstance(right, dict):
        return left.keys() == right.keys() and all(
            strict_equals(left[k], right[k]) for k in left
        )
    return type(left) is type(right) and left == right


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _comparable(value: Any, operand: Any) -> bool:
    if _is_number(value) and _is_number(operand):
        return not (math.isnan(value) or math.isnan(operand))
    return isinstance(value, str) and isinstance(operand, str)


def _op_eq(value: Any, operand: Any) -> bool:
    return strict_equals(value, operand)


def _op_ne(value: Any, operand: Any) -> bool:
    return not strict_equals(value, operand)


def _op_gt(value: Any, operand: Any) -> bool:
    return _comparable(value, operand) and value > operand


def _op_gte(value: Any, operand: Any) -> bool:
    return _comparable(value, operand) and value >= operand


def _op_lt(value: Any, operand: Any) -> bool:
    return _comparable(value, operand) and value < operand


def _op_lte(value: Any, operand: Any) -> bool:
    return _comparable(value, operand) and value <= operand


def _op_in(value: Any, operand: Any) -> bool:
    if not isinstance(operand, (list, tuple)):
        return False
    return any(strict_equals(value, candidate) for candidate in operand)


def _op_nin(value: Any, operand: Any) -> bool:
    if not isinstance(operand, (list, tuple)):
        return True
    return not any(strict_equals(value, candidate) for candidate in operand)


@lru_cache(maxsize=256)
def like_pattern(pattern: str) -> re.Pattern[str]:
    """Compile an SQL LIKE pattern into an anchored, case-insensitive regex."""
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def _op_like(value: Any, operand: Any) -> bool:
    if not isinstance(value, str) or not isinstance(operand, str):
        return False
    return like_pattern(operand).fullmatch(value) is not None


def _op_exists(value: Any, operand: Any) -> bool:
    exists = value is not None
    return exists if operand else not exists


_EVALUATORS: dict[FilterOperator, Callable[[Any, Any], bool]] = {
    FilterOperator.EQ: _op_eq,
    FilterOperator.NE: _op_ne,
    FilterOperator.GT: _op_gt,
    FilterOperator.GTE: _op_gte,
    FilterOperator.LT: _op_lt,
    FilterOperator.LTE: _op_lte,
    FilterOperator.IN: _op_in,
    FilterOperator.NIN: _op_nin,
    FilterOperator.LIKE: _op_like,
    FilterOperator.EXISTS: _op_exists,
}

OPERATORS: tuple[str, ...] = tuple(op.value for op in FilterOperator)


def evaluate(operator: FilterOperator, field_value: Any, operand: Any) -> bool:
    """Evaluate an already-parsed operator."""
    return _EVALUATORS[operator](field_value, operand)


def apply_operator(op: str | FilterOperator, field_value: Any, operand: Any) -> bool:
    """Apply a filter operator to a field value.

    Args:
        op: Operator tag (e.g. ``"$gte"``) or enum member.
        field_value: Value held by the document (None when absent).
        operand: Operand from the filter.

    Returns:
        True if the value satisfies the operator.

    Raises:
        UnknownOperatorError: If ``op`` is not a supported operator.
    """
    operator = op if isinstance(op, FilterOperator) else FilterOperator.from_string(op)
    return evaluate(operator, field_value, operand)


def is_operator_object(value: Any) -> bool:
    """True for a dict with at least one ``$``-prefixed key."""
    if not isinstance(value, dict):
        return False
    return any(isinstance(key, str) and key.startswith("$") for key in value)

"""
ticketflow_engines.conditions -- Condition evaluator.

Responsibility:
    Decide whether a condition (or an ANDed list of conditions) holds for
    a ticket's field snapshot.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Condition evaluation is
    pure; callers log.  Unsupported operators are reported through
    ``is_supported_operator`` and logged by the rule pass.

Invariants enforced:
    - Totality: ``evaluate`` never raises for a well-formed condition,
      whatever the field map holds.  A missing field compares as ``None``;
      an operator/value type mismatch is ``False``.
    - No type coercion: ``"1"`` does not equal ``1`` and ``True`` does not
      equal ``1``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Iterable

from ticketflow_kernel.domain.workflow import Condition, ConditionOperator


class _Missing:
    """Sentinel for a dot-path that does not resolve."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def resolve_path(fields: Mapping[str, Any] | None, path: str) -> Any:
    """Follow a dot-separated path through nested mappings.

    Returns ``MISSING`` when any segment is absent or the value in the way
    is not a mapping.  An exact key containing dots wins over the nested
    lookup, so ``{"a.b": 1}`` resolves ``"a.b"`` to ``1``.
    """
    if not isinstance(fields, Mapping):
        return MISSING
    if path in fields:
        return fields[path]
    current: Any = fields
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return MISSING
        current = current[part]
    return current


# ---------------------------------------------------------------------------
# Comparison primitives
# ---------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def strict_equals(left: Any, right: Any) -> bool:
    """Equality without cross-type coercion."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if _is_number(left) and _is_number(right):
        return left == right
    if type(left) is not type(right):
        # str vs int, list vs tuple, datetime vs date...
        if not (isinstance(left, Sequence) and isinstance(right, Sequence)
                and not isinstance(left, str) and not isinstance(right, str)):
            return False
        return len(left) == len(right) and all(
            strict_equals(a, b) for a, b in zip(left, right)
        )
    return bool(left == right)


def _strict_member(needle: Any, haystack: Iterable[Any]) -> bool:
    return any(strict_equals(needle, item) for item in haystack)


def _orderable(left: Any, right: Any) -> bool:
    if _is_number(left) and _is_number(right):
        return True
    # datetime is a subclass of date; require the same concrete type
    if isinstance(left, (datetime, date)) and type(left) is type(right):
        return True
    return False


def _equals(actual: Any, expected: Any) -> bool:
    return strict_equals(actual, expected)


def _not_equals(actual: Any, expected: Any) -> bool:
    return not strict_equals(actual, expected)


def _greater_than(actual: Any, expected: Any) -> bool:
    return _orderable(actual, expected) and actual > expected


def _less_than(actual: Any, expected: Any) -> bool:
    return _orderable(actual, expected) and actual < expected


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str):
        # Substring, case-sensitive
        return isinstance(expected, str) and expected in actual
    if isinstance(actual, (list, tuple, set, frozenset)):
        return _strict_member(expected, actual)
    return False


def _in(actual: Any, expected: Any) -> bool:
    if not isinstance(expected, (list, tuple, set, frozenset)):
        return False
    return _strict_member(actual, expected)


_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    ConditionOperator.EQUALS.value: _equals,
    ConditionOperator.NOT_EQUALS.value: _not_equals,
    ConditionOperator.GREATER_THAN.value: _greater_than,
    ConditionOperator.LESS_THAN.value: _less_than,
    ConditionOperator.CONTAINS.value: _contains,
    ConditionOperator.IN.value: _in,
}


def is_supported_operator(operator: str) -> bool:
    return operator in _OPERATORS


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def evaluate_condition(condition: Condition, fields: Mapping[str, Any] | None) -> bool:
    """Evaluate one condition.  Unsupported operators are ``False``."""
    op = _OPERATORS.get(condition.operator)
    if op is None:
        return False
    actual = resolve_path(fields, condition.field)
    if actual is MISSING:
        actual = None
    try:
        return op(actual, condition.value)
    except (TypeError, ValueError, ArithmeticError):
        # e.g. naive vs aware datetimes, NaN-like Decimal comparisons
        return False


def evaluate(
    condition_or_conjunction: Condition | Iterable[Condition],
    fields: Mapping[str, Any] | None,
) -> bool:
    """Evaluate a single condition or an ANDed sequence.

    An empty conjunction is ``True``.
    """
    if isinstance(condition_or_conjunction, Condition):
        return evaluate_condition(condition_or_conjunction, fields)
    return all(evaluate_condition(c, fields) for c in condition_or_conjunction)


def first_failing(
    conditions: Iterable[Condition],
    fields: Mapping[str, Any] | None,
) -> Condition | None:
    """Return the first condition that does not hold, for error messages."""
    for condition in conditions:
        if not evaluate_condition(condition, fields):
            return condition
    return None


def describe(condition: Condition) -> str:
    return f"{condition.field} {condition.operator} {condition.value!r}"

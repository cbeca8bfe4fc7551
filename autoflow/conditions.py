"""Evaluation of trigger and step conditions against event data.

All conditions in a sequence are ANDed and an empty sequence is true. A
condition whose field is absent from the payload is false, and operands that
cannot be compared are false as well; evaluation never raises for data
reasons and has no side effects.
"""

from __future__ import annotations

from numbers import Real
from typing import Any, Iterable, Mapping, Union

from .contracts import Condition, ConditionOperator
from .utils.paths import MISSING, resolve_path

ConditionLike = Union[Condition, Mapping[str, Any], str]


def coerce_condition(condition: ConditionLike) -> Condition:
    if isinstance(condition, Condition):
        return condition
    return Condition.model_validate(condition)


def coerce_conditions(conditions: Union[ConditionLike, Iterable[ConditionLike], None]) -> list[Condition]:
    """Normalise a single condition or a list of them.

    Raises:
        ValueError: if any entry is not a valid condition.
    """
    if conditions is None:
        return []
    if isinstance(conditions, (Condition, Mapping, str)):
        return [coerce_condition(conditions)]
    return [coerce_condition(c) for c in conditions]


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, Real):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _is_collection(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset, Mapping))


def _contains(container: Any, item: Any) -> bool | None:
    """``item in container``, or None when the check does not apply."""
    if isinstance(container, str):
        return item in container if isinstance(item, str) else None
    if _is_collection(container):
        try:
            return item in container
        except TypeError:
            return None
    return None


def _compare(operator: ConditionOperator, actual: Any, expected: Any) -> bool:
    if operator is ConditionOperator.EXISTS:
        return True
    if operator is ConditionOperator.EQ:
        return actual == expected
    if operator is ConditionOperator.NE:
        return actual != expected
    if operator in (
        ConditionOperator.GT,
        ConditionOperator.GTE,
        ConditionOperator.LT,
        ConditionOperator.LTE,
    ):
        left, right = _as_number(actual), _as_number(expected)
        if left is None or right is None:
            return False
        if operator is ConditionOperator.GT:
            return left > right
        if operator is ConditionOperator.GTE:
            return left >= right
        if operator is ConditionOperator.LT:
            return left < right
        return left <= right
    if operator in (ConditionOperator.CONTAINS, ConditionOperator.NOT_CONTAINS):
        found = _contains(actual, expected)
        if found is None:
            return False
        return found if operator is ConditionOperator.CONTAINS else not found
    if operator in (ConditionOperator.IN, ConditionOperator.NOT_IN):
        found = _contains(expected, actual)
        if found is None:
            return False
        return found if operator is ConditionOperator.IN else not found
    return False


def evaluate_condition(condition: ConditionLike, payload: Mapping[str, Any]) -> bool:
    """Evaluate one condition against ``payload``."""
    condition = coerce_condition(condition)
    actual = resolve_path(payload, condition.field)
    if actual is MISSING:
        return False
    return _compare(condition.operator, actual, condition.value)


def evaluate(conditions: Iterable[ConditionLike] | None, payload: Mapping[str, Any] | None) -> bool:
    """Return True when every condition holds for ``payload``."""
    payload = payload or {}
    return all(evaluate_condition(c, payload) for c in conditions or ())

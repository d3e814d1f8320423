"""
Condition evaluation for points rules and custom award criteria.

A condition is a plain mapping:

    {"field": "member.role", "operator": "equals", "value": "BOARD",
     "logical_operator": "AND"}

`field` is a dotted path into the trigger payload. Evaluation is pure and
total: a path that cannot be resolved yields MISSING, and every operator
answers a boolean for it without raising.

Operator semantics:
- equals / not_equals: strict equality. Booleans never equal numbers and
  strings never equal numbers; 1 and 1.0 are equal.
- greater_than / less_than: both sides coerced to numbers. Values that do
  not parse become NaN, so the comparison is false.
- contains / not_contains: case-insensitive substring test on the string
  forms. MISSING and None are the empty string.
- in / not_in: expected value must be a list; otherwise both are false.

Chains are folded left to right: each condition's `logical_operator`
(default AND) joins it to the next one, without precedence. A chain with no
OR links is a plain AND.
"""
import math
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Sequence

from ..utils.numbers import to_number


class Operator(str, Enum):
    """Comparison operators supported in conditions."""
    EQUALS = 'equals'
    NOT_EQUALS = 'not_equals'
    GREATER_THAN = 'greater_than'
    LESS_THAN = 'less_than'
    CONTAINS = 'contains'
    NOT_CONTAINS = 'not_contains'
    IN = 'in'
    NOT_IN = 'not_in'

    @classmethod
    def values(cls):
        return [o.value for o in cls]


class LogicalOperator(str, Enum):
    """Link between a condition and the next one in a chain."""
    AND = 'AND'
    OR = 'OR'

    @classmethod
    def values(cls):
        return [o.value for o in cls]


class _Missing:
    """Marker for a field path that does not resolve."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return 'MISSING'

    def __bool__(self):
        return False


MISSING = _Missing()


# ==================== Field Resolution ====================

def resolve_field(payload: Any, path: Any) -> Any:
    """
    Walk `payload` by the dotted `path`.

    Mappings are indexed by key, lists by integer position. Returns MISSING
    as soon as a hop is absent or the current value cannot be indexed.
    """
    if not isinstance(path, str) or not path:
        return MISSING

    current = payload
    for key in path.split('.'):
        if isinstance(current, Mapping):
            if key not in current:
                return MISSING
            current = current[key]
        elif isinstance(current, (list, tuple)) and key.isdigit():
            index = int(key)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def to_serializable(value: Any) -> Any:
    """MISSING becomes None so condition results can be returned as JSON."""
    return None if value is MISSING else value


# ==================== Operator Helpers ====================

def _is_real_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def strict_equals(actual: Any, expected: Any) -> bool:
    """Equality without type coercion."""
    if actual is MISSING or expected is MISSING:
        return actual is expected
    if actual is None or expected is None:
        return actual is None and expected is None
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected
    if _is_real_number(actual) or _is_real_number(expected):
        return _is_real_number(actual) and _is_real_number(expected) and actual == expected
    if isinstance(actual, str) or isinstance(expected, str):
        return isinstance(actual, str) and isinstance(expected, str) and actual == expected
    if isinstance(actual, Mapping) and isinstance(expected, Mapping):
        return (
            actual.keys() == expected.keys()
            and all(strict_equals(actual[k], expected[k]) for k in actual)
        )
    if isinstance(actual, (list, tuple)) and isinstance(expected, (list, tuple)):
        return len(actual) == len(expected) and all(
            strict_equals(a, e) for a, e in zip(actual, expected)
        )
    return False


def _to_text(value: Any) -> str:
    if value is MISSING or value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float):
        if math.isnan(value):
            return 'NaN'
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (list, tuple)):
        return ','.join(_to_text(v) for v in value)
    return str(value)


def _contains(actual: Any, expected: Any) -> bool:
    return _to_text(expected).lower() in _to_text(actual).lower()


def _member_of(actual: Any, options: Sequence) -> bool:
    return any(strict_equals(actual, option) for option in options)


# ==================== Evaluation ====================

def evaluate_operator(operator: Any, actual: Any, expected: Any) -> bool:
    """Apply a single operator. Unknown operators evaluate to False."""
    if operator == Operator.EQUALS.value:
        return strict_equals(actual, expected)
    if operator == Operator.NOT_EQUALS.value:
        return not strict_equals(actual, expected)
    if operator == Operator.GREATER_THAN.value:
        return to_number(actual) > to_number(expected)
    if operator == Operator.LESS_THAN.value:
        return to_number(actual) < to_number(expected)
    if operator == Operator.CONTAINS.value:
        return _contains(actual, expected)
    if operator == Operator.NOT_CONTAINS.value:
        return not _contains(actual, expected)
    if operator == Operator.IN.value:
        return isinstance(expected, (list, tuple)) and _member_of(actual, expected)
    if operator == Operator.NOT_IN.value:
        return isinstance(expected, (list, tuple)) and not _member_of(actual, expected)
    return False


def evaluate_condition(condition: Mapping, payload: Any) -> bool:
    """Evaluate one condition against a payload. Never raises."""
    if not isinstance(condition, Mapping):
        return False
    operator = condition.get('operator')
    if isinstance(operator, Enum):
        operator = operator.value
    actual = resolve_field(payload, condition.get('field'))
    return evaluate_operator(operator, actual, condition.get('value', MISSING))


def evaluate_conditions(conditions: Sequence[Mapping], payload: Any) -> List[Dict[str, Any]]:
    """Per-condition results, in order, for dry runs and audit display."""
    results = []
    for index, condition in enumerate(conditions or []):
        condition = condition if isinstance(condition, Mapping) else {}
        actual = resolve_field(payload, condition.get('field'))
        results.append({
            'index': index,
            'field': condition.get('field'),
            'operator': condition.get('operator'),
            'expected_value': condition.get('value'),
            'actual_value': to_serializable(actual),
            'passed': evaluate_condition(condition, payload),
        })
    return results


def _link(condition: Mapping) -> str:
    link = condition.get('logical_operator') if isinstance(condition, Mapping) else None
    if isinstance(link, Enum):
        link = link.value
    return LogicalOperator.OR.value if str(link or '').upper() == 'OR' else LogicalOperator.AND.value


def combine_results(conditions: Sequence[Mapping], results: Sequence[bool]) -> bool:
    """Fold already-evaluated condition results along the chain's links."""
    if not results:
        return False
    outcome = bool(results[0])
    for previous, passed in zip(conditions, results[1:]):
        if _link(previous) == LogicalOperator.OR.value:
            outcome = outcome or bool(passed)
        else:
            outcome = outcome and bool(passed)
    return outcome


def matches(conditions: Sequence[Mapping], payload: Any) -> bool:
    """
    True when the condition chain is satisfied by the payload.

    An empty chain never matches.
    """
    conditions = list(conditions or [])
    if not conditions:
        return False
    return combine_results(conditions, [evaluate_condition(c, payload) for c in conditions])


# ==================== Validation ====================

def validate_condition(condition: Any, position: int) -> List[str]:
    """
    Itemized problems with one condition.

    `position` is 1-based and used in the messages.
    """
    prefix = f'Condition {position}'
    if not isinstance(condition, Mapping):
        return [f'{prefix}: must be an object']

    errors = []
    field = condition.get('field')
    operator = condition.get('operator')
    if isinstance(operator, Enum):
        operator = operator.value

    if not field or not isinstance(field, str):
        errors.append(f'{prefix}: Field is required')
    if not operator:
        errors.append(f'{prefix}: Operator is required')
    elif operator not in Operator.values():
        errors.append(f"{prefix}: Unknown operator '{operator}'")

    value = condition.get('value')
    if value is None or value == '':
        errors.append(f'{prefix}: Value is required')
    elif operator in (Operator.IN.value, Operator.NOT_IN.value) and not isinstance(value, (list, tuple)):
        errors.append(f'{prefix}: Value must be a list for operator {operator}')

    link = condition.get('logical_operator')
    if isinstance(link, Enum):
        link = link.value
    if link is not None and str(link).upper() not in LogicalOperator.values():
        errors.append(f"{prefix}: Unknown logical operator '{link}'")

    return errors


def validate_conditions(conditions: Any) -> List[str]:
    """Itemized problems with a whole chain; empty list when valid."""
    if not isinstance(conditions, (list, tuple)) or len(conditions) == 0:
        return ['At least one condition is required']

    errors = []
    for index, condition in enumerate(conditions):
        errors.extend(validate_condition(condition, index + 1))
    return errors

"""
Milestone / progress engine.

Pure functions over an award definition (model or mapping with `criteria`
and `milestones`) and a current progress value:

- progress_percent: integer 0..100, exactly 100 iff the definition is complete
- completed_milestones: milestones whose threshold has been reached, ascending
- newly_completed: completed now but not in the previously stored levels

Milestones are always re-sorted by threshold before use. When a definition
has no milestones its `criteria.value` acts as a single implicit milestone.
"""
import math
from decimal import Decimal
from typing import Any, Iterable, List, Mapping

from ..models.gamification import BINARY_CRITERIA
from ..utils.numbers import round_half_up, to_decimal, to_number, is_number

# Incomplete progress never displays as 100
MAX_INCOMPLETE_PERCENT = 99


def _get(definition: Any, key: str, default=None):
    if isinstance(definition, Mapping):
        return definition.get(key, default)
    return getattr(definition, key, default)


def _criteria(definition: Any) -> Mapping:
    return _get(definition, 'criteria') or {}


def _value(current_value: Any) -> float:
    number = to_number(current_value)
    if math.isnan(number) or number < 0:
        return 0.0
    return number


def threshold_of(milestone: Mapping) -> float:
    return to_number(milestone.get('threshold'))


def level_of(milestone: Mapping) -> str:
    return str(milestone.get('level', ''))


def sorted_milestones(definition: Any) -> List[Mapping]:
    """Milestones with a numeric threshold, ascending by threshold."""
    milestones = [
        m for m in (_get(definition, 'milestones') or [])
        if isinstance(m, Mapping) and not math.isnan(threshold_of(m))
    ]
    return sorted(milestones, key=threshold_of)


def completed_milestones(definition: Any, current_value: Any) -> List[Mapping]:
    """All milestones whose threshold is <= current value, ascending."""
    value = _value(current_value)
    return [m for m in sorted_milestones(definition) if value >= threshold_of(m)]


def completed_levels(definition: Any, current_value: Any) -> List[str]:
    return [level_of(m) for m in completed_milestones(definition, current_value)]


def newly_completed(definition: Any, current_value: Any, previous_levels: Iterable[str]) -> List[Mapping]:
    """Milestones completed at `current_value` that are not in `previous_levels`."""
    previous = set(previous_levels or [])
    return [m for m in completed_milestones(definition, current_value) if level_of(m) not in previous]


def is_complete(definition: Any, current_value: Any) -> bool:
    """
    Full completion: the highest milestone is reached, or, without
    milestones, the criteria target is reached.
    """
    value = _value(current_value)
    milestones = sorted_milestones(definition)
    if milestones:
        return value >= threshold_of(milestones[-1])
    target = _criteria(definition).get('value')
    return is_number(target) and value >= target


def _percent(numerator: float, denominator: float) -> int:
    ratio = Decimal(100) * to_decimal(numerator) / to_decimal(denominator)
    return round_half_up(ratio)


def progress_percent(definition: Any, current_value: Any) -> int:
    """Percent complete toward the next milestone (or the criteria target)."""
    value = _value(current_value)

    if is_complete(definition, value):
        return 100

    milestones = sorted_milestones(definition)
    if milestones:
        previous_threshold = 0.0
        target = milestones[-1]
        for milestone in milestones:
            if value >= threshold_of(milestone):
                previous_threshold = threshold_of(milestone)
            else:
                target = milestone
                break

        span = threshold_of(target) - previous_threshold
        if span <= 0:
            return 0
        percent = _percent(max(0.0, value - previous_threshold), span)
        return max(0, min(MAX_INCOMPLETE_PERCENT, percent))

    criteria = _criteria(definition)
    target_value = to_number(criteria.get('value'))
    if criteria.get('type') in BINARY_CRITERIA:
        return 0
    if math.isnan(target_value) or target_value <= 0:
        return 0
    return max(0, min(MAX_INCOMPLETE_PERCENT, _percent(value, target_value)))


def next_milestone(definition: Any, current_value: Any):
    """First milestone not yet reached, or None."""
    value = _value(current_value)
    for milestone in sorted_milestones(definition):
        if value < threshold_of(milestone):
            return milestone
    return None


def validate_milestones(milestones: Any) -> List[str]:
    """Itemized problems with a milestone list; empty when valid."""
    if milestones is None:
        return []
    if not isinstance(milestones, (list, tuple)):
        return ['Milestones must be a list']

    errors = []
    seen_levels = set()
    previous = None
    for index, milestone in enumerate(milestones):
        prefix = f'Milestone {index + 1}'
        if not isinstance(milestone, Mapping):
            errors.append(f'{prefix}: must be an object')
            continue

        level = milestone.get('level')
        if not level:
            errors.append(f'{prefix}: Level is required')
        elif level in seen_levels:
            errors.append(f"{prefix}: Duplicate level '{level}'")
        else:
            seen_levels.add(level)

        threshold = milestone.get('threshold')
        if not is_number(threshold):
            errors.append(f'{prefix}: Threshold must be a number')
        else:
            if threshold < 0:
                errors.append(f'{prefix}: Threshold must not be negative')
            if previous is not None and threshold <= previous:
                errors.append(f'{prefix}: Thresholds must be strictly increasing')
            previous = threshold

        point_value = milestone.get('point_value', 0)
        if not is_number(point_value) or point_value < 0:
            errors.append(f'{prefix}: Point value must be a non-negative number')

    return errors

"""
Numeric helpers shared by the points and progress calculations.
"""
import math
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

NAN = float('nan')


def to_decimal(value) -> Decimal:
    """Convert int/float/str to Decimal without binary float artifacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_half_up(value) -> int:
    """
    Round to the nearest integer, halves away from zero.

    round(2.5) == 3 and round(12.5) == 13, unlike the builtin round().
    """
    return int(to_decimal(value).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def to_number(value) -> float:
    """
    Loose numeric coercion used by ordering comparisons.

    None, '' and whitespace-only strings are 0; booleans are 0/1; numeric
    strings parse; anything else is NaN so every comparison against it is
    false.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        # Decimal accepts digit separators ('1_000'); numeric text here does not
        if '_' in text:
            return NAN
        try:
            number = float(Decimal(text))
        except (InvalidOperation, ValueError):
            return NAN
        return number
    return NAN


def is_number(value) -> bool:
    """True for real numbers (bool excluded) that are not NaN."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return False
    return not (isinstance(value, float) and math.isnan(value))

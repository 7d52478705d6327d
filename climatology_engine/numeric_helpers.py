"""Null-safe numeric helpers for climatological aggregation.

Every aggregate in the engine is built on these helpers. Inputs are sequences
that may contain None, NaN, infinities or values read back from a tabular
store as text. Anything that is not a finite number is ignored, and an input
without a single finite value yields None rather than 0 or NaN.

Summation uses math.fsum so that results do not depend on input order. A sum
that overflows the float range falls back to plain summation and yields inf,
which round2 maps to None.
"""

import math
from typing import Any, Iterable, List, Optional


def to_number(value: Any) -> Optional[float]:
    """Coerce a raw value into a finite float.

    Args:
        value (Any): Number, numeric string (thousands separators allowed) or
            anything else.

    Returns:
        Optional[float]: The finite float value or None when the value is
            missing, non-numeric or not finite. Booleans are not numbers here.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        try:
            number = float(value)
        except (TypeError, ValueError, OverflowError):
            return None

    return number if math.isfinite(number) else None


def finite_values(values: Iterable[Any]) -> List[float]:
    """Return the finite numeric members of values, in input order."""
    result = []
    for value in values:
        number = to_number(value)
        if number is not None:
            result.append(number)

    return result


def _sum(numbers: List[float]) -> float:
    try:
        return math.fsum(numbers)
    except OverflowError:
        return sum(numbers)


def mean(values: Iterable[Any]) -> Optional[float]:
    numbers = finite_values(values)
    if not numbers:
        return None

    return _sum(numbers) / len(numbers)


def total(values: Iterable[Any]) -> Optional[float]:
    numbers = finite_values(values)
    if not numbers:
        return None

    return _sum(numbers)


def minimum(values: Iterable[Any]) -> Optional[float]:
    numbers = finite_values(values)

    return min(numbers) if numbers else None


def maximum(values: Iterable[Any]) -> Optional[float]:
    numbers = finite_values(values)

    return max(numbers) if numbers else None


def count_at_least(values: Iterable[Any], threshold: float) -> int:
    """Count the finite values that reach threshold (inclusive)."""
    return sum(1 for number in finite_values(values) if number >= threshold)


def round2(value: Any) -> Optional[float]:
    """Round half up to two decimal places.

    Args:
        value (Any): Value to round. Non-finite or non-numeric values give None.

    Returns:
        Optional[float]: Rounded value, with negative zero normalized to 0.0.
            Values too large to scale by 100 are returned unchanged.
    """
    number = to_number(value)
    if number is None:
        return None

    if not math.isfinite(number * 100):
        return number

    rounded = math.floor(number * 100 + 0.5) / 100
    if rounded == 0:
        return 0.0

    return rounded

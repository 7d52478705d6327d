"""Percent normalization for cells that mix fractions and percentages.

Historical records hold percent possible sunshine as fractions (0.52), as
whole percentages (52) or as text ("52%"). normalize_percent maps all of them
onto a fraction. Values above 100 are passed through unchanged to stay
compatible with previously persisted rows; they are logged and can be
detected with is_out_of_range_percent.
"""

import logging
from typing import Any, Optional

from climatology_engine.numeric_helpers import to_number

logger = logging.getLogger(__name__)


def _to_fraction(value: Any) -> Optional[float]:
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("%"):
            number = to_number(text[:-1])
            return None if number is None else number / 100
        number = to_number(text)
    else:
        number = to_number(value)

    if number is not None and 1 < number <= 100:
        return number / 100

    return number


def normalize_percent(value: Any) -> Optional[float]:
    """Convert a raw percent cell into a canonical fraction.

    Args:
        value (Any): Fraction, whole percentage, numeric text or text with a
            trailing "%".

    Returns:
        Optional[float]: The fraction, the unchanged value when it exceeds 100,
            or None when the value cannot be parsed.

    Example:
        normalize_percent(0.5)    -> 0.5
        normalize_percent(84)     -> 0.84
        normalize_percent("12%")  -> 0.12
        normalize_percent(150)    -> 150.0
    """
    number = _to_fraction(value)

    if number is not None and number > 100:
        logger.warning(f"Percent value {number} is above 100 and was left unchanged.")

    return number


def is_out_of_range_percent(value: Any) -> bool:
    """Check whether a normalized percent value falls outside [0, 1]."""
    number = _to_fraction(value)

    return number is not None and not 0 <= number <= 1

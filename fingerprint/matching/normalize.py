"""
Field comparison primitives.

Every function here returns a score in [0, 1] and never raises. Missing or
malformed values score 0.0: two absent values are not evidence that two
fingerprints agree.
"""

import math
from typing import Any, Iterable, Optional

# Differences below this count as exact for continuous attributes
EPSILON = 1e-4


def _text(value: Any) -> Optional[str]:
    """Text form of a scalar, or None when blank."""
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    return value if value.strip() else None


def string_score(a: Any, b: Any) -> float:
    """Case-insensitive equality of two non-blank values."""
    left, right = _text(a), _text(b)
    if left is None or right is None:
        return 0.0
    return 1.0 if left.casefold() == right.casefold() else 0.0


def numeric_score(a: Any, b: Any) -> float:
    """Exact equality of two integral attributes (cores, memory, touch points)."""
    if a is None or b is None:
        return 0.0
    try:
        return 1.0 if int(a) == int(b) and float(a) == float(b) else 0.0
    except (TypeError, ValueError, OverflowError):
        return 0.0


def range_score(a: Any, b: Any, tolerance: float) -> float:
    """Linear falloff over ``tolerance`` for continuous attributes."""
    if a is None or b is None:
        return 0.0
    try:
        diff = abs(float(a) - float(b))
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(diff):
        return 0.0
    if diff < EPSILON:
        return 1.0
    if tolerance <= 0 or diff > tolerance:
        return 0.0
    return max(0.0, 1.0 - diff / tolerance)


def _value_set(values: Optional[Iterable[Any]]) -> set[str]:
    if values is None or isinstance(values, str):
        return set()
    result = set()
    for value in values:
        if value is None:
            continue
        text = value if isinstance(value, str) else str(value)
        if text.strip():
            result.add(text)
    return result


def jaccard(a: Optional[Iterable[Any]], b: Optional[Iterable[Any]]) -> float:
    """Jaccard index of two value collections, ignoring null and blank entries."""
    if a is None or b is None:
        return 0.0
    left, right = _value_set(a), _value_set(b)
    if not left or not right:
        return 0.0
    return len(left & right) / len(left | right)


def mean_score(values: Iterable[Optional[float]]) -> float:
    """Arithmetic mean of the defined scores; 0.0 when none are defined."""
    total = 0.0
    count = 0
    for value in values:
        if value is None or math.isnan(value):
            continue
        total += value
        count += 1
    return total / count if count else 0.0

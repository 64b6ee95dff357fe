"""Shared numeric helpers for ratio calculation."""

from __future__ import annotations

import math
from typing import Any, Mapping


def safe_float(value: object) -> float:
    """Extract a finite float from a scalar value, defaulting to 0.0.

    Booleans are rejected so that flags never leak into arithmetic.

    Args:
        value: Scalar value (may be None, NaN, a string or non-finite).

    Returns:
        Finite float, or 0.0 on any failure.
    """
    if isinstance(value, bool):
        return 0.0
    try:
        f = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(f):
        return 0.0
    return f


def safe_ratio(numerator: object, denominator: object) -> float:
    """Divide two values, returning 0.0 whenever the result is undefined.

    A zero, missing or non-finite denominator yields 0.0, as does a
    missing or zero numerator. The result is always finite.

    Args:
        numerator: Dividend.
        denominator: Divisor.

    Returns:
        numerator / denominator, or 0.0.
    """
    num = safe_float(numerator)
    den = safe_float(denominator)
    if num == 0.0 or den == 0.0:
        return 0.0
    result = num / den
    return result if math.isfinite(result) else 0.0


def pick(record: Mapping[str, Any], *names: str) -> float:
    """Return the first non-zero finite value among ``names`` in ``record``.

    Args:
        record: Source mapping.
        *names: Candidate field names, in priority order.

    Returns:
        The first usable value, or 0.0 when none is present.
    """
    for name in names:
        value = safe_float(record.get(name))
        if value != 0.0:
            return value
    return 0.0

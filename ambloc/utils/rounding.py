"""Rounding helpers."""

import math


def round_half_away(value: float, digits: int = 0) -> float:
    """
    Round to ``digits`` decimals, halves away from zero.

    ``round`` and ``np.round`` both round halves to even, which would turn
    an aggregated 0.5665 into 0.566 instead of 0.567.
    """
    if not math.isfinite(value):
        return value
    scale = 10.0 ** digits
    return math.copysign(math.floor(abs(value) * scale + 0.5) / scale, value)


def round_to_int(value: float) -> int:
    """Nearest integer, halves away from zero."""
    return int(round_half_away(value, 0))

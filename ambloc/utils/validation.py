"""Input validation utilities."""

import numbers
from typing import Tuple

import numpy as np

PROBABILITY_TOLERANCE = 1e-6


def validate_probability_table(probabilities: np.ndarray) -> Tuple[bool, str]:
    """
    Validate a discrete demand distribution.

    Returns:
        (is_valid, error_message) tuple
    """
    if probabilities.ndim != 1:
        return False, f"probability table must be 1D, got shape {probabilities.shape}"

    if len(probabilities) == 0:
        return False, "probability table is empty"

    if np.any(np.isnan(probabilities)):
        return False, "probability table contains NaN values"

    if np.any(probabilities < 0):
        return False, "probability table contains negative values"

    total = float(probabilities.sum())
    if abs(total - 1.0) > PROBABILITY_TOLERANCE:
        return False, f"probabilities sum to {total}, not 1.0"

    return True, ""


def validate_alpha(alpha: float) -> Tuple[bool, str]:
    """Target service level must lie in [0, 1]."""
    if not (0.0 <= alpha <= 1.0):
        return False, f"alpha must be in [0,1], got {alpha}"
    return True, ""


def validate_count(value: int, name: str) -> Tuple[bool, str]:
    """Sample sizes and sample counts must be positive integers."""
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        return False, f"{name} must be an integer, got {value!r}"
    if value < 1:
        return False, f"{name} must be at least 1, got {value}"
    return True, ""

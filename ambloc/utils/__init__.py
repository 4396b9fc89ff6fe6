"""Utility helpers."""

from .rounding import round_half_away, round_to_int
from .validation import validate_alpha, validate_count, validate_probability_table

__all__ = [
    "round_half_away",
    "round_to_int",
    "validate_alpha",
    "validate_count",
    "validate_probability_table",
]

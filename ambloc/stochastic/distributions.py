"""
Demand Distributions
====================

Discrete demand distributions of single demand nodes.
"""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np

from ..exceptions import InvalidInputError
from ..utils.validation import validate_probability_table


class DemandDistribution:
    """
    Discrete distribution over demand levels 0..L-1.

    The index of an entry is the demand volume, the value its probability.
    Tables are validated, never normalized: a table that does not sum to 1
    is a configuration error.

    Args:
        probabilities: Probability of each demand level

    Example:
        >>> # Demand 0, 1 or 2 with probabilities 0.2, 0.5, 0.3
        >>> dist = DemandDistribution([0.2, 0.5, 0.3])
        >>> dist.level_for(0.65)
        1
    """

    def __init__(self, probabilities: Union[Sequence[float], np.ndarray]) -> None:
        probabilities = np.array(probabilities, dtype=np.float64)
        valid, message = validate_probability_table(probabilities)
        if not valid:
            raise InvalidInputError(message)

        self.probabilities = probabilities
        self.probabilities.flags.writeable = False
        self.cumulative = np.cumsum(probabilities)
        self.cumulative.flags.writeable = False

    @property
    def n_levels(self) -> int:
        return len(self.probabilities)

    @property
    def max_level(self) -> int:
        return self.n_levels - 1

    def level_for(self, u: float) -> int:
        """Smallest level whose cumulative probability exceeds ``u``."""
        return int(self.levels_for(np.asarray([u]))[0])

    def levels_for(self, u: np.ndarray) -> np.ndarray:
        """
        Vectorized inverse CDF lookup.

        Draws for which rounding leaves no cumulative value above the draw
        fall back to the last level.
        """
        levels = np.searchsorted(self.cumulative, u, side="right")
        return np.minimum(levels, self.max_level)

    def mean(self) -> float:
        """Expected demand volume."""
        return float(np.arange(self.n_levels) @ self.probabilities)

    def __len__(self) -> int:
        return self.n_levels

    def __repr__(self) -> str:
        return f"DemandDistribution({self.probabilities.tolist()})"

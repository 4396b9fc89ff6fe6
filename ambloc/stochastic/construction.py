"""
Solution Construction
=====================

Merge the solutions of m independent samples of the location problem
into one implementable configuration of bases and units.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from loguru import logger

from ..exceptions import InvalidInputError
from ..result import Solution, Status
from ..utils.rounding import round_half_away, round_to_int


class SolutionConstructor:
    """
    Build one configuration from per-sample solutions.

    Bases are ranked by their support (fraction of samples that open
    them) and opened up to an estimated count; units are distributed over
    the open bases in proportion to their sample-average unit counts.

    Args:
        solutions: One solution per sample (infeasible ones count as all-closed)
        open_costs: f_j of the graph
        unit_costs: g_j of the graph

    Example:
        >>> constructor = SolutionConstructor(solutions, graph.open_costs, graph.ambulance_costs)
        >>> solution = constructor.construct(base_lower_bound=2, unit_upper_bound=10)
    """

    def __init__(
        self,
        solutions: Sequence[Solution],
        open_costs: np.ndarray,
        unit_costs: np.ndarray,
    ) -> None:
        if len(solutions) == 0:
            raise InvalidInputError("at least one sample solution is required")

        self.open_costs = np.asarray(open_costs, dtype=np.float64)
        self.unit_costs = np.asarray(unit_costs, dtype=np.float64)
        self.n_samples = len(solutions)

        self.x = np.vstack([s.x for s in solutions]) > 0
        self.z = np.vstack([s.z for s in solutions])
        self.solve_times = np.array([s.solve_time for s in solutions], dtype=np.float64)

    @property
    def n_bases(self) -> int:
        return self.x.shape[1]

    def open_counts(self) -> np.ndarray:
        """Number of samples in which each base is open."""
        return self.x.sum(axis=0)

    def supports(self) -> np.ndarray:
        """Fraction of samples in which each base is open."""
        return self.open_counts() / self.n_samples

    def estimated_number_of_bases(self, base_lower_bound: int) -> int:
        """ceil(sum of supports), rounded to 4 decimals first, and at least the lower bound."""
        total = round_half_away(self.open_counts().sum() / self.n_samples, 4)
        return max(int(math.ceil(total)), int(base_lower_bound))

    def ranking(self) -> np.ndarray:
        """Base indices by descending support; equal supports by ascending index."""
        return np.lexsort((np.arange(self.n_bases), -self.supports()))

    def construct_bases(self, base_lower_bound: int) -> np.ndarray:
        """
        Open the best-supported bases.

        The top ``estimated_number_of_bases`` bases of the ranking are
        opened. A base that is open in every sample is opened as well,
        wherever it ranks.
        """
        estimate = self.estimated_number_of_bases(base_lower_bound)
        unanimous = self.open_counts() == self.n_samples

        bases = np.zeros(self.n_bases, dtype=np.int64)
        for rank, j in enumerate(self.ranking()):
            if rank < estimate or unanimous[j]:
                bases[j] = 1

        logger.debug("Estimated {} bases, opened {}", estimate, int(bases.sum()))
        return bases

    def average_units(self) -> np.ndarray:
        """Sample-average number of units per base, over all samples."""
        return self.z.sum(axis=0) / self.n_samples

    def estimated_number_of_units(self, unit_upper_bound: int) -> int:
        """min(ceil(sum of average units), upper bound)."""
        total = self.z.sum() / self.n_samples
        return min(int(math.ceil(total)), int(unit_upper_bound))

    def construct_ambulances(self, bases: np.ndarray, unit_upper_bound: int) -> np.ndarray:
        """
        Distribute the estimated number of units over the open bases.

        Each open base receives its share of the open bases' average units,
        rounded on its own. The shares are not renormalized, so the total
        may differ from the estimate by up to one unit per open base.
        If the open bases carry no units in any sample there is nothing to
        distribute in proportion to: every base gets zero units, whatever
        the estimate.
        """
        bases = np.asarray(bases) > 0
        averages = self.average_units()
        estimate = self.estimated_number_of_units(unit_upper_bound)
        denominator = float(averages[bases].sum())

        units = np.zeros(self.n_bases, dtype=np.int64)
        if denominator == 0.0:
            logger.warning("Open bases carry no units in any sample; assigning none")
            return units

        for j in np.flatnonzero(bases):
            units[j] = round_to_int(averages[j] / denominator * estimate)

        logger.debug("Estimated {} units, allocated {}", estimate, int(units.sum()))
        return units

    def construct(self, base_lower_bound: int, unit_upper_bound: int) -> Solution:
        """
        Construct the aggregate solution.

        The objective is recomputed from the constructed vectors and the
        graph costs; the solve time is the sum over all samples.
        """
        bases = self.construct_bases(base_lower_bound)
        units = self.construct_ambulances(bases, unit_upper_bound)

        solution = Solution(
            x=bases,
            z=units,
            y=None,
            objective_value=None,
            solve_time=round_half_away(float(self.solve_times.sum()), 4),
            status=Status.CONSTRUCTED,
        )
        solution.objective_value = solution.costs(self.open_costs, self.unit_costs)
        return solution

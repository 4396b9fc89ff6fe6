"""
Optimizer Interface
===================

Contract between the sampling core and the external combinatorial
optimizer that solves one sample.

The optimizer is called exactly once per sample and returns either a
feasible :class:`~ambloc.result.Solution` or ``Solution.infeasible(...)``.
Retry and time-limit policies belong to the optimizer, not to this package.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional, Sequence

import numpy as np
from loguru import logger
from scipy.optimize import Bounds, LinearConstraint, milp

from .exceptions import BoundInfeasibleError
from .result import Solution

if TYPE_CHECKING:
    from .stochastic.scenarios import Sample


class ProblemKind(Enum):
    """Which model the optimizer has to build for a sample."""
    LOCATION = "location"
    ASSIGNMENT = "assignment"

    def __str__(self) -> str:
        return self.value


class AssignmentMethod(Enum):
    """
    Assignment models.

    Attributes:
        WHOLE_SCENARIOS: Service level is met by whole scenarios
        PART_SCENARIOS: Service level is met by parts of scenarios
        MAX_SERVICE_LEVEL: Maximize the service level, no target needed
    """
    WHOLE_SCENARIOS = "whole scenarios"
    PART_SCENARIOS = "part scenarios"
    MAX_SERVICE_LEVEL = "max service level"

    def __str__(self) -> str:
        return self.value

    @property
    def uses_alpha(self) -> bool:
        return self is not AssignmentMethod.MAX_SERVICE_LEVEL


@dataclass(frozen=True)
class OptimizerContext:
    """
    Parameters passed along with every sample.

    Attributes:
        problem: Location or assignment problem
        alpha: Target service level
        beta: Factor balancing driving costs against construction costs
            (location problem only)
        base_solution: Fixed bases and units (assignment problem only)
        assignment_method: Assignment model (assignment problem only)
    """

    problem: ProblemKind
    alpha: float
    beta: Optional[float] = None
    base_solution: Optional[Solution] = None
    assignment_method: Optional[AssignmentMethod] = None


class Optimizer(ABC):
    """
    External solver for single samples.

    Subclasses implement :meth:`solve`. :meth:`solve_cover` answers the
    covering query behind the base lower bound; the default builds a small
    0/1 program and hands it to HiGHS through ``scipy.optimize.milp``.

    Example:
        >>> class MyOptimizer(Optimizer):
        ...     def solve(self, sample, context):
        ...         ...  # build and solve the model for this sample
        ...         return Solution(x=x, z=z, objective_value=obj, solve_time=t)
    """

    @abstractmethod
    def solve(self, sample: Sample, context: OptimizerContext) -> Solution:
        """Solve one sample; return ``Solution.infeasible(...)`` if it has no solution."""

    def solve_cover(self, bases_covering_demand: Sequence[frozenset], n_bases: int) -> int:
        """
        Minimum number of bases such that every demand node is covered.

        Args:
            bases_covering_demand: J_i for every demand i
            n_bases: Number of candidate bases

        Returns:
            Minimum number of open bases

        Raises:
            BoundInfeasibleError: If some demand cannot be covered
        """
        return minimum_cover(bases_covering_demand, n_bases)


def minimum_cover(bases_covering_demand: Sequence[frozenset], n_bases: int) -> int:
    """
    Solve min sum_j x_j  s.t.  sum_{j in J_i} x_j >= 1 for all i, x binary.
    """
    n_demands = len(bases_covering_demand)
    if n_demands == 0:
        return 0

    uncovered = [i for i, covering in enumerate(bases_covering_demand) if not covering]
    if uncovered:
        raise BoundInfeasibleError(
            f"Demands {uncovered} are not covered by any base",
            uncovered=uncovered,
        )

    A = np.zeros((n_demands, n_bases))
    for i, covering in enumerate(bases_covering_demand):
        A[i, sorted(covering)] = 1.0

    result = milp(
        c=np.ones(n_bases),
        integrality=np.ones(n_bases),
        bounds=Bounds(0, 1),
        constraints=LinearConstraint(A, lb=np.ones(n_demands), ub=np.inf),
    )

    if not result.success:
        raise BoundInfeasibleError(f"Covering model failed: {result.message}")

    n_open = int(round(result.fun))
    logger.debug("Covering model: {} of {} bases needed", n_open, n_bases)
    return n_open

"""
ambloc Result Classes
=====================

Data classes for sample solutions, aggregate solutions and their status.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np


class Status(Enum):
    """
    Solution status codes.

    Attributes:
        OPTIMAL: Optimizer returned a solution for the sample
        INFEASIBLE: Sample has no feasible solution (objective is -inf)
        AVERAGED: Aggregate of per-sample solutions (assignment problem)
        CONSTRUCTED: Configuration built from per-sample solutions (location problem)
        NO_FEASIBLE_SAMPLES: Aggregate over a batch in which every sample was infeasible
    """
    OPTIMAL = "optimal"
    INFEASIBLE = "infeasible"
    AVERAGED = "averaged"
    CONSTRUCTED = "constructed"
    NO_FEASIBLE_SAMPLES = "no_feasible_samples"

    def __str__(self) -> str:
        return self.value

    @property
    def is_feasible(self) -> bool:
        """True if the solution carries a usable objective value."""
        return self in (Status.OPTIMAL, Status.AVERAGED, Status.CONSTRUCTED)


@dataclass
class Solution:
    """
    Solution of one sample, or the aggregate of a batch.

    Attributes:
        x: Open/closed vector over bases (1 if base j is open)
        z: Number of units stationed at each base
        y: Optional assignment tensor (demands, bases, scenarios);
           y[i, j, w] units of base j serve demand i in scenario w
        objective_value: Objective of the model that produced the solution;
           -inf if infeasible, None if undefined
        service_level: Fraction of demand served in time
        solve_time: Optimizer time in seconds (sum for aggregates)
        status: Solution status

    Example:
        >>> sol = Solution(x=[1, 0, 1], z=[2, 0, 1], objective_value=12.5)
        >>> sol.number_of_bases
        2
    """

    x: np.ndarray
    z: np.ndarray
    y: Optional[np.ndarray] = None
    objective_value: Optional[float] = 0.0
    service_level: float = 0.0
    solve_time: float = 0.0
    status: Status = Status.OPTIMAL

    def __post_init__(self):
        self.x = np.asarray(self.x, dtype=np.int64)
        self.z = np.asarray(self.z, dtype=np.int64)
        if self.y is not None:
            self.y = np.asarray(self.y, dtype=np.int64)

    @classmethod
    def infeasible(cls, n_bases: int, solve_time: float = 0.0) -> Solution:
        """Sentinel solution for a sample the optimizer could not solve."""
        return cls(
            x=np.zeros(n_bases, dtype=np.int64),
            z=np.zeros(n_bases, dtype=np.int64),
            y=None,
            objective_value=float("-inf"),
            service_level=0.0,
            solve_time=solve_time,
            status=Status.INFEASIBLE,
        )

    @property
    def is_feasible(self) -> bool:
        return self.status.is_feasible

    @property
    def n_bases(self) -> int:
        return len(self.x)

    @property
    def number_of_bases(self) -> int:
        """Number of open bases."""
        return int(self.x.sum())

    @property
    def number_of_units(self) -> int:
        """Total number of units over all bases."""
        return int(self.z.sum())

    def costs(self, open_costs: np.ndarray, unit_costs: np.ndarray) -> float:
        """Fixed costs of the configuration: sum of x_j f_j + z_j g_j."""
        return float(self.x @ np.asarray(open_costs) + self.z @ np.asarray(unit_costs))

    def __repr__(self) -> str:
        objective = "None" if self.objective_value is None else f"{self.objective_value:.6g}"
        return (
            f"Solution(status={self.status}, "
            f"bases={self.number_of_bases}, "
            f"units={self.number_of_units}, "
            f"objective={objective}, "
            f"time={self.solve_time:.4f}s)"
        )

    def __str__(self) -> str:
        lines = []
        for j in range(self.n_bases):
            if self.x[j] == 0:
                lines.append(f"Base {j} not installed.")
            else:
                lines.append(f"Base {j} installed with {self.z[j]} ambulances.")
        return "\n".join(lines)

    def summary(self) -> str:
        """Return a formatted summary of the solution."""
        objective = "undefined" if self.objective_value is None else f"{self.objective_value:.10g}"
        lines = [
            "=" * 50,
            "ambloc Solution Summary",
            "=" * 50,
            f"Status:           {self.status}",
            f"Objective:        {objective}",
            f"Service level:    {self.service_level:.3f}",
            f"Solve time:       {self.solve_time:.4f} s",
            "-" * 50,
            f"Open bases:       {self.number_of_bases}",
            f"Units:            {self.number_of_units}",
            "=" * 50,
        ]
        return "\n".join(lines)

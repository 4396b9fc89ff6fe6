"""
Bound Estimation
================

Bounds that anchor the solution construction of the location problem:
a lower bound on the number of bases and an upper bound on the number
of units (ambulances).
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, List

from loguru import logger

from ..exceptions import InvalidInputError
from ..utils.validation import validate_alpha
from .scenarios import DEFAULT_EXPLOSION_THRESHOLD, ScenarioSpace

if TYPE_CHECKING:
    from ..graph import AmbulanceGraph
    from ..optimizer import Optimizer


class UpperBoundStrategy(Enum):
    """
    How the upper bound on the number of units is computed.

    Attributes:
        WEAK: (highest demand level) x (number of demand nodes); constant
            time and independent of alpha
        STRONG: alpha-quantile of the total demand volume, by enumerating
            every scenario; exponential in the number of demand nodes
    """
    WEAK = "weak"
    STRONG = "strong"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value) -> UpperBoundStrategy:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidInputError(f"unknown upper bound strategy {value!r}") from None


class BoundEstimator:
    """
    Bounds of one graph, memoized on the graph itself.

    The base lower bound is computed once per graph; the unit upper bound
    once per (strategy, target service level). Estimators created for the
    same graph, for example by independent batches, share these values.

    Args:
        graph: Ambulance graph
        optimizer: Optimizer answering the covering query
        strategy: Upper bound strategy (weak by default)
        explosion_threshold: Scenario count above which the strong bound
            emits a ScenarioExplosionWarning

    Example:
        >>> bounds = BoundEstimator(graph, optimizer)
        >>> bounds.base_lower_bound()
        2
        >>> bounds.unit_upper_bound(alpha=0.9)
        8
    """

    def __init__(
        self,
        graph: AmbulanceGraph,
        optimizer: Optimizer,
        strategy: UpperBoundStrategy = UpperBoundStrategy.WEAK,
        explosion_threshold: int = DEFAULT_EXPLOSION_THRESHOLD,
    ) -> None:
        self.graph = graph
        self.optimizer = optimizer
        self.strategy = UpperBoundStrategy.parse(strategy)
        self.explosion_threshold = explosion_threshold

    def base_lower_bound(self) -> int:
        """
        Minimum number of bases covering every demand node.

        Raises:
            BoundInfeasibleError: If the covering model is infeasible
        """
        if self.graph.base_lower_bound is None:
            self.graph.base_lower_bound = int(
                self.optimizer.solve_cover(self.graph.bases_covering_demand, self.graph.n_bases)
            )
            logger.info("Graph {}: lower bound on bases = {}", self.graph.name, self.graph.base_lower_bound)
        return self.graph.base_lower_bound

    def unit_upper_bound(self, alpha: float) -> int:
        """Upper bound on the total number of units for target service level alpha."""
        valid, message = validate_alpha(alpha)
        if not valid:
            raise InvalidInputError(message)

        key = (self.strategy.value, alpha)
        cache = self.graph.unit_upper_bounds
        if key not in cache:
            if self.strategy is UpperBoundStrategy.STRONG:
                bound = self._strong_upper_bound(alpha)
            else:
                bound = self._weak_upper_bound()
            cache[key] = bound
            logger.info(
                "Graph {}: {} upper bound on units for alpha={} = {}",
                self.graph.name, self.strategy, alpha, bound,
            )
        return cache[key]

    def _weak_upper_bound(self) -> int:
        return self.graph.max_demand_level * self.graph.n_demands

    def _strong_upper_bound(self, alpha: float) -> int:
        space = ScenarioSpace(self.graph, explosion_threshold=self.explosion_threshold)
        histogram = space.volume_histogram()

        cumulative = 0.0
        for volume, prob in histogram.items():
            cumulative += prob
            if cumulative >= alpha:
                return volume

        # accumulated rounding error kept the total just below alpha
        return max(histogram)

    def export_bounds(self, alpha: float) -> List[List[str]]:
        """One GRAPH_BOUNDS row: graph, alpha, min_bases, max_ambulances."""
        return [[
            self.graph.name,
            str(alpha),
            str(self.base_lower_bound()),
            str(self.unit_upper_bound(alpha)),
        ]]

    def __repr__(self) -> str:
        return (
            f"BoundEstimator(graph={self.graph.name!r}, "
            f"strategy={self.strategy}, "
            f"base_lower_bound={self.graph.base_lower_bound})"
        )

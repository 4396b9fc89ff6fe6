"""
Scenario Management
===================

Scenario generation for the ambulance location and assignment problems.

A scenario is one realization of demand levels across all demand nodes.
A :class:`Sample` bundles a finite, weighted set of scenarios with the
cost vectors and coverage sets of the graph it was drawn from.
"""

from __future__ import annotations

import warnings
from collections.abc import Iterator
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from ..exceptions import (
    DimensionError,
    InvalidInputError,
    ScenarioExplosionWarning,
    StateError,
)
from ..result import Solution
from ..utils.validation import validate_count
from .distributions import DemandDistribution

if TYPE_CHECKING:
    from ..graph import AmbulanceGraph

DEFAULT_EXPLOSION_THRESHOLD = 1_000_000


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr.flags.writeable = False
    return arr


class Sample:
    """
    A self-contained problem instance.

    Holds n demand scenarios with their probabilities, plus the per-base
    costs and coverage sets copied from the graph. A sample never changes
    after construction, except for the one solution attached after solving.

    Attributes:
        d: Demand level per scenario and demand node (n, n_demands)
        pi: Probability per scenario (n,)
        f: Opening cost per base
        g: Cost per unit per base
        demands_covered_by_base: I_j per base
        bases_covering_demand: J_i per demand
        seed: Seed of the random stream (None for full enumeration)
        is_full: True if the sample holds every scenario of the graph
    """

    def __init__(
        self,
        d: np.ndarray,
        pi: np.ndarray,
        f: np.ndarray,
        g: np.ndarray,
        demands_covered_by_base: Sequence[frozenset],
        bases_covering_demand: Sequence[frozenset],
        seed: Optional[int] = None,
        is_full: bool = False,
    ) -> None:
        d = np.asarray(d, dtype=np.int64)
        pi = np.asarray(pi, dtype=np.float64)

        if d.ndim != 2:
            raise DimensionError(f"scenario matrix must be 2D, got shape {d.shape}")
        if pi.shape != (d.shape[0],):
            raise DimensionError(f"pi must have shape ({d.shape[0]},), got {pi.shape}")
        if abs(pi.sum() - 1.0) > 1e-6:
            raise InvalidInputError(f"scenario probabilities sum to {pi.sum()}, not 1.0")

        self.d = _readonly(d)
        self.pi = _readonly(pi)
        self.f = _readonly(np.array(f, dtype=np.float64))
        self.g = _readonly(np.array(g, dtype=np.float64))
        self.demands_covered_by_base: Tuple[frozenset, ...] = tuple(demands_covered_by_base)
        self.bases_covering_demand: Tuple[frozenset, ...] = tuple(bases_covering_demand)
        self.seed = seed
        self.is_full = is_full
        self._solution: Optional[Solution] = None

    @property
    def n_scenarios(self) -> int:
        return self.d.shape[0]

    @property
    def n_demands(self) -> int:
        return self.d.shape[1]

    @property
    def n_bases(self) -> int:
        return len(self.f)

    @property
    def solution(self) -> Optional[Solution]:
        return self._solution

    @property
    def is_solved(self) -> bool:
        return self._solution is not None

    def attach_solution(self, solution: Solution) -> None:
        """
        Attach the optimizer's solution; allowed exactly once.

        Raises:
            StateError: If a solution is already attached
            DimensionError: If the solution does not match the sample
        """
        if self._solution is not None:
            raise StateError("sample already has a solution")
        self.check_solution(solution)
        self._solution = solution

    def check_solution(self, solution: Solution) -> None:
        """Raise DimensionError unless the solution's vectors fit this sample."""
        if solution.x.shape != (self.n_bases,) or solution.z.shape != (self.n_bases,):
            raise DimensionError(
                f"solution vectors must have shape ({self.n_bases},), "
                f"got x={solution.x.shape}, z={solution.z.shape}"
            )
        if solution.y is not None:
            expected = (self.n_demands, self.n_bases, self.n_scenarios)
            if solution.y.shape != expected:
                raise DimensionError(f"assignment tensor must have shape {expected}, got {solution.y.shape}")

    @property
    def demand_sums(self) -> np.ndarray:
        """Total demand volume per scenario."""
        return self.d.sum(axis=1)

    def level_frequencies(self, node: int, n_levels: Optional[int] = None) -> np.ndarray:
        """Probability-weighted frequency of each demand level at one demand node."""
        levels = self.d[:, node]
        size = int(levels.max()) + 1 if n_levels is None else n_levels
        return np.bincount(levels, weights=self.pi, minlength=size)

    def __len__(self) -> int:
        return self.n_scenarios

    def __iter__(self) -> Iterator[Tuple[np.ndarray, float]]:
        return zip(self.d, self.pi)

    def __repr__(self) -> str:
        kind = "full" if self.is_full else f"seed={self.seed}"
        return f"Sample(n_scenarios={self.n_scenarios}, n_demands={self.n_demands}, {kind})"


def iter_scenarios(
    distributions: Sequence[DemandDistribution],
) -> Iterator[Tuple[Tuple[int, ...], float]]:
    """
    Enumerate every scenario and its joint probability.

    Mixed-radix counter over the level-table lengths; the last node varies
    fastest. Each step costs O(number of demand nodes).

    Example:
        >>> dists = [DemandDistribution([0.5, 0.5]), DemandDistribution([0.25, 0.75])]
        >>> [levels for levels, _ in iter_scenarios(dists)]
        [(0, 0), (0, 1), (1, 0), (1, 1)]
    """
    radices = [dist.n_levels for dist in distributions]
    tables = [dist.probabilities for dist in distributions]
    k = len(radices)
    counter = [0] * k

    while True:
        prob = 1.0
        for node in range(k):
            prob *= tables[node][counter[node]]
        yield tuple(counter), prob

        node = k - 1
        while node >= 0:
            counter[node] += 1
            if counter[node] < radices[node]:
                break
            counter[node] = 0
            node -= 1
        if node < 0:
            return


class _Progress:
    """Logs enumeration progress every 10 percent."""

    def __init__(self, total: int, label: str) -> None:
        self.total = total
        self.label = label
        self.done = 0
        self._next = 1

    def step(self) -> None:
        self.done += 1
        decile = self.done * 10 // self.total
        if decile >= self._next:
            logger.info("{}: {}% of {} scenarios done", self.label, decile * 10, self.total)
            self._next = decile + 1


class ScenarioSpace:
    """
    Generate demand scenarios of a graph.

    Args:
        graph: Ambulance graph supplying distributions, costs and coverage
        explosion_threshold: Full enumerations above this many scenarios
            emit a :class:`ScenarioExplosionWarning`

    Example:
        >>> space = ScenarioSpace(graph)
        >>> sample = space.random_sample(n=100, seed=7)
        >>> full = space.full_sample()
    """

    def __init__(
        self,
        graph: AmbulanceGraph,
        explosion_threshold: int = DEFAULT_EXPLOSION_THRESHOLD,
    ) -> None:
        self.graph = graph
        self.distributions: List[DemandDistribution] = graph.distributions
        self.explosion_threshold = explosion_threshold

    @property
    def n_demands(self) -> int:
        return len(self.distributions)

    @property
    def number_of_scenarios(self) -> int:
        """Product of all level-table lengths."""
        total = 1
        for dist in self.distributions:
            total *= dist.n_levels
        return total

    def draw_levels(self, n: int, seed: int) -> np.ndarray:
        """
        Draw an (n, n_demands) matrix of demand levels.

        One uniform per (scenario, node) from a single stream seeded with
        ``seed``, scenario-major and node-minor. Identical seeds give
        bit-identical matrices.
        """
        valid, message = validate_count(n, "sample size")
        if not valid:
            raise InvalidInputError(message)

        rng = np.random.default_rng(seed)
        u = rng.random((n, self.n_demands))

        d = np.empty((n, self.n_demands), dtype=np.int64)
        for i, dist in enumerate(self.distributions):
            d[:, i] = dist.levels_for(u[:, i])
        return d

    def random_sample(self, n: int, seed: int) -> Sample:
        """Monte Carlo sample of n equally likely scenarios."""
        d = self.draw_levels(n, seed)
        pi = np.full(n, 1.0 / n)
        return self._build(d, pi, seed=seed, is_full=False)

    def full_sample(self) -> Sample:
        """
        Sample containing every scenario with its joint probability.

        The scenario count grows exponentially with the number of demand
        nodes; it is reported before enumeration starts.
        """
        total = self._announce("full sample")
        d = np.empty((total, self.n_demands), dtype=np.int64)
        pi = np.empty(total, dtype=np.float64)

        progress = _Progress(total, "full sample")
        for w, (levels, prob) in enumerate(iter_scenarios(self.distributions)):
            d[w] = levels
            pi[w] = prob
            progress.step()

        return self._build(d, pi, seed=None, is_full=True)

    def volume_histogram(self) -> Dict[int, float]:
        """
        Probability of every total demand volume, by full enumeration.

        Returns:
            Mapping total volume -> probability, in increasing volume order
        """
        total = self._announce("demand volume histogram")
        histogram: Dict[int, float] = {}

        progress = _Progress(total, "demand volume histogram")
        for levels, prob in iter_scenarios(self.distributions):
            volume = sum(levels)
            histogram[volume] = histogram.get(volume, 0.0) + prob
            progress.step()

        return dict(sorted(histogram.items()))

    def _announce(self, label: str) -> int:
        total = self.number_of_scenarios
        logger.warning("{}: {} demand scenarios have to be enumerated", label, total)
        if total > self.explosion_threshold:
            warnings.warn(
                f"{label}: enumerating {total} scenarios (threshold {self.explosion_threshold})",
                ScenarioExplosionWarning,
                stacklevel=3,
            )
        return total

    def _build(self, d: np.ndarray, pi: np.ndarray, seed: Optional[int], is_full: bool) -> Sample:
        return Sample(
            d=d,
            pi=pi,
            f=self.graph.open_costs,
            g=self.graph.ambulance_costs,
            demands_covered_by_base=self.graph.demands_covered_by_base,
            bases_covering_demand=self.graph.bases_covering_demand,
            seed=seed,
            is_full=is_full,
        )

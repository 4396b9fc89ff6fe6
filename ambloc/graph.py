"""
Ambulance Graph
===============

Graph data contract consumed by sample generation: bases with costs,
demand nodes with discrete demand distributions, and the coverage
relations between them.

Driving times and reachability are computed by an external collaborator;
this module only receives the resulting coverage sets.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .exceptions import DimensionError, InvalidInputError
from .stochastic.distributions import DemandDistribution


@dataclass(frozen=True)
class Node:
    """A node of the graph; ``index`` is 0-based and stable."""

    index: int
    name: str


@dataclass
class Base:
    """
    A node that can host a base.

    Args:
        node: Location in the graph
        costs: Cost of opening the base
        costs_per_ambulance: Cost of stationing one unit at the base
    """

    node: Node
    costs: float
    costs_per_ambulance: float
    covered_demands: FrozenSet[int] = field(default_factory=frozenset)


@dataclass
class Demand:
    """
    A node with uncertain demand.

    Args:
        node: Location in the graph
        distribution: Discrete distribution over demand levels 0..L-1
    """

    node: Node
    distribution: DemandDistribution
    bases_covering: FrozenSet[int] = field(default_factory=frozenset)

    @property
    def probabilities(self) -> np.ndarray:
        return self.distribution.probabilities


class AmbulanceGraph:
    """
    Bases, demand nodes and their coverage relations.

    Base and demand indices are positions in ``bases`` and ``demands``;
    they are fixed here and used by every downstream structure.

    Args:
        name: Graph name, used in exported rows
        bases: Bases in index order
        demands: Demand nodes in index order
        demands_covered_by_base: For each base index, the demand indices
            reachable in time
        nodes: Optional full node list (defaults to the base and demand nodes)

    Example:
        >>> graph = AmbulanceGraph.from_coverage(
        ...     "toy",
        ...     base_costs=[10.0, 12.0],
        ...     ambulance_costs=[3.0, 3.0],
        ...     demand_probabilities=[[0.5, 0.5], [0.2, 0.5, 0.3]],
        ...     demands_covered_by_base=[{0}, {0, 1}],
        ... )
        >>> graph.n_bases, graph.n_demands
        (2, 2)
    """

    def __init__(
        self,
        name: str,
        bases: Sequence[Base],
        demands: Sequence[Demand],
        demands_covered_by_base: Sequence[Iterable[int]],
        nodes: Optional[Sequence[Node]] = None,
    ) -> None:
        self.name = name
        self.bases: List[Base] = list(bases)
        self.demands: List[Demand] = list(demands)

        if len(demands_covered_by_base) != len(self.bases):
            raise DimensionError(
                f"coverage given for {len(demands_covered_by_base)} bases, graph has {len(self.bases)}"
            )

        covering: Dict[int, set] = {i: set() for i in range(len(self.demands))}
        for j, covered in enumerate(demands_covered_by_base):
            covered = frozenset(int(i) for i in covered)
            for i in covered:
                if i not in covering:
                    raise DimensionError(f"base {j} covers unknown demand index {i}")
                covering[i].add(j)
            self.bases[j].covered_demands = covered

        for i, demand in enumerate(self.demands):
            demand.bases_covering = frozenset(covering[i])

        if nodes is None:
            seen = {}
            for b in self.bases:
                seen.setdefault(b.node.index, b.node)
            for d in self.demands:
                seen.setdefault(d.node.index, d.node)
            nodes = [seen[k] for k in sorted(seen)]
        self.nodes: List[Node] = list(nodes)

        # filled by BoundEstimator; shared by every estimator on this graph
        self.base_lower_bound: Optional[int] = None
        self.unit_upper_bounds: Dict[Tuple[str, float], int] = {}

    @classmethod
    def from_coverage(
        cls,
        name: str,
        base_costs: Sequence[float],
        ambulance_costs: Sequence[float],
        demand_probabilities: Sequence[Sequence[float]],
        demands_covered_by_base: Optional[Sequence[Iterable[int]]] = None,
        bases_covering_demand: Optional[Sequence[Iterable[int]]] = None,
        base_names: Optional[Sequence[str]] = None,
        demand_names: Optional[Sequence[str]] = None,
    ) -> AmbulanceGraph:
        """
        Build a graph from plain arrays.

        Bases and demands get separate nodes, bases first. At least one
        coverage direction must be given; if both are, they must agree.
        """
        if len(base_costs) != len(ambulance_costs):
            raise DimensionError(
                f"{len(base_costs)} base costs but {len(ambulance_costs)} ambulance costs"
            )

        n_bases = len(base_costs)
        n_demands = len(demand_probabilities)
        base_names = list(base_names) if base_names is not None else [f"B{j + 1}" for j in range(n_bases)]
        demand_names = list(demand_names) if demand_names is not None else [f"D{i + 1}" for i in range(n_demands)]

        bases = [
            Base(Node(j, base_names[j]), float(base_costs[j]), float(ambulance_costs[j]))
            for j in range(n_bases)
        ]
        demands = [
            Demand(Node(n_bases + i, demand_names[i]), DemandDistribution(demand_probabilities[i]))
            for i in range(n_demands)
        ]

        if demands_covered_by_base is None and bases_covering_demand is None:
            raise InvalidInputError("coverage sets are required")

        if bases_covering_demand is not None:
            if len(bases_covering_demand) != n_demands:
                raise DimensionError(
                    f"coverage given for {len(bases_covering_demand)} demands, graph has {n_demands}"
                )
            derived: List[set] = [set() for _ in range(n_bases)]
            for i, covering in enumerate(bases_covering_demand):
                for j in covering:
                    if not 0 <= j < n_bases:
                        raise DimensionError(f"demand {i} covered by unknown base index {j}")
                    derived[j].add(i)
            if demands_covered_by_base is not None:
                given = [set(s) for s in demands_covered_by_base]
                if given != derived:
                    raise InvalidInputError("base->demand and demand->base coverage sets disagree")
            demands_covered_by_base = derived

        return cls(name, bases, demands, demands_covered_by_base)

    @property
    def n_bases(self) -> int:
        return len(self.bases)

    @property
    def n_demands(self) -> int:
        return len(self.demands)

    @property
    def open_costs(self) -> np.ndarray:
        """f_j: cost of opening base j."""
        return np.array([b.costs for b in self.bases], dtype=np.float64)

    @property
    def ambulance_costs(self) -> np.ndarray:
        """g_j: cost per unit at base j."""
        return np.array([b.costs_per_ambulance for b in self.bases], dtype=np.float64)

    @property
    def distributions(self) -> List[DemandDistribution]:
        return [d.distribution for d in self.demands]

    @property
    def demands_covered_by_base(self) -> List[FrozenSet[int]]:
        """I_j for every base j."""
        return [b.covered_demands for b in self.bases]

    @property
    def bases_covering_demand(self) -> List[FrozenSet[int]]:
        """J_i for every demand i."""
        return [d.bases_covering for d in self.demands]

    @property
    def number_of_scenarios(self) -> int:
        """Size of the full scenario space (product of level-table lengths)."""
        total = 1
        for d in self.demands:
            total *= d.distribution.n_levels
        return total

    @property
    def max_demand_level(self) -> int:
        """Highest demand level index over all demand nodes."""
        if not self.demands:
            return 0
        return max(d.distribution.n_levels for d in self.demands) - 1

    def __repr__(self) -> str:
        return (
            f"AmbulanceGraph(name={self.name!r}, "
            f"bases={self.n_bases}, "
            f"demands={self.n_demands})"
        )

"""
pytest configuration and fixtures for ambloc tests.
"""

import threading

import numpy as np
import pytest

from ambloc import AmbulanceGraph, Optimizer, ProblemKind, Solution


# ============================================================================
# Optimizers
# ============================================================================

class GreedyOptimizer(Optimizer):
    """
    Deterministic stand-in for the external optimizer.

    Location: opens a greedy cover of all demand nodes and stations at
    each open base the peak demand it serves over the sample's scenarios.
    Assignment: serves demand from the first open covering base with
    spare units and reports the served fraction as service level.

    Samples whose seed is listed in ``infeasible_seeds`` are reported
    infeasible.
    """

    def __init__(self, infeasible_seeds=(), solve_time=0.25):
        self.infeasible_seeds = set(infeasible_seeds)
        self.solve_time = solve_time
        self.calls = []
        self.cover_calls = 0
        self._lock = threading.Lock()

    def solve(self, sample, context):
        with self._lock:
            self.calls.append(sample)

        if sample.seed is not None and sample.seed in self.infeasible_seeds:
            return Solution.infeasible(sample.n_bases, solve_time=self.solve_time)

        if context.problem is ProblemKind.LOCATION:
            return self._locate(sample)
        return self._assign(sample, context.base_solution)

    def solve_cover(self, bases_covering_demand, n_bases):
        self.cover_calls += 1
        return super().solve_cover(bases_covering_demand, n_bases)

    def _locate(self, sample):
        x = np.zeros(sample.n_bases, dtype=np.int64)
        uncovered = set(range(sample.n_demands))
        while uncovered:
            gains = [len(sample.demands_covered_by_base[j] & uncovered) for j in range(sample.n_bases)]
            best = int(np.argmax(gains))
            if gains[best] == 0:
                return Solution.infeasible(sample.n_bases, solve_time=self.solve_time)
            x[best] = 1
            uncovered -= sample.demands_covered_by_base[best]

        owner = [min(j for j in sample.bases_covering_demand[i] if x[j]) for i in range(sample.n_demands)]
        z = np.zeros(sample.n_bases, dtype=np.int64)
        for j in np.flatnonzero(x):
            served = [i for i in range(sample.n_demands) if owner[i] == j]
            z[j] = int(sample.d[:, served].sum(axis=1).max()) if served else 0

        return Solution(
            x=x,
            z=z,
            objective_value=float(x @ sample.f + z @ sample.g),
            service_level=1.0,
            solve_time=self.solve_time,
        )

    def _assign(self, sample, base_solution):
        n_w = sample.n_scenarios
        y = np.zeros((sample.n_demands, sample.n_bases, n_w), dtype=np.int64)
        served_total = 0.0
        demand_total = 0.0
        for w in range(n_w):
            capacity = base_solution.z.copy()
            for i in range(sample.n_demands):
                need = int(sample.d[w, i])
                for j in sorted(sample.bases_covering_demand[i]):
                    if need == 0:
                        break
                    take = min(need, int(capacity[j])) if base_solution.x[j] else 0
                    y[i, j, w] += take
                    capacity[j] -= take
                    need -= take
            served_total += sample.pi[w] * y[:, :, w].sum()
            demand_total += sample.pi[w] * sample.d[w].sum()

        service_level = 1.0 if demand_total == 0 else served_total / demand_total
        return Solution(
            x=base_solution.x.copy(),
            z=base_solution.z.copy(),
            y=y,
            objective_value=float(served_total),
            service_level=float(service_level),
            solve_time=self.solve_time,
        )


class ScriptedOptimizer(Optimizer):
    """Returns prepared solutions in dispatch order (sequential batches only)."""

    def __init__(self, solutions, cover=1):
        self.solutions = list(solutions)
        self.cover = cover
        self.calls = 0
        self.cover_calls = 0

    def solve(self, sample, context):
        solution = self.solutions[self.calls]
        self.calls += 1
        return solution

    def solve_cover(self, bases_covering_demand, n_bases):
        self.cover_calls += 1
        return self.cover


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def toy_graph():
    """
    Three bases, three demand nodes.

    Base 0 covers demand 0, base 1 covers demands 0 and 1, base 2 covers
    demands 1 and 2. The minimum cover needs two bases (1 and 2).
    """
    return AmbulanceGraph.from_coverage(
        "toy",
        base_costs=[10.0, 12.0, 9.0],
        ambulance_costs=[3.0, 3.0, 4.0],
        demand_probabilities=[
            [0.2, 0.5, 0.3],
            [0.6, 0.4],
            [0.1, 0.3, 0.4, 0.2],
        ],
        demands_covered_by_base=[{0}, {0, 1}, {1, 2}],
    )


@pytest.fixture
def two_node_graph():
    """Two demand nodes with level tables of lengths 3 and 2, one base."""
    return AmbulanceGraph.from_coverage(
        "two_nodes",
        base_costs=[5.0],
        ambulance_costs=[1.0],
        demand_probabilities=[[0.2, 0.5, 0.3], [0.4, 0.6]],
        demands_covered_by_base=[{0, 1}],
    )


@pytest.fixture
def single_node_graph():
    """One demand node with probability table [0.2, 0.5, 0.3]."""
    return AmbulanceGraph.from_coverage(
        "single",
        base_costs=[1.0],
        ambulance_costs=[1.0],
        demand_probabilities=[[0.2, 0.5, 0.3]],
        demands_covered_by_base=[{0}],
    )


@pytest.fixture
def greedy_optimizer():
    return GreedyOptimizer()


def make_solution(x, z, objective=None, service_level=1.0, solve_time=1.0):
    """Feasible sample solution with costs as objective unless given."""
    x = np.asarray(x)
    z = np.asarray(z)
    return Solution(
        x=x,
        z=z,
        objective_value=float(z.sum()) if objective is None else objective,
        service_level=service_level,
        solve_time=solve_time,
    )


# ============================================================================
# Markers
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks integration tests")

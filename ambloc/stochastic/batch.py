"""
Sample Batches
==============

Batches of m samples sharing one graph, seed and target parameters.

A batch generates its samples, dispatches each of them exactly once to
the external optimizer and aggregates the per-sample solutions:

* :class:`LocationBatch` constructs one configuration of bases and units
  from the sample solutions;
* :class:`AssignmentBatch` averages the performance of a fixed
  configuration over the samples.

Seeding is two-level: one top-level generator seeded with the base seed
draws one seed per sample, in sample order, before any sample is built.
Each sample then draws its scenarios from its own generator, so
(base seed, m, n) fixes every scenario regardless of how samples are
dispatched.
"""

from __future__ import annotations

import warnings
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

import numpy as np
from loguru import logger

from ..config import BatchConfig
from ..exceptions import InvalidInputError, NoFeasibleSamplesWarning, StateError
from ..export import Row, fmt_objective, fmt_value, fmt_vector
from ..optimizer import AssignmentMethod, OptimizerContext, ProblemKind
from ..result import Solution, Status
from ..utils.rounding import round_half_away
from ..utils.validation import validate_alpha, validate_count
from .bounds import BoundEstimator, UpperBoundStrategy
from .construction import SolutionConstructor
from .scenarios import DEFAULT_EXPLOSION_THRESHOLD, Sample, ScenarioSpace

if TYPE_CHECKING:
    from ..graph import AmbulanceGraph
    from ..optimizer import Optimizer

SEED_BOUND = 2**31


def draw_sample_seeds(base_seed: int, n_samples: int) -> List[int]:
    """One seed per sample from a single generator seeded with ``base_seed``."""
    rng = np.random.default_rng(base_seed)
    return [int(seed) for seed in rng.integers(0, SEED_BOUND, size=n_samples)]


@dataclass
class BatchStatistics:
    """
    Statistics over the samples of a solved batch.

    Attributes:
        objective_value: Average objective over feasible samples; None if
            no sample was feasible
        service_level: Average service level over all samples, infeasible
            samples counting as 0
        solve_time: Total solve time over all samples
        n_feasible: Number of feasible samples
        n_samples: Number of samples
    """

    objective_value: Optional[float]
    service_level: float
    solve_time: float
    n_feasible: int
    n_samples: int

    @property
    def is_defined(self) -> bool:
        return self.objective_value is not None

    @property
    def status(self) -> Status:
        return Status.AVERAGED if self.is_defined else Status.NO_FEASIBLE_SAMPLES

    def __repr__(self) -> str:
        return (
            f"BatchStatistics(objective={fmt_value(self.objective_value)}, "
            f"service_level={self.service_level}, "
            f"time={self.solve_time}, "
            f"feasible={self.n_feasible}/{self.n_samples})"
        )


class SampleBatch:
    """
    m samples of one graph, solved independently.

    Args:
        graph: Ambulance graph
        optimizer: External optimizer solving single samples
        alpha: Target service level
        n_samples: Number of samples m
        sample_size: Number of scenarios n per sample
        base_seed: Seed of the top-level generator
        full: Build a single sample holding every scenario instead of
            random samples (exponential in the number of demand nodes)
        n_workers: Size of the thread pool used by :meth:`solve`;
            1 solves the samples sequentially
        explosion_threshold: Scenario count above which full enumeration
            emits a ScenarioExplosionWarning
    """

    problem: ProblemKind

    def __init__(
        self,
        graph: AmbulanceGraph,
        optimizer: Optimizer,
        alpha: float,
        n_samples: int = 1,
        sample_size: Optional[int] = None,
        base_seed: Optional[int] = None,
        full: bool = False,
        n_workers: int = 1,
        explosion_threshold: int = DEFAULT_EXPLOSION_THRESHOLD,
    ) -> None:
        valid, message = validate_alpha(alpha)
        if not valid:
            raise InvalidInputError(message)
        valid, message = validate_count(n_workers, "n_workers")
        if not valid:
            raise InvalidInputError(message)

        self.graph = graph
        self.optimizer = optimizer
        self.alpha = alpha
        self.full = full
        self.n_workers = n_workers
        self.solution: Optional[Solution] = None
        self._solved = False

        space = ScenarioSpace(graph, explosion_threshold=explosion_threshold)

        if full:
            self.n_samples = 1
            self.base_seed = None
            self.seeds: List[int] = []
            self.samples: List[Sample] = [space.full_sample()]
            self.sample_size = self.samples[0].n_scenarios
        else:
            if sample_size is None or base_seed is None:
                raise InvalidInputError("sample size and base seed are required for random samples")
            for value, name in ((n_samples, "number of samples"), (sample_size, "sample size")):
                valid, message = validate_count(value, name)
                if not valid:
                    raise InvalidInputError(message)

            self.n_samples = n_samples
            self.sample_size = sample_size
            self.base_seed = base_seed
            self.seeds = draw_sample_seeds(base_seed, n_samples)
            self.samples = [space.random_sample(sample_size, seed) for seed in self.seeds]

        logger.info(
            "Graph {}: {} {} sample(s) of {} scenarios generated",
            graph.name, self.n_samples, "full" if full else "random", self.sample_size,
        )

    def context(self) -> OptimizerContext:
        """Parameters handed to the optimizer with every sample."""
        return OptimizerContext(problem=self.problem, alpha=self.alpha)

    @property
    def is_solved(self) -> bool:
        return self._solved

    def solve(self) -> None:
        """
        Dispatch every sample to the optimizer exactly once.

        Infeasible samples are recorded, never raised. Solutions are
        attached only after every sample has returned; if the optimizer
        raises, the exception propagates, no sample keeps a solution and
        the batch can be solved again.
        """
        if self._solved:
            raise StateError("batch has already been solved")

        context = self.context()
        logger.info("Solving {} sample(s) with {} worker(s)", self.n_samples, self.n_workers)

        solutions: List[Optional[Solution]] = [None] * len(self.samples)
        if self.n_workers > 1:
            with ThreadPoolExecutor(max_workers=self.n_workers) as pool:
                futures = {
                    pool.submit(self.optimizer.solve, sample, context): index
                    for index, sample in enumerate(self.samples)
                }
                for future in as_completed(futures):
                    solutions[futures[future]] = future.result()
        else:
            for index, sample in enumerate(self.samples):
                solutions[index] = self.optimizer.solve(sample, context)

        for sample, solution in zip(self.samples, solutions):
            sample.check_solution(solution)
        for index, solution in enumerate(solutions):
            self._attach(index, solution)
        self._solved = True

    def _attach(self, index: int, solution: Solution) -> None:
        self.samples[index].attach_solution(solution)
        if solution.is_feasible:
            logger.debug("Sample {}: objective {} in {:.4f}s", index + 1, solution.objective_value, solution.solve_time)
        else:
            logger.warning("Sample {} is infeasible", index + 1)

    def _require_solved(self) -> None:
        if not self._solved:
            raise StateError("batch has not been solved")

    @property
    def sample_solutions(self) -> List[Solution]:
        self._require_solved()
        return [sample.solution for sample in self.samples]

    def aggregate(self) -> BatchStatistics:
        """
        Average the sample results.

        The objective is averaged over feasible samples only, the service
        level over all samples (infeasible ones contribute 0), and solve
        times are summed. All three are rounded to 3 decimals.
        """
        solutions = self.sample_solutions
        feasible = [s for s in solutions if s.is_feasible]

        solve_time = round_half_away(sum(s.solve_time for s in solutions), 3)
        service_level = round_half_away(sum(s.service_level for s in feasible) / len(solutions), 3)

        if feasible:
            objective = round_half_away(sum(s.objective_value for s in feasible) / len(feasible), 3)
        else:
            objective = None
            logger.warning("Graph {}: all {} samples are infeasible", self.graph.name, len(solutions))
            warnings.warn(
                f"All {len(solutions)} samples are infeasible; the average objective is undefined",
                NoFeasibleSamplesWarning,
                stacklevel=2,
            )

        return BatchStatistics(
            objective_value=objective,
            service_level=service_level,
            solve_time=solve_time,
            n_feasible=len(feasible),
            n_samples=len(solutions),
        )

    def _seed_field(self) -> str:
        return "-" if self.base_seed is None else str(self.base_seed)

    def export_scenarios_of_samples(self) -> List[Row]:
        """SCENARIOS rows: one per scenario of every sample."""
        rows = []
        for sample_id, sample in enumerate(self.samples, 1):
            for scenario_id, (levels, prob) in enumerate(sample, 1):
                rows.append([
                    self.graph.name, str(self.n_samples), str(self.sample_size), self._seed_field(),
                    str(sample_id), str(scenario_id),
                    fmt_vector(levels), str(int(levels.sum())),
                    str(float(prob)),
                ])
        return rows

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(graph={self.graph.name!r}, "
            f"m={self.n_samples}, n={self.sample_size}, "
            f"alpha={self.alpha}, base_seed={self.base_seed}, "
            f"solved={self._solved})"
        )


class LocationBatch(SampleBatch):
    """
    Location problem: open and size bases from m sample solutions.

    Args:
        beta: Factor balancing driving costs against construction costs
        bounds: Bound estimator of the graph; by default one is created.
            Bounds are memoized on the graph, so every batch on the same
            graph reuses them either way
        upper_bound: Unit upper bound strategy (weak if neither this nor
            ``bounds`` is given); must agree with ``bounds.strategy``
            when both are given

    Example:
        >>> batch = LocationBatch(graph, optimizer, alpha=0.9, beta=0.5,
        ...                       n_samples=10, sample_size=50, base_seed=1)
        >>> batch.solve()
        >>> solution = batch.construct_solution()
        >>> rows = batch.export_solution()
    """

    problem = ProblemKind.LOCATION

    def __init__(
        self,
        graph: AmbulanceGraph,
        optimizer: Optimizer,
        alpha: float,
        beta: float = 0.0,
        bounds: Optional[BoundEstimator] = None,
        upper_bound: Optional[UpperBoundStrategy] = None,
        **kwargs,
    ) -> None:
        if bounds is not None:
            if bounds.graph is not graph:
                raise InvalidInputError(f"bound estimator belongs to graph {bounds.graph.name!r}")
            if upper_bound is not None and UpperBoundStrategy.parse(upper_bound) is not bounds.strategy:
                raise InvalidInputError(
                    f"upper bound strategy {upper_bound} conflicts with the estimator's {bounds.strategy}"
                )
        super().__init__(graph, optimizer, alpha, **kwargs)
        self.beta = beta
        if bounds is None:
            bounds = BoundEstimator(
                graph,
                optimizer,
                strategy=UpperBoundStrategy.WEAK if upper_bound is None else upper_bound,
                explosion_threshold=kwargs.get("explosion_threshold", DEFAULT_EXPLOSION_THRESHOLD),
            )
        self.bounds = bounds

    @classmethod
    def full_problem(cls, graph: AmbulanceGraph, optimizer: Optimizer, alpha: float, beta: float = 0.0, **kwargs) -> LocationBatch:
        """Exact problem: one sample holding every scenario."""
        return cls(graph, optimizer, alpha, beta=beta, full=True, **kwargs)

    @classmethod
    def from_config(cls, graph: AmbulanceGraph, optimizer: Optimizer, config: BatchConfig, **kwargs) -> LocationBatch:
        return cls(
            graph,
            optimizer,
            config.alpha,
            beta=config.beta,
            upper_bound=UpperBoundStrategy.parse(config.upper_bound),
            n_samples=config.n_samples,
            sample_size=config.sample_size,
            base_seed=config.base_seed,
            full=config.full,
            n_workers=config.n_workers,
            explosion_threshold=config.explosion_threshold,
            **kwargs,
        )

    def context(self) -> OptimizerContext:
        return OptimizerContext(problem=self.problem, alpha=self.alpha, beta=self.beta)

    def construct_solution(self) -> Solution:
        """
        Construct (once) the configuration implied by the sample solutions.

        The objective of the result is the fixed cost of the constructed
        bases and units, not any sample objective.
        """
        if self.solution is None:
            constructor = SolutionConstructor(
                self.sample_solutions, self.graph.open_costs, self.graph.ambulance_costs
            )
            self.solution = constructor.construct(
                base_lower_bound=self.bounds.base_lower_bound(),
                unit_upper_bound=self.bounds.unit_upper_bound(self.alpha),
            )
            logger.info(
                "Graph {}: constructed {} bases with {} ambulances, costs {}",
                self.graph.name, self.solution.number_of_bases,
                self.solution.number_of_units, self.solution.objective_value,
            )
        return self.solution

    def number_of_bases(self) -> int:
        return self.construct_solution().number_of_bases

    def number_of_ambulances(self) -> int:
        return self.construct_solution().number_of_units

    def costs(self) -> float:
        return float(self.construct_solution().objective_value)

    def _head(self) -> Row:
        return [
            self.graph.name, str(self.n_samples), str(self.sample_size),
            str(self.alpha), str(self.beta), self._seed_field(),
        ]

    def export_solution(self) -> List[Row]:
        """LOCATION row of the constructed solution."""
        solution = self.construct_solution()
        statistics = self.aggregate()
        return [self._head() + [
            fmt_vector(solution.x), fmt_vector(solution.z),
            str(solution.number_of_bases), str(solution.number_of_units),
            fmt_value(solution.objective_value), fmt_value(statistics.objective_value),
            fmt_value(solution.solve_time),
        ]]

    def export_solutions_of_samples(self) -> List[Row]:
        """LOCATION_SAMPLES rows: one per sample."""
        rows = []
        for sample_id, solution in enumerate(self.sample_solutions, 1):
            rows.append(self._head() + [
                str(sample_id),
                fmt_vector(solution.x), fmt_vector(solution.z),
                fmt_objective(solution.objective_value), fmt_value(solution.solve_time),
            ])
        return rows


class AssignmentBatch(SampleBatch):
    """
    Assignment problem: evaluate a fixed configuration on m samples.

    Args:
        base_solution: Fixed bases and units to assign demand to
        method: Assignment model used by the optimizer

    Example:
        >>> batch = AssignmentBatch(graph, optimizer, alpha=0.9,
        ...                         base_solution=location.construct_solution(),
        ...                         n_samples=10, sample_size=50, base_seed=1)
        >>> batch.solve()
        >>> batch.average_solution().service_level
        0.93
    """

    problem = ProblemKind.ASSIGNMENT

    def __init__(
        self,
        graph: AmbulanceGraph,
        optimizer: Optimizer,
        alpha: float,
        base_solution: Solution,
        method: AssignmentMethod = AssignmentMethod.MAX_SERVICE_LEVEL,
        **kwargs,
    ) -> None:
        if base_solution.n_bases != graph.n_bases:
            raise InvalidInputError(
                f"base solution has {base_solution.n_bases} bases, graph has {graph.n_bases}"
            )
        super().__init__(graph, optimizer, alpha, **kwargs)
        self.base_solution = base_solution
        self.method = AssignmentMethod(method)

    @classmethod
    def full_problem(
        cls,
        graph: AmbulanceGraph,
        optimizer: Optimizer,
        alpha: float,
        base_solution: Solution,
        method: AssignmentMethod = AssignmentMethod.MAX_SERVICE_LEVEL,
        **kwargs,
    ) -> AssignmentBatch:
        """Exact problem: one sample holding every scenario."""
        return cls(graph, optimizer, alpha, base_solution, method=method, full=True, **kwargs)

    @classmethod
    def from_config(
        cls,
        graph: AmbulanceGraph,
        optimizer: Optimizer,
        config: BatchConfig,
        base_solution: Solution,
        method: AssignmentMethod = AssignmentMethod.MAX_SERVICE_LEVEL,
        **kwargs,
    ) -> AssignmentBatch:
        return cls(
            graph,
            optimizer,
            config.alpha,
            base_solution,
            method=method,
            n_samples=config.n_samples,
            sample_size=config.sample_size,
            base_seed=config.base_seed,
            full=config.full,
            n_workers=config.n_workers,
            explosion_threshold=config.explosion_threshold,
            **kwargs,
        )

    def context(self) -> OptimizerContext:
        return OptimizerContext(
            problem=self.problem,
            alpha=self.alpha,
            base_solution=self.base_solution,
            assignment_method=self.method,
        )

    def average_solution(self) -> Solution:
        """Aggregate solution (computed once): the fixed configuration with averaged results."""
        if self.solution is None:
            statistics = self.aggregate()
            self.solution = Solution(
                x=self.base_solution.x.copy(),
                z=self.base_solution.z.copy(),
                y=None,
                objective_value=statistics.objective_value,
                service_level=statistics.service_level,
                solve_time=statistics.solve_time,
                status=statistics.status,
            )
            logger.info(
                "Graph {}: {} of {} samples feasible, average objective {}, service level {}",
                self.graph.name, statistics.n_feasible, statistics.n_samples,
                fmt_value(statistics.objective_value), statistics.service_level,
            )
        return self.solution

    def _alpha_field(self) -> str:
        return str(self.alpha) if self.method.uses_alpha else "-"

    def _head(self) -> Row:
        return [
            self.graph.name, fmt_vector(self.base_solution.z), str(self.method),
            str(self.n_samples), str(self.sample_size), self._alpha_field(), self._seed_field(),
        ]

    def export_solution(self) -> List[Row]:
        """ASSIGNMENT row of the averaged solution."""
        solution = self.average_solution()
        return [self._head() + [
            fmt_value(solution.objective_value),
            fmt_value(solution.service_level),
            fmt_value(solution.solve_time),
        ]]

    def export_solutions_of_samples(self) -> List[Row]:
        """ASSIGNMENT_SAMPLES rows: one per sample, infeasible objectives marked."""
        rows = []
        for sample_id, solution in enumerate(self.sample_solutions, 1):
            objective = solution.objective_value
            if solution.is_feasible:
                objective = round_half_away(objective, 3)
            rows.append(self._head() + [
                str(sample_id),
                fmt_objective(objective),
                fmt_value(round_half_away(solution.service_level, 3)),
                fmt_value(solution.solve_time),
            ])
        return rows

    def export_assignment_of_samples(self) -> List[Row]:
        """ASSIGNMENT_DETAILED rows: every non-zero y[i][j][w], indices 1-based."""
        rows = []
        for sample_id, solution in enumerate(self.sample_solutions, 1):
            if solution.y is None:
                continue
            for i, j, w in np.argwhere(solution.y > 0):
                rows.append(self._head() + [
                    str(sample_id), str(i + 1), str(j + 1), str(w + 1),
                    str(int(solution.y[i, j, w])),
                ])
        return rows

    def export_assignment_sum_per_node(self) -> List[Row]:
        """ASSIGNMENT_PER_NODE rows: total demand served by each base over all samples."""
        totals = np.zeros(self.graph.n_bases, dtype=np.int64)
        for solution in self.sample_solutions:
            if solution.y is not None:
                totals += solution.y.sum(axis=(0, 2))

        return [
            self._head() + [base.node.name, str(int(totals[j]))]
            for j, base in enumerate(self.graph.bases)
        ]

"""
ambloc Stochastic Core
======================

Sample-based solution of the ambulance location and assignment problems
under uncertain, discretely distributed demand.

Exact solution requires every demand scenario, and the number of
scenarios grows combinatorially with the number of demand nodes. This
module instead draws m samples of n scenarios each, lets an external
optimizer solve every sample, and builds one configuration from the
per-sample solutions.

Scenario Generation
-------------------
>>> from ambloc.stochastic import ScenarioSpace
>>>
>>> space = ScenarioSpace(graph)
>>> sample = space.random_sample(n=100, seed=7)   # Monte Carlo
>>> full = space.full_sample()                     # every scenario

Location Problem
----------------
>>> from ambloc.stochastic import LocationBatch
>>>
>>> batch = LocationBatch(graph, optimizer, alpha=0.9, beta=0.5,
...                       n_samples=10, sample_size=50, base_seed=1)
>>> batch.solve()
>>> solution = batch.construct_solution()
>>> print(solution)

Assignment Problem
------------------
>>> from ambloc.stochastic import AssignmentBatch
>>>
>>> assignment = AssignmentBatch(graph, optimizer, alpha=0.9,
...                              base_solution=solution,
...                              n_samples=10, sample_size=50, base_seed=2)
>>> assignment.solve()
>>> assignment.average_solution().service_level

Classes
-------
DemandDistribution
    Discrete demand distribution of one demand node
Sample
    Weighted set of scenarios with graph costs and coverage
ScenarioSpace
    Random and full scenario generation
SampleBatch, LocationBatch, AssignmentBatch
    Batches of samples with dispatch and aggregation
SolutionConstructor
    Merges sample solutions into one configuration
BoundEstimator
    Lower bound on bases, upper bound on units
"""

from .batch import (
    AssignmentBatch,
    BatchStatistics,
    LocationBatch,
    SampleBatch,
    draw_sample_seeds,
)
from .bounds import BoundEstimator, UpperBoundStrategy
from .construction import SolutionConstructor
from .distributions import DemandDistribution
from .scenarios import Sample, ScenarioSpace, iter_scenarios

__all__ = [
    # Scenarios
    "DemandDistribution",
    "Sample",
    "ScenarioSpace",
    "iter_scenarios",
    # Batches
    "SampleBatch",
    "LocationBatch",
    "AssignmentBatch",
    "BatchStatistics",
    "draw_sample_seeds",
    # Construction
    "SolutionConstructor",
    # Bounds
    "BoundEstimator",
    "UpperBoundStrategy",
]

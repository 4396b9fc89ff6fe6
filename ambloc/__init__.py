"""
ambloc: Sample-Based Ambulance Location
=======================================

ambloc opens and sizes ambulance bases, and assigns demand to them, under
uncertain demand. Instead of enumerating every demand scenario it solves
bounded samples of scenarios with an external optimizer and statistically
constructs one deployable configuration from the sample solutions.

Quick Start
-----------
>>> import ambloc
>>> graph = ambloc.AmbulanceGraph.from_coverage(
...     "toy",
...     base_costs=[10.0, 12.0, 9.0],
...     ambulance_costs=[3.0, 3.0, 4.0],
...     demand_probabilities=[[0.2, 0.5, 0.3], [0.6, 0.4]],
...     demands_covered_by_base=[{0}, {0, 1}, {1}],
... )
>>> batch = ambloc.LocationBatch(graph, my_optimizer, alpha=0.9,
...                              n_samples=10, sample_size=50, base_seed=1)
>>> batch.solve()
>>> print(batch.construct_solution())
Base 0 not installed.
Base 1 installed with 2 ambulances.
Base 2 not installed.

Results are exported as rows of strings for an external report writer:

>>> session = ambloc.ExportSession("results.xlsx")
>>> session.write(batch.export_solution(), "toy_location")
"""

__version__ = "0.1.0"
__author__ = "ambloc Contributors"

# Import public API
from .graph import AmbulanceGraph, Base, Demand, Node
from .result import Solution, Status
from .optimizer import AssignmentMethod, Optimizer, OptimizerContext, ProblemKind
from .stochastic import (
    AssignmentBatch,
    BoundEstimator,
    DemandDistribution,
    LocationBatch,
    Sample,
    SampleBatch,
    ScenarioSpace,
    SolutionConstructor,
    UpperBoundStrategy,
)
from .export import ExportSession, ReportKind
from .config import AmblocConfig, BatchConfig, RunConfig, configure_logging, load_config, start_run
from .exceptions import (
    AmblocError,
    InvalidInputError,
    DimensionError,
    BoundInfeasibleError,
    StateError,
    NoFeasibleSamplesWarning,
    ScenarioExplosionWarning,
)

__all__ = [
    # Version
    "__version__",

    # Graph
    "AmbulanceGraph",
    "Base",
    "Demand",
    "Node",

    # Scenarios and batches
    "DemandDistribution",
    "Sample",
    "ScenarioSpace",
    "SampleBatch",
    "LocationBatch",
    "AssignmentBatch",
    "SolutionConstructor",
    "BoundEstimator",
    "UpperBoundStrategy",

    # Optimizer contract
    "Optimizer",
    "OptimizerContext",
    "ProblemKind",
    "AssignmentMethod",

    # Results
    "Solution",
    "Status",

    # Export
    "ExportSession",
    "ReportKind",

    # Configuration
    "AmblocConfig",
    "BatchConfig",
    "RunConfig",
    "load_config",
    "configure_logging",
    "start_run",

    # Exceptions
    "AmblocError",
    "InvalidInputError",
    "DimensionError",
    "BoundInfeasibleError",
    "StateError",
    "NoFeasibleSamplesWarning",
    "ScenarioExplosionWarning",
]


def info() -> str:
    """Return information about the ambloc installation."""
    import platform

    import numpy
    import scipy

    lines = [
        f"ambloc version: {__version__}",
        f"Python version: {platform.python_version()}",
        f"Platform: {platform.platform()}",
        f"numpy version: {numpy.__version__}",
        f"scipy version: {scipy.__version__}",
    ]
    return "\n".join(lines)

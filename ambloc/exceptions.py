"""
ambloc Exception Classes
========================

Custom exceptions and warnings for ambloc error handling.
"""

from typing import Optional


class AmblocError(Exception):
    """Base exception for all ambloc errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidInputError(AmblocError):
    """
    Raised when configuration or graph data is invalid.

    Examples: a demand probability table that does not sum to 1,
    a sample size of zero, a target service level outside [0, 1].
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid input: {message}")


class DimensionError(AmblocError):
    """
    Raised when vector sizes or indices are inconsistent with the graph.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Dimension mismatch: {message}")


class BoundInfeasibleError(AmblocError):
    """
    Raised when the covering sub-model behind the base lower bound
    has no feasible solution.

    This is fatal for the graph: some demand node cannot be covered
    by any base.
    """

    def __init__(
        self,
        message: str = "Covering model for the base lower bound is infeasible",
        uncovered: Optional[list] = None,
    ) -> None:
        self.uncovered = uncovered or []
        super().__init__(message)


class StateError(AmblocError):
    """
    Raised when a batch or sample is used out of lifecycle order.

    Examples: aggregating before solving, solving a batch twice,
    attaching a second solution to a sample.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid state: {message}")


class NoFeasibleSamplesWarning(UserWarning):
    """Every sample of a batch was infeasible; the feasible-only average is undefined."""


class ScenarioExplosionWarning(UserWarning):
    """Full scenario enumeration exceeds the configured scenario count threshold."""

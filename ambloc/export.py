"""
Tabular Export
==============

Row-oriented result contract consumed by an external report writer.

Every report is a list of rows; every row is a list of strings matching
the fixed column schema of a :class:`ReportKind`. This module never
writes files: an :class:`ExportSession` only collects rows per sheet
and is owned by the caller.

>>> session = ExportSession("results.xlsx")
>>> session.write(batch.export_solution(), "toy_location")
>>> session.sheets["toy_location"][0]
['graph', 'm', 'n', 'alpha', 'beta', 'base_seed', 'x', 'z', ...]
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
from loguru import logger

from .exceptions import DimensionError

Row = List[str]


class ReportKind(Enum):
    """Report kinds with their sheet-name suffix and column schema."""

    LOCATION = (
        "_location",
        ("graph", "m", "n", "alpha", "beta", "base_seed", "x", "z",
         "#bases", "#ambulances", "optimal_value", "sample_average", "computation_time"),
    )
    LOCATION_SAMPLES = (
        "location_samples",
        ("graph", "m", "n", "alpha", "beta", "base_seed", "sample_id",
         "x", "z", "optimal_value", "computation_time"),
    )
    ASSIGNMENT = (
        "_assignment",
        ("graph", "solution", "type", "m", "n", "alpha", "base_seed",
         "optimal_value", "service_level", "computation_time"),
    )
    ASSIGNMENT_DETAILED = (
        "_assignment_detailed",
        ("graph", "solution", "type", "m", "n", "alpha", "base_seed",
         "sample_id", "i", "j", "w", "y[i][j][w]"),
    )
    ASSIGNMENT_PER_NODE = (
        "_assignment_per_node",
        ("graph", "solution", "type", "m", "n", "alpha", "base_seed",
         "node_name", "total_assigned_demand"),
    )
    ASSIGNMENT_SAMPLES = (
        "_assignment_samples",
        ("graph", "solution", "type", "m", "n", "alpha", "base_seed",
         "sample_id", "optimal_value", "service_level", "computation_time"),
    )
    GRAPH_BOUNDS = (
        "_graph_bounds",
        ("graph", "alpha", "min_bases", "max_ambulances"),
    )
    SCENARIOS = (
        "_scenarios",
        ("graph", "m", "n", "base_seed", "sample_id", "scenario_id",
         "demand", "demand_sum", "probability"),
    )

    def __init__(self, suffix: str, columns: Sequence[str]) -> None:
        self.suffix = suffix
        self.columns = tuple(columns)

    @property
    def width(self) -> int:
        return len(self.columns)

    @classmethod
    def for_sheet(cls, sheet_name: str) -> Optional[ReportKind]:
        """Report kind whose suffix ends the sheet name (longest suffix wins)."""
        matches = [kind for kind in cls if sheet_name.endswith(kind.suffix)]
        if not matches:
            return None
        return max(matches, key=lambda kind: len(kind.suffix))


def fmt_vector(values: Iterable) -> str:
    """Render a vector as ``[a, b, c]``."""
    return "[" + ", ".join(str(int(v)) for v in np.asarray(values).ravel()) + "]"


def fmt_value(value) -> str:
    """Render a scalar field; ``None`` is an undefined value."""
    if value is None:
        return "undefined"
    if isinstance(value, (float, np.floating)):
        return str(float(value))
    return str(value)


def fmt_objective(value: Optional[float]) -> str:
    """Objective of a sample: ``infeasible`` for the -inf sentinel."""
    if value is not None and value == float("-inf"):
        return "infeasible"
    return fmt_value(value)


class ExportSession:
    """
    Collects exported rows per sheet for one output file.

    The first row written to a sheet is preceded by the header row of the
    report kind matching the sheet name. Sessions are plain objects: the
    caller creates, passes and discards them.

    Args:
        file_name: Name of the target file, for the report writer
    """

    def __init__(self, file_name: str) -> None:
        self.file_name = file_name
        self.sheets: Dict[str, List[Row]] = {}
        self.kinds: Dict[str, Optional[ReportKind]] = {}

    def write(self, rows: Sequence[Row], sheet_name: str) -> None:
        """Append rows below any existing data of the sheet."""
        if sheet_name not in self.sheets:
            kind = ReportKind.for_sheet(sheet_name)
            self.kinds[sheet_name] = kind
            self.sheets[sheet_name] = [list(kind.columns)] if kind is not None else []

        kind = self.kinds[sheet_name]
        for row in rows:
            if kind is not None and len(row) != kind.width:
                raise DimensionError(
                    f"row for sheet {sheet_name!r} has {len(row)} fields, {kind.name} expects {kind.width}"
                )
            self.sheets[sheet_name].append([str(field) for field in row])

        logger.debug("{}: {} rows written to sheet {}", self.file_name, len(rows), sheet_name)

    def rows(self, sheet_name: str) -> List[Row]:
        return self.sheets.get(sheet_name, [])

    def non_empty_sheets(self) -> Dict[str, List[Row]]:
        """Sheets holding data beyond the header row."""
        result = {}
        for name, rows in self.sheets.items():
            header = 1 if self.kinds.get(name) is not None else 0
            if len(rows) > header:
                result[name] = rows
        return result

    def __len__(self) -> int:
        return len(self.sheets)

    def __repr__(self) -> str:
        return f"ExportSession(file_name={self.file_name!r}, sheets={list(self.sheets)})"

"""
ambloc Configuration
====================

Dataclass configuration for batches and runs, loaded from YAML or dicts.

>>> config = load_config("ambloc.yaml")
>>> session = start_run(config)          # logging set up, rows collected
>>> batch = LocationBatch.from_config(graph, optimizer, config.location)
"""

from __future__ import annotations

import pathlib
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import yaml
from loguru import logger

from .exceptions import InvalidInputError
from .export import ExportSession
from .utils.validation import validate_alpha, validate_count


@dataclass
class BatchConfig:
    """Parameters of one location or assignment batch."""

    n_samples: int = 10
    sample_size: int = 100
    base_seed: int = 1
    alpha: float = 0.9
    beta: float = 0.0
    full: bool = False
    n_workers: int = 1
    upper_bound: str = "weak"
    explosion_threshold: int = 1_000_000

    def __post_init__(self):
        checks = [validate_alpha(self.alpha), validate_count(self.n_workers, "n_workers")]
        if not self.full:
            checks.append(validate_count(self.n_samples, "n_samples"))
            checks.append(validate_count(self.sample_size, "sample_size"))
        for valid, message in checks:
            if not valid:
                raise InvalidInputError(message)
        if str(self.upper_bound).lower() not in ("weak", "strong"):
            raise InvalidInputError(f"upper_bound must be 'weak' or 'strong', got {self.upper_bound!r}")


@dataclass
class RunConfig:
    """Log level and target file of a run, applied by :func:`start_run`."""

    log_level: str = "INFO"
    out_file: str = "results.xlsx"


def _as(cls, obj, defaults: Optional[Dict[str, Any]] = None):
    """Coerce a possibly-dict `obj` into dataclass `cls` (overlaying defaults)."""
    if isinstance(obj, cls):
        return obj
    if isinstance(obj, dict):
        base = {} if defaults is None else dict(defaults)
        base.update(obj)
        try:
            return cls(**base)  # type: ignore[arg-type]
        except TypeError as e:
            raise InvalidInputError(f"{cls.__name__}: {e}") from e
    return cls(**({} if defaults is None else defaults))  # type: ignore[arg-type]


@dataclass
class AmblocConfig:
    """Location batch, assignment batch and run settings."""

    location: BatchConfig = field(default_factory=BatchConfig)
    assignment: BatchConfig = field(default_factory=BatchConfig)
    run: RunConfig = field(default_factory=RunConfig)

    def __post_init__(self):
        self.location = _as(BatchConfig, self.location, BatchConfig().__dict__)
        self.assignment = _as(BatchConfig, self.assignment, BatchConfig().__dict__)
        self.run = _as(RunConfig, self.run, RunConfig().__dict__)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AmblocConfig":
        d = d or {}
        return cls(
            location=_as(BatchConfig, d.get("location"), BatchConfig().__dict__),
            assignment=_as(BatchConfig, d.get("assignment"), BatchConfig().__dict__),
            run=_as(RunConfig, d.get("run"), RunConfig().__dict__),
        )


def load_config(path_or_dict: Union[str, pathlib.Path, Dict[str, Any], AmblocConfig]) -> AmblocConfig:
    """Accept YAML path, dict, or AmblocConfig; always return a fully-typed AmblocConfig."""
    if isinstance(path_or_dict, AmblocConfig):
        return AmblocConfig.from_dict(path_or_dict.__dict__)
    if isinstance(path_or_dict, dict):
        return AmblocConfig.from_dict(path_or_dict)
    path = pathlib.Path(path_or_dict)
    with path.open("r") as f:
        d = yaml.safe_load(f) or {}
    return AmblocConfig.from_dict(d)


def configure_logging(level: str = "INFO", sink=None) -> int:
    """Replace loguru's sinks with a single one at `level`; returns the sink id."""
    logger.remove()
    return logger.add(sys.stderr if sink is None else sink, level=level.upper())


def start_run(config: Union[str, pathlib.Path, Dict[str, Any], AmblocConfig], sink=None) -> ExportSession:
    """
    Apply the run settings of a configuration.

    Configures logging at ``run.log_level`` and returns an empty
    :class:`ExportSession` for ``run.out_file``.
    """
    config = load_config(config)
    configure_logging(config.run.log_level, sink=sink)
    logger.info("Run started, results go to {}", config.run.out_file)
    return ExportSession(config.run.out_file)

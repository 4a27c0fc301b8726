"""Formal abstractions for sweep results.

Defines the records produced while a sweep runs:
- ReplicationResult: one simulation run of a combination (one seed)
- AggregatedResult: all replications of one combination, averaged
- SweepRecord: the ordered log of aggregated results that gets persisted
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np

from constants import SCHEMA_VERSION


@dataclass(frozen=True)
class ReplicationResult:
    """Metrics reported by one simulation call.

    Attributes:
        seed: Seed the replication ran with
        metrics: Metric name -> numeric value
    """

    seed: int
    metrics: Dict[str, float]


@dataclass(frozen=True)
class MetricStatistics:
    """Spread of one metric across the replications of a combination.

    Attributes:
        mean: Arithmetic mean
        std: Population standard deviation
        min: Smallest value
        max: Largest value
        values: Per-replication values in seed index order
    """

    mean: float
    std: float
    min: float
    max: float
    values: Tuple[float, ...]

    @classmethod
    def from_values(cls, values: List[float]) -> "MetricStatistics":
        """Compute statistics from per-replication values (index order)."""
        array = np.asarray(values, dtype=float)
        return cls(
            mean=float(np.mean(array)),
            std=float(np.std(array)),
            min=float(np.min(array)),
            max=float(np.max(array)),
            values=tuple(float(v) for v in array),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mean": self.mean,
            "std": self.std,
            "min": self.min,
            "max": self.max,
            "values": list(self.values),
        }


@dataclass(frozen=True)
class AggregatedResult:
    """All replications of one parameter combination, averaged.

    Attributes:
        combination: Fully resolved parameters (base defaults + swept values)
        metrics: Metric name -> mean over replications
        statistics: Metric name -> spread over replications
        seeds: Seeds of the replications in index order
    """

    combination: Dict[str, Any]
    metrics: Dict[str, float]
    statistics: Dict[str, MetricStatistics] = field(default_factory=dict)
    seeds: Tuple[int, ...] = field(default_factory=tuple)

    @property
    def replications(self) -> int:
        """Return how many replications were averaged."""
        return len(self.seeds)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "combination": dict(self.combination),
            "metrics": dict(self.metrics),
            "statistics": {
                name: stats.to_dict() for name, stats in self.statistics.items()
            },
            "seeds": list(self.seeds),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AggregatedResult":
        statistics = {
            name: MetricStatistics(
                mean=stats["mean"],
                std=stats["std"],
                min=stats["min"],
                max=stats["max"],
                values=tuple(stats.get("values", ())),
            )
            for name, stats in data.get("statistics", {}).items()
        }
        return cls(
            combination=dict(data["combination"]),
            metrics=dict(data["metrics"]),
            statistics=statistics,
            seeds=tuple(data.get("seeds", ())),
        )


@dataclass(frozen=True)
class SweepRecord:
    """Persisted form of a sweep: metadata plus the ordered result log.

    Attributes:
        experiment_name: Name of the experiment
        description: Free-form description
        timestamp: ISO 8601 timestamp of the write
        results: Aggregated results in combination order
        replications: Replications per combination
        created_at: ISO 8601 timestamp of the sweep start (same for every
            checkpoint of one sweep)
    """

    experiment_name: str
    description: str
    timestamp: str
    results: Tuple[AggregatedResult, ...] = field(default_factory=tuple)
    replications: Optional[int] = None
    created_at: Optional[str] = None

    @classmethod
    def create(
        cls,
        experiment_name: str,
        description: str,
        results: Tuple[AggregatedResult, ...],
        replications: Optional[int] = None,
        created_at: Optional[str] = None,
    ) -> "SweepRecord":
        """Create a SweepRecord stamped with the current time.

        Without created_at, the record counts as created now.
        """
        timestamp = datetime.now().isoformat()
        return cls(
            experiment_name=experiment_name,
            description=description,
            timestamp=timestamp,
            results=tuple(results),
            replications=replications,
            created_at=created_at or timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON-ready representation."""
        return {
            "_metadata": {
                "schema_version": SCHEMA_VERSION,
                "completed_combinations": len(self.results),
                "replications": self.replications,
                "created_at": self.created_at,
            },
            "experiment_name": self.experiment_name,
            "description": self.description,
            "timestamp": self.timestamp,
            "results": [result.to_dict() for result in self.results],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SweepRecord":
        """Rebuild a record from its JSON representation."""
        metadata = data.get("_metadata", {})
        return cls(
            experiment_name=data["experiment_name"],
            description=data.get("description", ""),
            timestamp=data["timestamp"],
            results=tuple(AggregatedResult.from_dict(r) for r in data.get("results", [])),
            replications=metadata.get("replications"),
            created_at=metadata.get("created_at"),
        )

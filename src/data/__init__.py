"""Data architecture package for sweep results.

This package provides:
- Result records for replications, combinations and whole sweeps
- Flattened CSV export
- The results sink (checkpoints, final records, path validation)
"""

from data.abstractions import (
    ReplicationResult,
    MetricStatistics,
    AggregatedResult,
    SweepRecord,
)
from data.tabular_export import build_table, to_csv
from data.results_sink import (
    ResultsSink,
    resolve_output_path,
    sanitize_filename,
)

__all__ = [
    # Abstractions
    "ReplicationResult",
    "MetricStatistics",
    "AggregatedResult",
    "SweepRecord",
    # Tabular export
    "build_table",
    "to_csv",
    # Sink
    "ResultsSink",
    "resolve_output_path",
    "sanitize_filename",
]

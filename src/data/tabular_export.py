"""Flattened tabular (CSV) export of sweep results.

One row per combination in sweep order:
    run_id, timestamp, <parameter...>, <metric...>

Parameter and metric columns appear in the order they are first encountered
across all results. A metric a row does not report renders as an empty field.
"""

import csv
import io
from typing import Any, Iterable, List, Sequence, Tuple

from constants import CSV_LEADING_COLUMNS
from data.abstractions import AggregatedResult


def _ordered_union(key_lists: Iterable[Iterable[str]]) -> List[str]:
    seen = {}
    for keys in key_lists:
        for key in keys:
            seen.setdefault(key, None)
    return list(seen)


def _render(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_table(
    results: Sequence[AggregatedResult],
    timestamp: str,
) -> Tuple[List[str], List[List[str]]]:
    """Build the header and rows of the tabular export.

    Args:
        results: Aggregated results in combination order
        timestamp: Timestamp written on every row

    Returns:
        Tuple of (header, rows); fields are unescaped strings
    """
    parameter_names = _ordered_union(r.combination.keys() for r in results)
    metric_names = _ordered_union(r.metrics.keys() for r in results)

    header = list(CSV_LEADING_COLUMNS) + parameter_names + metric_names

    rows = []
    for run_id, result in enumerate(results, start=1):
        row = [str(run_id), timestamp]
        row.extend(_render(result.combination.get(name)) for name in parameter_names)
        row.extend(_render(result.metrics.get(name)) for name in metric_names)
        rows.append(row)

    return header, rows


def to_csv(results: Sequence[AggregatedResult], timestamp: str) -> str:
    """Render results as CSV text.

    Fields containing a comma (or a quote or newline) are quoted and embedded
    quotes are doubled. Rows are separated by a bare newline.
    """
    header, rows = build_table(results, timestamp)
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()

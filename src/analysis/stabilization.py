"""Convergence detection for running simulation metrics.

A series is considered stabilized once the last few points of its trailing
moving average vary little relative to their mean (coefficient of variation
below a threshold).
"""

import math
from dataclasses import dataclass
from typing import Any, List, Mapping, Sequence

import numpy as np

from constants import (
    DEFAULT_STABILITY_THRESHOLD,
    DEFAULT_WINDOW_SIZE,
    RECENT_WINDOW_POINTS,
)


@dataclass(frozen=True)
class StabilizationResult:
    """Outcome of a stabilization check.

    Attributes:
        value: Mean of the recent moving averages (or the fallback value)
        is_stabilized: Whether the coefficient of variation is below threshold
        confidence_level: 1 - coefficient of variation, clamped to [0, 1]
    """

    value: float
    is_stabilized: bool
    confidence_level: float


def moving_averages(series: Sequence[float], window_size: int) -> np.ndarray:
    """Trailing moving average at every index from window_size - 1 onward."""
    values = np.asarray(series, dtype=float)
    if window_size < 1 or len(values) < window_size:
        return np.empty(0, dtype=float)
    windows = np.lib.stride_tricks.sliding_window_view(values, window_size)
    return windows.mean(axis=1)


def detect_stabilization(
    series: Sequence[float],
    window_size: int = DEFAULT_WINDOW_SIZE,
    stability_threshold: float = DEFAULT_STABILITY_THRESHOLD,
) -> StabilizationResult:
    """Decide whether a numeric time series has converged.

    Requires at least 2 * window_size samples. The last
    min(5, number of moving averages) trailing moving averages form the
    recent window; the series is stabilized when their population standard
    deviation divided by the absolute mean is below stability_threshold.
    A zero mean counts as a coefficient of variation of 1.

    Never raises and is deterministic for identical input.

    Args:
        series: Metric values in time order
        window_size: Moving average window (values below 1 are treated as 1)
        stability_threshold: Coefficient of variation that counts as stable

    Returns:
        StabilizationResult
    """
    window_size = max(1, int(window_size))

    if len(series) < 2 * window_size:
        return StabilizationResult(
            value=float(series[-1]) if len(series) > 0 else 0.0,
            is_stabilized=False,
            confidence_level=0.0,
        )

    averages = moving_averages(series, window_size)
    recent = averages[-min(RECENT_WINDOW_POINTS, len(averages)):]
    if len(recent) < 2:
        return StabilizationResult(
            value=float(averages[-1]) if len(averages) > 0 else 0.0,
            is_stabilized=False,
            confidence_level=0.0,
        )

    recent_mean = float(np.mean(recent))
    standard_deviation = float(np.std(recent))  # population (ddof=0)

    if recent_mean != 0:
        coefficient_of_variation = standard_deviation / abs(recent_mean)
    else:
        coefficient_of_variation = 1.0

    return StabilizationResult(
        value=recent_mean,
        is_stabilized=coefficient_of_variation < stability_threshold,
        confidence_level=min(1.0, max(0.0, 1.0 - coefficient_of_variation)),
    )


def extract_series(history: Sequence[Mapping[str, Any]], key: str) -> List[float]:
    """Pull one metric out of a list of history points.

    Missing, None and NaN values count as 0 so the series keeps one entry
    per point; values that are not numbers at all are dropped.

    Args:
        history: Time-ordered history points (e.g. one dict per recorded tick)
        key: Metric name to extract

    Returns:
        The metric values in history order
    """
    values = []
    for point in history:
        raw = point.get(key)
        if raw is None:
            raw = 0
        try:
            value = float(raw)
        except (TypeError, ValueError):
            continue
        values.append(0.0 if math.isnan(value) else value)
    return values

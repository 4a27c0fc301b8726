"""Shared constants for pack analysis and experiment sweeps.

This module consolidates the default thresholds, seeds and file names used
across analysis/, experiments/ and data/.
"""

# =============================================================================
# Pack Detection
# =============================================================================

# Thresholds of the dashboard pack view (miles and mph)
DEFAULT_GAP_THRESHOLD: float = 0.20
DEFAULT_SPEED_DIFF_THRESHOLD: float = 20.0

# =============================================================================
# Stabilization Detection
# =============================================================================

DEFAULT_WINDOW_SIZE: int = 10
DEFAULT_STABILITY_THRESHOLD: float = 0.05

# Number of trailing moving-average points judged for convergence
RECENT_WINDOW_POINTS: int = 5

# =============================================================================
# Experiment Sweeps
# =============================================================================

# Seed used when a combination carries no seed of its own
DEFAULT_BASE_SEED: int = 42

SCHEMA_VERSION: str = "1.0.0"

CHECKPOINT_FILENAME: str = "intermediate_results.json"

# Leading columns of the tabular export
CSV_LEADING_COLUMNS = ("run_id", "timestamp")

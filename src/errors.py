"""Exception hierarchy for experiment sweeps.

The pack and stabilization detectors are total functions and never raise;
everything here belongs to configuration resolution, the orchestrator and the
results sink.
"""

from typing import Any, Dict, Mapping, Optional


class SweepError(Exception):
    """Base exception for experiment sweep errors."""

    pass


class ConfigurationError(SweepError):
    """Raised for a malformed grid, missing required defaults, or replications
    that disagree on their metric keys."""

    pass


class ReplicationFailure(SweepError):
    """Raised when a single simulation call of a combination fails.

    Attributes:
        combination: The parameter combination being replicated
        seed: Seed of the replication that failed
    """

    def __init__(
        self,
        combination: Mapping[str, Any],
        seed: int,
        reason: Optional[str] = None,
    ) -> None:
        self.combination: Dict[str, Any] = dict(combination)
        self.seed = seed
        self.reason = reason
        message = f"Replication with seed {seed} failed for combination {self.combination}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class PersistenceError(SweepError):
    """Raised when a checkpoint or final write fails."""

    pass


class PathSecurityError(SweepError):
    """Raised when an output path resolves outside the results directory."""

    pass


class SweepCancelledError(SweepError):
    """Raised when a sweep is cancelled at a combination boundary.

    Attributes:
        completed: Number of combinations completed before cancellation
    """

    def __init__(self, completed: int) -> None:
        self.completed = completed
        super().__init__(f"Sweep cancelled after {completed} completed combination(s)")

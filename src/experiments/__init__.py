"""Experiment sweeps: grid expansion, concurrent replications, orchestration."""

from experiments.combinations import generate_combinations, iter_combinations
from experiments.replications import (
    aggregate_replications,
    replication_seeds,
    run_replications,
)
from experiments.orchestrator import (
    ExperimentOrchestrator,
    SweepOutcome,
    SweepState,
    plan_experiment,
    run_experiment,
)

__all__ = [
    'generate_combinations',
    'iter_combinations',
    'aggregate_replications',
    'replication_seeds',
    'run_replications',
    'ExperimentOrchestrator',
    'SweepOutcome',
    'SweepState',
    'plan_experiment',
    'run_experiment',
]

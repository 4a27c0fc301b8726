"""Experiment sweep orchestration.

Runs a parameter sweep:

    IDLE -> EXPANDING -> (RUNNING_COMBINATION -> CHECKPOINTING)* -> FINALIZING -> DONE

Any replication or persistence error moves the sweep to FAILED and stops it;
checkpoints already written stay on disk. A cancellation check runs before
each combination starts.

Combinations run strictly one after another; only the replications of the
current combination run concurrently. That bounds concurrency to R simulate
calls and keeps checkpoint writes race-free.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from config import ExperimentConfig
from data.abstractions import AggregatedResult, SweepRecord
from data.results_sink import ResultsSink
from errors import (
    ConfigurationError,
    PersistenceError,
    SweepCancelledError,
    SweepError,
)
from experiments.combinations import generate_combinations
from experiments.replications import SimulateFn, run_replications

logger = logging.getLogger(__name__)


class SweepState(Enum):
    """Lifecycle states of a sweep."""

    IDLE = "idle"
    EXPANDING = "expanding"
    RUNNING_COMBINATION = "running_combination"
    CHECKPOINTING = "checkpointing"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


_ACTIVE_STATES = {
    SweepState.EXPANDING,
    SweepState.RUNNING_COMBINATION,
    SweepState.CHECKPOINTING,
    SweepState.FINALIZING,
}


class Sink(Protocol):
    """Persistence collaborator used by the orchestrator."""

    def validate(self) -> None:
        """Raise PathSecurityError if any destination escapes the results dir."""
        ...

    def write_checkpoint(self, record: SweepRecord) -> Any:
        ...

    def write_final(self, record: SweepRecord) -> Tuple[Path, Path]:
        ...


@dataclass(frozen=True)
class SweepOutcome:
    """Result of a completed sweep.

    Attributes:
        record: Final record written to the sink
        json_path: Location of the structured record
        csv_path: Location of the tabular export
    """

    record: SweepRecord
    json_path: Path
    csv_path: Path


ResultLog = Tuple[AggregatedResult, ...]


class ExperimentOrchestrator:
    """Drives one experiment sweep at a time.

    Usage:
        orchestrator = ExperimentOrchestrator("fundamental_diagram")
        outcome = asyncio.run(orchestrator.run(
            grid, base_config, replications, simulate, sink
        ))
    """

    def __init__(
        self,
        experiment_name: str,
        description: str = "",
        should_cancel: Optional[Callable[[], bool]] = None,
        expected_metrics: Sequence[str] = (),
    ) -> None:
        """Initialize the orchestrator.

        Args:
            experiment_name: Name written into every record
            description: Description written into every record
            should_cancel: Checked before each combination; returning True
                cancels the sweep
            expected_metrics: Metric names the simulator is declared to
                report; a combination reporting a different set is logged
        """
        self._experiment_name = experiment_name
        self._description = description
        self._should_cancel = should_cancel
        self._expected_metrics = tuple(expected_metrics)
        self._state = SweepState.IDLE
        self._results: ResultLog = ()
        self._created_at: Optional[str] = None

    @property
    def state(self) -> SweepState:
        """Return the current sweep state."""
        return self._state

    @property
    def results(self) -> ResultLog:
        """Return the results completed so far (in combination order)."""
        return self._results

    def build_record(self, log: Sequence[AggregatedResult], replications: int) -> SweepRecord:
        """Stamp a result log as a SweepRecord."""
        return SweepRecord.create(
            experiment_name=self._experiment_name,
            description=self._description,
            results=tuple(log),
            replications=replications,
            created_at=self._created_at,
        )

    def _check_metrics(self, result: AggregatedResult) -> None:
        if not self._expected_metrics:
            return
        expected = set(self._expected_metrics)
        reported = set(result.metrics)
        if reported != expected:
            logger.warning(
                f"Combination {result.combination} reported metrics {sorted(reported)}, "
                f"expected {sorted(expected)}"
            )

    async def run_step(
        self,
        log: ResultLog,
        combination: Mapping[str, Any],
        replications: int,
        simulate: SimulateFn,
        sink: Sink,
    ) -> ResultLog:
        """Run one combination and checkpoint the extended log.

        Args:
            log: Results of all previous combinations
            combination: Combination to run
            replications: Replications per combination
            simulate: Simulation function
            sink: Persistence collaborator

        Returns:
            The log extended with this combination's result
        """
        self._state = SweepState.RUNNING_COMBINATION
        aggregated = await run_replications(combination, replications, simulate)
        self._check_metrics(aggregated)
        extended = log + (aggregated,)

        self._state = SweepState.CHECKPOINTING
        _persist(sink.write_checkpoint, self.build_record(extended, replications))
        return extended

    async def run(
        self,
        grid: Mapping[str, Sequence[Any]],
        base_config: Mapping[str, Any],
        replications: int,
        simulate: SimulateFn,
        sink: Sink,
    ) -> SweepOutcome:
        """Run a full sweep.

        Args:
            grid: Parameter name -> candidate values (order is significant)
            base_config: Defaults merged under every combination
            replications: Replications per combination
            simulate: Simulation function (plain or async)
            sink: Persistence collaborator

        Returns:
            SweepOutcome with the final record and output paths

        Raises:
            ConfigurationError: On a malformed grid, replication count or metrics
            ReplicationFailure: If a simulate call fails
            PersistenceError: If a checkpoint or final write fails
            PathSecurityError: If an output path escapes the results directory
            SweepCancelledError: If should_cancel fired
        """
        if self._state in _ACTIVE_STATES:
            raise SweepError(f"Sweep '{self._experiment_name}' is already running")

        self._state = SweepState.EXPANDING
        self._results = ()
        self._created_at = datetime.now().isoformat()

        try:
            if not callable(simulate):
                raise ConfigurationError("simulate must be callable")
            if isinstance(replications, bool) or not isinstance(replications, int) or replications < 1:
                raise ConfigurationError(
                    f"replications must be a positive integer, got {replications!r}"
                )

            combinations = generate_combinations(grid, base_config)
            total = len(combinations)
            # Nothing is written unless every destination is safe
            sink.validate()
            logger.info(f"=== Starting Experiment: {self._experiment_name} ===")
            logger.info(f"Total parameter combinations: {total}")
            logger.info(f"Replications per combination: {replications}")

            log: ResultLog = ()
            for index, combination in enumerate(combinations):
                if self._should_cancel is not None and self._should_cancel():
                    self._state = SweepState.CANCELLED
                    logger.warning(
                        f"Sweep '{self._experiment_name}' cancelled after {len(log)}/{total} combinations"
                    )
                    raise SweepCancelledError(len(log))

                logger.info(f"--- Running parameter set {index + 1}/{total} ---")
                logger.debug(f"Parameters: {combination}")
                log = await self.run_step(log, combination, replications, simulate, sink)
                self._results = log

            self._state = SweepState.FINALIZING
            record = self.build_record(log, replications)
            json_path, csv_path = _persist(sink.write_final, record)

        except SweepCancelledError:
            raise
        except asyncio.CancelledError:
            self._state = SweepState.CANCELLED
            logger.warning(
                f"Sweep '{self._experiment_name}' task cancelled after "
                f"{len(self._results)} combinations"
            )
            raise
        except Exception as e:
            self._state = SweepState.FAILED
            logger.error(f"Experiment '{self._experiment_name}' failed: {e}")
            raise

        self._state = SweepState.DONE
        logger.info(f"=== Experiment completed: {self._experiment_name} ===")
        return SweepOutcome(record=record, json_path=json_path, csv_path=csv_path)


def _persist(write: Callable[[SweepRecord], Any], record: SweepRecord) -> Any:
    """Call a sink write, wrapping raw I/O errors as PersistenceError."""
    try:
        return write(record)
    except OSError as e:
        raise PersistenceError(f"Failed to persist results: {e}") from e


def plan_experiment(config: ExperimentConfig) -> List[Dict[str, Any]]:
    """Return the combinations an experiment would run, without running it."""
    return generate_combinations(config.experiment.parameters, config.simulation)


def run_experiment(
    config: ExperimentConfig,
    simulate: SimulateFn,
    sink: Optional[Sink] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> SweepOutcome:
    """Run a resolved experiment configuration to completion.

    Args:
        config: Resolved experiment configuration
        simulate: Simulation function
        sink: Optional sink; defaults to a ResultsSink on output.results_dir
        should_cancel: Optional cancellation check

    Returns:
        SweepOutcome of the finished sweep
    """
    settings = config.experiment
    if sink is None:
        sink = ResultsSink(config.output.results_dir, settings.name)

    orchestrator = ExperimentOrchestrator(
        settings.name,
        description=settings.description,
        should_cancel=should_cancel,
        expected_metrics=settings.metrics,
    )
    return asyncio.run(orchestrator.run(
        settings.parameters,
        config.simulation,
        settings.replications,
        simulate,
        sink,
    ))

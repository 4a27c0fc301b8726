"""Concurrent replications of one parameter combination.

All replications of a combination run at once inside an asyncio.TaskGroup.
The first failure cancels the rest and surfaces as a ReplicationFailure
naming the combination and seed. Results are kept by replication index, so
the aggregate and any error report do not depend on completion order.
"""

import asyncio
import inspect
import logging
from collections.abc import Mapping
from numbers import Number
from typing import Any, Awaitable, Callable, Dict, List, Sequence, Union

from constants import DEFAULT_BASE_SEED
from data.abstractions import AggregatedResult, MetricStatistics, ReplicationResult
from errors import ConfigurationError, ReplicationFailure

logger = logging.getLogger(__name__)

Metrics = Mapping[str, float]
SimulateFn = Callable[[Dict[str, Any]], Union[Metrics, Awaitable[Metrics]]]


def replication_seeds(combination: Mapping[str, Any], replications: int) -> List[int]:
    """Seeds for each replication: (combination seed or 42) + index.

    Raises:
        ConfigurationError: If the combination seed is not a number
    """
    seed = combination.get("seed")
    if seed is not None and (isinstance(seed, bool) or not isinstance(seed, Number)):
        raise ConfigurationError(f"seed must be a number, got {seed!r}")
    base_seed = seed or DEFAULT_BASE_SEED
    return [base_seed + i for i in range(replications)]


async def _call_simulate(simulate: SimulateFn, parameters: Dict[str, Any]) -> Any:
    """Run simulate without blocking the event loop.

    Coroutine functions are awaited directly; plain callables run in a worker
    thread.
    """
    if inspect.iscoroutinefunction(simulate):
        return await simulate(parameters)

    result = await asyncio.to_thread(simulate, parameters)
    if inspect.isawaitable(result):
        result = await result
    return result


async def _run_replication(
    simulate: SimulateFn,
    combination: Mapping[str, Any],
    seed: int,
) -> ReplicationResult:
    # Each replication gets its own copy of the parameters
    parameters = dict(combination)
    parameters["seed"] = seed

    try:
        metrics = await _call_simulate(simulate, parameters)
    except Exception as e:
        logger.error(f"Simulation failed for seed {seed}: {e}")
        raise ReplicationFailure(combination, seed, reason=str(e)) from e

    if not isinstance(metrics, Mapping):
        raise ReplicationFailure(
            combination,
            seed,
            reason=f"simulate returned {type(metrics).__name__}, expected a metrics mapping",
        )

    return ReplicationResult(seed=seed, metrics=dict(metrics))


def aggregate_replications(
    combination: Mapping[str, Any],
    results: Sequence[ReplicationResult],
) -> AggregatedResult:
    """Average replication metrics in index order.

    Args:
        combination: The combination all results belong to
        results: Replication results in seed index order

    Returns:
        AggregatedResult with per-metric means and spread

    Raises:
        ConfigurationError: If replications disagree on their metric keys or
            report non-numeric values
    """
    if not results:
        raise ConfigurationError("Cannot aggregate zero replications")

    reference = results[0]
    expected_keys = set(reference.metrics)
    for result in results[1:]:
        if set(result.metrics) != expected_keys:
            raise ConfigurationError(
                f"Replication seed {result.seed} reported metrics "
                f"{sorted(result.metrics)} but seed {reference.seed} reported "
                f"{sorted(expected_keys)}"
            )

    means: Dict[str, float] = {}
    statistics: Dict[str, MetricStatistics] = {}
    for name in reference.metrics:
        values = []
        for result in results:
            value = result.metrics[name]
            if isinstance(value, bool) or not isinstance(value, Number):
                raise ConfigurationError(
                    f"Metric '{name}' from seed {result.seed} is not numeric: {value!r}"
                )
            values.append(float(value))
        stats = MetricStatistics.from_values(values)
        statistics[name] = stats
        means[name] = stats.mean

    return AggregatedResult(
        combination=dict(combination),
        metrics=means,
        statistics=statistics,
        seeds=tuple(result.seed for result in results),
    )


async def run_replications(
    combination: Mapping[str, Any],
    replications: int,
    simulate: SimulateFn,
) -> AggregatedResult:
    """Run every replication of a combination concurrently and aggregate.

    Args:
        combination: Fully resolved parameters; its "seed" (default 42) is
            the seed of replication 0
        replications: Number of replications (R >= 1)
        simulate: Simulation function, plain or async, taking the resolved
            parameters (including "seed") and returning a metrics mapping

    Returns:
        AggregatedResult for the combination

    Raises:
        ReplicationFailure: If any simulate call fails; nothing is aggregated
        ConfigurationError: On a bad replication count or inconsistent metrics
    """
    if isinstance(replications, bool) or not isinstance(replications, int) or replications < 1:
        raise ConfigurationError(f"replications must be a positive integer, got {replications!r}")

    seeds = replication_seeds(combination, replications)
    tasks: List[asyncio.Task] = []

    try:
        async with asyncio.TaskGroup() as group:
            for seed in seeds:
                tasks.append(group.create_task(
                    _run_replication(simulate, combination, seed),
                    name=f"replication-seed-{seed}",
                ))
    except BaseExceptionGroup as group_error:
        failures = [
            e for e in group_error.exceptions if isinstance(e, ReplicationFailure)
        ]
        if not failures:
            raise
        # Several may fail before cancellation lands; report the lowest index
        failure = min(failures, key=lambda f: seeds.index(f.seed))
        raise failure

    results = [task.result() for task in tasks]
    return aggregate_replications(combination, results)

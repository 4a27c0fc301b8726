"""Tests for concurrent replications and their aggregation."""

import asyncio
import time

import pytest

from data.abstractions import ReplicationResult
from errors import ConfigurationError, ReplicationFailure
from experiments.replications import (
    aggregate_replications,
    replication_seeds,
    run_replications,
)


class TestReplicationSeeds:
    """Tests for replication_seeds."""

    def test_default_base_seed(self):
        """Without a seed the replications start at 42."""
        assert replication_seeds({}, 3) == [42, 43, 44]

    def test_combination_seed(self):
        """A combination seed offsets every replication."""
        assert replication_seeds({"seed": 100}, 2) == [100, 101]

    def test_zero_seed_falls_back(self):
        """A zero seed counts as unset."""
        assert replication_seeds({"seed": 0}, 1) == [42]

    @pytest.mark.parametrize("seed", ["7", True, [1]])
    def test_non_numeric_seed(self, seed):
        """A seed that is not a number is a configuration error."""
        with pytest.raises(ConfigurationError, match="seed"):
            replication_seeds({"seed": seed}, 2)

    def test_run_with_string_seed(self, seed_echo_simulate):
        """run_replications reports a bad seed as a configuration error."""
        with pytest.raises(ConfigurationError):
            asyncio.run(run_replications({"seed": "7"}, 2, seed_echo_simulate))


class TestRunReplications:
    """Tests for run_replications."""

    def test_replication_mean(self, seed_echo_simulate):
        """Seeds 42, 43, 44 average to 43."""
        result = asyncio.run(run_replications({}, 3, seed_echo_simulate))

        assert result.seeds == (42, 43, 44)
        assert result.metrics == {"m": 43.0}
        assert result.statistics["m"].values == (42.0, 43.0, 44.0)
        assert result.statistics["m"].min == 42.0
        assert result.statistics["m"].max == 44.0
        assert result.replications == 3

    def test_async_simulate(self):
        """Coroutine simulators are awaited directly."""
        async def simulate(parameters):
            await asyncio.sleep(0)
            return {"throughput": parameters["density"] * 10}

        result = asyncio.run(run_replications({"density": 5}, 2, simulate))
        assert result.metrics == {"throughput": 50.0}
        assert result.combination == {"density": 5}

    def test_parameters_include_seed(self):
        """Each call receives its own parameter copy with its seed."""
        seen = []

        def simulate(parameters):
            seen.append(dict(parameters))
            parameters["density"] = -1
            return {"m": 1}

        combination = {"density": 20}
        asyncio.run(run_replications(combination, 3, simulate))

        assert sorted(p["seed"] for p in seen) == [42, 43, 44]
        assert all(p["density"] == 20 for p in seen)
        assert combination == {"density": 20}

    def test_runs_concurrently(self):
        """All replications of a combination are in flight together."""
        active = 0
        peak = 0

        async def simulate(parameters):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return {"m": 1}

        asyncio.run(run_replications({}, 5, simulate))
        assert peak == 5

    def test_index_order_independent_of_completion(self):
        """Results are attributed by index even when they finish in reverse."""
        async def simulate(parameters):
            # Higher seeds finish first
            await asyncio.sleep(0.01 * (50 - parameters["seed"]))
            return {"m": parameters["seed"]}

        result = asyncio.run(run_replications({}, 4, simulate))
        assert result.statistics["m"].values == (42.0, 43.0, 44.0, 45.0)
        assert result.seeds == (42, 43, 44, 45)

    def test_failure_names_seed(self):
        """A failing call surfaces as ReplicationFailure with its seed."""
        def simulate(parameters):
            if parameters["seed"] == 44:
                raise RuntimeError("solver diverged")
            return {"m": parameters["seed"]}

        with pytest.raises(ReplicationFailure) as exc_info:
            asyncio.run(run_replications({"density": 30}, 3, simulate))

        failure = exc_info.value
        assert failure.seed == 44
        assert failure.combination == {"density": 30}
        assert isinstance(failure.__cause__, RuntimeError)
        assert "solver diverged" in str(failure)

    def test_failure_cancels_remaining(self):
        """The first failure stops the batch without waiting for slow replications."""
        cancelled = []

        async def simulate(parameters):
            if parameters["seed"] == 42:
                raise RuntimeError("boom")
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(parameters["seed"])
                raise
            return {"m": 1}

        start = time.monotonic()
        with pytest.raises(ReplicationFailure) as exc_info:
            asyncio.run(run_replications({}, 3, simulate))

        assert exc_info.value.seed == 42
        assert time.monotonic() - start < 5
        assert sorted(cancelled) == [43, 44]

    def test_non_mapping_result(self):
        """A simulator returning something other than a mapping fails the replication."""
        with pytest.raises(ReplicationFailure):
            asyncio.run(run_replications({}, 1, lambda parameters: 3.5))

    def test_inconsistent_metric_keys(self):
        """Replications disagreeing on metric keys are a configuration error."""
        def simulate(parameters):
            if parameters["seed"] == 43:
                return {"m": 1, "extra": 2}
            return {"m": 1}

        with pytest.raises(ConfigurationError):
            asyncio.run(run_replications({}, 2, simulate))

    def test_invalid_replication_count(self, seed_echo_simulate):
        """Fewer than one replication is a configuration error."""
        with pytest.raises(ConfigurationError):
            asyncio.run(run_replications({}, 0, seed_echo_simulate))


class TestAggregateReplications:
    """Tests for aggregate_replications."""

    def test_mean_and_spread(self):
        """Mean and population standard deviation per metric."""
        results = [
            ReplicationResult(seed=42, metrics={"speed": 10.0, "flow": 1.0}),
            ReplicationResult(seed=43, metrics={"speed": 20.0, "flow": 3.0}),
        ]
        aggregated = aggregate_replications({"density": 5}, results)

        assert aggregated.metrics == {"speed": 15.0, "flow": 2.0}
        assert aggregated.statistics["speed"].std == pytest.approx(5.0)
        assert list(aggregated.metrics) == ["speed", "flow"]

    def test_non_numeric_metric(self):
        """Non-numeric metric values are rejected."""
        results = [ReplicationResult(seed=42, metrics={"label": "fast"})]
        with pytest.raises(ConfigurationError):
            aggregate_replications({}, results)

    def test_empty(self):
        """Zero replications cannot be aggregated."""
        with pytest.raises(ConfigurationError):
            aggregate_replications({}, [])

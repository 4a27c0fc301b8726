"""Tests for configuration dataclasses and resolution."""

import pytest
from dataclasses import FrozenInstanceError

from config import (
    ExperimentConfig,
    ExperimentSettings,
    OutputConfig,
    resolve_experiment_config,
)
from errors import ConfigurationError


def _raw_config(**experiment_overrides):
    experiment = {
        "name": "fundamental_diagram",
        "description": "Throughput vs density relationship",
        "replications": 3,
        "parameters": {"density": [10, 20], "numLanes": [3]},
        "metrics": ["throughput", "avgSpeed"],
    }
    experiment.update(experiment_overrides)
    return {
        "experiment": experiment,
        "simulation": {"laneLength": 5.0, "seed": 42, "meanSpeed": 100},
        "output": {"results_dir": "results/fundamental_diagram"},
    }


class TestExperimentSettings:
    """Tests for ExperimentSettings dataclass."""

    def test_frozen_immutability(self):
        """Settings cannot be modified after creation."""
        settings = ExperimentSettings(name="exp", replications=2)
        with pytest.raises(FrozenInstanceError):
            settings.replications = 5

    def test_invalid_name(self):
        """Names unusable as file names are rejected."""
        with pytest.raises(ConfigurationError):
            ExperimentSettings(name="bad/name", replications=1)
        with pytest.raises(ConfigurationError):
            ExperimentSettings(name="   ", replications=1)

    def test_replications_must_be_positive(self):
        """Zero, negative or non-integer replication counts are rejected."""
        for bad in (0, -1, 2.5, True):
            with pytest.raises(ConfigurationError):
                ExperimentSettings(name="exp", replications=bad)

    def test_combination_count(self):
        """Combination count is the product of the value-list lengths."""
        settings = ExperimentSettings(
            name="exp", replications=1, parameters={"a": (1, 2), "b": (1, 2, 3)}
        )
        assert settings.combination_count == 6


class TestOutputConfig:
    """Tests for OutputConfig dataclass."""

    def test_results_dir_required(self):
        """An empty results directory is rejected."""
        with pytest.raises(ConfigurationError):
            OutputConfig(results_dir="")


class TestResolveExperimentConfig:
    """Tests for resolve_experiment_config."""

    def test_resolves_full_config(self):
        """A complete raw config resolves into the typed struct."""
        config = resolve_experiment_config(_raw_config())

        assert isinstance(config, ExperimentConfig)
        assert config.experiment.name == "fundamental_diagram"
        assert config.experiment.replications == 3
        assert config.experiment.parameters == {"density": (10, 20), "numLanes": (3,)}
        assert config.simulation["seed"] == 42
        assert config.output.results_dir == "results/fundamental_diagram"

    def test_parameter_order_preserved(self):
        """Parameter declaration order survives resolution."""
        config = resolve_experiment_config(_raw_config(parameters={"z": [1], "a": [2], "m": [3]}))
        assert list(config.experiment.parameters) == ["z", "a", "m"]

    @pytest.mark.parametrize("missing", ["name", "replications", "parameters"])
    def test_missing_experiment_field(self, missing):
        """Missing required experiment fields fail instead of defaulting."""
        raw = _raw_config()
        del raw["experiment"][missing]
        with pytest.raises(ConfigurationError, match=missing):
            resolve_experiment_config(raw)

    def test_missing_output_section(self):
        """A config without an output section is rejected."""
        raw = _raw_config()
        del raw["output"]
        with pytest.raises(ConfigurationError):
            resolve_experiment_config(raw)

    def test_malformed_parameter_values(self):
        """Grid values must be lists."""
        with pytest.raises(ConfigurationError):
            resolve_experiment_config(_raw_config(parameters={"density": 10}))

    def test_required_defaults(self):
        """Required simulation defaults must be present or swept."""
        config = resolve_experiment_config(_raw_config(), required_defaults=["laneLength", "density"])
        assert config.simulation["laneLength"] == 5.0

        with pytest.raises(ConfigurationError, match="maxDecel"):
            resolve_experiment_config(_raw_config(), required_defaults=["maxDecel"])

    def test_non_scalar_default(self):
        """Simulation defaults must be scalars."""
        raw = _raw_config()
        raw["simulation"]["lanes"] = [1, 2]
        with pytest.raises(ConfigurationError):
            resolve_experiment_config(raw)

    def test_non_numeric_seed(self):
        """A seed that is not a number is rejected."""
        raw = _raw_config()
        raw["simulation"]["seed"] = "abc"
        with pytest.raises(ConfigurationError):
            resolve_experiment_config(raw)

    def test_non_numeric_swept_seed(self):
        """Every seed swept in the grid must be a number."""
        with pytest.raises(ConfigurationError, match="experiment.parameters.seed"):
            resolve_experiment_config(_raw_config(parameters={"seed": [1, "7"]}))

        config = resolve_experiment_config(_raw_config(parameters={"seed": [1, 2.5]}))
        assert config.experiment.parameters["seed"] == (1, 2.5)

    def test_metrics_kept(self):
        """Declared metrics are kept in order."""
        config = resolve_experiment_config(_raw_config())
        assert config.experiment.metrics == ("throughput", "avgSpeed")

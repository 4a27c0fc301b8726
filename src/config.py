"""Configuration dataclasses for experiment sweeps.

The orchestrator only ever sees a fully resolved ExperimentConfig. Turning a
raw dictionary (usually loaded from JSON by scripts/run_experiment.py) into
one happens here, and fails with ConfigurationError instead of silently
defaulting mid-run.
"""

from dataclasses import dataclass, field
from numbers import Number
from typing import Any, Dict, List, Mapping, Optional, Tuple

from errors import ConfigurationError


@dataclass(frozen=True)
class ExperimentSettings:
    """What to sweep and how often to replicate each combination."""

    name: str
    replications: int
    parameters: Dict[str, Tuple[Any, ...]] = field(default_factory=dict)
    description: str = ""
    # Metrics the simulator is expected to report; mismatches are logged
    metrics: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        invalid_chars = set('<>:"/\\|?*')
        if not isinstance(self.name, str) or not self.name.strip():
            raise ConfigurationError("Experiment name cannot be empty or whitespace")
        if any(char in self.name for char in invalid_chars):
            raise ConfigurationError(
                f"Experiment name contains invalid characters: {self.name}"
            )

        # bool is an int subclass; reject it explicitly
        if isinstance(self.replications, bool) or not isinstance(self.replications, int):
            raise ConfigurationError(
                f"replications must be an integer, got {self.replications!r}"
            )
        if self.replications < 1:
            raise ConfigurationError(
                f"replications must be at least 1, got {self.replications}"
            )

        for name, values in self.parameters.items():
            if not isinstance(values, (list, tuple)) or len(values) == 0:
                raise ConfigurationError(
                    f"Parameter '{name}' must map to a non-empty list of values"
                )

    @property
    def combination_count(self) -> int:
        """Return the number of combinations the grid expands to."""
        count = 1
        for values in self.parameters.values():
            count *= len(values)
        return count


@dataclass(frozen=True)
class OutputConfig:
    """Where sweep results are written."""

    results_dir: str

    def __post_init__(self) -> None:
        if not isinstance(self.results_dir, str) or not self.results_dir.strip():
            raise ConfigurationError("output.results_dir is required")


@dataclass(frozen=True)
class ExperimentConfig:
    """Master configuration combining all sections of an experiment."""

    experiment: ExperimentSettings
    output: OutputConfig
    # Base simulation defaults merged under every combination
    simulation: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name, value in self.simulation.items():
            if isinstance(value, (dict, list, tuple, set)):
                raise ConfigurationError(
                    f"Simulation default '{name}' must be a scalar, got {type(value).__name__}"
                )


def _require(section: Mapping[str, Any], key: str, section_name: str) -> Any:
    """Fetch a required key from a raw config section.

    Raises:
        ConfigurationError: If the key is missing
    """
    if key not in section:
        raise ConfigurationError(f"Missing required field: {section_name}.{key}")
    return section[key]


def _require_section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = _require(raw, name, "config")
    if not isinstance(section, Mapping):
        raise ConfigurationError(f"Section '{name}' must be an object")
    return section


def resolve_experiment_config(
    raw: Mapping[str, Any],
    required_defaults: Optional[List[str]] = None,
) -> ExperimentConfig:
    """Resolve a raw configuration dictionary into an ExperimentConfig.

    Expected shape:
        {
            "experiment": {"name": ..., "description": ..., "replications": 10,
                           "parameters": {"density": [10, 20]}, "metrics": [...]},
            "simulation": {"laneLength": 1.0, "seed": 42, ...},
            "output": {"results_dir": "results/fundamental_diagram"}
        }

    Args:
        raw: Parsed configuration dictionary
        required_defaults: Simulation defaults that must be present, either
            in the "simulation" section or swept in the grid

    Returns:
        Fully populated, validated ExperimentConfig

    Raises:
        ConfigurationError: On missing required fields or malformed values
    """
    if not isinstance(raw, Mapping):
        raise ConfigurationError("Configuration must be an object")

    experiment_raw = _require_section(raw, "experiment")
    output_raw = _require_section(raw, "output")
    simulation_raw = raw.get("simulation", {})
    if not isinstance(simulation_raw, Mapping):
        raise ConfigurationError("Section 'simulation' must be an object")

    parameters_raw = _require(experiment_raw, "parameters", "experiment")
    if not isinstance(parameters_raw, Mapping):
        raise ConfigurationError("experiment.parameters must be an object")

    parameters: Dict[str, Tuple[Any, ...]] = {}
    for name, values in parameters_raw.items():
        if not isinstance(values, (list, tuple)):
            raise ConfigurationError(
                f"Parameter '{name}' must map to a list of values, got {type(values).__name__}"
            )
        parameters[name] = tuple(values)

    settings = ExperimentSettings(
        name=_require(experiment_raw, "name", "experiment"),
        replications=_require(experiment_raw, "replications", "experiment"),
        parameters=parameters,
        description=experiment_raw.get("description") or "",
        metrics=tuple(experiment_raw.get("metrics", ())),
    )

    output = OutputConfig(
        results_dir=_require(output_raw, "results_dir", "output"),
    )

    simulation = dict(simulation_raw)
    for name in required_defaults or []:
        if name not in simulation and name not in parameters:
            raise ConfigurationError(f"Missing required simulation default: {name}")

    seeds = [("simulation.seed", simulation.get("seed"))]
    seeds.extend(("experiment.parameters.seed", value) for value in parameters.get("seed", ()))
    for where, seed in seeds:
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, Number)):
            raise ConfigurationError(f"{where} must be a number, got {seed!r}")

    return ExperimentConfig(experiment=settings, output=output, simulation=simulation)

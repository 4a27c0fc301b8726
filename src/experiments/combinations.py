"""Parameter grid expansion."""

import itertools
from typing import Any, Dict, Iterator, List, Mapping, Sequence

from errors import ConfigurationError


def iter_combinations(
    grid: Mapping[str, Sequence[Any]],
    base_config: Mapping[str, Any],
) -> Iterator[Dict[str, Any]]:
    """Yield every combination of the grid, merged over base_config.

    Parameters are expanded in declared order with the last parameter
    varying fastest, values in declared order.

    Args:
        grid: Parameter name -> candidate values
        base_config: Defaults present in every combination

    Yields:
        Resolved parameter dicts

    Raises:
        ConfigurationError: If a grid entry is not a non-empty list of values
    """
    param_names = list(grid.keys())
    param_values = []
    for name in param_names:
        values = grid[name]
        if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
            raise ConfigurationError(
                f"Parameter '{name}' must map to a list of values, got {type(values).__name__}"
            )
        if len(values) == 0:
            raise ConfigurationError(f"Parameter '{name}' has no candidate values")
        param_values.append(list(values))

    for values in itertools.product(*param_values):
        combination = dict(base_config)
        combination.update(zip(param_names, values))
        yield combination


def generate_combinations(
    grid: Mapping[str, Sequence[Any]],
    base_config: Mapping[str, Any],
) -> List[Dict[str, Any]]:
    """Expand a parameter grid into its full list of combinations.

    An empty grid yields exactly one combination equal to base_config.
    """
    return list(iter_combinations(grid, base_config))

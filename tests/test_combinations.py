"""Tests for parameter grid expansion."""

import pytest

from errors import ConfigurationError
from experiments.combinations import generate_combinations, iter_combinations


class TestGenerateCombinations:
    """Tests for generate_combinations."""

    def test_count_and_order(self):
        """Grid {a:[1,2], b:[10,20]} expands in declared order, last parameter fastest."""
        combinations = generate_combinations({"a": [1, 2], "b": [10, 20]}, {})
        assert combinations == [
            {"a": 1, "b": 10},
            {"a": 1, "b": 20},
            {"a": 2, "b": 10},
            {"a": 2, "b": 20},
        ]

    def test_empty_grid(self):
        """No parameters yields exactly one combination equal to the defaults."""
        base = {"laneLength": 5.0, "seed": 7}
        assert generate_combinations({}, base) == [base]

    def test_base_config_overridden(self):
        """Swept values override defaults; other defaults pass through."""
        base = {"density": 10, "meanSpeed": 100}
        combinations = generate_combinations({"density": [20, 30]}, base)
        assert combinations == [
            {"density": 20, "meanSpeed": 100},
            {"density": 30, "meanSpeed": 100},
        ]

    def test_base_config_not_mutated(self):
        """Expanding never changes the caller's defaults."""
        base = {"density": 10}
        generate_combinations({"density": [20]}, base)
        assert base == {"density": 10}

    def test_count_is_product(self):
        """Combination count is the product of value-list lengths."""
        grid = {"a": [1, 2, 3], "b": ["x", "y"], "c": [True]}
        assert len(generate_combinations(grid, {})) == 6

    def test_empty_value_list(self):
        """A parameter without candidates is a configuration error."""
        with pytest.raises(ConfigurationError):
            generate_combinations({"a": []}, {})

    def test_scalar_value_rejected(self):
        """A bare scalar or string instead of a list is a configuration error."""
        with pytest.raises(ConfigurationError):
            generate_combinations({"a": 5}, {})
        with pytest.raises(ConfigurationError):
            generate_combinations({"a": "12"}, {})

    def test_iterator_is_lazy(self):
        """iter_combinations yields one combination at a time."""
        iterator = iter_combinations({"a": [1, 2]}, {})
        assert next(iterator) == {"a": 1}
        assert next(iterator) == {"a": 2}

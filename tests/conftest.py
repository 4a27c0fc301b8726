"""Pytest fixtures for pack analysis and sweep tests."""

import shutil
import sys
import tempfile
from pathlib import Path

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from analysis.pack_detector import VehicleSnapshot
from data.results_sink import ResultsSink


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp = tempfile.mkdtemp()
    yield temp
    shutil.rmtree(temp, ignore_errors=True)


@pytest.fixture
def results_dir(temp_dir):
    """Results directory inside the temporary directory."""
    return Path(temp_dir) / "results"


@pytest.fixture
def sink(results_dir):
    """ResultsSink writing into the temporary results directory."""
    return ResultsSink(results_dir, "test_sweep")


@pytest.fixture
def seed_echo_simulate():
    """Simulation stub reporting its seed as the only metric."""
    def simulate(parameters):
        return {"m": parameters["seed"]}
    return simulate


@pytest.fixture
def contiguous_vehicles():
    """Four vehicles one unit apart in lane 0, all at speed 60."""
    return [
        VehicleSnapshot(id=i, position=float(i), speed=60.0, lane=0)
        for i in range(4)
    ]


@pytest.fixture
def ring_traffic():
    """A mixed snapshot on a 100-unit ring: two lanes, a wraparound and a slow group."""
    return [
        VehicleSnapshot(id="a", position=98.0, speed=60.0, lane=0),
        VehicleSnapshot(id="b", position=1.0, speed=62.0, lane=0),
        VehicleSnapshot(id="c", position=2.5, speed=58.0, lane=1),
        VehicleSnapshot(id="d", position=30.0, speed=25.0, lane=0),
        VehicleSnapshot(id="e", position=31.0, speed=26.0, lane=0),
        VehicleSnapshot(id="f", position=32.0, speed=24.0, lane=0),
        VehicleSnapshot(id="g", position=70.0, speed=90.0, lane=1),
    ]

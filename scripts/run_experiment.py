#!/usr/bin/env python3
"""Run a parameter sweep experiment against an external simulator.

Usage:
    python scripts/run_experiment.py configs/fundamental_diagram.json --simulator mysim.runner:simulate
    python scripts/run_experiment.py --config configs/fundamental_diagram.json --dry-run
    python scripts/run_experiment.py -c config.json -s mysim:simulate --output-dir results/EXP_001

The simulator is any importable callable (plain or async) that takes the
resolved parameters, including "seed", and returns a mapping of metric name
to number.

The script:
1. Loads and resolves the JSON experiment configuration
2. Expands the parameter grid into combinations
3. Runs every combination's replications concurrently
4. Checkpoints results after each combination
5. Writes the final JSON record and CSV export to the results directory
"""

import argparse
import importlib
import json
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path

# Add src to path for imports
SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
SRC_DIR = PROJECT_ROOT / "src"
sys.path.insert(0, str(SRC_DIR))

from config import ExperimentConfig, resolve_experiment_config
from errors import ReplicationFailure, SweepError
from experiments.orchestrator import plan_experiment, run_experiment

logger = logging.getLogger(__name__)


def load_experiment_config(config_path: str) -> ExperimentConfig:
    """Load and resolve an experiment configuration from a JSON file."""
    with open(config_path, 'r', encoding='utf-8') as f:
        return resolve_experiment_config(json.load(f))


def load_simulator(target: str):
    """Import a simulator given as 'package.module:function'.

    Raises:
        ValueError: If target is not in module:attribute form
        ImportError / AttributeError: If the module or attribute is missing
    """
    module_name, sep, attribute = target.partition(':')
    if not sep or not module_name or not attribute:
        raise ValueError(f"Simulator must be given as module:function, got '{target}'")

    module = importlib.import_module(module_name)
    simulate = getattr(module, attribute)
    if not callable(simulate):
        raise ValueError(f"Simulator '{target}' is not callable")
    return simulate


def main():
    parser = argparse.ArgumentParser(description='Run a parameter sweep experiment')
    parser.add_argument('config', nargs='?', help='Path to experiment config JSON file')
    parser.add_argument('--config', '-c', dest='config_flag', help='Path to experiment config JSON file')
    parser.add_argument('--simulator', '-s', help='Simulation function as module:function')
    parser.add_argument('--dry-run', action='store_true', help='Print combinations without running')
    parser.add_argument('--output-dir', '-o', dest='output_dir',
                        help='Override output.results_dir from the config')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s | %(levelname)s | %(message)s',
        datefmt='%H:%M:%S'
    )

    config_path = args.config or args.config_flag
    if not config_path:
        print("Usage: python scripts/run_experiment.py <config.json> --simulator module:function")
        print("       python scripts/run_experiment.py --config <config.json> --dry-run")
        sys.exit(1)

    if not os.path.exists(config_path):
        print(f"Error: Config file not found: {config_path}")
        sys.exit(1)

    try:
        config = load_experiment_config(config_path)
    except (SweepError, json.JSONDecodeError) as e:
        print(f"Error: Invalid experiment config: {e}")
        sys.exit(1)

    if args.output_dir:
        config = replace(config, output=replace(config.output, results_dir=args.output_dir))

    settings = config.experiment
    combinations = plan_experiment(config)
    print(f"Experiment '{settings.name}': {len(combinations)} combinations x "
          f"{settings.replications} replications")
    print(f"Results will be saved to: {config.output.results_dir}")

    if args.dry_run:
        print("\n=== DRY RUN - Combinations to run ===")
        for i, combination in enumerate(combinations):
            print(f"  Set {i+1}: {combination}")
        return

    if not args.simulator:
        print("Error: --simulator is required unless --dry-run is given")
        sys.exit(1)

    try:
        simulate = load_simulator(args.simulator)
    except (ImportError, AttributeError, ValueError) as e:
        print(f"Error: Could not load simulator: {e}")
        sys.exit(1)

    try:
        outcome = run_experiment(config, simulate)
    except ReplicationFailure as e:
        print(f"Experiment failed at seed {e.seed} for combination {e.combination}")
        print(f"  Cause: {e.__cause__ or e.reason}")
        sys.exit(1)
    except SweepError as e:
        print(f"Experiment failed: {e}")
        sys.exit(1)

    print(f"\nResults saved to: {outcome.json_path}")
    print(f"CSV saved to: {outcome.csv_path}")


if __name__ == '__main__':
    main()

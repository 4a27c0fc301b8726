"""Durable persistence of sweep results.

Writes a checkpoint of the full result log after every combination and, once
the sweep finishes, a timestamped JSON record plus its CSV export. NaN and
infinite numbers are written as null so the JSON stays standard.

Every destination is resolved and checked against the results directory
before anything touches the filesystem.
"""

import contextlib
import json
import logging
import math
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

from constants import CHECKPOINT_FILENAME
from data.abstractions import SweepRecord
from data.tabular_export import to_csv
from errors import PathSecurityError, PersistenceError

logger = logging.getLogger(__name__)


_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w\-.]")


def sanitize_filename(filename: str) -> str:
    """Replace every character outside [A-Za-z0-9_.-] with an underscore."""
    return _UNSAFE_FILENAME_CHARS.sub("_", filename)


def resolve_output_path(results_dir: Union[str, Path], filename: str) -> Path:
    """Resolve a destination file and make sure it stays in results_dir.

    Args:
        results_dir: Configured results directory
        filename: Destination file name (already sanitized)

    Returns:
        Absolute destination path

    Raises:
        PathSecurityError: If the destination resolves outside results_dir
    """
    root = Path(results_dir).resolve()
    candidate = (root / filename).resolve()
    if candidate == root or not candidate.is_relative_to(root):
        raise PathSecurityError(
            f"Refusing to write {candidate}: outside results directory {root}"
        )
    return candidate


def _finite_or_null(value: Any) -> Any:
    """Replace NaN and infinite floats with None, recursively."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {key: _finite_or_null(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_finite_or_null(item) for item in value]
    return value


def final_timestamp_token(timestamp: str) -> str:
    """Turn an ISO timestamp into a filename-friendly token."""
    return re.sub(r"[:.]", "-", timestamp)


class ResultsSink:
    """Writes sweep checkpoints and final results to a results directory.

    Directory structure:
        {results_dir}/
            intermediate_results.json        # Rewritten after every combination
            {experiment}_{timestamp}.json    # Final structured record
            {experiment}_{timestamp}.csv     # Final tabular export

    Usage:
        sink = ResultsSink("results/fundamental_diagram", "fundamental_diagram")
        sink.write_checkpoint(record)  # After each combination
        sink.write_final(record)       # At sweep end
    """

    def __init__(
        self,
        results_dir: Union[str, Path],
        experiment_name: str,
        checkpoint_filename: str = CHECKPOINT_FILENAME,
    ) -> None:
        """Initialize the sink.

        Args:
            results_dir: Directory all writes must stay inside
            experiment_name: Prefix of the final result files
            checkpoint_filename: Name of the checkpoint file
        """
        self._results_dir = Path(results_dir)
        self._experiment_name = experiment_name
        self._checkpoint_filename = sanitize_filename(checkpoint_filename)

    @property
    def results_dir(self) -> Path:
        """Return the results directory."""
        return self._results_dir

    @property
    def checkpoint_path(self) -> Path:
        """Return the validated checkpoint path.

        Raises:
            PathSecurityError: If the checkpoint would land outside results_dir
        """
        return resolve_output_path(self._results_dir, self._checkpoint_filename)

    def final_paths(self, record: SweepRecord) -> Tuple[Path, Path]:
        """Return the validated (json, csv) destinations for a final record.

        Raises:
            PathSecurityError: If either file would land outside results_dir
        """
        stem = sanitize_filename(
            f"{self._experiment_name}_{final_timestamp_token(record.timestamp)}"
        )
        return (
            resolve_output_path(self._results_dir, f"{stem}.json"),
            resolve_output_path(self._results_dir, f"{stem}.csv"),
        )

    def validate(self) -> None:
        """Check every destination before a sweep writes anything.

        Raises:
            PathSecurityError: If the checkpoint or a final file would land
                outside results_dir
        """
        resolve_output_path(self._results_dir, self._checkpoint_filename)
        probe = SweepRecord(
            experiment_name=self._experiment_name,
            description="",
            timestamp=datetime.now().isoformat(),
        )
        self.final_paths(probe)

    def write_checkpoint(self, record: SweepRecord) -> Path:
        """Persist the full result log so far.

        Args:
            record: Record holding every completed combination

        Returns:
            Path of the checkpoint file

        Raises:
            PathSecurityError: If the destination escapes results_dir
            PersistenceError: If the write fails
        """
        path = self.checkpoint_path
        self._write_text(path, self._serialize(record))
        logger.debug(
            f"Checkpoint written to {path} ({len(record.results)} combination(s))"
        )
        return path

    def write_final(self, record: SweepRecord) -> Tuple[Path, Path]:
        """Persist the final record and its tabular export.

        Args:
            record: Complete record; its timestamp names the files

        Returns:
            Tuple of (json_path, csv_path)

        Raises:
            PathSecurityError: If a destination escapes results_dir
            PersistenceError: If a write fails
        """
        json_path, csv_path = self.final_paths(record)
        self._write_text(json_path, self._serialize(record))
        self._write_text(csv_path, to_csv(record.results, record.timestamp))
        logger.info(f"Results saved to {json_path}")
        logger.info(f"CSV saved to {csv_path}")
        return json_path, csv_path

    def read_checkpoint(self) -> Optional[SweepRecord]:
        """Read the last checkpoint.

        Returns:
            The checkpointed record, or None if no checkpoint exists
        """
        path = self.checkpoint_path
        if not path.exists():
            return None

        with open(path, "r", encoding="utf-8") as f:
            return SweepRecord.from_dict(json.load(f))

    def list_results(self) -> List[str]:
        """List final result files (JSON and CSV) in name order."""
        if not self._results_dir.exists():
            return []

        prefix = sanitize_filename(f"{self._experiment_name}_")
        return sorted(
            p.name
            for p in self._results_dir.iterdir()
            if p.is_file() and p.name.startswith(prefix) and p.suffix in (".json", ".csv")
        )

    def _serialize(self, record: SweepRecord) -> str:
        try:
            return json.dumps(
                _finite_or_null(record.to_dict()),
                indent=2,
                ensure_ascii=False,
                allow_nan=False,
            )
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Could not serialize results: {e}") from e

    def _write_text(self, path: Path, content: str) -> None:
        """Write content atomically (temp file + replace).

        Raises:
            PersistenceError: On any filesystem error
        """
        temp_path = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "w", encoding="utf-8", newline="") as f:
                f.write(content)
            os.replace(temp_path, path)
        except OSError as e:
            with contextlib.suppress(OSError):
                temp_path.unlink(missing_ok=True)
            logger.error(f"Error saving results to {path}: {e}")
            raise PersistenceError(f"Failed to write {path}: {e}") from e

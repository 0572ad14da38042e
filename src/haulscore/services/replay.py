"""Read recorded telemetry (one JSON object per line) for offline scoring."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Iterable, Iterator

from haulscore.models.telemetry import TelemetrySample

logger = logging.getLogger(__name__)


def read_samples(path: Path) -> Iterator[TelemetrySample]:
    """
    Yield samples from a JSON-lines recording.

    Blank lines are skipped. Lines that are not JSON objects are logged and
    skipped so one corrupt record does not abort a replay.

    Args:
        path: Recording file path

    Raises:
        OSError: If the file cannot be opened
    """
    with open(path, "r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning("Skipping line %d of %s: %s", line_no, path, e)
                continue
            if not isinstance(record, dict):
                logger.warning("Skipping line %d of %s: not an object", line_no, path)
                continue
            yield TelemetrySample.from_dict(record)


def write_samples(samples: Iterable[TelemetrySample], path: Path) -> int:
    """Write samples as a JSON-lines recording. Returns the number written."""
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with open(path, "w", encoding="utf-8") as f:
        for sample in samples:
            f.write(json.dumps(asdict(sample)) + "\n")
            count += 1
    return count

"""CSV input for recorded tracks."""

import csv
import logging
from pathlib import Path
from typing import Iterator, Optional, Union

from turf_engine.tracking import RawSample

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("latitude", "longitude", "timestamp")


def _parse_optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    return float(value.strip())


def iter_samples(csv_path: Union[str, Path]) -> Iterator[RawSample]:
    """Yield RawSample rows from a track CSV.

    Columns: latitude, longitude, timestamp (epoch ms), accuracy (optional,
    metres). Rows that fail to parse are skipped.

    Raises:
        KeyError: If a required column is missing from the header.
    """
    p = Path(csv_path)
    skipped = 0
    with p.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            return

        missing = [c for c in REQUIRED_COLUMNS if c not in reader.fieldnames]
        if missing:
            raise KeyError(f"CSV missing required columns {missing}. Found: {reader.fieldnames}")

        for row in reader:
            try:
                yield RawSample(
                    latitude=float(row["latitude"].strip()),
                    longitude=float(row["longitude"].strip()),
                    timestamp=int(float(row["timestamp"].strip())),
                    accuracy=_parse_optional_float(row.get("accuracy")),
                )
            except (AttributeError, ValueError, TypeError):
                skipped += 1
                continue

    if skipped:
        logger.warning(f"Skipped {skipped} unparseable rows in {p}")

"""JSON snapshots of successfully loaded uploads."""

import json
import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from tableload.types import RowRecord

logger = logging.getLogger(__name__)


def snapshot_name(moment: datetime) -> str:
    """data-YYYY-MM-DD_HH-MM.json"""
    return f"data-{moment:%Y-%m-%d_%H-%M}.json"


def write_snapshot(
    directory: str | Path,
    rows: Sequence[RowRecord],
    moment: datetime | None = None,
) -> Path:
    """Write ``rows`` as pretty-printed JSON into ``directory`` and return the path."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / snapshot_name(moment or datetime.now())
    with open(path, "w", encoding="utf-8") as f:
        json.dump([dict(row) for row in rows], f, indent=2, default=str)
    logger.info("JSON data saved to %s", path)
    return path

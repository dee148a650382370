"""Tests for JSON snapshots of loaded uploads."""

import json
from datetime import datetime

from tableload.snapshot import snapshot_name, write_snapshot


def test_snapshot_name():
    assert snapshot_name(datetime(2024, 3, 9, 14, 5, 59)) == "data-2024-03-09_14-05.json"


def test_write_snapshot_creates_directory(tmp_path):
    target = tmp_path / "nested" / "data"
    rows = [{"sku": "A-1", "received": datetime(2024, 1, 2, 3, 4)}]

    path = write_snapshot(target, rows, moment=datetime(2024, 1, 2, 3, 4))

    assert path == target / "data-2024-01-02_03-04.json"
    assert json.loads(path.read_text()) == [{"sku": "A-1", "received": "2024-01-02 03:04:00"}]

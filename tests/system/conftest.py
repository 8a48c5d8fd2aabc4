"""System test configuration and fixtures."""

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from tests.utils import FakeZoneLookup, scenario_metadata


@pytest.fixture(autouse=True)
def restore_root_logging():
    """The CLI reconfigures the root logger; put it back after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def photo_dir(tmp_path):
    """A card dump: one file per reconciliation outcome, keyed by file name."""
    metadata = {
        "a_reconciled.jpg": scenario_metadata(),
        "b_no_gps.jpg": scenario_metadata(gps=False, location=False),
        "c_broken.jpg": {"SourceFile": "c_broken.jpg", "ExifTool:Error": "File format error"},
        "d_no_times.jpg": scenario_metadata(local=None, gps=False),
        "e_only_gps.jpg": scenario_metadata(local=None),
    }
    for name in metadata:
        (tmp_path / name).write_bytes(b"\xff\xd8")
    (tmp_path / "notes.txt").write_text("not a photo", encoding="utf-8")
    metadata["notes.txt"] = {"SourceFile": "notes.txt", "ExifTool:Error": "Unknown file type"}

    def get_metadata(fname):
        return [metadata[Path(fname).name]]

    with patch("exiftool.ExifToolHelper") as helper_class:
        helper_class.return_value.__enter__.return_value.get_metadata.side_effect = get_metadata
        yield tmp_path


@pytest.fixture
def zone_lookup():
    lookup = FakeZoneLookup("America/New_York")
    with patch("camclock.geo.lookup_zone_name", lookup):
        yield lookup

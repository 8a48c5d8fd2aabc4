"""Integration test configuration and fixtures."""

import shutil

import pytest

from camclock.metadata import et


def pytest_runtest_setup(item):
    """Skip integration tests if exiftool is not installed."""
    if "integration" in item.nodeid:
        if shutil.which("exiftool") is None:
            pytest.skip("exiftool not installed")


@pytest.fixture
def write_exif(tmp_path):
    """Create an EXIF file from scratch with the given tags; returns its path."""

    def _write(name: str, tags: dict) -> str:
        path = tmp_path / name
        with et.helper() as extl:
            extl.execute("-o", str(path), *(f"-{tag}={value}" for tag, value in tags.items()))
        return str(path)

    return _write

"""Root conftest.py with shared fixtures across all test types."""

import pytest

from camclock.metadata.zones import zone_cache_clear
from tests.utils import FakeZoneLookup


@pytest.fixture(autouse=True)
def fresh_zone_cache():
    """Every test starts and ends with an empty zone cache."""
    zone_cache_clear()
    yield
    zone_cache_clear()


@pytest.fixture
def new_york_lookup():
    return FakeZoneLookup("America/New_York")

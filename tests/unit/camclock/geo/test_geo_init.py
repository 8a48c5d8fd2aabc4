"""Unit tests for the camclock.geo public API wrappers."""

from unittest import mock

import pytest

from camclock.geo import lookup_zone_name, tz_from_coords

pytestmark = pytest.mark.unit


def test_tz_from_coords_wrapper():
    with mock.patch("camclock.geo.tz4d.tz_from_coords", return_value="Europe/Budapest") as impl:
        assert tz_from_coords(47.4979, 19.0402) == "Europe/Budapest"
    impl.assert_called_once_with(47.4979, 19.0402)


def test_lookup_zone_name_wrapper_maps_unknown_to_empty():
    with mock.patch("camclock.geo.tz4d.tz_from_coords", return_value=None):
        assert lookup_zone_name(0.0, -160.0) == ""

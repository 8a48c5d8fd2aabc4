"""Coordinate to IANA zone name lookup.

The wrappers import ``.tz4d`` on first call, so shapely, rtree and the polygon
index stay out of processes that never look up a zone (``camclock get``).
"""

__all__ = [
    "lookup_zone_name",
    "tz_from_coords",
]


def tz_from_coords(lat: float, lon: float) -> str | None:
    from .tz4d import tz_from_coords as _impl  # pylint: disable=import-outside-toplevel

    return _impl(lat, lon)


def lookup_zone_name(lat: float, lon: float) -> str:
    from .tz4d import lookup_zone_name as _impl  # pylint: disable=import-outside-toplevel

    return _impl(lat, lon)

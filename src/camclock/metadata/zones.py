"""Process-wide cache of IANA zones loaded from the system timezone database."""

import logging
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from camclock.utils.trace_utils import str_exc

log = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def _load_zone(zone_name: str) -> ZoneInfo | None:
    # failures are cached too: a name that did not load is never retried
    try:
        return ZoneInfo(zone_name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        log.warning("failed to look up timezone %r: %s", zone_name, str_exc(e))
        return None


def resolve_zone(zone_name: str) -> ZoneInfo | None:
    """Return the zone for an IANA name, or None if the name is empty or unknown.

    Safe to call from several threads; two threads missing the same name at
    once may both load it, and both store the same value.
    """
    if not zone_name:
        return None
    return _load_zone(zone_name)


def zone_cache_clear() -> None:
    _load_zone.cache_clear()

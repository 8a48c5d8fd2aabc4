"""YAML helpers"""

import datetime as dt
import os
import typing as t

import yaml
from munch import Munch

from camclock.utils.data_utils import NotSpecified


def stringify_datetime(data: dt.datetime) -> str:
    """Represent datetime as ISO format with space separator instead of 'T', suppressing trailing zeros.

    Aware UTC datetimes get a 'Z' suffix; other aware datetimes keep their +HH:MM offset.
    """
    iso_str = data.isoformat(sep=" ")
    if "." in iso_str[19:26]:
        head, _, frac = iso_str.partition(".")
        digits = frac[:6].rstrip("0")
        iso_str = head + (f".{digits}" if digits else "") + frac[6:]
    if data.tzinfo is not None and data.utcoffset() == dt.timedelta(0) and iso_str.endswith("+00:00"):
        iso_str = iso_str.removesuffix("+00:00") + "Z"
    return iso_str


def stringify_duration(data: dt.timedelta) -> str:
    """Represent a signed timedelta as hours, minutes and seconds, e.g. '3h1m2s' or '-58m58s'."""
    micros = data // dt.timedelta(microseconds=1)
    sign = "-" if micros < 0 else ""
    micros = abs(micros)
    if not micros:
        return "0s"
    seconds, micros = divmod(micros, 1_000_000)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    secs = f"{seconds}.{micros:06d}".rstrip("0") if micros else str(seconds)
    if hours:
        return f"{sign}{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{sign}{minutes}m{secs}s"
    return f"{sign}{secs}s"


def stringify_dt(data: dt.datetime | dt.timedelta) -> str:
    """Convert datetime or timedelta to string with appropriate formatting."""
    if isinstance(data, dt.datetime):
        return stringify_datetime(data)
    if isinstance(data, dt.timedelta):
        return stringify_duration(data)
    raise TypeError(f"Unsupported type for stringify_dt: {type(data)}")


def yaml_dump_cozy(data, stream=None, **kwargs) -> str:
    """Dump data to YAML with custom datetime formatting.

    This function is a wrapper around yaml.dump() that formats:
    - datetime.datetime --> ISO format with space separator: '2014-05-02 17:31:02Z'
    - datetime.timedelta --> signed duration: '3h1m2s'
    - tuple --> list
    - Munch --> regular dict

    Example:
        >>> import datetime as dt
        >>> print(yaml_dump_cozy({"delta": dt.timedelta(hours=3, seconds=62)}).strip())
        delta: 3h1m2s
    """

    class DateTimeDumper(yaml.SafeDumper):
        """Custom YAML dumper with datetime formatting."""

    def _represent_dt(dumper, data):
        return dumper.represent_scalar("tag:yaml.org,2002:str", stringify_dt(data))

    def _represent_munch(dumper, data):
        return dumper.represent_dict(dict(data))

    def _represent_tuple(dumper, data):
        return dumper.represent_list(list(data))

    DateTimeDumper.add_representer(dt.datetime, _represent_dt)
    DateTimeDumper.add_representer(dt.timedelta, _represent_dt)
    DateTimeDumper.add_representer(Munch, _represent_munch)
    DateTimeDumper.add_representer(tuple, _represent_tuple)

    return yaml.dump(data, stream, Dumper=DateTimeDumper, **kwargs)


def yaml_safe_load_file(fname: str, default: t.Any = NotSpecified) -> t.Any:
    """Load YAML content from a file safely.

    A missing file yields ``default`` when one is given.
    """
    if default is not NotSpecified and not os.path.exists(fname):
        return default
    try:
        with open(fname, "r", encoding="utf-8") as fh:
            return yaml.safe_load(fh)
    except Exception as e:
        raise RuntimeError(f"Failed to load YAML file '{fname}': {e}") from e

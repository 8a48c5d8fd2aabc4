"""Field accessor over ExifTool metadata.

Wraps the flat ``{"GROUP:Tag": value}`` dict produced by ``exiftool -j -G -n``
and exposes the typed reads the reconciliation needs: strings, rational
components, raw bytes, the camera's own (naive) capture time and the GPS
coordinate pair.
"""

import datetime as dt
import enum
import logging
import math
import re
import typing as t
from fractions import Fraction

from munch import Munch

from camclock.metadata.errors import (
    InvalidRationalError,
    MalformedDateTimeError,
    MissingFieldError,
    NoGpsError,
    UnsupportedFormatError,
)

log = logging.getLogger(__name__)

TAGS = Munch(
    model="EXIF:Model",
    date_time_original="EXIF:DateTimeOriginal",
    date_time="EXIF:ModifyDate",  # ExifTool's name for the EXIF DateTime tag (0x0132)
    offset_time_original="EXIF:OffsetTimeOriginal",
    offset_time="EXIF:OffsetTime",
    gps_date="EXIF:GPSDateStamp",
    gps_time="EXIF:GPSTimeStamp",
    gps_latitude="EXIF:GPSLatitude",
    gps_latitude_ref="EXIF:GPSLatitudeRef",
    gps_longitude="EXIF:GPSLongitude",
    gps_longitude_ref="EXIF:GPSLongitudeRef",
    composite_latitude="Composite:GPSLatitude",
    composite_longitude="Composite:GPSLongitude",
    composite_position="Composite:GPSPosition",
    error="ExifTool:Error",
    warning="ExifTool:Warning",
)

# capture time tag -> tag holding its UTC offset; order is preference
DATE_TIME_TAGS = {
    TAGS.date_time_original: TAGS.offset_time_original,
    TAGS.date_time: TAGS.offset_time,
}

EXIF_DATETIME_LAYOUT = "%Y:%m:%d %H:%M:%S"
# whitespace and NUL padding camera firmware leaves around ASCII values
EXIF_PADDING = " \t\r\n\x00"
SUBSEC_SUFFIX_RE = re.compile(r"[.][0-9]*$")

# patterns ending with 0 mean no ^ and $ anchors, can be used in larger patterns
EXIF_D0 = r"(?P<year>[0-9]{4}):(?P<month>[0-9]{2}):(?P<day>[0-9]{2})"
EXIF_T0 = r"(?P<hour>[0-9]{2}):(?P<minute>[0-9]{2}):(?P<second>[0-9]{2})"
EXIF_OPT_F0 = r"(?:[.](?P<subsec>[0-9]*))?"
EXIF_TZ0 = r"(?P<offset>[+-][0-9]{2}:?[0-9]{2}|Z)"
EXIF_DT_OPT_F_OPT_TZ = re.compile(rf"^{EXIF_D0} {EXIF_T0}{EXIF_OPT_F0}{EXIF_TZ0}?$")
OFFSET_RE = re.compile(r"^(?P<sign>[+-])(?P<hh>[0-9]{2}):?(?P<mm>[0-9]{2})$")
RATIONAL_RE = re.compile(r"^(?P<num>[+-]?[0-9]+)/(?P<den>[+-]?[0-9]+)$")

# how ExifTool renders rationals with a zero denominator
ZERO_DENOMINATOR_WORDS = {"inf": (1, 0), "+inf": (1, 0), "-inf": (-1, 0), "undef": (0, 0)}


class FieldFormat(enum.Enum):
    STRING = "string"
    OTHER = "other"


def _rational(token: t.Any) -> tuple[int, int]:
    """Read one rational component as (numerator, denominator)."""
    if isinstance(token, (list, tuple)) and len(token) == 2:
        num, den = token
        if isinstance(num, int) and isinstance(den, int) and not isinstance(num, bool):
            return num, den
        raise InvalidRationalError(f"Not an integer pair: {token!r}")
    if isinstance(token, bool):
        raise InvalidRationalError(f"Not a rational: {token!r}")
    if isinstance(token, int):
        return token, 1
    text = str(token).strip().lower()
    if text in ZERO_DENOMINATOR_WORDS:
        return ZERO_DENOMINATOR_WORDS[text]
    if match := RATIONAL_RE.match(text):
        return int(match["num"]), int(match["den"])
    try:
        frac = Fraction(text)
    except (ValueError, ZeroDivisionError) as e:
        raise InvalidRationalError(f"Not a rational: {token!r}") from e
    return frac.numerator, frac.denominator


def rational_components(value: t.Any) -> list[tuple[int, int]]:
    """Split a multi-component rational value into (numerator, denominator) pairs.

    Accepts ExifTool's numeric rendering (``"14:30:00"``, ``"14 30 0.5"``),
    explicit ``"n/d"`` tokens, or a sequence of numbers or ``(n, d)`` pairs.
    """
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="replace")
    if isinstance(value, str):
        tokens = [tok for tok in re.split(r"[\s:,]+", value.strip().rstrip("\x00")) if tok]
    elif isinstance(value, (list, tuple)):
        tokens = list(value)
    else:
        tokens = [value]
    return [_rational(token) for token in tokens]


class Field:
    """One named metadata value."""

    def __init__(self, name: str, value: t.Any):
        self.name = name
        self.value = value

    def __repr__(self):
        return f"Field({self.name!r}, {self.value!r})"

    @property
    def format(self) -> FieldFormat:
        return FieldFormat.STRING if isinstance(self.value, (str, bytes)) else FieldFormat.OTHER

    def string_val(self) -> str:
        if self.format is not FieldFormat.STRING:
            raise UnsupportedFormatError(f"{self.name} is not a string: {self.value!r}")
        if isinstance(self.value, bytes):
            return self.value.decode("utf-8", errors="replace")
        return self.value

    def rat2(self, index: int) -> tuple[int, int]:
        components = rational_components(self.value)
        if not 0 <= index < len(components):
            raise InvalidRationalError(f"{self.name} has no rational component #{index}: {self.value!r}")
        return components[index]

    def raw_bytes(self) -> bytes:
        if isinstance(self.value, bytes):
            return self.value
        return str(self.value).encode("utf-8")


def _parse_offset(offset_str: str) -> dt.timezone:
    """Parse offset string like '+01:00', '-0530' or 'Z' to a fixed timezone."""
    offset_str = offset_str.strip()
    if offset_str == "Z":
        return dt.timezone.utc
    if match := OFFSET_RE.match(offset_str):
        sign = 1 if match["sign"] == "+" else -1
        return dt.timezone(sign * dt.timedelta(hours=int(match["hh"]), minutes=int(match["mm"])))
    raise MalformedDateTimeError(f"Invalid offset format: {offset_str!r}")


def is_naive(value: dt.datetime) -> bool:
    """True if the datetime carries no UTC offset (local time, zone unknown)."""
    return value.tzinfo is None or value.utcoffset() is None


class ExifFields:
    """Typed access to one file's decoded metadata."""

    def __init__(self, metadata: t.Mapping[str, t.Any]):
        self.metadata = metadata

    def __contains__(self, name: str) -> bool:
        return self.metadata.get(name) is not None

    def get(self, name: str) -> Field:
        if (value := self.metadata.get(name)) is None:
            raise MissingFieldError(f"Missing {name}")
        return Field(name, value)

    def text(self, name: str, default: str = "") -> str:
        """Return the field as trimmed text, or default if absent."""
        try:
            field = self.get(name)
        except MissingFieldError:
            return default
        return field.raw_bytes().decode("utf-8", errors="replace").strip(EXIF_PADDING)

    def date_time_field(self) -> Field:
        """Return the original capture time field, falling back to the generic DateTime."""
        for tag in DATE_TIME_TAGS:
            if tag in self:
                return self.get(tag)
        raise MissingFieldError(f"Missing capture date/time ({', '.join(DATE_TIME_TAGS)})")

    def date_time(self) -> dt.datetime:
        """Parse the camera's capture time as recorded, without any zone reinterpretation.

        The result is naive unless the file itself records a UTC offset, either
        inline or in the matching OffsetTime* tag.
        """
        field = self.date_time_field()
        dt_str = field.string_val().strip(EXIF_PADDING)
        match = EXIF_DT_OPT_F_OPT_TZ.match(dt_str)
        if not match:
            raise MalformedDateTimeError(f"{field.name} {dt_str!r} does not match {EXIF_DT_OPT_F_OPT_TZ.pattern!r}")
        groupdict = match.groupdict()
        offset = groupdict.pop("offset")
        groupdict.pop("subsec")
        try:
            value = dt.datetime(**{k: int(v) for k, v in groupdict.items()})
        except ValueError as e:
            raise MalformedDateTimeError(f"{field.name} {dt_str!r}: {e}") from e
        if offset is None and (offset_tag := DATE_TIME_TAGS[field.name]) in self:
            offset = self.text(offset_tag)
        if offset:
            try:
                value = value.replace(tzinfo=_parse_offset(offset))
            except MalformedDateTimeError as e:
                log.debug("ignoring offset of %s: %s", field.name, e)
        return value

    def lat_long(self) -> tuple[float, float]:
        """Return signed (latitude, longitude).

        Looks for Composite keys first, then raw EXIF GPS tags with their N/S and E/W references.
        """
        lat = lon = None
        if TAGS.composite_latitude in self and TAGS.composite_longitude in self:
            lat, lon = self.metadata[TAGS.composite_latitude], self.metadata[TAGS.composite_longitude]
        elif TAGS.composite_position in self:
            parts = re.split(r"[\s,;]+", str(self.metadata[TAGS.composite_position]).strip())
            if len(parts) == 2:
                lat, lon = parts
        elif TAGS.gps_latitude in self and TAGS.gps_longitude in self:
            lat, lon = self.metadata[TAGS.gps_latitude], self.metadata[TAGS.gps_longitude]
            try:
                lat, lon = abs(float(lat)), abs(float(lon))
            except (TypeError, ValueError) as e:
                raise NoGpsError(f"Unreadable GPS coordinates: {lat!r}, {lon!r}") from e
            if self.text(TAGS.gps_latitude_ref).upper().startswith("S"):
                lat = -lat
            if self.text(TAGS.gps_longitude_ref).upper().startswith("W"):
                lon = -lon
        if lat is None or lon is None:
            raise NoGpsError("No GPS coordinates in metadata (latitude/longitude missing)")
        try:
            lat, lon = float(lat), float(lon)
        except (TypeError, ValueError) as e:
            raise NoGpsError(f"Unreadable GPS coordinates: {lat!r}, {lon!r}") from e
        if not (math.isfinite(lat) and math.isfinite(lon) and abs(lat) <= 90 and abs(lon) <= 180):
            raise NoGpsError(f"GPS coordinates out of range: {lat}, {lon}")
        return lat, lon

"""Reconcile a camera's local clock against the GPS UTC time recorded in the same file.

The camera writes its wall-clock time (``DateTimeOriginal``) without saying
which zone it was set to; the GPS receiver writes UTC (``GPSDateStamp`` +
``GPSTimeStamp``, always UTC per EXIF 2.3). When the file also has a position,
the zone at that position tells what the local time should mean, and the
difference between that corrected time and the GPS time shows how far off the
camera clock was.
"""

import dataclasses
import datetime as dt
import enum
import logging
import typing as t
from zoneinfo import ZoneInfo

from camclock.metadata import et
from camclock.metadata.errors import (
    InvalidRationalError,
    MalformedDateError,
    MalformedDateTimeError,
    MetadataError,
    NoTimeAvailableError,
    UnsupportedFormatError,
)
from camclock.metadata.fields import (
    EXIF_DATETIME_LAYOUT,
    EXIF_PADDING,
    SUBSEC_SUFFIX_RE,
    TAGS,
    ExifFields,
    FieldFormat,
    is_naive,
)
from camclock.metadata.zones import resolve_zone
from camclock.utils.trace_utils import str_exc
from camclock.utils.yaml_utils import stringify_datetime, stringify_duration

log = logging.getLogger(__name__)

EXIF_DATE_LAYOUT = "%Y:%m:%d"
GPS_TIME_UNITS = (dt.timedelta(hours=1), dt.timedelta(minutes=1), dt.timedelta(seconds=1))

ZoneNameLookup = t.Callable[[float, float], str]
# an unusable zone oracle (no polygon data, broken pickle) degrades to a note
LOOKUP_ERRORS = (MetadataError, RuntimeError, OSError, ValueError)


@dataclasses.dataclass(frozen=True)
class ReconciliationResult:
    model: str = ""
    local_time: dt.datetime | None = None
    corrected_time: dt.datetime | None = None  # implies local_time
    gps_time: dt.datetime | None = None
    has_gps_location: bool = False
    notes: tuple[str, ...] = ()

    def delta(self) -> dt.timedelta | None:
        """corrected_time - gps_time, if both are known."""
        if self.corrected_time is None or self.gps_time is None:
            return None
        return self.corrected_time - self.gps_time


class Verdict(enum.Enum):
    ALL_TIMES_MISSING = "all times missing"
    ONLY_GPS_TIME = "only GPS time available"
    CORRECTION_FAILED = "lat/long correction failed"
    NO_GPS_LOCATION = "no GPS location"
    RECONCILED = "reconciled"
    NO_GPS_TIME = "GPS time unavailable"


def rational_to_duration(numerator: int, denominator: int, unit: dt.timedelta) -> dt.timedelta:
    """Return numerator * unit / denominator, computed exactly on integer microseconds."""
    if denominator == 0:
        raise InvalidRationalError(f"zero denominator: {numerator}/{denominator}")
    try:
        return unit * numerator / denominator
    except OverflowError as e:
        raise InvalidRationalError(f"out of range: {numerator}/{denominator} x {unit}") from e


def gps_date_time(fields: ExifFields) -> dt.datetime:
    """Assemble the UTC instant from GPSDateStamp and the hour/minute/second rationals of GPSTimeStamp."""
    date_field = fields.get(TAGS.gps_date)
    time_field = fields.get(TAGS.gps_time)

    date_str = date_field.string_val().strip(EXIF_PADDING)
    try:
        date = dt.datetime.strptime(date_str, EXIF_DATE_LAYOUT).replace(tzinfo=dt.timezone.utc)
    except ValueError as e:
        raise MalformedDateError(f"{date_field.name} {date_str!r} does not match {EXIF_DATE_LAYOUT!r}") from e

    offset = dt.timedelta()
    for i, unit in enumerate(GPS_TIME_UNITS):
        num, den = time_field.rat2(i)
        try:
            offset += rational_to_duration(num, den, unit)
        except InvalidRationalError as e:
            raise InvalidRationalError(f"{time_field.name} component #{i}: {e}") from e
    return date + offset


def date_time_in_zone(fields: ExifFields, zone: dt.tzinfo) -> dt.datetime:
    """Read the capture time as wall-clock time in zone.

    Padding and a fractional-second suffix are dropped the same way date_time()
    drops them. Ambiguous and skipped wall times resolve with fold=0.
    """
    field = fields.date_time_field()
    if field.format is not FieldFormat.STRING:
        raise UnsupportedFormatError(f"{field.name} not in string format: {field.value!r}")
    dt_str = SUBSEC_SUFFIX_RE.sub("", field.string_val().strip(EXIF_PADDING))
    try:
        naive = dt.datetime.strptime(dt_str, EXIF_DATETIME_LAYOUT)
    except ValueError as e:
        raise MalformedDateTimeError(f"{field.name} {dt_str!r} does not match {EXIF_DATETIME_LAYOUT!r}") from e
    return naive.replace(tzinfo=zone)


class _Notes:
    """Runs best-effort steps, keeping the failure text instead of raising."""

    def __init__(self, label: str):
        self.label = label
        self.items: list[str] = []

    def attempt(
        self,
        what: str,
        func: t.Callable[..., t.Any],
        *args,
        errors: tuple[type[Exception], ...] = (MetadataError,),
    ) -> t.Any | None:
        try:
            return func(*args)
        except errors as e:
            self.add(f"{what}: {str_exc(e)}")
            return None

    def add(self, note: str) -> None:
        log.debug("%s: %s", self.label, note)
        self.items.append(note)


def _default_lookup(lat: float, lon: float) -> str:
    from camclock.geo import lookup_zone_name  # pylint: disable=import-outside-toplevel

    return lookup_zone_name(lat, lon)


def reconcile(
    metadata: t.Mapping[str, t.Any],
    /,
    lookup_zone_name: ZoneNameLookup | None = None,
    label: str = "",
) -> ReconciliationResult:
    """Build the ReconciliationResult for one file's decoded metadata.

    Args:
        metadata: ExifTool metadata (``-G -n`` keys) that passed the decode check.
        lookup_zone_name: Coordinate to IANA zone name oracle, "" when unknown.
            Defaults to the polygon lookup in camclock.geo.
        label: Name used in log messages, usually the file name.

    Raises:
        NoTimeAvailableError: Neither the local capture time nor the GPS time could be read.
    """
    lookup_zone_name = lookup_zone_name or _default_lookup
    fields = ExifFields(metadata)
    notes = _Notes(label or "metadata")

    model = fields.text(TAGS.model)
    gps_time = notes.attempt("GPS time", gps_date_time, fields)

    try:
        local_time = fields.date_time()
    except MetadataError as e:
        if gps_time is None:
            raise NoTimeAvailableError(f"{label + ': ' if label else ''}{str_exc(e)}; no GPS time either") from e
        notes.add(f"local time: {str_exc(e)}")
        return ReconciliationResult(model=model, gps_time=gps_time, notes=tuple(notes.items))

    corrected_time = None
    has_gps_location = False
    if is_naive(local_time):
        if (lat_long := notes.attempt("location", fields.lat_long)) is not None:
            has_gps_location = True
            zone_name = notes.attempt("zone lookup", lookup_zone_name, *lat_long, errors=LOOKUP_ERRORS)
            if zone_name is not None:
                zone: ZoneInfo | None = resolve_zone(zone_name)
                if zone is None:
                    notes.add(f"no timezone for {lat_long} (zone name {zone_name!r})")
                else:
                    corrected_time = notes.attempt("correction", date_time_in_zone, fields, zone)
    else:
        notes.add(f"local time {local_time.isoformat()} carries its own offset, not corrected")

    return ReconciliationResult(
        model=model,
        local_time=local_time,
        corrected_time=corrected_time,
        gps_time=gps_time,
        has_gps_location=has_gps_location,
        notes=tuple(notes.items),
    )


def find_exif_times(fname: str, /, lookup_zone_name: ZoneNameLookup | None = None) -> ReconciliationResult:
    """Decode fname with ExifTool and reconcile its times.

    Raises:
        DecodeFailedError: ExifTool could not read the file.
        NoTimeAvailableError: The file has no usable time at all.
        ExifToolStartError: The exiftool process could not be started.
    """
    return reconcile(et.get_metadata(fname), lookup_zone_name=lookup_zone_name, label=fname)


def classify(result: ReconciliationResult) -> Verdict:
    has_local = result.local_time is not None
    has_corrected = result.corrected_time is not None
    has_gps = result.gps_time is not None
    if not has_local and not has_gps:
        return Verdict.ALL_TIMES_MISSING
    if not has_local:
        return Verdict.ONLY_GPS_TIME
    if not has_corrected and has_gps:
        return Verdict.CORRECTION_FAILED if result.has_gps_location else Verdict.NO_GPS_LOCATION
    if has_corrected and has_gps:
        return Verdict.RECONCILED
    return Verdict.NO_GPS_TIME


def describe(result: ReconciliationResult) -> str:
    """One-line summary; lines for anything short of a full reconciliation start with '!'."""
    verdict = classify(result)
    model = result.model
    if verdict is Verdict.ALL_TIMES_MISSING:
        return f"! {verdict.value}"
    if verdict is Verdict.ONLY_GPS_TIME:
        return f"! {model} only GPSDateTime={stringify_datetime(result.gps_time)}"
    if verdict in (Verdict.CORRECTION_FAILED, Verdict.NO_GPS_LOCATION):
        return f"! {model} {verdict.value} GPSDateTime={stringify_datetime(result.gps_time)}"
    if verdict is Verdict.RECONCILED:
        return (
            f"{model} Delta={stringify_duration(result.delta())}, GPSDateTime={stringify_datetime(result.gps_time)}"
        )
    return f"! {model} {verdict.value} DateTime={stringify_datetime(result.local_time)}"


def as_dict(result: ReconciliationResult) -> dict[str, t.Any]:
    """Plain dict view for YAML output."""
    ret = {"verdict": classify(result).name} | dataclasses.asdict(result)
    if (delta := result.delta()) is not None:
        ret["delta"] = delta
    ret["notes"] = list(result.notes)
    return ret

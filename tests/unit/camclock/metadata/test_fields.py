"""Tests for the ExifTool metadata field accessor."""

import datetime as dt

import pytest

from camclock.metadata.errors import (
    InvalidRationalError,
    MalformedDateTimeError,
    MissingFieldError,
    NoGpsError,
    UnsupportedFormatError,
)
from camclock.metadata.fields import ExifFields, Field, FieldFormat, is_naive, rational_components

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "value,expected",
    [
        ("14:30:00", [(14, 1), (30, 1), (0, 1)]),
        ("14 30 12.5", [(14, 1), (30, 1), (25, 2)]),
        ("14/1 30/1 1234/100", [(14, 1), (30, 1), (1234, 100)]),
        ([14, 30, 0], [(14, 1), (30, 1), (0, 1)]),
        (((14, 1), (30, 1), (5, 10)), [(14, 1), (30, 1), (5, 10)]),
        (b"7/2\x00", [(7, 2)]),
        (42, [(42, 1)]),
    ],
)
def test_rational_components(value, expected):
    assert rational_components(value) == expected


def test_rational_components_zero_denominator_words():
    assert rational_components("14 inf undef") == [(14, 1), (1, 0), (0, 0)]


@pytest.mark.parametrize("value", ["14 abc 0", [14, None, 0], [(1.5, 2)], [True]])
def test_rational_components_invalid(value):
    with pytest.raises(InvalidRationalError):
        rational_components(value)


def test_field_rat2_out_of_range():
    with pytest.raises(InvalidRationalError):
        Field("EXIF:GPSTimeStamp", "14:30").rat2(2)


def test_field_formats():
    assert Field("EXIF:Model", "Acme X1").format is FieldFormat.STRING
    assert Field("EXIF:Model", b"Acme X1").format is FieldFormat.STRING
    assert Field("EXIF:ISO", 200).format is FieldFormat.OTHER


def test_field_string_val():
    assert Field("EXIF:Model", b"Acme X1").string_val() == "Acme X1"
    with pytest.raises(UnsupportedFormatError):
        Field("EXIF:ISO", 200).string_val()


def test_field_raw_bytes():
    assert Field("EXIF:Model", "Acme X1").raw_bytes() == b"Acme X1"
    assert Field("EXIF:ISO", 200).raw_bytes() == b"200"
    assert Field("EXIF:Model", b"X\x00").raw_bytes() == b"X\x00"


def test_get_missing_and_none():
    fields = ExifFields({"EXIF:Model": None})
    with pytest.raises(MissingFieldError):
        fields.get("EXIF:Model")
    with pytest.raises(MissingFieldError):
        fields.get("EXIF:Make")


def test_text_trims_and_defaults():
    fields = ExifFields({"EXIF:Model": "Acme X1\x00\x00 ", "EXIF:ISO": 200})
    assert fields.text("EXIF:Model") == "Acme X1"
    assert fields.text("EXIF:ISO") == "200"
    assert fields.text("EXIF:Make") == ""


# date_time


def test_date_time_naive():
    value = ExifFields({"EXIF:DateTimeOriginal": "2014:05:02 09:31:02"}).date_time()
    assert value == dt.datetime(2014, 5, 2, 9, 31, 2)
    assert is_naive(value)


def test_date_time_ignores_subseconds():
    value = ExifFields({"EXIF:DateTimeOriginal": "2014:05:02 09:31:02.123"}).date_time()
    assert value == dt.datetime(2014, 5, 2, 9, 31, 2)


def test_date_time_offset_tag_makes_it_aware():
    fields = ExifFields({"EXIF:DateTimeOriginal": "2014:05:02 09:31:02", "EXIF:OffsetTimeOriginal": "+02:00"})
    value = fields.date_time()
    assert not is_naive(value)
    assert value.utcoffset() == dt.timedelta(hours=2)


def test_date_time_inline_offset():
    value = ExifFields({"EXIF:DateTimeOriginal": "2014:05:02 09:31:02Z"}).date_time()
    assert value == dt.datetime(2014, 5, 2, 9, 31, 2, tzinfo=dt.timezone.utc)


def test_date_time_fallback_uses_its_own_offset_tag():
    fields = ExifFields(
        {
            "EXIF:ModifyDate": "2014:05:02 09:31:02",
            "EXIF:OffsetTime": "-0530",
            "EXIF:OffsetTimeOriginal": "+09:00",
        }
    )
    assert fields.date_time().utcoffset() == -dt.timedelta(hours=5, minutes=30)


def test_date_time_bad_offset_tag_is_ignored():
    fields = ExifFields({"EXIF:DateTimeOriginal": "2014:05:02 09:31:02", "EXIF:OffsetTimeOriginal": "local"})
    assert is_naive(fields.date_time())


def test_date_time_prefers_original_even_if_broken():
    fields = ExifFields({"EXIF:DateTimeOriginal": "garbage", "EXIF:ModifyDate": "2014:05:02 09:31:02"})
    with pytest.raises(MalformedDateTimeError):
        fields.date_time()


@pytest.mark.parametrize("value", ["2014:13:02 09:31:02", "2014-05-02T09:31:02", "    :  :     :  :  "])
def test_date_time_malformed(value):
    with pytest.raises(MalformedDateTimeError):
        ExifFields({"EXIF:DateTimeOriginal": value}).date_time()


def test_date_time_missing():
    with pytest.raises(MissingFieldError):
        ExifFields({"EXIF:GPSDateStamp": "2014:05:02"}).date_time()


# lat_long


def test_lat_long_composite():
    fields = ExifFields({"Composite:GPSLatitude": 40.7128, "Composite:GPSLongitude": -74.006})
    assert fields.lat_long() == (40.7128, -74.006)


def test_lat_long_exif_with_refs():
    fields = ExifFields(
        {
            "EXIF:GPSLatitude": 33.8688,
            "EXIF:GPSLatitudeRef": "S",
            "EXIF:GPSLongitude": 151.2093,
            "EXIF:GPSLongitudeRef": "E",
        }
    )
    assert fields.lat_long() == (-33.8688, 151.2093)


def test_lat_long_position_string():
    assert ExifFields({"Composite:GPSPosition": "40.7128 -74.006"}).lat_long() == (40.7128, -74.006)


@pytest.mark.parametrize(
    "md",
    [
        {},
        {"Composite:GPSLatitude": 40.7128},
        {"Composite:GPSLatitude": "north", "Composite:GPSLongitude": -74.006},
        {"Composite:GPSLatitude": 140.0, "Composite:GPSLongitude": -74.006},
        {"Composite:GPSPosition": "40.7128"},
    ],
)
def test_lat_long_missing_or_invalid(md):
    with pytest.raises(NoGpsError):
        ExifFields(md).lat_long()

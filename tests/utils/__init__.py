"""Common utilities for tests."""

NEW_YORK = (40.7128, -74.0060)  # America/New_York

GPS_FIELDS = {
    "EXIF:GPSDateStamp": "2014:05:02",
    "EXIF:GPSTimeStamp": "14:30:00",
}


def scenario_metadata(local: str | None = "2014:05:02 13:31:02", gps: bool = True, location: bool = True) -> dict:
    """ExifTool (-G -n) style metadata of an 'Acme X1' shot in New York on 2014-05-02."""
    md = {"SourceFile": "shot.jpg", "EXIF:Model": "Acme X1"}
    if local is not None:
        md["EXIF:DateTimeOriginal"] = local
    if gps:
        md.update(GPS_FIELDS)
    if location:
        md["Composite:GPSLatitude"], md["Composite:GPSLongitude"] = NEW_YORK
    return md


class FakeZoneLookup:
    """Coordinate to zone name oracle that records its calls."""

    def __init__(self, zone_name: str = "America/New_York"):
        self.zone_name = zone_name
        self.calls = []

    def __call__(self, lat: float, lon: float) -> str:
        self.calls.append((lat, lon))
        return self.zone_name

"""Coordinate to IANA zone name lookup on timezone-boundary-builder polygons.

Polygons come from the ``input-data.zip`` release asset of
timezone-boundary-builder, are pickled once into ``tz_index.pkl`` under the
configured data directory and indexed with an rtree for point queries.
"""

import io
import json
import logging
import os
import pickle
import re
import threading
import typing as t
import urllib.request
import zipfile
from functools import lru_cache
from pathlib import Path
from urllib.error import HTTPError, URLError

from munch import Munch
from rtree import index
from shapely.errors import GEOSException
from shapely.geometry import Point, shape
from shapely.geometry.base import BaseGeometry
from shapely.prepared import PreparedGeometry, prep

from camclock.config import get_config
from camclock.utils.fs_utils import project_root
from camclock.utils.trace_utils import str_exc

log = logging.getLogger(__name__)

RELEASES_URL = "https://github.com/evansiroky/timezone-boundary-builder/releases"
USER_AGENT = "camclock-tz4d/1.0"
SOURCE_JSONS = ("expectedZoneOverlaps.json", "osmBoundarySources.json", "timezones.json")
INDEX_VERSION = 1

_index_lock = threading.Lock()
_index_failure: str | None = None


class TzIndex(t.NamedTuple):
    rtree: index.Index
    prepared: list[PreparedGeometry]
    tz_names: list[str]
    geoms: list[BaseGeometry]


def tz_data_dir() -> Path:
    """Directory holding timezones.json, geojson/ and tz_index.pkl."""
    path = Path(get_config("geo.tz_data_dir", "data/tz"))
    return path if path.is_absolute() else Path(project_root(path))


def _source_paths(data_dir: Path) -> Munch:
    return Munch(
        geojson_dir=data_dir / "geojson",
        timezones_json=data_dir / "timezones.json",
        index_pkl=data_dir / "tz_index.pkl",
        url_file=data_dir / "tz.url",
    )


def _index_is_stale(paths: Munch) -> bool:
    """True if the pickle is missing or older than timezones.json or any GeoJSON file."""
    if not paths.index_pkl.exists():
        return True
    built = paths.index_pkl.stat().st_mtime
    sources = [paths.timezones_json, *paths.geojson_dir.glob("*-tz.json")]
    return any(src.stat().st_mtime > built for src in sources if src.exists())


def _geojson_ids(timezones_json: Path) -> dict[str, str]:
    """Map GeoJSON file ids (e.g. 'Europe-Budapest-tz') to IANA zone names."""
    ret = {}
    for tz_name, entries in json.loads(timezones_json.read_text(encoding="utf-8")).items():
        for entry in entries:
            if geo_id := entry.get("id"):
                ret[geo_id] = tz_name
    return ret


def _missing_geojson_ids(paths: Munch) -> list[str]:
    return sorted(
        geo_id for geo_id in _geojson_ids(paths.timezones_json) if not (paths.geojson_dir / f"{geo_id}.json").exists()
    )


def build_index_pickle(data_dir: Path) -> int:
    """Read every zone polygon and pickle names, geometries and bounds. Returns the polygon count."""
    paths = _source_paths(data_dir)
    id_to_tz = _geojson_ids(paths.timezones_json)
    tz_names, geoms = [], []
    for geojson_file in sorted(paths.geojson_dir.glob("*-tz.json")):
        if tz_name := id_to_tz.get(geojson_file.stem):
            tz_names.append(tz_name)
            geoms.append(shape(json.loads(geojson_file.read_text(encoding="utf-8"))))
    payload = {"version": INDEX_VERSION, "tz_names": tz_names, "geoms": geoms, "bounds": [g.bounds for g in geoms]}
    # readers never see a half-written pickle
    tmp_pkl = paths.index_pkl.with_name(f"{paths.index_pkl.name}.{os.getpid()}.tmp")
    with open(tmp_pkl, "wb") as fh:
        pickle.dump(payload, fh, protocol=pickle.HIGHEST_PROTOCOL)
    os.replace(tmp_pkl, paths.index_pkl)
    log.info("saved timezone index with %d polygons to %s", len(tz_names), paths.index_pkl)
    return len(tz_names)


def _latest_input_data_url() -> str:  # pragma: no cover
    """Find the newest 'input-data.zip' asset link on the releases page."""
    req = urllib.request.Request(RELEASES_URL, headers={"User-Agent": USER_AGENT})
    with urllib.request.urlopen(req, timeout=20) as resp:
        html = resp.read().decode("utf-8", errors="replace")
    match = re.search(
        r'href=["\'](?P<href>(?:https://github\.com)?'
        r'/evansiroky/timezone-boundary-builder/releases/download/[^/]+/input-data\.zip)["\']',
        html,
    )
    if not match:
        raise RuntimeError(f"Could not find input-data.zip link on {RELEASES_URL}")
    href = match["href"]
    return href if href.startswith("https://") else "https://github.com" + href


def _download_bytes(url: str) -> bytes:  # pragma: no cover
    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    with urllib.request.urlopen(req, timeout=120) as resp:
        return resp.read()


def _extract_input_data(blob: bytes, data_dir: Path) -> None:  # pragma: no cover
    """Unpack the three source JSONs into data_dir and every downloads/*.json into data_dir/geojson."""
    geojson_dir = data_dir / "geojson"
    with zipfile.ZipFile(io.BytesIO(blob)) as zf:
        names = zf.namelist()
        for target in SOURCE_JSONS:
            member = next((name for name in names if name.endswith(f"input-data/{target}")), None)
            if member is None:
                raise RuntimeError(f"Zip missing member: input-data/{target}")
            (data_dir / target).write_bytes(zf.read(member))
        downloads = [name for name in names if "/downloads/" in name and name.lower().endswith(".json")]
        if not downloads:
            raise RuntimeError("Zip missing downloads directory")
        for name in downloads:
            (geojson_dir / Path(name).name).write_bytes(zf.read(name))


def download_geojson() -> bool:  # pragma: no cover
    """Fetch timezone polygons when missing, incomplete or superseded by a newer release.

    Returns True if data was downloaded and the index rebuilt, False if already up to date.
    """
    data_dir = tz_data_dir()
    paths = _source_paths(data_dir)
    paths.geojson_dir.mkdir(parents=True, exist_ok=True)

    try:
        latest_url = _latest_input_data_url()
    except (URLError, HTTPError, RuntimeError, TimeoutError) as e:
        log.warning("could not fetch releases page: %s", e)
        latest_url = None

    reasons = [f"missing {name}" for name in SOURCE_JSONS if not (data_dir / name).exists()]
    if not reasons and (missing := _missing_geojson_ids(paths)):
        reasons.append(f"{len(missing)} GeoJSON files missing")
    stored_url = paths.url_file.read_text(encoding="utf-8").strip() if paths.url_file.exists() else None
    if latest_url is not None and stored_url != latest_url:
        reasons.append(f"new release {latest_url}")
    if not reasons:
        return False

    if latest_url is None:
        raise RuntimeError(f"Cannot update timezone data ({'; '.join(reasons)}): input-data.zip URL unavailable")
    log.info("downloading %s (%s)", latest_url, "; ".join(reasons))
    try:
        blob = _download_bytes(latest_url)
    except (URLError, HTTPError) as e:
        raise RuntimeError(f"Failed to download input-data.zip: {e}") from e
    _extract_input_data(blob, data_dir)
    paths.url_file.write_text(latest_url + "\n", encoding="utf-8")
    build_index_pickle(data_dir)
    return True


def index_from_geoms(tz_names: list[str], geoms: list[BaseGeometry]) -> TzIndex:
    idx = index.Index()
    for i, geom in enumerate(geoms):
        idx.insert(i, geom.bounds)
    return TzIndex(idx, [prep(geom) for geom in geoms], list(tz_names), list(geoms))


@lru_cache(maxsize=1)
def _load_tz_index() -> TzIndex:
    data_dir = tz_data_dir()
    paths = _source_paths(data_dir)
    if not paths.timezones_json.exists() or _missing_geojson_ids(paths):  # pragma: no cover
        download_geojson()
    if _index_is_stale(paths):  # pragma: no cover
        build_index_pickle(data_dir)
    try:
        with open(paths.index_pkl, "rb") as fh:
            payload = Munch(pickle.load(fh))
    except (OSError, pickle.UnpicklingError, EOFError) as e:  # pragma: no cover
        raise RuntimeError(f"Failed to load timezone index from {paths.index_pkl}: {e}") from e
    return index_from_geoms(payload.tz_names, payload.geoms)


def load_tz_index() -> TzIndex:
    """Load the polygon index once per process, bootstrapping data and pickle as needed.

    Worker threads share one bootstrap. A failed bootstrap is remembered: later
    calls raise at once instead of downloading again.
    """
    global _index_failure  # pylint: disable=global-statement
    with _index_lock:
        if _index_failure is not None:
            raise RuntimeError(_index_failure)
        try:
            return _load_tz_index()
        except (RuntimeError, OSError, ValueError, zipfile.BadZipFile) as e:
            _index_failure = f"timezone index unavailable: {str_exc(e)}"
            raise RuntimeError(_index_failure) from e


def tz_index_cache_clear() -> None:
    global _index_failure  # pylint: disable=global-statement
    with _index_lock:
        _load_tz_index.cache_clear()
        _index_failure = None


def _lon_delta_deg(a: float, b: float) -> float:
    """Minimal absolute longitude difference in degrees, across the antimeridian too."""
    d = abs(a - b) % 360.0
    return 360.0 - d if d > 180.0 else d


def tz_from_coords(lat: float, lon: float, tolerance_lon_delta_deg: float | None = None) -> str | None:
    """Return IANA timezone name for lat/lon, or None.

    Points outside every polygon (open sea) fall back to the nearest zone whose
    centroid longitude is within the tolerance, else to the absolute nearest.
    tolerance_lon_delta_deg=0 disables the fallback.
    """
    if tolerance_lon_delta_deg is None:
        tolerance_lon_delta_deg = float(get_config("geo.tolerance_lon_delta_deg", 7.5))
    tz_index = load_tz_index()

    pt = Point(lon, lat)  # GeoJSON order
    for i in tz_index.rtree.intersection((lon, lat, lon, lat)):
        if tz_index.prepared[i].contains(pt):
            return tz_index.tz_names[i]

    if not tolerance_lon_delta_deg:
        return None

    nearest = constrained = None
    for i, geom in enumerate(tz_index.geoms):
        dist = pt.distance(geom)
        if nearest is None or dist < nearest[0]:
            nearest = (dist, i)
        try:
            cen_lon = float(geom.centroid.x)
        except (ValueError, TypeError, AttributeError, GEOSException):  # pragma: no cover
            continue
        if _lon_delta_deg(lon, cen_lon) <= tolerance_lon_delta_deg and (constrained is None or dist < constrained[0]):
            constrained = (dist, i)

    pick = constrained or nearest
    return tz_index.tz_names[pick[1]] if pick else None


def lookup_zone_name(lat: float, lon: float) -> str:
    """Zone name for a coordinate, "" when unknown."""
    return tz_from_coords(lat, lon) or ""

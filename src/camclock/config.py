"""camclock settings: config.yaml at the project root, plus an optional personal override.

``CAMCLOCK_CONFIG`` replaces the base file, ``CAMCLOCK_CONFIG_OVERRIDE`` names
an override that must exist; without it ``~/.camclock_config_override.yaml``
is merged when present.
"""

import os
import typing as t
from functools import lru_cache
from pathlib import Path

from munch import Munch, munchify

from camclock.utils.data_utils import NotSpecified, get_multi, merge_struct
from camclock.utils.fs_utils import project_root
from camclock.utils.yaml_utils import yaml_safe_load_file

HOME_OVERRIDE_NAME = ".camclock_config_override.yaml"


def _config_layers() -> list[tuple[str, bool]]:
    """(path, must_exist) pairs, base first."""
    base = os.getenv("CAMCLOCK_CONFIG") or project_root("config.yaml")
    if override := os.getenv("CAMCLOCK_CONFIG_OVERRIDE"):
        return [(base, True), (override, True)]
    return [(base, True), (str(Path.home() / HOME_OVERRIDE_NAME), False)]


@lru_cache
def load_config() -> Munch:
    merged: dict[str, t.Any] = {}
    for path, must_exist in _config_layers():
        layer = yaml_safe_load_file(path, default=NotSpecified if must_exist else {}) or {}
        merged = merge_struct(merged, layer)
    return munchify(merged)


def get_config(datapath: str | None = None, default: t.Any | None = None) -> t.Any:
    """Whole config, or the value at a dotted path such as "geo.tz_data_dir"."""
    config = load_config()
    return get_multi(config, datapath, default) if datapath else config

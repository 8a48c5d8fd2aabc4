"""Helpers for the nested dicts that config files load into."""

import typing as t
from collections.abc import Iterable
from copy import deepcopy

from deepmerge import Merger

# nested dicts merge key by key; lists and scalars from the override replace the base value
_CONFIG_MERGER = Merger([(dict, ["merge"])], ["override"], ["override"])


class NotSpecified:  # pylint: disable=too-few-public-methods
    """Default marker for "no default given", so that None stays a usable default."""


def get_multi(data: t.Mapping, path: str | t.Sequence[str], default: t.Any = NotSpecified) -> t.Any:
    """Walk `path` ("scan.jobs" or ["scan", "jobs"]) down nested mappings.

    A missing key, or a step into something that is not a mapping, returns
    `default`; without a default it raises KeyError or TypeError naming the path.
    """
    keys = path.split(".") if isinstance(path, str) else list(path)
    node = data
    for depth, key in enumerate(keys):
        try:
            node = node[key]
        except (KeyError, TypeError) as e:
            if default is not NotSpecified:
                return default
            raise type(e)(f"{'.'.join(keys[: depth + 1])!r} not found: {e!r}") from e
    return node


def listify(data) -> list:
    """A config value that may be one item or several, as a list."""
    if isinstance(data, list):
        return data
    if isinstance(data, Iterable) and not isinstance(data, (str, bytes)):
        return list(data)
    return [data]


def merge_struct(base: dict, override: dict) -> dict:
    """Return `override` deep-merged onto a copy of `base`; neither input is modified."""
    return _CONFIG_MERGER.merge(deepcopy(base), override)

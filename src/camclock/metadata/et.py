"""ExifTool interface for reading metadata.

This module wraps PyExifTool so that every caller reads files with the same
arguments, and maps ExifTool's error reporting onto the decode severities the
reconciliation relies on: an ``ExifTool:Error`` entry or a failed execution is
critical, an ``ExifTool:Warning`` entry is recoverable.
"""

import logging
import typing as t
from contextlib import ExitStack, contextmanager
from functools import lru_cache

import exiftool
from exiftool.exceptions import (
    ExifToolException,
    ExifToolExecuteError,
    ExifToolJSONInvalidError,
    ExifToolOutputEmptyError,
)

from camclock.config import get_config
from camclock.metadata.errors import DecodeFailedError
from camclock.metadata.fields import TAGS
from camclock.utils.trace_utils import str_exc

log = logging.getLogger(__name__)


class ExifToolStartError(RuntimeError):
    """The exiftool executable is missing or its batch process did not come up."""


@lru_cache
def default() -> dict[str, t.Any]:
    """ExifToolHelper keyword arguments from the `exiftool` config section."""
    return {
        "executable": get_config("exiftool.executable", "exiftool"),
        "common_args": list(get_config("exiftool.common_args", ["-G", "-n"])),
    }


def helper(**kwargs) -> exiftool.ExifToolHelper:
    """An ExifToolHelper (not yet running) with the configured executable and -G -n args; kwargs win."""
    return exiftool.ExifToolHelper(**(default() | kwargs))


@contextmanager
def running_helper(**kwargs) -> t.Iterator[exiftool.ExifToolHelper]:
    """Run helper(**kwargs) for the duration of the block.

    Only failures to construct or start the process become ExifToolStartError;
    errors raised inside the block pass through unchanged.
    """
    with ExitStack() as stack:
        try:
            extl = stack.enter_context(helper(**kwargs))
        except (OSError, RuntimeError, ExifToolException) as e:
            raise ExifToolStartError(f"cannot start exiftool: {str_exc(e)}") from e
        yield extl


def check_decode(fname: str, metadata: dict[str, t.Any]) -> dict[str, t.Any]:
    """Raise DecodeFailedError on a critical decoder error; log and pass through warnings."""
    if error := metadata.get(TAGS.error):
        raise DecodeFailedError(f"{fname}: {error}")
    if warning := metadata.get(TAGS.warning):
        log.debug("%s: exiftool warning: %s", fname, warning)
    return metadata


def read_metadata(extl: exiftool.ExifToolHelper, fname: str) -> dict[str, t.Any]:
    """Read one file's metadata with an already running ExifTool."""
    try:
        metadata = extl.get_metadata(fname)[0]
    except ExifToolExecuteError as e:
        detail = (e.stderr or "").strip() or str(e)
        raise DecodeFailedError(f"{fname}: {detail}") from e
    except (ExifToolOutputEmptyError, ExifToolJSONInvalidError, IndexError) as e:
        raise DecodeFailedError(f"{fname}: no metadata returned ({e})") from e
    return check_decode(fname, metadata)


def get_metadata(fname: str, /) -> dict[str, t.Any]:
    """Get metadata for one file."""
    with running_helper() as extl:
        return read_metadata(extl, fname)


def get_metadata_multi(fnames: t.Iterable[str], /) -> dict[str, dict[str, t.Any] | DecodeFailedError]:
    """Get metadata for multiple files with a single ExifTool process.

    Files are read one by one so that a broken file only yields its own DecodeFailedError.
    """
    ret = {}
    with running_helper() as extl:
        for fname in fnames:
            try:
                ret[fname] = read_metadata(extl, fname)
            except DecodeFailedError as e:
                ret[fname] = e
    return ret

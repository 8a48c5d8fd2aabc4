"""Paths: the project root, and the image files under a scan root.

Root-relative paths use forward slashes on every platform.
"""

from __future__ import annotations

import os
import typing as t
from functools import lru_cache

if t.TYPE_CHECKING:
    from pathlib import Path

SLASH = "/"
SLASHB = "\\"


@lru_cache
def project_root(file: str | Path | None = None) -> str:
    """Absolute path of the repository root (where config.yaml lives), or of `file` under it."""
    # src/camclock/utils -> repository root
    root = os.path.join(os.path.dirname(__file__), os.pardir, os.pardir, os.pardir)
    return os.path.realpath(os.path.join(root, str(file)) if file else root).replace(SLASHB, SLASH)


def walk_files(root: str, extensions: t.Iterable[str] = ()) -> t.Iterator[tuple[str, str]]:
    """Yield (path, path relative to root) for every regular file under root, sorted.

    A root that is itself a file is yielded alone, relative to its directory.
    Extensions are compared case-insensitively; an empty filter accepts every file.
    """
    wanted = {ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in extensions}

    def accepted(fname: str) -> bool:
        return not wanted or os.path.splitext(fname)[1].lower() in wanted

    if os.path.isfile(root):
        if accepted(root):
            yield root, os.path.basename(root)
        return
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for fname in sorted(filenames):
            path = os.path.join(dirpath, fname)
            if accepted(fname) and os.path.isfile(path):
                yield path, os.path.relpath(path, root).replace(SLASHB, SLASH)

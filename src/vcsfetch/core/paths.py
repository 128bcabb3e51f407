"""Filesystem helpers for working copies."""

from __future__ import annotations

import os
from pathlib import Path, PurePath
from typing import Iterable, Optional, Union

PathLike = Union[str, os.PathLike]


def path_to_root(root: PathLike, location: PathLike) -> str:
    """
    Get the path of ``location`` relative to ``root`` with "/" separators.

    Both arguments are resolved to canonical absolute paths first, so a
    relative and an absolute spelling of the same locations give the same
    answer.

    Args:
        root: Root directory of a working copy.
        location: Any file or directory, usually below ``root``.

    Returns:
        The relative path, or "" if ``location`` is ``root`` itself.
    """
    root_path = Path(root).resolve()
    location_path = Path(location).resolve()
    relative = os.path.relpath(location_path, root_path)
    if relative == os.curdir:
        return ""
    return PurePath(relative).as_posix()


def find_marker_root(start: PathLike, markers: Iterable[str]) -> Optional[Path]:
    """
    Walk from ``start`` up to the filesystem root looking for a marker entry.

    Args:
        start: File or directory to start from.
        markers: Names (e.g. ".git") whose presence marks a working copy root.

    Returns:
        The closest ancestor (or ``start`` itself) containing a marker.
    """
    names = tuple(markers)
    current = Path(start).resolve()
    if not current.is_dir():
        current = current.parent
    for candidate in (current, *current.parents):
        if any((candidate / name).exists() for name in names):
            return candidate
    return None


def is_empty_dir(path: Path) -> bool:
    """True if ``path`` is a directory without any entries."""
    return path.is_dir() and next(path.iterdir(), None) is None

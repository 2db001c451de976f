"""Directory scanner — enumerate the two-level ``owner/repo`` namespace."""

from __future__ import annotations

import os
from pathlib import Path


class EnumerationError(OSError):
    """A root or an owner directory could not be listed."""


def _list_dirs(path: Path) -> list[str]:
    try:
        with os.scandir(path) as it:
            return [entry.name for entry in it if entry.is_dir()]
    except OSError as e:
        raise EnumerationError(f"Could not list {path}: {e}") from e


def scan_two_level(root: str | Path) -> set[str]:
    """Return every ``owner/repo`` such that ``root/owner/repo`` is a directory.

    Non-directory entries at either level are skipped. Listing failures at
    either level raise ``EnumerationError``; partial results are never
    returned.
    """
    root = Path(root)
    names = set()
    for owner in _list_dirs(root):
        for repo in _list_dirs(root / owner):
            names.add(f"{owner}/{repo}")
    return names


def scan_repositories(root: str | Path, suffix: str = ".git") -> set[str]:
    """Scan a source root, keeping only names with ``suffix`` and stripping it."""
    if not suffix:
        return scan_two_level(root)
    return {
        name[: -len(suffix)]
        for name in scan_two_level(root)
        if name.endswith(suffix) and len(name.rsplit("/", 1)[1]) > len(suffix)
    }

"""Utility functions for Satsuma.

Small helpers shared by the planner, renderer and committer.

Key functions:
    normalize_path: Absolute, lexically normalised path (no symlink resolution).
    is_path_inside: Containment check used to keep every output inside public/.
    content_hash: SHA-1 digest used to skip no-op writes.
    iter_files: Sorted recursive file listing.
    is_page_template / is_stylesheet / is_partial: Source classification.
"""

from __future__ import annotations

import hashlib
import os
from collections.abc import Iterable
from pathlib import Path

PAGE_EXTENSION = ".jinja"
STYLESHEET_EXTENSION = ".scss"
PARTIAL_PREFIX = "_"


def normalize_path(path: str | os.PathLike) -> Path:
    """Return an absolute, normalised version of ``path``.

    Unlike ``Path.resolve`` this never touches the filesystem, so it behaves the
    same for files that do not exist yet (outputs) or no longer exist (unlinks).
    """
    return Path(os.path.abspath(os.fspath(path)))


def is_path_inside(parent: str | os.PathLike, child: str | os.PathLike) -> bool:
    """Check whether ``child`` lies strictly inside ``parent``.

    Args:
        parent: Directory that must contain the child.
        child: Path to check.

    Returns:
        True when child is a descendant of parent. A path equal to parent is
        not inside it.
    """
    parent_path = normalize_path(parent)
    child_path = normalize_path(child)
    if child_path == parent_path:
        return False
    return parent_path in child_path.parents


def content_hash(data: bytes | str) -> str:
    """Return the hex SHA-1 digest of ``data`` (strings are UTF-8 encoded)."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha1(data).hexdigest()


def to_bytes(data: bytes | str) -> bytes:
    if isinstance(data, bytes):
        return data
    if isinstance(data, str):
        return data.encode("utf-8")
    raise TypeError(f"expected str or bytes, got {type(data).__name__}")


def iter_files(root: Path) -> list[Path]:
    """List every file below ``root``, sorted, as normalised absolute paths.

    A missing root yields an empty list.
    """
    if not root.is_dir():
        return []
    return sorted(normalize_path(p) for p in root.rglob("*") if p.is_file())


def is_page_template(path: Path) -> bool:
    """Check if a path has the page template extension (case-insensitive)."""
    return path.suffix.lower() == PAGE_EXTENSION


def is_stylesheet(path: Path) -> bool:
    """Check if a path is an SCSS file (entry or partial)."""
    return path.suffix.lower() == STYLESHEET_EXTENSION


def is_partial(path: Path) -> bool:
    """Check if a file is a partial (basename starts with an underscore)."""
    return path.name.startswith(PARTIAL_PREFIX)


def unique_paths(paths: Iterable[str | os.PathLike]) -> list[Path]:
    """Normalise and de-duplicate paths, keeping first-seen order."""
    seen: dict[Path, None] = {}
    for path in paths:
        seen.setdefault(normalize_path(path), None)
    return list(seen)

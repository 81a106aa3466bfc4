"""Reverse-lookup dependency graphs.

Both graphs keep two explicit maps of sets, forward and reverse, and are only
ever mutated by "clear the owner's edges, then record what the new render or
compile actually read". No edge outlives the run that stopped asserting it.

Key classes:
- DependencyGraph: page -> included files, templates and collection keys.
- ImportGraph: stylesheet entry -> every file its compilation imported.
"""

from __future__ import annotations

from collections.abc import Hashable
from pathlib import Path

from .logging import get_logger
from .utils import normalize_path

logger = get_logger(__name__)

DependencyKey = Hashable


def _link(forward: dict, reverse: dict, owner, dependency) -> None:
    forward.setdefault(owner, set()).add(dependency)
    reverse.setdefault(dependency, set()).add(owner)


def _unlink_owner(forward: dict, reverse: dict, owner) -> None:
    for dependency in forward.pop(owner, ()):
        dependents = reverse.get(dependency)
        if dependents is None:
            continue
        dependents.discard(owner)
        if not dependents:
            del reverse[dependency]


def _unlink_dependency(forward: dict, reverse: dict, dependency) -> None:
    for owner in reverse.pop(dependency, ()):
        dependencies = forward.get(owner)
        if dependencies is None:
            continue
        dependencies.discard(dependency)
        if not dependencies:
            del forward[owner]


class DependencyGraph:
    """Edges ``page -> dependency key`` with a reverse index.

    A dependency key is either the absolute path of a file the page read
    (an include or its template) or a collection key such as
    ``"collection:blog"``.
    """

    def __init__(self) -> None:
        self._by_page: dict[Path, set[DependencyKey]] = {}
        self._reverse: dict[DependencyKey, set[Path]] = {}

    def record(self, page: Path, key: DependencyKey) -> None:
        _link(self._by_page, self._reverse, page, key)

    def pages_affected_by(self, key: DependencyKey) -> list[Path]:
        """Return the pages with an edge to ``key``, sorted; empty if none."""
        return sorted(self._reverse.get(key, ()))

    def dependencies_of(self, page: Path) -> set[DependencyKey]:
        return set(self._by_page.get(page, ()))

    def clear_page(self, page: Path) -> None:
        """Drop every outgoing edge of ``page`` and prune empty reverse sets."""
        _unlink_owner(self._by_page, self._reverse, page)

    def remove_dependency_key(self, key: DependencyKey) -> None:
        """Forget ``key`` entirely, pruning it from every page that had it."""
        _unlink_dependency(self._by_page, self._reverse, key)
        logger.debug("Dropped dependency key %s", key)

    def __contains__(self, page: object) -> bool:
        return page in self._by_page

    def __len__(self) -> int:
        return len(self._by_page)


class ImportGraph:
    """Edges ``imported file -> stylesheet entry`` with a reverse index.

    Paths are normalised on the way in, so callers may pass relative paths or
    strings.
    """

    def __init__(self) -> None:
        self._imports_by_entry: dict[Path, set[Path]] = {}
        self._entries_by_import: dict[Path, set[Path]] = {}

    def record(self, imported: str | Path, entry: str | Path) -> None:
        _link(
            self._imports_by_entry,
            self._entries_by_import,
            normalize_path(entry),
            normalize_path(imported),
        )

    def entries_affected_by(self, file: str | Path) -> list[Path]:
        """Return the entries that imported ``file``, sorted; empty if none.

        Callers fall back to recompiling every known entry when this is empty.
        """
        return sorted(self._entries_by_import.get(normalize_path(file), ()))

    def imports_of(self, entry: str | Path) -> set[Path]:
        return set(self._imports_by_entry.get(normalize_path(entry), ()))

    def clear_by(self, entry: str | Path) -> None:
        """Drop every edge asserted by ``entry``'s last compilation."""
        _unlink_owner(self._imports_by_entry, self._entries_by_import, normalize_path(entry))

    def remove(self, file: str | Path) -> None:
        """Forget an imported file, e.g. after a partial is deleted."""
        _unlink_dependency(self._imports_by_entry, self._entries_by_import, normalize_path(file))

    def clear(self) -> None:
        self._imports_by_entry.clear()
        self._entries_by_import.clear()

"""Protocol definitions for Satsuma.

This module defines the interfaces of the collaborators the build engine talks
to without owning: the storage it writes through, the template engine, the
stylesheet compiler, the file-watch service and the live-reload server.

Keeping these as protocols lets the planner/committer pair run against an
in-memory filesystem and lets tests substitute fake compilers and notifiers.
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class FileStat:
    """Minimal stat result shared by every storage adapter."""

    is_file: bool
    is_dir: bool
    size: int = 0


@runtime_checkable
class StorageAdapter(Protocol):
    """Asynchronous filesystem interface used by the committer.

    Missing paths raise FileNotFoundError, except for ``remove`` which treats
    an absent target as already removed.
    """

    @abstractmethod
    async def read_file(self, path: Path) -> bytes: ...

    @abstractmethod
    async def write_file(self, path: Path, data: bytes) -> None: ...

    @abstractmethod
    async def mkdir(self, path: Path) -> None:
        """Create ``path`` and any missing parents."""
        ...

    @abstractmethod
    async def remove(self, path: Path) -> None:
        """Remove a file or a directory tree; missing targets are not an error."""
        ...

    @abstractmethod
    async def readdir(self, path: Path) -> list[str]:
        """Return the sorted names of the direct children of ``path``."""
        ...

    @abstractmethod
    async def stat(self, path: Path) -> FileStat: ...

    @abstractmethod
    async def path_exists(self, path: Path) -> bool: ...


IncludeCallback = Callable[[Path], None]


@runtime_checkable
class TemplateRenderer(Protocol):
    """Protocol for the page template engine."""

    @abstractmethod
    def render_string(
        self,
        source: str,
        context: Mapping[str, Any],
        *,
        base_dir: Path,
        on_include: IncludeCallback,
    ) -> str:
        """Render template text.

        Args:
            source: Template source.
            context: Variables available to the template.
            base_dir: Directory that relative includes resolve against.
            on_include: Called with the absolute path of every file the
                engine resolves as an include.

        Returns:
            Rendered output.
        """
        ...

    @abstractmethod
    def render_file(
        self,
        path: Path,
        context: Mapping[str, Any],
        *,
        on_include: IncludeCallback,
    ) -> str:
        """Render a template file (a layout) with the same include tracking."""
        ...


ImportResolver = Callable[[str, Path], "Path | None"]


@dataclass(frozen=True)
class CompiledStylesheet:
    """Output of a stylesheet compilation."""

    css: str
    source_map: str | None = None


@runtime_checkable
class StylesheetCompiler(Protocol):
    """Protocol for the SCSS compiler."""

    @abstractmethod
    def compile(
        self, entry: Path, output: Path, resolve_import: ImportResolver
    ) -> CompiledStylesheet:
        """Compile ``entry`` whose CSS will be written to ``output``.

        ``resolve_import(url, importer)`` maps an import URL seen in file
        ``importer`` to a file on disk (or None); the caller uses it to record
        every resolved import.

        Raises:
            StylesheetCompileError: If the compiler rejects the source.
        """
        ...


@runtime_checkable
class ReloadNotifier(Protocol):
    """Protocol for the live-reload server."""

    @abstractmethod
    def reload(self) -> None:
        """Tell every connected browser to reload."""
        ...


@runtime_checkable
class WatchService(Protocol):
    """Protocol for the file-watch service."""

    @abstractmethod
    def add(self, roots: Iterable[Path]) -> None:
        """Start watching additional roots (already watched roots are ignored)."""
        ...

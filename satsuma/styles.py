"""Stylesheet compilation for Satsuma.

SCSS entries (files not prefixed with ``_``) compile to CSS plus a source map
at the same relative path under the public directory. Partials (``_name.scss``)
are only ever compiled through an entry that imports them.

Every import the compiler resolves is recorded in the ImportGraph against the
entry being compiled, so a changed partial recompiles exactly the entries that
read it.

Key classes:
- SassCompiler: StylesheetCompiler implementation backed by libsass.
- StyleRegistry: Entry -> output registry plus the import graph, producing Actions.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator
from pathlib import Path

import sass

from .actions import Action, RemoveAction, WriteAction
from .config import Directories
from .errors import PathEscapeError, StylesheetCompileError
from .graphs import ImportGraph
from .logging import get_logger
from .protocols import CompiledStylesheet, ImportResolver, StylesheetCompiler
from .utils import is_partial, is_path_inside, is_stylesheet, iter_files, normalize_path

logger = get_logger(__name__)

SOURCE_MAP_SUFFIX = ".map"
_IMPORTABLE_SUFFIXES = (".scss", ".sass", ".css")


def source_map_path(output: Path) -> Path:
    return output.with_name(output.name + SOURCE_MAP_SUFFIX)


def _candidates(base: Path) -> Iterator[Path]:
    name, parent = base.name, base.parent
    if base.suffix.lower() in _IMPORTABLE_SUFFIXES:
        yield base
        yield parent / f"_{name}"
        return
    yield parent / f"{name}.scss"
    yield parent / f"_{name}.scss"
    yield base / "_index.scss"
    yield base / "index.scss"
    yield parent / f"{name}.css"


def resolve_scss_import(url: str, importer: Path, load_paths: Iterable[Path] = ()) -> Path | None:
    """Resolve an ``@import``/``@use`` URL the way Sass does.

    The URL is tried relative to the importing file, then relative to each
    load path, as ``name.scss``, ``_name.scss``, ``name/_index.scss``,
    ``name/index.scss`` and ``name.css``.

    Returns:
        The resolved absolute path, or None for remote URLs and misses.
    """
    if url.startswith(("http://", "https://", "//", "sass:")):
        return None
    bases = [importer.parent / url, *(Path(p) / url for p in load_paths)]
    for base in bases:
        for candidate in _candidates(base):
            if candidate.is_file():
                return normalize_path(candidate)
    return None


class SassCompiler:
    """Compile SCSS with libsass, routing every import through ``resolve_import``.

    Attributes:
        include_paths: Extra load paths passed to libsass.
        output_style: libsass output style.
    """

    def __init__(self, include_paths: Iterable[Path] = (), output_style: str = "expanded"):
        self.include_paths = [str(p) for p in include_paths]
        self.output_style = output_style

    def compile(
        self, entry: Path, output: Path, resolve_import: ImportResolver
    ) -> CompiledStylesheet:
        def importer(path: str, prev: str):
            origin = Path(prev) if prev and os.path.isabs(prev) else entry
            resolved = resolve_import(path, origin)
            if resolved is None:
                return None
            return [(str(resolved), resolved.read_text(encoding="utf-8"))]

        try:
            css, source_map = sass.compile(
                filename=str(entry),
                importers=[(0, importer)],
                include_paths=self.include_paths,
                output_style=self.output_style,
                source_map_filename=str(source_map_path(output)),
                output_filename_hint=str(output),
                source_map_contents=True,
            )
        except sass.CompileError as exc:
            raise StylesheetCompileError(entry, str(exc)) from exc
        return CompiledStylesheet(css=css, source_map=source_map)


class StyleRegistry:
    """Known stylesheet entries, their outputs and the import graph.

    Attributes:
        directories: Resolved project layout.
        compiler: Stylesheet compiler collaborator.
        entries: Entry source path -> CSS output path.
        graph: Import graph for every compiled entry.
    """

    def __init__(self, directories: Directories, compiler: StylesheetCompiler | None = None):
        self.directories = directories
        self.compiler = compiler or SassCompiler(include_paths=[directories.styles])
        self.entries: dict[Path, Path] = {}
        self.graph = ImportGraph()

    @property
    def load_paths(self) -> list[Path]:
        return [self.directories.styles]

    def discover(self) -> list[Path]:
        """Return every non-partial SCSS file under the source root, sorted."""
        return [
            path
            for path in iter_files(self.directories.source)
            if is_stylesheet(path) and not is_partial(path)
        ]

    def output_for(self, entry: Path) -> Path:
        rel = normalize_path(entry).relative_to(self.directories.source)
        return normalize_path(self.directories.public / rel.with_suffix(".css"))

    def reset(self) -> None:
        self.entries.clear()
        self.graph.clear()

    def known_entries(self) -> list[Path]:
        """Registered entries, or a fresh discovery when nothing is registered yet."""
        return sorted(self.entries) or self.discover()

    def compile_entry(self, entry: str | Path) -> list[Action]:
        """Recompile one entry, re-recording its imports.

        A compile error is logged and yields no actions; other entries are
        unaffected.
        """
        entry = normalize_path(entry)
        if not is_path_inside(self.directories.source, entry):
            logger.error("Stylesheet %s is outside the source directory; skipping", entry)
            return []
        output = self.entries.get(entry) or self.output_for(entry)
        if not is_path_inside(self.directories.public, output):
            logger.error("%s", PathEscapeError(output, self.directories.public))
            return []

        self.graph.clear_by(entry)
        self.entries[entry] = output

        def resolve(url: str, importer: Path) -> Path | None:
            resolved = resolve_scss_import(url, importer, self.load_paths)
            if resolved is not None:
                self.graph.record(resolved, entry)
            return resolved

        try:
            compiled = self.compiler.compile(entry, output, resolve)
        except StylesheetCompileError as exc:
            logger.error("Failed to compile %s: %s", entry, exc.message)
            return []

        actions: list[Action] = [
            WriteAction(output, compiled.css, {"label": "Compiled", "entry": entry})
        ]
        if compiled.source_map is not None:
            actions.append(
                WriteAction(
                    source_map_path(output),
                    compiled.source_map,
                    {"label": "Source map", "entry": entry},
                )
            )
        return actions

    def compile_affected(self, partial: str | Path, removed: bool = False) -> list[Action]:
        """Recompile the entries that import ``partial``.

        When the graph knows no importer (for example right after a reset),
        every known entry is recompiled instead. A removed partial is dropped
        from the graph first.
        """
        affected = self.graph.entries_affected_by(partial)
        if removed:
            self.graph.remove(partial)
        targets = affected or self.known_entries()
        actions: list[Action] = []
        for entry in targets:
            actions.extend(self.compile_entry(entry))
        return actions

    def remove_entry(self, entry: str | Path) -> list[Action]:
        """Forget an entry and return actions removing its CSS and source map."""
        entry = normalize_path(entry)
        self.graph.clear_by(entry)
        output = self.entries.pop(entry, None)
        if output is None:
            if not is_path_inside(self.directories.source, entry):
                return []
            output = self.output_for(entry)
        return [
            RemoveAction(output, {"label": "Removed", "entry": entry}),
            RemoveAction(source_map_path(output), {"label": "Removed", "entry": entry}),
        ]

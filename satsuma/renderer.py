"""Page rendering with dependency tracking.

The Renderer is the single owner of page state: it discovers pages, keeps one
PageEntry per page, rebuilds collections when an entry changes, renders pages
through the template engine and records what each render read into the page
DependencyGraph.

Rendering a page never touches the public directory; it produces Actions that
the committer applies later.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

from jinja2 import TemplateError, TemplateSyntaxError
from markupsafe import Markup

from .actions import Action, RemoveAction, WriteAction
from .collections import Collection, CollectionAccessor, build_collections
from .config import Directories
from .content import PageEntry, PageLoader, collection_key, output_target
from .errors import PathEscapeError, TemplateResolutionError, code_frame
from .graphs import DependencyGraph
from .logging import get_logger
from .protocols import TemplateRenderer
from .templates import TemplateEngine
from .utils import PAGE_EXTENSION, is_path_inside, normalize_path, unique_paths

logger = get_logger(__name__)


def _format_error_message(exc: Exception) -> str:
    """Format a template exception into a short, readable message."""
    error_type = type(exc).__name__
    error_msg = str(exc)
    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TemplateNotFound":
        return f"Included template not found: {error_msg}"
    return f"{error_type}: {error_msg}"


class Renderer:
    """Discovers, models and renders pages.

    Attributes:
        directories: Resolved project layout.
        globals: Global data; ``globals["site"]`` is exposed to templates as ``site``.
        engine: Template engine collaborator.
        graph: Dependency graph of every rendered page.
        collections: Current collections, keyed by name.
    """

    def __init__(
        self,
        directories: Directories,
        globals: dict[str, Any] | None = None,
        engine: TemplateRenderer | None = None,
    ):
        self.directories = directories
        self.globals = globals or {}
        self.engine = engine or TemplateEngine(directories.source)
        self.graph = DependencyGraph()
        self.loader = PageLoader(directories)
        self.collections: dict[str, Collection] = {}
        self._entries: dict[Path, PageEntry] = {}

    def initialize(self) -> None:
        """Discover every page and parse its entry, without rendering anything."""
        self._entries.clear()
        for path in self.loader.iter_pages():
            try:
                self._entries[path] = self.loader.load(path)
            except (OSError, UnicodeDecodeError) as exc:
                logger.error("Failed to read page %s: %s", path, exc)
        self._rebuild_collections()
        logger.debug("Discovered %d pages", len(self._entries))

    def list_pages(self) -> list[Path]:
        return sorted(self._entries)

    def get_entry(self, path: str | Path) -> PageEntry | None:
        return self._entries.get(normalize_path(path))

    def is_renderable_page(self, path: str | Path) -> bool:
        return self.loader.is_renderable_page(path)

    def template_path(self, name: str) -> Path:
        """Return the file a template name refers to under the templates directory."""
        candidate = self.directories.templates / name
        if candidate.suffix.lower() != PAGE_EXTENSION:
            candidate = candidate.with_name(candidate.name + PAGE_EXTENSION)
        return normalize_path(candidate)

    def _rebuild_collections(self) -> None:
        self.collections = build_collections(self._entries[p] for p in sorted(self._entries))

    def _refresh_entry(self, page: Path) -> PageEntry:
        entry = self.loader.load(page)
        previous = self._entries.get(page)
        self._entries[page] = entry
        if previous != entry:
            self._rebuild_collections()
        return entry

    def _drop_entry(self, page: Path) -> PageEntry | None:
        entry = self._entries.pop(page, None)
        if entry is not None:
            self._rebuild_collections()
        return entry

    def render_page(self, page: str | Path) -> tuple[PageEntry, str] | None:
        """Render one page, re-recording its dependencies from scratch.

        Errors that only concern this page (missing template, template errors,
        unreadable source) are logged and yield None.

        Returns:
            Tuple of (entry, rendered output), or None when the page was skipped.
        """
        page = normalize_path(page)
        self.graph.clear_page(page)
        try:
            entry = self._refresh_entry(page)
        except FileNotFoundError:
            logger.warning("Page %s no longer exists; skipping render", page)
            self._drop_entry(page)
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Failed to read page %s: %s", page, exc)
            return None

        def record(key) -> None:
            self.graph.record(page, key)

        accessor = CollectionAccessor(
            self.collections, lambda name: record(collection_key(name))
        )
        context: dict[str, Any] = {
            "content": entry.body,
            "site": self.globals.get("site", {}),
            "collections": accessor,
            "page": entry.summary(),
            **entry.config,
        }

        try:
            html = self.engine.render_string(
                entry.body, context, base_dir=page.parent, on_include=record
            )
            if entry.template:
                template = self.template_path(entry.template)
                # Recorded before the existence check so creating it later re-renders this page.
                record(template)
                if not template.is_file():
                    raise TemplateResolutionError(page, entry.template, template)
                html = self.engine.render_file(
                    template, {**context, "content": Markup(html)}, on_include=record
                )
        except TemplateResolutionError as exc:
            logger.error("%s; skipping page", exc)
            return None
        except TemplateSyntaxError as exc:
            frame = code_frame(exc.source, exc.lineno) if exc.source else ""
            logger.error(
                "Template syntax error in %s on line %s: %s\n%s",
                exc.filename or page,
                exc.lineno,
                exc.message,
                frame,
            )
            return None
        except TemplateError as exc:
            logger.error("Failed to render %s: %s", page, _format_error_message(exc))
            return None
        return entry, html

    def plan_pages(self, pages: Iterable[str | Path]) -> list[Action]:
        """Render exactly ``pages`` and return one write action per rendered page."""
        actions: list[Action] = []
        for page in unique_paths(pages):
            result = self.render_page(page)
            if result is None:
                continue
            entry, html = result
            if not is_path_inside(self.directories.public, entry.output_path):
                logger.error("%s", PathEscapeError(entry.output_path, self.directories.public))
                continue
            actions.append(
                WriteAction(entry.output_path, html, {"label": "Rendered", "page": entry.path})
            )
        return actions

    def plan_removal(self, page: str | Path, keep: Iterable[Path] = ()) -> list[Action]:
        """Forget a deleted page and return the action removing its output.

        A page owns its whole output directory unless another output lives
        inside it (index pages always share theirs); then only its
        ``index.html`` is removed.

        Args:
            page: Deleted page source.
            keep: Other known outputs (assets, stylesheets) that must survive.
        """
        page = normalize_path(page)
        self.graph.clear_page(page)
        self.graph.remove_dependency_key(page)
        entry = self._drop_entry(page)
        if entry is not None:
            output_dir, output_path, is_index = entry.output_dir, entry.output_path, entry.is_index
        elif is_path_inside(self.directories.pages, page):
            output_dir, output_path, _ = output_target(
                page, self.directories.pages, self.directories.public
            )
            is_index = page.stem.lower() == "index"
        else:
            return []

        survivors = [e.output_path for e in self._entries.values()]
        survivors.extend(keep)
        shared = is_index or any(
            is_path_inside(output_dir, other) for other in survivors if other != output_path
        )
        target = output_path if shared else output_dir
        return [RemoveAction(target, {"label": "Removed", "page": page})]

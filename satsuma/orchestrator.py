"""Incremental rebuilds driven by file-watch events.

The Orchestrator turns one ``(kind, path)`` event into the smallest set of
plans that brings the public directory up to date, commits them through the
SiteBuilder and signals a reload when anything changed.

Events arriving while a build is running are dropped; the next event after it
finishes is handled normally.
"""

from __future__ import annotations

from pathlib import Path

from .build import SiteBuilder
from .commit import CommitResult
from .content import collection_key
from .logging import get_logger
from .protocols import ReloadNotifier, WatchService
from .utils import (
    PAGE_EXTENSION,
    STYLESHEET_EXTENSION,
    is_partial,
    is_path_inside,
    normalize_path,
    unique_paths,
)

logger = get_logger(__name__)

EVENT_KINDS = ("add", "change", "unlink")


class Orchestrator:
    """Routes watch events to incremental build operations.

    Attributes:
        builder: SiteBuilder holding the current BuildState.
        notifier: Optional live-reload collaborator.
        watcher: Optional watch service, widened after configuration changes.
        building: True while an event is being handled.
    """

    def __init__(
        self,
        builder: SiteBuilder,
        notifier: ReloadNotifier | None = None,
        watcher: WatchService | None = None,
    ):
        self.builder = builder
        self.notifier = notifier
        self.watcher = watcher
        self.building = False

    @property
    def state(self) -> str:
        return "building" if self.building else "idle"

    async def handle(self, kind: str, path: str | Path) -> bool:
        """Handle one watch event.

        Args:
            kind: One of ``add``, ``change`` or ``unlink``.
            path: Path the event concerns.

        Returns:
            True when a reload was signalled.
        """
        if kind not in EVENT_KINDS:
            logger.debug("Ignoring unknown event kind %r for %s", kind, path)
            return False
        if self.building:
            logger.debug("Build in progress; dropping %s %s", kind, path)
            return False
        self.building = True
        try:
            should_reload = await self._dispatch(kind, normalize_path(path))
        except Exception:
            logger.exception("Failed to handle %s %s", kind, path)
            return False
        finally:
            self.building = False

        if should_reload and self.notifier is not None:
            self.notifier.reload()
        return should_reload

    async def _dispatch(self, kind: str, path: Path) -> bool:
        directories = self.builder.directories
        if path in (directories.config_file, directories.globals_file):
            result = await self._rebuild_all()
        elif path.suffix.lower() == PAGE_EXTENSION:
            if self.builder.renderer.is_renderable_page(path):
                result = await self._page_changed(kind, path)
            else:
                result = await self._template_changed(kind, path)
        elif path.suffix.lower() == STYLESHEET_EXTENSION:
            result = await self._stylesheet_changed(kind, path)
        else:
            result = await self._asset_changed(kind, path)
        return bool(result) or kind == "unlink"

    async def _rebuild_all(self) -> CommitResult:
        logger.info("Configuration changed; rebuilding everything")
        result = await self.builder.build_site(clean=True, fresh=True)
        if self.watcher is not None:
            self.watcher.add(self.builder.directories.watch_roots())
        return result

    def _collection_key_for(self, page: Path) -> str | None:
        entry = self.builder.renderer.get_entry(page)
        if entry is not None:
            return entry.collection_key
        pages_root = self.builder.directories.pages
        if not is_path_inside(pages_root, page) or page.parent == pages_root:
            return None
        return collection_key(page.parent.name)

    async def _page_changed(self, kind: str, page: Path) -> CommitResult:
        renderer = self.builder.renderer
        graph = renderer.graph
        old_key = self._collection_key_for(page)
        before = graph.pages_affected_by(page)
        if old_key is not None:
            before += graph.pages_affected_by(old_key)

        if kind == "unlink":
            result = await self.builder.remove_page(page)
        else:
            result = await self.builder.render_pages([page])

        new_key = self._collection_key_for(page) if kind != "unlink" else None
        after = graph.pages_affected_by(new_key) if new_key is not None else []
        dependents = [p for p in unique_paths(before + after) if p != page]
        if not dependents:
            return result
        logger.debug("Re-rendering %d pages that depend on %s", len(dependents), page)
        follow_up = await self.builder.render_pages(dependents)
        return CommitResult(changed=sorted(set(result.changed) | set(follow_up.changed)))

    async def _template_changed(self, kind: str, path: Path) -> CommitResult:
        renderer = self.builder.renderer
        affected = renderer.graph.pages_affected_by(path)
        if kind == "unlink":
            renderer.graph.remove_dependency_key(path)
        if not affected:
            logger.debug("No page is known to read %s; re-rendering all pages", path)
            affected = renderer.list_pages()
        return await self.builder.render_pages(affected)

    async def _stylesheet_changed(self, kind: str, path: Path) -> CommitResult:
        if is_partial(path):
            return await self.builder.recompile_for_partial(path, removed=kind == "unlink")
        if kind == "unlink":
            return await self.builder.remove_stylesheet(path)
        return await self.builder.compile_stylesheet(path)

    async def _asset_changed(self, kind: str, path: Path) -> CommitResult:
        if kind == "unlink":
            return await self.builder.remove_asset(path)
        return await self.builder.copy_asset(path)

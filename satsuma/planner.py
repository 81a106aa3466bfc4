"""Build planning for Satsuma.

Each ``plan_*`` function is an async generator of Actions describing one unit
of build work. Planning reads the sources and updates the dependency graphs,
but never writes to the public directory; ``commit`` does that.

Every action leaves this module through ``_guarded``, the one place that
enforces that outputs stay inside the public directory. Offending actions are
logged and dropped.

Plans:
- plan_clean_public: remove every direct child of public/.
- plan_site: clean (optional), stylesheets, static assets, then pages.
- plan_pages / plan_page_removal: render or remove specific pages.
- plan_scss_entry / plan_scss_partial / plan_scss_removal: stylesheet lifecycle.
- plan_asset_copy / plan_asset_removal: a single static asset.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from .actions import Action, CopyAction, RemoveAction
from .config import Directories
from .errors import PathEscapeError
from .logging import get_logger
from .protocols import StorageAdapter
from .storage import LocalStorage
from .styles import source_map_path
from .utils import is_page_template, is_path_inside, is_stylesheet, iter_files, normalize_path

if TYPE_CHECKING:
    from .build import BuildState

logger = get_logger(__name__)


def is_contained(action: Action, public_root: Path) -> bool:
    """Check that an action only touches paths inside ``public_root``."""
    return is_path_inside(public_root, action.output)


async def _guarded(actions: Iterable[Action], public_root: Path) -> AsyncIterator[Action]:
    for action in actions:
        if not is_contained(action, public_root):
            logger.error("Dropping %s action: %s", action.kind, PathEscapeError(action.output, public_root))
            continue
        yield action


def should_copy_static(path: Path, directories: Directories) -> bool:
    """Check whether a source file is copied verbatim to public/.

    Page templates and stylesheets are never copied, and neither is anything
    inside a dedicated pages directory.
    """
    path = normalize_path(path)
    if not is_path_inside(directories.source, path):
        return False
    if is_page_template(path) or is_stylesheet(path):
        return False
    if directories.pages == directories.source:
        return True
    return not is_path_inside(directories.pages, path)


def asset_destination(path: Path, directories: Directories) -> Path:
    rel = normalize_path(path).relative_to(directories.source)
    return normalize_path(directories.public / rel)


async def plan_clean_public(
    state: BuildState, storage: StorageAdapter | None = None
) -> AsyncIterator[Action]:
    """Yield one remove action per direct child of public/, sorted by name."""
    storage = storage or LocalStorage()
    public = state.directories.public
    if not await storage.path_exists(public):
        return
    names = sorted(await storage.readdir(public))
    actions = [RemoveAction(public / name) for name in names]
    async for action in _guarded(actions, public):
        yield action


async def plan_styles(state: BuildState) -> AsyncIterator[Action]:
    """Compile every stylesheet entry from a clean registry."""
    styles = state.styles
    styles.reset()
    for entry in styles.discover():
        async for action in _guarded(styles.compile_entry(entry), state.directories.public):
            yield action


async def plan_assets(state: BuildState) -> AsyncIterator[Action]:
    """Copy every static source file, recording source -> destination."""
    directories = state.directories
    state.assets.clear()
    actions: list[Action] = []
    for path in iter_files(directories.source):
        if not should_copy_static(path, directories):
            continue
        destination = asset_destination(path, directories)
        state.assets[path] = destination
        actions.append(CopyAction(path, destination, {"label": "Copied"}))
    async for action in _guarded(actions, directories.public):
        yield action


async def plan_pages(state: BuildState, pages: Iterable[str | Path]) -> AsyncIterator[Action]:
    """Render exactly ``pages``; one write action per page that rendered."""
    for page in pages:
        async for action in _guarded(state.renderer.plan_pages([page]), state.directories.public):
            yield action


async def plan_site(
    state: BuildState,
    *,
    clean: bool = True,
    storage: StorageAdapter | None = None,
    pages: Iterable[str | Path] | None = None,
) -> AsyncIterator[Action]:
    """Plan a full build: clean, stylesheets, static assets, pages.

    Args:
        state: Build state to plan against.
        clean: Whether to remove the current contents of public/ first.
        storage: Adapter used to list public/ for the clean step.
        pages: Pages to render; defaults to every discovered page.
    """
    if clean:
        async for action in plan_clean_public(state, storage):
            yield action
    async for action in plan_styles(state):
        yield action
    async for action in plan_assets(state):
        yield action
    targets = list(pages) if pages is not None else state.renderer.list_pages()
    async for action in plan_pages(state, targets):
        yield action


async def plan_page_removal(state: BuildState, page: str | Path) -> AsyncIterator[Action]:
    """Remove a page's output without touching outputs of other sources."""
    styles = state.styles
    keep = [*state.assets.values(), *styles.entries.values()]
    keep.extend(source_map_path(output) for output in styles.entries.values())
    actions = state.renderer.plan_removal(page, keep=keep)
    async for action in _guarded(actions, state.directories.public):
        yield action


async def plan_scss_entry(state: BuildState, entry: str | Path) -> AsyncIterator[Action]:
    """Compile one entry (CSS plus source map)."""
    async for action in _guarded(state.styles.compile_entry(entry), state.directories.public):
        yield action


async def plan_scss_partial(
    state: BuildState, partial: str | Path, removed: bool = False
) -> AsyncIterator[Action]:
    """Recompile the entries affected by a partial (all entries if none are known)."""
    actions = state.styles.compile_affected(partial, removed=removed)
    async for action in _guarded(actions, state.directories.public):
        yield action


async def plan_scss_removal(state: BuildState, entry: str | Path) -> AsyncIterator[Action]:
    """Remove an entry's compiled CSS and source map."""
    async for action in _guarded(state.styles.remove_entry(entry), state.directories.public):
        yield action


async def plan_asset_copy(state: BuildState, source: str | Path) -> AsyncIterator[Action]:
    directories = state.directories
    source = normalize_path(source)
    if not should_copy_static(source, directories):
        return
    destination = asset_destination(source, directories)
    state.assets[source] = destination
    async for action in _guarded([CopyAction(source, destination, {"label": "Copied"})], directories.public):
        yield action


async def plan_asset_removal(state: BuildState, source: str | Path) -> AsyncIterator[Action]:
    directories = state.directories
    source = normalize_path(source)
    destination = state.assets.pop(source, None)
    if destination is None:
        if not should_copy_static(source, directories):
            return
        destination = asset_destination(source, directories)
    async for action in _guarded([RemoveAction(destination, {"label": "Removed"})], directories.public):
        yield action

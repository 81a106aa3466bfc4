"""Site building for Satsuma.

Ties configuration, rendering, stylesheets and the committer together.
``BuildState`` holds everything a build knows about a project; a full build
creates a fresh one, incremental operations mutate the current one.

Key objects:
- BuildState: Configuration, directory layout, renderer, style registry and assets.
- SiteBuilder: Full and incremental build operations, each planned then committed.
- build_site / clean_public: Synchronous entry points used by the CLI.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from . import planner
from .commit import CommitResult, Plan, commit
from .config import Directories, load_config, load_globals, resolve_directories
from .logging import get_logger
from .protocols import StorageAdapter, StylesheetCompiler, TemplateRenderer
from .renderer import Renderer
from .storage import LocalStorage
from .styles import StyleRegistry
from .utils import normalize_path

logger = get_logger(__name__)


@dataclass
class BuildState:
    """Everything a build knows about one project.

    Attributes:
        project_root: Directory holding satsuma.yaml.
        config: Loaded configuration with defaults applied.
        globals: Global template data from globals.yaml.
        directories: Resolved directory layout.
        renderer: Page model, renderer and page dependency graph.
        styles: Stylesheet entries and import graph.
        assets: Static asset source -> public destination.
    """

    project_root: Path
    config: dict[str, Any]
    globals: dict[str, Any]
    directories: Directories
    renderer: Renderer
    styles: StyleRegistry
    assets: dict[Path, Path] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        project_root: Path,
        engine: TemplateRenderer | None = None,
        compiler: StylesheetCompiler | None = None,
    ) -> BuildState:
        """Load configuration and discover pages for ``project_root``.

        Raises:
            ConfigurationError: If the configuration is invalid.
        """
        root = normalize_path(project_root)
        config = load_config(root)
        globals_ = load_globals(root)
        directories = resolve_directories(config, root)
        renderer = Renderer(directories, globals_, engine)
        renderer.initialize()
        return cls(
            project_root=root,
            config=config,
            globals=globals_,
            directories=directories,
            renderer=renderer,
            styles=StyleRegistry(directories, compiler),
        )


@dataclass
class BuildResult:
    """Result of a full site build.

    Attributes:
        pages: Every discovered page.
        changed: Outputs written or removed.
        output_dir: Public directory.
    """

    pages: list[Path]
    changed: list[Path]
    output_dir: Path


class SiteBuilder:
    """Runs plans against a project and commits them.

    Attributes:
        project_root: Root directory of the project.
        storage: Storage adapter used by every commit.
        state: Current build state.
    """

    def __init__(
        self,
        project_root: Path,
        storage: StorageAdapter | None = None,
        engine: TemplateRenderer | None = None,
        compiler: StylesheetCompiler | None = None,
    ):
        self.project_root = normalize_path(project_root)
        self.storage = storage or LocalStorage()
        self._engine = engine
        self._compiler = compiler
        self.state = BuildState.create(self.project_root, engine, compiler)

    @property
    def directories(self) -> Directories:
        return self.state.directories

    @property
    def renderer(self) -> Renderer:
        return self.state.renderer

    @property
    def styles(self) -> StyleRegistry:
        return self.state.styles

    def reload_state(self) -> BuildState:
        """Re-read configuration and rediscover pages into a fresh BuildState."""
        self.state = BuildState.create(self.project_root, self._engine, self._compiler)
        return self.state

    async def run(self, plan: Plan) -> CommitResult:
        """Commit ``plan`` into the public directory."""
        return await commit(
            plan,
            self.storage,
            public_root=self.directories.public,
            concurrency=self.state.config.get("concurrency"),
        )

    async def build_site(self, clean: bool = True, fresh: bool = False) -> CommitResult:
        """Build everything: optional clean, stylesheets, assets, pages.

        Args:
            clean: Remove the current public contents first.
            fresh: Reload configuration into a new BuildState before planning.
        """
        if fresh:
            self.reload_state()
        result = await self.run(
            planner.plan_site(self.state, clean=clean, storage=self.storage)
        )
        logger.info(
            "Built %d pages into %s (%d outputs changed)",
            len(self.renderer.list_pages()),
            self.directories.public,
            len(result.changed),
        )
        return result

    async def clean_public(self) -> CommitResult:
        return await self.run(planner.plan_clean_public(self.state, self.storage))

    async def render_pages(self, pages: Iterable[str | Path]) -> CommitResult:
        return await self.run(planner.plan_pages(self.state, pages))

    async def remove_page(self, page: str | Path) -> CommitResult:
        return await self.run(planner.plan_page_removal(self.state, page))

    async def compile_stylesheet(self, entry: str | Path) -> CommitResult:
        return await self.run(planner.plan_scss_entry(self.state, entry))

    async def recompile_for_partial(self, partial: str | Path, removed: bool = False) -> CommitResult:
        return await self.run(planner.plan_scss_partial(self.state, partial, removed=removed))

    async def remove_stylesheet(self, entry: str | Path) -> CommitResult:
        return await self.run(planner.plan_scss_removal(self.state, entry))

    async def copy_asset(self, source: str | Path) -> CommitResult:
        return await self.run(planner.plan_asset_copy(self.state, source))

    async def remove_asset(self, source: str | Path) -> CommitResult:
        return await self.run(planner.plan_asset_removal(self.state, source))


def build_site(project_root: Path, clean: bool = True) -> BuildResult:
    """Build the site in ``project_root`` into its public directory.

    Args:
        project_root: Root directory of the project.
        clean: Whether to empty the public directory first.

    Returns:
        BuildResult describing the build.

    Raises:
        ConfigurationError: If the project configuration is invalid.
    """
    builder = SiteBuilder(project_root)
    result = asyncio.run(builder.build_site(clean=clean))
    return BuildResult(
        pages=builder.renderer.list_pages(),
        changed=result.changed,
        output_dir=builder.directories.public,
    )


def clean_public(project_root: Path) -> CommitResult:
    """Remove every direct child of the project's public directory."""
    builder = SiteBuilder(project_root)
    return asyncio.run(builder.clean_public())

"""Template rendering engine for Satsuma.

This module uses Jinja2 to render page bodies and layout templates while
reporting every file a render pulls in through ``{% include %}``,
``{% extends %}`` or ``{% import %}``. The renderer turns those reports into
dependency-graph edges.

Include names resolve as follows:
- ``/partials/nav`` or ``partials/nav``: relative to the source root.
- ``./card`` or ``../shared/card``: relative to the including file (the page's
  own directory for page bodies).
Each name is tried as given, with ``.jinja`` appended, and as ``<name>/index.jinja``.

Key classes:
- IncludeTrackingLoader: Jinja loader that resolves names and reports each one.
- TemplateEngine: Renders strings and files with a fresh tracking environment.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jinja2 import BaseLoader, Environment, TemplateNotFound

from .protocols import IncludeCallback
from .utils import PAGE_EXTENSION, is_path_inside, normalize_path

__all__ = ["IncludeTrackingLoader", "TemplateEngine"]


class IncludeTrackingLoader(BaseLoader):
    """Loads templates from disk and reports every resolved path.

    The path is reported even when the file does not exist, so a page that
    includes a missing partial re-renders as soon as the partial is created.

    Attributes:
        root: Source root for root-relative names.
        base_dir: Directory for ``./`` and ``../`` names without a parent template.
        on_include: Callback receiving each resolved absolute path.
    """

    def __init__(self, root: Path, base_dir: Path, on_include: IncludeCallback):
        self.root = normalize_path(root)
        self.base_dir = normalize_path(base_dir)
        self.on_include = on_include

    def resolve(self, name: str) -> Path:
        """Map a template name to the file it refers to."""
        if os.path.isabs(name) and (is_path_inside(self.root, name) or os.path.isfile(name)):
            base = normalize_path(name)
        elif name.startswith(("./", "../")):
            base = normalize_path(self.base_dir / name)
        else:
            base = normalize_path(self.root / name.lstrip("/"))

        candidates = [
            base,
            base.with_name(base.name + PAGE_EXTENSION),
            base / f"index{PAGE_EXTENSION}",
        ]
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        return base

    def get_source(self, environment: Environment, template: str):
        path = self.resolve(template)
        self.on_include(path)
        if not path.is_file():
            raise TemplateNotFound(template)
        source = path.read_text(encoding="utf-8")
        mtime = path.stat().st_mtime

        def uptodate() -> bool:
            try:
                return path.stat().st_mtime == mtime
            except OSError:
                return False

        return source, str(path), uptodate


class _TrackingEnvironment(Environment):
    """Environment that resolves ``./`` and ``../`` includes against the parent."""

    def join_path(self, template: str, parent: str) -> str:
        if template.startswith(("./", "../")) and parent:
            parent_path = self.loader.resolve(parent)
            return str(normalize_path(parent_path.parent / template))
        return template


class TemplateEngine:
    """Jinja2 template engine with per-render include tracking.

    A fresh environment is built for every render so that includes are
    attributed to exactly one page and nothing is served from a stale cache.

    Attributes:
        root: Source root that include names resolve against.
        globals: Variables installed in every environment.
    """

    def __init__(self, root: Path, globals: Mapping[str, Any] | None = None):
        self.root = normalize_path(root)
        self.globals = dict(globals or {})

    def _environment(self, base_dir: Path, on_include: IncludeCallback) -> Environment:
        env = _TrackingEnvironment(
            loader=IncludeTrackingLoader(self.root, base_dir, on_include),
            autoescape=True,
            cache_size=0,
            keep_trailing_newline=True,
        )
        env.globals.update(self.globals)
        return env

    def render_string(
        self,
        source: str,
        context: Mapping[str, Any],
        *,
        base_dir: Path,
        on_include: IncludeCallback,
    ) -> str:
        """Render template text, reporting includes to ``on_include``.

        Args:
            source: Template source.
            context: Variables available to the template.
            base_dir: Directory for relative include names.
            on_include: Called with every resolved include path.

        Returns:
            Rendered string.
        """
        env = self._environment(base_dir, on_include)
        return env.from_string(source).render(dict(context))

    def render_file(
        self,
        path: Path,
        context: Mapping[str, Any],
        *,
        on_include: IncludeCallback,
    ) -> str:
        """Render a template file; the file itself is reported as an include.

        Raises:
            jinja2.TemplateNotFound: If ``path`` does not exist.
        """
        target = normalize_path(path)
        env = self._environment(target.parent, on_include)
        return env.get_template(str(target)).render(dict(context))

"""Page discovery and the page model for Satsuma.

This module finds page templates, splits each page into its YAML configuration
block and its body, and computes where the rendered page lands in the public
directory.

Key objects:
- PageEntry: Dataclass representing one discovered, parsed page.
- PageLoader: Discovers pages and answers whether a path is a renderable page.
- extract_config_block: Splits the leading ``---`` YAML block from the body.
- output_target: Maps a page source path to its output directory and file.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .config import Directories
from .logging import get_logger
from .utils import is_page_template, is_partial, is_path_inside, normalize_path

logger = get_logger(__name__)

CONFIG_BLOCK_RE = re.compile(r"\A\ufeff?---[ \t]*\r?\n(?:(.*?)\r?\n)?---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
EXCLUDED_DIR_NAMES = {"templates", "partials"}
COLLECTION_KEY_PREFIX = "collection:"


def collection_key(name: str) -> str:
    """Return the dependency-graph key for collection ``name``."""
    return f"{COLLECTION_KEY_PREFIX}{name}"


def extract_config_block(text: str, path: Path | None = None) -> tuple[dict[str, Any], str]:
    """Split a page into its configuration and its body.

    The configuration is a YAML mapping fenced by ``---`` lines at the very
    start of the file. A block that fails to parse, or parses to something
    other than a mapping, is logged and treated as empty; it is still removed
    from the body.

    Args:
        text: Raw file content.
        path: Source path, used in log messages.

    Returns:
        Tuple of (configuration dict, body text).
    """
    match = CONFIG_BLOCK_RE.match(text)
    if not match:
        return {}, text
    body = text[match.end() :]
    try:
        data = yaml.safe_load(match.group(1) or "")
    except yaml.YAMLError as exc:
        logger.warning("Invalid configuration block in %s: %s", path or "<page>", exc)
        return {}, body
    if data is None:
        return {}, body
    if not isinstance(data, dict):
        logger.warning(
            "Configuration block in %s is not a mapping; ignoring it", path or "<page>"
        )
        return {}, body
    return data, body


def output_target(path: Path, pages_root: Path, public_root: Path) -> tuple[Path, Path, str]:
    """Compute where a page is written.

    ``pages/index.jinja`` maps to ``public/index.html``; ``pages/blog/post.jinja``
    maps to ``public/blog/post/index.html``. A stem of ``index`` (any case) keeps
    the page in its own directory.

    Args:
        path: Absolute page source path.
        pages_root: Root of page discovery.
        public_root: Output root.

    Returns:
        Tuple of (output directory, output file, URL path).
    """
    rel = normalize_path(path).relative_to(normalize_path(pages_root))
    parts = list(rel.parent.parts)
    if rel.stem.lower() != "index":
        parts.append(rel.stem)
    output_dir = normalize_path(public_root.joinpath(*parts))
    url = "/" + "/".join(parts) + "/" if parts else "/"
    return output_dir, output_dir / "index.html", url


@dataclass
class PageEntry:
    """A discovered, parsed, render-ready page.

    Attributes:
        path: Absolute path of the page source.
        config: Parsed configuration block (may carry ``template`` and ``tags``).
        body: Source with the configuration block stripped.
        collection: Name of the immediate parent directory, or None for pages
            directly inside the pages root.
        collection_key: ``"collection:<name>"`` or None.
        output_dir: Directory the page owns in the public tree.
        output_path: File the rendered page is written to.
        public_path: URL path of the page, e.g. ``/blog/post/``.
    """

    path: Path
    config: dict[str, Any]
    body: str
    collection: str | None
    collection_key: str | None
    output_dir: Path
    output_path: Path
    public_path: str
    is_index: bool = field(default=False)

    @property
    def template(self) -> str | None:
        value = self.config.get("template")
        return str(value) if value else None

    @property
    def tags(self) -> list[Any]:
        tags = self.config.get("tags") or []
        return list(tags) if isinstance(tags, (list, tuple)) else [tags]

    @property
    def slug(self) -> str:
        return self.path.stem

    def summary(self) -> dict[str, Any]:
        """Return the collection summary of this page."""
        return {
            "config": {**self.config, "slug": self.slug},
            "public_path": self.public_path,
        }


class PageLoader:
    """Discovers pages below the pages root.

    Attributes:
        directories: Resolved project layout.
    """

    def __init__(self, directories: Directories):
        self.directories = directories

    def iter_pages(self) -> list[Path]:
        """Return the sorted absolute paths of every page.

        Skips directories named ``templates`` or ``partials`` (any case) and the
        configured templates directory, non-``.jinja`` files, and partials.
        """
        root = self.directories.pages
        if not root.is_dir():
            logger.warning("Pages directory %s does not exist; no pages to build", root)
            return []
        pages: set[Path] = set()
        for path in root.rglob("*"):
            if path.is_dir():
                continue
            rel = path.relative_to(root)
            if any(part.lower() in EXCLUDED_DIR_NAMES for part in rel.parts[:-1]):
                continue
            if not is_page_template(path) or is_partial(path):
                continue
            candidate = normalize_path(path)
            if self._in_templates(candidate):
                continue
            pages.add(candidate)
        return sorted(pages)

    def is_renderable_page(self, path: str | Path) -> bool:
        """Check if ``path`` names a page (whether or not it exists yet)."""
        candidate = normalize_path(path)
        if not is_page_template(candidate) or is_partial(candidate):
            return False
        if self._in_templates(candidate):
            return False
        if not is_path_inside(self.directories.pages, candidate):
            return False
        rel = candidate.relative_to(self.directories.pages)
        return not any(part.lower() in EXCLUDED_DIR_NAMES for part in rel.parts[:-1])

    def _in_templates(self, path: Path) -> bool:
        return is_path_inside(self.directories.templates, path)

    def load(self, path: str | Path) -> PageEntry:
        """Read and parse one page into a PageEntry.

        Raises:
            OSError: If the page cannot be read.
        """
        source = normalize_path(path)
        text = source.read_text(encoding="utf-8")
        config, body = extract_config_block(text, source)
        output_dir, output_path, url = output_target(
            source, self.directories.pages, self.directories.public
        )
        name = None
        if source.parent != self.directories.pages:
            name = source.parent.name
        return PageEntry(
            path=source,
            config=config,
            body=body,
            collection=name,
            collection_key=collection_key(name) if name else None,
            output_dir=output_dir,
            output_path=output_path,
            public_path=url,
            is_index=source.stem.lower() == "index",
        )

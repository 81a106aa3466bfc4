"""Project configuration for Satsuma.

Loads ``satsuma.yaml`` and ``globals.yaml`` from the project root and resolves
the directory layout every other module works against.

Key objects:
- DEFAULT_CONFIG: Values used when the project does not override them.
- load_config / load_globals: YAML loading with a shallow shape check.
- Directories: Resolved absolute directory layout.
- resolve_directories: Validates the layout, raising ConfigurationError.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError
from .logging import get_logger
from .utils import is_path_inside, normalize_path

logger = get_logger(__name__)

CONFIG_FILENAME = "satsuma.yaml"
GLOBALS_FILENAME = "globals.yaml"
DEFAULT_CONCURRENCY = 8

DEFAULT_CONFIG: dict[str, Any] = {
    "port": 3000,
    "concurrency": DEFAULT_CONCURRENCY,
    "directories": {
        "source": "source",
        "public": "public",
        "pages": "pages",
        "templates": "templates",
        "styles": "styles",
        "assets": "assets",
        "scripts": "scripts",
    },
}

REQUIRED_DIRECTORIES = ("source", "public")


def _read_yaml(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        try:
            return yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"{path}: invalid YAML: {exc}") from exc


def load_config(project_root: Path) -> dict[str, Any]:
    """Load site configuration from satsuma.yaml.

    The ``directories`` mapping is merged key by key over the defaults; every
    other key replaces its default.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.

    Raises:
        ConfigurationError: If the file is not valid YAML or not a mapping.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    config_path = project_root / CONFIG_FILENAME
    if not config_path.exists():
        return config
    loaded = _read_yaml(config_path)
    if loaded is None:
        return config
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"{config_path}: expected a mapping at the top level")
    directories = loaded.pop("directories", None)
    config.update(loaded)
    if directories is not None:
        if not isinstance(directories, dict):
            raise ConfigurationError(f"{config_path}: 'directories' must be a mapping")
        config["directories"].update(directories)
    return config


def load_globals(project_root: Path) -> dict[str, Any]:
    """Load global template data from globals.yaml.

    Returns:
        The mapping from the file, or an empty dict when the file is missing
        or does not hold a mapping.
    """
    globals_path = project_root / GLOBALS_FILENAME
    if not globals_path.exists():
        return {}
    loaded = _read_yaml(globals_path)
    if not isinstance(loaded, dict):
        if loaded is not None:
            logger.warning("%s does not contain a mapping; ignoring it", globals_path)
        return {}
    return loaded


@dataclass(frozen=True)
class Directories:
    """Absolute directory layout of a project.

    Attributes:
        project_root: Directory holding satsuma.yaml.
        source: Source root; every non-page, non-template, non-stylesheet file
            under it is copied to public.
        public: Output root; nothing is ever written outside it.
        pages: Root of page discovery (the source root when unset).
        templates: Layout templates and shared partials.
        styles: Stylesheets directory, also an SCSS load path.
        assets: Static assets directory.
        scripts: Client-side scripts directory.
    """

    project_root: Path
    source: Path
    public: Path
    pages: Path
    templates: Path
    styles: Path
    assets: Path
    scripts: Path

    @property
    def config_file(self) -> Path:
        return self.project_root / CONFIG_FILENAME

    @property
    def globals_file(self) -> Path:
        return self.project_root / GLOBALS_FILENAME

    def watch_roots(self) -> list[Path]:
        """Directories the dev server watches, de-duplicated, in a stable order."""
        roots: list[Path] = []
        for path in (self.source, self.styles, self.assets):
            if path not in roots:
                roots.append(path)
        return roots


def resolve_directories(config: dict[str, Any], project_root: Path) -> Directories:
    """Resolve the configured directory names against the project root.

    Args:
        config: Loaded configuration.
        project_root: Root directory of the project.

    Returns:
        Directories with absolute paths.

    Raises:
        ConfigurationError: If required keys are missing or the source and
            public directories overlap.
    """
    directories = config.get("directories")
    if not isinstance(directories, dict):
        raise ConfigurationError("Configuration key 'directories' must be a mapping")
    missing = [
        key
        for key in REQUIRED_DIRECTORIES
        if not isinstance(directories.get(key), str) or not directories.get(key).strip()
    ]
    if missing:
        raise ConfigurationError(
            f"Missing required directory keys: {', '.join(missing)}"
        )

    root = normalize_path(project_root)
    source = normalize_path(root / directories["source"])
    public = normalize_path(root / directories["public"])
    if source == public or is_path_inside(public, source) or is_path_inside(source, public):
        raise ConfigurationError(
            f"Source ({source}) and public ({public}) directories must not overlap"
        )

    def under_source(key: str) -> Path:
        value = directories.get(key) or ""
        if not isinstance(value, str):
            raise ConfigurationError(f"Directory '{key}' must be a string")
        return normalize_path(source / value)

    return Directories(
        project_root=root,
        source=source,
        public=public,
        pages=under_source("pages"),
        templates=under_source("templates"),
        styles=under_source("styles"),
        assets=under_source("assets"),
        scripts=under_source("scripts"),
    )

import logging
import re
from pathlib import Path

import pytest

from satsuma.errors import StylesheetCompileError
from satsuma.protocols import CompiledStylesheet

IMPORT_RE = re.compile(r"""^\s*@(?:import|use)\s+["']([^"']+)["']\s*;\s*$""")


class FakeCompiler:
    """Stylesheet compiler that inlines ``@import`` lines and copies the rest.

    ``error`` in a file raises StylesheetCompileError, like a syntax error would.
    """

    def __init__(self):
        self.compiled = []

    def compile(self, entry, output, resolve_import):
        self.compiled.append(Path(entry))
        css = self._inline(Path(entry), resolve_import)
        source_map = '{"version": 3, "file": "%s"}' % Path(output).name
        return CompiledStylesheet(css=css, source_map=source_map)

    def _inline(self, path, resolve_import):
        lines = []
        for line in path.read_text(encoding="utf-8").splitlines():
            if line.strip() == "error":
                raise StylesheetCompileError(path, "Invalid CSS after \"error\"")
            match = IMPORT_RE.match(line)
            if not match:
                lines.append(line)
                continue
            resolved = resolve_import(match.group(1), path)
            if resolved is None:
                raise StylesheetCompileError(path, f"Can't find stylesheet to import: {match.group(1)}")
            lines.append(self._inline(resolved, resolve_import).rstrip("\n"))
        return "\n".join(lines) + "\n"


def write_files(root: Path, files: dict) -> Path:
    for rel, content in files.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")
    return root


@pytest.fixture(autouse=True)
def reset_satsuma_logger():
    # configure_logging() detaches the logger from the root; undo that so caplog sees records.
    logger = logging.getLogger("satsuma")
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def fake_compiler():
    return FakeCompiler()


@pytest.fixture
def make_project(tmp_path):
    """Return a factory writing files below a fresh project root."""

    def factory(files: dict | None = None, config: str | None = None) -> Path:
        root = tmp_path / "site"
        root.mkdir(exist_ok=True)
        if config is not None:
            (root / "satsuma.yaml").write_text(config, encoding="utf-8")
        return write_files(root, files or {})

    return factory

"""Exceptions raised by Satsuma.

Every error the build engine raises on purpose derives from SatsumaError so the
CLI and the orchestrator can report it without a traceback. Errors that are
isolated to one page or one stylesheet entry are logged and skipped by their
callers; only ConfigurationError is fatal.
"""

from __future__ import annotations

from pathlib import Path


class SatsumaError(Exception):
    """Base class for all Satsuma errors."""


class ConfigurationError(SatsumaError):
    """Invalid or incomplete configuration, raised before any build work."""


class TemplateResolutionError(SatsumaError):
    """A page names a template that does not exist under the templates directory.

    Attributes:
        page: Page that requested the template.
        template: Template name from the page configuration.
        candidate: Path that was looked up.
    """

    def __init__(self, page: Path, template: str, candidate: Path):
        self.page = page
        self.template = template
        self.candidate = candidate
        super().__init__(f"{page}: template '{template}' not found at {candidate}")


class StylesheetCompileError(SatsumaError):
    """The stylesheet compiler rejected an entry file.

    Attributes:
        entry: Stylesheet entry that failed to compile.
        message: Compiler message.
    """

    def __init__(self, entry: Path, message: str):
        self.entry = entry
        self.message = message
        super().__init__(f"{entry}: {message}")


class PathEscapeError(SatsumaError):
    """A computed output path resolves outside the public directory.

    Planner and committer build this error to describe the violation in the
    log, then drop the offending action instead of raising.
    """

    def __init__(self, output: Path, public_root: Path):
        self.output = output
        self.public_root = public_root
        super().__init__(f"refusing to touch {output}: outside public directory {public_root}")


def code_frame(source: str, line: int | None, column: int | None = None, context: int = 3) -> str:
    """Render a numbered excerpt of ``source`` around ``line``.

    The offending line is marked with ``>`` and, when a column is known,
    followed by a caret.

    Args:
        source: Full text of the file.
        line: 1-based line number of the error.
        column: Optional 0-based column of the error.
        context: Number of lines shown before and after the error line.

    Returns:
        Multi-line string suitable for logging.
    """
    lines = source.split("\n")
    target = max(1, line or 1)
    start = max(0, target - 1 - context)
    end = min(len(lines) - 1, target - 1 + context)

    output: list[str] = []
    for index in range(start, end + 1):
        marker = ">" if index == target - 1 else " "
        output.append(f"{marker} {index + 1:>4}  {lines[index]}")
        if index == target - 1 and column is not None:
            output.append(" " * 8 + " " * max(0, column) + "^")
    return "\n".join(output)

"""Planned filesystem effects.

An Action describes one change the committer may apply to the public
directory. Actions are immutable data; nothing happens until ``commit`` runs
them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Literal, Union

ActionKind = Literal["write", "copy", "remove"]


@dataclass(frozen=True)
class WriteAction:
    """Write ``content`` to ``output``."""

    output: Path
    content: str | bytes
    meta: dict[str, Any] = field(default_factory=dict, compare=False)
    kind: ClassVar[ActionKind] = "write"


@dataclass(frozen=True)
class CopyAction:
    """Copy the bytes of ``source`` to ``output``."""

    source: Path
    output: Path
    meta: dict[str, Any] = field(default_factory=dict, compare=False)
    kind: ClassVar[ActionKind] = "copy"


@dataclass(frozen=True)
class RemoveAction:
    """Remove ``output`` (a file or a whole directory)."""

    output: Path
    meta: dict[str, Any] = field(default_factory=dict, compare=False)
    kind: ClassVar[ActionKind] = "remove"


Action = Union[WriteAction, CopyAction, RemoveAction]


def label(action: Action) -> str | None:
    """Return the human-readable label of an action, if it has one."""
    return action.meta.get("label") if action.meta else None

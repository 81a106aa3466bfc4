"""Apply planned Actions to a storage adapter.

``commit`` is the only code that writes into the public directory. It skips
writes whose bytes are already on disk, re-checks that every target lies
inside the public directory, bounds in-flight I/O with a Limiter and reports
which outputs actually changed.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from .actions import Action, CopyAction, RemoveAction, WriteAction, label
from .config import DEFAULT_CONCURRENCY
from .errors import PathEscapeError
from .limiter import Limiter
from .logging import get_logger
from .protocols import StorageAdapter
from .storage import LocalStorage
from .utils import content_hash, is_path_inside, normalize_path, to_bytes

logger = get_logger(__name__)

Plan = AsyncIterable[Action] | Iterable[Action]


@dataclass
class CommitResult:
    """Outcome of a commit.

    Attributes:
        changed: Sorted, de-duplicated outputs that were written or removed.
    """

    changed: list[Path] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.changed)


def resolve_concurrency(value: object) -> int:
    """Return ``value`` if it is a positive integer, else the default bound."""
    if value is None:
        return DEFAULT_CONCURRENCY
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        logger.warning(
            "Invalid concurrency %r; falling back to %d", value, DEFAULT_CONCURRENCY
        )
        return DEFAULT_CONCURRENCY
    return value


async def _iterate(plan: Plan):
    if hasattr(plan, "__aiter__"):
        async for action in plan:
            yield action
    else:
        for action in plan:
            yield action


def _log_applied(action: Action) -> None:
    text = label(action)
    if text:
        logger.info("%s: %s", text, action.output)


async def _unchanged(storage: StorageAdapter, target: Path, data: bytes) -> bool:
    try:
        existing = await storage.read_file(target)
    except FileNotFoundError:
        return False
    return content_hash(existing) == content_hash(data)


async def _write_if_changed(
    storage: StorageAdapter, action: Action, data: bytes
) -> Path | None:
    target = normalize_path(action.output)
    if await _unchanged(storage, target, data):
        return None
    await storage.mkdir(target.parent)
    await storage.write_file(target, data)
    _log_applied(action)
    return target


async def _apply(action: Action, storage: StorageAdapter, public_root: Path) -> Path | None:
    target = normalize_path(action.output)
    if isinstance(action, RemoveAction):
        if target != public_root and not is_path_inside(public_root, target):
            logger.error("Skipping remove: %s", PathEscapeError(target, public_root))
            return None
        existed = await storage.path_exists(target)
        try:
            await storage.remove(target)
        except FileNotFoundError:
            return None
        if existed:
            _log_applied(action)
            return target
        return None

    if not is_path_inside(public_root, target):
        logger.error("Skipping %s: %s", action.kind, PathEscapeError(target, public_root))
        return None
    if isinstance(action, CopyAction):
        data = await storage.read_file(action.source)
    elif isinstance(action, WriteAction):
        data = to_bytes(action.content)
    else:
        logger.error("Skipping unknown action %r", action)
        return None
    return await _write_if_changed(storage, action, data)


async def commit(
    plan: Plan,
    storage: StorageAdapter | None = None,
    *,
    public_root: Path,
    concurrency: int | None = None,
) -> CommitResult:
    """Apply every action of ``plan`` and report what changed.

    Writes and copies wait for all previously scheduled removals, so a clean
    step finishes before the outputs that follow it are written.

    Args:
        plan: Sync or async iterable of actions.
        storage: Storage adapter; defaults to the real filesystem.
        public_root: Directory every target must stay inside.
        concurrency: Maximum in-flight actions; invalid values fall back to
            DEFAULT_CONCURRENCY.

    Returns:
        CommitResult listing changed outputs.

    Raises:
        OSError: Storage errors other than a missing remove target.
    """
    storage = storage or LocalStorage()
    public_root = normalize_path(public_root)
    limiter = Limiter(resolve_concurrency(concurrency))

    def schedule(action: Action) -> asyncio.Future:
        return asyncio.ensure_future(limiter.run(lambda: _apply(action, storage, public_root)))

    tasks: list[asyncio.Future] = []
    removals: list[asyncio.Future] = []
    try:
        async for action in _iterate(plan):
            if isinstance(action, RemoveAction):
                task = schedule(action)
                removals.append(task)
                tasks.append(task)
                continue
            if removals:
                await asyncio.gather(*removals)
                removals = []
            tasks.append(schedule(action))
        results = await asyncio.gather(*tasks)
    except BaseException:
        # Nothing may touch public/ once commit has raised.
        limiter.clear()
        for task in tasks:
            task.cancel()
        await limiter.join()
        raise

    changed = sorted({path for path in results if path is not None})
    return CommitResult(changed=changed)

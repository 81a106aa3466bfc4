"""Storage adapters for Satsuma.

The committer never touches the filesystem directly; it goes through one of the
adapters below.

Key classes:
- LocalStorage: Pass-through to the real filesystem, off the event loop.
- MemoryStorage: Dictionaries of files and directories, for deterministic tests.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from collections.abc import Mapping
from pathlib import Path

from .protocols import FileStat
from .utils import normalize_path, to_bytes


class LocalStorage:
    """Storage adapter backed by the real filesystem.

    pathlib and shutil are blocking, so every call runs in a worker thread via
    ``asyncio.to_thread``.
    """

    async def read_file(self, path: Path) -> bytes:
        return await asyncio.to_thread(Path(path).read_bytes)

    async def write_file(self, path: Path, data: bytes) -> None:
        await asyncio.to_thread(Path(path).write_bytes, to_bytes(data))

    async def mkdir(self, path: Path) -> None:
        await asyncio.to_thread(Path(path).mkdir, parents=True, exist_ok=True)

    async def remove(self, path: Path) -> None:
        await asyncio.to_thread(self._remove_sync, Path(path))

    async def readdir(self, path: Path) -> list[str]:
        return await asyncio.to_thread(lambda: sorted(os.listdir(path)))

    async def stat(self, path: Path) -> FileStat:
        return await asyncio.to_thread(self._stat_sync, Path(path))

    async def path_exists(self, path: Path) -> bool:
        return await asyncio.to_thread(os.path.lexists, path)

    @staticmethod
    def _remove_sync(path: Path) -> None:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
            return
        try:
            path.unlink()
        except FileNotFoundError:
            pass

    @staticmethod
    def _stat_sync(path: Path) -> FileStat:
        result = path.stat()
        return FileStat(
            is_file=path.is_file(),
            is_dir=path.is_dir(),
            size=result.st_size,
        )


class MemoryStorage:
    """In-memory storage adapter.

    Files live in a ``dict`` keyed by normalised absolute path, directories in a
    ``set``. Writing a file implicitly creates its parent directories.

    Attributes:
        files: Mapping of path string to file contents.
        directories: Set of known directory path strings.
    """

    def __init__(self, initial_files: Mapping[str | os.PathLike, bytes | str] | None = None):
        self.files: dict[str, bytes] = {}
        self.directories: set[str] = {os.sep}
        for target, content in (initial_files or {}).items():
            self._put(target, content)

    @staticmethod
    def _key(path: str | os.PathLike) -> str:
        return str(normalize_path(path))

    def _ensure_parents(self, key: str) -> None:
        for parent in Path(key).parents:
            self.directories.add(str(parent))

    def _put(self, path: str | os.PathLike, data: bytes | str) -> None:
        key = self._key(path)
        self._ensure_parents(key)
        self.files[key] = to_bytes(data)

    def _children(self, key: str) -> set[str]:
        prefix = key.rstrip(os.sep) + os.sep
        children: set[str] = set()
        for candidate in (*self.files, *self.directories):
            if candidate.startswith(prefix):
                rest = candidate[len(prefix) :]
                if rest:
                    children.add(rest.split(os.sep, 1)[0])
        return children

    async def read_file(self, path: Path) -> bytes:
        key = self._key(path)
        if key not in self.files:
            raise FileNotFoundError(2, "No such file or directory", str(path))
        return bytes(self.files[key])

    async def write_file(self, path: Path, data: bytes) -> None:
        key = self._key(path)
        if key in self.directories:
            raise IsADirectoryError(21, "Is a directory", str(path))
        self._put(key, data)

    async def mkdir(self, path: Path) -> None:
        key = self._key(path)
        self._ensure_parents(key)
        self.directories.add(key)

    async def remove(self, path: Path) -> None:
        key = self._key(path)
        prefix = key.rstrip(os.sep) + os.sep
        self.files.pop(key, None)
        for name in [f for f in self.files if f.startswith(prefix)]:
            del self.files[name]
        self.directories = {
            d for d in self.directories if d != key and not d.startswith(prefix)
        }
        self.directories.add(os.sep)

    async def readdir(self, path: Path) -> list[str]:
        key = self._key(path)
        children = self._children(key)
        if key not in self.directories and not children:
            raise FileNotFoundError(2, "No such file or directory", str(path))
        return sorted(children)

    async def stat(self, path: Path) -> FileStat:
        key = self._key(path)
        if key in self.directories:
            return FileStat(is_file=False, is_dir=True)
        if key in self.files:
            return FileStat(is_file=True, is_dir=False, size=len(self.files[key]))
        raise FileNotFoundError(2, "No such file or directory", str(path))

    async def path_exists(self, path: Path) -> bool:
        key = self._key(path)
        return key in self.files or key in self.directories

    def snapshot(self) -> dict[str, bytes]:
        """Return a copy of every stored file, for before/after comparisons."""
        return dict(self.files)

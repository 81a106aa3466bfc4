from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from typing import Any

from .content import PageEntry


class Collection(Sequence[dict]):
    """Ordered page summaries sharing a parent directory.

    Each item is ``{"config": {...}, "public_path": "/blog/post/"}``; items are
    kept sorted by ``public_path``.
    """

    def __init__(self, name: str, summaries: Iterable[dict[str, Any]]):
        self.name = name
        self._items = sorted(summaries, key=lambda item: item["public_path"])

    def __iter__(self) -> Iterator[dict]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, item):
        return self._items[item]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Collection):
            return self.name == other.name and self._items == other._items
        if isinstance(other, list):
            return self._items == other
        return NotImplemented

    def with_tag(self, tag: str) -> Collection:
        return Collection(
            self.name,
            (item for item in self._items if tag in (item["config"].get("tags") or [])),
        )

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Collection({self.name!r}, {len(self._items)} pages)"


def build_collections(entries: Iterable[PageEntry]) -> dict[str, Collection]:
    """Group page entries into collections keyed by parent directory name.

    Entries directly inside the pages root have no collection and are left out.
    """
    grouped: dict[str, list[dict[str, Any]]] = {}
    for entry in entries:
        if entry.collection is None:
            continue
        grouped.setdefault(entry.collection, []).append(entry.summary())
    return {name: Collection(name, items) for name, items in sorted(grouped.items())}


class CollectionAccessor:
    """Read-tracked view over the collections, handed to templates as ``collections``.

    Every ``get`` reports the collection name to ``on_read`` before returning, so
    a page only depends on the collections its templates actually looked at.
    Unknown names return an empty collection (and are still recorded, so the page
    re-renders once the collection appears).
    """

    def __init__(self, collections: Mapping[str, Collection], on_read: Callable[[str], None]):
        self._collections = collections
        self._on_read = on_read

    def get(self, name: str) -> Collection:
        self._on_read(name)
        return self._collections.get(name) or Collection(name, [])

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"CollectionAccessor({len(self._collections)} collections)"

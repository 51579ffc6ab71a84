"""Volatile backend: content lives only as long as the process."""

from __future__ import annotations

from inkwell.content.models import Header, Index, Item
from inkwell.content.providers.base import IndexLoadResult, PersistenceBackend
from inkwell.errors import CouldNotLoadError


class MemoryBackend(PersistenceBackend):
    """Keeps the index and items in dictionaries.

    Writes always succeed.  Stored objects are copies, so callers cannot
    change persisted state by mutating what they passed in.
    """

    name = "memory"

    def __init__(self) -> None:
        self._index: Index | None = None
        self._items: dict[str, Item] = {}

    def load_index(self) -> IndexLoadResult:
        if self._index is None:
            return IndexLoadResult.missing()
        return IndexLoadResult.found(self._index.model_copy(deep=True))

    def save_index(self, index: Index) -> None:
        self._index = index.model_copy(deep=True)

    def load_item(self, header: Header) -> Item:
        item = self._items.get(header.id)
        if item is None:
            raise CouldNotLoadError(f"No stored item for id {header.id!r}")
        return item.duplicate()

    def save_item(self, item: Item) -> None:
        self._items[item.header.id] = item.duplicate()

    def discard_item(self, header: Header) -> None:
        self._items.pop(header.id, None)

"""Persistence backend contract used by ``ContentStore``.

A backend only moves the index and individual items to and from its
medium.  Identity assignment, index maintenance and searching live in
the store, so every backend behaves the same above this line.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum

from inkwell.content.models import Header, Index, Item


class IndexLoadStatus(StrEnum):
    FOUND = "found"
    MISSING = "missing"


@dataclass(frozen=True)
class IndexLoadResult:
    """Outcome of ``PersistenceBackend.load_index``.

    ``MISSING`` means no index has been stored yet (first run).  Any
    other failure is raised as ``CouldNotLoadError`` instead.
    """

    status: IndexLoadStatus
    index: Index | None = None

    @classmethod
    def found(cls, index: Index) -> IndexLoadResult:
        return cls(IndexLoadStatus.FOUND, index)

    @classmethod
    def missing(cls) -> IndexLoadResult:
        return cls(IndexLoadStatus.MISSING)


class PersistenceBackend(ABC):
    """Base class for content persistence strategies."""

    name: str = "backend"

    @abstractmethod
    def load_index(self) -> IndexLoadResult:
        """Read the stored index, or report that none exists."""

    @abstractmethod
    def save_index(self, index: Index) -> None:
        """Persist the whole index. Raises ``CouldNotSaveError``."""

    @abstractmethod
    def load_item(self, header: Header) -> Item:
        """Read the item for ``header.id``. Raises ``CouldNotLoadError``."""

    @abstractmethod
    def save_item(self, item: Item) -> None:
        """Persist a full item. Raises ``CouldNotSaveError``."""

    @abstractmethod
    def discard_item(self, header: Header) -> None:
        """Remove the stored item for ``header.id`` if there is one.

        Used to undo the item write of a new entry whose index write
        failed. Raises ``CouldNotSaveError``.
        """

    def describe(self) -> str:
        """Human-readable location, for logs and the CLI."""
        return self.name

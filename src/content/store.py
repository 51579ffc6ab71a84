"""Content store engine shared by every persistence backend.

``ContentStore`` owns the in-memory ``Index`` and the identity sequence.
It assigns ids, keeps one header per id, filters listings and enforces
the initialise-before-use rule.  The raw persistence step is delegated
to a ``PersistenceBackend`` strategy object.

Writes persist first and commit second: the new index is built as a
separate object, written through the backend together with the item,
and only swapped in once both writes succeed.  A failed write leaves
the in-memory index exactly as it was.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from inkwell.content.ids import IdCodec
from inkwell.content.models import Header, HeaderState, Index, Item, SearchRequest
from inkwell.content.providers.base import IndexLoadStatus, PersistenceBackend
from inkwell.content.search import count_tags, search
from inkwell.errors import (
    CouldNotLoadError,
    CouldNotSaveError,
    InvalidIdError,
    ItemNotFoundError,
    NotInitialisedError,
    StoreError,
)

logger = logging.getLogger(__name__)

# Alias to avoid shadowing by ContentStore.list method
_list = list

HeaderRef = Header | str


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class ContentStore:
    """Index-maintaining content store over a pluggable backend.

    Thread-safe: one re-entrant lock guards the index reference and the
    id sequence.  Committed indexes are never mutated, so listings work
    on a snapshot taken under the lock.
    """

    def __init__(
        self,
        backend: PersistenceBackend,
        codec: IdCodec | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.backend = backend
        self.codec = codec or IdCodec()
        self._clock = clock or _utcnow
        self._lock = threading.RLock()
        self._index: Index | None = None
        self._sequence = 0

    # ── Private helpers ──────────────────────────────────────────

    def _require_index(self) -> Index:
        if self._index is None or not self._index.initialised:
            raise NotInitialisedError()
        return self._index

    def _resolve(self, ref: HeaderRef) -> Header:
        """Find the indexed header for a reference. Caller holds the lock."""
        index = self._require_index()
        header_id = ref if isinstance(ref, str) else ref.id
        if not header_id:
            raise ItemNotFoundError(header_id)
        header = index.get(header_id)
        if header is None:
            raise ItemNotFoundError(header_id)
        return header

    def _highest_sequence(self, index: Index) -> int:
        highest = 0
        for header in index.headers:
            try:
                highest = max(highest, self.codec.decode(header.id))
            except InvalidIdError:
                logger.warning("Skipping undecodable id %r in index", header.id)
        return highest

    def _next_timestamp(self, previous: datetime | None) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        if previous is not None:
            if previous.tzinfo is None:
                previous = previous.replace(tzinfo=UTC)
            if now <= previous:
                now = previous + timedelta(microseconds=1)
        return now

    def _previous_version(self, header: Header) -> Item | None:
        """Read the stored item an update is about to replace."""
        try:
            return self.backend.load_item(header)
        except StoreError as exc:
            logger.warning("No readable stored version of %s to restore: %s", header.id, exc)
            return None

    def _roll_back(self, item: Item, previous: Item | None, is_new: bool) -> None:
        """Undo an item write whose index write failed."""
        header_id = item.header.id
        try:
            if is_new:
                self.backend.discard_item(item.header)
            elif previous is not None:
                self.backend.save_item(previous)
            else:
                logger.warning("Item %s left as written; no earlier version to restore", header_id)
        except Exception as exc:
            logger.error("Could not roll back item %s: %s", header_id, exc)

    def _persist(self, item: Item, candidate: Index, previous: Item | None, is_new: bool) -> None:
        """Write item then index through the backend.

        If the index write fails, the item write is undone: a new item is
        discarded and a replaced one is written back.
        """
        try:
            self.backend.save_item(item)
        except StoreError as exc:
            logger.warning("Save of %s failed: %s", item.header.id, exc)
            raise
        except Exception as exc:
            logger.warning("Save of %s failed: %s", item.header.id, exc)
            raise CouldNotSaveError(f"Could not save item {item.header.id!r}: {exc}") from exc

        try:
            self.backend.save_index(candidate)
        except StoreError as exc:
            logger.warning("Index write for %s failed: %s", item.header.id, exc)
            self._roll_back(item, previous, is_new)
            raise
        except Exception as exc:
            logger.warning("Index write for %s failed: %s", item.header.id, exc)
            self._roll_back(item, previous, is_new)
            raise CouldNotSaveError(f"Could not save item {item.header.id!r}: {exc}") from exc

    # ── Lifecycle ────────────────────────────────────────────────

    @property
    def initialised(self) -> bool:
        index = self._index
        return index is not None and index.initialised

    def initialise(self) -> None:
        """Load the index from the backend, creating a blank one on first run.

        Raises:
            CouldNotLoadError: The stored index exists but cannot be read.
            CouldNotSaveError: A blank index could not be written.
            NotInitialisedError: The store is still not usable afterwards.
        """
        with self._lock:
            try:
                result = self.backend.load_index()
            except StoreError:
                raise
            except Exception as exc:
                raise CouldNotLoadError(f"Could not load index: {exc}") from exc

            if result.status == IndexLoadStatus.MISSING:
                logger.info("Creating blank index in %s", self.backend.describe())
                index = Index()
                try:
                    self.backend.save_index(index)
                except StoreError:
                    raise
                except Exception as exc:
                    raise CouldNotSaveError(f"Could not create index: {exc}") from exc
            else:
                index = result.index

            if index is not None:
                index.mark_initialised()
                self._index = index
                self._sequence = self._highest_sequence(index)

            if not self.initialised:
                raise NotInitialisedError()
            logger.info(
                "Initialised %s store at %s with %d entries",
                self.backend.name,
                self.backend.describe(),
                len(self._index.headers),
            )

    # ── Read operations ──────────────────────────────────────────

    def load(self, ref: HeaderRef) -> Item:
        """Return the full item for a header reference or id.

        Raises:
            ItemNotFoundError: The id is not in the index (backend untouched).
            CouldNotLoadError: The backend could not produce the item.
        """
        with self._lock:
            header = self._resolve(ref)
        try:
            return self.backend.load_item(header)
        except StoreError:
            raise
        except Exception as exc:
            raise CouldNotLoadError(f"Could not load item {header.id!r}: {exc}") from exc

    def list(self, request: SearchRequest | None = None) -> _list[Header]:
        """Return headers matching ``request`` (deleted ones excluded by default)."""
        with self._lock:
            snapshot = self._require_index()
        return [h.model_copy(deep=True) for h in search(snapshot.headers, request)]

    def exists(self, header_id: str) -> bool:
        """Check whether the index holds this id."""
        with self._lock:
            return self._require_index().contains(header_id)

    def tag_counts(self, request: SearchRequest | None = None) -> dict[str, int]:
        """Count tags across the headers a listing would return, ignoring paging."""
        with self._lock:
            snapshot = self._require_index()
        return count_tags(snapshot.headers, request)

    # ── Write operations ─────────────────────────────────────────

    def save(self, item: Item) -> Item:
        """Create or update an item and return the saved copy.

        A blank id gets the next identity and is appended to the index;
        an existing id is replaced in place.  ``updated_date`` is always
        refreshed.

        Raises:
            ItemNotFoundError: The item carries an id the index does not know.
            CouldNotSaveError: The backend write failed; nothing was committed.
        """
        with self._lock:
            index = self._require_index()
            saved = item.duplicate()
            header = saved.header

            is_new = header.is_new
            if is_new:
                sequence = self._sequence + 1
                header.id = self.codec.encode(sequence)
                last_updated = None
                previous = None
                logger.debug("Assigned id %s to new item %r", header.id, header.name)
            else:
                sequence = self._sequence
                indexed = self._resolve(header.id)
                last_updated = indexed.updated_date
                previous = self._previous_version(indexed)

            header.updated_date = self._next_timestamp(last_updated)
            candidate = index.with_header(header.model_copy(deep=True))

            self._persist(saved, candidate, previous, is_new)

            self._index = candidate
            self._sequence = sequence
            logger.debug("Saved %s (%s)", header.id, header.state)
            return saved.duplicate()

    def delete(self, ref: HeaderRef) -> Header:
        """Mark an item deleted. The entry stays in the index.

        Raises:
            ItemNotFoundError: The id is not in the index.
            CouldNotLoadError: The body could not be read for re-saving.
            CouldNotSaveError: The state change could not be persisted.
        """
        with self._lock:
            item = self.load(ref)
            item.header.state = HeaderState.DELETED
            saved = self.save(item)
            logger.info("Deleted %s", saved.header.id)
            return saved.header

    # ── Identity codec ───────────────────────────────────────────

    def encode_id(self, sequence: int) -> str:
        return self.codec.encode(sequence)

    def decode_id(self, value: str) -> int:
        return self.codec.decode(value)

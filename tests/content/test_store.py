"""Tests for ContentStore: index maintenance over the memory backend."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from unittest.mock import patch

import pytest
from inkwell.content.ids import IdCodec
from inkwell.content.models import Header, HeaderState, Index, Item, SearchRequest
from inkwell.content.providers.base import IndexLoadResult, IndexLoadStatus
from inkwell.content.providers.memory import MemoryBackend
from inkwell.content.store import ContentStore
from inkwell.errors import (
    CouldNotLoadError,
    CouldNotSaveError,
    ItemNotFoundError,
    NotInitialisedError,
)

FROZEN = datetime(2024, 5, 1, 9, 30, tzinfo=UTC)


def _make_item(
    name: str = "First post",
    content: str = "Hello",
    **header_kwargs: object,
) -> Item:
    """Helper to build a transient Item with sensible defaults."""
    header_kwargs.setdefault("author", "Ada")
    return Item(header=Header(name=name, **header_kwargs), content=content)  # type: ignore[arg-type]


def _store(backend: MemoryBackend | None = None, **kwargs: object) -> ContentStore:
    store = ContentStore(backend or MemoryBackend(), **kwargs)  # type: ignore[arg-type]
    store.initialise()
    return store


class TestInitialise:
    def test_not_initialised_before_call(self):
        store = ContentStore(MemoryBackend())
        assert store.initialised is False

    def test_initialised_after_call(self):
        store = _store()
        assert store.initialised is True
        assert store.list() == []

    @pytest.mark.parametrize("operation", ["load", "delete", "exists"])
    def test_id_operations_require_initialise(self, operation: str):
        store = ContentStore(MemoryBackend())
        with pytest.raises(NotInitialisedError):
            getattr(store, operation)("anything")

    def test_save_requires_initialise(self):
        with pytest.raises(NotInitialisedError):
            ContentStore(MemoryBackend()).save(_make_item())

    def test_list_requires_initialise(self):
        with pytest.raises(NotInitialisedError):
            ContentStore(MemoryBackend()).list()

    def test_blank_index_is_persisted(self):
        backend = MemoryBackend()
        _store(backend)
        assert backend.load_index().status == "found"

    def test_reinitialise_keeps_content(self):
        backend = MemoryBackend()
        store = _store(backend)
        saved = store.save(_make_item())
        store.initialise()
        assert store.load(saved.header.id).content == "Hello"

    def test_new_store_continues_sequence(self):
        backend = MemoryBackend()
        first = _store(backend)
        first.save(_make_item(name="one"))
        first.save(_make_item(name="two"))

        second = _store(backend)
        saved = second.save(_make_item(name="three"))
        assert second.decode_id(saved.header.id) == 3

    def test_load_failure_propagates(self):
        backend = MemoryBackend()
        with patch.object(backend, "load_index", side_effect=CouldNotLoadError("disk gone")):
            store = ContentStore(backend)
            with pytest.raises(CouldNotLoadError):
                store.initialise()
        assert store.initialised is False

    def test_unexpected_load_failure_is_wrapped(self):
        backend = MemoryBackend()
        with patch.object(backend, "load_index", side_effect=RuntimeError("boom")):
            store = ContentStore(backend)
            with pytest.raises(CouldNotLoadError) as excinfo:
                store.initialise()
        assert isinstance(excinfo.value.__cause__, RuntimeError)

    def test_bootstrap_write_failure(self):
        backend = MemoryBackend()
        with patch.object(backend, "save_index", side_effect=OSError("read-only")):
            store = ContentStore(backend)
            with pytest.raises(CouldNotSaveError):
                store.initialise()
        assert store.initialised is False

    def test_found_without_index_is_not_initialised(self):
        backend = MemoryBackend()
        with patch.object(backend, "load_index", return_value=IndexLoadResult(status=IndexLoadStatus.FOUND)):
            store = ContentStore(backend)
            with pytest.raises(NotInitialisedError):
                store.initialise()

    def test_undecodable_ids_are_skipped(self, caplog: pytest.LogCaptureFixture):
        codec = IdCodec()
        backend = MemoryBackend()
        backend.save_index(
            Index(headers=[Header(id="legacy-1", name="old"), Header(id=codec.encode(4), name="x")])
        )
        store = ContentStore(backend, codec=codec)
        with caplog.at_level(logging.WARNING, logger="inkwell.content.store"):
            store.initialise()
        assert any("legacy-1" in r.getMessage() for r in caplog.records)

        saved = store.save(_make_item())
        assert store.decode_id(saved.header.id) == 5


class TestSaveNew:
    def test_assigns_id(self):
        store = _store()
        saved = store.save(_make_item())
        assert saved.header.id != ""
        assert store.decode_id(saved.header.id) == 1

    def test_ids_follow_sequence(self):
        store = _store()
        ids = [store.save(_make_item(name=f"post {n}")).header.id for n in range(3)]
        assert [store.decode_id(i) for i in ids] == [1, 2, 3]
        assert len(set(ids)) == 3

    def test_sets_updated_date(self):
        store = _store(clock=lambda: FROZEN)
        saved = store.save(_make_item())
        assert saved.header.updated_date == FROZEN

    def test_caller_item_not_mutated(self):
        store = _store()
        item = _make_item()
        store.save(item)
        assert item.header.id == ""
        assert item.header.updated_date is None

    def test_appends_to_index(self):
        store = _store()
        a = store.save(_make_item(name="a"))
        b = store.save(_make_item(name="b"))
        assert [h.id for h in store.list()] == [a.header.id, b.header.id]

    def test_new_item_starts_unpublished(self):
        store = _store()
        saved = store.save(_make_item())
        assert saved.header.state == HeaderState.UNPUBLISHED

    def test_load_round_trip(self):
        store = _store()
        saved = store.save(
            _make_item(
                name="Round trip",
                content="Body text",
                description="desc",
                tags=["python", "testing"],
            )
        )
        loaded = store.load(saved.header.id)
        assert loaded.content == "Body text"
        assert loaded.header == saved.header

    def test_naive_clock_is_treated_as_utc(self):
        store = _store(clock=lambda: datetime(2024, 1, 1, 8, 0))
        saved = store.save(_make_item())
        assert saved.header.updated_date == datetime(2024, 1, 1, 8, 0, tzinfo=UTC)


class TestSaveExisting:
    def test_replaces_without_duplicating(self):
        store = _store()
        saved = store.save(_make_item(name="v1"))
        saved.header.name = "v2"
        store.save(saved)

        matching = [h for h in store.list() if h.id == saved.header.id]
        assert len(matching) == 1
        assert matching[0].name == "v2"

    def test_updated_date_strictly_increases(self):
        store = _store(clock=lambda: FROZEN)
        first = store.save(_make_item())
        second = store.save(first)
        third = store.save(second)
        assert first.header.updated_date < second.header.updated_date < third.header.updated_date

    def test_preserves_index_order(self):
        store = _store()
        a = store.save(_make_item(name="a"))
        b = store.save(_make_item(name="b"))
        c = store.save(_make_item(name="c"))
        a.header.name = "a2"
        store.save(a)
        assert [h.id for h in store.list()] == [a.header.id, b.header.id, c.header.id]
        assert store.list()[0].name == "a2"

    def test_does_not_advance_sequence(self):
        store = _store()
        a = store.save(_make_item())
        store.save(a)
        b = store.save(_make_item(name="b"))
        assert store.decode_id(b.header.id) == 2

    def test_unknown_id_is_not_found(self):
        store = _store()
        item = _make_item()
        item.header.id = store.encode_id(99)
        with pytest.raises(ItemNotFoundError):
            store.save(item)

    def test_publish_transition(self):
        store = _store()
        saved = store.save(_make_item())
        saved.header.state = HeaderState.PUBLISHED
        saved.header.published_date = FROZEN
        store.save(saved)
        header = store.list()[0]
        assert header.state == HeaderState.PUBLISHED
        assert header.published_date == FROZEN


class TestSaveFailure:
    def test_item_write_failure_leaves_index_unchanged(self):
        backend = MemoryBackend()
        store = _store(backend)
        with patch.object(backend, "save_item", side_effect=CouldNotSaveError("disk full")):
            with pytest.raises(CouldNotSaveError):
                store.save(_make_item())
        assert store.list() == []

    def test_index_write_failure_is_wrapped(self):
        backend = MemoryBackend()
        store = _store(backend)
        with patch.object(backend, "save_index", side_effect=OSError("disk full")):
            with pytest.raises(CouldNotSaveError) as excinfo:
                store.save(_make_item())
        assert isinstance(excinfo.value.__cause__, OSError)
        assert store.list() == []

    def test_sequence_not_consumed_by_failed_save(self):
        backend = MemoryBackend()
        store = _store(backend)
        with patch.object(backend, "save_item", side_effect=CouldNotSaveError("disk full")):
            with pytest.raises(CouldNotSaveError):
                store.save(_make_item())
        saved = store.save(_make_item())
        assert store.decode_id(saved.header.id) == 1

    def test_failed_update_keeps_old_header(self):
        backend = MemoryBackend()
        store = _store(backend)
        saved = store.save(_make_item(name="before"))
        saved.header.name = "after"
        with patch.object(backend, "save_index", side_effect=CouldNotSaveError("nope")):
            with pytest.raises(CouldNotSaveError):
                store.save(saved)
        assert store.list()[0].name == "before"

    def test_failed_update_restores_stored_item(self):
        backend = MemoryBackend()
        store = _store(backend)
        saved = store.save(_make_item(name="before", content="hello"))
        saved.header.name = "after"
        saved.content = "changed"
        with patch.object(backend, "save_index", side_effect=CouldNotSaveError("nope")):
            with pytest.raises(CouldNotSaveError):
                store.save(saved)
        loaded = store.load(saved.header.id)
        assert loaded.header.name == "before"
        assert loaded.content == "hello"

    def test_failed_delete_restores_stored_item(self):
        backend = MemoryBackend()
        store = _store(backend)
        saved = store.save(_make_item())
        with patch.object(backend, "save_index", side_effect=CouldNotSaveError("nope")):
            with pytest.raises(CouldNotSaveError):
                store.delete(saved.header.id)
        assert store.list()[0].state == HeaderState.UNPUBLISHED
        assert store.load(saved.header.id).header.state == HeaderState.UNPUBLISHED

    def test_failed_create_discards_stored_item(self):
        backend = MemoryBackend()
        store = _store(backend)
        with patch.object(backend, "save_index", side_effect=CouldNotSaveError("nope")):
            with pytest.raises(CouldNotSaveError):
                store.save(_make_item())
        with pytest.raises(CouldNotLoadError):
            backend.load_item(Header(id=store.encode_id(1)))

    def test_rollback_failure_keeps_original_error(self, caplog: pytest.LogCaptureFixture):
        backend = MemoryBackend()
        store = _store(backend)
        with (
            patch.object(backend, "save_index", side_effect=CouldNotSaveError("index write failed")),
            patch.object(backend, "discard_item", side_effect=OSError("busy")),
            caplog.at_level(logging.ERROR, logger="inkwell.content.store"),
        ):
            with pytest.raises(CouldNotSaveError, match="index write failed"):
                store.save(_make_item())
        assert "Could not roll back" in caplog.text


class TestLoad:
    def test_missing_id_does_not_touch_backend(self):
        backend = MemoryBackend()
        store = _store(backend)
        with patch.object(backend, "load_item") as load_item:
            with pytest.raises(ItemNotFoundError):
                store.load(store.encode_id(7))
            load_item.assert_not_called()

    def test_empty_id_is_not_found(self):
        with pytest.raises(ItemNotFoundError):
            _store().load("")

    def test_accepts_header_reference(self):
        store = _store()
        saved = store.save(_make_item(content="by header"))
        assert store.load(Header(id=saved.header.id)).content == "by header"

    def test_backend_failure_is_could_not_load(self):
        backend = MemoryBackend()
        store = _store(backend)
        saved = store.save(_make_item())
        with patch.object(backend, "load_item", side_effect=KeyError("gone")):
            with pytest.raises(CouldNotLoadError):
                store.load(saved.header.id)

    def test_not_found_error_carries_id(self):
        with pytest.raises(ItemNotFoundError) as excinfo:
            _store().load("abc")
        assert excinfo.value.header_id == "abc"


class TestList:
    def test_returns_copies(self):
        store = _store()
        store.save(_make_item(name="original"))
        listed = store.list()
        listed[0].name = "mutated"
        assert store.list()[0].name == "original"

    def test_applies_request(self):
        store = _store()
        store.save(_make_item(name="python post", tags=["python"]))
        store.save(_make_item(name="food post", tags=["food"]))
        result = store.list(SearchRequest(tags=["food"]))
        assert [h.name for h in result] == ["food post"]

    def test_does_not_call_backend(self):
        backend = MemoryBackend()
        store = _store(backend)
        store.save(_make_item())
        with (
            patch.object(backend, "load_item") as load_item,
            patch.object(backend, "load_index") as load_index,
        ):
            store.list()
        load_item.assert_not_called()
        load_index.assert_not_called()

    def test_exists(self):
        store = _store()
        saved = store.save(_make_item())
        assert store.exists(saved.header.id) is True
        assert store.exists(store.encode_id(50)) is False

    def test_tag_counts(self):
        store = _store()
        store.save(_make_item(tags=["python", "async"]))
        store.save(_make_item(tags=["python"]))
        assert store.tag_counts() == {"python": 2, "async": 1}


class TestDelete:
    def test_excluded_from_default_listing(self):
        store = _store()
        saved = store.save(_make_item())
        store.delete(saved.header)
        assert store.list() == []

    def test_included_when_requested(self):
        store = _store()
        saved = store.save(_make_item())
        store.delete(saved.header.id)
        listed = store.list(SearchRequest(include_deleted=True))
        assert [h.id for h in listed] == [saved.header.id]
        assert listed[0].state == HeaderState.DELETED

    def test_returns_deleted_header(self):
        store = _store()
        saved = store.save(_make_item())
        header = store.delete(saved.header.id)
        assert header.state == HeaderState.DELETED
        assert header.id == saved.header.id

    def test_keeps_body(self):
        store = _store()
        saved = store.save(_make_item(content="keep me"))
        store.delete(saved.header.id)
        assert store.load(saved.header.id).content == "keep me"

    def test_unknown_id(self):
        store = _store()
        with pytest.raises(ItemNotFoundError):
            store.delete(store.encode_id(3))

    def test_ids_are_not_reused(self):
        store = _store()
        first = store.save(_make_item())
        store.delete(first.header.id)
        second = store.save(_make_item())
        assert second.header.id != first.header.id
        assert store.decode_id(second.header.id) == 2


class TestConcurrency:
    def test_parallel_saves_get_distinct_ids(self):
        store = _store()

        def _save(n: int) -> str:
            return store.save(_make_item(name=f"post {n}", content=f"body {n}")).header.id

        with ThreadPoolExecutor(max_workers=8) as pool:
            ids = list(pool.map(_save, range(40)))

        assert len(set(ids)) == 40
        assert len(store.list()) == 40
        bodies = {store.load(i).content for i in ids}
        assert bodies == {f"body {n}" for n in range(40)}


class TestIdCodec:
    def test_round_trip(self):
        store = _store()
        assert store.decode_id(store.encode_id(12345)) == 12345

    def test_custom_codec(self):
        codec = IdCodec("zyxwvutsrqponmlkjihgfedcba9876543210")
        store = _store(codec=codec)
        saved = store.save(_make_item())
        assert codec.decode(saved.header.id) == 1

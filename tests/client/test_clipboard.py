"""Tests for clipboard history."""

from __future__ import annotations

from collections.abc import Callable, Generator

import pytest

from padsync.client.clipboard import ClipboardHistory
from padsync.client.state import LocalSyncState
from padsync.client.store import DocumentStore
from padsync.client.sync.engine import SyncEngine
from padsync.client.sync.transports.blob import BlobTransport
from padsync.client.sync.transports.memory import MemoryKeyValueStore
from padsync.client.sync.types import NotFoundError
from padsync.core.config import SyncSettings
from padsync.core.types import DocumentKind

CLIP = DocumentKind.CLIPBOARD

HistoryFactory = Callable[..., ClipboardHistory]


@pytest.fixture
def backend() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def make_history(backend: MemoryKeyValueStore) -> Generator[HistoryFactory, None, None]:
    """Build a ClipboardHistory over a real engine."""
    opened: list[tuple[SyncEngine, LocalSyncState]] = []

    def make(enabled: bool = False, max_local: int | None = None) -> ClipboardHistory:
        settings = SyncSettings(debounce_delay=60.0)
        state = LocalSyncState(":memory:")
        state.set_sync_enabled(enabled)
        stores = {CLIP: DocumentStore(CLIP)}
        engine = SyncEngine(stores, BlobTransport(backend, settings), state, settings)
        opened.append((engine, state))
        return ClipboardHistory(stores[CLIP], engine, max_local=max_local)

    yield make
    for engine, state in opened:
        engine.close()
        state.close()


class TestCapture:
    """Tests for adding entries."""

    def test_add_entry_trims_text(self, make_history: HistoryFactory) -> None:
        history = make_history()
        entry = history.add_entry("  hello \n")
        assert entry is not None
        assert entry.text == "hello"
        assert history.entries() == [entry]

    def test_blank_ignored(self, make_history: HistoryFactory) -> None:
        history = make_history()
        assert history.add_entry("   ") is None
        assert history.capture(None) is None
        assert history.entries() == []

    def test_repeat_of_newest_ignored(self, make_history: HistoryFactory) -> None:
        """Copying the same text twice in a row records it once."""
        history = make_history()
        history.add_entry("same")
        assert history.add_entry("same") is None
        history.add_entry("other")
        assert history.add_entry("same") is not None
        assert [e.text for e in history.entries()] == ["same", "other", "same"]

    def test_newest_first(self, make_history: HistoryFactory) -> None:
        history = make_history()
        history.add_entry("first")
        history.add_entry("second")
        assert [e.text for e in history.entries()] == ["second", "first"]

    def test_local_cap(self, make_history: HistoryFactory) -> None:
        """Entries beyond the local cap are dropped without tombstones."""
        history = make_history(enabled=True, max_local=2)
        for text in ("a", "b", "c"):
            history.add_entry(text)
            future = history.last_append
            assert future is not None
            future.result(timeout=5)
        assert [e.text for e in history.entries()] == ["c", "b"]

    def test_capture_appends_remotely(
        self, make_history: HistoryFactory, backend: MemoryKeyValueStore
    ) -> None:
        history = make_history(enabled=True)
        entry = history.capture("copied")
        assert entry is not None
        assert history.last_append is not None
        history.last_append.result(timeout=5)
        assert backend.get("clipboard") is not None

    def test_disabled_capture_stays_local(
        self, make_history: HistoryFactory, backend: MemoryKeyValueStore
    ) -> None:
        history = make_history()
        history.capture("copied")
        assert history.last_append is None
        assert backend.get("clipboard") is None


class TestDeleteAndClear:
    """Tests for removing entries."""

    def test_delete_entry(self, make_history: HistoryFactory) -> None:
        history = make_history(enabled=True)
        entry = history.add_entry("x")
        assert entry is not None
        assert history.delete_entry(entry.id)
        assert history.entries() == []
        assert not history.delete_entry(entry.id)

    def test_clear_all_enabled(self, make_history: HistoryFactory) -> None:
        history = make_history(enabled=True)
        history.add_entry("a")
        history.add_entry("b")
        future = history.clear_all()
        assert future is not None
        future.result(timeout=5)
        assert history.entries() == []

    def test_clear_all_disabled(self, make_history: HistoryFactory) -> None:
        history = make_history()
        history.add_entry("a")
        assert history.clear_all() is None
        assert history.entries() == []


class TestQueries:
    """Tests for search and lookup."""

    def test_search_case_insensitive(self, make_history: HistoryFactory) -> None:
        history = make_history()
        history.add_entry("Hello World")
        history.add_entry("goodbye")
        assert [e.text for e in history.search("WORLD")] == ["Hello World"]
        assert len(history.search("  ")) == 2

    def test_find_by_prefix(self, make_history: HistoryFactory) -> None:
        history = make_history()
        history.add_entry("a", entry_id="AAA1")
        history.add_entry("b", entry_id="AAB2")
        assert history.find_by_prefix("aaa").text == "a"
        with pytest.raises(NotFoundError):
            history.find_by_prefix("AA")
        with pytest.raises(NotFoundError):
            history.find_by_prefix("Z")

    def test_wrong_store_kind(self, make_history: HistoryFactory) -> None:
        history = make_history()
        engine = history._engine
        with pytest.raises(ValueError):
            ClipboardHistory(DocumentStore(DocumentKind.TAB), engine)

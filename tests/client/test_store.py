"""Tests for DocumentStore."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from padsync.client.documents import ClipboardEntry, TabDocument
from padsync.client.store import DocumentStore
from padsync.client.sync.types import (
    MutationOrigin,
    NotFoundError,
    PersistenceError,
    StoreMutation,
)
from padsync.core.types import DocumentKind


@pytest.fixture
def store(tmp_path: Path) -> DocumentStore:
    """Create a tab store with a snapshot file."""
    return DocumentStore(DocumentKind.TAB, tmp_path / "tabs.json")


class TestQueries:
    """Tests for store queries."""

    def test_get_missing_raises(self, store: DocumentStore) -> None:
        """get() raises NotFoundError for unknown ids."""
        with pytest.raises(NotFoundError):
            store.get("missing")

    def test_find_missing_returns_none(self, store: DocumentStore) -> None:
        assert store.find("missing") is None

    def test_list_keeps_insertion_order(self, store: DocumentStore) -> None:
        """Documents are listed in collection order."""
        tabs = [TabDocument(id=i) for i in ("A", "B", "C")]
        for tab in tabs:
            store.upsert(tab)
        assert [d.id for d in store.list()] == ["A", "B", "C"]

    def test_syncable_excludes_file_tabs(self, store: DocumentStore) -> None:
        """File-bound tabs are not part of the syncable view."""
        store.upsert(TabDocument(id="A"))
        store.upsert(TabDocument(id="B", file_path="/tmp/b.txt"))
        assert [d.id for d in store.syncable()] == ["A"]
        assert len(store) == 2

    def test_index_of(self, store: DocumentStore) -> None:
        store.upsert(TabDocument(id="A"))
        store.upsert(TabDocument(id="B"))
        assert store.index_of("B") == 1
        with pytest.raises(NotFoundError):
            store.index_of("Z")


class TestMutations:
    """Tests for store mutations."""

    def test_upsert_replaces_in_place(self, store: DocumentStore) -> None:
        """Upserting an existing id keeps its position."""
        store.upsert(TabDocument(id="A", content="1"))
        store.upsert(TabDocument(id="B"))
        store.upsert(TabDocument(id="A", content="2"))
        assert [d.id for d in store.list()] == ["A", "B"]
        assert store.get("A").content == "2"  # type: ignore[attr-defined]

    def test_upsert_rejects_other_kind(self, store: DocumentStore) -> None:
        """A tab store refuses clipboard entries."""
        with pytest.raises(TypeError):
            store.upsert(ClipboardEntry(text="x"))

    def test_insert_at_front(self, store: DocumentStore) -> None:
        store.upsert(TabDocument(id="A"))
        store.insert(0, TabDocument(id="B"))
        assert [d.id for d in store.list()] == ["B", "A"]

    def test_move(self, store: DocumentStore) -> None:
        """move() reorders and reports out-of-range moves."""
        for i in ("A", "B", "C"):
            store.upsert(TabDocument(id=i))
        assert store.move(0, 3)
        assert [d.id for d in store.list()] == ["B", "C", "A"]
        assert not store.move(1, 1)
        assert not store.move(5, 0)

    def test_remove_returns_document(self, store: DocumentStore) -> None:
        tab = TabDocument(id="A")
        store.upsert(tab)
        assert store.remove("A") == tab
        assert not store.contains("A")
        with pytest.raises(NotFoundError):
            store.remove("A")

    def test_clear_returns_ids(self, store: DocumentStore) -> None:
        store.upsert(TabDocument(id="A"))
        store.upsert(TabDocument(id="B"))
        assert store.clear() == ["A", "B"]
        assert len(store) == 0


class TestListeners:
    """Tests for mutation notifications."""

    def test_listener_receives_origin(self, store: DocumentStore) -> None:
        """Listeners see the ids and origin of each mutation."""
        seen: list[StoreMutation] = []
        store.add_listener(seen.append)

        store.upsert(TabDocument(id="A"))
        store.replace_all([TabDocument(id="B")], MutationOrigin.MERGE, changed_ids=["B"])

        assert seen[0] == StoreMutation(DocumentKind.TAB, ("A",), MutationOrigin.LOCAL)
        assert seen[1] == StoreMutation(DocumentKind.TAB, ("B",), MutationOrigin.MERGE)

    def test_unsubscribe(self, store: DocumentStore) -> None:
        seen: list[StoreMutation] = []
        unsubscribe = store.add_listener(seen.append)
        unsubscribe()
        store.upsert(TabDocument(id="A"))
        assert seen == []

    def test_failing_listener_does_not_break_mutation(self, store: DocumentStore) -> None:
        """A listener exception is logged, the mutation still applies."""

        def boom(mutation: StoreMutation) -> None:
            raise RuntimeError("boom")

        store.add_listener(boom)
        store.upsert(TabDocument(id="A"))
        assert store.contains("A")

    def test_clear_of_empty_store_is_silent(self, store: DocumentStore) -> None:
        seen: list[StoreMutation] = []
        store.add_listener(seen.append)
        store.clear()
        assert seen == []


class TestPersistence:
    """Tests for snapshot save and load."""

    def test_save_and_load(self, tmp_path: Path) -> None:
        """A saved collection is restored with order and local fields."""
        path = tmp_path / "tabs.json"
        store = DocumentStore(DocumentKind.TAB, path)
        store.upsert(TabDocument(id="A", content="one", cursor_position=2))
        store.upsert(TabDocument(id="B", file_path="/tmp/b.txt"))
        store.save()

        restored = DocumentStore(DocumentKind.TAB, path)
        assert restored.load()
        assert [d.id for d in restored.list()] == ["A", "B"]
        assert restored.get("A").cursor_position == 2  # type: ignore[attr-defined]
        assert restored.get("B").file_path == "/tmp/b.txt"  # type: ignore[attr-defined]

    def test_load_notifies_restore(self, tmp_path: Path) -> None:
        """Loading reports a RESTORE mutation."""
        path = tmp_path / "tabs.json"
        store = DocumentStore(DocumentKind.TAB, path)
        store.upsert(TabDocument(id="A"))
        store.save()

        restored = DocumentStore(DocumentKind.TAB, path)
        seen: list[StoreMutation] = []
        restored.add_listener(seen.append)
        restored.load()
        assert seen[0].origin == MutationOrigin.RESTORE

    def test_load_missing_file(self, store: DocumentStore) -> None:
        """A missing snapshot leaves the store empty."""
        assert not store.load()
        assert len(store) == 0

    def test_load_corrupt_file(self, tmp_path: Path) -> None:
        """An undecodable snapshot is ignored."""
        path = tmp_path / "tabs.json"
        path.write_text("not json")
        store = DocumentStore(DocumentKind.TAB, path)
        assert not store.load()
        assert len(store) == 0

    def test_save_is_atomic_json(self, store: DocumentStore) -> None:
        """The snapshot is a JSON array and no temp files are left behind."""
        store.upsert(TabDocument(id="A"))
        store.save()
        path = store.snapshot_path
        assert path is not None
        assert json.loads(path.read_text())[0]["id"] == "A"
        assert [p.name for p in path.parent.iterdir()] == ["tabs.json"]

    def test_save_failure_raises_persistence_error(self, tmp_path: Path) -> None:
        """Write failures surface as PersistenceError."""
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        store = DocumentStore(DocumentKind.TAB, blocker / "tabs.json")
        store.upsert(TabDocument(id="A"))
        with pytest.raises(PersistenceError):
            store.save()

    def test_memory_only_store(self) -> None:
        """Without a snapshot path, save and load are no-ops."""
        store = DocumentStore(DocumentKind.CLIPBOARD)
        store.upsert(ClipboardEntry(text="x"))
        store.save()
        assert not store.load()
        assert len(store) == 1

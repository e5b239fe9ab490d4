"""Tests for the tombstone ledger."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

from padsync.client.state import LocalSyncState
from padsync.client.sync.tombstones import TombstoneLedger
from padsync.core.types import DocumentKind


@pytest.fixture
def state(tmp_path: Path) -> Generator[LocalSyncState, None, None]:
    """Create a LocalSyncState instance."""
    s = LocalSyncState(tmp_path / "state.db")
    yield s
    s.close()


class TestInMemoryLedger:
    """Tests for a ledger without persistence."""

    def test_mark_deleted(self) -> None:
        ledger = TombstoneLedger(DocumentKind.TAB)
        ledger.mark_deleted("A")
        assert ledger.is_deleted("A")
        assert "A" in ledger
        assert "B" not in ledger
        assert len(ledger) == 1

    def test_contains_ignores_non_strings(self) -> None:
        ledger = TombstoneLedger(DocumentKind.TAB)
        ledger.mark_deleted("1")
        assert 1 not in ledger

    def test_snapshot_is_immutable_copy(self) -> None:
        """A snapshot does not see later deletions."""
        ledger = TombstoneLedger(DocumentKind.TAB)
        ledger.mark_deleted("A")
        snap = ledger.snapshot()
        ledger.mark_deleted("B")
        assert snap == frozenset({"A"})

    def test_merge_returns_learned(self) -> None:
        """Merging remote ids reports only the new ones."""
        ledger = TombstoneLedger(DocumentKind.CLIPBOARD)
        ledger.mark_deleted("A")
        assert ledger.merge(["A", "B", "C"]) == {"B", "C"}
        assert ledger.merge(["B"]) == set()
        assert ledger.snapshot() == frozenset({"A", "B", "C"})

    def test_forget(self) -> None:
        ledger = TombstoneLedger(DocumentKind.TAB)
        ledger.merge(["A", "B"])
        ledger.forget(["A", "missing"])
        assert ledger.snapshot() == frozenset({"B"})

    def test_prune_expires_old_entries(self) -> None:
        """prune() drops tombstones older than the TTL."""
        ledger = TombstoneLedger(DocumentKind.TAB)
        ledger.mark_deleted("A")
        assert ledger.prune(ttl=60.0) == set()
        expired = ledger.prune(ttl=60.0, now=10**12)
        assert expired == {"A"}
        assert len(ledger) == 0


class TestPersistentLedger:
    """Tests for a ledger backed by LocalSyncState."""

    def test_survives_restart(self, state: LocalSyncState) -> None:
        """Tombstones are reloaded from the state database."""
        TombstoneLedger(DocumentKind.TAB, state).mark_deleted("A")
        reloaded = TombstoneLedger(DocumentKind.TAB, state)
        assert reloaded.is_deleted("A")

    def test_learned_tombstones_persist(self, state: LocalSyncState) -> None:
        TombstoneLedger(DocumentKind.CLIPBOARD, state).merge(["X"])
        assert "X" in state.list_tombstones(DocumentKind.CLIPBOARD)

    def test_forget_persists(self, state: LocalSyncState) -> None:
        ledger = TombstoneLedger(DocumentKind.TAB, state)
        ledger.mark_deleted("A")
        ledger.forget(["A"])
        assert state.list_tombstones(DocumentKind.TAB) == {}

    def test_kinds_do_not_mix(self, state: LocalSyncState) -> None:
        TombstoneLedger(DocumentKind.TAB, state).mark_deleted("A")
        assert len(TombstoneLedger(DocumentKind.CLIPBOARD, state)) == 0

"""Tests for shared enums."""

from __future__ import annotations

import pytest

from padsync.core.types import DocumentKind, SyncState


class TestDocumentKind:
    """Tests for DocumentKind remote layout."""

    def test_blob_keys(self) -> None:
        """Each kind has a collection key and a tombstone key."""
        assert DocumentKind.TAB.blob_key == "tabs"
        assert DocumentKind.TAB.tombstone_key == "deletedTabIDs"
        assert DocumentKind.CLIPBOARD.blob_key == "clipboard"
        assert DocumentKind.CLIPBOARD.tombstone_key == "deletedClipboardIDs"

    def test_record_types_round_trip(self) -> None:
        """Record type names map back to their kind."""
        for kind in DocumentKind:
            assert DocumentKind.from_record_type(kind.record_type) is kind

    def test_unknown_record_type(self) -> None:
        """Unknown record types raise ValueError."""
        with pytest.raises(ValueError):
            DocumentKind.from_record_type("Nope")


class TestSyncState:
    """Tests for SyncState values."""

    def test_values(self) -> None:
        assert [s.value for s in SyncState] == ["disabled", "starting", "steady"]

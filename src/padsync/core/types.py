"""Shared types for padsync.

This module defines enums used by both client and server.
"""

from __future__ import annotations

from enum import Enum


class DocumentKind(str, Enum):
    """Kind of synchronized document collection.

    Each kind maps to a fixed layout in the remote store: one blob key for
    the collection, one blob key for its tombstones, and one record type for
    the native-record transport.
    """

    TAB = "tab"
    CLIPBOARD = "clipboard"

    @property
    def blob_key(self) -> str:
        """Remote key holding the serialized collection."""
        return _BLOB_KEYS[self]

    @property
    def tombstone_key(self) -> str:
        """Remote key holding the serialized tombstone set."""
        return _TOMBSTONE_KEYS[self]

    @property
    def record_type(self) -> str:
        """Record type name used by the native-record transport."""
        return _RECORD_TYPES[self]

    @classmethod
    def from_record_type(cls, record_type: str) -> DocumentKind:
        """Look up a kind by its record type name.

        Raises:
            ValueError: If the record type is unknown.
        """
        for kind, name in _RECORD_TYPES.items():
            if name == record_type:
                return kind
        raise ValueError(f"Unknown record type: {record_type}")


_BLOB_KEYS = {
    DocumentKind.TAB: "tabs",
    DocumentKind.CLIPBOARD: "clipboard",
}

_TOMBSTONE_KEYS = {
    DocumentKind.TAB: "deletedTabIDs",
    DocumentKind.CLIPBOARD: "deletedClipboardIDs",
}

_RECORD_TYPES = {
    DocumentKind.TAB: "ScratchTab",
    DocumentKind.CLIPBOARD: "ClipboardEntry",
}


class SyncState(str, Enum):
    """Lifecycle state of the sync scheduler."""

    DISABLED = "disabled"
    STARTING = "starting"
    STEADY = "steady"

"""Remote transports: blob shape and native-record shape."""

from __future__ import annotations

from typing import TYPE_CHECKING

from padsync.client.sync.transports.base import (
    ChangeFeed,
    KeyValueBackend,
    RecordBackend,
    RemoteRecord,
    RemoteTransport,
)
from padsync.client.sync.transports.blob import BlobTransport
from padsync.client.sync.transports.memory import MemoryKeyValueStore, MemoryRecordStore
from padsync.client.sync.transports.records import RecordTransport
from padsync.core.config import TRANSPORT_BLOB

if TYPE_CHECKING:
    from padsync.client.api import StoreClient
    from padsync.client.state import LocalSyncState
    from padsync.core.config import SyncSettings


def create_transport(
    settings: SyncSettings,
    state: LocalSyncState,
    client: StoreClient | None = None,
) -> BlobTransport | RecordTransport:
    """Build the transport selected in settings.

    Args:
        settings: Sync settings (transport shape, caps).
        state: Local state (record metadata for the record shape).
        client: Store server client; in-memory backends are used without one.
    """
    from padsync.client.api import HTTPKeyValueStore, HTTPRecordStore

    if settings.transport == TRANSPORT_BLOB:
        kv: KeyValueBackend = (
            HTTPKeyValueStore(client) if client else MemoryKeyValueStore()
        )
        return BlobTransport(kv, settings)

    records: RecordBackend = HTTPRecordStore(client) if client else MemoryRecordStore()
    return RecordTransport(records, state)


__all__ = [
    "BlobTransport",
    "ChangeFeed",
    "KeyValueBackend",
    "MemoryKeyValueStore",
    "MemoryRecordStore",
    "RecordBackend",
    "RecordTransport",
    "RemoteRecord",
    "RemoteTransport",
    "create_transport",
]

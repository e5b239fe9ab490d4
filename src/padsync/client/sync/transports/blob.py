"""Blob transport: whole collections stored under single keys.

Remote layout (all values JSON-encoded):
    | key                  | value                        |
    |----------------------|------------------------------|
    | tabs                 | array of tab documents       |
    | deletedTabIDs        | array of id strings          |
    | clipboard            | array of clipboard entries   |
    | deletedClipboardIDs  | array of id strings          |

Every push rewrites the full collection from current in-memory state, so
a push is idempotent and a lost push is repaired by the next one.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from padsync.client.documents import (
    Document,
    decode_documents,
    decode_ids,
    encode_documents,
    encode_ids,
)
from padsync.client.sync.merge import cap_recent
from padsync.client.sync.types import DecodeError, PushResult, RemoteSnapshot
from padsync.core.types import DocumentKind

if TYPE_CHECKING:
    from padsync.client.sync.transports.base import KeyValueBackend
    from padsync.core.config import SyncSettings

logger = logging.getLogger(__name__)


class BlobTransport:
    """RemoteTransport over an opaque key-value store."""

    def __init__(self, backend: KeyValueBackend, settings: SyncSettings) -> None:
        """Initialize the transport.

        Args:
            backend: Key-value store holding the blobs.
            settings: Sync settings (remote caps).
        """
        self._backend = backend
        self._settings = settings

    @property
    def uses_tombstones(self) -> bool:
        return True

    @property
    def backend(self) -> KeyValueBackend:
        return self._backend

    def _read_documents(self, kind: DocumentKind) -> list[Document]:
        data = self._backend.get(kind.blob_key)
        if data is None:
            logger.debug("No remote data for key '%s'", kind.blob_key)
            return []
        try:
            return decode_documents(kind, data)
        except DecodeError as e:
            logger.warning(
                "Ignoring undecodable remote '%s' (%d bytes): %s",
                kind.blob_key,
                len(data),
                e,
            )
            return []

    def _read_tombstones(self, kind: DocumentKind) -> frozenset[str]:
        data = self._backend.get(kind.tombstone_key)
        if data is None:
            return frozenset()
        try:
            return decode_ids(data)
        except DecodeError as e:
            logger.warning("Ignoring undecodable remote '%s': %s", kind.tombstone_key, e)
            return frozenset()

    def _ordered_for_remote(
        self,
        kind: DocumentKind,
        documents: list[Document],
    ) -> list[Document]:
        cap = self._settings.remote_cap(kind)
        if kind == DocumentKind.CLIPBOARD:
            return cap_recent(documents, cap)
        if cap is not None:
            return documents[:cap]
        return documents

    def pull(self, kind: DocumentKind) -> RemoteSnapshot[Document]:
        documents = self._read_documents(kind)
        tombstones = self._read_tombstones(kind)
        logger.debug(
            "Pulled %d %s documents, %d tombstones",
            len(documents),
            kind.value,
            len(tombstones),
        )
        return RemoteSnapshot(documents=documents, tombstones=tombstones, complete=True)

    def push(
        self,
        kind: DocumentKind,
        documents: list[Document],
        tombstones: frozenset[str],
    ) -> PushResult:
        live = [d for d in documents if d.is_syncable and d.id not in tombstones]
        outgoing = self._ordered_for_remote(kind, live)

        self._backend.set(kind.blob_key, encode_documents(outgoing))
        self._backend.set(kind.tombstone_key, encode_ids(tombstones))
        self._backend.synchronize()

        logger.info(
            "Pushed %d %s documents, %d tombstones",
            len(outgoing),
            kind.value,
            len(tombstones),
        )
        return PushResult(saved=[d.id for d in outgoing], deleted=sorted(tombstones))

    def append(self, kind: DocumentKind, document: Document) -> None:
        """Insert a single document at the front of the remote collection.

        Reads the current remote blob so that entries pushed by other
        devices since our last pull are preserved.
        """
        if not document.is_syncable:
            return
        existing = [d for d in self._read_documents(kind) if d.id != document.id]
        existing.insert(0, document)
        cap = self._settings.remote_cap(kind)
        if cap is not None:
            existing = existing[:cap]

        self._backend.set(kind.blob_key, encode_documents(existing))
        self._backend.synchronize()
        logger.debug("Appended %s %s to remote", kind.value, document.id)

    def remote_ids(self, kind: DocumentKind) -> set[str]:
        """Ids currently present in the remote collection."""
        return {d.id for d in self._read_documents(kind)}

    def clear(self, kind: DocumentKind) -> None:
        self._backend.delete(kind.blob_key)
        self._backend.delete(kind.tombstone_key)
        self._backend.synchronize()
        logger.info("Cleared remote %s data", kind.value)

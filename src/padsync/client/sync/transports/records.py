"""Native-record transport: one remote record per document.

Each document is an individually addressable record carrying an opaque
server change tag. Writes send the tag we last saw; a mismatch is a
write-write conflict reported by the server instead of a silent overwrite.
Deletions are native remote operations, so no tombstone keys exist
remotely; the local tombstone ledger only serves as a delete outbox.

Pulls follow the incremental change feed. When the feed cursor has
expired, a full refetch rebuilds the picture from scratch.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from padsync.client.documents import Document, document_type
from padsync.client.sync.transports.base import RemoteRecord
from padsync.client.sync.types import (
    ChangeFeedExpiredError,
    PushResult,
    RecordConflictError,
    RemoteSnapshot,
)

if TYPE_CHECKING:
    from padsync.client.state import LocalSyncState
    from padsync.client.sync.transports.base import RecordBackend
    from padsync.core.types import DocumentKind

logger = logging.getLogger(__name__)

# Safety net against a server that keeps reporting has_more
MAX_FEED_PAGES = 100


class RecordTransport:
    """RemoteTransport over a per-record store."""

    def __init__(self, backend: RecordBackend, state: LocalSyncState) -> None:
        """Initialize the transport.

        Args:
            backend: Record store.
            state: Local state holding change tags and feed cursors.
        """
        self._backend = backend
        self._state = state

    @property
    def uses_tombstones(self) -> bool:
        return False

    @property
    def backend(self) -> RecordBackend:
        return self._backend

    def _to_document(self, kind: DocumentKind, record: RemoteRecord) -> Document | None:
        fields = dict(record.fields)
        fields.setdefault("id", record.record_id)
        try:
            return document_type(kind).from_remote(fields)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(
                "Ignoring malformed %s record %s: %s", kind.value, record.record_id, e
            )
            return None

    def _apply_records(
        self,
        kind: DocumentKind,
        records: list[RemoteRecord],
    ) -> tuple[list[Document], set[str]]:
        documents: list[Document] = []
        deleted: set[str] = set()
        for record in records:
            if record.deleted:
                deleted.add(record.record_id)
                self._state.remove_record(kind, record.record_id)
                continue
            document = self._to_document(kind, record)
            if document is None:
                continue
            documents.append(document)
            self._state.mark_record_synced(
                kind, record.record_id, record.change_tag, document.last_modified
            )
        return documents, deleted

    def pull(self, kind: DocumentKind) -> RemoteSnapshot[Document]:
        cursor = self._state.get_change_cursor(kind)
        if cursor is None:
            return self.refetch(kind)

        records: list[RemoteRecord] = []
        try:
            for _ in range(MAX_FEED_PAGES):
                feed = self._backend.fetch_changes(kind.record_type, cursor)
                records.extend(feed.records)
                cursor = feed.cursor
                if not feed.has_more:
                    break
        except ChangeFeedExpiredError:
            logger.warning("Change feed for %s expired, refetching", kind.value)
            return self.refetch(kind)

        documents, deleted = self._apply_records(kind, records)
        self._state.set_change_cursor(kind, cursor)
        if records:
            logger.info(
                "Pulled %d changed and %d deleted %s records",
                len(documents),
                len(deleted),
                kind.value,
            )
        return RemoteSnapshot(
            documents=documents, tombstones=frozenset(deleted), complete=False
        )

    def refetch(self, kind: DocumentKind) -> RemoteSnapshot[Document]:
        """Fetch every record, for first sync or recovery from an expired feed.

        Records we knew as synced that are missing now were deleted remotely
        while we were not following the feed.
        """
        records, cursor = self._backend.fetch_all(kind.record_type)
        known = {r.record_id for r in self._state.list_records(kind)}
        documents, _ = self._apply_records(kind, records)

        present = {r.record_id for r in records}
        vanished = known - present
        for record_id in vanished:
            self._state.remove_record(kind, record_id)

        self._state.set_change_cursor(kind, cursor)
        logger.info(
            "Refetched %d %s records (%d vanished)",
            len(documents),
            kind.value,
            len(vanished),
        )
        return RemoteSnapshot(
            documents=documents, tombstones=frozenset(vanished), complete=True
        )

    def push(
        self,
        kind: DocumentKind,
        documents: list[Document],
        tombstones: frozenset[str],
    ) -> PushResult:
        result = PushResult()

        for document in documents:
            if not document.is_syncable or document.id in tombstones:
                continue
            synced = self._state.get_record(kind, document.id)
            if synced is not None and synced.synced_modified == document.last_modified:
                continue
            self._save(kind, document, synced.change_tag if synced else None, result)

        for record_id in sorted(tombstones):
            self._backend.delete(kind.record_type, record_id)
            self._state.remove_record(kind, record_id)
            result.deleted.append(record_id)

        if result.saved or result.deleted:
            logger.info(
                "Pushed %d saves, %d deletes for %s (%d deferred)",
                len(result.saved),
                len(result.deleted),
                kind.value,
                len(result.deferred),
            )
        return result

    def _save(
        self,
        kind: DocumentKind,
        document: Document,
        expected_tag: str | None,
        result: PushResult,
    ) -> None:
        """Save one record, re-deriving and retrying once on conflict."""
        try:
            record = self._backend.save(
                kind.record_type, document.id, document.to_remote(), expected_tag
            )
        except RecordConflictError as first:
            result.conflicts.append(document.id)
            if expected_tag is not None and first.server_tag is None:
                # Deleted by another device; the next pull removes it locally
                logger.info(
                    "%s %s was deleted remotely, not re-creating it",
                    kind.value,
                    document.id,
                )
                result.deferred.append(document.id)
                return
            logger.info(
                "Conflict saving %s %s, retrying with server tag %s",
                kind.value,
                document.id,
                first.server_tag,
            )
            server_modified = _modified_of(first.server_fields)
            if server_modified is not None and server_modified > document.last_modified:
                # Server copy is newer: leave it for the next pull to merge in
                result.deferred.append(document.id)
                return
            try:
                record = self._backend.save(
                    kind.record_type, document.id, document.to_remote(), first.server_tag
                )
            except RecordConflictError:
                logger.warning(
                    "Repeated conflict on %s %s, deferring to next pass",
                    kind.value,
                    document.id,
                )
                result.deferred.append(document.id)
                return

        self._state.mark_record_synced(
            kind, document.id, record.change_tag, document.last_modified
        )
        result.saved.append(document.id)

    def remote_ids(self, kind: DocumentKind) -> set[str]:
        records, _ = self._backend.fetch_all(kind.record_type)
        return {r.record_id for r in records}

    def clear(self, kind: DocumentKind) -> None:
        records, _ = self._backend.fetch_all(kind.record_type)
        for record in records:
            self._backend.delete(kind.record_type, record.record_id)
        self._state.clear_records(kind)
        self._state.set_change_cursor(kind, None)
        logger.info("Cleared %d remote %s records", len(records), kind.value)


def _modified_of(fields: dict[str, object] | None) -> float | None:
    if not fields:
        return None
    value = fields.get("lastModified", fields.get("timestamp"))
    if isinstance(value, int | float):
        return float(value)
    return None

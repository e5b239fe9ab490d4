"""Remote transport interfaces.

This module provides:
- RemoteTransport: Contract shared by both remote store shapes
- KeyValueBackend: Opaque blob store (blob shape)
- RecordBackend: Per-document record store with change tags (native-record shape)
- RemoteRecord, ChangeFeed: Record backend data types
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from padsync.client.documents import Document
    from padsync.client.sync.types import PushResult, RemoteSnapshot
    from padsync.core.types import DocumentKind


class RemoteTransport(Protocol):
    """How the sync engine talks to the remote store.

    Both shapes expose the same contract; they differ in whether deletions
    need tombstones (blob) or are native remote operations (records).
    """

    @property
    def uses_tombstones(self) -> bool:
        """True when deletions propagate through tombstone sets."""
        ...

    def pull(self, kind: DocumentKind) -> RemoteSnapshot[Document]:
        """Fetch remote state for a collection.

        Raises:
            TransportError: If the remote store is unreachable.
        """
        ...

    def push(
        self,
        kind: DocumentKind,
        documents: list[Document],
        tombstones: frozenset[str],
    ) -> PushResult:
        """Publish the local collection and its deletions.

        Raises:
            TransportError: If the remote store is unreachable.
        """
        ...

    def remote_ids(self, kind: DocumentKind) -> set[str]:
        """Ids of every document currently stored remotely."""
        ...

    def clear(self, kind: DocumentKind) -> None:
        """Remove all remote state of a collection."""
        ...


class KeyValueBackend(Protocol):
    """Opaque key-value blob store."""

    def get(self, key: str) -> bytes | None:
        """Get a blob, or None when the key is absent."""
        ...

    def set(self, key: str, value: bytes) -> None:
        """Write a blob."""
        ...

    def delete(self, key: str) -> None:
        """Remove a key (absent keys are ignored)."""
        ...

    def synchronize(self) -> None:
        """Flush pending writes to the remote store."""
        ...


@dataclass
class RemoteRecord:
    """A record as stored remotely.

    Attributes:
        record_id: Record name (the document id).
        fields: Document fields in remote form.
        change_tag: Server-assigned change stamp.
        deleted: True for a deletion entry of a change feed.
    """

    record_id: str
    fields: dict[str, Any] = field(default_factory=dict)
    change_tag: str = ""
    deleted: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteRecord:
        """Create from API response dictionary."""
        return cls(
            record_id=data["record_id"],
            fields=dict(data.get("fields") or {}),
            change_tag=data.get("change_tag") or "",
            deleted=bool(data.get("deleted", False)),
        )


@dataclass
class ChangeFeed:
    """A page of the incremental change feed.

    Attributes:
        records: Changed records, oldest first; deletions have deleted=True.
        cursor: Cursor to pass on the next call.
        has_more: More changes are available right away.
    """

    records: list[RemoteRecord]
    cursor: int
    has_more: bool = False


class RecordBackend(Protocol):
    """Per-document record store with optimistic concurrency."""

    def fetch_changes(self, record_type: str, cursor: int | None) -> ChangeFeed:
        """Get changes after cursor (None = from the beginning).

        Raises:
            ChangeFeedExpiredError: If cursor predates retained history.
        """
        ...

    def fetch_all(self, record_type: str) -> tuple[list[RemoteRecord], int]:
        """Get every live record and the current feed cursor."""
        ...

    def save(
        self,
        record_type: str,
        record_id: str,
        fields: dict[str, Any],
        expected_tag: str | None,
    ) -> RemoteRecord:
        """Write a record.

        Args:
            expected_tag: Change tag we last saw (None = we believe it is new).

        Raises:
            RecordConflictError: If the server copy changed since expected_tag.
        """
        ...

    def delete(self, record_type: str, record_id: str) -> None:
        """Delete a record (absent records are ignored)."""
        ...

"""Shared types and dataclasses for sync operations.

This module provides:
- PadSyncError and subclasses: Exception hierarchy of the sync engine
- StoreMutation, MutationOrigin: Document store change notifications
- RemoteSnapshot, PushResult: Transport results
- MergeResult, MergeEvent: Merge engine output and UI notification
- SyncReport: Outcome of one pull/merge/push pass
- Type aliases for callbacks
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import IntEnum, auto
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from padsync.client.documents import Document
    from padsync.core.types import DocumentKind

D = TypeVar("D", bound="Document")


class PadSyncError(Exception):
    """Base exception for padsync errors."""


class NotFoundError(PadSyncError):
    """Document not present in the store."""


class DecodeError(PadSyncError):
    """A serialized payload could not be decoded."""


class PersistenceError(PadSyncError):
    """Writing the local durable snapshot failed."""


class TransportError(PadSyncError):
    """The remote store could not be reached or refused the request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(TransportError):
    """The remote store rejected our credentials."""


class ChangeFeedExpiredError(TransportError):
    """The change feed cursor predates the history kept by the server."""


class RecordConflictError(TransportError):
    """A record write collided with a newer server-side write.

    Attributes:
        record_id: Identifier of the conflicting record.
        server_tag: Change tag currently stored on the server.
        server_fields: Fields currently stored on the server (if known).
    """

    def __init__(
        self,
        record_id: str,
        server_tag: str | None,
        server_fields: dict[str, object] | None = None,
    ) -> None:
        self.record_id = record_id
        self.server_tag = server_tag
        self.server_fields = server_fields
        super().__init__(
            f"Conflict on record {record_id}: server has tag {server_tag}", 409
        )


class MutationOrigin(IntEnum):
    """Where a document store mutation came from."""

    LOCAL = auto()  # A local mutator (user edit, capture, close)
    MERGE = auto()  # Applying a merge result from the remote store
    RESTORE = auto()  # Loading the local snapshot file


@dataclass(frozen=True)
class StoreMutation:
    """A change applied to a document store."""

    kind: DocumentKind
    ids: tuple[str, ...]
    origin: MutationOrigin


@dataclass
class RemoteSnapshot(Generic[D]):
    """What a transport pulled for one collection.

    Attributes:
        documents: Remote documents (full collection for the blob shape,
            only created/updated records for an incremental feed).
        tombstones: Ids deleted remotely.
        complete: True when documents is the whole remote collection.
    """

    documents: list[D] = field(default_factory=list)
    tombstones: frozenset[str] = frozenset()
    complete: bool = True

    @classmethod
    def empty(cls) -> RemoteSnapshot[D]:
        """Snapshot meaning "no remote data yet"."""
        return cls()


@dataclass
class PushResult:
    """Outcome of a transport push.

    Attributes:
        saved: Ids written remotely.
        deleted: Ids deleted remotely.
        conflicts: Ids that hit a write-write conflict at least once.
        deferred: Ids left for the next pass after a repeated conflict.
    """

    saved: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    deferred: list[str] = field(default_factory=list)


@dataclass
class MergeResult(Generic[D]):
    """Output of the merge engine.

    Attributes:
        documents: Next local collection, in display order.
        inserted: Ids added from the remote snapshot.
        updated: Ids whose content was overwritten by a newer remote version.
        removed: Ids dropped because they are tombstoned.
        pending_push: Syncable local ids the remote copy is missing or behind on.
    """

    documents: list[D]
    inserted: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    pending_push: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        """Check whether merge altered the local collection."""
        return bool(self.inserted or self.updated or self.removed)


@dataclass(frozen=True)
class MergeEvent:
    """Change notification for the UI layer after a merge was applied."""

    kind: DocumentKind
    inserted: tuple[str, ...] = ()
    updated: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()

    def __repr__(self) -> str:
        """Human-readable representation."""
        return (
            f"MergeEvent({self.kind.value}, +{len(self.inserted)} "
            f"~{len(self.updated)} -{len(self.removed)})"
        )


@dataclass
class SyncReport:
    """Result of one sync pass for a collection."""

    kind: DocumentKind
    pulled: int = 0
    inserted: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    pushed: bool = False
    push_result: PushResult | None = None
    finished_at: float = field(default_factory=time.time)

    @property
    def changed(self) -> bool:
        """Check if the pass altered local state."""
        return bool(self.inserted or self.updated or self.removed)


# Type alias for merge notification callback
MergeCallback = Callable[[MergeEvent], None]

# Type alias for store mutation listeners
MutationListener = Callable[[StoreMutation], None]

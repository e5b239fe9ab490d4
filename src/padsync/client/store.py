"""In-memory document collections backed by a local snapshot file.

This module provides:
- DocumentStore: Ordered, thread-safe collection of documents of one kind

All mutations are synchronous and immediately visible. Persistence is
driven from outside (the ChangeTracker calls save() after a debounce),
so a mutation never waits on disk.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from padsync.client.documents import Document, decode_documents, encode_documents
from padsync.client.sync.types import (
    DecodeError,
    MutationOrigin,
    NotFoundError,
    PersistenceError,
    StoreMutation,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from padsync.client.sync.types import MutationListener
    from padsync.core.types import DocumentKind

logger = logging.getLogger(__name__)


class DocumentStore:
    """Ordered collection of documents of one kind.

    Usage:
        store = DocumentStore(DocumentKind.TAB, config_dir / "tabs.json")
        store.load()
        store.upsert(TabDocument(content="hello"))
        store.save()
    """

    def __init__(
        self,
        kind: DocumentKind,
        snapshot_path: Path | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            kind: Collection kind held by this store.
            snapshot_path: Local durable snapshot file (None = memory only).
        """
        self._kind = kind
        self._snapshot_path = Path(snapshot_path) if snapshot_path else None
        self._documents: dict[str, Document] = {}
        self._lock = threading.RLock()
        self._listeners: list[MutationListener] = []

    @property
    def kind(self) -> DocumentKind:
        """Collection kind held by this store."""
        return self._kind

    @property
    def snapshot_path(self) -> Path | None:
        """Local snapshot file, if any."""
        return self._snapshot_path

    @property
    def lock(self) -> threading.RLock:
        """Lock owning the collection; hold it to read-merge-apply atomically."""
        return self._lock

    def add_listener(self, listener: MutationListener) -> Callable[[], None]:
        """Register a mutation listener.

        Returns:
            Function that unregisters the listener.
        """
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self, ids: Iterable[str], origin: MutationOrigin) -> None:
        mutation = StoreMutation(kind=self._kind, ids=tuple(ids), origin=origin)
        for listener in list(self._listeners):
            try:
                listener(mutation)
            except Exception:
                logger.exception("Mutation listener failed for %s", self._kind.value)

    # === Queries ===

    def get(self, doc_id: str) -> Document:
        """Get a document by id.

        Raises:
            NotFoundError: If no document has this id.
        """
        with self._lock:
            try:
                return self._documents[doc_id]
            except KeyError:
                raise NotFoundError(f"No {self._kind.value} with id {doc_id}") from None

    def find(self, doc_id: str) -> Document | None:
        """Get a document by id, or None."""
        with self._lock:
            return self._documents.get(doc_id)

    def contains(self, doc_id: str) -> bool:
        """Check if a document id is present."""
        with self._lock:
            return doc_id in self._documents

    def list(self) -> list[Document]:
        """All documents in collection order."""
        with self._lock:
            return list(self._documents.values())

    def syncable(self) -> list[Document]:
        """Documents that participate in sync, in collection order."""
        with self._lock:
            return [doc for doc in self._documents.values() if doc.is_syncable]

    def index_of(self, doc_id: str) -> int:
        """Position of a document in collection order.

        Raises:
            NotFoundError: If no document has this id.
        """
        with self._lock:
            for index, existing in enumerate(self._documents):
                if existing == doc_id:
                    return index
        raise NotFoundError(f"No {self._kind.value} with id {doc_id}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)

    # === Mutations ===

    def upsert(
        self,
        document: Document,
        origin: MutationOrigin = MutationOrigin.LOCAL,
    ) -> None:
        """Insert a document, or replace the one with the same id in place."""
        if document.kind != self._kind:
            raise TypeError(
                f"Cannot store {document.kind.value} in a {self._kind.value} store"
            )
        with self._lock:
            self._documents[document.id] = document
        self._notify([document.id], origin)

    def insert(
        self,
        index: int,
        document: Document,
        origin: MutationOrigin = MutationOrigin.LOCAL,
    ) -> None:
        """Insert a new document at a position (replacing any same-id document)."""
        with self._lock:
            items = [d for d in self._documents.values() if d.id != document.id]
            items.insert(index, document)
            self._documents = {d.id: d for d in items}
        self._notify([document.id], origin)

    def move(self, source_index: int, destination_index: int) -> bool:
        """Move a document within collection order.

        Returns:
            False when the move is out of bounds or a no-op.
        """
        with self._lock:
            items = list(self._documents.values())
            if (
                source_index == destination_index
                or not 0 <= source_index < len(items)
                or not 0 <= destination_index <= len(items)
            ):
                return False
            document = items.pop(source_index)
            if destination_index > source_index:
                destination_index -= 1
            items.insert(destination_index, document)
            self._documents = {d.id: d for d in items}
        self._notify([document.id], MutationOrigin.LOCAL)
        return True

    def remove(
        self,
        doc_id: str,
        origin: MutationOrigin = MutationOrigin.LOCAL,
    ) -> Document:
        """Remove a document.

        Returns:
            The removed document.

        Raises:
            NotFoundError: If no document has this id.
        """
        with self._lock:
            try:
                document = self._documents.pop(doc_id)
            except KeyError:
                raise NotFoundError(f"No {self._kind.value} with id {doc_id}") from None
        self._notify([doc_id], origin)
        return document

    def replace_all(
        self,
        documents: Iterable[Document],
        origin: MutationOrigin = MutationOrigin.LOCAL,
        changed_ids: Iterable[str] | None = None,
    ) -> None:
        """Replace the whole collection (used to apply merge results).

        Args:
            documents: New collection in order.
            origin: Mutation origin reported to listeners.
            changed_ids: Ids to report (defaults to every id).
        """
        with self._lock:
            self._documents = {doc.id: doc for doc in documents}
            ids = list(changed_ids) if changed_ids is not None else list(self._documents)
        self._notify(ids, origin)

    def clear(self) -> list[str]:
        """Remove every document.

        Returns:
            Ids that were removed.
        """
        with self._lock:
            ids = list(self._documents)
            self._documents = {}
        if ids:
            self._notify(ids, MutationOrigin.LOCAL)
        return ids

    # === Persistence ===

    def load(self) -> bool:
        """Restore the collection from the snapshot file.

        A missing or undecodable file leaves the store empty.

        Returns:
            True if a snapshot was loaded.
        """
        if self._snapshot_path is None or not self._snapshot_path.exists():
            logger.debug("No %s snapshot to restore", self._kind.value)
            return False
        try:
            documents = decode_documents(
                self._kind, self._snapshot_path.read_bytes(), local=True
            )
        except (OSError, DecodeError) as e:
            logger.warning(
                "Failed to restore %s snapshot at %s: %s",
                self._kind.value,
                self._snapshot_path,
                e,
            )
            return False

        with self._lock:
            self._documents = {doc.id: doc for doc in documents}
        logger.info("Restored %d %s documents", len(documents), self._kind.value)
        self._notify([doc.id for doc in documents], MutationOrigin.RESTORE)
        return True

    def save(self) -> None:
        """Write the collection to the snapshot file atomically.

        Raises:
            PersistenceError: If the file could not be written.
        """
        if self._snapshot_path is None:
            return
        with self._lock:
            data = encode_documents(self._documents.values(), local=True)
            count = len(self._documents)

        try:
            self._snapshot_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._snapshot_path.name}.",
                dir=self._snapshot_path.parent,
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp_name, self._snapshot_path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(
                f"Failed to save {self._kind.value} snapshot: {e}"
            ) from e

        logger.debug(
            "Saved %d %s documents (%d bytes)", count, self._kind.value, len(data)
        )

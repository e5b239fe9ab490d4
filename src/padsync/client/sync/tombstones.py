"""Tombstone ledger for locally deleted documents.

A tombstone keeps a deletion alive independently of the document, so a
stale remote copy captured before the delete reached the remote store
cannot bring the document back.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from padsync.client.state import LocalSyncState
    from padsync.core.types import DocumentKind

logger = logging.getLogger(__name__)


class TombstoneLedger:
    """Set of deleted document ids for one collection kind.

    Grows monotonically unless a TTL is applied with prune(). When a
    LocalSyncState is given, every change is persisted immediately.
    """

    def __init__(
        self,
        kind: DocumentKind,
        state: LocalSyncState | None = None,
    ) -> None:
        self._kind = kind
        self._state = state
        self._lock = threading.Lock()
        # id -> time the deletion was recorded (or learned) on this device
        self._entries: dict[str, float] = state.list_tombstones(kind) if state else {}

    @property
    def kind(self) -> DocumentKind:
        return self._kind

    def mark_deleted(self, doc_id: str) -> None:
        """Record a local deletion."""
        self._add([doc_id])
        logger.debug("Tombstoned %s %s", self._kind.value, doc_id)

    def is_deleted(self, doc_id: str) -> bool:
        """Check if an id is tombstoned."""
        with self._lock:
            return doc_id in self._entries

    def snapshot(self) -> frozenset[str]:
        """Immutable copy of the tombstoned ids."""
        with self._lock:
            return frozenset(self._entries)

    def merge(self, remote_ids: Iterable[str]) -> set[str]:
        """Union tombstones learned from another device.

        Returns:
            Ids that were not known locally.
        """
        learned = self._add(remote_ids)
        if learned:
            logger.info(
                "Learned %d %s tombstones from remote", len(learned), self._kind.value
            )
        return learned

    def forget(self, doc_ids: Iterable[str]) -> None:
        """Drop tombstones that are no longer needed."""
        ids = list(doc_ids)
        with self._lock:
            for doc_id in ids:
                self._entries.pop(doc_id, None)
        if self._state is not None and ids:
            self._state.remove_tombstones(self._kind, ids)

    def prune(self, ttl: float, now: float | None = None) -> set[str]:
        """Expire tombstones older than ttl seconds.

        Returns:
            Ids that were expired.
        """
        cutoff = (now if now is not None else time.time()) - ttl
        with self._lock:
            expired = {i for i, at in self._entries.items() if at < cutoff}
        if expired:
            self.forget(expired)
            logger.info("Expired %d %s tombstones", len(expired), self._kind.value)
        return expired

    def _add(self, doc_ids: Iterable[str]) -> set[str]:
        now = time.time()
        added: set[str] = set()
        with self._lock:
            for doc_id in doc_ids:
                if doc_id not in self._entries:
                    self._entries[doc_id] = now
                    added.add(doc_id)
        if self._state is not None:
            for doc_id in added:
                self._state.add_tombstone(self._kind, doc_id, now)
        return added

    def __contains__(self, doc_id: object) -> bool:
        return isinstance(doc_id, str) and self.is_deleted(doc_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

"""Sync engine: orchestrates pull, merge, apply and push per collection.

This module provides:
- SyncEngine: Entry point for local mutators (record_changed/record_deleted),
  the scheduler (sync) and the UI layer (subscribe)

Control flow:
    mutator ─► DocumentStore ─► ChangeTracker ─(debounce)─► save + push
    scheduler ─► sync(kind): pull ─► merge ─► apply ─► notify ─► push

Locking:
    A per-kind pass lock serializes sync passes, pushes and appends of the
    same collection; different collections proceed in parallel. The network
    pull runs outside the store lock. The merge is computed and applied while
    holding the store lock, so a mutator never observes a half-applied merge
    and a merge never reads a collection mid-mutation.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING

from padsync.client.sync.merge import cap_recent, merge_documents, merge_tombstones
from padsync.client.sync.tombstones import TombstoneLedger
from padsync.client.sync.tracker import ChangeTracker
from padsync.client.sync.types import (
    MergeEvent,
    MutationOrigin,
    PushResult,
    StoreMutation,
    SyncReport,
    TransportError,
)
from padsync.core.config import SyncSettings
from padsync.core.types import DocumentKind

if TYPE_CHECKING:
    from collections.abc import Callable

    from padsync.client.documents import Document
    from padsync.client.state import LocalSyncState
    from padsync.client.store import DocumentStore
    from padsync.client.sync.transports.base import RemoteTransport
    from padsync.client.sync.types import MergeCallback

logger = logging.getLogger(__name__)


class SyncEngine:
    """Keeps local document stores consistent with the remote store.

    Usage:
        engine = SyncEngine(stores, transport, state, settings)
        engine.subscribe(lambda event: print(event))
        store.upsert(tab)
        engine.record_changed(tab.id, DocumentKind.TAB)
        engine.sync(DocumentKind.TAB)
    """

    def __init__(
        self,
        stores: Mapping[DocumentKind, DocumentStore],
        transport: RemoteTransport,
        state: LocalSyncState,
        settings: SyncSettings | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            stores: Document store per collection kind.
            transport: Remote transport (blob or record shape).
            state: Local sync state (toggle, tombstones, diagnostics).
            settings: Sync tunables.
        """
        self._stores = dict(stores)
        self._transport = transport
        self._state = state
        self._settings = settings or SyncSettings()

        self._ledgers = {kind: TombstoneLedger(kind, state) for kind in self._stores}
        self._pass_locks = {kind: threading.Lock() for kind in self._stores}

        self._subscribers: list[MergeCallback] = []
        self._subscribers_lock = threading.Lock()

        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="padsync-io")
        self._tracker = ChangeTracker(
            self._stores,
            push=self.push,
            delay=self._settings.debounce_delay,
            should_push=lambda: self.is_enabled,
        )
        self._unlisten = [
            store.add_listener(self._on_mutation) for store in self._stores.values()
        ]

    # === Accessors ===

    @property
    def kinds(self) -> list[DocumentKind]:
        """Collection kinds managed by this engine."""
        return list(self._stores)

    @property
    def transport(self) -> RemoteTransport:
        return self._transport

    @property
    def state(self) -> LocalSyncState:
        return self._state

    @property
    def settings(self) -> SyncSettings:
        return self._settings

    @property
    def tracker(self) -> ChangeTracker:
        return self._tracker

    @property
    def is_enabled(self) -> bool:
        """Check the persisted sync toggle."""
        return self._state.is_sync_enabled()

    def store(self, kind: DocumentKind) -> DocumentStore:
        """Document store for a kind."""
        return self._stores[kind]

    def ledger(self, kind: DocumentKind) -> TombstoneLedger:
        """Tombstone ledger for a kind."""
        return self._ledgers[kind]

    # === Notification channel ===

    def subscribe(self, callback: MergeCallback) -> Callable[[], None]:
        """Register a callback for applied merges.

        Returns:
            Function that unregisters the callback.
        """
        with self._subscribers_lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._subscribers_lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _emit(self, event: MergeEvent) -> None:
        with self._subscribers_lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception("Merge subscriber failed for %r", event)

    # === Mutator interface ===

    def _on_mutation(self, mutation: StoreMutation) -> None:
        # Every local or merged change is persisted; RESTORE came from disk
        if mutation.origin != MutationOrigin.RESTORE:
            self._tracker.schedule(mutation.kind)

    def record_changed(self, doc_id: str, kind: DocumentKind) -> None:
        """Signal that a local mutator changed a document.

        Schedules a debounced save and push. Never raises.
        """
        try:
            if not self.is_enabled:
                return
            document = self._stores[kind].find(doc_id)
            if document is not None and not document.is_syncable:
                return
            self._tracker.schedule(kind, push=True)
        except Exception:
            logger.exception("record_changed failed for %s %s", kind.value, doc_id)

    def record_deleted(
        self,
        doc_id: str,
        kind: DocumentKind,
        document: Document | None = None,
    ) -> None:
        """Signal that a local mutator deleted a document.

        Tombstones the id and schedules a debounced save and push. Deletions
        made while sync is disabled are not tombstoned. Never raises.

        Args:
            doc_id: Id of the deleted document.
            kind: Collection kind.
            document: The removed document, used to skip file-bound ones.
        """
        try:
            if not self.is_enabled:
                return
            if document is not None and not document.is_syncable:
                return
            self._ledgers[kind].mark_deleted(doc_id)
            self._tracker.schedule(kind, push=True)
        except Exception:
            logger.exception("record_deleted failed for %s %s", kind.value, doc_id)

    def capture(self, kind: DocumentKind, document: Document) -> Future[None] | None:
        """Add a newly captured document at the front of its collection.

        When sync is enabled the document is also appended remotely in the
        background, using the transport's single-item path when it has one.

        Returns:
            Future of the background append, or None when nothing was sent.
        """
        self._stores[kind].insert(0, document)
        if not self.is_enabled or not document.is_syncable:
            return None
        if not hasattr(self._transport, "append"):
            self.record_changed(document.id, kind)
            return None
        return self._executor.submit(self._append_quietly, kind, document)

    def _append_quietly(self, kind: DocumentKind, document: Document) -> None:
        try:
            with self._pass_locks[kind]:
                self._transport.append(kind, document)  # type: ignore[attr-defined]
        except TransportError as e:
            logger.warning("Append of %s %s failed, will push later: %s", kind.value, document.id, e)
            self._tracker.schedule(kind, push=True)
        except Exception:
            logger.exception("Unexpected error appending %s %s", kind.value, document.id)

    def clear_collection(self, kind: DocumentKind) -> Future[None] | None:
        """Delete every document of a kind, locally and remotely.

        Local ids are tombstoned immediately. Ids only present remotely are
        tombstoned in the background before the (now empty) collection is
        pushed, so no device brings any of them back.

        Returns:
            Future of the background push, or None when sync is disabled.
        """
        removed = self._stores[kind].clear()
        if not self.is_enabled:
            return None
        ledger = self._ledgers[kind]
        for doc_id in removed:
            ledger.mark_deleted(doc_id)
        return self._executor.submit(self._clear_remote_quietly, kind)

    def _clear_remote_quietly(self, kind: DocumentKind) -> None:
        ledger = self._ledgers[kind]
        try:
            with self._pass_locks[kind]:
                for doc_id in self._transport.remote_ids(kind):
                    ledger.mark_deleted(doc_id)
                self._push_locked(kind)
        except TransportError as e:
            logger.warning("Remote clear of %s failed, will push later: %s", kind.value, e)
            self._tracker.schedule(kind, push=True)
        except Exception:
            logger.exception("Unexpected error clearing remote %s", kind.value)

    # === Sync passes ===

    def _merge_options(self, kind: DocumentKind) -> dict[str, object]:
        clipboard = kind == DocumentKind.CLIPBOARD
        return {
            "dedupe_content": clipboard,
            "sort_recent_first": clipboard,
            "max_count": self._settings.local_cap(kind),
        }

    def sync(self, kind: DocumentKind) -> SyncReport:
        """Run one pull/merge/apply/push pass for a collection.

        Returns:
            SyncReport describing what changed.

        Raises:
            TransportError: If the remote store could not be reached.
        """
        store = self._stores[kind]
        ledger = self._ledgers[kind]
        uses_tombstones = self._transport.uses_tombstones

        with self._pass_locks[kind]:
            snapshot = self._transport.pull(kind)

            remote_tombstones = snapshot.tombstones
            ttl = self._settings.tombstone_ttl
            if ttl is not None and uses_tombstones:
                expired = ledger.prune(ttl)
                remote_tombstones = remote_tombstones - expired
            if uses_tombstones:
                ledger.merge(remote_tombstones)
            tombstones = merge_tombstones(ledger.snapshot(), remote_tombstones)

            with store.lock:
                result = merge_documents(
                    store.list(),
                    snapshot.documents,
                    tombstones,
                    **self._merge_options(kind),  # type: ignore[arg-type]
                )
                if result.changed:
                    store.replace_all(
                        result.documents,
                        MutationOrigin.MERGE,
                        changed_ids=result.inserted + result.updated + result.removed,
                    )

            report = SyncReport(
                kind=kind,
                pulled=len(snapshot.documents),
                inserted=result.inserted,
                updated=result.updated,
                removed=result.removed,
            )

            if uses_tombstones:
                tombstones_differ = ledger.snapshot() != snapshot.tombstones
            else:
                tombstones_differ = len(ledger) > 0
            if self._pending_within_cap(kind, result.pending_push) or tombstones_differ:
                report.push_result = self._push_locked(kind)
                report.pushed = True

            self._state.set_last_sync_at(kind, report.finished_at)

        if result.changed:
            event = MergeEvent(
                kind=kind,
                inserted=tuple(result.inserted),
                updated=tuple(result.updated),
                removed=tuple(result.removed),
            )
            logger.info("Applied remote changes: %r", event)
            self._emit(event)
        return report

    def _pending_within_cap(self, kind: DocumentKind, pending: list[str]) -> list[str]:
        """Pending ids that a blob push would actually carry.

        Documents beyond the remote cap never reach the remote collection,
        so they must not force a push on every pass.
        """
        cap = self._settings.remote_cap(kind)
        if cap is None or not pending or not self._transport.uses_tombstones:
            return pending
        syncable = self._stores[kind].syncable()
        if kind == DocumentKind.CLIPBOARD:
            window = cap_recent(syncable, cap)
        else:
            window = syncable[:cap]
        carried = {d.id for d in window}
        return [doc_id for doc_id in pending if doc_id in carried]

    def sync_all(self) -> list[SyncReport]:
        """Run a pass for every collection."""
        return [self.sync(kind) for kind in self._stores]

    def push(self, kind: DocumentKind) -> PushResult:
        """Push the full syncable collection and tombstones of a kind.

        Raises:
            TransportError: If the remote store could not be reached.
        """
        with self._pass_locks[kind]:
            return self._push_locked(kind)

    def _push_locked(self, kind: DocumentKind) -> PushResult:
        ledger = self._ledgers[kind]
        documents = self._stores[kind].syncable()
        result = self._transport.push(kind, documents, ledger.snapshot())
        if not self._transport.uses_tombstones and result.deleted:
            # Native deletions are confirmed; the outbox entries are done
            ledger.forget(result.deleted)
        if result.deferred:
            logger.info(
                "%d %s records deferred to the next pass", len(result.deferred), kind.value
            )
        return result

    def unsync(self) -> None:
        """Clear remote state for every collection.

        Local documents and tombstones are kept.

        Raises:
            TransportError: If the remote store could not be reached.
        """
        for kind in self._stores:
            with self._pass_locks[kind]:
                self._transport.clear(kind)
        logger.info("Cleared remote state for %s", ", ".join(k.value for k in self._stores))

    # === Lifecycle ===

    def flush(self) -> None:
        """Run pending debounced saves and pushes now."""
        self._tracker.flush_all()

    def close(self) -> None:
        """Flush pending work and release background threads."""
        self.flush()
        self._executor.shutdown(wait=True)
        for unlisten in self._unlisten:
            unlisten()
        self._unlisten = []

    def last_sync_at(self, kind: DocumentKind) -> float | None:
        """Time of the last successful pass (diagnostic only)."""
        return self._state.get_last_sync_at(kind)

    def status(self) -> dict[str, object]:
        """Diagnostic snapshot for status displays."""
        now = time.time()
        kinds: dict[str, object] = {}
        for kind, store in self._stores.items():
            last = self._state.get_last_sync_at(kind)
            kinds[kind.value] = {
                "documents": len(store),
                "syncable": len(store.syncable()),
                "tombstones": len(self._ledgers[kind]),
                "last_sync_at": last,
                "seconds_since_sync": now - last if last is not None else None,
                "pending_flush": self._tracker.pending(kind),
            }
        return {"enabled": self.is_enabled, "kinds": kinds}

"""Clipboard history.

This module provides:
- ClipboardHistory: Local mutators over the clipboard DocumentStore
  (capture, delete, clear, search)

Entries are kept most recent first and capped locally. Captures are
appended to the remote collection one at a time so entries other devices
pushed since our last pull are not overwritten.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from padsync.client.documents import ClipboardEntry, new_id
from padsync.client.sync.types import MutationOrigin, NotFoundError
from padsync.core.types import DocumentKind

if TYPE_CHECKING:
    from concurrent.futures import Future

    from padsync.client.store import DocumentStore
    from padsync.client.sync.engine import SyncEngine

logger = logging.getLogger(__name__)

DEFAULT_MAX_LOCAL = 1000


class ClipboardHistory:
    """Clipboard entries captured on this and other devices."""

    def __init__(
        self,
        store: DocumentStore,
        engine: SyncEngine,
        max_local: int | None = None,
    ) -> None:
        if store.kind != DocumentKind.CLIPBOARD:
            raise ValueError(f"Expected a clipboard store, got {store.kind.value}")
        self._store = store
        self._engine = engine
        cap = engine.settings.local_cap(DocumentKind.CLIPBOARD)
        self._max_local = max_local or cap or DEFAULT_MAX_LOCAL
        self._last_append: Future[None] | None = None

    @property
    def store(self) -> DocumentStore:
        return self._store

    def entries(self) -> list[ClipboardEntry]:
        """Entries, most recent first."""
        return [doc for doc in self._store.list() if isinstance(doc, ClipboardEntry)]

    def find_by_prefix(self, prefix: str) -> ClipboardEntry:
        """Find an entry by a unique id prefix (case-insensitive).

        Raises:
            NotFoundError: If no entry or more than one entry matches.
        """
        prefix = prefix.upper()
        matches = [e for e in self.entries() if e.id.startswith(prefix)]
        if len(matches) != 1:
            raise NotFoundError(
                f"{len(matches)} entries match '{prefix}'"
                if matches
                else f"No entry matches '{prefix}'"
            )
        return matches[0]

    def add_entry(
        self,
        text: str,
        entry_id: str | None = None,
        timestamp: float | None = None,
    ) -> ClipboardEntry | None:
        """Record a clipboard capture.

        Text is trimmed; blank text and text identical to the newest entry
        are ignored.

        Returns:
            The new entry, or None if nothing was added.
        """
        trimmed = text.strip()
        if not trimmed:
            return None
        entries = self.entries()
        if entries and entries[0].text == trimmed:
            return None

        entry = ClipboardEntry(
            text=trimmed,
            id=entry_id or new_id(),
            timestamp=timestamp if timestamp is not None else time.time(),
        )
        self._last_append = self._engine.capture(DocumentKind.CLIPBOARD, entry)
        self._trim()
        return entry

    def capture(self, text: str | None) -> ClipboardEntry | None:
        """Capture the current pasteboard text, if any."""
        if text is None:
            return None
        return self.add_entry(text)

    @property
    def last_append(self) -> Future[None] | None:
        """Background remote append of the last captured entry."""
        return self._last_append

    def _trim(self) -> None:
        with self._store.lock:
            entries = self._store.list()
            if len(entries) <= self._max_local:
                return
            kept = entries[: self._max_local]
            dropped = [e.id for e in entries[self._max_local:]]
            self._store.replace_all(kept, MutationOrigin.LOCAL, changed_ids=dropped)
        logger.debug("Trimmed %d old clipboard entries", len(dropped))

    def delete_entry(self, entry_id: str) -> bool:
        """Delete an entry.

        Returns:
            False if no entry has this id.
        """
        try:
            removed = self._store.remove(entry_id)
        except NotFoundError:
            return False
        self._engine.record_deleted(entry_id, DocumentKind.CLIPBOARD, removed)
        return True

    def clear_all(self) -> Future[None] | None:
        """Delete every entry here and remotely.

        Returns:
            Future of the background remote clear, or None when sync is off.
        """
        return self._engine.clear_collection(DocumentKind.CLIPBOARD)

    def search(self, query: str) -> list[ClipboardEntry]:
        """Entries containing query, case-insensitively (all when blank)."""
        needle = query.strip().casefold()
        if not needle:
            return self.entries()
        return [e for e in self.entries() if needle in e.text.casefold()]

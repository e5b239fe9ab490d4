"""In-process remote store backends.

Used for single-device mode and to simulate several devices sharing one
store in tests. Both backends are thread-safe.
"""

from __future__ import annotations

import copy
import itertools
import threading
from typing import Any

from padsync.client.sync.transports.base import ChangeFeed, RemoteRecord
from padsync.client.sync.types import ChangeFeedExpiredError, RecordConflictError


class MemoryKeyValueStore:
    """Blob store kept in a dict."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}
        self._lock = threading.Lock()
        self.synchronize_count = 0

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def synchronize(self) -> None:
        with self._lock:
            self.synchronize_count += 1

    def keys(self) -> list[str]:
        """Keys currently present."""
        with self._lock:
            return sorted(self._data)


class MemoryRecordStore:
    """Record store with change tags and a bounded change log."""

    def __init__(self, history_limit: int | None = None) -> None:
        """Initialize the store.

        Args:
            history_limit: Keep at most this many change log entries; older
                cursors get ChangeFeedExpiredError (None = unbounded).
        """
        self._records: dict[tuple[str, str], RemoteRecord] = {}
        # (sequence, record_type, record_id, deleted)
        self._log: list[tuple[int, str, str, bool]] = []
        self._sequence = itertools.count(1)
        self._last_sequence = 0
        self._history_limit = history_limit
        self._lock = threading.Lock()

    def _append_log(self, record_type: str, record_id: str, deleted: bool) -> int:
        sequence = next(self._sequence)
        self._last_sequence = sequence
        self._log.append((sequence, record_type, record_id, deleted))
        if self._history_limit is not None and len(self._log) > self._history_limit:
            self._log = self._log[-self._history_limit:]
        return sequence

    def fetch_changes(self, record_type: str, cursor: int | None) -> ChangeFeed:
        with self._lock:
            since = cursor or 0
            if self._log and since < self._log[0][0] - 1:
                raise ChangeFeedExpiredError(
                    f"Cursor {since} predates retained history", 410
                )
            latest: dict[str, bool] = {}
            for sequence, rtype, record_id, deleted in self._log:
                if sequence > since and rtype == record_type:
                    latest.pop(record_id, None)
                    latest[record_id] = deleted
            records = []
            for record_id, deleted in latest.items():
                if deleted:
                    records.append(RemoteRecord(record_id=record_id, deleted=True))
                else:
                    records.append(
                        copy.deepcopy(self._records[(record_type, record_id)])
                    )
            return ChangeFeed(records=records, cursor=self._last_sequence)

    def fetch_all(self, record_type: str) -> tuple[list[RemoteRecord], int]:
        with self._lock:
            records = [
                copy.deepcopy(record)
                for (rtype, _), record in self._records.items()
                if rtype == record_type
            ]
            return records, self._last_sequence

    def save(
        self,
        record_type: str,
        record_id: str,
        fields: dict[str, Any],
        expected_tag: str | None,
    ) -> RemoteRecord:
        with self._lock:
            current = self._records.get((record_type, record_id))
            current_tag = current.change_tag if current else None
            if current_tag != expected_tag:
                raise RecordConflictError(
                    record_id,
                    current_tag,
                    copy.deepcopy(current.fields) if current else None,
                )
            sequence = self._append_log(record_type, record_id, deleted=False)
            record = RemoteRecord(
                record_id=record_id,
                fields=copy.deepcopy(fields),
                change_tag=f"t{sequence}",
            )
            self._records[(record_type, record_id)] = record
            return copy.deepcopy(record)

    def delete(self, record_type: str, record_id: str) -> None:
        with self._lock:
            if self._records.pop((record_type, record_id), None) is not None:
                self._append_log(record_type, record_id, deleted=True)

    def get(self, record_type: str, record_id: str) -> RemoteRecord | None:
        """Inspect a stored record."""
        with self._lock:
            record = self._records.get((record_type, record_id))
            return copy.deepcopy(record) if record else None

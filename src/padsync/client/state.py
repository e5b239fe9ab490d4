"""Local state management for the sync client.

This module provides:
- LocalSyncState: SQLite-based durable key-value store and sync bookkeeping
- SyncedRecord: Server metadata of a record known to be on the remote store

Architecture:
    Document collections themselves live in snapshot files owned by the
    DocumentStore. This database only keeps what the sync engine needs to
    survive a restart: the enable toggle, tombstones, per-record change
    tags (native-record transport) and change-feed cursors.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path

from padsync.core.types import DocumentKind

logger = logging.getLogger(__name__)


@dataclass
class SyncedRecord:
    """A record that exists on the remote store.

    Attributes:
        kind: Collection kind.
        record_id: Document id.
        change_tag: Opaque server change stamp (compared, never interpreted).
        synced_modified: Document last_modified value at the last successful
            save or fetch; a different local value means the record needs pushing.
    """

    kind: DocumentKind
    record_id: str
    change_tag: str
    synced_modified: float

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> SyncedRecord:
        """Create SyncedRecord from database row."""
        return cls(
            kind=DocumentKind(row["kind"]),
            record_id=row["record_id"],
            change_tag=row["change_tag"],
            synced_modified=row["synced_modified"],
        )


class LocalSyncState:
    """SQLite-based local state for the sync client.

    Doubles as the durable local key-value primitive (get/set/delete/synchronize)
    the sync engine is built on.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize local state database.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self._db_path = db_path if db_path == ":memory:" else Path(db_path)
        if isinstance(self._db_path, Path):
            self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Lock for thread-safe database access
        self._lock = threading.RLock()

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.row_factory = sqlite3.Row

        if isinstance(self._db_path, Path):
            self._conn.execute("PRAGMA journal_mode=WAL")

        self._create_tables()

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            -- Key-value sync state
            CREATE TABLE IF NOT EXISTS sync_state (
                key TEXT PRIMARY KEY,
                value TEXT
            );

            -- Documents deleted locally
            CREATE TABLE IF NOT EXISTS tombstones (
                kind TEXT NOT NULL,
                record_id TEXT NOT NULL,
                deleted_at REAL NOT NULL,
                PRIMARY KEY (kind, record_id)
            );

            -- Records known to exist remotely (native-record transport)
            CREATE TABLE IF NOT EXISTS synced_records (
                kind TEXT NOT NULL,
                record_id TEXT NOT NULL,
                change_tag TEXT NOT NULL,
                synced_modified REAL NOT NULL,
                PRIMARY KEY (kind, record_id)
            );
        """)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # === Key-value primitive ===

    def get(self, key: str) -> str | None:
        """Get a sync state value."""
        with self._lock:
            cursor = self._conn.execute(
                "SELECT value FROM sync_state WHERE key = ?",
                (key,),
            )
            row = cursor.fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        """Set a sync state value."""
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO sync_state (key, value) VALUES (?, ?)",
                (key, value),
            )

    def delete(self, key: str) -> None:
        """Remove a sync state value."""
        with self._lock:
            self._conn.execute("DELETE FROM sync_state WHERE key = ?", (key,))

    def synchronize(self) -> None:
        """Flush pending writes to disk."""
        if isinstance(self._db_path, Path):
            with self._lock:
                self._conn.execute("PRAGMA wal_checkpoint(PASSIVE)")

    # === Sync toggle and diagnostics ===

    def is_sync_enabled(self) -> bool:
        """Check whether cross-device sync is switched on."""
        return self.get("sync_enabled") == "1"

    def set_sync_enabled(self, enabled: bool) -> None:
        """Persist the sync toggle."""
        self.set("sync_enabled", "1" if enabled else "0")

    def get_last_sync_at(self, kind: DocumentKind) -> float | None:
        """Get timestamp of last successful sync pass (diagnostic only)."""
        value = self.get(f"last_sync_at:{kind.value}")
        return float(value) if value else None

    def set_last_sync_at(self, kind: DocumentKind, timestamp: float) -> None:
        """Set timestamp of last successful sync pass."""
        self.set(f"last_sync_at:{kind.value}", str(timestamp))

    def get_change_cursor(self, kind: DocumentKind) -> int | None:
        """Get the change-feed cursor for a collection."""
        value = self.get(f"change_cursor:{kind.value}")
        return int(value) if value else None

    def set_change_cursor(self, kind: DocumentKind, cursor: int | None) -> None:
        """Set (or reset with None) the change-feed cursor for a collection."""
        if cursor is None:
            self.delete(f"change_cursor:{kind.value}")
        else:
            self.set(f"change_cursor:{kind.value}", str(cursor))

    # === Tombstones ===

    def add_tombstone(
        self,
        kind: DocumentKind,
        record_id: str,
        deleted_at: float | None = None,
    ) -> None:
        """Record a deletion. Existing tombstones keep their original time."""
        with self._lock:
            self._conn.execute(
                "INSERT OR IGNORE INTO tombstones (kind, record_id, deleted_at) "
                "VALUES (?, ?, ?)",
                (kind.value, record_id, deleted_at or time.time()),
            )

    def list_tombstones(self, kind: DocumentKind) -> dict[str, float]:
        """Get tombstoned ids of a collection with their deletion times."""
        with self._lock:
            cursor = self._conn.execute(
                "SELECT record_id, deleted_at FROM tombstones WHERE kind = ?",
                (kind.value,),
            )
            rows = cursor.fetchall()
        return {row["record_id"]: row["deleted_at"] for row in rows}

    def remove_tombstones(self, kind: DocumentKind, record_ids: list[str]) -> None:
        """Drop tombstones."""
        with self._lock:
            self._conn.executemany(
                "DELETE FROM tombstones WHERE kind = ? AND record_id = ?",
                [(kind.value, record_id) for record_id in record_ids],
            )

    # === Synced records ===

    def get_record(self, kind: DocumentKind, record_id: str) -> SyncedRecord | None:
        """Get server metadata of a record."""
        with self._lock:
            cursor = self._conn.execute(
                "SELECT * FROM synced_records WHERE kind = ? AND record_id = ?",
                (kind.value, record_id),
            )
            row = cursor.fetchone()
        if row is None:
            return None
        return SyncedRecord.from_row(row)

    def list_records(self, kind: DocumentKind) -> list[SyncedRecord]:
        """List all records known to exist remotely."""
        with self._lock:
            cursor = self._conn.execute(
                "SELECT * FROM synced_records WHERE kind = ? ORDER BY record_id",
                (kind.value,),
            )
            rows = cursor.fetchall()
        return [SyncedRecord.from_row(row) for row in rows]

    def mark_record_synced(
        self,
        kind: DocumentKind,
        record_id: str,
        change_tag: str,
        synced_modified: float,
    ) -> None:
        """Upsert server metadata after a successful save or fetch."""
        with self._lock:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO synced_records (
                    kind, record_id, change_tag, synced_modified
                ) VALUES (?, ?, ?, ?)
                """,
                (kind.value, record_id, change_tag, synced_modified),
            )

    def remove_record(self, kind: DocumentKind, record_id: str) -> None:
        """Forget a record (deleted remotely or locally)."""
        with self._lock:
            self._conn.execute(
                "DELETE FROM synced_records WHERE kind = ? AND record_id = ?",
                (kind.value, record_id),
            )

    def clear_records(self, kind: DocumentKind) -> None:
        """Forget every record of a collection."""
        with self._lock:
            self._conn.execute(
                "DELETE FROM synced_records WHERE kind = ?", (kind.value,)
            )

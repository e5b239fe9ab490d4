"""Server database using SQLAlchemy with SQLite.

This module provides:
- Blob storage (opaque values by key)
- Record storage with server-assigned change tags
- The record change log backing the incremental change feed
"""

from __future__ import annotations

import json
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.orm import Session

from padsync.server.models import Base, Blob, ChangeLog, Record, ServerSetting

if TYPE_CHECKING:
    from sqlalchemy import Engine

CHANGE_LOG_FLOOR_KEY = "change_log_floor"


class RecordConflictError(Exception):
    """Raised when a record write carries a stale change tag."""

    def __init__(self, current: StoredRecord | None) -> None:
        super().__init__("Record was modified by another writer")
        self.current = current


class FeedExpiredError(Exception):
    """Raised when a change feed cursor predates the retained change log."""


@dataclass
class StoredRecord:
    """A record detached from its session, fields decoded."""

    record_type: str
    record_id: str
    fields: dict[str, Any]
    change_tag: str
    deleted: bool = False

    @classmethod
    def from_model(cls, record: Record) -> StoredRecord:
        return cls(
            record_type=record.record_type,
            record_id=record.record_id,
            fields=json.loads(record.fields),
            change_tag=record.change_tag,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "fields": self.fields,
            "change_tag": self.change_tag,
            "deleted": self.deleted,
        }


@dataclass
class ChangePage:
    """A page of the change feed for one record type."""

    records: list[StoredRecord]
    cursor: int
    has_more: bool


def new_change_tag() -> str:
    """Generate an opaque change tag."""
    return secrets.token_hex(8)


class Database:
    """SQLAlchemy database for the store server.

    Uses SQLite with WAL mode for better concurrency with multiple readers.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the database.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Create engine with check_same_thread=False for multi-threaded access
        self._engine: Engine = create_engine(
            f"sqlite:///{self._db_path}",
            connect_args={"check_same_thread": False},
            echo=False,
        )

        # Enable WAL mode
        with self._engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL")

        # Create tables if they don't exist
        Base.metadata.create_all(self._engine)

    @property
    def path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        self._engine.dispose()

    def _session(self) -> Session:
        """Create a new database session."""
        return Session(self._engine)

    # === Blob operations ===

    def get_blob(self, key: str) -> bytes | None:
        """Get a blob by key.

        Returns:
            Stored bytes, or None if the key is absent.
        """
        with self._session() as session:
            blob = session.get(Blob, key)
            return bytes(blob.value) if blob else None

    def put_blob(self, key: str, value: bytes) -> None:
        """Create or overwrite a blob."""
        with self._session() as session:
            blob = session.get(Blob, key)
            if blob is None:
                session.add(Blob(key=key, value=value))
            else:
                blob.value = value
            session.commit()

    def delete_blob(self, key: str) -> bool:
        """Delete a blob.

        Returns:
            True if the key existed.
        """
        with self._session() as session:
            blob = session.get(Blob, key)
            if blob is None:
                return False
            session.delete(blob)
            session.commit()
            return True

    def list_blob_keys(self) -> list[str]:
        """Keys of every stored blob."""
        with self._session() as session:
            return list(session.execute(select(Blob.key).order_by(Blob.key)).scalars())

    # === Record operations ===

    def get_record(self, record_type: str, record_id: str) -> StoredRecord | None:
        """Get a live record."""
        with self._session() as session:
            record = session.get(Record, (record_type, record_id))
            return StoredRecord.from_model(record) if record else None

    def list_records(self, record_type: str) -> tuple[list[StoredRecord], int]:
        """Get every live record of a type and the current feed cursor."""
        with self._session() as session:
            stmt = (
                select(Record)
                .where(Record.record_type == record_type)
                .order_by(Record.record_id)
            )
            records = [StoredRecord.from_model(r) for r in session.execute(stmt).scalars()]
            return records, self._latest_cursor(session)

    def save_record(
        self,
        record_type: str,
        record_id: str,
        fields: dict[str, Any],
        expected_tag: str | None,
    ) -> StoredRecord:
        """Create or update a record with optimistic concurrency.

        Args:
            record_type: Record type.
            record_id: Record name.
            fields: Document fields.
            expected_tag: Tag the writer last saw (None when creating).

        Returns:
            The stored record with its new change tag.

        Raises:
            RecordConflictError: If expected_tag does not match the stored tag.
        """
        with self._session() as session:
            record = session.get(Record, (record_type, record_id))
            current_tag = record.change_tag if record else None
            if current_tag != expected_tag:
                raise RecordConflictError(StoredRecord.from_model(record) if record else None)

            tag = new_change_tag()
            encoded = json.dumps(fields, ensure_ascii=False)
            if record is None:
                record = Record(
                    record_type=record_type,
                    record_id=record_id,
                    fields=encoded,
                    change_tag=tag,
                )
                session.add(record)
            else:
                record.fields = encoded
                record.change_tag = tag
            session.add(ChangeLog(record_type=record_type, record_id=record_id, deleted=False))
            session.commit()
            return StoredRecord(
                record_type=record_type,
                record_id=record_id,
                fields=fields,
                change_tag=tag,
            )

    def delete_record(self, record_type: str, record_id: str) -> bool:
        """Delete a record and log the deletion.

        Returns:
            True if the record existed.
        """
        with self._session() as session:
            record = session.get(Record, (record_type, record_id))
            if record is None:
                return False
            session.delete(record)
            session.add(ChangeLog(record_type=record_type, record_id=record_id, deleted=True))
            session.commit()
            return True

    # === Change log operations ===

    def _floor(self, session: Session) -> int:
        setting = session.get(ServerSetting, CHANGE_LOG_FLOOR_KEY)
        return int(setting.value) if setting else 0

    def _latest_cursor(self, session: Session) -> int:
        latest = session.execute(select(func.max(ChangeLog.id))).scalar()
        return max(int(latest or 0), self._floor(session))

    def latest_cursor(self) -> int:
        """Sequence number of the most recent change."""
        with self._session() as session:
            return self._latest_cursor(session)

    def get_changes_since(
        self,
        record_type: str,
        cursor: int,
        limit: int = 1000,
    ) -> ChangePage:
        """Get record changes after a cursor.

        Several changes to the same record collapse into its latest state.

        Args:
            record_type: Record type.
            cursor: Sequence number of the last change already seen.
            limit: Maximum number of change log entries to scan.

        Raises:
            FeedExpiredError: If entries after cursor were already pruned.
        """
        with self._session() as session:
            if cursor < self._floor(session):
                raise FeedExpiredError(
                    f"Cursor {cursor} predates retained history ({self._floor(session)})"
                )
            stmt = (
                select(ChangeLog)
                .where(ChangeLog.record_type == record_type, ChangeLog.id > cursor)
                .order_by(ChangeLog.id.asc())
                .limit(limit + 1)
            )
            entries = list(session.execute(stmt).scalars())
            has_more = len(entries) > limit
            entries = entries[:limit]

            latest: dict[str, bool] = {}
            for entry in entries:
                latest.pop(entry.record_id, None)
                latest[entry.record_id] = entry.deleted

            records: list[StoredRecord] = []
            for record_id, deleted in latest.items():
                live = None if deleted else session.get(Record, (record_type, record_id))
                if live is None:
                    records.append(
                        StoredRecord(
                            record_type=record_type,
                            record_id=record_id,
                            fields={},
                            change_tag="",
                            deleted=True,
                        )
                    )
                else:
                    records.append(StoredRecord.from_model(live))

            next_cursor = entries[-1].id if has_more else self._latest_cursor(session)
            return ChangePage(records=records, cursor=next_cursor, has_more=has_more)

    def cleanup_old_changes(self, older_than_days: int = 30) -> int:
        """Delete old change log entries.

        Clients whose cursor falls behind the pruned range get an expired
        feed and fall back to a full refetch.

        Args:
            older_than_days: Delete entries older than this many days.

        Returns:
            Number of entries deleted.
        """
        cutoff = datetime.now(UTC) - timedelta(days=older_than_days)
        with self._session() as session:
            highest = session.execute(
                select(func.max(ChangeLog.id)).where(ChangeLog.timestamp < cutoff)
            ).scalar()
            if highest is None:
                return 0
            result = session.execute(delete(ChangeLog).where(ChangeLog.id <= highest))
            setting = session.get(ServerSetting, CHANGE_LOG_FLOOR_KEY)
            if setting is None:
                session.add(ServerSetting(key=CHANGE_LOG_FLOOR_KEY, value=str(highest)))
            else:
                setting.value = str(max(int(setting.value), highest))
            session.commit()
            return int(result.rowcount or 0)

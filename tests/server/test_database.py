"""Tests for the server database."""

from __future__ import annotations

from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy import update

from padsync.server.database import Database, FeedExpiredError, RecordConflictError
from padsync.server.models import ChangeLog


@pytest.fixture
def db(tmp_path: Path) -> Generator[Database, None, None]:
    """Create a test database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


def age_change_log(db: Database, days: int, up_to_id: int | None = None) -> None:
    """Backdate change log entries."""
    old = datetime.now(UTC) - timedelta(days=days)
    stmt = update(ChangeLog).values(timestamp=old)
    if up_to_id is not None:
        stmt = stmt.where(ChangeLog.id <= up_to_id)
    with db._session() as session:
        session.execute(stmt)
        session.commit()


class TestBlobs:
    """Tests for blob storage."""

    def test_creates_parent_dirs(self, tmp_path: Path) -> None:
        database = Database(tmp_path / "nested" / "dir" / "test.db")
        assert database.path.exists()
        database.close()

    def test_put_and_get(self, db: Database) -> None:
        db.put_blob("tabs", b"[1]")
        assert db.get_blob("tabs") == b"[1]"

    def test_overwrite(self, db: Database) -> None:
        db.put_blob("tabs", b"[1]")
        db.put_blob("tabs", b"[2]")
        assert db.get_blob("tabs") == b"[2]"

    def test_get_missing(self, db: Database) -> None:
        assert db.get_blob("missing") is None

    def test_delete(self, db: Database) -> None:
        db.put_blob("tabs", b"[]")
        assert db.delete_blob("tabs")
        assert not db.delete_blob("tabs")
        assert db.get_blob("tabs") is None

    def test_list_keys_sorted(self, db: Database) -> None:
        db.put_blob("tabs", b"[]")
        db.put_blob("clipboard", b"[]")
        assert db.list_blob_keys() == ["clipboard", "tabs"]


class TestRecords:
    """Tests for record storage with change tags."""

    def test_create_and_get(self, db: Database) -> None:
        saved = db.save_record("Tab", "A", {"content": "x"}, None)
        assert saved.change_tag
        stored = db.get_record("Tab", "A")
        assert stored is not None
        assert stored.fields == {"content": "x"}
        assert stored.change_tag == saved.change_tag

    def test_update_with_matching_tag(self, db: Database) -> None:
        first = db.save_record("Tab", "A", {"content": "x"}, None)
        second = db.save_record("Tab", "A", {"content": "y"}, first.change_tag)
        assert second.change_tag != first.change_tag

    def test_stale_tag_conflicts(self, db: Database) -> None:
        """A write with an outdated tag reports the current copy."""
        first = db.save_record("Tab", "A", {"content": "x"}, None)
        db.save_record("Tab", "A", {"content": "y"}, first.change_tag)
        with pytest.raises(RecordConflictError) as exc_info:
            db.save_record("Tab", "A", {"content": "z"}, first.change_tag)
        current = exc_info.value.current
        assert current is not None
        assert current.fields == {"content": "y"}

    def test_create_over_existing_conflicts(self, db: Database) -> None:
        db.save_record("Tab", "A", {"content": "x"}, None)
        with pytest.raises(RecordConflictError):
            db.save_record("Tab", "A", {"content": "y"}, None)

    def test_tag_for_missing_record_conflicts(self, db: Database) -> None:
        with pytest.raises(RecordConflictError) as exc_info:
            db.save_record("Tab", "A", {"content": "x"}, "stale")
        assert exc_info.value.current is None

    def test_list_records_by_type(self, db: Database) -> None:
        db.save_record("Tab", "B", {}, None)
        db.save_record("Tab", "A", {}, None)
        db.save_record("Clip", "C", {}, None)
        records, cursor = db.list_records("Tab")
        assert [r.record_id for r in records] == ["A", "B"]
        assert cursor == 3

    def test_delete(self, db: Database) -> None:
        db.save_record("Tab", "A", {}, None)
        assert db.delete_record("Tab", "A")
        assert not db.delete_record("Tab", "A")
        assert db.get_record("Tab", "A") is None

    def test_unicode_fields(self, db: Database) -> None:
        db.save_record("Tab", "A", {"content": "héllo ✓"}, None)
        stored = db.get_record("Tab", "A")
        assert stored is not None
        assert stored.fields["content"] == "héllo ✓"


class TestChangeFeed:
    """Tests for the change log and feed."""

    def test_changes_since_cursor(self, db: Database) -> None:
        db.save_record("Tab", "A", {"v": 1}, None)
        _, cursor = db.list_records("Tab")
        db.save_record("Tab", "B", {"v": 1}, None)

        page = db.get_changes_since("Tab", cursor)
        assert [r.record_id for r in page.records] == ["B"]
        assert page.cursor == db.latest_cursor()
        assert not page.has_more

    def test_collapses_to_latest_state(self, db: Database) -> None:
        """Several writes to one record are reported once, in latest form."""
        first = db.save_record("Tab", "A", {"v": 1}, None)
        db.save_record("Tab", "A", {"v": 2}, first.change_tag)
        page = db.get_changes_since("Tab", 0)
        [record] = page.records
        assert record.fields == {"v": 2}

    def test_deletions_reported(self, db: Database) -> None:
        db.save_record("Tab", "A", {"v": 1}, None)
        db.delete_record("Tab", "A")
        [record] = db.get_changes_since("Tab", 0).records
        assert record.deleted
        assert record.fields == {}

    def test_filters_by_type(self, db: Database) -> None:
        db.save_record("Clip", "C", {}, None)
        assert db.get_changes_since("Tab", 0).records == []

    def test_pagination(self, db: Database) -> None:
        for doc_id in ("A", "B", "C"):
            db.save_record("Tab", doc_id, {}, None)
        page = db.get_changes_since("Tab", 0, limit=2)
        assert [r.record_id for r in page.records] == ["A", "B"]
        assert page.has_more
        assert page.cursor == 2

        rest = db.get_changes_since("Tab", page.cursor, limit=2)
        assert [r.record_id for r in rest.records] == ["C"]
        assert not rest.has_more


class TestCleanup:
    """Tests for change log retention."""

    def test_nothing_old(self, db: Database) -> None:
        db.save_record("Tab", "A", {}, None)
        assert db.cleanup_old_changes(30) == 0

    def test_old_entries_deleted_and_floor_set(self, db: Database) -> None:
        """Pruning raises the floor so stale cursors get an expired feed."""
        db.save_record("Tab", "A", {}, None)
        db.save_record("Tab", "B", {}, None)
        age_change_log(db, days=40, up_to_id=1)
        db.save_record("Tab", "C", {}, None)

        assert db.cleanup_old_changes(30) == 1
        with pytest.raises(FeedExpiredError):
            db.get_changes_since("Tab", 0)

        page = db.get_changes_since("Tab", 1)
        assert [r.record_id for r in page.records] == ["B", "C"]

    def test_cursor_survives_full_prune(self, db: Database) -> None:
        """The latest cursor never goes backwards after pruning everything."""
        db.save_record("Tab", "A", {}, None)
        db.save_record("Tab", "B", {}, None)
        age_change_log(db, days=40)

        assert db.cleanup_old_changes(30) == 2
        assert db.latest_cursor() == 2
        assert db.get_changes_since("Tab", 2).records == []

        db.save_record("Tab", "C", {}, None)
        assert [r.record_id for r in db.get_changes_since("Tab", 2).records] == ["C"]

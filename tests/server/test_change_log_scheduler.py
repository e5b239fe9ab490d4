"""Tests for the change log cleanup scheduler."""

from __future__ import annotations

from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import update

from padsync.server.app import create_app
from padsync.server.database import Database
from padsync.server.models import ChangeLog
from padsync.server.scheduler import ChangeLogScheduler


@pytest.fixture
def db(tmp_path: Path) -> Generator[Database, None, None]:
    """Create a test database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


def backdate_all(db: Database, days: int) -> None:
    with db._session() as session:
        session.execute(
            update(ChangeLog).values(timestamp=datetime.now(UTC) - timedelta(days=days))
        )
        session.commit()


class TestChangeLogScheduler:
    """Tests for ChangeLogScheduler."""

    def test_start_and_stop(self, db: Database) -> None:
        scheduler = ChangeLogScheduler(db)
        assert not scheduler.running
        scheduler.start()
        assert scheduler.running
        scheduler.start()  # idempotent
        scheduler.stop()
        assert not scheduler.running

    def test_run_now_uses_retention(self, db: Database) -> None:
        db.save_record("Tab", "A", {}, None)
        backdate_all(db, days=10)

        assert ChangeLogScheduler(db, retention_days=30).run_now() == 0
        assert ChangeLogScheduler(db, retention_days=7).run_now() == 1

    def test_job_swallows_errors(self) -> None:
        """A failing cleanup is logged, the scheduler thread survives."""
        db = MagicMock()
        db.cleanup_old_changes.side_effect = RuntimeError("db locked")
        scheduler = ChangeLogScheduler(db)
        scheduler._cleanup_changes_job()
        db.cleanup_old_changes.assert_called_once_with(30)

    def test_app_lifespan_runs_scheduler(self, db: Database) -> None:
        """The app starts the scheduler on startup and stops it on shutdown."""
        scheduler = ChangeLogScheduler(db)
        with TestClient(create_app(db, scheduler=scheduler)):
            assert scheduler.running
        assert not scheduler.running

"""Scheduler for automatic maintenance tasks.

This module provides:
- Automatic daily change_log cleanup
- Manual cleanup for CLI/API usage
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

if TYPE_CHECKING:
    from padsync.server.database import Database

logger = logging.getLogger(__name__)


class ChangeLogScheduler:
    """Runs the change log cleanup once a day.

    Devices whose feed cursor falls behind the retained history get an
    expired-feed response and refetch everything.
    """

    def __init__(
        self,
        db: Database,
        retention_days: int = 30,
        hour: int = 3,
        minute: int = 30,
    ) -> None:
        """Initialize the scheduler.

        Args:
            db: Database instance.
            retention_days: Number of days of change log to retain.
            hour: Hour to run the cleanup job (0-23).
            minute: Minute to run the cleanup job (0-59).
        """
        self._db = db
        self._retention_days = retention_days
        self._hour = hour
        self._minute = minute
        self._scheduler: BackgroundScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def _cleanup_changes_job(self) -> None:
        """Job function for scheduled change log cleanup."""
        logger.info(
            "Starting scheduled change log cleanup (retention: %d days)",
            self._retention_days,
        )
        try:
            deleted = self._db.cleanup_old_changes(self._retention_days)
            if deleted > 0:
                logger.info("Change log cleanup: %d old entries deleted", deleted)
            else:
                logger.debug(
                    "Change log cleanup: no entries older than %d days",
                    self._retention_days,
                )
        except Exception:
            logger.exception("Error during scheduled change log cleanup")

    def start(self) -> None:
        """Start the scheduler."""
        if self._scheduler is not None:
            return  # Already running

        self._scheduler = BackgroundScheduler()
        self._scheduler.add_job(
            self._cleanup_changes_job,
            trigger=CronTrigger(hour=self._hour, minute=self._minute),
            id="change_log_cleanup",
            name="Daily change log cleanup",
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            "Change log scheduler started (daily at %02d:%02d, retention: %d days)",
            self._hour,
            self._minute,
            self._retention_days,
        )

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Change log scheduler stopped")

    def run_now(self) -> int:
        """Run the change log cleanup immediately (manual trigger).

        Returns:
            Number of change log entries deleted.
        """
        return self._db.cleanup_old_changes(self._retention_days)

"""Sync scheduler: decides when sync passes run.

This module provides:
- SyncScheduler: Drives SyncEngine passes from a periodic timer, a retry
  burst after enabling, foreground signals and remote-change notifications

State machine:
    DISABLED ─enable()─► STARTING ─(burst done)─► STEADY ─disable()─► DISABLED

Each collection kind has one APScheduler job ("sync-<kind>") that runs on
the polling interval. Triggers pull that job's next run time forward to
now instead of adding new jobs, and the job runs with max_instances=1 and
coalesce=True, so passes for the same kind never overlap. A trigger that
arrives while a pass is running is remembered and served by that pass
before it returns.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from padsync.client.sync.retry import Backoff
from padsync.client.sync.types import TransportError
from padsync.core.types import DocumentKind, SyncState

if TYPE_CHECKING:
    from apscheduler.schedulers.base import BaseScheduler

    from padsync.client.sync.engine import SyncEngine
    from padsync.client.sync.types import SyncReport

logger = logging.getLogger(__name__)

SYNC_JOB_PREFIX = "sync-"
BURST_JOB_PREFIX = "burst-"


class SyncScheduler:
    """Runs sync passes on a background scheduler.

    Usage:
        scheduler = SyncScheduler(engine)
        scheduler.start()          # resumes if sync was left enabled
        scheduler.enable()
        scheduler.notify_foreground()
        scheduler.disable()        # also clears remote state
        scheduler.shutdown()
    """

    def __init__(
        self,
        engine: SyncEngine,
        scheduler: BaseScheduler | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            engine: Sync engine to drive.
            scheduler: APScheduler instance (a BackgroundScheduler is
                created when omitted).
        """
        self._engine = engine
        self._settings = engine.settings
        self._scheduler = scheduler or BackgroundScheduler()
        self._state = SyncState.DISABLED
        self._lock = threading.RLock()
        self._requested: dict[DocumentKind, bool] = {}
        self._burst_remaining = 0
        self._backoff = {
            kind: Backoff(
                initial=self._settings.initial_backoff,
                maximum=self._settings.max_backoff,
                multiplier=self._settings.backoff_multiplier,
            )
            for kind in engine.kinds
        }

    @property
    def state(self) -> SyncState:
        """Current scheduler state."""
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        """Check if the underlying scheduler thread is running."""
        return bool(self._scheduler.running)

    def backoff(self, kind: DocumentKind) -> Backoff:
        """Failure backoff of a kind."""
        return self._backoff[kind]

    def job_ids(self) -> list[str]:
        """Ids of currently scheduled jobs."""
        return sorted(job.id for job in self._scheduler.get_jobs())

    # === Lifecycle ===

    def start(self) -> None:
        """Start the scheduler thread; resume syncing if it was enabled."""
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Sync scheduler started")
        if self._engine.is_enabled and self.state == SyncState.DISABLED:
            self._begin()

    def shutdown(self) -> None:
        """Stop the scheduler thread. Persisted toggle is left unchanged."""
        with self._lock:
            self._remove_jobs()
            self._state = SyncState.DISABLED
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Sync scheduler stopped")

    # === Toggle ===

    def enable(self) -> None:
        """Turn sync on: persist the toggle, poll, and run a retry burst."""
        self._engine.state.set_sync_enabled(True)
        if not self._scheduler.running:
            self._scheduler.start()
        if self.state == SyncState.DISABLED:
            self._begin()

    def disable(self, clear_remote: bool = True) -> None:
        """Turn sync off.

        Removes the polling and burst jobs as a group and persists the
        toggle. A pass already running completes and applies its result.

        Args:
            clear_remote: Also clear remote state (the explicit unsync).
        """
        with self._lock:
            self._remove_jobs()
            self._burst_remaining = 0
            self._requested.clear()
            self._state = SyncState.DISABLED
        self._engine.state.set_sync_enabled(False)
        logger.info("Sync disabled")

        if clear_remote:
            try:
                self._engine.unsync()
            except TransportError as e:
                logger.warning("Failed to clear remote state: %s", e)

    def _begin(self) -> None:
        now = datetime.now(UTC)
        with self._lock:
            self._state = SyncState.STARTING
            for kind in self._engine.kinds:
                self._requested[kind] = True
                self._scheduler.add_job(
                    self._run_job,
                    trigger=IntervalTrigger(seconds=self._settings.poll_interval),
                    args=[kind],
                    id=f"{SYNC_JOB_PREFIX}{kind.value}",
                    name=f"Sync {kind.value}",
                    next_run_time=now,
                    max_instances=1,
                    coalesce=True,
                    misfire_grace_time=None,
                    replace_existing=True,
                )

            delays = self._settings.burst_delays
            self._burst_remaining = len(delays)
            for index, delay in enumerate(delays):
                self._scheduler.add_job(
                    self._run_burst,
                    trigger=DateTrigger(run_date=now + timedelta(seconds=delay)),
                    id=f"{BURST_JOB_PREFIX}{index}",
                    name=f"Sync burst {index + 1}/{len(delays)}",
                    misfire_grace_time=None,
                    replace_existing=True,
                )
            if not delays:
                self._state = SyncState.STEADY
        logger.info(
            "Sync enabled (poll every %.0fs, burst at %s)",
            self._settings.poll_interval,
            ", ".join(f"{d:g}s" for d in self._settings.burst_delays) or "none",
        )

    def _remove_jobs(self) -> None:
        for job in self._scheduler.get_jobs():
            if job.id.startswith((SYNC_JOB_PREFIX, BURST_JOB_PREFIX)):
                try:
                    job.remove()
                except JobLookupError:
                    pass

    # === Triggers ===

    def notify_foreground(self) -> None:
        """The application came to the foreground."""
        logger.debug("Foreground signal")
        self.trigger()

    def notify_remote_changed(self, kind: DocumentKind | None = None) -> None:
        """The remote store reported a change (for one kind, or any)."""
        logger.debug("Remote change signal for %s", kind.value if kind else "all")
        self.trigger(kind)

    def trigger(self, kind: DocumentKind | None = None) -> None:
        """Request an immediate pass for one kind, or for every kind."""
        kinds = [kind] if kind is not None else self._engine.kinds
        now = datetime.now(UTC)
        with self._lock:
            if self._state == SyncState.DISABLED:
                return
            for k in kinds:
                self._requested[k] = True
                try:
                    self._scheduler.modify_job(
                        f"{SYNC_JOB_PREFIX}{k.value}", next_run_time=now
                    )
                except JobLookupError:
                    logger.debug("No sync job for %s", k.value)

    def _run_burst(self) -> None:
        self.trigger()
        with self._lock:
            self._burst_remaining = max(0, self._burst_remaining - 1)
            if self._burst_remaining == 0 and self._state == SyncState.STARTING:
                self._state = SyncState.STEADY
                logger.info("Sync scheduler steady")

    # === Passes ===

    def _run_job(self, kind: DocumentKind) -> None:
        """Job body: run passes until no trigger is outstanding."""
        with self._lock:
            self._requested[kind] = True
        while True:
            with self._lock:
                if self._state == SyncState.DISABLED or not self._requested.get(kind):
                    return
                self._requested[kind] = False
            self.run_pass(kind)

    def run_pass(self, kind: DocumentKind, force: bool = False) -> SyncReport | None:
        """Run one sync pass for a kind, honoring the failure backoff.

        Args:
            kind: Collection kind.
            force: Ignore the backoff window.

        Returns:
            The pass report, or None if skipped or failed.
        """
        backoff = self._backoff[kind]
        if not force and not backoff.ready():
            logger.debug("Skipping %s pass, backing off", kind.value)
            return None
        try:
            report = self._engine.sync(kind)
        except TransportError as e:
            delay = backoff.record_failure()
            logger.warning(
                "Sync of %s failed (%d in a row), next attempt in %.0fs: %s",
                kind.value,
                backoff.failures,
                delay,
                e,
            )
            return None
        except Exception:
            backoff.record_failure()
            logger.exception("Unexpected error syncing %s", kind.value)
            return None
        backoff.record_success()
        return report

"""Tests for debounced change tracking."""

from __future__ import annotations

import threading
import time
from unittest.mock import MagicMock

from padsync.client.store import DocumentStore
from padsync.client.sync.tracker import ChangeTracker, DeferredTask
from padsync.client.sync.types import PersistenceError, TransportError
from padsync.core.types import DocumentKind


class TestDeferredTask:
    """Tests for DeferredTask."""

    def test_fires_after_delay(self) -> None:
        fired = threading.Event()
        task = DeferredTask(0.01, fired.set)
        task.schedule()
        assert fired.wait(2.0)
        assert not task.pending

    def test_reschedule_fires_once(self) -> None:
        """Only the last schedule of a burst runs."""
        calls: list[int] = []
        done = threading.Event()

        def callback() -> None:
            calls.append(1)
            done.set()

        task = DeferredTask(0.05, callback)
        for _ in range(5):
            task.schedule()
        assert done.wait(2.0)
        time.sleep(0.1)
        assert calls == [1]

    def test_cancel(self) -> None:
        callback = MagicMock()
        task = DeferredTask(10.0, callback)
        task.schedule()
        assert task.cancel()
        assert not task.cancel()
        callback.assert_not_called()

    def test_run_now_only_when_pending(self) -> None:
        callback = MagicMock()
        task = DeferredTask(10.0, callback)
        task.run_now()
        callback.assert_not_called()

        task.schedule()
        task.run_now()
        callback.assert_called_once()
        assert not task.pending


class TestChangeTracker:
    """Tests for ChangeTracker."""

    def _tracker(
        self,
        push: MagicMock,
        should_push: bool = True,
    ) -> tuple[ChangeTracker, MagicMock]:
        store = MagicMock(spec=DocumentStore)
        tracker = ChangeTracker(
            {DocumentKind.TAB: store},
            push=push,
            delay=10.0,
            should_push=lambda: should_push,
        )
        return tracker, store

    def test_flush_saves_without_push(self) -> None:
        """A plain schedule only saves the snapshot."""
        push = MagicMock()
        tracker, store = self._tracker(push)
        tracker.schedule(DocumentKind.TAB)
        assert tracker.pending(DocumentKind.TAB)

        tracker.flush_now(DocumentKind.TAB)
        store.save.assert_called_once()
        push.assert_not_called()
        assert not tracker.pending(DocumentKind.TAB)

    def test_push_requests_accumulate(self) -> None:
        """A push requested anywhere in a burst survives later plain schedules."""
        push = MagicMock()
        tracker, _ = self._tracker(push)
        tracker.schedule(DocumentKind.TAB, push=True)
        tracker.schedule(DocumentKind.TAB)
        tracker.flush_all()
        push.assert_called_once_with(DocumentKind.TAB)

    def test_push_dropped_when_sync_disabled(self) -> None:
        push = MagicMock()
        tracker, store = self._tracker(push, should_push=False)
        tracker.schedule(DocumentKind.TAB, push=True)
        tracker.flush_all()
        store.save.assert_called_once()
        push.assert_not_called()

    def test_save_failure_still_pushes(self) -> None:
        """A failed snapshot write is logged and the push still runs."""
        push = MagicMock()
        tracker, store = self._tracker(push)
        store.save.side_effect = PersistenceError("disk full")
        tracker.schedule(DocumentKind.TAB, push=True)
        tracker.flush_all()
        push.assert_called_once()

    def test_push_failure_is_contained(self) -> None:
        push = MagicMock(side_effect=TransportError("offline"))
        tracker, _ = self._tracker(push)
        tracker.schedule(DocumentKind.TAB, push=True)
        tracker.flush_all()
        push.assert_called_once()

    def test_cancel_all(self) -> None:
        push = MagicMock()
        tracker, store = self._tracker(push)
        tracker.schedule(DocumentKind.TAB, push=True)
        tracker.cancel_all()
        tracker.flush_all()
        store.save.assert_not_called()
        push.assert_not_called()

"""Change tracker with trailing-edge debouncing.

This module provides:
- DeferredTask: Cancellable delayed call; a superseded timer never runs
- ChangeTracker: One DeferredTask per collection kind, flushing the local
  snapshot and optionally pushing to the remote store

Keystroke-level edits would otherwise cause a write storm, so every
mutation restarts the delay and only the last one in a burst flushes.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING

from padsync.client.sync.types import PersistenceError, TransportError

if TYPE_CHECKING:
    from padsync.client.store import DocumentStore
    from padsync.core.types import DocumentKind

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_DELAY = 1.0  # seconds


class DeferredTask:
    """A delayed call that can be rescheduled or cancelled.

    Each schedule() bumps a generation counter. A timer that fires after
    being superseded sees a stale generation and does nothing, which also
    covers the window where Timer.cancel() arrives too late.
    """

    def __init__(self, delay: float, callback: Callable[[], None], name: str = "") -> None:
        self._delay = delay
        self._callback = callback
        self._name = name or "DeferredTask"
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        """Check if a call is scheduled and has not fired yet."""
        with self._lock:
            return self._timer is not None

    def schedule(self) -> None:
        """Cancel any scheduled call and start the delay again."""
        with self._lock:
            if self._timer:
                self._timer.cancel()
            self._generation += 1
            self._timer = threading.Timer(
                self._delay, self._fire, args=(self._generation,)
            )
            self._timer.name = self._name
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> bool:
        """Cancel the scheduled call.

        Returns:
            True if a call was pending.
        """
        with self._lock:
            if self._timer is None:
                return False
            self._timer.cancel()
            self._timer = None
            self._generation += 1
            return True

    def run_now(self) -> None:
        """Run the callback immediately if a call was pending."""
        if self.cancel():
            self._callback()

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
        self._callback()


class ChangeTracker:
    """Debounces store mutations into snapshot saves and pushes.

    Usage:
        tracker = ChangeTracker(stores, push=engine.push, delay=1.0)
        tracker.schedule(DocumentKind.TAB)             # save only
        tracker.schedule(DocumentKind.TAB, push=True)  # save, then push
    """

    def __init__(
        self,
        stores: Mapping[DocumentKind, DocumentStore],
        push: Callable[[DocumentKind], object],
        delay: float = DEFAULT_DEBOUNCE_DELAY,
        should_push: Callable[[], bool] | None = None,
    ) -> None:
        """Initialize the tracker.

        Args:
            stores: Document store per kind.
            push: Pushes a kind to the remote store (may raise TransportError).
            delay: Debounce delay in seconds.
            should_push: Checked again at flush time; a push requested while
                sync was enabled is dropped if it has since been disabled.
        """
        self._stores = stores
        self._push = push
        self._should_push = should_push or (lambda: True)
        self._lock = threading.Lock()
        self._push_requested: dict[DocumentKind, bool] = {}
        self._tasks: dict[DocumentKind, DeferredTask] = {
            kind: DeferredTask(
                delay, lambda k=kind: self._flush(k), name=f"ChangeTracker-{kind.value}"
            )
            for kind in stores
        }

    def schedule(self, kind: DocumentKind, push: bool = False) -> None:
        """Schedule a debounced flush for a kind.

        Push requests accumulate until the flush runs.
        """
        with self._lock:
            self._push_requested[kind] = self._push_requested.get(kind, False) or push
        self._tasks[kind].schedule()

    def pending(self, kind: DocumentKind) -> bool:
        """Check if a flush is scheduled for a kind."""
        return self._tasks[kind].pending

    def flush_now(self, kind: DocumentKind) -> None:
        """Run a pending flush for a kind immediately."""
        self._tasks[kind].run_now()

    def flush_all(self) -> None:
        """Run every pending flush immediately (used at shutdown)."""
        for kind in self._tasks:
            self.flush_now(kind)

    def cancel_all(self) -> None:
        """Drop every pending flush without running it."""
        for task in self._tasks.values():
            task.cancel()
        with self._lock:
            self._push_requested.clear()

    def _flush(self, kind: DocumentKind) -> None:
        with self._lock:
            push = self._push_requested.pop(kind, False)

        try:
            self._stores[kind].save()
        except PersistenceError as e:
            # Memory stays authoritative; the next flush retries
            logger.error("Failed to save %s snapshot: %s", kind.value, e)

        if not push or not self._should_push():
            return
        try:
            self._push(kind)
        except TransportError as e:
            logger.warning("Push for %s failed, retrying on next pass: %s", kind.value, e)
        except Exception:
            logger.exception("Unexpected error pushing %s", kind.value)

"""Exponential backoff for failing sync passes.

This module provides:
- Backoff: Per-collection failure counter that pushes the next allowed
  pass out exponentially, reset by any success
"""

from __future__ import annotations

import logging
import threading
import time

logger = logging.getLogger(__name__)

# Default backoff configuration
DEFAULT_INITIAL_BACKOFF = 5.0  # seconds
DEFAULT_MAX_BACKOFF = 300.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0


class Backoff:
    """Tracks consecutive failures and when the next attempt is allowed.

    Delay after n consecutive failures is
    initial * multiplier ** (n - 1), capped at maximum.
    """

    def __init__(
        self,
        initial: float = DEFAULT_INITIAL_BACKOFF,
        maximum: float = DEFAULT_MAX_BACKOFF,
        multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    ) -> None:
        self._initial = initial
        self._maximum = maximum
        self._multiplier = multiplier
        self._failures = 0
        self._next_allowed = 0.0
        self._lock = threading.Lock()

    @property
    def failures(self) -> int:
        """Number of consecutive failures."""
        with self._lock:
            return self._failures

    @property
    def next_allowed(self) -> float:
        """Epoch time before which no attempt should start."""
        with self._lock:
            return self._next_allowed

    def delay_for(self, failures: int) -> float:
        """Backoff delay after the given number of consecutive failures."""
        if failures <= 0:
            return 0.0
        return min(self._initial * self._multiplier ** (failures - 1), self._maximum)

    def ready(self, now: float | None = None) -> bool:
        """Check if an attempt is allowed now."""
        current = now if now is not None else time.time()
        with self._lock:
            return current >= self._next_allowed

    def record_failure(self, now: float | None = None) -> float:
        """Register a failed attempt.

        Returns:
            Delay in seconds until the next attempt is allowed.
        """
        current = now if now is not None else time.time()
        with self._lock:
            self._failures += 1
            delay = self.delay_for(self._failures)
            self._next_allowed = current + delay
        return delay

    def record_success(self) -> None:
        """Register a successful attempt, resetting the backoff."""
        with self._lock:
            if self._failures:
                logger.debug("Backoff reset after %d failures", self._failures)
            self._failures = 0
            self._next_allowed = 0.0

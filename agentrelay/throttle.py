"""
Rate limiting for progress callbacks.

The throttler is a two-state machine:

    idle --notify() inside interval--> pending(timer) --timer fires--> idle

notify() outside the interval emits at once; force_notify() always emits at
once and returns to idle. Every emission reads the current state through
the snapshot function, never a queued copy.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Generic, TypeVar

__all__ = [
    "UpdateThrottler",
    "THROTTLE_MS",
]

log = logging.getLogger("agentrelay.throttle")

THROTTLE_MS = 150

T = TypeVar("T")


class UpdateThrottler(Generic[T]):
    """
    Coalesces bursts of state changes into at most one callback per interval.

    Args:
        snapshot: Returns a fresh copy of the state to emit
        callback: Receives each snapshot (None disables emission)
        interval_ms: Minimum spacing between emissions
        loop: Scheduler for deferred emissions (defaults to the running loop)
        clock: Monotonic time source in seconds
    """

    def __init__(
        self,
        snapshot: Callable[[], T],
        callback: Callable[[T], Any] | None,
        interval_ms: float = THROTTLE_MS,
        loop: asyncio.AbstractEventLoop | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._snapshot = snapshot
        self._callback = callback
        self._interval = interval_ms / 1000.0
        self._loop = loop
        self._clock = clock
        self._last_emit: float | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._closed = False
        self.emit_count = 0

    @property
    def pending(self) -> bool:
        """True while a deferred emission is scheduled."""
        return self._timer is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def notify(self) -> None:
        """Signal that the state changed."""
        if self._closed or self._callback is None:
            return

        now = self._clock()
        elapsed = None if self._last_emit is None else now - self._last_emit
        if elapsed is None or elapsed >= self._interval:
            self._emit()
            return

        if self._timer is None:
            loop = self._loop or asyncio.get_running_loop()
            self._timer = loop.call_later(self._interval - elapsed, self._on_timer)

    def force_notify(self) -> None:
        """Emit now, bypassing the interval, and drop any deferred emission."""
        if self._closed or self._callback is None:
            return
        self._emit()

    def close(self) -> None:
        """Cancel any deferred emission; no emission happens afterwards."""
        self._cancel_timer()
        self._closed = True

    def _on_timer(self) -> None:
        self._timer = None
        if not self._closed:
            self._emit()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _emit(self) -> None:
        self._cancel_timer()
        self._last_emit = self._clock()
        self.emit_count += 1
        try:
            self._callback(self._snapshot())
        except Exception:
            log.exception("Progress callback failed")

"""
Cooperative cancellation for agent runs.

An AbortSignal is owned by the caller and may be shared by several runs.
Each run registers exactly one listener and removes it when it finishes.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

__all__ = ["AbortSignal"]

log = logging.getLogger("agentrelay.signals")

AbortListener = Callable[[Any], None]


class AbortSignal:
    """
    A one-shot cancellation flag with listeners.

    Usage:
        signal = AbortSignal()
        task = asyncio.create_task(adapter.run("fix the tests", signal=signal))
        ...
        signal.abort("user pressed Ctrl-C")
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._aborted = False
        self._reason: Any = None
        self._listeners: list[AbortListener] = []

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def reason(self) -> Any:
        return self._reason

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def add_listener(self, listener: AbortListener) -> None:
        """Register a listener called once with the abort reason."""
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: AbortListener) -> None:
        """Deregister a listener (no-op if it is not registered)."""
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    def abort(self, reason: Any = None) -> None:
        """Trigger the signal. Later calls have no effect."""
        with self._lock:
            if self._aborted:
                return
            self._aborted = True
            self._reason = reason
            listeners = list(self._listeners)
            self._listeners.clear()

        for listener in listeners:
            try:
                listener(reason)
            except Exception:
                log.exception("Abort listener failed")

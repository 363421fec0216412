"""Coalesced persistence: run an action once after a quiet period."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class Debouncer:
    """Schedule *action* to run *delay* seconds after the last ``schedule()``.

    Repeated ``schedule()`` calls inside the window cancel the pending timer
    and start a new one, so a burst of mutations produces a single write.
    Failures inside *action* are logged, never raised into the timer thread.

    Args:
        delay: Quiet period in seconds.
        action: Zero-argument callable to run.
        name: Label used for the timer thread and log messages.
    """

    def __init__(self, delay: float, action: Callable[[], None], name: str = "debounce") -> None:
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self.delay = delay
        self.name = name
        self._action = action
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self) -> None:
        """(Re)start the quiet-period timer."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self.delay, self._fire)
            timer.daemon = True
            timer.name = f"{self.name}-timer"
            self._timer = timer
            timer.start()

    def cancel(self) -> bool:
        """Drop the pending run, if any. Returns True if one was pending."""
        with self._lock:
            if self._timer is None:
                return False
            self._timer.cancel()
            self._timer = None
            return True

    def flush(self) -> bool:
        """Run the pending action now. Returns True if one was pending."""
        if not self.cancel():
            return False
        self._run()
        return True

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
        self._run()

    def _run(self) -> None:
        try:
            self._action()
        except Exception:
            logger.exception("Deferred %s failed", self.name)

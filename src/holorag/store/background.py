"""Fire-and-forget background work."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


def run_in_background(
    target: Callable[..., Any],
    *args: Any,
    name: str = "holorag-task",
) -> threading.Thread:
    """Run ``target(*args)`` in a daemon thread. Failures are logged, never raised."""

    def _run() -> None:
        try:
            target(*args)
        except Exception:
            logger.exception("Background task '%s' failed", name)

    thread = threading.Thread(target=_run, daemon=True, name=name)
    thread.start()
    return thread

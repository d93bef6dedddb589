"""Collect close callbacks and run them together at shutdown."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)


class MultiClose:
    """Runs a set of close callbacks, in the order they were added, when closed."""

    def __init__(self) -> None:
        self._closers: list[Callable[[], None]] = []
        self._lock = threading.Lock()

    def add_close_func(self, closer: Callable[[], Any]) -> None:
        """Add a close callback whose exceptions propagate out of close()."""
        with self._lock:
            self._closers.append(closer)

    def add_close_with_error_func(self, closer: Callable[[], Any]) -> None:
        """Add a close callback whose failure is logged instead of raised."""

        def guarded() -> None:
            try:
                closer()
            except Exception as err:  # noqa: BLE001 - failures are reported, not raised
                logger.warning("close function failed: %s", err)

        with self._lock:
            self._closers.append(guarded)

    def close(self) -> None:
        """Run every registered callback once and forget them."""
        with self._lock:
            closers, self._closers = self._closers, []
            for closer in closers:
                closer()

    def __enter__(self) -> "MultiClose":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
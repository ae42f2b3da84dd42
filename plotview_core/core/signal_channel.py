from __future__ import annotations

import logging
import threading
from typing import Callable


LOGGER = logging.getLogger(__name__)


class WatchSignalChannel:
    """Single-slot hand-off from the watcher thread to the UI thread.

    `offer` never blocks on the consumer. Repeated offers before a `take`
    collapse into one pending signal and one wake-up. A wake that reports
    failure by returning False empties the slot again, so the next offer
    retries the wake instead of finding the slot stuck full.
    """

    def __init__(self, wake: Callable[[], object] | None = None) -> None:
        self._lock = threading.Lock()
        self._pending = False
        self._wake = wake
        self._offered = 0
        self._woken = 0

    def bind(self, wake: Callable[[], object]) -> None:
        """Attach the wake primitive; flushes a signal offered before binding."""
        with self._lock:
            self._wake = wake
            deliver = self._pending
        if deliver:
            self._deliver(wake)

    def offer(self) -> bool:
        """Producer side. Returns True when this offer filled an empty slot and woke the consumer."""
        with self._lock:
            self._offered += 1
            if self._pending:
                return False
            self._pending = True
            wake = self._wake
        if wake is None:
            return True
        return self._deliver(wake)

    def take(self) -> bool:
        """Consumer side. Clears the slot and reports whether a signal was pending."""
        with self._lock:
            pending = self._pending
            self._pending = False
            return pending

    def _deliver(self, wake: Callable[[], object]) -> bool:
        if wake() is False:
            with self._lock:
                self._pending = False
            LOGGER.warning("wake-up not delivered; watch signal dropped")
            return False
        with self._lock:
            self._woken += 1
        return True

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending

    @property
    def offered_count(self) -> int:
        with self._lock:
            return self._offered

    @property
    def wake_count(self) -> int:
        with self._lock:
            return self._woken

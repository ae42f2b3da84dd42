from __future__ import annotations

import logging
import os
from pathlib import Path
import queue
import threading
import time
from typing import Callable, Protocol

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer


LOGGER = logging.getLogger(__name__)
DEFAULT_DEBOUNCE_S = 1.0
_STOP = object()


class WatchSetupError(RuntimeError):
    pass


class ObserverLike(Protocol):
    def schedule(self, event_handler: FileSystemEventHandler, path: str, recursive: bool = False) -> object:
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...

    def join(self, timeout: float | None = None) -> None:
        ...

    def is_alive(self) -> bool:
        ...


class _TargetFileHandler(FileSystemEventHandler):
    """Forwards events that touch exactly one file inside the watched directory."""

    def __init__(self, target: Path, notify: Callable[[str], None]) -> None:
        super().__init__()
        self._target = _normalize(target)
        self._notify = notify

    def _is_target(self, path: object) -> bool:
        if not path:
            return False
        return _normalize(Path(os.fsdecode(path))) == self._target

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_target(event.src_path):
            self._notify("modified")

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_target(event.src_path):
            self._notify("created")

    def on_moved(self, event: FileSystemEvent) -> None:
        # editors often write temp -> move into place
        if not event.is_directory and self._is_target(getattr(event, "dest_path", "")):
            self._notify("moved into place")


class FileWatcher:
    """Watches one file and emits one debounced signal per burst of changes.

    Raw events arrive on the watchdog observer thread and are queued; the
    debounce thread opens a window on the first event of a burst, absorbs
    everything that arrives before it closes, then calls `sink` once.
    """

    def __init__(
        self,
        path: str | Path,
        sink: Callable[[], object],
        debounce_s: float = DEFAULT_DEBOUNCE_S,
        observer_factory: Callable[[], ObserverLike] | None = None,
        health_check_interval_s: float = 0.5,
    ) -> None:
        if debounce_s < 0:
            raise ValueError("debounce_s must be >= 0")
        if health_check_interval_s <= 0:
            raise ValueError("health_check_interval_s must be > 0")
        self._path = Path(path)
        self._sink = sink
        self._debounce_s = debounce_s
        self._observer_factory = observer_factory or Observer
        self._health_check_interval_s = health_check_interval_s
        self._raw: "queue.SimpleQueue[object]" = queue.SimpleQueue()
        self._running = threading.Event()
        self._thread: threading.Thread | None = None
        self._observer: ObserverLike | None = None
        self._last_error: Exception | None = None
        self._signals_emitted = 0
        self._raw_events = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def last_error(self) -> Exception | None:
        return self._last_error

    @property
    def signals_emitted(self) -> int:
        return self._signals_emitted

    @property
    def raw_events(self) -> int:
        return self._raw_events

    def is_running(self) -> bool:
        return self._running.is_set()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        if not self._path.exists():
            raise WatchSetupError(f"cannot watch {self._path}: path does not exist")
        if self._path.is_dir():
            raise WatchSetupError(f"cannot watch {self._path}: expected a file, got a directory")
        observer = self._observer_factory()
        handler = _TargetFileHandler(self._path, self.push_raw_event)
        watch_dir = self._path.resolve().parent
        try:
            observer.schedule(handler, str(watch_dir), recursive=False)
            observer.start()
        except Exception as exc:  # noqa: BLE001
            raise WatchSetupError(f"cannot watch {self._path}: {exc}") from exc
        self._observer = observer
        self._running.set()
        self._thread = threading.Thread(target=self._run, name="plotview-watch", daemon=True)
        self._thread.start()
        LOGGER.debug("watching %s (debounce=%.3fs)", self._path, self._debounce_s)

    def stop(self) -> None:
        self._running.clear()
        self._raw.put(_STOP)
        observer = self._observer
        self._observer = None
        if observer is not None:
            try:
                observer.stop()
                observer.join(timeout=1.0)
            except Exception:  # noqa: BLE001
                LOGGER.debug("observer shutdown failed", exc_info=True)
        if self._thread:
            self._thread.join(timeout=1.0)
            self._thread = None

    def push_raw_event(self, reason: str = "modified") -> None:
        """Queue one raw filesystem event. Safe from any thread."""
        self._raw.put(reason)

    def _run(self) -> None:
        try:
            while self._running.is_set():
                try:
                    item = self._raw.get(timeout=self._health_check_interval_s)
                except queue.Empty:
                    self._check_observer()
                    continue
                if item is _STOP:
                    break
                self._raw_events += 1
                if not self._absorb_burst():
                    break
                self._signals_emitted += 1
                LOGGER.debug("change detected on %s (signal %d)", self._path, self._signals_emitted)
                self._sink()
        except Exception as exc:  # noqa: BLE001
            self._last_error = exc
            LOGGER.exception("file watcher for %s failed; live reload disabled: %s", self._path, exc)
            self._running.clear()

    def _absorb_burst(self) -> bool:
        deadline = time.monotonic() + self._debounce_s
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return True
            try:
                item = self._raw.get(timeout=remaining)
            except queue.Empty:
                return True
            if item is _STOP:
                return False
            self._raw_events += 1

    def _check_observer(self) -> None:
        observer = self._observer
        if observer is None or observer.is_alive() or self._last_error is not None:
            return
        self._last_error = RuntimeError(f"filesystem observer for {self._path} stopped")
        LOGGER.warning("filesystem observer for %s stopped; live reload disabled", self._path)


def _normalize(path: Path) -> str:
    return os.path.normcase(str(path.resolve()))

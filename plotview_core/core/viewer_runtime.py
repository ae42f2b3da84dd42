from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Callable, Protocol

from plotview_core.platform.events import (
    CloseRequestedEvent,
    RedrawRequestedEvent,
    ResizedEvent,
    ViewerEvent,
    WatchSignalEvent,
)
from plotview_core.platform.window_system import WindowHandle, WindowSystem
from plotview_core.render.loader import DocumentLoadError, load_document
from plotview_core.render.rasterizer import draw_document
from plotview_core.render.svg import SvgDocument
from plotview_core.targets.base import DisplayFrame
from plotview_core.targets.surface import PresentationSurface

from .config import ViewerConfig
from .file_watcher import FileWatcher
from .signal_channel import WatchSignalChannel

LOGGER = logging.getLogger(__name__)


class Watcher(Protocol):
    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...


WatcherFactory = Callable[[Path, Callable[[], object], float], Watcher]


@dataclass
class ViewerState:
    """UI-thread-owned state. `scene` is only ever replaced, never edited."""

    scene: SvgDocument
    handle: WindowHandle
    surface: PresentationSurface


@dataclass(frozen=True)
class ViewerRunResult:
    frames_presented: int
    reloads_applied: int
    reloads_failed: int
    stopped_by_close: bool


class ViewerRuntime:
    """Single-threaded event loop: reload on watch signals, redraw on demand.

    Events are handled one at a time to completion. The watcher thread only
    ever reaches this object through the signal channel and the window
    system's wake event.
    """

    def __init__(
        self,
        path: str | Path,
        window_system: WindowSystem,
        config: ViewerConfig | None = None,
        *,
        loader: Callable[[Path], SvgDocument] = load_document,
        watcher_factory: WatcherFactory | None = None,
    ) -> None:
        self._path = Path(path)
        self._window_system = window_system
        self._config = config or ViewerConfig()
        self._loader = loader
        self._watcher_factory = watcher_factory or _default_watcher_factory
        self._channel = WatchSignalChannel()
        self._watcher: Watcher | None = None
        self._state: ViewerState | None = None
        self._frames_presented = 0
        self._reloads_applied = 0
        self._reloads_failed = 0
        self._last_frame: DisplayFrame | None = None

    @property
    def state(self) -> ViewerState:
        if self._state is None:
            raise RuntimeError("viewer is not started")
        return self._state

    @property
    def channel(self) -> WatchSignalChannel:
        return self._channel

    @property
    def last_frame(self) -> DisplayFrame | None:
        return self._last_frame

    @property
    def started(self) -> bool:
        return self._state is not None

    def startup(self) -> None:
        """Load, watch, open the window. Any failure here is fatal and leaves no window."""
        if self._state is not None:
            return
        scene = self._loader(self._path)
        LOGGER.info("loaded %s (%d shapes)", self._path, len(scene.shapes))

        watcher = self._watcher_factory(self._path, self._channel.offer, self._config.debounce_s)
        watcher.start()
        try:
            handle = self._window_system.create_window(self._config.width, self._config.height, self._config.title)
        except Exception:
            watcher.stop()
            raise
        self._watcher = watcher
        try:
            width, height = self._window_system.inner_size(handle)
            surface = PresentationSurface(
                self._window_system,
                handle,
                clear_color=self._config.background,
                max_dimension=self._config.max_dimension,
            )
            surface.initialize(width, height)
        except Exception:
            self._teardown(handle=handle, surface=None)
            raise
        self._state = ViewerState(scene=scene, handle=handle, surface=surface)
        self._channel.bind(self._window_system.post_wake)
        self._window_system.request_redraw(handle)

    def run(self, max_events: int | None = None) -> ViewerRunResult:
        if max_events is not None and max_events <= 0:
            raise ValueError("max_events must be > 0")
        self.startup()
        state = self.state
        stopped_by_close = False
        handled = 0
        try:
            while max_events is None or handled < max_events:
                event = self._window_system.wait_event(state.handle, timeout=None)
                if event is None:
                    continue
                handled += 1
                if not self.handle_event(event):
                    stopped_by_close = True
                    break
        finally:
            self.shutdown()
        return ViewerRunResult(
            frames_presented=self._frames_presented,
            reloads_applied=self._reloads_applied,
            reloads_failed=self._reloads_failed,
            stopped_by_close=stopped_by_close,
        )

    def handle_event(self, event: ViewerEvent) -> bool:
        """Dispatch one event; returns False when the loop should terminate."""
        if isinstance(event, CloseRequestedEvent):
            LOGGER.debug("close requested")
            return False
        if isinstance(event, WatchSignalEvent):
            self._on_watch_signal()
        elif isinstance(event, ResizedEvent):
            self._on_resized(event.width, event.height)
        elif isinstance(event, RedrawRequestedEvent):
            self._on_redraw()
        else:
            LOGGER.debug("ignoring unknown event %r", event)
        return True

    def shutdown(self) -> None:
        state = self._state
        self._state = None
        if state is None:
            self._teardown(handle=None, surface=None)
            return
        self._teardown(handle=state.handle, surface=state.surface)

    def _on_watch_signal(self) -> None:
        state = self.state
        if not self._channel.take():
            return
        try:
            scene = self._loader(self._path)
        except DocumentLoadError as exc:
            self._reloads_failed += 1
            LOGGER.warning("reload failed, keeping previous document: %s", exc)
            return
        state.scene = scene
        self._reloads_applied += 1
        LOGGER.info("reloaded %s (%d shapes)", self._path, len(scene.shapes))
        self._window_system.request_redraw(state.handle)

    def _on_resized(self, width: int, height: int) -> None:
        state = self.state
        if width > 0 and height > 0:
            state.surface.resize(width, height)
        self._window_system.request_redraw(state.handle)

    def _on_redraw(self) -> None:
        state = self.state
        # Resize and redraw events interleave; the window is the source of truth.
        width, height = self._window_system.inner_size(state.handle)
        if width <= 0 or height <= 0:
            LOGGER.debug("skipping redraw of zero-sized window")
            return
        state.surface.resize(width, height)
        frame = state.surface.begin_frame()
        draw_document(state.scene, frame, fit=self._config.fit)
        self._last_frame = state.surface.present(frame)
        self._frames_presented += 1

    def _teardown(self, handle: WindowHandle | None, surface: PresentationSurface | None) -> None:
        watcher = self._watcher
        self._watcher = None
        try:
            if watcher is not None:
                watcher.stop()
        finally:
            if surface is not None:
                surface.shutdown()
            if handle is not None:
                self._window_system.destroy_window(handle)


def _default_watcher_factory(path: Path, sink: Callable[[], object], debounce_s: float) -> Watcher:
    return FileWatcher(path, sink, debounce_s=debounce_s)

from __future__ import annotations

import itertools
import logging
import queue

import torch

from .events import (
    CloseRequestedEvent,
    RedrawRequestedEvent,
    ResizedEvent,
    ViewerEvent,
    WatchSignalEvent,
)
from .window_system import WindowHandle, WindowSystemError


LOGGER = logging.getLogger(__name__)
_WINDOW_IDS = itertools.count(1)


class HeadlessWindowSystem:
    """In-process window system: no display, scriptable events, recorded frames.

    Redraw requests are coalesced and delivered only once the event queue is
    empty, the same ordering a native event loop gives.
    """

    def __init__(self, close_when_idle: bool = False, keep_frames: bool = True) -> None:
        self._close_when_idle = close_when_idle
        self._keep_frames = keep_frames
        self._events: "queue.Queue[ViewerEvent]" = queue.Queue()
        self._handle: WindowHandle | None = None
        self._size = (0, 0)
        self._surface_size = (0, 0)
        self._redraw_pending = False
        self.presented: list[torch.Tensor] = []
        self.windows_created = 0
        self.frames_presented = 0

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    @property
    def surface_size(self) -> tuple[int, int]:
        return self._surface_size

    def create_window(self, width: int, height: int, title: str) -> WindowHandle:
        if self._handle is not None:
            raise WindowSystemError("headless window system supports a single window")
        if width <= 0 or height <= 0:
            raise WindowSystemError(f"invalid window size {width}x{height}")
        self._handle = WindowHandle(window_id=next(_WINDOW_IDS), title=title)
        self._size = (width, height)
        self._surface_size = (width, height)
        self.windows_created += 1
        return self._handle

    def destroy_window(self, handle: WindowHandle) -> None:
        if self._handle is handle:
            self._handle = None

    def inner_size(self, handle: WindowHandle) -> tuple[int, int]:
        return self._size

    def set_inner_size(self, width: int, height: int, notify: bool = True) -> None:
        """Simulate the user resizing the window; optionally queue the resize event."""
        self._size = (width, height)
        if notify:
            self._events.put(ResizedEvent(width=width, height=height))

    def push_event(self, event: ViewerEvent) -> None:
        self._events.put(event)

    def request_close(self) -> None:
        self._events.put(CloseRequestedEvent())

    def post_wake(self) -> bool:
        self._events.put(WatchSignalEvent())
        return True

    def request_redraw(self, handle: WindowHandle) -> None:
        self._redraw_pending = True

    def wait_event(self, handle: WindowHandle, timeout: float | None = None) -> ViewerEvent | None:
        try:
            return self._events.get_nowait()
        except queue.Empty:
            pass
        if self._redraw_pending:
            self._redraw_pending = False
            return RedrawRequestedEvent()
        if self._close_when_idle:
            return CloseRequestedEvent()
        try:
            return self._events.get(timeout=timeout)
        except queue.Empty:
            return None

    def resize_surface(self, handle: WindowHandle, width: int, height: int) -> None:
        self._surface_size = (width, height)

    def blit_rgba(self, handle: WindowHandle, rgba: torch.Tensor) -> None:
        height, width = int(rgba.shape[0]), int(rgba.shape[1])
        if (width, height) != self._surface_size:
            raise WindowSystemError(
                f"frame {width}x{height} does not match surface {self._surface_size[0]}x{self._surface_size[1]}"
            )
        if self._keep_frames:
            self.presented.append(rgba.clone())
        self.frames_presented += 1
        LOGGER.debug("headless present %dx%d (frames=%d)", width, height, self.frames_presented)

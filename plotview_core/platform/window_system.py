from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import torch

from .events import ViewerEvent


class WindowSystemError(RuntimeError):
    pass


@dataclass
class WindowHandle:
    window_id: int
    title: str
    native: object | None = None


class WindowSystem(Protocol):
    """Windowing seam used by the viewer runtime.

    Everything except `post_wake` must be called from the UI thread.
    """

    def create_window(self, width: int, height: int, title: str) -> WindowHandle:
        ...

    def destroy_window(self, handle: WindowHandle) -> None:
        ...

    def inner_size(self, handle: WindowHandle) -> tuple[int, int]:
        ...

    def wait_event(self, handle: WindowHandle, timeout: float | None = None) -> ViewerEvent | None:
        ...

    def request_redraw(self, handle: WindowHandle) -> None:
        ...

    def post_wake(self) -> bool:
        """Thread-safe: enqueue a WatchSignalEvent into the UI event queue.

        Returns False when the event could not be delivered.
        """
        ...

    def resize_surface(self, handle: WindowHandle, width: int, height: int) -> None:
        ...

    def blit_rgba(self, handle: WindowHandle, rgba: torch.Tensor) -> None:
        ...

"""Windowing backends for the viewer."""

from .events import CloseRequestedEvent, RedrawRequestedEvent, ResizedEvent, ViewerEvent, WatchSignalEvent
from .headless import HeadlessWindowSystem
from .pygame_window import PygameWindowSystem
from .window_system import WindowHandle, WindowSystem, WindowSystemError

__all__ = [
    "CloseRequestedEvent",
    "HeadlessWindowSystem",
    "PygameWindowSystem",
    "RedrawRequestedEvent",
    "ResizedEvent",
    "ViewerEvent",
    "WatchSignalEvent",
    "WindowHandle",
    "WindowSystem",
    "WindowSystemError",
]

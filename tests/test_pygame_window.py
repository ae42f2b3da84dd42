from __future__ import annotations

from collections import deque
from types import SimpleNamespace
import unittest

import torch

from plotview_core.core.signal_channel import WatchSignalChannel
from plotview_core.platform.events import CloseRequestedEvent, RedrawRequestedEvent, ResizedEvent, WatchSignalEvent
from plotview_core.platform.pygame_window import PygameWindowSystem
from plotview_core.platform.window_system import WindowSystemError


class _FakePygameError(Exception):
    pass


class _FakeSurface:
    def __init__(self, size: tuple[int, int]) -> None:
        self.size = size
        self.blits: list[tuple[object, tuple[int, int]]] = []

    def get_size(self) -> tuple[int, int]:
        return self.size

    def blit(self, image, pos: tuple[int, int]) -> None:
        self.blits.append((image, pos))


class _FakeEventModule:
    def __init__(self, pg: "_FakePygame") -> None:
        self._pg = pg
        self.queue: deque = deque()
        self.allowed: list[int] = []
        self.next_custom = 32866
        self.fail_post = False

    def Event(self, event_type: int, **attrs):
        return SimpleNamespace(type=event_type, **attrs)

    def post(self, event) -> bool:
        if not self._pg.display.initialized:
            raise _FakePygameError("video system not initialized")
        if self.fail_post:
            raise _FakePygameError("event queue is full")
        self.queue.append(event)
        return True

    def poll(self):
        if self.queue:
            return self.queue.popleft()
        return SimpleNamespace(type=self._pg.NOEVENT)

    def wait(self, timeout: int = 0):
        self._pg.waits.append(timeout)
        return self.poll()

    def custom_type(self) -> int:
        self.next_custom += 1
        return self.next_custom

    def set_blocked(self, types) -> None:
        return None

    def set_allowed(self, types) -> None:
        self.allowed = list(types)


class _FakeDisplayModule:
    def __init__(self, fail_set_mode: bool = False) -> None:
        self.initialized = False
        self.surface: _FakeSurface | None = None
        self.caption = ""
        self.set_mode_calls: list[tuple[int, int]] = []
        self.flips = 0
        self.fail_set_mode = fail_set_mode

    def init(self) -> None:
        self.initialized = True

    def quit(self) -> None:
        self.initialized = False
        self.surface = None

    def set_mode(self, size: tuple[int, int], flags: int = 0) -> _FakeSurface:
        if self.fail_set_mode:
            raise _FakePygameError("No available video device")
        self.set_mode_calls.append(size)
        self.surface = _FakeSurface(size)
        return self.surface

    def set_caption(self, title: str) -> None:
        self.caption = title

    def get_surface(self) -> _FakeSurface | None:
        return self.surface

    def flip(self) -> None:
        self.flips += 1


class _FakePygame:
    QUIT = 256
    WINDOWCLOSE = 32787
    VIDEORESIZE = 32769
    VIDEOEXPOSE = 32770
    WINDOWEXPOSED = 32771
    NOEVENT = 0
    RESIZABLE = 16
    error = _FakePygameError

    def __init__(self, fail_set_mode: bool = False) -> None:
        self.display = _FakeDisplayModule(fail_set_mode=fail_set_mode)
        self.event = _FakeEventModule(self)
        self.waits: list[int] = []
        self.frombuffer_calls: list[tuple[int, tuple[int, int], str]] = []
        self.image = SimpleNamespace(frombuffer=self._frombuffer)

    def _frombuffer(self, data: bytes, size: tuple[int, int], fmt: str):
        self.frombuffer_calls.append((len(data), size, fmt))
        return object()


def _window_system(pg: _FakePygame) -> PygameWindowSystem:
    ws = PygameWindowSystem()
    ws._pg = pg
    return ws


class PygameWindowSystemTests(unittest.TestCase):
    def test_create_window_sets_caption_and_size(self) -> None:
        pg = _FakePygame()
        ws = _window_system(pg)
        handle = ws.create_window(320, 200, "plotview")
        self.assertEqual(pg.display.caption, "plotview")
        self.assertEqual(ws.inner_size(handle), (320, 200))
        self.assertIn(pg.QUIT, pg.event.allowed)

    def test_create_window_failure_is_window_system_error(self) -> None:
        pg = _FakePygame(fail_set_mode=True)
        ws = _window_system(pg)
        with self.assertRaises(WindowSystemError):
            ws.create_window(320, 200, "plotview")
        self.assertFalse(pg.display.initialized)

    def test_post_wake_reports_delivery(self) -> None:
        pg = _FakePygame()
        ws = _window_system(pg)
        ws.create_window(320, 200, "plotview")
        self.assertTrue(ws.post_wake())
        pg.event.fail_post = True
        with self.assertLogs("plotview_core.platform.pygame_window", level="WARNING"):
            self.assertFalse(ws.post_wake())
        self.assertEqual(len(pg.event.queue), 1)

    def test_channel_recovers_after_full_event_queue(self) -> None:
        pg = _FakePygame()
        ws = _window_system(pg)
        handle = ws.create_window(320, 200, "plotview")
        channel = WatchSignalChannel(wake=ws.post_wake)
        pg.event.fail_post = True
        with self.assertLogs(level="WARNING"):
            self.assertFalse(channel.offer())
        self.assertFalse(channel.pending)
        pg.event.fail_post = False
        self.assertTrue(channel.offer())
        self.assertEqual(ws.wait_event(handle), WatchSignalEvent())
        self.assertTrue(channel.take())

    def test_post_wake_before_window_is_noop(self) -> None:
        pg = _FakePygame()
        ws = _window_system(pg)
        self.assertFalse(ws.post_wake())
        self.assertEqual(len(pg.event.queue), 0)

    def test_events_are_translated(self) -> None:
        pg = _FakePygame()
        ws = _window_system(pg)
        handle = ws.create_window(320, 200, "plotview")
        ws.post_wake()
        pg.event.post(pg.event.Event(pg.VIDEORESIZE, w=100, h=50))
        pg.event.post(pg.event.Event(pg.QUIT))
        self.assertEqual(ws.wait_event(handle), WatchSignalEvent())
        self.assertEqual(ws.wait_event(handle), ResizedEvent(width=100, height=50))
        self.assertEqual(ws.wait_event(handle), CloseRequestedEvent())

    def test_redraw_requests_coalesce_after_queue_drains(self) -> None:
        pg = _FakePygame()
        ws = _window_system(pg)
        handle = ws.create_window(320, 200, "plotview")
        ws.request_redraw(handle)
        ws.request_redraw(handle)
        pg.event.post(pg.event.Event(pg.VIDEOEXPOSE))
        ws.post_wake()
        self.assertEqual(ws.wait_event(handle), WatchSignalEvent())
        self.assertEqual(ws.wait_event(handle), RedrawRequestedEvent())
        self.assertIsNone(ws.wait_event(handle, timeout=0.05))
        self.assertEqual(pg.waits, [50])

    def test_resize_surface_only_when_size_changes(self) -> None:
        pg = _FakePygame()
        ws = _window_system(pg)
        handle = ws.create_window(320, 200, "plotview")
        ws.resize_surface(handle, 320, 200)
        ws.resize_surface(handle, 160, 100)
        self.assertEqual(pg.display.set_mode_calls, [(320, 200), (160, 100)])
        self.assertIs(handle.native, pg.display.surface)

    def test_blit_rgba_flips_display(self) -> None:
        pg = _FakePygame()
        ws = _window_system(pg)
        handle = ws.create_window(4, 3, "plotview")
        ws.blit_rgba(handle, torch.zeros((3, 4, 4), dtype=torch.uint8))
        self.assertEqual(pg.frombuffer_calls, [(48, (4, 3), "RGBA")])
        self.assertEqual(pg.display.flips, 1)

    def test_destroy_window_quits_display(self) -> None:
        pg = _FakePygame()
        ws = _window_system(pg)
        handle = ws.create_window(4, 3, "plotview")
        ws.destroy_window(handle)
        self.assertFalse(pg.display.initialized)
        self.assertEqual(ws.inner_size(handle), (0, 0))
        ws.post_wake()
        self.assertEqual(len(pg.event.queue), 0)


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import itertools
import logging

import numpy as np
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


class PygameWindowSystem:
    """SDL window through pygame.

    Watch signals arrive as a custom pygame event type; `pygame.event.post` is
    safe to call from the watcher thread. Redraw requests are coalesced into a
    single pending flag and delivered once the native queue is drained.
    """

    def __init__(self) -> None:
        self._pg = None
        self._wake_type: int | None = None
        self._handle: WindowHandle | None = None
        self._redraw_pending = False

    def _imports(self):
        if self._pg is not None:
            return self._pg
        try:
            import pygame  # type: ignore
        except Exception as exc:  # noqa: BLE001
            raise WindowSystemError("pygame window backend unavailable. Install the `pygame` package.") from exc
        self._pg = pygame
        return pygame

    def create_window(self, width: int, height: int, title: str) -> WindowHandle:
        if self._handle is not None:
            raise WindowSystemError("pygame window system supports a single window")
        pg = self._imports()
        try:
            pg.display.init()
            pg.event.set_blocked(None)
            surface = pg.display.set_mode((width, height), pg.RESIZABLE)
            pg.display.set_caption(title)
            self._wake_type = pg.event.custom_type()
            pg.event.set_allowed(
                [
                    pg.QUIT,
                    pg.VIDEORESIZE,
                    pg.VIDEOEXPOSE,
                    pg.WINDOWEXPOSED,
                    pg.WINDOWCLOSE,
                    self._wake_type,
                ]
            )
        except pg.error as exc:
            pg.display.quit()
            raise WindowSystemError(f"failed to open window: {exc}") from exc
        self._handle = WindowHandle(window_id=next(_WINDOW_IDS), title=title, native=surface)
        LOGGER.debug("pygame window opened at %dx%d", width, height)
        return self._handle

    def destroy_window(self, handle: WindowHandle) -> None:
        if self._handle is not handle:
            return
        self._handle = None
        self._wake_type = None
        pg = self._imports()
        try:
            pg.display.quit()
        except pg.error:
            # shutdown path should be best-effort
            LOGGER.debug("pygame display shutdown failed", exc_info=True)

    def inner_size(self, handle: WindowHandle) -> tuple[int, int]:
        pg = self._imports()
        surface = pg.display.get_surface()
        if surface is None:
            return (0, 0)
        width, height = surface.get_size()
        return (int(width), int(height))

    def post_wake(self) -> bool:
        wake_type = self._wake_type
        if wake_type is None:
            return False
        pg = self._imports()
        try:
            posted = pg.event.post(pg.event.Event(wake_type))
        except pg.error:
            # Display torn down or SDL queue full.
            LOGGER.warning("watch signal not delivered: pygame event queue unavailable")
            return False
        return posted is not False

    def request_redraw(self, handle: WindowHandle) -> None:
        self._redraw_pending = True

    def wait_event(self, handle: WindowHandle, timeout: float | None = None) -> ViewerEvent | None:
        pg = self._imports()
        while True:
            raw = pg.event.poll()
            if raw.type == pg.NOEVENT:
                if self._redraw_pending:
                    self._redraw_pending = False
                    return RedrawRequestedEvent()
                if timeout is None:
                    raw = pg.event.wait()
                else:
                    raw = pg.event.wait(max(1, int(timeout * 1000)))
                if raw.type == pg.NOEVENT:
                    return None
            event = self._translate(raw)
            if event is not None:
                return event

    def _translate(self, raw) -> ViewerEvent | None:
        pg = self._pg
        if raw.type in (pg.QUIT, pg.WINDOWCLOSE):
            return CloseRequestedEvent()
        if raw.type == pg.VIDEORESIZE:
            return ResizedEvent(width=int(raw.w), height=int(raw.h))
        if raw.type in (pg.VIDEOEXPOSE, pg.WINDOWEXPOSED):
            self._redraw_pending = True
            return None
        if self._wake_type is not None and raw.type == self._wake_type:
            return WatchSignalEvent()
        return None

    def resize_surface(self, handle: WindowHandle, width: int, height: int) -> None:
        pg = self._imports()
        surface = pg.display.get_surface()
        if surface is not None and surface.get_size() == (width, height):
            return
        try:
            handle.native = pg.display.set_mode((width, height), pg.RESIZABLE)
        except pg.error as exc:
            raise WindowSystemError(f"failed to resize window surface: {exc}") from exc

    def blit_rgba(self, handle: WindowHandle, rgba: torch.Tensor) -> None:
        pg = self._imports()
        surface = pg.display.get_surface()
        if surface is None:
            raise WindowSystemError("window surface is not available")
        height, width = int(rgba.shape[0]), int(rgba.shape[1])
        pixels = np.ascontiguousarray(rgba.cpu().numpy())
        image = pg.image.frombuffer(pixels.tobytes(), (width, height), "RGBA")
        surface.blit(image, (0, 0))
        pg.display.flip()

from __future__ import annotations

from enum import Enum
import logging

import torch

from plotview_core.platform.window_system import WindowHandle, WindowSystem
from plotview_core.render.rasterizer import DEFAULT_BACKGROUND, fill_frame
from plotview_core.render.svg import Color

from .base import DisplayFrame

LOGGER = logging.getLogger(__name__)


class SurfaceState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    STOPPED = "stopped"
    FAILED = "failed"


class SurfaceSizeMismatchError(ValueError):
    """A frame was presented whose size differs from the surface. Programming error."""


class PresentationSurface:
    """Owns the frame buffer bound to one window and pushes it to the display."""

    def __init__(
        self,
        window_system: WindowSystem,
        handle: WindowHandle,
        clear_color: Color = DEFAULT_BACKGROUND,
        max_dimension: int = 16384,
    ) -> None:
        self._window_system = window_system
        self._handle = handle
        self._clear_color = clear_color
        self._max_dimension = max_dimension
        self._state = SurfaceState.UNINITIALIZED
        self._frame: torch.Tensor | None = None
        self._revision = 0
        self._reallocations = 0
        self._last_error: Exception | None = None
        self.width = 0
        self.height = 0

    @property
    def state(self) -> SurfaceState:
        return self._state

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def reallocations(self) -> int:
        return self._reallocations

    @property
    def last_error(self) -> Exception | None:
        return self._last_error

    @property
    def frame(self) -> torch.Tensor:
        if self._state != SurfaceState.READY or self._frame is None:
            raise RuntimeError(f"surface must be READY to access its frame (state={self._state.value})")
        return self._frame

    def initialize(self, width: int, height: int) -> None:
        if self._state == SurfaceState.READY:
            return
        if self._state != SurfaceState.UNINITIALIZED:
            raise RuntimeError(f"surface cannot be initialized from state={self._state.value}")
        self._validate_dimensions(width, height)
        self._state = SurfaceState.READY
        self._reallocate(width, height)

    def resize(self, width: int, height: int) -> bool:
        """Match the surface to (width, height); returns False when nothing changed."""
        if self._state != SurfaceState.READY:
            raise RuntimeError(f"surface must be READY to resize (state={self._state.value})")
        self._validate_dimensions(width, height)
        if (width, height) == (self.width, self.height):
            return False
        self._reallocate(width, height)
        return True

    def clear(self) -> None:
        fill_frame(self.frame, self._clear_color)

    def begin_frame(self) -> torch.Tensor:
        """Clear and return the frame buffer for the caller to draw into."""
        self.clear()
        return self.frame

    def present(self, pixels: torch.Tensor) -> DisplayFrame:
        if self._state != SurfaceState.READY:
            raise RuntimeError(f"surface must be READY to present frames (state={self._state.value})")
        self._validate_frame(pixels)
        frame = self.frame
        if pixels is not frame:
            frame.copy_(pixels)
        try:
            self._window_system.blit_rgba(self._handle, frame)
        except Exception as exc:  # noqa: BLE001
            self._state = SurfaceState.FAILED
            self._last_error = exc
            raise RuntimeError("failed to present frame") from exc
        self._revision += 1
        return DisplayFrame(revision=self._revision, width=self.width, height=self.height, rgba=frame)

    def shutdown(self) -> None:
        self._frame = None
        self._state = SurfaceState.STOPPED

    def _reallocate(self, width: int, height: int) -> None:
        try:
            self._window_system.resize_surface(self._handle, width, height)
        except Exception as exc:  # noqa: BLE001
            self._state = SurfaceState.FAILED
            self._last_error = exc
            raise RuntimeError(f"failed to resize surface to {width}x{height}") from exc
        self._frame = torch.empty((height, width, 4), dtype=torch.uint8)
        fill_frame(self._frame, self._clear_color)
        self.width = width
        self.height = height
        self._reallocations += 1
        LOGGER.debug("surface reallocated to %dx%d", width, height)

    def _validate_dimensions(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("width and height must be > 0")
        if width > self._max_dimension or height > self._max_dimension:
            raise ValueError(f"width/height exceed max_dimension={self._max_dimension}: got {width}x{height}")

    def _validate_frame(self, rgba: torch.Tensor) -> None:
        if not torch.is_tensor(rgba):
            raise SurfaceSizeMismatchError("rgba frame must be a torch.Tensor")
        if rgba.dtype != torch.uint8:
            raise SurfaceSizeMismatchError(f"rgba frame must use torch.uint8, got {rgba.dtype}")
        if tuple(rgba.shape) != (self.height, self.width, 4):
            raise SurfaceSizeMismatchError(
                f"rgba frame shape mismatch: got {tuple(rgba.shape)} expected {(self.height, self.width, 4)}"
            )

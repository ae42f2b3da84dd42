from __future__ import annotations

import unittest

import torch

from plotview_core.platform.headless import HeadlessWindowSystem
from plotview_core.platform.window_system import WindowHandle
from plotview_core.targets.surface import PresentationSurface, SurfaceSizeMismatchError, SurfaceState


class _FailingWindowSystem(HeadlessWindowSystem):
    def __init__(self, fail_blit: bool = False, fail_resize: bool = False) -> None:
        super().__init__()
        self.fail_blit = fail_blit
        self.fail_resize = fail_resize

    def resize_surface(self, handle: WindowHandle, width: int, height: int) -> None:
        if self.fail_resize:
            raise OSError("surface lost")
        super().resize_surface(handle, width, height)

    def blit_rgba(self, handle: WindowHandle, rgba: torch.Tensor) -> None:
        if self.fail_blit:
            raise OSError("device removed")
        super().blit_rgba(handle, rgba)


class PresentationSurfaceTests(unittest.TestCase):
    def _surface(self, window_system: HeadlessWindowSystem | None = None, **kwargs) -> tuple[PresentationSurface, HeadlessWindowSystem]:
        ws = window_system or HeadlessWindowSystem()
        handle = ws.create_window(64, 48, "plotview")
        surface = PresentationSurface(ws, handle, **kwargs)
        surface.initialize(64, 48)
        return surface, ws

    def test_initialize_allocates_cleared_frame(self) -> None:
        surface, _ = self._surface(clear_color=(9, 8, 7, 255))
        self.assertEqual(surface.state, SurfaceState.READY)
        self.assertEqual(tuple(surface.frame.shape), (48, 64, 4))
        self.assertEqual(surface.frame[0, 0].tolist(), [9, 8, 7, 255])
        self.assertEqual(surface.reallocations, 1)

    def test_resize_is_idempotent(self) -> None:
        surface, ws = self._surface()
        self.assertTrue(surface.resize(100, 50))
        self.assertFalse(surface.resize(100, 50))
        self.assertEqual(surface.reallocations, 2)
        self.assertEqual((surface.width, surface.height), (100, 50))
        self.assertEqual(ws.surface_size, (100, 50))

    def test_resize_rejects_zero_and_oversized(self) -> None:
        surface, _ = self._surface(max_dimension=128)
        with self.assertRaises(ValueError):
            surface.resize(0, 10)
        with self.assertRaises(ValueError):
            surface.resize(129, 10)
        self.assertEqual(surface.state, SurfaceState.READY)

    def test_present_pushes_frame_and_bumps_revision(self) -> None:
        surface, ws = self._surface()
        frame = surface.begin_frame()
        frame[:, :, 0] = 200
        shown = surface.present(frame)
        self.assertEqual(shown.revision, 1)
        self.assertEqual((shown.width, shown.height), (64, 48))
        self.assertEqual(ws.frames_presented, 1)
        self.assertEqual(int(ws.presented[0][10, 10, 0]), 200)

    def test_present_copies_foreign_pixels(self) -> None:
        surface, ws = self._surface()
        pixels = torch.full((48, 64, 4), 77, dtype=torch.uint8)
        surface.present(pixels)
        self.assertTrue(torch.equal(surface.frame, pixels))

    def test_begin_frame_clears_previous_content(self) -> None:
        surface, _ = self._surface()
        surface.frame[:, :, :] = 0
        frame = surface.begin_frame()
        self.assertEqual(frame[5, 5].tolist(), [255, 255, 255, 255])

    def test_size_mismatch_raises(self) -> None:
        surface, ws = self._surface()
        with self.assertRaises(SurfaceSizeMismatchError):
            surface.present(torch.zeros((10, 10, 4), dtype=torch.uint8))
        with self.assertRaises(SurfaceSizeMismatchError):
            surface.present(torch.zeros((48, 64, 4), dtype=torch.float32))
        self.assertEqual(ws.frames_presented, 0)

    def test_backend_present_failure_marks_failed(self) -> None:
        ws = _FailingWindowSystem(fail_blit=True)
        surface, _ = self._surface(ws)
        with self.assertRaises(RuntimeError) as ctx:
            surface.present(surface.begin_frame())
        self.assertIsInstance(ctx.exception.__cause__, OSError)
        self.assertEqual(surface.state, SurfaceState.FAILED)
        self.assertIsInstance(surface.last_error, OSError)

    def test_backend_resize_failure_marks_failed(self) -> None:
        ws = _FailingWindowSystem()
        surface, _ = self._surface(ws)
        ws.fail_resize = True
        with self.assertRaises(RuntimeError):
            surface.resize(10, 10)
        self.assertEqual(surface.state, SurfaceState.FAILED)

    def test_shutdown_stops_surface(self) -> None:
        surface, _ = self._surface()
        surface.shutdown()
        self.assertEqual(surface.state, SurfaceState.STOPPED)
        with self.assertRaises(RuntimeError):
            surface.present(torch.zeros((48, 64, 4), dtype=torch.uint8))


if __name__ == "__main__":
    unittest.main()

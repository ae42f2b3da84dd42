from __future__ import annotations

import contextlib
import io
from pathlib import Path
import tempfile
import unittest
from unittest import mock

from PIL import Image

from plotview_core.cli import main
from plotview_core.platform.headless import HeadlessWindowSystem

RED_SQUARE = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 100 100">'
    '<rect width="100" height="100" fill="red"/>'
    "</svg>"
)


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.input = self.root / "plot.svg"
        self.input.write_text(RED_SQUARE)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _main(self, *argv: str) -> tuple[int, str]:
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = main([*argv, "--log-level", "CRITICAL"])
        return code, out.getvalue()

    def test_snapshot_writes_png(self) -> None:
        target = self.root / "out" / "plot.png"
        code, stdout = self._main(str(self.input), "--snapshot", str(target), "--width", "40", "--height", "20")
        self.assertEqual(code, 0)
        self.assertIn("snapshot written", stdout)
        with Image.open(target) as image:
            self.assertEqual(image.size, (40, 20))
            self.assertEqual(image.mode, "RGBA")
            self.assertEqual(image.getpixel((20, 10)), (255, 0, 0, 255))
            self.assertEqual(image.getpixel((2, 10)), (255, 255, 255, 255))

    def test_snapshot_stretch_and_background(self) -> None:
        target = self.root / "stretch.png"
        code, _ = self._main(
            str(self.input), "--snapshot", str(target), "--width", "40", "--height", "20", "--fit", "stretch"
        )
        self.assertEqual(code, 0)
        with Image.open(target) as image:
            self.assertEqual(image.getpixel((2, 10)), (255, 0, 0, 255))

    def test_snapshot_of_missing_file_fails(self) -> None:
        target = self.root / "never.png"
        code, _ = self._main(str(self.root / "nope.svg"), "--snapshot", str(target))
        self.assertEqual(code, 1)
        self.assertFalse(target.exists())

    def test_missing_input_exits_before_window(self) -> None:
        ws = HeadlessWindowSystem(close_when_idle=True)
        with mock.patch("plotview_core.cli.HeadlessWindowSystem", return_value=ws):
            code, _ = self._main(str(self.root / "nope.svg"), "--render", "headless")
        self.assertEqual(code, 1)
        self.assertEqual(ws.windows_created, 0)

    def test_headless_run_presents_one_frame(self) -> None:
        ws = HeadlessWindowSystem(close_when_idle=True)
        with mock.patch("plotview_core.cli.HeadlessWindowSystem", return_value=ws):
            code, stdout = self._main(str(self.input), "--render", "headless", "--width", "64", "--height", "48")
        self.assertEqual(code, 0)
        self.assertIn("frames=1", stdout)
        self.assertEqual(tuple(ws.presented[0].shape), (48, 64, 4))

    def test_invalid_settings_exit_2(self) -> None:
        code, _ = self._main(str(self.input), "--width", "0", "--snapshot", str(self.root / "x.png"))
        self.assertEqual(code, 2)
        code, _ = self._main(str(self.input), "--background", "notacolor", "--snapshot", str(self.root / "x.png"))
        self.assertEqual(code, 2)

    def test_missing_argument_is_usage_error(self) -> None:
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                main([])
        self.assertEqual(ctx.exception.code, 2)


if __name__ == "__main__":
    unittest.main()

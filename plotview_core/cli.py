from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path

from plotview_core.core import ViewerRuntime, WatchSetupError, resolve_config
from plotview_core.platform import HeadlessWindowSystem, PygameWindowSystem, WindowSystem, WindowSystemError
from plotview_core.render import DocumentLoadError, load_document, rasterize
from plotview_core.render.export import save_png


LOGGER = logging.getLogger("plotview")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="plotview", description="Live-reloading SVG viewer.")
    parser.add_argument("input", type=Path, help="SVG file to display and watch.")
    parser.add_argument("--width", type=int, default=None, help="Initial window width. Default: 800.")
    parser.add_argument("--height", type=int, default=None, help="Initial window height. Default: 600.")
    parser.add_argument(
        "--debounce",
        type=float,
        default=None,
        help="Seconds to coalesce a burst of file changes into one reload. Default: 1.0.",
    )
    parser.add_argument("--fit", choices=["contain", "stretch"], default=None)
    parser.add_argument("--background", default=None, help="Clear color, e.g. '#ffffff' or 'black'.")
    parser.add_argument("--render", choices=["pygame", "headless"], default="pygame")
    parser.add_argument(
        "--snapshot",
        type=Path,
        default=None,
        help="Render once to this PNG and exit without opening a window.",
    )
    parser.add_argument("--config", type=Path, default=None, help="TOML file with a [viewer] table.")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("PLOTVIEW_LOG_LEVEL", "INFO"),
        help="Logging level (env: PLOTVIEW_LOG_LEVEL). Default: INFO.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = resolve_config(
            args.config,
            width=args.width,
            height=args.height,
            debounce_s=args.debounce,
            fit=args.fit,
            background=args.background,
        )
    except (OSError, ValueError) as exc:
        LOGGER.error("invalid configuration: %s", exc)
        return 2

    if args.snapshot is not None:
        try:
            document = load_document(args.input)
        except DocumentLoadError as exc:
            LOGGER.error("%s", exc)
            return 1
        frame = rasterize(document, config.width, config.height, background=config.background, fit=config.fit)
        out = save_png(frame, args.snapshot)
        print(f"snapshot written: {out} ({config.width}x{config.height})")
        return 0

    window_system: WindowSystem
    if args.render == "headless":
        window_system = HeadlessWindowSystem(close_when_idle=True, keep_frames=False)
    else:
        window_system = PygameWindowSystem()

    runtime = ViewerRuntime(args.input, window_system, config)
    try:
        result = runtime.run()
    except (DocumentLoadError, WatchSetupError, WindowSystemError) as exc:
        LOGGER.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        return 130
    print(
        f"viewer closed: frames={result.frames_presented} reloads={result.reloads_applied} "
        f"failed_reloads={result.reloads_failed} stopped_by_close={result.stopped_by_close}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

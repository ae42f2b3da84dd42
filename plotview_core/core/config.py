from __future__ import annotations

from dataclasses import dataclass, fields, replace
import math
import os
from pathlib import Path
import tomllib
from typing import Mapping

from plotview_core.render.rasterizer import DEFAULT_BACKGROUND, FitMode
from plotview_core.render.svg import Color, parse_color


DEFAULT_TITLE = "plotview"
ENV_PREFIX = "PLOTVIEW_"
_FIT_MODES = ("contain", "stretch")


@dataclass(frozen=True)
class ViewerConfig:
    """Viewer settings: defaults < TOML file < environment < command line."""

    title: str = DEFAULT_TITLE
    width: int = 800
    height: int = 600
    debounce_s: float = 1.0
    fit: FitMode = "contain"
    background: Color = DEFAULT_BACKGROUND
    max_dimension: int = 16384

    def __post_init__(self) -> None:
        if not self.title:
            raise ValueError("title must not be empty")
        if self.width <= 0 or self.height <= 0:
            raise ValueError("width and height must be > 0")
        if self.width > self.max_dimension or self.height > self.max_dimension:
            raise ValueError(f"width/height exceed max_dimension={self.max_dimension}")
        if not math.isfinite(self.debounce_s) or self.debounce_s < 0:
            raise ValueError("debounce_s must be a finite value >= 0")
        if self.fit not in _FIT_MODES:
            raise ValueError(f"fit must be one of {_FIT_MODES}, got {self.fit!r}")
        if len(self.background) != 4 or any(not 0 <= c <= 255 for c in self.background):
            raise ValueError(f"background must be an RGBA255 tuple, got {self.background!r}")

    def with_overrides(self, **values: object) -> "ViewerConfig":
        """Apply non-None overrides; string colors are parsed."""
        updates = {key: value for key, value in values.items() if value is not None}
        known = {f.name for f in fields(self)}
        unknown = sorted(set(updates) - known)
        if unknown:
            raise ValueError(f"unknown viewer setting(s): {', '.join(unknown)}")
        if isinstance(updates.get("background"), str):
            updates["background"] = _coerce_color(str(updates["background"]))
        return replace(self, **updates)


def load_config_file(path: str | Path) -> dict[str, object]:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"config file not found: {config_path}")
    with config_path.open("rb") as f:
        raw = tomllib.load(f)
    table = raw.get("viewer", {})
    if not isinstance(table, dict):
        raise ValueError("[viewer] must be a table")
    out: dict[str, object] = {}
    for key, value in table.items():
        name = key.replace("-", "_")
        if name == "background":
            out[name] = _coerce_color(str(value))
        elif name in ("width", "height", "max_dimension"):
            out[name] = _coerce_int(value, key)
        elif name == "debounce_s":
            out[name] = _coerce_float(value, key)
        else:
            out[name] = value
    return out


def config_from_env(environ: Mapping[str, str] | None = None) -> dict[str, object]:
    env = os.environ if environ is None else environ
    out: dict[str, object] = {}
    if f"{ENV_PREFIX}WIDTH" in env:
        out["width"] = _coerce_int(env[f"{ENV_PREFIX}WIDTH"], f"{ENV_PREFIX}WIDTH")
    if f"{ENV_PREFIX}HEIGHT" in env:
        out["height"] = _coerce_int(env[f"{ENV_PREFIX}HEIGHT"], f"{ENV_PREFIX}HEIGHT")
    if f"{ENV_PREFIX}DEBOUNCE_S" in env:
        out["debounce_s"] = _coerce_float(env[f"{ENV_PREFIX}DEBOUNCE_S"], f"{ENV_PREFIX}DEBOUNCE_S")
    if f"{ENV_PREFIX}FIT" in env:
        out["fit"] = env[f"{ENV_PREFIX}FIT"].strip()
    if f"{ENV_PREFIX}BACKGROUND" in env:
        out["background"] = _coerce_color(env[f"{ENV_PREFIX}BACKGROUND"])
    return out


def resolve_config(
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
    **cli_overrides: object,
) -> ViewerConfig:
    config = ViewerConfig()
    if config_path is not None:
        config = config.with_overrides(**load_config_file(config_path))
    config = config.with_overrides(**config_from_env(environ))
    return config.with_overrides(**cli_overrides)


def _coerce_color(value: str) -> Color:
    color = parse_color(value)
    if color is None:
        raise ValueError(f"invalid color: {value!r}")
    return color


def _coerce_int(value: object, label: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{label} must be an integer")
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"{label} must be an integer, got {value!r}") from exc


def _coerce_float(value: object, label: str) -> float:
    if isinstance(value, bool):
        raise ValueError(f"{label} must be a number")
    try:
        return float(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"{label} must be a number, got {value!r}") from exc

from __future__ import annotations

from dataclasses import dataclass
import math
from pathlib import Path
from typing import Literal, Optional
import xml.etree.ElementTree as ET

from .geometry import (
    IDENTITY,
    Affine,
    Point,
    ellipse_points,
    flatten_path,
    parse_transform,
    rounded_rect_points,
)


Color = tuple[int, int, int, int]
FillRule = Literal["nonzero", "evenodd"]

_UNIT_SCALE = {
    "px": 1.0,
    "pt": 96.0 / 72.0,
    "pc": 16.0,
    "mm": 96.0 / 25.4,
    "cm": 96.0 / 2.54,
    "in": 96.0,
}

_NAMED_COLORS: dict[str, tuple[int, int, int]] = {
    "black": (0, 0, 0),
    "white": (255, 255, 255),
    "red": (255, 0, 0),
    "lime": (0, 255, 0),
    "green": (0, 128, 0),
    "blue": (0, 0, 255),
    "yellow": (255, 255, 0),
    "cyan": (0, 255, 255),
    "aqua": (0, 255, 255),
    "magenta": (255, 0, 255),
    "fuchsia": (255, 0, 255),
    "gray": (128, 128, 128),
    "grey": (128, 128, 128),
    "silver": (192, 192, 192),
    "maroon": (128, 0, 0),
    "olive": (128, 128, 0),
    "navy": (0, 0, 128),
    "purple": (128, 0, 128),
    "teal": (0, 128, 128),
    "orange": (255, 165, 0),
    "brown": (165, 42, 42),
    "pink": (255, 192, 203),
}

_INHERITED_PROPERTIES = (
    "fill",
    "stroke",
    "stroke-width",
    "fill-rule",
    "fill-opacity",
    "stroke-opacity",
    "visibility",
)
_STYLE_PROPERTIES = _INHERITED_PROPERTIES + ("opacity", "display")
_INITIAL_PROPERTIES = {
    "fill": "black",
    "stroke": "none",
    "stroke-width": "1",
    "fill-rule": "nonzero",
    "fill-opacity": "1",
    "stroke-opacity": "1",
    "visibility": "visible",
}
_CONTAINER_TAGS = {"svg", "g", "a", "switch"}
# Non-rendering or unsupported subtrees.
_SKIPPED_TAGS = {
    "defs",
    "title",
    "desc",
    "metadata",
    "style",
    "script",
    "symbol",
    "clipPath",
    "mask",
    "marker",
    "pattern",
    "linearGradient",
    "radialGradient",
    "filter",
    "text",
    "use",
    "image",
    "foreignObject",
}


@dataclass(frozen=True)
class SvgSubpath:
    points: tuple[Point, ...]
    closed: bool


@dataclass(frozen=True)
class SvgShape:
    """One painted element, flattened to polylines in viewBox coordinates."""

    tag: str
    subpaths: tuple[SvgSubpath, ...]
    fill: Optional[Color]
    stroke: Optional[Color]
    stroke_width: float
    fill_rule: FillRule = "nonzero"


@dataclass(frozen=True)
class SvgDocument:
    width: float
    height: float
    viewbox: tuple[float, float, float, float]
    preserve_aspect_ratio: tuple[str, str] = ("xMidYMid", "meet")
    shapes: tuple[SvgShape, ...] = ()

    @classmethod
    def from_file(cls, path: Path) -> "SvgDocument":
        return cls.from_bytes(Path(path).read_bytes())

    @classmethod
    def from_markup(cls, svg_markup: str) -> "SvgDocument":
        root = ET.fromstring(svg_markup)
        return cls._from_root(root)

    @classmethod
    def from_bytes(cls, data: bytes) -> "SvgDocument":
        root = ET.fromstring(data)
        return cls._from_root(root)

    @classmethod
    def _from_root(cls, root: ET.Element) -> "SvgDocument":
        if _strip_namespace(root.tag) != "svg":
            raise ValueError(f"root element must be <svg>, got <{_strip_namespace(root.tag)}>")
        width = _parse_length(root.attrib.get("width"))
        height = _parse_length(root.attrib.get("height"))
        viewbox = _parse_viewbox(root.attrib.get("viewBox"))
        if viewbox is None:
            vb = (0.0, 0.0, width or 100.0, height or 100.0)
        else:
            vb = viewbox
        if vb[2] <= 0 or vb[3] <= 0:
            raise ValueError(f"document viewBox must have a positive size, got {vb[2]}x{vb[3]}")
        if width is None:
            width = vb[2]
        if height is None:
            height = vb[3]
        shapes: list[SvgShape] = []
        _walk(root, IDENTITY, dict(_INITIAL_PROPERTIES), 1.0, shapes, is_root=True)
        return cls(
            width=width,
            height=height,
            viewbox=vb,
            preserve_aspect_ratio=_parse_preserve_aspect_ratio(root.attrib.get("preserveAspectRatio")),
            shapes=tuple(shapes),
        )


def _walk(
    elem: ET.Element,
    ctm: Affine,
    inherited: dict[str, str],
    opacity: float,
    out: list[SvgShape],
    is_root: bool = False,
) -> None:
    if not isinstance(elem.tag, str):
        return
    tag = _strip_namespace(elem.tag)
    if tag in _SKIPPED_TAGS:
        return
    own = _element_properties(elem)
    if own.get("display") == "none":
        return
    props = dict(inherited)
    for key, value in own.items():
        if key in _INHERITED_PROPERTIES and value != "inherit":
            props[key] = value
    opacity *= _parse_unit_interval(own.get("opacity"))
    try:
        ctm = ctm.compose(parse_transform(elem.attrib.get("transform")))
    except ValueError:
        # An invalid transform disables rendering of the element.
        return
    if tag in _CONTAINER_TAGS:
        if tag == "svg" and not is_root:
            # Nested viewports are placed, not clipped or rescaled.
            nested_x = _parse_length(elem.attrib.get("x")) or 0.0
            nested_y = _parse_length(elem.attrib.get("y")) or 0.0
            ctm = ctm.compose(Affine.translate(nested_x, nested_y))
        for child in elem:
            _walk(child, ctm, props, opacity, out)
        return
    subpaths = _shape_geometry(tag, elem)
    if not subpaths or props.get("visibility") in ("hidden", "collapse"):
        return
    fill = _resolve_paint(props.get("fill"), _parse_unit_interval(props.get("fill-opacity")) * opacity)
    stroke = _resolve_paint(props.get("stroke"), _parse_unit_interval(props.get("stroke-opacity")) * opacity)
    if tag == "line":
        fill = None
    stroke_width = (_parse_length(props.get("stroke-width")) or 0.0) * ctm.scale_factor()
    if not math.isfinite(stroke_width):
        stroke_width = 0.0
    if fill is None and (stroke is None or stroke_width <= 0):
        return
    # Shapes only ever carry finite coordinates; overflowing subpaths are dropped.
    placed = [(ctm.apply_points(points), closed) for points, closed in subpaths]
    placed = [(points, closed) for points, closed in placed if _all_finite(points)]
    if not placed:
        return
    fill_rule: FillRule = "evenodd" if props.get("fill-rule") == "evenodd" else "nonzero"
    out.append(
        SvgShape(
            tag=tag,
            subpaths=tuple(SvgSubpath(points=points, closed=closed) for points, closed in placed),
            fill=fill,
            stroke=stroke,
            stroke_width=stroke_width,
            fill_rule=fill_rule,
        )
    )


def _all_finite(points: tuple[Point, ...]) -> bool:
    return all(math.isfinite(x) and math.isfinite(y) for x, y in points)


def _shape_geometry(tag: str, elem: ET.Element) -> list[tuple[list[Point], bool]]:
    attrib = elem.attrib
    if tag == "rect":
        x = _parse_length(attrib.get("x")) or 0.0
        y = _parse_length(attrib.get("y")) or 0.0
        w = _parse_length(attrib.get("width")) or 0.0
        h = _parse_length(attrib.get("height")) or 0.0
        if w <= 0 or h <= 0:
            return []
        rx = _parse_length(attrib.get("rx"))
        ry = _parse_length(attrib.get("ry"))
        if rx is None:
            rx = ry
        if ry is None:
            ry = rx
        return [(rounded_rect_points(x, y, w, h, rx or 0.0, ry or 0.0), True)]
    if tag == "circle":
        cx = _parse_length(attrib.get("cx")) or 0.0
        cy = _parse_length(attrib.get("cy")) or 0.0
        r = _parse_length(attrib.get("r")) or 0.0
        points = ellipse_points(cx, cy, r, r)
        return [(points, True)] if points else []
    if tag == "ellipse":
        cx = _parse_length(attrib.get("cx")) or 0.0
        cy = _parse_length(attrib.get("cy")) or 0.0
        rx = _parse_length(attrib.get("rx")) or 0.0
        ry = _parse_length(attrib.get("ry")) or 0.0
        points = ellipse_points(cx, cy, rx, ry)
        return [(points, True)] if points else []
    if tag == "line":
        x1 = _parse_length(attrib.get("x1")) or 0.0
        y1 = _parse_length(attrib.get("y1")) or 0.0
        x2 = _parse_length(attrib.get("x2")) or 0.0
        y2 = _parse_length(attrib.get("y2")) or 0.0
        return [([(x1, y1), (x2, y2)], False)]
    if tag in ("polyline", "polygon"):
        points = _parse_points(attrib.get("points"))
        if len(points) < 2:
            return []
        return [(points, tag == "polygon")]
    if tag == "path":
        return flatten_path(attrib.get("d", ""))
    return []


def _element_properties(elem: ET.Element) -> dict[str, str]:
    props = {key: elem.attrib[key].strip() for key in _STYLE_PROPERTIES if key in elem.attrib}
    style = elem.attrib.get("style")
    if style:
        for decl in style.split(";"):
            if ":" not in decl:
                continue
            key, value = decl.split(":", 1)
            key = key.strip()
            if key in _STYLE_PROPERTIES:
                props[key] = value.strip()
    return props


def _resolve_paint(value: Optional[str], opacity: float) -> Optional[Color]:
    color = parse_color(value)
    if color is None:
        return None
    r, g, b, a = color
    alpha = max(0, min(255, int(round(a * max(0.0, min(1.0, opacity))))))
    if alpha <= 0:
        return None
    return (r, g, b, alpha)


def _strip_namespace(tag: str) -> str:
    if not isinstance(tag, str):
        return ""
    if "}" in tag:
        return tag.split("}", 1)[1]
    return tag


def _parse_length(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    value = value.strip()
    if value.endswith("%"):
        return None
    factor = 1.0
    for unit, scale in _UNIT_SCALE.items():
        if value.endswith(unit):
            value = value[: -len(unit)]
            factor = scale
            break
    try:
        number = float(value)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number * factor


def _parse_unit_interval(value: Optional[str]) -> float:
    if not value:
        return 1.0
    value = value.strip()
    try:
        if value.endswith("%"):
            number = float(value[:-1]) / 100.0
        else:
            number = float(value)
    except ValueError:
        return 1.0
    if not math.isfinite(number):
        return 1.0
    return max(0.0, min(1.0, number))


def _parse_viewbox(value: Optional[str]) -> Optional[tuple[float, float, float, float]]:
    if not value:
        return None
    parts = value.replace(",", " ").split()
    if len(parts) != 4:
        return None
    try:
        numbers = tuple(float(p) for p in parts)
    except ValueError:
        return None
    if not all(math.isfinite(n) for n in numbers):
        return None
    return numbers  # type: ignore[return-value]


def _parse_preserve_aspect_ratio(value: Optional[str]) -> tuple[str, str]:
    if not value:
        return ("xMidYMid", "meet")
    parts = value.split()
    if parts and parts[0] == "defer":
        parts = parts[1:]
    if not parts:
        return ("xMidYMid", "meet")
    align = parts[0]
    valid = {"none"} | {f"x{x}Y{y}" for x in ("Min", "Mid", "Max") for y in ("Min", "Mid", "Max")}
    if align not in valid:
        return ("xMidYMid", "meet")
    mode = parts[1] if len(parts) > 1 and parts[1] in ("meet", "slice") else "meet"
    return (align, mode)


def _parse_points(value: Optional[str]) -> list[Point]:
    if not value:
        return []
    parts = value.replace(",", " ").split()
    points: list[Point] = []
    it = iter(parts)
    for x_str, y_str in zip(it, it):
        try:
            x, y = float(x_str), float(y_str)
        except ValueError:
            break
        if not (math.isfinite(x) and math.isfinite(y)):
            break
        points.append((x, y))
    return points


def parse_color(value: Optional[str]) -> Optional[Color]:
    """Parse an SVG paint/color value; `none`, gradients and unknown values give None."""
    if not value:
        return None
    value = value.strip()
    lowered = value.lower()
    if lowered in ("none", "transparent") or lowered.startswith("url("):
        return None
    if lowered == "currentcolor":
        return (0, 0, 0, 255)
    if lowered in _NAMED_COLORS:
        r, g, b = _NAMED_COLORS[lowered]
        return (r, g, b, 255)
    if value.startswith("#"):
        hex_value = value[1:]
        try:
            if len(hex_value) == 3:
                r = int(hex_value[0] * 2, 16)
                g = int(hex_value[1] * 2, 16)
                b = int(hex_value[2] * 2, 16)
                return (r, g, b, 255)
            if len(hex_value) == 4:
                r = int(hex_value[0] * 2, 16)
                g = int(hex_value[1] * 2, 16)
                b = int(hex_value[2] * 2, 16)
                a = int(hex_value[3] * 2, 16)
                return (r, g, b, a)
            if len(hex_value) == 6:
                r = int(hex_value[0:2], 16)
                g = int(hex_value[2:4], 16)
                b = int(hex_value[4:6], 16)
                return (r, g, b, 255)
            if len(hex_value) == 8:
                r = int(hex_value[0:2], 16)
                g = int(hex_value[2:4], 16)
                b = int(hex_value[4:6], 16)
                a = int(hex_value[6:8], 16)
                return (r, g, b, a)
        except ValueError:
            return None
        return None
    if lowered.startswith("rgb"):
        numbers = value[value.find("(") + 1 : value.find(")")].split(",")
        if len(numbers) >= 3:
            try:
                r, g, b = (_parse_channel(n) for n in numbers[:3])
                a = 255
                if len(numbers) >= 4:
                    a = int(round(_parse_unit_interval(numbers[3]) * 255))
                return (r, g, b, a)
            except ValueError:
                return None
    return None


def _parse_channel(value: str) -> int:
    value = value.strip()
    if value.endswith("%"):
        number = float(value[:-1]) * 2.55
    else:
        number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"non-finite color channel: {value}")
    return max(0, min(255, int(round(number))))

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
import re
from typing import Iterable


LOGGER = logging.getLogger(__name__)

Point = tuple[float, float]

CURVE_SEGMENTS = 16
ELLIPSE_SEGMENTS = 72

_TRANSFORM_RE = re.compile(r"(matrix|translate|scale|rotate|skewX|skewY)\s*\(([^)]*)\)")
_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_PATH_TOKEN_RE = re.compile(r"[MmLlHhVvCcSsQqTtAaZz]|[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


@dataclass(frozen=True)
class Affine:
    """2D affine map: x' = a*x + c*y + e, y' = b*x + d*y + f."""

    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    e: float = 0.0
    f: float = 0.0

    @classmethod
    def translate(cls, tx: float, ty: float = 0.0) -> "Affine":
        return cls(e=tx, f=ty)

    @classmethod
    def scale(cls, sx: float, sy: float | None = None) -> "Affine":
        return cls(a=sx, d=sx if sy is None else sy)

    @classmethod
    def rotate(cls, degrees: float, cx: float = 0.0, cy: float = 0.0) -> "Affine":
        rad = math.radians(degrees)
        cos_r = math.cos(rad)
        sin_r = math.sin(rad)
        rot = cls(a=cos_r, b=sin_r, c=-sin_r, d=cos_r)
        if cx == 0.0 and cy == 0.0:
            return rot
        return cls.translate(cx, cy).compose(rot).compose(cls.translate(-cx, -cy))

    def compose(self, other: "Affine") -> "Affine":
        """Return the map that applies `other` first, then `self`."""
        return Affine(
            a=self.a * other.a + self.c * other.b,
            b=self.b * other.a + self.d * other.b,
            c=self.a * other.c + self.c * other.d,
            d=self.b * other.c + self.d * other.d,
            e=self.a * other.e + self.c * other.f + self.e,
            f=self.b * other.e + self.d * other.f + self.f,
        )

    def apply(self, x: float, y: float) -> Point:
        return (self.a * x + self.c * y + self.e, self.b * x + self.d * y + self.f)

    def apply_points(self, points: Iterable[Point]) -> tuple[Point, ...]:
        return tuple(self.apply(x, y) for x, y in points)

    def scale_factor(self) -> float:
        """Geometric-mean scale, used to map stroke widths through the transform."""
        return math.sqrt(abs(self.a * self.d - self.b * self.c))


IDENTITY = Affine()


def parse_transform(value: str | None) -> Affine:
    if not value:
        return IDENTITY
    out = IDENTITY
    for name, raw_args in _TRANSFORM_RE.findall(value):
        args = [float(v) for v in _NUMBER_RE.findall(raw_args)]
        if not all(math.isfinite(v) for v in args):
            raise ValueError(f"{name}() has a non-finite argument")
        out = out.compose(_transform_from_args(name, args))
    return out


def _transform_from_args(name: str, args: list[float]) -> Affine:
    if name == "matrix":
        if len(args) != 6:
            raise ValueError(f"matrix() takes 6 values, got {len(args)}")
        return Affine(*args)
    if name == "translate":
        if len(args) not in (1, 2):
            raise ValueError(f"translate() takes 1 or 2 values, got {len(args)}")
        return Affine.translate(args[0], args[1] if len(args) == 2 else 0.0)
    if name == "scale":
        if len(args) not in (1, 2):
            raise ValueError(f"scale() takes 1 or 2 values, got {len(args)}")
        return Affine.scale(args[0], args[1] if len(args) == 2 else None)
    if name == "rotate":
        if len(args) == 1:
            return Affine.rotate(args[0])
        if len(args) == 3:
            return Affine.rotate(args[0], args[1], args[2])
        raise ValueError(f"rotate() takes 1 or 3 values, got {len(args)}")
    if len(args) != 1:
        raise ValueError(f"{name}() takes 1 value, got {len(args)}")
    tan = math.tan(math.radians(args[0]))
    if name == "skewX":
        return Affine(c=tan)
    return Affine(b=tan)


def ellipse_points(cx: float, cy: float, rx: float, ry: float, segments: int = ELLIPSE_SEGMENTS) -> list[Point]:
    if rx <= 0 or ry <= 0:
        return []
    step = 2.0 * math.pi / segments
    return [(cx + rx * math.cos(i * step), cy + ry * math.sin(i * step)) for i in range(segments)]


def rounded_rect_points(x: float, y: float, w: float, h: float, rx: float, ry: float) -> list[Point]:
    rx = min(rx, w / 2.0)
    ry = min(ry, h / 2.0)
    if rx <= 0 or ry <= 0:
        return [(x, y), (x + w, y), (x + w, y + h), (x, y + h)]
    quarter = max(2, ELLIPSE_SEGMENTS // 4)
    corners = (
        (x + w - rx, y + ry, -90.0),
        (x + w - rx, y + h - ry, 0.0),
        (x + rx, y + h - ry, 90.0),
        (x + rx, y + ry, 180.0),
    )
    points: list[Point] = []
    for ccx, ccy, start in corners:
        for i in range(quarter + 1):
            angle = math.radians(start + 90.0 * i / quarter)
            points.append((ccx + rx * math.cos(angle), ccy + ry * math.sin(angle)))
    return points


class _PathTokens:
    def __init__(self, data: str) -> None:
        self._tokens = _PATH_TOKEN_RE.findall(data)
        self._i = 0

    def done(self) -> bool:
        return self._i >= len(self._tokens)

    def has_number(self) -> bool:
        return not self.done() and not self._tokens[self._i].isalpha()

    def command(self) -> str:
        if self.done() or not self._tokens[self._i].isalpha():
            raise ValueError("expected path command")
        tok = self._tokens[self._i]
        self._i += 1
        return tok

    def number(self) -> float:
        if not self.has_number():
            raise ValueError("expected number in path data")
        tok = self._tokens[self._i]
        value = float(tok)
        if not math.isfinite(value):
            raise ValueError(f"non-finite number in path data: {tok}")
        self._i += 1
        return value

    def flag(self) -> bool:
        # Arc flags may be packed against the next number ("a1 1 0 01 5 5").
        if not self.has_number():
            raise ValueError("expected arc flag in path data")
        tok = self._tokens[self._i].lstrip("+")
        if tok[:1] not in ("0", "1"):
            raise ValueError(f"invalid arc flag: {tok}")
        if len(tok) > 1:
            self._tokens[self._i] = tok[1:]
        else:
            self._i += 1
        return tok[0] == "1"


def flatten_path(data: str, curve_segments: int = CURVE_SEGMENTS) -> list[tuple[list[Point], bool]]:
    """Flatten SVG path data into (points, closed) polylines.

    Malformed data stops the parse; everything before the error is kept.
    """
    tokens = _PathTokens(data)
    subpaths: list[tuple[list[Point], bool]] = []
    current: list[Point] = []
    x = y = 0.0
    start: Point = (0.0, 0.0)
    prev_cmd = ""
    last_cubic: Point | None = None
    last_quad: Point | None = None

    def flush(closed: bool) -> None:
        nonlocal current
        if len(current) >= 2:
            subpaths.append((current, closed))
        current = []

    def ensure_started() -> None:
        if not current:
            current.append((x, y))

    try:
        while not tokens.done():
            cmd = tokens.command()
            if cmd in "Zz":
                if current:
                    flush(closed=True)
                x, y = start
                prev_cmd = "Z"
                continue
            first = True
            while first or tokens.has_number():
                first = False
                rel = cmd.islower()
                op = cmd.upper()
                ox, oy = (x, y) if rel else (0.0, 0.0)
                if op == "M":
                    flush(closed=False)
                    x, y = ox + tokens.number(), oy + tokens.number()
                    start = (x, y)
                    current.append((x, y))
                    cmd = "l" if rel else "L"
                elif op == "L":
                    ensure_started()
                    x, y = ox + tokens.number(), oy + tokens.number()
                    current.append((x, y))
                elif op == "H":
                    ensure_started()
                    x = ox + tokens.number()
                    current.append((x, y))
                elif op == "V":
                    ensure_started()
                    y = oy + tokens.number()
                    current.append((x, y))
                elif op in ("C", "S"):
                    ensure_started()
                    if op == "C":
                        c1 = (ox + tokens.number(), oy + tokens.number())
                    elif prev_cmd in ("C", "S") and last_cubic is not None:
                        c1 = (2 * x - last_cubic[0], 2 * y - last_cubic[1])
                    else:
                        c1 = (x, y)
                    c2 = (ox + tokens.number(), oy + tokens.number())
                    end = (ox + tokens.number(), oy + tokens.number())
                    current.extend(_cubic_points((x, y), c1, c2, end, curve_segments))
                    last_cubic = c2
                    x, y = end
                elif op in ("Q", "T"):
                    ensure_started()
                    if op == "Q":
                        ctrl = (ox + tokens.number(), oy + tokens.number())
                    elif prev_cmd in ("Q", "T") and last_quad is not None:
                        ctrl = (2 * x - last_quad[0], 2 * y - last_quad[1])
                    else:
                        ctrl = (x, y)
                    end = (ox + tokens.number(), oy + tokens.number())
                    current.extend(_quad_points((x, y), ctrl, end, curve_segments))
                    last_quad = ctrl
                    x, y = end
                elif op == "A":
                    ensure_started()
                    rx = tokens.number()
                    ry = tokens.number()
                    rotation = tokens.number()
                    large = tokens.flag()
                    sweep = tokens.flag()
                    end = (ox + tokens.number(), oy + tokens.number())
                    current.extend(arc_points((x, y), rx, ry, rotation, large, sweep, end))
                    x, y = end
                else:
                    raise ValueError(f"unsupported path command: {cmd}")
                prev_cmd = op
    except (ValueError, ArithmeticError) as exc:
        LOGGER.debug("path data truncated at error: %s", exc)
    flush(closed=False)
    return subpaths


def _cubic_points(p0: Point, p1: Point, p2: Point, p3: Point, segments: int) -> list[Point]:
    out: list[Point] = []
    for i in range(1, segments + 1):
        t = i / segments
        mt = 1.0 - t
        a = mt * mt * mt
        b = 3 * mt * mt * t
        c = 3 * mt * t * t
        d = t * t * t
        out.append(
            (
                a * p0[0] + b * p1[0] + c * p2[0] + d * p3[0],
                a * p0[1] + b * p1[1] + c * p2[1] + d * p3[1],
            )
        )
    return out


def _quad_points(p0: Point, p1: Point, p2: Point, segments: int) -> list[Point]:
    out: list[Point] = []
    for i in range(1, segments + 1):
        t = i / segments
        mt = 1.0 - t
        out.append(
            (
                mt * mt * p0[0] + 2 * mt * t * p1[0] + t * t * p2[0],
                mt * mt * p0[1] + 2 * mt * t * p1[1] + t * t * p2[1],
            )
        )
    return out


def arc_points(
    p0: Point,
    rx: float,
    ry: float,
    rotation_deg: float,
    large_arc: bool,
    sweep: bool,
    p1: Point,
) -> list[Point]:
    """Endpoint-parameterized elliptical arc, flattened (SVG implementation notes F.6.5)."""
    x1, y1 = p0
    x2, y2 = p1
    if (x1, y1) == (x2, y2):
        return []
    rx = abs(rx)
    ry = abs(ry)
    # radii this small underflow when squared below
    if rx * rx == 0.0 or ry * ry == 0.0:
        return [p1]
    phi = math.radians(rotation_deg)
    cos_p = math.cos(phi)
    sin_p = math.sin(phi)
    dx2 = (x1 - x2) / 2.0
    dy2 = (y1 - y2) / 2.0
    x1p = cos_p * dx2 + sin_p * dy2
    y1p = -sin_p * dx2 + cos_p * dy2

    lam = (x1p * x1p) / (rx * rx) + (y1p * y1p) / (ry * ry)
    if lam > 1.0:
        s = math.sqrt(lam)
        rx *= s
        ry *= s

    num = rx * rx * ry * ry - rx * rx * y1p * y1p - ry * ry * x1p * x1p
    den = rx * rx * y1p * y1p + ry * ry * x1p * x1p
    coef = math.sqrt(max(0.0, num / den)) if den else 0.0
    if large_arc == sweep:
        coef = -coef
    cxp = coef * rx * y1p / ry
    cyp = -coef * ry * x1p / rx
    cx = cos_p * cxp - sin_p * cyp + (x1 + x2) / 2.0
    cy = sin_p * cxp + cos_p * cyp + (y1 + y2) / 2.0

    ux = (x1p - cxp) / rx
    uy = (y1p - cyp) / ry
    vx = (-x1p - cxp) / rx
    vy = (-y1p - cyp) / ry
    theta1 = math.atan2(uy, ux)
    dtheta = math.atan2(ux * vy - uy * vx, ux * vx + uy * vy)
    if not sweep and dtheta > 0:
        dtheta -= 2.0 * math.pi
    elif sweep and dtheta < 0:
        dtheta += 2.0 * math.pi

    segments = max(4, int(math.ceil(abs(dtheta) / (2.0 * math.pi) * ELLIPSE_SEGMENTS)))
    out: list[Point] = []
    for i in range(1, segments):
        t = theta1 + dtheta * i / segments
        cos_t = math.cos(t)
        sin_t = math.sin(t)
        out.append(
            (
                cx + rx * cos_t * cos_p - ry * sin_t * sin_p,
                cy + rx * cos_t * sin_p + ry * sin_t * cos_p,
            )
        )
    out.append(p1)
    return out

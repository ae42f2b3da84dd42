from __future__ import annotations

import math
from typing import Literal

import torch

from .geometry import Affine
from .svg import Color, FillRule, SvgDocument


FitMode = Literal["contain", "stretch"]
DEFAULT_BACKGROUND: Color = (255, 255, 255, 255)
_COORD_LIMIT = 1.0e7


def new_frame(width: int, height: int, background: Color = DEFAULT_BACKGROUND) -> torch.Tensor:
    if width < 0 or height < 0:
        raise ValueError("width and height must be >= 0")
    frame = torch.empty((height, width, 4), dtype=torch.uint8)
    fill_frame(frame, background)
    return frame


def fill_frame(frame: torch.Tensor, color: Color) -> None:
    frame[:, :, 0] = color[0]
    frame[:, :, 1] = color[1]
    frame[:, :, 2] = color[2]
    frame[:, :, 3] = color[3]


def rasterize(
    doc: SvgDocument,
    width: int,
    height: int,
    *,
    background: Color = DEFAULT_BACKGROUND,
    fit: FitMode = "contain",
) -> torch.Tensor:
    """Render `doc` into a new (height, width, 4) uint8 frame.

    The viewBox is mapped onto the whole frame. Zero-sized targets return an
    empty tensor of the requested shape.
    """
    frame = new_frame(width, height, background)
    draw_document(doc, frame, fit=fit)
    return frame


def viewport_transform(doc: SvgDocument, width: int, height: int, fit: FitMode = "contain") -> Affine:
    vb_x, vb_y, vb_w, vb_h = doc.viewbox
    sx = float(width) / float(vb_w)
    sy = float(height) / float(vb_h)
    align, mode = doc.preserve_aspect_ratio
    if fit == "stretch" or align == "none":
        return Affine(a=sx, d=sy, e=-vb_x * sx, f=-vb_y * sy)
    scale = min(sx, sy) if mode == "meet" else max(sx, sy)
    tx = -vb_x * scale
    ty = -vb_y * scale
    extra_w = float(width) - vb_w * scale
    extra_h = float(height) - vb_h * scale
    x_align = align[1:4]
    y_align = align[5:8]
    if x_align == "Mid":
        tx += extra_w / 2.0
    elif x_align == "Max":
        tx += extra_w
    if y_align == "Mid":
        ty += extra_h / 2.0
    elif y_align == "Max":
        ty += extra_h
    return Affine(a=scale, d=scale, e=tx, f=ty)


def draw_document(doc: SvgDocument, frame: torch.Tensor, *, fit: FitMode = "contain") -> None:
    """Paint `doc` over `frame` in place, scaled to the frame's full extent."""
    if frame.ndim != 3 or frame.shape[2] != 4 or frame.dtype != torch.uint8:
        raise ValueError(f"frame must be a (H, W, 4) uint8 tensor, got {tuple(frame.shape)} {frame.dtype}")
    height, width = int(frame.shape[0]), int(frame.shape[1])
    if width == 0 or height == 0:
        return
    view = viewport_transform(doc, width, height, fit)
    stroke_scale = view.scale_factor()
    canvas = _TensorCanvas(frame)
    for shape in doc.shapes:
        polylines = []
        for subpath in shape.subpaths:
            if len(subpath.points) < 2:
                continue
            pts = _to_tensor(view, subpath.points)
            if pts is not None:
                polylines.append((pts, subpath.closed))
        if not polylines:
            continue
        if shape.fill is not None:
            canvas.fill_rings([pts for pts, _ in polylines], shape.fill, shape.fill_rule)
        stroke_px = shape.stroke_width * stroke_scale
        if shape.stroke is not None and math.isfinite(stroke_px) and stroke_px > 0:
            canvas.stroke_polylines(polylines, shape.stroke, min(stroke_px, _COORD_LIMIT))


def _to_tensor(view: Affine, points: tuple[tuple[float, float], ...]) -> torch.Tensor | None:
    """Device-space points, or None when the viewport mapping overflows."""
    raw = torch.tensor(points, dtype=torch.float64)
    xs = raw[:, 0]
    ys = raw[:, 1]
    out = torch.stack(
        (view.a * xs + view.c * ys + view.e, view.b * xs + view.d * ys + view.f),
        dim=1,
    )
    if not bool(torch.isfinite(out).all()):
        return None
    # Far off-frame vertices are pinned so float32 scanline math cannot overflow.
    return out.clamp(-_COORD_LIMIT, _COORD_LIMIT).to(torch.float32)


class _TensorCanvas:
    """Scanline fills and distance-field strokes over a uint8 RGBA tensor."""

    def __init__(self, frame: torch.Tensor) -> None:
        self._frame = frame
        self._height = int(frame.shape[0])
        self._width = int(frame.shape[1])

    def fill_rings(self, rings: list[torch.Tensor], color: Color, fill_rule: FillRule) -> None:
        edge_sets = [torch.cat((ring, torch.roll(ring, -1, dims=0)), dim=1) for ring in rings if ring.shape[0] >= 3]
        if not edge_sets:
            return
        edges = torch.cat(edge_sets)
        edges = edges[edges[:, 1] != edges[:, 3]]
        if edges.shape[0] == 0:
            return
        x0, y0, x1, y1 = edges.unbind(dim=1)
        y_lo = torch.minimum(y0, y1)
        y_hi = torch.maximum(y0, y1)

        row0 = max(0, int(math.floor(float(y_lo.min()))))
        row1 = min(self._height, int(math.ceil(float(y_hi.max()))))
        col0 = max(0, int(math.floor(float(torch.minimum(x0, x1).min()))))
        col1 = min(self._width, int(math.ceil(float(torch.maximum(x0, x1).max()))))
        if row1 <= row0 or col1 <= col0:
            return
        span = col1 - col0

        # Sample at pixel centers; each edge crossing a row adds its winding
        # direction from the crossing column to the right edge of the row.
        yc = torch.arange(row0, row1, dtype=torch.float32) + 0.5
        crosses = (yc.unsqueeze(0) >= y_lo.unsqueeze(1)) & (yc.unsqueeze(0) < y_hi.unsqueeze(1))
        t = (yc.unsqueeze(0) - y0.unsqueeze(1)) / (y1 - y0).unsqueeze(1)
        xi = x0.unsqueeze(1) + t * (x1 - x0).unsqueeze(1)
        col = (torch.ceil(xi - 0.5) - col0).clamp(0, span).to(torch.int64)
        direction = (y1 > y0).to(torch.int32) * 2 - 1
        contrib = direction.unsqueeze(1) * crosses.to(torch.int32)

        delta = torch.zeros((row1 - row0, span + 1), dtype=torch.int32)
        delta.scatter_add_(1, col.t().contiguous(), contrib.t().contiguous())
        winding = torch.cumsum(delta[:, :span], dim=1)
        if fill_rule == "evenodd":
            mask = torch.remainder(winding, 2) != 0
        else:
            mask = winding != 0
        self._blend_mask(mask, x=col0, y=row0, color=color)

    def stroke_polylines(self, polylines: list[tuple[torch.Tensor, bool]], color: Color, width_px: float) -> None:
        half = max(0.5, width_px / 2.0)
        segment_sets = []
        for pts, closed in polylines:
            if closed:
                pts = torch.cat((pts, pts[:1]), dim=0)
            segment_sets.append(torch.cat((pts[:-1], pts[1:]), dim=1))
        segments = torch.cat(segment_sets)
        all_x = torch.cat((segments[:, 0], segments[:, 2]))
        all_y = torch.cat((segments[:, 1], segments[:, 3]))
        rx0 = max(0, int(math.floor(float(all_x.min()) - half)))
        ry0 = max(0, int(math.floor(float(all_y.min()) - half)))
        rx1 = min(self._width, int(math.ceil(float(all_x.max()) + half)) + 1)
        ry1 = min(self._height, int(math.ceil(float(all_y.max()) + half)) + 1)
        if rx1 <= rx0 or ry1 <= ry0:
            return

        # One coverage mask per shape so overlapping segments blend once.
        mask = torch.zeros((ry1 - ry0, rx1 - rx0), dtype=torch.bool)
        half_sq = half * half
        for sx0, sy0, sx1, sy1 in segments.tolist():
            bx0 = max(rx0, int(math.floor(min(sx0, sx1) - half)))
            by0 = max(ry0, int(math.floor(min(sy0, sy1) - half)))
            bx1 = min(rx1, int(math.ceil(max(sx0, sx1) + half)) + 1)
            by1 = min(ry1, int(math.ceil(max(sy0, sy1) + half)) + 1)
            if bx1 <= bx0 or by1 <= by0:
                continue
            gx = torch.arange(bx0, bx1, dtype=torch.float32).unsqueeze(0) + 0.5
            gy = torch.arange(by0, by1, dtype=torch.float32).unsqueeze(1) + 0.5
            dx = sx1 - sx0
            dy = sy1 - sy0
            length_sq = dx * dx + dy * dy
            if length_sq <= 0:
                dist_sq = (gx - sx0) ** 2 + (gy - sy0) ** 2
            else:
                t = (((gx - sx0) * dx + (gy - sy0) * dy) / length_sq).clamp(0.0, 1.0)
                dist_sq = (gx - (sx0 + t * dx)) ** 2 + (gy - (sy0 + t * dy)) ** 2
            mask[by0 - ry0 : by1 - ry0, bx0 - rx0 : bx1 - rx0] |= dist_sq <= half_sq
        self._blend_mask(mask, x=rx0, y=ry0, color=color)

    def _blend_mask(self, mask: torch.Tensor, *, x: int, y: int, color: Color) -> None:
        h, w = mask.shape
        if h <= 0 or w <= 0 or not bool(mask.any()):
            return
        alpha = color[3] / 255.0
        if alpha <= 0:
            return
        region = self._frame[y : y + h, x : x + w]
        src = torch.tensor(color[:3], dtype=torch.float32).view(1, 1, 3)
        if color[3] >= 255:
            blended = src.to(torch.uint8).expand(h, w, 3)
        else:
            dst = region[:, :, :3].to(torch.float32)
            blended = torch.clamp(torch.round(src * alpha + dst * (1.0 - alpha)), 0, 255).to(torch.uint8)
        region[:, :, :3] = torch.where(mask.unsqueeze(-1), blended, region[:, :, :3])
        region[:, :, 3] = torch.where(mask, torch.tensor(255, dtype=torch.uint8), region[:, :, 3])

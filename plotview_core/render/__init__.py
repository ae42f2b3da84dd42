from .loader import DocumentLoadError, DocumentParseError, DocumentReadError, load_document
from .rasterizer import DEFAULT_BACKGROUND, FitMode, draw_document, new_frame, rasterize, viewport_transform
from .svg import Color, SvgDocument, SvgShape, SvgSubpath, parse_color

__all__ = [
    "Color",
    "DEFAULT_BACKGROUND",
    "DocumentLoadError",
    "DocumentParseError",
    "DocumentReadError",
    "FitMode",
    "SvgDocument",
    "SvgShape",
    "SvgSubpath",
    "draw_document",
    "load_document",
    "new_frame",
    "parse_color",
    "rasterize",
    "viewport_transform",
]

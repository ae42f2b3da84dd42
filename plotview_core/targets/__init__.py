from .base import DisplayFrame
from .surface import PresentationSurface, SurfaceSizeMismatchError, SurfaceState

__all__ = ["DisplayFrame", "PresentationSurface", "SurfaceSizeMismatchError", "SurfaceState"]

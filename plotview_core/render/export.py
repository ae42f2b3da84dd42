from __future__ import annotations

from pathlib import Path

import numpy as np
import torch
from PIL import Image


def frame_to_image(frame: torch.Tensor) -> Image.Image:
    if frame.ndim != 3 or frame.shape[2] != 4 or frame.dtype != torch.uint8:
        raise ValueError(f"frame must be a (H, W, 4) uint8 tensor, got {tuple(frame.shape)} {frame.dtype}")
    if frame.shape[0] == 0 or frame.shape[1] == 0:
        raise ValueError("cannot export an empty frame")
    pixels = np.ascontiguousarray(frame.cpu().numpy())
    return Image.fromarray(pixels)


def save_png(frame: torch.Tensor, out_path: str | Path) -> Path:
    path = Path(out_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame_to_image(frame).save(path, format="PNG")
    return path

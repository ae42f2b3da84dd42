from __future__ import annotations

from dataclasses import dataclass

import torch


@dataclass(frozen=True)
class DisplayFrame:
    revision: int
    width: int
    height: int
    rgba: torch.Tensor

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeAlias


@dataclass(frozen=True)
class WatchSignalEvent:
    """Wake-up posted by the watcher thread; the payload lives in the signal channel."""


@dataclass(frozen=True)
class ResizedEvent:
    width: int
    height: int


@dataclass(frozen=True)
class RedrawRequestedEvent:
    pass


@dataclass(frozen=True)
class CloseRequestedEvent:
    pass


ViewerEvent: TypeAlias = WatchSignalEvent | ResizedEvent | RedrawRequestedEvent | CloseRequestedEvent

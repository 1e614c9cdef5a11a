from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Tuple

import numpy as np

from ..layout.profiles import Point, Rect


@dataclass(frozen=True)
class CaptureFrame:
    """
    One capture of the screen or a region of it. `origin` is the window-relative
    offset of the region's top-left pixel; full-screen captures sit at (0, 0).
    """

    image: np.ndarray
    resolution: Tuple[int, int]
    sequence: int
    timestamp: float
    origin: Point = field(default_factory=lambda: Point(0, 0))


class CaptureAdapter(Protocol):
    def capture_screen(self) -> CaptureFrame:
        """Capture the whole game window. Raises CaptureUnavailable."""
        ...

    def capture_region(self, rect: Rect) -> CaptureFrame:
        """Capture a window-relative rectangle. Raises CaptureUnavailable."""
        ...


class InputAdapter(Protocol):
    def click(self, point: Point) -> None:
        """Left-click a window-relative point. Raises TargetLost."""
        ...

    def scroll(self, amount: int) -> None:
        """Wheel-scroll; negative scrolls down. Raises TargetLost."""
        ...

    def key_press(self, key: str) -> None:
        """Tap a key by canonical name. Raises TargetLost."""
        ...

"""Shared geometry utilities for axis-aligned pixel rectangles."""

from __future__ import annotations

import math
from dataclasses import dataclass

# Rectangle as (x1, y1, x2, y2) pixel corners, x2/y2 exclusive
Rect = tuple[int, int, int, int]


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero.

    Python's built-in ``round`` uses banker's rounding, which makes
    ``round(2.5) == 2``; dimension math needs ``3``.
    """
    if value >= 0:
        return int(math.floor(value + 0.5))
    return -int(math.floor(-value + 0.5))


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def xywh_to_rect(x: int, y: int, w: int, h: int) -> Rect:
    """Convert (x, y, w, h) to corner form (x1, y1, x2, y2)."""
    return x, y, x + w, y + h


def rect_center(rect: Rect) -> tuple[float, float]:
    """Return the center point of a rectangle."""
    x1, y1, x2, y2 = rect
    return (x1 + x2) / 2.0, (y1 + y2) / 2.0


def scale_rect(rect: Rect, factor: float) -> Rect:
    """Scale a rectangle by a given factor."""
    return tuple(int(round(v * factor)) for v in rect)  # type: ignore[return-value]


def rect_iou(rect_a: Rect, rect_b: Rect) -> float:
    """Compute intersection-over-union between two rectangles (x1, y1, x2, y2)."""
    ax1, ay1, ax2, ay2 = rect_a
    bx1, by1, bx2, by2 = rect_b

    inter_w = max(0, min(ax2, bx2) - max(ax1, bx1))
    inter_h = max(0, min(ay2, by2) - max(ay1, by1))
    inter_area = inter_w * inter_h

    area_a = max(0, ax2 - ax1) * max(0, ay2 - ay1)
    area_b = max(0, bx2 - bx1) * max(0, by2 - by1)
    denom = area_a + area_b - inter_area
    if denom <= 0:
        return 0.0
    return inter_area / denom


@dataclass(frozen=True)
class FocusPoint:
    """A point in normalized image coordinates, both axes in [0, 1]."""

    x: float
    y: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", float(clamp(self.x, 0.0, 1.0)))
        object.__setattr__(self, "y", float(clamp(self.y, 0.0, 1.0)))

    def to_pixels(self, width: int, height: int) -> tuple[float, float]:
        return self.x * width, self.y * height

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}


CENTER = FocusPoint(0.5, 0.5)

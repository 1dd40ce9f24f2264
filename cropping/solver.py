"""
Crop placement: turn a focus point into a bounded crop rectangle.

The solver only chooses *where* the crop goes. The crop size always equals
the requested target size; the caller is expected to have pre-scaled the
source to cover the target (see ``sizing.compute_prescale_for_crop``).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from errors import ConfigurationError
from geometry import FocusPoint, Rect, clamp, round_half_away


@dataclass(frozen=True)
class CropPlacement:
    """Integer crop rectangle in scaled-source pixel coordinates."""

    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def as_rect(self) -> Rect:
        return self.x, self.y, self.right, self.bottom

    def to_dict(self) -> dict[str, Any]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


def thirds_anchors(width: float, height: float) -> list[tuple[float, float]]:
    """Return the four interior rule-of-thirds intersections.

    Order is top-left, top-right, bottom-left, bottom-right.
    """
    xs = (width / 3.0, 2.0 * width / 3.0)
    ys = (height / 3.0, 2.0 * height / 3.0)
    return [(xs[0], ys[0]), (xs[1], ys[0]), (xs[0], ys[1]), (xs[1], ys[1])]


def snap_to_thirds(fx: float, fy: float, width: float, height: float) -> tuple[float, float]:
    """Return the thirds intersection nearest to (fx, fy).

    Ties go to the first anchor in ``thirds_anchors`` order.
    """
    best = None
    best_distance = math.inf
    for ax, ay in thirds_anchors(width, height):
        distance = math.hypot(fx - ax, fy - ay)
        if distance < best_distance:
            best = (ax, ay)
            best_distance = distance
    return best  # type: ignore[return-value]


def solve_crop(
    focus: FocusPoint,
    scaled_width: int,
    scaled_height: int,
    target_width: int,
    target_height: int,
    *,
    snap_to_thirds_grid: bool = True,
) -> CropPlacement:
    """Place a target-sized crop rectangle around a focus point.

    Args:
        focus: Normalized focus point.
        scaled_width: Width of the (pre-scaled) source.
        scaled_height: Height of the (pre-scaled) source.
        target_width: Crop width; always the output width.
        target_height: Crop height; always the output height.
        snap_to_thirds_grid: Move the focus to the nearest rule-of-thirds
            intersection before placing the rectangle.

    Returns:
        CropPlacement with ``width == target_width`` and
        ``height == target_height``. The origin is clamped to
        ``[0, max(0, scaled - target)]`` on each axis, so a target larger
        than the source is pinned at 0 instead of raising.

    Raises:
        ConfigurationError: If any size is not positive.

    Examples:
        >>> solve_crop(FocusPoint(0.5, 0.5), 1000, 800, 800, 800,
        ...            snap_to_thirds_grid=False)
        CropPlacement(x=100, y=0, width=800, height=800)
    """
    for name, value in (
        ("scaled_width", scaled_width),
        ("scaled_height", scaled_height),
        ("target_width", target_width),
        ("target_height", target_height),
    ):
        if value <= 0:
            raise ConfigurationError(f"{name} must be positive, got {value}")

    fx, fy = focus.to_pixels(scaled_width, scaled_height)
    if snap_to_thirds_grid:
        fx, fy = snap_to_thirds(fx, fy, scaled_width, scaled_height)

    x = round_half_away(fx - target_width / 2.0)
    y = round_half_away(fy - target_height / 2.0)
    x = int(clamp(x, 0, max(0, scaled_width - target_width)))
    y = int(clamp(y, 0, max(0, scaled_height - target_height)))

    return CropPlacement(x=x, y=y, width=target_width, height=target_height)


def validate_crop_offsets(placement: CropPlacement, source_width: int, source_height: int) -> None:
    """Raise ValueError unless placement lies fully inside the source."""
    if placement.x < 0 or placement.y < 0 or placement.width <= 0 or placement.height <= 0:
        raise ValueError(
            f"Invalid crop offsets: x={placement.x}, y={placement.y}, "
            f"width={placement.width}, height={placement.height}"
        )
    if placement.right > source_width:
        raise ValueError(f"Crop exceeds source width: {placement.right} > {source_width}")
    if placement.bottom > source_height:
        raise ValueError(f"Crop exceeds source height: {placement.bottom} > {source_height}")

"""Crop modes and the fixed focus points of the anchor modes."""

from __future__ import annotations

from enum import Enum

from geometry import FocusPoint


class CropMode(str, Enum):
    # Heuristic modes: focus comes from region detection
    SMART = "smart"
    FACE = "face"
    OBJECT = "object"
    SALIENCY = "saliency"
    ENTROPY = "entropy"
    # Fixed anchors: focus is a constant
    CENTER = "center"
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"

    @property
    def is_heuristic(self) -> bool:
        return self in HEURISTIC_MODES

    @property
    def is_ai(self) -> bool:
        """Modes that count as AI crops for cost estimation and summaries."""
        return self in (CropMode.SMART, CropMode.FACE, CropMode.OBJECT)


HEURISTIC_MODES = frozenset({
    CropMode.SMART,
    CropMode.FACE,
    CropMode.OBJECT,
    CropMode.SALIENCY,
    CropMode.ENTROPY,
})

_ANCHORS = {
    CropMode.CENTER: FocusPoint(0.5, 0.5),
    CropMode.TOP: FocusPoint(0.5, 0.25),
    CropMode.BOTTOM: FocusPoint(0.5, 0.75),
    CropMode.LEFT: FocusPoint(0.25, 0.5),
    CropMode.RIGHT: FocusPoint(0.75, 0.5),
    CropMode.TOP_LEFT: FocusPoint(0.25, 0.25),
    CropMode.TOP_RIGHT: FocusPoint(0.75, 0.25),
    CropMode.BOTTOM_LEFT: FocusPoint(0.25, 0.75),
    CropMode.BOTTOM_RIGHT: FocusPoint(0.75, 0.75),
}


def parse_crop_mode(mode: str | CropMode) -> CropMode:
    """Return the CropMode for a name, raising ValueError if unknown."""
    if isinstance(mode, CropMode):
        return mode
    try:
        return CropMode(str(mode).lower())
    except ValueError:
        valid = ", ".join(m.value for m in CropMode)
        raise ValueError(f"Unknown crop mode '{mode}'. Expected one of: {valid}")


def anchor_focus_point(mode: str | CropMode) -> FocusPoint:
    """Return the fixed focus point for an anchor mode.

    Raises:
        ValueError: If mode is heuristic (its focus must be detected).
    """
    resolved = parse_crop_mode(mode)
    if resolved.is_heuristic:
        raise ValueError(f"Crop mode '{resolved.value}' has no fixed anchor")
    return _ANCHORS[resolved]

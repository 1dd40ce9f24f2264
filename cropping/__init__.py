"""Crop modes and rule-of-thirds crop placement."""

from .modes import HEURISTIC_MODES, CropMode, anchor_focus_point, parse_crop_mode
from .solver import (
    CropPlacement,
    snap_to_thirds,
    solve_crop,
    thirds_anchors,
    validate_crop_offsets,
)

__all__ = [
    "HEURISTIC_MODES",
    "CropMode",
    "CropPlacement",
    "anchor_focus_point",
    "parse_crop_mode",
    "snap_to_thirds",
    "solve_crop",
    "thirds_anchors",
    "validate_crop_offsets",
]

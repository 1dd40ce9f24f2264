"""
Dimension math and pixel rendering for resize and crop steps.

Key components:
- dimensions: pure size calculations (resize targets, crop pre-scaling)
- render: OpenCV-backed resampling and region extraction
"""

from .dimensions import (
    Dimensions,
    PrescalePlan,
    ResizeMode,
    check_crop_upscale,
    check_resize_warnings,
    compute_prescale_for_crop,
    compute_resize_target,
    parse_resize_mode,
)
from .render import (
    crop_region,
    has_transparency,
    render,
    resize_image,
    to_grayscale,
    validate_image_array,
)

__all__ = [
    # Dimension math
    "Dimensions",
    "PrescalePlan",
    "ResizeMode",
    "check_crop_upscale",
    "check_resize_warnings",
    "compute_prescale_for_crop",
    "compute_resize_target",
    "parse_resize_mode",
    # Rendering
    "crop_region",
    "has_transparency",
    "render",
    "resize_image",
    "to_grayscale",
    "validate_image_array",
]

"""
Pure dimension math for resize and crop pre-scaling.

Nothing here touches pixels. Every function takes integer source sizes and
returns integer target sizes, so results can be computed before any image is
decoded and the same numbers are reused by validation, cost estimation and
execution.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import config
from errors import ConfigurationError, Severity, UpscaleNotAllowed, ValidationIssue
from geometry import round_half_away


class ResizeMode(str, Enum):
    AUTO = "auto"
    WIDTH = "width"
    HEIGHT = "height"
    LONGEST = "longest"
    SHORTEST = "shortest"
    FIT = "fit"


@dataclass(frozen=True)
class Dimensions:
    """Integer pixel size."""

    width: int
    height: int

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height else 0.0

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def megapixels(self) -> float:
        return self.area / 1_000_000

    def to_dict(self) -> dict[str, Any]:
        return {"width": self.width, "height": self.height}

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True)
class PrescalePlan:
    """Scale-to-cover plan computed before a crop.

    Attributes:
        scale: Uniform factor applied to the source.
        width: Scaled source width (never below the crop width).
        height: Scaled source height (never below the crop height).
    """

    scale: float
    width: int
    height: int

    @property
    def requires_upscale(self) -> bool:
        return self.scale > 1.0

    @property
    def dimensions(self) -> Dimensions:
        return Dimensions(self.width, self.height)


def parse_resize_mode(mode: str | ResizeMode) -> ResizeMode:
    """Return the ResizeMode for a name, raising ConfigurationError if unknown."""
    if isinstance(mode, ResizeMode):
        return mode
    try:
        return ResizeMode(str(mode).lower())
    except ValueError:
        valid = ", ".join(m.value for m in ResizeMode)
        raise ConfigurationError(f"Unknown resize mode '{mode}'. Expected one of: {valid}")


def _require_positive(name: str, value: int) -> None:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a number, got {type(value).__name__}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")


def _derive(other_source: int, dominant_source: int, dominant_target: int) -> int:
    return round_half_away(other_source / dominant_source * dominant_target)


def compute_resize_target(
    source_width: int,
    source_height: int,
    dimension: int,
    mode: str | ResizeMode = ResizeMode.LONGEST,
    *,
    preserve_aspect_ratio: bool = True,
    force_square: bool = False,
    upscale: bool = True,
    max_dimension: int = config.MAX_DIMENSION,
) -> Dimensions:
    """Compute the target size for a resize step.

    Mode resolution:
        - ``width``: width becomes ``dimension``; height follows the source
          aspect ratio (or equals ``dimension`` when aspect is not preserved).
        - ``height``: symmetric to ``width``.
        - ``auto``/``longest``/``fit``: the longer source side becomes
          ``dimension``.
        - ``shortest``: the shorter source side becomes ``dimension``.
        - ``force_square`` short-circuits to ``dimension`` x ``dimension``.

    The dominant side is always an integer before the other side is derived
    from it, so feeding a result back in with the same mode and dimension
    returns the same size.

    Args:
        source_width: Source width in pixels.
        source_height: Source height in pixels.
        dimension: Target size of the dominant side.
        mode: Resize mode name or ResizeMode.
        preserve_aspect_ratio: Derive the other side from the source ratio.
        force_square: Produce a square of ``dimension`` regardless of mode.
        upscale: Allow the result to exceed the source size.
        max_dimension: Upper bound for either side; exceeded results are
            scaled down uniformly.

    Returns:
        Target Dimensions, both sides >= 1.

    Raises:
        ConfigurationError: If sizes are not positive or the mode is unknown.
        UpscaleNotAllowed: If ``upscale`` is False and either side would grow.

    Examples:
        >>> compute_resize_target(4000, 2000, 1000)
        Dimensions(width=1000, height=500)
        >>> compute_resize_target(500, 1000, 250, "width")
        Dimensions(width=250, height=500)
    """
    _require_positive("source_width", source_width)
    _require_positive("source_height", source_height)
    _require_positive("dimension", dimension)
    resolved = parse_resize_mode(mode)
    dimension = round_half_away(dimension)

    if force_square:
        width = height = dimension
    else:
        if resolved in (ResizeMode.AUTO, ResizeMode.LONGEST, ResizeMode.FIT):
            resolved = ResizeMode.WIDTH if source_width >= source_height else ResizeMode.HEIGHT
        elif resolved == ResizeMode.SHORTEST:
            resolved = ResizeMode.WIDTH if source_width <= source_height else ResizeMode.HEIGHT

        if resolved == ResizeMode.WIDTH:
            width = dimension
            height = (
                _derive(source_height, source_width, width)
                if preserve_aspect_ratio
                else dimension
            )
        else:
            height = dimension
            width = (
                _derive(source_width, source_height, height)
                if preserve_aspect_ratio
                else dimension
            )

    width = max(1, width)
    height = max(1, height)

    if width > max_dimension or height > max_dimension:
        factor = min(max_dimension / width, max_dimension / height)
        if width >= height:
            new_width = max(1, round_half_away(width * factor))
            height = max(1, _derive(height, width, new_width))
            width = new_width
        else:
            new_height = max(1, round_half_away(height * factor))
            width = max(1, _derive(width, height, new_height))
            height = new_height

    if not upscale:
        if width > source_width:
            raise UpscaleNotAllowed((source_width, source_height), (width, height), "width")
        if height > source_height:
            raise UpscaleNotAllowed((source_width, source_height), (width, height), "height")

    return Dimensions(width, height)


def compute_prescale_for_crop(
    source_width: int,
    source_height: int,
    target_width: int,
    target_height: int,
) -> PrescalePlan:
    """Compute the scale-to-cover factor applied before cropping.

    The scaled source fully covers the target rectangle, so the crop that
    follows only chooses a position and never changes the output size.
    """
    _require_positive("source_width", source_width)
    _require_positive("source_height", source_height)
    _require_positive("target_width", target_width)
    _require_positive("target_height", target_height)

    scale = max(target_width / source_width, target_height / source_height)
    width = max(target_width, round_half_away(source_width * scale))
    height = max(target_height, round_half_away(source_height * scale))
    return PrescalePlan(scale=scale, width=width, height=height)


def check_crop_upscale(
    source_width: int,
    source_height: int,
    target_width: int,
    target_height: int,
) -> None:
    """Raise UpscaleNotAllowed when a crop target exceeds the source on any axis."""
    if target_width > source_width:
        raise UpscaleNotAllowed(
            (source_width, source_height), (target_width, target_height), "width"
        )
    if target_height > source_height:
        raise UpscaleNotAllowed(
            (source_width, source_height), (target_width, target_height), "height"
        )


def check_resize_warnings(
    source: Dimensions,
    target: Dimensions,
    force_square: bool = False,
) -> list[ValidationIssue]:
    """Return advisory issues for extreme scale factors or aspect changes."""
    issues: list[ValidationIssue] = []

    upscale_factor = max(target.width / source.width, target.height / source.height)
    if upscale_factor > config.EXTREME_UPSCALE_FACTOR:
        issues.append(ValidationIssue(
            code="extreme_upscale",
            message=f"Extreme upscaling detected: {upscale_factor:.1f}x",
            suggestion="Consider using a higher resolution source image",
        ))

    downscale_factor = min(source.width / target.width, source.height / target.height)
    if downscale_factor > config.EXTREME_DOWNSCALE_FACTOR:
        issues.append(ValidationIssue(
            code="extreme_downscale",
            message=f"Extreme downscaling detected: {downscale_factor:.1f}x",
            suggestion="Consider multiple resize steps for better quality",
        ))

    aspect_change = abs(source.aspect_ratio - target.aspect_ratio)
    if aspect_change > config.ASPECT_CHANGE_TOLERANCE and not force_square:
        issues.append(ValidationIssue(
            code="aspect_ratio_change",
            message=(
                f"Aspect ratio changed: {source.aspect_ratio:.2f} -> "
                f"{target.aspect_ratio:.2f}"
            ),
            severity=Severity.INFO,
            suggestion="Consider using crop instead of resize for aspect ratio changes",
        ))

    return issues

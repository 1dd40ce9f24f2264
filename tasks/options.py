"""
Typed, immutable option models for each processor.

Callers hand in loose option mappings (camelCase or snake_case keys, missing
keys allowed). ``normalize_options`` fills defaults, applies the processor's
coercion rules and returns a frozen model; tasks only ever store the result.
"""

from __future__ import annotations

from enum import Enum
import logging
from typing import Any, Mapping

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

import config
from cropping.modes import CropMode
from errors import ConfigurationError
from naming import has_uniqueness_placeholder
from sizing.dimensions import ResizeMode

logger = logging.getLogger(__name__)

_INVALID_PATTERN_CHARS = frozenset('<>:"/\\|?*')


class Processor(str, Enum):
    RESIZE = "resize"
    CROP = "crop"
    OPTIMIZE = "optimize"
    RENAME = "rename"
    TEMPLATE = "template"
    FAVICON = "favicon"


def parse_processor(name: str | Processor) -> Processor:
    """Return the Processor for a name, raising ConfigurationError if unknown."""
    if isinstance(name, Processor):
        return name
    try:
        return Processor(str(name).lower())
    except ValueError:
        valid = ", ".join(p.value for p in Processor)
        raise ConfigurationError(f"Invalid processor: {name}. Valid processors: {valid}")


class StepOptions(BaseModel):
    """Base for per-processor options; wire keys are camelCase."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ResizeOptions(StepOptions):
    dimension: int = config.DEFAULT_RESIZE_DIMENSION
    mode: ResizeMode = ResizeMode(config.DEFAULT_RESIZE_MODE)
    maintain_aspect_ratio: bool = True
    force_square: bool = False
    upscale: bool = True
    algorithm: str = config.DEFAULT_RESIZE_ALGORITHM

    @field_validator("dimension")
    @classmethod
    def _validate_dimension(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"dimension must be positive, got {v}")
        if v > config.MAX_DIMENSION:
            raise ValueError(f"dimension {v} exceeds maximum {config.MAX_DIMENSION}")
        return v

    @field_validator("algorithm")
    @classmethod
    def _validate_algorithm(cls, v: str) -> str:
        v = v.lower()
        if v not in config.RESIZE_ALGORITHMS:
            raise ValueError(f"Invalid resize algorithm: {v!r}")
        return v


class CropOptions(StepOptions):
    width: int = config.DEFAULT_CROP_WIDTH
    height: int = config.DEFAULT_CROP_HEIGHT
    mode: CropMode = CropMode(config.DEFAULT_CROP_MODE)
    upscale: bool = False
    preserve_aspect_ratio: bool = True
    confidence_threshold: float | None = config.DEFAULT_CONFIDENCE_THRESHOLD
    crop_to_fit: bool = True
    multiple_faces: bool = False
    objects_to_detect: tuple[str, ...] = config.DEFAULT_OBJECTS_TO_DETECT
    algorithm: str = config.DEFAULT_RESIZE_ALGORITHM

    @field_validator("width", "height")
    @classmethod
    def _validate_size(cls, v: int, info: ValidationInfo) -> int:
        if v <= 0:
            raise ValueError(f"crop {info.field_name} must be positive, got {v}")
        return v

    @field_validator("confidence_threshold")
    @classmethod
    def _coerce_threshold(cls, v: float | None, info: ValidationInfo) -> float:
        if v is None:
            return float(config.DEFAULT_CONFIDENCE_THRESHOLD)
        mode = info.data.get("mode")
        if mode is not None and mode.is_heuristic:
            return float(min(100.0, max(0.0, v)))
        return float(v)

    @field_validator("objects_to_detect", mode="before")
    @classmethod
    def _default_objects(cls, v: Any) -> Any:
        if not isinstance(v, (list, tuple)):
            return config.DEFAULT_OBJECTS_TO_DETECT
        return tuple(str(item) for item in v)

    @field_validator("algorithm")
    @classmethod
    def _validate_algorithm(cls, v: str) -> str:
        v = v.lower()
        if v not in config.RESIZE_ALGORITHMS:
            raise ValueError(f"Invalid crop algorithm: {v!r}")
        return v


class OptimizeOptions(StepOptions):
    format: str = config.DEFAULT_OPTIMIZE_FORMAT
    quality: int = Field(default=config.DEFAULT_QUALITY, validate_default=True)
    lossless: bool = False
    strip_metadata: bool = True
    preserve_transparency: bool = True
    max_display_width: int | None = None
    browser_support: tuple[str, ...] = Field(
        default=config.DEFAULT_BROWSER_SUPPORT, validate_default=True
    )
    compression_mode: str = config.DEFAULT_COMPRESSION_MODE
    analyze_content: bool = True
    ico_sizes: tuple[int, ...] = config.DEFAULT_ICO_SIZES

    @field_validator("format")
    @classmethod
    def _validate_format(cls, v: str) -> str:
        v = v.lower()
        if v == "jpeg":
            v = "jpg"
        if v not in config.OPTIMIZE_FORMATS:
            raise ValueError(f"Invalid optimize format: {v!r}")
        return v

    @field_validator("quality")
    @classmethod
    def _validate_quality(cls, v: int, info: ValidationInfo) -> int:
        if not 1 <= v <= 100:
            raise ValueError(f"quality must be between 1 and 100, got {v}")
        if info.data.get("format") == "avif":
            return min(config.AVIF_MAX_QUALITY, v)
        return v

    @field_validator("max_display_width")
    @classmethod
    def _validate_max_width(cls, v: int | None) -> int | None:
        if v is not None and v <= 0:
            raise ValueError(f"maxDisplayWidth must be positive, got {v}")
        return v

    @field_validator("browser_support", mode="before")
    @classmethod
    def _filter_browser_support(cls, v: Any) -> tuple[str, ...]:
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, (list, tuple)):
            return config.DEFAULT_BROWSER_SUPPORT
        known = tuple(b for b in v if b in config.BROWSER_SUPPORT_VALUES)
        return known or config.DEFAULT_BROWSER_SUPPORT

    @field_validator("compression_mode", mode="before")
    @classmethod
    def _default_compression_mode(cls, v: Any) -> str:
        if v not in config.COMPRESSION_MODES:
            return config.DEFAULT_COMPRESSION_MODE
        return v


class RenameOptions(StepOptions):
    pattern: str = Field(default=config.DEFAULT_RENAME_PATTERN, validate_default=True)
    preserve_extension: bool = True
    add_index: bool = True
    add_timestamp: bool = False
    custom_separator: str = config.DEFAULT_RENAME_SEPARATOR
    max_length: int = config.MAX_FILENAME_LENGTH

    @field_validator("pattern")
    @classmethod
    def _coerce_pattern(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Rename pattern cannot be empty")
        if any(ch in _INVALID_PATTERN_CHARS or ord(ch) < 32 for ch in v):
            raise ValueError(f"Rename pattern contains invalid filename characters: {v!r}")
        if not has_uniqueness_placeholder(v):
            return config.FALLBACK_RENAME_PATTERN
        return v

    @field_validator("max_length")
    @classmethod
    def _validate_max_length(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"maxLength must be positive, got {v}")
        return v


class TemplateOptions(StepOptions):
    template_id: str | None = None
    apply_to_all: bool = True
    preserve_original: bool = False


class FaviconOptions(StepOptions):
    sizes: tuple[int, ...] = Field(default=config.DEFAULT_FAVICON_SIZES, validate_default=True)
    formats: tuple[str, ...] = config.DEFAULT_FAVICON_FORMATS
    generate_manifest: bool = True
    generate_html: bool = True
    include_apple_touch: bool = True
    include_android: bool = True
    round_corners: bool = True
    background_color: str = config.DEFAULT_FAVICON_BACKGROUND

    @field_validator("sizes")
    @classmethod
    def _coerce_sizes(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        return tuple(sorted({
            s for s in v if config.MIN_FAVICON_SIZE <= s <= config.MAX_FAVICON_SIZE
        }))

    @field_validator("formats", mode="before")
    @classmethod
    def _lower_formats(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = [v]
        if isinstance(v, (list, tuple)):
            return tuple(str(f).lower() for f in v)
        return v


OPTIONS_MODELS: dict[Processor, type[StepOptions]] = {
    Processor.RESIZE: ResizeOptions,
    Processor.CROP: CropOptions,
    Processor.OPTIMIZE: OptimizeOptions,
    Processor.RENAME: RenameOptions,
    Processor.TEMPLATE: TemplateOptions,
    Processor.FAVICON: FaviconOptions,
}


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ())) or "options"
        parts.append(f"{location}: {err.get('msg')}")
    return "; ".join(parts)


def _caller_flag(raw: Mapping[str, Any], snake: str) -> Any:
    return raw.get(to_camel(snake), raw.get(snake))


def normalize_options(
    processor: str | Processor,
    raw: Mapping[str, Any] | StepOptions | None = None,
) -> StepOptions:
    """Produce the immutable, fully populated options for a step.

    Args:
        processor: Processor name or enum.
        raw: Caller options (camelCase or snake_case), or an already-built
            options model for this processor.

    Raises:
        ConfigurationError: Unknown processor or invalid option values.
    """
    processor = parse_processor(processor)
    model_cls = OPTIONS_MODELS[processor]
    if isinstance(raw, StepOptions):
        if not isinstance(raw, model_cls):
            raise ConfigurationError(
                f"{type(raw).__name__} cannot configure a {processor.value} step"
            )
        return raw

    values = dict(raw or {})
    if processor == Processor.OPTIMIZE:
        fmt = str(values.get("format", "")).lower()
        if fmt in ("jpg", "jpeg") and _caller_flag(values, "preserve_transparency"):
            logger.debug("JPEG cannot hold transparency; switching optimize format to png")
            values["format"] = "png"

    try:
        return model_cls.model_validate(values)
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid {processor.value} options: {_format_validation_error(exc)}"
        ) from exc


def load_options(processor: str | Processor, stored: Mapping[str, Any]) -> StepOptions:
    """Rebuild options from an exported step without caller-intent coercions.

    Exported options are already normalized, so only the model's own
    idempotent validators run.
    """
    processor = parse_processor(processor)
    try:
        return OPTIONS_MODELS[processor].model_validate(dict(stored))
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid stored {processor.value} options: {_format_validation_error(exc)}"
        ) from exc

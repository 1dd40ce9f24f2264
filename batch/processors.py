"""
Step processors: one handler per Processor.

Handlers work on a WorkingImage owned by a single image run. Each handler
reads the current pixels and running dimensions, replaces them with its
output and returns a details dict that becomes the step's OperationRecord.
Handlers raise on failure; the orchestrator wraps the error with the step
that failed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import json
import logging
from pathlib import PurePath
from typing import Any, Callable

import cv2
import numpy as np
from PIL import ImageColor

import config
from cropping.modes import anchor_focus_point
from cropping.solver import solve_crop, validate_crop_offsets
from detection.region import RegionDetector
from errors import ConfigurationError
from geometry import CENTER
from naming import apply_pattern, build_variables, sanitize_filename
from sizing.dimensions import (
    Dimensions,
    check_crop_upscale,
    compute_prescale_for_crop,
    compute_resize_target,
)
from sizing.render import has_transparency
from tasks.options import (
    CropOptions,
    FaviconOptions,
    OptimizeOptions,
    Processor,
    RenameOptions,
    ResizeOptions,
    StepOptions,
    TemplateOptions,
)

from .collaborators import (
    OPAQUE_FORMATS,
    Encoder,
    Renderer,
    TemplateCatalog,
    format_for_mime,
)
from .types import Artifact, SourceImage

logger = logging.getLogger(__name__)

# Placeholders that already make a rendered name differ per image
_PER_IMAGE_PLACEHOLDERS = ("{name}", "{index}", "{index_padded}", "{timestamp}")


@dataclass
class StepContext:
    """Collaborators shared by every handler during one run."""

    renderer: Renderer
    encoder: Encoder
    detector: RegionDetector
    templates: TemplateCatalog
    now: datetime = field(default_factory=datetime.now)


@dataclass
class WorkingImage:
    """Mutable per-image working state threaded through the steps.

    Attributes:
        source: The input image.
        pixels: Current pixels; None only for unrasterized vector sources.
        width: Running width, updated by every pixel-changing step.
        height: Running height.
        stem: Output filename without extension.
        format: Output format the primary artifact will be written in.
        quality: Encoder quality for the output format.
        encoded: Encoded primary output, or None when pixels changed since
            the last encode.
        file_name: Explicit output filename set by rename.
        extras: Side outputs (favicons, manifests, originals).
        index: 0-based position of the image in the batch.
        total: Number of images in the batch.
    """

    source: SourceImage
    pixels: np.ndarray | None
    width: int
    height: int
    stem: str
    format: str
    quality: int = config.DEFAULT_QUALITY
    lossless: bool = False
    encoded: bytes | None = None
    file_name: str | None = None
    extras: list[Artifact] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    index: int = 0
    total: int = 1

    @classmethod
    def from_source(cls, source: SourceImage, index: int = 0, total: int = 1) -> WorkingImage:
        fmt = format_for_mime(source.mime_type) or source.extension or "png"
        return cls(
            source=source,
            pixels=source.pixels,
            width=source.width,
            height=source.height,
            stem=PurePath(source.name).stem or "image",
            format=fmt,
            encoded=source.data if source.pixels is None else None,
            index=index,
            total=total,
        )

    @property
    def dimensions(self) -> Dimensions:
        return Dimensions(self.width, self.height)

    @property
    def has_alpha(self) -> bool:
        if self.pixels is None:
            return self.source.has_alpha
        return has_transparency(self.pixels)

    @property
    def output_name(self) -> str:
        return self.file_name or f"{self.stem}.{self.format}"

    def require_pixels(self, processor: str) -> np.ndarray:
        if self.pixels is None:
            raise ValueError(
                f"{self.source.mime_type} source has no raster pixels; "
                f"{processor} needs a rasterized image"
            )
        return self.pixels

    def set_pixels(self, pixels: np.ndarray) -> None:
        self.pixels = pixels
        self.height, self.width = pixels.shape[:2]
        self.encoded = None


def _cover_fit(
    work: WorkingImage,
    ctx: StepContext,
    target_width: int,
    target_height: int,
    algorithm: str,
) -> dict[str, Any]:
    """Scale to cover the target, then take a centered target-sized crop."""
    pixels = work.require_pixels("cover fit")
    plan = compute_prescale_for_crop(work.width, work.height, target_width, target_height)
    if (plan.width, plan.height) != (work.width, work.height):
        pixels = ctx.renderer.render(pixels, None, (plan.width, plan.height), algorithm)
    placement = solve_crop(
        CENTER, plan.width, plan.height, target_width, target_height, snap_to_thirds_grid=False
    )
    work.set_pixels(ctx.renderer.render(
        pixels, placement.as_rect(), (target_width, target_height), algorithm
    ))
    return {"scale": plan.scale, "placement": placement.to_dict()}


# =============================================================================
# RESIZE / CROP
# =============================================================================


def run_resize(work: WorkingImage, options: ResizeOptions, ctx: StepContext) -> dict[str, Any]:
    pixels = work.require_pixels("resize")
    before = work.dimensions
    target = compute_resize_target(
        work.width,
        work.height,
        options.dimension,
        options.mode,
        preserve_aspect_ratio=options.maintain_aspect_ratio,
        force_square=options.force_square,
        upscale=options.upscale,
    )
    if (target.width, target.height) != (before.width, before.height):
        work.set_pixels(ctx.renderer.render(
            pixels, None, (target.width, target.height), options.algorithm
        ))
    return {
        "from": before.to_dict(),
        "to": target.to_dict(),
        "mode": options.mode.value,
        "algorithm": options.algorithm,
    }


def run_crop(work: WorkingImage, options: CropOptions, ctx: StepContext) -> dict[str, Any]:
    """Pre-scale, locate the subject, place the crop and extract it.

    With ``crop_to_fit`` the source is scaled to cover the target in both
    directions; without it the source is only scaled up when it is smaller
    than the target. Scaling up needs ``upscale``.
    """
    pixels = work.require_pixels("crop")
    before = work.dimensions
    target_w, target_h = options.width, options.height

    plan = compute_prescale_for_crop(work.width, work.height, target_w, target_h)
    if plan.requires_upscale and not options.upscale:
        check_crop_upscale(work.width, work.height, target_w, target_h)

    if options.crop_to_fit or plan.requires_upscale:
        scaled_w, scaled_h = plan.width, plan.height
    else:
        scaled_w, scaled_h = work.width, work.height
    if (scaled_w, scaled_h) != (work.width, work.height):
        pixels = ctx.renderer.render(pixels, None, (scaled_w, scaled_h), options.algorithm)

    details: dict[str, Any] = {
        "from": before.to_dict(),
        "scaled": {"width": scaled_w, "height": scaled_h},
        "mode": options.mode.value,
    }
    if options.mode.is_heuristic:
        detection = ctx.detector.detect(
            pixels,
            options.mode,
            confidence_threshold=options.confidence_threshold,
            objects_to_detect=options.objects_to_detect,
        )
        focus = detection.focus_point
        snap = not detection.is_fallback
        details["detection"] = {
            "focus_point": focus.to_dict(),
            "confidence": detection.confidence,
            "sources": sorted(detection.sources),
            "fallback_reason": (
                detection.fallback_reason.value if detection.fallback_reason else None
            ),
        }
        if "error" in detection.diagnostics:
            work.warnings.append(f"Region detection failed: {detection.diagnostics['error']}")
    else:
        focus = anchor_focus_point(options.mode)
        snap = False

    placement = solve_crop(focus, scaled_w, scaled_h, target_w, target_h, snap_to_thirds_grid=snap)
    validate_crop_offsets(placement, scaled_w, scaled_h)
    work.set_pixels(ctx.renderer.render(
        pixels, placement.as_rect(), (target_w, target_h), options.algorithm
    ))
    details["placement"] = placement.to_dict()
    details["to"] = work.dimensions.to_dict()
    return details


# =============================================================================
# OPTIMIZE
# =============================================================================


def select_format(work: WorkingImage, options: OptimizeOptions) -> str:
    """Resolve ``auto`` and ``original`` to a concrete output format."""
    if options.format == "original":
        return format_for_mime(work.source.mime_type) or work.source.extension or "png"
    if options.format != "auto":
        return options.format

    if work.source.extension == "svg" or work.source.mime_type == "image/svg+xml":
        return "svg"
    if "icon" in work.source.mime_type:
        return "ico"
    if work.has_alpha:
        return "webp"
    if work.width * work.height > config.AVIF_PREFERRED_MEGAPIXELS * 1_000_000:
        return "avif" if "modern" in options.browser_support else "webp"
    return "webp"


def compression_quality(options: OptimizeOptions, fmt: str, pixel_count: int) -> int:
    """Quality after compression-mode tuning and the AVIF cap."""
    quality = options.quality
    if options.compression_mode == "aggressive":
        quality = max(config.AGGRESSIVE_QUALITY_FLOOR, quality - config.AGGRESSIVE_QUALITY_DROP)
    elif options.compression_mode == "adaptive":
        if pixel_count > config.ADAPTIVE_LARGE_MEGAPIXELS * 1_000_000:
            quality = max(config.ADAPTIVE_QUALITY_FLOOR, quality - config.ADAPTIVE_QUALITY_DROP)
    if fmt == "avif":
        quality = min(config.AVIF_MAX_QUALITY, quality)
    return quality


def estimate_savings(original_size: int | None, fmt: str, quality: int) -> dict[str, Any] | None:
    if not original_size:
        return None
    estimated = original_size * config.SAVINGS_FACTORS.get(fmt, 0.8) * (quality / 100)
    savings = original_size - estimated
    return {
        "originalSize": original_size,
        "estimatedSize": round(estimated),
        "savings": round(savings),
        "savingsPercent": round(savings / original_size * 100, 1),
    }


def run_optimize(work: WorkingImage, options: OptimizeOptions, ctx: StepContext) -> dict[str, Any]:
    fmt = select_format(work, options)

    if fmt == "svg":
        if work.pixels is not None or work.source.data is None:
            raise ValueError("SVG output needs an unrasterized SVG source")
        work.encoded = work.source.data
        work.format = "svg"
        return {"format": "svg", "passthrough": True}

    pixels = work.require_pixels("optimize")
    if not ctx.encoder.supports(fmt):
        fallback = "webp" if ctx.encoder.supports("webp") else "png"
        work.warnings.append(f"{fmt} encoding unavailable, using {fallback}")
        logger.warning("%s encoding unavailable for %s, using %s", fmt, work.source.name, fallback)
        fmt = fallback

    if options.max_display_width and work.width > options.max_display_width:
        target = compute_resize_target(
            work.width, work.height, options.max_display_width, "width"
        )
        pixels = ctx.renderer.render(pixels, None, (target.width, target.height))
        work.set_pixels(pixels)

    if fmt in OPAQUE_FORMATS and work.has_alpha:
        work.warnings.append(f"Transparency discarded by {fmt} output")

    quality = compression_quality(options, fmt, work.width * work.height)
    work.encoded = ctx.encoder.encode(
        pixels, fmt, quality, lossless=options.lossless, ico_sizes=options.ico_sizes
    )
    work.format = fmt
    work.quality = quality
    work.lossless = options.lossless
    return {
        "format": fmt,
        "requestedFormat": options.format,
        "quality": quality,
        "compressionMode": options.compression_mode,
        "size": len(work.encoded),
        "dimensions": work.dimensions.to_dict(),
        "savings": estimate_savings(work.source.size_bytes, fmt, quality),
    }


# =============================================================================
# RENAME
# =============================================================================


def run_rename(work: WorkingImage, options: RenameOptions, ctx: StepContext) -> dict[str, Any]:
    sep = options.custom_separator
    variables = build_variables(
        work.source.name,
        work.index,
        work.total,
        width=work.width,
        height=work.height,
        size_bytes=work.source.size_bytes,
        extension=work.format,
        now=ctx.now,
    )
    stem = apply_pattern(options.pattern, variables)
    pattern = options.pattern
    if options.add_index and work.total > 1 and not any(p in pattern for p in _PER_IMAGE_PLACEHOLDERS):
        stem = f"{stem}{sep}{variables['index_padded']}"
    if options.add_timestamp and "{timestamp}" not in pattern:
        stem = f"{stem}{sep}{variables['timestamp']}"
    if not stem:
        stem = apply_pattern(config.FALLBACK_RENAME_PATTERN, variables)

    file_name = f"{stem}.{work.format}" if options.preserve_extension else stem
    file_name = sanitize_filename(file_name, options.max_length)
    previous = work.output_name
    work.file_name = file_name
    work.stem = PurePath(file_name).stem if options.preserve_extension else file_name
    return {"from": previous, "to": file_name, "pattern": pattern}


# =============================================================================
# FAVICON
# =============================================================================


def round_corners(pixels: np.ndarray, radius: int) -> np.ndarray:
    """Return an RGBA copy of a square image with transparent rounded corners."""
    height, width = pixels.shape[:2]
    if pixels.ndim == 2:
        pixels = cv2.cvtColor(pixels, cv2.COLOR_GRAY2RGB)
    rgba = pixels if pixels.shape[2] == 4 else np.dstack(
        [pixels, np.full((height, width), 255, dtype=pixels.dtype)]
    )
    radius = max(0, min(radius, min(width, height) // 2))
    if radius == 0:
        return rgba.copy()

    mask = np.zeros((height, width), dtype=np.uint8)
    cv2.rectangle(mask, (radius, 0), (width - radius - 1, height - 1), 255, -1)
    cv2.rectangle(mask, (0, radius), (width - 1, height - radius - 1), 255, -1)
    for cx, cy in (
        (radius, radius),
        (width - radius - 1, radius),
        (radius, height - radius - 1),
        (width - radius - 1, height - radius - 1),
    ):
        cv2.circle(mask, (cx, cy), radius, 255, -1)

    out = rgba.copy()
    out[:, :, 3] = np.minimum(out[:, :, 3], mask)
    return out


def flatten_onto(pixels: np.ndarray, color: str) -> np.ndarray:
    """Composite RGBA pixels onto a solid background color."""
    if pixels.ndim != 3 or pixels.shape[2] != 4:
        return pixels
    background = np.array(ImageColor.getrgb(color)[:3], dtype=np.float32)
    alpha = pixels[:, :, 3:4].astype(np.float32) / 255.0
    rgb = pixels[:, :, :3].astype(np.float32) * alpha + background * (1.0 - alpha)
    return np.clip(rgb + 0.5, 0, 255).astype(np.uint8)


def _square(work: WorkingImage, ctx: StepContext) -> np.ndarray:
    pixels = work.require_pixels("favicon")
    side = min(work.width, work.height)
    if work.width == work.height:
        return pixels
    placement = solve_crop(CENTER, work.width, work.height, side, side, snap_to_thirds_grid=False)
    return ctx.renderer.render(pixels, placement.as_rect(), (side, side))


def _png_icon(
    square: np.ndarray,
    size: int,
    name: str,
    ctx: StepContext,
    rounded: bool = False,
    background: str | None = None,
) -> Artifact:
    icon = ctx.renderer.render(square, None, (size, size))
    if background is not None:
        icon = flatten_onto(icon, background)
    if rounded:
        icon = round_corners(icon, round(size * 0.2))
    return Artifact(name, ctx.encoder.encode(icon, "png"), "png", size, size, kind="favicon")


def manifest_json(name: str, icons: list[Artifact], background_color: str) -> str:
    return json.dumps({
        "name": name,
        "short_name": name,
        "icons": [
            {"src": icon.name, "sizes": f"{icon.width}x{icon.height}", "type": "image/png"}
            for icon in icons
        ],
        "theme_color": background_color,
        "background_color": background_color,
        "display": "standalone",
    }, indent=2)


def html_snippet(artifacts: list[Artifact], manifest_name: str | None) -> str:
    lines = []
    for artifact in artifacts:
        if artifact.format == "ico":
            lines.append(f'<link rel="icon" href="/{artifact.name}" sizes="any">')
        elif artifact.format == "svg":
            lines.append(f'<link rel="icon" href="/{artifact.name}" type="image/svg+xml">')
        elif "apple-touch-icon" in artifact.name:
            lines.append(f'<link rel="apple-touch-icon" href="/{artifact.name}">')
        elif "android-chrome" not in artifact.name and artifact.width in (16, 32):
            lines.append(
                f'<link rel="icon" type="image/png" sizes="{artifact.width}x{artifact.height}" '
                f'href="/{artifact.name}">'
            )
    if manifest_name:
        lines.append(f'<link rel="manifest" href="/{manifest_name}">')
    return "\n".join(lines) + "\n"


def run_favicon(work: WorkingImage, options: FaviconOptions, ctx: StepContext) -> dict[str, Any]:
    if not options.sizes:
        raise ConfigurationError("Favicon step has no valid sizes")
    square = _square(work, ctx)
    side = square.shape[0]
    prefix = work.stem
    produced: list[Artifact] = []

    if side < max(options.sizes):
        work.warnings.append(
            f"Favicon source {side}px is smaller than the largest icon {max(options.sizes)}px"
        )

    if "png" in options.formats:
        for size in options.sizes:
            produced.append(_png_icon(
                square, size, f"{prefix}-favicon-{size}x{size}.png", ctx,
                rounded=options.round_corners and size >= 64,
            ))
    if "ico" in options.formats:
        ico_sizes = [s for s in options.sizes if s in config.FAVICON_ICO_SIZES]
        ico_sizes = ico_sizes or list(config.FAVICON_ICO_SIZES)
        base = ctx.renderer.render(square, None, (max(ico_sizes), max(ico_sizes)))
        produced.append(Artifact(
            f"{prefix}-favicon.ico",
            ctx.encoder.encode(base, "ico", ico_sizes=ico_sizes),
            "ico",
            max(ico_sizes),
            max(ico_sizes),
            kind="favicon",
        ))
    if "svg" in options.formats:
        if work.source.mime_type == "image/svg+xml" and work.source.data is not None:
            produced.append(Artifact(
                f"{prefix}-favicon.svg", work.source.data, "svg", kind="favicon"
            ))
        else:
            work.warnings.append("SVG favicon skipped: source is not an SVG")

    if options.include_apple_touch:
        size = config.APPLE_TOUCH_SIZE
        produced.append(_png_icon(
            square, size, f"{prefix}-apple-touch-icon.png", ctx,
            background=options.background_color,
        ))
    android: list[Artifact] = []
    if options.include_android:
        for size in config.ANDROID_SIZES:
            android.append(_png_icon(
                square, size, f"{prefix}-android-chrome-{size}x{size}.png", ctx,
                rounded=options.round_corners,
            ))
        produced.extend(android)

    manifest_name = None
    if options.generate_manifest:
        manifest_name = f"{prefix}-site.webmanifest"
        icons = android or [a for a in produced if a.format == "png"]
        produced.append(Artifact(
            manifest_name,
            manifest_json(prefix, icons, options.background_color).encode("utf-8"),
            "webmanifest",
            kind="manifest",
        ))
    if options.generate_html:
        produced.append(Artifact(
            f"{prefix}-favicon.html",
            html_snippet(produced, manifest_name).encode("utf-8"),
            "html",
            kind="html",
        ))

    work.extras.extend(produced)
    return {"files": [a.name for a in produced], "count": len(produced), "sourceSize": side}


# =============================================================================
# TEMPLATE
# =============================================================================


def run_template(work: WorkingImage, options: TemplateOptions, ctx: StepContext) -> dict[str, Any]:
    if not options.template_id:
        raise ConfigurationError("Template step has no templateId")
    frame = ctx.templates.get(options.template_id)
    if frame is None:
        raise ConfigurationError(f"Unknown template: {options.template_id}")

    if options.preserve_original:
        pixels = work.require_pixels("template")
        fmt = work.format if ctx.encoder.supports(work.format) else "png"
        work.extras.append(Artifact(
            f"{work.stem}-original.{fmt}",
            work.encoded if work.encoded is not None and fmt == work.format
            else ctx.encoder.encode(pixels, fmt, work.quality),
            fmt,
            work.width,
            work.height,
            kind="original",
        ))

    details = _cover_fit(work, ctx, frame.width, frame.height, config.DEFAULT_RESIZE_ALGORITHM)
    details.update({
        "template": frame.id,
        "platform": frame.platform,
        "to": work.dimensions.to_dict(),
    })
    return details


Handler = Callable[[WorkingImage, Any, StepContext], dict[str, Any]]

PROCESSORS: dict[Processor, Handler] = {
    Processor.RESIZE: run_resize,
    Processor.CROP: run_crop,
    Processor.OPTIMIZE: run_optimize,
    Processor.RENAME: run_rename,
    Processor.FAVICON: run_favicon,
    Processor.TEMPLATE: run_template,
}


def run_step(
    processor: Processor,
    work: WorkingImage,
    options: StepOptions,
    ctx: StepContext,
) -> dict[str, Any]:
    """Dispatch to the handler for processor."""
    return PROCESSORS[processor](work, options, ctx)


def finalize(work: WorkingImage, encoder: Encoder) -> Artifact:
    """Encode the primary output if pixels changed since the last encode."""
    if work.encoded is None:
        pixels = work.require_pixels("output")
        if not encoder.supports(work.format):
            logger.debug("No encoder for %s, writing png", work.format)
            if work.file_name and work.file_name.endswith(f".{work.format}"):
                work.file_name = f"{PurePath(work.file_name).stem}.png"
            work.format = "png"
        work.encoded = encoder.encode(pixels, work.format, work.quality, lossless=work.lossless)
    return Artifact(
        work.output_name,
        work.encoded,
        work.format,
        work.width,
        work.height,
        kind="image",
    )

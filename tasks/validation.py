"""
Step, task-logic and image validation.

Validators never raise. They return ValidationIssues; blocking issues
(error/critical) stop a task from running against an image, the rest are
advisory and go to the caller's warning channel.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Protocol, Sequence

import config
from errors import ConfigurationError, Severity, UpscaleNotAllowed, ValidationIssue
from naming import validate_rename_pattern
from sizing.dimensions import Dimensions, check_resize_warnings, compute_resize_target
from .options import (
    CropOptions,
    FaviconOptions,
    OptimizeOptions,
    Processor,
    RenameOptions,
    ResizeOptions,
    StepOptions,
    TemplateOptions,
)
from .step import StepSpec


class ImageInfo(Protocol):
    width: int
    height: int


@dataclass
class ValidationReport:
    """Outcome of validating a task, optionally against one image."""

    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def status(self) -> str:
        if self.errors:
            return "invalid"
        if self.warnings:
            return "has_warnings"
        return "valid"

    def extend(self, issues: Iterable[ValidationIssue]) -> None:
        for issue in issues:
            if issue.is_blocking:
                self.errors.append(issue)
            else:
                self.warnings.append(issue)

    def raise_for_errors(self) -> None:
        """Raise ConfigurationError listing every blocking issue."""
        if self.errors:
            raise ConfigurationError(
                "Task validation failed: " + "; ".join(e.message for e in self.errors)
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.is_valid,
            "status": self.status,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


def _issue(code: str, message: str, severity: Severity = Severity.WARNING,
           suggestion: str | None = None) -> ValidationIssue:
    return ValidationIssue(code=code, message=message, severity=severity, suggestion=suggestion)


def validate_image_info(image: ImageInfo) -> list[ValidationIssue]:
    """Check that an image has usable dimensions."""
    width = getattr(image, "width", 0) or 0
    height = getattr(image, "height", 0) or 0
    if width <= 0 or height <= 0:
        return [_issue("missing_dimensions", "Image missing dimensions", Severity.ERROR)]

    issues = []
    if width < config.MIN_DIMENSION or height < config.MIN_DIMENSION:
        issues.append(_issue("very_small_source", f"Image dimensions very small ({width}x{height})"))
    if width > config.MAX_DIMENSION or height > config.MAX_DIMENSION:
        issues.append(_issue("very_large_source", f"Image dimensions very large ({width}x{height})"))
    aspect = width / height
    if aspect > config.MAX_ASPECT_RATIO or aspect < 1 / config.MAX_ASPECT_RATIO:
        issues.append(_issue("extreme_aspect_ratio", "Extreme aspect ratio may cause issues"))
    return issues


def validate_resize(options: ResizeOptions, image: ImageInfo | None = None) -> list[ValidationIssue]:
    issues = []
    if options.dimension < config.MIN_DIMENSION:
        issues.append(_issue(
            "small_dimension",
            f"Resize dimension {options.dimension}px is very small",
        ))
    elif options.dimension > config.RECOMMENDED_MAX_DIMENSION:
        issues.append(_issue(
            "large_dimension",
            f"Resize dimension {options.dimension}px is very large",
            suggestion=f"Dimensions above {config.RECOMMENDED_MAX_DIMENSION}px are slow to process",
        ))
    if options.force_square and not options.maintain_aspect_ratio:
        issues.append(_issue(
            "force_square_distortion",
            "Force square without aspect preservation will distort the image",
            suggestion="Use a crop step to get square output without distortion",
        ))

    if image is not None and image.width > 0 and image.height > 0:
        try:
            target = compute_resize_target(
                image.width,
                image.height,
                options.dimension,
                options.mode,
                preserve_aspect_ratio=options.maintain_aspect_ratio,
                force_square=options.force_square,
                upscale=options.upscale,
            )
        except UpscaleNotAllowed as exc:
            issues.append(_issue(
                "upscale_not_allowed",
                str(exc),
                suggestion="Enable upscale or choose a smaller dimension",
            ))
        else:
            issues.extend(check_resize_warnings(
                Dimensions(image.width, image.height), target, options.force_square
            ))
    return issues


def validate_crop(options: CropOptions, image: ImageInfo | None = None) -> list[ValidationIssue]:
    issues = []
    if options.width < config.MIN_CROP_SIZE or options.height < config.MIN_CROP_SIZE:
        issues.append(_issue(
            "crop_too_small",
            f"Crop size {options.width}x{options.height} is below the minimum "
            f"{config.MIN_CROP_SIZE}px",
            Severity.ERROR,
        ))
    if options.width > config.MAX_CROP_SIZE or options.height > config.MAX_CROP_SIZE:
        issues.append(_issue(
            "crop_too_large",
            f"Crop size {options.width}x{options.height} exceeds {config.MAX_CROP_SIZE}px",
        ))

    aspect = options.width / options.height
    if aspect > config.MAX_ASPECT_RATIO or aspect < 1 / config.MAX_ASPECT_RATIO:
        issues.append(_issue("extreme_aspect_ratio", f"Extreme crop aspect ratio {aspect:.2f}"))
    elif options.mode.is_heuristic and (
        aspect > config.AI_CROP_MAX_ASPECT or aspect < config.AI_CROP_MIN_ASPECT
    ):
        issues.append(_issue(
            "extreme_ai_aspect",
            f"Aspect ratio {aspect:.2f} may reduce {options.mode.value} crop accuracy",
            Severity.INFO,
        ))

    if image is not None and image.width > 0 and image.height > 0:
        if (options.width > image.width or options.height > image.height) and not options.upscale:
            issues.append(_issue(
                "source_too_small",
                f"Source {image.width}x{image.height} is smaller than crop "
                f"{options.width}x{options.height} and upscaling is disabled",
                suggestion="Enable upscale or add a resize step before cropping",
            ))
    return issues


def validate_optimize(options: OptimizeOptions, image: ImageInfo | None = None) -> list[ValidationIssue]:
    issues = []
    if options.lossless and options.format == "jpg":
        issues.append(_issue("lossless_unsupported", "JPEG cannot be encoded losslessly"))
    if options.format == "jpg" and image is not None and getattr(image, "has_alpha", False):
        issues.append(_issue(
            "transparency_lost",
            "Image has transparency that JPEG output will discard",
            suggestion="Use png, webp or auto format",
        ))
    if (
        options.max_display_width is not None
        and image is not None
        and 0 < image.width <= options.max_display_width
    ):
        issues.append(_issue(
            "max_width_not_applied",
            f"Image is already narrower than maxDisplayWidth {options.max_display_width}px",
            Severity.INFO,
        ))
    return issues


def validate_rename(options: RenameOptions, image: ImageInfo | None = None) -> list[ValidationIssue]:
    return validate_rename_pattern(options.pattern)


def validate_template(options: TemplateOptions, image: ImageInfo | None = None) -> list[ValidationIssue]:
    if not options.template_id:
        return [_issue("missing_template", "Template step has no templateId", Severity.ERROR)]
    return []


def validate_favicon(options: FaviconOptions, image: ImageInfo | None = None) -> list[ValidationIssue]:
    issues = []
    if not options.sizes:
        issues.append(_issue(
            "no_favicon_sizes",
            "Favicon sizes must be a non-empty list of sizes between "
            f"{config.MIN_FAVICON_SIZE} and {config.MAX_FAVICON_SIZE}",
            Severity.ERROR,
        ))
    for fmt in options.formats:
        if fmt not in config.FAVICON_FORMATS:
            issues.append(_issue(
                "unsupported_format",
                f"Unsupported favicon format: {fmt}",
                suggestion=f"Use one of: {', '.join(config.FAVICON_FORMATS)}",
            ))

    if image is not None and image.width > 0 and image.height > 0 and options.sizes:
        smallest = min(options.sizes)
        if image.width < smallest or image.height < smallest:
            issues.append(_issue(
                "source_too_small",
                f"Source image ({image.width}x{image.height}) smaller than smallest "
                f"favicon size ({smallest}px)",
            ))
        if abs(image.width / image.height - 1) > 0.1:
            issues.append(_issue(
                "non_square_source",
                "Source image is not square; favicons may be distorted",
                suggestion="Consider adding a crop step before favicon generation",
            ))
    return issues


STEP_VALIDATORS: dict[Processor, Callable[[Any, ImageInfo | None], list[ValidationIssue]]] = {
    Processor.RESIZE: validate_resize,
    Processor.CROP: validate_crop,
    Processor.OPTIMIZE: validate_optimize,
    Processor.RENAME: validate_rename,
    Processor.TEMPLATE: validate_template,
    Processor.FAVICON: validate_favicon,
}


def validate_step(step: StepSpec, image: ImageInfo | None = None) -> list[ValidationIssue]:
    """Run the processor's validator and tag issues with the step."""
    options: StepOptions = step.options
    return [
        issue.with_step(step.order, step.processor.value)
        for issue in STEP_VALIDATORS[step.processor](options, image)
    ]


def validate_task_logic(steps: Sequence[StepSpec]) -> list[ValidationIssue]:
    """Advisory checks on how enabled steps are combined.

    Execution order is canonical, so none of these block a run; they flag
    pipelines that are likely not what the author meant.
    """
    enabled = [s for s in steps if s.enabled]
    processors = [s.processor for s in enabled]
    issues = []

    if Processor.CROP in processors and Processor.RESIZE not in processors:
        issues.append(_issue(
            "crop_without_resize",
            "Crop without resize may result in unexpected output",
            Severity.INFO,
            "Consider adding resize step before crop for better control",
        ))

    optimize_count = processors.count(Processor.OPTIMIZE)
    if optimize_count > 1:
        issues.append(_issue(
            "multiple_optimize",
            f"Multiple optimization steps ({optimize_count})",
            suggestion="Multiple optimizations may degrade quality unnecessarily",
        ))

    if Processor.RENAME in processors:
        rename_at = processors.index(Processor.RENAME)
        if any(p != Processor.RENAME for p in processors[rename_at + 1:]):
            issues.append(_issue(
                "early_rename",
                "Rename step placed before other operations",
                Severity.INFO,
                "Consider moving rename to end to reflect final output",
            ))

    if Processor.FAVICON in processors:
        favicon_at = processors.index(Processor.FAVICON)
        before = processors[:favicon_at]
        if Processor.RESIZE not in before and Processor.CROP not in before:
            issues.append(_issue(
                "favicon_without_preparation",
                "Favicon generation without prior resize/crop",
                suggestion="Add resize/crop step before favicon for optimal results",
            ))

    for favicon_step in (s for s in enabled if s.processor == Processor.FAVICON):
        if any(
            s.processor == Processor.OPTIMIZE and s.order > favicon_step.order
            for s in enabled
        ):
            issues.append(_issue(
                "optimize_after_favicon",
                "Optimization after favicon generation may affect favicon quality",
                suggestion="Move optimization step before favicon generation",
            ))

    if (
        Processor.OPTIMIZE in processors
        and Processor.RESIZE not in processors
        and Processor.CROP not in processors
    ):
        issues.append(_issue(
            "optimization_only",
            "Task contains only optimization step",
            Severity.INFO,
            "Consider adding resize/crop steps for complete image processing",
        ))
    return issues


def validate_steps(
    steps: Sequence[StepSpec],
    image: ImageInfo | None = None,
) -> ValidationReport:
    """Validate enabled steps, their combination and (optionally) an image."""
    report = ValidationReport()
    enabled = [s for s in steps if s.enabled]
    if not enabled:
        report.extend([_issue(
            "empty_task",
            "Task has no enabled steps",
            suggestion="Add at least one processing step",
        )])
        return report

    if image is not None:
        report.extend(validate_image_info(image))
    for step in enabled:
        report.extend(validate_step(step, image))
    report.extend(validate_task_logic(enabled))
    return report

"""
Task: an ordered, named, reusable list of steps.

Steps keep their authoring order here; execution order is decided by the
orchestrator (see ``batch.orchestrator.EXECUTION_ORDER``). Every mutation
renumbers ``order`` to 1..N and recomputes the derived metadata, which is
exposed read-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
import logging
from types import MappingProxyType
from typing import Any, Mapping, cast
import uuid

import config
from errors import ConfigurationError
from .options import (
    CropOptions,
    FaviconOptions,
    OptimizeOptions,
    Processor,
    parse_processor,
)
from .step import StepSpec
from .templates import TASK_TEMPLATES, list_templates
from .validation import ImageInfo, ValidationReport, validate_steps

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def format_duration(ms: float) -> str:
    """Format milliseconds as ``"Nms"``, ``"N.Ns"`` or ``"Xm Ys"``."""
    if ms < 1000:
        return f"{round(ms)}ms"
    if ms < 60000:
        return f"{ms / 1000:.1f}s"
    minutes = int(ms // 60000)
    seconds = int(round((ms % 60000) / 1000))
    return f"{minutes}m {seconds}s"


def _is_ai_crop(step: StepSpec) -> bool:
    return isinstance(step.options, CropOptions) and step.options.mode.is_ai


def step_cost_factor(step: StepSpec) -> float:
    """Complexity multiplier for one step in the cost model."""
    options = step.options
    if isinstance(options, FaviconOptions):
        return float(max(1, len(options.sizes)) * max(1, len(options.formats)))
    if _is_ai_crop(step):
        return config.AI_CROP_COST_MULTIPLIER
    if isinstance(options, OptimizeOptions):
        factor = 1.0
        if options.compression_mode == "aggressive":
            factor = config.AGGRESSIVE_OPTIMIZE_COST_MULTIPLIER
        if options.analyze_content:
            factor *= config.CONTENT_ANALYSIS_COST_MULTIPLIER
        return factor
    return 1.0


@dataclass(frozen=True)
class TimeEstimate:
    per_image_ms: float
    total_ms: float
    step_count: int
    image_count: int
    complexity_factor: float

    @property
    def formatted(self) -> str:
        return format_duration(self.total_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "perImage": self.per_image_ms,
            "total": self.total_ms,
            "formatted": self.formatted,
            "stepCount": self.step_count,
            "imageCount": self.image_count,
            "complexityFactor": self.complexity_factor,
        }


@dataclass(frozen=True)
class TaskMetadata:
    """Derived view of a task; recomputed on every mutation."""

    step_count: int = 0
    processor_count: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    category: str = "general"
    estimated_outputs: int = 1
    estimated_duration_ms: float = 0.0
    has_smart_crop: bool = False
    has_auto_optimization: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "stepCount": self.step_count,
            "processorCount": dict(self.processor_count),
            "category": self.category,
            "estimatedOutputs": self.estimated_outputs,
            "estimatedDuration": self.estimated_duration_ms,
            "hasSmartCrop": self.has_smart_crop,
            "hasAutoOptimization": self.has_auto_optimization,
        }


class Task:
    """An ordered collection of steps, validated and reusable across images.

    Args:
        name: Display name.
        description: Free-form description.
    """

    def __init__(self, name: str = "Untitled Task", description: str = "") -> None:
        self.id = f"task_{uuid.uuid4().hex[:16]}"
        self.name = name
        self.description = description
        self.created_at = _now_iso()
        self.updated_at = self.created_at
        self._steps: list[StepSpec] = []
        self._metadata = TaskMetadata()
        self._refresh()

    def __repr__(self) -> str:
        return f"Task(id={self.id!r}, name={self.name!r}, steps={len(self._steps)})"

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def steps(self) -> tuple[StepSpec, ...]:
        return tuple(self._steps)

    @property
    def metadata(self) -> TaskMetadata:
        return self._metadata

    def __len__(self) -> int:
        return len(self._steps)

    def enabled_steps(self) -> list[StepSpec]:
        return [s for s in self._steps if s.enabled]

    def steps_by_processor(self, processor: str | Processor) -> list[StepSpec]:
        processor = parse_processor(processor)
        return [s for s in self._steps if s.processor == processor]

    def has_processor(self, processor: str | Processor) -> bool:
        processor = parse_processor(processor)
        return any(s.processor == processor for s in self.enabled_steps())

    def has_optimization(self) -> bool:
        return self.has_processor(Processor.OPTIMIZE)

    def optimization_step(self) -> StepSpec | None:
        return next((s for s in self.enabled_steps() if s.processor == Processor.OPTIMIZE), None)

    def get_step(self, step_id: str) -> StepSpec | None:
        return next((s for s in self._steps if s.id == step_id), None)

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def add_step(self, processor: str | Processor, options: Any = None) -> StepSpec:
        """Append a step with normalized options.

        Raises:
            ConfigurationError: Unknown processor or invalid options.
        """
        step = StepSpec.create(processor, options, order=len(self._steps) + 1)
        self._steps.append(step)
        logger.debug("Added step %d (%s) to %s", step.order, step.processor.value, self.id)
        self._refresh()
        return step

    def add_resize(self, dimension: int, mode: str = "longest", **options: Any) -> StepSpec:
        return self.add_step(Processor.RESIZE, {"dimension": dimension, "mode": mode, **options})

    def add_crop(self, width: int, height: int, mode: str = "smart", **options: Any) -> StepSpec:
        return self.add_step(Processor.CROP, {"width": width, "height": height, "mode": mode, **options})

    def add_smart_crop(self, width: int, height: int, **options: Any) -> StepSpec:
        return self.add_step(Processor.CROP, {
            "width": width,
            "height": height,
            "mode": "smart",
            "confidenceThreshold": config.DEFAULT_CONFIDENCE_THRESHOLD,
            "multipleFaces": True,
            "cropToFit": True,
            **options,
        })

    def add_optimize(self, quality: int = config.DEFAULT_QUALITY, format: str = "auto",
                     **options: Any) -> StepSpec:
        return self.add_step(Processor.OPTIMIZE, {"quality": quality, "format": format, **options})

    def add_web_optimization(self, **options: Any) -> StepSpec:
        return self.add_step(Processor.OPTIMIZE, {
            "quality": config.DEFAULT_QUALITY,
            "format": "auto",
            "maxDisplayWidth": 1920,
            "browserSupport": list(config.DEFAULT_BROWSER_SUPPORT),
            "compressionMode": "adaptive",
            "stripMetadata": True,
            "preserveTransparency": True,
            **options,
        })

    def add_rename(self, pattern: str, **options: Any) -> StepSpec:
        return self.add_step(Processor.RENAME, {"pattern": pattern, **options})

    def add_template(self, template_id: str, **options: Any) -> StepSpec:
        return self.add_step(Processor.TEMPLATE, {"templateId": template_id, **options})

    def add_favicon(self, sizes=config.DEFAULT_FAVICON_SIZES, formats=config.DEFAULT_FAVICON_FORMATS,
                    **options: Any) -> StepSpec:
        return self.add_step(Processor.FAVICON, {"sizes": list(sizes), "formats": list(formats), **options})

    def _resolve_index(self, identifier: int | str) -> int | None:
        if isinstance(identifier, bool):
            return None
        if isinstance(identifier, int):
            return identifier if 0 <= identifier < len(self._steps) else None
        for idx, step in enumerate(self._steps):
            if step.id == identifier:
                return idx
        return None

    def remove_step(self, identifier: int | str) -> bool:
        """Remove a step by 0-based index or id; False if not found."""
        index = self._resolve_index(identifier)
        if index is None:
            return False
        removed = self._steps.pop(index)
        logger.debug("Removed step %s from %s", removed.id, self.id)
        self._refresh()
        return True

    def move_step_up(self, index: int) -> bool:
        """Swap the step at index with the one before it; False if out of range."""
        if not isinstance(index, int) or index <= 0 or index >= len(self._steps):
            return False
        self._steps[index - 1], self._steps[index] = self._steps[index], self._steps[index - 1]
        self._refresh()
        return True

    def move_step_down(self, index: int) -> bool:
        """Swap the step at index with the one after it; False if out of range."""
        if not isinstance(index, int) or index < 0 or index >= len(self._steps) - 1:
            return False
        self._steps[index + 1], self._steps[index] = self._steps[index], self._steps[index + 1]
        self._refresh()
        return True

    def set_step_enabled(self, identifier: int | str, enabled: bool = True) -> bool:
        """Enable or disable a step by 0-based index or id; False if not found."""
        index = self._resolve_index(identifier)
        if index is None:
            return False
        self._steps[index] = self._steps[index].with_enabled(bool(enabled))
        self._refresh()
        return True

    def clear(self) -> None:
        self._steps.clear()
        self._refresh()

    def _refresh(self) -> None:
        self._steps = [step.with_order(i + 1) for i, step in enumerate(self._steps)]
        self.updated_at = _now_iso()
        self._metadata = self._compute_metadata()

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def processor_count(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for step in self.enabled_steps():
            counts[step.processor.value] = counts.get(step.processor.value, 0) + 1
        return counts

    def _category(self, counts: Mapping[str, int]) -> str:
        if counts.get("favicon"):
            return "favicon"
        if counts.get("template"):
            return "template"
        if counts.get("optimize") and not counts.get("resize") and not counts.get("crop"):
            return "optimization-only"
        return "general"

    def _compute_metadata(self) -> TaskMetadata:
        counts = self.processor_count()
        enabled = self.enabled_steps()
        return TaskMetadata(
            step_count=len(enabled),
            processor_count=MappingProxyType(counts),
            category=self._category(counts),
            estimated_outputs=self.estimate_output_count(),
            estimated_duration_ms=self.get_time_estimate().total_ms,
            has_smart_crop=any(_is_ai_crop(s) for s in enabled),
            has_auto_optimization=any(
                isinstance(s.options, OptimizeOptions) and s.options.format == "auto"
                for s in enabled
            ),
        )

    def estimate_output_count(self) -> int:
        """Number of files one image produces."""
        count = 1
        for step in self.enabled_steps():
            options = step.options
            if isinstance(options, FaviconOptions):
                count += len(options.sizes) * len(options.formats)
                count += sum((
                    options.generate_manifest,
                    options.generate_html,
                    options.include_apple_touch,
                    options.include_android,
                ))
        return count

    def optimization_level(self) -> str:
        step = self.optimization_step()
        if step is None:
            return "none"
        options = cast(OptimizeOptions, step.options)
        if options.compression_mode == "aggressive" and options.quality < 70:
            return "aggressive"
        if options.compression_mode == "adaptive" or 70 <= options.quality <= 90:
            return "balanced"
        if options.compression_mode == "balanced" and options.quality > 90:
            return "high-quality"
        return "standard"

    def get_time_estimate(self, image_count: int = 1) -> TimeEstimate:
        """Heuristic processing time; for display only.

        Each enabled step costs its base time times its own complexity
        factor. The reported factor is the largest per-step factor.
        """
        if image_count < 0:
            raise ValueError(f"image_count must be non-negative, got {image_count}")
        per_image = 0.0
        peak_factor = 1.0
        enabled = self.enabled_steps()
        for step in enabled:
            factor = step_cost_factor(step)
            peak_factor = max(peak_factor, factor)
            per_image += config.BASE_STEP_TIMES_MS.get(step.processor.value, 100) * factor
        return TimeEstimate(
            per_image_ms=per_image,
            total_ms=per_image * image_count,
            step_count=len(enabled),
            image_count=image_count,
            complexity_factor=round(peak_factor, 1),
        )

    # ------------------------------------------------------------------
    # Validation and reporting
    # ------------------------------------------------------------------

    def validate(self, image: ImageInfo | None = None, *, strict: bool = False) -> ValidationReport:
        """Validate steps, their combination and optionally an image.

        Args:
            image: Anything with ``width``/``height``; enables image checks.
            strict: Raise ConfigurationError when there are blocking issues.
        """
        report = validate_steps(self._steps, image)
        if strict:
            report.raise_for_errors()
        return report

    def _task_type(self, counts: Mapping[str, int]) -> str:
        if not counts:
            return "empty"
        if counts.get("favicon"):
            return "favicon"
        if counts.get("template"):
            return "template"
        if set(counts) == {"optimize"} and counts["optimize"] == 1:
            return "optimization-only"
        if set(counts) <= {"resize", "crop", "optimize"}:
            return "basic"
        return "general"

    def get_validation_summary(self) -> dict[str, Any]:
        report = self.validate()
        counts = self.processor_count()
        enabled = self.enabled_steps()
        return {
            "totalSteps": len(enabled),
            "enabledSteps": len(enabled),
            "disabledSteps": len(self._steps) - len(enabled),
            "errorCount": len(report.errors),
            "warningCount": len(report.warnings),
            "processorCount": counts,
            "taskType": self._task_type(counts),
            "category": self._metadata.category,
            "status": report.status,
            "canProceed": report.is_valid,
            "requiresImage": any(
                s.processor in (Processor.RESIZE, Processor.CROP, Processor.OPTIMIZE, Processor.FAVICON)
                for s in enabled
            ),
            "hasFavicon": bool(counts.get("favicon")),
            "hasSmartCrop": self._metadata.has_smart_crop,
            "hasAutoOptimization": self._metadata.has_auto_optimization,
            "estimatedOutputs": self._metadata.estimated_outputs,
            "optimizationLevel": self.optimization_level(),
        }

    def _describe_step(self, number: int, step: StepSpec) -> str:
        o = step.options
        if step.processor == Processor.RESIZE:
            return f"{number}. Resize to {o.dimension}px ({o.mode.value})"
        if step.processor == Processor.CROP:
            kind = f"AI {o.mode.value} mode" if o.mode.is_heuristic else o.mode.value
            return f"{number}. Crop to {o.width}x{o.height} ({kind})"
        if step.processor == Processor.OPTIMIZE:
            fmt = "auto (intelligent selection)" if o.format == "auto" else o.format.upper()
            text = f"{number}. Optimize to {fmt} ({o.quality}%)"
            if o.max_display_width:
                text += f", max {o.max_display_width}px"
            if o.compression_mode != "adaptive":
                text += f", {o.compression_mode} compression"
            return text + f", {'+'.join(o.browser_support)} browsers"
        if step.processor == Processor.RENAME:
            return f'{number}. Rename with pattern: "{o.pattern}"'
        if step.processor == Processor.TEMPLATE:
            return f"{number}. Apply template: {o.template_id}"
        return f"{number}. Generate favicon set ({len(o.sizes)} sizes, {len(o.formats)} formats)"

    def get_description(self) -> str:
        enabled = self.enabled_steps()
        if not enabled:
            return "No processing steps configured"
        return "\n".join(self._describe_step(i + 1, s) for i, s in enumerate(enabled))

    def check_compatibility(self, mime_type: str) -> dict[str, Any]:
        """Advisory compatibility notes for a source MIME type."""
        has_favicon = self.has_processor(Processor.FAVICON)
        has_smart_crop = self._metadata.has_smart_crop
        has_optimization = self.has_processor(Processor.OPTIMIZE)
        warnings: list[str] = []

        if mime_type == "image/svg+xml":
            if has_favicon:
                warnings.append("SVG to favicon conversion may not preserve all features")
            if has_smart_crop:
                warnings.append("SVG images will be rasterized before smart cropping")
        elif mime_type == "image/gif":
            if has_favicon:
                warnings.append("Animated GIFs will lose animation in favicon conversion")
            if has_smart_crop:
                warnings.append("Smart crop will use first frame of animated GIF")
            if has_optimization:
                warnings.append("GIF optimization may reduce animation quality")
        elif mime_type in ("image/x-icon", "image/vnd.microsoft.icon"):
            warnings.append("ICO files contain multiple images; processing may use first frame only")

        return {
            "compatible": True,
            "warnings": warnings,
            "errors": [],
            "recommended": not warnings,
        }

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Export record; round-trips through ``Task.from_dict``."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "version": config.TASK_FORMAT_VERSION,
            "steps": [step.to_dict() for step in self._steps],
            "metadata": self._metadata.to_dict(),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Task:
        """Import an exported record.

        Stored metadata is ignored and recomputed; step orders are rebuilt
        from list position.

        Raises:
            ConfigurationError: Malformed record or invalid step options.
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Task record must be a mapping, got {type(data).__name__}")
        steps_data = data.get("steps") or []
        if not isinstance(steps_data, list):
            raise ConfigurationError("Task record 'steps' must be a list")

        task = cls(data.get("name") or "Untitled Task", data.get("description") or "")
        task.id = data.get("id") or task.id
        task._steps = [
            StepSpec.from_dict(step_data, order=i + 1) for i, step_data in enumerate(steps_data)
        ]
        task._refresh()
        task.created_at = data.get("createdAt") or task.created_at
        task.updated_at = data.get("updatedAt") or task.updated_at
        return task

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, text: str) -> Task:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid task JSON: {exc}") from exc
        return cls.from_dict(data)

    def clone(self, name: str | None = None) -> Task:
        """Copy this task under a new id.

        Steps are immutable and shared; the step list and derived metadata
        belong to the copy.
        """
        copy = Task(name if name is not None else self.name, self.description)
        copy._steps = list(self._steps)
        copy._refresh()
        return copy

    def to_simple_dict(self) -> dict[str, Any]:
        summary = self.get_validation_summary()
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "stepCount": len(self._steps),
            "enabledStepCount": len(self.enabled_steps()),
            "hasFavicon": summary["hasFavicon"],
            "hasSmartCrop": summary["hasSmartCrop"],
            "hasAutoOptimization": summary["hasAutoOptimization"],
            "taskType": summary["taskType"],
            "status": summary["status"],
            "canProceed": summary["canProceed"],
            "estimatedOutputs": summary["estimatedOutputs"],
            "optimizationLevel": summary["optimizationLevel"],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_template(cls, template_name: str) -> Task:
        """Build a task from a built-in preset.

        Raises:
            ConfigurationError: Unknown template name.
        """
        template = TASK_TEMPLATES.get(template_name)
        if template is None:
            raise ConfigurationError(
                f"Unknown template: {template_name}. Available: {', '.join(list_templates())}"
            )
        task = cls(template["name"], template["description"])
        for processor, options in template["steps"]:
            task.add_step(processor, options)
        return task

"""
Task authoring: steps, options, validation and presets.

Key components:
- options: frozen per-processor option models and their normalization
- step: StepSpec, one configured operation with derived metadata
- validation: per-step, cross-step and image checks
- task: Task, the ordered, serializable collection of steps
- templates: built-in task presets
"""

from .options import (
    OPTIONS_MODELS,
    CropOptions,
    FaviconOptions,
    OptimizeOptions,
    Processor,
    RenameOptions,
    ResizeOptions,
    StepOptions,
    TemplateOptions,
    load_options,
    normalize_options,
    parse_processor,
)
from .step import StepMetadata, StepSpec
from .task import Task, TaskMetadata, TimeEstimate, format_duration, step_cost_factor
from .templates import TASK_TEMPLATES, list_templates
from .validation import (
    ImageInfo,
    ValidationReport,
    validate_image_info,
    validate_step,
    validate_steps,
    validate_task_logic,
)

__all__ = [
    # Options
    "OPTIONS_MODELS",
    "CropOptions",
    "FaviconOptions",
    "OptimizeOptions",
    "Processor",
    "RenameOptions",
    "ResizeOptions",
    "StepOptions",
    "TemplateOptions",
    "load_options",
    "normalize_options",
    "parse_processor",
    # Steps
    "StepMetadata",
    "StepSpec",
    # Task
    "Task",
    "TaskMetadata",
    "TimeEstimate",
    "format_duration",
    "step_cost_factor",
    # Templates
    "TASK_TEMPLATES",
    "list_templates",
    # Validation
    "ImageInfo",
    "ValidationReport",
    "validate_image_info",
    "validate_step",
    "validate_steps",
    "validate_task_logic",
]

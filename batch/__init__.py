"""
Batch execution of tasks against images.

Key components:
- orchestrator: Orchestrator, EXECUTION_ORDER and execution_plan
- processors: one handler per processor, dispatched by table
- collaborators: renderer, encoder, metadata probe and template catalog
- types: SourceImage, ImageResult, BatchSummary and the per-image state
- config: BatchConfig scheduling options
- sources: local file and directory discovery
"""

from .collaborators import (
    BuiltinTemplateCatalog,
    Encoder,
    FrameTemplate,
    MetadataProbe,
    OpenCVRenderer,
    PillowEncoder,
    PillowMetadataProbe,
    ProbeResult,
    Renderer,
    TemplateCatalog,
    load_source_image,
    svg_intrinsic_size,
)
from .config import BatchConfig
from .orchestrator import EXECUTION_ORDER, Orchestrator, execution_plan
from .processors import PROCESSORS, StepContext, WorkingImage
from .sources import IMAGE_EXTENSIONS, collect_images, find_images
from .types import (
    Artifact,
    BatchSummary,
    ImageResult,
    ImageRun,
    ImageState,
    OperationRecord,
    SourceImage,
)

__all__ = [
    # Orchestration
    "EXECUTION_ORDER",
    "Orchestrator",
    "execution_plan",
    "BatchConfig",
    # Processors
    "PROCESSORS",
    "StepContext",
    "WorkingImage",
    # Collaborators
    "BuiltinTemplateCatalog",
    "Encoder",
    "FrameTemplate",
    "MetadataProbe",
    "OpenCVRenderer",
    "PillowEncoder",
    "PillowMetadataProbe",
    "ProbeResult",
    "Renderer",
    "TemplateCatalog",
    "load_source_image",
    "svg_intrinsic_size",
    # Sources
    "IMAGE_EXTENSIONS",
    "collect_images",
    "find_images",
    # Types
    "Artifact",
    "BatchSummary",
    "ImageResult",
    "ImageRun",
    "ImageState",
    "OperationRecord",
    "SourceImage",
]

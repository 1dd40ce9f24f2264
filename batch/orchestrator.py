"""
Batch orchestration: run a Task against many images.

Execution order is fixed by EXECUTION_ORDER, not by how the task was
authored: resize, crop, optimize and rename always run first and in that
order, so crop sees resized dimensions and rename sees the final output.
Remaining processors (favicon, template) follow in authored order.

Each image moves through ``pending -> validating -> executing(step) ->
completed | failed``, or straight from validating to completed when the task
has no enabled steps. A failing image never aborts the batch; it becomes a
failed ImageResult and the next image runs.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import logging
from pathlib import Path
import time
from typing import Callable, Iterable, Sequence, Union

import numpy as np
from tqdm import tqdm

from config import MAX_BATCH_SIZE, PROCESSING_ORDER
from detection.capabilities import Capabilities, CapabilityProbe, OpenCVCapabilityProbe
from detection.region import RegionDetector
from errors import ImageValidationError, StepExecutionError
from tasks.options import Processor
from tasks.step import StepSpec
from tasks.task import Task

from .collaborators import (
    BuiltinTemplateCatalog,
    Encoder,
    MetadataProbe,
    OpenCVRenderer,
    PillowEncoder,
    PillowMetadataProbe,
    Renderer,
    TemplateCatalog,
    load_source_image,
)
from .config import BatchConfig
from .processors import StepContext, WorkingImage, finalize, run_step
from .types import (
    BatchSummary,
    ImageResult,
    ImageRun,
    ImageState,
    OperationRecord,
    SourceImage,
)

logger = logging.getLogger(__name__)

EXECUTION_ORDER: tuple[Processor, ...] = tuple(Processor(name) for name in PROCESSING_ORDER)

ImageInput = Union[SourceImage, str, Path, np.ndarray]
ProgressCallback = Callable[[int, int, ImageResult], None]
WarningCallback = Callable[[str, str], None]
ErrorCallback = Callable[[str, BaseException], None]


def execution_plan(steps: Iterable[StepSpec]) -> list[StepSpec]:
    """Return enabled steps in execution order.

    Steps whose processor is in EXECUTION_ORDER come first, grouped in that
    order; steps of the same processor keep their authored order. All other
    steps follow in authored order.

    Examples:
        >>> task = Task()
        >>> _ = task.add_rename("{name}-{index}")
        >>> _ = task.add_resize(800)
        >>> [s.processor.value for s in execution_plan(task.steps)]
        ['resize', 'rename']
    """
    enabled = sorted((s for s in steps if s.enabled), key=lambda s: s.order)
    canonical = [
        step
        for processor in EXECUTION_ORDER
        for step in enabled
        if step.processor == processor
    ]
    rest = [step for step in enabled if step.processor not in EXECUTION_ORDER]
    return canonical + rest


@dataclass
class _Outcome:
    result: ImageResult
    error: BaseException | None = None


class Orchestrator:
    """Runs tasks against images.

    Args:
        renderer: Pixel resampler; defaults to OpenCV.
        encoder: Output encoder; defaults to Pillow.
        probe: Metadata probe used to load files; defaults to Pillow.
        capabilities: Available detectors, or a probe queried at most once per
            run, on its first heuristic crop. Defaults to probing the
            installed OpenCV build.
        detector: A ready RegionDetector; overrides ``capabilities``.
        templates: Frame catalog for template steps.
    """

    def __init__(
        self,
        renderer: Renderer | None = None,
        encoder: Encoder | None = None,
        probe: MetadataProbe | None = None,
        capabilities: Capabilities | CapabilityProbe | None = None,
        detector: RegionDetector | None = None,
        templates: TemplateCatalog | None = None,
    ) -> None:
        self.renderer = renderer or OpenCVRenderer()
        self.encoder = encoder or PillowEncoder()
        self.probe = probe or PillowMetadataProbe()
        self.templates = templates or BuiltinTemplateCatalog()
        self._capabilities = capabilities if capabilities is not None else OpenCVCapabilityProbe()
        self._detector = detector

    def _make_context(self) -> StepContext:
        # Capabilities are resolved on the first heuristic crop, inside the
        # detector's error boundary.
        return StepContext(
            renderer=self.renderer,
            encoder=self.encoder,
            detector=self._detector or RegionDetector(self._capabilities),
            templates=self.templates,
        )

    def normalize_image(self, image: ImageInput, index: int = 0) -> SourceImage:
        """Turn a path, array or SourceImage into a SourceImage with known size."""
        if isinstance(image, SourceImage):
            if image.width > 0 and image.height > 0:
                return image
            if image.pixels is not None:
                height, width = image.pixels.shape[:2]
            elif image.data is not None:
                info = self.probe.probe(image.data)
                width, height = info.width, info.height
            else:
                raise ValueError(f"Image {image.name} has neither pixels nor data")
            image.width, image.height = width, height
            return image
        if isinstance(image, np.ndarray):
            return SourceImage.from_array(f"image-{index + 1}.png", image)
        if isinstance(image, (str, Path)):
            return load_source_image(image, self.probe)
        raise TypeError(f"Unsupported image input: {type(image).__name__}")

    def _execute(
        self,
        image: ImageInput,
        task: Task,
        index: int,
        total: int,
        ctx: StepContext,
    ) -> _Outcome:
        name = image.name if isinstance(image, SourceImage) else (
            Path(image).name if isinstance(image, (str, Path)) else f"image-{index + 1}"
        )
        run = ImageRun(name)
        operations: list[OperationRecord] = []
        warnings: list[str] = []

        try:
            source = self.normalize_image(image, index)
        except Exception as exc:
            run.advance(ImageState.FAILED)
            return _Outcome(ImageResult.failure(name, exc), exc)
        run.image_name = source.name

        run.advance(ImageState.VALIDATING)
        report = task.validate(source)
        warnings.extend(issue.message for issue in report.warnings)
        if not report.is_valid:
            run.advance(ImageState.FAILED)
            exc = ImageValidationError(source.name, report.errors)
            return _Outcome(ImageResult.failure(source.name, exc, warnings=warnings), exc)

        work = WorkingImage.from_source(source, index=index, total=total)
        for sequence, step in enumerate(execution_plan(task.steps), start=1):
            run.advance(ImageState.EXECUTING, step.order)
            logger.debug(
                "%s: step %d (%s)", source.name, step.order, step.processor.value
            )
            try:
                details = run_step(step.processor, work, step.options, ctx)
            except Exception as exc:
                run.advance(ImageState.FAILED)
                wrapped = StepExecutionError(step.order, step.processor.value, str(exc))
                wrapped.__cause__ = exc
                warnings.extend(work.warnings)
                return _Outcome(
                    ImageResult.failure(source.name, wrapped, operations, warnings), wrapped
                )
            operations.append(OperationRecord(
                sequence=sequence,
                processor=step.processor.value,
                order=step.order,
                step_id=step.id,
                width=work.width,
                height=work.height,
                details=details,
            ))

        try:
            primary = finalize(work, self.encoder)
        except Exception as exc:
            run.advance(ImageState.FAILED)
            wrapped = StepExecutionError(len(task.steps) + 1, "output", str(exc))
            wrapped.__cause__ = exc
            return _Outcome(
                ImageResult.failure(source.name, wrapped, operations, warnings + work.warnings),
                wrapped,
            )

        run.advance(ImageState.COMPLETED)
        warnings.extend(work.warnings)
        return _Outcome(ImageResult(
            image_name=source.name,
            success=True,
            state=run.state,
            artifacts=[primary, *work.extras],
            operations=operations,
            warnings=warnings,
            dimensions=work.dimensions,
            pixels=work.pixels,
        ))

    def process_image(
        self,
        image: ImageInput,
        task: Task,
        *,
        index: int = 0,
        total: int = 1,
    ) -> ImageResult:
        """Run a task against one image.

        Args:
            image: SourceImage, file path or RGB(A) array.
            task: Task to run.
            index: 0-based position in a batch, for rename patterns.
            total: Batch size, for rename patterns.

        Raises:
            ImageValidationError: The task has blocking issues for this image.
            StepExecutionError: A step failed; the original error is chained.
        """
        outcome = self._execute(image, task, index, total, self._make_context())
        if outcome.error is not None:
            raise outcome.error
        return outcome.result

    def run(
        self,
        images: Sequence[ImageInput],
        task: Task,
        config: BatchConfig | None = None,
        on_progress: ProgressCallback | None = None,
        on_warning: WarningCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> BatchSummary:
        """Run a task against a batch of images.

        One result is produced per input, in input order, whether or not the
        image succeeded. Callbacks fire on the calling thread after each
        image, in input order.

        Args:
            images: Inputs accepted by ``process_image``.
            task: Task to run.
            config: Scheduling options.
            on_progress: Called with (completed, total, result).
            on_warning: Called with (image_name, message) per warning.
            on_error: Called with (image_name, error) per failed image.
        """
        config = config or BatchConfig()
        config.validate()
        images = list(images)
        total = len(images)
        summary = BatchSummary()
        if total == 0:
            logger.info("No images to process.")
            return summary

        if total > MAX_BATCH_SIZE:
            logger.warning(
                "Batch of %d images exceeds the recommended maximum of %d",
                total,
                MAX_BATCH_SIZE,
            )
        ctx = self._make_context()
        started = time.perf_counter()
        logger.info(
            "Running %s on %d image(s)%s",
            task.name,
            total,
            f" in parallel groups of {config.group_size}" if config.parallel else "",
        )

        def record(outcome: _Outcome, progress: tqdm) -> None:
            result = outcome.result
            if not config.keep_pixels:
                result.pixels = None
            if outcome.error is not None:
                logger.error(
                    "Error processing image %s: %s",
                    result.image_name,
                    outcome.error,
                    exc_info=outcome.error,
                )
                if on_error:
                    on_error(result.image_name, outcome.error)
            if on_warning:
                for message in result.warnings:
                    on_warning(result.image_name, message)
            summary.results.append(result)
            progress.update(1)
            if on_progress:
                on_progress(len(summary.results), total, result)

        with tqdm(total=total, desc="Processing", disable=not config.show_progress) as progress:
            if not config.parallel:
                for index, image in enumerate(images):
                    record(self._execute(image, task, index, total, ctx), progress)
            else:
                workers = min(config.group_size, total)
                with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="imgtask") as pool:
                    for start in range(0, total, config.group_size):
                        futures = [
                            pool.submit(self._execute, image, task, index, total, ctx)
                            for index, image in enumerate(
                                images[start:start + config.group_size], start=start
                            )
                        ]
                        for future in futures:
                            record(future.result(), progress)

        summary.duration_s = time.perf_counter() - started
        logger.info(
            "Finished %d image(s): %d succeeded, %d failed (%.1fs)",
            summary.total,
            summary.succeeded,
            summary.failed,
            summary.duration_s,
        )
        return summary

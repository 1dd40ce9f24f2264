"""Data types for batch execution: inputs, per-image state and results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePath
from typing import Any

import numpy as np

from sizing.dimensions import Dimensions


@dataclass
class SourceImage:
    """Canonical handle for one input image.

    Attributes:
        name: Original filename, used by rename patterns.
        pixels: RGB or RGBA uint8 array; None for vector sources that were
            only probed for their intrinsic size.
        width: Width in pixels.
        height: Height in pixels.
        mime_type: Source MIME type.
        size_bytes: Size of the encoded source, if known.
        has_alpha: Whether the source carries transparency.
        data: Encoded source bytes, kept for pass-through outputs.
    """

    name: str
    pixels: np.ndarray | None
    width: int
    height: int
    mime_type: str = "image/png"
    size_bytes: int | None = None
    has_alpha: bool = False
    data: bytes | None = None

    @property
    def extension(self) -> str:
        return PurePath(self.name).suffix.lstrip(".").lower()

    @property
    def dimensions(self) -> Dimensions:
        return Dimensions(self.width, self.height)

    @classmethod
    def from_array(
        cls,
        name: str,
        pixels: np.ndarray,
        mime_type: str = "image/png",
        size_bytes: int | None = None,
    ) -> SourceImage:
        """Wrap an in-memory RGB(A) array."""
        if not isinstance(pixels, np.ndarray) or pixels.ndim not in (2, 3):
            raise ValueError(f"Expected a 2D or 3D image array for {name}")
        height, width = pixels.shape[:2]
        has_alpha = pixels.ndim == 3 and pixels.shape[2] == 4
        return cls(
            name=name,
            pixels=pixels,
            width=width,
            height=height,
            mime_type=mime_type,
            size_bytes=size_bytes if size_bytes is not None else int(pixels.nbytes),
            has_alpha=has_alpha,
        )


class ImageState(str, Enum):
    PENDING = "pending"
    VALIDATING = "validating"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


_TRANSITIONS = {
    ImageState.PENDING: {ImageState.VALIDATING, ImageState.FAILED},
    ImageState.VALIDATING: {ImageState.EXECUTING, ImageState.COMPLETED, ImageState.FAILED},
    ImageState.EXECUTING: {ImageState.EXECUTING, ImageState.COMPLETED, ImageState.FAILED},
    ImageState.COMPLETED: set(),
    ImageState.FAILED: set(),
}


@dataclass
class ImageRun:
    """State machine for one image moving through a task.

    ``executing`` is re-entered once per step; a task with no enabled steps
    completes straight from ``validating``. ``completed`` and ``failed`` are
    terminal.
    """

    image_name: str
    state: ImageState = ImageState.PENDING
    current_step: int | None = None
    history: list[tuple[ImageState, int | None]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.history:
            self.history.append((self.state, None))

    @property
    def is_terminal(self) -> bool:
        return self.state in (ImageState.COMPLETED, ImageState.FAILED)

    def advance(self, state: ImageState, step_order: int | None = None) -> None:
        """Move to a new state.

        Raises:
            RuntimeError: If the transition is not allowed.
        """
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal state transition for {self.image_name}: "
                f"{self.state.value} -> {state.value}"
            )
        self.state = state
        self.current_step = step_order if state == ImageState.EXECUTING else self.current_step
        self.history.append((state, step_order))


@dataclass(frozen=True)
class OperationRecord:
    """One executed step in an image's operation history."""

    sequence: int
    processor: str
    order: int
    step_id: str
    width: int
    height: int
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "processor": self.processor,
            "order": self.order,
            "stepId": self.step_id,
            "width": self.width,
            "height": self.height,
            "details": self.details,
        }


@dataclass(frozen=True)
class Artifact:
    """An output file produced for one image."""

    name: str
    data: bytes
    format: str
    width: int | None = None
    height: int | None = None
    kind: str = "image"

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "format": self.format,
            "width": self.width,
            "height": self.height,
            "kind": self.kind,
            "size": self.size_bytes,
        }


@dataclass
class ImageResult:
    """Outcome of running a task against one image."""

    image_name: str
    success: bool
    state: ImageState
    artifacts: list[Artifact] = field(default_factory=list)
    operations: list[OperationRecord] = field(default_factory=list)
    error: str | None = None
    warnings: list[str] = field(default_factory=list)
    dimensions: Dimensions | None = None
    pixels: np.ndarray | None = None

    @property
    def primary(self) -> Artifact | None:
        """The main output image, if any."""
        return next((a for a in self.artifacts if a.kind == "image"), None)

    @property
    def processors(self) -> list[str]:
        return [op.processor for op in self.operations]

    @classmethod
    def failure(
        cls,
        image_name: str,
        error: BaseException | str,
        operations: list[OperationRecord] | None = None,
        warnings: list[str] | None = None,
    ) -> ImageResult:
        return cls(
            image_name=image_name,
            success=False,
            state=ImageState.FAILED,
            operations=list(operations or []),
            error=str(error),
            warnings=list(warnings or []),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "image": self.image_name,
            "success": self.success,
            "state": self.state.value,
            "error": self.error,
            "warnings": list(self.warnings),
            "dimensions": self.dimensions.to_dict() if self.dimensions else None,
            "artifacts": [a.to_dict() for a in self.artifacts],
            "operations": [op.to_dict() for op in self.operations],
        }


@dataclass
class BatchSummary:
    """Results of a batch, one entry per input image in input order."""

    results: list[ImageResult] = field(default_factory=list)
    duration_s: float = 0.0

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded

    def write_outputs(self, directory: str | Path) -> list[Path]:
        """Write every artifact of every successful image into directory.

        Returns:
            Paths written, in result order.
        """
        out_dir = Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)
        written = []
        for result in self.results:
            if not result.success:
                continue
            for artifact in result.artifacts:
                path = out_dir / artifact.name
                path.write_bytes(artifact.data)
                written.append(path)
        return written

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "durationSeconds": round(self.duration_s, 3),
            "results": [r.to_dict() for r in self.results],
        }

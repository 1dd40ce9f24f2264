"""
Data structures for region-of-interest detection.

Detection results are ephemeral: they are produced per image, consumed by the
crop step, and recorded in the operation history only through ``to_dict``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from geometry import CENTER, FocusPoint, Rect, rect_center


class DetectorKind(str, Enum):
    """Heuristic detectors, listed in merge priority order."""

    FACE = "face"
    OBJECT = "object"
    SALIENCY = "saliency"
    ENTROPY = "entropy"


# First kind with candidates wins the merge
DETECTOR_PRIORITY = (
    DetectorKind.FACE,
    DetectorKind.OBJECT,
    DetectorKind.SALIENCY,
    DetectorKind.ENTROPY,
)

# Source markers added when the detector falls back to center
FALLBACK_CENTER = "fallback-center"
ERROR_FALLBACK = "error-fallback"


class FallbackReason(str, Enum):
    """Why a detection result ended up at the image center."""

    NO_CAPABILITY = "no_capability"
    NO_CANDIDATES = "no_candidates"
    LOW_CONFIDENCE = "low_confidence"
    ERROR = "error"


@dataclass(frozen=True)
class RegionCandidate:
    """A candidate region reported by one detector.

    Attributes:
        bbox: Pixel rectangle (x1, y1, x2, y2) in analysed-image coordinates.
        confidence: Detector certainty in [0, 1].
        source: Detector kind that produced the candidate.
        label: Optional class label (e.g. "person").
    """

    bbox: Rect
    confidence: float
    source: DetectorKind
    label: str | None = None

    @property
    def center(self) -> tuple[float, float]:
        return rect_center(self.bbox)

    def normalized_center(self, width: int, height: int) -> tuple[float, float]:
        cx, cy = self.center
        return cx / width, cy / height

    def to_dict(self) -> dict[str, Any]:
        return {
            "bbox": list(self.bbox),
            "confidence": self.confidence,
            "source": self.source.value,
            "label": self.label,
        }


@dataclass(frozen=True)
class DetectionResult:
    """Merged outcome of region detection for one image.

    Attributes:
        focus_point: Normalized subject position.
        confidence: Certainty in [0, 1]. Zero only when detection never ran.
        sources: Detector kinds and fallback markers that shaped the result.
        candidates: Candidates from the winning detector.
        fallback_reason: Set when the focus was reset to the image center.
        diagnostics: Free-form details (errors, per-detector counts).
    """

    focus_point: FocusPoint
    confidence: float
    sources: frozenset[str] = frozenset()
    candidates: tuple[RegionCandidate, ...] = ()
    fallback_reason: FallbackReason | None = None
    diagnostics: dict[str, Any] = field(default_factory=dict)

    @property
    def is_fallback(self) -> bool:
        return self.fallback_reason is not None

    @classmethod
    def center_fallback(
        cls,
        reason: FallbackReason,
        confidence: float,
        sources: frozenset[str] = frozenset(),
        candidates: tuple[RegionCandidate, ...] = (),
        diagnostics: dict[str, Any] | None = None,
    ) -> DetectionResult:
        marker = ERROR_FALLBACK if reason == FallbackReason.ERROR else FALLBACK_CENTER
        return cls(
            focus_point=CENTER,
            confidence=confidence,
            sources=frozenset(sources | {marker}),
            candidates=candidates,
            fallback_reason=reason,
            diagnostics=dict(diagnostics or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "focus_point": self.focus_point.to_dict(),
            "confidence": self.confidence,
            "sources": sorted(self.sources),
            "candidates": [c.to_dict() for c in self.candidates],
            "fallback_reason": self.fallback_reason.value if self.fallback_reason else None,
            "diagnostics": dict(self.diagnostics),
        }

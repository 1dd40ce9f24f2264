"""
Region-of-interest detection with confidence merging and center fallbacks.

RegionDetector never raises to its caller. Whatever happens (no detector
available, nothing found, low confidence, a backend or the capability probe
failing) it returns a usable DetectionResult.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Mapping, Sequence

import numpy as np

import config
from cropping.modes import CropMode, anchor_focus_point, parse_crop_mode
from geometry import FocusPoint
from .backends import RegionBackend, get_region_backend
from .capabilities import Capabilities, CapabilityProbe
from .types import (
    DETECTOR_PRIORITY,
    DetectionResult,
    DetectorKind,
    FallbackReason,
    RegionCandidate,
)

logger = logging.getLogger(__name__)

_MODE_KINDS = {
    CropMode.SMART: frozenset(DetectorKind),
    CropMode.FACE: frozenset({DetectorKind.FACE}),
    CropMode.OBJECT: frozenset({DetectorKind.OBJECT}),
    CropMode.SALIENCY: frozenset({DetectorKind.SALIENCY}),
    CropMode.ENTROPY: frozenset({DetectorKind.ENTROPY}),
}


def merge_candidates(
    candidates: Sequence[RegionCandidate],
    width: int,
    height: int,
) -> tuple[FocusPoint, float]:
    """Merge candidates into one focus point and confidence.

    The focus is the confidence-weighted centroid of the candidate centers;
    the confidence is the highest individual confidence.

    Raises:
        ValueError: If there are no candidates with positive confidence.
    """
    weighted = [c for c in candidates if c.confidence > 0]
    total = sum(c.confidence for c in weighted)
    if not weighted or total <= 0:
        raise ValueError("No candidates with positive confidence to merge")

    fx = sum(c.normalized_center(width, height)[0] * c.confidence for c in weighted) / total
    fy = sum(c.normalized_center(width, height)[1] * c.confidence for c in weighted) / total
    confidence = max(c.confidence for c in weighted)
    return FocusPoint(fx, fy), min(1.0, max(0.0, confidence))


class RegionDetector:
    """Find the subject of an image for heuristic crop modes.

    Args:
        capabilities: Available detectors, or a probe queried on first use.
            The answer is cached and never mutated afterwards.
        backends: Optional pre-built backends per kind. Kinds without an
            entry are built lazily, one instance per thread.
        backend_factory: Builds a backend for a kind.
    """

    def __init__(
        self,
        capabilities: Capabilities | CapabilityProbe,
        backends: Mapping[DetectorKind, RegionBackend] | None = None,
        backend_factory: Callable[[DetectorKind], RegionBackend] = get_region_backend,
    ) -> None:
        if isinstance(capabilities, Capabilities):
            self._capabilities: Capabilities | None = capabilities
            self._probe: CapabilityProbe | None = None
        else:
            self._capabilities = None
            self._probe = capabilities
        self._backends = dict(backends or {})
        self._backend_factory = backend_factory
        self._probe_lock = threading.Lock()
        self._local = threading.local()

    @property
    def capabilities(self) -> Capabilities:
        if self._capabilities is None:
            with self._probe_lock:
                if self._capabilities is None:
                    self._capabilities = self._probe.probe()
                    logger.debug("Detector capabilities: %s", self._capabilities.to_dict())
        return self._capabilities

    def _backend(self, kind: DetectorKind) -> RegionBackend:
        if kind in self._backends:
            return self._backends[kind]
        cache = getattr(self._local, "backends", None)
        if cache is None:
            cache = self._local.backends = {}
        if kind not in cache:
            cache[kind] = self._backend_factory(kind)
        return cache[kind]

    def detect(
        self,
        image: np.ndarray,
        mode: str | CropMode = CropMode.SMART,
        *,
        confidence_threshold: float | None = None,
        objects_to_detect: Sequence[str] = config.DEFAULT_OBJECTS_TO_DETECT,
    ) -> DetectionResult:
        """Detect the focus point of an image.

        Args:
            image: RGB(A) or grayscale image.
            mode: Crop mode. Anchor modes return their fixed point directly.
            confidence_threshold: Percentage (0-100); merged confidence below
                it resets the focus to center. None uses the default of 70.
            objects_to_detect: Labels the object detector should look for.

        Returns:
            DetectionResult with confidence in [0, 1].
        """
        threshold = (
            config.DEFAULT_CONFIDENCE_THRESHOLD
            if confidence_threshold is None
            else confidence_threshold
        )
        try:
            resolved = parse_crop_mode(mode)
            if not resolved.is_heuristic:
                return DetectionResult(
                    focus_point=anchor_focus_point(resolved),
                    confidence=1.0,
                    sources=frozenset({resolved.value}),
                )
            return self._detect_heuristic(image, resolved, threshold / 100.0, objects_to_detect)
        except Exception as exc:
            logger.warning("Region detection failed, using center: %s", exc)
            return DetectionResult.center_fallback(
                FallbackReason.ERROR,
                config.FALLBACK_CONFIDENCE,
                diagnostics={"error": str(exc), "error_type": type(exc).__name__},
            )

    def _detect_heuristic(
        self,
        image: np.ndarray,
        mode: CropMode,
        threshold: float,
        objects_to_detect: Sequence[str],
    ) -> DetectionResult:
        requested = _MODE_KINDS[mode]
        capabilities = self.capabilities
        runnable = [k for k in DETECTOR_PRIORITY if k in requested and capabilities.has(k)]
        diagnostics: dict = {"mode": mode.value, "requested": sorted(k.value for k in requested)}

        if not runnable:
            logger.debug("No detector available for %s mode", mode.value)
            return DetectionResult.center_fallback(
                FallbackReason.NO_CAPABILITY,
                config.FALLBACK_CONFIDENCE,
                diagnostics=diagnostics,
            )

        if not isinstance(image, np.ndarray) or image.ndim < 2 or image.size == 0:
            raise ValueError("Region detection needs a non-empty image array")
        height, width = image.shape[:2]

        counts: dict[str, int] = {}
        diagnostics["counts"] = counts
        for kind in runnable:
            candidates = [
                c for c in self._backend(kind).detect(image, objects_to_detect)
                if c.confidence > 0
            ]
            counts[kind.value] = len(candidates)
            if not candidates:
                continue

            focus, confidence = merge_candidates(candidates, width, height)
            sources = frozenset({kind.value})
            if confidence < threshold:
                logger.debug(
                    "%s confidence %.2f below threshold %.2f, using center",
                    kind.value, confidence, threshold,
                )
                diagnostics["merged_confidence"] = confidence
                return DetectionResult.center_fallback(
                    FallbackReason.LOW_CONFIDENCE,
                    config.FALLBACK_CONFIDENCE,
                    sources=sources,
                    candidates=tuple(candidates),
                    diagnostics=diagnostics,
                )
            return DetectionResult(
                focus_point=focus,
                confidence=confidence,
                sources=sources,
                candidates=tuple(candidates),
                diagnostics=diagnostics,
            )

        return DetectionResult.center_fallback(
            FallbackReason.NO_CANDIDATES,
            config.FALLBACK_CONFIDENCE,
            diagnostics=diagnostics,
        )

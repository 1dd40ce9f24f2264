"""
Region detector interface and OpenCV/numpy implementations.

Every backend takes an RGB(A) or grayscale numpy image and returns
RegionCandidates in that image's pixel coordinates, with confidences in
[0, 1]. Backends may raise; RegionDetector absorbs their failures.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
import logging
import math
from typing import Protocol, Sequence

import cv2
import numpy as np

import config
from geometry import rect_iou, scale_rect, xywh_to_rect
from sizing.render import resize_image, to_grayscale, validate_image_array
from .types import DetectorKind, RegionCandidate

logger = logging.getLogger(__name__)


class RegionBackend(Protocol):
    """Interface for region detectors."""

    kind: DetectorKind

    def detect(
        self,
        image: np.ndarray,
        objects_to_detect: Sequence[str] = (),
    ) -> list[RegionCandidate]:
        """Detect candidate regions in an image."""


def logistic(value: float, midpoint: float, slope: float) -> float:
    """Map an unbounded detector score into (0, 1)."""
    return 1.0 / (1.0 + math.exp(-slope * (value - midpoint)))


def downscale_for_analysis(image: np.ndarray, max_side: int) -> tuple[np.ndarray, float]:
    """Shrink image so its longer side is at most max_side.

    Returns:
        Tuple of (analysis image, factor to map analysis coords back).
    """
    validate_image_array(image)
    h, w = image.shape[:2]
    longest = max(h, w)
    if longest <= max_side:
        return image, 1.0
    scale = max_side / longest
    small = resize_image(image, max(1, int(round(w * scale))), max(1, int(round(h * scale))))
    return small, longest / max_side


def _to_rgb_uint8(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    if image.shape[2] == 1:
        return cv2.cvtColor(image[:, :, 0], cv2.COLOR_GRAY2RGB)
    if image.shape[2] == 4:
        return image[:, :, :3].copy()
    return image


def suppress_overlaps(
    candidates: list[RegionCandidate],
    iou_threshold: float,
) -> list[RegionCandidate]:
    """Greedy non-maximum suppression, highest confidence first."""
    kept: list[RegionCandidate] = []
    for candidate in sorted(candidates, key=lambda c: c.confidence, reverse=True):
        if all(rect_iou(candidate.bbox, other.bbox) <= iou_threshold for other in kept):
            kept.append(candidate)
    return kept


@dataclass
class OpenCVHaarFaceBackend:
    """Face detector using OpenCV's Haar cascade.

    ``detectMultiScale3`` reports a level weight per face; weights are mapped
    through a logistic so a typical frontal face lands around 0.8-0.95.
    """

    cascade_path: str = f"{cv2.data.haarcascades}{config.FACE_CASCADE}"
    min_neighbors: int | None = None
    scale_factor: float | None = None
    min_size: tuple[int, int] | None = None

    kind = DetectorKind.FACE

    def __post_init__(self) -> None:
        if self.min_neighbors is None:
            self.min_neighbors = config.FACE_DETECTION_MIN_NEIGHBORS
        if self.scale_factor is None:
            self.scale_factor = config.FACE_DETECTION_SCALE_FACTOR
        if self.min_size is None:
            self.min_size = config.FACE_DETECTION_MIN_SIZE
        self._cascade = cv2.CascadeClassifier(self.cascade_path)
        if self._cascade.empty():
            raise RuntimeError(f"Failed to load Haar cascade: {self.cascade_path}")

    def detect(
        self,
        image: np.ndarray,
        objects_to_detect: Sequence[str] = (),
    ) -> list[RegionCandidate]:
        gray = to_grayscale(image)
        rects, _levels, weights = self._cascade.detectMultiScale3(
            gray,
            scaleFactor=self.scale_factor,
            minNeighbors=self.min_neighbors,
            minSize=self.min_size,
            outputRejectLevels=True,
        )
        if len(rects) == 0:
            return []
        weights = np.asarray(weights, dtype=np.float64).reshape(-1)
        candidates = []
        for (x, y, w, h), weight in zip(rects, weights):
            candidates.append(
                RegionCandidate(
                    bbox=xywh_to_rect(int(x), int(y), int(w), int(h)),
                    confidence=logistic(
                        float(weight), config.FACE_WEIGHT_MIDPOINT, config.FACE_WEIGHT_SLOPE
                    ),
                    source=self.kind,
                    label="face",
                )
            )
        logger.debug("Face backend found %d candidate(s)", len(candidates))
        return candidates


@dataclass
class OpenCVHogObjectBackend:
    """Object detector using OpenCV's HOG people detector.

    Only people are detectable; the backend returns nothing unless one of
    ``config.PERSON_LABELS`` is requested.
    """

    win_stride: tuple[int, int] | None = None
    scale: float | None = None
    max_side: int | None = None
    nms_iou: float | None = None

    kind = DetectorKind.OBJECT

    def __post_init__(self) -> None:
        if self.win_stride is None:
            self.win_stride = config.OBJECT_HOG_WIN_STRIDE
        if self.scale is None:
            self.scale = config.OBJECT_HOG_SCALE
        if self.max_side is None:
            self.max_side = config.OBJECT_MAX_SIDE
        if self.nms_iou is None:
            self.nms_iou = config.OBJECT_NMS_IOU
        self._hog = cv2.HOGDescriptor()
        self._hog.setSVMDetector(cv2.HOGDescriptor_getDefaultPeopleDetector())

    def detect(
        self,
        image: np.ndarray,
        objects_to_detect: Sequence[str] = (),
    ) -> list[RegionCandidate]:
        wanted = {label.lower() for label in objects_to_detect}
        if not wanted & config.PERSON_LABELS:
            logger.debug("Object backend skipped: no supported labels in %s", sorted(wanted))
            return []

        small, back_scale = downscale_for_analysis(image, self.max_side)
        gray = to_grayscale(small)
        # Default people window is 64x128
        if gray.shape[0] < 128 or gray.shape[1] < 64:
            return []

        rects, weights = self._hog.detectMultiScale(
            gray, winStride=self.win_stride, scale=self.scale
        )
        if len(rects) == 0:
            return []
        weights = np.asarray(weights, dtype=np.float64).reshape(-1)
        candidates = [
            RegionCandidate(
                bbox=scale_rect(xywh_to_rect(int(x), int(y), int(w), int(h)), back_scale),
                confidence=logistic(
                    float(weight), config.OBJECT_WEIGHT_MIDPOINT, config.OBJECT_WEIGHT_SLOPE
                ),
                source=self.kind,
                label="person",
            )
            for (x, y, w, h), weight in zip(rects, weights)
        ]
        kept = suppress_overlaps(candidates, self.nms_iou)
        logger.debug("Object backend kept %d of %d candidate(s)", len(kept), len(candidates))
        return kept


@dataclass
class SpectralResidualSaliencyBackend:
    """Saliency detector using OpenCV's spectral residual method.

    The saliency map is thresholded with Otsu; the largest foreground blobs
    become candidates scored by their mean normalized saliency.
    """

    max_side: int | None = None
    max_regions: int | None = None
    min_area_ratio: float | None = None

    kind = DetectorKind.SALIENCY

    def __post_init__(self) -> None:
        if self.max_side is None:
            self.max_side = config.SALIENCY_MAX_SIDE
        if self.max_regions is None:
            self.max_regions = config.SALIENCY_MAX_REGIONS
        if self.min_area_ratio is None:
            self.min_area_ratio = config.SALIENCY_MIN_AREA_RATIO

    def detect(
        self,
        image: np.ndarray,
        objects_to_detect: Sequence[str] = (),
    ) -> list[RegionCandidate]:
        small, back_scale = downscale_for_analysis(image, self.max_side)
        rgb = _to_rgb_uint8(small)

        saliency = cv2.saliency.StaticSaliencySpectralResidual_create()
        success, saliency_map = saliency.computeSaliency(rgb)
        if not success:
            raise RuntimeError("Saliency computation failed")

        saliency_map = np.asarray(saliency_map, dtype=np.float32)
        peak = float(saliency_map.max())
        if peak <= 0:
            return []
        normalized = saliency_map / peak
        saliency_u8 = (normalized * 255).astype(np.uint8)
        _, mask = cv2.threshold(saliency_u8, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)

        contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        h, w = mask.shape[:2]
        min_area = self.min_area_ratio * w * h
        boxes = sorted(
            (cv2.boundingRect(c) for c in contours),
            key=lambda r: r[2] * r[3],
            reverse=True,
        )
        candidates = []
        for x, y, bw, bh in boxes:
            if bw * bh < min_area or len(candidates) >= self.max_regions:
                continue
            score = float(normalized[y:y + bh, x:x + bw].mean())
            candidates.append(
                RegionCandidate(
                    bbox=scale_rect(xywh_to_rect(x, y, bw, bh), back_scale),
                    confidence=max(0.0, min(1.0, score)),
                    source=self.kind,
                )
            )
        logger.debug("Saliency backend found %d region(s)", len(candidates))
        return candidates


def shannon_entropy(gray: np.ndarray) -> float:
    """Shannon entropy of a uint8 grayscale array, in bits (0..8)."""
    hist = np.bincount(gray.reshape(-1), minlength=256).astype(np.float64)
    total = hist.sum()
    if total == 0:
        return 0.0
    p = hist[hist > 0] / total
    return float(-(p * np.log2(p)).sum())


@dataclass
class TileEntropyBackend:
    """Entropy detector: the most detailed tiles of a grid win.

    Confidence is tile entropy divided by the 8-bit maximum.
    """

    grid: int | None = None
    max_side: int | None = None
    top_fraction: float | None = None

    kind = DetectorKind.ENTROPY

    def __post_init__(self) -> None:
        if self.grid is None:
            self.grid = config.ENTROPY_GRID
        if self.max_side is None:
            self.max_side = config.ENTROPY_MAX_SIDE
        if self.top_fraction is None:
            self.top_fraction = config.ENTROPY_TOP_FRACTION
        if self.grid <= 0:
            raise ValueError(f"grid must be positive, got {self.grid}")

    def detect(
        self,
        image: np.ndarray,
        objects_to_detect: Sequence[str] = (),
    ) -> list[RegionCandidate]:
        small, back_scale = downscale_for_analysis(image, self.max_side)
        gray = to_grayscale(small)
        h, w = gray.shape[:2]
        xs = np.linspace(0, w, self.grid + 1).astype(int)
        ys = np.linspace(0, h, self.grid + 1).astype(int)

        tiles: list[tuple[tuple[int, int, int, int], float]] = []
        for row in range(self.grid):
            for col in range(self.grid):
                x1, x2 = xs[col], xs[col + 1]
                y1, y2 = ys[row], ys[row + 1]
                if x2 <= x1 or y2 <= y1:
                    continue
                tiles.append(((int(x1), int(y1), int(x2), int(y2)), shannon_entropy(gray[y1:y2, x1:x2])))

        if not tiles:
            return []
        best = max(score for _, score in tiles)
        if best <= 0:
            return []
        return [
            RegionCandidate(
                bbox=scale_rect(rect, back_scale),
                confidence=min(1.0, score / 8.0),
                source=self.kind,
            )
            for rect, score in tiles
            if score >= best * self.top_fraction
        ]


_BACKENDS: dict[DetectorKind, type] = {
    DetectorKind.FACE: OpenCVHaarFaceBackend,
    DetectorKind.OBJECT: OpenCVHogObjectBackend,
    DetectorKind.SALIENCY: SpectralResidualSaliencyBackend,
    DetectorKind.ENTROPY: TileEntropyBackend,
}


def get_region_backend(kind: str | DetectorKind, **kwargs) -> RegionBackend:
    """Instantiate a region backend with parameter overrides.

    Args:
        kind: Detector kind (e.g. ``"face"``).
        **kwargs: Constructor keyword arguments to override. Must be valid
            field names for the selected backend class.

    Raises:
        ValueError: If ``kind`` is unknown or any kwarg is not a valid field
            for the selected backend.
    """
    try:
        resolved = DetectorKind(kind)
    except ValueError:
        raise ValueError(f"Unknown region backend: {kind!r}")
    backend_cls = _BACKENDS[resolved]
    valid_fields = {f.name for f in dataclasses.fields(backend_cls)}
    unknown = set(kwargs) - valid_fields
    if unknown:
        raise ValueError(
            f"Unknown kwargs for backend {resolved.value!r}: {sorted(unknown)}"
        )
    return backend_cls(**kwargs)

"""
Detector capability probing.

A batch probes once and shares the resulting Capabilities across all images.
Capabilities is frozen, so concurrent readers need no locking.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable, Protocol

import cv2

import config
from .types import DetectorKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Capabilities:
    """Which heuristic detectors are available."""

    available: frozenset[DetectorKind] = frozenset()

    @classmethod
    def of(cls, kinds: Iterable[str | DetectorKind]) -> Capabilities:
        return cls(frozenset(DetectorKind(k) for k in kinds))

    @classmethod
    def all(cls) -> Capabilities:
        return cls(frozenset(DetectorKind))

    def has(self, kind: str | DetectorKind) -> bool:
        return DetectorKind(kind) in self.available

    def to_dict(self) -> dict[str, bool]:
        return {kind.value: kind in self.available for kind in DetectorKind}


class CapabilityProbe(Protocol):
    """Reports which detectors can run on this platform."""

    def probe(self) -> Capabilities:
        """Return the available detector kinds."""


class StaticCapabilityProbe:
    """Probe returning a fixed answer; useful for tests and restricted runs."""

    def __init__(self, kinds: Iterable[str | DetectorKind]) -> None:
        self._capabilities = Capabilities.of(kinds)

    def probe(self) -> Capabilities:
        return self._capabilities


class OpenCVCapabilityProbe:
    """Probe the local OpenCV build.

    Face detection needs the bundled Haar cascade, object detection the HOG
    people detector, saliency the contrib ``cv2.saliency`` module. Entropy is
    pure numpy and always available.
    """

    def probe(self) -> Capabilities:
        available = {DetectorKind.ENTROPY}

        cascade_path = f"{cv2.data.haarcascades}{config.FACE_CASCADE}"
        if not cv2.CascadeClassifier(cascade_path).empty():
            available.add(DetectorKind.FACE)
        else:
            logger.warning("Face detection unavailable: cannot load %s", cascade_path)

        if hasattr(cv2, "HOGDescriptor_getDefaultPeopleDetector"):
            available.add(DetectorKind.OBJECT)

        if hasattr(cv2, "saliency"):
            available.add(DetectorKind.SALIENCY)
        else:
            logger.warning("Saliency detection unavailable: OpenCV built without contrib modules")

        capabilities = Capabilities(frozenset(available))
        logger.debug("Detector capabilities: %s", capabilities.to_dict())
        return capabilities

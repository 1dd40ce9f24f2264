"""
Region-of-interest detection for smart cropping.

Key components:
- types: DetectionResult, RegionCandidate, DetectorKind
- backends: face (Haar), object (HOG people), saliency (spectral residual),
  entropy (tile grid) detectors behind a common RegionBackend interface
- capabilities: one-shot probing of which detectors are available
- region: RegionDetector, which merges detector output and falls back to
  the image center instead of failing
"""

from .backends import (
    OpenCVHaarFaceBackend,
    OpenCVHogObjectBackend,
    RegionBackend,
    SpectralResidualSaliencyBackend,
    TileEntropyBackend,
    get_region_backend,
)
from .capabilities import (
    Capabilities,
    CapabilityProbe,
    OpenCVCapabilityProbe,
    StaticCapabilityProbe,
)
from .region import RegionDetector, merge_candidates
from .types import (
    DETECTOR_PRIORITY,
    ERROR_FALLBACK,
    FALLBACK_CENTER,
    DetectionResult,
    DetectorKind,
    FallbackReason,
    RegionCandidate,
)

__all__ = [
    # Types
    "DETECTOR_PRIORITY",
    "ERROR_FALLBACK",
    "FALLBACK_CENTER",
    "DetectionResult",
    "DetectorKind",
    "FallbackReason",
    "RegionCandidate",
    # Backends
    "OpenCVHaarFaceBackend",
    "OpenCVHogObjectBackend",
    "RegionBackend",
    "SpectralResidualSaliencyBackend",
    "TileEntropyBackend",
    "get_region_backend",
    # Capabilities
    "Capabilities",
    "CapabilityProbe",
    "OpenCVCapabilityProbe",
    "StaticCapabilityProbe",
    # Detector
    "RegionDetector",
    "merge_candidates",
]

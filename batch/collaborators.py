"""
External collaborators used by the step processors.

Each collaborator is a Protocol with one default implementation:
- Renderer: pixel resample and sub-rect extraction (OpenCV)
- Encoder: pixels to file bytes (Pillow)
- MetadataProbe: file bytes to dimensions and type (Pillow, SVG markup)
- TemplateCatalog: named output frames for the template processor
"""

from __future__ import annotations

from dataclasses import dataclass
import io
import logging
from pathlib import Path
import re
from typing import Iterable, Protocol
import xml.etree.ElementTree as ET

import numpy as np
from PIL import Image, ImageOps

from geometry import Rect
from sizing.render import render as render_pixels

from .types import SourceImage

logger = logging.getLogger(__name__)

# Output format name -> Pillow plugin name
PILLOW_FORMATS = {
    "jpg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
    "avif": "AVIF",
    "ico": "ICO",
    "bmp": "BMP",
    "gif": "GIF",
    "tiff": "TIFF",
}

# Formats that cannot store an alpha channel
OPAQUE_FORMATS = frozenset({"jpg", "bmp"})

MIME_TYPES = {
    "jpg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "avif": "image/avif",
    "ico": "image/x-icon",
    "bmp": "image/bmp",
    "gif": "image/gif",
    "tiff": "image/tiff",
    "svg": "image/svg+xml",
}

# Browsers size an SVG without width/height/viewBox at 300x150
SVG_DEFAULT_SIZE = (300, 150)

_SVG_LENGTH_RE = re.compile(r"^\s*([0-9]*\.?[0-9]+)\s*(px)?\s*$")


def format_for_mime(mime_type: str) -> str | None:
    """Return the output format name for a MIME type, if known."""
    if mime_type == "image/vnd.microsoft.icon":
        return "ico"
    for fmt, mime in MIME_TYPES.items():
        if mime == mime_type:
            return fmt
    return None


class Renderer(Protocol):
    def render(
        self,
        pixels: np.ndarray,
        source_rect: Rect | None,
        dest_size: tuple[int, int],
        algorithm: str = "lanczos3",
    ) -> np.ndarray:
        ...


class OpenCVRenderer:
    """Renderer backed by ``sizing.render``."""

    def render(
        self,
        pixels: np.ndarray,
        source_rect: Rect | None,
        dest_size: tuple[int, int],
        algorithm: str = "lanczos3",
    ) -> np.ndarray:
        return render_pixels(pixels, source_rect, dest_size, algorithm)


class Encoder(Protocol):
    def supports(self, fmt: str) -> bool:
        ...

    def encode(
        self,
        pixels: np.ndarray,
        fmt: str,
        quality: int = 85,
        *,
        lossless: bool = False,
        ico_sizes: Iterable[int] = (),
    ) -> bytes:
        ...


def _flatten_alpha(img: Image.Image, background: tuple[int, int, int] = (255, 255, 255)) -> Image.Image:
    canvas = Image.new("RGB", img.size, background)
    canvas.paste(img, mask=img.getchannel("A"))
    return canvas


class PillowEncoder:
    """Encoder backed by Pillow's format plugins."""

    def supports(self, fmt: str) -> bool:
        plugin = PILLOW_FORMATS.get(fmt)
        if plugin is None:
            return False
        Image.init()
        return plugin in Image.SAVE

    def encode(
        self,
        pixels: np.ndarray,
        fmt: str,
        quality: int = 85,
        *,
        lossless: bool = False,
        ico_sizes: Iterable[int] = (),
    ) -> bytes:
        """Encode an RGB(A) array.

        Raises:
            ValueError: If the format has no raster encoder.
        """
        if fmt not in PILLOW_FORMATS:
            raise ValueError(f"Cannot encode raster pixels as {fmt!r}")
        img = Image.fromarray(np.ascontiguousarray(pixels))
        if img.mode == "RGBA" and fmt in OPAQUE_FORMATS:
            img = _flatten_alpha(img)

        params: dict = {}
        if fmt == "jpg":
            params = {"quality": quality, "optimize": True}
        elif fmt == "png":
            params = {"optimize": True}
        elif fmt == "webp":
            params = {"quality": quality, "lossless": lossless, "method": 4}
        elif fmt == "avif":
            params = {"quality": quality}
        elif fmt == "ico":
            sizes = [(s, s) for s in ico_sizes if s <= max(img.size)]
            params = {"sizes": sizes or [img.size]}

        buffer = io.BytesIO()
        img.save(buffer, format=PILLOW_FORMATS[fmt], **params)
        return buffer.getvalue()


@dataclass(frozen=True)
class ProbeResult:
    width: int
    height: int
    mime_type: str
    format: str | None
    has_alpha: bool = False

    @property
    def is_vector(self) -> bool:
        return self.format == "svg"


class MetadataProbe(Protocol):
    def probe(self, data: bytes) -> ProbeResult:
        ...

    def decode(self, data: bytes) -> np.ndarray:
        ...


def _is_svg(data: bytes) -> bool:
    head = data[:1024].lstrip().lower()
    return head.startswith(b"<") and b"<svg" in data[:4096].lower()


def _svg_length(value: str | None) -> float | None:
    if not value:
        return None
    match = _SVG_LENGTH_RE.match(value)
    return float(match.group(1)) if match else None


def svg_intrinsic_size(data: bytes) -> tuple[int, int]:
    """Read the declared size of an SVG document.

    Uses ``width``/``height`` when both are absolute lengths, then the
    ``viewBox`` size, then the browser default of 300x150.

    Raises:
        ValueError: If the markup cannot be parsed.
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ValueError(f"Invalid SVG markup: {exc}") from exc

    width = _svg_length(root.get("width"))
    height = _svg_length(root.get("height"))
    if width and height:
        return max(1, round(width)), max(1, round(height))

    view_box = root.get("viewBox")
    if view_box:
        parts = view_box.replace(",", " ").split()
        if len(parts) == 4:
            vb_width, vb_height = float(parts[2]), float(parts[3])
            if vb_width > 0 and vb_height > 0:
                return max(1, round(vb_width)), max(1, round(vb_height))
    return SVG_DEFAULT_SIZE


class PillowMetadataProbe:
    """MetadataProbe for Pillow-readable rasters and SVG markup."""

    def probe(self, data: bytes) -> ProbeResult:
        """Return dimensions and type of encoded image bytes.

        Raises:
            ValueError: If the bytes are not a recognised image.
        """
        if _is_svg(data):
            width, height = svg_intrinsic_size(data)
            return ProbeResult(width, height, MIME_TYPES["svg"], "svg", has_alpha=True)

        try:
            with Image.open(io.BytesIO(data)) as img:
                width, height = img.size
                mime_type = Image.MIME.get(img.format or "", "application/octet-stream")
                has_alpha = img.mode in ("RGBA", "LA", "PA") or (
                    img.mode == "P" and "transparency" in img.info
                )
        except (OSError, Image.DecompressionBombError) as exc:
            raise ValueError(f"Unrecognised image data: {exc}") from exc
        return ProbeResult(width, height, mime_type, format_for_mime(mime_type), has_alpha)

    def decode(self, data: bytes) -> np.ndarray:
        """Decode raster bytes to an RGB or RGBA uint8 array.

        EXIF orientation is applied so pixels match the displayed image.
        """
        with Image.open(io.BytesIO(data)) as img:
            img = ImageOps.exif_transpose(img)
            has_alpha = img.mode in ("RGBA", "LA", "PA") or (
                img.mode == "P" and "transparency" in img.info
            )
            img = img.convert("RGBA" if has_alpha else "RGB")
            return np.array(img)


def load_source_image(
    path: str | Path,
    probe: MetadataProbe | None = None,
) -> SourceImage:
    """Read an image file into a SourceImage.

    Vector sources are probed for their intrinsic size only; their pixels
    stay None.

    Raises:
        FileNotFoundError: If the path does not exist.
        ValueError: If the file is not a recognised image.
    """
    probe = probe or PillowMetadataProbe()
    file_path = Path(path)
    data = file_path.read_bytes()
    info = probe.probe(data)
    pixels = None if info.is_vector else probe.decode(data)
    if pixels is not None:
        height, width = pixels.shape[:2]
    else:
        width, height = info.width, info.height
    logger.debug("Loaded %s (%dx%d, %s)", file_path.name, width, height, info.mime_type)
    return SourceImage(
        name=file_path.name,
        pixels=pixels,
        width=width,
        height=height,
        mime_type=info.mime_type,
        size_bytes=len(data),
        has_alpha=info.has_alpha,
        data=data,
    )


@dataclass(frozen=True)
class FrameTemplate:
    """A named output frame the template processor fits images into."""

    id: str
    name: str
    width: int
    height: int
    platform: str
    category: str = "social"

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


BUILTIN_FRAMES = (
    FrameTemplate("instagram-profile", "Instagram Profile Picture", 320, 320, "instagram"),
    FrameTemplate("instagram-square", "Instagram Square Post", 1080, 1080, "instagram"),
    FrameTemplate("instagram-portrait", "Instagram Portrait Post", 1080, 1350, "instagram"),
    FrameTemplate("instagram-landscape", "Instagram Landscape Post", 1080, 566, "instagram"),
    FrameTemplate("instagram-story", "Instagram Story", 1080, 1920, "instagram"),
    FrameTemplate("facebook-cover", "Facebook Cover", 820, 312, "facebook"),
    FrameTemplate("twitter-header", "Twitter Header", 1500, 500, "twitter"),
    FrameTemplate("linkedin-banner", "LinkedIn Banner", 1584, 396, "linkedin"),
    FrameTemplate("youtube-thumbnail", "YouTube Thumbnail", 1280, 720, "youtube"),
    FrameTemplate("web-hero", "Website Hero", 1920, 1080, "web", "web"),
    FrameTemplate("open-graph", "Open Graph Image", 1200, 630, "web", "web"),
)


class TemplateCatalog(Protocol):
    def get(self, template_id: str) -> FrameTemplate | None:
        ...


class BuiltinTemplateCatalog:
    """Catalog over a fixed set of frames."""

    def __init__(self, frames: Iterable[FrameTemplate] = BUILTIN_FRAMES) -> None:
        self._frames = {frame.id: frame for frame in frames}

    def get(self, template_id: str) -> FrameTemplate | None:
        return self._frames.get(template_id)

    def ids(self) -> list[str]:
        return sorted(self._frames)

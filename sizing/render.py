"""
Pixel rendering primitives backed by OpenCV.

All functions are pure: they take an input and return a new output without
mutating the original array. Images are numpy arrays in RGB or RGBA channel
order (2D grayscale is accepted too).
"""

import cv2
import numpy as np

from geometry import Rect

# Interpolation used when the output is larger than the input
UPSCALE_INTERPOLATION = {
    "lanczos3": cv2.INTER_LANCZOS4,
    "bicubic": cv2.INTER_CUBIC,
    "bilinear": cv2.INTER_LINEAR,
    "nearest": cv2.INTER_NEAREST,
}


def validate_image_array(img: np.ndarray) -> None:
    """Check that img is a usable 2D/3D image array.

    Raises:
        TypeError: If img is not a numpy array.
        ValueError: If img is empty, has the wrong rank or channel count.
    """
    if not isinstance(img, np.ndarray):
        raise TypeError(f"Expected numpy.ndarray, got {type(img).__name__}")

    if img.ndim < 2 or img.ndim > 3:
        raise ValueError(
            f"Image must be 2D or 3D array, got {img.ndim}D array with shape {img.shape}"
        )

    if img.size == 0:
        raise ValueError("Image array is empty")

    if img.ndim == 3 and img.shape[2] not in (1, 3, 4):
        raise ValueError(
            f"Unsupported number of channels: {img.shape[2]}. "
            "Expected 1, 3 (RGB), or 4 (RGBA)."
        )


def choose_interpolation(
    source_size: tuple[int, int],
    dest_size: tuple[int, int],
    algorithm: str = "lanczos3",
) -> int:
    """Pick an OpenCV interpolation flag for a resample.

    Downscaling uses INTER_AREA (except for ``nearest``), which avoids moire;
    upscaling uses the interpolation named by ``algorithm``.
    """
    if algorithm == "nearest":
        return cv2.INTER_NEAREST
    src_w, src_h = source_size
    dst_w, dst_h = dest_size
    if dst_w <= src_w and dst_h <= src_h:
        return cv2.INTER_AREA
    return UPSCALE_INTERPOLATION.get(algorithm, cv2.INTER_LINEAR)


def resize_image(
    img: np.ndarray,
    width: int,
    height: int,
    algorithm: str = "lanczos3",
) -> np.ndarray:
    """Resize an image to exactly width x height.

    Args:
        img: Input image.
        width: Output width in pixels.
        height: Output height in pixels.
        algorithm: Resample algorithm name used for upscaling.

    Returns:
        Resized image with the same dtype and channel count as the input.

    Raises:
        TypeError: If img is not a numpy array or sizes are not ints.
        ValueError: If the image is invalid or sizes are not positive.

    Examples:
        >>> img = np.zeros((1000, 2000, 3), dtype=np.uint8)
        >>> resize_image(img, 1000, 500).shape
        (500, 1000, 3)
    """
    validate_image_array(img)
    if not isinstance(width, int) or not isinstance(height, int):
        raise TypeError("width and height must be int")
    if width <= 0 or height <= 0:
        raise ValueError(f"Output size must be positive, got {width}x{height}")

    src_h, src_w = img.shape[:2]
    if (src_w, src_h) == (width, height):
        return img.copy()

    interpolation = choose_interpolation((src_w, src_h), (width, height), algorithm)
    resized = cv2.resize(img, (width, height), interpolation=interpolation)
    if img.ndim == 3 and resized.ndim == 2:
        # cv2 drops a trailing singleton channel
        resized = resized[:, :, np.newaxis]
    return resized


def crop_region(img: np.ndarray, rect: Rect) -> np.ndarray:
    """Extract rect (x1, y1, x2, y2) from img as a new array.

    Raises:
        ValueError: If the rectangle is empty or falls outside the image.
    """
    validate_image_array(img)
    x1, y1, x2, y2 = rect
    h, w = img.shape[:2]
    if x2 <= x1 or y2 <= y1:
        raise ValueError(f"Empty crop rectangle: {rect}")
    if x1 < 0 or y1 < 0 or x2 > w or y2 > h:
        raise ValueError(f"Crop rectangle {rect} outside image bounds {w}x{h}")
    return img[y1:y2, x1:x2].copy()


def render(
    img: np.ndarray,
    source_rect: Rect | None,
    dest_size: tuple[int, int],
    algorithm: str = "lanczos3",
) -> np.ndarray:
    """Resample source_rect of img into an image of dest_size (width, height).

    ``source_rect=None`` uses the whole image, which is a plain resize.
    """
    region = img if source_rect is None else crop_region(img, source_rect)
    return resize_image(region, int(dest_size[0]), int(dest_size[1]), algorithm)


def has_transparency(img: np.ndarray) -> bool:
    """Return True if img has an alpha channel with any non-opaque pixel."""
    if img.ndim != 3 or img.shape[2] != 4:
        return False
    alpha = img[:, :, 3]
    max_value = np.iinfo(img.dtype).max if np.issubdtype(img.dtype, np.integer) else 1.0
    return bool(np.any(alpha < max_value))


def to_grayscale(img: np.ndarray) -> np.ndarray:
    """Convert an RGB/RGBA/grayscale image to a 2D uint8 grayscale array."""
    validate_image_array(img)
    if img.ndim == 2:
        gray = img.copy()
    elif img.shape[2] == 1:
        gray = img[:, :, 0].copy()
    elif img.shape[2] == 3:
        gray = cv2.cvtColor(img, cv2.COLOR_RGB2GRAY)
    else:
        gray = cv2.cvtColor(img[:, :, :3], cv2.COLOR_RGB2GRAY)

    if gray.dtype != np.uint8:
        gray = np.clip(gray, 0, 255).astype(np.uint8)
    return gray

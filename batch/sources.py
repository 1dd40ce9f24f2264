"""
Local image discovery.

Expands CLI arguments (files and directories) into a sorted list of image
paths the orchestrator can load.
"""

from pathlib import Path
from typing import Iterable

# Supported image extensions
IMAGE_EXTENSIONS = {
    ".jpg", ".jpeg", ".png", ".webp", ".avif", ".bmp", ".gif",
    ".tiff", ".tif", ".ico", ".svg",
}


def find_images(path: str | Path) -> list[Path]:
    """Find all image files in a directory or return a single image file.

    Args:
        path: Path to a directory or a single image file.

    Returns:
        Sorted list of image file paths.

    Raises:
        ValueError: If path doesn't exist or isn't a valid image/directory.
    """
    file_path = Path(path).resolve()

    if file_path.is_file():
        if file_path.suffix.lower() in IMAGE_EXTENSIONS:
            return [file_path]
        raise ValueError(f"{path} is not a supported image file")

    if not file_path.is_dir():
        raise ValueError(f"{path} is not a valid file or directory")

    image_files = [
        p for p in file_path.iterdir()
        if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
    ]
    return sorted(image_files)


def collect_images(paths: Iterable[str | Path]) -> list[Path]:
    """Expand several files/directories, keeping argument order and dropping repeats."""
    seen: set[Path] = set()
    collected: list[Path] = []
    for path in paths:
        for image_path in find_images(path):
            if image_path not in seen:
                seen.add(image_path)
                collected.append(image_path)
    return collected

"""Filename pattern expansion for rename steps."""

from __future__ import annotations

from datetime import datetime
import re
from pathlib import PurePath
from typing import Any, Mapping

import config
from errors import Severity, ValidationIssue

COMMON_PATTERNS = {
    "sequential": "{name}-{index_padded}",
    "dated": "{name}-{date}",
    "timestamped": "{name}-{timestamp}",
    "dimensioned": "{name}-{dimensions}",
    "simple": "{index_padded}",
    "descriptive": "{name}-{dimensions}-{date}",
    "batch": "batch-{date}-{index_padded}",
    "export": "export-{timestamp}",
    "web": "{name}-{width}w",
    "social": "{name}-{dimensions}-social",
}

PATTERN_VARIABLES = (
    "name", "name_lower", "name_upper", "name_snake", "name_kebab",
    "index", "index_padded", "total",
    "width", "height", "dimensions", "aspect_ratio", "size",
    "date", "time", "timestamp", "datetime",
    "year", "month", "day", "hour", "minute", "second",
    "extension", "original_extension", "size_category",
)

_PLACEHOLDER_RE = re.compile(r"\{([^{}]+)\}")
_INVALID_CHARS_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_REPEATED_SEPARATORS_RE = re.compile(r"[-_]{2,}")
_REPEATED_SPACES_RE = re.compile(r"[ _]{2,}")
_EDGE_SEPARATORS_RE = re.compile(r"^[-_.]+|[-_.]+$")


def size_category(size_bytes: int | None) -> str:
    if not size_bytes:
        return "unknown"
    if size_bytes < 1024:
        return "tiny"
    if size_bytes < 10 * 1024:
        return "very-small"
    if size_bytes < 100 * 1024:
        return "small"
    if size_bytes < 1024 * 1024:
        return "medium"
    if size_bytes < 5 * 1024 * 1024:
        return "large"
    return "very-large"


def build_variables(
    original_name: str,
    index: int,
    total: int,
    width: int | None = None,
    height: int | None = None,
    size_bytes: int | None = None,
    extension: str | None = None,
    now: datetime | None = None,
    extra: Mapping[str, Any] | None = None,
) -> dict[str, str]:
    """Build the substitution table for a rename pattern.

    Args:
        original_name: Source filename, with or without extension.
        index: 0-based position of the image in the batch.
        total: Number of images in the batch.
        width: Current image width, if known.
        height: Current image height, if known.
        size_bytes: Source file size for ``{size_category}``.
        extension: Output extension (without dot); defaults to the source's.
        now: Clock reading for date/time variables.
        extra: Additional variables (override built-ins).
    """
    now = now or datetime.now()
    path = PurePath(original_name or "unnamed")
    base = path.stem or "unnamed"
    original_extension = path.suffix.lstrip(".").lower() or "unknown"
    number = index + 1
    has_size = bool(width and height)

    variables: dict[str, Any] = {
        "name": base,
        "name_lower": base.lower(),
        "name_upper": base.upper(),
        "name_snake": re.sub(r"\s+", "_", base),
        "name_kebab": re.sub(r"\s+", "-", base),
        "index": number,
        "index_padded": str(number).zfill(len(str(max(total, 1)))),
        "total": total,
        "width": width if width else "unknown",
        "height": height if height else "unknown",
        "dimensions": f"{width}x{height}" if has_size else "unknown",
        "aspect_ratio": f"{width / height:.2f}" if has_size else "unknown",
        "date": now.strftime("%Y-%m-%d"),
        "time": now.strftime("%H-%M-%S"),
        "timestamp": int(now.timestamp() * 1000),
        "datetime": now.strftime("%Y-%m-%dT%H-%M-%S"),
        "year": now.strftime("%Y"),
        "month": now.strftime("%m"),
        "day": now.strftime("%d"),
        "hour": now.strftime("%H"),
        "minute": now.strftime("%M"),
        "second": now.strftime("%S"),
        "extension": (extension or original_extension).lstrip("."),
        "original_extension": original_extension,
        "size_category": size_category(size_bytes),
    }
    if extra:
        variables.update(extra)
    return {key: str(value) for key, value in variables.items()}


def apply_pattern(pattern: str, variables: Mapping[str, Any]) -> str:
    """Expand ``{placeholders}`` in pattern and clean up the result.

    Unknown placeholders are dropped, characters that are invalid in
    filenames become ``_``, runs of separators collapse to ``-`` and leading
    or trailing separators are trimmed.

    Examples:
        >>> apply_pattern("{name}-{missing}-{index}", {"name": "cat", "index": 3})
        'cat-3'
    """
    def replace(match: re.Match) -> str:
        key = match.group(1)
        return str(variables[key]) if key in variables else ""

    result = _PLACEHOLDER_RE.sub(replace, pattern)
    result = _INVALID_CHARS_RE.sub("_", result)
    result = _REPEATED_SEPARATORS_RE.sub("-", result)
    result = _REPEATED_SPACES_RE.sub(" ", result)
    result = result.strip()
    return _EDGE_SEPARATORS_RE.sub("", result)


def sanitize_filename(filename: str, max_length: int = config.MAX_FILENAME_LENGTH) -> str:
    """Make filename safe for common filesystems.

    The extension (if any) is preserved when truncating to max_length.
    """
    if not filename:
        return "unnamed-file"
    cleaned = re.sub(r'[<>:"/\\|?*]', "-", filename)
    cleaned = re.sub(r"\s+", "_", cleaned)
    cleaned = re.sub(r"[^\w.\-]", "", cleaned).strip()
    if not cleaned:
        return "unnamed-file"
    if len(cleaned) <= max_length:
        return cleaned

    stem, dot, ext = cleaned.rpartition(".")
    if dot and stem and len(ext) < max_length - 1:
        return f"{stem[:max_length - len(ext) - 1]}.{ext}"
    return cleaned[:max_length]


def pattern_variables(pattern: str) -> list[str]:
    """Return the placeholder names used in pattern, in order."""
    return _PLACEHOLDER_RE.findall(pattern)


def has_uniqueness_placeholder(pattern: str) -> bool:
    return any(token in pattern for token in config.UNIQUENESS_PLACEHOLDERS)


def validate_rename_pattern(pattern: str | None) -> list[ValidationIssue]:
    """Check a rename pattern; errors make the pattern unusable."""
    issues: list[ValidationIssue] = []
    if not pattern or not pattern.strip():
        issues.append(ValidationIssue(
            code="empty_pattern",
            message="Rename pattern cannot be empty",
            severity=Severity.ERROR,
        ))
        return issues

    literal = _PLACEHOLDER_RE.sub("", pattern)
    if _INVALID_CHARS_RE.search(literal):
        issues.append(ValidationIssue(
            code="invalid_pattern_characters",
            message=f"Rename pattern contains invalid filename characters: {pattern!r}",
            severity=Severity.ERROR,
            suggestion='Remove <>:"/\\|?* and control characters',
        ))

    if not pattern_variables(pattern):
        issues.append(ValidationIssue(
            code="no_placeholders",
            message="Rename pattern has no placeholders; every output gets the same name",
            suggestion="Add {name}, {index} or {timestamp} to keep names unique",
        ))

    unknown = [v for v in pattern_variables(pattern) if v not in PATTERN_VARIABLES]
    if unknown:
        issues.append(ValidationIssue(
            code="unknown_placeholders",
            message=f"Unknown placeholders will be dropped: {', '.join(sorted(set(unknown)))}",
            severity=Severity.INFO,
        ))

    if len(pattern) > config.MAX_FILENAME_LENGTH:
        issues.append(ValidationIssue(
            code="pattern_too_long",
            message=f"Rename pattern is longer than {config.MAX_FILENAME_LENGTH} characters",
        ))
    return issues

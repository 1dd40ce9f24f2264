"""Error taxonomy for task authoring and batch execution."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any


class ConfigurationError(ValueError):
    """A task or step is misconfigured and cannot run until corrected."""


class UpscaleNotAllowed(ValueError):
    """A resize or crop would enlarge the image while upscaling is disabled."""

    def __init__(
        self,
        source: tuple[int, int],
        target: tuple[int, int],
        axis: str,
    ) -> None:
        self.source = source
        self.target = target
        self.axis = axis
        super().__init__(
            f"Upscaling not allowed: {axis} would grow from "
            f"{source[0] if axis == 'width' else source[1]} to "
            f"{target[0] if axis == 'width' else target[1]} "
            f"({source[0]}x{source[1]} -> {target[0]}x{target[1]})"
        )


class ImageValidationError(ValueError):
    """Task validation against a specific image produced hard errors."""

    def __init__(self, image_name: str, issues: list[Any]) -> None:
        self.image_name = image_name
        self.issues = list(issues)
        messages = "; ".join(getattr(issue, "message", str(issue)) for issue in self.issues)
        super().__init__(f"Validation failed for {image_name}: {messages}")


class StepExecutionError(RuntimeError):
    """A single pipeline step failed for one image."""

    def __init__(self, order: int, processor: str, message: str) -> None:
        self.order = order
        self.processor = processor
        super().__init__(f"Step {order} ({processor}) failed: {message}")


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ValidationIssue:
    """A single validation finding.

    Errors and critical issues block execution; info and warning issues are
    advisory and only surface on the caller's warning channel.
    """

    code: str
    message: str
    severity: Severity = Severity.WARNING
    suggestion: str | None = None
    step_order: int | None = None
    processor: str | None = None

    @property
    def is_blocking(self) -> bool:
        return self.severity in (Severity.ERROR, Severity.CRITICAL)

    def with_step(self, order: int, processor: str) -> "ValidationIssue":
        return replace(self, step_order=order, processor=processor)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "suggestion": self.suggestion,
            "step_order": self.step_order,
            "processor": self.processor,
        }

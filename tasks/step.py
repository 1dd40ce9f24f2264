"""
A single pipeline step: processor, normalized options and derived metadata.

StepSpec is frozen. Tasks change steps by replacing them
(``dataclasses.replace``), never by mutating them in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any
import uuid

import config
from .options import (
    OptimizeOptions,
    Processor,
    StepOptions,
    load_options,
    normalize_options,
    parse_processor,
)


@dataclass(frozen=True)
class StepMetadata:
    """Facts derived from a step's processor and options."""

    output_type: str
    is_batchable: bool
    requires_favicon: bool
    supports_optimization_first: bool

    @classmethod
    def derive(cls, processor: Processor, options: StepOptions) -> StepMetadata:
        if isinstance(options, OptimizeOptions):
            output_type = (
                "optimized-auto" if options.format == "auto" else f"optimized-{options.format}"
            )
        elif processor == Processor.FAVICON:
            output_type = "favicon-set"
        elif processor == Processor.TEMPLATE:
            output_type = "template-applied"
        else:
            output_type = "processed"
        return cls(
            output_type=output_type,
            is_batchable=processor.value not in config.NON_BATCHABLE_PROCESSORS,
            requires_favicon=processor == Processor.FAVICON,
            supports_optimization_first=processor == Processor.OPTIMIZE,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "outputType": self.output_type,
            "isBatchable": self.is_batchable,
            "requiresFavicon": self.requires_favicon,
            "supportsOptimizationFirst": self.supports_optimization_first,
        }


def new_step_id(order: int) -> str:
    return f"step_{order}_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class StepSpec:
    """One configured operation inside a Task.

    Attributes:
        id: Unique token assigned at creation.
        processor: Which processor runs this step.
        options: Normalized, immutable options for the processor.
        order: 1-based authoring position, kept contiguous by the Task.
        enabled: Disabled steps are kept but skipped.
        metadata: Derived from processor and options.
    """

    id: str
    processor: Processor
    options: StepOptions
    order: int
    enabled: bool = True
    metadata: StepMetadata = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", StepMetadata.derive(self.processor, self.options))

    @classmethod
    def create(
        cls,
        processor: str | Processor,
        options: Any = None,
        order: int = 1,
        enabled: bool = True,
    ) -> StepSpec:
        """Build a step from caller options, applying defaults and coercions."""
        resolved = parse_processor(processor)
        return cls(
            id=new_step_id(order),
            processor=resolved,
            options=normalize_options(resolved, options),
            order=order,
            enabled=enabled,
        )

    def with_order(self, order: int) -> StepSpec:
        return self if order == self.order else replace(self, order=order)

    def with_enabled(self, enabled: bool) -> StepSpec:
        return self if enabled == self.enabled else replace(self, enabled=enabled)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "processor": self.processor.value,
            "options": self.options.to_wire(),
            "enabled": self.enabled,
            "order": self.order,
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], order: int | None = None) -> StepSpec:
        """Rebuild an exported step.

        Stored options are already normalized; metadata is re-derived rather
        than trusted.
        """
        processor = parse_processor(data["processor"])
        step_order = order if order is not None else int(data.get("order", 1))
        return cls(
            id=data.get("id") or new_step_id(step_order),
            processor=processor,
            options=load_options(processor, data.get("options") or {}),
            order=step_order,
            enabled=data.get("enabled", True) is not False,
        )

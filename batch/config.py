"""
Runtime configuration for batch execution.

Task content lives in ``tasks``; this only controls how a batch is
scheduled and which outputs are kept.
"""

from dataclasses import dataclass

from config import DEFAULT_GROUP_SIZE, MAX_GROUP_SIZE


@dataclass(frozen=True)
class BatchConfig:
    """Scheduling options for ``Orchestrator.run``.

    Attributes:
        parallel: Run images in bounded-parallel groups instead of one at a
            time. Groups run sequentially; images inside a group run
            concurrently.
        group_size: Number of images per parallel group.
        show_progress: Show a tqdm progress bar while running.
        keep_pixels: Keep the final pixel array on each ImageResult.
    """

    parallel: bool = False
    group_size: int = DEFAULT_GROUP_SIZE
    show_progress: bool = False
    keep_pixels: bool = False

    def validate(self) -> None:
        """Validate configuration parameters.

        Raises:
            ValueError: If any parameter is invalid.
        """
        if self.group_size <= 0:
            raise ValueError(f"group_size must be positive, got {self.group_size}")
        if self.group_size > MAX_GROUP_SIZE:
            raise ValueError(
                f"group_size={self.group_size} exceeds the maximum of {MAX_GROUP_SIZE}"
            )

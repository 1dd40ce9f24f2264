"""Logging setup for the imgtask command line.

Log records are written through ``tqdm.write`` so lines emitted while a batch
progress bar is on screen do not break the bar.
"""

from __future__ import annotations

import logging
import sys
from typing import Iterable

from tqdm import tqdm

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

LOG_LEVEL_CHOICES: Iterable[str] = tuple(LOG_LEVELS.keys())

# Libraries that log noisily at DEBUG
NOISY_LOGGERS = ("PIL",)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%H:%M:%S"


class ProgressAwareHandler(logging.Handler):
    """Handler that writes above any active tqdm progress bar."""

    def __init__(self, stream=None) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            tqdm.write(self.format(record), file=self.stream or sys.stdout)
        except Exception:
            self.handleError(record)


def add_logging_args(parser) -> None:
    """Add standard logging options to an argparse parser."""
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVEL_CHOICES,
        help="Set log verbosity (debug, info, warning, error, critical)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v shows per-step detail)",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="count",
        default=0,
        help="Reduce log verbosity (-qq hides everything but failures)",
    )


def resolve_log_level(
    log_level: str | None = None,
    verbose: int = 0,
    quiet: int = 0,
) -> int:
    """Resolve a numeric log level from explicit or modifier flags."""
    if log_level:
        return LOG_LEVELS[log_level.lower()]

    offset = verbose - quiet
    if offset >= 1:
        return logging.DEBUG
    if offset == 0:
        return logging.INFO
    if offset == -1:
        return logging.WARNING
    return logging.ERROR


def configure_logging(
    log_level: str | None = None,
    verbose: int = 0,
    quiet: int = 0,
) -> int:
    """Configure root logging and return the active level.

    Third-party loggers listed in NOISY_LOGGERS are held at INFO or above so
    ``-v`` shows pipeline detail without codec chatter.
    """
    level = resolve_log_level(log_level=log_level, verbose=verbose, quiet=quiet)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))

    root_logger = logging.getLogger()
    if root_logger.handlers:
        root_logger.setLevel(level)
        for handler in root_logger.handlers:
            handler.setLevel(level)
        return level

    handler = ProgressAwareHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    logging.basicConfig(level=level, handlers=[handler])
    return level


def progress_enabled(level: int) -> bool:
    """Progress bars are shown unless logging is reduced below INFO."""
    return level <= logging.INFO


def log_run_summary(logger: logging.Logger, summary, destination, written: int) -> None:
    """Log the end-of-run banner for a batch, listing every failed image."""
    logger.info("%s", "=" * 50)
    logger.info("Run Complete!")
    logger.info("%s", "=" * 50)
    logger.info("Images:    %s", summary.total)
    logger.info("Succeeded: %s", summary.succeeded)
    logger.info("Failed:    %s", summary.failed)
    logger.info("Files written to %s: %s", destination, written)
    for result in summary.results:
        if not result.success:
            logger.warning("  %s: %s", result.image_name, result.error)

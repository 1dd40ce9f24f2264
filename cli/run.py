"""Run command CLI parsing and control flow."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from batch import BatchConfig, Orchestrator, collect_images
from errors import ConfigurationError
from logging_utils import log_run_summary, progress_enabled
from tasks import Task

logger = logging.getLogger(__name__)


def load_task(path: str) -> Task:
    """Load a task export file, or build a task from a built-in template name."""
    task_path = Path(path)
    if task_path.is_file():
        return Task.from_json(task_path.read_text(encoding="utf-8"))
    return Task.from_template(path)


def add_run_subparser(subparsers: argparse._SubParsersAction) -> None:
    run_parser = subparsers.add_parser(
        "run",
        help="Run a task against image files or directories",
    )
    run_parser.add_argument(
        "task",
        help="Task JSON file or built-in template name",
    )
    run_parser.add_argument(
        "images",
        nargs="+",
        help="Image files or directories",
    )
    run_parser.add_argument(
        "-o", "--out",
        required=True,
        help="Output directory",
    )
    run_parser.add_argument(
        "--parallel",
        action="store_true",
        help="Process images in parallel groups",
    )
    run_parser.add_argument(
        "--group-size",
        type=int,
        default=None,
        metavar="N",
        help="Images per parallel group (default: 4)",
    )
    run_parser.add_argument(
        "--report",
        metavar="FILE",
        help="Write a JSON report of every image result",
    )
    run_parser.set_defaults(_cmd=cmd_run)


def cmd_run(args: argparse.Namespace) -> int:
    try:
        task = load_task(args.task)
        images = collect_images(args.images)
    except (ConfigurationError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    if not images:
        logger.warning("No images found.")
        return 1

    report = task.validate()
    if not report.is_valid:
        for issue in report.errors:
            logger.error("%s", issue.message)
        return 1

    batch_config = BatchConfig(
        parallel=args.parallel,
        show_progress=progress_enabled(logging.getLogger().getEffectiveLevel()),
        **({"group_size": args.group_size} if args.group_size is not None else {}),
    )
    try:
        batch_config.validate()
    except ValueError as exc:
        logger.error("%s", exc)
        return 1

    def on_warning(image_name: str, message: str) -> None:
        logger.debug("%s: %s", image_name, message)

    summary = Orchestrator().run(images, task, batch_config, on_warning=on_warning)
    written = summary.write_outputs(args.out)

    if args.report:
        Path(args.report).write_text(json.dumps(summary.to_dict(), indent=2), encoding="utf-8")

    log_run_summary(logger, summary, args.out, len(written))
    return 0 if summary.failed == 0 else 2

"""Describe and estimate commands: inspect a task without running it."""

from __future__ import annotations

import argparse
import logging

from errors import ConfigurationError

from cli.run import load_task

logger = logging.getLogger(__name__)


def add_describe_subparser(subparsers: argparse._SubParsersAction) -> None:
    describe_parser = subparsers.add_parser(
        "describe",
        help="Show a task's steps, execution order and validation issues",
    )
    describe_parser.add_argument(
        "task",
        help="Task JSON file or built-in template name",
    )
    describe_parser.set_defaults(_cmd=cmd_describe)

    estimate_parser = subparsers.add_parser(
        "estimate",
        help="Estimate processing time for a number of images",
    )
    estimate_parser.add_argument(
        "task",
        help="Task JSON file or built-in template name",
    )
    estimate_parser.add_argument(
        "--images", "-n",
        type=int,
        default=1,
        help="Number of images (default: 1)",
    )
    estimate_parser.set_defaults(_cmd=cmd_estimate)


def cmd_describe(args: argparse.Namespace) -> int:
    from batch import execution_plan

    try:
        task = load_task(args.task)
    except (ConfigurationError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    summary = task.get_validation_summary()
    print(f"{task.name} ({summary['taskType']}, {summary['status']})")
    if task.description:
        print(task.description)
    print()
    print(task.get_description())
    print()
    order = " -> ".join(s.processor.value for s in execution_plan(task.steps))
    print(f"Execution order: {order or '(none)'}")
    print(f"Estimated outputs per image: {summary['estimatedOutputs']}")
    print(f"Optimization level: {summary['optimizationLevel']}")

    report = task.validate()
    for issue in report.errors + report.warnings:
        step = f"step {issue.step_order}: " if issue.step_order else ""
        print(f"[{issue.severity.value}] {step}{issue.message}")
    return 0 if report.is_valid else 1


def cmd_estimate(args: argparse.Namespace) -> int:
    try:
        task = load_task(args.task)
        estimate = task.get_time_estimate(args.images)
    except (ConfigurationError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    print(
        f"{estimate.step_count} step(s) x {estimate.image_count} image(s): "
        f"{estimate.formatted} "
        f"({estimate.per_image_ms:.0f}ms per image, complexity x{estimate.complexity_factor})"
    )
    return 0

"""Template commands: list built-in presets and export one as a task file."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from errors import ConfigurationError
from tasks import TASK_TEMPLATES, Task, list_templates

logger = logging.getLogger(__name__)


def add_template_subparsers(subparsers: argparse._SubParsersAction) -> None:
    templates_parser = subparsers.add_parser(
        "templates",
        help="List built-in task templates",
    )
    templates_parser.set_defaults(_cmd=cmd_templates)

    template_parser = subparsers.add_parser(
        "template",
        help="Export a built-in template as a task JSON file",
    )
    template_parser.add_argument(
        "name",
        help="Template name (see 'imgtask templates')",
    )
    template_parser.add_argument(
        "--output", "-o",
        metavar="FILE",
        help="Write to FILE instead of stdout",
    )
    template_parser.set_defaults(_cmd=cmd_template)


def cmd_templates(args: argparse.Namespace) -> int:
    for name in list_templates():
        template = TASK_TEMPLATES[name]
        print(f"{name:<20} {template['description']}")
    return 0


def cmd_template(args: argparse.Namespace) -> int:
    try:
        task = Task.from_template(args.name)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 1

    text = task.to_json()
    if args.output:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
        logger.info("Wrote %s to %s", args.name, args.output)
    else:
        print(text)
    return 0

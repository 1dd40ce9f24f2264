#!/usr/bin/env python3
"""
Unified CLI for batch image tasks.

Usage:
    imgtask run TASK IMAGES... --out DIR   # Run a task file or template on images
    imgtask describe TASK                  # Show steps, execution order and issues
    imgtask estimate TASK --images N       # Estimate processing time
    imgtask templates                      # List built-in templates
    imgtask template NAME -o task.json     # Export a template as a task file
"""

import argparse
import logging
import sys

from logging_utils import configure_logging, add_logging_args
from cli.run import add_run_subparser
from cli.describe import add_describe_subparser
from cli.templates import add_template_subparsers

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imgtask",
        description="Batch image tasks - resize, smart crop, optimize, rename and favicons",
    )
    add_logging_args(parser)
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    add_run_subparser(subparsers)
    add_describe_subparser(subparsers)
    add_template_subparsers(subparsers)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level, args.verbose, args.quiet)

    cmd = getattr(args, "_cmd", None)
    if cmd is None:
        parser.print_help()
        return 1
    return cmd(args)


if __name__ == "__main__":
    sys.exit(main())

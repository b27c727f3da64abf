"""Main CLI entry point for framestack."""

from __future__ import annotations

import argparse
import logging
import sys

from .. import __version__
from .build_cli import build_build_parser
from .inspect_cli import build_inspect_parser


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="framestack",
        description="Stitch still images into animated PNG or WebP",
    )
    parser.add_argument("--version", action="version", version=f"framestack {__version__}")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="Increase log verbosity (-v info, -vv debug)",
    )
    subparsers = parser.add_subparsers(dest="command")
    build_build_parser(subparsers)
    build_inspect_parser(subparsers)
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    if args.command is None:
        parser.print_help()
        return 0
    return args.func(args)


def cli_entry() -> None:
    sys.exit(main())

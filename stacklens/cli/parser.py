"""
Command-line argument parser for stacklens.

All subcommands are declared here so that ``stacklens --help`` documents
the whole surface in one place.
"""

from __future__ import annotations

import argparse
from pathlib import Path

from stacklens.types import IMPLEMENTATION_FILTERS
from stacklens.utils.logging_config import LOG_LEVELS


def _add_view_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--transforms",
        "-t",
        type=str,
        default=None,
        help="Transform stack token, e.g. 'f-combined-0w2~mcn-js-3'",
    )
    parser.add_argument(
        "--implementation",
        "-i",
        type=str,
        default=None,
        choices=IMPLEMENTATION_FILTERS,
        help="Implementation filter (default: combined)",
    )
    parser.add_argument(
        "--config", "-c", type=Path, default=None, help="YAML viewer configuration file"
    )
    parser.add_argument(
        "--thread", type=int, default=None, help="Index of the thread to use (default: all)"
    )


def create_parser() -> argparse.ArgumentParser:
    """
    Create the stacklens argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Parser with ``tree``, ``transforms``, ``check`` and ``help`` subcommands

    Examples
    --------
    >>> parser = create_parser()
    >>> args = parser.parse_args(["tree", "profile.json", "--inverted"])
    """
    parser = argparse.ArgumentParser(
        prog="stacklens",
        description="Explore sampled call stacks with focus and merge transforms",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        default=None,
        choices=LOG_LEVELS,
        help="Log level for the console and --log-file (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write full log records, including transform timings, to this file",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # tree subcommand
    tree_parser = subparsers.add_parser("tree", help="Print the call tree of a profile")
    tree_parser.add_argument("profile", type=Path, help="Profile file (.json or .txt text samples)")
    _add_view_arguments(tree_parser)
    tree_parser.add_argument(
        "--inverted", action="store_true", help="Show the inverted call tree"
    )
    tree_parser.add_argument(
        "--max-depth", dest="max_depth", type=int, default=None, help="Deepest level to print"
    )
    tree_parser.add_argument(
        "--no-lib", dest="no_lib", action="store_true", help="Hide library names"
    )

    # transforms subcommand
    transforms_parser = subparsers.add_parser(
        "transforms", help="Decode a transform stack token"
    )
    transforms_parser.add_argument("token", type=str, help="Transform stack token")
    transforms_parser.add_argument(
        "--profile", type=Path, default=None, help="Profile used to resolve function names"
    )
    transforms_parser.add_argument(
        "--thread", type=int, default=0, help="Thread used to resolve function names"
    )

    # check subcommand
    check_parser = subparsers.add_parser(
        "check", help="Apply a transform stack and verify the resulting tables"
    )
    check_parser.add_argument("profile", type=Path, help="Profile file (.json or .txt text samples)")
    _add_view_arguments(check_parser)

    # help subcommand
    help_parser = subparsers.add_parser("help", help="Describe implementation filters or transforms")
    help_parser.add_argument("topic", choices=["implementation", "transforms"])

    return parser

"""Command-line interface for stacklens."""

from __future__ import annotations

from stacklens.cli.commands import check_command, help_command, transforms_command, tree_command
from stacklens.cli.entry_points import main
from stacklens.cli.parser import create_parser


__all__ = [
    "create_parser",
    "main",
    "tree_command",
    "transforms_command",
    "check_command",
    "help_command",
]

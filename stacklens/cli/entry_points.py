"""
Entry point for the ``stacklens`` command.

The entry point:
1. Parses arguments
2. Configures logging
3. Dispatches to the subcommand and returns its exit code
"""

from __future__ import annotations

import sys
from typing import Callable, Dict, Optional, Sequence

from stacklens.utils.logging_config import setup_logging


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the stacklens CLI.

    Parameters
    ----------
    argv : Sequence[str], optional
        Arguments without the program name, by default ``sys.argv[1:]``

    Returns
    -------
    int
        Exit code (0 for success, 1 for error)
    """
    from stacklens.cli.commands import check_command, help_command, transforms_command, tree_command
    from stacklens.cli.parser import create_parser

    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level or "INFO", log_file=args.log_file)

    commands: Dict[str, Callable[..., int]] = {
        "tree": tree_command,
        "transforms": transforms_command,
        "check": check_command,
        "help": help_command,
    }
    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())

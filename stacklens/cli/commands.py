"""CLI commands for viewing and checking transformed call trees."""

from __future__ import annotations

import argparse
from typing import List, Optional, Tuple

from loguru import logger
from rich.console import Console
from rich.table import Table

from stacklens.cli.render import render_call_tree, render_transform_table
from stacklens.config import ConfigValidator, ValidationError, ViewerConfig, args_to_config, load_config
from stacklens.profiling.call_tree import compute_call_tree
from stacklens.profiling.errors import StacklensError
from stacklens.profiling.storage import load_profile
from stacklens.profiling.tables import Thread, find_forest_violation
from stacklens.profiling.transform_codec import parse_transforms, stringify_transforms
from stacklens.profiling.transforms import apply_transform_stack, get_transform_labels
from stacklens.utils.logging_config import setup_logging


def resolve_config(args: argparse.Namespace) -> ViewerConfig:
    """Load ``--config`` if given and overlay explicit command-line options."""
    config_path = getattr(args, "config", None)
    base = load_config(str(config_path)) if config_path is not None else None
    return args_to_config(args, base)


def _apply_config_log_level(args: argparse.Namespace, config: ViewerConfig) -> None:
    # --log-level on the command line wins over the config file.
    if getattr(args, "config", None) is not None and getattr(args, "log_level", None) is None:
        setup_logging(level=config.log_level, log_file=getattr(args, "log_file", None))


def _select_threads(threads: List[Thread], index: Optional[int]) -> List[Tuple[int, Thread]]:
    if index is None:
        return list(enumerate(threads))
    if not 0 <= index < len(threads):
        raise StacklensError(f"Thread {index} does not exist; the profile has {len(threads)} thread(s)")
    return [(index, threads[index])]


def tree_command(args: argparse.Namespace, console: Optional[Console] = None) -> int:
    """Print the call tree of each selected thread.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command-line arguments
    console : Console, optional
        Console to print to, by default a new stdout console

    Returns
    -------
    int
        Exit code (0 for success, 1 for error)
    """
    console = console or Console()
    try:
        config = resolve_config(args)
        _apply_config_log_level(args, config)
        threads = load_profile(args.profile)
        transforms = parse_transforms(config.transforms)
        matcher = config.matcher()

        for _, thread in _select_threads(threads, args.thread):
            labels = get_transform_labels(thread, thread.name, transforms)
            tree = compute_call_tree(
                thread,
                transforms,
                implementation=config.implementation,
                inverted=config.inverted,
                matcher=matcher,
            )
            title = " › ".join(labels)
            if config.inverted:
                title += " (inverted)"
            console.print(render_call_tree(tree, title, config.max_depth, config.show_lib))
        return 0

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1

    except (StacklensError, ValidationError, ValueError) as e:
        logger.error(f"Error building call tree: {e}")
        return 1


def transforms_command(args: argparse.Namespace, console: Optional[Console] = None) -> int:
    """Decode a transform token and print it as a table."""
    console = console or Console()
    try:
        transforms = parse_transforms(args.token)
        thread = None
        labels = None
        if args.profile is not None:
            _, thread = _select_threads(load_profile(args.profile), args.thread)[0]
            labels = get_transform_labels(thread, thread.name, transforms)[1:]

        console.print(render_transform_table(transforms, labels, thread))
        console.print(f"Canonical token: [bold]{stringify_transforms(transforms) or '(empty)'}[/]")
        return 0

    except FileNotFoundError as e:
        logger.error(f"Profile file not found: {e}")
        return 1

    except StacklensError as e:
        logger.error(f"Error decoding transforms: {e}")
        return 1


def check_thread(thread: Thread) -> List[str]:
    """Return the problems found in a thread's stack table and samples."""
    problems = []
    violation = find_forest_violation(thread.stack_table)
    if violation is not None:
        problems.append(f"stack {violation} has a broken prefix chain")
    for index, prefix in enumerate(thread.stack_table.prefix):
        if prefix is not None and prefix >= index:
            problems.append(f"stack {index} is stored before its prefix {prefix}")
            break
    for sample, stack in enumerate(thread.samples.stack):
        if stack is not None and not 0 <= stack < thread.stack_table.length:
            problems.append(f"sample {sample} references missing stack {stack}")
            break
    return problems


def check_command(args: argparse.Namespace, console: Optional[Console] = None) -> int:
    """Apply the transform stack to each thread and verify the result."""
    console = console or Console()
    try:
        config = resolve_config(args)
        _apply_config_log_level(args, config)
        threads = load_profile(args.profile)
        transforms = parse_transforms(config.transforms)
        matcher = config.matcher()

        table = Table(title="Transform Check", show_header=True, header_style="bold magenta")
        table.add_column("Thread", style="cyan")
        table.add_column("Stacks", justify="right")
        table.add_column("Samples kept", justify="right")
        table.add_column("Status")

        failed = False
        for index, thread in _select_threads(threads, args.thread):
            transformed = apply_transform_stack(thread, transforms, matcher)
            problems = check_thread(transformed)
            kept = sum(1 for stack in transformed.samples.stack if stack is not None)
            status = "[green]ok[/]" if not problems else "[red]" + "; ".join(problems) + "[/]"
            failed = failed or bool(problems)
            table.add_row(
                f"{index}: {thread.name}",
                str(transformed.stack_table.length),
                f"{kept}/{transformed.samples.length}",
                status,
            )

        console.print(table)
        if failed:
            logger.error("Transformed stack tables failed verification")
            return 1
        return 0

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1

    except (StacklensError, ValidationError, ValueError) as e:
        logger.error(f"Error checking profile: {e}")
        return 1


def help_command(args: argparse.Namespace, console: Optional[Console] = None) -> int:
    ConfigValidator.print_help_topic(args.topic, console)
    return 0

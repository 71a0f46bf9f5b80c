"""Rich renderables for call trees and transform stacks."""

from __future__ import annotations

from typing import Optional, Sequence

from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from stacklens.profiling.call_tree import CallTree
from stacklens.profiling.tables import Thread
from stacklens.profiling.transform_types import PATH_TRANSFORM_CLASSES, Transform


_STACK_TYPE_STYLES = {
    "native": "cyan",
    "js": "yellow",
    "unsymbolicated": "dim",
}


def format_node_label(tree: CallTree, call_node: int, show_lib: bool = True) -> str:
    data = tree.get_display_data(call_node)
    style = _STACK_TYPE_STYLES.get(data.stack_type, "white")
    label = f"[bold]{data.total_percent:>4}[/] {data.total} • self {data.self}  [{style}]{escape(data.name)}[/]"
    if show_lib and data.lib:
        label += f" [dim]{escape(data.lib)}[/]"
    return label


def _add_children(
    tree: CallTree,
    call_node: int,
    branch: Tree,
    max_depth: Optional[int],
    show_lib: bool,
) -> None:
    for child in tree.get_children(call_node):
        child_branch = branch.add(format_node_label(tree, child, show_lib))
        if max_depth is None or tree.get_depth(child) + 1 < max_depth:
            _add_children(tree, child, child_branch, max_depth, show_lib)
        elif tree.has_children(child):
            child_branch.add("[dim]…[/]")


def render_call_tree(
    tree: CallTree,
    title: str,
    max_depth: Optional[int] = None,
    show_lib: bool = True,
) -> Tree:
    """Build a rich Tree of every visible call node down to ``max_depth`` levels."""
    root_total = tree.root_total
    root = Tree(f"[b]{escape(title)}[/] • {root_total:g} samples")
    _add_children(tree, -1, root, max_depth, show_lib)
    return root


def _describe_path(thread: Optional[Thread], path: Sequence[int]) -> str:
    if thread is None:
        return ", ".join(str(func) for func in path)
    return " → ".join(thread.func_label(func) for func in path)


def render_transform_table(
    transforms: Sequence[Transform],
    labels: Optional[Sequence[str]] = None,
    thread: Optional[Thread] = None,
) -> Table:
    table = Table(title="Transform Stack", show_header=True, header_style="bold magenta")
    table.add_column("#", style="cyan", no_wrap=True)
    table.add_column("Type", style="white")
    table.add_column("Implementation", style="green")
    table.add_column("Inverted")
    table.add_column("Target")
    if labels is not None:
        table.add_column("Label", style="yellow")

    for index, transform in enumerate(transforms):
        if isinstance(transform, PATH_TRANSFORM_CLASSES):
            target = transform.call_node_path
            inverted = "yes" if transform.inverted else "no"
        else:
            target = (transform.func_index,)
            inverted = "-"
        row = [
            str(index + 1),
            transform.type.value,
            getattr(transform, "implementation", "-"),
            inverted,
            escape(_describe_path(thread, target)),
        ]
        if labels is not None:
            row.append(escape(labels[index]))
        table.add_row(*row)
    return table

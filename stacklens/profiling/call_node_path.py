# stacklens/profiling/call_node_path.py
"""Helpers for CallNodePaths.

Paths are tuples of func indices, so equality and hashing come for free.
``hash_path`` gives the string form used when paths are persisted or
compared across processes, and ``PathSet`` is a set of paths keyed by it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Iterator, List, Optional, Sequence

from stacklens.profiling.implementation import DEFAULT_MATCHER, FuncMatcher
from stacklens.profiling.tables import Thread
from stacklens.profiling.transform_types import (
    FUNC_TRANSFORM_CLASSES,
    CollapseDirectRecursion,
    CollapseFunctionSubtree,
    DropFunction,
    FocusFunction,
    FocusSubtree,
    MergeCallNode,
    MergeFunction,
    MergeSubtree,
    Transform,
)
from stacklens.profiling.transforms import find_matching_stack
from stacklens.types import CallNodePath, FuncToFuncMap, ImplementationFilter


if TYPE_CHECKING:
    from stacklens.profiling.call_tree import CallTree


def hash_path(path: Sequence[int]) -> str:
    return ",".join(str(func) for func in path)


def paths_equal(a: Sequence[int], b: Sequence[int]) -> bool:
    return tuple(a) == tuple(b)


def call_node_path_has_prefix_path(prefix_path: CallNodePath, path: CallNodePath) -> bool:
    return len(prefix_path) <= len(path) and path[: len(prefix_path)] == tuple(prefix_path)


class PathSet:
    """A set of CallNodePaths that iterates in insertion order."""

    def __init__(self, paths: Optional[Iterable[Sequence[int]]] = None):
        self._paths: dict[str, CallNodePath] = {}
        for path in paths or ():
            self.add(path)

    def add(self, path: Sequence[int]) -> None:
        self._paths.setdefault(hash_path(path), tuple(path))

    def discard(self, path: Sequence[int]) -> None:
        self._paths.pop(hash_path(path), None)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (tuple, list)):
            return False
        return hash_path(path) in self._paths

    def __iter__(self) -> Iterator[CallNodePath]:
        return iter(list(self._paths.values()))

    def copy(self) -> PathSet:
        return PathSet(self._paths.values())

    def __len__(self) -> int:
        return len(self._paths)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PathSet):
            return NotImplemented
        return set(self._paths) == set(other._paths)

    def __repr__(self) -> str:
        return f"PathSet({list(self._paths.values())!r})"


def _collapse_direct_recursion_in_path(func_index: int, path: CallNodePath) -> CallNodePath:
    collapsed: List[int] = []
    for func in path:
        if func != func_index or not collapsed or collapsed[-1] != func_index:
            collapsed.append(func)
    return tuple(collapsed)


def _apply_func_transform_to_path(path: CallNodePath, transform: Transform) -> CallNodePath:
    func_index = transform.func_index
    if isinstance(transform, FocusFunction):
        return path[path.index(func_index) :] if func_index in path else ()
    if isinstance(transform, MergeFunction):
        return tuple(func for func in path if func != func_index)
    if isinstance(transform, DropFunction):
        return () if func_index in path else path
    if isinstance(transform, CollapseFunctionSubtree):
        return path[: path.index(func_index) + 1] if func_index in path else path
    if isinstance(transform, CollapseDirectRecursion):
        return _collapse_direct_recursion_in_path(func_index, path)
    return path


def apply_transform_to_call_node_path(path: CallNodePath, transform: Transform) -> CallNodePath:
    """Translate a path taken before ``transform`` into the transformed tree.

    For path transforms the path must have the same orientation as the
    transform. Function transforms read it root first.
    """
    path = tuple(path)
    if isinstance(transform, FUNC_TRANSFORM_CLASSES):
        return _apply_func_transform_to_path(path, transform)

    prefix_path = transform.call_node_path
    if not prefix_path:
        return path
    if not call_node_path_has_prefix_path(prefix_path, path):
        # Outside a focused subtree nothing remains to select.
        return () if isinstance(transform, FocusSubtree) else path

    if isinstance(transform, FocusSubtree):
        return path[len(prefix_path) - 1 :]
    if isinstance(transform, MergeCallNode):
        merged = len(prefix_path) - 1
        return path[:merged] + path[merged + 1 :]
    if isinstance(transform, MergeSubtree):
        return path[: len(prefix_path) - 1]
    return path


def apply_func_map_to_path(path: CallNodePath, old_func_to_new_func: FuncToFuncMap) -> CallNodePath:
    return tuple(old_func_to_new_func.get(func, func) for func in path)


def apply_func_map_to_path_set(path_set: Iterable[CallNodePath], old_func_to_new_func: FuncToFuncMap) -> PathSet:
    return PathSet(apply_func_map_to_path(path, old_func_to_new_func) for path in path_set)


def apply_func_map_to_transform(transform: Transform, old_func_to_new_func: FuncToFuncMap) -> Transform:
    if isinstance(transform, FUNC_TRANSFORM_CLASSES):
        func_index = transform.func_index
        return transform.with_func(old_func_to_new_func.get(func_index, func_index))
    return transform.with_path(apply_func_map_to_path(transform.call_node_path, old_func_to_new_func))


def apply_func_map_to_transform_stack(
    transforms: Iterable[Transform], old_func_to_new_func: FuncToFuncMap
) -> List[Transform]:
    return [apply_func_map_to_transform(t, old_func_to_new_func) for t in transforms]


def restore_all_functions_in_call_node_path(
    thread: Thread,
    previous_implementation: ImplementationFilter,
    path: CallNodePath,
    matcher: FuncMatcher = DEFAULT_MATCHER,
) -> CallNodePath:
    """Expand a path taken under a filter into the full path of the first matching stack.

    Returns ``()`` when no stack matches.
    """
    stack = find_matching_stack(thread, path, previous_implementation, matcher)
    if stack is None:
        return ()
    return thread.get_func_path(stack)


def invert_call_node_path(path: CallNodePath, call_tree: CallTree) -> CallNodePath:
    """Extend ``path`` along its heaviest children to a leaf and reverse it.

    The result is the postfix path of the same node in the inverted tree.
    """
    node = call_tree.get_node_index_from_path(path)
    if node is None:
        return ()
    children = call_tree.get_children(node)
    while children:
        node = children[0]
        children = call_tree.get_children(node)
    return tuple(reversed(call_tree.get_call_node_path(node)))

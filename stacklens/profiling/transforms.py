# stacklens/profiling/transforms.py
"""Apply transforms to a thread's stack table.

Every function here takes a thread and returns a new one; the input thread
and its tables are never mutated. Old stacks are mapped to new stacks
through a list sized to the old stack table. Reading an entry that was never
written is an internal error and raises ``StackTranslationError``.

Functions hidden by the active implementation filter are transparent while
matching a path: they neither advance nor break the match.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Sequence

import numpy as np
from loguru import logger

from stacklens.profiling.errors import StackTranslationError, UnknownTransformError
from stacklens.profiling.implementation import DEFAULT_MATCHER, FuncMatcher
from stacklens.profiling.tables import StackTable, Thread, update_thread_stacks
from stacklens.profiling.transform_types import (
    CollapseDirectRecursion,
    CollapseFunctionSubtree,
    DropFunction,
    FocusFunction,
    FocusSubtree,
    MergeCallNode,
    MergeFunction,
    MergeSubtree,
    TRANSFORM_CLASSES,
    Transform,
)
from stacklens.types import CallNodePath, ImplementationFilter, IndexIntoFuncTable, OptionalStack
from stacklens.utils.timing import timed


class _Untranslated:
    def __repr__(self) -> str:
        return "<untranslated>"


UNTRANSLATED = _Untranslated()


def _new_translation(length: int) -> list:
    return [UNTRANSLATED] * length


def _translate(old_to_new: list, stack: int, transform_name: str) -> OptionalStack:
    new_stack = old_to_new[stack]
    if new_stack is UNTRANSLATED:
        raise StackTranslationError(stack, transform_name)
    return new_stack


def _sample_converter(old_to_new: list, transform_name: str) -> Callable[[OptionalStack], OptionalStack]:
    def convert_stack(stack: OptionalStack) -> OptionalStack:
        if stack is None:
            return None
        return _translate(old_to_new, stack, transform_name)

    return convert_stack


def _match_postfix(
    thread: Thread,
    leaf: int,
    postfix_path: CallNodePath,
    func_matches: Callable[[Thread, int], bool],
) -> OptionalStack:
    """Walk up from ``leaf`` and return the stack where ``postfix_path`` fully matched.

    Returns ``None`` on the first visible mismatch or when the root is reached
    first.
    """
    matched = 0
    depth = len(postfix_path)
    for stack in thread.iter_stack_ancestry(leaf):
        func = thread.stack_func(stack)
        if func == postfix_path[matched]:
            matched += 1
            if matched == depth:
                return stack
        elif func_matches(thread, func):
            return None
    return None


def focus_subtree(
    thread: Thread,
    call_node_path: CallNodePath,
    implementation: ImplementationFilter,
    matcher: FuncMatcher = DEFAULT_MATCHER,
) -> Thread:
    """Keep only the subtree under ``call_node_path``, re-rooted at its last func."""
    with timed("focus_subtree"):
        prefix_depth = len(call_node_path)
        stack_table = thread.stack_table
        frame_func = thread.frame_table.func
        func_matches = matcher.predicate(implementation)

        # Number of path elements matched by each stack, -1 once the match failed.
        stack_matches = np.full(stack_table.length, -1, dtype=np.int32)
        old_to_new = _new_translation(stack_table.length)
        new_stack_table = StackTable()

        for stack_index in range(stack_table.length):
            prefix = stack_table.prefix[stack_index]
            prefix_matches_up_to = 0 if prefix is None else int(stack_matches[prefix])
            if prefix_matches_up_to == -1:
                continue

            frame = stack_table.frame[stack_index]
            if prefix_matches_up_to == prefix_depth:
                stack_matches_up_to = prefix_depth
            else:
                func = frame_func[frame]
                if func == call_node_path[prefix_matches_up_to]:
                    stack_matches_up_to = prefix_matches_up_to + 1
                elif not func_matches(thread, func):
                    stack_matches_up_to = prefix_matches_up_to
                else:
                    stack_matches_up_to = -1
            stack_matches[stack_index] = stack_matches_up_to

            if stack_matches_up_to == prefix_depth:
                if prefix is not None and stack_matches[prefix] == prefix_depth:
                    new_prefix = _translate(old_to_new, prefix, "focus_subtree")
                else:
                    new_prefix = None
                old_to_new[stack_index] = new_stack_table.append(frame, new_prefix)

        def convert_stack(stack: OptionalStack) -> OptionalStack:
            if stack is None or stack_matches[stack] != prefix_depth:
                return None
            return _translate(old_to_new, stack, "focus_subtree")

        return update_thread_stacks(thread, new_stack_table, convert_stack)


def focus_inverted_subtree(
    thread: Thread,
    postfix_path: CallNodePath,
    implementation: ImplementationFilter,
    matcher: FuncMatcher = DEFAULT_MATCHER,
) -> Thread:
    """Keep samples whose stacks end with ``postfix_path``, cut where the path ends.

    Only the samples are rewritten; the truncated stacks already exist in the
    stack table, so it is shared with the input thread.
    """
    if not postfix_path:
        return thread

    with timed("focus_inverted_subtree"):
        func_matches = matcher.predicate(implementation)
        converted: dict[int, OptionalStack] = {}

        def convert_stack(leaf: OptionalStack) -> OptionalStack:
            if leaf is None:
                return None
            if leaf not in converted:
                converted[leaf] = _match_postfix(thread, leaf, postfix_path, func_matches)
            return converted[leaf]

        return update_thread_stacks(thread, thread.stack_table, convert_stack)


def merge_call_node(
    thread: Thread,
    call_node_path: CallNodePath,
    implementation: ImplementationFilter,
    matcher: FuncMatcher = DEFAULT_MATCHER,
) -> Thread:
    """Remove the call node at ``call_node_path``, splicing its children into its caller."""
    with timed("merge_call_node"):
        stack_table = thread.stack_table
        frame_func = thread.frame_table.func
        func_matches = matcher.predicate(implementation)
        depth_at_call_node_path_leaf = len(call_node_path) - 1

        # Index of the last matched path element per stack, and whether the match holds.
        stack_depths = np.full(stack_table.length, -1, dtype=np.int32)
        stack_matches = np.zeros(stack_table.length, dtype=bool)
        old_to_new = _new_translation(stack_table.length)
        new_stack_table = StackTable()

        for stack_index in range(stack_table.length):
            prefix = stack_table.prefix[stack_index]
            frame = stack_table.frame[stack_index]
            func = frame_func[frame]

            does_prefix_match = prefix is None or bool(stack_matches[prefix])
            stack_depth = -1 if prefix is None else int(stack_depths[prefix])

            does_match = False
            do_merge = False
            if does_prefix_match and stack_depth < depth_at_call_node_path_leaf:
                if func == call_node_path[stack_depth + 1]:
                    does_match = True
                    if stack_depth + 1 == depth_at_call_node_path_leaf:
                        do_merge = True
                    else:
                        stack_depth += 1
                elif not func_matches(thread, func):
                    does_match = True
            stack_matches[stack_index] = does_match
            stack_depths[stack_index] = stack_depth

            new_prefix = None if prefix is None else _translate(old_to_new, prefix, "merge_call_node")
            if do_merge:
                old_to_new[stack_index] = new_prefix
            else:
                old_to_new[stack_index] = new_stack_table.append(frame, new_prefix)

        return update_thread_stacks(
            thread, new_stack_table, _sample_converter(old_to_new, "merge_call_node")
        )


def _find_inverted_matches(
    thread: Thread,
    postfix_path: CallNodePath,
    func_matches: Callable[[Thread, int], bool],
) -> dict[int, OptionalStack]:
    """Map each distinct sampled leaf to the stack where ``postfix_path`` matched."""
    checked = np.zeros(thread.stack_table.length, dtype=bool)
    matches: dict[int, OptionalStack] = {}
    for leaf in thread.samples.stack:
        if leaf is None or checked[leaf]:
            continue
        checked[leaf] = True
        matches[leaf] = _match_postfix(thread, leaf, postfix_path, func_matches)
    return matches


def merge_inverted_call_node(
    thread: Thread,
    postfix_path: CallNodePath,
    implementation: ImplementationFilter,
    matcher: FuncMatcher = DEFAULT_MATCHER,
) -> Thread:
    """Merge the node at ``postfix_path`` of the inverted tree.

    The stack where the postfix matched is elided from the chain of every
    stack that has it as an ancestor.
    """
    if not postfix_path:
        return thread

    with timed("merge_inverted_call_node"):
        stack_table = thread.stack_table
        func_matches = matcher.predicate(implementation)

        needs_merge = np.zeros(stack_table.length, dtype=bool)
        for matched_stack in _find_inverted_matches(thread, postfix_path, func_matches).values():
            if matched_stack is not None:
                needs_merge[matched_stack] = True

        old_to_new = _new_translation(stack_table.length)
        new_stack_table = StackTable()
        for stack_index in range(stack_table.length):
            prefix = stack_table.prefix[stack_index]
            new_prefix = (
                None if prefix is None else _translate(old_to_new, prefix, "merge_inverted_call_node")
            )
            if needs_merge[stack_index]:
                old_to_new[stack_index] = new_prefix
            else:
                old_to_new[stack_index] = new_stack_table.append(
                    stack_table.frame[stack_index], new_prefix
                )

        return update_thread_stacks(
            thread, new_stack_table, _sample_converter(old_to_new, "merge_inverted_call_node")
        )


def merge_subtree(
    thread: Thread,
    call_node_path: CallNodePath,
    implementation: ImplementationFilter,
    matcher: FuncMatcher = DEFAULT_MATCHER,
) -> Thread:
    """Remove the call node at ``call_node_path`` together with its descendants.

    Samples from the removed subtree are attributed to the node's caller. A
    root node has no caller, so its samples are dropped.
    """
    if not call_node_path:
        return thread

    with timed("merge_subtree"):
        stack_table = thread.stack_table
        frame_func = thread.frame_table.func
        func_matches = matcher.predicate(implementation)
        depth_at_call_node_path_leaf = len(call_node_path) - 1

        stack_depths = np.full(stack_table.length, -1, dtype=np.int32)
        stack_matches = np.zeros(stack_table.length, dtype=bool)
        in_merged_subtree = np.zeros(stack_table.length, dtype=bool)
        old_to_new = _new_translation(stack_table.length)
        new_stack_table = StackTable()

        for stack_index in range(stack_table.length):
            prefix = stack_table.prefix[stack_index]
            new_prefix = None if prefix is None else _translate(old_to_new, prefix, "merge_subtree")

            if prefix is not None and in_merged_subtree[prefix]:
                in_merged_subtree[stack_index] = True
                old_to_new[stack_index] = new_prefix
                continue

            frame = stack_table.frame[stack_index]
            func = frame_func[frame]
            does_prefix_match = prefix is None or bool(stack_matches[prefix])
            stack_depth = -1 if prefix is None else int(stack_depths[prefix])

            is_target = False
            if does_prefix_match and stack_depth < depth_at_call_node_path_leaf:
                if func == call_node_path[stack_depth + 1]:
                    stack_matches[stack_index] = True
                    stack_depth += 1
                    is_target = stack_depth == depth_at_call_node_path_leaf
                elif not func_matches(thread, func):
                    stack_matches[stack_index] = True
            stack_depths[stack_index] = stack_depth

            if is_target:
                in_merged_subtree[stack_index] = True
                old_to_new[stack_index] = new_prefix
            else:
                old_to_new[stack_index] = new_stack_table.append(frame, new_prefix)

        return update_thread_stacks(
            thread, new_stack_table, _sample_converter(old_to_new, "merge_subtree")
        )


def merge_inverted_subtree(
    thread: Thread,
    postfix_path: CallNodePath,
    implementation: ImplementationFilter,
    matcher: FuncMatcher = DEFAULT_MATCHER,
) -> Thread:
    """Remove the node at ``postfix_path`` of the inverted tree with all its callers.

    Matching samples are re-rooted just below the stack where the postfix
    matched, so in the inverted view they end at the node's parent. With a
    single-element path there is no parent left and the samples are dropped.
    """
    if not postfix_path:
        return thread

    with timed("merge_inverted_subtree"):
        stack_table = thread.stack_table
        func_matches = matcher.predicate(implementation)
        matches = _find_inverted_matches(thread, postfix_path, func_matches)

        new_stack_table = stack_table.copy()
        prefix_and_frame_to_stack: dict[tuple[OptionalStack, int], int] = {}
        rerooted: dict[int, OptionalStack] = {}

        for leaf, cut_stack in matches.items():
            if cut_stack is None:
                rerooted[leaf] = leaf
                continue
            chain: List[int] = []
            for stack in thread.iter_stack_ancestry(leaf):
                if stack == cut_stack:
                    break
                chain.append(stack)

            new_stack: OptionalStack = None
            for stack in reversed(chain):
                key = (new_stack, stack_table.frame[stack])
                existing = prefix_and_frame_to_stack.get(key)
                if existing is None:
                    existing = new_stack_table.append(key[1], new_stack)
                    prefix_and_frame_to_stack[key] = existing
                new_stack = existing
            rerooted[leaf] = new_stack

        def convert_stack(stack: OptionalStack) -> OptionalStack:
            if stack is None:
                return None
            if stack not in rerooted:
                raise StackTranslationError(stack, "merge_inverted_subtree")
            return rerooted[stack]

        return update_thread_stacks(thread, new_stack_table, convert_stack)


def focus_function(thread: Thread, func_index: IndexIntoFuncTable) -> Thread:
    """Re-root every stack at its outermost call of ``func_index``.

    Samples whose stacks never call the function are dropped.
    """
    with timed("focus_function"):
        stack_table = thread.stack_table
        frame_func = thread.frame_table.func
        old_to_new = _new_translation(stack_table.length)
        new_stack_table = StackTable()

        for stack_index in range(stack_table.length):
            prefix = stack_table.prefix[stack_index]
            frame = stack_table.frame[stack_index]
            new_prefix = None if prefix is None else _translate(old_to_new, prefix, "focus_function")
            if new_prefix is not None or frame_func[frame] == func_index:
                old_to_new[stack_index] = new_stack_table.append(frame, new_prefix)
            else:
                old_to_new[stack_index] = None

        return update_thread_stacks(
            thread, new_stack_table, _sample_converter(old_to_new, "focus_function")
        )


def merge_function(thread: Thread, func_index: IndexIntoFuncTable) -> Thread:
    """Remove every frame of ``func_index``, giving its time to the callers."""
    with timed("merge_function"):
        stack_table = thread.stack_table
        frame_func = thread.frame_table.func
        old_to_new = _new_translation(stack_table.length)
        new_stack_table = StackTable()

        for stack_index in range(stack_table.length):
            prefix = stack_table.prefix[stack_index]
            frame = stack_table.frame[stack_index]
            new_prefix = None if prefix is None else _translate(old_to_new, prefix, "merge_function")
            if frame_func[frame] == func_index:
                old_to_new[stack_index] = new_prefix
            else:
                old_to_new[stack_index] = new_stack_table.append(frame, new_prefix)

        return update_thread_stacks(
            thread, new_stack_table, _sample_converter(old_to_new, "merge_function")
        )


def drop_function(thread: Thread, func_index: IndexIntoFuncTable) -> Thread:
    """Drop every sample that has ``func_index`` anywhere on its stack.

    The stack table is shared with the input thread.
    """
    with timed("drop_function"):
        stack_table = thread.stack_table
        frame_func = thread.frame_table.func
        contains_func = np.zeros(stack_table.length, dtype=bool)
        for stack_index in range(stack_table.length):
            prefix = stack_table.prefix[stack_index]
            if frame_func[stack_table.frame[stack_index]] == func_index or (
                prefix is not None and contains_func[prefix]
            ):
                contains_func[stack_index] = True

        def convert_stack(stack: OptionalStack) -> OptionalStack:
            if stack is None or contains_func[stack]:
                return None
            return stack

        return update_thread_stacks(thread, stack_table, convert_stack)


def collapse_function_subtree(thread: Thread, func_index: IndexIntoFuncTable) -> Thread:
    """Attribute everything called from ``func_index`` to the function itself."""
    with timed("collapse_function_subtree"):
        stack_table = thread.stack_table
        frame_func = thread.frame_table.func
        collapsed = np.zeros(stack_table.length, dtype=bool)
        old_to_new = _new_translation(stack_table.length)
        new_stack_table = StackTable()

        for stack_index in range(stack_table.length):
            prefix = stack_table.prefix[stack_index]
            if prefix is not None and collapsed[prefix]:
                collapsed[stack_index] = True
                old_to_new[stack_index] = _translate(old_to_new, prefix, "collapse_function_subtree")
                continue

            frame = stack_table.frame[stack_index]
            new_prefix = (
                None if prefix is None else _translate(old_to_new, prefix, "collapse_function_subtree")
            )
            old_to_new[stack_index] = new_stack_table.append(frame, new_prefix)
            if frame_func[frame] == func_index:
                collapsed[stack_index] = True

        return update_thread_stacks(
            thread, new_stack_table, _sample_converter(old_to_new, "collapse_function_subtree")
        )


def collapse_direct_recursion(
    thread: Thread,
    func_index: IndexIntoFuncTable,
    implementation: ImplementationFilter,
    matcher: FuncMatcher = DEFAULT_MATCHER,
) -> Thread:
    """Collapse directly recursive calls of ``func_index`` into the outermost call.

    Inner calls are re-parented to the outermost call's caller, so sibling
    stacks of the same function merge into one call node. Stack indices do
    not change; only the prefix column is rewritten. Functions hidden by
    ``implementation`` keep a recursion chain going without being skipped.
    """
    with timed("collapse_direct_recursion"):
        stack_table = thread.stack_table
        frame_func = thread.frame_table.func
        func_matches = matcher.predicate(implementation)

        # Caller of the outermost recursive call, for stacks inside a chain.
        chain_prefix: dict[int, OptionalStack] = {}
        new_prefix_column = list(stack_table.prefix)

        for stack_index in range(stack_table.length):
            prefix = stack_table.prefix[stack_index]
            func = frame_func[stack_table.frame[stack_index]]
            if prefix is None or prefix not in chain_prefix:
                if func == func_index:
                    chain_prefix[stack_index] = prefix
            elif not func_matches(thread, func):
                chain_prefix[stack_index] = chain_prefix[prefix]
            elif func == func_index:
                chain_prefix[stack_index] = chain_prefix[prefix]
                new_prefix_column[stack_index] = chain_prefix[prefix]

        new_stack_table = StackTable(
            frame=list(stack_table.frame), prefix=new_prefix_column, length=stack_table.length
        )
        return replace(thread, stack_table=new_stack_table)


def apply_transform(
    thread: Thread,
    transform: Transform,
    matcher: FuncMatcher = DEFAULT_MATCHER,
) -> Thread:
    """Dispatch one transform to the function that implements it."""
    if not isinstance(transform, TRANSFORM_CLASSES):
        raise UnknownTransformError(transform)
    if isinstance(transform, FocusFunction):
        return focus_function(thread, transform.func_index)
    if isinstance(transform, MergeFunction):
        return merge_function(thread, transform.func_index)
    if isinstance(transform, DropFunction):
        return drop_function(thread, transform.func_index)
    if isinstance(transform, CollapseFunctionSubtree):
        return collapse_function_subtree(thread, transform.func_index)
    if isinstance(transform, CollapseDirectRecursion):
        return collapse_direct_recursion(thread, transform.func_index, transform.implementation, matcher)

    path = transform.call_node_path
    implementation = transform.implementation
    if isinstance(transform, FocusSubtree):
        if transform.inverted:
            return focus_inverted_subtree(thread, path, implementation, matcher)
        return focus_subtree(thread, path, implementation, matcher)
    if isinstance(transform, MergeCallNode):
        if transform.inverted:
            return merge_inverted_call_node(thread, path, implementation, matcher)
        return merge_call_node(thread, path, implementation, matcher)
    if isinstance(transform, MergeSubtree):
        if transform.inverted:
            return merge_inverted_subtree(thread, path, implementation, matcher)
        return merge_subtree(thread, path, implementation, matcher)
    raise UnknownTransformError(transform)


def apply_transform_stack(
    thread: Thread,
    transforms: Iterable[Transform],
    matcher: FuncMatcher = DEFAULT_MATCHER,
) -> Thread:
    """Apply ``transforms`` in order."""
    for transform in transforms:
        logger.debug(f"Applying {transform!r} to thread {thread.name!r}")
        thread = apply_transform(thread, transform, matcher)
    return thread


_LABEL_PREFIXES = {
    FocusSubtree: "Focus Node",
    MergeCallNode: "Merge Node",
    MergeSubtree: "Merge Subtree",
    FocusFunction: "Focus",
    MergeFunction: "Merge",
    DropFunction: "Drop",
    CollapseFunctionSubtree: "Collapse",
    CollapseDirectRecursion: "Collapse recursion",
}


def get_transform_label(thread: Thread, transform: Transform) -> str:
    prefix = _LABEL_PREFIXES.get(type(transform))
    if prefix is None:
        raise UnknownTransformError(transform)
    leaf = transform.leaf_func
    func_name = "(root)" if leaf is None else thread.func_label(leaf)
    return f"{prefix}: {func_name}"


def get_transform_labels(
    thread: Thread,
    thread_name: str,
    transforms: Sequence[Transform],
) -> list[str]:
    """Breadcrumb labels for a transform stack, starting with the untransformed thread."""
    labels = [f"Complete '{thread_name}'"]
    labels.extend(get_transform_label(thread, transform) for transform in transforms)
    return labels


def find_matching_stack(
    thread: Thread,
    call_node_path: CallNodePath,
    implementation: ImplementationFilter,
    matcher: FuncMatcher = DEFAULT_MATCHER,
) -> Optional[int]:
    """Return the first stack whose visible funcs are exactly ``call_node_path``."""
    if not call_node_path:
        return None
    stack_table = thread.stack_table
    frame_func = thread.frame_table.func
    func_matches = matcher.predicate(implementation)
    depth = len(call_node_path)
    stack_matches = np.full(stack_table.length, -1, dtype=np.int32)

    for stack_index in range(stack_table.length):
        prefix = stack_table.prefix[stack_index]
        prefix_matches_up_to = 0 if prefix is None else int(stack_matches[prefix])
        if prefix_matches_up_to == -1:
            continue
        func = frame_func[stack_table.frame[stack_index]]
        if func == call_node_path[prefix_matches_up_to]:
            stack_matches[stack_index] = prefix_matches_up_to + 1
            if prefix_matches_up_to + 1 == depth:
                return stack_index
        elif not func_matches(thread, func):
            stack_matches[stack_index] = prefix_matches_up_to
    return None

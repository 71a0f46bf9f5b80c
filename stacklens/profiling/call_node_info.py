# stacklens/profiling/call_node_info.py
"""Derive the logical call tree from a thread's stack table.

Several stacks can describe the same call node: they differ in frame (line,
JIT tier) but share the function at every level. The call node table merges
them by ``(prefix call node, func)``, the identity a CallNodePath refers to.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional

import numpy as np

from stacklens.profiling.implementation import DEFAULT_MATCHER, FuncMatcher
from stacklens.profiling.tables import StackTable, Thread, update_thread_stacks
from stacklens.types import (
    CallNodePath,
    ImplementationFilter,
    IndexIntoCallNodeTable,
    IndexIntoFuncTable,
    OptionalStack,
)
from stacklens.utils.timing import timed


@dataclass
class CallNodeTable:
    """Columns of the call node table; ``prefix`` is -1 for roots."""

    prefix: np.ndarray
    func: np.ndarray
    depth: np.ndarray
    length: int


@dataclass
class CallNodeInfo:
    call_node_table: CallNodeTable
    stack_index_to_call_node: np.ndarray
    _index: dict[tuple[int, int], int] = field(default_factory=dict, repr=False)

    def get_call_node_index(
        self, prefix: IndexIntoCallNodeTable, func: IndexIntoFuncTable
    ) -> Optional[IndexIntoCallNodeTable]:
        return self._index.get((prefix, func))

    def get_call_node_index_from_path(self, path: CallNodePath) -> Optional[IndexIntoCallNodeTable]:
        """Resolve a root-to-node path, or ``None`` if the tree has no such node."""
        call_node: IndexIntoCallNodeTable = -1
        for func in path:
            found = self._index.get((call_node, func))
            if found is None:
                return None
            call_node = found
        return None if call_node == -1 else call_node

    def get_call_node_path(self, call_node: IndexIntoCallNodeTable) -> CallNodePath:
        table = self.call_node_table
        path = []
        while call_node != -1:
            path.append(int(table.func[call_node]))
            call_node = int(table.prefix[call_node])
        path.reverse()
        return tuple(path)


def compute_call_node_info(thread: Thread) -> CallNodeInfo:
    """Build the call node table and the stack → call node mapping."""
    with timed("compute_call_node_info"):
        stack_table = thread.stack_table
        frame_func = thread.frame_table.func
        stack_to_call_node = np.empty(stack_table.length, dtype=np.int32)

        prefix_column: list[int] = []
        func_column: list[int] = []
        depth_column: list[int] = []
        index: dict[tuple[int, int], int] = {}

        for stack_index in range(stack_table.length):
            prefix_stack = stack_table.prefix[stack_index]
            prefix_call_node = -1 if prefix_stack is None else int(stack_to_call_node[prefix_stack])
            func = frame_func[stack_table.frame[stack_index]]
            key = (prefix_call_node, func)
            call_node = index.get(key)
            if call_node is None:
                call_node = len(func_column)
                prefix_column.append(prefix_call_node)
                func_column.append(func)
                depth_column.append(0 if prefix_call_node == -1 else depth_column[prefix_call_node] + 1)
                index[key] = call_node
            stack_to_call_node[stack_index] = call_node

        call_node_table = CallNodeTable(
            prefix=np.array(prefix_column, dtype=np.int32),
            func=np.array(func_column, dtype=np.int32),
            depth=np.array(depth_column, dtype=np.int32),
            length=len(func_column),
        )
        return CallNodeInfo(call_node_table, stack_to_call_node, index)


def get_sample_call_nodes(thread: Thread, info: CallNodeInfo) -> np.ndarray:
    """Call node of every sample, -1 for samples without a stack."""
    mapping = info.stack_index_to_call_node
    return np.array(
        [-1 if stack is None else mapping[stack] for stack in thread.samples.stack],
        dtype=np.int32,
    )


@dataclass
class CallTreeTimings:
    self_time: np.ndarray
    total_time: np.ndarray
    root_total: float


def compute_call_tree_timings(thread: Thread, info: CallNodeInfo) -> CallTreeTimings:
    """Sum sample weights into per-node self and total columns."""
    length = info.call_node_table.length
    sample_call_nodes = get_sample_call_nodes(thread, info)
    samples = thread.samples
    weights = (
        np.ones(samples.length, dtype=np.float64)
        if samples.weight is None
        else np.asarray(samples.weight, dtype=np.float64)
    )
    has_stack = sample_call_nodes != -1
    self_time = np.bincount(
        sample_call_nodes[has_stack], weights=weights[has_stack], minlength=length
    ).astype(np.float64)

    # Children always come after their parent, so one reverse pass suffices.
    total_time = self_time.copy()
    prefix = info.call_node_table.prefix
    for call_node in range(length - 1, -1, -1):
        parent = prefix[call_node]
        if parent != -1:
            total_time[parent] += total_time[call_node]

    return CallTreeTimings(self_time, total_time, float(self_time.sum()))


def filter_thread_by_implementation(
    thread: Thread,
    implementation: ImplementationFilter,
    matcher: FuncMatcher = DEFAULT_MATCHER,
) -> Thread:
    """Remove frames that are invisible under ``implementation`` from every stack."""
    if implementation == "combined":
        return thread

    with timed(f"filter_thread_by_implementation({implementation})"):
        func_matches = matcher.predicate(implementation)
        stack_table = thread.stack_table
        frame_func = thread.frame_table.func
        new_stack_table = StackTable()
        old_to_new: list[OptionalStack] = [None] * stack_table.length

        for stack_index in range(stack_table.length):
            prefix = stack_table.prefix[stack_index]
            new_prefix = None if prefix is None else old_to_new[prefix]
            frame = stack_table.frame[stack_index]
            if func_matches(thread, frame_func[frame]):
                old_to_new[stack_index] = new_stack_table.append(frame, new_prefix)
            else:
                old_to_new[stack_index] = new_prefix

        return update_thread_stacks(
            thread,
            new_stack_table,
            lambda stack: None if stack is None else old_to_new[stack],
        )


def invert_thread(thread: Thread) -> Thread:
    """Rebuild every sampled stack leaf-first, so the call tree is rooted at self time."""
    with timed("invert_thread"):
        stack_table = thread.stack_table
        new_stack_table = StackTable()
        prefix_and_frame_to_stack: dict[tuple[OptionalStack, int], int] = {}
        old_to_new: dict[int, int] = {}

        def stack_for(prefix: OptionalStack, frame: int) -> int:
            key = (prefix, frame)
            stack = prefix_and_frame_to_stack.get(key)
            if stack is None:
                stack = new_stack_table.append(frame, prefix)
                prefix_and_frame_to_stack[key] = stack
            return stack

        def convert_stack(stack_index: OptionalStack) -> OptionalStack:
            if stack_index is None:
                return None
            new_stack = old_to_new.get(stack_index)
            if new_stack is None:
                # The leaf becomes the new root.
                ancestry = thread.iter_stack_ancestry(stack_index)
                new_stack = stack_for(None, stack_table.frame[next(ancestry)])
                for current in ancestry:
                    new_stack = stack_for(new_stack, stack_table.frame[current])
                old_to_new[stack_index] = new_stack
            return new_stack

        new_stacks = [convert_stack(stack) for stack in thread.samples.stack]
        return replace(
            thread,
            stack_table=new_stack_table,
            samples=thread.samples.with_stacks(new_stacks),
        )

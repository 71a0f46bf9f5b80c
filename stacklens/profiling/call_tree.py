# stacklens/profiling/call_tree.py
"""Read-only call tree view over a transformed thread.

``compute_call_tree`` runs the whole pipeline (transform stack, implementation
filter, optional inversion, call node table, timings) and wraps the result in
a ``CallTree``. Renderers only ever talk to the ``CallTree`` surface.

A ``CallTree`` caches children lists and display data per node. The caches
are never invalidated: when the inputs change, build a new tree.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from loguru import logger

from stacklens.profiling.call_node_info import (
    CallNodeInfo,
    CallTreeTimings,
    compute_call_node_info,
    compute_call_tree_timings,
    filter_thread_by_implementation,
    invert_thread,
)
from stacklens.profiling.implementation import DEFAULT_MATCHER, FuncMatcher, get_stack_type
from stacklens.profiling.tables import Thread
from stacklens.profiling.transform_types import Transform
from stacklens.profiling.transforms import apply_transform_stack
from stacklens.types import (
    CallNodePath,
    ImplementationFilter,
    IndexIntoCallNodeTable,
    IndexIntoFuncTable,
    StackType,
)

EMPTY_CELL = "—"


@dataclass(frozen=True)
class CallNodeData:
    func_name: str
    total: float
    total_relative: float
    self: float
    self_relative: float


@dataclass(frozen=True)
class CallNodeDisplayData:
    name: str
    lib: str
    total: str
    total_with_unit: str
    self: str
    self_with_unit: str
    total_percent: str
    is_frame_label: bool
    stack_type: StackType


def format_number(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.1f}"


def format_percent(ratio: float) -> str:
    percent = ratio * 100
    if 0 < percent < 10:
        return f"{percent:.1f}%"
    return f"{percent:.0f}%"


def _with_unit(value: float) -> str:
    unit = "sample" if value == 1 else "samples"
    return f"{format_number(value)} {unit}"


class CallTree:
    """Navigate call nodes and fetch per-node data for display.

    Parameters
    ----------
    thread : Thread
        The thread the call node table was computed from (after transforms,
        filtering and inversion).
    call_node_info : CallNodeInfo
        Call node table of ``thread``.
    timings : CallTreeTimings
        Self and total columns of the call node table.
    matcher : FuncMatcher
        Used to classify nodes as native/js/unsymbolicated.
    """

    def __init__(
        self,
        thread: Thread,
        call_node_info: CallNodeInfo,
        timings: CallTreeTimings,
        matcher: FuncMatcher = DEFAULT_MATCHER,
    ):
        self._thread = thread
        self._call_node_info = call_node_info
        self._call_node_table = call_node_info.call_node_table
        self._timings = timings
        self._matcher = matcher
        self._children: Dict[int, List[int]] = {}
        self._display_data_by_index: Dict[int, CallNodeDisplayData] = {}
        self._all_children: Optional[Dict[int, List[int]]] = None

    @property
    def thread(self) -> Thread:
        return self._thread

    @property
    def root_total(self) -> float:
        return self._timings.root_total

    def _unsorted_children(self, call_node: int) -> List[int]:
        if self._all_children is None:
            all_children: Dict[int, List[int]] = {}
            for index, prefix in enumerate(self._call_node_table.prefix):
                all_children.setdefault(int(prefix), []).append(index)
            self._all_children = all_children
        return self._all_children.get(call_node, [])

    def get_roots(self) -> List[int]:
        return self.get_children(-1)

    def get_children(self, call_node: int) -> List[int]:
        """Visible children of ``call_node`` (-1 for roots), heaviest first."""
        children = self._children.get(call_node)
        if children is None:
            total = self._timings.total_time
            children = [c for c in self._unsorted_children(call_node) if total[c] != 0]
            children.sort(key=lambda c: -abs(total[c]))
            self._children[call_node] = children
        return children

    def has_children(self, call_node: int) -> bool:
        return len(self.get_children(call_node)) != 0

    def _add_descendants_to_set(self, call_node: int, result: Set[int]) -> None:
        for child in self.get_children(call_node):
            result.add(child)
            self._add_descendants_to_set(child, result)

    def get_all_descendants(self, call_node: int) -> Set[int]:
        result: Set[int] = set()
        self._add_descendants_to_set(call_node, result)
        return result

    def get_parent(self, call_node: int) -> int:
        return int(self._call_node_table.prefix[call_node])

    def get_depth(self, call_node: int) -> int:
        return int(self._call_node_table.depth[call_node])

    def get_func(self, call_node: int) -> IndexIntoFuncTable:
        return int(self._call_node_table.func[call_node])

    def get_call_node_path(self, call_node: int) -> CallNodePath:
        return self._call_node_info.get_call_node_path(call_node)

    def get_node_index_from_path(self, path: CallNodePath) -> Optional[IndexIntoCallNodeTable]:
        return self._call_node_info.get_call_node_index_from_path(path)

    def get_node_data(self, call_node: int) -> CallNodeData:
        func = self.get_func(call_node)
        total = float(self._timings.total_time[call_node])
        self_time = float(self._timings.self_time[call_node])
        root_total = self._timings.root_total or 1.0
        return CallNodeData(
            func_name=self._thread.func_name(func),
            total=total,
            total_relative=total / root_total,
            self=self_time,
            self_relative=self_time / root_total,
        )

    def _get_origin_annotation(self, func: IndexIntoFuncTable) -> str:
        thread = self._thread
        resource = thread.func_table.resource[func]
        if resource != -1:
            return thread.string_table.get_string(thread.resource_table.name[resource])
        file_name = thread.func_table.file_name[func]
        if file_name is not None:
            return thread.string_table.get_string(file_name)
        return ""

    def get_display_data(self, call_node: int) -> CallNodeDisplayData:
        display_data = self._display_data_by_index.get(call_node)
        if display_data is None:
            data = self.get_node_data(call_node)
            func = self.get_func(call_node)
            display_data = CallNodeDisplayData(
                name=data.func_name,
                lib=self._get_origin_annotation(func)[:1000],
                total=EMPTY_CELL if data.total == 0 else format_number(data.total),
                total_with_unit=EMPTY_CELL if data.total == 0 else _with_unit(data.total),
                self=EMPTY_CELL if data.self == 0 else format_number(data.self),
                self_with_unit=EMPTY_CELL if data.self == 0 else _with_unit(data.self),
                total_percent=format_percent(data.total_relative),
                is_frame_label=self._thread.func_table.resource[func] == -1,
                stack_type=get_stack_type(self._thread, func, self._matcher),
            )
            self._display_data_by_index[call_node] = display_data
        return display_data

    def has_same_node_ids(self, other: CallTree) -> bool:
        return self._call_node_table is other._call_node_table


def compute_call_tree(
    thread: Thread,
    transforms: Iterable[Transform] = (),
    implementation: ImplementationFilter = "combined",
    inverted: bool = False,
    matcher: FuncMatcher = DEFAULT_MATCHER,
) -> CallTree:
    """Build the call tree a user sees for ``thread`` under the given view settings."""
    transforms = list(transforms)
    logger.debug(
        f"Computing call tree for {thread.name!r}: {len(transforms)} transform(s), "
        f"implementation={implementation}, inverted={inverted}"
    )
    transformed = apply_transform_stack(thread, transforms, matcher)
    filtered = filter_thread_by_implementation(transformed, implementation, matcher)
    if inverted:
        filtered = invert_thread(filtered)
    call_node_info = compute_call_node_info(filtered)
    timings = compute_call_tree_timings(filtered, call_node_info)
    return CallTree(filtered, call_node_info, timings, matcher)

# stacklens/profiling/implementation.py
"""Implementation filters.

An implementation filter decides which functions are visible in a view:

- ``combined`` shows everything
- ``js`` shows JS functions (and native functions flagged relevant for JS)
- ``cpp`` shows native functions, excluding code that looks JIT-generated

Functions that are not visible are "transparent" when matching a
CallNodePath: a transform may skip over them without breaking the match.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, Tuple

from stacklens.types import (
    IMPLEMENTATION_FILTERS,
    CallNodePath,
    ImplementationFilter,
    IndexIntoFuncTable,
    StackType,
)


if TYPE_CHECKING:
    from stacklens.profiling.tables import Thread


FuncPredicate = Callable[["Thread", IndexIntoFuncTable], bool]

DEFAULT_JIT_ADDRESS_PREFIXES: Tuple[str, ...] = ("0x",)


@dataclass(frozen=True)
class FuncMatcher:
    """Implementation predicates with a configurable JIT heuristic.

    Regular native functions belong to a resource (the shared library they
    were loaded from). JIT code is generated at runtime, so it has no
    resource, and unsymbolicated JIT frames are usually named after their
    raw address. A function with no resource whose name starts with one of
    ``jit_address_prefixes`` is treated as probably-JIT and kept out of the
    ``cpp`` bucket.
    """

    jit_address_prefixes: Tuple[str, ...] = DEFAULT_JIT_ADDRESS_PREFIXES

    def is_probably_jit_code(self, thread: Thread, func_index: IndexIntoFuncTable) -> bool:
        if thread.func_table.resource[func_index] != -1:
            return False
        name = thread.func_name(func_index)
        return name.startswith(self.jit_address_prefixes)

    def combined(self, thread: Thread, func_index: IndexIntoFuncTable) -> bool:
        return True

    def js(self, thread: Thread, func_index: IndexIntoFuncTable) -> bool:
        func_table = thread.func_table
        return func_table.is_js[func_index] or func_table.relevant_for_js[func_index]

    def cpp(self, thread: Thread, func_index: IndexIntoFuncTable) -> bool:
        if thread.func_table.is_js[func_index]:
            return False
        return not self.is_probably_jit_code(thread, func_index)

    def predicate(self, implementation: ImplementationFilter) -> FuncPredicate:
        """Return the visibility predicate for ``implementation``."""
        if implementation == "js":
            return self.js
        if implementation == "cpp":
            return self.cpp
        if implementation == "combined":
            return self.combined
        raise ValueError(f"Unknown implementation filter: {implementation!r}")


DEFAULT_MATCHER = FuncMatcher()

FUNC_MATCHES: Dict[ImplementationFilter, FuncPredicate] = {
    "combined": DEFAULT_MATCHER.combined,
    "js": DEFAULT_MATCHER.js,
    "cpp": DEFAULT_MATCHER.cpp,
}


def to_valid_implementation_filter(implementation: str | None) -> ImplementationFilter:
    """Coerce a user supplied string to a filter, defaulting to ``combined``."""
    if implementation in IMPLEMENTATION_FILTERS and implementation is not None:
        return implementation  # type: ignore[return-value]
    return "combined"


def get_stack_type(
    thread: Thread,
    func_index: IndexIntoFuncTable,
    matcher: FuncMatcher = DEFAULT_MATCHER,
) -> StackType:
    if matcher.cpp(thread, func_index):
        return "native"
    if matcher.js(thread, func_index):
        return "js"
    return "unsymbolicated"


def filter_call_node_path_by_implementation(
    thread: Thread,
    implementation: ImplementationFilter,
    call_node_path: CallNodePath,
    matcher: FuncMatcher = DEFAULT_MATCHER,
) -> CallNodePath:
    """Drop the functions of a path that are invisible under ``implementation``."""
    func_matches = matcher.predicate(implementation)
    return tuple(f for f in call_node_path if func_matches(thread, f))

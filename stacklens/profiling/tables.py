# stacklens/profiling/tables.py
"""Columnar tables describing the call stacks of one thread.

Every table is a set of parallel lists ("columns") plus an explicit
``length``. Rows are addressed by integer index and reference rows of other
tables by index:

    samples.stack[i] -> stack_table row (or None)
    stack_table.frame[s] -> frame_table row
    stack_table.prefix[s] -> stack_table row of the caller (or None)
    frame_table.func[f] -> func_table row
    func_table.name[fn] -> string_table entry

The stack table is a prefix-compressed trie. Stacks are always stored after
their prefix, so ``prefix[s] < s`` and a single forward pass visits every
caller before its callees.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, Iterator, Optional

from stacklens.profiling.string_table import StringTable
from stacklens.types import (
    CallNodePath,
    FrameImplementation,
    IndexIntoFrameTable,
    IndexIntoFuncTable,
    IndexIntoResourceTable,
    IndexIntoStackTable,
    IndexIntoStringTable,
    OptionalStack,
)


@dataclass
class ResourceTable:
    """Shared libraries or scripts that functions belong to."""

    name: list[IndexIntoStringTable] = field(default_factory=list)
    length: int = 0

    def append(self, name: IndexIntoStringTable) -> IndexIntoResourceTable:
        self.name.append(name)
        self.length += 1
        return self.length - 1


@dataclass
class FuncTable:
    """Functions, one row per distinct function."""

    name: list[IndexIntoStringTable] = field(default_factory=list)
    is_js: list[bool] = field(default_factory=list)
    relevant_for_js: list[bool] = field(default_factory=list)
    resource: list[IndexIntoResourceTable] = field(default_factory=list)
    file_name: list[Optional[IndexIntoStringTable]] = field(default_factory=list)
    length: int = 0

    def append(
        self,
        name: IndexIntoStringTable,
        is_js: bool = False,
        resource: IndexIntoResourceTable = -1,
        relevant_for_js: bool = False,
        file_name: Optional[IndexIntoStringTable] = None,
    ) -> IndexIntoFuncTable:
        self.name.append(name)
        self.is_js.append(is_js)
        self.relevant_for_js.append(relevant_for_js)
        self.resource.append(resource)
        self.file_name.append(file_name)
        self.length += 1
        return self.length - 1


@dataclass
class FrameTable:
    """Frames, an occurrence of a function with optional JIT tier and line."""

    func: list[IndexIntoFuncTable] = field(default_factory=list)
    implementation: list[FrameImplementation] = field(default_factory=list)
    line: list[Optional[int]] = field(default_factory=list)
    length: int = 0

    def append(
        self,
        func: IndexIntoFuncTable,
        implementation: FrameImplementation = None,
        line: Optional[int] = None,
    ) -> IndexIntoFrameTable:
        self.func.append(func)
        self.implementation.append(implementation)
        self.line.append(line)
        self.length += 1
        return self.length - 1


@dataclass
class StackTable:
    """Prefix-compressed trie of call stacks."""

    frame: list[IndexIntoFrameTable] = field(default_factory=list)
    prefix: list[OptionalStack] = field(default_factory=list)
    length: int = 0

    def append(self, frame: IndexIntoFrameTable, prefix: OptionalStack) -> IndexIntoStackTable:
        """Add a stack node and return its index.

        The prefix must already exist; this keeps the table in the
        "prefix before child" order every transform relies on.
        """
        if prefix is not None and not 0 <= prefix < self.length:
            raise ValueError(
                f"Stack prefix {prefix} must reference an existing stack (length {self.length})"
            )
        self.frame.append(frame)
        self.prefix.append(prefix)
        self.length += 1
        return self.length - 1

    def copy(self) -> StackTable:
        return StackTable(frame=list(self.frame), prefix=list(self.prefix), length=self.length)


@dataclass
class SamplesTable:
    """One row per observed sample."""

    stack: list[OptionalStack] = field(default_factory=list)
    time: Optional[list[float]] = None
    weight: Optional[list[float]] = None
    length: int = 0

    def with_stacks(self, stacks: list[OptionalStack]) -> SamplesTable:
        """Return a copy of this table whose stack column is ``stacks``."""
        if len(stacks) != self.length:
            raise ValueError(f"Expected {self.length} stacks, got {len(stacks)}")
        return replace(self, stack=stacks)

    def get_weight(self, sample_index: int) -> float:
        return 1.0 if self.weight is None else self.weight[sample_index]


@dataclass(frozen=True)
class Thread:
    """Immutable view over one thread's tables.

    Transforms never mutate a thread or its tables; they build new tables and
    return a new ``Thread`` that may share untouched tables with the old one.
    """

    string_table: StringTable
    func_table: FuncTable
    frame_table: FrameTable
    stack_table: StackTable
    samples: SamplesTable
    resource_table: ResourceTable = field(default_factory=ResourceTable)
    name: str = "Empty"
    process_name: str = ""
    pid: str = "0"
    tid: int = 0

    def func_name(self, func_index: IndexIntoFuncTable) -> str:
        return self.string_table.get_string(self.func_table.name[func_index])

    def func_label(self, func_index: IndexIntoFuncTable) -> str:
        """Like ``func_name``, with a placeholder for indices this thread doesn't have.

        Transform stacks come from shared links and may name functions of a
        different profile.
        """
        if 0 <= func_index < self.func_table.length:
            return self.func_name(func_index)
        return f"<func {func_index}>"

    def stack_func(self, stack_index: IndexIntoStackTable) -> IndexIntoFuncTable:
        return self.frame_table.func[self.stack_table.frame[stack_index]]

    def iter_stack_ancestry(self, stack_index: OptionalStack) -> Iterator[IndexIntoStackTable]:
        """Yield ``stack_index`` and then each of its prefixes up to the root."""
        prefix_column = self.stack_table.prefix
        while stack_index is not None:
            yield stack_index
            stack_index = prefix_column[stack_index]

    def get_func_path(self, stack_index: OptionalStack) -> CallNodePath:
        """Return the root-to-leaf func indices of a stack."""
        funcs = [self.stack_func(s) for s in self.iter_stack_ancestry(stack_index)]
        funcs.reverse()
        return tuple(funcs)

    def get_sample_func_names(self) -> list[Optional[list[str]]]:
        """Func names of every sample's stack, root first; ``None`` for empty samples."""
        result: list[Optional[list[str]]] = []
        for stack in self.samples.stack:
            if stack is None:
                result.append(None)
            else:
                result.append([self.func_name(f) for f in self.get_func_path(stack)])
        return result


def get_empty_thread(name: str = "Empty") -> Thread:
    return Thread(
        string_table=StringTable(),
        func_table=FuncTable(),
        frame_table=FrameTable(),
        stack_table=StackTable(),
        samples=SamplesTable(),
        name=name,
    )


def update_thread_stacks(
    thread: Thread,
    new_stack_table: StackTable,
    convert_stack: Callable[[OptionalStack], OptionalStack],
) -> Thread:
    """Return a new thread with ``new_stack_table`` and converted sample stacks."""
    new_stacks = [convert_stack(stack) for stack in thread.samples.stack]
    return replace(
        thread,
        stack_table=new_stack_table,
        samples=thread.samples.with_stacks(new_stacks),
    )


def find_forest_violation(stack_table: StackTable) -> Optional[IndexIntoStackTable]:
    """Return the first stack whose prefix chain is broken, or ``None``.

    A chain is broken when it references a missing stack or does not reach a
    root within ``length`` steps (a cycle).
    """
    length = stack_table.length
    if len(stack_table.prefix) != length or len(stack_table.frame) != length:
        return 0 if length else None
    for stack_index in range(length):
        steps = 0
        current: OptionalStack = stack_index
        while current is not None:
            if not 0 <= current < length or steps > length:
                return stack_index
            current = stack_table.prefix[current]
            steps += 1
    return None

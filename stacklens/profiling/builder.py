# stacklens/profiling/builder.py
"""Build threads from a readable column layout.

Each column is one sample, read from the root down::

    A          A          A
    B          B          B
    Cjs        Cjs        H
    D[lib:xul] F

Columns are separated by two or more spaces in the first line. A column
stops at its first empty cell.

Func names ending in ``js`` are JS functions; names ending in
``js-relevant`` are native functions that are still shown in the JS view.
Bracketed modifiers after the name set frame and func details:

- ``[jit:baseline]`` / ``[jit:ion]``: frame JIT tier
- ``[lib:NAME]``: func resource (shared library)
- ``[line:N]``: frame line number
- ``[file:PATH]``: func file name

Func indices equal string indices for the func names, in first-seen order,
so tests can refer to funcs by name through ``get_func_names_dict``.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Sequence, Tuple

from stacklens.profiling.errors import ProfileFormatError
from stacklens.profiling.string_table import StringTable
from stacklens.profiling.tables import (
    FrameTable,
    FuncTable,
    ResourceTable,
    SamplesTable,
    StackTable,
    Thread,
)
from stacklens.types import FrameImplementation, OptionalStack


JIT_IMPLEMENTATIONS = ("baseline", "ion")

_COLUMN_SEPARATOR_RE = re.compile(r" {2,}")
_MODIFIER_RE = re.compile(r"\[(\w+):([^\]]*)\]")


def _get_column_positions(line: str) -> List[int]:
    stripped = line.lstrip()
    indent = len(line) - len(stripped)
    separators = _COLUMN_SEPARATOR_RE.finditer(stripped.rstrip())
    return [indent] + [match.end() + indent for match in separators]


def parse_text_samples(text: str) -> List[List[str]]:
    """Split a column layout into one list of cells per sample, root first."""
    lines = [line for line in text.split("\n") if line.strip()]
    if not lines:
        raise ProfileFormatError("Empty text samples")

    positions = _get_column_positions(lines[0])
    bounds = list(zip(positions, positions[1:] + [None]))
    columns: List[List[str]] = [[] for _ in positions]
    finished = [False] * len(positions)
    for line in lines:
        for column_index, (start, end) in enumerate(bounds):
            if finished[column_index]:
                continue
            cell = line[start:end].strip()
            if cell:
                columns[column_index].append(cell)
            else:
                finished[column_index] = True
    return columns


def strip_modifiers(cell: str) -> str:
    return cell.split("[", 1)[0]


def _get_modifiers(cell: str) -> Dict[str, str]:
    return {key: value for key, value in _MODIFIER_RE.findall(cell)}


def thread_from_func_columns(
    columns: Sequence[Optional[Sequence[str]]],
    name: str = "Thread",
    weights: Optional[Sequence[float]] = None,
) -> Thread:
    """Build a thread with one sample per column; ``None`` or ``[]`` is an empty sample."""
    if weights is not None and len(weights) != len(columns):
        raise ProfileFormatError(f"Expected {len(columns)} weights, got {len(weights)}")

    string_table = StringTable()
    func_table = FuncTable()
    frame_table = FrameTable()
    stack_table = StackTable()
    resource_table = ResourceTable()
    samples = SamplesTable(weight=list(weights) if weights is not None else None)

    func_names: List[str] = []
    for column in columns:
        for cell in column or ():
            func_name = strip_modifiers(cell)
            if func_name not in func_names:
                func_names.append(func_name)
    for func_name in func_names:
        string_table.index_for_string(func_name)

    resources: Dict[str, int] = {}
    func_details: Dict[str, Dict[str, str]] = {}
    for column in columns:
        for cell in column or ():
            func_details.setdefault(strip_modifiers(cell), {}).update(_get_modifiers(cell))

    for func_name in func_names:
        details = func_details.get(func_name, {})
        resource = -1
        lib_name = details.get("lib")
        if lib_name:
            if lib_name not in resources:
                resources[lib_name] = resource_table.append(string_table.index_for_string(lib_name))
            resource = resources[lib_name]
        file_name = details.get("file")
        func_table.append(
            name=string_table.index_for_string(func_name),
            is_js=func_name.endswith("js"),
            resource=resource,
            relevant_for_js=func_name.endswith("js-relevant"),
            file_name=string_table.index_for_string(file_name) if file_name else None,
        )

    frames: Dict[Tuple[int, FrameImplementation, Optional[int]], int] = {}
    stacks: Dict[Tuple[OptionalStack, int], int] = {}
    for column in columns:
        prefix: OptionalStack = None
        for cell in column or ():
            func = string_table.index_for_string(strip_modifiers(cell))
            modifiers = _get_modifiers(cell)
            jit = modifiers.get("jit")
            implementation: FrameImplementation = jit if jit in JIT_IMPLEMENTATIONS else None  # type: ignore[assignment]
            line = modifiers.get("line")
            try:
                line_number = int(line) if line else None
            except ValueError as e:
                raise ProfileFormatError(f"Invalid line modifier in {cell!r}") from e

            frame_key = (func, implementation, line_number)
            if frame_key not in frames:
                frames[frame_key] = frame_table.append(func, implementation, line_number)
            stack_key = (prefix, frames[frame_key])
            if stack_key not in stacks:
                stacks[stack_key] = stack_table.append(stack_key[1], prefix)
            prefix = stacks[stack_key]
        samples.stack.append(prefix)
        samples.length += 1

    return Thread(
        string_table=string_table,
        func_table=func_table,
        frame_table=frame_table,
        stack_table=stack_table,
        samples=samples,
        resource_table=resource_table,
        name=name,
    )


def thread_from_text_samples(text: str, name: str = "Thread") -> Thread:
    return thread_from_func_columns(parse_text_samples(text), name=name)


def get_func_names_dict(thread: Thread) -> Dict[str, int]:
    """Map each func name to its func index."""
    return {thread.func_name(func): func for func in range(thread.func_table.length)}


def profile_from_text_samples(*texts: str) -> Tuple[List[Thread], List[Dict[str, int]]]:
    """Build one thread per text block, plus the func name dict of each."""
    threads = [
        thread_from_text_samples(text, name=f"Thread {index}") for index, text in enumerate(texts)
    ]
    return threads, [get_func_names_dict(thread) for thread in threads]

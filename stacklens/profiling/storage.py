# stacklens/profiling/storage.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from stacklens.profiling.builder import thread_from_text_samples
from stacklens.profiling.errors import ProfileFormatError
from stacklens.profiling.string_table import StringTable
from stacklens.profiling.tables import (
    FrameTable,
    FuncTable,
    ResourceTable,
    SamplesTable,
    StackTable,
    Thread,
    find_forest_violation,
)
from stacklens.utils.timing import time_code


FORMAT_VERSION = 1

# Separates threads in a text samples file.
TEXT_THREAD_SEPARATOR = "---"


def save_profile(threads: List[Thread], path: Path, meta: Optional[Dict[str, Any]] = None) -> None:
    """Save threads to a JSON profile file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(profile_to_dict(threads, meta), f, indent=2)
    logger.debug(f"Saved {len(threads)} thread(s) to {path}")


def load_profile(path: Path) -> List[Thread]:
    """Load threads from a JSON profile or a ``.txt`` text samples file."""
    path = Path(path)
    loader = _load_text if path.suffix == ".txt" else _load_json
    return time_code(f"load_profile({path.name})", lambda: loader(path))


def _load_text(path: Path) -> List[Thread]:
    text = path.read_text()
    blocks = [block for block in text.split(f"\n{TEXT_THREAD_SEPARATOR}\n") if block.strip()]
    return [
        thread_from_text_samples(block, name=f"{path.stem} {index}") for index, block in enumerate(blocks)
    ]


def _load_json(path: Path) -> List[Thread]:
    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ProfileFormatError(f"{path} is not valid JSON: {e}") from e
    threads = profile_from_dict(data)
    logger.debug(f"Loaded {len(threads)} thread(s) from {path}")
    return threads


def profile_to_dict(threads: List[Thread], meta: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "meta": {"version": FORMAT_VERSION, **(meta or {})},
        "threads": [thread_to_dict(thread) for thread in threads],
    }


def profile_from_dict(data: Dict[str, Any]) -> List[Thread]:
    if not isinstance(data, dict) or not isinstance(data.get("threads"), list):
        raise ProfileFormatError("Profile must be an object with a 'threads' list")
    version = data.get("meta", {}).get("version", FORMAT_VERSION)
    if version > FORMAT_VERSION:
        raise ProfileFormatError(
            f"Profile format version {version} is newer than supported version {FORMAT_VERSION}"
        )
    return [thread_from_dict(thread_data) for thread_data in data["threads"]]


def thread_to_dict(thread: Thread) -> Dict[str, Any]:
    func_table = thread.func_table
    frame_table = thread.frame_table
    stack_table = thread.stack_table
    samples = thread.samples
    samples_dict: Dict[str, Any] = {"stack": list(samples.stack), "length": samples.length}
    if samples.time is not None:
        samples_dict["time"] = list(samples.time)
    if samples.weight is not None:
        samples_dict["weight"] = list(samples.weight)

    return {
        "name": thread.name,
        "processName": thread.process_name,
        "pid": thread.pid,
        "tid": thread.tid,
        "stringTable": thread.string_table.to_list(),
        "funcTable": {
            "name": list(func_table.name),
            "isJS": list(func_table.is_js),
            "relevantForJS": list(func_table.relevant_for_js),
            "resource": list(func_table.resource),
            "fileName": list(func_table.file_name),
            "length": func_table.length,
        },
        "frameTable": {
            "func": list(frame_table.func),
            "implementation": list(frame_table.implementation),
            "line": list(frame_table.line),
            "length": frame_table.length,
        },
        "stackTable": {
            "frame": list(stack_table.frame),
            "prefix": list(stack_table.prefix),
            "length": stack_table.length,
        },
        "samples": samples_dict,
        "resourceTable": {
            "name": list(thread.resource_table.name),
            "length": thread.resource_table.length,
        },
    }


_REQUIRED = object()


def _column(
    table: Dict[str, Any], key: str, table_name: str, length: int, default: Any = _REQUIRED
) -> list:
    if key not in table:
        if default is not _REQUIRED:
            return [default] * length
        if length == 0:
            return []
        raise ProfileFormatError(f"{table_name} is missing the '{key}' column")
    column = list(table[key])
    if len(column) != length:
        raise ProfileFormatError(
            f"{table_name}.{key} has {len(column)} rows, expected {length}"
        )
    return column


def _length(table: Dict[str, Any], key: str) -> int:
    if "length" in table:
        return int(table["length"])
    return len(table.get(key, []))


def _check_references(
    column: list,
    column_name: str,
    target_name: str,
    target_length: int,
    allowed: tuple = (),
) -> None:
    """Raise ProfileFormatError when a column points outside the table it indexes."""
    for row, value in enumerate(column):
        if value in allowed:
            continue
        if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value < target_length:
            raise ProfileFormatError(
                f"{column_name}[{row}] = {value!r} is outside {target_name} (length {target_length})"
            )


def thread_from_dict(data: Dict[str, Any]) -> Thread:
    """Build a thread from its JSON form.

    Column lengths, the stack forest and every cross-table index are checked;
    any problem raises ``ProfileFormatError``.
    """
    try:
        func_data = data["funcTable"]
        frame_data = data["frameTable"]
        stack_data = data["stackTable"]
        samples_data = data["samples"]
        strings = data["stringTable"]
    except (KeyError, TypeError) as e:
        raise ProfileFormatError(f"Thread is missing a table: {e}") from e

    func_length = _length(func_data, "name")
    func_table = FuncTable(
        name=_column(func_data, "name", "funcTable", func_length),
        is_js=_column(func_data, "isJS", "funcTable", func_length, False),
        relevant_for_js=_column(func_data, "relevantForJS", "funcTable", func_length, False),
        resource=_column(func_data, "resource", "funcTable", func_length, -1),
        file_name=_column(func_data, "fileName", "funcTable", func_length, None),
        length=func_length,
    )

    frame_length = _length(frame_data, "func")
    frame_table = FrameTable(
        func=_column(frame_data, "func", "frameTable", frame_length),
        implementation=_column(frame_data, "implementation", "frameTable", frame_length, None),
        line=_column(frame_data, "line", "frameTable", frame_length, None),
        length=frame_length,
    )

    stack_length = _length(stack_data, "frame")
    stack_table = StackTable(
        frame=_column(stack_data, "frame", "stackTable", stack_length),
        prefix=_column(stack_data, "prefix", "stackTable", stack_length),
        length=stack_length,
    )
    violation = find_forest_violation(stack_table)
    if violation is not None:
        raise ProfileFormatError(f"stackTable is not a forest: stack {violation} has a broken prefix chain")
    for index, prefix in enumerate(stack_table.prefix):
        if prefix is not None and prefix >= index:
            raise ProfileFormatError(f"stackTable prefix {prefix} of stack {index} is not stored before it")

    samples_length = _length(samples_data, "stack")
    samples = SamplesTable(
        stack=_column(samples_data, "stack", "samples", samples_length),
        time=_column(samples_data, "time", "samples", samples_length) if "time" in samples_data else None,
        weight=_column(samples_data, "weight", "samples", samples_length) if "weight" in samples_data else None,
        length=samples_length,
    )
    for stack in samples.stack:
        if stack is not None and not 0 <= stack < stack_length:
            raise ProfileFormatError(f"Sample references missing stack {stack}")

    resource_data = data.get("resourceTable", {"name": []})
    resource_length = _length(resource_data, "name")
    resource_table = ResourceTable(
        name=_column(resource_data, "name", "resourceTable", resource_length),
        length=resource_length,
    )

    string_count = len(strings)
    _check_references(stack_table.frame, "stackTable.frame", "frameTable", frame_length)
    _check_references(frame_table.func, "frameTable.func", "funcTable", func_length)
    _check_references(func_table.name, "funcTable.name", "stringTable", string_count)
    _check_references(func_table.file_name, "funcTable.fileName", "stringTable", string_count, (None,))
    _check_references(func_table.resource, "funcTable.resource", "resourceTable", resource_length, (-1,))
    _check_references(resource_table.name, "resourceTable.name", "stringTable", string_count)

    return Thread(
        string_table=StringTable(strings),
        func_table=func_table,
        frame_table=frame_table,
        stack_table=stack_table,
        samples=samples,
        resource_table=resource_table,
        name=data.get("name", "Thread"),
        process_name=data.get("processName", ""),
        pid=str(data.get("pid", "0")),
        tid=int(data.get("tid", 0)),
    )

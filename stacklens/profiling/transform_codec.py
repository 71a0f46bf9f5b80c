# stacklens/profiling/transform_codec.py
"""Serialize transform stacks to and from a compact URL-safe string.

Grammar::

    transforms      := transform ("~" transform)*
    transform       := path_transform | func_transform | recursion
    path_transform  := ("f" | "mcn" | "ms") "-" implementation "-" encoded_path ["-" "i"]
    func_transform  := ("ff" | "mf" | "df" | "cfs") "-" func_index
    recursion       := "rec" "-" implementation "-" func_index

``encoded_path`` is the CallNodePath written with ``encode_uint_array``;
``func_index`` is a plain decimal number. Unknown short keys and malformed
function indices are logged and skipped, so a link produced by a newer
version still opens with the transforms this version understands.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from loguru import logger

from stacklens.profiling.implementation import to_valid_implementation_filter
from stacklens.profiling.transform_types import (
    CollapseDirectRecursion,
    PATH_TRANSFORM_CLASSES,
    TRANSFORM_BY_SHORT_KEY,
    Transform,
)
from stacklens.profiling.uint_encoding import decode_uint_array, encode_uint_array


TRANSFORM_SEPARATOR = "~"
FIELD_SEPARATOR = "-"
INVERTED_FLAG = "i"


def stringify_transform(transform: Transform) -> str:
    if isinstance(transform, PATH_TRANSFORM_CLASSES):
        fields = [
            transform.short_key,
            transform.implementation,
            encode_uint_array(transform.call_node_path),
        ]
        if transform.inverted:
            fields.append(INVERTED_FLAG)
    elif isinstance(transform, CollapseDirectRecursion):
        fields = [transform.short_key, transform.implementation, str(transform.func_index)]
    else:
        fields = [transform.short_key, str(transform.func_index)]
    return FIELD_SEPARATOR.join(fields)


def stringify_transforms(transforms: Iterable[Transform]) -> str:
    return TRANSFORM_SEPARATOR.join(stringify_transform(t) for t in transforms)


def _parse_func_index(raw: Optional[str]) -> Optional[int]:
    if raw is None or not (raw.isascii() and raw.isdigit()):
        return None
    return int(raw)


def parse_transforms(serialized: str | None) -> List[Transform]:
    """Parse a serialized transform stack, dropping tokens that cannot be understood."""
    if not serialized:
        return []

    transforms: List[Transform] = []
    for token in serialized.split(TRANSFORM_SEPARATOR):
        if not token:
            continue
        short_key, *rest = token.split(FIELD_SEPARATOR)
        transform_cls = TRANSFORM_BY_SHORT_KEY.get(short_key)
        if transform_cls is None:
            logger.warning(f"Unrecognized transform was passed to the URL: {short_key!r}")
            continue

        if transform_cls in PATH_TRANSFORM_CLASSES:
            implementation = to_valid_implementation_filter(rest[0] if rest else None)
            encoded_path = rest[1] if len(rest) > 1 else ""
            inverted = len(rest) > 2 and rest[2] == INVERTED_FLAG
            transforms.append(
                transform_cls(
                    call_node_path=tuple(decode_uint_array(encoded_path)),
                    implementation=implementation,
                    inverted=inverted,
                )
            )
            continue

        if transform_cls is CollapseDirectRecursion:
            implementation = to_valid_implementation_filter(rest[0] if rest else None)
            func_index = _parse_func_index(rest[1] if len(rest) > 1 else None)
        else:
            func_index = _parse_func_index(rest[0] if rest else None)
        if func_index is None:
            logger.warning(f"Transform {token!r} has no valid function index")
            continue
        if transform_cls is CollapseDirectRecursion:
            transforms.append(CollapseDirectRecursion(func_index, implementation))
        else:
            transforms.append(transform_cls(func_index))
    return transforms

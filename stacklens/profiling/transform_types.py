# stacklens/profiling/transform_types.py
"""Transform variants.

A transform is the minimal description of one structural edit to a call
tree. Call nodes are not stable across transforms, so a transform refers to
its node by CallNodePath plus the implementation filter and inversion that
were active when the path was taken. Function transforms (focus-function,
merge-function, ...) name a func index instead and affect every node of
that function.

Example: focusing on the subtree at [A, B, C]::

                 A:3,0                              C:2,0
                   |                               /      \\
                   v       Focus [A, B, C]        v        v
                 B:3,0           -->           D:1,0     F:1,0
                 /    \\                         |           |
                v      v                        v           v
            C:2,0     H:1,0                   E:1,1       G:1,1
           /      \\         \\
          v        v         v
        D:1,0     F:1,0     F:1,1
        |           |
        v           v
      E:1,1       G:1,1

For an inverted transform the path is read from the leaf towards the root
("postfix" path).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import ClassVar, List, Tuple, Union

from stacklens.types import CallNodePath, ImplementationFilter, IndexIntoFuncTable


class TransformType(str, Enum):
    FOCUS_SUBTREE = "focus-subtree"
    FOCUS_FUNCTION = "focus-function"
    MERGE_CALL_NODE = "merge-call-node"
    MERGE_FUNCTION = "merge-function"
    MERGE_SUBTREE = "merge-subtree"
    DROP_FUNCTION = "drop-function"
    COLLAPSE_DIRECT_RECURSION = "collapse-direct-recursion"
    COLLAPSE_FUNCTION_SUBTREE = "collapse-function-subtree"


@dataclass(frozen=True)
class _PathTransform:
    """Fields shared by all path-anchored transforms."""

    call_node_path: CallNodePath
    implementation: ImplementationFilter = "combined"
    inverted: bool = False

    type: ClassVar[TransformType]
    short_key: ClassVar[str]

    def __post_init__(self) -> None:
        # Accept any sequence, but always store an immutable tuple.
        object.__setattr__(self, "call_node_path", tuple(self.call_node_path))

    @property
    def leaf_func(self) -> int | None:
        return self.call_node_path[-1] if self.call_node_path else None

    def with_path(self, call_node_path: CallNodePath) -> Transform:
        return replace(self, call_node_path=tuple(call_node_path))


@dataclass(frozen=True)
class FocusSubtree(_PathTransform):
    """Only keep the subtree rooted at the path; the path itself disappears.

    With ``inverted=True`` only samples whose stacks end with the postfix
    path are kept, truncated to where the path ends.
    """

    type: ClassVar[TransformType] = TransformType.FOCUS_SUBTREE
    short_key: ClassVar[str] = "f"


@dataclass(frozen=True)
class MergeCallNode(_PathTransform):
    """Remove the node at the path and splice its children into its caller."""

    type: ClassVar[TransformType] = TransformType.MERGE_CALL_NODE
    short_key: ClassVar[str] = "mcn"


@dataclass(frozen=True)
class MergeSubtree(_PathTransform):
    """Remove the node at the path and everything below it.

    The removed subtree's samples are attributed to the node's parent.
    """

    type: ClassVar[TransformType] = TransformType.MERGE_SUBTREE
    short_key: ClassVar[str] = "ms"


@dataclass(frozen=True)
class _FuncTransform:
    """Transforms that apply to every call node of one function.

    They don't depend on where the function was selected, so they have no
    path and ignore inversion.
    """

    func_index: IndexIntoFuncTable

    type: ClassVar[TransformType]
    short_key: ClassVar[str]

    @property
    def leaf_func(self) -> int | None:
        return self.func_index

    def with_func(self, func_index: IndexIntoFuncTable) -> Transform:
        return replace(self, func_index=func_index)


@dataclass(frozen=True)
class FocusFunction(_FuncTransform):
    """Re-root every stack at its outermost call of the function.

    Samples that never enter the function are dropped.
    """

    type: ClassVar[TransformType] = TransformType.FOCUS_FUNCTION
    short_key: ClassVar[str] = "ff"


@dataclass(frozen=True)
class MergeFunction(_FuncTransform):
    """Remove the function everywhere; its time goes to its callers."""

    type: ClassVar[TransformType] = TransformType.MERGE_FUNCTION
    short_key: ClassVar[str] = "mf"


@dataclass(frozen=True)
class DropFunction(_FuncTransform):
    """Drop every sample with the function anywhere on its stack."""

    type: ClassVar[TransformType] = TransformType.DROP_FUNCTION
    short_key: ClassVar[str] = "df"


@dataclass(frozen=True)
class CollapseFunctionSubtree(_FuncTransform):
    """Fold everything the function calls into the function itself."""

    type: ClassVar[TransformType] = TransformType.COLLAPSE_FUNCTION_SUBTREE
    short_key: ClassVar[str] = "cfs"


@dataclass(frozen=True)
class CollapseDirectRecursion(_FuncTransform):
    """Collapse A -> A -> A into a single A.

    Functions hidden by ``implementation`` between two calls still count as
    direct recursion.
    """

    implementation: ImplementationFilter = "combined"

    type: ClassVar[TransformType] = TransformType.COLLAPSE_DIRECT_RECURSION
    short_key: ClassVar[str] = "rec"


Transform = Union[
    FocusSubtree,
    MergeCallNode,
    MergeSubtree,
    FocusFunction,
    MergeFunction,
    DropFunction,
    CollapseFunctionSubtree,
    CollapseDirectRecursion,
]
TransformStack = List[Transform]

PATH_TRANSFORM_CLASSES: Tuple[type, ...] = (FocusSubtree, MergeCallNode, MergeSubtree)
FUNC_TRANSFORM_CLASSES: Tuple[type, ...] = (
    FocusFunction,
    MergeFunction,
    DropFunction,
    CollapseFunctionSubtree,
    CollapseDirectRecursion,
)
TRANSFORM_CLASSES: Tuple[type, ...] = PATH_TRANSFORM_CLASSES + FUNC_TRANSFORM_CLASSES
TRANSFORM_BY_TYPE = {cls.type: cls for cls in TRANSFORM_CLASSES}
TRANSFORM_BY_SHORT_KEY = {cls.short_key: cls for cls in TRANSFORM_CLASSES}

"""Type definitions for stacklens.

This module provides the index aliases used by the columnar profile tables,
so that signatures read in terms of what an integer points into.

Aliases:
    - IndexIntoStringTable / IndexIntoFuncTable / IndexIntoFrameTable
    - IndexIntoStackTable / IndexIntoResourceTable / IndexIntoCallNodeTable
    - CallNodePath: root-to-node (or leaf-to-node) tuple of func indices
    - ImplementationFilter: 'combined' | 'js' | 'cpp'
"""

from __future__ import annotations

from typing import Literal, Mapping, Optional, Tuple, TypeAlias


# ============================================================================
# Table indices
# ============================================================================

IndexIntoStringTable: TypeAlias = int
IndexIntoFuncTable: TypeAlias = int
IndexIntoFrameTable: TypeAlias = int
IndexIntoStackTable: TypeAlias = int
IndexIntoResourceTable: TypeAlias = int  # -1 means "no resource"
IndexIntoCallNodeTable: TypeAlias = int  # -1 means "no parent"

OptionalStack: TypeAlias = Optional[IndexIntoStackTable]

# ============================================================================
# Call tree addressing
# ============================================================================

CallNodePath: TypeAlias = Tuple[IndexIntoFuncTable, ...]
FuncToFuncMap: TypeAlias = Mapping[IndexIntoFuncTable, IndexIntoFuncTable]

# ============================================================================
# Enum-like literals
# ============================================================================

ImplementationFilter: TypeAlias = Literal["combined", "js", "cpp"]
FrameImplementation: TypeAlias = Optional[Literal["baseline", "ion"]]
StackType: TypeAlias = Literal["native", "js", "unsymbolicated"]

IMPLEMENTATION_FILTERS: Tuple[ImplementationFilter, ...] = ("combined", "js", "cpp")

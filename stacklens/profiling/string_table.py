# stacklens/profiling/string_table.py
from __future__ import annotations

from typing import Iterable, Iterator

from stacklens.types import IndexIntoStringTable


class StringTable:
    """Append-only string interner.

    Strings are stored in insertion order and their indices never change for
    the lifetime of the table. Looking up a string that is already present
    returns its existing index.
    """

    def __init__(self, strings: Iterable[str] | None = None):
        self._array: list[str] = []
        self._index: dict[str, IndexIntoStringTable] = {}
        if strings is not None:
            for s in strings:
                # Keep duplicates in the backing array so serialized indices
                # stay valid; the lookup points at the first occurrence.
                self._index.setdefault(s, len(self._array))
                self._array.append(s)

    @classmethod
    def from_list(cls, strings: list[str]) -> StringTable:
        return cls(strings)

    def index_for_string(self, s: str) -> IndexIntoStringTable:
        """Intern ``s`` and return its index."""
        index = self._index.get(s)
        if index is None:
            index = len(self._array)
            self._array.append(s)
            self._index[s] = index
        return index

    def get_string(self, index: IndexIntoStringTable, default: str | None = None) -> str:
        """Return the string at ``index``.

        Raises ``IndexError`` for an out-of-range index unless ``default`` is
        given.
        """
        if 0 <= index < len(self._array):
            return self._array[index]
        if default is not None:
            return default
        raise IndexError(f"String index {index} is out of range ({len(self._array)} strings)")

    def has_string(self, s: str) -> bool:
        return s in self._index

    def to_list(self) -> list[str]:
        return list(self._array)

    def copy(self) -> StringTable:
        return StringTable(self._array)

    def __len__(self) -> int:
        return len(self._array)

    def __iter__(self) -> Iterator[str]:
        return iter(self._array)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StringTable):
            return NotImplemented
        return self._array == other._array

    def __repr__(self) -> str:
        return f"StringTable({len(self._array)} strings)"

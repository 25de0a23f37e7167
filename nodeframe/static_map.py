"""Read-only sorted set and map built once and searched by binary search."""

from __future__ import annotations

from bisect import bisect_left
from operator import itemgetter
from typing import Any, Callable, Iterable, Iterator, Mapping


class StaticArraySet:
    """Sorted, immutable copy of ``items`` ordered and looked up by ``key``."""

    def __init__(self, items: Iterable[Any], key: Callable[[Any], Any] | None = None) -> None:
        self._key = key
        self._items = tuple(sorted(items, key=key))
        self._keys = [self._key_of(item) for item in self._items]

    def _key_of(self, item: Any) -> Any:
        return item if self._key is None else self._key(item)

    def _index(self, key: Any) -> int | None:
        index = bisect_left(self._keys, key)
        if index < len(self._keys):
            found = self._keys[index]
            if not found < key and not key < found:
                return index
        return None

    def get(self, item: Any) -> Any | None:
        """Return the stored element whose key equals that of ``item``, or None."""
        index = self._index(self._key_of(item))
        return None if index is None else self._items[index]

    def by_index(self, index: int) -> Any | None:
        """Return the element at sorted position ``index``, or None if out of range."""
        if 0 <= index < len(self._items):
            return self._items[index]
        return None

    def __contains__(self, item: Any) -> bool:
        return self._index(self._key_of(item)) is not None

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._items)


class StaticArrayMap:
    """Immutable map whose entries are kept sorted by key."""

    def __init__(self, pairs: Iterable[tuple[Any, Any]] | Mapping[Any, Any]) -> None:
        if isinstance(pairs, Mapping):
            pairs = pairs.items()
        self._set = StaticArraySet((tuple(pair) for pair in pairs), key=itemgetter(0))

    def find(self, key: Any) -> Any | None:
        """Return the value stored under ``key``, or None."""
        entry = self._set.get((key, None))
        return None if entry is None else entry[1]

    def value_by_index(self, index: int) -> Any | None:
        """Return the value at sorted position ``index``, or None if out of range."""
        entry = self._set.by_index(index)
        return None if entry is None else entry[1]

    def items(self) -> Iterator[tuple[Any, Any]]:
        """Yield ``(key, value)`` pairs in key order."""
        return iter(self._set)

    def __len__(self) -> int:
        return len(self._set)
"""Ordered set backed by a skip list that grows its height as it fills."""

from __future__ import annotations

import random
from typing import Any, Callable, Iterator

MAX_LEVELS = 32


class _Node:
    __slots__ = ("value", "forward")

    def __init__(self, value: Any, levels: int) -> None:
        self.value = value
        self.forward: list[_Node | None] = [None] * levels


class SkipList:
    """Sorted collection of unique values ordered by ``key``.

    The list starts with ``start_levels`` levels and gains one whenever its
    top level holds more than ``level_len`` nodes. A new node climbs one more
    level with probability ``1 / level_len``, never past the current top.
    """

    def __init__(
        self,
        key: Callable[[Any], Any] | None = None,
        start_levels: int = 2,
        level_len: int = 3,
        rng: random.Random | None = None,
    ) -> None:
        if not 1 <= start_levels <= MAX_LEVELS:
            raise ValueError(f"start_levels must be between 1 and {MAX_LEVELS}")
        if level_len < 1:
            raise ValueError("level_len must be positive")
        self._key = key
        self._level_len = level_len
        self._rng = rng or random.Random()
        self._head = _Node(None, start_levels)

    @property
    def height(self) -> int:
        """Number of levels currently in use."""
        return len(self._head.forward)

    def _key_of(self, value: Any) -> Any:
        return value if self._key is None else self._key(value)

    def _predecessors(self, key: Any) -> list[_Node]:
        """Last node on each level whose key is below ``key``, bottom level first."""
        preds: list[_Node] = [self._head] * self.height
        node = self._head
        for level in reversed(range(self.height)):
            nxt = node.forward[level]
            while nxt is not None and self._key_of(nxt.value) < key:
                node = nxt
                nxt = node.forward[level]
            preds[level] = node
        return preds

    def _matches(self, node: _Node | None, key: Any) -> bool:
        return node is not None and not key < self._key_of(node.value)

    def _random_levels(self) -> int:
        top = self.height - 1
        index = 0
        while index < top and self._rng.randrange(self._level_len) == 0:
            index += 1
        return index + 1

    def insert(self, value: Any) -> bool:
        """Add ``value``; return False if an equal value is already present."""
        key = self._key_of(value)
        preds = self._predecessors(key)
        if self._matches(preds[0].forward[0], key):
            return False
        node = _Node(value, self._random_levels())
        for level in range(len(node.forward)):
            node.forward[level] = preds[level].forward[level]
            preds[level].forward[level] = node
        if self.level_size(self.height - 1) > self._level_len and self.height < MAX_LEVELS:
            self._head.forward.append(None)
        return True

    def erase(self, value: Any) -> bool:
        """Remove the value equal to ``value``; return False if there is none."""
        key = self._key_of(value)
        preds = self._predecessors(key)
        node = preds[0].forward[0]
        if not self._matches(node, key):
            return False
        for level in range(len(node.forward)):
            preds[level].forward[level] = node.forward[level]
        return True

    def find(self, value: Any) -> Any | None:
        """Return the stored value equal to ``value``, or None."""
        key = self._key_of(value)
        node = self._predecessors(key)[0].forward[0]
        return node.value if self._matches(node, key) else None

    def lower_bound(self, value: Any) -> Any | None:
        """Return the first stored value not below ``value``, or None."""
        node = self._predecessors(self._key_of(value))[0].forward[0]
        return None if node is None else node.value

    def range(self, begin: Any, end: Any) -> Iterator[Any]:
        """Yield stored values from ``begin`` inclusive to ``end`` exclusive."""
        end_key = self._key_of(end)
        node = self._predecessors(self._key_of(begin))[0].forward[0]
        while node is not None and self._key_of(node.value) < end_key:
            yield node.value
            node = node.forward[0]

    def level(self, index: int) -> Iterator[Any]:
        """Yield the values linked on level ``index``; nothing if it does not exist."""
        if not 0 <= index < self.height:
            return
        node = self._head.forward[index]
        while node is not None:
            yield node.value
            node = node.forward[index]

    def level_size(self, index: int) -> int:
        """Number of nodes linked on level ``index``."""
        return sum(1 for _ in self.level(index))

    def _unlink(self, preds: list[_Node], ends: list[_Node]) -> list[Any]:
        first = preds[0].forward[0]
        stop = ends[0].forward[0]
        for level in range(self.height):
            preds[level].forward[level] = ends[level].forward[level]
        removed = []
        node = first
        while node is not stop and node is not None:
            removed.append(node.value)
            node = node.forward[0]
        return removed

    def pop_until(self, end: Any) -> list[Any]:
        """Remove and return, in order, every value below ``end``."""
        ends = self._predecessors(self._key_of(end))
        return self._unlink([self._head] * self.height, ends)

    def pop_range(self, begin: Any, end: Any) -> list[Any]:
        """Remove and return the values from ``begin`` inclusive to ``end`` exclusive."""
        begin_key = self._key_of(begin)
        end_key = self._key_of(end)
        if not begin_key < end_key:
            return []
        return self._unlink(self._predecessors(begin_key), self._predecessors(end_key))

    def clear(self) -> None:
        """Remove every value, keeping the current height."""
        self._head.forward = [None] * self.height

    def __len__(self) -> int:
        return self.level_size(0)

    def __iter__(self) -> Iterator[Any]:
        return self.level(0)

    def __contains__(self, value: Any) -> bool:
        key = self._key_of(value)
        return self._matches(self._predecessors(key)[0].forward[0], key)

    def __bool__(self) -> bool:
        return self._head.forward[0] is not None
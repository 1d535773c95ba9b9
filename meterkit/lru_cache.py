"""A fixed-size cache evicting the least recently used entry."""

from __future__ import annotations

from collections import OrderedDict
from typing import Generic, Hashable, Optional, TypeVar

__all__ = ["LRUCache"]

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class LRUCache(Generic[K, V]):
    """A cache holding at most ``capacity`` entries.

    When space runs out, the oldest unused entry is evicted to make room.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self.capacity = capacity
        # Most recently used entries live at the end.
        self._entries: OrderedDict[K, V] = OrderedDict()

    def insert(self, key: K, value: V) -> Optional[V]:
        """Insert a value, returning the previous value for the key if any."""
        if key in self._entries:
            old = self._entries[key]
            self._entries[key] = value
            self._entries.move_to_end(key)
            return old
        while self._entries and len(self._entries) >= self.capacity:
            self._entries.popitem(last=False)
        self._entries[key] = value
        return None

    def peek(self, key: K) -> Optional[V]:
        """Return the value for ``key`` without promoting it."""
        return self._entries.get(key)

    def get(self, key: K) -> Optional[V]:
        """Return the value for ``key`` and mark it as most recently used."""
        if key not in self._entries:
            return None
        self._entries.move_to_end(key)
        return self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
"""
Bounded, append-only history used for the execution and notification logs.

Entries are kept oldest-first. Once capacity is reached every append evicts
the oldest entry. Entries are never updated in place.
"""

import threading
from collections import deque
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class BoundedLog(Generic[T]):
    """Thread-safe FIFO-evicting log."""

    def __init__(self, capacity: int = 100, on_append: Callable[[T], None] | None = None):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._entries: deque[T] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._on_append = on_append

    def append(self, entry: T) -> None:
        with self._lock:
            self._entries.append(entry)
        if self._on_append is not None:
            self._on_append(entry)

    def entries(self) -> list[T]:
        """All retained entries, oldest first."""
        with self._lock:
            return list(self._entries)

    def recent(self, limit: int | None = None) -> list[T]:
        """Retained entries, newest first."""
        with self._lock:
            newest_first = list(reversed(self._entries))
        return newest_first if limit is None else newest_first[:limit]

    def filter(self, predicate: Callable[[T], bool]) -> list[T]:
        """Retained entries matching predicate, oldest first."""
        return [entry for entry in self.entries() if predicate(entry)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

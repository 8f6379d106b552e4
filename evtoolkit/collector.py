"""Thread-safe gathering of items that are collected in batches."""

from __future__ import annotations

import threading
from typing import Generic, TypeVar

T = TypeVar("T")


class Collector(Generic[T]):
    """Many threads add items; one reader collects them in insertion order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: list[T] = []
        self._closed = False

    def __repr__(self) -> str:
        return f"Collector(pending={len(self._items)}, closed={self._closed})"

    @property
    def closed(self) -> bool:
        return self._closed

    def add(self, item: T) -> bool:
        """Store ``item``; False if the collector has been closed."""
        with self._lock:
            if self._closed:
                return False
            self._items.append(item)
            return True

    def collect(self) -> list[T]:
        """Take every item added since the last collection, oldest first."""
        with self._lock:
            items, self._items = self._items, []
        return items

    def close(self) -> None:
        """Refuse further items; those already added can still be collected."""
        with self._lock:
            self._closed = True
# src/cadence/learning/buffer.py

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import Generic, TypeVar

T = TypeVar("T")


class BoundedBuffer(Generic[T]):
    """
    Append-only ordered collection with FIFO eviction.

    Items are kept oldest-first. Trimming drops from the oldest end; expiry drops
    every item whose timestamp is not newer than the cutoff.
    """

    def __init__(
            self,
            capacity: int,
            timestamp_of: Callable[[T], float],
            items: Iterable[T] = (),
    ) -> None:
        self._capacity = max(0, int(capacity))
        self._ts = timestamp_of
        self._items: list[T] = list(items)

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def items(self) -> list[T]:
        return list(self._items)

    def append(self, item: T) -> None:
        self._items.append(item)
        self.trim_to_capacity()

    def trim_to_capacity(self, capacity: int | None = None) -> int:
        """Keep only the newest `capacity` items. Returns how many were dropped."""
        cap = self._capacity if capacity is None else max(0, int(capacity))
        overflow = len(self._items) - cap
        if overflow <= 0:
            return 0
        del self._items[:overflow]
        return overflow

    def evict_older_than(self, max_age_seconds: float, *, now: float) -> int:
        """Drop items at or before now - max_age_seconds. Returns how many were dropped."""
        cutoff = now - max_age_seconds
        before = len(self._items)
        self._items = [it for it in self._items if self._ts(it) > cutoff]
        return before - len(self._items)

    def count_since(self, cutoff: float) -> int:
        return sum(1 for it in self._items if self._ts(it) > cutoff)

    def clear(self) -> None:
        self._items.clear()

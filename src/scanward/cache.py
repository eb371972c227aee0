"""Bounded in-memory cache with TTL expiry and stale reads."""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

V = TypeVar("V")


@dataclass
class _Entry(Generic[V]):
    value: V
    stored_at: float


class TTLCache(Generic[V]):
    """Least-recently-used map whose entries go stale after ``ttl`` seconds.

    Stale entries are not returned by :meth:`get` but stay available through
    :meth:`get_stale` until evicted by capacity, so callers can fall back to
    them when the fresh source is unavailable. ``ttl=None`` never expires.
    """

    def __init__(
        self,
        capacity: int = 1024,
        ttl: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._ttl = ttl
        self._clock = clock
        self._entries: OrderedDict[str, _Entry[V]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> V | None:
        """Return a fresh value, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None or self._expired(entry):
            return None
        self._entries.move_to_end(key)
        return entry.value

    def get_stale(self, key: str) -> V | None:
        """Return the stored value regardless of age."""
        entry = self._entries.get(key)
        return entry.value if entry is not None else None

    def set(self, key: str, value: V) -> None:
        self._entries[key] = _Entry(value=value, stored_at=self._clock())
        self._entries.move_to_end(key)
        while len(self._entries) > self._capacity:
            self._entries.popitem(last=False)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def _expired(self, entry: _Entry[V]) -> bool:
        if self._ttl is None:
            return False
        return self._clock() - entry.stored_at >= self._ttl

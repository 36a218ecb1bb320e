from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class TTLCache(Protocol):
    """Key/value cache whose entries expire after a bounded TTL."""

    async def get(self, key: str) -> Any | None:
        """Return the cached value, or None if missing or expired."""
        ...

    async def set(self, key: str, value: Any) -> None:
        """Store ``value`` for the cache's TTL."""
        ...

    async def delete(self, key: str) -> bool:
        """Drop ``key``. Returns True if it was present."""
        ...

    async def clear(self) -> int:
        """Drop every entry and return how many were removed."""
        ...


class InMemoryTTLCache:
    """In-memory cache backend owned by whoever constructs it."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_seconds <= 0:
            msg = "ttl_seconds must be positive"
            raise ValueError(msg)
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            self._entries[key] = (self._clock() + self.ttl_seconds, value)

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def clear(self) -> int:
        async with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

"""Async key/value cache with per-key TTL.

Backends implement `get(key)` and `set(key, value, ttl_seconds)` on string
values (JSON payloads). MemoryCache cannot fail; callers still treat any
backend error as a cache miss or a skipped write (see InsightPublisher).

Usage:
    cache = MemoryCache()

    await cache.set("daily_insights:2024-01-15", payload, ttl_seconds=3600)
    payload = await cache.get("daily_insights:2024-01-15")  # None when missing or expired
"""

import asyncio
import time
from typing import Callable, Optional, Protocol


class CacheBackend(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...


class MemoryCache:
    """In-process TTL cache; expired entries are dropped on read and on every write."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}  # key -> (value, expires_at)
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        async with self._lock:
            now = self._clock()
            # Date-scoped keys are never read again once their day has passed
            self._purge_expired(now)
            self._entries[key] = (value, now + ttl_seconds)

    async def ttl(self, key: str) -> Optional[float]:
        """Seconds until expiry, or None if missing."""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            remaining = entry[1] - self._clock()
            return remaining if remaining > 0 else None

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)

"""
CacheManager - Async-compatible response cache with TTL expiry.

Features:
- Memory cache keyed by logical request identity (endpoint + params)
- TTL (Time To Live) with lazy eviction on access
- Single-key and pattern-based invalidation
- Hit/miss/eviction statistics
"""

import asyncio
import json
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with metadata."""

    data: T
    stored_at: float
    ttl: float

    @property
    def expires_at(self) -> float:
        return self.stored_at + self.ttl

    def is_expired(self, now: float) -> bool:
        """Check if entry is past its TTL."""
        return now >= self.expires_at


class CacheManager:
    """
    Async-compatible cache manager with TTL expiry.

    Usage:
        cache = CacheManager(default_ttl=timedelta(minutes=5))

        key = cache.generate_key("/transactions", {"type": "expense"})
        data = await cache.get(key)
        if data is None:
            data = await fetch_data()
            await cache.set(key, data)
    """

    def __init__(
        self,
        default_ttl: timedelta = timedelta(minutes=5),
        clock: Callable[[], float] = time.monotonic,
        debug: bool = False,
    ):
        self._memory: dict[str, CacheEntry[Any]] = {}
        self._default_ttl = default_ttl
        self._clock = clock
        self._debug = debug
        self._lock = asyncio.Lock()
        self._stats = CacheStats()

    @staticmethod
    def generate_key(endpoint: str, params: dict[str, Any] | None = None) -> str:
        """Generate a cache key from endpoint and params."""
        if not params:
            return endpoint

        parts = [
            f"{k}={json.dumps(v, sort_keys=True, default=str)}"
            for k, v in sorted(params.items())
            if v is not None and v != ""
        ]
        if not parts:
            return endpoint
        return f"{endpoint}?{'&'.join(parts)}"

    async def get(self, key: str) -> Any | None:
        """
        Get value from cache.

        Returns the cached data if present and unexpired, None otherwise.
        An expired entry is evicted as a side effect.
        """
        async with self._lock:
            entry = self._memory.get(key)
            if entry is None:
                self._stats.misses += 1
                self._log(f"MISS: {key[:50]}")
                return None

            if entry.is_expired(self._clock()):
                del self._memory[key]
                self._stats.evictions += 1
                self._stats.misses += 1
                self._log(f"EXPIRED: {key[:50]}")
                return None

            self._stats.hits += 1
            self._log(f"HIT: {key[:50]}")
            return entry.data

    async def set(self, key: str, data: Any, ttl: timedelta | None = None) -> None:
        """
        Set value in cache, replacing any existing entry.

        Args:
            key: Cache key
            data: Data to cache
            ttl: Time to live (uses default if not specified)
        """
        if ttl is None:
            ttl = self._default_ttl

        async with self._lock:
            self._memory[key] = CacheEntry(
                data=data,
                stored_at=self._clock(),
                ttl=ttl.total_seconds(),
            )
            self._log(f"SET: {key[:50]} (TTL: {ttl.total_seconds()}s)")

    async def invalidate(self, key: str) -> bool:
        """Delete a specific key from cache."""
        async with self._lock:
            if key in self._memory:
                del self._memory[key]
                self._stats.evictions += 1
                self._log(f"INVALIDATE: {key[:50]}")
                return True
            return False

    async def invalidate_pattern(self, pattern: str) -> int:
        """
        Invalidate all keys matching a pattern.

        Args:
            pattern: Substring to match in keys, usually a resource prefix

        Returns:
            Number of entries invalidated
        """
        async with self._lock:
            keys_to_delete = [k for k in self._memory if pattern in k]
            for key in keys_to_delete:
                del self._memory[key]
            self._stats.evictions += len(keys_to_delete)

            if keys_to_delete:
                self._log(
                    f"INVALIDATE: {len(keys_to_delete)} entries matching '{pattern}'"
                )

            return len(keys_to_delete)

    async def clear(self) -> None:
        """Clear all cache entries."""
        async with self._lock:
            count = len(self._memory)
            self._memory.clear()
            self._stats.evictions += count
            self._log(f"CLEAR: {count} entries removed")

    async def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns count of removed entries."""
        async with self._lock:
            now = self._clock()
            expired_keys = [k for k, v in self._memory.items() if v.is_expired(now)]
            for key in expired_keys:
                del self._memory[key]
            self._stats.evictions += len(expired_keys)

            if expired_keys:
                self._log(f"CLEANUP: {len(expired_keys)} expired entries removed")

            return len(expired_keys)

    def is_stale(self, key: str, stale_ttl: timedelta = timedelta(seconds=30)) -> bool:
        """Check whether an entry is older than stale_ttl (missing counts as stale)."""
        entry = self._memory.get(key)
        if entry is None:
            return True
        return self._clock() - entry.stored_at > stale_ttl.total_seconds()

    def get_stats(self) -> "CacheStats":
        """Get cache statistics."""
        self._stats.size = len(self._memory)
        self._stats.keys = list(self._memory.keys())
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[CacheManager] {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    keys: list[str] = field(default_factory=list)

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "size": self.size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }

"""
Cache invalidation patterns and mutation hooks.
"""

from typing import Any

from loguru import logger

from fintrack.services.cache import CacheManager

TRANSACTIONS = "/transactions"
STATS = "/stats"
CATEGORIES = "/categories"
REPORTS = "/reports"
USERS = "/users"
SETTINGS = "/settings"


class CacheInvalidator:
    """Maps resource mutations to the cache entries they make stale."""

    def __init__(self, cache: CacheManager):
        self.cache = cache

    async def invalidate_pattern(self, pattern: str) -> int:
        count = await self.cache.invalidate_pattern(pattern)
        logger.debug(f"Invalidated {count} cache entries matching pattern: {pattern}")
        return count

    async def invalidate_entry(
        self, endpoint: str, params: dict[str, Any] | None = None
    ) -> bool:
        key = self.cache.generate_key(endpoint, params)
        removed = await self.cache.invalidate(key)
        logger.debug(f"Invalidated cache entry: {key}")
        return removed

    async def invalidate_all(self) -> None:
        await self.cache.clear()
        logger.debug("All caches cleared")

    async def on_transaction_created(self) -> None:
        await self.invalidate_pattern(TRANSACTIONS)
        await self.invalidate_pattern(STATS)

    async def on_transaction_updated(self, transaction_id: str) -> None:
        await self.invalidate_pattern(TRANSACTIONS)
        await self.invalidate_pattern(STATS)

    async def on_transaction_deleted(self, transaction_id: str | None = None) -> None:
        await self.invalidate_pattern(TRANSACTIONS)
        await self.invalidate_pattern(STATS)

    async def on_category_changed(self) -> None:
        await self.invalidate_pattern(CATEGORIES)
        await self.invalidate_pattern(TRANSACTIONS)

    async def on_settings_updated(self) -> None:
        await self.invalidate_all()

    async def cleanup_expired(self) -> int:
        cleaned = await self.cache.cleanup_expired()
        logger.debug(f"Cache cleanup: removed {cleaned} expired entries")
        return cleaned

    def log_stats(self) -> dict[str, Any]:
        stats = self.cache.get_stats().to_dict()
        logger.info(
            f"Cache size={stats['size']} hits={stats['hits']} "
            f"misses={stats['misses']} hit_rate={stats['hit_rate']} "
            f"evictions={stats['evictions']}"
        )
        return stats

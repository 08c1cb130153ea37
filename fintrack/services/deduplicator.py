"""
RequestDeduplicator - Prevents duplicate concurrent requests.

When multiple callers request the same resource simultaneously,
only one actual request is made and the outcome is shared.
"""

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

T = TypeVar("T")


class RequestDeduplicator:
    """
    Deduplicates concurrent async requests.

    When multiple coroutines request the same key simultaneously,
    only one actual request is made. All callers await the same result
    (or the same exception).

    Usage:
        dedup = RequestDeduplicator()

        async def fetch_data(url: str):
            return await dedup.execute(
                key=f"GET:{url}",
                request_fn=lambda: http_client.get(url),
            )
    """

    def __init__(self, debug: bool = False):
        self._in_flight: dict[str, asyncio.Task[Any]] = {}
        self._lock = asyncio.Lock()
        self._debug = debug
        self._stats = DeduplicatorStats()

    async def execute(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Execute request with deduplication.

        If a request with the same key is already in flight,
        wait for and return its result instead of making a new request.

        Args:
            key: Unique identifier for this request
            request_fn: Async function to execute if no duplicate exists

        Returns:
            Result from request_fn (either fresh or from in-flight request)
        """
        async with self._lock:
            self._stats.total += 1
            task = self._in_flight.get(key)
            if task is not None:
                self._stats.deduplicated += 1
                self._log(f"DEDUPE: Waiting for in-flight request: {key[:50]}")
            else:
                self._log(f"NEW: Starting request: {key[:50]}")
                task = asyncio.create_task(self._execute_and_cleanup(key, request_fn))
                self._in_flight[key] = task

        # A cancelled waiter must not cancel the request shared with others
        return await asyncio.shield(task)

    async def _execute_and_cleanup(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[T]],
    ) -> T:
        """Execute request and deregister it once settled."""
        try:
            return await request_fn()
        finally:
            async with self._lock:
                # The key may have been cleared and re-registered meanwhile
                if self._in_flight.get(key) is asyncio.current_task():
                    del self._in_flight[key]
                self._log(f"DONE: Request settled: {key[:50]}")

    def clear(self, key: str) -> bool:
        """Forget an in-flight request without cancelling it."""
        if self._in_flight.pop(key, None) is not None:
            self._log(f"CLEAR: {key[:50]}")
            return True
        return False

    def clear_all(self) -> int:
        """Forget all in-flight requests without cancelling them."""
        count = len(self._in_flight)
        self._in_flight.clear()
        if count:
            self._log(f"CLEAR_ALL: {count} requests forgotten")
        return count

    async def cancel_all(self) -> int:
        """Cancel all in-flight requests."""
        async with self._lock:
            tasks = list(self._in_flight.values())
            self._in_flight.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            self._log(f"CANCEL_ALL: {len(tasks)} requests cancelled")
        return len(tasks)

    def get_in_flight_count(self) -> int:
        """Get number of in-flight requests."""
        return len(self._in_flight)

    def get_in_flight_keys(self) -> list[str]:
        """Get keys of all in-flight requests."""
        return list(self._in_flight.keys())

    def get_stats(self) -> "DeduplicatorStats":
        """Get deduplication statistics."""
        self._stats.in_flight = len(self._in_flight)
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[Deduplicator] {message}")


class DeduplicatorStats:
    """Statistics for request deduplication."""

    def __init__(self):
        self.total: int = 0  # All execute() calls
        self.deduplicated: int = 0  # Calls that joined an in-flight request
        self.in_flight: int = 0  # Current in-flight requests

    @property
    def dedup_rate(self) -> float:
        """Calculate deduplication rate."""
        if self.total == 0:
            return 0.0
        return self.deduplicated / self.total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_requests": self.total,
            "deduplicated": self.deduplicated,
            "in_flight": self.in_flight,
            "dedup_rate": f"{self.dedup_rate:.2%}",
        }

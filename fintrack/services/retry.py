"""
RetryManager - Retries transient failures with exponential backoff.

Retryable:
- NetworkError (no response obtained)
- RequestTimeoutError
- Errors carrying status 408, 429, 500, 502, 503 or 504

delay(attempt) = min(initial_delay * backoff_multiplier ** attempt, max_delay),
jittered by +/-10% and rounded to the millisecond.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
)

from fintrack.services.errors import (
    RETRYABLE_STATUS_CODES,
    NetworkError,
    RequestTimeoutError,
)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behaviour."""

    max_retries: int = 3  # Total attempts, including the first
    initial_delay: float = 1.0  # Seconds
    max_delay: float = 30.0  # Seconds
    backoff_multiplier: float = 2.0
    jitter: float = 0.1


class RetryManager:
    """
    Wraps an async operation with bounded exponential-backoff retry.

    Usage:
        retry = RetryManager(RetryConfig(max_retries=3))
        data = await retry.execute_with_retry(lambda: fetch(url))
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config or RetryConfig()
        self._sleep = sleep

    @staticmethod
    def is_retryable(error: BaseException) -> bool:
        """Check if an error belongs to the transient failure classes."""
        if isinstance(error, (NetworkError, RequestTimeoutError)):
            return True
        return getattr(error, "status_code", None) in RETRYABLE_STATUS_CODES

    def calculate_delay(self, attempt: int) -> float:
        """Backoff delay in seconds for a zero-based retry attempt."""
        delay = min(
            self.config.initial_delay * self.config.backoff_multiplier**attempt,
            self.config.max_delay,
        )
        jitter = delay * self.config.jitter * random.uniform(-1, 1)
        return round(delay + jitter, 3)

    async def execute_with_retry(self, fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run fn, retrying transient failures.

        Exactly config.max_retries attempts are made at most. The last
        error is re-raised when attempts run out or the error is not
        retryable.
        """
        attempts = max(1, self.config.max_retries)

        def log_retry(state: RetryCallState) -> None:
            delay = state.next_action.sleep if state.next_action else 0.0
            logger.warning(
                f"[RetryManager] Attempt {state.attempt_number}/{attempts} failed, "
                f"retrying in {delay * 1000:.0f}ms: {state.outcome.exception()}"
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            retry=retry_if_exception(self.is_retryable),
            wait=lambda state: self.calculate_delay(state.attempt_number - 1),
            before_sleep=log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(fn)

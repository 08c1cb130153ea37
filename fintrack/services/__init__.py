"""
Service layer infrastructure - request pipeline for the transactions API.

Provides:
- CacheManager: TTL response cache with pattern invalidation
- RequestDeduplicator: Prevents duplicate concurrent requests
- RetryManager: Exponential-backoff retry for transient failures
- ApiClient: Unified client combining all patterns
"""

from fintrack.services.errors import (
    ServiceError,
    NetworkError,
    RequestTimeoutError,
    APIError,
    describe_error,
)
from fintrack.services.cache import CacheManager, CacheEntry, CacheStats
from fintrack.services.deduplicator import RequestDeduplicator
from fintrack.services.retry import RetryConfig, RetryManager
from fintrack.services.client import (
    ApiClient,
    create_api_client,
    get_api_client,
    close_api_client,
)

__all__ = [
    # Errors
    "ServiceError",
    "NetworkError",
    "RequestTimeoutError",
    "APIError",
    "describe_error",
    # Cache
    "CacheManager",
    "CacheEntry",
    "CacheStats",
    # Deduplicator
    "RequestDeduplicator",
    # Retry
    "RetryConfig",
    "RetryManager",
    # Client
    "ApiClient",
    "create_api_client",
    "get_api_client",
    "close_api_client",
]

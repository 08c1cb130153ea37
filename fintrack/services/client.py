"""
ApiClient - Unified async HTTP client for the transactions backend.

Combines:
- CacheManager for read response caching
- RequestDeduplicator for concurrent request optimization
- RetryManager for transient failure recovery
- Bearer token auth with one-shot refresh on 401
"""

import asyncio
import json
from datetime import timedelta
from typing import Any, Awaitable, Callable

import httpx
from loguru import logger

from fintrack.services.cache import CacheManager
from fintrack.services.deduplicator import RequestDeduplicator
from fintrack.services.errors import APIError, NetworkError, RequestTimeoutError
from fintrack.services.retry import RetryConfig, RetryManager
from fintrack.settings import Settings, global_settings

RefreshHandler = Callable[[], Awaitable[str | None]]


class ApiClient:
    """
    HTTP client with caching, deduplication, retry and token refresh.

    Usage:
        client = ApiClient("http://localhost:5000/api")
        client.set_auth_token(token)

        # Cached read
        page = await client.get("/transactions", {"type": "expense"}, cache=True)

        # Mutation
        created = await client.post("/transactions", {"amount": 12.5, ...})
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        cache: CacheManager | None = None,
        deduplicator: RequestDeduplicator | None = None,
        retry_manager: RetryManager | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        debug: bool = False,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.default_headers: dict[str, str] = {"Content-Type": "application/json"}

        # Runtime state
        self.auth_token: str | None = None
        self._refresh_handler: RefreshHandler | None = None

        # Components, injectable so tests can isolate them
        self.cache = cache or CacheManager(debug=debug)
        self.deduplicator = deduplicator or RequestDeduplicator(debug=debug)
        self.retry_manager = retry_manager or RetryManager()

        # HTTP client (lazy initialization)
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._http_client

    def set_auth_token(self, token: str | None) -> None:
        """Attach or clear the bearer token used for authenticated requests."""
        self.auth_token = token
        if token:
            self.default_headers["Authorization"] = f"Bearer {token}"
        else:
            self.default_headers.pop("Authorization", None)

    def set_refresh_handler(self, handler: RefreshHandler | None) -> None:
        """Register the async handler called once on a 401 response."""
        self._refresh_handler = handler

    def build_url(self, endpoint: str, params: dict[str, Any] | None = None) -> str:
        """Build full URL, skipping empty query parameters."""
        url = f"{self.base_url}{endpoint}"
        query = {
            k: v for k, v in (params or {}).items() if v is not None and v != ""
        }
        if not query:
            return url
        return str(httpx.URL(url, params=query))

    async def request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        body: Any = None,
        headers: dict[str, str] | None = None,
        cache: bool = False,
        force_refresh: bool = False,
        retry: bool = True,
        cache_ttl: timedelta | None = None,
        allow_refresh: bool = True,
    ) -> Any:
        """
        Make an HTTP request through cache, deduplicator and retry.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            endpoint: Path relative to the base URL
            params: Query parameters
            body: JSON body for POST/PUT requests
            headers: Additional headers
            cache: Serve from and store into the response cache
            force_refresh: Skip the cache lookup (the result is still stored)
            retry: Retry transient failures
            cache_ttl: Override cache TTL
            allow_refresh: Attempt token refresh on 401

        Returns:
            Parsed JSON response

        Raises:
            APIError: Backend answered with a failure status
            RequestTimeoutError: Request exceeded the timeout
            NetworkError: Transport failed
        """
        method = method.upper()
        url = self.build_url(endpoint, params)
        cache_key = self.cache.generate_key(endpoint, params)

        if cache and not force_refresh:
            cached = await self.cache.get(cache_key)
            if cached is not None:
                return cached

        body_key = json.dumps(body, sort_keys=True, default=str) if body is not None else ""
        dedup_key = f"{method}:{cache_key}:{body_key}"
        extra_headers = headers or {}
        # At most one token refresh per call, across retry attempts
        can_refresh = allow_refresh

        async def refresh_once() -> str | None:
            nonlocal can_refresh
            if not can_refresh or self._refresh_handler is None:
                return None
            can_refresh = False
            logger.info(f"Unauthorized response from {url}, refreshing token")
            return await self._refresh_handler()

        async def execute() -> Any:
            response = await self._send(method, url, body, extra_headers, refresh_once)
            return self._handle_response(response, url)

        async def perform() -> Any:
            if retry:
                data = await self.retry_manager.execute_with_retry(execute)
            else:
                data = await execute()

            if cache:
                await self.cache.set(cache_key, data, cache_ttl)

            return data

        return await self.deduplicator.execute(dedup_key, perform)

    async def _send(
        self,
        method: str,
        url: str,
        body: Any,
        headers: dict[str, str],
        refresh: RefreshHandler,
    ) -> httpx.Response:
        """Send once; on 401 replay once if refresh yields a new token."""
        response = await self._fetch_with_timeout(method, url, body, headers)

        if response.status_code == 401:
            new_token = await refresh()
            if new_token:
                self.set_auth_token(new_token)
                response = await self._fetch_with_timeout(method, url, body, headers)

        return response

    async def _fetch_with_timeout(
        self,
        method: str,
        url: str,
        body: Any,
        headers: dict[str, str],
    ) -> httpx.Response:
        """Execute the actual HTTP request bounded by the client timeout."""
        client = await self._get_http_client()
        content = json.dumps(body).encode() if body is not None else None

        try:
            return await asyncio.wait_for(
                client.request(
                    method=method,
                    url=url,
                    headers={**self.default_headers, **headers},
                    content=content,
                    timeout=self.timeout,
                ),
                timeout=self.timeout,
            )

        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeoutError(self.timeout, url=url) from e

        except httpx.RequestError as e:
            raise NetworkError(str(e) or "Network request failed", url=url) from e

    @staticmethod
    def _handle_response(response: httpx.Response, url: str) -> Any:
        """Parse the JSON body and raise APIError on failure statuses."""
        status = response.status_code
        try:
            data = response.json()
        except ValueError:
            if not response.is_success:
                raise APIError(f"HTTP {status}", status, url) from None
            return {"success": True}

        if not response.is_success:
            message = f"HTTP {status}"
            if isinstance(data, dict):
                error = data.get("error")
                if isinstance(error, dict):
                    error = error.get("message")
                if error:
                    message = str(error)
            raise APIError(message, status, url, data)

        return data

    async def _call(self, method: str, endpoint: str, **options: Any) -> Any:
        """Run request() with a stable error vocabulary."""
        try:
            return await self.request(method, endpoint, **options)
        except (APIError, RequestTimeoutError):
            raise
        except Exception as e:
            raise NetworkError("Network request failed") from e

    async def get(
        self, endpoint: str, params: dict[str, Any] | None = None, **options: Any
    ) -> Any:
        """GET request."""
        return await self._call("GET", endpoint, params=params, **options)

    async def post(self, endpoint: str, body: Any = None, **options: Any) -> Any:
        """POST request."""
        return await self._call(
            "POST", endpoint, body=body if body is not None else {}, **options
        )

    async def put(self, endpoint: str, body: Any = None, **options: Any) -> Any:
        """PUT request."""
        return await self._call(
            "PUT", endpoint, body=body if body is not None else {}, **options
        )

    async def delete(self, endpoint: str, **options: Any) -> Any:
        """DELETE request."""
        return await self._call("DELETE", endpoint, **options)

    async def close(self) -> None:
        """Close the HTTP client and cleanup resources."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

        await self.deduplicator.cancel_all()
        logger.debug("ApiClient closed")

    async def __aenter__(self) -> "ApiClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def get_stats(self) -> dict[str, Any]:
        """Get cache and deduplication statistics."""
        return {
            "cache": self.cache.get_stats().to_dict(),
            "deduplicator": self.deduplicator.get_stats().to_dict(),
        }


def create_api_client(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ApiClient:
    """Build an ApiClient wired from settings."""
    settings = settings or global_settings
    return ApiClient(
        base_url=settings.api_url,
        timeout=settings.request_timeout,
        cache=CacheManager(
            default_ttl=timedelta(seconds=settings.cache_ttl),
            debug=settings.client_debug,
        ),
        deduplicator=RequestDeduplicator(debug=settings.client_debug),
        retry_manager=RetryManager(
            RetryConfig(
                max_retries=settings.retry_max_attempts,
                initial_delay=settings.retry_initial_delay,
                max_delay=settings.retry_max_delay,
                backoff_multiplier=settings.retry_backoff_multiplier,
            )
        ),
        transport=transport,
        debug=settings.client_debug,
    )


# Global client instance
_global_client: ApiClient | None = None


def get_api_client() -> ApiClient:
    """Get the global API client instance."""
    global _global_client
    if _global_client is None:
        _global_client = create_api_client()
    return _global_client


async def close_api_client() -> None:
    """Close the global API client."""
    global _global_client
    if _global_client:
        await _global_client.close()
        _global_client = None

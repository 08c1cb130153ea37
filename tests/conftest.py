"""Shared test fixtures."""

from collections.abc import Callable

import httpx
import pytest
from loguru import logger

from fintrack.guest import LocalLedger, MemorySessionStorage, Notification, Notifier
from fintrack.services import (
    ApiClient,
    CacheManager,
    RequestDeduplicator,
    RetryConfig,
    RetryManager,
)

BASE_URL = "http://test/api"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested by the retry manager, in order."""
    return []


@pytest.fixture
def retry_manager(sleeps: list[float]) -> RetryManager:
    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    return RetryManager(RetryConfig(), sleep=fake_sleep)


@pytest.fixture
async def make_client(clock: FakeClock, retry_manager: RetryManager):
    """Factory for ApiClients whose transport is an httpx.MockTransport handler."""
    clients: list[ApiClient] = []

    def factory(handler: Callable, **kwargs) -> ApiClient:
        client = ApiClient(
            BASE_URL,
            cache=CacheManager(clock=clock),
            deduplicator=RequestDeduplicator(),
            retry_manager=retry_manager,
            transport=httpx.MockTransport(handler),
            **kwargs,
        )
        clients.append(client)
        return client

    yield factory

    for client in clients:
        await client.close()


@pytest.fixture
def notifications() -> list[Notification]:
    return []


@pytest.fixture
def scheduled() -> list[tuple[float, Callable[[], None]]]:
    """Callbacks the ledger asked to run later, not yet run."""
    return []


@pytest.fixture
def ledger(notifications, scheduled) -> LocalLedger:
    notifier = Notifier()
    notifier.subscribe(notifications.append)
    return LocalLedger(
        storage=MemorySessionStorage(),
        notifier=notifier,
        storage_key="test_transactions",
        notice_delay=2.0,
        scheduler=lambda delay, callback: scheduled.append((delay, callback)),
    )


@pytest.fixture
def log_messages():
    """Capture loguru output at WARNING and above."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(str(m)), level="WARNING")
    yield messages
    logger.remove(handler_id)

"""Shared pytest fixtures for gateway tests."""

import os

os.environ.setdefault("ENV_MODE", "development")
os.environ.setdefault("TOKEN_STORE_BACKEND", "memory")
os.environ.setdefault("CACHE_STORE_BACKEND", "memory")

from typing import Callable

import httpx
import pytest

from order_gateway.core.config import get_settings
from order_gateway.services.http import RetryingFetcher, RetryPolicy
from order_gateway.services.kv import MemoryKeyValueStore, reset_stores
from order_gateway.services.menu_cache import reset_menu_cache
from order_gateway.services.orders import reset_composer
from order_gateway.services.pipeline import reset_orders_service
from order_gateway.services.toast import reset_toast_client


async def no_sleep(_seconds: float) -> None:
    return None


class FakeClock:
    """Manually advanced clock in epoch milliseconds."""

    def __init__(self, now_ms: int = 1_715_000_000_000):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


@pytest.fixture(autouse=True)
def reset_factories():
    """Every test starts with fresh settings, stores and clients."""
    get_settings.cache_clear()
    reset_stores()
    reset_toast_client()
    reset_composer()
    reset_menu_cache()
    reset_orders_service()
    yield
    get_settings.cache_clear()
    reset_stores()
    reset_toast_client()
    reset_composer()
    reset_menu_cache()
    reset_orders_service()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore(name="test")


@pytest.fixture
def make_fetcher() -> Callable[..., RetryingFetcher]:
    """Build a RetryingFetcher whose transport is a request handler."""

    def factory(handler: Callable[[httpx.Request], httpx.Response], retries: int = 3) -> RetryingFetcher:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        policy = RetryPolicy(retries=retries, initial_backoff_ms=1, max_backoff_ms=4, jitter=False)
        return RetryingFetcher(client, policy=policy, sleep=no_sleep)

    return factory

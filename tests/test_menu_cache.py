"""Tests for the published menu cache windows."""

import pytest

from order_gateway.core.errors import UpstreamFetchError
from order_gateway.services.menu_cache import (
    HIT_FRESH,
    HIT_STALE,
    MENU_KEY,
    MENU_META_KEY,
    MISS_NETWORK,
    MenuCache,
)
from order_gateway.services.toast.mock import MENU_LAST_UPDATED, MockToastClient

FRESH_SECONDS = 60
EXPIRE_SECONDS = 600


class FlakyToastClient(MockToastClient):
    """Mock client whose menus endpoint can be switched off."""

    def __init__(self):
        super().__init__()
        self.menus_down = False

    async def get_published_menus(self):
        if self.menus_down:
            self._count("get_published_menus")
            raise UpstreamFetchError("menus unavailable", status=503)
        return await super().get_published_menus()


@pytest.fixture
def client() -> FlakyToastClient:
    return FlakyToastClient()


@pytest.fixture
def menu_cache(memory_store, client, clock) -> MenuCache:
    return MenuCache(
        store=memory_store,
        client=client,
        fresh_seconds=FRESH_SECONDS,
        expire_seconds=EXPIRE_SECONDS,
        clock=clock,
    )


class TestMenuCache:
    """fresh / stale / expired behavior."""

    async def test_cold_cache_fetches_and_stores(self, menu_cache, memory_store, client):
        snapshot = await menu_cache.get_published_menu()

        assert snapshot.cache_status == MISS_NETWORK
        assert not snapshot.cache_hit
        assert snapshot.last_updated == MENU_LAST_UPDATED
        assert await memory_store.get(MENU_KEY) == snapshot.document
        assert set(await memory_store.get(MENU_META_KEY)) == {"updatedAt", "staleAt", "expireAt"}
        assert client.calls["get_published_menus"] == 1

    async def test_fresh_copy_served_without_network(self, menu_cache, client, clock):
        await menu_cache.get_published_menu()
        clock.advance((FRESH_SECONDS - 1) * 1000)

        snapshot = await menu_cache.get_published_menu()

        assert snapshot.cache_status == HIT_FRESH
        assert snapshot.cache_hit
        assert snapshot.last_updated == MENU_LAST_UPDATED
        assert client.calls["get_published_menus"] == 1

    async def test_stale_copy_is_refetched(self, menu_cache, client, clock):
        await menu_cache.get_published_menu()
        clock.advance(FRESH_SECONDS * 1000)

        snapshot = await menu_cache.get_published_menu()

        assert snapshot.cache_status == MISS_NETWORK
        assert client.calls["get_published_menus"] == 2

    async def test_refresh_bypasses_fresh_copy(self, menu_cache, client):
        await menu_cache.get_published_menu()

        snapshot = await menu_cache.get_published_menu(refresh=True)

        assert snapshot.cache_status == MISS_NETWORK
        assert client.calls["get_published_menus"] == 2

    async def test_stale_copy_served_when_refetch_fails(self, menu_cache, client, clock):
        first = await menu_cache.get_published_menu()
        clock.advance(FRESH_SECONDS * 1000 + 1)
        client.menus_down = True

        snapshot = await menu_cache.get_published_menu()

        assert snapshot.cache_status == HIT_STALE
        assert snapshot.document == first.document

    async def test_expired_copy_is_not_served(self, menu_cache, client, clock):
        await menu_cache.get_published_menu()
        clock.advance(EXPIRE_SECONDS * 1000)
        client.menus_down = True

        with pytest.raises(UpstreamFetchError):
            await menu_cache.get_published_menu()

    async def test_unreadable_cache_is_a_miss(self, menu_cache, memory_store):
        await memory_store.put_raw(MENU_META_KEY, "{garbage")

        snapshot = await menu_cache.get_published_menu()

        assert snapshot.cache_status == MISS_NETWORK

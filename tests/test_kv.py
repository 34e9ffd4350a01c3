"""Tests for the key-value stores."""

import pytest

from order_gateway.core.config import StoreBackend, get_settings
from order_gateway.core.errors import CacheReadError
from order_gateway.services.kv import (
    MemoryKeyValueStore,
    RedisKeyValueStore,
    get_cache_store,
    get_token_store,
    reset_stores,
)


class SecondsClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestMemoryStore:
    """Memory backend semantics."""

    async def test_json_round_trip_and_text_format(self):
        store = MemoryKeyValueStore()
        await store.put("menu", {"menus": [], "lastUpdated": "x"})

        assert await store.get("menu") == {"menus": [], "lastUpdated": "x"}
        assert await store.get("menu", "text") == '{"menus":[],"lastUpdated":"x"}'

    async def test_strings_are_stored_verbatim(self):
        store = MemoryKeyValueStore()
        await store.put("plain", "hello")

        assert await store.get("plain", "text") == "hello"

    async def test_missing_key_is_none(self):
        assert await MemoryKeyValueStore().get("nothing") is None

    async def test_ttl_expiry(self):
        clock = SecondsClock()
        store = MemoryKeyValueStore(clock=clock)
        await store.put("token", {"a": 1}, ttl_seconds=60)

        clock.now += 59
        assert await store.get("token") == {"a": 1}
        clock.now += 1
        assert await store.get("token") is None
        assert store.keys() == []

    async def test_malformed_json_raises_read_error(self):
        store = MemoryKeyValueStore()
        await store.put_raw("broken", "{oops")

        with pytest.raises(CacheReadError) as excinfo:
            await store.get("broken")
        assert excinfo.value.key == "broken"
        assert await store.get("broken", "text") == "{oops"

    async def test_delete(self):
        store = MemoryKeyValueStore()
        await store.put("k", 1)
        await store.delete("k")
        await store.delete("never-set")

        assert await store.get("k") is None


class TestStoreFactory:
    """Backend selection from settings."""

    def test_memory_backend_by_default(self):
        assert get_token_store().provider_name == "memory"
        assert get_cache_store().provider_name == "memory"
        assert get_token_store() is not get_cache_store()

    def test_redis_backend_from_settings(self, monkeypatch):
        monkeypatch.setenv("CACHE_STORE_BACKEND", "redis")
        get_settings.cache_clear()
        reset_stores()

        assert get_settings().cache_store_backend == StoreBackend.REDIS
        store = get_cache_store()
        assert isinstance(store, RedisKeyValueStore)
        assert store.prefix == "toast:cache:"

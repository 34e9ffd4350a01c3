"""
Key-Value Store Factory

Provides single entry points for the two logical stores:
    - token store: holds the Toast access token record
    - cache store: holds published menus and their metadata

Each factory selects MemoryKeyValueStore or RedisKeyValueStore from the
TOKEN_STORE_BACKEND / CACHE_STORE_BACKEND settings.

Usage:
    from order_gateway.services.kv import get_token_store

    store = get_token_store()
    record = await store.get("toast_machine_token_v1")

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
from functools import lru_cache

from order_gateway.core.config import get_settings, StoreBackend
from order_gateway.services.kv.base import BaseKeyValueStore
from order_gateway.services.kv.memory import MemoryKeyValueStore
from order_gateway.services.kv.redis import RedisKeyValueStore

logger = logging.getLogger(__name__)


def _build_store(name: str, backend: StoreBackend, prefix: str) -> BaseKeyValueStore:
    settings = get_settings()

    if backend == StoreBackend.REDIS:
        logger.info(f"{name.title()} Store: Using RedisKeyValueStore")
        return RedisKeyValueStore(settings.redis_url, prefix=prefix)

    logger.info(f"{name.title()} Store: Using MemoryKeyValueStore")
    return MemoryKeyValueStore(name=name)


@lru_cache()
def get_token_store() -> BaseKeyValueStore:
    """Get the configured store for access tokens."""
    settings = get_settings()
    return _build_store("token", settings.token_store_backend, settings.token_store_prefix)


@lru_cache()
def get_cache_store() -> BaseKeyValueStore:
    """Get the configured store for menu and snapshot caches."""
    settings = get_settings()
    return _build_store("cache", settings.cache_store_backend, settings.cache_store_prefix)


def reset_stores() -> None:
    """
    Clear the cached store instances.

    Useful for testing or when configuration changes at runtime.
    """
    get_token_store.cache_clear()
    get_cache_store.cache_clear()
    logger.debug("Key-value store cache cleared")


__all__ = [
    "get_token_store",
    "get_cache_store",
    "reset_stores",
    "BaseKeyValueStore",
    "MemoryKeyValueStore",
    "RedisKeyValueStore",
]

"""
Redis Key-Value Store

Production store backed by Redis via redis-py's asyncio client.
Used when TOKEN_STORE_BACKEND / CACHE_STORE_BACKEND is "redis".

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
from typing import Any, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from order_gateway.core.errors import CacheReadError, CacheWriteError
from order_gateway.services.kv.base import (
    BaseKeyValueStore,
    ValueFormat,
    decode_value,
    serialize_value,
)

logger = logging.getLogger(__name__)


class RedisKeyValueStore(BaseKeyValueStore):
    """
    Redis-backed store.

    Keys are namespaced with a prefix so the token store and the cache
    store can share one Redis database.
    """

    def __init__(
        self,
        url: str,
        prefix: str = "",
        client: Optional[aioredis.Redis] = None,
    ):
        self.prefix = prefix
        self._client = client or aioredis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=2,
        )

        logger.info(f"RedisKeyValueStore initialized (prefix={prefix!r})")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "redis"

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str, format: ValueFormat = "json") -> Any:
        try:
            raw = await self._client.get(self._key(key))
        except RedisError as e:
            raise CacheReadError(key, str(e)) from e
        return decode_value(key, raw, format)

    async def put(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        try:
            await self._client.set(
                self._key(key),
                serialize_value(value),
                ex=ttl_seconds if ttl_seconds else None,
            )
        except RedisError as e:
            raise CacheWriteError(key, str(e)) from e

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(self._key(key))
        except RedisError as e:
            raise CacheWriteError(key, str(e)) from e

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.error(f"Redis: Health check failed - {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()

"""
In-Memory Key-Value Store

Process-local store used in development mode and by the test suite.
Values are kept as serialized strings so that decoding behaves exactly
like the Redis backend (including malformed-value errors).

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
import time
from typing import Any, Callable, Optional

from order_gateway.services.kv.base import (
    BaseKeyValueStore,
    ValueFormat,
    decode_value,
    serialize_value,
)

logger = logging.getLogger(__name__)


class MemoryKeyValueStore(BaseKeyValueStore):
    """
    Dictionary-backed store with TTL support.

    Attributes:
        name: Label used in log lines ("token", "cache", ...)
        clock: Callable returning the current time in seconds
    """

    def __init__(
        self,
        name: str = "memory",
        clock: Optional[Callable[[], float]] = None,
    ):
        self.name = name
        self.clock = clock or time.time
        self._data: dict[str, tuple[str, Optional[float]]] = {}

        logger.info(f"MemoryKeyValueStore initialized ({name})")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "memory"

    def _live_entry(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if expires_at is not None and expires_at <= self.clock():
            del self._data[key]
            return None
        return raw

    async def get(self, key: str, format: ValueFormat = "json") -> Any:
        return decode_value(key, self._live_entry(key), format)

    async def put(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        expires_at = None
        if ttl_seconds is not None:
            expires_at = self.clock() + ttl_seconds
        self._data[key] = (serialize_value(value), expires_at)
        logger.debug(f"Memory[{self.name}]: put {key} (ttl={ttl_seconds})")

    async def put_raw(self, key: str, raw: str) -> None:
        """Store a raw string without serialization (used to seed fixtures)."""
        self._data[key] = (raw, None)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        """Return the live keys."""
        return [key for key in list(self._data) if self._live_entry(key) is not None]

    def clear(self) -> None:
        self._data.clear()

    async def health_check(self) -> bool:
        return True

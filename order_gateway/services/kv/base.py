"""
Key-Value Store Abstract Base Class

Defines the interface contract for the stores backing the token cache and
the menu/snapshot cache. Both MemoryKeyValueStore and RedisKeyValueStore
must implement these methods.

Semantics:
    - A missing (or expired) key is a successful read returning None
    - A stored value that cannot be decoded raises CacheReadError for that key
    - Backend failures raise CacheReadError / CacheWriteError

Author: Khalil_Bannouri
Version: 1.0.0
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Literal, Optional

from order_gateway.core.errors import CacheReadError

ValueFormat = Literal["json", "text"]


def serialize_value(value: Any) -> str:
    """Serialize a value for storage (strings are stored as-is)."""
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"))


def decode_value(key: str, raw: Optional[str], format: ValueFormat) -> Any:
    """
    Decode a raw stored string.

    Raises:
        CacheReadError: If format is "json" and the value is not valid JSON
    """
    if raw is None:
        return None
    if format == "text":
        return raw
    try:
        return json.loads(raw)
    except ValueError as e:
        raise CacheReadError(key, f"malformed JSON ({e})") from e


class BaseKeyValueStore(ABC):
    """
    Abstract base class for asynchronous key-value stores.

    Example:
        >>> store = get_token_store()
        >>> await store.put("token", {"accessToken": "abc"}, ttl_seconds=60)
        >>> await store.get("token")
        {'accessToken': 'abc'}
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the store backend.

        Returns:
            str: Backend name (e.g., "memory", "redis")
        """
        pass

    @abstractmethod
    async def get(self, key: str, format: ValueFormat = "json") -> Any:
        """
        Read a value.

        Args:
            key: Key to read
            format: "json" to decode the stored value, "text" for the raw string

        Returns:
            The decoded value, or None when the key is absent
        """
        pass

    @abstractmethod
    async def put(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """
        Write a value.

        Args:
            key: Key to write
            value: String (stored verbatim) or JSON-serializable value
            ttl_seconds: Expiration in seconds (None = no expiration)
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key (missing keys are ignored)."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify connectivity to the store.

        Returns:
            bool: True if the store is reachable
        """
        pass

    async def close(self) -> None:
        """Release connections held by the store."""
        return None

"""
Published Menu Cache

Keeps the published Toast menu in the cache store so that most requests
never touch the menus endpoint.

Keys:
    - menu:published:v1       the menu document
    - menu:published:meta:v1  {"updatedAt", "staleAt", "expireAt"} (ISO-8601)

Windows:
    - fresh   (now < staleAt):              served as "hit-fresh"
    - stale   (staleAt <= now < expireAt):  refetched; served as "hit-stale"
                                            only when the refetch fails
    - expired / missing:                    refetched ("miss-network")

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Optional

from order_gateway.core.config import get_settings
from order_gateway.core.errors import CacheReadError, CacheWriteError, GatewayError
from order_gateway.services.kv import get_cache_store
from order_gateway.services.kv.base import BaseKeyValueStore
from order_gateway.services.orders.extractors import clean_string, parse_toast_timestamp, to_iso
from order_gateway.services.toast import BaseToastClient, get_toast_client

logger = logging.getLogger(__name__)

MENU_KEY = "menu:published:v1"
MENU_META_KEY = "menu:published:meta:v1"

HIT_FRESH = "hit-fresh"
HIT_STALE = "hit-stale"
MISS_NETWORK = "miss-network"


@dataclass
class MenuSnapshot:
    """
    A menu document together with where it came from.

    Attributes:
        document: Published menu document (None when Toast has none)
        last_updated: Menu version stamp, used in composition cache keys
        cache_status: hit-fresh, hit-stale or miss-network
    """
    document: Optional[dict]
    last_updated: Optional[str]
    cache_status: str

    @property
    def cache_hit(self) -> bool:
        return self.cache_status.startswith("hit")


class MenuCache:
    """
    Fresh/stale/expired cache for the published menu.

    Example:
        >>> cache = MenuCache(store=get_cache_store(), client=get_toast_client())
        >>> snapshot = await cache.get_published_menu()
        >>> snapshot.cache_status
        'hit-fresh'
    """

    def __init__(
        self,
        store: BaseKeyValueStore,
        client: BaseToastClient,
        fresh_seconds: Optional[int] = None,
        expire_seconds: Optional[int] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        settings = get_settings()
        self.store = store
        self.client = client
        self.fresh_seconds = fresh_seconds if fresh_seconds is not None else settings.menu_fresh_seconds
        self.expire_seconds = expire_seconds if expire_seconds is not None else settings.menu_expire_seconds
        self.clock = clock or (lambda: int(time.time() * 1000))

    async def _read(self, key: str) -> Any:
        try:
            return await self.store.get(key, "json")
        except CacheReadError as e:
            logger.warning(f"Menu cache read failed, treating as miss: {e}")
            return None

    async def get_published_menu(self, refresh: bool = False) -> MenuSnapshot:
        """
        Return the published menu, refetching when stale or when `refresh` is set.

        Raises:
            GatewayError: Toast failed and no unexpired copy is cached
        """
        now = self.clock()
        meta = await self._read(MENU_META_KEY)
        document = await self._read(MENU_KEY)

        stale_at = expire_at = None
        if isinstance(meta, dict):
            stale_at = parse_toast_timestamp(meta.get("staleAt"))
            expire_at = parse_toast_timestamp(meta.get("expireAt"))
        usable = isinstance(document, dict) and expire_at is not None and now < expire_at
        updated_at = clean_string(meta.get("updatedAt")) if isinstance(meta, dict) else None

        if usable and not refresh and stale_at is not None and now < stale_at:
            return MenuSnapshot(document=document, last_updated=updated_at, cache_status=HIT_FRESH)

        try:
            fetched = await self.client.get_published_menus()
        except GatewayError as e:
            if usable:
                logger.warning(f"Menu refetch failed, serving stale copy: {e}")
                return MenuSnapshot(document=document, last_updated=updated_at, cache_status=HIT_STALE)
            raise

        last_updated = (clean_string(fetched.get("lastUpdated")) if isinstance(fetched, dict) else None) \
            or to_iso(now)
        await self._write(fetched, last_updated, now)

        logger.info(f"Published menu refreshed (lastUpdated={last_updated})")
        return MenuSnapshot(document=fetched, last_updated=last_updated, cache_status=MISS_NETWORK)

    async def _write(self, document: Optional[dict], last_updated: str, now: int) -> None:
        meta = {
            "updatedAt": last_updated,
            "staleAt": to_iso(now + self.fresh_seconds * 1000),
            "expireAt": to_iso(now + self.expire_seconds * 1000),
        }
        try:
            await self.store.put(MENU_KEY, document, ttl_seconds=self.expire_seconds)
            await self.store.put(MENU_META_KEY, meta, ttl_seconds=self.expire_seconds)
        except CacheWriteError as e:
            logger.warning(f"Menu cache write failed: {e}")


@lru_cache()
def get_menu_cache() -> MenuCache:
    """Get the menu cache bound to the configured store and Toast client."""
    return MenuCache(store=get_cache_store(), client=get_toast_client())


def reset_menu_cache() -> None:
    """Clear the cached menu cache instance."""
    get_menu_cache.cache_clear()

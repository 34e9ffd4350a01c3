"""
Orders Pipeline

The request-level flow behind the order routes:

    1. resolve the time window (start/end, or the last N minutes)
    2. fetch raw orders (paged) and the published menu concurrently
    3. compose expanded orders through the memoized composer
    4. filter by fulfillment status
    5. enrich orderData with dining-option configuration

Dining options are loaded at most once per request, and only when an
order needs them; a failure to load them leaves orders unenriched.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Iterable, Optional

from order_gateway.core.config import get_settings
from order_gateway.core.errors import GatewayError, InvalidRequestError
from order_gateway.services.menu_cache import MenuCache, get_menu_cache
from order_gateway.services.orders import OrderComposer, get_composer
from order_gateway.services.orders.extractors import (
    ORDER_TIME_FIELDS,
    UNKNOWN_ORDER_TYPE,
    clean_string,
    extract_timestamp,
    normalize_order_type,
    parse_toast_timestamp,
    pick_string,
    to_iso,
)
from order_gateway.services.toast import BaseToastClient, get_toast_client

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MINUTES = 24 * 60
DEFAULT_LIMIT = 20
MAX_LIMIT = 500

_STATUS_SEPARATORS = re.compile(r"[\s-]+")
_REPEATED_UNDERSCORES = re.compile(r"_+")


@dataclass
class OrderWindow:
    """Time window for an ordersBulk query (epoch ms)."""
    start_ms: int
    end_ms: int

    @property
    def start_iso(self) -> str:
        return to_iso(self.start_ms)

    @property
    def end_iso(self) -> str:
        return to_iso(self.end_ms)

    def to_dict(self) -> dict:
        return {"start": self.start_iso, "end": self.end_iso}


def resolve_window(
    start: Optional[str],
    end: Optional[str],
    minutes: Optional[int],
    now_ms: int,
) -> OrderWindow:
    """
    Interpret start/end/minutes query parameters.

    Explicit start/end take precedence over minutes; an open side defaults
    to now (end) or 24 hours before end (start).

    Raises:
        InvalidRequestError: Unparseable timestamps, start after end, or a
            `minutes` lookback reaching before the epoch
    """
    if start or end:
        end_ms = parse_toast_timestamp(end) if end else now_ms
        if end_ms is None:
            raise InvalidRequestError(f"Invalid end timestamp: {end}")
        start_ms = parse_toast_timestamp(start) if start else end_ms - DEFAULT_WINDOW_MINUTES * 60_000
        if start_ms is None:
            raise InvalidRequestError(f"Invalid start timestamp: {start}")
        if start_ms > end_ms:
            raise InvalidRequestError("start must not be after end")
        return OrderWindow(start_ms=start_ms, end_ms=end_ms)

    span = minutes if minutes and minutes > 0 else DEFAULT_WINDOW_MINUTES
    start_ms = now_ms - span * 60_000
    if start_ms < 0:
        raise InvalidRequestError(f"minutes is out of range: {minutes}")
    return OrderWindow(start_ms=start_ms, end_ms=now_ms)


def normalize_fulfillment_status(value: Any) -> Optional[str]:
    """"ready for-pickup" -> "READY_FOR_PICKUP"."""
    text = clean_string(value)
    if not text:
        return None
    collapsed = _REPEATED_UNDERSCORES.sub("_", _STATUS_SEPARATORS.sub("_", text))
    return collapsed.upper() or None


def parse_fulfillment_filters(values: Iterable[str]) -> list[str]:
    """Split comma-separated filter values; normalized, deduplicated, in order."""
    filters: list[str] = []
    for raw in values:
        for part in (raw or "").split(","):
            normalized = normalize_fulfillment_status(part)
            if normalized and normalized not in filters:
                filters.append(normalized)
    return filters


def filter_by_fulfillment_status(orders: list[dict], filters: list[str], limit: int) -> list[dict]:
    if not filters:
        return orders[:limit]
    allowed = set(filters)
    matched = [
        order for order in orders
        if normalize_fulfillment_status(order["orderData"].get("fulfillmentStatus")) in allowed
    ]
    return matched[:limit]


class OrdersService:
    """
    Fetch, compose and enrich orders for the order routes.

    Example:
        >>> service = OrdersService(get_toast_client(), get_menu_cache(), get_composer())
        >>> payload = await service.orders_detailed(limit=20)
        >>> payload["orders"][0]["orderData"]["orderType"]
        'Online Pickup'
    """

    def __init__(
        self,
        client: BaseToastClient,
        menu_cache: MenuCache,
        composer: OrderComposer,
        clock: Optional[Callable[[], int]] = None,
    ):
        settings = get_settings()
        self.client = client
        self.menu_cache = menu_cache
        self.composer = composer
        self.clock = clock or (lambda: int(time.time() * 1000))
        self.page_size = settings.orders_page_size
        self.max_pages = settings.orders_max_pages
        self.time_budget_ms = settings.handler_time_budget_ms

    async def fetch_orders(self, window: OrderWindow) -> list[dict]:
        """All orders in the window (up to orders_max_pages pages), deduplicated by guid."""
        seen: set[str] = set()
        orders: list[dict] = []
        page: Optional[int] = 1
        pages = 0

        while page is not None and pages < self.max_pages:
            result = await self.client.get_orders_bulk(
                window.start_iso, window.end_iso, page=page, page_size=self.page_size
            )
            pages += 1
            for order in result.orders:
                guid = clean_string(order.get("guid"))
                if guid is None or guid in seen:
                    continue
                seen.add(guid)
                orders.append(order)
            page = result.next_page

        logger.info(f"Fetched {len(orders)} orders in {pages} page(s)")
        return orders

    async def latest_orders(self, minutes: Optional[int] = None, limit: int = DEFAULT_LIMIT) -> dict:
        """Raw orders from the last `minutes`, newest first."""
        window = resolve_window(None, None, minutes, self.clock())
        orders = await self.fetch_orders(window)

        def opened_ms(order: dict) -> int:
            opened = extract_timestamp(order, ORDER_TIME_FIELDS)
            return opened[1] if opened else 0

        orders.sort(key=lambda order: (-opened_ms(order), order.get("guid") or ""))
        selected = orders[:limit]
        return {
            "ok": True,
            "count": len(selected),
            "window": window.to_dict(),
            "orders": selected,
        }

    async def orders_detailed(
        self,
        limit: int = DEFAULT_LIMIT,
        start: Optional[str] = None,
        end: Optional[str] = None,
        minutes: Optional[int] = None,
        fulfillment_statuses: Optional[list[str]] = None,
        refresh: bool = False,
        debug: bool = False,
    ) -> dict:
        """
        Expanded orders for the window, newest first.

        Raises:
            InvalidRequestError: Bad window parameters
            GatewayError: Toast failures (orders or menu)
        """
        started_at = self.clock()
        limit = max(1, min(MAX_LIMIT, limit))
        window = resolve_window(start, end, minutes, started_at)
        filters = fulfillment_statuses or []

        orders, snapshot = await asyncio.gather(
            self.fetch_orders(window),
            self.menu_cache.get_published_menu(refresh=refresh),
        )

        build_limit = min(MAX_LIMIT, limit * 2) if filters else limit
        result = self.composer.build_expanded_orders(
            orders,
            snapshot.document,
            snapshot.last_updated,
            limit=build_limit,
            started_at=started_at,
            time_budget_ms=self.time_budget_ms,
            clock=self.clock,
        )

        expanded = filter_by_fulfillment_status(result.orders, filters, limit)
        await self.enrich_dining_options(expanded)

        payload: dict[str, Any] = {
            "ok": True,
            "count": len(expanded),
            "orders": expanded,
            "window": window.to_dict(),
            "cacheInfo": {
                "menu": snapshot.cache_status,
                "menuUpdatedAt": snapshot.last_updated,
            },
        }
        if debug:
            payload["debug"] = {
                "timingMs": self.clock() - started_at,
                "limit": limit,
                "filters": filters,
                "ordersFetched": len(orders),
                "timedOut": result.timed_out,
                "diagnostics": result.diagnostics.to_dict(),
                "compositionCache": self.composer.cache.stats(),
            }
        return payload

    async def _load_dining_options(self) -> dict[str, dict]:
        try:
            options = await self.client.get_dining_options()
        except GatewayError as e:
            logger.warning(f"Failed to load dining options: {e}")
            return {}

        lookup: dict[str, dict] = {}
        for option in options:
            guid = clean_string(option.get("guid"))
            if guid and guid.lower() not in lookup:
                lookup[guid.lower()] = {
                    "behavior": pick_string([option.get("behavior"), option.get("type"), option.get("mode")]),
                    "name": pick_string([option.get("name"), option.get("displayName")]),
                }
        return lookup

    async def enrich_dining_options(self, orders: list[dict]) -> None:
        """
        Apply dining-option configuration to each order's orderData in place.

        The configured option name replaces orderType; its behavior sets
        orderTypeNormalized.
        """
        lookup: Optional[dict[str, dict]] = None

        for expanded in orders:
            data = expanded["orderData"]
            guid = clean_string(data.get("diningOptionGuid"))
            normalized = data.get("orderTypeNormalized")
            config: dict = {}

            if guid and not (data.get("diningOptionBehavior") and data.get("diningOptionName") and normalized):
                if lookup is None:
                    lookup = await self._load_dining_options()
                config = lookup.get(guid.lower(), {})

            behavior = config.get("behavior")
            name = config.get("name")
            if behavior:
                data["diningOptionBehavior"] = behavior
                normalized = normalize_order_type(behavior) or normalized
            if name:
                data["diningOptionName"] = name
            if normalized:
                data["orderTypeNormalized"] = normalized

            label = name or behavior
            if label:
                data["orderType"] = label
            elif data.get("orderType") in (None, UNKNOWN_ORDER_TYPE) and normalized:
                data["orderType"] = normalized


@lru_cache()
def get_orders_service() -> OrdersService:
    """Get the orders pipeline wired to the configured client, menu cache and composer."""
    return OrdersService(get_toast_client(), get_menu_cache(), get_composer())


def reset_orders_service() -> None:
    """Clear the cached orders service instance."""
    get_orders_service.cache_clear()

"""
Order Composition

Turns raw Toast orders plus a published menu into expanded, kitchen-ready
orders (one per check), memoizing the work per raw order.

Cache contract:
    - key: SHA-256 of canonical JSON of {order, menuUpdatedAt}, so a
      structurally equal copy of an order hits the same entry
    - values are deep-copied when stored and on every read
    - bounded LRU; the least recently used entry is evicted
    - entries expire `ttl_ms` after they were stored (5 minutes by default)
    - hits / misses / size / evictions / expirations are counted

Budgeting:
    Orders are processed newest first (ties by guid). Expansion stops once
    `limit` expanded orders exist or `time_budget_ms` has elapsed since
    `started_at`; whatever was built so far is returned.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import copy
import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Optional

from order_gateway.core.config import get_settings
from order_gateway.services.orders.extractors import (
    ORDER_TIME_FIELDS,
    clean_string,
    extract_order_meta,
    extract_timestamp,
    is_voided,
    normalize_quantity,
    normalize_order_type,
    pick_string,
    UNKNOWN_ORDER_TYPE,
)
from order_gateway.services.orders.fulfillment import (
    is_line_item,
    normalize_item_fulfillment_status,
    resolve_fulfillment_status,
)
from order_gateway.services.orders.menu_index import MenuIndex
from order_gateway.services.orders.money import (
    DISCOUNT_AMOUNT_FIELDS,
    SERVICE_CHARGE_FIELDS,
    TIP_FIELDS,
    price_selection,
    sum_amounts,
)
from order_gateway.services.orders.sorting import build_item_sort_meta, sort_items

logger = logging.getLogger(__name__)

UNKNOWN_ITEM = "Unknown Item"
DEFAULT_ENTRY_TTL_MS = 5 * 60 * 1000


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class CompositionDiagnostics:
    """Counters describing what one composition call saw and dropped."""
    orders_seen: int = 0
    checks_seen: int = 0
    items_included: int = 0
    orders_voided: int = 0
    orders_time_parse: int = 0
    selections_voided: int = 0
    selections_filtered: int = 0

    def merge(self, counters: dict[str, int]) -> None:
        for key, value in counters.items():
            setattr(self, key, getattr(self, key) + value)

    def to_dict(self) -> dict:
        return {
            "ordersSeen": self.orders_seen,
            "checksSeen": self.checks_seen,
            "itemsIncluded": self.items_included,
            "dropped": {
                "ordersVoided": self.orders_voided,
                "ordersTimeParse": self.orders_time_parse,
                "selectionsVoided": self.selections_voided,
                "selectionsFiltered": self.selections_filtered,
            },
        }


@dataclass
class CompositionResult:
    """
    Output of OrderComposer.build_expanded_orders.

    Attributes:
        orders: Expanded orders, one per check (JSON-ready dicts)
        timed_out: True when the time budget cut expansion short
        diagnostics: What was seen and dropped
    """
    orders: list[dict]
    timed_out: bool = False
    diagnostics: CompositionDiagnostics = field(default_factory=CompositionDiagnostics)

    def to_dict(self) -> dict:
        return {
            "orders": self.orders,
            "timedOut": self.timed_out,
            "diagnostics": self.diagnostics.to_dict(),
        }


@dataclass
class CompositionEntry:
    """Cached expansion of one raw order."""
    orders: list[dict]
    counters: dict[str, int] = field(default_factory=dict)


# =============================================================================
# CACHE
# =============================================================================

def fingerprint_order(order: Any, menu_updated_at: Optional[str]) -> str:
    """Content hash of a raw order and the menu version it is expanded against."""
    canonical = json.dumps(
        {"order": order, "menuUpdatedAt": menu_updated_at},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def now_ms() -> int:
    return int(time.time() * 1000)


class OrderCompositionCache:
    """
    Bounded, content-addressed memo of expanded orders.

    Safe to share between request handlers; the map is guarded by a lock.
    Entries older than `ttl_ms` are dropped on read and count as misses.

    Attributes:
        capacity: Maximum number of raw orders kept
        ttl_ms: Entry lifetime in milliseconds (None = no expiry)
        clock: Callable returning the current time in epoch ms
    """

    def __init__(
        self,
        capacity: int = 512,
        ttl_ms: Optional[int] = DEFAULT_ENTRY_TTL_MS,
        clock: Optional[Callable[[], int]] = None,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.ttl_ms = ttl_ms
        self.clock = clock or now_ms
        self._entries: OrderedDict[str, tuple[int, CompositionEntry]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0

    def get(self, fingerprint: str) -> Optional[CompositionEntry]:
        """Return a deep copy of the entry, counting a hit or a miss."""
        with self._lock:
            stored = self._entries.get(fingerprint)
            if stored is None:
                self.misses += 1
                return None
            stored_at, entry = stored
            if self.ttl_ms is not None and self.clock() - stored_at > self.ttl_ms:
                del self._entries[fingerprint]
                self.expirations += 1
                self.misses += 1
                return None
            self._entries.move_to_end(fingerprint)
            self.hits += 1
            return copy.deepcopy(entry)

    def put(self, fingerprint: str, entry: CompositionEntry) -> None:
        stored = copy.deepcopy(entry)
        with self._lock:
            self._entries[fingerprint] = (self.clock(), stored)
            self._entries.move_to_end(fingerprint)
            while len(self._entries) > self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                self.evictions += 1
                logger.debug(f"Composition cache evicted {evicted[:12]}")

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "hits": self.hits,
                "misses": self.misses,
                "size": len(self._entries),
                "evictions": self.evictions,
                "expirations": self.expirations,
                "capacity": self.capacity,
            }

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0
            self.evictions = 0
            self.expirations = 0


# =============================================================================
# COMPOSER
# =============================================================================

def extract_orders(payload: Any) -> list[dict]:
    """Raw orders from a `{"data": [...]}` / `{"orders": [...]}` payload or a bare list."""
    if isinstance(payload, list):
        candidates = payload
    elif isinstance(payload, dict):
        candidates = payload.get("data")
        if not isinstance(candidates, list):
            candidates = payload.get("orders")
        if not isinstance(candidates, list):
            candidates = []
    else:
        candidates = []
    return [order for order in candidates if isinstance(order, dict)]


class OrderComposer:
    """
    Expands raw orders against a menu, consulting the composition cache.

    Example:
        >>> composer = OrderComposer(OrderCompositionCache(capacity=64))
        >>> result = composer.build_expanded_orders(
        ...     {"data": orders}, menu_document, "2024-05-01T12:00:00Z", limit=20
        ... )
        >>> result.orders[0]["orderData"]["orderId"]
        'order-001'
    """

    def __init__(
        self,
        cache: Optional[OrderCompositionCache] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.cache = cache if cache is not None else OrderCompositionCache()
        self.clock = clock or now_ms

    def build_expanded_orders(
        self,
        orders_payload: Any,
        menu_document: Optional[dict],
        menu_updated_at: Optional[str],
        limit: int,
        started_at: Optional[int] = None,
        time_budget_ms: Optional[int] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> CompositionResult:
        """
        Expand orders newest first until `limit` or the time budget is reached.

        Args:
            orders_payload: Raw orders (payload dict or list)
            menu_document: Published menu document, or None
            menu_updated_at: Menu version stamp, part of the cache key
            limit: Maximum number of expanded orders returned
            started_at: Epoch ms the request started (defaults to now)
            time_budget_ms: Soft deadline relative to started_at (None = unbounded)
            clock: Time source that produced started_at (defaults to the composer's)

        Returns:
            CompositionResult with independent copies of the expanded orders
        """
        clock = clock or self.clock
        started_at = clock() if started_at is None else started_at
        diagnostics = CompositionDiagnostics()
        built: list[dict] = []
        timed_out = False
        menu_index: Optional[MenuIndex] = None

        for order in self._prioritize(extract_orders(orders_payload), diagnostics):
            if len(built) >= limit:
                break
            if time_budget_ms is not None and clock() - started_at > time_budget_ms:
                timed_out = True
                logger.warning(
                    f"Composition budget of {time_budget_ms}ms exhausted after {len(built)} orders"
                )
                break

            fingerprint = fingerprint_order(order, menu_updated_at)
            entry = self.cache.get(fingerprint)
            if entry is None:
                if menu_index is None:
                    menu_index = MenuIndex.build(menu_document)
                entry = self._expand_order(order, menu_index)
                self.cache.put(fingerprint, entry)

            diagnostics.merge(entry.counters)
            for expanded in entry.orders[: limit - len(built)]:
                diagnostics.items_included += len(expanded["items"])
                built.append(expanded)

        return CompositionResult(orders=built, timed_out=timed_out, diagnostics=diagnostics)

    def _prioritize(self, orders: list[dict], diagnostics: CompositionDiagnostics) -> list[dict]:
        """Dedupe by guid, drop voided or undated orders, newest first."""
        seen: set[str] = set()
        dated: list[tuple[int, str, dict]] = []

        for order in orders:
            guid = clean_string(order.get("guid"))
            if guid is None or guid in seen:
                continue
            seen.add(guid)
            diagnostics.orders_seen += 1

            if is_voided(order):
                diagnostics.orders_voided += 1
                continue
            opened = extract_timestamp(order, ORDER_TIME_FIELDS)
            if opened is None:
                diagnostics.orders_time_parse += 1
                continue
            dated.append((opened[1], guid, order))

        dated.sort(key=lambda entry: (-entry[0], entry[1]))
        return [order for _, _, order in dated]

    def _expand_order(self, order: dict, menu_index: MenuIndex) -> CompositionEntry:
        counters = {
            "checks_seen": 0,
            "orders_voided": 0,
            "selections_voided": 0,
            "selections_filtered": 0,
        }
        order_time = extract_timestamp(order, ORDER_TIME_FIELDS)
        expanded: list[dict] = []

        checks = order.get("checks")
        for check in checks if isinstance(checks, list) else []:
            if not isinstance(check, dict):
                continue
            counters["checks_seen"] += 1
            if is_voided(check):
                counters["orders_voided"] += 1
                continue
            built = self._expand_check(order, check, order_time[0] if order_time else None, menu_index, counters)
            if built is not None:
                expanded.append(built)

        return CompositionEntry(orders=expanded, counters=counters)

    def _expand_check(
        self,
        order: dict,
        check: dict,
        order_time: Any,
        menu_index: MenuIndex,
        counters: dict[str, int],
    ) -> Optional[dict]:
        order_id = clean_string(order.get("guid"))
        meta = extract_order_meta(order, check)
        check_id = meta["checkId"]

        items: list[dict] = []
        metas = []
        iterations: dict[str, int] = {}
        used_ids: set[str] = set()
        item_statuses: list[str] = []
        base_total = 0
        modifier_total = 0
        discount_total = 0

        selections = check.get("selections")
        for index, selection in enumerate(selections if isinstance(selections, list) else []):
            if not isinstance(selection, dict):
                continue
            if is_voided(selection):
                counters["selections_voided"] += 1
                continue
            if not is_line_item(selection):
                counters["selections_filtered"] += 1
                continue

            reference = selection.get("item") if isinstance(selection.get("item"), dict) else {}
            menu_item = menu_index.find_item(reference) or {}

            item_name = pick_string([
                menu_item.get("kitchenName"),
                menu_item.get("name"),
                selection.get("displayName"),
                selection.get("name"),
                reference.get("name"),
            ]) or UNKNOWN_ITEM
            menu_item_id = pick_string([menu_item.get("guid"), reference.get("guid")])
            quantity = normalize_quantity(selection.get("quantity"))

            logical_key = menu_item_id or f"name:{item_name.lower()}"
            iteration = iterations.get(logical_key, 0)
            iterations[logical_key] = iteration + 1

            line_item_id = self._line_item_id(selection, check_id or order_id, index, used_ids)

            priced = price_selection(selection, menu_index, quantity)
            money = priced["money"]
            modifier_total += money["modifierTotalCents"]
            if money["baseItemPriceCents"] is not None:
                base_total += money["baseItemPriceCents"]
            elif money["totalItemPriceCents"] is not None:
                base_total += max(money["totalItemPriceCents"] - money["modifierTotalCents"], 0)
            discount_total += priced["discountCents"]

            fulfillment = normalize_item_fulfillment_status(selection.get("fulfillmentStatus"))
            if fulfillment:
                item_statuses.append(fulfillment)

            items.append({
                "lineItemId": line_item_id,
                "menuItemId": menu_item_id,
                "itemName": item_name,
                "quantity": quantity,
                "fulfillmentStatus": fulfillment,
                "modifiers": priced["modifiers"],
                "specialInstructions": clean_string(selection.get("specialInstructions")),
                "money": money,
            })
            metas.append(build_item_sort_meta(selection, item_name, menu_item_id, line_item_id, iteration))

        if not items and base_total == 0 and modifier_total == 0 and discount_total == 0:
            return None

        discount_total += sum_amounts(check.get("appliedDiscounts"), DISCOUNT_AMOUNT_FIELDS)
        service_cents = sum_amounts(check.get("appliedServiceCharges"), SERVICE_CHARGE_FIELDS)
        tip_cents = sum_amounts(check.get("payments"), TIP_FIELDS)
        grand_total = max(base_total + modifier_total - discount_total + service_cents + tip_cents, 0)

        order_type = meta["orderType"]
        order_data = {
            "orderId": order_id,
            "location": {"locationId": meta["locationId"]},
            "orderTime": order_time,
            "timeDue": meta["timeDue"],
            "orderNumber": meta["orderNumber"],
            "checkId": check_id,
            "status": meta["status"],
            "fulfillmentStatus": resolve_fulfillment_status(order, check, item_statuses),
            "customerName": meta["customerName"],
            "orderType": order_type,
            "orderTypeNormalized": (
                order_type if order_type != UNKNOWN_ORDER_TYPE
                else normalize_order_type(meta["diningOptionBehavior"])
            ),
            "diningOptionGuid": meta["diningOptionGuid"],
        }
        for optional_key in (
            "diningOptionName",
            "diningOptionBehavior",
            "deliveryInfo",
            "curbsidePickupInfo",
            "table",
            "promisedDate",
            "estimatedFulfillmentDate",
        ):
            if meta[optional_key]:
                order_data[optional_key] = meta[optional_key]

        return {
            "orderData": order_data,
            "currency": meta["currency"],
            "items": sort_items(items, metas),
            "totals": {
                "baseItemsSubtotalCents": base_total,
                "modifiersSubtotalCents": modifier_total,
                "discountTotalCents": discount_total,
                "serviceChargeCents": service_cents,
                "tipCents": tip_cents,
                "grandTotalCents": grand_total,
            },
        }

    @staticmethod
    def _line_item_id(selection: dict, scope: Optional[str], index: int, used: set[str]) -> str:
        base = clean_string(selection.get("guid")) or f"{scope or ''}:{index}"
        candidate = base
        suffix = 2
        while candidate in used:
            candidate = f"{base}#{suffix}"
            suffix += 1
        used.add(candidate)
        return candidate


@lru_cache()
def get_composer() -> OrderComposer:
    """Get the process-wide composer and its composition cache."""
    settings = get_settings()
    logger.info(
        f"OrderComposer initialized (cache capacity={settings.composition_cache_capacity}, "
        f"ttl={settings.composition_cache_ttl_seconds}s)"
    )
    cache = OrderCompositionCache(
        capacity=settings.composition_cache_capacity,
        ttl_ms=settings.composition_cache_ttl_seconds * 1000,
    )
    return OrderComposer(cache)


def reset_composer() -> None:
    """Drop the process-wide composer (and its cache)."""
    get_composer.cache_clear()
    logger.debug("Composer cache cleared")

"""Tests for memoized order composition."""

import copy

import pytest

from order_gateway.core.config import get_settings
from order_gateway.services.orders import (
    OrderComposer,
    OrderCompositionCache,
    extract_orders,
    fingerprint_order,
    get_composer,
    reset_composer,
)
from order_gateway.services.orders.money import collapse_modifiers

MENU_UPDATED_AT = "2024-05-01T09:00:00.000+0000"

MENU = {
    "menus": [
        {
            "menuGroups": [
                {
                    "items": [
                        {"guid": "item-1", "name": "Burger", "multiLocationId": "ml-1"},
                        {"guid": "item-2", "name": "Shake", "kitchenName": "SHAKE"},
                    ]
                }
            ]
        }
    ],
    "modifierOptionReferences": {
        "1": {"guid": "mod-1", "name": "Cheese", "optionGroupName": "Add-ons"},
    },
}


def make_order(guid: str = "order-001", created: str = "2024-05-01T12:00:00.000+0000", **overrides) -> dict:
    order = {
        "guid": guid,
        "createdDate": created,
        "checks": [
            {
                "guid": "check-001",
                "customerName": "Customer Name",
                "appliedDiscounts": [{"discountAmount": 1}],
                "appliedServiceCharges": [{"chargeAmount": 2}],
                "payments": [{"tipAmount": 1.5}],
                "selections": [
                    {
                        "guid": "sel-1",
                        "item": {"guid": "item-1"},
                        "quantity": 2,
                        "receiptLinePrice": 5,
                        "price": 5,
                        "appliedDiscounts": [{"discountAmount": 0.5}],
                        "fulfillmentStatus": "READY",
                    }
                ],
            }
        ],
    }
    order.update(overrides)
    return order


def simple_order(guid: str, created: str, selections=None) -> dict:
    return {
        "guid": guid,
        "createdDate": created,
        "checks": [
            {
                "guid": f"{guid}-check",
                "selections": selections if selections is not None else [
                    {"guid": f"{guid}-sel", "item": {"guid": "item-2"}, "quantity": 1, "receiptLinePrice": 4}
                ],
            }
        ],
    }


@pytest.fixture
def composer() -> OrderComposer:
    return OrderComposer(OrderCompositionCache(capacity=16))


class TestCompositionCache:
    """Memoization and isolation of cached expansions."""

    def test_structurally_equal_payload_hits_cache(self, composer):
        payload = {"ok": True, "detail": None, "data": [make_order()]}

        first = composer.build_expanded_orders(payload, MENU, MENU_UPDATED_AT, limit=5)
        assert composer.cache.stats()["misses"] == 1
        assert composer.cache.stats()["hits"] == 0
        assert composer.cache.stats()["size"] == 1

        first.orders[0]["items"][0]["itemName"] = "MUTATED"
        first.orders[0]["totals"]["grandTotalCents"] = -1

        second = composer.build_expanded_orders(copy.deepcopy(payload), MENU, MENU_UPDATED_AT, limit=5)
        stats = composer.cache.stats()
        assert (stats["hits"], stats["misses"], stats["size"]) == (1, 1, 1)
        assert second.orders[0]["items"][0]["itemName"] == "Burger"
        assert second.orders[0]["totals"]["grandTotalCents"] == 1200

    def test_menu_version_is_part_of_the_key(self, composer):
        orders = [make_order()]

        composer.build_expanded_orders(orders, MENU, MENU_UPDATED_AT, limit=5)
        composer.build_expanded_orders(orders, MENU, "2024-06-01T00:00:00.000+0000", limit=5)

        assert composer.cache.stats()["misses"] == 2
        assert composer.cache.stats()["size"] == 2

    def test_fingerprint_ignores_key_order(self):
        left = {"guid": "a", "checks": [], "createdDate": "x"}
        right = {"createdDate": "x", "checks": [], "guid": "a"}

        assert fingerprint_order(left, "v1") == fingerprint_order(right, "v1")
        assert fingerprint_order(left, "v1") != fingerprint_order(left, "v2")

    def test_least_recently_used_entry_is_evicted(self):
        composer = OrderComposer(OrderCompositionCache(capacity=1))
        older = simple_order("o-1", "2024-05-01T10:00:00.000+0000")
        newer = simple_order("o-2", "2024-05-01T11:00:00.000+0000")

        composer.build_expanded_orders([older, newer], MENU, MENU_UPDATED_AT, limit=10)
        stats = composer.cache.stats()

        assert stats["size"] == 1
        assert stats["evictions"] == 1

    def test_entries_expire_after_ttl(self, clock):
        composer = OrderComposer(OrderCompositionCache(capacity=16, ttl_ms=300_000, clock=clock))
        orders = [make_order()]

        composer.build_expanded_orders(orders, MENU, MENU_UPDATED_AT, limit=5)
        clock.advance(300_000)
        composer.build_expanded_orders(orders, MENU, MENU_UPDATED_AT, limit=5)
        assert composer.cache.stats()["hits"] == 1

        clock.advance(1)
        result = composer.build_expanded_orders(orders, MENU, MENU_UPDATED_AT, limit=5)
        stats = composer.cache.stats()

        assert (stats["hits"], stats["misses"], stats["expirations"], stats["size"]) == (1, 2, 1, 1)
        assert result.orders[0]["orderData"]["orderId"] == "order-001"

    def test_injected_empty_cache_is_kept(self):
        cache = OrderCompositionCache(capacity=4)
        composer = OrderComposer(cache)

        assert composer.cache is cache
        composer.build_expanded_orders([make_order()], MENU, MENU_UPDATED_AT, limit=5)
        assert cache.stats()["size"] == 1

    def test_factory_applies_configured_cache_settings(self, monkeypatch):
        monkeypatch.setenv("COMPOSITION_CACHE_CAPACITY", "4")
        monkeypatch.setenv("COMPOSITION_CACHE_TTL_SECONDS", "60")
        get_settings.cache_clear()
        reset_composer()

        cache = get_composer().cache

        assert cache.capacity == 4
        assert cache.ttl_ms == 60_000

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            OrderCompositionCache(capacity=0)

    def test_reset(self, composer):
        composer.build_expanded_orders([make_order()], MENU, MENU_UPDATED_AT, limit=5)
        composer.cache.reset()

        assert composer.cache.stats() == {
            "hits": 0, "misses": 0, "size": 0, "evictions": 0, "expirations": 0, "capacity": 16,
        }


class TestExpandedOrder:
    """Shape and money of an expanded order."""

    def test_order_data(self, composer):
        result = composer.build_expanded_orders([make_order()], MENU, MENU_UPDATED_AT, limit=5)
        data = result.orders[0]["orderData"]

        assert data["orderId"] == "order-001"
        assert data["checkId"] == "check-001"
        assert data["customerName"] == "Customer Name"
        assert data["orderTime"] == "2024-05-01T12:00:00.000+0000"
        assert data["fulfillmentStatus"] == "READY_FOR_PICKUP"
        assert data["orderType"] == "UNKNOWN"

    def test_totals(self, composer):
        result = composer.build_expanded_orders([make_order()], MENU, MENU_UPDATED_AT, limit=5)
        expanded = result.orders[0]

        assert expanded["totals"] == {
            "baseItemsSubtotalCents": 1000,
            "modifiersSubtotalCents": 0,
            "discountTotalCents": 150,
            "serviceChargeCents": 200,
            "tipCents": 150,
            "grandTotalCents": 1200,
        }
        item = expanded["items"][0]
        assert item["quantity"] == 2
        assert item["menuItemId"] == "item-1"
        assert item["money"] == {
            "baseItemPriceCents": 1000,
            "modifierTotalCents": 0,
            "totalItemPriceCents": 1000,
        }

    def test_modifier_pricing_scales_with_item_quantity(self, composer):
        order = simple_order("o-mod", "2024-05-01T12:00:00.000+0000", selections=[
            {
                "guid": "sel-mod",
                "item": {"guid": "item-1"},
                "quantity": 3,
                "receiptLinePrice": 1,
                "modifiers": [
                    {"item": {"guid": "mod-1"}, "quantity": 2, "price": 0.5},
                ],
            }
        ])

        result = composer.build_expanded_orders([order], MENU, MENU_UPDATED_AT, limit=5)
        item = result.orders[0]["items"][0]

        assert item["modifiers"] == [
            {"id": "mod-1", "name": "Cheese", "groupName": "Add-ons", "priceCents": 300, "quantity": 2}
        ]
        assert item["money"] == {
            "baseItemPriceCents": 300,
            "modifierTotalCents": 300,
            "totalItemPriceCents": 600,
        }

    def test_duplicate_modifiers_collapse(self):
        collapsed = collapse_modifiers([
            {"id": "m", "name": "Cheese", "groupName": "Add-ons", "priceCents": 50, "quantity": 1},
            {"id": "m", "name": "Cheese", "groupName": "add-ons", "priceCents": 50, "quantity": 1},
            {"id": None, "name": "Onion", "groupName": None, "priceCents": 0, "quantity": 1},
        ])

        assert collapsed == [
            {"id": None, "name": "Onion", "groupName": None, "priceCents": 0, "quantity": 1},
            {"id": "m", "name": "Cheese", "groupName": "Add-ons", "priceCents": 100, "quantity": 2},
        ]

    def test_kitchen_name_and_unknown_item(self, composer):
        order = simple_order("o-names", "2024-05-01T12:00:00.000+0000", selections=[
            {"guid": "s-1", "item": {"guid": "item-2"}, "receiptLinePrice": 3},
            {"guid": "s-2", "item": {"guid": "not-on-menu"}, "displayName": "Off Menu", "receiptLinePrice": 1},
            {"guid": "s-3", "item": {"guid": "also-missing"}, "receiptLinePrice": 1},
        ])

        result = composer.build_expanded_orders([order], MENU, MENU_UPDATED_AT, limit=5)
        names = sorted(item["itemName"] for item in result.orders[0]["items"])

        assert names == ["Off Menu", "SHAKE", "Unknown Item"]

    def test_non_item_selections_are_filtered(self, composer):
        order = simple_order("o-notes", "2024-05-01T12:00:00.000+0000", selections=[
            {"guid": "s-1", "item": {"guid": "item-1"}, "receiptLinePrice": 5},
            {"guid": "s-2", "selectionType": "SPECIAL_REQUEST", "displayName": "No onions",
             "item": {"guid": "special"}},
            {"guid": "s-3", "voided": True, "item": {"guid": "item-1"}, "receiptLinePrice": 5},
        ])

        result = composer.build_expanded_orders([order], MENU, MENU_UPDATED_AT, limit=5)

        assert [item["lineItemId"] for item in result.orders[0]["items"]] == ["s-1"]
        dropped = result.diagnostics.to_dict()["dropped"]
        assert dropped["selectionsFiltered"] == 1
        assert dropped["selectionsVoided"] == 1

    def test_check_without_items_or_money_is_dropped(self, composer):
        order = simple_order("o-empty", "2024-05-01T12:00:00.000+0000", selections=[
            {"selectionType": "SPECIAL_REQUEST", "displayName": "Call on arrival", "item": {"guid": "x"}},
        ])

        result = composer.build_expanded_orders([order], MENU, MENU_UPDATED_AT, limit=5)

        assert result.orders == []
        assert result.diagnostics.checks_seen == 1

    def test_line_item_ids_are_unique(self, composer):
        order = simple_order("o-ids", "2024-05-01T12:00:00.000+0000", selections=[
            {"item": {"guid": "item-1"}, "receiptLinePrice": 1},
            {"guid": "dup", "item": {"guid": "item-1"}, "receiptLinePrice": 1},
            {"guid": "dup", "item": {"guid": "item-1"}, "receiptLinePrice": 1},
        ])

        result = composer.build_expanded_orders([order], MENU, MENU_UPDATED_AT, limit=5)
        ids = sorted(item["lineItemId"] for item in result.orders[0]["items"])

        assert ids == ["dup", "dup#2", "o-ids-check:0"]

    def test_item_statuses_drive_check_status(self, composer):
        order = simple_order("o-prep", "2024-05-01T12:00:00.000+0000", selections=[
            {"guid": "a", "item": {"guid": "item-1"}, "receiptLinePrice": 1, "fulfillmentStatus": "READY"},
            {"guid": "b", "item": {"guid": "item-2"}, "receiptLinePrice": 1, "fulfillmentStatus": "SENT"},
        ])

        result = composer.build_expanded_orders([order], MENU, MENU_UPDATED_AT, limit=5)

        assert result.orders[0]["orderData"]["fulfillmentStatus"] == "IN_PREPARATION"

    def test_guest_fulfillment_status_wins(self, composer):
        order = make_order(guestOrderFulfillmentStatus={"status": "PICKED_UP"})

        result = composer.build_expanded_orders([order], MENU, MENU_UPDATED_AT, limit=5)

        assert result.orders[0]["orderData"]["fulfillmentStatus"] == "PICKED_UP"


class TestSelectionAndBudget:
    """Which orders are expanded, and when expansion stops."""

    def test_newest_first_and_limit(self, composer):
        orders = [
            simple_order("o-old", "2024-05-01T08:00:00.000+0000"),
            simple_order("o-new", "2024-05-01T12:00:00.000+0000"),
            simple_order("o-mid", "2024-05-01T10:00:00.000+0000"),
        ]

        result = composer.build_expanded_orders(orders, MENU, MENU_UPDATED_AT, limit=2)

        assert [o["orderData"]["orderId"] for o in result.orders] == ["o-new", "o-mid"]
        assert not result.timed_out

    def test_voided_duplicate_and_undated_orders_are_skipped(self, composer):
        orders = [
            simple_order("o-1", "2024-05-01T08:00:00.000+0000"),
            simple_order("o-1", "2024-05-01T09:00:00.000+0000"),
            dict(simple_order("o-void", "2024-05-01T08:00:00.000+0000"), voided=True),
            {"guid": "o-undated", "checks": []},
        ]

        result = composer.build_expanded_orders(orders, MENU, MENU_UPDATED_AT, limit=10)

        assert [o["orderData"]["orderId"] for o in result.orders] == ["o-1"]
        dropped = result.diagnostics.to_dict()["dropped"]
        assert dropped["ordersVoided"] == 1
        assert dropped["ordersTimeParse"] == 1

    def test_time_budget_returns_partial_result(self):
        ticks = iter(range(0, 10_000, 60))
        composer = OrderComposer(OrderCompositionCache(capacity=16), clock=lambda: next(ticks))
        orders = [
            simple_order("o-1", "2024-05-01T12:00:00.000+0000"),
            simple_order("o-2", "2024-05-01T11:00:00.000+0000"),
            simple_order("o-3", "2024-05-01T10:00:00.000+0000"),
        ]

        result = composer.build_expanded_orders(
            orders, MENU, MENU_UPDATED_AT, limit=10, started_at=0, time_budget_ms=100,
        )

        assert result.timed_out
        assert [o["orderData"]["orderId"] for o in result.orders] == ["o-1", "o-2"]

    def test_caller_clock_drives_the_deadline(self, clock):
        composer = OrderComposer(OrderCompositionCache(capacity=16))
        orders = [
            simple_order("o-1", "2024-05-01T12:00:00.000+0000"),
            simple_order("o-2", "2024-05-01T11:00:00.000+0000"),
        ]

        result = composer.build_expanded_orders(
            orders, MENU, MENU_UPDATED_AT, limit=10,
            started_at=clock(), time_budget_ms=10_000, clock=clock,
        )

        assert not result.timed_out
        assert len(result.orders) == 2

    def test_extract_orders_accepts_several_shapes(self):
        order = {"guid": "a"}

        assert extract_orders({"data": [order, "junk"]}) == [order]
        assert extract_orders({"orders": [order]}) == [order]
        assert extract_orders([order]) == [order]
        assert extract_orders("nope") == []

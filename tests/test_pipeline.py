"""Tests for the request-level orders pipeline."""

import pytest

from order_gateway.core.errors import InvalidRequestError, UpstreamFetchError
from order_gateway.services.menu_cache import MenuCache
from order_gateway.services.orders import OrderComposer, OrderCompositionCache
from order_gateway.services.orders.extractors import parse_toast_timestamp
from order_gateway.services.pipeline import (
    OrdersService,
    filter_by_fulfillment_status,
    normalize_fulfillment_status,
    parse_fulfillment_filters,
    resolve_window,
)
from order_gateway.services.toast.mock import MockToastClient

NOW = parse_toast_timestamp("2024-05-01T12:00:00Z")


class BrokenDiningOptionsClient(MockToastClient):
    async def get_dining_options(self):
        raise UpstreamFetchError("config unavailable", status=500)


def build_service(client, memory_store, clock) -> OrdersService:
    return OrdersService(
        client,
        MenuCache(store=memory_store, client=client, clock=clock),
        OrderComposer(OrderCompositionCache(capacity=32, clock=clock), clock=clock),
        clock=clock,
    )


@pytest.fixture
def client(clock) -> MockToastClient:
    return MockToastClient(clock=clock)


@pytest.fixture
def service(client, memory_store, clock) -> OrdersService:
    return build_service(client, memory_store, clock)


class TestWindow:
    """start / end / minutes interpretation."""

    def test_minutes(self):
        window = resolve_window(None, None, 30, NOW)
        assert window.end_ms == NOW
        assert window.start_ms == NOW - 30 * 60_000

    def test_default_is_one_day(self):
        window = resolve_window(None, None, None, NOW)
        assert window.to_dict() == {"start": "2024-04-30T12:00:00.000Z", "end": "2024-05-01T12:00:00.000Z"}

    def test_explicit_bounds_win(self):
        window = resolve_window("2024-05-01T08:00:00.000+0000", "2024-05-01T09:00:00Z", 5, NOW)
        assert window.to_dict() == {"start": "2024-05-01T08:00:00.000Z", "end": "2024-05-01T09:00:00.000Z"}

    @pytest.mark.parametrize("start, end", [
        ("yesterday", None),
        (None, "not-a-date"),
        ("2024-05-01T10:00:00Z", "2024-05-01T09:00:00Z"),
    ])
    def test_invalid_bounds(self, start, end):
        with pytest.raises(InvalidRequestError) as excinfo:
            resolve_window(start, end, None, NOW)
        assert excinfo.value.status_code == 400

    def test_minutes_reaching_before_epoch_is_rejected(self):
        with pytest.raises(InvalidRequestError) as excinfo:
            resolve_window(None, None, 10**12, NOW)
        assert excinfo.value.status_code == 400
        assert excinfo.value.message == "minutes is out of range: 1000000000000"


class TestFulfillmentFilters:
    """Status filter parsing and application."""

    def test_normalize(self):
        assert normalize_fulfillment_status("ready for-pickup") == "READY_FOR_PICKUP"
        assert normalize_fulfillment_status("  ") is None

    def test_parse_splits_and_dedupes(self):
        assert parse_fulfillment_filters(["ready_for_pickup, in preparation", "READY-FOR-PICKUP"]) == [
            "READY_FOR_PICKUP",
            "IN_PREPARATION",
        ]

    def test_filter(self):
        orders = [
            {"orderData": {"fulfillmentStatus": "READY_FOR_PICKUP"}},
            {"orderData": {"fulfillmentStatus": "IN_PREPARATION"}},
            {"orderData": {"fulfillmentStatus": None}},
        ]
        assert filter_by_fulfillment_status(orders, ["IN_PREPARATION"], 10) == [orders[1]]
        assert filter_by_fulfillment_status(orders, [], 2) == orders[:2]


class TestOrdersService:
    """End-to-end against the mock Toast client."""

    async def test_latest_orders_newest_first(self, service):
        payload = await service.latest_orders(minutes=60)

        assert payload["ok"] is True
        assert [order["guid"] for order in payload["orders"]] == ["mock-order-1", "mock-order-2"]

    async def test_orders_detailed(self, service):
        payload = await service.orders_detailed(limit=10)

        assert payload["ok"] is True
        assert payload["count"] == 3
        assert payload["cacheInfo"]["menu"] == "miss-network"
        assert "debug" not in payload

        first = payload["orders"][0]
        assert first["orderData"]["orderId"] == "mock-order-1"
        assert first["orderData"]["customerName"] == "Ada Lovelace"
        assert first["orderData"]["orderType"] == "Online Pickup"
        assert first["orderData"]["orderTypeNormalized"] == "TAKEOUT"
        assert [item["itemName"] for item in first["items"]] == ["BURGER", "Fries"]
        assert first["items"][0]["modifiers"][0]["name"] == "Bacon"
        assert first["totals"]["tipCents"] == 200

    async def test_dining_options_loaded_once(self, service, client):
        await service.orders_detailed(limit=10)

        assert client.calls["get_dining_options"] == 1

    async def test_delivery_and_dine_in_orders(self, service):
        payload = await service.orders_detailed(limit=10)
        by_id = {order["orderData"]["orderId"]: order["orderData"] for order in payload["orders"]}

        assert by_id["mock-order-2"]["customerName"] == "Table 4"
        assert by_id["mock-order-2"]["orderTypeNormalized"] == "DINE_IN"
        assert by_id["mock-order-3"]["customerName"] == "Grace Hopper"
        assert by_id["mock-order-3"]["deliveryInfo"]["address1"] == "1 Navy Way"

    async def test_fulfillment_filter(self, service):
        payload = await service.orders_detailed(limit=10, fulfillment_statuses=["READY_FOR_PICKUP"])

        assert [o["orderData"]["orderId"] for o in payload["orders"]] == ["mock-order-2"]

    async def test_limit_is_clamped(self, service):
        payload = await service.orders_detailed(limit=0)

        assert payload["count"] == 1

    async def test_debug_block(self, service):
        payload = await service.orders_detailed(limit=10, debug=True)

        debug = payload["debug"]
        assert debug["ordersFetched"] == 3
        assert debug["timedOut"] is False
        assert debug["diagnostics"]["dropped"]["selectionsFiltered"] == 1
        assert debug["compositionCache"]["misses"] == 3

    async def test_second_request_hits_composition_cache(self, service):
        await service.orders_detailed(limit=10)
        payload = await service.orders_detailed(limit=10, debug=True)

        assert payload["debug"]["compositionCache"]["hits"] == 3
        assert payload["cacheInfo"]["menu"] == "hit-fresh"

    async def test_dining_option_failure_leaves_orders_unenriched(self, memory_store, clock):
        service = build_service(BrokenDiningOptionsClient(clock=clock), memory_store, clock)

        payload = await service.orders_detailed(limit=10)
        first = payload["orders"][0]["orderData"]

        assert first["orderType"] == "UNKNOWN"
        assert first["diningOptionGuid"] == "dining-takeout"

    async def test_composer_without_clock_uses_service_clock(self, client, memory_store, clock):
        service = OrdersService(
            client,
            MenuCache(store=memory_store, client=client, clock=clock),
            OrderComposer(OrderCompositionCache(capacity=32)),
            clock=clock,
        )
        assert service.time_budget_ms > 0

        payload = await service.orders_detailed(limit=10, debug=True)

        assert payload["debug"]["timedOut"] is False
        assert payload["count"] == 3

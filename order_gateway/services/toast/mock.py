"""
Mock Toast Client Implementation

Serves deterministic Toast-shaped documents without network access.
Used in development mode (ENV_MODE=development) and by the route tests.

Behavior:
    - A small published menu (burgers, fries, drinks, two modifier options)
    - Three orders opened 5, 25 and 95 minutes before the client was created
    - Orders are filtered by the requested window and paged like ordersBulk
    - Prep stations page through an opaque token

Author: Khalil_Bannouri
Version: 1.0.0
"""

import copy
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from order_gateway.services.orders.extractors import parse_toast_timestamp
from order_gateway.services.toast.base import (
    BaseToastClient,
    OrdersPage,
    PrepStationsPage,
)

logger = logging.getLogger(__name__)

MENU_LAST_UPDATED = "2024-05-01T09:30:00.000+0000"

DINING_OPTIONS = [
    {"guid": "dining-dine-in", "name": "Dine In", "behavior": "DINE_IN"},
    {"guid": "dining-takeout", "name": "Online Pickup", "behavior": "TAKE_OUT"},
    {"guid": "dining-delivery", "name": "Delivery", "behavior": "DELIVERY"},
]

PREP_STATIONS = [
    {"guid": "prep-grill", "name": "Grill", "printingMode": "ON", "includeWithExpediter": True},
    {"guid": "prep-fryer", "name": "Fryer", "printingMode": "ON", "includeWithExpediter": True},
    {"guid": "prep-bar", "name": "Bar", "printingMode": "OFF", "includeWithExpediter": False},
]


def _menu_document() -> dict:
    return {
        "restaurantGuid": "mock-restaurant",
        "lastUpdated": MENU_LAST_UPDATED,
        "menus": [
            {
                "guid": "menu-main",
                "name": "Main",
                "menuGroups": [
                    {
                        "guid": "group-burgers",
                        "name": "Burgers",
                        "items": [
                            {"guid": "item-burger", "multiLocationId": "1001", "referenceId": 11,
                             "name": "Classic Burger", "kitchenName": "BURGER", "price": 11.5},
                            {"guid": "item-veggie", "multiLocationId": "1002", "referenceId": 12,
                             "name": "Veggie Burger", "price": 10.0},
                        ],
                        "menuGroups": [
                            {
                                "guid": "group-sides",
                                "name": "Sides",
                                "items": [
                                    {"guid": "item-fries", "multiLocationId": "2001", "referenceId": 21,
                                     "name": "Fries", "price": 4.0},
                                ],
                            }
                        ],
                    },
                    {
                        "guid": "group-drinks",
                        "name": "Drinks",
                        "items": [
                            {"guid": "item-cola", "multiLocationId": "3001", "referenceId": "31",
                             "name": "Cola", "price": 2.5},
                        ],
                    },
                ],
            }
        ],
        "modifierOptionReferences": {
            "41": {"guid": "mod-cheese", "referenceId": 41, "name": "Cheese", "optionGroupName": "Add-ons"},
            "42": {"guid": "mod-bacon", "referenceId": 42, "name": "Bacon", "optionGroupName": "Add-ons"},
        },
    }


def _iso(epoch_ms: int) -> str:
    moment = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}+0000"


def _orders(now_ms: int) -> list[dict]:
    minute = 60_000
    return [
        {
            "guid": "mock-order-1",
            "displayNumber": "101",
            "openedDate": _iso(now_ms - 5 * minute),
            "promisedDate": _iso(now_ms + 10 * minute),
            "restaurantLocationGuid": "mock-restaurant",
            "diningOption": {"guid": "dining-takeout"},
            "checks": [
                {
                    "guid": "mock-check-1",
                    "customer": {"firstName": "Ada", "lastName": "Lovelace"},
                    "payments": [{"tipAmount": 2.0}],
                    "selections": [
                        {
                            "guid": "mock-sel-1",
                            "item": {"guid": "item-burger"},
                            "quantity": 1,
                            "receiptLinePrice": 11.5,
                            "price": 13.0,
                            "fulfillmentStatus": "SENT",
                            "modifiers": [
                                {"guid": "mock-mod-1", "item": {"guid": "mod-cheese"}, "quantity": 1, "price": 1.0},
                                {"guid": "mock-mod-2", "item": {"guid": "mod-bacon"}, "quantity": 1, "price": 0.5},
                            ],
                        },
                        {
                            "guid": "mock-sel-2",
                            "item": {"multiLocationId": "2001"},
                            "quantity": 1,
                            "receiptLinePrice": 4.0,
                            "fulfillmentStatus": "READY",
                        },
                        {
                            "guid": "mock-sel-3",
                            "selectionType": "SPECIAL_REQUEST",
                            "displayName": "No onions",
                            "item": {"guid": "special-request"},
                        },
                    ],
                }
            ],
        },
        {
            "guid": "mock-order-2",
            "displayNumber": "102",
            "openedDate": _iso(now_ms - 25 * minute),
            "restaurantLocationGuid": "mock-restaurant",
            "diningOption": {"guid": "dining-dine-in"},
            "table": {"guid": "table-4", "name": "4"},
            "checks": [
                {
                    "guid": "mock-check-2",
                    "tabName": "Table 4",
                    "selections": [
                        {"guid": "mock-sel-4", "item": {"referenceId": 11}, "quantity": 2,
                         "receiptLinePrice": 11.5, "seatNumber": 2, "fulfillmentStatus": "READY"},
                        {"guid": "mock-sel-5", "item": {"referenceId": "31"}, "quantity": 2,
                         "receiptLinePrice": 2.5, "seatNumber": 1, "fulfillmentStatus": "READY"},
                    ],
                }
            ],
        },
        {
            "guid": "mock-order-3",
            "displayNumber": "103",
            "openedDate": _iso(now_ms - 95 * minute),
            "restaurantLocationGuid": "mock-restaurant",
            "diningOption": {"guid": "dining-delivery"},
            "deliveryInfo": {"recipientName": "Grace Hopper", "address1": "1 Navy Way"},
            "checks": [
                {
                    "guid": "mock-check-3",
                    "appliedServiceCharges": [{"chargeAmount": 3.0}],
                    "selections": [
                        {"guid": "mock-sel-6", "item": {"guid": "item-veggie"}, "quantity": 1,
                         "receiptLinePrice": 10.0, "fulfillmentStatus": "NEW"},
                    ],
                }
            ],
        },
    ]


class MockToastClient(BaseToastClient):
    """
    Mock implementation of the Toast client.

    Attributes:
        orders: Fixture orders, opened relative to construction time
        menu: Published menu fixture
        prep_station_page_size: Stations returned per page

    Example:
        >>> client = MockToastClient()
        >>> page = await client.get_orders_bulk(start, end)
        >>> page.orders[0]["guid"]
        'mock-order-1'
    """

    def __init__(
        self,
        clock: Optional[Callable[[], int]] = None,
        prep_station_page_size: int = 2,
    ):
        now = (clock or (lambda: int(time.time() * 1000)))()
        self.orders = _orders(now)
        self.menu = _menu_document()
        self.prep_station_page_size = prep_station_page_size
        self.calls: dict[str, int] = {}

        logger.info(f"MockToastClient initialized ({len(self.orders)} fixture orders)")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "mock"

    def _count(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1

    async def get_orders_bulk(
        self,
        start_iso: str,
        end_iso: str,
        page: int = 1,
        page_size: int = 100,
    ) -> OrdersPage:
        self._count("get_orders_bulk")
        start = parse_toast_timestamp(start_iso)
        end = parse_toast_timestamp(end_iso)

        matching = []
        for order in self.orders:
            opened = parse_toast_timestamp(order["openedDate"])
            if start is not None and opened < start:
                continue
            if end is not None and opened > end:
                continue
            matching.append(order)

        offset = (page - 1) * page_size
        chunk = matching[offset: offset + page_size]
        next_page = page + 1 if offset + page_size < len(matching) else None
        return OrdersPage(orders=copy.deepcopy(chunk), page=page, next_page=next_page)

    async def get_published_menus(self) -> Optional[dict]:
        self._count("get_published_menus")
        return copy.deepcopy(self.menu)

    async def get_menu_metadata(self) -> dict:
        self._count("get_menu_metadata")
        return {"restaurantGuid": "mock-restaurant", "lastUpdated": MENU_LAST_UPDATED}

    async def get_prep_stations(
        self,
        page_token: Optional[str] = None,
        last_modified: Optional[str] = None,
    ) -> PrepStationsPage:
        self._count("get_prep_stations")
        offset = int(page_token) if page_token and page_token.isdigit() else 0
        end = offset + self.prep_station_page_size
        return PrepStationsPage(
            prep_stations=copy.deepcopy(PREP_STATIONS[offset:end]),
            next_page_token=str(end) if end < len(PREP_STATIONS) else None,
        )

    async def get_dining_options(self) -> list[dict]:
        self._count("get_dining_options")
        return copy.deepcopy(DINING_OPTIONS)

    async def health_check(self) -> bool:
        return True

"""
Line-item classification and fulfillment status.

Author: Khalil_Bannouri
Version: 1.0.0
"""

from typing import Any, Optional

from order_gateway.services.orders.extractors import (
    extract_number,
    normalize_token,
    pick_order_string,
)

NON_ITEM_SELECTION_TYPES = frozenset({
    "SPECIAL_REQUEST",
    "FEE",
    "GIFT_CARD",
    "TOAST_CARD_SELL",
    "HOUSE_ACCOUNT_PAY_BALANCE",
    "NOTE",
    "TEXT",
    "SURCHARGE",
    "SERVICE_CHARGE",
    "TIP",
    "TAX",
    "PAYMENT",
    "DEPOSIT",
})
ITEM_SELECTION_TYPES = frozenset({"MENU_ITEM", "ITEM", "STANDARD", "OPEN_ITEM", "CUSTOM_ITEM", "RETAIL_ITEM"})
NON_ITEM_TYPES = frozenset({"SPECIAL_REQUEST", "NOTE", "TEXT", "FEE", "SURCHARGE", "SERVICE_CHARGE", "TIP", "TAX"})

ITEM_FULFILLMENT_STATUSES = frozenset({"NEW", "HOLD", "SENT", "READY"})

GUEST_FULFILLMENT_FIELDS = [
    "check.guestOrderFulfillmentStatus.status",
    "check.guestOrderFulfillmentStatus",
    "check.guestFulfillmentStatus.status",
    "check.guestFulfillmentStatus",
    "order.guestOrderFulfillmentStatus.status",
    "order.guestOrderFulfillmentStatus",
    "order.guestFulfillmentStatus.status",
    "order.guestFulfillmentStatus",
    "order.context.guestOrderFulfillmentStatus.status",
    "order.context.guestOrderFulfillmentStatus",
]


def selection_type(selection: dict) -> str:
    return normalize_token(selection.get("selectionType"))


def item_type(selection: dict) -> str:
    item = selection.get("item")
    if not isinstance(item, dict):
        return ""
    return normalize_token(item.get("itemType") or item.get("type"))


def is_line_item(selection: dict) -> bool:
    """True when a selection is a real menu item rather than a note, fee or payment."""
    kind = selection_type(selection)
    if kind in NON_ITEM_SELECTION_TYPES:
        return False

    item = selection.get("item")
    if not isinstance(item, dict):
        return False
    if item_type(selection) in NON_ITEM_TYPES:
        return False
    if kind in ITEM_SELECTION_TYPES:
        return True

    if any(item.get(key) not in (None, "") for key in ("guid", "multiLocationId", "referenceId")):
        return True
    return extract_number(selection, ["receiptLinePrice", "price"]) is not None


def normalize_item_fulfillment_status(value: Any) -> Optional[str]:
    normalized = normalize_token(value)
    return normalized if normalized in ITEM_FULFILLMENT_STATUSES else None


def resolve_fulfillment_status(order: dict, check: dict, item_statuses: list[str]) -> Optional[str]:
    """
    Check-level fulfillment status.

    A guest-facing status reported by Toast wins; otherwise it is derived
    from item statuses (IN_PREPARATION while any item is not READY).
    """
    guest = pick_order_string(order, check, GUEST_FULFILLMENT_FIELDS)
    if guest:
        return guest
    if not item_statuses:
        return None
    if all(status == "READY" for status in item_statuses):
        return "READY_FOR_PICKUP"
    return "IN_PREPARATION"

"""
Item Ordering Engine

Deterministic ordering of expanded line items within a check, so that
kitchen screens list a ticket's items identically on every refresh.

Comparator (ties fall through in this sequence):
    1. display order          ascending, values before nulls
    2. created time (ms)      ascending, values before nulls
    3. receipt position       ascending, values before nulls
    4. selection index        ascending, values before nulls
    5. iteration              ascending
    6. seat number            ascending, seated before unseated
    7. item name              case-insensitive
    8. menu item id           "" when absent
    9. line item id           always present and unique

Author: Khalil_Bannouri
Version: 1.0.0
"""

from dataclasses import dataclass
from functools import cmp_to_key
from typing import Any, Optional

from order_gateway.services.orders.extractors import extract_number, extract_timestamp

DISPLAY_ORDER_FIELDS = [
    "displaySequence",
    "displayOrder",
    "displayIndex",
    "displayPosition",
    "sequence",
    "sequenceNumber",
    "position",
    "context.displayOrder",
    "context.displaySequence",
]
CREATED_TIME_FIELDS = ["createdDate", "createdAt", "creationDate", "createdTime", "fireTime", "timestamp", "time"]
RECEIPT_POSITION_FIELDS = ["receiptLinePosition", "receiptLineIndex", "receiptPosition", "receiptIndex"]
SELECTION_INDEX_FIELDS = ["selectionIndex"]
SEAT_FIELDS = ["seatNumber", "seat", "seatPosition", "seatNum", "context.seatNumber"]

_NULLABLE_KEYS = ("display_order", "created_time", "receipt_position", "selection_index")


@dataclass(frozen=True)
class ItemSortMeta:
    """Sort keys for one expanded item. Never serialized."""
    display_order: Optional[float]
    created_time: Optional[int]
    receipt_position: Optional[float]
    selection_index: Optional[float]
    iteration: int
    seat_number: Optional[float]
    item_name_lower: str
    menu_item_id: Optional[str]
    line_item_id: str


def build_item_sort_meta(
    selection: dict[str, Any],
    item_name: str,
    menu_item_id: Optional[str],
    line_item_id: str,
    iteration: int,
) -> ItemSortMeta:
    created = extract_timestamp(selection, CREATED_TIME_FIELDS)
    return ItemSortMeta(
        display_order=extract_number(selection, DISPLAY_ORDER_FIELDS),
        created_time=created[1] if created else None,
        receipt_position=extract_number(selection, RECEIPT_POSITION_FIELDS),
        selection_index=extract_number(selection, SELECTION_INDEX_FIELDS),
        iteration=iteration,
        seat_number=extract_number(selection, SEAT_FIELDS),
        item_name_lower=item_name.lower(),
        menu_item_id=menu_item_id,
        line_item_id=line_item_id,
    )


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def _cmp_nullable(a: Optional[float], b: Optional[float]) -> int:
    if a is not None and b is not None:
        return _cmp(a, b)
    if a is not None:
        return -1
    if b is not None:
        return 1
    return 0


def compare_item_meta(a: ItemSortMeta, b: ItemSortMeta) -> int:
    for key in _NULLABLE_KEYS:
        result = _cmp_nullable(getattr(a, key), getattr(b, key))
        if result:
            return result

    if a.iteration != b.iteration:
        return _cmp(a.iteration, b.iteration)

    result = _cmp_nullable(a.seat_number, b.seat_number)
    if result:
        return result

    if a.item_name_lower != b.item_name_lower:
        return _cmp(a.item_name_lower, b.item_name_lower)

    result = _cmp(a.menu_item_id or "", b.menu_item_id or "")
    if result:
        return result

    return _cmp(a.line_item_id, b.line_item_id)


def sort_items(items: list[dict], metas: list[ItemSortMeta]) -> list[dict]:
    """Return `items` reordered by their paired sort metadata."""
    if len(items) != len(metas):
        raise ValueError("items and metas must be the same length")

    paired = sorted(
        zip(metas, range(len(items))),
        key=cmp_to_key(lambda x, y: compare_item_meta(x[0], y[0])),
    )
    return [items[index] for _, index in paired]

"""
Order Enrichment

Menu resolution, item ordering and memoized composition of raw Toast
orders into expanded orders.

Usage:
    from order_gateway.services.orders import get_composer

    result = get_composer().build_expanded_orders(
        orders_payload, menu_document, menu_updated_at, limit=20
    )
"""

from order_gateway.services.orders.compose import (
    CompositionDiagnostics,
    CompositionResult,
    OrderComposer,
    OrderCompositionCache,
    extract_orders,
    fingerprint_order,
    get_composer,
    reset_composer,
)
from order_gateway.services.orders.menu_index import MenuIndex, Reference
from order_gateway.services.orders.sorting import (
    ItemSortMeta,
    build_item_sort_meta,
    compare_item_meta,
    sort_items,
)

__all__ = [
    "CompositionDiagnostics",
    "CompositionResult",
    "OrderComposer",
    "OrderCompositionCache",
    "extract_orders",
    "fingerprint_order",
    "get_composer",
    "reset_composer",
    "MenuIndex",
    "Reference",
    "ItemSortMeta",
    "build_item_sort_meta",
    "compare_item_meta",
    "sort_items",
]

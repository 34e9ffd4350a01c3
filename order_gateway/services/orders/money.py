"""
Money & Modifiers

Integer-cent arithmetic for expanded line items. Toast reports amounts
as decimal dollars; everything leaving this module is in cents.

Author: Khalil_Bannouri
Version: 1.0.0
"""

from typing import Any, Optional

from order_gateway.services.orders.extractors import (
    coerce_number,
    extract_number,
    normalize_quantity,
    pick_string,
)
from order_gateway.services.orders.menu_index import MenuIndex

ITEM_UNIT_PRICE_FIELDS = ["receiptLinePrice", "preDiscountPrice", "price"]
MODIFIER_UNIT_PRICE_FIELDS = ["price", "receiptLinePrice"]
DISCOUNT_AMOUNT_FIELDS = ["discountAmount", "amount", "value"]
SERVICE_CHARGE_FIELDS = ["chargeAmount", "amount"]
TIP_FIELDS = ["tipAmount", "tip", "gratuity"]

UNKNOWN_MODIFIER = "Unknown Modifier"


def to_cents(value: Any) -> Optional[int]:
    number = coerce_number(value)
    if number is None:
        return None
    return int(round(number * 100))


def sum_amounts(collection: Any, fields: list[str]) -> int:
    """Sum the first present amount field of each entry, in cents (negatives ignored)."""
    if not isinstance(collection, list):
        return 0
    total = 0
    for entry in collection:
        cents = to_cents(extract_number(entry, fields))
        if cents is not None:
            total += max(cents, 0)
    return total


def _raw_modifiers(selection: dict, menu_index: MenuIndex, parent_quantity: int) -> list[dict]:
    collected = []
    modifiers = selection.get("modifiers")

    for modifier in modifiers if isinstance(modifiers, list) else []:
        if not isinstance(modifier, dict) or modifier.get("voided"):
            continue

        option = menu_index.find_modifier(modifier.get("item")) or {}
        item_ref = modifier.get("item") if isinstance(modifier.get("item"), dict) else {}
        option_group = modifier.get("optionGroup") if isinstance(modifier.get("optionGroup"), dict) else {}

        name = pick_string([
            option.get("kitchenName"),
            option.get("name"),
            modifier.get("displayName"),
            modifier.get("name"),
            item_ref.get("name"),
        ]) or UNKNOWN_MODIFIER
        group_name = pick_string([
            option_group.get("name"),
            option.get("optionGroupName"),
            option.get("groupName"),
        ])
        modifier_id = pick_string([item_ref.get("guid"), option.get("guid"), modifier.get("guid")])

        quantity = normalize_quantity(modifier.get("quantity"))
        unit_cents = to_cents(extract_number(modifier, MODIFIER_UNIT_PRICE_FIELDS))
        price_cents = unit_cents * quantity * parent_quantity if unit_cents is not None else 0

        collected.append({
            "id": modifier_id,
            "name": name,
            "groupName": group_name,
            "priceCents": price_cents,
            "quantity": quantity,
        })

        # nested modifiers are priced against the full chain of quantities
        if isinstance(modifier.get("modifiers"), list) and modifier["modifiers"]:
            collected.extend(_raw_modifiers(modifier, menu_index, parent_quantity * quantity))

    return collected


def collapse_modifiers(modifiers: list[dict]) -> list[dict]:
    """Merge entries with the same id (or name, when id-less) within the same group."""
    aggregated: dict[tuple[str, str], dict] = {}

    for modifier in modifiers:
        identifier = f"id:{modifier['id']}" if modifier["id"] else f"name:{modifier['name'].lower()}"
        group = (modifier["groupName"] or "").lower()
        key = (identifier, group)

        existing = aggregated.get(key)
        if existing is None:
            aggregated[key] = dict(modifier)
            continue
        existing["quantity"] += modifier["quantity"]
        existing["priceCents"] += modifier["priceCents"]
        if not existing["groupName"] and modifier["groupName"]:
            existing["groupName"] = modifier["groupName"]

    return sorted(
        aggregated.values(),
        key=lambda m: ((m["groupName"] or "").lower(), m["name"].lower(), m["id"] or ""),
    )


def collect_modifier_details(selection: dict, menu_index: MenuIndex, parent_quantity: int) -> tuple[list[dict], int]:
    """
    Flatten, collapse and price a selection's modifiers.

    Returns:
        (modifiers, total cents) where each modifier's priceCents is
        unit price x modifier quantity x parent quantity
    """
    modifiers = collapse_modifiers(_raw_modifiers(selection, menu_index, parent_quantity))
    return modifiers, sum(m["priceCents"] for m in modifiers)


def resolve_item_total(base_cents: Optional[int], modifiers_cents: int, explicit_cents: Optional[int]) -> Optional[int]:
    """Higher of the upstream line price and base + modifiers."""
    if explicit_cents is not None and base_cents is not None:
        return max(explicit_cents, base_cents + modifiers_cents)
    if explicit_cents is not None:
        return explicit_cents
    if base_cents is not None:
        return base_cents + modifiers_cents
    return modifiers_cents if modifiers_cents > 0 else None


def price_selection(selection: dict, menu_index: MenuIndex, quantity: int) -> dict[str, Any]:
    """Compute modifiers and the money block for one selection."""
    modifiers, modifier_cents = collect_modifier_details(selection, menu_index, quantity)

    unit_cents = to_cents(extract_number(selection, ITEM_UNIT_PRICE_FIELDS))
    base_cents = unit_cents * quantity if unit_cents is not None else None
    explicit_cents = to_cents(selection.get("price"))
    total_cents = resolve_item_total(base_cents, modifier_cents, explicit_cents)

    return {
        "modifiers": modifiers,
        "money": {
            "baseItemPriceCents": base_cents,
            "modifierTotalCents": modifier_cents,
            "totalItemPriceCents": total_cents,
        },
        "discountCents": sum_amounts(selection.get("appliedDiscounts"), DISCOUNT_AMOUNT_FIELDS),
    }

"""
Toast Document Extractors

Field probing helpers for raw Toast order documents. Toast payloads are
loosely shaped: the same fact can live under several field names, on the
check or on the order, or inside a nested `context` object. Every helper
here takes an ordered list of candidate paths and returns the first
usable value.

Paths:
    - "displayOrder"            -> selection["displayOrder"]
    - "context.displayOrder"    -> selection["context"]["displayOrder"]
    - "order.deliveryInfo"      -> rooted at the order (order/check helpers)
    - "check.customer.name"     -> rooted at the check (order/check helpers)

Author: Khalil_Bannouri
Version: 1.0.0
"""

import re
from datetime import datetime, timezone
from typing import Any, Optional

ORDER_TIME_FIELDS = ["createdDate", "openedDate", "promisedDate", "estimatedFulfillmentDate", "readyDate"]

ORDER_LOCATION_FIELDS = [
    "order.restaurantLocationGuid",
    "order.restaurantGuid",
    "order.locationGuid",
    "order.locationId",
    "order.context.restaurantLocationGuid",
    "order.context.locationGuid",
    "order.context.locationId",
    "order.revenueCenter.guid",
]

ORDER_META_STRINGS = {
    "orderNumber": ["order.displayNumber", "order.orderNumber"],
    "timeDue": ["order.promisedDate", "order.estimatedFulfillmentDate"],
    "locationId": ORDER_LOCATION_FIELDS,
    "status": ["order.status", "order.orderStatus", "order.approvalStatus"],
    "currency": ["order.currency", "order.currencyCode"],
    "diningOptionGuid": [
        "check.diningOptionGuid",
        "check.diningOption.guid",
        "order.diningOptionGuid",
        "order.diningOption.guid",
        "order.context.diningOption.guid",
    ],
    "diningOptionBehavior": [
        "check.diningOption.behavior",
        "check.diningOption.type",
        "check.diningOptionType",
        "order.diningOption.behavior",
        "order.diningOption.type",
        "order.diningOptionType",
        "order.context.diningOption.behavior",
        "order.context.diningOptionType",
    ],
    "diningOptionName": [
        "check.diningOption.name",
        "check.diningOption.displayName",
        "order.diningOption.name",
        "order.diningOption.displayName",
        "order.context.diningOption.name",
        "order.context.diningOption.displayName",
    ],
    "promisedDate": ["order.promisedDate"],
    "estimatedFulfillmentDate": ["order.estimatedFulfillmentDate"],
}

ORDER_META_OBJECTS = {
    "deliveryInfo": ["check.deliveryInfo", "order.deliveryInfo", "order.context.deliveryInfo"],
    "curbsidePickupInfo": ["check.curbsidePickupInfo", "order.curbsidePickupInfo", "order.context.curbsidePickupInfo"],
    "table": ["check.table", "order.table", "order.context.table"],
}

ORDER_TYPE_FIELDS = [
    "check.orderType",
    "check.serviceType",
    "check.orderMode",
    "check.channelType",
    "check.fulfillmentMode",
    "order.orderType",
    "order.serviceType",
    "order.orderMode",
    "order.channelType",
    "order.mode",
    "order.fulfillmentType",
    "order.fulfillmentMode",
    "order.source.orderType",
    "order.source.serviceType",
    "order.context.orderType",
    "order.context.serviceType",
    "order.context.fulfillmentType",
    "order.context.diningOption",
    "order.context.diningOptionType",
]

ORDER_TYPE_ALIASES = {
    "TAKEOUT": "TAKEOUT",
    "TAKE_OUT": "TAKEOUT",
    "TAKEAWAY": "TAKEOUT",
    "TAKE_AWAY": "TAKEOUT",
    "PICKUP": "TAKEOUT",
    "PICK_UP": "TAKEOUT",
    "TOGO": "TAKEOUT",
    "TO_GO": "TAKEOUT",
    "DINE_IN": "DINE_IN",
    "DINEIN": "DINE_IN",
    "ON_PREMISE": "DINE_IN",
    "EAT_IN": "DINE_IN",
    "CURBSIDE": "CURBSIDE",
    "CURB_SIDE": "CURBSIDE",
    "CURBSIDE_PICKUP": "CURBSIDE",
    "DRIVE_THRU": "DRIVE_THRU",
    "DRIVETHRU": "DRIVE_THRU",
    "DRIVE_THROUGH": "DRIVE_THRU",
    "CATERING": "CATERING",
    "DELIVERY": "DELIVERY",
    "DELIVER": "DELIVERY",
}

UNKNOWN_ORDER_TYPE = "UNKNOWN"

_OFFSET_WITHOUT_COLON = re.compile(r"([+-]\d{2})(\d{2})$")
_NON_ALNUM = re.compile(r"[^A-Z0-9]+")


# =============================================================================
# PRIMITIVES
# =============================================================================

def get_path(source: Any, path: str) -> Any:
    """Follow a dotted path through nested dicts; None when any hop is missing."""
    current = source
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def get_order_path(order: dict, check: dict, path: str) -> Any:
    """Resolve a path rooted at "order." or "check."."""
    root, _, rest = path.partition(".")
    if root == "order":
        source = order
    elif root == "check":
        source = check
    else:
        return None
    return get_path(source, rest) if rest else source


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value == value \
        and value not in (float("inf"), float("-inf"))


def coerce_number(value: Any) -> Optional[float]:
    """Numbers pass through; numeric strings are parsed; everything else is None."""
    if _is_number(value):
        return value
    if isinstance(value, str) and value.strip():
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return parsed if _is_number(parsed) else None
    return None


def extract_number(source: Any, fields: list[str]) -> Optional[float]:
    for field in fields:
        value = coerce_number(get_path(source, field))
        if value is not None:
            return value
    return None


def parse_toast_timestamp(value: Any) -> Optional[int]:
    """
    Parse a Toast timestamp to epoch milliseconds.

    Accepts ISO-8601 strings with "Z", "+00:00" or Toast's "+0000" offsets
    (naive values are read as UTC) and numeric epoch milliseconds.
    """
    if _is_number(value):
        return int(value)
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    text = _OFFSET_WITHOUT_COLON.sub(r"\1:\2", text)

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def to_iso(epoch_ms: int) -> str:
    """Epoch milliseconds as an ISO-8601 UTC string with millisecond precision."""
    moment = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def extract_timestamp(source: Any, fields: list[str]) -> Optional[tuple[Any, int]]:
    """Return (raw value, epoch ms) for the first parseable candidate."""
    for field in fields:
        raw = get_path(source, field)
        if raw is None:
            continue
        parsed = parse_toast_timestamp(raw)
        if parsed is not None:
            return raw, parsed
    return None


def clean_string(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def pick_string(values: list[Any]) -> Optional[str]:
    """First non-blank string (trimmed) or finite number (stringified)."""
    for value in values:
        text = clean_string(value)
        if text:
            return text
        if _is_number(value):
            return str(value)
    return None


def pick_order_string(order: dict, check: dict, paths: list[str]) -> Optional[str]:
    return pick_string([get_order_path(order, check, path) for path in paths])


def pick_order_object(order: dict, check: dict, paths: list[str]) -> Optional[dict]:
    for path in paths:
        value = get_order_path(order, check, path)
        if isinstance(value, dict) and value:
            return value
    return None


def normalize_quantity(value: Any) -> int:
    """Positive integer quantity; anything else counts as 1."""
    number = coerce_number(value)
    if number is None or number <= 0:
        return 1
    return max(1, int(round(number)))


def normalize_token(value: Any) -> str:
    """Upper-case a vendor enum with whitespace collapsed to underscores."""
    if not isinstance(value, str):
        return ""
    return re.sub(r"\s+", "_", value.strip().upper())


def is_voided(entity: Any) -> bool:
    return isinstance(entity, dict) and bool(entity.get("voided") or entity.get("deleted"))


# =============================================================================
# ORDER TYPE
# =============================================================================

def normalize_order_type(value: Any) -> Optional[str]:
    """
    Map a vendor order-type label onto TAKEOUT / DINE_IN / CURBSIDE /
    DRIVE_THRU / CATERING / DELIVERY. Unrecognized labels return None.
    """
    if isinstance(value, dict):
        candidate = value.get("type") or value.get("name") or value.get("behavior")
        return normalize_order_type(candidate) if isinstance(candidate, str) else None
    if not isinstance(value, str) or not value.strip():
        return None

    normalized = _NON_ALNUM.sub("_", value.strip().upper()).strip("_")
    if normalized in ORDER_TYPE_ALIASES:
        return ORDER_TYPE_ALIASES[normalized]
    if "CURBSIDE" in normalized:
        return "CURBSIDE"
    if "DRIVE" in normalized:
        return "DRIVE_THRU"
    if "CATER" in normalized:
        return "CATERING"
    if "DELIVER" in normalized:
        return "DELIVERY"
    if "DINE" in normalized or "EAT_IN" in normalized or "ON_PREMISE" in normalized:
        return "DINE_IN"
    if "TAKE" in normalized or "PICKUP" in normalized or "TO_GO" in normalized:
        return "TAKEOUT"
    return None


def resolve_order_type(order: dict, check: dict) -> str:
    if get_path(order, "context.curbsidePickupInfo") or check.get("curbsidePickupInfo"):
        return "CURBSIDE"
    for flag, order_type in (
        ("isDriveThru", "DRIVE_THRU"),
        ("isDelivery", "DELIVERY"),
        ("isCatering", "CATERING"),
    ):
        if order.get(flag) is True or check.get(flag) is True:
            return order_type

    for path in ORDER_TYPE_FIELDS:
        normalized = normalize_order_type(get_order_path(order, check, path))
        if normalized:
            return normalized
    return UNKNOWN_ORDER_TYPE


# =============================================================================
# CUSTOMER NAME
# =============================================================================

def build_customer_name(customer: Any) -> Optional[str]:
    """Name from a Toast customer/guest block (or a bare string)."""
    if isinstance(customer, str):
        return clean_string(customer)
    if not isinstance(customer, dict):
        return None

    direct = pick_string([
        customer.get("displayName"),
        customer.get("name"),
        customer.get("fullName"),
        customer.get("customerName"),
        customer.get("guestName"),
    ])
    if direct:
        return direct

    first = clean_string(customer.get("firstName")) or ""
    last = clean_string(customer.get("lastName")) or ""
    combined = f"{first} {last}".strip()
    return combined or None


def extract_customer_name(order: dict, check: dict) -> Optional[str]:
    """
    Resolve the guest name shown on a ticket.

    Precedence: explicit customer-name fields, the check's customer, the
    order's customers, tab names, curbside pickup and delivery recipients,
    then the check's guests.
    """
    direct = pick_order_string(order, check, [
        "check.customerName",
        "check.customer.name",
        "order.customerName",
        "order.context.customerName",
    ])
    if direct:
        return direct

    from_check = build_customer_name(check.get("customer"))
    if from_check:
        return from_check

    customers = order.get("customers")
    for customer in customers if isinstance(customers, list) else []:
        name = build_customer_name(customer)
        if name:
            return name

    tab = pick_order_string(order, check, [
        "check.tabName",
        "check.guestName",
        "order.guestName",
        "order.tabName",
    ])
    if tab:
        return tab

    pickup = pick_order_string(order, check, [
        "check.curbsidePickupInfo.name",
        "order.curbsidePickupInfo.name",
        "order.context.curbsidePickupInfo.name",
    ])
    if pickup:
        return pickup

    for block in (get_path(order, "context.deliveryInfo"), order.get("deliveryInfo"), check.get("deliveryInfo")):
        if isinstance(block, dict):
            recipient = pick_string([block.get("recipientName"), block.get("name"), block.get("customerName")])
            if recipient:
                return recipient

    guests = check.get("guests")
    for guest in guests if isinstance(guests, list) else []:
        name = build_customer_name(guest)
        if name:
            return name

    return None


# =============================================================================
# ORDER META
# =============================================================================

def extract_order_meta(order: dict, check: dict) -> dict[str, Any]:
    """Collect the order-level facts copied into an expanded order's orderData."""
    meta: dict[str, Any] = {
        key: pick_order_string(order, check, paths)
        for key, paths in ORDER_META_STRINGS.items()
    }
    for key, paths in ORDER_META_OBJECTS.items():
        meta[key] = pick_order_object(order, check, paths)

    meta["checkId"] = pick_order_string(order, check, ["check.guid", "check.id"])
    meta["customerName"] = extract_customer_name(order, check)
    meta["orderType"] = resolve_order_type(order, check)
    return meta

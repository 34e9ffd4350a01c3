"""
Menu Index

Multi-key lookup over a published Toast menu document. Order selections
reference catalog entries sparsely, by any subset of three identifiers:

    - guid: per-location identifier (always a string)
    - multiLocationId: stable across a restaurant group's locations
    - referenceId: catalog-internal id, string or integer in the wild

Items are collected from `menus -> menuGroups -> (items, child menuGroups)`;
modifier options come from the flat `modifierOptionReferences` table.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

ReferenceId = Union[str, int]


@dataclass(frozen=True)
class Reference:
    """
    A sparse pointer into the menu catalog.

    Attributes:
        guid: Location GUID
        multi_location_id: Cross-location identifier, normalized to str
        reference_id: Catalog id, kept in its original type (7 != "7")
    """
    guid: Optional[str] = None
    multi_location_id: Optional[str] = None
    reference_id: Optional[ReferenceId] = None

    @classmethod
    def from_value(cls, value: Any) -> Optional["Reference"]:
        """Build a Reference from a raw `item` block; None when it carries no identifier."""
        if not isinstance(value, dict):
            return None

        guid = value.get("guid")
        guid = guid.strip() if isinstance(guid, str) and guid.strip() else None

        multi = value.get("multiLocationId")
        multi = str(multi) if multi is not None and not isinstance(multi, bool) else None

        ref = value.get("referenceId")
        if isinstance(ref, bool) or not isinstance(ref, (str, int)):
            ref = None

        if guid is None and multi is None and ref is None:
            return None
        return cls(guid=guid, multi_location_id=multi, reference_id=ref)

    @property
    def is_empty(self) -> bool:
        return self.guid is None and self.multi_location_id is None and self.reference_id is None


@dataclass
class _KeyedCatalog:
    by_guid: dict[str, dict] = field(default_factory=dict)
    by_multi_location_id: dict[str, dict] = field(default_factory=dict)
    by_reference_id: dict[ReferenceId, dict] = field(default_factory=dict)

    def add(self, entry: Any) -> None:
        if not isinstance(entry, dict):
            return
        guid = entry.get("guid")
        if isinstance(guid, str) and guid:
            self.by_guid[guid] = entry
        multi = entry.get("multiLocationId")
        if multi is not None and not isinstance(multi, bool):
            self.by_multi_location_id[str(multi)] = entry
        ref = entry.get("referenceId")
        if isinstance(ref, (str, int)) and not isinstance(ref, bool):
            self.by_reference_id[ref] = entry

    def find(self, reference: Optional[Reference]) -> Optional[dict]:
        # a present guid is authoritative: no fall-through on a miss
        if reference is None:
            return None
        if reference.guid is not None:
            return self.by_guid.get(reference.guid)
        if reference.multi_location_id is not None:
            hit = self.by_multi_location_id.get(reference.multi_location_id)
            if hit is not None:
                return hit
        if reference.reference_id is not None:
            return self.by_reference_id.get(reference.reference_id)
        return None

    def __len__(self) -> int:
        return len(self.by_guid) + len(self.by_multi_location_id) + len(self.by_reference_id)


class MenuIndex:
    """
    Item and modifier lookup tables for one menu document.

    Example:
        >>> index = MenuIndex.build(menu_document)
        >>> index.find_item({"multiLocationId": "m1"})
        {'guid': 'g1', 'name': 'Burger', ...}
    """

    def __init__(self):
        self.items = _KeyedCatalog()
        self.modifiers = _KeyedCatalog()

    @classmethod
    def build(cls, document: Optional[dict]) -> "MenuIndex":
        """Index a menu document. None (or a non-dict) yields an empty index."""
        index = cls()
        if not isinstance(document, dict):
            return index

        options = document.get("modifierOptionReferences")
        if isinstance(options, dict):
            for option in options.values():
                index.modifiers.add(option)

        stack: list[Any] = []
        menus = document.get("menus")
        for menu in menus if isinstance(menus, list) else []:
            groups = menu.get("menuGroups") if isinstance(menu, dict) else None
            if isinstance(groups, list):
                stack.extend(groups)

        while stack:
            group = stack.pop()
            if not isinstance(group, dict):
                continue
            items = group.get("items")
            for item in items if isinstance(items, list) else []:
                index.items.add(item)
            children = group.get("menuGroups")
            if isinstance(children, list):
                stack.extend(children)

        logger.debug(
            f"MenuIndex built: {len(index.items.by_guid)} items, "
            f"{len(index.modifiers.by_guid)} modifier options"
        )
        return index

    @staticmethod
    def _as_reference(reference: Any) -> Optional[Reference]:
        if isinstance(reference, Reference):
            return None if reference.is_empty else reference
        return Reference.from_value(reference)

    def find_item(self, reference: Any) -> Optional[dict]:
        """Resolve a menu item by guid, then multiLocationId, then referenceId."""
        return self.items.find(self._as_reference(reference))

    def find_modifier(self, reference: Any) -> Optional[dict]:
        """Resolve a modifier option with the same precedence as items."""
        return self.modifiers.find(self._as_reference(reference))

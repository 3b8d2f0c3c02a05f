"""Build small catalogs for tests.

Catalogs are assembled in the same JSON form the CLI reads and loaded with
Catalog.from_dict, so tests exercise the loader as well.
"""

import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from permutation.catalog import Catalog
from permutation.keys import LocationScope, ScopeType, SlotKey


class CatalogBuilder:
    """Collects scopes and configuration, then builds a Catalog."""

    def __init__(self, areas: Iterable[str] = ("X",)):
        self.data: Dict = {
            "scopes": [],
            "areas": list(areas),
            "item_groups": {},
            "item_restrict": [],
        }
        self._next_id = 1000

    def scope(
        self,
        items: Iterable[str] = ("GOOD:1",),
        area: Optional[str] = "X",
        scope_type: str = "EVENT",
        tags: Iterable[str] = (),
        max_slots: int = 1,
        quantity: int = 1,
        chance: float = 1.0,
        event: Optional[str] = None,
        area_index: Tuple[int, int] = (0, 1),
        tag_items: Optional[Dict[str, List[str]]] = None,
        scope_id: Optional[int] = None,
    ) -> LocationScope:
        """Add a location scope with one slot per item.

        Pass area=None for a scope without annotation.
        """
        if scope_id is None:
            scope_id = self._next_id
            self._next_id += 1
        entry = {
            "type": scope_type,
            "id": scope_id,
            "max_slots": max_slots,
            "slots": [
                {
                    "item": item,
                    # Several slots in one scope need distinct item scopes
                    "scope_id": scope_id * 100 + index if index else scope_id,
                    "quantity": quantity,
                    "chance": chance,
                }
                for index, item in enumerate(items)
            ],
        }
        if area is not None:
            entry["annotation"] = {
                "area": area,
                "tags": list(tags),
                "event": event,
                "area_index": list(area_index),
                "tag_items": tag_items or {},
            }
        self.data["scopes"].append(entry)
        return LocationScope(ScopeType[scope_type], scope_id)

    def group(self, name: str, items: Iterable[str]) -> "CatalogBuilder":
        self.data["item_groups"][name] = list(items)
        return self

    def restrict(self, key: str, **rules) -> "CatalogBuilder":
        entry = {"key": key}
        entry.update(rules)
        self.data["item_restrict"].append(entry)
        return self

    def set(self, key: str, value) -> "CatalogBuilder":
        self.data[key] = value
        return self

    def build(self) -> Catalog:
        return Catalog.from_dict(self.data)


def scope_slots(catalog: Catalog, loc_scope: LocationScope) -> List[SlotKey]:
    return catalog.Slots(loc_scope)

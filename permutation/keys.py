"""Value types identifying items, slots and location scopes.

Every type here is immutable and ordered by value, so they can be used as
dictionary keys and sorted deterministically.
"""

from dataclasses import dataclass
from enum import IntEnum


class ItemType(IntEnum):
    WEAPON = 0
    ARMOR = 1
    RING = 2
    GOOD = 3
    GEM = 4
    CUSTOM = 5


# Weapon ids at or above this value are ammunition rather than gear
ARROW_ID_START = 50000000


@dataclass(frozen=True, order=True)
class ItemKey:
    """A kind of item, independent of where it is placed."""
    type: ItemType
    id: int

    @classmethod
    def parse(cls, text: str) -> "ItemKey":
        """Parse "GOOD:8109" or "3:8109" into an ItemKey."""
        type_text, _, id_text = text.partition(':')
        if not id_text:
            raise ValueError(f"Item key '{text}' must look like TYPE:ID")
        type_text = type_text.strip()
        if type_text.isdigit():
            item_type = ItemType(int(type_text))
        else:
            try:
                item_type = ItemType[type_text.upper()]
            except KeyError:
                raise ValueError(f"Unknown item type '{type_text}' in '{text}'")
        return cls(item_type, int(id_text))

    def IsGear(self) -> bool:
        if self.type == ItemType.ARMOR:
            return True
        return self.type == ItemType.WEAPON and self.id < ARROW_ID_START

    def __str__(self) -> str:
        return f"{self.type.name}:{self.id}"


class ScopeType(IntEnum):
    # Placements guarded by an event flag (picked up once)
    EVENT = 0
    ENTITY = 1
    MATERIAL = 2
    # Map assets, never randomized
    ASSET = 3
    # Synthetic placements that don't come from the game data
    SPECIAL = 4
    # Repeatable enemy drops
    MODEL = 5
    SHOP_INFINITE = 6
    # Shop listings with a finite stock that also restock forever
    SHOP_INFINITE_EVENT = 7


@dataclass(frozen=True, order=True)
class ItemScope:
    type: ScopeType
    id: int

    def __str__(self) -> str:
        return f"{self.type.name}:{self.id}"


@dataclass(frozen=True, order=True)
class SlotKey:
    """An item at a specific scope, used both as a source and as a target."""
    item: ItemKey
    scope: ItemScope

    def __str__(self) -> str:
        return f"{self.item}@{self.scope}"


@dataclass(frozen=True, order=True)
class LocationScope:
    """A logical place in the game grouping one or more slots."""
    type: ScopeType
    id: int
    only_shops: bool = False

    def __str__(self) -> str:
        return f"{self.type.name.lower()}:{self.id}"


# Source key used for items which are generated rather than moved
def special_source(item: ItemKey) -> SlotKey:
    return SlotKey(item, ItemScope(ScopeType.SPECIAL, -1))

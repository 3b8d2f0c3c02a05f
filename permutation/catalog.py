"""Read-only input catalog consumed by the permutation engine.

The catalog describes every slot in the game (grouped by location scope), the
annotations attached to each scope (area, tags, area position) and the item
configuration (groups, placement restrictions, priorities). It is produced by
the game-specific loaders and never modified by a randomization run.

KeyItemAssignment is the result of the external key item reachability
solver: which items are key items, which areas they must go to, and how late
each area is in a playthrough.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple
import logging as log

from .keys import ItemKey, ItemScope, LocationScope, ScopeType, SlotKey

UNKNOWN_AREA = "unknown"

# Scope types whose slots can only be picked up once
FINITE_SCOPE_TYPES = frozenset({
    ScopeType.EVENT, ScopeType.ENTITY, ScopeType.MATERIAL, ScopeType.SPECIAL,
})


@dataclass
class ItemLocation:
    """Catalog data for a single slot."""
    scope: ItemScope
    loc_scope: LocationScope
    quantity: int = 1
    # Maximum number of sources which can be bound to this slot as a target
    max_slots: int = 1
    chance: float = 1.0


@dataclass
class SlotAnnotation:
    """Annotation attached to a location scope."""
    key: LocationScope
    area: str = UNKNOWN_AREA
    tags: List[str] = field(default_factory=list)
    event: Optional[str] = None
    # (position of this scope within its area, number of positions in the area)
    area_index: Tuple[int, int] = (0, 1)
    text: str = ""
    tag_items: Dict[str, List[ItemKey]] = field(default_factory=dict)

    def HasTag(self, tag: str) -> bool:
        return tag in self.tags

    def HasAnyTags(self, tags: Iterable[str]) -> bool:
        return any(tag in self.tags for tag in tags)


@dataclass
class PlacementSlot:
    """A configured "N copies in one of these areas" rule."""
    amount: int
    areas: List[str]

    def allowed_areas(
        self,
        included_areas: Optional[Dict[str, Set[str]]],
        combined_weights: Dict[str, Set[str]]
    ) -> List[str]:
        """Expand area names through combined weights and drop excluded areas.

        Args:
            included_areas: Areas used in this run (None = all areas)
            combined_weights: Named area groups, e.g. "early" -> {...}

        Returns:
            Sorted list of concrete area names
        """
        result: Set[str] = set()
        for area in self.areas:
            for expanded in combined_weights.get(area, {area}):
                if included_areas is None or included_areas.get(expanded):
                    result.add(expanded)
        return sorted(result)


@dataclass
class PlacementRestriction:
    """Configured placement rules for one item (and optional aliases)."""
    key: ItemKey
    unique: Optional[List[PlacementSlot]] = None
    key_areas: Optional[List[str]] = None
    shop: Optional[List[PlacementSlot]] = None
    drop: Optional[List[PlacementSlot]] = None
    other_keys: List[ItemKey] = field(default_factory=list)


@dataclass
class ItemPriorityGroup:
    keys: List[ItemKey]
    priority_by_count: int = 1
    # "keyitems" limits the group to items chosen by the key item solver
    includes: Optional[str] = None


@dataclass
class Catalog:
    """All slots and annotations known to the engine."""
    locations: Dict[LocationScope, List[SlotKey]]
    slot_locations: Dict[SlotKey, ItemLocation]
    slots: Dict[LocationScope, SlotAnnotation] = field(default_factory=dict)
    areas: List[str] = field(default_factory=list)
    events: Set[str] = field(default_factory=set)
    area_events: Dict[str, List[str]] = field(default_factory=dict)
    item_groups: Dict[str, List[ItemKey]] = field(default_factory=dict)
    norandom_items: Set[ItemKey] = field(default_factory=set)
    unique_items: Set[ItemKey] = field(default_factory=set)
    item_restrict: Dict[ItemKey, PlacementRestriction] = field(default_factory=dict)
    exclude_tags: Dict[ItemKey, Set[str]] = field(default_factory=dict)
    race_mode_items: List[ItemKey] = field(default_factory=list)
    race_mode_tags: Set[str] = field(default_factory=set)
    race_mode_item_limits: Dict[ItemKey, int] = field(default_factory=dict)
    item_priority: List[ItemPriorityGroup] = field(default_factory=list)
    hint_groups: Dict[str, str] = field(default_factory=dict)
    hint_categories: List[str] = field(default_factory=list)
    # Areas so small that key items anywhere inside count as the hardest spot
    small_areas: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._item_slots: Dict[ItemKey, List[SlotKey]] = defaultdict(list)
        for slots in self.locations.values():
            for slot in slots:
                self._item_slots[slot.item].append(slot)

    def Location(self, slot: SlotKey) -> ItemLocation:
        try:
            return self.slot_locations[slot]
        except KeyError:
            raise KeyError(f"Slot {slot} has no catalog data")

    def Slots(self, loc_scope: LocationScope) -> List[SlotKey]:
        return self.locations.get(loc_scope, [])

    def Slot(self, loc_scope: LocationScope) -> SlotAnnotation:
        """Annotation for a scope, or an empty one in the unknown area."""
        annotation = self.slots.get(loc_scope)
        if annotation is None:
            return SlotAnnotation(loc_scope)
        return annotation

    def ItemSlots(self, item: ItemKey) -> List[SlotKey]:
        return list(self._item_slots.get(item, []))

    def ItemGroup(self, name: str) -> List[ItemKey]:
        return self.item_groups.get(name, [])

    def IsKnownArea(self, area: str) -> bool:
        return area in self.areas or area in self.events

    def IsUnique(self, item: ItemKey) -> bool:
        """Whether only a single copy of this item exists in the game."""
        if item in self.unique_items:
            return True
        slots = self._item_slots.get(item, [])
        if len(slots) != 1:
            return False
        location = self.slot_locations.get(slots[0])
        if location is None:
            return False
        return location.scope.type in FINITE_SCOPE_TYPES and location.quantity == 1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Catalog":
        """Build a catalog from its JSON representation."""
        locations: Dict[LocationScope, List[SlotKey]] = {}
        slot_locations: Dict[SlotKey, ItemLocation] = {}
        annotations: Dict[LocationScope, SlotAnnotation] = {}

        for entry in data.get("scopes", []):
            scope_type = _parse_scope_type(entry["type"])
            loc_scope = LocationScope(scope_type, int(entry["id"]), bool(entry.get("only_shops", False)))
            if loc_scope in locations:
                raise ValueError(f"Duplicate location scope {loc_scope}")
            slot_keys = []
            for slot_entry in entry.get("slots", []):
                item_scope = ItemScope(
                    _parse_scope_type(slot_entry.get("scope_type", entry["type"])),
                    int(slot_entry.get("scope_id", entry["id"])))
                slot = SlotKey(ItemKey.parse(slot_entry["item"]), item_scope)
                if slot in slot_locations:
                    raise ValueError(f"Duplicate slot {slot} in {loc_scope}")
                slot_locations[slot] = ItemLocation(
                    scope=item_scope,
                    loc_scope=loc_scope,
                    quantity=int(slot_entry.get("quantity", 1)),
                    max_slots=int(slot_entry.get("max_slots", entry.get("max_slots", 1))),
                    chance=float(slot_entry.get("chance", 1.0)),
                )
                slot_keys.append(slot)
            locations[loc_scope] = slot_keys

            ann = entry.get("annotation")
            if ann is not None:
                index = ann.get("area_index", [0, 1])
                annotations[loc_scope] = SlotAnnotation(
                    key=loc_scope,
                    area=ann.get("area", UNKNOWN_AREA),
                    tags=list(ann.get("tags", [])),
                    event=ann.get("event"),
                    area_index=(int(index[0]), int(index[1])),
                    text=ann.get("text", ""),
                    tag_items={tag: _parse_items(items) for tag, items in ann.get("tag_items", {}).items()},
                )

        restrictions = {}
        for entry in data.get("item_restrict", []):
            restrict = PlacementRestriction(
                key=ItemKey.parse(entry["key"]),
                unique=_parse_placement_slots(entry.get("unique")),
                key_areas=entry.get("key_areas"),
                shop=_parse_placement_slots(entry.get("shop")),
                drop=_parse_placement_slots(entry.get("drop")),
                other_keys=_parse_items(entry.get("other_keys", [])),
            )
            restrictions[restrict.key] = restrict

        catalog = cls(
            locations=locations,
            slot_locations=slot_locations,
            slots=annotations,
            areas=list(data.get("areas", [])),
            events=set(data.get("events", [])),
            area_events={area: list(evs) for area, evs in data.get("area_events", {}).items()},
            item_groups={name: _parse_items(items) for name, items in data.get("item_groups", {}).items()},
            norandom_items=set(_parse_items(data.get("norandom_items", []))),
            unique_items=set(_parse_items(data.get("unique_items", []))),
            item_restrict=restrictions,
            exclude_tags={ItemKey.parse(k): set(v) for k, v in data.get("exclude_tags", {}).items()},
            race_mode_items=_parse_items(data.get("race_mode_items", [])),
            race_mode_tags=set(data.get("race_mode_tags", [])),
            race_mode_item_limits={
                ItemKey.parse(k): int(v) for k, v in data.get("race_mode_item_limits", {}).items()},
            item_priority=[
                ItemPriorityGroup(
                    keys=_parse_items(group.get("keys", [])),
                    priority_by_count=int(group.get("priority_by_count", 1)),
                    includes=group.get("includes"),
                )
                for group in data.get("item_priority", [])
            ],
            hint_groups=dict(data.get("hint_groups", {})),
            hint_categories=list(data.get("hint_categories", [])),
            small_areas=list(data.get("small_areas", [])),
        )
        log.debug(f"Loaded catalog with {len(locations)} scopes and {len(slot_locations)} slots")
        return catalog


@dataclass
class KeyItemAssignment:
    """Output of the key item reachability solver."""
    # Key item -> areas it must be placed in
    assign: Dict[ItemKey, Set[str]] = field(default_factory=dict)
    # Key items in placement order
    priority: List[ItemKey] = field(default_factory=list)
    # Area -> lateness in [0, 1]
    location_lateness: Dict[str, float] = field(default_factory=dict)
    # Area -> areas/items it is reachable with. Empty means the area is unused.
    # None means every area is in use.
    included_areas: Optional[Dict[str, Set[str]]] = None
    effective_location: Dict[LocationScope, str] = field(default_factory=dict)
    restricted_items: Dict[ItemKey, List[LocationScope]] = field(default_factory=dict)
    required_events: Set[str] = field(default_factory=set)
    combined_weights: Dict[str, Set[str]] = field(default_factory=dict)

    def IsAreaIncluded(self, area: str) -> bool:
        if area == UNKNOWN_AREA:
            return False
        if self.included_areas is None:
            return True
        return bool(self.included_areas.get(area))

    def Lateness(self, area: str) -> float:
        return self.location_lateness.get(area, 0.0)

    def EffectiveArea(self, loc_scope: LocationScope, annotation: SlotAnnotation) -> str:
        return self.effective_location.get(loc_scope, annotation.area)

    @classmethod
    def trivial(cls, catalog: Catalog) -> "KeyItemAssignment":
        """An assignment without key items, with lateness following area order."""
        count = len(catalog.areas)
        lateness = {
            area: (index / (count - 1) if count > 1 else 0.0)
            for index, area in enumerate(catalog.areas)
        }
        return cls(
            location_lateness=lateness,
            included_areas={area: {area} for area in catalog.areas},
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeyItemAssignment":
        included = data.get("included_areas")
        effective = {}
        for entry in data.get("effective_location", []):
            loc_scope = LocationScope(_parse_scope_type(entry["type"]), int(entry["id"]),
                                      bool(entry.get("only_shops", False)))
            effective[loc_scope] = entry["area"]
        restricted = {}
        for key, scopes in data.get("restricted_items", {}).items():
            restricted[ItemKey.parse(key)] = [
                LocationScope(_parse_scope_type(s["type"]), int(s["id"]), bool(s.get("only_shops", False)))
                for s in scopes
            ]
        return cls(
            assign={ItemKey.parse(k): set(v) for k, v in data.get("assign", {}).items()},
            priority=_parse_items(data.get("priority", [])),
            location_lateness={k: float(v) for k, v in data.get("location_lateness", {}).items()},
            included_areas=None if included is None else {k: set(v) for k, v in included.items()},
            effective_location=effective,
            restricted_items=restricted,
            required_events=set(data.get("required_events", [])),
            combined_weights={k: set(v) for k, v in data.get("combined_weights", {}).items()},
        )


def _parse_scope_type(value: Any) -> ScopeType:
    if isinstance(value, int):
        return ScopeType(value)
    try:
        return ScopeType[str(value).upper()]
    except KeyError:
        raise ValueError(f"Unknown scope type '{value}'")


def _parse_items(values: Iterable[str]) -> List[ItemKey]:
    return [ItemKey.parse(value) for value in values]


def _parse_placement_slots(entries: Optional[List[Dict[str, Any]]]) -> Optional[List[PlacementSlot]]:
    if entries is None:
        return None
    return [PlacementSlot(amount=int(e["amount"]), areas=list(e["areas"])) for e in entries]

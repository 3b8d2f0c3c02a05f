"""Classification of slots into independently randomized pools (silos)."""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Set
import logging as log

from .catalog import Catalog
from .keys import LocationScope, ScopeType, SlotKey


class RandomSilo(IntEnum):
    # Event flag guarded placements
    FINITE = 0
    # Repeatable enemy drops
    INFINITE = 1
    # Shop listings which have a finite and an infinite variant
    MIXED = 2
    # Not randomized
    SELF = 3
    # Removed from the game
    REMOVE = 4
    # Targets given random rewards from a fixed list
    FILLER = 5
    INFINITE_SHOP = 6
    # Infinite gear, shared across shops and drops
    INFINITE_GEAR = 7
    # Repeatable drops which are also guaranteed
    INFINITE_CERTAIN = 8


CAN_PERMUTE_TO: Dict[ScopeType, RandomSilo] = {
    ScopeType.EVENT: RandomSilo.FINITE,
    ScopeType.MATERIAL: RandomSilo.FINITE,
    ScopeType.ENTITY: RandomSilo.FINITE,
    ScopeType.SPECIAL: RandomSilo.FINITE,
    ScopeType.SHOP_INFINITE: RandomSilo.INFINITE_SHOP,
    ScopeType.MODEL: RandomSilo.INFINITE,
    ScopeType.SHOP_INFINITE_EVENT: RandomSilo.MIXED,
}

GEAR_SILO_VARIANTS: Dict[RandomSilo, RandomSilo] = {
    RandomSilo.INFINITE: RandomSilo.INFINITE_GEAR,
    RandomSilo.INFINITE_SHOP: RandomSilo.INFINITE_GEAR,
}

# Silos filled directly rather than by the assignment engine
SPECIAL_SILO_TYPES = frozenset({RandomSilo.SELF, RandomSilo.REMOVE, RandomSilo.FILLER})

FILLER_TAGS = ("crow", "filler")
CERTAIN_DROP_CHANCE = 0.99


@dataclass
class SiloPermutation:
    """Sources, targets and the resulting mapping of one silo."""
    type: RandomSilo
    sources: List[SlotKey] = field(default_factory=list)
    targets: List[LocationScope] = field(default_factory=list)
    # Slots inside target scopes which don't belong to this silo
    exclude_targets: Set[SlotKey] = field(default_factory=set)
    # Target slot -> sources placed there, in placement order
    mapping: Dict[SlotKey, List[SlotKey]] = field(default_factory=dict)

    def AddMapping(self, target: SlotKey, source: SlotKey) -> None:
        self.mapping.setdefault(target, []).append(source)

    def Occupants(self, target: SlotKey) -> List[SlotKey]:
        return self.mapping.get(target, [])

    def TargetSlots(self, catalog: Catalog) -> List[SlotKey]:
        return [
            slot
            for loc_scope in self.targets
            for slot in catalog.Slots(loc_scope)
            if slot not in self.exclude_targets
        ]

    def PlacedSources(self) -> List[SlotKey]:
        return [source for sources in self.mapping.values() for source in sources]

    def Copy(self) -> "SiloPermutation":
        return SiloPermutation(
            type=self.type,
            sources=list(self.sources),
            targets=list(self.targets),
            exclude_targets=set(self.exclude_targets),
            mapping={target: list(sources) for target, sources in self.mapping.items()},
        )


class SiloClassifier:
    """Partitions every slot in the catalog into silos.

    Runs once per catalog. Unknown or unannotated placements are left alone
    rather than rejected, so unfamiliar data is never corrupted.
    """

    def __init__(self, catalog: Catalog) -> None:
        self.catalog = catalog
        self.silos: Dict[RandomSilo, SiloPermutation] = {}
        # Source slot -> the silo it belongs to
        self.slot_silos: Dict[SlotKey, RandomSilo] = {}

    def Classify(self) -> Dict[RandomSilo, SiloPermutation]:
        catalog = self.catalog
        self.silos = {silo_type: SiloPermutation(silo_type) for silo_type in RandomSilo}
        self.slot_silos = {}

        remove = set(catalog.ItemGroup("remove"))
        norandom_shop = catalog.item_groups.get("norandomshop")
        norandom_drop = catalog.item_groups.get("norandomdrop")

        for loc_scope, slots in catalog.locations.items():
            # None marks every item in the scope as non-random
            norandoms: List[Optional[object]] = []
            filler = False
            remove_scope = False
            annotation = catalog.slots.get(loc_scope)
            if annotation is not None:
                if annotation.HasTag("norandom"):
                    norandoms.append(None)
                norandoms.extend(annotation.tag_items.get("norandom", []))
                if norandom_shop is not None and annotation.HasTag("shop"):
                    norandoms.extend(norandom_shop)
                filler = annotation.HasAnyTags(FILLER_TAGS)
                remove_scope = annotation.HasTag("remove")
            elif loc_scope.type in (ScopeType.EVENT, ScopeType.SHOP_INFINITE):
                norandoms.append(None)
            elif loc_scope.type == ScopeType.MODEL and norandom_drop is not None:
                # Drops which other mods use for convenience features
                norandoms.extend(norandom_drop)

            source_silos: List[RandomSilo] = []
            excluded_slots: List[SlotKey] = []
            for slot in slots:
                location = catalog.Location(slot)
                silo_type = CAN_PERMUTE_TO.get(location.scope.type)
                if silo_type is None:
                    log.debug(f"Skipping {slot} with unrandomizable scope type {location.scope.type.name}")
                    continue
                item = slot.item
                if remove_scope:
                    self._AssignSelf(RandomSilo.REMOVE, slot)
                    excluded_slots.append(slot)
                elif item in remove:
                    # Only the item is removed, the slot can still be a target
                    self._AssignSelf(RandomSilo.REMOVE, slot)
                    _add_unique(source_silos, silo_type)
                elif None in norandoms or item in norandoms or item in catalog.norandom_items:
                    self._AssignSelf(RandomSilo.SELF, slot)
                    excluded_slots.append(slot)
                elif filler:
                    # The scope is given a reward later, the item itself goes away
                    self.slot_silos[slot] = RandomSilo.FILLER
                    _add_unique(source_silos, RandomSilo.FILLER)
                else:
                    item_silo = silo_type
                    if item.IsGear() and item_silo in GEAR_SILO_VARIANTS:
                        item_silo = GEAR_SILO_VARIANTS[item_silo]
                    if location.scope.type == ScopeType.MODEL and location.chance >= CERTAIN_DROP_CHANCE:
                        item_silo = RandomSilo.INFINITE_CERTAIN
                    self.silos[item_silo].sources.append(slot)
                    self.slot_silos[slot] = item_silo
                    _add_unique(source_silos, item_silo)

            # Special scopes don't come from the game, so they can't receive items
            if source_silos and loc_scope.type != ScopeType.SPECIAL:
                for source_silo in sorted(source_silos):
                    silo = self.silos[source_silo]
                    silo.targets.append(loc_scope)
                    silo.exclude_targets.update(excluded_slots)

        for silo in self.silos.values():
            log.debug(f"{silo.type.name}: {len(silo.sources)} sources, {len(silo.targets)} target scopes")
        return self.silos

    def SiloOf(self, slot: SlotKey) -> Optional[RandomSilo]:
        return self.slot_silos.get(slot)

    def _AssignSelf(self, silo_type: RandomSilo, slot: SlotKey) -> None:
        self.silos[silo_type].AddMapping(slot, slot)
        self.slot_silos[slot] = silo_type


def _add_unique(values: List[RandomSilo], value: RandomSilo) -> None:
    if value not in values:
        values.append(value)

"""Per-item placement restrictions for one silo and run."""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union
import logging as log

from .catalog import Catalog, KeyItemAssignment, PlacementSlot
from .keys import ItemKey, LocationScope, SlotKey
from .partitions import PendingItemSlot, SlotPartition, build_partitions, find_partition
from .silos import RandomSilo, SiloPermutation


@dataclass
class FlatPlacement:
    """Slot groups checked one by one, every applicable group is charged."""
    slots: List[PendingItemSlot]

    def try_place(self, tags: Set[str], area: str, event: Optional[str], quantity: int,
                  remaining: int) -> Optional[List[PendingItemSlot]]:
        applicable = []
        for slot in self.slots:
            if slot.amount == 0 or not slot.can_take(quantity):
                continue
            # The event takes precedence over the area when both exist
            if slot.allowed_locations is not None and (event or area) not in slot.allowed_locations:
                continue
            if slot.additional_exclude_tag is not None and slot.additional_exclude_tag in tags:
                continue
            applicable.append(slot)
        if not applicable:
            return None
        for slot in applicable:
            slot.place(quantity)
        return applicable

    @property
    def satisfied(self) -> bool:
        return True


@dataclass
class PartitionedPlacement:
    """Slot groups with fixed amounts, checked through the partition DAG."""
    slots: List[PendingItemSlot]
    partitions: List[SlotPartition]

    def try_place(self, tags: Set[str], area: str, event: Optional[str], quantity: int,
                  remaining: int) -> Optional[List[PendingItemSlot]]:
        all_areas = self.partitions[0].all_areas
        location = event if event is not None and event in all_areas else area
        partition = find_partition(self.partitions, location)
        if partition is None:
            return None
        if not partition.try_place_item_in_partition(remaining, quantity):
            return None
        return list(partition.slots)

    @property
    def satisfied(self) -> bool:
        return all(part.satisfied for part in self.partitions)


Placement = Union[FlatPlacement, PartitionedPlacement]
# Slot groups charged for one placed source, and the quantity charged
Charge = Tuple[List[PendingItemSlot], int]


class PendingItem:
    """Remaining copies of an item and the rules for where they can go."""

    def __init__(self, placement: Placement):
        self.placement = placement
        self.exclude_tags: Optional[Set[str]] = None
        self.require_tags: Optional[Set[str]] = None
        self.restricted_locs: Optional[List[LocationScope]] = None
        self.total_amount = 0
        self.free_amount = 0
        self._charges: Dict[SlotKey, Charge] = {}

    @classmethod
    def unrestricted(cls) -> "PendingItem":
        return cls(FlatPlacement([PendingItemSlot()]))

    @classmethod
    def in_areas(cls, areas: Set[str]) -> "PendingItem":
        return cls(FlatPlacement([PendingItemSlot(allowed_locations=set(areas))]))

    @classmethod
    def from_slots(cls, slots: List[PendingItemSlot], partition: bool) -> "PendingItem":
        partitions = build_partitions(slots) if partition else None
        if partitions is None:
            return cls(FlatPlacement(slots))
        return cls(PartitionedPlacement(slots, partitions))

    @property
    def is_partitioned(self) -> bool:
        return isinstance(self.placement, PartitionedPlacement)

    @property
    def satisfied(self) -> bool:
        return self.placement.satisfied

    def try_place(self, source: SlotKey, loc_scope: LocationScope, tags: Iterable[str], area: str,
                  event: Optional[str], quantity: int) -> bool:
        """Check and charge a placement of `source` at a target.

        Args:
            source: The source slot being placed
            loc_scope: Location scope of the target
            tags: Tags of the target's annotation
            area: Effective area of the target
            event: Event of the target's annotation, if any
            quantity: Amount counted against fixed slot groups

        Returns:
            True if the placement was accepted. The charge is recorded against
            the source so it can be released if the source is evicted.
        """
        tags = set(tags)
        if self.restricted_locs is not None and loc_scope in self.restricted_locs:
            return False
        if self.exclude_tags and not self.exclude_tags.isdisjoint(tags):
            return False
        if self.require_tags is not None and self.require_tags.isdisjoint(tags):
            return False
        charged = self.placement.try_place(tags, area, event, quantity, self.free_amount)
        if charged is None:
            return False
        self.free_amount -= 1
        self._charges[source] = (charged, quantity)
        return True

    def release(self, source: SlotKey) -> None:
        """Undo the charge made for a placed source."""
        charge = self._charges.pop(source, None)
        if charge is None:
            return
        slots, quantity = charge
        for slot in slots:
            slot.restore(quantity)
        self.free_amount += 1

    @property
    def display_amount(self) -> str:
        return f"{self.free_amount}/{self.total_amount} left"

    def __repr__(self) -> str:
        excludes = ",".join(sorted(self.exclude_tags or []))
        return f"{self.free_amount} left exclude:[{excludes}] from <{self.placement.slots}>"


class RestrictionBuilder:
    """Builds the restrictions of every item which needs one, for one silo.

    Earlier rules win: key item assignments come first, then configured
    placement rules, then tag rules and location exclusions only fill in
    fields of existing restrictions.
    """

    def __init__(self, catalog: Catalog, assignment: KeyItemAssignment, race_mode: bool = False):
        self.catalog = catalog
        self.assignment = assignment
        self.race_mode = race_mode

    def Build(self, silo: SiloPermutation) -> Dict[ItemKey, PendingItem]:
        catalog = self.catalog
        restrictions: Dict[ItemKey, PendingItem] = {}
        silo_type = silo.type

        if silo_type == RandomSilo.FINITE:
            for item, areas in self.assignment.assign.items():
                restrictions[item] = PendingItem.in_areas(areas)

        for restrict in catalog.item_restrict.values():
            if restrict.key in restrictions:
                continue
            pending = None
            if silo_type == RandomSilo.FINITE and restrict.unique is not None:
                pending = PendingItem.from_slots(self._PendingSlots(restrict.unique, None), partition=True)
            elif silo_type == RandomSilo.FINITE and restrict.key_areas is not None:
                areas: Set[str] = set()
                for area in restrict.key_areas:
                    areas.add(area)
                    areas.update(catalog.area_events.get(area, []))
                pending = PendingItem.in_areas(areas)
            if silo_type in (RandomSilo.INFINITE, RandomSilo.INFINITE_SHOP) and (
                    restrict.shop is not None or restrict.drop is not None):
                slots = self._PendingSlots(restrict.shop, "noshop") + self._PendingSlots(restrict.drop, "shop")
                pending = PendingItem.from_slots(slots, partition=False)
            if pending is None:
                continue
            restrictions[restrict.key] = pending
            for other_key in restrict.other_keys:
                log.debug(f"Also restricting {other_key} like {restrict.key}")
                restrictions[other_key] = pending

        for item, tags in catalog.exclude_tags.items():
            restrictions.setdefault(item, PendingItem.unrestricted()).exclude_tags = set(tags)
        if self.race_mode:
            for item in catalog.race_mode_items:
                restrictions.setdefault(item, PendingItem.unrestricted()).require_tags = set(catalog.race_mode_tags)
        for item, locs in self.assignment.restricted_items.items():
            restrictions.setdefault(item, PendingItem.unrestricted()).restricted_locs = list(locs)

        for source in silo.sources:
            pending = restrictions.get(source.item)
            if pending is not None:
                pending.free_amount += 1
                pending.total_amount += 1

        partitioned = sum(1 for pending in restrictions.values() if pending.is_partitioned)
        log.info(f"{silo_type.name}: {len(restrictions)} restricted items, {partitioned} partitioned")
        return restrictions

    def _PendingSlots(self, slots: Optional[List[PlacementSlot]], exclude_tag: Optional[str]) -> List[PendingItemSlot]:
        if slots is None:
            return []
        result = []
        for slot in slots:
            # Only areas and events which exist can ever be filled
            locations = {
                area
                for area in slot.allowed_areas(self.assignment.included_areas, self.assignment.combined_weights)
                if self.catalog.IsKnownArea(area)
            }
            result.append(PendingItemSlot(
                allowed_locations=locations,
                amount=slot.amount,
                expected=slot.amount,
                additional_exclude_tag=exclude_tag,
            ))
        return result

"""Area partitions for restrictions with fixed per-area amounts.

A restriction can ask for, say, "2 copies anywhere in the late game" and "1
copy in the boss room". Placing a copy in the late game must not use up the
copy the boss room still needs. Areas are grouped by which fixed-amount slot
groups admit them; each group of identical areas is a partition. Partitions
whose slot groups are a strict superset of another's are more restrictive
than it, which gives a DAG rooted at the least restrictive partitions.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Set
import logging as log

# Amount for slot groups without a limit
INFINITE = -1


@dataclass(eq=False)
class PendingItemSlot:
    """A group of areas an item may go to, with an optional fixed amount.

    Compared by identity, since the same group can be shared between several
    partitions and restrictions.
    """
    # None allows every location
    allowed_locations: Optional[Set[str]] = None
    amount: int = INFINITE
    expected: int = INFINITE
    # Only used for targets tagged with this tag
    additional_exclude_tag: Optional[str] = None

    @property
    def is_infinite(self) -> bool:
        return self.amount == INFINITE

    def can_take(self, quantity: int) -> bool:
        return self.is_infinite or self.amount >= quantity

    def place(self, quantity: int) -> None:
        if self.is_infinite:
            return
        if self.amount < quantity:
            raise ValueError(f"Cannot place {quantity} in slot group with {self.amount} remaining")
        self.amount -= quantity

    def restore(self, quantity: int) -> None:
        if not self.is_infinite:
            self.amount += quantity

    @property
    def display_amount(self) -> str:
        if self.amount == self.expected:
            return f"{self.amount}"
        return f"{self.amount}/{self.expected}"

    def __repr__(self) -> str:
        locations = ",".join(sorted(self.allowed_locations or []))
        return f"[{self.display_amount} in [{locations}]]"


class SlotPartition:
    """A set of areas admitted by exactly the same fixed-amount slot groups."""

    def __init__(self, key: str, slots: List[PendingItemSlot], areas: Set[str], all_areas: Set[str],
                 super_root: bool = False, any_area: bool = False):
        self.key = key
        self.slots = slots
        self.areas = areas
        self.all_areas = all_areas
        self.super_root = super_root
        # An unlimited group without allowed locations admits areas outside all_areas
        self.any_area = any_area
        # Every partition whose slot groups are a strict superset of this one's
        self.more_restrictive: List["SlotPartition"] = []
        # Roots which can't reach this partition but still draw from the same supply
        self.alternates: List["SlotPartition"] = []

    def non_empty_slots(self) -> List[PendingItemSlot]:
        return [slot for slot in self.slots if slot.amount > 0]

    @property
    def satisfied(self) -> bool:
        return not self.non_empty_slots()

    def count_slots(self, taken: Set[PendingItemSlot]) -> int:
        return max((slot.amount for slot in self.non_empty_slots() if slot not in taken), default=0)

    def count_more_restrictive_slots(self, taken: Set[PendingItemSlot]) -> int:
        """Largest unclaimed amount in this partition and its descendants.

        Adds the counted slot groups to `taken`, so sibling queries in the
        same decision don't reserve them twice.
        """
        family = [self] + self.more_restrictive
        amount = max(part.count_slots(taken) for part in family)
        for part in family:
            taken.update(part.non_empty_slots())
        return amount

    def reserved_amount(self) -> int:
        """Copies which must stay available for other partitions."""
        if self.super_root:
            taken: Set[PendingItemSlot] = set()
            return sum(root.count_more_restrictive_slots(taken) for root in self.more_restrictive)
        taken = set(self.non_empty_slots())
        reserved = self.count_more_restrictive_slots(taken)
        for alternate in self.alternates:
            reserved += alternate.count_more_restrictive_slots(taken)
        return reserved

    def try_place_item_in_partition(self, remaining_amount: int, quantity: int) -> bool:
        """Claim `quantity` from this partition if enough supply is left for the rest.

        Args:
            remaining_amount: Copies of the item not yet placed, including this one
            quantity: Amount counted against each of this partition's slot groups

        Returns:
            True if the placement was accepted and the slot groups decremented
        """
        if not all(slot.can_take(quantity) for slot in self.slots):
            return False
        reserved = self.reserved_amount()
        if remaining_amount <= reserved:
            log.debug(f"Partition [{self.key}] rejected: {remaining_amount} left, {reserved} reserved")
            return False
        for slot in self.slots:
            slot.place(quantity)
        return True

    def __repr__(self) -> str:
        children = ",".join(part.key for part in self.more_restrictive)
        areas = ",".join(sorted(self.areas or self.all_areas))
        amounts = ",".join(slot.display_amount for slot in self.slots)
        return f"[{self.key}]({amounts}) -> [{children}]: {areas}"


def _mask_key(mask: int, count: int) -> str:
    return "".join("1" if mask & (1 << i) else "0" for i in range(count))


def build_partitions(slots: List[PendingItemSlot]) -> Optional[List[SlotPartition]]:
    """Build the partition DAG for a list of slot groups.

    Returns:
        None if no group has a fixed amount, else the partitions with the
        synthetic super-root first. The super-root has no areas or slots of
        its own and holds every root as more restrictive.

    Raises:
        ValueError: If a group with a fixed amount has no allowed locations
    """
    if all(slot.is_infinite for slot in slots):
        return None

    area_masks: Dict[str, int] = {}
    all_areas: Set[str] = set()
    any_area = False
    for i, slot in enumerate(slots):
        if slot.allowed_locations is None:
            if not slot.is_infinite:
                raise ValueError("Slot groups with fixed amounts need allowed locations")
            any_area = True
            continue
        all_areas.update(slot.allowed_locations)
        if slot.is_infinite:
            continue
        for area in slot.allowed_locations:
            area_masks[area] = area_masks.get(area, 0) | (1 << i)

    mask_areas: Dict[int, Set[str]] = {}
    for area, mask in area_masks.items():
        mask_areas.setdefault(mask, set()).add(area)

    partitions: Dict[int, SlotPartition] = {
        mask: SlotPartition(
            key=_mask_key(mask, len(slots)),
            slots=[slot for i, slot in enumerate(slots) if mask & (1 << i)],
            areas=areas,
            all_areas=all_areas,
        )
        for mask, areas in sorted(mask_areas.items())
    }

    roots = list(partitions)
    for u in partitions:
        for v in partitions:
            if u != v and (u & v) == u:
                partitions[u].more_restrictive.append(partitions[v])
                if v in roots:
                    roots.remove(v)

    for mask, part in partitions.items():
        # Roots that reach a partition already account for it as a descendant
        part.alternates = [
            partitions[root] for root in roots
            if root != mask and partitions[mask] not in partitions[root].more_restrictive
        ]

    super_root = SlotPartition("", [], set(), all_areas, super_root=True, any_area=any_area)
    super_root.more_restrictive = [partitions[root] for root in roots]
    result = [super_root] + list(partitions.values())
    for part in result:
        log.debug(f"Partition: {part}")
    return result


def find_partition(partitions: List[SlotPartition], area: str) -> Optional[SlotPartition]:
    """The partition an area belongs to, or None if no slot group admits it.

    Areas admitted only by unlimited groups fall back to the super-root.
    """
    super_root = partitions[0]
    if area not in super_root.all_areas:
        return super_root if super_root.any_area else None
    for part in partitions[1:]:
        if area in part.areas:
            return part
    return super_root

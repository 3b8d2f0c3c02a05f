"""Binds the sources of a silo to its targets.

The engine works on an ordered list of sources and an ordered list of
targets, both already weighted-shuffled by the caller, in four phases:

1. Primary sweep: each empty target takes the first queued source it admits,
   otherwise sources are pulled from the list in order until one fits. The
   ones which don't fit are queued.
2. Restricted retry: restricted sources still queued are retried over all
   targets for a bounded number of passes. A full target may give up an
   unrestricted occupant to make room, but key items are never moved.
3. Fallback: everything left goes to targets skipped in phase 1, then to
   random targets with spare capacity.
4. Finite silos only: targets left empty get a filler item.

Example usage:
    engine = AssignmentEngine(catalog, rng, restrictions, key_items=key_items)
    engine.assign(silo, key_sources, key_targets, partial=True)
    engine.assign(silo, other_sources, targets)
"""

from collections import deque
from typing import Callable, Deque, Dict, Iterator, List, Optional, Set
import logging as log

from rng.random_number_generator import RandomNumberGenerator

from ..catalog import Catalog
from ..keys import ItemKey, LocationScope, ScopeType, SlotKey, special_source
from ..messages import KEY_ITEM_ERROR, RESTRICTED_ITEM_ERROR, Messages
from ..restrictions import PendingItem
from ..silos import RandomSilo, SiloPermutation

DEFAULT_MAX_RESTRICTED_PASSES = 5
DEFAULT_MAX_FALLBACK_ATTEMPTS = 10000


class KeyItemPlacementError(Exception):
    """Key or restricted items could not all be placed with this seed and options.

    The message is meant for users. Retrying with another seed may work.
    """
    pass


class SiloCapacityError(Exception):
    """No target with spare capacity could be found for a leftover source.

    This means sources and targets don't match up, usually because the
    catalog was merged from incompatible data.
    """
    pass


class RestrictedItemQueue:
    """FIFO queue of sources waiting for an admissible target."""

    def __init__(self) -> None:
        self.queue: Deque[SlotKey] = deque()

    def enqueue(self, source: SlotKey) -> None:
        self.queue.append(source)

    def dequeue(self, predicate: Callable[[SlotKey], bool]) -> Optional[SlotKey]:
        """Remove and return the first source accepted by the predicate.

        Each distinct item is only tested once per call, since its other
        copies would be rejected for the same reasons.
        """
        tried: Set[ItemKey] = set()
        for source in self.queue:
            if source.item in tried:
                continue
            if predicate(source):
                self.queue.remove(source)
                return source
            tried.add(source.item)
        return None

    def drain(self) -> List[SlotKey]:
        sources = list(self.queue)
        self.queue.clear()
        return sources

    def __len__(self) -> int:
        return len(self.queue)

    def __iter__(self) -> Iterator[SlotKey]:
        return iter(self.queue)


class AssignmentEngine:
    """Assigns sources to targets within one silo, respecting restrictions."""

    def __init__(
        self,
        catalog: Catalog,
        rng: RandomNumberGenerator,
        restrictions: Dict[ItemKey, PendingItem],
        effective_location: Optional[Dict[LocationScope, str]] = None,
        key_items: Optional[Set[ItemKey]] = None,
        messages: Optional[Messages] = None,
        ignore_quantities: bool = True,
        max_restricted_passes: int = DEFAULT_MAX_RESTRICTED_PASSES,
        max_fallback_attempts: int = DEFAULT_MAX_FALLBACK_ATTEMPTS,
    ):
        """Initialize the engine for one silo and run.

        Args:
            catalog: Slot data and annotations
            rng: Random source for fallback and filler choices
            restrictions: Item -> restriction, mutated as items are placed
            effective_location: Scope -> area overrides from the key item solver
            key_items: Items which are never evicted once placed
            messages: Translations for user-facing errors
            ignore_quantities: Count every placement as a single copy
            max_restricted_passes: Passes over all targets in phase 2
            max_fallback_attempts: Random target attempts per source in phase 3
        """
        self.catalog = catalog
        self.rng = rng
        self.restrictions = restrictions
        self.effective_location = effective_location or {}
        self.key_items = key_items or set()
        self.messages = messages or Messages()
        self.ignore_quantities = ignore_quantities
        self.max_restricted_passes = max_restricted_passes
        self.max_fallback_attempts = max_fallback_attempts

    def try_use(self, target: SlotKey, source: SlotKey) -> bool:
        """Whether the source may go to the target. Charges its restriction if so."""
        catalog = self.catalog
        item = source.item
        loc_scope = catalog.Location(target).loc_scope
        # Transposed items are only interesting if they're one of a kind
        if target.scope.type == ScopeType.MATERIAL and not catalog.IsUnique(item):
            return False

        annotation = catalog.slots.get(loc_scope)
        if annotation is not None:
            if annotation.HasTag("premium") and not catalog.IsUnique(item):
                return False
            if annotation.HasTag("restrict"):
                groups = [tag for tag in annotation.tags if tag != "restrict" and tag in catalog.item_groups]
                if groups and not any(item in catalog.item_groups[group] for group in groups):
                    return False

        pending = self.restrictions.get(item)
        if pending is None:
            return True

        annotation = catalog.Slot(loc_scope)
        area = self.effective_location.get(loc_scope, annotation.area)
        quantity = catalog.Location(source).quantity if source in catalog.slot_locations else 1
        quantity = max(1, quantity)
        # Premium shop items are sold one at a time
        if annotation.HasTag("premium") and quantity > 1:
            return False
        if self.ignore_quantities:
            quantity = 1
        return pending.try_place(source, loc_scope, annotation.tags, area, annotation.event, quantity)

    def has_capacity(self, silo: SiloPermutation, target: SlotKey) -> bool:
        return len(silo.Occupants(target)) < self.catalog.Location(target).max_slots

    def assign(self, silo: SiloPermutation, items: List[SlotKey], locations: List[SlotKey],
               partial: bool = False) -> None:
        """Assign items to locations in the silo's mapping.

        Args:
            silo: The silo whose mapping is filled in
            items: Sources in placement order
            locations: Targets in placement order
            partial: Only some items are placed, and all of them must be (key
                item pass). Leftover targets are not filled.

        Raises:
            KeyItemPlacementError: If restricted items, or any item in a
                partial pass, could not be placed
            SiloCapacityError: If no target has room for a leftover source
        """
        queue = RestrictedItemQueue()
        pushed: List[SlotKey] = []
        cursor = 0
        if partial:
            for source in items:
                queue.enqueue(source)
            cursor = len(items)

        # Phase 1
        for target in locations:
            if silo.Occupants(target):
                # Still usable as a random target later, but not a priority
                continue
            source = queue.dequeue(lambda candidate: self.try_use(target, candidate))
            if source is not None:
                self._Place(silo, source, target, "primary")
                continue
            if cursor == len(items):
                if not partial:
                    pushed.append(target)
                continue
            while cursor < len(items):
                source = items[cursor]
                cursor += 1
                if self.try_use(target, source):
                    self._Place(silo, source, target, "dequeued")
                    break
                queue.enqueue(source)

        # Phase 2
        other_items: List[SlotKey] = []
        if not partial:
            # Only restricted sources are retried, the rest wait for the fallback
            for source in queue.drain():
                if source.item in self.restrictions:
                    queue.enqueue(source)
                else:
                    other_items.append(source)
        for source in items[cursor:]:
            if source.item in self.restrictions:
                queue.enqueue(source)
            else:
                other_items.append(source)
        self._RetryRestricted(silo, queue, locations, other_items)

        restricted = [source for source in queue if source.item in self.restrictions]
        if restricted or (partial and (queue or other_items)):
            unplaced = list(queue) + other_items
            log.error(f"{silo.type.name}: could not place {', '.join(str(source) for source in unplaced)}")
            if partial or any(source.item in self.key_items for source in unplaced):
                raise KeyItemPlacementError(self.messages.Get(KEY_ITEM_ERROR))
            raise KeyItemPlacementError(self.messages.Get(RESTRICTED_ITEM_ERROR))
        other_items.extend(queue.drain())

        # Phase 3
        pushed.reverse()
        if other_items:
            log.debug(f"{silo.type.name}: placing {len(other_items)} leftover items, {len(pushed)} skipped targets")
        for source in other_items:
            self._PlaceFallback(silo, source, pushed, locations, len(items))

        # Phase 4
        if not partial and silo.type == RandomSilo.FINITE:
            self._FillEmptyTargets(silo, locations)

    def _RetryRestricted(self, silo: SiloPermutation, queue: RestrictedItemQueue, locations: List[SlotKey],
                         other_items: List[SlotKey]) -> None:
        passes = 0
        while queue and passes < self.max_restricted_passes:
            passes += 1
            targets = deque(locations)
            while targets and queue:
                target = targets.popleft()
                source = queue.dequeue(lambda candidate: self.try_use(target, candidate))
                if source is None:
                    continue
                if not self.has_capacity(silo, target):
                    victim = next((occupant for occupant in silo.Occupants(target) if self._CanEvict(occupant)), None)
                    if victim is None:
                        log.debug(f"Not placing {source} in {target}, it would dislodge a key or restricted item")
                        self._Release(source)
                        queue.enqueue(source)
                        continue
                    self._Evict(silo, target, victim)
                    other_items.append(victim)
                self._Place(silo, source, target, "restricted")
        if queue:
            log.debug(f"{silo.type.name}: {len(queue)} items still queued after {passes} passes")

    def _PlaceFallback(self, silo: SiloPermutation, source: SlotKey, pushed: List[SlotKey],
                       locations: List[SlotKey], item_count: int) -> None:
        attempts = 0
        while True:
            if pushed:
                target = pushed.pop()
                if self.has_capacity(silo, target):
                    self._Place(silo, source, target, "unused")
                    return
            elif locations:
                target = locations[self.rng.randrange(len(locations))]
                if self.has_capacity(silo, target):
                    self._Place(silo, source, target, "random")
                    return
            attempts += 1
            if attempts > self.max_fallback_attempts or not locations:
                raise SiloCapacityError(
                    f"Couldn't find space in {silo.type.name} silo for {item_count} items "
                    f"and {len(locations)} locations")

    def _FillEmptyTargets(self, silo: SiloPermutation, locations: List[SlotKey]) -> None:
        fodder = self.catalog.ItemGroup("fodder")
        for target in locations:
            if silo.Occupants(target):
                continue
            if not fodder:
                log.warning(f"Unable to fill {target}, leaving it empty")
                continue
            self._Place(silo, special_source(self.rng.choice(fodder)), target, "fodder")

    def _CanEvict(self, occupant: SlotKey) -> bool:
        return occupant.item not in self.restrictions and occupant.item not in self.key_items

    def _Release(self, source: SlotKey) -> None:
        pending = self.restrictions.get(source.item)
        if pending is not None:
            pending.release(source)

    def _Evict(self, silo: SiloPermutation, target: SlotKey, victim: SlotKey) -> None:
        occupants = silo.mapping[target]
        occupants.remove(victim)
        if not occupants:
            del silo.mapping[target]
        self._Release(victim)
        log.debug(f"Evicted {victim} from {target}")

    def _Place(self, silo: SiloPermutation, source: SlotKey, target: SlotKey, phase: str) -> None:
        silo.AddMapping(target, source)
        log.debug(f"{phase} phase: {source} -> {target}")

"""Runs a full randomization over every silo of a catalog."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple
import logging as log

from rng.random_number_generator import RandomNumberGenerator

from .catalog import Catalog, KeyItemAssignment, UNKNOWN_AREA
from .keys import ItemKey, ItemType, LocationScope, ScopeType, SlotKey, special_source
from .messages import RESTRICTED_ITEM_ERROR, Messages
from .restrictions import RestrictionBuilder
from .silos import CAN_PERMUTE_TO, SPECIAL_SILO_TYPES, RandomSilo, SiloClassifier, SiloPermutation
from .solvers.assignment_engine import AssignmentEngine, KeyItemPlacementError
from .solvers.feasibility_solver import FeasibilitySolver
from .weights import PlacementWeights, WeightCalculator

# Offset for the generator shuffling race mode items, so they don't disturb key items
RACE_MODE_SEED_OFFSET = 10
LOG_ORDER_SCALE = 9999


class PlacementConsistencyError(Exception):
    """The catalog contradicts the key item assignment."""
    pass


@dataclass
class PermutationResult:
    """Mapping of every silo plus data used for logs and hints."""
    silos: Dict[RandomSilo, SiloPermutation]
    item_lateness: Dict[ItemKey, float] = field(default_factory=dict)
    key_items: Set[ItemKey] = field(default_factory=set)
    log_order: Dict[SlotKey, str] = field(default_factory=dict)
    # Hint category -> source -> target
    hints: Dict[str, Dict[SlotKey, SlotKey]] = field(default_factory=dict)
    # Key item -> the target it was placed at
    special_assign: Dict[ItemKey, SlotKey] = field(default_factory=dict)
    catalog: Optional[Catalog] = field(default=None, repr=False)

    def get_log_order(self, slot: SlotKey) -> str:
        return self.log_order.get(slot, f"z{slot}")

    def get_finite_target_key(self, item: ItemKey) -> Optional[SlotKey]:
        """Where an item ended up in the finite silo, or its vanilla slot."""
        for target, sources in self.silos[RandomSilo.FINITE].mapping.items():
            if any(source.item == item for source in sources):
                return target
        if self.catalog is not None:
            slots = self.catalog.ItemSlots(item)
            if slots:
                return slots[0]
        return None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly form of the mapping, keyed by silo name."""
        return {
            "silos": {
                silo_type.name: {
                    str(target): [str(source) for source in sources]
                    for target, sources in sorted(silo.mapping.items())
                }
                for silo_type, silo in self.silos.items()
                if silo.mapping
            },
            "key_items": sorted(str(item) for item in self.key_items),
            "hints": {
                category: {str(source): str(target) for source, target in sorted(entries.items())}
                for category, entries in self.hints.items()
            },
        }


class Permutation:
    """Randomizes item placement for a catalog.

    Silos are classified once. Each call to Randomize works on its own copy
    of them, so the same Permutation can be used for several runs.

    Usage:
        permutation = Permutation(catalog)
        result = permutation.Randomize(RandomNumberGenerator(seed), flags, assignment)
    """

    def __init__(self, catalog: Catalog, messages: Optional[Messages] = None):
        self.catalog = catalog
        self.messages = messages or Messages()
        self.classifier = SiloClassifier(catalog)
        self.silos = self.classifier.Classify()

    def _CopySilos(self) -> Dict[RandomSilo, SiloPermutation]:
        return {silo_type: silo.Copy() for silo_type, silo in self.silos.items()}

    def Randomize(self, rng: RandomNumberGenerator, flags, assignment: Optional[KeyItemAssignment] = None
                  ) -> PermutationResult:
        """Place every item according to key item logic and difficulty.

        Args:
            rng: Random source for the whole run
            flags: Run options (difficulty derived weights, fog, dlc1, race_mode, ...)
            assignment: Key item solver output. Defaults to no key items.

        Returns:
            The mapping of every silo and auxiliary log/hint data

        Raises:
            PlacementConsistencyError: If a key item can only be found in
                repeatable locations
            KeyItemPlacementError: If key or restricted items can't be placed
            SiloCapacityError: If sources and targets of a silo don't match up
        """
        catalog = self.catalog
        if assignment is None:
            assignment = KeyItemAssignment.trivial(catalog)
        silos = self._CopySilos()
        result = PermutationResult(silos=silos, catalog=catalog)

        self._RecordKeyItems(assignment, result)
        self._DropUnusedLocations(assignment, flags, silos, result)

        weights = WeightCalculator(catalog, assignment, flags).Calculate()
        builder = RestrictionBuilder(catalog, assignment, race_mode=flags.race_mode)
        key_items = set(assignment.priority) | set(catalog.ItemGroup("keyitems"))

        for silo_type, silo in silos.items():
            log.info(f"{silo_type.name}: mapping {len(silo.sources)} sources -> {len(silo.targets)} targets")
            if silo_type in SPECIAL_SILO_TYPES:
                continue
            restrictions = builder.Build(silo)
            if flags.precheck_feasibility:
                solver = FeasibilitySolver(catalog, assignment.effective_location, seed=rng.seed)
                if not solver.check(silo, restrictions):
                    raise KeyItemPlacementError(self.messages.Get(RESTRICTED_ITEM_ERROR))
            engine = AssignmentEngine(
                catalog,
                rng,
                restrictions,
                effective_location=assignment.effective_location,
                key_items=key_items,
                messages=self.messages,
                ignore_quantities=flags.ignore_quantities,
                max_restricted_passes=flags.max_restricted_passes,
                max_fallback_attempts=flags.max_fallback_attempts,
            )
            self._RandomizeSilo(rng, flags, assignment, weights, silo, engine)
            for item, pending in restrictions.items():
                if not pending.satisfied:
                    log.debug(f"Restriction for {item} not fully satisfied: {pending.display_amount}")

        self._FillRewards(rng, silos)
        self._BuildHints(flags, assignment, result)
        if not flags.fog:
            self._OrderRingFamilies(result)
        return result

    def RandomizeWithoutLogic(self, rng: RandomNumberGenerator) -> PermutationResult:
        """Flat shuffle of every silo, ignoring key items and restrictions."""
        silos = self._CopySilos()
        for silo_type, silo in silos.items():
            if silo_type == RandomSilo.SELF:
                continue
            log.info(f"{silo_type.name}: mapping {len(silo.sources)} sources -> {len(silo.targets)} targets")
            targets = silo.TargetSlots(self.catalog)
            rng.shuffle(targets)
            engine = AssignmentEngine(self.catalog, rng, {}, messages=self.messages)
            engine.assign(silo, list(silo.sources), targets)
        return PermutationResult(silos=silos, catalog=self.catalog)

    def _RecordKeyItems(self, assignment: KeyItemAssignment, result: PermutationResult) -> None:
        catalog = self.catalog
        for item, areas in assignment.assign.items():
            slots = catalog.ItemSlots(item)
            if not slots:
                log.warning(f"Item {item} is part of logic but does not exist in data")
                continue
            if areas:
                result.item_lateness[item] = min(assignment.Lateness(area) for area in areas)
            if item in catalog.norandom_items:
                continue
            for slot in slots:
                scope_type = catalog.Location(slot).scope.type
                if CAN_PERMUTE_TO.get(scope_type) != RandomSilo.FINITE:
                    raise PlacementConsistencyError(
                        f"Can't randomize {item} because it was moved to an unusable location ({slot})")
        result.key_items.update(assignment.priority)

    def _DropUnusedLocations(self, assignment: KeyItemAssignment, flags, silos: Dict[RandomSilo, SiloPermutation],
                             result: PermutationResult) -> None:
        unused_slots: Set[SlotKey] = set()
        unused_locations: Set[LocationScope] = set()
        for loc_scope, slots in self.catalog.locations.items():
            if loc_scope.type == ScopeType.MODEL:
                continue
            annotation = self.catalog.Slot(loc_scope)
            if (annotation.area == UNKNOWN_AREA or not assignment.IsAreaIncluded(annotation.area)
                    or (annotation.HasTag("dlc1") and not flags.dlc1)):
                unused_locations.add(loc_scope)
                unused_slots.update(slots)
                continue
            area = assignment.EffectiveArea(loc_scope, annotation)
            lateness = int(assignment.Lateness(area) * LOG_ORDER_SCALE)
            order_key = f"{lateness:04d},{loc_scope}"
            for slot in slots:
                result.log_order[slot] = order_key

        for silo in silos.values():
            silo.sources = [slot for slot in silo.sources if slot not in unused_slots]
            silo.targets = [loc for loc in silo.targets if loc not in unused_locations]
            silo.mapping = {
                target: sources for target, sources in silo.mapping.items() if target not in unused_slots
            }
        log.info(f"Dropped {len(unused_locations)} unused locations with {len(unused_slots)} slots")

    def _RandomizeSilo(self, rng: RandomNumberGenerator, flags, assignment: KeyItemAssignment,
                       weights: PlacementWeights, silo: SiloPermutation, engine: AssignmentEngine) -> None:
        catalog = self.catalog

        def item_weight(slot: SlotKey) -> float:
            return weights.item_weight(slot, catalog)

        targets = silo.TargetSlots(catalog)
        # Key items are placed first, in priority order and with their own target order
        main_items = self._SourcesOf(silo, assignment.priority)
        if flags.race_mode:
            race_items = [item for item in catalog.race_mode_items if item not in assignment.priority]
            race_slots = self._SourcesOf(silo, race_items)
            race_slots = self._LimitRaceItems(race_slots)
            race_rng = RandomNumberGenerator(rng.seed + RACE_MODE_SEED_OFFSET)
            main_items.extend(race_rng.weighted_shuffle(race_slots, item_weight))

        if main_items:
            main_locations = rng.weighted_shuffle(targets, weights.key_weight)
            log.info(f"{silo.type.name} main: mapping {len(main_items)} sources -> {len(main_locations)} targets")
            engine.assign(silo, main_items, main_locations, partial=True)

        placed = set(silo.PlacedSources())
        items = [slot for slot in silo.sources if slot not in placed]
        items = rng.weighted_shuffle(items, item_weight)
        locations = rng.weighted_shuffle(targets, weights.weight)
        engine.assign(silo, items, locations)

    @staticmethod
    def _SourcesOf(silo: SiloPermutation, items: List[ItemKey]) -> List[SlotKey]:
        result = []
        seen: Set[ItemKey] = set()
        for item in items:
            if item in seen:
                continue
            seen.add(item)
            result.extend(slot for slot in silo.sources if slot.item == item)
        return result

    def _LimitRaceItems(self, slots: List[SlotKey]) -> List[SlotKey]:
        limits = self.catalog.race_mode_item_limits
        counts: Dict[ItemKey, int] = {}
        result = []
        for slot in slots:
            counts[slot.item] = counts.get(slot.item, 0) + 1
            if slot.item in limits and counts[slot.item] > limits[slot.item]:
                continue
            result.append(slot)
        return result

    def _FillRewards(self, rng: RandomNumberGenerator, silos: Dict[RandomSilo, SiloPermutation]) -> None:
        """Give every filler target a reward, nothing especially good."""
        if "crowrewards" not in self.catalog.item_groups:
            return
        filler = silos[RandomSilo.FILLER]
        rewards = list(self.catalog.ItemGroup("crowrewards"))
        once = set(self.catalog.ItemGroup("crowrewards_once"))
        for loc_scope in filler.targets:
            if not rewards:
                log.warning(f"Ran out of rewards for {loc_scope}")
                break
            item = rng.choice(rewards)
            if item in once:
                rewards.remove(item)
            source = special_source(item)
            for target in self.catalog.Slots(loc_scope):
                if target not in filler.exclude_targets:
                    filler.AddMapping(target, source)

    def _BuildHints(self, flags, assignment: KeyItemAssignment, result: PermutationResult) -> None:
        catalog = self.catalog
        key_group = set(catalog.ItemGroup("keyitems"))
        quest_group = set(catalog.ItemGroup("questitems"))
        hint_items: Dict[ItemKey, str] = {}
        for item in assignment.assign:
            if item in key_group:
                hint_items[item] = "key items"
            if item in quest_group:
                hint_items[item] = "quest items"
        # Fog gate mode mostly removes area logic, so every key counts
        if flags.fog:
            for item in key_group:
                hint_items[item] = "key items"
        for group, category in catalog.hint_groups.items():
            if group == "keyitems":
                continue
            for item in catalog.ItemGroup(group):
                hint_items[item] = category

        result.hints = {category: {} for category in catalog.hint_categories}
        for target, sources in result.silos[RandomSilo.FINITE].mapping.items():
            for source in sources:
                if source.item in hint_items:
                    result.hints.setdefault(hint_items[source.item], {})[source] = target
                if source.item in assignment.assign:
                    result.special_assign[source.item] = target

    def _OrderRingFamilies(self, result: PermutationResult) -> None:
        """Put weaker versions of a ring earlier in the game than stronger ones."""
        mapping = result.silos[RandomSilo.FINITE].mapping
        families: Dict[int, List[Tuple[SlotKey, SlotKey]]] = {}
        for target, sources in mapping.items():
            for source in sources:
                if source.item.type == ItemType.RING:
                    families.setdefault(source.item.id - source.item.id % 10, []).append((source, target))

        for pairs in families.values():
            if len(pairs) == 1:
                continue
            source_order = sorted((source for source, _ in pairs), key=lambda source: source.item)
            target_order = sorted(pairs, key=lambda pair: result.get_log_order(pair[1]))
            for new_source, (old_source, target) in zip(source_order, target_order):
                if new_source == old_source:
                    continue
                log.debug(f"Moving {new_source} to {target}")
                mapping[target].remove(old_source)
                mapping[target].append(new_source)

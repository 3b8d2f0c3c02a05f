"""Tests for the assignment engine which binds sources to targets within a silo."""

import sys
import os
import pytest

# Add parent directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from catalog_builder import CatalogBuilder, scope_slots
from permutation.catalog import KeyItemAssignment
from permutation.keys import ItemKey, special_source
from permutation.restrictions import PendingItem, RestrictionBuilder
from permutation.silos import RandomSilo, SiloClassifier, SiloPermutation
from permutation.solvers import AssignmentEngine, KeyItemPlacementError, RestrictedItemQueue, SiloCapacityError
from rng.random_number_generator import RandomNumberGenerator


def first_slots(catalog, scopes):
    return [scope_slots(catalog, loc_scope)[0] for loc_scope in scopes]


def test_queue_tries_each_item_once():
    """Copies of an item rejected once are not tested again in the same call."""
    builder = CatalogBuilder()
    scopes = [builder.scope(items=["GOOD:1"]), builder.scope(items=["GOOD:1"]), builder.scope(items=["GOOD:2"])]
    a1, a2, b = first_slots(builder.build(), scopes)

    queue = RestrictedItemQueue()
    for source in (a1, a2, b):
        queue.enqueue(source)
    tested = []

    def predicate(source):
        tested.append(source)
        return source.item == ItemKey.parse("GOOD:2")

    assert queue.dequeue(predicate) == b
    assert tested == [a1, b]
    assert list(queue) == [a1, a2]
    assert queue.dequeue(lambda source: False) is None
    assert queue.drain() == [a1, a2]
    assert len(queue) == 0


def test_every_source_placed_within_capacity():
    """Leftover sources fill spare capacity without exceeding any limit."""
    builder = CatalogBuilder()
    targets = [
        builder.scope(items=["GOOD:1"], max_slots=1),
        builder.scope(items=["GOOD:2"], max_slots=2),
        builder.scope(items=["GOOD:3"], max_slots=2),
    ]
    extras = [builder.scope(items=["GOOD:4"], scope_type="SPECIAL"), builder.scope(items=["GOOD:5"], scope_type="SPECIAL")]
    catalog = builder.build()
    target_slots = first_slots(catalog, targets)
    sources = target_slots + first_slots(catalog, extras)

    for seed in range(10):
        silo = SiloPermutation(RandomSilo.FINITE, sources=list(sources), targets=list(targets))
        engine = AssignmentEngine(catalog, RandomNumberGenerator(seed), {})
        engine.assign(silo, list(sources), list(target_slots))

        assert sorted(silo.PlacedSources()) == sorted(sources)
        for target, placed in silo.mapping.items():
            assert len(placed) <= catalog.Location(target).max_slots


def test_restricted_copies_land_in_their_area():
    """Two copies required in one area end up there, even when the sweep skips one."""
    builder = CatalogBuilder(areas=["X", "Y"])
    x1 = builder.scope(items=["GOOD:1"], area="X")
    x2 = builder.scope(items=["GOOD:100"], area="X")
    y1 = builder.scope(items=["GOOD:100"], area="Y")
    builder.restrict("GOOD:100", unique=[{"amount": 2, "areas": ["X"]}])
    catalog = builder.build()
    silo = SiloClassifier(catalog).Classify()[RandomSilo.FINITE]
    restrictions = RestrictionBuilder(catalog, KeyItemAssignment.trivial(catalog)).Build(silo)
    # Every target is also the vanilla slot of one source
    filler, copy1, copy2 = first_slots(catalog, [x1, x2, y1])

    engine = AssignmentEngine(catalog, RandomNumberGenerator(5), restrictions)
    engine.assign(silo, [filler, copy1, copy2], [filler, copy1, copy2])

    assert silo.mapping[copy1] == [copy1]
    # The second copy takes the first target back from the unrestricted item
    assert silo.mapping[filler] == [copy2]
    assert silo.mapping[copy2] == [filler]
    assert restrictions[copy1.item].satisfied


def test_unrestricted_occupant_is_evicted():
    """A restricted item can displace an ordinary item from its only allowed target."""
    builder = CatalogBuilder(areas=["A", "B"])
    t1 = builder.scope(items=["GOOD:1"], area="A")
    t2 = builder.scope(items=["GOOD:2"], area="B")
    special = builder.scope(items=["GOOD:3"], scope_type="SPECIAL")
    catalog = builder.build()
    t1_slot, t2_slot, restricted = first_slots(catalog, [t1, t2, special])
    occupant = t1_slot

    pending = PendingItem.in_areas({"A"})
    pending.total_amount = pending.free_amount = 1
    silo = SiloPermutation(RandomSilo.FINITE, targets=[t1, t2])
    silo.AddMapping(t1_slot, occupant)

    engine = AssignmentEngine(catalog, RandomNumberGenerator(1), {restricted.item: pending})
    engine.assign(silo, [restricted], [t1_slot, t2_slot])

    assert silo.mapping[t1_slot] == [restricted]
    assert silo.mapping[t2_slot] == [occupant]
    assert pending.free_amount == 0


def test_key_items_are_never_evicted():
    """If the only allowed target holds a key item, the run fails instead of moving it."""
    builder = CatalogBuilder(areas=["A", "B"])
    t1 = builder.scope(items=["GOOD:1"], area="A")
    t2 = builder.scope(items=["GOOD:2"], area="B")
    special = builder.scope(items=["GOOD:3"], scope_type="SPECIAL")
    catalog = builder.build()
    t1_slot, t2_slot, restricted = first_slots(catalog, [t1, t2, special])
    key_slot = t1_slot

    pending = PendingItem.in_areas({"A"})
    pending.total_amount = pending.free_amount = 1
    silo = SiloPermutation(RandomSilo.FINITE, targets=[t1, t2])
    silo.AddMapping(t1_slot, key_slot)

    engine = AssignmentEngine(catalog, RandomNumberGenerator(1), {restricted.item: pending},
                              key_items={key_slot.item})
    with pytest.raises(KeyItemPlacementError, match="items with placement rules"):
        engine.assign(silo, [restricted], [t1_slot, t2_slot])

    assert silo.mapping[t1_slot] == [key_slot]
    # The rejected attempts don't leave a charge behind
    assert pending.free_amount == 1


def test_partial_pass_places_everything_or_fails():
    """In a key item pass every item must be placed."""
    builder = CatalogBuilder(areas=["A", "B"])
    t1 = builder.scope(items=["GOOD:1"], area="A")
    t2 = builder.scope(items=["GOOD:2"], area="B")
    catalog = builder.build()
    t1_slot, t2_slot = first_slots(catalog, [t1, t2])

    pending = PendingItem.in_areas({"B"})
    pending.total_amount = pending.free_amount = 1
    silo = SiloPermutation(RandomSilo.FINITE, targets=[t1, t2])
    engine = AssignmentEngine(catalog, RandomNumberGenerator(1), {t1_slot.item: pending})
    engine.assign(silo, [t1_slot], [t1_slot, t2_slot], partial=True)

    assert silo.mapping == {t2_slot: [t1_slot]}

    pending = PendingItem.in_areas({"C"})
    pending.total_amount = pending.free_amount = 1
    silo = SiloPermutation(RandomSilo.FINITE, targets=[t1, t2])
    engine = AssignmentEngine(catalog, RandomNumberGenerator(1), {t1_slot.item: pending})
    with pytest.raises(KeyItemPlacementError):
        engine.assign(silo, [t1_slot], [t1_slot, t2_slot], partial=True)


def test_capacity_exhausted():
    """More sources than room raises SiloCapacityError."""
    builder = CatalogBuilder()
    target = builder.scope(items=["GOOD:1"])
    extras = [builder.scope(items=[f"GOOD:{i}"], scope_type="SPECIAL") for i in range(2, 4)]
    catalog = builder.build()
    target_slot = scope_slots(catalog, target)[0]
    sources = [target_slot] + first_slots(catalog, extras)

    silo = SiloPermutation(RandomSilo.FINITE, targets=[target])
    engine = AssignmentEngine(catalog, RandomNumberGenerator(1), {}, max_fallback_attempts=20)
    with pytest.raises(SiloCapacityError):
        engine.assign(silo, sources, [target_slot])

    silo = SiloPermutation(RandomSilo.INFINITE)
    with pytest.raises(SiloCapacityError):
        engine.assign(silo, [target_slot], [])


def test_empty_targets_get_fodder():
    """Finite targets left empty get a generated filler item."""
    builder = CatalogBuilder()
    targets = [builder.scope(items=[f"GOOD:{i}"]) for i in range(1, 4)]
    builder.group("fodder", ["GOOD:900"])
    catalog = builder.build()
    target_slots = first_slots(catalog, targets)

    silo = SiloPermutation(RandomSilo.FINITE, targets=targets)
    engine = AssignmentEngine(catalog, RandomNumberGenerator(1), {})
    engine.assign(silo, [target_slots[0]], target_slots)

    fodder = special_source(ItemKey.parse("GOOD:900"))
    assert silo.mapping[target_slots[0]] == [target_slots[0]]
    assert silo.mapping[target_slots[1]] == [fodder]
    assert silo.mapping[target_slots[2]] == [fodder]


def test_empty_targets_without_fodder_stay_empty():
    """Without a fodder group, leftover targets are left empty."""
    builder = CatalogBuilder()
    targets = [builder.scope(items=[f"GOOD:{i}"]) for i in range(1, 3)]
    catalog = builder.build()
    target_slots = first_slots(catalog, targets)

    silo = SiloPermutation(RandomSilo.FINITE, targets=targets)
    AssignmentEngine(catalog, RandomNumberGenerator(1), {}).assign(silo, [target_slots[1]], target_slots)

    assert silo.mapping == {target_slots[0]: [target_slots[1]]}


def test_target_rules():
    """Material, premium and restrict targets only accept suitable items."""
    builder = CatalogBuilder()
    material = builder.scope(items=["GOOD:1"], scope_type="MATERIAL")
    premium = builder.scope(items=["GOOD:2"], tags=["premium"])
    restrict = builder.scope(items=["GOOD:3"], tags=["restrict", "weapons"])
    unique = builder.scope(items=["WEAPON:10"])
    common = [builder.scope(items=["GOOD:50"]), builder.scope(items=["GOOD:50"])]
    builder.group("weapons", ["WEAPON:10"])
    catalog = builder.build()
    material_slot, premium_slot, restrict_slot, unique_slot = first_slots(
        catalog, [material, premium, restrict, unique])
    common_slot = scope_slots(catalog, common[0])[0]

    engine = AssignmentEngine(catalog, RandomNumberGenerator(1), {})
    for target in (material_slot, premium_slot, restrict_slot):
        assert engine.try_use(target, unique_slot)
    assert not engine.try_use(material_slot, common_slot)
    assert not engine.try_use(premium_slot, common_slot)
    assert not engine.try_use(restrict_slot, common_slot)


def test_unplaced_key_item_reports_key_items():
    """A key item without an allowed target fails with the key item message."""
    builder = CatalogBuilder(areas=["A", "B"])
    t1 = builder.scope(items=["GOOD:1"], area="A")
    t2 = builder.scope(items=["GOOD:2"], area="B")
    special = builder.scope(items=["GOOD:3"], scope_type="SPECIAL")
    catalog = builder.build()
    t1_slot, t2_slot, key_source = first_slots(catalog, [t1, t2, special])

    pending = PendingItem.in_areas({"C"})
    pending.total_amount = pending.free_amount = 1
    silo = SiloPermutation(RandomSilo.INFINITE, targets=[t1, t2])
    engine = AssignmentEngine(catalog, RandomNumberGenerator(1), {key_source.item: pending},
                              key_items={key_source.item})
    with pytest.raises(KeyItemPlacementError, match="Could not place all key items"):
        engine.assign(silo, [key_source], [t1_slot, t2_slot])


def test_unrestricted_leftovers_skip_the_retry():
    """Ordinary sources rejected in the sweep go to spare capacity without evicting anyone."""
    builder = CatalogBuilder()
    premium = builder.scope(items=["GOOD:1"], tags=["premium"])
    single = builder.scope(items=["GOOD:2"])
    double = builder.scope(items=["GOOD:3"], max_slots=2)
    stack = builder.scope(items=["GOOD:4"], scope_type="SPECIAL", quantity=2)
    unique = builder.scope(items=["GOOD:5"], scope_type="SPECIAL")
    catalog = builder.build()
    premium_slot, single_slot, double_slot, stack_slot, unique_slot = first_slots(
        catalog, [premium, single, double, stack, unique])

    silo = SiloPermutation(RandomSilo.FINITE, targets=[premium, single, double])
    silo.AddMapping(single_slot, single_slot)
    silo.AddMapping(double_slot, double_slot)
    engine = AssignmentEngine(catalog, RandomNumberGenerator(3), {})
    engine.assign(silo, [stack_slot, unique_slot], [premium_slot, single_slot, double_slot])

    assert silo.mapping[premium_slot] == [unique_slot]
    assert silo.mapping[single_slot] == [single_slot]
    assert silo.mapping[double_slot] == [double_slot, stack_slot]

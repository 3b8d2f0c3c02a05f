"""Tests for classifying slots into silos."""

import sys
import os
import pytest

# Add parent directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from catalog_builder import CatalogBuilder, scope_slots
from permutation.silos import RandomSilo, SiloClassifier


def classify(builder):
    catalog = builder.build()
    classifier = SiloClassifier(catalog)
    return catalog, classifier, classifier.Classify()


def test_scope_types_map_to_silos():
    """Each randomizable scope type feeds its own silo."""
    builder = CatalogBuilder()
    event = builder.scope(items=["GOOD:1"])
    material = builder.scope(items=["GOOD:2"], scope_type="MATERIAL")
    drop = builder.scope(items=["GOOD:3"], scope_type="MODEL", chance=0.3)
    shop = builder.scope(items=["GOOD:4"], scope_type="SHOP_INFINITE")
    mixed = builder.scope(items=["GOOD:5"], scope_type="SHOP_INFINITE_EVENT")
    catalog, classifier, silos = classify(builder)

    expected = {
        event: RandomSilo.FINITE,
        material: RandomSilo.FINITE,
        drop: RandomSilo.INFINITE,
        shop: RandomSilo.INFINITE_SHOP,
        mixed: RandomSilo.MIXED,
    }
    for loc_scope, silo_type in expected.items():
        slot = scope_slots(catalog, loc_scope)[0]
        assert classifier.SiloOf(slot) == silo_type
        assert slot in silos[silo_type].sources
        assert loc_scope in silos[silo_type].targets


def test_gear_and_certain_drops():
    """Gear shares one silo across shops and drops, guaranteed drops get their own."""
    builder = CatalogBuilder()
    sword_drop = builder.scope(items=["WEAPON:1000"], scope_type="MODEL", chance=0.1)
    armor_shop = builder.scope(items=["ARMOR:2000"], scope_type="SHOP_INFINITE")
    arrows = builder.scope(items=["WEAPON:50000100"], scope_type="MODEL", chance=0.1)
    certain = builder.scope(items=["GOOD:3"], scope_type="MODEL", chance=1.0)
    catalog, classifier, silos = classify(builder)

    assert classifier.SiloOf(scope_slots(catalog, sword_drop)[0]) == RandomSilo.INFINITE_GEAR
    assert classifier.SiloOf(scope_slots(catalog, armor_shop)[0]) == RandomSilo.INFINITE_GEAR
    assert classifier.SiloOf(scope_slots(catalog, arrows)[0]) == RandomSilo.INFINITE
    assert classifier.SiloOf(scope_slots(catalog, certain)[0]) == RandomSilo.INFINITE_CERTAIN
    assert set(silos[RandomSilo.INFINITE_GEAR].targets) == {sword_drop, armor_shop}


def test_removed_scope():
    """Slots of removed scopes map to themselves and are never targets."""
    builder = CatalogBuilder()
    removed = builder.scope(items=["GOOD:1"], tags=["remove"])
    kept = builder.scope(items=["GOOD:2"])
    catalog, classifier, silos = classify(builder)
    removed_slot = scope_slots(catalog, removed)[0]

    assert silos[RandomSilo.REMOVE].mapping == {removed_slot: [removed_slot]}
    assert removed not in silos[RandomSilo.FINITE].targets
    assert kept in silos[RandomSilo.FINITE].targets
    assert removed_slot not in silos[RandomSilo.FINITE].sources


def test_removed_item_keeps_target():
    """An item in the remove group goes away but its spot still gets something."""
    builder = CatalogBuilder()
    loc_scope = builder.scope(items=["GOOD:1"])
    builder.group("remove", ["GOOD:1"])
    catalog, classifier, silos = classify(builder)
    slot = scope_slots(catalog, loc_scope)[0]

    assert classifier.SiloOf(slot) == RandomSilo.REMOVE
    assert loc_scope in silos[RandomSilo.FINITE].targets
    assert slot not in silos[RandomSilo.FINITE].sources


def test_norandom_slots_are_excluded_targets():
    """Non-random slots stay put and are excluded from the scope's other silos."""
    builder = CatalogBuilder()
    loc_scope = builder.scope(items=["GOOD:1", "GOOD:2"], max_slots=1,
                              tag_items={"norandom": ["GOOD:1"]})
    catalog, classifier, silos = classify(builder)
    fixed_slot, random_slot = scope_slots(catalog, loc_scope)

    assert silos[RandomSilo.SELF].mapping[fixed_slot] == [fixed_slot]
    finite = silos[RandomSilo.FINITE]
    assert random_slot in finite.sources
    assert fixed_slot in finite.exclude_targets
    assert finite.TargetSlots(catalog) == [random_slot]


@pytest.mark.parametrize("setup", ["tag", "catalog"])
def test_norandom_whole_scope(setup):
    """The norandom tag and the norandom item list both keep items in place."""
    builder = CatalogBuilder()
    if setup == "tag":
        loc_scope = builder.scope(items=["GOOD:1"], tags=["norandom"])
    else:
        loc_scope = builder.scope(items=["GOOD:1"])
        builder.set("norandom_items", ["GOOD:1"])
    catalog, classifier, silos = classify(builder)
    slot = scope_slots(catalog, loc_scope)[0]

    assert classifier.SiloOf(slot) == RandomSilo.SELF
    assert loc_scope not in silos[RandomSilo.FINITE].targets


def test_norandom_shop_group():
    """Items in the norandomshop group stay in shops but move elsewhere."""
    builder = CatalogBuilder()
    shop = builder.scope(items=["GOOD:1"], scope_type="SHOP_INFINITE_EVENT", tags=["shop"])
    event = builder.scope(items=["GOOD:1"])
    builder.group("norandomshop", ["GOOD:1"])
    catalog, classifier, silos = classify(builder)

    assert classifier.SiloOf(scope_slots(catalog, shop)[0]) == RandomSilo.SELF
    assert classifier.SiloOf(scope_slots(catalog, event)[0]) == RandomSilo.FINITE


def test_filler_targets():
    """Crow and filler scopes become filler targets and lose their items."""
    builder = CatalogBuilder()
    crow = builder.scope(items=["GOOD:1"], tags=["crow"])
    catalog, classifier, silos = classify(builder)
    slot = scope_slots(catalog, crow)[0]

    assert classifier.SiloOf(slot) == RandomSilo.FILLER
    assert silos[RandomSilo.FILLER].targets == [crow]
    assert silos[RandomSilo.FILLER].sources == []
    assert slot not in silos[RandomSilo.FINITE].sources


def test_unannotated_scopes():
    """Unannotated events and shops are left alone, other scopes still shuffle."""
    builder = CatalogBuilder()
    event = builder.scope(items=["GOOD:1"], area=None)
    shop = builder.scope(items=["GOOD:2"], scope_type="SHOP_INFINITE", area=None)
    material = builder.scope(items=["GOOD:3"], scope_type="MATERIAL", area=None)
    asset = builder.scope(items=["GOOD:4"], scope_type="ASSET", area=None)
    catalog, classifier, silos = classify(builder)

    assert classifier.SiloOf(scope_slots(catalog, event)[0]) == RandomSilo.SELF
    assert classifier.SiloOf(scope_slots(catalog, shop)[0]) == RandomSilo.SELF
    assert classifier.SiloOf(scope_slots(catalog, material)[0]) == RandomSilo.FINITE
    assert classifier.SiloOf(scope_slots(catalog, asset)[0]) is None


def test_every_slot_in_at_most_one_silo():
    """No source appears in more than one silo."""
    builder = CatalogBuilder()
    builder.scope(items=["GOOD:1", "WEAPON:10"], max_slots=2)
    builder.scope(items=["WEAPON:10"], scope_type="MODEL", chance=0.5)
    builder.scope(items=["GOOD:3"], tags=["norandom"])
    builder.scope(items=["GOOD:4"], tags=["remove"])
    catalog, classifier, silos = classify(builder)

    seen = set()
    for silo in silos.values():
        for source in silo.sources:
            assert source not in seen
            seen.add(source)


def test_special_scopes_are_sources_only():
    """Synthetic scopes supply items but never receive them."""
    builder = CatalogBuilder()
    special = builder.scope(items=["GOOD:1"], scope_type="SPECIAL")
    catalog, classifier, silos = classify(builder)

    assert scope_slots(catalog, special)[0] in silos[RandomSilo.FINITE].sources
    assert special not in silos[RandomSilo.FINITE].targets

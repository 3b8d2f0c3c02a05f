"""Placement weights for targets and items.

Targets get two weights: one used when ordering targets for key items (how
late a spot is within its own area) and one for everything else (how late
the area is in the game). Both are narrowed further by how hard the spot is
to reach. Items get weights from the configured priority groups, so better
items tend to be placed in harder or later spots.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Tuple
import logging as log

from .catalog import Catalog, KeyItemAssignment
from .keys import ItemKey, SlotKey

Range = Tuple[float, float]

DIFFICULTY_TAGS: Dict[str, int] = {
    "enemy": 1,
    "shop": 1,
    "outoftheway": 2,
    "hardenemy": 2,
    "hidden": 3,
    "reqevent": 3,
    "ambush": 4,
    "miniboss": 5,
    "minibossrespawn": 5,
    "altboss": 5,
    "altbossnight": 5,
    "boss": 6,
    "deadend": 6,
    "premium": 6,
}
MAX_DIFFICULTY = 6

# Boss-like tags which become slightly less punishing at very high difficulty
BOSS_TAGS = ("miniboss", "minibossrespawn", "boss", "deadend")
HIGH_KEY_ITEM_DIFFICULTY = 0.9

# Locations which are never given a weight
SKIPPED_TAGS = ("death", "boring")
# Boss tags replaced by "reqevent" when the boss is required anyway
REQUIRED_EVENT_TAGS = ("miniboss", "altboss", "boss")

LATENESS_BUCKETS = 20
KEY_WEIGHT_EXPONENT = 20
ITEM_WEIGHT_EXPONENT = 15
ITEM_PRIORITY_BASE = 1.2
# Weight used for targets which have no entry in a weight map
DEFAULT_TARGET_WEIGHT = 0.001


def get_sub_range(weight_range: Range, index: int, total: int) -> Range:
    """Split a range into `total` log-equal parts and return part `index`.

    Args:
        weight_range: (start, end) with 0 < start <= end
        index: Which part to return, from 0 to total
        total: Number of parts

    Returns:
        The (start, end) of the selected part

    Raises:
        ValueError: If index is outside [0, total]
    """
    if index < 0 or index > total:
        raise ValueError(f"Invalid range split: index {index} of {total}")
    start, end = weight_range
    subdivs = math.log2(end / start)
    return (start * 2 ** (subdivs * index / total), start * 2 ** (subdivs * (index + 1) / total))


@dataclass
class PlacementWeights:
    """Weights computed for one randomization run."""
    key_weights: Dict[SlotKey, float] = field(default_factory=dict)
    weights: Dict[SlotKey, float] = field(default_factory=dict)
    # Item -> weight per quantity (index 0 for a single copy)
    item_weights: Dict[ItemKey, List[float]] = field(default_factory=dict)

    def key_weight(self, target: SlotKey) -> float:
        return self.key_weights.get(target, DEFAULT_TARGET_WEIGHT)

    def weight(self, target: SlotKey) -> float:
        return self.weights.get(target, DEFAULT_TARGET_WEIGHT)

    def item_weight(self, slot: SlotKey, catalog: Catalog) -> float:
        count_weights = self.item_weights.get(slot.item)
        if not count_weights:
            return 1.0
        quantity = catalog.Location(slot).quantity
        return count_weights[max(0, min(quantity - 1, len(count_weights) - 1))]


class WeightCalculator:
    """Computes PlacementWeights from the catalog and the difficulty options.

    `options` needs the numeric attributes unfair_weight, very_unfair_weight,
    key_item_difficulty and all_item_difficulty (all in [0, 1]) and the
    boolean attribute fog.
    """

    def __init__(self, catalog: Catalog, assignment: KeyItemAssignment, options) -> None:
        self.catalog = catalog
        self.assignment = assignment
        self.options = options

    def difficulty_tags(self) -> Dict[str, int]:
        tags = dict(DIFFICULTY_TAGS)
        tags["unfair"] = round((MAX_DIFFICULTY - 1) * self.options.unfair_weight)
        tags["veryunfair"] = round(MAX_DIFFICULTY * self.options.very_unfair_weight)
        if self.options.key_item_difficulty > HIGH_KEY_ITEM_DIFFICULTY:
            for tag in BOSS_TAGS:
                tags[tag] -= 1
        return tags

    def Calculate(self) -> PlacementWeights:
        result = PlacementWeights()
        self._CalculateTargetWeights(result)
        self._CalculateItemWeights(result)
        log.info(f"Calculated weights for {len(result.weights)} targets and {len(result.item_weights)} items")
        return result

    def _CalculateTargetWeights(self, result: PlacementWeights) -> None:
        catalog = self.catalog
        assignment = self.assignment
        difficulty_tags = self.difficulty_tags()
        key_exponent = round(KEY_WEIGHT_EXPONENT * self.options.key_item_difficulty)
        item_exponent = round(ITEM_WEIGHT_EXPONENT * self.options.all_item_difficulty)

        for loc_scope, annotation in catalog.slots.items():
            tags = set(annotation.tags)
            if any(tag in tags for tag in SKIPPED_TAGS):
                continue
            if (annotation.event is not None and annotation.event in assignment.required_events
                    and any(tag in tags for tag in REQUIRED_EVENT_TAGS)):
                tags.difference_update(REQUIRED_EVENT_TAGS)
                tags.add("reqevent")

            area = assignment.EffectiveArea(loc_scope, annotation)
            if not assignment.IsAreaIncluded(area):
                continue

            position, positions = annotation.area_index
            positions = max(1, positions)
            if self._IsSmallArea(area) or "deadend" in tags:
                position = positions - 1
            key_weight = get_sub_range((1, 2 ** key_exponent), position, positions)

            weight: Range = (1, 2 ** item_exponent)
            if not self.options.fog:
                bucket = int(assignment.Lateness(area) * LATENESS_BUCKETS)
                weight = get_sub_range(weight, bucket, LATENESS_BUCKETS)

            for diff in sorted((difficulty_tags[t] for t in tags if t in difficulty_tags), reverse=True):
                if diff != 0:
                    key_weight = get_sub_range(key_weight, diff, MAX_DIFFICULTY + 1)
                    weight = get_sub_range(weight, diff, MAX_DIFFICULTY + 1)

            targets = catalog.Slots(loc_scope)
            reduce_key_quantity = 1
            if annotation.HasTag("raceshop") and targets:
                # Large merchant shops get about the same chance as a single slot
                reduce_key_quantity = len(targets)
            for target in targets:
                key_value = key_weight[0] / reduce_key_quantity
                if key_value > 0:
                    result.key_weights[target] = key_value
                result.weights[target] = weight[0]

    def _CalculateItemWeights(self, result: PlacementWeights) -> None:
        groups = self.catalog.item_priority
        key_items = set(self.assignment.priority)
        max_weight = ITEM_PRIORITY_BASE ** (len(groups) + 1)
        priority = len(groups)
        for group in groups:
            item_range = get_sub_range((1, max_weight), priority, len(groups) + 1)
            count_weights = [item_range[0]]
            for count in range(1, max(1, group.priority_by_count)):
                count_weights.append(get_sub_range(item_range, count, group.priority_by_count)[0])
            for key in group.keys:
                if group.includes == "keyitems" and key not in key_items:
                    continue
                # Earlier groups take precedence
                result.item_weights.setdefault(key, count_weights)
            priority -= 1

    def _IsSmallArea(self, area: str) -> bool:
        return any(area.startswith(prefix) for prefix in self.catalog.small_areas)

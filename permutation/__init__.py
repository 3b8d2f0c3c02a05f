"""
Item placement permutation engine.

Key features:
- Slots are split into silos which are randomized independently
- Weighted shuffles bias better items towards later and harder spots
- Per-item restrictions, with area partitions guaranteeing fixed amounts
- Deterministic for a given seed, flags and catalog
"""

from .catalog import Catalog, KeyItemAssignment
from .keys import ItemKey, ItemType, LocationScope, ScopeType, SlotKey
from .messages import Messages
from .permutation import Permutation, PermutationResult, PlacementConsistencyError
from .silos import RandomSilo, SiloPermutation
from .solvers import KeyItemPlacementError, SiloCapacityError
from .validator import PermutationValidator

__all__ = [
    'Catalog',
    'KeyItemAssignment',
    'ItemKey',
    'ItemType',
    'LocationScope',
    'ScopeType',
    'SlotKey',
    'Messages',
    'Permutation',
    'PermutationResult',
    'PlacementConsistencyError',
    'RandomSilo',
    'SiloPermutation',
    'KeyItemPlacementError',
    'SiloCapacityError',
    'PermutationValidator',
]

"""Central registry of all flag definitions."""

from typing import Dict, List

from .categories import FlagCategory
from .definitions import BooleanFlag, EnumFlag, IntegerFlag, FlagDefinition, FlagOption


class FlagRegistry:
    """Central registry of all flag definitions."""

    # Logic & Difficulty
    DIFFICULTY = IntegerFlag(
        'difficulty',
        'Difficulty Bias',
        'How strongly good items and key items are biased towards late and hard to reach locations. 0 places everything uniformly at random, 100 is the most extreme bias.',
        FlagCategory.LOGIC_AND_DIFFICULTY,
        default=50,
        min_value=0,
        max_value=100
    )

    ITEM_LOGIC = EnumFlag(
        'item_logic',
        'Item Logic',
        'Whether to place items following key item logic and placement restrictions.',
        FlagCategory.LOGIC_AND_DIFFICULTY,
        options=[
            FlagOption('full', 'Full Logic', 'Key items and restrictions are respected, items are weighted by difficulty'),
            FlagOption('none', 'No Logic', 'Flat shuffle of every silo. Seeds are likely to be unbeatable.'),
        ],
        default='full'
    )

    FOG = BooleanFlag(
        'fog',
        'Fog Gate Randomizer Mode',
        'Area lateness is not meaningful when fog gates are randomized, so weights ignore it and every key item is hinted.',
        FlagCategory.LOGIC_AND_DIFFICULTY
    )

    RACE_MODE = BooleanFlag(
        'race_mode',
        'Race Mode',
        'Places race mode items first, only in locations with race mode tags.',
        FlagCategory.LOGIC_AND_DIFFICULTY
    )

    # Item Placement
    IGNORE_QUANTITIES = BooleanFlag(
        'ignore_quantities',
        'Ignore Item Quantities',
        'Counts a stack of items as a single copy when checking fixed per-area amounts. The main objective is coverage across locations rather than exact counts.',
        FlagCategory.ITEM_PLACEMENT,
        default=True
    )

    # Game Content
    DLC1 = BooleanFlag(
        'dlc1',
        'Include DLC1 Locations',
        'Allows items to be placed in locations tagged dlc1.',
        FlagCategory.GAME_CONTENT
    )

    # Solver Limits
    MAX_RESTRICTED_PASSES = IntegerFlag(
        'max_restricted_passes',
        'Restricted Item Passes',
        'Number of passes over all targets when retrying restricted items that could not be placed in the first sweep.',
        FlagCategory.SOLVER_LIMITS,
        default=5,
        min_value=1,
        max_value=100
    )

    MAX_FALLBACK_ATTEMPTS = IntegerFlag(
        'max_fallback_attempts',
        'Fallback Attempts',
        'Random targets tried for each leftover item before giving up on the silo.',
        FlagCategory.SOLVER_LIMITS,
        default=10000,
        min_value=1,
        max_value=10000000
    )

    # Diagnostics
    PRECHECK_FEASIBILITY = BooleanFlag(
        'precheck_feasibility',
        'Check Feasibility First',
        'Uses OR-Tools to check that fixed per-area amounts can be met before placing anything, failing early with a clear error.',
        FlagCategory.DIAGNOSTICS
    )

    @classmethod
    def get_all_flags(cls) -> Dict[str, FlagDefinition]:
        """Get all flag definitions as a dictionary."""
        flags = {}
        for attr_name in dir(cls):
            attr = getattr(cls, attr_name)
            if isinstance(attr, FlagDefinition):
                flags[attr.key] = attr
        return flags

    @classmethod
    def get_flags_by_category(cls) -> Dict[FlagCategory, List[FlagDefinition]]:
        """Get flags organized by category."""
        by_category = {}
        for flag in cls.get_all_flags().values():
            if flag.category not in by_category:
                by_category[flag.category] = []
            by_category[flag.category].append(flag)
        return by_category

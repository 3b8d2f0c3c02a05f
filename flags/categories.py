"""Flag categories for organizing flags."""

from enum import IntEnum


class FlagCategory(IntEnum):
    """Categories for organizing flags."""
    LOGIC_AND_DIFFICULTY = 1
    ITEM_PLACEMENT = 2
    GAME_CONTENT = 3
    SOLVER_LIMITS = 4
    DIAGNOSTICS = 5  # Flags that don't change the generated permutation

    @property
    def display_name(self) -> str:
        """Get user-friendly display name for the category."""
        names = {
            FlagCategory.LOGIC_AND_DIFFICULTY: "Logic & Difficulty",
            FlagCategory.ITEM_PLACEMENT: "Item Placement",
            FlagCategory.GAME_CONTENT: "Game Content",
            FlagCategory.SOLVER_LIMITS: "Solver Limits",
            FlagCategory.DIAGNOSTICS: "Diagnostics (doesn't affect seed generation)",
        }
        return names.get(self, "Unknown")

    @property
    def affects_file_string(self) -> bool:
        """Whether flags in this category affect the file string."""
        return self != FlagCategory.DIAGNOSTICS

# rng/random_number_generator.py

import math
import random
from typing import Callable, List, TypeVar, Sequence

T = TypeVar('T')


class RandomNumberGenerator:
    """Deterministic RNG manager for the slot permuter.

    This class wraps Python's random.Random to provide deterministic
    randomization across all permutation operations. All randomization
    should use this class instead of the global random module to ensure
    reproducibility with the same seed.

    The API mirrors Python's random.Random class for consistency and
    ease of substitution.

    Usage:
        rng = RandomNumberGenerator(12345)
        index = rng.randrange(len(targets))
        order = rng.weighted_shuffle(targets, weights.weight)
    """

    def __init__(self, seed: int):
        """Initialize RNG with a seed.

        Args:
            seed: Integer seed for deterministic random generation
        """
        self._seed = seed
        self._rng = random.Random(seed)

    @property
    def seed(self) -> int:
        """Get the seed used to initialize this RNG."""
        return self._seed

    # ========================================================================
    # Random operation methods (mirror random.Random API)
    # ========================================================================

    def randrange(self, stop: int) -> int:
        """Return random integer in range [0, stop).

        Mirrors random.Random.randrange() API.
        """
        return self._rng.randrange(stop)

    def choice(self, seq: Sequence[T]) -> T:
        """Choose a random element from a non-empty sequence.

        Mirrors random.Random.choice() API.
        """
        return self._rng.choice(seq)

    def shuffle(self, x: List) -> None:
        """Shuffle list x in-place, and return None.

        Mirrors random.Random.shuffle() API.

        Args:
            x: List to shuffle in-place
        """
        self._rng.shuffle(x)

    # ========================================================================
    # Permutation-specific methods
    # ========================================================================

    def weighted_shuffle(self, items: Sequence[T], weight: Callable[[T], float]) -> List[T]:
        """Return a random ordering of items, biased towards heavier items first.

        Each item gets the score -ln(1 - u) / weight(item) for a uniform u, and
        items are sorted by ascending score. This is a weighted sample without
        replacement: an item's chance to come first is proportional to its
        weight, and items with equal weights are ordered uniformly at random.
        Exactly one random draw is made per item, in input order.

        Args:
            items: Items to order (not modified)
            weight: Positive weight for each item

        Returns:
            New list with the items in shuffled order

        Raises:
            ValueError: If any weight is not positive
        """
        scored = []
        for item in items:
            w = weight(item)
            if not w > 0:
                raise ValueError(f"Weight for {item} must be positive, got {w}")
            scored.append((-math.log(1.0 - self._rng.random()) / w, item))
        scored.sort(key=lambda entry: entry[0])
        return [item for _, item in scored]

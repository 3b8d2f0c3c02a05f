"""Flags class for managing flag values with validation and serialization."""

from typing import Any, Dict, Iterable, Optional
import logging as log

from .definitions import BooleanFlag, EnumFlag, IntegerFlag
from .registry import FlagRegistry

CONFIG_HASH_MODULUS = 99999


def java_string_hash(text: str) -> int:
    """Java's String.hashCode, as an unsigned 32-bit value."""
    result = 0
    for ch in text:
        result = (31 * result + ord(ch)) & 0xFFFFFFFF
    return result


class Flags:
    """Container for flag values with validation and serialization.

    Besides the registered flags, exposes the numeric weights derived from
    the difficulty flag, each in [0, 1].
    """

    def __init__(self):
        # Initialize all flags with their default values
        self._definitions = FlagRegistry.get_all_flags()
        self._values: Dict[str, Any] = {
            key: defn.get_default()
            for key, defn in self._definitions.items()
        }

    def __getattr__(self, key: str) -> Any:
        """Access flags as attributes: flags.race_mode"""
        if key.startswith('_'):
            # Allow normal attribute access for private attributes
            return object.__getattribute__(self, key)

        if key in self._values:
            return self._values[key]

        raise AttributeError(f"Flag '{key}' not found")

    def __setattr__(self, key: str, value: Any):
        """Set flags as attributes: flags.race_mode = True"""
        if key.startswith('_'):
            # Allow normal attribute setting for private attributes
            object.__setattr__(self, key, value)
            return

        self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        """Get flag value with optional default."""
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set flag value with validation."""
        if key not in self._definitions:
            raise KeyError(f"Flag '{key}' not found.")

        definition = self._definitions[key]
        validated_value = definition.validate(value)
        self._values[key] = validated_value

    # ========================================================================
    # Values derived from difficulty
    # ========================================================================

    def _from_range(self, start: int, end: int) -> float:
        difficulty = self._values['difficulty']
        if difficulty < start:
            return 0.0
        if difficulty >= end:
            return 1.0
        return (difficulty - start) / (end - start)

    @property
    def unfair_weight(self) -> float:
        return self._from_range(40, 80)

    @property
    def very_unfair_weight(self) -> float:
        return self._from_range(70, 100)

    @property
    def key_item_difficulty(self) -> float:
        return self._from_range(30, 100)

    @property
    def all_item_difficulty(self) -> float:
        return self._from_range(0, 100)

    # ========================================================================
    # Serialization
    # ========================================================================

    def to_dict(self, include_non_file_string: bool = True) -> Dict[str, Any]:
        """
        Export flags to dictionary.

        Args:
            include_non_file_string: If False, exclude flags that don't affect file string
        """
        result = {}
        for key, value in self._values.items():
            definition = self._definitions[key]

            # Skip flags that don't affect file string if requested
            if not include_non_file_string and not definition.affects_file_string:
                continue

            result[key] = value

        return result

    def from_dict(self, data: Dict[str, Any]) -> None:
        """Import flags from dictionary."""
        for key, value in data.items():
            try:
                self.set(key, value)
            except (KeyError, TypeError, ValueError) as e:
                # Log warning but continue
                log.warning(f"Failed to set flag '{key}': {e}")

    def parse_assignments(self, assignments: Iterable[str]) -> None:
        """Set flags from "key=value" strings, as given on the command line.

        Raises:
            ValueError: If an assignment is malformed or names an unknown flag
        """
        for assignment in assignments:
            key, sep, text = assignment.partition('=')
            key = key.strip()
            if not sep:
                raise ValueError(f"Flag assignment '{assignment}' must look like key=value")
            definition = self._definitions.get(key)
            if definition is None:
                raise ValueError(f"Flag '{key}' not found")
            self._values[key] = definition.parse(text)

    def to_file_string(self) -> str:
        """
        Generate a compact string representation for filenames.
        Only includes flags that affect the file string.
        """
        parts = []
        for key, value in sorted(self._values.items()):
            definition = self._definitions[key]

            # Skip flags that don't affect file string
            if not definition.affects_file_string:
                continue

            # Skip flags at default value to keep string compact
            if value == definition.get_default():
                continue

            # Encode flag based on type
            if isinstance(definition, BooleanFlag):
                parts.append(key[0:3])
            elif isinstance(definition, EnumFlag):
                # Use abbreviation + value abbreviation
                parts.append(f"{key[0:3]}{value[0:3]}")
            elif isinstance(definition, IntegerFlag):
                parts.append(f"{key[0:3]}{value}")

        return "_".join(parts) if parts else "default"

    def config_string(self, seed: Optional[int] = None) -> str:
        """Human readable summary of every setting which affects generation."""
        words = []
        for key, value in sorted(self._values.items()):
            definition = self._definitions[key]
            if key == 'difficulty' or not definition.affects_file_string:
                continue
            if isinstance(definition, BooleanFlag):
                if value:
                    words.append(key)
            elif value != definition.get_default():
                words.append(f"{key}:{value}")
        words.append(f"bias:{self._values['difficulty']}")
        if seed is not None:
            words.append(f"seed:{seed}")
        return " ".join(words)

    def config_hash(self) -> str:
        """Five digit hash of the config string, for comparing settings at a glance."""
        return str(java_string_hash(self.config_string()) % CONFIG_HASH_MODULUS).zfill(5)

"""
Typed run options for the permutation engine.

Key features:
- Inline value definitions for better readability
- Support for boolean, enum, integer flags
- Flags can be excluded from file string (diagnostic flags)
- Type validation, and parsing from command line strings
- Numeric weights derived from the difficulty flag
"""

from .categories import FlagCategory
from .definitions import BooleanFlag, EnumFlag, IntegerFlag, FlagDefinition, FlagOption
from .registry import FlagRegistry
from .flags import Flags, java_string_hash

__all__ = [
    'FlagCategory',
    'BooleanFlag',
    'EnumFlag',
    'IntegerFlag',
    'FlagDefinition',
    'FlagOption',
    'FlagRegistry',
    'Flags',
    'java_string_hash',
]

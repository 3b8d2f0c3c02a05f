"""User-facing messages, with optional translations."""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class Text:
    """A message in English, and the name used to look up translations."""
    text: str
    name: str


KEY_ITEM_ERROR = Text(
    "Could not place all key items... giving up now. This can happen on some seeds or with some options.",
    "Randomizer_keyItemError")

RESTRICTED_ITEM_ERROR = Text(
    "Could not place all items with placement rules... giving up now. This can happen on some seeds or with some options.",
    "Randomizer_restrictedItemError")


class Messages:
    """Looks up translated messages, falling back to English."""

    def __init__(self, translations: Optional[Dict[str, str]] = None):
        self.translations = translations or {}

    def Get(self, text: Text, *args) -> str:
        message = self.translations.get(text.name, text.text)
        return message.format(*args) if args else message

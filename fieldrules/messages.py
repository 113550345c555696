"""
Message lookup and token replacement.

TextLocalizer is the lookup used for *_l10n keys; DictTextLocalizer is a
simple catalogue keyed by culture. MessageTokenResolver fills "{Token}"
placeholders in message templates.
"""

import re
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable


@runtime_checkable
class TextLocalizer(Protocol):
    def get_message(self, key: str, fallback: Optional[str]) -> Optional[str]:
        ...


class DictTextLocalizer:
    """
    Localizer backed by {culture: {key: text}}.

    Lookup falls back from "en-US" to "en" and then to the fallback text.
    """

    def __init__(
        self,
        messages: Optional[Mapping[str, Mapping[str, str]]] = None,
        culture: str = "en"
    ):
        self.messages: Dict[str, Dict[str, str]] = {
            culture_id: dict(texts) for culture_id, texts in (messages or {}).items()
        }
        self.culture = culture

    def register(self, key: str, text: str, culture: Optional[str] = None) -> None:
        self.messages.setdefault(culture or self.culture, {})[key] = text

    def get_message(self, key: str, fallback: Optional[str]) -> Optional[str]:
        if not key:
            return fallback
        for culture in self._cultures():
            texts = self.messages.get(culture)
            if texts and key in texts:
                return texts[key]
        return fallback

    def _cultures(self):
        yield self.culture
        if "-" in self.culture:
            yield self.culture.split("-", 1)[0]


class MessageTokenResolver:
    """
    Replaces {Token} placeholders.

    Unknown tokens are left in place. A None value renders as an empty
    string. Use {{ and }} for literal braces.
    """

    TOKEN_PATTERN = re.compile(r"\{\{|\}\}|\{(\w+)\}")

    def resolve(self, template: Optional[str], tokens: Mapping[str, Any]) -> str:
        if not template:
            return ""

        def replace(match: "re.Match") -> str:
            text = match.group(0)
            if text == "{{":
                return "{"
            if text == "}}":
                return "}"
            name = match.group(1)
            if name not in tokens:
                return text
            value = tokens[name]
            return "" if value is None else str(value)

        return self.TOKEN_PATTERN.sub(replace, template)


__all__ = [
    "TextLocalizer",
    "DictTextLocalizer",
    "MessageTokenResolver",
]

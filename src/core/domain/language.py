"""Language utilities for ComunidadPro.

User-facing messages (errors, AI prompts, fallbacks) exist in Spanish and
English. Keeping the enum in the domain layer lets services and adapters share
it without importing each other.
"""

from __future__ import annotations

from enum import Enum


class Language(str, Enum):
    """Supported natural-language choices for user-facing output."""

    SPANISH = "es"
    ENGLISH = "en"

    @classmethod
    def default(cls) -> "Language":
        """The community back-office is Spanish-first."""

        return cls.SPANISH

    @classmethod
    def from_code(cls, code: str | None) -> "Language":
        """Parse `es`, `en`, `es-CO`... falling back to the default."""

        prefix = (code or "").strip().lower()[:2]
        for member in cls:
            if member.value == prefix:
                return member
        return cls.default()

    def pick(self, *, es: str, en: str) -> str:
        """Return the variant of a message for this language."""

        return es if self is Language.SPANISH else en

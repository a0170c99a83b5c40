"""
Language Detection

Script-based guess of the user's language, used when the client does not
send a language tag.

Author: System Architect
Date: 2026-01-12
"""

import re

SUPPORTED_LANGUAGES = ("he", "en", "ru", "ar")

_SCRIPTS = (
    ("he", re.compile(r"[\u0590-\u05FF]")),
    ("ar", re.compile(r"[\u0600-\u06FF]")),
    ("ru", re.compile(r"[\u0400-\u04FF]")),
    ("en", re.compile(r"[A-Za-z]")),
)


def detect_language(text: str) -> str | None:
    """
    Return the language of the first script found, checked in the order
    Hebrew, Arabic, Cyrillic, Latin. None when nothing matches (digits,
    emoji, empty text).
    """
    for language, pattern in _SCRIPTS:
        if pattern.search(text or ""):
            return language
    return None


def resolve_language(requested: str | None, text: str, default: str) -> str:
    """Explicit tag first, then detection, then the configured default."""
    if requested:
        return requested.lower()
    return detect_language(text) or default

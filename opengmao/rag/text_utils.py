"""
Text helpers shared by alias matching, search and ingestion.
"""

import re
import unicodedata

_COMBINING_MARKS = re.compile(r"[\u0300-\u036f]")
_ARABIC = re.compile(r"[\u0600-\u06FF]")
_LATIN_ONLY = re.compile(r"^[A-Za-z0-9\s\-_]+$")


def normalize_text(text: str) -> str:
    """
    Normalize text for case- and accent-insensitive comparison.

    Args:
        text (str): Raw text.

    Returns:
        str: Lowercased text without diacritics, single-spaced and trimmed.
    """
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = _COMBINING_MARKS.sub("", decomposed)
    return re.sub(r"\s+", " ", stripped).strip()


def detect_language(text: str) -> str:
    """
    Guess the language of a short text.

    Args:
        text (str): Alias or query.

    Returns:
        str: "ar" when any Arabic character is present, "en" for plain ASCII
        letters/digits/spaces/dashes, otherwise "fr".
    """
    if _ARABIC.search(text):
        return "ar"
    if _LATIN_ONLY.match(text):
        return "en"
    return "fr"

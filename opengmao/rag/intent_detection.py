"""
Multilingual query intent detection (Arabic, English, French).

The detected intents double as document types: retrieval keeps chunks of
documents tagged with one of them.
"""

import re
from typing import List, Optional

INTENT_PATTERNS = (
    ("parts", r"قطع الغيار|قطع|spare parts?|parts?|pièces|catalogue"),
    ("maintenance", r"صيانة|maintenance|entretien|maintain|servic"),
    ("installation", r"تركيب|install|montage|monter|setup"),
    ("troubleshooting", r"عطل|مشكل|خلل|troubleshoot|problem|issue|fault|panne|défaut|dépannage"),
    ("electrical", r"كهرباء|كهربائي|electrical|electric|électrique"),
    ("mechanical", r"ميكانيك|ميكانيكي|mechanical|mechanic|mécanique"),
    ("safety", r"أمان|سلامة|safety|safe|sécurité|sûreté"),
)
"""Ordered (intent, keyword regex) table."""

_COMPILED = [(intent, re.compile(pattern, re.IGNORECASE)) for intent, pattern in INTENT_PATTERNS]


def detect_query_intent(query: str) -> List[str]:
    """
    Detect the document types a query is about.

    Parameters
    ----------
    query : str
        User question in any of the supported languages.

    Returns
    -------
    list[str]
        Matching intents in table order, without duplicates. Empty means
        "search every document".
    """
    lowered = query.lower()
    detected = []
    for intent, regex in _COMPILED:
        if regex.search(lowered) and intent not in detected:
            detected.append(intent)
    return detected


def intent_to_document_types(intents: List[str]) -> Optional[List[str]]:
    """
    Document types to filter retrieval by, or None for no filter.

    General manuals cover every topic, so "manual" is added to any non-empty
    filter.
    """
    if not intents:
        return None
    types = list(intents)
    if "manual" not in types:
        types.append("manual")
    return types

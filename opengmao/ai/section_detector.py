"""
Section Detector
================

Locates the sections of an equipment manual (specifications, maintenance,
dryer, electrical, ...) with French and English heading patterns so each
extraction pass can be fed the most relevant text.

Two modes:
- per page (`detect_sections_by_page`): a section starts on the first page
  matching one of its patterns and collects up to 10 following pages;
  confidence 0.9.
- full text (`detect_sections`): a section is the 15 000 characters starting
  at the first match; confidence 0.7.
"""

from typing import Dict, List, Optional
import logging
import math
import re

logger = logging.getLogger("uvicorn")

SECTION_PATTERNS = (
    ("specifications", (
        r"technical\s+specifications?",
        r"caractéristiques\s+techniques",
        r"données\s+techniques",
        r"technical\s+data",
        r"specifications?\s+table",
        r"performance\s+data",
    )),
    ("maintenance", (
        r"maintenance\s+schedule",
        r"entretien",
        r"maintenance\s+préventive",
        r"preventive\s+maintenance",
        r"service\s+intervals?",
        r"periodic\s+maintenance",
        r"lubrication",
        r"graissage",
    )),
    ("dryer", (
        r"\bdryer\b",
        r"sécheur",
        r"secheur",
        r"refrigerated\s+dryer",
        r"air\s+dryer",
        r"desiccant",
        r"dessiccant",
    )),
    ("electrical", (
        r"electrical\s+diagrams?",
        r"schémas?\s+électriques?",
        r"wiring\s+diagrams?",
        r"electrical\s+connections?",
        r"connexions?\s+électriques?",
        r"circuit\s+diagrams?",
        r"légende\s+électrique",
        r"electrical\s+legend",
    )),
    ("pneumatic", (
        r"pneumatic\s+circuit",
        r"schéma\s+pneumatique",
        r"air\s+system",
        r"flow\s+diagram",
        r"circuit\s+d'air",
    )),
    ("troubleshooting", (
        r"troubleshooting",
        r"diagnostic",
        r"recherche\s+des?\s+pannes?",
        r"fault\s+finding",
        r"error\s+codes?",
        r"alarm\s+codes?",
        r"codes?\s+d'erreur",
        r"codes?\s+d'alarme",
    )),
    ("safety", (
        r"safety\s+instructions?",
        r"consignes?\s+de\s+sécurité",
        r"safety\s+precautions?",
        r"warning\s+symbols?",
        r"symboles?\s+de\s+danger",
    )),
    ("installation", (
        r"installation",
        r"mise\s+en\s+service",
        r"setup",
        r"commissioning",
    )),
    ("components", (
        r"component\s+list",
        r"liste\s+des?\s+composants?",
        r"parts?\s+list",
        r"nomenclature",
        r"bill\s+of\s+materials?",
    )),
)

PRIORITY_ORDER = (
    "specifications",
    "components",
    "dryer",
    "electrical",
    "maintenance",
    "troubleshooting",
    "safety",
    "pneumatic",
    "installation",
)

SECTION_WINDOW_CHARS = 15000
SECTION_MAX_PAGES = 10
CHARS_PER_PAGE = 3000

_COMPILED = [
    (name, [re.compile(pattern, re.IGNORECASE) for pattern in patterns])
    for name, patterns in SECTION_PATTERNS
]


def _find_in_text(full_text: str, regexes: List[re.Pattern]) -> Optional[dict]:
    for regex in regexes:
        match = regex.search(full_text)
        if match:
            start = match.start()
            return {
                "start_page": 0,
                "end_page": 0,
                "text": full_text[start:start + SECTION_WINDOW_CHARS].strip(),
                "confidence": 0.7,
            }
    return None


def _find_in_pages(pages: List[str], regexes: List[re.Pattern]) -> Optional[dict]:
    start_page = -1
    end_page = -1
    collected = []
    for number, text in enumerate(pages, start=1):
        if any(regex.search(text) for regex in regexes):
            if start_page == -1:
                start_page = number
            end_page = number
            collected.append(text)
        elif start_page != -1 and start_page < number <= start_page + SECTION_MAX_PAGES:
            collected.append(text)
            end_page = number
    if start_page == -1:
        return None
    return {
        "start_page": start_page,
        "end_page": end_page,
        "text": "\n".join(collected).strip(),
        "confidence": 0.9,
    }


def detect_sections(full_text: str) -> Dict[str, dict]:
    """
    Detect sections in an unpaginated text.

    Parameters
    ----------
    full_text : str
        Whole document text.

    Returns
    -------
    dict[str, dict]
        Section name → {'start_page', 'end_page', 'text', 'confidence'}; pages
        are 0 in this mode.
    """
    sections = {}
    for name, regexes in _COMPILED:
        section = _find_in_text(full_text, regexes)
        if section:
            sections[name] = {"name": name, **section}
    logger.info(f"[Section Detector] Found {len(sections)} sections: {', '.join(sections)}")
    return sections


def detect_sections_by_page(pages: List[str]) -> Dict[str, dict]:
    """
    Detect sections page by page (pages are numbered from 1).

    Returns
    -------
    dict[str, dict]
        Section name → {'name', 'start_page', 'end_page', 'text', 'confidence'}.
    """
    sections = {}
    for name, regexes in _COMPILED:
        section = _find_in_pages(pages, regexes)
        if section:
            sections[name] = {"name": name, **section}
    logger.info(f"[Section Detector] Found {len(sections)} sections: {', '.join(sections)}")
    return sections


def estimate_page_count(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_PAGE)


def split_into_large_chunks(text: str, max_chars: int = 50000) -> List[str]:
    """Group page-break separated blocks into chunks of at most `max_chars`."""
    chunks = []
    current = ""
    for block in re.split(r"\n{3,}|\f", text):
        if len(current) + len(block) > max_chars:
            if current:
                chunks.append(current.strip())
            current = block
        else:
            current += "\n\n" + block
    if current.strip():
        chunks.append(current.strip())
    return chunks


def prioritize_sections(sections: Dict[str, dict]) -> List[str]:
    """Detected section names in extraction priority order."""
    return [name for name in PRIORITY_ORDER if name in sections]


def get_section_text(sections: Dict[str, dict], name: str) -> Optional[str]:
    """Text of a detected section; None when the section is missing or empty."""
    section = sections.get(name)
    return section["text"] if section and section.get("text") else None

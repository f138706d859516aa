"""
Document classification
=======================

- classify_document        : single document type (manual, installation, catalogue, schematic, datasheet, other)
- detect_section_type      : keyword-based section type of a chunk (no model call)
- classify_document_types  : every content type a document covers
"""

from opengmao.api.prompt_utilities import get_chat_model, parse_llm_json, parse_llm_text, lc_text_from_content
from opengmao.database.config.config import settings
from typing import List, Optional
import logging

logger = logging.getLogger("uvicorn")

DOCUMENT_TYPES = ("manual", "installation", "catalogue", "schematic", "datasheet", "other")

CONTENT_TYPES = (
    "manual",
    "installation",
    "maintenance",
    "troubleshooting",
    "parts",
    "electrical",
    "mechanical",
    "safety",
)

SECTION_KEYWORDS = (
    ("safety", ("sécurité", "danger", "avertissement", "epi")),
    ("maintenance", ("maintenance", "entretien", "lubrification", "graissage")),
    ("installation", ("installation", "montage", "mise en service")),
    ("troubleshooting", ("panne", "dépannage", "diagnostic", "erreur", "défaut")),
    ("specs", ("caractéristiques", "spécifications", "dimensions", "poids")),
    ("parts_list", ("pièce", "référence", "rechange", "code article")),
)
"""Ordered keyword chain; the first matching section wins."""

CLASSIFY_PROMPT = """Analyze this industrial document excerpt and classify its type.

Document types:
- manual: User/maintenance manual (operations, maintenance procedures, troubleshooting)
- installation: Installation guide (setup, commissioning, first-time configuration)
- catalogue: Parts catalog (spare parts list, reference codes, ordering info)
- schematic: Technical drawings (electrical, pneumatic, hydraulic diagrams)
- datasheet: Technical specifications (specs, characteristics, performance data)
- other: Other document type

Document excerpt:
\"\"\"
{text}
\"\"\"

Respond ONLY with JSON:
{{
  "type": "manual|installation|catalogue|schematic|datasheet|other",
  "confidence": 0.0-1.0,
  "reasoning": "Brief explanation"
}}"""

CONTENT_TYPES_PROMPT = """You are analyzing an equipment manual to classify its content types.

Equipment Information:
- Name: {name}
- Manufacturer: {manufacturer}
- Category: {category}

Document Text Sample (first 3000 chars):
{text}

Available document types:
{types}

Task: Determine which types of content this document contains.

Rules:
1. Select ALL applicable types (a document can have multiple)
2. Base your decision on actual content, not assumptions
3. If document covers installation procedures → include 'installation'
4. If document covers maintenance procedures → include 'maintenance'
5. If document has troubleshooting guides → include 'troubleshooting'
6. If document lists spare parts → include 'parts'
7. If document has electrical diagrams → include 'electrical'
8. If document has mechanical drawings → include 'mechanical'
9. If document has safety procedures → include 'safety'
10. If you're unsure, include 'manual' as fallback

Respond with ONLY a JSON array of type strings, nothing else.
Example: ["maintenance", "parts", "troubleshooting"]
"""


def default_classification() -> dict:
    return {"type": "manual", "confidence": 0.5, "reasoning": "Default classification (error occurred)"}


def classify_document(text: str) -> dict:
    """
    Classify a document from its first 3000 characters.

    Parameters
    ----------
    text : str
        Document text.

    Returns
    -------
    dict
        {'type', 'confidence', 'reasoning'}. Model errors, unparsable replies
        and unknown types give the default `manual` classification.
    """
    try:
        llm = get_chat_model(model=settings.OPEN_AI_MINI_MODEL, temperature=0.1, json_mode=True, max_tokens=200)
        parsed = parse_llm_json(llm.invoke(CLASSIFY_PROMPT.format(text=text[:3000])))
        if parsed.get("type") not in DOCUMENT_TYPES:
            return default_classification()
        return {
            "type": parsed["type"],
            "confidence": float(parsed.get("confidence", 0.5)),
            "reasoning": parsed.get("reasoning", ""),
        }
    except Exception as e:
        logger.error(f"Document classification error: {e}")
        return default_classification()


def detect_section_type(chunk_content: str) -> str:
    """Section type of a chunk from French keywords, `general` when none match."""
    content = chunk_content.lower()
    for section, keywords in SECTION_KEYWORDS:
        if any(keyword in content for keyword in keywords):
            return section
    return "general"


def classify_document_types(text: str, metadata: Optional[dict] = None) -> List[str]:
    """
    List every content type a document covers.

    Parameters
    ----------
    text : str
        Document text; the first 3000 characters are sent.
    metadata : dict, optional
        name, manufacturer and category used as context.

    Returns
    -------
    list[str]
        Known content types only; `["manual"]` when nothing valid comes back or
        the call fails.
    """
    metadata = metadata or {}
    prompt = CONTENT_TYPES_PROMPT.format(
        name=metadata.get("name") or "Unknown",
        manufacturer=metadata.get("manufacturer") or "Unknown",
        category=metadata.get("category") or "Unknown",
        text=text[:3000],
        types="\n".join(f"- {t}" for t in CONTENT_TYPES),
    )
    try:
        llm = get_chat_model(model=settings.OPEN_AI_MINI_MODEL, temperature=0, max_tokens=200)
        types = parse_llm_text(lc_text_from_content(llm.invoke(prompt).content))
        if not isinstance(types, list):
            return ["manual"]
        valid = []
        for item in types:
            if item in CONTENT_TYPES and item not in valid:
                valid.append(item)
        return valid or ["manual"]
    except Exception as e:
        logger.error(f"❌ Classification error: {e}")
        return ["manual"]

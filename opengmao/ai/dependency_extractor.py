"""
Relationship extraction from manual text.

Finds equipment named in a document that is upstream, downstream, a backup,
related to, or running in parallel with the equipment the document is about.
The result feeds the pending dependency suggestions.
"""

from opengmao.api.prompt_utilities import get_chat_model, parse_llm_json
from opengmao.database.config.config import settings
import logging

logger = logging.getLogger("uvicorn")

SAMPLE_CHARS = 6000
RELATIONSHIP_TYPES = ("upstream", "downstream", "alternative", "related", "parallel")
MIN_CONFIDENCE = 0.5

EXTRACT_PROMPT = """You are analyzing an industrial equipment manual to extract process dependencies and relationships.

Source Equipment: {source}

Document Text:
{text}

Task: Extract ALL equipment mentioned that have a relationship with "{source}".

Relationship Types:
1. upstream: equipment that SUPPLIES/FEEDS INTO the source
   ("receives from", "supplied by", "fed by", "يستقبل من", "reçoit de")
2. downstream: equipment that RECEIVES FROM the source
   ("delivers to", "feeds into", "output to", "يغذي", "alimente")
3. alternative: backup or redundant equipment ("backup", "standby", "احتياطي", "secours")
4. related: connected, direction unclear ("connected to", "works with", "متصل ب", "connecté à")
5. parallel: runs simultaneously ("parallel to", "alongside", "بالتوازي مع", "en parallèle")

For each relationship give the EXACT equipment name or code as written, the
relationship type, a confidence between 0.5 and 1.0, and the phrase showing
the relationship.

Respond with JSON only:
{{
  "source_equipment": "{source}",
  "relationships": [
    {{
      "target_equipment": "Filter F-200",
      "relationship_type": "upstream",
      "confidence": 0.95,
      "context_snippet": "receives filtered air from Filter F-200"
    }}
  ]
}}

Rules:
- No relationships: return an empty array
- Do not include the source equipment itself
- Do not include generic terms without a specific identifier"""


def _is_valid(rel) -> bool:
    if not isinstance(rel, dict):
        return False
    target = rel.get("target_equipment")
    if not isinstance(target, str) or not target.strip():
        return False
    try:
        confidence = float(rel.get("confidence"))
    except (TypeError, ValueError):
        return False
    if confidence < MIN_CONFIDENCE or confidence > 1.0:
        return False
    return rel.get("relationship_type") in RELATIONSHIP_TYPES


def extract_dependencies(document_text: str, source_name: str) -> dict:
    """
    Extract relationships between `source_name` and other equipment.

    Parameters
    ----------
    document_text : str
        Manual text; the first 6000 characters are sent.
    source_name : str
        Equipment the document describes.

    Returns
    -------
    dict
        {'source_equipment': str, 'relationships': [{'target_equipment',
        'relationship_type', 'confidence', 'context_snippet'}]}. Entries with
        an empty target, an unknown type or a confidence outside [0.5, 1.0]
        are dropped; any error gives no relationships.
    """
    try:
        llm = get_chat_model(model=settings.OPEN_AI_MINI_MODEL, temperature=0.2, max_tokens=2000)
        prompt = EXTRACT_PROMPT.format(source=source_name, text=document_text[:SAMPLE_CHARS])
        result = parse_llm_json(llm.invoke(prompt))
        relationships = [rel for rel in (result.get("relationships") or []) if _is_valid(rel)]
        logger.info(f"✅ Extracted {len(relationships)} potential dependencies")
        return {"source_equipment": source_name, "relationships": relationships}
    except Exception as e:
        logger.error(f"❌ Dependency extraction error: {e}")
        return {"source_equipment": source_name, "relationships": []}

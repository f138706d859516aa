"""
Alias resolution for chat queries.

Technicians call equipment by plant nicknames ("الكمبريصور الكبير", "le gros
compresseur"). Aliases found in a query are resolved to the official asset
name before retrieval, and the mapping is added to the model context.
"""

from opengmao.database.helpers.transactionManagement import transactional
from opengmao.database.helpers.identifiers import to_uuid
from opengmao.database.daos.alias_dao import AliasDao
from opengmao.rag.text_utils import normalize_text
from sqlalchemy.orm import Session
from typing import List, Optional, Set
import logging
import re

logger = logging.getLogger("uvicorn")

FUZZY_THRESHOLD = 0.6
ALIAS_MIN_LENGTH = 2
ALIAS_MAX_LENGTH = 100


def validate_alias(alias: Optional[str]) -> Optional[str]:
    """Error message for an invalid alias, None when it is acceptable."""
    if not alias or len(alias.strip()) < ALIAS_MIN_LENGTH:
        return "Alias must be at least 2 characters"
    if len(alias) > ALIAS_MAX_LENGTH:
        return "Alias must be less than 100 characters"
    return None


def _bigrams(text: str) -> Set[str]:
    return {text[i:i + 2] for i in range(len(text) - 1)}


def bigram_similarity(first: str, second: str) -> float:
    """Jaccard similarity of the character bigrams of two strings."""
    if first == second:
        return 1.0
    if not first or not second:
        return 0.0
    a, b = _bigrams(first), _bigrams(second)
    if not a or not b:
        return 0.0
    overlap = len(a & b)
    return overlap / (len(a) + len(b) - overlap)


def match_aliases(query: str, alias_records: List[dict]) -> List[dict]:
    """
    Resolve the aliases mentioned in a query.

    Parameters
    ----------
    query : str
        User query.
    alias_records : list[dict]
        Each with 'alias', 'alias_normalized', 'asset_id' and 'asset_name'.

    Returns
    -------
    list[dict]
        {'id', 'name', 'alias', 'matched_text', 'confidence'}, one per asset
        (the last match of an asset wins), highest confidence first. A
        normalized alias contained in the query scores 1.0; otherwise the
        bigram similarity must exceed 0.6.
    """
    normalized_query = normalize_text(query)
    resolved = {}
    for record in alias_records:
        alias_normalized = record["alias_normalized"]
        if alias_normalized and alias_normalized in normalized_query:
            confidence = 1.0
        else:
            confidence = bigram_similarity(normalized_query, alias_normalized)
            if confidence <= FUZZY_THRESHOLD:
                continue
        resolved[record["asset_id"]] = {
            "id": record["asset_id"],
            "name": record["asset_name"],
            "alias": record["alias"],
            "matched_text": record["alias"],
            "confidence": confidence,
        }
    return sorted(resolved.values(), key=lambda item: item["confidence"], reverse=True)


@transactional
def resolve_equipment_aliases(session: Session, query: str, organization_id: Optional[str]) -> List[dict]:
    """Resolve the aliases of an organization mentioned in `query` (see `match_aliases`)."""
    rows = AliasDao().fetchAliasesWithAssets(session, to_uuid(organization_id))
    records = [
        {
            "alias": alias.alias,
            "alias_normalized": alias.alias_normalized,
            "asset_id": str(asset.id),
            "asset_name": asset.name,
        }
        for alias, asset in rows
    ]
    return match_aliases(query, records)


def replace_aliases(query: str, resolved: List[dict]) -> str:
    """Replace every resolved alias (case-insensitive) with the official equipment name."""
    modified = query
    for equipment in resolved:
        modified = re.sub(re.escape(equipment["alias"]), lambda _: equipment["name"], modified,
                          flags=re.IGNORECASE)
    return modified


def preprocess_rag_query(query: str, organization_id: Optional[str]) -> dict:
    """
    Resolve aliases and rewrite the query with official names.

    Returns
    -------
    dict
        {'modified_query', 'resolved_equipment', 'original_query'}.
    """
    resolved = resolve_equipment_aliases(query=query, organization_id=organization_id)
    if not resolved:
        return {"modified_query": query, "resolved_equipment": [], "original_query": query}

    modified = replace_aliases(query, resolved)
    logger.info(f"🔍 Alias Resolution: \"{query}\" → \"{modified}\"")
    return {"modified_query": modified, "resolved_equipment": resolved, "original_query": query}


def build_equipment_context(equipment: List[dict]) -> str:
    if not equipment:
        return ""
    lines = [f'Equipment: {eq["name"]} (also known as "{eq["alias"]}")' for eq in equipment]
    return "\n\nReferenced Equipment:\n" + "\n".join(lines)

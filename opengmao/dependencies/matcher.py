"""
Equipment name matching.

Maps a raw equipment name found in a document ("Filter F-200", "sécheur")
onto an asset of the organization: exact name, exact custom name, then the
best Levenshtein similarity over names, custom names and embedded codes.
"""

from opengmao.database.helpers.transactionManagement import transactional
from opengmao.database.helpers.identifiers import to_uuid
from opengmao.database.daos.asset_dao import AssetDao
from sqlalchemy.orm import Session
from typing import Optional
import logging
import re

logger = logging.getLogger("uvicorn")

CODE_PATTERN = re.compile(r"[A-Z]+-?\d+")


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance (insertions, deletions, substitutions)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def calculate_similarity(first: str, second: str) -> float:
    """
    1 - distance / longest length, on lowercased trimmed strings.

    Two empty strings are identical (1.0); one empty string scores 0.0.
    """
    s1 = first.lower().strip()
    s2 = second.lower().strip()
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    return 1 - levenshtein_distance(s1, s2) / max(len(s1), len(s2))


def _match(asset, similarity: float, matched_by: str) -> dict:
    return {
        "equipment_id": str(asset.id),
        "equipment_name": asset.name,
        "custom_name": asset.custom_name,
        "similarity": similarity,
        "matched_by": matched_by,
    }


@transactional
def find_equipment_match(session: Session, raw_name: str, organization_id: Optional[str],
                         threshold: float = 0.6) -> Optional[dict]:
    """
    Find the asset best matching a raw equipment name.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    raw_name : str
        Name as written in the document.
    organization_id : str | None
        Organization whose assets are searched.
    threshold : float
        Fuzzy matches must score strictly above this value.

    Returns
    -------
    dict | None
        {'equipment_id', 'equipment_name', 'custom_name', 'similarity',
        'matched_by' ('exact' | 'alias' | 'fuzzy')} or None.
    """
    asset_dao = AssetDao()
    org_id = to_uuid(organization_id)
    logger.info(f"🔍 Matching equipment: \"{raw_name}\"")

    exact = asset_dao.fetchAssetByExactName(session, raw_name, org_id)
    if exact:
        return _match(exact, 1.0, "exact")

    alias = asset_dao.fetchAssetByExactCustomName(session, raw_name, org_id)
    if alias:
        return _match(alias, 1.0, "alias")

    best = None
    highest = threshold
    raw_code = CODE_PATTERN.search(raw_name)
    for asset in asset_dao.fetchAssetsByOrganization(session, org_id):
        candidates = [asset.name]
        if asset.custom_name:
            candidates.append(asset.custom_name)
        scores = [calculate_similarity(raw_name, candidate) for candidate in candidates]
        asset_code = CODE_PATTERN.search(asset.name)
        if raw_code and asset_code:
            scores.append(calculate_similarity(raw_code.group(0), asset_code.group(0)))
        for score in scores:
            if score > highest:
                highest = score
                best = _match(asset, score, "fuzzy")

    if best:
        logger.info(f"   ✅ Fuzzy match: {best['equipment_name']} ({best['similarity'] * 100:.0f}% similar)")
    else:
        logger.info(f"   ❌ No match found above {threshold * 100:.0f}% threshold")
    return best

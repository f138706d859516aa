"""
Equipment detection in free text.

Finds which assets a question is about, from their names, codes, plant
nicknames and registered aliases, so the assistant can answer without the
user picking an asset first.
"""

from opengmao.database.helpers.transactionManagement import transactional
from opengmao.database.helpers.identifiers import to_uuid
from opengmao.database.daos.asset_dao import AssetDao
from opengmao.database.daos.alias_dao import AliasDao
from opengmao.rag.text_utils import normalize_text
from sqlalchemy.orm import Session
from typing import List, Optional
import logging
import re

logger = logging.getLogger("uvicorn")

FUZZY_THRESHOLD = 0.7


def word_similarity(query: str, target: str) -> float:
    """Share of the target's words (longer than 2 chars) overlapping a query word."""
    if not query or not target:
        return 0.0
    query_words = [w for w in re.split(r"\s+", query) if len(w) > 2]
    target_words = [w for w in re.split(r"\s+", target) if len(w) > 2]
    if not target_words:
        return 0.0
    matches = sum(
        1 for t in target_words
        if any(t in q or q in t for q in query_words)
    )
    return matches / len(target_words)


def _detection(asset: dict, mentioned_as: str, confidence: float, match_type: str) -> dict:
    return {
        "equipment_id": asset["id"],
        "equipment_name": asset["name"],
        "custom_name": asset.get("custom_name"),
        "code": asset.get("code"),
        "mentioned_as": mentioned_as,
        "confidence": confidence,
        "match_type": match_type,
    }


def _match_asset(normalized_query: str, asset: dict) -> Optional[dict]:
    name = normalize_text(asset["name"])
    code = normalize_text(asset.get("code") or "")
    custom = normalize_text(asset.get("custom_name") or "")

    if len(name) > 3 and name in normalized_query:
        return _detection(asset, asset["name"], 1.0, "exact_name")
    if len(code) >= 3 and code in normalized_query:
        return _detection(asset, asset["code"], 1.0, "exact_code")
    if len(custom) >= 3 and custom in normalized_query:
        return _detection(asset, asset["custom_name"], 1.0, "exact_alias")

    name_score = word_similarity(normalized_query, name)
    custom_score = word_similarity(normalized_query, custom) if custom else 0.0
    best = max(name_score, custom_score)
    if best >= FUZZY_THRESHOLD:
        mentioned = (asset.get("custom_name") or asset["name"]) if custom_score > name_score else asset["name"]
        return _detection(asset, mentioned, best, "fuzzy")
    return None


def detect_equipment(query: str, assets: List[dict], aliases: List[dict]) -> dict:
    """
    Detect the assets mentioned in a query.

    Parameters
    ----------
    query : str
        User question.
    assets : list[dict]
        Candidate assets with 'id', 'name', 'code', 'custom_name'.
    aliases : list[dict]
        Registered aliases with 'alias' and 'asset' (an asset dict as above).

    Returns
    -------
    dict
        {'detected': [...], 'mode': 'none' | 'single' | 'multi', 'query'};
        one detection per asset (highest confidence kept), sorted by
        confidence.
    """
    normalized_query = normalize_text(query)
    detected = [d for d in (_match_asset(normalized_query, asset) for asset in assets) if d]

    found_ids = {d["equipment_id"] for d in detected}
    for record in aliases:
        asset = record["asset"]
        if asset["id"] in found_ids:
            continue
        alias = normalize_text(record["alias"])
        if len(alias) >= 3 and alias in normalized_query:
            detected.append(_detection(asset, record["alias"], 1.0, "exact_alias"))
            found_ids.add(asset["id"])

    best = {}
    for detection in detected:
        current = best.get(detection["equipment_id"])
        if current is None or detection["confidence"] > current["confidence"]:
            best[detection["equipment_id"]] = detection
    unique = sorted(best.values(), key=lambda d: d["confidence"], reverse=True)

    mode = "none" if not unique else "single" if len(unique) == 1 else "multi"
    logger.info(f"🔍 Equipment detection: mode={mode}, found {len(unique)}")
    return {"detected": unique, "mode": mode, "query": query}


@transactional
def detect_equipment_from_query(session: Session, query: str, organization_id: Optional[str]) -> dict:
    """`detect_equipment` over the assets and aliases of an organization."""
    org_id = to_uuid(organization_id)

    def summary(asset):
        return {"id": str(asset.id), "name": asset.name, "code": asset.code, "custom_name": asset.custom_name}

    assets = [summary(a) for a in AssetDao().fetchAssetsByOrganization(session, org_id)]
    aliases = [
        {"alias": alias.alias, "asset": summary(asset)}
        for alias, asset in AliasDao().fetchAliasesWithAssets(session, org_id)
    ]
    return detect_equipment(query, assets, aliases)


def format_detected_equipment(detected: List[dict]) -> str:
    if not detected:
        return "No equipment detected"
    lines = []
    for i, eq in enumerate(detected, start=1):
        alias = f" (\"{eq['custom_name']}\")" if eq.get("custom_name") else ""
        lines.append(f"{i}. {eq['equipment_name']}{alias} [{eq['confidence'] * 100:.0f}%]")
    return "\n".join(lines)

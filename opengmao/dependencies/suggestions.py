"""
Dependency suggestions.

Relationships extracted from an imported document are matched to assets and
stored as pending suggestions. A user then approves one (a dependency edge is
created), rejects it or deletes it.
"""

from opengmao.database.helpers.transactionManagement import transactional
from opengmao.database.helpers.identifiers import to_uuid
from opengmao.database.daos.dependency_dao import DependencyDao
from opengmao.database.entities.asset_dependency import AssetDependency, DependencySuggestion
from opengmao.dependencies.matcher import find_equipment_match
from opengmao.ai.dependency_extractor import extract_dependencies
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

logger = logging.getLogger("uvicorn")

MATCH_THRESHOLD = 0.6


@transactional
def generate_dependency_suggestions(session: Session, document_id: Optional[str], source_asset_id: str,
                                    source_asset_name: str, document_text: str,
                                    organization_id: Optional[str]) -> int:
    """
    Extract relationships from a document and store them as pending suggestions.

    Returns
    -------
    int
        Number of suggestions inserted; 0 when nothing was found.
    """
    logger.info(f"🔗 Generating dependency suggestions for {source_asset_name}")
    extraction = extract_dependencies(document_text, source_asset_name)
    relationships = extraction["relationships"]
    if not relationships:
        logger.info("ℹ️ No relationships found in document")
        return 0

    dao = DependencyDao()
    created = 0
    for rel in relationships:
        match = find_equipment_match(raw_name=rel["target_equipment"], organization_id=organization_id,
                                     threshold=MATCH_THRESHOLD)
        dao.createSuggestion(session, DependencySuggestion(
            source_asset_id=to_uuid(source_asset_id),
            target_asset_id=to_uuid(match["equipment_id"]) if match else None,
            target_name_raw=rel["target_equipment"],
            relationship_type=rel["relationship_type"],
            confidence=float(rel["confidence"]),
            context_snippet=rel.get("context_snippet"),
            document_id=to_uuid(document_id),
        ))
        created += 1
    logger.info(f"✅ Created {created} dependency suggestions")
    return created


@transactional
def get_pending_suggestions(session: Session, asset_id: str) -> List[dict]:
    """Pending suggestions of an asset, highest confidence first, with their matched target."""
    rows = DependencyDao().fetchPendingSuggestions(session, to_uuid(asset_id))
    suggestions = []
    for suggestion, target in rows:
        data = suggestion.to_dict()
        data["target"] = {"id": str(target.id), "name": target.name, "custom_name": target.custom_name} if target else None
        suggestions.append(data)
    return suggestions


@transactional
def count_pending_suggestions(session: Session, asset_id: str) -> int:
    return DependencyDao().countPendingSuggestions(session, to_uuid(asset_id))


@transactional
def approve_suggestion(session: Session, suggestion_id: str, reviewed_by: Optional[str] = None) -> dict:
    """
    Turn a suggestion into a confirmed dependency.

    An upstream relationship means the source asset depends on the target;
    every other relationship type means the target depends on the source.

    Returns
    -------
    dict
        {'res': True, 'dependency_id'} or {'res': False, 'detail': message}.
    """
    dao = DependencyDao()
    suggestion = dao.fetchSuggestionById(session, to_uuid(suggestion_id))
    if suggestion is None:
        return {"res": False, "detail": "Suggestion not found"}
    if suggestion.target_asset_id is None:
        return {"res": False, "detail": "Cannot approve: no matching equipment found"}

    if suggestion.relationship_type == "upstream":
        asset_id, depends_on_id = suggestion.source_asset_id, suggestion.target_asset_id
    else:
        asset_id, depends_on_id = suggestion.target_asset_id, suggestion.source_asset_id

    dependency = dao.fetchDependency(session, asset_id, depends_on_id, suggestion.relationship_type)
    if dependency is None:
        dependency = dao.createDependency(session, AssetDependency(
            asset_id=asset_id,
            depends_on_id=depends_on_id,
            dependency_type=suggestion.relationship_type,
            source="ai_suggested",
            confidence=suggestion.confidence,
            notes=suggestion.context_snippet,
        ))
    dao.updateSuggestionStatus(session, suggestion.id, "approved", to_uuid(reviewed_by))
    return {"res": True, "dependency_id": str(dependency.id)}


@transactional
def reject_suggestion(session: Session, suggestion_id: str, reviewed_by: Optional[str] = None) -> bool:
    """Mark a suggestion rejected; False when it does not exist."""
    updated = DependencyDao().updateSuggestionStatus(session, to_uuid(suggestion_id), "rejected", to_uuid(reviewed_by))
    return updated is not None


@transactional
def delete_suggestion(session: Session, suggestion_id: str) -> bool:
    return DependencyDao().deleteSuggestion(session, to_uuid(suggestion_id))

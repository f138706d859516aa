"""
Dependency DAO

Purpose
-------
Data-access layer for the dependency graph:
- `AssetDependency` edges: create, upstream/downstream neighbours (ordered by
  criticality), existence check
- `DependencySuggestion` rows: create, fetch by id, pending list ordered by
  confidence, pending count, status update

Design
------
- Neighbour queries join `assets` so callers receive the neighbour's name and
  level together with the edge attributes.
"""

from sqlalchemy.orm import Session
from sqlalchemy import case, desc, func
from opengmao.database.entities.asset_dependency import AssetDependency, DependencySuggestion
from opengmao.database.entities.asset import Asset
from uuid import UUID
from typing import List, Optional, Tuple
from datetime import datetime, timezone

CRITICALITY_ORDER = case(
    (AssetDependency.criticality == "critical", 1),
    (AssetDependency.criticality == "high", 2),
    (AssetDependency.criticality == "medium", 3),
    else_=4,
)
"""Ordering expression: critical dependencies first."""


class DependencyDao:
    """
    Data Access Object for asset dependencies and dependency suggestions.
    """

    def createDependency(self, session: Session, dependency: AssetDependency) -> AssetDependency:
        try:
            session.add(dependency)
            return dependency
        except Exception as e:
            print(f"Error in DependencyDao.createDependency. Error: {e}")
            raise e

    def fetchDependency(self, session: Session, asset_id: UUID, depends_on_id: UUID,
                        dependency_type: str) -> Optional[AssetDependency]:
        try:
            return (
                session.query(AssetDependency)
                .filter(AssetDependency.asset_id == asset_id)
                .filter(AssetDependency.depends_on_id == depends_on_id)
                .filter(AssetDependency.dependency_type == dependency_type)
                .first()
            )
        except Exception as e:
            print(f"Error in DependencyDao.fetchDependency. Error: {e}")
            raise e

    def fetchUpstream(self, session: Session, asset_id: UUID) -> List[Tuple[AssetDependency, Asset]]:
        """
        Assets `asset_id` depends on.

        Returns
        -------
        list[tuple[AssetDependency, Asset]]
            Edge and upstream asset, critical first.
        """
        try:
            return (
                session.query(AssetDependency, Asset)
                .join(Asset, Asset.id == AssetDependency.depends_on_id)
                .filter(AssetDependency.asset_id == asset_id)
                .order_by(CRITICALITY_ORDER)
                .all()
            )
        except Exception as e:
            print(f"Error in DependencyDao.fetchUpstream. Error: {e}")
            raise e

    def fetchDownstream(self, session: Session, asset_id: UUID) -> List[Tuple[AssetDependency, Asset]]:
        """
        Assets depending on `asset_id`.

        Returns
        -------
        list[tuple[AssetDependency, Asset]]
            Edge and downstream asset, critical first.
        """
        try:
            return (
                session.query(AssetDependency, Asset)
                .join(Asset, Asset.id == AssetDependency.asset_id)
                .filter(AssetDependency.depends_on_id == asset_id)
                .order_by(CRITICALITY_ORDER)
                .all()
            )
        except Exception as e:
            print(f"Error in DependencyDao.fetchDownstream. Error: {e}")
            raise e

    def createSuggestion(self, session: Session, suggestion: DependencySuggestion) -> DependencySuggestion:
        try:
            session.add(suggestion)
            return suggestion
        except Exception as e:
            print(f"Error in DependencyDao.createSuggestion. Error: {e}")
            raise e

    def fetchSuggestionById(self, session: Session, suggestion_id: UUID) -> Optional[DependencySuggestion]:
        try:
            return (
                session.query(DependencySuggestion)
                .filter(DependencySuggestion.id == suggestion_id)
                .one_or_none()
            )
        except Exception as e:
            print(f"Error in DependencyDao.fetchSuggestionById. Error: {e}")
            raise e

    def fetchPendingSuggestions(self, session: Session, asset_id: UUID) -> List[Tuple[DependencySuggestion, Optional[Asset]]]:
        """
        Pending suggestions of a source asset, highest confidence first.

        Returns
        -------
        list[tuple[DependencySuggestion, Asset | None]]
            Suggestion and matched target asset (None if unmatched).
        """
        try:
            return (
                session.query(DependencySuggestion, Asset)
                .outerjoin(Asset, Asset.id == DependencySuggestion.target_asset_id)
                .filter(DependencySuggestion.source_asset_id == asset_id)
                .filter(DependencySuggestion.status == "pending")
                .order_by(desc(DependencySuggestion.confidence))
                .all()
            )
        except Exception as e:
            print(f"Error in DependencyDao.fetchPendingSuggestions. Error: {e}")
            raise e

    def countPendingSuggestions(self, session: Session, asset_id: UUID) -> int:
        try:
            return (
                session.query(func.count(DependencySuggestion.id))
                .filter(DependencySuggestion.source_asset_id == asset_id)
                .filter(DependencySuggestion.status == "pending")
                .scalar()
            ) or 0
        except Exception as e:
            print(f"Error in DependencyDao.countPendingSuggestions. Error: {e}")
            raise e

    def updateSuggestionStatus(self, session: Session, suggestion_id: UUID, status: str,
                               reviewed_by: Optional[UUID] = None) -> Optional[DependencySuggestion]:
        """Set status and review timestamp; None when the suggestion does not exist."""
        try:
            suggestion = (
                session.query(DependencySuggestion)
                .filter(DependencySuggestion.id == suggestion_id)
                .one_or_none()
            )
            if suggestion is None:
                return None
            suggestion.status = status
            suggestion.reviewed_by = reviewed_by
            suggestion.reviewed_at = datetime.now(timezone.utc)
            return suggestion
        except Exception as e:
            print(f"Error in DependencyDao.updateSuggestionStatus. Error: {e}")
            raise e

    def deleteSuggestion(self, session: Session, suggestion_id: UUID) -> bool:
        try:
            deleted = (
                session.query(DependencySuggestion)
                .filter(DependencySuggestion.id == suggestion_id)
                .delete()
            )
            return deleted > 0
        except Exception as e:
            print(f"Error in DependencyDao.deleteSuggestion. Error: {e}")
            raise e

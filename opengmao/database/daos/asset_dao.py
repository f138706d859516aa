"""
Asset DAO

Purpose
-------
Data-access layer for the `Asset` entity:
- Create, update and delete equipment
- Fetch by id, by organization, by exact (case-insensitive) name or custom name
- Counters used by the dashboard

Design
------
- The caller supplies the session; transaction boundaries stay in the service
  layer (`@transactional` functions in `database.core`).
- Name lookups use `ilike` without wildcards, i.e. case-insensitive equality.

Error Handling
--------------
- Methods catch `Exception`, print the failing method, and re-raise.
"""

from sqlalchemy.orm import Session
from sqlalchemy import desc, func
from opengmao.database.entities.asset import Asset
from uuid import UUID
from typing import List, Optional


class AssetDao:
    """
    Data Access Object (DAO) for managing Asset entities.
    """

    def createAsset(self, session: Session, asset: Asset) -> Asset:
        """
        Stage a new asset.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        asset : Asset
            Entity to add.

        Returns
        -------
        Asset
            The staged entity.
        """
        try:
            session.add(asset)
            return asset
        except Exception as e:
            print(f"Error in AssetDao.createAsset. Error: {e}")
            raise e

    def fetchAssetById(self, session: Session, asset_id: UUID) -> Optional[Asset]:
        """
        Fetch a single asset by its primary key.

        Returns
        -------
        Asset | None
            The asset, or None when it does not exist.
        """
        try:
            return session.query(Asset).filter(Asset.id == asset_id).one_or_none()
        except Exception as e:
            print(f"Error in AssetDao.fetchAssetById. Error: {e}")
            raise e

    def fetchAssetsByIds(self, session: Session, asset_ids: List[UUID]) -> List[Asset]:
        try:
            if not asset_ids:
                return []
            return session.query(Asset).filter(Asset.id.in_(asset_ids)).all()
        except Exception as e:
            print(f"Error in AssetDao.fetchAssetsByIds. Error: {e}")
            raise e

    def fetchAssetsByOrganization(self, session: Session, organization_id: Optional[UUID]) -> List[Asset]:
        """
        Fetch every asset of an organization, most recent first.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        organization_id : UUID | None
            Organization scope.

        Returns
        -------
        list[Asset]
        """
        try:
            return (
                session.query(Asset)
                .filter(Asset.organization_id == organization_id)
                .order_by(desc(Asset.created_at))
                .all()
            )
        except Exception as e:
            print(f"Error in AssetDao.fetchAssetsByOrganization. Error: {e}")
            raise e

    def fetchOtherAssets(self, session: Session, organization_id: Optional[UUID], exclude_id: UUID) -> List[Asset]:
        """Every asset of the organization except `exclude_id`."""
        try:
            return (
                session.query(Asset)
                .filter(Asset.organization_id == organization_id)
                .filter(Asset.id != exclude_id)
                .all()
            )
        except Exception as e:
            print(f"Error in AssetDao.fetchOtherAssets. Error: {e}")
            raise e

    def fetchAssetByCode(self, session: Session, code: str) -> Optional[Asset]:
        try:
            return session.query(Asset).filter(Asset.code == code).first()
        except Exception as e:
            print(f"Error in AssetDao.fetchAssetByCode. Error: {e}")
            raise e

    def fetchChildAssets(self, session: Session, parent_id: UUID) -> List[Asset]:
        if parent_id is None:
            return []
        try:
            return session.query(Asset).filter(Asset.parent_id == parent_id).all()
        except Exception as e:
            print(f"Error in AssetDao.fetchChildAssets. Error: {e}")
            raise e

    def fetchAssetByExactName(self, session: Session, name: str, organization_id: Optional[UUID]) -> Optional[Asset]:
        """Case-insensitive exact match on `name`; first hit or None."""
        try:
            return (
                session.query(Asset)
                .filter(Asset.organization_id == organization_id)
                .filter(Asset.name.ilike(name))
                .first()
            )
        except Exception as e:
            print(f"Error in AssetDao.fetchAssetByExactName. Error: {e}")
            raise e

    def fetchAssetByExactCustomName(self, session: Session, custom_name: str,
                                    organization_id: Optional[UUID]) -> Optional[Asset]:
        """Case-insensitive exact match on `custom_name`; first hit or None."""
        try:
            return (
                session.query(Asset)
                .filter(Asset.organization_id == organization_id)
                .filter(Asset.custom_name.ilike(custom_name))
                .first()
            )
        except Exception as e:
            print(f"Error in AssetDao.fetchAssetByExactCustomName. Error: {e}")
            raise e

    def updateAsset(self, session: Session, asset_id: UUID, fields: dict) -> Optional[Asset]:
        """
        Apply `fields` to an asset.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        asset_id : UUID
            Target asset.
        fields : dict
            Column name → new value.

        Returns
        -------
        Asset | None
            Updated asset, or None when it does not exist.
        """
        try:
            asset = session.query(Asset).filter(Asset.id == asset_id).one_or_none()
            if asset is None:
                return None
            for key, value in fields.items():
                setattr(asset, key, value)
            return asset
        except Exception as e:
            print(f"Error in AssetDao.updateAsset. Error: {e}")
            raise e

    def deleteAsset(self, session: Session, asset_id: UUID) -> bool:
        try:
            deleted = session.query(Asset).filter(Asset.id == asset_id).delete()
            return deleted > 0
        except Exception as e:
            print(f"Error in AssetDao.deleteAsset. Error: {e}")
            raise e

    def countAssets(self, session: Session, status: Optional[str] = None) -> int:
        """Count assets, optionally restricted to one status."""
        try:
            query = session.query(func.count(Asset.id))
            if status is not None:
                query = query.filter(Asset.status == status)
            return query.scalar() or 0
        except Exception as e:
            print(f"Error in AssetDao.countAssets. Error: {e}")
            raise e

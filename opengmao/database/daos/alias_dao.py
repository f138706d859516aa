"""
Alias DAO

Purpose
-------
Data-access layer for `AssetAlias`: create/delete aliases of an asset and list
every alias of an organization together with its asset, which is what the
alias resolver and the equipment detector scan.
"""

from sqlalchemy.orm import Session
from sqlalchemy import asc
from opengmao.database.entities.asset_alias import AssetAlias
from opengmao.database.entities.asset import Asset
from uuid import UUID
from typing import List, Optional, Tuple


class AliasDao:
    """Data Access Object for `AssetAlias`."""

    def createAlias(self, session: Session, alias: AssetAlias) -> AssetAlias:
        try:
            session.add(alias)
            return alias
        except Exception as e:
            print(f"Error in AliasDao.createAlias. Error: {e}")
            raise e

    def fetchAliasesByAsset(self, session: Session, asset_id: UUID) -> List[AssetAlias]:
        """Aliases of one asset, primary first then alphabetical."""
        try:
            return (
                session.query(AssetAlias)
                .filter(AssetAlias.asset_id == asset_id)
                .order_by(AssetAlias.is_primary.desc(), asc(AssetAlias.alias))
                .all()
            )
        except Exception as e:
            print(f"Error in AliasDao.fetchAliasesByAsset. Error: {e}")
            raise e

    def fetchAliasByNormalized(self, session: Session, asset_id: UUID, alias_normalized: str) -> Optional[AssetAlias]:
        try:
            return (
                session.query(AssetAlias)
                .filter(AssetAlias.asset_id == asset_id)
                .filter(AssetAlias.alias_normalized == alias_normalized)
                .first()
            )
        except Exception as e:
            print(f"Error in AliasDao.fetchAliasByNormalized. Error: {e}")
            raise e

    def fetchAliasesWithAssets(self, session: Session, organization_id: Optional[UUID]) -> List[Tuple[AssetAlias, Asset]]:
        """
        Fetch every alias of an organization joined with its asset.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        organization_id : UUID | None
            Organization scope.

        Returns
        -------
        list[tuple[AssetAlias, Asset]]
        """
        try:
            return (
                session.query(AssetAlias, Asset)
                .join(Asset, Asset.id == AssetAlias.asset_id)
                .filter(Asset.organization_id == organization_id)
                .all()
            )
        except Exception as e:
            print(f"Error in AliasDao.fetchAliasesWithAssets. Error: {e}")
            raise e

    def deleteAlias(self, session: Session, asset_id: UUID, alias_id: UUID) -> bool:
        try:
            deleted = (
                session.query(AssetAlias)
                .filter(AssetAlias.id == alias_id)
                .filter(AssetAlias.asset_id == asset_id)
                .delete()
            )
            return deleted > 0
        except Exception as e:
            print(f"Error in AliasDao.deleteAlias. Error: {e}")
            raise e

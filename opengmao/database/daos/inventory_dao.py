"""
Inventory DAO

Purpose
-------
Data-access layer for `InventoryPart`: CRUD plus the low-stock counter shown on
the dashboard.
"""

from sqlalchemy.orm import Session
from sqlalchemy import asc, func
from opengmao.database.entities.inventory_part import InventoryPart
from uuid import UUID
from typing import List, Optional


class InventoryDao:
    """Data Access Object for `InventoryPart`."""

    def createPart(self, session: Session, part: InventoryPart) -> InventoryPart:
        try:
            session.add(part)
            return part
        except Exception as e:
            print(f"Error in InventoryDao.createPart. Error: {e}")
            raise e

    def fetchPartById(self, session: Session, part_id: UUID) -> Optional[InventoryPart]:
        try:
            return session.query(InventoryPart).filter(InventoryPart.id == part_id).one_or_none()
        except Exception as e:
            print(f"Error in InventoryDao.fetchPartById. Error: {e}")
            raise e

    def fetchParts(self, session: Session) -> List[InventoryPart]:
        try:
            return session.query(InventoryPart).order_by(asc(InventoryPart.name)).all()
        except Exception as e:
            print(f"Error in InventoryDao.fetchParts. Error: {e}")
            raise e

    def updatePart(self, session: Session, part_id: UUID, fields: dict) -> Optional[InventoryPart]:
        try:
            part = session.query(InventoryPart).filter(InventoryPart.id == part_id).one_or_none()
            if part is None:
                return None
            for key, value in fields.items():
                setattr(part, key, value)
            return part
        except Exception as e:
            print(f"Error in InventoryDao.updatePart. Error: {e}")
            raise e

    def deletePart(self, session: Session, part_id: UUID) -> bool:
        try:
            deleted = session.query(InventoryPart).filter(InventoryPart.id == part_id).delete()
            return deleted > 0
        except Exception as e:
            print(f"Error in InventoryDao.deletePart. Error: {e}")
            raise e

    def countLowStock(self, session: Session) -> int:
        """Parts whose stock is at or below the threshold."""
        try:
            return (
                session.query(func.count(InventoryPart.id))
                .filter(InventoryPart.stock_qty <= InventoryPart.min_threshold)
                .scalar()
            ) or 0
        except Exception as e:
            print(f"Error in InventoryDao.countLowStock. Error: {e}")
            raise e

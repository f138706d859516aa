"""
Work Order DAO

Purpose
-------
Data-access layer for `WorkOrder` and `WorkOrderPart`:
- Create, fetch, update and delete work orders
- Attach consumed parts and list them with their inventory record
- Status counters and recent activity for the dashboard
"""

from sqlalchemy.orm import Session
from sqlalchemy import desc, func
from opengmao.database.entities.work_order import WorkOrder, WorkOrderPart
from opengmao.database.entities.inventory_part import InventoryPart
from uuid import UUID
from typing import List, Optional, Tuple


class WorkOrderDao:
    """
    Data Access Object for work orders.
    """

    def createWorkOrder(self, session: Session, work_order: WorkOrder) -> WorkOrder:
        try:
            session.add(work_order)
            return work_order
        except Exception as e:
            print(f"Error in WorkOrderDao.createWorkOrder. Error: {e}")
            raise e

    def fetchWorkOrderById(self, session: Session, work_order_id: UUID) -> Optional[WorkOrder]:
        try:
            return session.query(WorkOrder).filter(WorkOrder.id == work_order_id).one_or_none()
        except Exception as e:
            print(f"Error in WorkOrderDao.fetchWorkOrderById. Error: {e}")
            raise e

    def fetchWorkOrders(self, session: Session, limit: Optional[int] = None) -> List[WorkOrder]:
        """Work orders, newest first, optionally limited."""
        try:
            query = session.query(WorkOrder).order_by(desc(WorkOrder.created_at))
            if limit is not None:
                query = query.limit(limit)
            return query.all()
        except Exception as e:
            print(f"Error in WorkOrderDao.fetchWorkOrders. Error: {e}")
            raise e

    def fetchOpenWorkOrdersByAsset(self, session: Session, asset_id: UUID) -> List[WorkOrder]:
        """Open and in-progress work orders of an asset, newest first."""
        try:
            return (
                session.query(WorkOrder)
                .filter(WorkOrder.asset_id == asset_id)
                .filter(WorkOrder.status.in_(("open", "in_progress")))
                .order_by(desc(WorkOrder.created_at))
                .all()
            )
        except Exception as e:
            print(f"Error in WorkOrderDao.fetchOpenWorkOrdersByAsset. Error: {e}")
            raise e

    def updateWorkOrder(self, session: Session, work_order_id: UUID, fields: dict) -> Optional[WorkOrder]:
        try:
            work_order = session.query(WorkOrder).filter(WorkOrder.id == work_order_id).one_or_none()
            if work_order is None:
                return None
            for key, value in fields.items():
                setattr(work_order, key, value)
            return work_order
        except Exception as e:
            print(f"Error in WorkOrderDao.updateWorkOrder. Error: {e}")
            raise e

    def deleteWorkOrder(self, session: Session, work_order_id: UUID) -> bool:
        try:
            session.query(WorkOrderPart).filter(WorkOrderPart.work_order_id == work_order_id).delete()
            deleted = session.query(WorkOrder).filter(WorkOrder.id == work_order_id).delete()
            return deleted > 0
        except Exception as e:
            print(f"Error in WorkOrderDao.deleteWorkOrder. Error: {e}")
            raise e

    def addPart(self, session: Session, work_order_part: WorkOrderPart) -> WorkOrderPart:
        try:
            session.add(work_order_part)
            return work_order_part
        except Exception as e:
            print(f"Error in WorkOrderDao.addPart. Error: {e}")
            raise e

    def fetchParts(self, session: Session, work_order_id: UUID) -> List[Tuple[WorkOrderPart, InventoryPart]]:
        """
        Parts consumed by a work order.

        Returns
        -------
        list[tuple[WorkOrderPart, InventoryPart]]
        """
        try:
            return (
                session.query(WorkOrderPart, InventoryPart)
                .join(InventoryPart, InventoryPart.id == WorkOrderPart.part_id)
                .filter(WorkOrderPart.work_order_id == work_order_id)
                .all()
            )
        except Exception as e:
            print(f"Error in WorkOrderDao.fetchParts. Error: {e}")
            raise e

    def countByStatus(self, session: Session) -> dict:
        """Map status → number of work orders."""
        try:
            rows = (
                session.query(WorkOrder.status, func.count(WorkOrder.id))
                .group_by(WorkOrder.status)
                .all()
            )
            return {status: count for status, count in rows}
        except Exception as e:
            print(f"Error in WorkOrderDao.countByStatus. Error: {e}")
            raise e

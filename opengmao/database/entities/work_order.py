"""
Work Order ORM Models
=====================

``WorkOrder``: an intervention on an asset (open → in_progress → closed).
``WorkOrderPart``: a spare part consumed by a work order.
"""

from opengmao.database.config.connection_engine import declarativeBase
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import TEXT, Integer, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from typing import Optional
import uuid
from datetime import datetime, timezone

WORK_ORDER_STATUSES = ("open", "in_progress", "closed")
WORK_ORDER_PRIORITIES = ("low", "medium", "high", "critical")


class WorkOrder(declarativeBase):
    """
    ORM model for the `work_orders` table.

    Attributes
    ----------
    description : str
        What has to be done.
    priority : str
        low, medium, high, critical.
    status : str
        open, in_progress, closed.
    asset_id : UUID | None
        Target asset.
    assigned_to : str | None
        Technician name or id.
    solution_notes : str | None
        What was done, filled when closing.
    closed_at : datetime | None
        Set when the status becomes "closed".
    """

    __tablename__ = "work_orders"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    description: Mapped[str] = mapped_column(TEXT, nullable=False)
    priority: Mapped[str] = mapped_column(TEXT, nullable=False, default="medium")
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default="open")
    asset_id: Mapped[Optional[UUID]] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey("assets.id", ondelete="SET NULL"), nullable=True
    )
    assigned_to: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    solution_notes: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __init__(self, description: str, priority: str = "medium", status: str = "open",
                 asset_id: Optional[UUID] = None, assigned_to: Optional[str] = None):
        self.id = uuid.uuid4()
        self.description = description
        self.priority = priority
        self.status = status
        self.asset_id = asset_id
        self.assigned_to = assigned_to
        self.created_at = datetime.now(timezone.utc)
        self.closed_at = datetime.now(timezone.utc) if status == "closed" else None

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "description": self.description,
            "priority": self.priority,
            "status": self.status,
            "asset_id": str(self.asset_id) if self.asset_id else None,
            "assigned_to": self.assigned_to,
            "solution_notes": self.solution_notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
        }

    def __str__(self) -> str:
        return f"WorkOrder: id:{self.id}, status: {self.status}, priority: {self.priority}"


class WorkOrderPart(declarativeBase):
    """ORM model for the `work_order_parts` table."""

    __tablename__ = "work_order_parts"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    work_order_id: Mapped[UUID] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False
    )
    part_id: Mapped[UUID] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey("parts.id", ondelete="CASCADE"), nullable=False
    )
    quantity_used: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def __init__(self, work_order_id: UUID, part_id: UUID, quantity_used: int = 1):
        self.id = uuid.uuid4()
        self.work_order_id = work_order_id
        self.part_id = part_id
        self.quantity_used = quantity_used

    def __str__(self) -> str:
        return f"WorkOrderPart: {self.quantity_used} x {self.part_id} for {self.work_order_id}"

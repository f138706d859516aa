"""
Inventory Part ORM Model
========================

A spare part held in stock. A part is "low stock" when ``stock_qty`` is at or
below ``min_threshold``.
"""

from opengmao.database.config.connection_engine import declarativeBase
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import TEXT, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from typing import Optional
import uuid
from datetime import datetime, timezone


class InventoryPart(declarativeBase):
    """ORM model for the `parts` table."""

    __tablename__ = "parts"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    reference: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    stock_qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    location: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __init__(self, name: str, reference: Optional[str] = None, stock_qty: int = 0,
                 min_threshold: int = 0, location: Optional[str] = None):
        self.id = uuid.uuid4()
        self.name = name
        self.reference = reference
        self.stock_qty = stock_qty
        self.min_threshold = min_threshold
        self.location = location
        self.created_at = datetime.now(timezone.utc)

    @property
    def is_low_stock(self) -> bool:
        return self.stock_qty <= self.min_threshold

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "reference": self.reference,
            "stock_qty": self.stock_qty,
            "min_threshold": self.min_threshold,
            "location": self.location,
            "low_stock": self.is_low_stock,
        }

    def __str__(self) -> str:
        return f"Part: {self.name} ({self.reference}) stock={self.stock_qty}"

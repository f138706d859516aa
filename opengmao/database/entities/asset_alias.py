"""
Asset Alias ORM Model
=====================

Plant-floor nicknames for an asset ("le gros compresseur", "الكومبريسور").
``alias_normalized`` stores the accent-free lowercase form used by the alias
resolver so lookups do not re-normalize every row.
"""

from opengmao.database.config.connection_engine import declarativeBase
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import TEXT, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from typing import Optional
import uuid
from datetime import datetime, timezone


class AssetAlias(declarativeBase):
    """ORM model for the `asset_aliases` table."""

    __tablename__ = "asset_aliases"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    asset_id: Mapped[UUID] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False
    )
    alias: Mapped[str] = mapped_column(TEXT, nullable=False)
    alias_normalized: Mapped[str] = mapped_column(TEXT, nullable=False)
    language: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __init__(self, asset_id: UUID, alias: str, alias_normalized: str,
                 language: Optional[str] = None, is_primary: bool = False):
        self.id = uuid.uuid4()
        self.asset_id = asset_id
        self.alias = alias
        self.alias_normalized = alias_normalized
        self.language = language
        self.is_primary = is_primary
        self.created_at = datetime.now(timezone.utc)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "asset_id": str(self.asset_id),
            "alias": self.alias,
            "alias_normalized": self.alias_normalized,
            "language": self.language,
            "is_primary": self.is_primary,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __str__(self) -> str:
        return f"Alias: {self.alias} -> asset {self.asset_id}"

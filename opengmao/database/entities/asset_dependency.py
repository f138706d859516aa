"""
Asset Dependency ORM Models
===========================

``AssetDependency``: a confirmed edge "asset_id depends on depends_on_id"
(the compressor feeds the dryer, the MCC powers the pump...).

``DependencySuggestion``: an edge proposed by the dependency extractor from a
document. It stays ``pending`` until a user approves (an ``AssetDependency`` is
created) or rejects it.
"""

from opengmao.database.config.connection_engine import declarativeBase
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import TEXT, Float, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from typing import Optional
import uuid
from datetime import datetime, timezone


class AssetDependency(declarativeBase):
    """
    ORM model for the `asset_dependencies` table.

    Attributes
    ----------
    asset_id : UUID
        The dependent asset.
    depends_on_id : UUID
        The asset it depends on (upstream).
    dependency_type : str
        feeds, powers, controls, cools, lubricates (or a raw relationship type).
    criticality : str
        critical, high, medium, low.
    source : str
        manual, ai_suggested or confirmed.
    """

    __tablename__ = "asset_dependencies"
    __table_args__ = (UniqueConstraint("asset_id", "depends_on_id", "dependency_type"),)

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    asset_id: Mapped[UUID] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False
    )
    depends_on_id: Mapped[UUID] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False
    )
    dependency_type: Mapped[str] = mapped_column(TEXT, nullable=False, default="feeds")
    criticality: Mapped[str] = mapped_column(TEXT, default="high")
    source: Mapped[str] = mapped_column(TEXT, default="manual")
    confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __init__(self, asset_id: UUID, depends_on_id: UUID, dependency_type: str = "feeds",
                 criticality: str = "high", source: str = "manual",
                 confidence: Optional[float] = None, notes: Optional[str] = None):
        self.id = uuid.uuid4()
        self.asset_id = asset_id
        self.depends_on_id = depends_on_id
        self.dependency_type = dependency_type
        self.criticality = criticality
        self.source = source
        self.confidence = confidence
        self.notes = notes
        self.created_at = datetime.now(timezone.utc)

    def __str__(self) -> str:
        return f"Dependency: {self.asset_id} -[{self.dependency_type}]-> {self.depends_on_id}"


class DependencySuggestion(declarativeBase):
    """
    ORM model for the `dependency_suggestions` table.

    Attributes
    ----------
    source_asset_id : UUID
        Asset whose document mentioned the relationship.
    target_asset_id : UUID | None
        Matched asset, None when no equipment matched the raw name.
    target_name_raw : str
        Name exactly as found in the document.
    relationship_type : str
        upstream, downstream, alternative, related, parallel.
    status : str
        pending, approved, rejected, auto_approved.
    """

    __tablename__ = "dependency_suggestions"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    source_asset_id: Mapped[UUID] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False
    )
    target_asset_id: Mapped[Optional[UUID]] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey("assets.id", ondelete="CASCADE"), nullable=True
    )
    target_name_raw: Mapped[str] = mapped_column(TEXT, nullable=False)
    relationship_type: Mapped[str] = mapped_column(TEXT, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    context_snippet: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    document_id: Mapped[Optional[UUID]] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey("asset_documents.id", ondelete="CASCADE"), nullable=True
    )
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default="pending")
    reviewed_by: Mapped[Optional[UUID]] = mapped_column(pgUUID(as_uuid=True), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __init__(self, source_asset_id: UUID, target_asset_id: Optional[UUID], target_name_raw: str,
                 relationship_type: str, confidence: float, context_snippet: Optional[str] = None,
                 document_id: Optional[UUID] = None):
        self.id = uuid.uuid4()
        self.source_asset_id = source_asset_id
        self.target_asset_id = target_asset_id
        self.target_name_raw = target_name_raw
        self.relationship_type = relationship_type
        self.confidence = confidence
        self.context_snippet = context_snippet
        self.document_id = document_id
        self.status = "pending"
        self.created_at = datetime.now(timezone.utc)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "source_asset_id": str(self.source_asset_id),
            "target_asset_id": str(self.target_asset_id) if self.target_asset_id else None,
            "target_name_raw": self.target_name_raw,
            "relationship_type": self.relationship_type,
            "confidence": self.confidence,
            "context_snippet": self.context_snippet,
            "document_id": str(self.document_id) if self.document_id else None,
            "status": self.status,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __str__(self) -> str:
        return f"Suggestion: {self.target_name_raw} ({self.relationship_type}, {self.confidence}) [{self.status}]"

"""
Asset Document ORM Model
========================

A file (manual, schematic, datasheet...) attached to an asset. The ingestion
pipeline creates the row with ``processing_status='processing'`` and completes
it with the chunk count and the AI-detected document types.

Key features
~~~~~~~~~~~~
- ``file_fingerprint``: SHA-256 of the uploaded bytes, used to reject the same
  manual being imported twice inside an organization
- ``document_type`` (single, from the classifier or the user) and
  ``document_types`` (multi-label list used to filter retrieval)
- Versioning: ``version`` label, ``is_latest`` flag, ``supersedes`` /
  ``superseded_by`` links between revisions of the same file, and
  ``archived_at`` which hides a document from listings and search
"""

from opengmao.database.config.connection_engine import declarativeBase
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import TEXT, String, Boolean, DateTime, Float, Integer, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from typing import Optional
import uuid
from datetime import datetime, timezone


class AssetDocument(declarativeBase):
    """
    ORM model for the `asset_documents` table.

    Attributes
    ----------
    id : UUID
        Primary key.
    asset_id : UUID
        Asset the document belongs to.
    file_name : str
        Original filename.
    processing_status : str
        "processing", "completed" or "failed".
    document_types : list[str]
        Multi-label classification ("manual", "electrical", ...).
    """

    __tablename__ = "asset_documents"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    asset_id: Mapped[Optional[UUID]] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey("assets.id", ondelete="CASCADE"), nullable=True
    )
    file_name: Mapped[str] = mapped_column(TEXT, nullable=False)
    file_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    file_url: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    file_fingerprint: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True, index=True)
    processing_status: Mapped[str] = mapped_column(TEXT, default="processing")
    document_type: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    document_type_confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    user_confirmed: Mapped[bool] = mapped_column(Boolean, default=False)
    document_types: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    ai_classified: Mapped[bool] = mapped_column(Boolean, default=False)
    classification_confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    total_chunks: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[Optional[str]] = mapped_column(String(50), default="1.0")
    is_latest: Mapped[bool] = mapped_column(Boolean, default=True)
    supersedes: Mapped[Optional[UUID]] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey("asset_documents.id", ondelete="SET NULL"), nullable=True
    )
    superseded_by: Mapped[Optional[UUID]] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey("asset_documents.id", ondelete="SET NULL"), nullable=True
    )
    version_notes: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    archived_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __init__(self, asset_id: UUID, file_name: str, file_size: Optional[int] = None,
                 document_type: Optional[str] = None, document_type_confidence: Optional[float] = None,
                 user_confirmed: bool = False, file_url: Optional[str] = None,
                 file_fingerprint: Optional[str] = None, document_id: Optional[UUID] = None,
                 version: str = "1.0", version_notes: Optional[str] = None):
        self.id = document_id or uuid.uuid4()
        self.asset_id = asset_id
        self.file_name = file_name
        self.file_size = file_size
        self.file_url = file_url
        self.file_fingerprint = file_fingerprint
        self.processing_status = "processing"
        self.document_type = document_type
        self.document_type_confidence = document_type_confidence
        self.user_confirmed = user_confirmed
        self.ai_classified = False
        self.version = version
        self.version_notes = version_notes
        self.is_latest = True
        self.created_at = datetime.now(timezone.utc)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "asset_id": str(self.asset_id) if self.asset_id else None,
            "file_name": self.file_name,
            "file_size": self.file_size,
            "file_url": self.file_url,
            "processing_status": self.processing_status,
            "document_type": self.document_type,
            "document_type_confidence": self.document_type_confidence,
            "user_confirmed": self.user_confirmed,
            "document_types": self.document_types or [],
            "ai_classified": self.ai_classified,
            "total_chunks": self.total_chunks,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "version": self.version,
            "is_latest": self.is_latest,
            "supersedes": str(self.supersedes) if self.supersedes else None,
            "superseded_by": str(self.superseded_by) if self.superseded_by else None,
            "version_notes": self.version_notes,
            "archived_at": self.archived_at.isoformat() if self.archived_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __str__(self) -> str:
        return f"Document: id:{self.id}, file: {self.file_name}, status: {self.processing_status}"

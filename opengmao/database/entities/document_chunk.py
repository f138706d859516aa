"""
Document Chunk ORM Model
========================

A slice of a document's text together with its embedding vector. Vectors are
stored as JSON float arrays and scored in Python by the smart search module.
"""

from opengmao.database.config.connection_engine import declarativeBase
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import TEXT, Integer, JSON, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from typing import Optional, List
import uuid
from datetime import datetime, timezone


class DocumentChunk(declarativeBase):
    """
    ORM model for the `document_chunks` table.

    Attributes
    ----------
    content : str
        Chunk text.
    chunk_index : int
        Position of the chunk in its document.
    page_number : int
        Estimated page (3000 chars per page).
    section_type : str
        Keyword-detected section (safety, maintenance, ...).
    chunk_metadata : dict
        Free metadata (source file, document type, extraction method).
    embedding : list[float]
        Embedding vector.
    """

    __tablename__ = "document_chunks"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    asset_id: Mapped[UUID] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False
    )
    document_id: Mapped[Optional[UUID]] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey("asset_documents.id", ondelete="CASCADE"), nullable=True
    )
    content: Mapped[str] = mapped_column(TEXT, nullable=False)
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)
    page_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    section_type: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    chunk_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)
    embedding: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __init__(self, asset_id: UUID, document_id: Optional[UUID], content: str, chunk_index: int,
                 page_number: Optional[int] = None, section_type: Optional[str] = None,
                 chunk_metadata: Optional[dict] = None, embedding: Optional[List[float]] = None):
        self.id = uuid.uuid4()
        self.asset_id = asset_id
        self.document_id = document_id
        self.content = content
        self.chunk_index = chunk_index
        self.page_number = page_number
        self.section_type = section_type
        self.chunk_metadata = chunk_metadata or {}
        self.embedding = embedding
        self.created_at = datetime.now(timezone.utc)

    def __str__(self) -> str:
        return f"Chunk: #{self.chunk_index} of document {self.document_id} ({len(self.content)} chars)"

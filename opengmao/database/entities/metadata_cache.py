"""
Metadata Cache ORM Model
========================

Equipment metadata extracted from a document, keyed by the SHA-256 of the
document's first 5000 characters. Entries older than 30 days are treated as
misses and purged by ``clear_expired_cache``.
"""

from opengmao.database.config.connection_engine import declarativeBase
from sqlalchemy import TEXT, Float, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from typing import Optional
from datetime import datetime, timezone


class MetadataCacheEntry(declarativeBase):
    """ORM model for the `metadata_cache` table."""

    __tablename__ = "metadata_cache"

    document_hash: Mapped[str] = mapped_column(TEXT, primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    manufacturer: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    model: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    serial_number: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    confidence: Mapped[float] = mapped_column(Float, default=0.85)
    extraction_method: Mapped[str] = mapped_column(TEXT, default="ai")
    cached_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __init__(self, document_hash: str, metadata: dict, confidence: float = 0.85,
                 extraction_method: str = "ai"):
        """
        Parameters
        ----------
        document_hash : str
            SHA-256 hex digest of the document prefix.
        metadata : dict
            name, manufacturer, model, serial_number, category, description.
        confidence : float
            Extraction confidence.
        extraction_method : str
            "regex", "ai" or "hybrid".
        """
        self.document_hash = document_hash
        self.apply(metadata)
        self.confidence = confidence
        self.extraction_method = extraction_method
        self.cached_at = datetime.now(timezone.utc)

    def apply(self, metadata: dict):
        """Copy the metadata fields onto the row."""
        self.name = metadata.get("name")
        self.manufacturer = metadata.get("manufacturer")
        self.model = metadata.get("model")
        self.serial_number = metadata.get("serial_number")
        self.category = metadata.get("category")
        self.description = metadata.get("description")

    def to_metadata(self) -> dict:
        return {
            "name": self.name,
            "manufacturer": self.manufacturer,
            "model": self.model,
            "serial_number": self.serial_number,
            "category": self.category,
            "description": self.description,
        }

    def __str__(self) -> str:
        return f"MetadataCache: {self.document_hash[:12]}... -> {self.name} ({self.extraction_method})"

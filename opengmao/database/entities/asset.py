"""
Asset ORM Model
===============

The ``Asset`` model is a piece of equipment tracked by the maintenance team
(compressor, dryer, pump, conveyor...). Besides the identification fields
entered by hand, it stores the structured output of the multi-pass manual
extraction (configurations, subsystems, electrical components, diagnostic
codes, maintenance schedule) as JSON columns.

Key features
~~~~~~~~~~~~
- UUID primary key, organization scoping, optional parent for hierarchies
- ``status`` drives the dashboard (``down`` counts as a critical asset)
- ``custom_name`` is the plant nickname matched by the equipment detector
- JSON columns hold the extraction payloads untouched
"""

from opengmao.database.config.connection_engine import declarativeBase
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import TEXT, DateTime, Float, Integer, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from typing import Optional
import uuid
from datetime import datetime, timezone

EXTRACTION_FIELDS = (
    "specifications",
    "components",
    "model_configurations",
    "integrated_subsystems",
    "electrical_components",
    "motor_protection_settings",
    "control_sequences",
    "specification_tables",
    "diagnostic_codes",
    "full_maintenance_schedule",
    "spare_parts",
    "extraction_metadata",
)
"""JSON columns filled by the multi-pass extraction pipeline."""


class Asset(declarativeBase):
    """
    ORM model for the `assets` table.

    Attributes
    ----------
    id : UUID
        Primary key.
    name : str
        Official equipment name.
    code : str
        Short plant code (e.g., "CP-01"); printed on the QR label.
    location : str
        Physical location.
    status : str
        "operational", "maintenance" or "down".
    organization_id : UUID | None
        Owning organization.
    """

    __tablename__ = "assets"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    code: Mapped[str] = mapped_column(TEXT, nullable=False, unique=True)
    location: Mapped[str] = mapped_column(TEXT, nullable=False, default="À définir")
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default="operational")
    custom_name: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    manufacturer: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    model_number: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    serial_number: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    criticality: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    level: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    parent_id: Mapped[Optional[UUID]] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey("assets.id", ondelete="SET NULL"), nullable=True
    )
    organization_id: Mapped[Optional[UUID]] = mapped_column(pgUUID(as_uuid=True), nullable=True)
    created_by: Mapped[Optional[UUID]] = mapped_column(pgUUID(as_uuid=True), nullable=True)

    specifications: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    components: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    model_configurations: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    integrated_subsystems: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    electrical_components: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    motor_protection_settings: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    control_sequences: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    specification_tables: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    diagnostic_codes: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    full_maintenance_schedule: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    spare_parts: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    extraction_metadata: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    completeness_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    extraction_confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __init__(self, name: str, code: str, location: str = "À définir", status: str = "operational",
                 organization_id: Optional[UUID] = None, created_by: Optional[UUID] = None,
                 asset_id: Optional[UUID] = None, **fields):
        """
        Initialize a new Asset.

        Parameters
        ----------
        name, code, location, status : str
            Identification fields.
        organization_id, created_by : UUID, optional
            Ownership.
        asset_id : UUID, optional
            Explicit primary key; generated when omitted.
        **fields
            Any other column (manufacturer, model_number, extraction JSON...).
        """
        self.id = asset_id or uuid.uuid4()
        self.name = name
        self.code = code
        self.location = location
        self.status = status
        self.organization_id = organization_id
        self.created_by = created_by
        self.created_at = datetime.now(timezone.utc)
        for key, value in fields.items():
            setattr(self, key, value)

    def to_dict(self, with_extraction: bool = False) -> dict:
        """Serialize the asset for API responses."""
        data = {
            "id": str(self.id),
            "name": self.name,
            "code": self.code,
            "location": self.location,
            "status": self.status,
            "custom_name": self.custom_name,
            "category": self.category,
            "manufacturer": self.manufacturer,
            "model_number": self.model_number,
            "serial_number": self.serial_number,
            "criticality": self.criticality,
            "level": self.level,
            "image_url": self.image_url,
            "parent_id": str(self.parent_id) if self.parent_id else None,
            "completeness_score": self.completeness_score,
            "extraction_confidence": self.extraction_confidence,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if with_extraction:
            for field in EXTRACTION_FIELDS:
                data[field] = getattr(self, field)
        return data

    def __str__(self) -> str:
        return f"Asset: id:{self.id}, name: {self.name}, code: {self.code}, status: {self.status}"

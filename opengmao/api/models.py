"""
Pydantic models used for request/response validation and API data contracts.

Each class defines the structure of data expected in API endpoints, ensuring
validation and automatic OpenAPI schema generation. Checks whose error message
is part of the client contract (localized 400s) are done in the routes, so the
matching fields stay optional here.
"""

from pydantic import BaseModel, Field
from typing import List, Literal, Optional

AssetStatus = Literal["operational", "down", "maintenance"]
WorkOrderPriority = Literal["low", "medium", "high", "critical"]
WorkOrderStatus = Literal["open", "in_progress", "closed"]


class UserCredentials(BaseModel):
    """
    Represents login credentials for a user.
    """
    email: str
    """The login email of the user."""
    password: str
    """The plaintext password provided for authentication."""


class UserData(BaseModel):
    """
    Represents data required to register a new user.
    """
    email: str
    """Email address of the user (also the login)."""
    password: str
    """Password chosen by the user."""
    full_name: Optional[str] = None
    """Display name."""
    role: str = "technician"
    """Role of the user (technician, manager, admin)."""
    organization_id: Optional[str] = None
    """Organization the user belongs to."""


class AssetCreate(BaseModel):
    """
    Manual creation of an asset.
    """
    name: str = Field(..., min_length=2)
    """Asset name."""
    code: str = Field(..., min_length=2)
    """Unique asset code."""
    location: str = Field(..., min_length=2)
    """Where the asset is installed."""
    status: AssetStatus = "operational"
    """Operational state."""
    category: Optional[str] = None
    manufacturer: Optional[str] = None
    model_number: Optional[str] = None
    serial_number: Optional[str] = None
    criticality: Optional[str] = None
    level: Optional[str] = None
    """Hierarchy level (site, line, subsystem, equipment, component)."""
    parent_id: Optional[str] = None
    """Parent asset in the hierarchy."""


class AssetUpdate(BaseModel):
    """
    Partial update of an asset; only the fields sent are changed.
    """
    name: Optional[str] = Field(None, min_length=2)
    code: Optional[str] = Field(None, min_length=2)
    location: Optional[str] = Field(None, min_length=2)
    status: Optional[AssetStatus] = None
    custom_name: Optional[str] = None
    category: Optional[str] = None
    manufacturer: Optional[str] = None
    model_number: Optional[str] = None
    serial_number: Optional[str] = None
    criticality: Optional[str] = None
    level: Optional[str] = None
    parent_id: Optional[str] = None


class BulkImportPayload(BaseModel):
    """
    Reviewed AI extraction sent by the import form.
    """
    main_asset: Optional[dict] = None
    """name (required), location (required), manufacturer, model_number, category, ..."""
    components: List[dict] = []
    """Components that become child assets."""
    spare_parts: List[dict] = []
    """Spare parts that become inventory rows."""
    model_configurations: Optional[list] = None
    integrated_subsystems: Optional[list] = None
    electrical_components: Optional[list] = None
    motor_protection_settings: Optional[list] = None
    control_sequences: Optional[list] = None
    specification_tables: Optional[list] = None
    diagnostic_codes: Optional[list] = None
    full_maintenance_schedule: Optional[dict] = None
    completeness_score: Optional[int] = None
    extraction_metadata: Optional[dict] = None


class WorkOrderCreate(BaseModel):
    """
    New work order.
    """
    description: str = Field(..., min_length=10)
    """What has to be done (at least 10 characters)."""
    priority: WorkOrderPriority = "medium"
    status: WorkOrderStatus = "open"
    asset_id: str = Field(..., min_length=1)
    """Asset the intervention is about."""
    assigned_to: Optional[str] = None
    """Technician in charge."""


class WorkOrderUpdate(BaseModel):
    """
    Partial update of a work order.
    """
    description: Optional[str] = Field(None, min_length=10)
    priority: Optional[WorkOrderPriority] = None
    status: Optional[WorkOrderStatus] = None
    asset_id: Optional[str] = None
    assigned_to: Optional[str] = None
    solution_notes: Optional[str] = None
    """What was done to fix the problem."""


class WorkOrderStatusUpdate(BaseModel):
    status: WorkOrderStatus


class WorkOrderPartIn(BaseModel):
    """
    Part consumed by a work order.
    """
    part_id: str
    """Inventory part."""
    quantity: int = Field(1, gt=0)
    """Units used; removed from stock."""


class PartData(BaseModel):
    """
    Inventory part, for creation and full updates.
    """
    name: str
    reference: Optional[str] = None
    """Manufacturer or internal reference."""
    stock_qty: int = 0
    """Units in stock (non-negative, checked by the route)."""
    min_threshold: int = 0
    """Restocking threshold (non-negative, checked by the route)."""
    location: Optional[str] = None


class AiExtractRequest(BaseModel):
    """
    File to run the multi-pass extraction on.
    """
    file_url: Optional[str] = None
    """URL returned by the upload endpoint."""
    file_name: Optional[str] = None
    file_type: str = "application/pdf"
    """MIME type of the file (PDF or image)."""


class SuggestDependenciesRequest(BaseModel):
    asset_id: Optional[str] = None
    """Asset whose documentation is analysed."""


class ChatRequest(BaseModel):
    """
    Question asked in the assistant about one asset.
    """
    message: Optional[str] = None
    """The current question."""
    asset_id: Optional[str] = None
    """Selected asset."""
    conversation_history: List[dict] = []
    """Previous `{role, content}` messages sent by the client."""
    use_memory: bool = False
    """Use and update the stored conversation instead of the client history."""


class TriageRequest(BaseModel):
    """
    Message sent to the triage assistant.
    """
    message: str
    conversationHistory: List[dict] = []
    """Previous `{role, content}` messages."""


class AliasCreate(BaseModel):
    alias: Optional[str] = None
    """Nickname used by technicians (2-100 characters)."""
    language: Optional[str] = None
    """fr, ar, en or darija; detected when omitted."""
    is_primary: bool = False


class DocumentTypesUpdate(BaseModel):
    document_types: Optional[List[str]] = None
    """User-confirmed document types (non-empty)."""


class SupersedeRequest(BaseModel):
    """
    Links a newer revision to the document it replaces.
    """
    new_document_id: str
    version_notes: Optional[str] = None
    """What changed in the new revision."""

"""
User ORM Model
==============

The ``AppUser`` ORM model represents a registered technician or manager. It maps
to the ``app_user`` table and carries the credentials checked at login and the
organization the user's assets belong to.

Key features
~~~~~~~~~~~~
- PostgreSQL-native UUID primary key (``id``)
- Unique email used as the login identifier
- bcrypt-hashed password
- Role (``admin``, ``technician``, ``viewer``) and organization scoping
"""

from opengmao.database.config.connection_engine import declarativeBase
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import VARCHAR, TEXT, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from typing import Optional
import uuid
from datetime import datetime, timezone


class AppUser(declarativeBase):
    """
    ORM model for the `app_user` table.

    Attributes
    ----------
    id : UUID
        Primary key.
    email : str
        Login identifier (unique).
    full_name : str | None
        Display name.
    password : str
        bcrypt hash of the password.
    role : str
        Role of the user (e.g., "admin", "technician").
    organization_id : UUID | None
        Organization the user works for; scopes assets, aliases and duplicates.
    created_at : datetime
        Creation timestamp (UTC).
    """

    __tablename__ = "app_user"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    email: Mapped[str] = mapped_column(VARCHAR(255), nullable=False, unique=True)
    full_name: Mapped[Optional[str]] = mapped_column(VARCHAR(255), nullable=True)
    password: Mapped[str] = mapped_column(TEXT, nullable=False)
    role: Mapped[str] = mapped_column(TEXT, nullable=False, default="technician")
    organization_id: Mapped[Optional[UUID]] = mapped_column(pgUUID(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __init__(self, email: str, password: str, full_name: Optional[str] = None,
                 role: str = "technician", organization_id: Optional[UUID] = None):
        """
        Initialize a new AppUser.

        Parameters
        ----------
        email : str
            Login email.
        password : str
            Already hashed password.
        full_name : str, optional
            Display name.
        role : str
            Role of the user.
        organization_id : UUID, optional
            Owning organization; a fresh one is generated when omitted.
        """
        self.id = uuid.uuid4()
        self.email = email
        self.password = password
        self.full_name = full_name
        self.role = role
        self.organization_id = organization_id or uuid.uuid4()
        self.created_at = datetime.now(timezone.utc)

    def __str__(self) -> str:
        return f"User: id:{self.id}, email: {self.email}, role: {self.role}"

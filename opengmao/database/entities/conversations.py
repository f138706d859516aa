"""
Conversation ORM Model
======================

The ``Conversation`` model groups the assistant exchanges of one user about one
asset. The chat endpoint keeps a single rolling conversation per (user, asset)
pair; older messages are trimmed by the conversation memory.

Key features
~~~~~~~~~~~~
- PostgreSQL-native UUID primary key (``id``)
- Foreign keys to the owning user and to the discussed asset
- Timezone-aware ``created_at`` / ``last_message_at`` timestamps (UTC)
"""

from opengmao.database.config.connection_engine import declarativeBase
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import ForeignKey, DateTime, TEXT
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from typing import Optional
import uuid
from datetime import datetime, timezone


class Conversation(declarativeBase):
    """
    ORM model for the `conversation` table.

    Attributes
    ----------
    id : UUID
        Primary key.
    user_id : UUID
        Owner (`app_user.id`).
    asset_id : UUID
        Asset the conversation is about (`assets.id`).
    conversation_name : str
        Title shown in the assistant sidebar.
    created_at : datetime
        Start of the conversation (UTC).
    last_message_at : datetime
        Timestamp of the latest message (UTC).
    """

    __tablename__ = "conversation"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    user_id: Mapped[UUID] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False
    )
    asset_id: Mapped[UUID] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False
    )
    conversation_name: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    last_message_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __init__(self, user_id: UUID, asset_id: UUID, conversation_name: Optional[str] = None):
        """
        Initialize a new Conversation.

        Parameters
        ----------
        user_id : UUID
            Owner of the conversation.
        asset_id : UUID
            Discussed asset.
        conversation_name : str, optional
            Title of the conversation.
        """
        now = datetime.now(timezone.utc)
        self.id = uuid.uuid4()
        self.user_id = user_id
        self.asset_id = asset_id
        self.conversation_name = conversation_name
        self.created_at = now
        self.last_message_at = now

    def __str__(self) -> str:
        return f"Conversation: id:{self.id}, user: {self.user_id}, asset: {self.asset_id}"

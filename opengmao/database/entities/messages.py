"""
ConversationMessage ORM Model
=============================

A single assistant exchange line (user question or assistant answer) inside a
``Conversation``. The detected intent of user messages is kept so the history
panel can show what the assistant understood.
"""

from opengmao.database.config.connection_engine import declarativeBase
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import ForeignKey, DateTime, TEXT
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from typing import Optional
import uuid
from datetime import datetime, timezone


class ConversationMessage(declarativeBase):
    """
    ORM model for the `message` table.

    Attributes
    ----------
    conversation_id : UUID
        Parent conversation.
    role : str
        "user" or "assistant".
    content : str
        Message text.
    intent : str | None
        Intent detected for user messages.
    created_at : datetime
        Creation time (UTC).
    """

    __tablename__ = "message"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    conversation_id: Mapped[UUID] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey("conversation.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(TEXT, nullable=False)
    content: Mapped[str] = mapped_column(TEXT, nullable=False)
    intent: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __init__(self, conversation_id: UUID, role: str, content: str,
                 intent: Optional[str] = None, created_at: Optional[datetime] = None):
        self.id = uuid.uuid4()
        self.conversation_id = conversation_id
        self.role = role
        self.content = content
        self.intent = intent
        self.created_at = created_at or datetime.now(timezone.utc)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "role": self.role,
            "content": self.content,
            "intent": self.intent,
            "timestamp": self.created_at.isoformat() if self.created_at else None,
        }

    def __str__(self) -> str:
        return f"Message: {self.role} in {self.conversation_id}: {self.content[:40]}"

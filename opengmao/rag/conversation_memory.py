"""
Conversation memory of the asset assistant.

One rolling conversation per (user, asset) pair is kept in the `conversation`
and `message` tables. Only the latest 10 messages survive and the latest 5 are
replayed to the model as context.
"""

from opengmao.database.helpers.transactionManagement import transactional
from opengmao.database.helpers.identifiers import to_uuid
from opengmao.database.daos.conversation_dao import ConversationDao
from opengmao.database.daos.message_dao import ConversationMessagesDao
from opengmao.database.entities.conversations import Conversation
from opengmao.database.entities.messages import ConversationMessage
from sqlalchemy.orm import Session
from datetime import datetime, timezone
from typing import List, Optional
import logging

logger = logging.getLogger("uvicorn")

MAX_MESSAGES = 10
MAX_CONTEXT_MESSAGES = 5


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def format_duration(start: datetime, end: datetime) -> str:
    minutes = int((_as_utc(end) - _as_utc(start)).total_seconds() // 60)
    if minutes < 1:
        return "Just started"
    if minutes == 1:
        return "1 minute"
    if minutes < 60:
        return f"{minutes} minutes"
    hours = minutes // 60
    return "1 hour" if hours == 1 else f"{hours} hours"


def format_relative_time(moment: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    minutes = int((_as_utc(now) - _as_utc(moment)).total_seconds() // 60)
    if minutes < 1:
        return "Just now"
    if minutes == 1:
        return "1 min ago"
    if minutes < 60:
        return f"{minutes} min ago"
    hours = minutes // 60
    if hours == 1:
        return "1 hour ago"
    if hours < 24:
        return f"{hours} hours ago"
    days = hours // 24
    return "Yesterday" if days == 1 else f"{days} days ago"


@transactional
def add_message(session: Session, user_id: str, asset_id: str, role: str, content: str,
                intent: Optional[str] = None) -> dict:
    """
    Append a message to the conversation of a user about an asset.

    The conversation is created on the first message. Older messages beyond
    the latest 10 are deleted.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    user_id, asset_id : str
        Conversation key.
    role : str
        "user" or "assistant".
    content : str
        Message text.
    intent : str, optional
        Detected intent of a user message.

    Returns
    -------
    dict
        The stored message.
    """
    conversation_dao = ConversationDao()
    message_dao = ConversationMessagesDao()
    conversation = conversation_dao.fetchConversationByUserAndAsset(session, to_uuid(user_id), to_uuid(asset_id))
    if conversation is None:
        conversation = conversation_dao.createConversation(
            session, Conversation(user_id=to_uuid(user_id), asset_id=to_uuid(asset_id))
        )
        logger.info(f"💬 New conversation {conversation.id}")

    message = message_dao.createMessage(
        session, ConversationMessage(conversation_id=conversation.id, role=role, content=content, intent=intent)
    )
    conversation_dao.updateConversationByDate(session, conversation.id, message.created_at)

    messages = message_dao.fetchMessagesByConversationId(session, conversation.id)
    if len(messages) > MAX_MESSAGES:
        stale = [m.id for m in messages[:len(messages) - MAX_MESSAGES]]
        message_dao.deleteMessagesByIds(session, stale)
    return message.to_dict()


@transactional
def get_messages(session: Session, user_id: str, asset_id: str) -> List[dict]:
    conversation = ConversationDao().fetchConversationByUserAndAsset(session, to_uuid(user_id), to_uuid(asset_id))
    if conversation is None:
        return []
    return [m.to_dict() for m in ConversationMessagesDao().fetchMessagesByConversationId(session, conversation.id)]


@transactional
def get_context_messages(session: Session, user_id: str, asset_id: str) -> List[dict]:
    """Latest 5 messages as `{role, content}` for the model."""
    messages = get_messages(user_id=user_id, asset_id=asset_id)
    return [{"role": m["role"], "content": m["content"]} for m in messages[-MAX_CONTEXT_MESSAGES:]]


@transactional
def clear_conversation(session: Session, user_id: str, asset_id: str) -> bool:
    conversation_dao = ConversationDao()
    conversation = conversation_dao.fetchConversationByUserAndAsset(session, to_uuid(user_id), to_uuid(asset_id))
    if conversation is None:
        return False
    ConversationMessagesDao().deleteMessagesByConversationId(session, conversation.id)
    return conversation_dao.deleteConversation(session, conversation.id)


@transactional
def get_summary(session: Session, user_id: str, asset_id: str) -> Optional[dict]:
    """
    Summary shown above the chat.

    Returns
    -------
    dict | None
        {'message_count', 'duration', 'last_message_time'}, or None when there
        is no conversation or it has no messages.
    """
    conversation = ConversationDao().fetchConversationByUserAndAsset(session, to_uuid(user_id), to_uuid(asset_id))
    if conversation is None:
        return None
    messages = ConversationMessagesDao().fetchMessagesByConversationId(session, conversation.id)
    if not messages:
        return None
    return {
        "message_count": len(messages),
        "duration": format_duration(conversation.created_at, conversation.last_message_at),
        "last_message_time": format_relative_time(conversation.last_message_at),
    }

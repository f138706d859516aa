"""
Conversation Messages DAO

Purpose
-------
Data-access layer for `ConversationMessage`:
- Message creation
- Retrieval by conversation (chronological)
- Deletion of trimmed or cleared messages

Design
------
- Requires an active SQLAlchemy `Session` provided by the caller.
- Trimming policy (how many messages to keep) lives in the conversation memory.
"""

from sqlalchemy.orm import Session
from sqlalchemy import asc
from opengmao.database.entities.messages import ConversationMessage
from uuid import UUID
from typing import List


class ConversationMessagesDao:
    """
    Data Access Object (DAO) for conversation messages.
    """

    def createMessage(self, session: Session, message: ConversationMessage) -> ConversationMessage:
        """
        Create a new message record.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        message : ConversationMessage
            Message entity instance to be added.

        Returns
        -------
        ConversationMessage
            The message object that was added.
        """
        try:
            session.add(message)
            return message
        except Exception as e:
            print(f"Error in ConversationMessagesDao.createMessage. Error Message: {e}")
            raise e

    def fetchMessagesByConversationId(self, session: Session, conversation_id: UUID) -> List[ConversationMessage]:
        """
        Fetch all messages in a conversation, oldest first.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        conversation_id : UUID
            Unique identifier of the conversation.

        Returns
        -------
        list[ConversationMessage]
        """
        try:
            return (
                session.query(ConversationMessage)
                .filter(ConversationMessage.conversation_id == conversation_id)
                .order_by(asc(ConversationMessage.created_at))
                .all()
            )
        except Exception as e:
            print(f"Error in ConversationMessagesDao.fetchMessagesByConversationId. Error Message: {e}")
            raise e

    def deleteMessagesByIds(self, session: Session, message_ids: List[UUID]) -> int:
        try:
            if not message_ids:
                return 0
            return (
                session.query(ConversationMessage)
                .filter(ConversationMessage.id.in_(message_ids))
                .delete(synchronize_session=False)
            )
        except Exception as e:
            print(f"Error in ConversationMessagesDao.deleteMessagesByIds. Error Message: {e}")
            raise e

    def deleteMessagesByConversationId(self, session: Session, conversation_id: UUID) -> int:
        try:
            return (
                session.query(ConversationMessage)
                .filter(ConversationMessage.conversation_id == conversation_id)
                .delete(synchronize_session=False)
            )
        except Exception as e:
            print(f"Error in ConversationMessagesDao.deleteMessagesByConversationId. Error Message: {e}")
            raise e

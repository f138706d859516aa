"""
Conversation DAO

Purpose
-------
Provides a thin data-access layer for the `Conversation` entity:
- Create conversations
- Fetch the rolling conversation of a user about an asset
- Touch `last_message_at`
- Delete a conversation (its messages cascade)

Design
------
- Requires an active SQLAlchemy `Session` supplied by the caller.
- Uses straightforward ORM queries (`session.query(...).filter(...)`).

Error Handling
--------------
- Methods catch generic `Exception`, print the error message, and re-raise.
"""

from sqlalchemy.orm import Session
from sqlalchemy import desc
from opengmao.database.entities.conversations import Conversation
from uuid import UUID
from typing import Optional
from datetime import datetime


class ConversationDao:
    """
    Data Access Object (DAO) for managing Conversation entities.
    """

    def createConversation(self, session: Session, conversation: Conversation) -> Conversation:
        """
        Create a new conversation record.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        conversation : Conversation
            Conversation entity instance to be added.
        """
        try:
            session.add(conversation)
            return conversation
        except Exception as e:
            print(f"Error in ConversationDao.createConversation. Error: {e}")
            raise e

    def fetchConversationByUserAndAsset(self, session: Session, user_id: UUID, asset_id: UUID) -> Optional[Conversation]:
        """
        Fetch the latest conversation of a user about an asset.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        user_id : UUID
            Owner.
        asset_id : UUID
            Discussed asset.

        Returns
        -------
        Conversation | None
        """
        try:
            return (
                session.query(Conversation)
                .filter(Conversation.user_id == user_id)
                .filter(Conversation.asset_id == asset_id)
                .order_by(desc(Conversation.last_message_at))
                .first()
            )
        except Exception as e:
            print(f"Error in ConversationDao.fetchConversationByUserAndAsset. Error: {e}")
            raise e

    def updateConversationByDate(self, session: Session, conversation_id: UUID, timestamp: datetime):
        """
        Update the last message timestamp of a conversation.

        Raises
        ------
        Exception
            If the update fails (`.one()` raises when the row does not exist).
        """
        try:
            conversation = (
                session.query(Conversation).filter(Conversation.id == conversation_id).one()
            )
            conversation.last_message_at = timestamp
        except Exception as e:
            print(f"Error in ConversationDao.updateConversationByDate. Error: {e}")
            raise e

    def deleteConversation(self, session: Session, conversation_id: UUID) -> bool:
        try:
            deleted = session.query(Conversation).filter(Conversation.id == conversation_id).delete()
            return deleted > 0
        except Exception as e:
            print(f"Error in ConversationDao.deleteConversation. Error: {e}")
            raise e

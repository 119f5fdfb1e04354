"""
Conversation model for customer chat sessions.
"""

import enum

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from .base import UUID, BaseModel, JSONType, utc_now


class ConversationStatus(str, enum.Enum):
    """Conversation lifecycle status."""

    ACTIVE = "active"
    CLOSED = "closed"
    ARCHIVED = "archived"


class Conversation(BaseModel):
    """
    Represents one customer chat session with a store.

    ``last_message_at`` only ever moves forward; it is bumped on every turn.
    Conversations are never deleted here, only moved between statuses.
    """

    __tablename__ = "conversations"

    store_id = Column(UUID(), ForeignKey("stores.id"), nullable=False, index=True)
    session_id = Column(String(255), nullable=False)
    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    status = Column(String(20), default=ConversationStatus.ACTIVE.value, nullable=False)
    started_at = Column(DateTime, default=utc_now, nullable=False)
    last_message_at = Column(DateTime, default=utc_now, nullable=False, index=True)
    # "metadata" is reserved on declarative classes
    conversation_metadata = Column("metadata", JSONType, default=dict, nullable=False)

    # Relationships
    store = relationship("Store", back_populates="conversations")
    messages = relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.created_at",
    )
    ai_interactions = relationship("AIInteraction", back_populates="conversation")

"""
Message model for chat turns.
"""

import enum

from sqlalchemy import Column, Enum, ForeignKey, Text
from sqlalchemy.orm import relationship

from .base import UUID, BaseModel, JSONType


class MessageRole(str, enum.Enum):
    """Message role enumeration."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(BaseModel):
    """
    Represents a single immutable chat message.

    Messages are ordered by ``created_at`` within their conversation.
    """

    __tablename__ = "messages"

    conversation_id = Column(UUID(), ForeignKey("conversations.id"), nullable=False, index=True)
    role = Column(
        Enum(MessageRole, name="message_role", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    content = Column(Text, nullable=False)

    # Model name, token usage, latency, referenced products, error flags
    message_metadata = Column("metadata", JSONType, default=dict, nullable=False)

    # Relationships
    conversation = relationship("Conversation", back_populates="messages")

"""
AI interaction model for auditing language model calls.
"""

from sqlalchemy import Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import UUID, BaseModel, JSONType


class AIInteraction(BaseModel):
    """
    Represents one write-once language model exchange.

    Linked one-to-one with the assistant message it produced.
    """
    __tablename__ = "ai_interactions"

    conversation_id = Column(UUID(), ForeignKey("conversations.id"), nullable=False, index=True)
    message_id = Column(UUID(), ForeignKey("messages.id"), nullable=False, unique=True)
    model = Column(String(100), nullable=False)
    prompt = Column(Text, nullable=False)
    response = Column(Text, nullable=False)
    tokens_used = Column(Integer)
    response_time = Column(Integer)  # milliseconds
    context_data = Column(JSONType, default=dict, nullable=False)  # context sizes offered

    # Relationships
    conversation = relationship("Conversation", back_populates="ai_interactions")
    message = relationship("Message")

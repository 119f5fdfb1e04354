"""Chat schemas for request/response serialization."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, EmailStr, Field

from models.conversation import ConversationStatus
from models.message import MessageRole

from .base import BaseModelSchema, BaseSchema


class ConversationCreate(BaseSchema):
    """Schema for starting a customer conversation."""

    store_id: UUID = Field(..., description="Store the widget belongs to")
    session_id: str = Field(..., min_length=1, max_length=255, description="Widget session token")
    customer_name: str | None = Field(None, max_length=255)
    customer_email: EmailStr | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ConversationStatusUpdate(BaseSchema):
    """Schema for a conversation status transition."""

    status: ConversationStatus


class ConversationResponse(BaseModelSchema):
    """Schema for conversation response."""

    store_id: UUID
    session_id: str
    customer_name: str | None = None
    customer_email: str | None = None
    status: ConversationStatus
    started_at: datetime
    last_message_at: datetime
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("conversation_metadata", "metadata"),
    )


class MessageCreate(BaseSchema):
    """Schema for posting a message over REST."""

    role: MessageRole = Field(default=MessageRole.USER, description="Message role")
    content: str = Field(..., min_length=1, max_length=10000, description="Message content")
    metadata: dict[str, Any] = Field(default_factory=dict)


class MessageResponse(BaseModelSchema):
    """Schema for a persisted message."""

    conversation_id: UUID
    role: MessageRole
    content: str
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("message_metadata", "metadata"),
    )


class ConversationDetailResponse(ConversationResponse):
    """Conversation with its ordered messages."""

    messages: list[MessageResponse] = Field(default_factory=list)


class TurnResponse(BaseSchema):
    """Result of a user turn submitted over REST."""

    conversation_id: UUID
    user_message: MessageResponse
    assistant_message: MessageResponse | None = None


class ConversationStats(BaseSchema):
    """Per-store conversation counters."""

    total: int = 0
    active: int = 0
    today: int = 0
    average_response_time: float = 0.0


class RecentConversation(ConversationResponse):
    """Conversation summary with its latest message."""

    last_message: MessageResponse | None = None


class DashboardAnalytics(BaseSchema):
    """Dashboard overview for one store."""

    total_conversations: int
    active_chats: int
    response_rate: float = Field(..., description="Percent of assistant replies that were not fallbacks")
    average_response_time: float
    products_count: int
    collections_count: int
    pages_count: int
    blog_posts_count: int
    recent_conversations: list[RecentConversation] = Field(default_factory=list)


ConversationDetailResponse.model_rebuild()
TurnResponse.model_rebuild()
RecentConversation.model_rebuild()
DashboardAnalytics.model_rebuild()

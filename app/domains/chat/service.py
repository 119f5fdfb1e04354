"""Chat service layer: conversations, messages, interaction logs and analytics."""

import logging
from datetime import datetime, time
from typing import Any
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.exceptions.chat import ConversationNotFoundError, InvalidConversationStatusError
from app.exceptions.store import StoreNotFoundError
from app.schemas.chat import (
    ConversationCreate,
    ConversationResponse,
    ConversationStats,
    DashboardAnalytics,
    MessageResponse,
    RecentConversation,
)
from app.shared.pagination import PaginationParams, paginate
from models.ai_interaction import AIInteraction
from models.blog_post import BlogPost
from models.collection import Collection
from models.conversation import Conversation, ConversationStatus
from models.message import Message, MessageRole
from models.page import Page
from models.product import Product
from models.store import Store
from models.base import utc_now


logger = logging.getLogger(__name__)

# Archived conversations are frozen.
ALLOWED_STATUS_TRANSITIONS = {
    ConversationStatus.ACTIVE: {ConversationStatus.CLOSED, ConversationStatus.ARCHIVED},
    ConversationStatus.CLOSED: {ConversationStatus.ACTIVE, ConversationStatus.ARCHIVED},
    ConversationStatus.ARCHIVED: set(),
}


class ChatService:
    """Service class for conversation persistence."""

    def __init__(self, db: AsyncSession):
        """Initialize chat service with database session.

        Args:
            db: Async database session for data operations.
        """
        self.db = db

    # Conversations

    async def create_conversation(self, data: ConversationCreate) -> Conversation:
        """Start a new conversation for a store's widget session."""
        store = await self.db.get(Store, data.store_id)
        if not store:
            raise StoreNotFoundError(f"Store {data.store_id} not found")

        now = utc_now()
        conversation = Conversation(
            store_id=data.store_id,
            session_id=data.session_id,
            customer_name=data.customer_name,
            customer_email=str(data.customer_email) if data.customer_email else None,
            status=ConversationStatus.ACTIVE.value,
            started_at=now,
            last_message_at=now,
            conversation_metadata=data.metadata,
        )
        self.db.add(conversation)
        await self.db.commit()
        await self.db.refresh(conversation)
        logger.info(f"Conversation {conversation.id} started for store {data.store_id}")
        return conversation

    async def get_conversation(self, conversation_id: UUID) -> Conversation:
        conversation = await self.db.get(Conversation, conversation_id)
        if not conversation:
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
        return conversation

    async def list_conversations(
        self, store_id: UUID | None, pagination: PaginationParams
    ) -> dict[str, Any]:
        """Conversations ordered by most recent activity."""
        query = select(Conversation).order_by(Conversation.last_message_at.desc())
        if store_id:
            query = query.where(Conversation.store_id == store_id)
        return await paginate(self.db, query, pagination, schema=ConversationResponse)

    async def update_status(self, conversation_id: UUID, status: ConversationStatus) -> Conversation:
        conversation = await self.get_conversation(conversation_id)
        current = ConversationStatus(conversation.status)
        if status == current:
            return conversation
        if status not in ALLOWED_STATUS_TRANSITIONS[current]:
            raise InvalidConversationStatusError(
                f"Cannot move conversation from {current.value} to {status.value}"
            )
        conversation.status = status.value
        await self.db.commit()
        await self.db.refresh(conversation)
        return conversation

    async def update_conversation_last_message(self, conversation_id: UUID) -> datetime:
        """Bump ``last_message_at`` to now; it never moves backwards."""
        conversation = await self.get_conversation(conversation_id)
        now = utc_now()
        if conversation.last_message_at is None or now > conversation.last_message_at:
            conversation.last_message_at = now
            await self.db.commit()
        return conversation.last_message_at

    # Messages

    async def create_message(
        self,
        conversation_id: UUID,
        role: MessageRole,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        """Append one message; the write is committed before returning."""
        await self.get_conversation(conversation_id)

        message = Message(
            conversation_id=conversation_id,
            role=role,
            content=content,
            message_metadata=metadata or {},
        )
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)
        return message

    async def get_messages(self, conversation_id: UUID) -> list[Message]:
        """All messages of a conversation, oldest first."""
        query = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_last_message(self, conversation_id: UUID) -> Message | None:
        query = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc())
            .limit(1)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def create_interaction_log(
        self,
        conversation_id: UUID,
        message_id: UUID,
        model: str,
        prompt: str,
        response: str,
        tokens_used: int | None,
        response_time: int | None,
        context_data: dict[str, Any] | None = None,
    ) -> AIInteraction:
        interaction = AIInteraction(
            conversation_id=conversation_id,
            message_id=message_id,
            model=model,
            prompt=prompt,
            response=response,
            tokens_used=tokens_used,
            response_time=response_time,
            context_data=context_data or {},
        )
        self.db.add(interaction)
        await self.db.commit()
        return interaction

    # Analytics

    async def _count(self, query) -> int:
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def _average_response_time(self, store_id: UUID) -> float:
        query = (
            select(func.avg(AIInteraction.response_time))
            .join(Conversation, AIInteraction.conversation_id == Conversation.id)
            .where(Conversation.store_id == store_id)
        )
        result = await self.db.execute(query)
        value = result.scalar()
        return float(value) if value is not None else 0.0

    async def get_conversation_stats(self, store_id: UUID) -> ConversationStats:
        start_of_day = datetime.combine(utc_now().date(), time.min)
        by_store = Conversation.store_id == store_id

        total = await self._count(select(func.count(Conversation.id)).where(by_store))
        active = await self._count(
            select(func.count(Conversation.id)).where(
                by_store, Conversation.status == ConversationStatus.ACTIVE.value
            )
        )
        today = await self._count(
            select(func.count(Conversation.id)).where(by_store, Conversation.started_at >= start_of_day)
        )
        return ConversationStats(
            total=total,
            active=active,
            today=today,
            average_response_time=await self._average_response_time(store_id),
        )

    async def get_dashboard_analytics(self, store_id: UUID, recent_limit: int = 10) -> DashboardAnalytics:
        """Store overview: totals, catalog counts, reply quality and recent activity."""
        stats = await self.get_conversation_stats(store_id)

        catalog_counts = {}
        for key, model in (
            ("products_count", Product),
            ("collections_count", Collection),
            ("pages_count", Page),
            ("blog_posts_count", BlogPost),
        ):
            catalog_counts[key] = await self._count(
                select(func.count(model.id)).where(model.store_id == store_id)
            )

        # Real replies carry an interaction log; fallbacks do not.
        assistant_messages = await self._count(
            select(func.count(Message.id))
            .join(Conversation, Message.conversation_id == Conversation.id)
            .where(Conversation.store_id == store_id, Message.role == MessageRole.ASSISTANT)
        )
        logged_replies = await self._count(
            select(func.count(AIInteraction.id))
            .join(Conversation, AIInteraction.conversation_id == Conversation.id)
            .where(Conversation.store_id == store_id)
        )
        response_rate = (
            round(logged_replies / assistant_messages * 100, 1) if assistant_messages else 100.0
        )

        recent_query = (
            select(Conversation)
            .where(Conversation.store_id == store_id)
            .order_by(Conversation.last_message_at.desc())
            .limit(recent_limit)
        )
        recent_result = await self.db.execute(recent_query)
        recent = []
        for conversation in recent_result.scalars().all():
            last_message = await self.get_last_message(conversation.id)
            summary = RecentConversation.model_validate(conversation)
            summary.last_message = MessageResponse.model_validate(last_message) if last_message else None
            recent.append(summary)

        return DashboardAnalytics(
            total_conversations=stats.total,
            active_chats=stats.active,
            response_rate=response_rate,
            average_response_time=stats.average_response_time,
            recent_conversations=recent,
            **catalog_counts,
        )

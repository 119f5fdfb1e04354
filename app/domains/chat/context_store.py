"""Context store used by the turn orchestrator.

Each operation runs in its own database session, so a turn never holds a
session open across the language model call. Database failures surface as
``ContextStoreError``; missing conversations keep their own not-found type.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import AsyncSessionLocal
from app.domains.chat.service import ChatService
from app.domains.store.service import StoreService
from app.exceptions.chat import ContextStoreError
from app.schemas.chat import ConversationResponse, MessageResponse
from app.schemas.store import BlogPostContext, PageContext, StoreContextSnapshot
from models.message import MessageRole


logger = logging.getLogger(__name__)


class ContextStore:
    """Persistence operations a chat turn needs, one session per call."""

    def __init__(self, session_factory: Callable[[], AsyncSession] = AsyncSessionLocal):
        self.session_factory = session_factory

    async def _run(self, operation: str, func):
        try:
            async with self.session_factory() as db:
                return await func(db)
        except SQLAlchemyError as e:
            logger.error(f"Context store {operation} failed: {str(e)}")
            raise ContextStoreError(f"Context store {operation} failed", operation=operation) from e

    async def get_conversation(self, conversation_id: UUID) -> ConversationResponse:
        async def op(db):
            conversation = await ChatService(db).get_conversation(conversation_id)
            return ConversationResponse.model_validate(conversation)

        return await self._run("get_conversation", op)

    async def create_message(
        self,
        conversation_id: UUID,
        role: MessageRole,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> MessageResponse:
        async def op(db):
            message = await ChatService(db).create_message(conversation_id, role, content, metadata)
            return MessageResponse.model_validate(message)

        return await self._run("create_message", op)

    async def get_messages(self, conversation_id: UUID) -> list[MessageResponse]:
        async def op(db):
            messages = await ChatService(db).get_messages(conversation_id)
            return [MessageResponse.model_validate(m) for m in messages]

        return await self._run("get_messages", op)

    async def search_store_data(self, store_id: UUID, query: str, limit: int) -> StoreContextSnapshot:
        return await self._run(
            "search_store_data",
            lambda db: StoreService(db).search_store_data(store_id, query, limit),
        )

    async def get_pages(self, store_id: UUID, limit: int) -> list[PageContext]:
        return await self._run("get_pages", lambda db: StoreService(db).get_pages(store_id, limit))

    async def get_blog_posts(self, store_id: UUID, limit: int) -> list[BlogPostContext]:
        return await self._run(
            "get_blog_posts", lambda db: StoreService(db).get_blog_posts(store_id, limit)
        )

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
    ) -> None:
        async def op(db):
            await ChatService(db).create_interaction_log(
                conversation_id=conversation_id,
                message_id=message_id,
                model=model,
                prompt=prompt,
                response=response,
                tokens_used=tokens_used,
                response_time=response_time,
                context_data=context_data,
            )

        await self._run("create_interaction_log", op)

    async def update_conversation_last_message(self, conversation_id: UUID) -> datetime:
        return await self._run(
            "update_conversation_last_message",
            lambda db: ChatService(db).update_conversation_last_message(conversation_id),
        )

"""Per-message turn pipeline.

A turn walks through ``TurnState`` in order:

    received -> user_persisted -> context_resolved -> model_invoked
             -> assistant_persisted -> broadcast -> done

Anything that goes wrong before the user message is stored rejects or fails
the turn and only the sender hears about it. Anything that goes wrong after
that point ends in ``fallback``: an apology is stored and broadcast as the
assistant reply, so every stored user message gets exactly one answer.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from starlette.websockets import WebSocket

from app.core.config import settings
from app.domains.ai.gateway import GenerationResult, LanguageModelGateway
from app.domains.ai.intent import Intent, analyze_query
from app.domains.chat.context_store import ContextStore
from app.domains.chat.hub import ConversationHub, normalize_conversation_id
from app.exceptions.chat import ConversationNotFoundError
from app.schemas.chat import ConversationResponse, MessageResponse
from app.schemas.events import ErrorEvent, NewMessageEvent
from app.schemas.store import StoreContextSnapshot
from models.message import MessageRole


logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = (
    "I apologize, but I'm experiencing some technical difficulties. "
    "Please try again in a moment, or feel free to contact our support team directly."
)
FALLBACK_ERROR_TYPE = "generation_failed"

PRODUCT_SEARCH_LIMIT = 20
POLICY_SEARCH_LIMIT = 5
POLICY_PAGE_LIMIT = 20
POLICY_BLOG_POST_LIMIT = 10
DEFAULT_SEARCH_LIMIT = 10


class TurnState(str, Enum):
    RECEIVED = "received"
    USER_PERSISTED = "user_persisted"
    CONTEXT_RESOLVED = "context_resolved"
    MODEL_INVOKED = "model_invoked"
    ASSISTANT_PERSISTED = "assistant_persisted"
    BROADCAST = "broadcast"
    DONE = "done"
    # Terminal
    FALLBACK = "fallback"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass
class Turn:
    """One user message and what became of it."""

    conversation_id: str | None
    content: str
    state: TurnState = TurnState.RECEIVED
    intent: Intent | None = None
    user_message: MessageResponse | None = None
    assistant_message: MessageResponse | None = None
    error: str | None = None
    history: list[TurnState] = field(default_factory=lambda: [TurnState.RECEIVED])

    def advance(self, state: TurnState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def answered(self) -> bool:
        return self.assistant_message is not None


def message_event(conversation_id: str, message: MessageResponse) -> dict[str, Any]:
    return NewMessageEvent(
        conversation_id=conversation_id,
        message=message.model_dump(mode="json"),
    ).to_wire()


class TurnOrchestrator:
    """Runs the turn pipeline against a hub, a context store and a gateway."""

    def __init__(
        self,
        hub: ConversationHub,
        context_store: ContextStore,
        gateway: LanguageModelGateway,
        history_limit: int | None = None,
        timeout: float | None = None,
        product_ref_limit: int | None = None,
    ):
        self.hub = hub
        self.context_store = context_store
        self.gateway = gateway
        self.history_limit = history_limit if history_limit is not None else settings.chat_history_limit
        self.timeout = timeout or settings.ai_request_timeout
        self.product_ref_limit = (
            product_ref_limit if product_ref_limit is not None else settings.chat_context_product_refs
        )
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, conversation_id: Any, content: str | None, sender: WebSocket | None = None) -> asyncio.Task:
        """Run a turn in the background so the caller can keep reading events."""
        task = asyncio.create_task(self.handle_message(conversation_id, content, sender))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every dispatched turn to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def handle_message(
        self, conversation_id: Any, content: str | None, sender: WebSocket | None = None
    ) -> Turn:
        turn = Turn(
            conversation_id=normalize_conversation_id(conversation_id),
            content=(content or "").strip(),
        )
        try:
            return await self._run(turn, sender)
        except Exception as e:
            # Nothing may escape into the connection's receive loop
            logger.exception(f"Turn for conversation {turn.conversation_id} crashed: {str(e)}")
            turn.error = str(e)
            turn.advance(TurnState.FAILED)
            return turn

    async def _run(self, turn: Turn, sender: WebSocket | None) -> Turn:
        # Validate
        if not turn.conversation_id or not turn.content:
            return await self._reject(turn, sender, "Conversation id and message content are required")
        try:
            conversation_uuid = uuid.UUID(turn.conversation_id)
        except ValueError:
            return await self._reject(turn, sender, "Conversation not found")

        # Persist the user turn
        try:
            conversation = await self.context_store.get_conversation(conversation_uuid)
            turn.user_message = await self.context_store.create_message(
                conversation_uuid, MessageRole.USER, turn.content
            )
        except ConversationNotFoundError:
            return await self._reject(turn, sender, "Conversation not found")
        except Exception as e:
            logger.error(
                f"Failed to persist user message for conversation {turn.conversation_id}: {str(e)}"
            )
            turn.error = str(e)
            turn.advance(TurnState.FAILED)
            await self._notify(sender, "Failed to process message")
            return turn
        turn.advance(TurnState.USER_PERSISTED)

        await self.hub.broadcast(turn.conversation_id, message_event(turn.conversation_id, turn.user_message))

        # Context and generation
        try:
            snapshot, history = await self.resolve_context(turn, conversation)
            turn.advance(TurnState.CONTEXT_RESOLVED)

            result = await asyncio.wait_for(
                self.gateway.generate(turn.content, snapshot, history),
                timeout=self.timeout,
            )
            turn.advance(TurnState.MODEL_INVOKED)
        except TimeoutError:
            logger.warning(
                f"Language model timed out after {self.timeout}s for conversation {turn.conversation_id}"
            )
            return await self.fallback(turn, conversation_uuid, sender, "timeout")
        except Exception as e:
            logger.error(f"Reply generation failed for conversation {turn.conversation_id}: {str(e)}")
            return await self.fallback(turn, conversation_uuid, sender, str(e))

        # Persist the assistant turn
        try:
            turn.assistant_message = await self.context_store.create_message(
                conversation_uuid,
                MessageRole.ASSISTANT,
                result.text,
                self._reply_metadata(turn, result, snapshot),
            )
        except Exception as e:
            logger.error(
                f"Failed to persist reply for conversation {turn.conversation_id}: {str(e)}"
            )
            return await self.fallback(turn, conversation_uuid, sender, str(e))
        turn.advance(TurnState.ASSISTANT_PERSISTED)

        # The reply is stored; later bookkeeping failures must not trigger a second reply
        try:
            await self.context_store.create_interaction_log(
                conversation_id=conversation_uuid,
                message_id=turn.assistant_message.id,
                model=result.model,
                prompt=f"{result.system_prompt}\n\nUser: {turn.content}",
                response=result.text,
                tokens_used=result.tokens_used,
                response_time=result.response_time_ms,
                context_data={"intent": turn.intent.value, **snapshot.counts()},
            )
        except Exception as e:
            logger.error(f"Failed to store interaction log for {turn.assistant_message.id}: {str(e)}")
        await self._touch(turn, conversation_uuid)

        await self.hub.broadcast(
            turn.conversation_id, message_event(turn.conversation_id, turn.assistant_message)
        )
        turn.advance(TurnState.BROADCAST)
        turn.advance(TurnState.DONE)
        logger.info(
            f"Turn completed for conversation {turn.conversation_id} "
            f"({turn.intent.value}, {result.tokens_used} tokens, {result.response_time_ms}ms)"
        )
        return turn

    async def resolve_context(
        self, turn: Turn, conversation: ConversationResponse
    ) -> tuple[StoreContextSnapshot, list[dict[str, str]]]:
        """Classify the message and gather the store context and recent history for it."""
        analysis = analyze_query(turn.content)
        turn.intent = analysis.intent
        store_id = conversation.store_id

        if analysis.intent == Intent.PRODUCT_SEARCH:
            snapshot = await self.context_store.search_store_data(store_id, turn.content, PRODUCT_SEARCH_LIMIT)
        elif analysis.intent == Intent.POLICY_QUESTION:
            snapshot = await self.context_store.search_store_data(store_id, turn.content, POLICY_SEARCH_LIMIT)
            pages = await self.context_store.get_pages(store_id, POLICY_PAGE_LIMIT)
            posts = await self.context_store.get_blog_posts(store_id, POLICY_BLOG_POST_LIMIT)
            snapshot = snapshot.model_copy(update={"pages": pages, "blog_posts": posts})
        else:
            snapshot = await self.context_store.search_store_data(store_id, turn.content, DEFAULT_SEARCH_LIMIT)

        messages = await self.context_store.get_messages(conversation.id)
        prior = [m for m in messages if m.id != turn.user_message.id]
        recent = prior[-self.history_limit:] if self.history_limit else []
        history = [{"role": m.role.value, "content": m.content} for m in recent]
        return snapshot, history

    async def fallback(
        self, turn: Turn, conversation_uuid: uuid.UUID, sender: WebSocket | None, reason: str
    ) -> Turn:
        """Store and broadcast the apology reply in place of a generated one."""
        turn.error = reason
        metadata = {"error": True, "errorType": FALLBACK_ERROR_TYPE}
        if turn.intent is not None:
            metadata["intent"] = turn.intent.value
        try:
            turn.assistant_message = await self.context_store.create_message(
                conversation_uuid, MessageRole.ASSISTANT, FALLBACK_MESSAGE, metadata
            )
        except Exception as e:
            logger.error(f"Failed to persist fallback for conversation {turn.conversation_id}: {str(e)}")
            turn.advance(TurnState.FAILED)
            await self._notify(sender, "Failed to process message")
            return turn

        await self._touch(turn, conversation_uuid)
        await self.hub.broadcast(
            turn.conversation_id, message_event(turn.conversation_id, turn.assistant_message)
        )
        turn.advance(TurnState.FALLBACK)
        return turn

    def _reply_metadata(
        self, turn: Turn, result: GenerationResult, snapshot: StoreContextSnapshot
    ) -> dict[str, Any]:
        return {
            "model": result.model,
            "tokensUsed": result.tokens_used,
            "responseTime": result.response_time_ms,
            "intent": turn.intent.value,
            "contextProducts": snapshot.product_refs(self.product_ref_limit),
        }

    async def _touch(self, turn: Turn, conversation_uuid: uuid.UUID) -> None:
        try:
            await self.context_store.update_conversation_last_message(conversation_uuid)
        except Exception as e:
            logger.error(f"Failed to update freshness of conversation {turn.conversation_id}: {str(e)}")

    async def _reject(self, turn: Turn, sender: WebSocket | None, reason: str) -> Turn:
        logger.warning(f"Rejected message for conversation {turn.conversation_id}: {reason}")
        turn.error = reason
        turn.advance(TurnState.REJECTED)
        await self._notify(sender, reason)
        return turn

    async def _notify(self, sender: WebSocket | None, message: str) -> None:
        if sender is not None:
            await self.hub.send(sender, ErrorEvent(message=message).to_wire())

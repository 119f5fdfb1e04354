"""Conversation API controller with FastAPI endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Path, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_db, get_hub, get_orchestrator
from app.domains.chat.hub import ConversationHub
from app.domains.chat.orchestrator import TurnOrchestrator, TurnState, message_event
from app.domains.chat.service import ChatService
from app.exceptions.base import ValidationError
from app.exceptions.chat import ConversationNotFoundError
from app.schemas.base import ResponseSchema
from app.schemas.chat import (
    ConversationCreate,
    ConversationDetailResponse,
    ConversationResponse,
    ConversationStatusUpdate,
    MessageCreate,
    MessageResponse,
    TurnResponse,
)
from app.shared.pagination import PaginationParams
from models.message import MessageRole


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/conversations", tags=["conversations"])
analytics_router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.post("/", response_model=ResponseSchema, status_code=201)
async def create_conversation(
    _request: Request,
    conversation_data: ConversationCreate = Body(...),
    db: AsyncSession = Depends(get_db),
):
    """Start a conversation for a storefront widget session."""
    service = ChatService(db)
    conversation = await service.create_conversation(conversation_data)

    return ResponseSchema(
        status="success",
        message="Conversation created successfully",
        data=ConversationResponse.model_validate(conversation).model_dump(mode="json"),
    )


@router.get("/", response_model=ResponseSchema)
async def list_conversations(
    _request: Request,
    store_id: UUID | None = Query(None, description="Filter by store"),
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Page size"),
    db: AsyncSession = Depends(get_db),
):
    """List conversations, most recently active first."""
    service = ChatService(db)
    result = await service.list_conversations(store_id, PaginationParams(page=page, size=size))
    result["items"] = [item.model_dump(mode="json") for item in result["items"]]

    return ResponseSchema(
        status="success",
        message="Conversations retrieved successfully",
        data=result,
    )


@router.get("/stats", response_model=ResponseSchema)
async def get_conversation_stats(
    _request: Request,
    store_id: UUID = Query(..., description="Store ID"),
    db: AsyncSession = Depends(get_db),
):
    """Conversation counters for one store."""
    service = ChatService(db)
    stats = await service.get_conversation_stats(store_id)

    return ResponseSchema(
        status="success",
        message="Conversation statistics retrieved successfully",
        data=stats.model_dump(),
    )


@router.get("/{conversation_id}", response_model=ResponseSchema)
async def get_conversation(
    _request: Request,
    conversation_id: UUID = Path(..., description="Conversation ID"),
    db: AsyncSession = Depends(get_db),
):
    """Get a conversation with all of its messages."""
    service = ChatService(db)
    conversation = await service.get_conversation(conversation_id)
    messages = await service.get_messages(conversation_id)

    detail = ConversationDetailResponse.model_validate(conversation)
    detail.messages = [MessageResponse.model_validate(m) for m in messages]

    return ResponseSchema(
        status="success",
        message="Conversation retrieved successfully",
        data=detail.model_dump(mode="json"),
    )


@router.get("/{conversation_id}/messages", response_model=ResponseSchema)
async def get_messages(
    _request: Request,
    conversation_id: UUID = Path(..., description="Conversation ID"),
    db: AsyncSession = Depends(get_db),
):
    """Messages of a conversation in creation order."""
    service = ChatService(db)
    await service.get_conversation(conversation_id)
    messages = await service.get_messages(conversation_id)

    return ResponseSchema(
        status="success",
        message="Messages retrieved successfully",
        data=[MessageResponse.model_validate(m).model_dump(mode="json") for m in messages],
    )


@router.patch("/{conversation_id}/status", response_model=ResponseSchema)
async def update_conversation_status(
    _request: Request,
    conversation_id: UUID = Path(..., description="Conversation ID"),
    status_update: ConversationStatusUpdate = Body(...),
    db: AsyncSession = Depends(get_db),
):
    """Move a conversation to another lifecycle status."""
    service = ChatService(db)
    conversation = await service.update_status(conversation_id, status_update.status)

    return ResponseSchema(
        status="success",
        message="Conversation status updated successfully",
        data=ConversationResponse.model_validate(conversation).model_dump(mode="json"),
    )


@router.post("/{conversation_id}/messages", response_model=ResponseSchema, status_code=201)
async def post_message(
    _request: Request,
    conversation_id: UUID = Path(..., description="Conversation ID"),
    message_data: MessageCreate = Body(...),
    db: AsyncSession = Depends(get_db),
    hub: ConversationHub = Depends(get_hub),
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
):
    """Add a message to a conversation.

    A user message runs the full reply pipeline and returns the reply with
    it; other roles are stored and broadcast as they are.
    """
    if message_data.role != MessageRole.USER:
        service = ChatService(db)
        message = await service.create_message(
            conversation_id, message_data.role, message_data.content, message_data.metadata
        )
        await service.update_conversation_last_message(conversation_id)
        response = MessageResponse.model_validate(message)
        await hub.broadcast(str(conversation_id), message_event(str(conversation_id), response))

        return ResponseSchema(
            status="success",
            message="Message created successfully",
            data=TurnResponse(conversation_id=conversation_id, user_message=response).model_dump(mode="json"),
        )

    turn = await orchestrator.handle_message(conversation_id, message_data.content)

    if turn.state == TurnState.REJECTED:
        if not turn.content:
            raise ValidationError("Message content must not be blank")
        raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
    if turn.user_message is None:
        logger.error(f"Message for conversation {conversation_id} could not be stored: {turn.error}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ResponseSchema(
                status="error",
                message="Failed to process message",
                data=None,
            ).model_dump(),
        )

    return ResponseSchema(
        status="success",
        message="Message processed successfully",
        data=TurnResponse(
            conversation_id=conversation_id,
            user_message=turn.user_message,
            assistant_message=turn.assistant_message,
        ).model_dump(mode="json"),
    )


@analytics_router.get("/dashboard", response_model=ResponseSchema)
async def get_dashboard_analytics(
    _request: Request,
    store_id: UUID = Query(..., description="Store ID"),
    db: AsyncSession = Depends(get_db),
):
    """Dashboard overview for one store."""
    service = ChatService(db)
    analytics = await service.get_dashboard_analytics(store_id)

    return ResponseSchema(
        status="success",
        message="Analytics retrieved successfully",
        data=analytics.model_dump(mode="json"),
    )

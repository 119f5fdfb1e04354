"""WebSocket endpoint for the storefront chat widget."""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from app.core.config import settings
from app.domains.chat.hub import ConversationHub
from app.domains.chat.orchestrator import TurnOrchestrator
from app.schemas.events import ErrorEvent, InboundEvent, TypingEvent


logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


async def route_event(
    websocket: WebSocket,
    raw: str,
    hub: ConversationHub,
    orchestrator: TurnOrchestrator,
) -> None:
    """Parse one inbound frame and hand it to the hub or the orchestrator."""
    try:
        event = InboundEvent.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Dropped malformed WebSocket event: {str(e)[:200]}")
        await hub.send(websocket, ErrorEvent(message="Invalid message format").to_wire())
        return

    conversation_id = event.normalized_conversation_id

    if event.type == "join_conversation":
        if not await hub.register(websocket, conversation_id):
            await hub.send(websocket, ErrorEvent(message="conversationId is required").to_wire())

    elif event.type == "send_message":
        orchestrator.dispatch(conversation_id, event.content, sender=websocket)

    elif event.type in ("typing_start", "typing_stop"):
        if conversation_id is None:
            return
        await hub.broadcast(
            conversation_id,
            TypingEvent(type=event.type, conversation_id=conversation_id).to_wire(),
            exclude=websocket,
        )


@router.websocket("/ws")
async def chat_websocket(websocket: WebSocket):
    """Duplex channel carrying join, message and typing events."""
    hub: ConversationHub = websocket.app.state.hub
    orchestrator: TurnOrchestrator = websocket.app.state.orchestrator

    if not hub.acquire_slot(settings.websocket_max_connections):
        logger.warning("Refusing WebSocket connection: connection limit reached")
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
        return

    try:
        await websocket.accept()
        logger.debug("WebSocket connection opened")
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
            raw = message.get("text")
            if raw is None:
                # Binary frames are not part of the protocol
                await hub.send(websocket, ErrorEvent(message="Invalid message format").to_wire())
                continue
            await route_event(websocket, raw, hub, orchestrator)
    except WebSocketDisconnect:
        logger.debug("WebSocket connection closed")
    finally:
        hub.release_slot()
        await hub.unregister(websocket)

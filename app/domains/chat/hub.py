"""Conversation registry and broadcast hub.

Tracks which live WebSocket connections have joined which conversation and
fans events out to them. Registrations live only in process memory; a
restart drops them and clients re-join on reconnect.

Dead connections are not purged when a send fails. ``sweep`` is the only
place registrations are reclaimed, because a dropped network link does not
always produce a close event on the server side.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any

from starlette.websockets import WebSocket, WebSocketState

from app.schemas.events import JoinedEvent


logger = logging.getLogger(__name__)


def normalize_conversation_id(value: Any) -> str | None:
    """Canonical string form of a conversation id, or None if absent.

    UUIDs are lower-cased and hyphenated so a REST caller and a WebSocket
    client addressing the same conversation land on the same key.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return str(uuid.UUID(text))
    except ValueError:
        return text


def is_writable(connection: WebSocket) -> bool:
    return (
        connection.client_state == WebSocketState.CONNECTED
        and connection.application_state == WebSocketState.CONNECTED
    )


@dataclass
class Registration:
    connection: WebSocket
    conversation_id: str


class ConversationHub:
    """Registry of (connection, conversation) pairs with best-effort fan-out."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self._registrations: dict[int, Registration] = {}
        self._conversations: dict[str, dict[int, WebSocket]] = {}
        self._open_connections = 0

    @property
    def connection_count(self) -> int:
        return len(self._registrations)

    @property
    def open_connections(self) -> int:
        """Accepted sockets, joined or not."""
        return self._open_connections

    def acquire_slot(self, limit: int) -> bool:
        """Reserve room for one more socket; False once ``limit`` are open."""
        if self._open_connections >= limit:
            return False
        self._open_connections += 1
        return True

    def release_slot(self) -> None:
        self._open_connections = max(0, self._open_connections - 1)

    def conversation_of(self, connection: WebSocket) -> str | None:
        registration = self._registrations.get(id(connection))
        return registration.conversation_id if registration else None

    def connections_for(self, conversation_id: str) -> list[WebSocket]:
        """Snapshot of the connections currently joined to a conversation."""
        key = normalize_conversation_id(conversation_id)
        return list(self._conversations.get(key, {}).values())

    def _detach(self, key: int) -> Registration | None:
        registration = self._registrations.pop(key, None)
        if registration is None:
            return None
        members = self._conversations.get(registration.conversation_id)
        if members is not None:
            members.pop(key, None)
            if not members:
                del self._conversations[registration.conversation_id]
        return registration

    async def register(self, connection: WebSocket, conversation_id: Any) -> bool:
        """Join ``connection`` to a conversation and acknowledge with ``joined``.

        A connection belongs to one conversation at a time, so any previous
        registration is replaced. A missing id is ignored.
        """
        conversation_key = normalize_conversation_id(conversation_id)
        if conversation_key is None:
            logger.warning("Ignoring join without a conversation id")
            return False

        key = id(connection)
        async with self._lock:
            previous = self._detach(key)
            self._registrations[key] = Registration(connection, conversation_key)
            self._conversations.setdefault(conversation_key, {})[key] = connection

        if previous and previous.conversation_id != conversation_key:
            logger.info(f"Connection moved from {previous.conversation_id} to {conversation_key}")
        else:
            logger.debug(f"Connection joined conversation {conversation_key}")

        await self.send(connection, JoinedEvent(conversation_id=conversation_key).to_wire())
        return True

    async def unregister(self, connection: WebSocket) -> None:
        async with self._lock:
            registration = self._detach(id(connection))
        if registration:
            logger.debug(f"Connection left conversation {registration.conversation_id}")

    async def broadcast(
        self,
        conversation_id: Any,
        event: dict[str, Any],
        exclude: WebSocket | None = None,
    ) -> int:
        """Send ``event`` to every writable connection joined to the conversation.

        Returns the number of successful deliveries. Never raises.
        """
        targets = [
            c for c in self.connections_for(conversation_id)
            if c is not exclude and is_writable(c)
        ]
        if not targets:
            return 0

        results = await asyncio.gather(
            *(self.send(c, event) for c in targets), return_exceptions=True
        )
        return sum(1 for r in results if r is True)

    async def send(self, connection: WebSocket, event: dict[str, Any]) -> bool:
        try:
            await connection.send_json(event)
            return True
        except Exception as e:
            logger.warning(f"Failed to deliver {event.get('type')} event: {e.__class__.__name__}: {str(e)}")
            return False

    async def sweep(self) -> int:
        """Unregister every connection whose transport is no longer open."""
        async with self._lock:
            stale = [key for key, r in self._registrations.items() if not is_writable(r.connection)]
            for key in stale:
                self._detach(key)

        if stale:
            logger.info(f"Sweep reclaimed {len(stale)} stale connection(s)")
        return len(stale)

    async def run_sweeper(self, interval: float) -> None:
        """Sweep every ``interval`` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"Connection sweep failed: {str(e)}")

    def stats(self) -> dict[str, int]:
        return {
            "connections": len(self._registrations),
            "conversations": len(self._conversations),
        }

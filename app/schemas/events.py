"""WebSocket event schemas.

Event envelopes use the widget's camelCase keys (``conversationId``); the
embedded message entity keeps the snake_case REST representation.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

InboundEventType = Literal["join_conversation", "send_message", "typing_start", "typing_stop"]
TypingEventType = Literal["typing_start", "typing_stop"]


class _Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class InboundEvent(_Event):
    """Any event a client may send.

    ``conversationId`` and ``content`` are optional at the parsing level so a
    well-typed but incomplete event can still be routed and then dropped.
    """

    type: InboundEventType
    conversation_id: str | None = Field(None, alias="conversationId")
    content: str | None = None

    @property
    def normalized_conversation_id(self) -> str | None:
        if self.conversation_id is None:
            return None
        value = self.conversation_id.strip()
        return value or None


class JoinedEvent(_Event):
    type: Literal["joined"] = "joined"
    conversation_id: str = Field(..., alias="conversationId")


class NewMessageEvent(_Event):
    type: Literal["new_message"] = "new_message"
    conversation_id: str = Field(..., alias="conversationId")
    message: dict[str, Any]


class TypingEvent(_Event):
    type: TypingEventType
    conversation_id: str = Field(..., alias="conversationId")


class ErrorEvent(_Event):
    type: Literal["error"] = "error"
    message: str

# ruff: noqa: D107
"""Chat-specific exceptions."""

from typing import Any

from .base import BaseAppException, NotFoundError


class ConversationNotFoundError(NotFoundError):
    """Raised when a conversation cannot be found."""

    def __init__(self, message: str = "Conversation not found"):
        super().__init__(message=message, error_code="CONVERSATION_NOT_FOUND")


class InvalidConversationStatusError(BaseAppException):
    """Raised for a disallowed conversation status transition."""

    def __init__(self, message: str = "Invalid conversation status transition"):
        super().__init__(message=message, status_code=400, error_code="INVALID_STATUS_TRANSITION")


class ContextStoreError(BaseAppException):
    """Raised when the context store cannot complete a read or write."""

    def __init__(
        self,
        message: str = "Context store operation failed",
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        if details is None:
            details = {}
        if operation:
            details["operation"] = operation
        self.operation = operation
        super().__init__(
            message=message,
            status_code=500,
            error_code="CONTEXT_STORE_ERROR",
            details=details,
        )

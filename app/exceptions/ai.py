# ruff: noqa: D107
"""AI service exceptions."""

from typing import Any

from .base import BaseAppException


class AIServiceError(BaseAppException):
    """Base exception for AI service errors."""

    def __init__(
        self,
        message: str = "AI service error occurred",
        error_code: str = "AI_SERVICE_ERROR",
        details: dict[str, Any] | None = None,
        status_code: int = 502,
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details,
        )


class GenerationFailedError(AIServiceError):
    """Raised by the language model gateway for any failed generation.

    Network errors, non-success HTTP statuses and malformed bodies all
    collapse into this one type; callers only ever take the fallback path.
    """

    def __init__(
        self,
        message: str = "Failed to generate AI response",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, "GENERATION_FAILED", details)

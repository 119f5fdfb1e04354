# ruff: noqa: D107
"""Store and Shopify integration exceptions."""

from typing import Any

from .base import BaseAppException, ConflictError, NotFoundError


class StoreNotFoundError(NotFoundError):
    """Raised when a store cannot be found."""

    def __init__(self, message: str = "Store not found"):
        super().__init__(message=message, error_code="STORE_NOT_FOUND")


class StoreAlreadyExistsError(ConflictError):
    """Raised when registering a domain that is already installed."""

    def __init__(self, message: str = "Store already exists"):
        super().__init__(message=message, error_code="STORE_ALREADY_EXISTS")


class ShopifyAPIError(BaseAppException):
    """Raised when a Shopify Admin API call fails."""

    def __init__(
        self,
        message: str = "Shopify API request failed",
        status: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        if details is None:
            details = {}
        if status is not None:
            details["status"] = status
        self.upstream_status = status
        super().__init__(
            message=message,
            status_code=502,
            error_code="SHOPIFY_API_ERROR",
            details=details,
        )

    @property
    def is_retryable(self) -> bool:
        """Rate limits, server errors and transport failures are worth another attempt."""
        status = self.upstream_status
        return status is None or status == 429 or status >= 500

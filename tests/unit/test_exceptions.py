"""
Unit tests for Exception classes.

This module contains unit tests for the application exception hierarchy
and its HTTP representation.
"""

from fastapi import HTTPException

from app.exceptions.ai import AIServiceError, GenerationFailedError
from app.exceptions.base import BaseAppException, ConflictError, NotFoundError, ValidationError
from app.exceptions.chat import (
    ContextStoreError,
    ConversationNotFoundError,
    InvalidConversationStatusError,
)
from app.exceptions.store import ShopifyAPIError, StoreAlreadyExistsError, StoreNotFoundError


class TestBaseAppException:
    """Test cases for BaseAppException."""

    def test_base_exception_default_values(self):
        """Test BaseAppException with default values."""
        exc = BaseAppException("Test error")

        assert exc.message == "Test error"
        assert exc.status_code == 500
        assert exc.error_code == "INTERNAL_ERROR"
        assert exc.details == {}
        assert isinstance(exc, HTTPException)

    def test_http_detail_format(self):
        """Test the detail payload carried to the error handler."""
        exc = BaseAppException("Boom", status_code=418, error_code="TEAPOT", details={"a": 1})
        assert exc.detail == {"message": "Boom", "error_code": "TEAPOT", "details": {"a": 1}}

    def test_generic_subclasses(self):
        """Test status codes of the generic error types."""
        assert NotFoundError().status_code == 404
        assert ConflictError().status_code == 409
        assert ValidationError().status_code == 422


class TestChatExceptions:
    """Test cases for chat exceptions."""

    def test_conversation_not_found(self):
        """Test ConversationNotFoundError."""
        exc = ConversationNotFoundError()
        assert exc.status_code == 404
        assert exc.error_code == "CONVERSATION_NOT_FOUND"
        assert isinstance(exc, NotFoundError)

    def test_invalid_status(self):
        """Test InvalidConversationStatusError."""
        exc = InvalidConversationStatusError("Cannot move conversation from archived to active")
        assert exc.status_code == 400
        assert exc.error_code == "INVALID_STATUS_TRANSITION"

    def test_context_store_error_operation(self):
        """Test the failing operation is recorded."""
        exc = ContextStoreError(operation="create_message")
        assert exc.operation == "create_message"
        assert exc.details == {"operation": "create_message"}
        assert exc.status_code == 500


class TestStoreExceptions:
    """Test cases for store exceptions."""

    def test_store_errors(self):
        """Test store not found and conflict codes."""
        assert StoreNotFoundError().error_code == "STORE_NOT_FOUND"
        assert StoreAlreadyExistsError().status_code == 409

    def test_shopify_error_status(self):
        """Test the upstream status is kept apart from the HTTP status."""
        exc = ShopifyAPIError("Shopify returned 404", status=404)
        assert exc.status_code == 502
        assert exc.upstream_status == 404
        assert exc.details == {"status": 404}

    def test_shopify_retryable(self):
        """Test which upstream failures are retryable."""
        assert ShopifyAPIError(status=429).is_retryable is True
        assert ShopifyAPIError(status=503).is_retryable is True
        assert ShopifyAPIError().is_retryable is True
        assert ShopifyAPIError(status=401).is_retryable is False


class TestAIExceptions:
    """Test cases for language model exceptions."""

    def test_generation_failed(self):
        """Test GenerationFailedError defaults."""
        exc = GenerationFailedError(details={"status": 503})
        assert isinstance(exc, AIServiceError)
        assert exc.status_code == 502
        assert exc.error_code == "GENERATION_FAILED"
        assert exc.details == {"status": 503}

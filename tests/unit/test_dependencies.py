"""
Unit tests for FastAPI dependencies.

This module covers the hub and orchestrator lookups and the Shopify webhook
signature check.
"""

import base64
import hashlib
import hmac
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException, status

from app.core.config import settings
from app.core.dependencies import get_hub, get_orchestrator, verify_shopify_webhook


def make_request(body: bytes = b"{}"):
    request = MagicMock()
    request.body = AsyncMock(return_value=body)
    return request


def sign(body: bytes, secret: str) -> str:
    return base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()


class TestStateDependencies:
    """Test cases for app state lookups."""

    def test_get_hub_and_orchestrator(self, hub, orchestrator):
        """Test both are read from the application state."""
        request = MagicMock()
        request.app.state.hub = hub
        request.app.state.orchestrator = orchestrator

        assert get_hub(request) is hub
        assert get_orchestrator(request) is orchestrator


class TestVerifyShopifyWebhook:
    """Test cases for webhook signature verification."""

    @pytest.mark.asyncio
    async def test_skipped_without_secret(self):
        """Test nothing is checked when no secret is configured."""
        request = make_request()

        with patch.object(settings, "shopify_api_secret", ""):
            await verify_shopify_webhook(request, None)

        request.body.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_valid_signature(self):
        """Test a correctly signed body passes."""
        body = b'{"id": 1}'
        with patch.object(settings, "shopify_api_secret", "shpss_test"):
            await verify_shopify_webhook(make_request(body), sign(body, "shpss_test"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("signature", [None, "", "bogus"])
    async def test_invalid_signature(self, signature):
        """Test missing or wrong signatures are rejected."""
        with patch.object(settings, "shopify_api_secret", "shpss_test"):
            with pytest.raises(HTTPException) as exc_info:
                await verify_shopify_webhook(make_request(b'{"id": 1}'), signature)

        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_signature_from_other_secret(self):
        """Test a body signed with a different secret is rejected."""
        body = b'{"id": 1}'
        with patch.object(settings, "shopify_api_secret", "shpss_test"):
            with pytest.raises(HTTPException):
                await verify_shopify_webhook(make_request(body), sign(body, "other"))

# app/core/dependencies.py
import logging

from fastapi import Header, HTTPException, Request, status

from app.core.config import settings
from app.database import get_db
from app.domains.chat.hub import ConversationHub
from app.domains.chat.orchestrator import TurnOrchestrator
from app.domains.store.shopify import verify_webhook_hmac

logger = logging.getLogger(__name__)

__all__ = ["get_db", "get_hub", "get_orchestrator", "verify_shopify_webhook"]


def get_hub(request: Request) -> ConversationHub:
    """Conversation hub created by the application lifespan."""
    return request.app.state.hub


def get_orchestrator(request: Request) -> TurnOrchestrator:
    """Turn orchestrator created by the application lifespan."""
    return request.app.state.orchestrator


async def verify_shopify_webhook(
    request: Request,
    x_shopify_hmac_sha256: str | None = Header(None),
) -> None:
    """Reject webhook calls whose HMAC does not match the app secret.

    Verification is skipped when no Shopify secret is configured (local
    development and tests).

    Raises:
        HTTPException: If the signature is missing or invalid
    """
    if not settings.shopify_api_secret:
        return

    body = await request.body()
    if not x_shopify_hmac_sha256 or not verify_webhook_hmac(
        body, x_shopify_hmac_sha256, settings.shopify_api_secret
    ):
        logger.warning("Rejected Shopify webhook with invalid signature")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook signature",
        )

"""Language model gateway for the Z.AI chat completions API."""

import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from app.core.config import settings
from app.exceptions.ai import GenerationFailedError
from app.schemas.store import StoreContextSnapshot


logger = logging.getLogger(__name__)

MAX_PROMPT_PRODUCTS = 20
MAX_PROMPT_BLOG_POSTS = 10
PRODUCT_BODY_LIMIT = 200
COLLECTION_BODY_LIMIT = 150
PAGE_BODY_LIMIT = 200
POST_BODY_LIMIT = 150
ELLIPSIS = "..."

SYSTEM_PROMPT_HEADER = """You are an AI customer support assistant for this Shopify store. Your role is to help customers find products, answer questions about policies, and provide helpful information about the store.

IMPORTANT GUIDELINES:
- You can ONLY provide information about THIS STORE and its products, collections, pages, and blog content
- Do NOT provide information about other stores, competitors, or general shopping advice
- If asked about something not in the store data, politely redirect to store-specific content
- Always be helpful, friendly, and professional
- When recommending products, include specific details like price, features, and availability
- If you reference a product, collection, or page, include its handle or ID for easy access

STORE DATA CONTEXT:"""

SYSTEM_PROMPT_FOOTER = """

When helping customers:
1. Search through the available products, collections, pages, and blog posts to find relevant information
2. Provide specific product recommendations with prices and details
3. Direct customers to relevant pages for policies, shipping info, etc.
4. If asked about something not available in the store, politely explain that you can only help with this store's products and content
5. Always maintain a helpful and professional tone
6. Include product handles or IDs when referencing specific items so customers can easily find them

Remember: You represent this specific store and should only provide information about its products and content."""


def truncate(text: str | None, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut with an ellipsis."""
    text = text or ""
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


@dataclass(frozen=True)
class GenerationResult:
    """Generated reply plus usage metrics."""

    text: str
    tokens_used: int
    response_time_ms: int
    model: str
    system_prompt: str


class LanguageModelGateway:
    """Stateless adapter from (history, user text, store context) to a reply.

    Every failure mode (transport error, non-2xx status, unexpected body) is
    raised as ``GenerationFailedError``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        timeout: float | None = None,
        history_limit: int | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.zai_api_key
        self.base_url = (base_url or settings.zai_base_url).rstrip("/")
        self.model = model or settings.zai_model
        self.max_tokens = max_tokens or settings.zai_max_tokens
        self.temperature = temperature if temperature is not None else settings.zai_temperature
        self.timeout = timeout or settings.ai_request_timeout
        self.history_limit = history_limit if history_limit is not None else settings.chat_history_limit
        self._client = client or httpx.AsyncClient(timeout=self.timeout)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def generate(
        self,
        user_text: str,
        snapshot: StoreContextSnapshot,
        history: list[dict[str, str]] | None = None,
    ) -> GenerationResult:
        """Generate a reply for ``user_text`` grounded in ``snapshot``.

        Args:
            user_text: The customer's current message
            snapshot: Store context offered to the model
            history: Prior turns as ``{"role", "content"}`` dicts, oldest first

        Returns:
            GenerationResult with reply text, total tokens and latency
        """
        if not self.is_configured:
            raise GenerationFailedError("Language model API key not configured")

        system_prompt = self.build_system_prompt(snapshot)
        payload = {
            "model": self.model,
            "messages": self.build_messages(system_prompt, history or [], user_text),
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "stream": False,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept-Language": "en-US,en",
        }

        started = time.perf_counter()
        try:
            response = await self._client.post(
                f"{self.base_url}/chat/completions", json=payload, headers=headers
            )
            response.raise_for_status()
            text, tokens_used = self._parse_response(response.json())
        except httpx.HTTPStatusError as e:
            logger.error(f"Language model API error: {e.response.status_code}")
            raise GenerationFailedError(
                details={"status": e.response.status_code}
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Language model request failed: {e.__class__.__name__}: {str(e)}")
            raise GenerationFailedError() from e
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Malformed language model response: {str(e)}")
            raise GenerationFailedError() from e

        response_time_ms = int((time.perf_counter() - started) * 1000)
        return GenerationResult(
            text=text,
            tokens_used=tokens_used,
            response_time_ms=response_time_ms,
            model=self.model,
            system_prompt=system_prompt,
        )

    def build_messages(
        self, system_prompt: str, history: list[dict[str, str]], user_text: str
    ) -> list[dict[str, str]]:
        """System instruction, then the most recent history, then the new user turn."""
        messages = [{"role": "system", "content": system_prompt}]
        recent = history[-self.history_limit:] if self.history_limit else []
        messages.extend({"role": m["role"], "content": m["content"]} for m in recent)
        messages.append({"role": "user", "content": user_text})
        return messages

    def build_system_prompt(self, snapshot: StoreContextSnapshot) -> str:
        products = snapshot.products
        collections = snapshot.collections
        pages = snapshot.pages
        posts = snapshot.blog_posts

        parts = [SYSTEM_PROMPT_HEADER, f"\n\nPRODUCTS ({len(products)} items):"]
        for product in products[:MAX_PROMPT_PRODUCTS]:
            price = f"${product.price}" if product.price else "Price not set"
            parts.append(
                f"\n- {product.title} ({product.handle}): {price}"
                f"\n  Description: {truncate(product.description, PRODUCT_BODY_LIMIT)}"
                f"\n  Type: {product.product_type or 'Not specified'}"
                f"\n  Vendor: {product.vendor or 'Not specified'}"
                f"\n  Status: {product.status}"
            )
        if len(products) > MAX_PROMPT_PRODUCTS:
            parts.append(f"\n... and {len(products) - MAX_PROMPT_PRODUCTS} more products available")

        parts.append(f"\n\nCOLLECTIONS ({len(collections)} items):")
        for collection in collections:
            parts.append(
                f"\n- {collection.title} ({collection.handle}): {collection.products_count} products"
                f"\n  Description: {truncate(collection.description, COLLECTION_BODY_LIMIT)}"
            )

        parts.append(f"\n\nPAGES ({len(pages)} items):")
        for page in pages:
            parts.append(f"\n- {page.title} ({page.handle}): {truncate(page.content, PAGE_BODY_LIMIT)}")

        parts.append(f"\n\nBLOG POSTS ({len(posts)} items):")
        for post in posts[:MAX_PROMPT_BLOG_POSTS]:
            body = post.excerpt or post.content
            parts.append(f"\n- {post.title} ({post.handle}): {truncate(body, POST_BODY_LIMIT)}")

        parts.append(SYSTEM_PROMPT_FOOTER)
        return "".join(parts)

    @staticmethod
    def _parse_response(data: dict[str, Any]) -> tuple[str, int]:
        content = data["choices"][0]["message"]["content"]
        if not isinstance(content, str) or not content.strip():
            raise ValueError("Empty completion content")
        usage = data.get("usage") or {}
        return content, int(usage.get("total_tokens") or 0)

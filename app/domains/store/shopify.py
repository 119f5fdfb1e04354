"""Shopify Admin REST API client."""

import base64
import hashlib
import hmac
import logging
import re
import secrets
from collections.abc import AsyncIterator
from typing import Any
from urllib.parse import urlencode

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.core.config import settings
from app.exceptions.store import ShopifyAPIError


logger = logging.getLogger(__name__)

LINK_NEXT_RE = re.compile(r'<([^>]+)>;\s*rel="next"')


def normalize_shop_domain(shop: str) -> str:
    """Reduce ``https://demo.myshopify.com/`` style input to ``demo``."""
    shop = shop.strip().lower()
    shop = re.sub(r"^https?://", "", shop).rstrip("/")
    return shop.replace(".myshopify.com", "")


def next_page_url(link_header: str | None) -> str | None:
    """URL of the ``rel="next"`` entry of a Shopify ``Link`` header, if any."""
    if not link_header:
        return None
    match = LINK_NEXT_RE.search(link_header)
    return match.group(1) if match else None


def verify_webhook_hmac(body: bytes, hmac_header: str, secret: str) -> bool:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("utf-8")
    return hmac.compare_digest(expected, hmac_header)


def build_auth_url(shop: str, state: str | None = None) -> str:
    """OAuth authorize URL that starts the app install for ``shop``."""
    params = {
        "client_id": settings.shopify_api_key or "",
        "scope": settings.shopify_scopes,
        "redirect_uri": settings.shopify_redirect_uri or "",
        "state": state or secrets.token_hex(16),
    }
    return f"https://{normalize_shop_domain(shop)}.myshopify.com/admin/oauth/authorize?{urlencode(params)}"


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ShopifyAPIError) and exc.is_retryable


class ShopifyClient:
    """Thin async client for one shop's Admin API.

    Usage:
        async with ShopifyClient("demo", token) as client:
            products = await client.get_products()
    """

    def __init__(
        self,
        shop: str,
        access_token: str | None = None,
        client: httpx.AsyncClient | None = None,
        api_version: str | None = None,
        page_size: int | None = None,
    ):
        self.shop = normalize_shop_domain(shop)
        self.access_token = access_token
        self.api_version = api_version or settings.shopify_api_version
        self.page_size = page_size or settings.shopify_page_size
        self.base_url = f"https://{self.shop}.myshopify.com"
        self.admin_url = f"{self.base_url}/admin/api/{self.api_version}"
        self._client = client or httpx.AsyncClient(timeout=settings.shopify_request_timeout)

    async def __aenter__(self) -> "ShopifyClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.access_token:
            headers["X-Shopify-Access-Token"] = self.access_token
        return headers

    @retry(
        retry=retry_if_exception(_is_retryable),
        stop=stop_after_attempt(settings.shopify_max_retry_attempts),
        wait=wait_exponential(
            multiplier=settings.shopify_retry_backoff_factor,
            min=settings.shopify_retry_min_wait,
            max=settings.shopify_retry_max_wait,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            raise ShopifyAPIError(f"Shopify request to {url} failed: {e.__class__.__name__}") from e

        if response.status_code >= 400:
            raise ShopifyAPIError(
                f"Shopify returned {response.status_code} for {url}",
                status=response.status_code,
            )
        return response

    async def iter_pages(
        self, resource: str, key: str, params: dict[str, Any] | None = None
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield each page of ``resource``, following ``Link`` cursors."""
        url: str | None = f"{self.admin_url}/{resource}.json"
        query: dict[str, Any] | None = {"limit": self.page_size, **(params or {})}
        while url:
            response = await self._request("GET", url, params=query)
            yield response.json().get(key) or []
            # The next link already carries limit and page_info
            url = next_page_url(response.headers.get("Link"))
            query = None

    async def fetch_all(self, resource: str, key: str) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        async for page in self.iter_pages(resource, key):
            items.extend(page)
        return items

    async def get_products(self) -> list[dict[str, Any]]:
        return await self.fetch_all("products", "products")

    async def get_collections(self) -> list[dict[str, Any]]:
        """Custom and smart collections together."""
        custom = await self.fetch_all("custom_collections", "custom_collections")
        smart = await self.fetch_all("smart_collections", "smart_collections")
        return custom + smart

    async def get_pages(self) -> list[dict[str, Any]]:
        return await self.fetch_all("pages", "pages")

    async def get_blogs(self) -> list[dict[str, Any]]:
        return await self.fetch_all("blogs", "blogs")

    async def get_articles(self, blog_id: str | int) -> list[dict[str, Any]]:
        return await self.fetch_all(f"blogs/{blog_id}/articles", "articles")

    async def get_shop(self) -> dict[str, Any]:
        response = await self._request("GET", f"{self.admin_url}/shop.json")
        return response.json()["shop"]

    async def exchange_code_for_token(self, code: str) -> str:
        """Trade an OAuth authorization code for a permanent access token."""
        response = await self._request(
            "POST",
            f"{self.base_url}/admin/oauth/access_token",
            json={
                "client_id": settings.shopify_api_key,
                "client_secret": settings.shopify_api_secret,
                "code": code,
            },
        )
        token = response.json().get("access_token")
        if not token:
            raise ShopifyAPIError("Shopify did not return an access token", status=response.status_code)
        self.access_token = token
        return token

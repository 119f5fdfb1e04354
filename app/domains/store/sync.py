"""Catalog synchronisation from Shopify into the local store tables."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.domains.store.service import StoreService
from app.domains.store.shopify import ShopifyClient
from app.exceptions.store import ShopifyAPIError
from app.schemas.store import SyncResult
from models.store import Store


logger = logging.getLogger(__name__)


def _split_tags(tags: str | None) -> list[str]:
    if not tags:
        return []
    return [tag.strip() for tag in tags.split(",") if tag.strip()]


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


def product_row(data: dict[str, Any]) -> dict[str, Any]:
    """Map a Shopify product payload onto ``Product`` columns."""
    variants = data.get("variants") or []
    first_variant = variants[0] if variants else {}
    return {
        "shopify_product_id": str(data["id"]),
        "title": data.get("title") or "",
        "description": data.get("body_html"),
        "handle": data.get("handle") or "",
        "product_type": data.get("product_type"),
        "vendor": data.get("vendor"),
        "tags": _split_tags(data.get("tags")),
        "price": first_variant.get("price") or "0.00",
        "compare_at_price": first_variant.get("compare_at_price"),
        "images": data.get("images") or [],
        "variants": variants,
        "options": data.get("options") or [],
        "status": data.get("status") or "active",
    }


def collection_row(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "shopify_collection_id": str(data["id"]),
        "title": data.get("title") or "",
        "description": data.get("body_html"),
        "handle": data.get("handle") or "",
        "image": data.get("image"),
        "products_count": data.get("products_count") or 0,
    }


def page_row(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "shopify_page_id": str(data["id"]),
        "title": data.get("title") or "",
        "content": data.get("body_html"),
        "handle": data.get("handle") or "",
        "status": "published" if data.get("published_at") else "draft",
    }


def article_row(blog_id: str | int, data: dict[str, Any]) -> dict[str, Any]:
    published_at = data.get("published_at")
    return {
        "shopify_blog_id": str(blog_id),
        "shopify_article_id": str(data["id"]),
        "title": data.get("title") or "",
        "content": data.get("body_html") or data.get("content"),
        "excerpt": data.get("summary_html") or data.get("excerpt"),
        "handle": data.get("handle") or "",
        "tags": _split_tags(data.get("tags")),
        "status": "published" if published_at else "draft",
        "published_at": _parse_timestamp(published_at),
    }


class StoreSyncService:
    """Pulls a store's catalog from Shopify and upserts it locally."""

    def __init__(self, db: AsyncSession, client_factory: Callable[..., ShopifyClient] = ShopifyClient):
        self.db = db
        self.store_service = StoreService(db)
        self.client_factory = client_factory

    async def sync_store(self, store: Store) -> SyncResult:
        """Full catalog sync for one store.

        A failing blog is skipped; any other Shopify error aborts the sync
        and leaves ``last_sync_at`` untouched.
        """
        logger.info(f"Starting catalog sync for store {store.shopify_domain}")
        async with self.client_factory(store.shopify_domain, store.access_token) as client:
            products = [product_row(p) for p in await client.get_products()]
            collections = [collection_row(c) for c in await client.get_collections()]
            pages = [page_row(p) for p in await client.get_pages()]

            articles = []
            for blog in await client.get_blogs():
                try:
                    articles.extend(article_row(blog["id"], a) for a in await client.get_articles(blog["id"]))
                except ShopifyAPIError as e:
                    logger.error(f"Skipping blog {blog['id']} of {store.shopify_domain}: {e.message}")

        store_id = store.id
        result = SyncResult(
            store_id=store_id,
            products=await self.store_service.upsert_products(store_id, products),
            collections=await self.store_service.upsert_collections(store_id, collections),
            pages=await self.store_service.upsert_pages(store_id, pages),
            blog_posts=await self.store_service.upsert_blog_posts(store_id, articles),
            synced_at=(await self.store_service.mark_synced(store_id)).last_sync_at,
        )
        logger.info(
            f"Catalog sync finished for {store.shopify_domain}: {result.products} products, "
            f"{result.collections} collections, {result.pages} pages, {result.blog_posts} posts"
        )
        return result

    async def sync_store_by_id(self, store_id) -> SyncResult:
        store = await self.store_service.get_store(store_id)
        return await self.sync_store(store)

    async def sync_all_stores(self) -> list[SyncResult]:
        """Sync every active store; one store's failure does not stop the rest."""
        results = []
        for store in await self.store_service.get_active_stores():
            try:
                results.append(await self.sync_store(store))
            except ShopifyAPIError as e:
                logger.error(f"Catalog sync failed for {store.shopify_domain}: {e.message}")
        return results

"""Unit tests for catalog synchronisation."""

from datetime import datetime

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.domains.store.shopify import ShopifyClient
from app.domains.store.sync import (
    StoreSyncService,
    article_row,
    collection_row,
    page_row,
    product_row,
)
from app.exceptions.store import ShopifyAPIError
from models import BlogPost, Page, Product, Store

SHOPIFY_DATA = {
    "products": {
        "products": [
            {
                "id": 111,
                "title": "Sonic Buds Wireless Headphones",
                "body_html": "<p>Bluetooth earbuds</p>",
                "handle": "sonic-buds",
                "product_type": "Headphones",
                "vendor": "Sonic",
                "tags": "audio, wireless",
                "variants": [{"id": 1, "price": "39.99", "compare_at_price": "49.99"}],
                "options": [{"name": "Color"}],
                "images": [],
                "status": "active",
            }
        ]
    },
    "custom_collections": {"custom_collections": [{"id": 201, "title": "Audio", "handle": "audio"}]},
    "smart_collections": {"smart_collections": [{"id": 202, "title": "Sale", "handle": "sale", "products_count": 4}]},
    "pages": {
        "pages": [
            {"id": 301, "title": "Refund Policy", "handle": "refund-policy", "body_html": "30 days",
             "published_at": "2024-01-01T00:00:00Z"},
        ]
    },
    "blogs": {"blogs": [{"id": 401, "title": "News"}, {"id": 402, "title": "Broken"}]},
    "blogs/401/articles": {
        "articles": [
            {"id": 501, "title": "Launch", "handle": "launch", "body_html": "We launched",
             "summary_html": "Short", "tags": "", "published_at": "2024-02-01T10:00:00-05:00"},
        ]
    },
}


def shopify_handler(request: httpx.Request) -> httpx.Response:
    resource = request.url.path.split("/admin/api/2023-10/")[1].removesuffix(".json")
    if resource == "blogs/402/articles":
        return httpx.Response(404)
    return httpx.Response(200, json=SHOPIFY_DATA[resource])


def client_factory(handler=shopify_handler):
    def factory(shop, access_token):
        return ShopifyClient(
            shop,
            access_token,
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            api_version="2023-10",
        )

    return factory


class TestRowMappers:
    """Test cases for the Shopify payload mappers."""

    def test_product_row(self):
        """Test the first variant supplies the price."""
        row = product_row(SHOPIFY_DATA["products"]["products"][0])
        assert row["shopify_product_id"] == "111"
        assert row["price"] == "39.99"
        assert row["compare_at_price"] == "49.99"
        assert row["tags"] == ["audio", "wireless"]
        assert row["description"] == "<p>Bluetooth earbuds</p>"

    def test_product_row_without_variants(self):
        """Test a product without variants gets a zero price."""
        row = product_row({"id": 1, "title": "Gift card", "handle": "gift"})
        assert row["price"] == "0.00"
        assert row["tags"] == []
        assert row["status"] == "active"

    def test_collection_row(self):
        """Test collection mapping defaults the product count."""
        assert collection_row({"id": 5, "title": "Audio", "handle": "audio"})["products_count"] == 0

    def test_page_row_status(self):
        """Test unpublished pages are drafts."""
        assert page_row({"id": 1, "title": "T", "handle": "t"})["status"] == "draft"
        assert page_row({"id": 1, "title": "T", "handle": "t", "published_at": "2024-01-01"})["status"] == "published"

    def test_article_row_normalizes_timestamp(self):
        """Test published timestamps become naive UTC."""
        row = article_row(401, SHOPIFY_DATA["blogs/401/articles"]["articles"][0])
        assert row["shopify_blog_id"] == "401"
        assert row["excerpt"] == "Short"
        assert row["published_at"] == datetime(2024, 2, 1, 15, 0, 0)


@pytest.mark.asyncio
class TestStoreSyncService:
    """Test cases for StoreSyncService."""

    async def test_sync_store(self, test_db: AsyncSession, test_store):
        """Test a full sync writes every resource and skips a failing blog."""
        service = StoreSyncService(test_db, client_factory=client_factory())

        result = await service.sync_store(test_store)

        assert result.products == 1
        assert result.collections == 2
        assert result.pages == 1
        assert result.blog_posts == 1
        assert result.synced_at is not None

        product = (await test_db.execute(select(Product))).scalar_one()
        assert product.handle == "sonic-buds"
        page = (await test_db.execute(select(Page))).scalar_one()
        assert page.status == "published"
        post = (await test_db.execute(select(BlogPost))).scalar_one()
        assert post.shopify_article_id == "501"

        store = await test_db.get(Store, test_store.id)
        assert store.last_sync_at is not None

    async def test_resync_is_idempotent(self, test_db: AsyncSession, test_store):
        """Test syncing twice does not duplicate rows."""
        service = StoreSyncService(test_db, client_factory=client_factory())
        await service.sync_store(test_store)
        await service.sync_store(test_store)

        products = (await test_db.execute(select(Product))).scalars().all()
        assert len(products) == 1

    async def test_sync_failure_leaves_store_unsynced(self, test_db: AsyncSession, test_store):
        """Test a failing product fetch aborts the sync."""
        service = StoreSyncService(
            test_db, client_factory=client_factory(lambda request: httpx.Response(401))
        )

        with pytest.raises(ShopifyAPIError):
            await service.sync_store(test_store)

        store = await test_db.get(Store, test_store.id)
        assert store.last_sync_at is None

    async def test_sync_all_continues_past_failures(self, test_db: AsyncSession, test_store):
        """Test one failing store does not stop the others."""
        broken = Store(
            shopify_domain="broken-store",
            shopify_store_id="1002",
            store_name="Broken",
            access_token="shpat_revoked",
        )
        test_db.add(broken)
        await test_db.commit()

        def handler(request):
            if request.url.host == "broken-store.myshopify.com":
                return httpx.Response(401)
            return shopify_handler(request)

        results = await StoreSyncService(test_db, client_factory=client_factory(handler)).sync_all_stores()

        assert [r.store_id for r in results] == [test_store.id]

    async def test_sync_store_by_id(self, test_db: AsyncSession, test_store):
        """Test syncing by store id."""
        result = await StoreSyncService(test_db, client_factory=client_factory()).sync_store_by_id(test_store.id)
        assert result.store_id == test_store.id

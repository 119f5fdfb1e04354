"""Store service layer: installed shops, cached catalog and context search."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.domains.ai.intent import extract_keywords
from app.exceptions.store import StoreAlreadyExistsError, StoreNotFoundError
from app.schemas.store import (
    BlogPostContext,
    CollectionContext,
    PageContext,
    ProductContext,
    ResourceSyncStatus,
    StoreContextSnapshot,
    StoreCreate,
    StoreSyncStatus,
    WidgetSettingsUpdate,
)
from models.base import utc_now
from models.blog_post import BlogPost
from models.collection import Collection
from models.page import Page
from models.product import Product
from models.store import Store


logger = logging.getLogger(__name__)

# Columns matched by the catalog keyword search, per entity.
SEARCH_COLUMNS = {
    Product: (Product.title, Product.description, Product.product_type, Product.vendor),
    Collection: (Collection.title, Collection.description),
    Page: (Page.title, Page.content),
    BlogPost: (BlogPost.title, BlogPost.content, BlogPost.excerpt),
}

SEARCH_KEYWORD_LIMIT = 8


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so a keyword only matches itself."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class StoreService:
    """Service class for store and catalog operations."""

    def __init__(self, db: AsyncSession):
        """Initialize store service with database session.

        Args:
            db: Async database session for data operations.
        """
        self.db = db

    # Stores

    async def create_store(self, data: StoreCreate) -> Store:
        existing = await self.get_store_by_domain(data.shopify_domain)
        if existing:
            raise StoreAlreadyExistsError(f"Store {data.shopify_domain} is already installed")

        store = Store(
            shopify_domain=data.shopify_domain,
            shopify_store_id=data.shopify_store_id,
            store_name=data.store_name,
            access_token=data.access_token,
            settings=data.settings,
            installed_at=utc_now(),
        )
        self.db.add(store)
        await self.db.commit()
        await self.db.refresh(store)
        logger.info(f"Store {store.shopify_domain} registered with id {store.id}")
        return store

    async def install_store(
        self,
        shopify_domain: str,
        shopify_store_id: str,
        store_name: str,
        access_token: str,
        settings: dict[str, Any] | None = None,
    ) -> Store:
        """Create the store on first install, or refresh token and reactivate it."""
        store = await self.get_store_by_domain(shopify_domain)
        if store is None:
            return await self.create_store(
                StoreCreate(
                    shopify_domain=shopify_domain,
                    shopify_store_id=shopify_store_id,
                    store_name=store_name,
                    access_token=access_token,
                    settings=settings or {},
                )
            )

        store.access_token = access_token
        store.store_name = store_name
        store.is_active = True
        store.settings = {**(store.settings or {}), **(settings or {})}
        await self.db.commit()
        await self.db.refresh(store)
        logger.info(f"Store {store.shopify_domain} reinstalled")
        return store

    async def get_store(self, store_id: UUID) -> Store:
        store = await self.db.get(Store, store_id)
        if not store:
            raise StoreNotFoundError(f"Store {store_id} not found")
        return store

    async def get_store_by_domain(self, shopify_domain: str) -> Store | None:
        domain = shopify_domain.strip().lower().replace(".myshopify.com", "")
        result = await self.db.execute(select(Store).where(Store.shopify_domain == domain))
        return result.scalar_one_or_none()

    async def get_active_stores(self) -> list[Store]:
        result = await self.db.execute(select(Store).where(Store.is_active.is_(True)))
        return list(result.scalars().all())

    async def deactivate_store(self, shopify_domain: str) -> Store | None:
        """Mark a store inactive after the app is uninstalled."""
        store = await self.get_store_by_domain(shopify_domain)
        if store is None:
            logger.warning(f"Uninstall received for unknown store {shopify_domain}")
            return None
        store.is_active = False
        await self.db.commit()
        logger.info(f"Store {store.shopify_domain} deactivated")
        return store

    async def update_widget_settings(self, store_id: UUID, data: WidgetSettingsUpdate) -> Store:
        store = await self.get_store(store_id)
        changes = data.model_dump(exclude_unset=True, mode="json")
        # Reassign so the JSON column is flagged dirty
        store.settings = {**(store.settings or {}), **changes}
        await self.db.commit()
        await self.db.refresh(store)
        return store

    async def mark_synced(self, store_id: UUID) -> Store:
        store = await self.get_store(store_id)
        store.last_sync_at = utc_now()
        await self.db.commit()
        return store

    # Catalog writes

    async def _upsert(self, model, key_field: str, store_id: UUID, rows: list[dict[str, Any]]) -> int:
        if not rows:
            return 0
        key_column = getattr(model, key_field)
        keys = [row[key_field] for row in rows]
        result = await self.db.execute(
            select(model).where(model.store_id == store_id, key_column.in_(keys))
        )
        existing = {getattr(item, key_field): item for item in result.scalars().all()}

        for row in rows:
            item = existing.get(row[key_field])
            if item is None:
                item = model(store_id=store_id, **row)
                self.db.add(item)
                existing[row[key_field]] = item
            else:
                for field, value in row.items():
                    setattr(item, field, value)
        await self.db.commit()
        return len(rows)

    async def upsert_products(self, store_id: UUID, rows: list[dict[str, Any]]) -> int:
        return await self._upsert(Product, "shopify_product_id", store_id, rows)

    async def upsert_collections(self, store_id: UUID, rows: list[dict[str, Any]]) -> int:
        return await self._upsert(Collection, "shopify_collection_id", store_id, rows)

    async def upsert_pages(self, store_id: UUID, rows: list[dict[str, Any]]) -> int:
        return await self._upsert(Page, "shopify_page_id", store_id, rows)

    async def upsert_blog_posts(self, store_id: UUID, rows: list[dict[str, Any]]) -> int:
        return await self._upsert(BlogPost, "shopify_article_id", store_id, rows)

    # Catalog reads

    async def _fetch(self, model, store_id: UUID, limit: int, keywords: list[str] | None = None):
        query = select(model).where(model.store_id == store_id)
        if keywords:
            query = query.where(
                or_(
                    *(
                        column.ilike(f"%{escape_like(keyword)}%", escape="\\")
                        for keyword in keywords
                        for column in SEARCH_COLUMNS[model]
                    )
                )
            )
        query = query.order_by(model.updated_at.desc()).limit(limit)
        result = await self.db.execute(query)
        return result.scalars().all()

    async def get_pages(self, store_id: UUID, limit: int = 20) -> list[PageContext]:
        return [PageContext.model_validate(p) for p in await self._fetch(Page, store_id, limit)]

    async def get_blog_posts(self, store_id: UUID, limit: int = 10) -> list[BlogPostContext]:
        return [BlogPostContext.model_validate(p) for p in await self._fetch(BlogPost, store_id, limit)]

    async def search_store_data(self, store_id: UUID, query: str, limit: int = 10) -> StoreContextSnapshot:
        """Catalog items matching any keyword of ``query``, up to ``limit`` per kind.

        A query with no usable keywords returns the most recently updated items.
        """
        keywords = extract_keywords(query, limit=SEARCH_KEYWORD_LIMIT)
        return StoreContextSnapshot(
            products=[
                ProductContext.model_validate(p)
                for p in await self._fetch(Product, store_id, limit, keywords)
            ],
            collections=[
                CollectionContext.model_validate(c)
                for c in await self._fetch(Collection, store_id, limit, keywords)
            ],
            pages=[
                PageContext.model_validate(p)
                for p in await self._fetch(Page, store_id, limit, keywords)
            ],
            blog_posts=[
                BlogPostContext.model_validate(b)
                for b in await self._fetch(BlogPost, store_id, limit, keywords)
            ],
        )

    async def count_catalog(self, store_id: UUID) -> dict[str, int]:
        counts = {}
        for key, model in (
            ("products", Product),
            ("collections", Collection),
            ("pages", Page),
            ("blog_posts", BlogPost),
        ):
            result = await self.db.execute(
                select(func.count(model.id)).where(model.store_id == store_id)
            )
            counts[key] = result.scalar() or 0
        return counts

    async def get_sync_status(self, store_id: UUID) -> StoreSyncStatus:
        store = await self.get_store(store_id)
        counts = await self.count_catalog(store_id)
        status = "synced" if store.last_sync_at else "pending"
        return StoreSyncStatus(
            **{
                key: ResourceSyncStatus(count=count, last_sync=store.last_sync_at, status=status)
                for key, count in counts.items()
            }
        )

"""Store, catalog and context snapshot schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field, field_validator

from app.core.config import WidgetPositionEnum

from .base import BaseModelSchema, BaseSchema


class StoreCreate(BaseSchema):
    """Schema for registering a store directly (outside the OAuth install)."""

    shopify_domain: str = Field(..., min_length=1, max_length=255)
    shopify_store_id: str = Field(..., min_length=1, max_length=64)
    store_name: str = Field(..., min_length=1, max_length=255)
    access_token: str = Field(..., min_length=1)
    settings: dict[str, Any] = Field(default_factory=dict)

    @field_validator("shopify_domain")
    @classmethod
    def strip_myshopify_suffix(cls, v: str) -> str:
        return v.strip().lower().replace(".myshopify.com", "")


class StoreResponse(BaseModelSchema):
    """Store as exposed over the API; the access token never leaves the server."""

    shopify_domain: str
    shopify_store_id: str
    store_name: str
    is_active: bool
    installed_at: datetime
    last_sync_at: datetime | None = None
    settings: dict[str, Any] = Field(default_factory=dict)


class WidgetSettingsUpdate(BaseSchema):
    """Widget appearance settings stored on the store."""

    widget_color: str | None = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    widget_position: WidgetPositionEnum | None = None
    enabled_pages: list[str] | None = None


class ResourceSyncStatus(BaseSchema):
    count: int
    last_sync: datetime | None = None
    status: str = "synced"


class StoreSyncStatus(BaseSchema):
    """Per-resource counts and sync freshness."""

    products: ResourceSyncStatus
    collections: ResourceSyncStatus
    pages: ResourceSyncStatus
    blog_posts: ResourceSyncStatus


class SyncResult(BaseSchema):
    """Counts written by one catalog sync."""

    store_id: UUID
    products: int = 0
    collections: int = 0
    pages: int = 0
    blog_posts: int = 0
    synced_at: datetime


# Context snapshot items: only the fields the prompt summarises


class ProductContext(BaseSchema):
    id: UUID
    title: str
    handle: str
    price: str | None = None
    description: str | None = None
    product_type: str | None = None
    vendor: str | None = None
    status: str = "active"


class CollectionContext(BaseSchema):
    id: UUID
    title: str
    handle: str
    products_count: int = 0
    description: str | None = None


class PageContext(BaseSchema):
    id: UUID
    title: str
    handle: str
    content: str | None = None


class BlogPostContext(BaseSchema):
    id: UUID
    title: str
    handle: str
    excerpt: str | None = None
    content: str | None = None


class StoreContextSnapshot(BaseSchema):
    """Bounded slice of catalog data offered to the model for one turn."""

    products: list[ProductContext] = Field(default_factory=list)
    collections: list[CollectionContext] = Field(default_factory=list)
    pages: list[PageContext] = Field(default_factory=list)
    blog_posts: list[BlogPostContext] = Field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {
            "products_count": len(self.products),
            "collections_count": len(self.collections),
            "pages_count": len(self.pages),
            "blog_posts_count": len(self.blog_posts),
        }

    def product_refs(self, limit: int) -> list[dict[str, str]]:
        """Id/title/handle of the first ``limit`` products, for traceability."""
        return [
            {"id": str(p.id), "title": p.title, "handle": p.handle}
            for p in self.products[:limit]
        ]

"""
Store model for installed Shopify shops.

A store owns its cached catalog (products, collections, pages, blog posts)
and every customer conversation started from its storefront widget.
"""

from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel, JSONType, utc_now


class Store(BaseModel):
    """
    Represents an installed Shopify store.

    :ivar shopify_domain: Shop subdomain without ``.myshopify.com``.
    :type shopify_domain: str
    :ivar shopify_store_id: Numeric shop id as reported by Shopify.
    :type shopify_store_id: str
    :ivar access_token: Admin API access token obtained through OAuth.
    :type access_token: str
    :ivar settings: Free-form settings (currency, widget colour, ...).
    :type settings: dict
    """

    __tablename__ = "stores"

    shopify_domain = Column(String(255), nullable=False, unique=True)
    shopify_store_id = Column(String(64), nullable=False, unique=True)
    store_name = Column(String(255), nullable=False)
    access_token = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    installed_at = Column(DateTime, default=utc_now, nullable=False)
    last_sync_at = Column(DateTime, nullable=True)
    settings = Column(JSONType, default=dict, nullable=False)

    # Relationships
    products = relationship("Product", back_populates="store", cascade="all, delete-orphan")
    collections = relationship("Collection", back_populates="store", cascade="all, delete-orphan")
    pages = relationship("Page", back_populates="store", cascade="all, delete-orphan")
    blog_posts = relationship("BlogPost", back_populates="store", cascade="all, delete-orphan")
    conversations = relationship("Conversation", back_populates="store")

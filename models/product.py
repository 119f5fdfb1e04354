"""
Product model caching a store's Shopify products.
"""

from sqlalchemy import Column, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import UUID, BaseModel, JSONType


class Product(BaseModel):
    """
    Represents a cached product entity.
    """

    __tablename__ = "products"
    __table_args__ = (UniqueConstraint("store_id", "shopify_product_id"),)

    store_id = Column(UUID(), ForeignKey("stores.id"), nullable=False, index=True)
    shopify_product_id = Column(String(64), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text)
    handle = Column(String(255), nullable=False)
    product_type = Column(String(255))
    vendor = Column(String(255))
    tags = Column(JSONType, default=list, nullable=False)
    price = Column(String(32))  # First variant price, as Shopify reports it
    compare_at_price = Column(String(32))
    images = Column(JSONType, default=list, nullable=False)
    variants = Column(JSONType, default=list, nullable=False)
    options = Column(JSONType, default=list, nullable=False)
    status = Column(String(32), nullable=False, default="active")

    # Relationships
    store = relationship("Store", back_populates="products")

"""
Collection model caching a store's custom and smart collections.
"""

from sqlalchemy import Column, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import UUID, BaseModel, JSONType


class Collection(BaseModel):
    """
    Represents a cached collection entity.
    """

    __tablename__ = "collections"
    __table_args__ = (UniqueConstraint("store_id", "shopify_collection_id"),)

    store_id = Column(UUID(), ForeignKey("stores.id"), nullable=False, index=True)
    shopify_collection_id = Column(String(64), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text)
    handle = Column(String(255), nullable=False)
    image = Column(JSONType, nullable=True)
    products_count = Column(Integer, default=0, nullable=False)

    # Relationships
    store = relationship("Store", back_populates="collections")

"""
Page model caching a store's online-store pages (policies, FAQ, about...).
"""

from sqlalchemy import Column, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import UUID, BaseModel


class Page(BaseModel):
    """
    Represents a cached page entity.
    """

    __tablename__ = "pages"
    __table_args__ = (UniqueConstraint("store_id", "shopify_page_id"),)

    store_id = Column(UUID(), ForeignKey("stores.id"), nullable=False, index=True)
    shopify_page_id = Column(String(64), nullable=False)
    title = Column(Text, nullable=False)
    content = Column(Text)
    handle = Column(String(255), nullable=False)
    status = Column(String(32), nullable=False, default="published")  # published, hidden

    # Relationships
    store = relationship("Store", back_populates="pages")

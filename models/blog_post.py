"""
Blog post model caching articles from every blog of a store.
"""

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import UUID, BaseModel, JSONType


class BlogPost(BaseModel):
    """
    Represents a cached blog article entity.
    """

    __tablename__ = "blog_posts"
    __table_args__ = (UniqueConstraint("store_id", "shopify_article_id"),)

    store_id = Column(UUID(), ForeignKey("stores.id"), nullable=False, index=True)
    shopify_blog_id = Column(String(64), nullable=False)
    shopify_article_id = Column(String(64), nullable=False)
    title = Column(Text, nullable=False)
    content = Column(Text)
    excerpt = Column(Text)
    handle = Column(String(255), nullable=False)
    tags = Column(JSONType, default=list, nullable=False)
    status = Column(String(32), nullable=False, default="published")
    published_at = Column(DateTime, nullable=True)

    # Relationships
    store = relationship("Store", back_populates="blog_posts")

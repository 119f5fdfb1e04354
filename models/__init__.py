"""
Models package initialization.
"""

from .ai_interaction import AIInteraction
from .base import Base, BaseModel
from .blog_post import BlogPost
from .collection import Collection
from .conversation import Conversation, ConversationStatus
from .message import Message, MessageRole
from .page import Page
from .product import Product
from .store import Store

__all__ = [
    "Base",
    "BaseModel",
    "Store",
    # Catalog models
    "Product",
    "Collection",
    "Page",
    "BlogPost",
    # Chat models
    "Conversation",
    "ConversationStatus",
    "Message",
    "MessageRole",
    "AIInteraction",
]

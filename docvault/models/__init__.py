"""
All database models. Imported here so Base.metadata sees them for create_all().
"""

from .base import RecordBase
from .user import User
from .tag import Tag, document_tags
from .document import Document

__all__ = [
    "RecordBase",
    "User",
    "Tag", "document_tags",
    "Document",
]

"""
Tags. Created lazily the first time a name is used, never deleted here.
"""

from sqlalchemy import Column, ForeignKey, String, Table
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base
from .base import RecordBase


document_tags = Table(
    "document_tags",
    Base.metadata,
    Column("document_id", String, ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", String, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Tag(RecordBase):
    __tablename__ = "tags"

    # case as submitted; lookups are exact
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

"""
Documents — stored-file ref plus extracted text, searched with LIKE queries.

indexed=True means content_text and search_text are both set (possibly "").
indexed=False means extraction hasn't completed, or failed.
"""

from typing import Optional

from sqlalchemy import BigInteger, Boolean, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import RecordBase
from .tag import Tag, document_tags
from .user import User


class Document(RecordBase):
    __tablename__ = "documents"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Generated at store time. original_filename is display-only.
    file_ref: Mapped[str] = mapped_column(String, nullable=False)
    original_filename: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    content_type: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    content_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    search_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    indexed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    author_id: Mapped[str] = mapped_column(
        String, ForeignKey("users.id"), nullable=False, index=True
    )
    author: Mapped[User] = relationship(lazy="selectin")
    tags: Mapped[set[Tag]] = relationship(
        secondary=document_tags, lazy="selectin", collection_class=set
    )

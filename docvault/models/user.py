"""
Document authors. Provisioned from the authenticated principal on first sight.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from .base import RecordBase


class User(RecordBase):
    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    auth_subject: Mapped[str] = mapped_column(String, nullable=True)
    email: Mapped[str] = mapped_column(String, nullable=True)
    name: Mapped[str] = mapped_column(String, nullable=True)

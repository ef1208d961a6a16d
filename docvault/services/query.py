"""
Read-side queries over documents. Never writes records; only fills the cache.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import InvalidArgument, NotFound
from ..models.document import Document
from ..models.user import User
from ..schemas import DocumentDetail, SearchFilter
from .cache import DocumentCache

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "id": Document.id,
    "title": Document.title,
    "description": Document.description,
    "content_type": Document.content_type,
    "file_size": Document.file_size,
    "created_at": Document.created_at,
    "updated_at": Document.updated_at,
    "indexed": Document.indexed,
    # camelCase aliases used by older clients
    "createdAt": Document.created_at,
    "updatedAt": Document.updated_at,
    "contentType": Document.content_type,
    "fileType": Document.content_type,
    "fileSize": Document.file_size,
}


@dataclass
class Page:
    items: list[Document]
    total: int
    page: int
    size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.size) if self.size else 0


@dataclass
class Sort:
    field: str = "created_at"
    direction: str = "desc"

    def order_by(self):
        column = SORT_FIELDS.get(self.field)
        if column is None:
            raise InvalidArgument(
                f"Invalid sort field '{self.field}'. "
                f"Allowed: {', '.join(sorted(SORT_FIELDS))}"
            )
        direction = (self.direction or "").lower()
        if direction == "asc":
            return column.asc(), Document.id.asc()
        if direction == "desc":
            return column.desc(), Document.id.desc()
        raise InvalidArgument(f"Invalid sort direction '{self.direction}'. Use asc or desc")


def keyword_predicate(keyword: str):
    """Case-insensitive substring over title, description and extracted text."""
    return or_(
        Document.title.icontains(keyword, autoescape=True),
        Document.description.icontains(keyword, autoescape=True),
        Document.content_text.icontains(keyword, autoescape=True),
    )


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class QueryEngine:
    def __init__(self, cache: DocumentCache):
        self.cache = cache

    async def by_id(self, db: AsyncSession, document_id: str) -> DocumentDetail:
        """Single document, read through the result cache."""
        cached = await self.cache.get(document_id)
        if cached is not None:
            return cached

        doc = await db.get(Document, document_id)
        if doc is None:
            raise NotFound(f"Document not found with id: {document_id}")

        detail = DocumentDetail.from_document(doc)
        # Unindexed views change once extraction commits
        if detail.indexed:
            await self.cache.put(detail)
        return detail

    async def all(
        self, db: AsyncSession, page: int = 0, size: int = 10, sort: Optional[Sort] = None
    ) -> Page:
        return await self._paged(db, [], page, size, sort)

    async def by_author(
        self,
        db: AsyncSession,
        username: str,
        page: int = 0,
        size: int = 10,
        sort: Optional[Sort] = None,
    ) -> Page:
        result = await db.execute(select(User.id).where(User.username == username))
        author_id = result.scalar_one_or_none()
        if author_id is None:
            raise NotFound(f"User not found with username: {username}")
        return await self._paged(db, [Document.author_id == author_id], page, size, sort)

    async def structured(
        self,
        db: AsyncSession,
        search: SearchFilter,
        page: int = 0,
        size: int = 10,
        sort: Optional[Sort] = None,
    ) -> Page:
        """AND over whichever filter fields are present."""
        clauses = []
        if search.title:
            clauses.append(Document.title.icontains(search.title, autoescape=True))
        if search.content_type:
            clauses.append(Document.content_type == search.content_type)
        if search.start_date:
            clauses.append(Document.created_at >= _as_utc(search.start_date))
        if search.end_date:
            clauses.append(Document.created_at <= _as_utc(search.end_date))
        if search.author_id:
            clauses.append(Document.author_id == search.author_id)
        if search.keyword:
            clauses.append(keyword_predicate(search.keyword))

        logger.debug("Structured search with %d predicates", len(clauses))
        return await self._paged(db, clauses, page, size, sort)

    async def by_keyword(
        self,
        db: AsyncSession,
        keyword: str,
        page: int = 0,
        size: int = 10,
        sort: Optional[Sort] = None,
    ) -> Page:
        return await self._paged(db, [keyword_predicate(keyword)], page, size, sort)

    async def unprocessed(self, db: AsyncSession) -> list[Document]:
        """Every document still waiting on (or failed) extraction. Unpaged."""
        result = await db.execute(
            select(Document)
            .where(Document.indexed.is_(False))
            .order_by(Document.created_at.asc(), Document.id.asc())
        )
        return list(result.scalars().all())

    async def _paged(
        self, db: AsyncSession, clauses: list, page: int, size: int, sort: Optional[Sort]
    ) -> Page:
        if page < 0:
            raise InvalidArgument("Page index must not be negative")
        if size < 1:
            raise InvalidArgument("Page size must be at least 1")
        order_by = (sort or Sort()).order_by()

        total = await db.scalar(
            select(func.count()).select_from(Document).where(*clauses)
        )
        result = await db.execute(
            select(Document)
            .where(*clauses)
            .order_by(*order_by)
            .offset(page * size)
            .limit(size)
        )
        return Page(items=list(result.scalars().all()), total=total or 0, page=page, size=size)

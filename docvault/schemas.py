"""
Pydantic views over documents. Shared by the API, the query engine and the
result cache (which stores DocumentDetail as JSON).
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .core.config import get_settings
from .models.document import Document
from .services.extractor import summarize


class DocumentOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    original_filename: Optional[str] = None
    content_type: Optional[str] = None
    file_size: int = 0
    indexed: bool = False
    summary: str = ""
    tags: list[str] = Field(default_factory=list)
    author_id: str
    author_username: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, doc: Document, **extra) -> "DocumentOut":
        return cls(
            id=doc.id,
            title=doc.title,
            description=doc.description,
            original_filename=doc.original_filename,
            content_type=doc.content_type,
            file_size=doc.file_size or 0,
            indexed=doc.indexed,
            summary=summarize(doc.content_text, get_settings().summary_max_length),
            tags=sorted(t.name for t in doc.tags),
            author_id=doc.author_id,
            author_username=doc.author.username if doc.author else None,
            created_at=doc.created_at,
            updated_at=doc.updated_at,
            **extra,
        )


class DocumentDetail(DocumentOut):
    """Single-document view. Carries the extracted text."""

    content_text: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Document, **extra) -> "DocumentDetail":
        return super().from_document(doc, content_text=doc.content_text, **extra)


class PageOut(BaseModel):
    items: list[DocumentOut]
    total: int
    page: int
    size: int
    total_pages: int


class SearchFilter(BaseModel):
    """Structured search. Every field is optional; present ones are ANDed."""

    title: Optional[str] = None
    content_type: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    author_id: Optional[str] = None
    keyword: Optional[str] = None


class DocumentSnippet(BaseModel):
    document_id: str
    title: str
    snippet_text: Optional[str] = None
    author_name: Optional[str] = None
    created_at: datetime


class QAResult(BaseModel):
    question: str
    snippets: list[DocumentSnippet]
    total_results: int

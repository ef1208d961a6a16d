"""
Document upload, lookup, search, update and delete endpoints.
Keyword search is substring matching over title, description and extracted text.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import AuthenticatedUser
from ..core.dependencies import get_author, get_db, get_pipeline, get_query_engine, get_user
from ..models.user import User
from ..schemas import DocumentDetail, DocumentOut, PageOut, SearchFilter
from ..services.pipeline import DocumentPipeline
from ..services.query import Page, QueryEngine, Sort

logger = logging.getLogger(__name__)

documents_router = APIRouter(tags=["documents"])

MAX_PAGE_SIZE = 100


class DocumentUpdate(BaseModel):
    title: str
    description: Optional[str] = None
    tags: Optional[list[str]] = None


class ReprocessResponse(BaseModel):
    scheduled: int


def paging(
    page: int = Query(0, ge=0, description="Page number (0-based)"),
    size: int = Query(10, ge=1, le=MAX_PAGE_SIZE, description="Page size"),
    sort_by: str = Query("created_at", description="Sort field"),
    sort_dir: str = Query("desc", description="Sort direction (asc|desc)"),
) -> tuple[int, int, Sort]:
    return page, size, Sort(field=sort_by, direction=sort_dir)


def page_out(result: Page) -> PageOut:
    return PageOut(
        items=[DocumentOut.from_document(d) for d in result.items],
        total=result.total,
        page=result.page,
        size=result.size,
        total_pages=result.total_pages,
    )


@documents_router.post(
    "/documents/upload", response_model=DocumentOut, status_code=status.HTTP_201_CREATED
)
async def upload_document(
    file: UploadFile = File(...),
    title: str = Form(""),
    description: Optional[str] = Form(None),
    tags: list[str] = Form(default=[]),
    author: User = Depends(get_author),
    db: AsyncSession = Depends(get_db),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    """Upload a document. Text is extracted in the background."""
    logger.info("Uploading document: %s", title)
    file_bytes = await file.read()

    doc = await pipeline.upload(
        db,
        title=title,
        description=description,
        tag_names=tags,
        file_bytes=file_bytes,
        content_type=file.content_type,
        filename=file.filename,
        author_id=author.id,
    )
    return DocumentOut.from_document(doc)


@documents_router.get("/documents", response_model=PageOut)
async def list_documents(
    paged: tuple = Depends(paging),
    db: AsyncSession = Depends(get_db),
    queries: QueryEngine = Depends(get_query_engine),
):
    """All documents, paged and sorted."""
    page, size, sort = paged
    return page_out(await queries.all(db, page, size, sort))


@documents_router.get("/documents/mine", response_model=PageOut)
async def list_my_documents(
    paged: tuple = Depends(paging),
    user: AuthenticatedUser = Depends(get_user),
    db: AsyncSession = Depends(get_db),
    queries: QueryEngine = Depends(get_query_engine),
):
    """Documents uploaded by the current user."""
    page, size, sort = paged
    return page_out(await queries.by_author(db, user.username, page, size, sort))


@documents_router.get("/documents/by-author/{username}", response_model=PageOut)
async def list_documents_by_author(
    username: str,
    paged: tuple = Depends(paging),
    db: AsyncSession = Depends(get_db),
    queries: QueryEngine = Depends(get_query_engine),
):
    page, size, sort = paged
    return page_out(await queries.by_author(db, username, page, size, sort))


@documents_router.post("/documents/search", response_model=PageOut)
async def search_documents(
    search: SearchFilter,
    paged: tuple = Depends(paging),
    db: AsyncSession = Depends(get_db),
    queries: QueryEngine = Depends(get_query_engine),
):
    """Structured search. Present filter fields are combined with AND."""
    page, size, sort = paged
    logger.info("Searching documents with criteria: %s", search.model_dump(exclude_none=True))
    return page_out(await queries.structured(db, search, page, size, sort))


@documents_router.get("/documents/search", response_model=PageOut)
async def search_by_keyword(
    keyword: str = Query(..., min_length=1),
    paged: tuple = Depends(paging),
    db: AsyncSession = Depends(get_db),
    queries: QueryEngine = Depends(get_query_engine),
):
    """Case-insensitive substring search over title, description and content."""
    page, size, sort = paged
    logger.info("Searching documents with keyword: %s", keyword)
    return page_out(await queries.by_keyword(db, keyword, page, size, sort))


@documents_router.get("/documents/unprocessed", response_model=list[DocumentOut])
async def list_unprocessed(
    db: AsyncSession = Depends(get_db),
    queries: QueryEngine = Depends(get_query_engine),
):
    """Documents not yet indexed (pending or failed extraction)."""
    return [DocumentOut.from_document(d) for d in await queries.unprocessed(db)]


@documents_router.post("/documents/unprocessed/reprocess", response_model=ReprocessResponse)
async def reprocess_unprocessed(
    db: AsyncSession = Depends(get_db),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    """Schedule extraction again for every unindexed document."""
    return ReprocessResponse(scheduled=await pipeline.reprocess_unindexed(db))


@documents_router.get("/documents/{document_id}", response_model=DocumentDetail)
async def get_document(
    document_id: str,
    db: AsyncSession = Depends(get_db),
    queries: QueryEngine = Depends(get_query_engine),
):
    return await queries.by_id(db, document_id)


@documents_router.put("/documents/{document_id}", response_model=DocumentOut)
async def update_document(
    document_id: str,
    update: DocumentUpdate,
    db: AsyncSession = Depends(get_db),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    """Update title/description. Tags change only when a non-empty list is sent."""
    doc = await pipeline.update_metadata(
        db, document_id, update.title, update.description, update.tags
    )
    return DocumentOut.from_document(doc)


@documents_router.delete("/documents/{document_id}")
async def delete_document(
    document_id: str,
    db: AsyncSession = Depends(get_db),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    """Delete a document and its stored file."""
    await pipeline.delete_document(db, document_id)
    return {"status": "deleted", "id": document_id}

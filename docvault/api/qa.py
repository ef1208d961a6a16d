"""
Question endpoint — keyword search plus keyword-in-context snippets.
"""

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import get_db, get_query_engine
from ..schemas import PageOut, QAResult
from ..services.query import QueryEngine, Sort
from ..services.snippets import ask_question
from .documents import MAX_PAGE_SIZE, page_out

logger = logging.getLogger(__name__)

qa_router = APIRouter(tags=["qa"])


class QuestionRequest(BaseModel):
    question: str = Field(min_length=2, max_length=500)


@qa_router.post("/qa/question", response_model=QAResult)
async def question(
    request: QuestionRequest,
    db: AsyncSession = Depends(get_db),
    queries: QueryEngine = Depends(get_query_engine),
):
    logger.info("Processing question: %s", request.question)
    return await ask_question(db, queries, request.question)


@qa_router.get("/qa/recent", response_model=PageOut)
async def recent_documents(
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
    queries: QueryEngine = Depends(get_query_engine),
):
    """Most recently uploaded documents."""
    return page_out(await queries.all(db, page, size, Sort("created_at", "desc")))

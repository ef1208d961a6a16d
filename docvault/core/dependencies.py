"""
FastAPI dependencies. Injected into route handlers.
"""

from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import AuthenticatedUser, get_current_user
from .database import get_db as _get_db, get_session_factory
from .storage import get_storage
from .tasks import get_task_runner
from ..models.user import User
from ..services.authors import ensure_author
from ..services.cache import get_document_cache
from ..services.pipeline import DocumentPipeline
from ..services.query import QueryEngine

_pipeline = None
_queries = None


async def get_db() -> AsyncIterator[AsyncSession]:
    """Yields an async DB session per request."""
    async for session in _get_db():
        yield session


async def get_user(
    authorization: str = Header(default=""),
) -> AuthenticatedUser:
    """
    Resolve the authenticated principal from the Authorization header.
    Returns the dev principal if FF_USE_AUTH0=false.
    """
    try:
        return await get_current_user(authorization)
    except PermissionError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_author(
    user: AuthenticatedUser = Depends(get_user),
    db: AsyncSession = Depends(get_db),
) -> User:
    """The users row for the current principal."""
    return await ensure_author(db, user)


def get_pipeline() -> DocumentPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = DocumentPipeline(
            storage=get_storage(),
            cache=get_document_cache(),
            tasks=get_task_runner(),
            session_factory=get_session_factory(),
        )
    return _pipeline


def get_query_engine() -> QueryEngine:
    global _queries
    if _queries is None:
        _queries = QueryEngine(cache=get_document_cache())
    return _queries

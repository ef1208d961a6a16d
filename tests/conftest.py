"""Shared pytest fixtures for the DocVault test suite."""

from __future__ import annotations

import os

# Local fallbacks for every external dependency. Must be set before settings load.
os.environ.setdefault("FF_USE_AUTH0", "false")
os.environ.setdefault("FF_USE_S3", "false")
os.environ.setdefault("FF_USE_REDIS", "false")

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from docvault.core.database import enable_sqlite_foreign_keys, init_db
from docvault.core.storage import LocalStorage
from docvault.core.tasks import TaskRunner
from docvault.models.user import User
from docvault.services.cache import MemoryDocumentCache
from docvault.services.pipeline import DocumentPipeline
from docvault.services.query import QueryEngine


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'docvault.db'}")
    enable_sqlite_foreign_keys(engine)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def author(db) -> User:
    user = User(username="alice", auth_subject="auth0|alice", email="alice@example.com")
    db.add(user)
    await db.commit()
    return user


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(tmp_path / "blobs")


@pytest.fixture
def cache() -> MemoryDocumentCache:
    return MemoryDocumentCache(max_size=100, ttl=3600)


@pytest.fixture
async def runner():
    runner = TaskRunner()
    yield runner
    await runner.drain()


@pytest.fixture
def pipeline(storage, cache, runner, session_factory) -> DocumentPipeline:
    return DocumentPipeline(
        storage=storage, cache=cache, tasks=runner, session_factory=session_factory
    )


@pytest.fixture
def queries(cache) -> QueryEngine:
    return QueryEngine(cache=cache)


@pytest.fixture
def upload(db, pipeline, author):
    """Upload helper with sensible defaults."""

    async def _upload(**overrides):
        kwargs = {
            "title": "Budget 2024",
            "description": "Q1 report",
            "tag_names": ["finance"],
            "file_bytes": b"Quarterly numbers are in. Revenue grew by ten percent.",
            "content_type": "text/plain",
            "filename": "report.txt",
            "author_id": author.id,
        }
        kwargs.update(overrides)
        return await pipeline.upload(db, **kwargs)

    return _upload

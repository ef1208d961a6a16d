"""
Document pipeline — owns every document lifecycle transition.

upload → store bytes → persist (indexed=False) → schedule extraction
extraction (background) → reload → extract → persist text + indexed=True

Ordering rules:
- Bytes are written before the record, so a record never points at bytes
  that were never stored. If the record write fails the bytes are removed.
- On delete, bytes go first. A storage failure aborts before the record is
  touched.
- Writers evict the cached lookup for the id they wrote.
"""

import asyncio
import logging
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import get_settings
from ..core.errors import ExtractionFailure, InvalidArgument, NotFound, StorageFailure
from ..core.storage import StorageBackend, safe_extension
from ..core.tasks import TaskRunner
from ..models.document import Document
from ..models.user import User
from . import realtime
from .cache import DocumentCache
from .extractor import extract, normalize
from .tags import resolve_tags

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 255


def validate_title(title: Optional[str]) -> str:
    if title is None or not title.strip():
        raise InvalidArgument("Title must not be blank")
    if len(title) > MAX_TITLE_LENGTH:
        raise InvalidArgument(f"Title must be at most {MAX_TITLE_LENGTH} characters")
    return title


def build_search_text(title: Optional[str], description: Optional[str], content: Optional[str]) -> str:
    return normalize(" ".join((title or "", description or "", content or "")))


class DocumentPipeline:
    def __init__(
        self,
        storage: StorageBackend,
        cache: DocumentCache,
        tasks: TaskRunner,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self.storage = storage
        self.cache = cache
        self.tasks = tasks
        self.session_factory = session_factory

    # ── Upload ───────────────────────────────────────────────────────

    async def upload(
        self,
        db: AsyncSession,
        *,
        title: str,
        description: Optional[str],
        tag_names: Iterable[str],
        file_bytes: bytes,
        content_type: Optional[str],
        filename: Optional[str],
        author_id: str,
    ) -> Document:
        """
        Store the file, persist an unindexed record and schedule extraction.
        Returns as soon as the record is committed.
        """
        title = validate_title(title)
        max_bytes = get_settings().max_upload_bytes
        if not file_bytes:
            raise InvalidArgument("Uploaded file is empty")
        if len(file_bytes) > max_bytes:
            raise InvalidArgument(f"File too large (max {max_bytes} bytes)")

        author = await db.get(User, author_id)
        if author is None:
            raise NotFound(f"User not found with id: {author_id}")

        # StorageFailure here propagates before any record exists
        ref = await self.storage.store(file_bytes, safe_extension(filename))

        try:
            tags = await resolve_tags(db, tag_names or [])
            doc = Document(
                title=title,
                description=description,
                file_ref=ref,
                original_filename=filename,
                content_type=content_type,
                file_size=len(file_bytes),
                indexed=False,
                author=author,
                author_id=author.id,
                tags=tags,
            )
            db.add(doc)
            await db.commit()
        except Exception:
            await db.rollback()
            await self._discard_blob(ref)
            raise

        logger.info(
            "Document uploaded: %s (%d bytes, %s) → %s",
            doc.id, doc.file_size, content_type, ref,
        )

        self.schedule_processing(doc.id)
        return doc

    def schedule_processing(self, document_id: str) -> None:
        self.tasks.submit(self.process_content, document_id, name=f"extract:{document_id}")
        logger.debug("Extraction scheduled: %s", document_id)

    async def _discard_blob(self, ref: str) -> None:
        try:
            await self.storage.delete(ref)
            logger.info("Removed orphaned blob %s", ref)
        except (NotFound, StorageFailure) as e:
            logger.error("Could not remove orphaned blob %s: %s", ref, e)

    # ── Extraction (background) ──────────────────────────────────────

    async def process_content(self, document_id: str) -> None:
        """
        Extract text for one document and mark it indexed.

        Runs from the task runner, never inline in a request. Never raises:
        a missing document or a failed extraction is logged and the record is
        left as it was (indexed=False, no text). Safe to re-run.
        """
        try:
            async with self.session_factory() as db:
                doc = await db.get(Document, document_id)
                if doc is None:
                    logger.warning("Extraction skipped, document not found: %s", document_id)
                    return

                try:
                    content, search_text = await self._extract(doc)
                except ExtractionFailure as e:
                    logger.error("Failed to process document content: %s (%s)", document_id, e)
                    await realtime.document_failed(document_id, str(e))
                    return

                doc.content_text = content
                doc.search_text = search_text
                doc.indexed = True
                await db.commit()
        except Exception:
            logger.exception("Extraction crashed for document %s", document_id)
            return

        await self.cache.evict(document_id)
        logger.info("Document processed successfully: %s (%d chars)", document_id, len(content))
        await realtime.document_indexed(document_id)

    async def _extract(self, doc: Document) -> tuple[str, str]:
        try:
            file_bytes = await self.storage.read(doc.file_ref)
        except (NotFound, StorageFailure) as e:
            raise ExtractionFailure(f"stored file unreadable: {e}") from e

        content = await asyncio.to_thread(extract, file_bytes, doc.content_type)
        return content, build_search_text(doc.title, doc.description, content)

    async def reprocess_unindexed(self, db: AsyncSession) -> int:
        """Schedule extraction for every unindexed document. Returns how many."""
        result = await db.execute(select(Document.id).where(Document.indexed.is_(False)))
        ids = list(result.scalars().all())
        for document_id in ids:
            self.schedule_processing(document_id)
        logger.info("Backfill scheduled for %d unindexed documents", len(ids))
        return len(ids)

    # ── Metadata update ──────────────────────────────────────────────

    async def update_metadata(
        self,
        db: AsyncSession,
        document_id: str,
        title: str,
        description: Optional[str],
        tag_names: Optional[Iterable[str]] = None,
    ) -> Document:
        """
        Replace title and description. Tags are replaced only when a
        non-empty collection is given; empty or None keeps the current set.
        """
        title = validate_title(title)
        doc = await db.get(Document, document_id)
        if doc is None:
            raise NotFound(f"Document not found with id: {document_id}")

        await self.cache.evict(document_id)

        doc.title = title
        doc.description = description
        tag_names = [n.strip() for n in tag_names or [] if n and n.strip()]
        if tag_names:
            doc.tags = await resolve_tags(db, tag_names)

        await db.commit()
        await self.cache.evict(document_id)
        logger.info("Document updated: %s", document_id)
        return doc

    # ── Delete ───────────────────────────────────────────────────────

    async def delete_document(self, db: AsyncSession, document_id: str) -> None:
        """
        Delete stored bytes, then the record. StorageFailure leaves the
        record in place.
        """
        doc = await db.get(Document, document_id)
        if doc is None:
            raise NotFound(f"Document not found with id: {document_id}")

        await self.cache.evict(document_id)

        try:
            deleted = await self.storage.delete(doc.file_ref)
        except NotFound as e:
            logger.error("Delete aborted for document %s: stored file missing", document_id)
            raise StorageFailure(f"Could not delete file {doc.file_ref}") from e
        except StorageFailure as e:
            logger.error("Delete aborted for document %s: %s", document_id, e)
            raise

        if not deleted:
            logger.error("Delete aborted for document %s: storage refused", document_id)
            raise StorageFailure(f"Could not delete file {doc.file_ref}")

        await db.delete(doc)
        await db.commit()
        await self.cache.evict(document_id)
        logger.info("Document deleted: %s", document_id)

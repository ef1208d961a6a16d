"""
Result cache for single-document lookups, keyed by document id.

In-process TTL cache OR Redis. Controlled by FF_USE_REDIS flag.
Readers fill the cache; writers to a document id evict it.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from cachetools import TTLCache

from ..core.config import get_settings
from ..core.flags import get_flags
from ..core.redis import get_redis
from ..schemas import DocumentDetail

logger = logging.getLogger(__name__)


class DocumentCache(ABC):
    @abstractmethod
    async def get(self, document_id: str) -> Optional[DocumentDetail]:
        ...

    @abstractmethod
    async def put(self, document: DocumentDetail) -> None:
        ...

    @abstractmethod
    async def evict(self, document_id: str) -> None:
        ...


class MemoryDocumentCache(DocumentCache):
    """In-process cache backed by cachetools.TTLCache. Stores JSON, not live objects."""

    def __init__(self, max_size: int = 1000, ttl: int = 3600):
        self._cache: TTLCache = TTLCache(maxsize=max_size, ttl=ttl)

    async def get(self, document_id: str) -> Optional[DocumentDetail]:
        raw = self._cache.get(document_id)
        if raw is None:
            logger.debug("cache miss: %s", document_id)
            return None
        logger.debug("cache hit: %s", document_id)
        return DocumentDetail.model_validate_json(raw)

    async def put(self, document: DocumentDetail) -> None:
        self._cache[document.id] = document.model_dump_json()

    async def evict(self, document_id: str) -> None:
        self._cache.pop(document_id, None)


class RedisDocumentCache(DocumentCache):
    """Redis-backed cache. Redis errors degrade to cache misses."""

    def __init__(self, ttl: int = 3600, prefix: str = "document:"):
        self.ttl = ttl
        self.prefix = prefix

    async def get(self, document_id: str) -> Optional[DocumentDetail]:
        try:
            client = await get_redis()
            raw = await client.get(self.prefix + document_id)
        except Exception as e:
            logger.warning("Redis cache get failed (%s): %s", document_id, e)
            return None
        return DocumentDetail.model_validate_json(raw) if raw else None

    async def put(self, document: DocumentDetail) -> None:
        try:
            client = await get_redis()
            await client.setex(self.prefix + document.id, self.ttl, document.model_dump_json())
        except Exception as e:
            logger.warning("Redis cache put failed (%s): %s", document.id, e)

    async def evict(self, document_id: str) -> None:
        try:
            client = await get_redis()
            await client.delete(self.prefix + document_id)
        except Exception as e:
            # A stale entry outlives this only until its TTL
            logger.warning("Redis cache evict failed (%s): %s", document_id, e)


_cache: Optional[DocumentCache] = None


def get_document_cache() -> DocumentCache:
    """Return the active cache backend based on feature flags."""
    global _cache
    if _cache is None:
        settings = get_settings()
        if get_flags().use_redis:
            _cache = RedisDocumentCache(ttl=settings.cache_ttl_seconds)
        else:
            _cache = MemoryDocumentCache(
                max_size=settings.cache_max_size, ttl=settings.cache_ttl_seconds
            )
    return _cache

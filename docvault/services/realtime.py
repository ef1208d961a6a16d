"""
Realtime notifications. Thin wrapper around core.redis.
"""

from ..core import redis as _redis

DOCUMENTS_CHANNEL = "documents"


async def document_indexed(doc_id: str):
    await _redis.publish(
        DOCUMENTS_CHANNEL, "document.indexed", {"document_id": doc_id, "status": "indexed"}
    )


async def document_failed(doc_id: str, reason: str):
    await _redis.publish(
        DOCUMENTS_CHANNEL,
        "document.failed",
        {"document_id": doc_id, "status": "failed", "reason": reason},
    )

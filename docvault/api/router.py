"""
Main API router. Mounts all sub-routers.
"""

from fastapi import APIRouter, Depends

from ..core.dependencies import get_user

router = APIRouter()


# ── Health (no auth) ─────────────────────────────────────────────────

@router.get("/health")
async def health():
    return {"status": "ok", "service": "docvault"}


# ── V1 routes (auth required) ───────────────────────────────────────

from .documents import documents_router  # noqa: E402
from .qa import qa_router  # noqa: E402

router.include_router(documents_router, prefix="/v1", dependencies=[Depends(get_user)])
router.include_router(qa_router, prefix="/v1", dependencies=[Depends(get_user)])

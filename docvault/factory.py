"""
FastAPI application factory.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import get_settings
from .core.database import init_db, close_db
from .core.errors import InvalidArgument, NotFound, StorageFailure
from .core.redis import close_redis
from .core.tasks import get_task_runner
from .api.router import router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="DocVault",
        description="Document ingestion and keyword search",
        version="1.0.0",
        docs_url="/docs" if settings.env == "development" else None,
        redoc_url="/redoc" if settings.env == "development" else None,
    )

    # ── CORS ─────────────────────────────────────────────────────
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Errors ───────────────────────────────────────────────────
    @app.exception_handler(NotFound)
    async def not_found(request: Request, exc: NotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidArgument)
    async def invalid_argument(request: Request, exc: InvalidArgument):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(StorageFailure)
    async def storage_failure(request: Request, exc: StorageFailure):
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    # ── Startup ──────────────────────────────────────────────────
    @app.on_event("startup")
    async def on_startup():
        logging.basicConfig(
            level=getattr(logging, settings.log_level.upper(), logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
        logger.info("Starting DocVault (env=%s)", settings.env)

        # Create database tables
        await init_db()

        from .core.flags import get_flags
        flags = get_flags()
        logger.info(
            "Flags: auth0=%s s3=%s redis=%s",
            flags.use_auth0, flags.use_s3, flags.use_redis,
        )
        logger.info("DocVault is ready")

    # ── Shutdown ─────────────────────────────────────────────────
    @app.on_event("shutdown")
    async def on_shutdown():
        runner = get_task_runner()
        if runner.pending:
            logger.info("Waiting for %d extraction tasks", runner.pending)
        await runner.drain()
        await close_db()
        await close_redis()
        logger.info("DocVault shut down")

    # ── Routes ───────────────────────────────────────────────────
    app.include_router(router)

    return app

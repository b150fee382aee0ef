"""
FastAPI Application: DocSeal.

Architecture:
  - PostgreSQL (prod) / SQLite (dev) for documents, reports, grants, audit
  - Gemini for forensic analysis (OCR, integrity, metadata, biometrics)
  - Ledger service for attestations / ownership tokens
  - Encrypted archive for the original file
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docseal.api.dependencies import Container, build_container
from docseal.api.routes.documents import router as documents_router
from docseal.api.routes.permissions import router as permissions_router
from docseal.config.settings import get_settings
from docseal.core.errors import DocSealError

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def create_app(container: Container | None = None) -> FastAPI:
    """Build the app. Tests hand in a pre-built container."""
    settings = container.settings if container else get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "container", None) is None:
            app.state.container = build_container(settings)
        logger.info(f"DocSeal started (env={settings.env})")
        yield
        await app.state.container.aclose()
        logger.info("DocSeal stopped")

    app = FastAPI(
        title="DocSeal",
        description="Document verification: forensic scoring, review, ledger issuance and access grants.",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DocSealError)
    async def docseal_error_handler(request: Request, exc: DocSealError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    app.include_router(documents_router, prefix="/api/v1", tags=["Documents"])
    app.include_router(permissions_router, prefix="/api/v1", tags=["Permissions"])

    # ── Cache ──
    @app.get("/api/v1/cache/stats")
    async def cache_stats(request: Request):
        return await request.app.state.container.forensic_cache.stats()

    # ── Health ──
    @app.get("/health")
    async def health(request: Request):
        current = request.app.state.container
        db_url = current.settings.database_url
        return {
            "status": "ok",
            "version": VERSION,
            "database": "PostgreSQL" if "postgres" in db_url else "SQLite",
            "ledger": current.settings.ledger_backend,
            "archive": current.settings.archive_backend,
        }

    return app


app = create_app()

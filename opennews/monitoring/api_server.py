"""
FastAPI application for the ingestion service.

This module owns the app instance, its lifecycle, middleware and the
dependency hub. Endpoints live in their own router modules:

  webhook_endpoints  - POST /webhook
  process_endpoints  - POST /process, POST /crawl
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from opennews.crawler.base_crawler import BaseCrawler
from opennews.db.connection import close_db, init_db
from opennews.monitoring.process_endpoints import process_router, set_process_deps
from opennews.monitoring.schemas import ErrorResponse, HealthResponse
from opennews.monitoring.webhook_endpoints import set_webhook_deps, webhook_router
from opennews.utils.logger import get_logger

logger = get_logger(__name__)


def set_dependencies(
    crawl_engine: Any = None,
    tag_backfill: Any = None,
) -> None:
    """Inject runtime dependencies from the main application.

    Must be called before the app starts serving requests. Missing
    dependencies make the corresponding endpoints return 503.
    """
    set_webhook_deps(crawl_engine=crawl_engine)
    set_process_deps(crawl_engine=crawl_engine, tag_backfill=tag_backfill)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[type-arg]
    """Verify the database on startup; release HTTP and DB resources on shutdown."""
    logger.info("API server starting up")
    try:
        await init_db()
        logger.info("Database connection verified")
    except Exception as exc:
        logger.error("Database init failed: %s", exc)

    yield

    logger.info("API server shutting down")
    await BaseCrawler.close_session()
    await close_db()


app = FastAPI(
    title="OpenNews Ingestion API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook_router)
app.include_router(process_router)


# ---------------------------------------------------------------------------
# Middleware: request logging
# ---------------------------------------------------------------------------

@app.middleware("http")
async def log_requests(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Debug-log method, path, status and latency."""
    start = time.monotonic()
    response = await call_next(request)
    elapsed = (time.monotonic() - start) * 1000
    logger.debug(
        "%s %s -> %d (%.1fms)",
        request.method,
        request.url.path,
        response.status_code,
        elapsed,
    )
    return response


# ---------------------------------------------------------------------------
# Global exception handler
# ---------------------------------------------------------------------------

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything else becomes a generic 500 body; details stay in the log."""
    logger.error(
        "Unhandled error on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            detail="Internal server error. Check the server logs.",
            error_code="INTERNAL_ERROR",
        ).model_dump(),
    )


@app.get("/health", response_model=HealthResponse)
async def health() -> dict:
    return {"status": "ok"}

"""
Manual processing triggers.

Endpoints:
  POST /process  - run the tag backfill pass in the background
  POST /crawl    - run one ingestion cycle in the background
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from opennews.monitoring.auth import verify_api_key
from opennews.monitoring.schemas import StatusResponse
from opennews.utils.logger import get_logger

logger = get_logger(__name__)

process_router = APIRouter(tags=["process"])

_deps: dict[str, Any] = {}


def set_process_deps(crawl_engine: Any = None, tag_backfill: Any = None) -> None:
    """Inject the runtime dependencies used by the manual triggers."""
    _deps.update({"crawl_engine": crawl_engine, "tag_backfill": tag_backfill})


def _get(name: str) -> Any:
    """Look up a dependency; 503 when it is not wired."""
    dep = _deps.get(name)
    if dep is None:
        raise HTTPException(
            status_code=503,
            detail=f"Service '{name}' is not available",
        )
    return dep


@process_router.post("/process", response_model=StatusResponse)
async def start_processing(
    background_tasks: BackgroundTasks,
    _: None = Depends(verify_api_key),
) -> dict:
    """Start a tag backfill pass (background)."""
    backfill = _get("tag_backfill")

    async def _run() -> None:
        try:
            await backfill.run()
        except Exception as e:
            logger.error("Background article processing failed: %s", e, exc_info=True)

    background_tasks.add_task(_run)
    return {"status": "started", "message": "Article processing started"}


@process_router.post("/crawl", response_model=StatusResponse)
async def start_crawl(
    background_tasks: BackgroundTasks,
    _: None = Depends(verify_api_key),
) -> dict:
    """Start one ingestion cycle (background)."""
    engine = _get("crawl_engine")

    async def _run() -> None:
        try:
            report = await engine.run()
            logger.info("Manual crawl finished: %s", report.to_dict())
        except Exception as e:
            logger.error("Background crawl failed: %s", e, exc_info=True)

    background_tasks.add_task(_run)
    return {"status": "started", "message": "Ingestion run started"}

"""
Push-channel webhook.

Endpoints:
  POST /webhook  - accept one pushed item and ingest it in the background

The caller gets 202 as soon as the body is validated; scraping, tagging
and persistence happen after the response is sent.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from opennews.monitoring.auth import verify_webhook_secret
from opennews.monitoring.schemas import StatusResponse
from opennews.utils.logger import get_logger

logger = get_logger(__name__)

webhook_router = APIRouter(tags=["webhook"])

# ---------------------------------------------------------------------------
# Module-level dependency registry
# api_server.set_dependencies() fills it at startup.
# ---------------------------------------------------------------------------

_deps: dict[str, Any] = {}


def set_webhook_deps(crawl_engine: Any = None) -> None:
    """Inject the runtime dependencies used by the webhook."""
    _deps.update({"crawl_engine": crawl_engine})


def _get(name: str) -> Any:
    """Look up a dependency; 503 when it is not wired."""
    dep = _deps.get(name)
    if dep is None:
        raise HTTPException(
            status_code=503,
            detail=f"Service '{name}' is not available",
        )
    return dep


async def _ingest_in_background(engine: Any, payload: dict[str, Any]) -> None:
    try:
        await engine.ingest_push_payload(payload)
    except Exception as exc:
        logger.error("Background webhook ingestion failed: %s", exc, exc_info=True)


@webhook_router.post(
    "/webhook",
    status_code=202,
    response_model=StatusResponse,
    dependencies=[Depends(verify_webhook_secret)],
)
async def receive_webhook(request: Request, background_tasks: BackgroundTasks) -> Any:
    """Validate a pushed item and queue it for ingestion."""
    engine = _get("crawl_engine")

    raw = await request.body()
    try:
        payload = json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        logger.warning("Webhook rejected: malformed JSON (%r)", raw[:200])
        return JSONResponse(
            status_code=400,
            content={"status": "error", "message": "Invalid JSON body."},
        )

    if not isinstance(payload, dict):
        logger.warning("Webhook rejected: body is %s, not an object", type(payload).__name__)
        return JSONResponse(
            status_code=400,
            content={"status": "error", "message": "Body must be a JSON object."},
        )

    try:
        background_tasks.add_task(_ingest_in_background, engine, payload)
    except Exception as exc:
        logger.error("Failed to queue webhook item: %s", exc)
        raise HTTPException(status_code=500, detail="Internal server error.")

    logger.info("Webhook item queued (source=%s)", payload.get("source_name", "-"))
    return {"status": "received", "message": "Message queued for processing."}

# Health router.
# Created: 2026-10-03

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from tokenwarden import __version__

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
async def get_health_status():
    """Report whether the backing store is reachable."""
    from tokenwarden.api.oauth2.server import get_oauth_server

    store = get_oauth_server().store
    reachable = await run_in_threadpool(store.ping)
    if not reachable:
        logger.error("Health check failed: store unreachable")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "store": "unreachable", "version": __version__},
        )
    return {"status": "ok", "store": "ok", "version": __version__}

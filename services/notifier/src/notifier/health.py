"""
Health check endpoints for the PoolPilot notifier.

``/health`` is a liveness probe that never touches the store;
``/ready`` reports whether the alert database answers.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from pp_common.db.connection import check_database_health

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, bool]:
    """Return ``{"ok": true}`` when the service is alive."""
    return {"ok": True}


@router.get("/ready")
async def ready(request: Request) -> JSONResponse:
    """Return 200 when the alert store is reachable, 503 otherwise."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        return JSONResponse(status_code=503, content={"ok": False, "database": "not_configured"})
    if await check_database_health(engine):
        return JSONResponse(status_code=200, content={"ok": True, "database": "ok"})
    return JSONResponse(status_code=503, content={"ok": False, "database": "unreachable"})

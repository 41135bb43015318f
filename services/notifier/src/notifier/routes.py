"""
Dispatch trigger endpoint for the PoolPilot notifier.

``POST /notify`` runs one dispatch cycle.  An external scheduler calls it
periodically; overlapping calls are safe (at-least-once delivery).
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse

from pp_common.config import Settings
from pp_common.errors import AuthError
from pp_common.models.alert import DispatchPolicy

from . import metrics
from .auth import extract_token, verify_token
from .orchestrator import DispatchOrchestrator

logger = structlog.get_logger()

router = APIRouter(tags=["notify"])


def get_app_settings(request: Request) -> Settings:
    """Return the settings the app was built with."""
    return request.app.state.settings


def get_orchestrator(request: Request) -> DispatchOrchestrator:
    """Return the shared orchestrator from app state."""
    return request.app.state.orchestrator


@router.post("/notify")
async def notify(
    token: Optional[str] = Query(None),
    max_age_minutes: Optional[int] = Query(None, ge=0),
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_app_settings),
    orchestrator: DispatchOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """Run one dispatch cycle.

    ``max_age_minutes`` overrides the configured selection window for this
    call; ``0`` selects every pending alert regardless of age.
    """
    try:
        verify_token(extract_token(token, authorization), settings.notify_token)
    except AuthError:
        logger.warning("notify_unauthorized")
        metrics.runs_total.labels(outcome="unauthorized").inc()
        return JSONResponse(status_code=401, content={"error": "unauthorized"})

    policy = DispatchPolicy.from_settings(settings, max_age_minutes=max_age_minutes)
    try:
        summary = await orchestrator.run(policy)
    except Exception as exc:  # noqa: BLE001
        logger.exception("notify_error")
        return JSONResponse(
            status_code=500,
            content={"error": "internal_error", "message": str(exc)},
        )
    return JSONResponse(status_code=200, content=summary.to_response())

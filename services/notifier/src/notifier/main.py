"""
Notifier service entry point for PoolPilot.

Validates configuration, builds the alert store, delivery channels and
dispatch orchestrator, and exposes the trigger, health and metrics
endpoints.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
import uvicorn
from fastapi import FastAPI
from prometheus_client import make_asgi_app
from sqlalchemy.ext.asyncio import AsyncEngine

from pp_common.config import Settings, get_settings
from pp_common.db.connection import build_engine
from pp_common.logging import configure_logging

from .acknowledger import AcknowledgmentWriter
from .channels import AlertChannel, ChannelRouter, SmtpEmailChannel, TwilioSmsChannel
from .health import router as health_router
from .orchestrator import DispatchOrchestrator
from .routes import router as notify_router
from .selector import Selector
from .store import AlertStore

logger = structlog.get_logger()


def build_channels(settings: Settings) -> list[AlertChannel]:
    """Instantiate every channel whose credentials are configured."""
    channels: list[AlertChannel] = []
    if settings.twilio_configured:
        channels.append(
            TwilioSmsChannel(
                settings.twilio_account_sid,
                settings.twilio_auth_token,
                settings.twilio_from_number,
                base_url=settings.twilio_base_url,
                timeout=settings.delivery_timeout_s,
            )
        )
    if settings.smtp_configured:
        channels.append(
            SmtpEmailChannel(
                settings.smtp_host,
                settings.smtp_port,
                username=settings.smtp_username or None,
                password=settings.smtp_password or None,
                from_address=settings.smtp_from_address,
                use_tls=settings.smtp_use_tls,
                timeout=settings.delivery_timeout_s,
            )
        )
    return channels


def build_orchestrator(settings: Settings, engine: AsyncEngine) -> DispatchOrchestrator:
    """Wire store, selector, acknowledger and channels into an orchestrator."""
    store = AlertStore(
        engine,
        table_name=settings.alerts_table,
        scheme=settings.key_scheme,
        timeout=settings.store_timeout_s,
        retry_attempts=settings.store_retry_attempts,
    )
    return DispatchOrchestrator(
        Selector(store),
        AcknowledgmentWriter(store),
        ChannelRouter(build_channels(settings)),
        delivery_timeout=settings.delivery_timeout_s,
        concurrency=settings.delivery_concurrency,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle for the notifier service."""
    settings: Settings = app.state.settings
    owns_orchestrator = getattr(app.state, "orchestrator", None) is None
    if owns_orchestrator:
        settings.require_runtime_config()
        engine = build_engine(settings.db_uri, settings.db_pool_size)
        app.state.engine = engine
        app.state.orchestrator = build_orchestrator(settings, engine)
    orchestrator: DispatchOrchestrator = app.state.orchestrator
    logger.info(
        "notifier_starting",
        dry_run=not settings.sms_enabled,
        test_mode=settings.override_destination is not None,
        channels=[ch.name for ch in orchestrator.router.channels],
        key_scheme=settings.key_scheme.value,
    )
    yield
    logger.info("notifier_stopping")
    if owns_orchestrator:
        await orchestrator.router.close()
        await app.state.engine.dispose()


def create_app(
    settings: Settings | None = None,
    *,
    orchestrator: DispatchOrchestrator | None = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    Args:
        settings: Configuration; defaults to the cached environment settings.
        orchestrator: Pre-built orchestrator.  When given, the app neither
            validates credentials nor opens its own database engine.
    """
    settings = settings or get_settings()
    app = FastAPI(title="PoolPilot Alerts Notifier", lifespan=lifespan)
    app.state.settings = settings
    app.state.orchestrator = orchestrator
    app.state.engine = None
    app.include_router(health_router)
    app.include_router(notify_router)
    app.mount("/metrics", make_asgi_app())
    return app


def run() -> None:
    """Console entry point: configure logging and serve with uvicorn."""
    settings = get_settings()
    configure_logging(settings.log_level, json=settings.log_json, service="notifier")
    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


if __name__ == "__main__":
    run()

"""
Async database connection management for the PoolPilot notifier.

Provides SQLAlchemy async engine creation, connection pooling
configuration, and a health check utility for the alert store.
"""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from pp_common.config import get_settings


def build_engine(dsn: str | None = None, pool_size: int | None = None) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Args:
        dsn: Database connection string.  Falls back to ``Settings.db_uri``.
        pool_size: Connection-pool size.  Falls back to ``Settings.db_pool_size``.
            Ignored for SQLite, whose async driver does not pool.

    Returns:
        A configured ``AsyncEngine`` instance.
    """
    settings = get_settings()
    url = dsn or settings.db_uri
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        pool_size=pool_size or settings.db_pool_size,
        pool_pre_ping=True,
        echo=False,
    )


async def check_database_health(engine: AsyncEngine) -> bool:
    """Execute a lightweight query to verify database connectivity.

    Returns:
        ``True`` if the database responds, ``False`` otherwise.
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:  # noqa: BLE001 – health check must not raise
        return False

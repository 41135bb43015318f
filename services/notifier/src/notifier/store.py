"""
Alert store adapter for the PoolPilot notifier.

Wraps an async SQLAlchemy engine and the alert table description.
Every statement is bounded by a timeout and retried on transient
connection errors with exponential back-off; anything still failing
surfaces as :class:`~pp_common.errors.StoreError`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog
from sqlalchemy import Column
from sqlalchemy.engine import RowMapping
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.sql.expression import Executable
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pp_common.db.tables import build_alerts_table
from pp_common.errors import StoreError
from pp_common.models.alert import KeyScheme, key_columns

logger = structlog.get_logger()

T = TypeVar("T")

_DEFAULT_TIMEOUT_S = 30.0
_DEFAULT_RETRY_ATTEMPTS = 3


class AlertStore:
    """Read/write access to the alert table.

    Args:
        engine: Async engine bound to the alert database.
        table_name: Name of the alert table.
        scheme: Identity scheme of the table.
        timeout: Per-statement timeout in seconds.
        retry_attempts: Attempts per statement on transient errors.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        table_name: str = "pool_alerts",
        scheme: KeyScheme = KeyScheme.COMPOSITE,
        timeout: float = _DEFAULT_TIMEOUT_S,
        retry_attempts: int = _DEFAULT_RETRY_ATTEMPTS,
    ) -> None:
        self.engine = engine
        self.scheme = KeyScheme(scheme)
        self.table = build_alerts_table(table_name, self.scheme)
        self.timeout = timeout
        self.retry_attempts = retry_attempts

    @property
    def key_columns(self) -> list[Column[Any]]:
        """Table columns making up the row identity, in key order."""
        return [self.table.c[name] for name in key_columns(self.scheme)]

    # ── statements ──

    async def fetch_all(self, stmt: Executable) -> list[RowMapping]:
        """Run a SELECT and return every row as a mapping."""

        async def _op() -> list[RowMapping]:
            async with self.engine.connect() as conn:
                result = await conn.execute(stmt)
                return list(result.mappings().all())

        return await self._run(_op, "select")

    async def execute(self, stmt: Executable) -> int:
        """Run a write statement in its own transaction and return the rowcount."""

        async def _op() -> int:
            async with self.engine.begin() as conn:
                result = await conn.execute(stmt)
                return result.rowcount

        return await self._run(_op, "update")

    async def create_schema(self) -> None:
        """Create the alert table if it does not exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(self.table.metadata.create_all)

    # ── retry / timeout ──

    async def _run(self, op: Callable[[], Awaitable[T]], kind: str) -> T:
        """Execute *op* with timeout and retry, translating failures to ``StoreError``.

        The retry decorator is built per call so ``retry_attempts`` can be
        set at construction time rather than module-import time.
        """

        @retry(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
            retry=retry_if_exception_type((OperationalError, TimeoutError)),
            reraise=True,
        )
        async def _inner() -> T:
            return await asyncio.wait_for(op(), timeout=self.timeout)

        try:
            return await _inner()
        except TimeoutError as exc:
            logger.error("store_statement_timeout", statement=kind, timeout_s=self.timeout)
            raise StoreError(f"{kind} timed out after {self.timeout}s") from exc
        except SQLAlchemyError as exc:
            logger.error("store_statement_failed", statement=kind, error=str(exc))
            raise StoreError(f"{kind} failed: {exc}") from exc

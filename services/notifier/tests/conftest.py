"""Shared fixtures for notifier service tests."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

# Set env vars before any pp_common import reads settings.
os.environ.setdefault("PP_DB_URI", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PP_NOTIFY_TOKEN", "test-token")

from pp_common.errors import DeliveryError  # noqa: E402
from pp_common.models.alert import ContactKind, KeyScheme  # noqa: E402
from notifier.acknowledger import AcknowledgmentWriter  # noqa: E402
from notifier.channels.base import AlertChannel  # noqa: E402
from notifier.channels.router import ChannelRouter  # noqa: E402
from notifier.orchestrator import DispatchOrchestrator  # noqa: E402
from notifier.selector import Selector  # noqa: E402
from notifier.store import AlertStore  # noqa: E402

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


# ─── Fake channel ────────────────────────────────────────────────


class RecordingChannel(AlertChannel):
    """In-memory channel that records sends and fails on demand."""

    def __init__(self, kind: ContactKind = ContactKind.SMS, name: str = "recording") -> None:
        self.kind = kind
        self.name = name
        self.sent: list[tuple[str, str]] = []
        self.attempted: list[str] = []
        self.fail_for: set[str] = set()

    async def send(self, destination: str, body: str) -> None:
        self.attempted.append(destination)
        if destination in self.fail_for:
            raise DeliveryError("rejected by provider", channel=self.name)
        self.sent.append((destination, body))


# ─── Fixtures ────────────────────────────────────────────────────


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def clock(now: datetime) -> Callable[[], datetime]:
    return lambda: now


@pytest.fixture()
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'alerts.db'}")
    yield eng
    await eng.dispose()


@pytest.fixture()
async def store(engine: AsyncEngine) -> AlertStore:
    """Composite-key alert table."""
    s = AlertStore(engine, scheme=KeyScheme.COMPOSITE, retry_attempts=1)
    await s.create_schema()
    return s


@pytest.fixture()
async def id_store(engine: AsyncEngine) -> AlertStore:
    """Single-id alert table."""
    s = AlertStore(engine, table_name="pool_alerts_by_id", scheme=KeyScheme.ID, retry_attempts=1)
    await s.create_schema()
    return s


@pytest.fixture()
def make_row(now: datetime) -> Callable[..., dict[str, Any]]:
    """Factory for alert table rows; ``minutes_ago`` sets ``snapshot_ts``."""

    def _make(system_id: str = "sys-1", minutes_ago: int = 5, **overrides: Any) -> dict[str, Any]:
        row: dict[str, Any] = dict(
            system_id=system_id,
            system_name=f"Pool {system_id}",
            alert_type="chlorine_low",
            alert_summary="Free chlorine below 1.0 ppm",
            classification="valid",
            agency_name="Metro Health",
            alert_phone="+15550001111",
            alert_email=None,
            snapshot_ts=now - timedelta(minutes=minutes_ago),
            observed_at=None,
            notified_at=None,
        )
        row.update(overrides)
        return row

    return _make


@pytest.fixture()
def insert_rows() -> Callable[[AlertStore, list[dict[str, Any]]], Awaitable[None]]:
    async def _insert(target: AlertStore, rows: list[dict[str, Any]]) -> None:
        # executemany takes its column list from the first row; pad every
        # row to the full column set so per-row overrides are kept.
        columns = target.table.c.keys()
        padded = [{col: row.get(col) for col in columns} for row in rows]
        async with target.engine.begin() as conn:
            await conn.execute(insert(target.table), padded)

    return _insert


@pytest.fixture()
def fetch_rows() -> Callable[[AlertStore], Awaitable[list[dict[str, Any]]]]:
    async def _fetch(target: AlertStore) -> list[dict[str, Any]]:
        async with target.engine.connect() as conn:
            result = await conn.execute(
                select(target.table).order_by(target.table.c.snapshot_ts)
            )
            return [dict(r) for r in result.mappings().all()]

    return _fetch


@pytest.fixture()
def sms_channel() -> RecordingChannel:
    return RecordingChannel(ContactKind.SMS, name="sms")


@pytest.fixture()
def email_channel() -> RecordingChannel:
    return RecordingChannel(ContactKind.EMAIL, name="email")


@pytest.fixture()
def orchestrator(
    store: AlertStore,
    sms_channel: RecordingChannel,
    email_channel: RecordingChannel,
    clock: Callable[[], datetime],
) -> DispatchOrchestrator:
    return DispatchOrchestrator(
        Selector(store, clock=clock),
        AcknowledgmentWriter(store, clock=clock),
        ChannelRouter([sms_channel, email_channel]),
        delivery_timeout=1.0,
        clock=clock,
    )

"""
Acknowledgment writer for the PoolPilot notifier.

Stamps ``notified_at`` on exactly the keys a run processed, never on a
re-evaluated selection predicate, so rows that became eligible after
selection are left for the next run.  Keys are bound as parameters;
large key sets are split into chunks, each committed on its own.

Also owns the optional claim step: a conditional update stamping
``claimed_at`` before delivery so overlapping runs do not both send.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import ColumnElement, and_, or_, update

from pp_common.models.alert import AlertKey

from .store import AlertStore

logger = structlog.get_logger()

# Keeps composite-key statements under SQLite's default bound-parameter limit.
_ACK_CHUNK_SIZE = 200


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AcknowledgmentWriter:
    """Mark processed alerts so future selections exclude them.

    Args:
        store: Alert store adapter.
        clock: Returns the current UTC time (injectable for tests).
        chunk_size: Maximum keys per UPDATE statement.
    """

    def __init__(
        self,
        store: AlertStore,
        *,
        clock: Callable[[], datetime] = _utc_now,
        chunk_size: int = _ACK_CHUNK_SIZE,
    ) -> None:
        self.store = store
        self._clock = clock
        self.chunk_size = chunk_size

    def match_keys(self, keys: list[AlertKey]) -> ColumnElement[bool]:
        """Return a predicate matching exactly *keys*."""
        cols = self.store.key_columns
        if len(cols) == 1:
            return cols[0].in_([k[0] for k in keys])
        return or_(*(and_(*(c == v for c, v in zip(cols, key))) for key in keys))

    async def acknowledge(
        self,
        keys: Iterable[AlertKey],
        now: datetime | None = None,
    ) -> int:
        """Acknowledge *keys* and return how many rows were newly marked.

        Rows already acknowledged (by an overlapping run or an earlier
        partial write) are left untouched and not counted.

        Raises:
            StoreError: A chunk could not be written.  Earlier chunks stay
                committed; the next run will not reselect them.
        """
        unique = list(dict.fromkeys(tuple(k) for k in keys))
        if not unique:
            return 0
        now = now or self._clock()
        t = self.store.table
        updated = 0
        for start in range(0, len(unique), self.chunk_size):
            chunk = unique[start:start + self.chunk_size]
            stmt = (
                update(t)
                .where(self.match_keys(chunk), t.c.notified_at.is_(None))
                .values(notified_at=now)
            )
            updated += await self.store.execute(stmt)
        logger.info("alerts_acknowledged", requested=len(unique), updated=updated)
        return updated

    async def claim(
        self,
        key: AlertKey,
        ttl: timedelta,
        now: datetime | None = None,
    ) -> bool:
        """Atomically claim *key* for delivery.

        Succeeds only if the row is still pending and unclaimed, or its
        previous claim is older than *ttl*.
        """
        now = now or self._clock()
        t = self.store.table
        stmt = (
            update(t)
            .where(
                self.match_keys([key]),
                t.c.notified_at.is_(None),
                or_(t.c.claimed_at.is_(None), t.c.claimed_at < now - ttl),
            )
            .values(claimed_at=now)
        )
        return await self.store.execute(stmt) == 1

    async def release(self, key: AlertKey) -> int:
        """Drop the claim on *key* so the next run can retry it immediately."""
        t = self.store.table
        stmt = (
            update(t)
            .where(self.match_keys([key]), t.c.notified_at.is_(None))
            .values(claimed_at=None)
        )
        return await self.store.execute(stmt)

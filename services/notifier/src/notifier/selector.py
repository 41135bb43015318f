"""
Pending-alert selection for the PoolPilot notifier.

Builds the query yielding one run's batch: unacknowledged alerts with a
summary, optionally restricted to accepted classifications, a recent
time window and (with claims enabled) rows not claimed by another run.
The batch is ordered by ``snapshot_ts`` ascending, ties broken by key.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

import structlog
from pydantic import ValidationError
from sqlalchemy import Select, or_, select

from pp_common.models.alert import AlertRecord, DispatchPolicy

from .store import AlertStore

logger = structlog.get_logger()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Selector:
    """Build and run the batch query against an :class:`AlertStore`.

    Args:
        store: Alert store adapter.
        clock: Returns the current UTC time (injectable for tests).
    """

    def __init__(
        self,
        store: AlertStore,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.store = store
        self._clock = clock

    def build_query(self, policy: DispatchPolicy, now: datetime) -> Select:
        """Return the SELECT for *policy* evaluated at *now*."""
        t = self.store.table
        stmt = select(t).where(
            t.c.notified_at.is_(None),
            t.c.alert_summary.is_not(None),
        )
        if policy.accepted_classifications is not None:
            stmt = stmt.where(t.c.classification.in_(sorted(policy.accepted_classifications)))
        if policy.max_age is not None:
            stmt = stmt.where(t.c.snapshot_ts >= now - policy.max_age)
        if policy.claim_ttl is not None:
            stmt = stmt.where(
                or_(t.c.claimed_at.is_(None), t.c.claimed_at < now - policy.claim_ttl)
            )
        return stmt.order_by(t.c.snapshot_ts.asc(), *self.store.key_columns)

    async def select(
        self,
        policy: DispatchPolicy,
        now: datetime | None = None,
    ) -> list[AlertRecord]:
        """Return the ordered batch of pending records for *policy*.

        Raises:
            StoreError: The query could not be executed.
        """
        now = now or self._clock()
        rows = await self.store.fetch_all(self.build_query(policy, now))
        batch: list[AlertRecord] = []
        for row in rows:
            try:
                batch.append(AlertRecord.model_validate(dict(row)))
            except ValidationError as exc:
                logger.warning("alert_row_invalid", error=str(exc))
        logger.info(
            "alerts_selected",
            count=len(batch),
            classifications=(
                sorted(policy.accepted_classifications)
                if policy.accepted_classifications
                else None
            ),
            max_age_s=policy.max_age.total_seconds() if policy.max_age else None,
        )
        return batch

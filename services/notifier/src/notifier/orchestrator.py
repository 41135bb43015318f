"""
Dispatch run orchestration for the PoolPilot notifier.

One run moves through ``IDLE → SELECTING → DISPATCHING → ACKNOWLEDGING
→ DONE``.  A store failure while selecting or acknowledging ends the run
in ``FAILED`` and propagates; delivery failures never do, they are
counted per record and the record stays pending for the next run.

Flow
----
1. Select the ordered batch for the run's :class:`DispatchPolicy`.
2. For each record (optionally several at once, bounded by a semaphore):
   no contact → skip; resolve the route (none → skip); dry-run → count
   as sent without calling out; otherwise optionally claim and deliver.
3. Acknowledge exactly the keys that were delivered (plus dry-run keys
   when the policy asks for it).
4. Return a :class:`RunSummary`.

Delivery is at-least-once: two overlapping runs can both deliver a
record before either acknowledges it unless the claim step is enabled.
"""

from __future__ import annotations

import asyncio
import enum
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog

from pp_common.errors import DeliveryError, StoreError
from pp_common.logging import mask_address
from pp_common.models.alert import (
    AlertKey,
    AlertRecord,
    Destination,
    DispatchPolicy,
    RunSummary,
    SkipReason,
)

from . import metrics
from .acknowledger import AcknowledgmentWriter
from .channels.base import AlertChannel
from .channels.router import ChannelRouter
from .composer import compose
from .selector import Selector

logger = structlog.get_logger()

_DEFAULT_DELIVERY_TIMEOUT_S = 15.0


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RunState(str, enum.Enum):
    """Lifecycle of a single dispatch run."""

    IDLE = "idle"
    SELECTING = "selecting"
    DISPATCHING = "dispatching"
    ACKNOWLEDGING = "acknowledging"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: dict[RunState, set[RunState]] = {
    RunState.IDLE: {RunState.SELECTING},
    RunState.SELECTING: {RunState.DISPATCHING, RunState.FAILED},
    RunState.DISPATCHING: {RunState.ACKNOWLEDGING},
    RunState.ACKNOWLEDGING: {RunState.DONE, RunState.FAILED},
    RunState.DONE: set(),
    RunState.FAILED: set(),
}


class DispatchRun:
    """Mutable bookkeeping for one run: state, history, summary."""

    def __init__(self, policy: DispatchPolicy) -> None:
        self.run_id = uuid.uuid4().hex[:12]
        self.policy = policy
        self.state = RunState.IDLE
        self.history: list[RunState] = [RunState.IDLE]
        self.summary = RunSummary(run_id=self.run_id, dry_run=policy.dry_run)
        self.log = logger.bind(run_id=self.run_id)

    def advance(self, state: RunState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"illegal run transition {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)
        self.log.debug("dispatch_state", state=state.value)


@dataclass(frozen=True)
class RecordOutcome:
    """What happened to one record during dispatch."""

    key: AlertKey
    sent: bool
    acknowledge: bool
    reason: SkipReason | None = None


class DispatchOrchestrator:
    """Coordinate selection, delivery and acknowledgment for one run.

    Args:
        selector: Batch selector.
        acknowledger: Acknowledgment (and claim) writer.
        router: Channel router used to reach destinations.
        delivery_timeout: Upper bound for a single ``send`` call in seconds.
        concurrency: Maximum in-flight deliveries; ``1`` keeps strict order.
        clock: Returns the current UTC time (injectable for tests).
    """

    def __init__(
        self,
        selector: Selector,
        acknowledger: AcknowledgmentWriter,
        router: ChannelRouter,
        *,
        delivery_timeout: float = _DEFAULT_DELIVERY_TIMEOUT_S,
        concurrency: int = 1,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.selector = selector
        self.acknowledger = acknowledger
        self.router = router
        self.scheme = acknowledger.store.scheme
        self.delivery_timeout = delivery_timeout
        self.concurrency = max(1, concurrency)
        self._clock = clock
        self.last_run: DispatchRun | None = None

    # ── run ──

    async def run(self, policy: DispatchPolicy) -> RunSummary:
        """Execute one dispatch cycle under *policy*.

        Raises:
            StoreError: Selection or acknowledgment failed; the run ends
                in ``FAILED`` and no summary is returned.
        """
        run = DispatchRun(policy)
        self.last_run = run
        run.log.info(
            "dispatch_run_started",
            dry_run=policy.dry_run,
            test_mode=policy.test_mode,
            claims=policy.claims_enabled,
        )

        run.advance(RunState.SELECTING)
        try:
            batch = await self.selector.select(policy, self._clock())
        except StoreError:
            self._fail(run, "select")
            raise

        run.advance(RunState.DISPATCHING)
        outcomes = await self._dispatch_batch(run, batch)
        for outcome in outcomes:
            if outcome.sent:
                run.summary.sent += 1
            elif outcome.reason is not None:
                run.summary.record_skip(outcome.reason)
                metrics.alerts_skipped_total.labels(reason=outcome.reason.value).inc()
        if run.summary.sent:
            metrics.alerts_sent_total.labels(dry_run=str(policy.dry_run).lower()).inc(
                run.summary.sent
            )

        run.advance(RunState.ACKNOWLEDGING)
        ack_keys = [o.key for o in outcomes if o.acknowledge]
        try:
            run.summary.acknowledged = await self.acknowledger.acknowledge(ack_keys)
        except StoreError:
            self._fail(run, "acknowledge")
            raise
        metrics.alerts_acknowledged_total.inc(run.summary.acknowledged)

        run.advance(RunState.DONE)
        run.summary.finished_at = self._clock()
        metrics.runs_total.labels(outcome="done").inc()
        run.log.info(
            "dispatch_run_finished",
            selected=len(batch),
            sent=run.summary.sent,
            skipped=run.summary.skipped,
            acknowledged=run.summary.acknowledged,
            skip_reasons=run.summary.skip_reasons,
            dry_run=policy.dry_run,
        )
        return run.summary

    def _fail(self, run: DispatchRun, phase: str) -> None:
        run.advance(RunState.FAILED)
        metrics.runs_total.labels(outcome="failed").inc()
        run.log.error("dispatch_run_failed", phase=phase)

    # ── per-record dispatch ──

    async def _dispatch_batch(
        self,
        run: DispatchRun,
        batch: list[AlertRecord],
    ) -> list[RecordOutcome]:
        if self.concurrency == 1:
            return [await self._process(run, record) for record in batch]

        sem = asyncio.Semaphore(self.concurrency)

        async def _bounded(record: AlertRecord) -> RecordOutcome:
            async with sem:
                return await self._process(run, record)

        return list(await asyncio.gather(*(_bounded(r) for r in batch)))

    def _resolve_route(
        self,
        record: AlertRecord,
        policy: DispatchPolicy,
    ) -> tuple[Destination, AlertChannel] | None:
        if policy.override_destination is not None:
            return self.router.route([Destination.parse(policy.override_destination)])
        return self.router.route(record.contacts)

    async def _process(self, run: DispatchRun, record: AlertRecord) -> RecordOutcome:
        policy = run.policy
        key = record.key(self.scheme)
        log = run.log.bind(alert_key=[str(k) for k in key], system_id=record.system_id)

        if not record.has_contact:
            log.info("alert_skipped", reason=SkipReason.NO_ROUTE.value)
            return RecordOutcome(key=key, sent=False, acknowledge=False, reason=SkipReason.NO_ROUTE)

        body = compose(record, disclose=policy.test_mode)

        routed = self._resolve_route(record, policy)

        # Without any channel configured (credential-less dry-run) every
        # record with a contact counts; otherwise only routable ones do.
        if policy.dry_run:
            if routed is None and self.router.has_channels:
                log.info("alert_skipped", reason=SkipReason.NO_ROUTE.value, detail="no channel")
                return RecordOutcome(
                    key=key, sent=False, acknowledge=False, reason=SkipReason.NO_ROUTE,
                )
            log.info("alert_dry_run", body_chars=len(body))
            return RecordOutcome(key=key, sent=True, acknowledge=policy.acknowledge_dry_run)

        if routed is None:
            log.warning("alert_skipped", reason=SkipReason.NO_ROUTE.value, detail="no channel")
            return RecordOutcome(key=key, sent=False, acknowledge=False, reason=SkipReason.NO_ROUTE)
        destination, channel = routed

        if policy.claim_ttl is not None:
            try:
                claimed = await self.acknowledger.claim(key, policy.claim_ttl, self._clock())
            except StoreError as exc:
                log.error("alert_claim_failed", error=str(exc))
                return RecordOutcome(
                    key=key, sent=False, acknowledge=False, reason=SkipReason.CLAIM_FAILED,
                )
            if not claimed:
                log.info("alert_skipped", reason=SkipReason.CLAIMED_ELSEWHERE.value)
                return RecordOutcome(
                    key=key, sent=False, acknowledge=False, reason=SkipReason.CLAIMED_ELSEWHERE,
                )

        if await self._deliver(log, channel, destination, body):
            return RecordOutcome(key=key, sent=True, acknowledge=True)

        if policy.claim_ttl is not None:
            await self._release(log, key)
        return RecordOutcome(
            key=key, sent=False, acknowledge=False, reason=SkipReason.DELIVERY_FAILED,
        )

    async def _deliver(
        self,
        log: Any,
        channel: AlertChannel,
        destination: Destination,
        body: str,
    ) -> bool:
        log = log.bind(channel=channel.name, to=mask_address(destination.address))
        try:
            await asyncio.wait_for(
                channel.send(destination.address, body),
                timeout=self.delivery_timeout,
            )
        except TimeoutError:
            log.error("alert_delivery_timeout", timeout_s=self.delivery_timeout)
            return False
        except DeliveryError as exc:
            log.error("alert_delivery_failed", error=str(exc))
            return False
        except Exception as exc:  # noqa: BLE001
            log.error("channel_send_error", error=str(exc), error_type=type(exc).__name__)
            return False
        log.info("alert_sent")
        return True

    async def _release(self, log: Any, key: AlertKey) -> None:
        try:
            await self.acknowledger.release(key)
        except StoreError as exc:
            # The claim lapses after its TTL.
            log.warning("alert_claim_release_failed", error=str(exc))

"""
Alert record and dispatch models for the PoolPilot notifier.

Defines the Pydantic models for pending alert rows read from the store,
their delivery destinations, the per-run dispatch policy, and the run
summary returned to the trigger caller.
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

AlertKey = tuple[Any, ...]


def _utc_now() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps and normalise aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class KeyScheme(str, enum.Enum):
    """How an alert row is identified in the store."""

    ID = "id"
    COMPOSITE = "composite"


_KEY_COLUMNS: dict[KeyScheme, tuple[str, ...]] = {
    KeyScheme.ID: ("alert_id",),
    KeyScheme.COMPOSITE: ("system_id", "snapshot_ts", "alert_type"),
}


def key_columns(scheme: KeyScheme) -> tuple[str, ...]:
    """Return the column names making up an alert identity under *scheme*."""
    return _KEY_COLUMNS[KeyScheme(scheme)]


class ContactKind(str, enum.Enum):
    """Destination address families."""

    SMS = "sms"
    EMAIL = "email"


class Destination(BaseModel):
    """A single delivery address."""

    model_config = ConfigDict(frozen=True)

    kind: ContactKind
    address: str

    @classmethod
    def parse(cls, address: str) -> Destination:
        """Classify a bare address by shape (``@`` means e-mail)."""
        address = address.strip()
        kind = ContactKind.EMAIL if "@" in address else ContactKind.SMS
        return cls(kind=kind, address=address)


class AlertRecord(BaseModel):
    """A pending pool alert row, immutable once read within a run.

    Attributes:
        alert_id: Opaque single-column identity (``KeyScheme.ID`` tables).
        system_id: Monitored system identifier.
        system_name: Display name of the monitored system.
        alert_type: Kind of condition detected.
        alert_summary: Human-readable description of the condition.
        classification: Optional upstream triage tag (e.g. ``valid``).
        agency_name: Owning agency, disclosed only in test mode.
        alert_phone: SMS contact.
        alert_email: E-mail contact.
        snapshot_ts: Detection timestamp; orders the batch.
        observed_at: Time of the underlying reading, if recorded.
        notified_at: Acknowledgment marker (``None`` = pending).
        claimed_at: Claim marker used by claim-then-deliver.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    alert_id: str | None = None
    system_id: str
    system_name: str | None = None
    alert_type: str
    alert_summary: str | None = None
    classification: str | None = None
    agency_name: str | None = None
    alert_phone: str | None = None
    alert_email: str | None = None
    snapshot_ts: datetime
    observed_at: datetime | None = None
    notified_at: datetime | None = None
    claimed_at: datetime | None = None

    @field_validator("alert_id", "system_id", mode="before")
    @classmethod
    def _ids_as_text(cls, value: Any) -> Any:
        if value is None:
            return None
        return str(value)

    @field_validator("snapshot_ts", "observed_at", "notified_at", "claimed_at")
    @classmethod
    def _timestamps_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @field_validator("alert_phone", "alert_email", mode="before")
    @classmethod
    def _blank_contact_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def key(self, scheme: KeyScheme) -> AlertKey:
        """Return this record's identity under *scheme*."""
        values = tuple(getattr(self, col) for col in key_columns(scheme))
        if any(v is None for v in values):
            raise ValueError(f"alert row has no {scheme.value} identity: {values!r}")
        return values

    @property
    def contacts(self) -> list[Destination]:
        """Destinations on file, phone first."""
        found: list[Destination] = []
        if self.alert_phone:
            found.append(Destination(kind=ContactKind.SMS, address=self.alert_phone.strip()))
        if self.alert_email:
            found.append(Destination(kind=ContactKind.EMAIL, address=self.alert_email.strip()))
        return found

    @property
    def has_contact(self) -> bool:
        return bool(self.contacts)

    @property
    def is_pending(self) -> bool:
        return self.notified_at is None


class DispatchPolicy(BaseModel):
    """Per-run selection, delivery and acknowledgment policy.

    Attributes:
        accepted_classifications: Eligible classifications (``None`` = any).
        max_age: Selection window (``None`` = unbounded).
        delivery_enabled: ``False`` runs in dry-run mode.
        override_destination: Test recipient replacing real contacts.
        acknowledge_dry_run: Acknowledge records counted as sent in dry-run.
        claim_ttl: Enables claim-then-deliver with this claim lifetime.
    """

    model_config = ConfigDict(frozen=True)

    accepted_classifications: frozenset[str] | None = None
    max_age: timedelta | None = Field(default=timedelta(minutes=30))
    delivery_enabled: bool = False
    override_destination: str | None = None
    acknowledge_dry_run: bool = False
    claim_ttl: timedelta | None = None

    @property
    def dry_run(self) -> bool:
        return not self.delivery_enabled

    @property
    def test_mode(self) -> bool:
        return self.override_destination is not None

    @property
    def claims_enabled(self) -> bool:
        return self.claim_ttl is not None

    @classmethod
    def from_settings(cls, settings: Any, *, max_age_minutes: int | None = None) -> DispatchPolicy:
        """Build a policy from ``Settings``, optionally overriding the window.

        A window of ``0`` minutes (from either source) means unbounded.
        """
        minutes = settings.max_age_minutes if max_age_minutes is None else max_age_minutes
        classes = settings.accepted_classifications
        return cls(
            accepted_classifications=frozenset(classes) if classes else None,
            max_age=timedelta(minutes=minutes) if minutes else None,
            delivery_enabled=settings.sms_enabled,
            override_destination=settings.override_destination,
            acknowledge_dry_run=settings.acknowledge_dry_run,
            claim_ttl=(
                timedelta(minutes=settings.claim_ttl_minutes)
                if settings.claim_ttl_minutes
                else None
            ),
        )


class SkipReason(str, enum.Enum):
    """Why a selected record was not counted as sent."""

    NO_ROUTE = "no_route"
    DELIVERY_FAILED = "delivery_failed"
    CLAIMED_ELSEWHERE = "claimed_elsewhere"
    CLAIM_FAILED = "claim_failed"


class RunSummary(BaseModel):
    """Outcome of one dispatch run."""

    run_id: str
    sent: int = 0
    skipped: int = 0
    acknowledged: int = 0
    dry_run: bool = False
    skip_reasons: dict[str, int] = Field(default_factory=dict)
    started_at: datetime = Field(default_factory=_utc_now)
    finished_at: datetime | None = None

    def record_skip(self, reason: SkipReason) -> None:
        self.skipped += 1
        self.skip_reasons[reason.value] = self.skip_reasons.get(reason.value, 0) + 1

    def to_response(self) -> dict[str, Any]:
        """Shape used by the trigger endpoint."""
        return {
            "alerts_sent": self.sent,
            "alerts_skipped": self.skipped,
            "alerts_acknowledged": self.acknowledged,
            "dry_run": self.dry_run,
            "skip_reasons": dict(self.skip_reasons),
        }

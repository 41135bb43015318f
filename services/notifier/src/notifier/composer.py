"""
Notification text rendering for the PoolPilot notifier.

``compose`` is pure: the same record and disclosure flag always yield
the same body.  Disclosure adds the owning agency and the record's real
contact details, and is only enabled when messages go to an override
test recipient.
"""

from __future__ import annotations

from datetime import datetime

from pp_common.models.alert import AlertRecord

HEADER = "🚨 Pool Alert"
FOOTER = "Reply ACK if received."

UNKNOWN_SYSTEM = "Unknown system"
UNKNOWN_AGENCY = "Unknown agency"
NO_CONTACT = "none on file"
UNKNOWN_TIME = "unknown"

_TS_FORMAT = "%Y-%m-%d %H:%M UTC"


def _fmt_ts(value: datetime | None) -> str:
    return value.strftime(_TS_FORMAT) if value else UNKNOWN_TIME


def _disclosure_block(record: AlertRecord) -> list[str]:
    return [
        "[TEST MODE]",
        f"Agency: {record.agency_name or UNKNOWN_AGENCY}",
        f"Phone: {record.alert_phone or NO_CONTACT}",
        f"Email: {record.alert_email or NO_CONTACT}",
        f"Detected: {_fmt_ts(record.snapshot_ts)}",
        f"Observed: {_fmt_ts(record.observed_at)}",
    ]


def compose(record: AlertRecord, disclose: bool = False) -> str:
    """Render the outbound message body for *record*.

    Args:
        record: The alert being delivered.
        disclose: Embed agency and real contact details (test mode only).

    Returns:
        The message text.
    """
    lines = [
        HEADER,
        record.system_name or UNKNOWN_SYSTEM,
        record.alert_type,
        "",
        record.alert_summary or "",
        "",
    ]
    if disclose:
        lines.extend(_disclosure_block(record))
        lines.append("")
    lines.append(FOOTER)
    return "\n".join(lines)
